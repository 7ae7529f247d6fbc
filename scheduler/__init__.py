"""
Scheduler package for background maintenance jobs.

This package contains:
- Periodic sweep of expired rate limit counters
"""

__version__ = "1.0.0"
