"""
FastAPI REST API for the Digital Library.

This module provides:
- Book catalogue, event and user administration routes
- JWT bearer authentication with user and admin roles
- Input sanitization, rate limiting, field and upload validation
- Excel export and a rule-based library assistant
"""
