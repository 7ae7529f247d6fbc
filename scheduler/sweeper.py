"""
Background sweep of expired rate limit counters.

This module provides:
- A periodic APScheduler job that removes expired client window counters
- An explicit start/stop lifecycle tied to application startup and shutdown
- Error isolation: a failing sweep is logged and never reaches a caller
"""

from typing import Dict, Iterable

import structlog
from apscheduler.events import EVENT_JOB_ERROR, EVENT_JOB_EXECUTED
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from api.rate_limiter import FixedWindowRateLimiter

logger = structlog.get_logger(__name__)

SWEEP_JOB_ID = "rate_limit_sweep"


class RateLimitSweeper:
    """Periodically sweeps every registered rate limiter."""

    def __init__(
        self,
        limiters: Iterable[FixedWindowRateLimiter],
        interval_seconds: int = 60,
        timezone: str = "UTC"
    ):
        """
        Initialize the sweeper.

        Args:
            limiters: Rate limiters whose expired counters should be removed
            interval_seconds: Seconds between sweeps
            timezone: Scheduler timezone
        """
        self.limiters = list(limiters)
        self.interval_seconds = interval_seconds
        self.scheduler = AsyncIOScheduler(timezone=timezone)
        self.logger = logger.bind(component="rate_limit_sweeper")

        self._setup_scheduler_listeners()

    def _setup_scheduler_listeners(self) -> None:
        """Setup scheduler event listeners."""
        def job_executed_listener(event):
            self.logger.debug(
                "Sweep job executed",
                job_id=event.job_id,
                removed=event.retval or {}
            )

        def job_error_listener(event):
            self.logger.error(
                "Sweep job failed",
                job_id=event.job_id,
                error=str(event.exception)
            )

        self.scheduler.add_listener(job_executed_listener, EVENT_JOB_EXECUTED)
        self.scheduler.add_listener(job_error_listener, EVENT_JOB_ERROR)

    @property
    def running(self) -> bool:
        return self.scheduler.running

    def run_sweep(self) -> Dict[str, int]:
        """
        Sweep every limiter once.

        Returns:
            Removed counter totals keyed by limiter name
        """
        removed = {}
        for limiter in self.limiters:
            try:
                removed[limiter.name] = limiter.sweep()
            except Exception as e:
                self.logger.error(
                    "Rate limit sweep failed",
                    limiter=limiter.name,
                    error=str(e)
                )
                removed[limiter.name] = 0

        if any(removed.values()):
            self.logger.info("Expired rate limit counters removed", removed=removed)
        return removed

    def start(self) -> None:
        """Schedule the sweep job and start the scheduler. Requires a running event loop."""
        if self.scheduler.running:
            return

        self.scheduler.add_job(
            self.run_sweep,
            trigger=IntervalTrigger(seconds=self.interval_seconds),
            id=SWEEP_JOB_ID,
            name="Rate limit counter sweep",
            replace_existing=True,
            max_instances=1,
            coalesce=True
        )
        self.scheduler.start()

        self.logger.info(
            "Rate limit sweeper started",
            interval_seconds=self.interval_seconds,
            limiters=[limiter.name for limiter in self.limiters]
        )

    def stop(self) -> None:
        """Cancel the sweep job and shut the scheduler down."""
        try:
            if self.scheduler.running:
                self.scheduler.shutdown(wait=False)
            self.logger.info("Rate limit sweeper stopped")
        except Exception as e:
            self.logger.error(
                "Error stopping rate limit sweeper",
                error=str(e)
            )
