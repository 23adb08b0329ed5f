"""Periodic emission jobs on an APScheduler AsyncIOScheduler.

Jobs:
- state_broadcast: stateUpdate snapshot (default every 1s)
- opportunity_sweep: tradingOpportunities sweep (default every 5s)
- token_cleanup: expire idle tokens (default every 60s)

The scheduler belongs to the app, not to the tracker: nothing runs until
start() is called, and broadcast jobs can be switched off for headless use.

Usage:
    scheduler = EmissionScheduler(tracker, broadcast_enabled=True)
    scheduler.start()   # in app lifespan startup
    scheduler.stop()    # in app lifespan shutdown
"""

from __future__ import annotations

from datetime import timedelta
from typing import Any

import structlog
from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from pumpwatch.services.tracker.opportunity_tracker import OpportunityTracker

log = structlog.get_logger(__name__)

# Job ID constants
JOB_ID_STATE_BROADCAST = "state_broadcast"
JOB_ID_OPPORTUNITY_SWEEP = "opportunity_sweep"
JOB_ID_TOKEN_CLEANUP = "token_cleanup"


class EmissionScheduler:
    """Owns the timer-driven tasks that read tracker state."""

    def __init__(
        self,
        tracker: OpportunityTracker,
        state_interval: float = 1.0,
        sweep_interval: float = 5.0,
        cleanup_interval: float = 60.0,
        max_token_age: timedelta = timedelta(hours=24),
        broadcast_enabled: bool = True,
        scheduler: AsyncIOScheduler | None = None,
    ) -> None:
        """Initialize scheduler (not started).

        Args:
            tracker: Tracker whose emissions are scheduled.
            state_interval: Seconds between stateUpdate broadcasts.
            sweep_interval: Seconds between opportunity sweeps.
            cleanup_interval: Seconds between cleanup passes.
            max_token_age: Inactivity after which a token is dropped.
            broadcast_enabled: Schedule the two broadcast jobs.
            scheduler: Underlying APScheduler instance (created if None).
        """
        self.tracker = tracker
        self.state_interval = state_interval
        self.sweep_interval = sweep_interval
        self.cleanup_interval = cleanup_interval
        self.max_token_age = max_token_age
        self.broadcast_enabled = broadcast_enabled
        self._scheduler = scheduler or AsyncIOScheduler()

    @property
    def running(self) -> bool:
        return bool(self._scheduler.running)

    def start(self) -> None:
        """Register jobs and start. Safe to call multiple times."""
        if self.running:
            return

        if self.broadcast_enabled:
            self._add_job(self.broadcast_state_job, JOB_ID_STATE_BROADCAST, self.state_interval)
            self._add_job(
                self.opportunity_sweep_job, JOB_ID_OPPORTUNITY_SWEEP, self.sweep_interval
            )
        self._add_job(self.cleanup_job, JOB_ID_TOKEN_CLEANUP, self.cleanup_interval)

        self._scheduler.start()
        log.info(
            "scheduler_started",
            broadcast_enabled=self.broadcast_enabled,
            jobs=[job.id for job in self._scheduler.get_jobs()],
        )

    def stop(self) -> None:
        """Stop all jobs. Safe to call when not running."""
        if self.running:
            self._scheduler.shutdown(wait=False)
            log.info("scheduler_shutdown")

    def _add_job(self, func: Any, job_id: str, seconds: float) -> None:
        self._scheduler.add_job(
            func,
            trigger=IntervalTrigger(seconds=seconds),
            id=job_id,
            name=job_id.replace("_", " ").title(),
            replace_existing=True,
            max_instances=1,
            coalesce=True,
        )

    # ------------------------------------------------------------------
    # Jobs (handle all errors internally to prevent job crashes)
    # ------------------------------------------------------------------

    async def broadcast_state_job(self) -> None:
        try:
            self.tracker.broadcast_state()
        except Exception as e:
            log.error("state_broadcast_job_failed", error=str(e))

    async def opportunity_sweep_job(self) -> None:
        try:
            self.tracker.sweep_opportunities()
        except Exception as e:
            log.error("opportunity_sweep_job_failed", error=str(e))

    async def cleanup_job(self) -> None:
        try:
            await self.tracker.run_cleanup(self.max_token_age)
        except Exception as e:
            log.error("cleanup_job_failed", error=str(e))

    def get_status(self) -> dict[str, Any]:
        """Scheduler status for the health endpoint."""
        jobs = {}
        for job in self._scheduler.get_jobs():
            next_run = getattr(job, "next_run_time", None)
            jobs[job.id] = next_run.isoformat() if next_run else None
        return {
            "running": self.running,
            "broadcast_enabled": self.broadcast_enabled,
            "jobs": jobs,
        }
