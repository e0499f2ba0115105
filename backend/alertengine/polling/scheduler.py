"""
Evaluation Scheduler

Uses APScheduler to run alert evaluation cycles on a fixed interval.
A cycle that fails outright pulls the next run forward to the shorter
backoff interval instead of waiting the full interval.
"""

from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone

from apscheduler.schedulers.asyncio import AsyncIOScheduler
from apscheduler.triggers.interval import IntervalTrigger

from alertengine.config import EngineConfig
from alertengine.evaluation.worker import EvaluationWorker

logger = logging.getLogger(__name__)

JOB_ID = "evaluate_alert_rules"


class EvaluationScheduler:
    """Runs the evaluation worker on an interval."""

    def __init__(self, worker: EvaluationWorker, config: EngineConfig | None = None):
        self._worker = worker
        self._config = config or worker.config
        self._scheduler: AsyncIOScheduler | None = None

    @property
    def running(self) -> bool:
        return bool(self._scheduler and self._scheduler.running)

    def start(self) -> None:
        """Start the evaluation scheduler."""
        self._scheduler = AsyncIOScheduler(timezone=timezone.utc)

        self._scheduler.add_job(
            self._run_cycle,
            IntervalTrigger(seconds=self._config.interval_seconds),
            id=JOB_ID,
            name="Evaluate alert rules",
            replace_existing=True,
            max_instances=1,
            coalesce=True,
            next_run_time=datetime.now(timezone.utc),
        )

        self._scheduler.start()
        logger.info(
            "Evaluation scheduler started: interval=%ss backoff=%ss",
            self._config.interval_seconds,
            self._config.error_backoff_seconds,
        )

    async def stop(self) -> None:
        """Stop the evaluation scheduler."""
        self._worker.stop()
        if self._scheduler:
            self._scheduler.shutdown(wait=False)
            self._scheduler = None
            logger.info("Evaluation scheduler stopped")

    async def run_now(self) -> None:
        """Trigger an immediate evaluation cycle."""
        await self._run_cycle()

    async def _run_cycle(self) -> None:
        if self._worker.stopping:
            return
        try:
            await self._worker.run_cycle()
        except Exception:
            self._worker.stats.errors += 1
            logger.exception("Error in alert evaluation cycle")
            self._reschedule(self._config.error_backoff_seconds)

    def _reschedule(self, seconds: float) -> None:
        """Move the next run to `seconds` from now."""
        if not self.running:
            return
        next_run = datetime.now(timezone.utc) + timedelta(seconds=seconds)
        self._scheduler.modify_job(JOB_ID, next_run_time=next_run)
        logger.info("Next evaluation cycle in %ss", seconds)
