"""
Background scheduler for the escalation check.

One instance lives on the FastAPI app state; admins can start, stop, inspect
and trigger it over HTTP.
"""
import logging
import threading
from datetime import datetime, timedelta
from typing import Any, Callable, Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from sqlalchemy.orm import Session

from app.core.config import settings
from app.services.escalation_service import run_escalation_check
from app.services.notification_service import InAppNotifier, Notifier
from app.utils.datetime_utils import now_utc

logger = logging.getLogger(__name__)

JOB_ID = "leave_escalation_check"


class EscalationScheduler:
    def __init__(
        self,
        session_factory: Callable[[], Session],
        notifier_factory: Callable[[], Notifier] = InAppNotifier,
    ):
        self._session_factory = session_factory
        self._notifier_factory = notifier_factory
        self._scheduler: Optional[BackgroundScheduler] = None
        self._interval_ms: Optional[int] = None
        self._run_lock = threading.Lock()
        self.last_run_at: Optional[datetime] = None
        self.last_summary: Optional[Dict[str, Any]] = None

    @property
    def running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def _run(self) -> Dict[str, Any]:
        # manual triggers and scheduled ticks never overlap
        with self._run_lock:
            db = self._session_factory()
            try:
                summary = run_escalation_check(db, self._notifier_factory())
            finally:
                db.close()
            self.last_run_at = now_utc()
            self.last_summary = summary
            return summary

    def _tick(self) -> None:
        try:
            self._run()
        except Exception as exc:
            logger.error("scheduled escalation check failed: error=%s", exc, exc_info=True)

    def start(self, interval_ms: Optional[int] = None) -> bool:
        """Start periodic checks. Returns False if already running."""
        if self.running:
            return False
        interval_ms = interval_ms or settings.escalation_interval_ms
        scheduler = BackgroundScheduler(timezone="UTC")
        scheduler.add_job(
            self._tick,
            "interval",
            seconds=interval_ms / 1000,
            id=JOB_ID,
            max_instances=1,
            coalesce=True,
            next_run_time=now_utc() + timedelta(milliseconds=interval_ms),
        )
        scheduler.start()
        self._scheduler = scheduler
        self._interval_ms = interval_ms
        logger.info("escalation scheduler started: interval_ms=%s", interval_ms)
        return True

    def stop(self) -> bool:
        """Stop periodic checks. Returns False if not running."""
        if not self.running:
            return False
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("escalation scheduler stopped")
        return True

    def trigger_manual(self) -> Dict[str, Any]:
        """Run one check now, in the calling thread."""
        logger.info("manual escalation check triggered")
        return self._run()

    def status(self) -> Dict[str, Any]:
        next_run_at = None
        if self.running:
            job = self._scheduler.get_job(JOB_ID)
            next_run_at = job.next_run_time if job is not None else None
        return {
            "running": self.running,
            "interval_ms": self._interval_ms if self.running else settings.escalation_interval_ms,
            "last_run_at": self.last_run_at,
            "next_run_at": next_run_at,
        }
