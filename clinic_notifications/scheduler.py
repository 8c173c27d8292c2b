from __future__ import annotations
import os
import threading
import time
import logging
from datetime import datetime
from typing import Dict, Optional

from apscheduler.schedulers.background import BackgroundScheduler
from filelock import FileLock, Timeout

from .services.notification_service import NotificationService
from .utils.config import config

logger = logging.getLogger(__name__)

JOB_ID = "process_scheduled_notifications"


class NotificationScheduler:
    """
    Periodic timer that asks the NotificationService to dispatch due reminders.
    Ticks never overlap: APScheduler runs one instance at a time, an in-process
    lock is shared with process_now(), and a file lock serializes processes
    that share the same database.
    """

    def __init__(self, service: NotificationService, interval_minutes: Optional[int] = None,
                 lock_path: Optional[str] = None):
        self.service = service
        self.interval_minutes = interval_minutes or config.SCHEDULER_INTERVAL_MINUTES
        self.lock_path = lock_path or config.SCHEDULER_LOCK_PATH
        lock_dir = os.path.dirname(self.lock_path)
        if lock_dir:
            os.makedirs(lock_dir, exist_ok=True)

        self._scheduler: Optional[BackgroundScheduler] = None
        self._tick_lock = threading.Lock()
        self.last_run: Optional[datetime] = None
        self.last_summary: Optional[Dict[str, int]] = None
        self.last_error: Optional[str] = None

    @property
    def is_running(self) -> bool:
        return self._scheduler is not None and self._scheduler.running

    def start(self):
        if self.is_running:
            logger.warning("Notification scheduler already running")
            return

        self._scheduler = BackgroundScheduler(timezone="UTC")
        self._scheduler.add_job(
            func=self.process_notifications,
            trigger="interval",
            minutes=self.interval_minutes,
            id=JOB_ID,
            max_instances=1,
            coalesce=True
        )
        self._scheduler.start()
        logger.info(f"Notification scheduler started (every {self.interval_minutes} minutes)")

    def stop(self):
        if not self.is_running:
            return
        # an in-flight tick finishes on its own thread
        self._scheduler.shutdown(wait=False)
        self._scheduler = None
        logger.info("Notification scheduler stopped")

    def status(self) -> Dict:
        next_execution = None
        if self.is_running:
            job = self._scheduler.get_job(JOB_ID)
            if job is not None and job.next_run_time is not None:
                next_execution = job.next_run_time.isoformat()

        return {
            "is_running": self.is_running,
            "next_execution": next_execution,
            "interval_minutes": self.interval_minutes,
            "last_run": self.last_run.isoformat() if self.last_run else None,
            "last_summary": self.last_summary,
            "last_error": self.last_error
        }

    def process_now(self) -> Optional[Dict[str, int]]:
        """Run one tick synchronously, waiting for any tick already in progress"""
        with self._tick_lock:
            return self._run_tick()

    def process_notifications(self):
        """Timer callback: skips when a tick is already running in this process"""
        if not self._tick_lock.acquire(blocking=False):
            logger.info("Previous notification tick still running; skipping")
            return
        try:
            self._run_tick()
        finally:
            self._tick_lock.release()

    def _run_tick(self) -> Optional[Dict[str, int]]:
        started = time.monotonic()
        try:
            with FileLock(self.lock_path, timeout=0):
                summary = self.service.process_scheduled_notifications()
        except Timeout:
            logger.info("Another process holds the notification lock; tick skipped")
            return None
        except Exception as e:
            self.last_error = str(e)
            logger.error(f"Error processing scheduled notifications: {e}")
            return None

        self.last_run = self.service.now_fn()
        self.last_summary = summary
        self.last_error = None
        logger.info(f"Notification tick finished in {time.monotonic() - started:.2f}s: {summary}")
        return summary
