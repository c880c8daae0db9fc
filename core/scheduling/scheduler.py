"""
One-shot job scheduling for the update run.

Pending runs live in the scheduled_jobs table so they survive restarts and
are visible to every process sharing the catalog database. A worker polls
the table with the `schedule` library and fires the bound callback when a
job falls due.
"""

import logging
import random
import threading
import time
from typing import Callable, Optional

import schedule
import sqlalchemy.exc

from config.settings import get_settings
from core.database.operations import (
    SessionLocal,
    next_scheduled,
    pop_due_events,
    schedule_single_event,
    unschedule_events,
)

# Name of the deferred event that triggers a batch run
UPDATE_HOOK = "missing_info_update_event"


class EventScheduler:
    """
    Arms, cancels and fires one-shot runs of a single hook.
    """

    def __init__(self, session_factory=None, hook: str = UPDATE_HOOK,
                 callback: Optional[Callable] = None,
                 randint: Callable[[int, int], int] = random.randint,
                 clock: Callable[[], float] = time.time):
        settings = get_settings()
        self.session_factory = session_factory or SessionLocal
        self.hook = hook
        self.callback = callback
        self.randint = randint
        self.clock = clock
        self.delay_min = settings.RESCHEDULE_MIN
        self.delay_max = settings.RESCHEDULE_MAX
        self.poll_seconds = settings.SCHEDULER_POLL_SECONDS
        self.logger = logging.getLogger("scheduler")
        self.running = False
        self.thread = None

    def _next_run_time(self) -> int:
        return int(self.clock()) + self.randint(self.delay_min, self.delay_max)

    def next_run(self) -> Optional[int]:
        """Unix timestamp of the pending run, or None."""
        db = self.session_factory()
        try:
            job = next_scheduled(db, self.hook)
            return job.run_at if job else None
        finally:
            db.close()

    def install(self) -> Optional[int]:
        """Arm the first run unless one is already pending.

        Returns:
            Timestamp of the pending run (new or existing)
        """
        db = self.session_factory()
        try:
            job = next_scheduled(db, self.hook)
            if job:
                self.logger.info(f"Run already scheduled at {job.run_at}, not arming another")
                return job.run_at
            job = schedule_single_event(db, self.hook, self._next_run_time())
            self.logger.info(f"Scheduled {self.hook} at {job.run_at}")
            return job.run_at
        finally:
            db.close()

    def uninstall(self) -> int:
        """Cancel pending runs. Returns how many were removed."""
        db = self.session_factory()
        try:
            removed = unschedule_events(db, self.hook)
            self.logger.info(f"Removed {removed} pending {self.hook} run(s)")
            return removed
        finally:
            db.close()

    def reschedule(self) -> int:
        """Replace whatever is pending with exactly one new run.

        Returns:
            Timestamp of the new run
        """
        db = self.session_factory()
        try:
            unschedule_events(db, self.hook)
            job = schedule_single_event(db, self.hook, self._next_run_time())
            self.logger.info(f"Next {self.hook} run at {job.run_at}")
            return job.run_at
        finally:
            db.close()

    def run_due(self, now: Optional[int] = None) -> bool:
        """Fire the callback if a run has fallen due.

        Due jobs are removed first; several overdue jobs collapse into a
        single callback invocation.

        Returns:
            True if the callback was fired
        """
        now = int(self.clock()) if now is None else now
        try:
            db = self.session_factory()
            try:
                due = pop_due_events(db, self.hook, now)
            finally:
                db.close()
        except sqlalchemy.exc.SQLAlchemyError as e:
            # poll again on the next tick
            self.logger.exception(f"Could not read pending {self.hook} runs: {e}")
            return False

        if not due:
            return False

        self.logger.info(f"Running {self.hook} scheduled for {due[0]}")
        if self.callback is None:
            self.logger.warning(f"No callback bound to {self.hook}")
            return False

        try:
            self.callback()
        except Exception as e:  # pylint: disable=broad-exception-caught
            # keep polling after a failed run
            self.logger.exception(f"Scheduled {self.hook} run failed: {e}")
        return True

    def run_forever(self):
        """Poll for due runs until stop() is called."""
        jobs = schedule.Scheduler()
        jobs.every(self.poll_seconds).seconds.do(self.run_due)
        self.running = True
        self.logger.info(f"Scheduler started, polling every {self.poll_seconds}s")

        # Catch up on anything that fell due while no worker was running
        self.run_due()
        while self.running:
            jobs.run_pending()
            time.sleep(1)
        self.logger.info("Scheduler stopped")

    def start(self):
        """Run the worker loop in a background daemon thread."""
        if self.thread and self.thread.is_alive():
            return
        self.thread = threading.Thread(target=self.run_forever, name="update-scheduler", daemon=True)
        self.thread.start()

    def stop(self):
        self.running = False
        if self.thread:
            self.thread.join(timeout=5)
            self.thread = None
