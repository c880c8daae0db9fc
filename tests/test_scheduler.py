"""
Tests for arming, cancelling and firing scheduled update runs.
"""
from unittest.mock import Mock

from sqlalchemy.exc import OperationalError

from conftest import FIXED_NOW
from core.scheduling import scheduler as scheduler_module
from core.database.models import ScheduledJob
from core.database.operations import schedule_single_event
from core.scheduling.scheduler import UPDATE_HOOK, EventScheduler


class TestInstall:

    def test_arms_run_in_thirty_to_sixty_minutes(self, db, session_factory):
        randint = Mock(return_value=2400)
        scheduler = EventScheduler(session_factory, randint=randint, clock=lambda: FIXED_NOW)

        run_at = scheduler.install()

        randint.assert_called_once_with(1800, 3600)
        assert run_at == FIXED_NOW + 2400
        job = db.query(ScheduledJob).one()
        assert job.hook == UPDATE_HOOK
        assert job.run_at == FIXED_NOW + 2400

    def test_does_not_duplicate_pending_run(self, db, scheduler):
        first = scheduler.install()
        second = scheduler.install()
        assert first == second
        assert db.query(ScheduledJob).count() == 1


class TestUninstall:

    def test_cancels_pending_run(self, db, scheduler):
        scheduler.install()
        assert scheduler.uninstall() == 1
        assert scheduler.next_run() is None

    def test_nothing_pending(self, scheduler):
        assert scheduler.uninstall() == 0

    def test_leaves_other_hooks_alone(self, db, scheduler):
        schedule_single_event(db, "other_event", FIXED_NOW)
        scheduler.install()
        scheduler.uninstall()
        assert db.query(ScheduledJob).filter(ScheduledJob.hook == "other_event").count() == 1


class TestReschedule:

    def test_replaces_pending_runs(self, db, scheduler):
        schedule_single_event(db, UPDATE_HOOK, FIXED_NOW + 10)
        schedule_single_event(db, UPDATE_HOOK, FIXED_NOW + 20)

        run_at = scheduler.reschedule()

        jobs = db.query(ScheduledJob).all()
        assert len(jobs) == 1
        assert jobs[0].run_at == run_at == FIXED_NOW + 1800


class TestRunDue:

    def test_fires_callback_when_due(self, db, session_factory):
        callback = Mock()
        scheduler = EventScheduler(session_factory, callback=callback, clock=lambda: FIXED_NOW)
        schedule_single_event(db, UPDATE_HOOK, FIXED_NOW - 5)

        assert scheduler.run_due() is True
        callback.assert_called_once_with()
        assert db.query(ScheduledJob).count() == 0

    def test_not_due_yet(self, db, session_factory):
        callback = Mock()
        scheduler = EventScheduler(session_factory, callback=callback, clock=lambda: FIXED_NOW)
        schedule_single_event(db, UPDATE_HOOK, FIXED_NOW + 60)

        assert scheduler.run_due() is False
        callback.assert_not_called()
        assert db.query(ScheduledJob).count() == 1

    def test_overdue_runs_collapse_into_one_call(self, db, session_factory):
        callback = Mock()
        scheduler = EventScheduler(session_factory, callback=callback, clock=lambda: FIXED_NOW)
        schedule_single_event(db, UPDATE_HOOK, FIXED_NOW - 100)
        schedule_single_event(db, UPDATE_HOOK, FIXED_NOW - 50)

        scheduler.run_due()
        callback.assert_called_once_with()

    def test_failing_callback_does_not_propagate(self, db, session_factory):
        callback = Mock(side_effect=RuntimeError("boom"))
        scheduler = EventScheduler(session_factory, callback=callback, clock=lambda: FIXED_NOW)
        schedule_single_event(db, UPDATE_HOOK, FIXED_NOW)

        assert scheduler.run_due() is True
        assert db.query(ScheduledJob).count() == 0

    def test_callback_rearms_itself(self, db, session_factory):
        scheduler = EventScheduler(
            session_factory, randint=lambda low, high: low, clock=lambda: FIXED_NOW
        )
        scheduler.callback = scheduler.reschedule
        schedule_single_event(db, UPDATE_HOOK, FIXED_NOW)

        scheduler.run_due()

        job = db.query(ScheduledJob).one()
        assert job.run_at == FIXED_NOW + 1800


class FlakySessionFactory:
    """Fails to open a session the first `failures` times"""

    def __init__(self, session_factory, failures=1):
        self.session_factory = session_factory
        self.failures = failures
        self.calls = 0

    def __call__(self):
        self.calls += 1
        if self.calls <= self.failures:
            raise OperationalError("SELECT 1", {}, Exception("database is locked"))
        return self.session_factory()


class TestDatabaseErrors:

    def test_poll_survives_database_error(self, db, session_factory):
        callback = Mock()
        factory = FlakySessionFactory(session_factory)
        scheduler = EventScheduler(factory, callback=callback, clock=lambda: FIXED_NOW)
        schedule_single_event(db, UPDATE_HOOK, FIXED_NOW - 5)

        assert scheduler.run_due() is False
        callback.assert_not_called()

        assert scheduler.run_due() is True
        callback.assert_called_once_with()
        assert db.query(ScheduledJob).count() == 0

    def test_worker_loop_keeps_running_after_database_error(self, monkeypatch, session_factory):
        factory = FlakySessionFactory(session_factory)
        scheduler = EventScheduler(factory, callback=Mock(), clock=lambda: FIXED_NOW)
        sleeps = []

        def stop_after_first_tick(seconds):
            sleeps.append(seconds)
            scheduler.running = False

        monkeypatch.setattr(scheduler_module.time, "sleep", stop_after_first_tick)

        scheduler.run_forever()

        assert factory.calls == 1
        assert sleeps == [1]
