from unittest import mock

import pytest
from filelock import FileLock

from clinic_notifications.scheduler import NotificationScheduler
from clinic_notifications.utils.date_utils import utc_now

SUMMARY = {"due": 1, "sent": 1, "retried": 0, "failed": 0, "skipped": 0}


@pytest.fixture
def fake_service():
    service = mock.MagicMock()
    service.now_fn = utc_now
    service.process_scheduled_notifications.return_value = SUMMARY
    return service


@pytest.fixture
def scheduler(fake_service, tmp_path):
    scheduler = NotificationScheduler(fake_service, interval_minutes=5,
                                      lock_path=str(tmp_path / "locks" / "tick.lock"))
    yield scheduler
    scheduler.stop()


def test_status_when_stopped(scheduler):
    status = scheduler.status()
    assert status["is_running"] is False
    assert status["next_execution"] is None
    assert status["interval_minutes"] == 5


def test_start_stop(scheduler):
    scheduler.start()
    status = scheduler.status()
    assert status["is_running"] is True
    assert status["next_execution"] is not None

    scheduler.stop()
    assert scheduler.status()["is_running"] is False
    # stopping twice is harmless
    scheduler.stop()


def test_start_twice_is_noop(scheduler, caplog):
    scheduler.start()
    inner = scheduler._scheduler
    scheduler.start()
    assert scheduler._scheduler is inner
    assert "already running" in caplog.text


def test_process_now_runs_one_tick(scheduler, fake_service):
    assert scheduler.process_now() == SUMMARY
    fake_service.process_scheduled_notifications.assert_called_once_with()
    assert scheduler.status()["last_summary"] == SUMMARY
    assert scheduler.status()["last_run"] is not None


def test_tick_errors_are_logged_not_raised(scheduler, fake_service):
    fake_service.process_scheduled_notifications.side_effect = RuntimeError("database is locked")
    assert scheduler.process_now() is None
    assert scheduler.status()["last_error"] == "database is locked"

    fake_service.process_scheduled_notifications.side_effect = None
    scheduler.process_notifications()
    assert scheduler.status()["last_error"] is None


def test_tick_skipped_while_another_process_holds_lock(scheduler, fake_service):
    with FileLock(scheduler.lock_path):
        assert scheduler.process_now() is None
    fake_service.process_scheduled_notifications.assert_not_called()


def test_timer_tick_skipped_while_tick_in_progress(scheduler, fake_service):
    with scheduler._tick_lock:
        scheduler.process_notifications()
    fake_service.process_scheduled_notifications.assert_not_called()
