from datetime import datetime, timedelta, timezone

import pytest

from clinic_notifications.models.enums import NotificationChannel, NotificationStatus, ReminderKind
from clinic_notifications.models.schedule import NotificationSchedule

BASE = datetime(2024, 1, 7, 17, 0, tzinfo=timezone.utc)


def make_schedule(appointment, kind=ReminderKind.FIRST_REMINDER, scheduled_for=BASE):
    return NotificationSchedule(
        appointment_id=appointment.appointment_id,
        template_id=1,
        kind=kind,
        channel=NotificationChannel.WHATSAPP,
        scheduled_for=scheduled_for,
        appointment=appointment
    )


def test_replace_for_appointment_swaps_whole_set(schedule_db, appointment):
    schedule_db.replace_for_appointment(appointment.appointment_id, [
        make_schedule(appointment, ReminderKind.FIRST_REMINDER),
        make_schedule(appointment, ReminderKind.SECOND_REMINDER, BASE + timedelta(days=2)),
    ])
    stored = schedule_db.replace_for_appointment(appointment.appointment_id, [
        make_schedule(appointment, ReminderKind.THIRD_REMINDER, BASE + timedelta(days=3)),
    ])
    assert [s.kind for s in stored] == [ReminderKind.THIRD_REMINDER]
    assert [s.kind for s in schedule_db.find_by_appointment(appointment.appointment_id)] == [
        ReminderKind.THIRD_REMINDER
    ]


def test_snapshot_roundtrip(schedule_db, appointment):
    stored = schedule_db.replace_for_appointment(appointment.appointment_id, [make_schedule(appointment)])[0]
    assert stored.appointment == appointment
    assert stored.scheduled_for == BASE
    assert stored.status == NotificationStatus.PENDING
    assert stored.retry_count == 0


def test_replace_leaves_other_appointments(schedule_db, make_appointment):
    one = make_appointment("apt-1")
    two = make_appointment("apt-2")
    schedule_db.replace_for_appointment("apt-1", [make_schedule(one)])
    schedule_db.replace_for_appointment("apt-2", [make_schedule(two)])
    schedule_db.replace_for_appointment("apt-1", [])
    assert schedule_db.find_by_appointment("apt-1") == []
    assert len(schedule_db.find_by_appointment("apt-2")) == 1


def test_delete_by_appointment_returns_count(schedule_db, appointment):
    schedule_db.replace_for_appointment(appointment.appointment_id, [
        make_schedule(appointment, ReminderKind.FIRST_REMINDER),
        make_schedule(appointment, ReminderKind.SECOND_REMINDER),
    ])
    assert schedule_db.delete_by_appointment(appointment.appointment_id) == 2
    assert schedule_db.delete_by_appointment(appointment.appointment_id) == 0


def test_find_due_only_pending_and_oldest_first(schedule_db, make_appointment):
    one = make_appointment("apt-1")
    two = make_appointment("apt-2")
    schedule_db.replace_for_appointment("apt-1", [make_schedule(one, scheduled_for=BASE)])
    schedule_db.replace_for_appointment("apt-2", [
        make_schedule(two, ReminderKind.FIRST_REMINDER, BASE - timedelta(hours=1)),
        make_schedule(two, ReminderKind.SECOND_REMINDER, BASE + timedelta(seconds=1)),
    ])

    due = schedule_db.find_due(BASE)
    assert [(s.appointment_id, s.kind) for s in due] == [
        ("apt-2", ReminderKind.FIRST_REMINDER),
        ("apt-1", ReminderKind.FIRST_REMINDER),
    ]

    schedule_db.update(due[0].id, {"status": NotificationStatus.SENT})
    assert [s.appointment_id for s in schedule_db.find_due(BASE)] == ["apt-1"]


def test_claim_is_exclusive(schedule_db, appointment):
    stored = schedule_db.replace_for_appointment(appointment.appointment_id, [make_schedule(appointment)])[0]
    claimed = schedule_db.claim(stored.id, BASE)
    assert claimed.id == stored.id
    assert claimed.status == NotificationStatus.SENDING
    assert claimed.last_attempt == BASE
    assert schedule_db.claim(stored.id, BASE) is None

    assert schedule_db.get(stored.id).status == NotificationStatus.SENDING
    assert schedule_db.find_due(BASE) == []


def test_claim_returns_current_row(schedule_db, appointment):
    stored = schedule_db.replace_for_appointment(appointment.appointment_id, [make_schedule(appointment)])[0]
    schedule_db.update(stored.id, {"retry_count": 2, "error_message": "timeout"})
    claimed = schedule_db.claim(stored.id, BASE)
    assert stored.retry_count == 0
    assert claimed.retry_count == 2
    assert claimed.error_message == "timeout"


def test_claim_refuses_schedule_moved_into_the_future(schedule_db, appointment):
    stored = schedule_db.replace_for_appointment(appointment.appointment_id, [make_schedule(appointment)])[0]
    schedule_db.update(stored.id, {"scheduled_for": BASE + timedelta(minutes=30)})
    assert schedule_db.claim(stored.id, BASE) is None
    assert schedule_db.get(stored.id).status == NotificationStatus.PENDING
    assert schedule_db.claim(stored.id, BASE + timedelta(minutes=30)).status == NotificationStatus.SENDING


def test_update_rejects_unknown_field(schedule_db, appointment):
    stored = schedule_db.replace_for_appointment(appointment.appointment_id, [make_schedule(appointment)])[0]
    with pytest.raises(ValueError):
        schedule_db.update(stored.id, {"channel": "SMS"})


def test_find_all_filters(schedule_db, appointment):
    stored = schedule_db.replace_for_appointment(appointment.appointment_id, [
        make_schedule(appointment, ReminderKind.FIRST_REMINDER),
        make_schedule(appointment, ReminderKind.SECOND_REMINDER),
    ])
    schedule_db.update(stored[0].id, {"status": NotificationStatus.FAILED, "error_message": "boom"})
    assert len(schedule_db.find_all()) == 2
    assert [s.error_message for s in schedule_db.find_all(status=NotificationStatus.FAILED)] == ["boom"]
