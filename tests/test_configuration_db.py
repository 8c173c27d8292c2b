import pytest

from clinic_notifications.database.configuration_db import ConfigurationDB
from clinic_notifications.models.enums import NotificationChannel


def test_get_creates_defaults_lazily(configuration_db):
    cfg = configuration_db.get()
    assert cfg.id is not None
    assert cfg.enabled is True
    assert cfg.default_channel == NotificationChannel.WHATSAPP
    assert (cfg.first_reminder_days, cfg.second_reminder_days, cfg.third_reminder_hours) == (3, 1, 2)
    assert cfg.whatsapp_enabled and cfg.sms_enabled and cfg.email_enabled
    assert cfg.retry_attempts == 3
    assert cfg.retry_interval_minutes == 30
    assert cfg.created_at is not None


def test_get_returns_single_row(configuration_db, db_path):
    first = configuration_db.get()
    again = ConfigurationDB(db_path).get()
    assert first.id == again.id


def test_update_merges_partial(configuration_db):
    cfg = configuration_db.update({"retry_attempts": 5, "sms_enabled": False})
    assert cfg.retry_attempts == 5
    assert cfg.sms_enabled is False
    assert cfg.first_reminder_days == 3


def test_update_accepts_lowercase_channel(configuration_db):
    assert configuration_db.update({"default_channel": "email"}).default_channel == NotificationChannel.EMAIL


@pytest.mark.parametrize("updates", [
    {"unknown_field": 1},
    {"first_reminder_days": -1},
    {"third_reminder_hours": -2},
    {"default_channel": "PIGEON"},
    {"retry_interval_minutes": 0},
])
def test_update_rejects_invalid(configuration_db, updates):
    with pytest.raises(ValueError):
        configuration_db.update(updates)
    assert configuration_db.get().first_reminder_days == 3
