"""
Shared pytest fixtures: temporary SQLite stores, fake channel providers,
a controllable clock and appointment factories.
"""
from datetime import datetime, timezone

import pytest

from clinic_notifications.database.configuration_db import ConfigurationDB
from clinic_notifications.database.log_db import LogDB
from clinic_notifications.database.schedule_db import ScheduleDB
from clinic_notifications.database.template_db import TemplateDB
from clinic_notifications.models.appointment import Appointment
from clinic_notifications.models.enums import NotificationChannel, ReminderKind
from clinic_notifications.models.message import NotificationResult
from clinic_notifications.models.patient import Patient
from clinic_notifications.models.template import NotificationTemplate
from clinic_notifications.services.notification_service import NotificationService
from clinic_notifications.services.provider_registry import ProviderRegistry

CLINIC_TZ = "America/Sao_Paulo"

PROVIDER_ENV_VARS = [
    "WHATSAPP_API_URL", "WHATSAPP_API_KEY", "WHATSAPP_FROM_NUMBER",
    "TWILIO_ACCOUNT_SID", "TWILIO_AUTH_TOKEN", "TWILIO_FROM_NUMBER",
    "SMTP_HOST", "SMTP_PORT", "SMTP_USER", "SMTP_PASSWORD", "FROM_EMAIL", "FROM_NAME",
]


class FakeProvider:
    """Records messages and answers with queued results (success by default)"""

    def __init__(self, channel, configured=True):
        self.channel = channel
        self.configured = configured
        self.sent = []
        self.results = []

    def is_configured(self):
        return self.configured

    def validate_recipient(self, recipient):
        return bool(recipient)

    def send(self, message):
        self.sent.append(message)
        if self.results:
            return self.results.pop(0)
        return NotificationResult(success=True, provider_message_id=f"{self.channel.value}-{len(self.sent)}")


class Clock:
    def __init__(self, now):
        self.now = now

    def __call__(self):
        return self.now


@pytest.fixture
def clean_provider_env(monkeypatch):
    for name in PROVIDER_ENV_VARS:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def db_path(tmp_path):
    return str(tmp_path / "data" / "notifications.db")


@pytest.fixture
def configuration_db(db_path):
    return ConfigurationDB(db_path)


@pytest.fixture
def template_db(db_path):
    return TemplateDB(db_path)


@pytest.fixture
def schedule_db(db_path):
    return ScheduleDB(db_path)


@pytest.fixture
def log_db(db_path):
    return LogDB(db_path)


@pytest.fixture
def templates(template_db):
    """One active template per (kind, channel)"""
    created = {}
    for kind in ReminderKind:
        for channel in NotificationChannel:
            created[(kind, channel)] = template_db.create(NotificationTemplate(
                name=f"{kind.value}-{channel.value}",
                kind=kind,
                channel=channel,
                content="Olá {patient}, {service} com {practitioner} em {date} às {time}.",
                subject="Lembrete {clinic}" if channel == NotificationChannel.EMAIL else None
            ))
    return created


@pytest.fixture
def providers():
    return {channel: FakeProvider(channel) for channel in NotificationChannel}


@pytest.fixture
def registry(providers):
    registry = ProviderRegistry()
    for provider in providers.values():
        registry.register(provider)
    return registry


@pytest.fixture
def clock():
    return Clock(datetime(2024, 1, 5, 12, 0, tzinfo=timezone.utc))


@pytest.fixture
def service(registry, configuration_db, template_db, schedule_db, log_db, templates, clock):
    return NotificationService(
        registry,
        configuration_db=configuration_db,
        template_db=template_db,
        schedule_db=schedule_db,
        log_db=log_db,
        now_fn=clock,
        tz_name=CLINIC_TZ
    )


def build_appointment(appointment_id="apt-1", date="2024-01-10", start_time="14:00",
                      phone="+5511988887777", whatsapp="+5511999990001", email="maria@example.com",
                      room_name="Sala 2"):
    return Appointment(
        appointment_id=appointment_id,
        date=date,
        start_time=start_time,
        patient=Patient(
            patient_id="pat-1",
            full_name="Maria Souza",
            phone=phone,
            whatsapp=whatsapp,
            email=email
        ),
        partner_name="Dra. Ana Lima",
        service_name="Fisioterapia",
        room_name=room_name
    )


@pytest.fixture
def appointment():
    return build_appointment()


@pytest.fixture
def make_appointment():
    return build_appointment
