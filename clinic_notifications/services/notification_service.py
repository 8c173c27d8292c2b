"""
Appointment reminder orchestration: scheduling, rendering, dispatch and retry
"""
from datetime import datetime, timedelta, timezone
from typing import Callable, Dict, List, Optional, Any
import logging

from .provider_registry import ProviderRegistry
from ..database.configuration_db import ConfigurationDB
from ..database.log_db import LogDB
from ..database.schedule_db import ScheduleDB
from ..database.template_db import TemplateDB
from ..exceptions import (
    NotificationDeliveryError,
    ProviderNotConfiguredError,
    RecipientNotFoundError,
    TemplateNotFoundError,
)
from ..models.appointment import Appointment
from ..models.configuration import NotificationConfiguration
from ..models.enums import CHANNEL_FALLBACK_ORDER, NotificationChannel, NotificationStatus, ReminderKind
from ..models.log import NotificationLog
from ..models.message import NotificationMessage, NotificationResult
from ..models.patient import Patient
from ..models.schedule import NotificationSchedule
from ..models.template import NotificationTemplate, TEMPLATE_VARIABLES
from ..utils.config import config
from ..utils.date_utils import format_date_for_display, format_time_for_display, subtract_offset, utc_now
from ..utils.template_utils import find_placeholders, render

logger = logging.getLogger(__name__)

# Outcomes of processing one schedule, as counted in the tick summary
SENT = "sent"
RETRIED = "retried"
FAILED = "failed"
SKIPPED = "skipped"

# Stand-ins when the appointment lacks a name
DEFAULT_PATIENT = "Paciente"
DEFAULT_PRACTITIONER = "Profissional"
DEFAULT_SERVICE = "Serviço"


class NotificationService:
    def __init__(self, registry: ProviderRegistry,
                 configuration_db: Optional[ConfigurationDB] = None,
                 template_db: Optional[TemplateDB] = None,
                 schedule_db: Optional[ScheduleDB] = None,
                 log_db: Optional[LogDB] = None,
                 appointment_loader: Optional[Callable[[str], Optional[Appointment]]] = None,
                 now_fn: Callable[[], datetime] = utc_now,
                 tz_name: Optional[str] = None):
        self.registry = registry
        self.configuration_db = configuration_db or ConfigurationDB()
        self.template_db = template_db or TemplateDB()
        self.schedule_db = schedule_db or ScheduleDB()
        self.log_db = log_db or LogDB()
        # Refreshes appointment data at dispatch time; the stored snapshot is used otherwise
        self.appointment_loader = appointment_loader
        self.now_fn = now_fn
        self.tz_name = tz_name or config.CLINIC_TIMEZONE

    def _now(self) -> datetime:
        return self.now_fn()

    # Configuration

    def get_configuration(self) -> NotificationConfiguration:
        return self.configuration_db.get()

    def update_configuration(self, updates: Dict[str, Any]) -> NotificationConfiguration:
        return self.configuration_db.update(updates)

    # Templates

    def list_templates(self, kind=None, channel=None, active=None) -> List[NotificationTemplate]:
        return self.template_db.list(kind=kind, channel=channel, active=active)

    def get_template(self, template_id: int) -> Optional[NotificationTemplate]:
        return self.template_db.get(template_id)

    def create_template(self, template: NotificationTemplate) -> NotificationTemplate:
        unknown = [name for name in find_placeholders(template.content) if name not in TEMPLATE_VARIABLES]
        if unknown:
            logger.warning(f"Template '{template.name}' uses unknown placeholders: {', '.join(unknown)}")
        return self.template_db.create(template)

    def update_template(self, template_id: int, updates: Dict[str, Any]) -> Optional[NotificationTemplate]:
        return self.template_db.update(template_id, updates)

    def delete_template(self, template_id: int) -> bool:
        return self.template_db.delete(template_id)

    # Scheduling

    def schedule_reminders(self, appointment: Appointment) -> List[NotificationSchedule]:
        """Compute the reminder schedules of an appointment and replace any existing ones"""
        cfg = self.get_configuration()
        if not cfg.enabled:
            logger.info(f"Notifications disabled; no reminders for appointment {appointment.appointment_id}")
            return []

        start = appointment.starts_at(self.tz_name)
        now = self._now()
        candidates = [
            (ReminderKind.FIRST_REMINDER, subtract_offset(start, cfg.first_reminder_days, "days")),
            (ReminderKind.SECOND_REMINDER, subtract_offset(start, cfg.second_reminder_days, "days")),
            (ReminderKind.THIRD_REMINDER, subtract_offset(start, cfg.third_reminder_hours, "hours")),
        ]
        channel = self.resolve_channel(appointment.patient, cfg)

        schedules = []
        for kind, scheduled_for in candidates:
            if scheduled_for <= now or scheduled_for >= start:
                logger.debug(f"{kind.value} time already passed for appointment {appointment.appointment_id}")
                continue

            template = self.template_db.find_by_kind_and_channel(kind, channel)
            if template is None:
                logger.warning(f"Template not found for {kind.value} / {channel.value}; reminder skipped")
                continue

            schedules.append(NotificationSchedule(
                appointment_id=appointment.appointment_id,
                template_id=template.id,
                kind=kind,
                channel=channel,
                scheduled_for=scheduled_for.astimezone(timezone.utc),
                appointment=appointment
            ))

        stored = self.schedule_db.replace_for_appointment(appointment.appointment_id, schedules)
        logger.info(f"Scheduled {len(stored)} reminders for appointment {appointment.appointment_id}")
        return stored

    def cancel_reminders(self, appointment_id: str) -> int:
        removed = self.schedule_db.delete_by_appointment(appointment_id)
        logger.info(f"Cancelled {removed} reminders for appointment {appointment_id}")
        return removed

    def reschedule_reminders(self, appointment: Appointment) -> List[NotificationSchedule]:
        self.cancel_reminders(appointment.appointment_id)
        return self.schedule_reminders(appointment)

    # Channel, recipient and content

    def resolve_channel(self, patient: Patient, cfg: NotificationConfiguration) -> NotificationChannel:
        """Default channel if reachable, else the first enabled reachable channel, else the default"""
        if patient.contact_for(cfg.default_channel):
            return cfg.default_channel

        for channel in CHANNEL_FALLBACK_ORDER:
            if cfg.is_channel_enabled(channel) and patient.contact_for(channel):
                return channel

        return cfg.default_channel

    def resolve_recipient(self, patient: Patient, channel: NotificationChannel) -> str:
        recipient = patient.contact_for(channel)
        if not recipient:
            raise RecipientNotFoundError(channel, patient.patient_id)
        return recipient

    def build_template_variables(self, appointment: Appointment) -> Dict[str, Optional[str]]:
        start = appointment.starts_at(self.tz_name)
        clinic = config.clinic_info()
        variables = {
            "patient": appointment.patient.full_name or DEFAULT_PATIENT,
            "practitioner": appointment.partner_name or DEFAULT_PRACTITIONER,
            "service": appointment.service_name or DEFAULT_SERVICE,
            "date": format_date_for_display(start, tz_name=self.tz_name),
            "time": format_time_for_display(start, tz_name=self.tz_name),
            "clinic": clinic["clinic"] or None,
            "address": clinic["address"] or None,
            "phone": clinic["phone"] or None,
        }
        if appointment.room_name:
            variables["room"] = appointment.room_name
        return variables

    def render_message(self, appointment: Appointment, recipient: str, content: str,
                       subject: Optional[str] = None) -> NotificationMessage:
        variables = self.build_template_variables(appointment)
        return NotificationMessage(
            recipient=recipient,
            content=render(content, variables),
            subject=render(subject, variables) if subject else None
        )

    def _write_log(self, appointment_id: str, kind: ReminderKind, channel: NotificationChannel,
                   message: NotificationMessage, result: NotificationResult) -> NotificationLog:
        return self.log_db.create(NotificationLog(
            appointment_id=appointment_id,
            channel=channel,
            kind=kind,
            recipient=message.recipient,
            content=message.content,
            subject=message.subject,
            status=NotificationStatus.SENT if result.success else NotificationStatus.FAILED,
            error_message=result.error_message,
            provider_message_id=result.provider_message_id,
            provider_payload=result.provider_payload,
            sent_at=self._now()
        ))

    # Immediate sends

    def send_immediate_notification(self, appointment: Appointment,
                                    kind: ReminderKind = ReminderKind.IMMEDIATE,
                                    custom_message: Optional[str] = None,
                                    channels: Optional[List[NotificationChannel]] = None) -> List[NotificationLog]:
        """Render and send right away on each requested channel.

        Raises on the first failure; nothing is retried.
        """
        cfg = self.get_configuration()
        kind = ReminderKind(kind)
        target_channels = [NotificationChannel(c) for c in channels] if channels else [cfg.default_channel]

        logs = []
        for channel in target_channels:
            if not cfg.is_channel_enabled(channel):
                logger.info(f"Channel {channel.value} disabled; immediate notification skipped")
                continue

            provider = self.registry.get(channel)
            if provider is None or not provider.is_configured():
                raise ProviderNotConfiguredError(channel)

            subject = None
            if custom_message is not None:
                content = custom_message
            else:
                template = self.template_db.find_by_kind_and_channel(kind, channel)
                if template is None:
                    raise TemplateNotFoundError(kind, channel)
                content, subject = template.content, template.subject

            recipient = self.resolve_recipient(appointment.patient, channel)
            message = self.render_message(appointment, recipient, content, subject)
            result = provider.send(message)
            logs.append(self._write_log(appointment.appointment_id, kind, channel, message, result))

            if not result.success:
                raise NotificationDeliveryError(channel, result.error_message or "send failed", result)
            logger.info(f"Immediate {kind.value} sent to appointment {appointment.appointment_id} via {channel.value}")

        return logs

    # Dispatch

    def process_scheduled_notifications(self) -> Dict[str, int]:
        """Dispatch every due PENDING schedule, oldest first"""
        now = self._now()
        due = self.schedule_db.find_due(now)
        summary = {"due": len(due), SENT: 0, RETRIED: 0, FAILED: 0, SKIPPED: 0}
        if not due:
            return summary

        logger.info(f"Processing {len(due)} scheduled notifications")
        cfg = self.get_configuration()
        for schedule in due:
            try:
                outcome = self.process_schedule(schedule, cfg, now)
            except Exception as e:
                logger.error(f"Error processing schedule {schedule.id}: {e}")
                outcome = FAILED
            summary[outcome] += 1

        logger.info(f"Processed scheduled notifications: {summary}")
        return summary

    def process_schedule(self, schedule: NotificationSchedule,
                         cfg: Optional[NotificationConfiguration] = None,
                         now: Optional[datetime] = None) -> str:
        """Claim and dispatch one schedule; returns the outcome"""
        now = now or self._now()
        claimed = self.schedule_db.claim(schedule.id, now)
        if claimed is None:
            logger.info(f"Schedule {schedule.id} already claimed or no longer due; skipping")
            return SKIPPED
        schedule = claimed

        try:
            return self._dispatch(schedule, cfg or self.get_configuration(), now)
        except Exception as e:
            logger.exception(f"Unexpected error dispatching schedule {schedule.id}")
            self._mark_failed(schedule, str(e) or e.__class__.__name__)
            return FAILED

    def _load_appointment(self, schedule: NotificationSchedule) -> Appointment:
        if self.appointment_loader is not None:
            appointment = self.appointment_loader(schedule.appointment_id)
            if appointment is not None:
                return appointment
        return schedule.appointment

    def _dispatch(self, schedule: NotificationSchedule, cfg: NotificationConfiguration, now: datetime) -> str:
        provider = self.registry.get(schedule.channel)
        if provider is None or not provider.is_configured():
            self._mark_failed(schedule, str(ProviderNotConfiguredError(schedule.channel)))
            return FAILED

        template = self.template_db.get(schedule.template_id) if schedule.template_id else None
        if template is None or not template.active:
            self._mark_failed(schedule, str(TemplateNotFoundError(schedule.kind, schedule.channel)))
            return FAILED

        appointment = self._load_appointment(schedule)
        try:
            recipient = self.resolve_recipient(appointment.patient, schedule.channel)
        except RecipientNotFoundError as e:
            message = self.render_message(appointment, "", template.content, template.subject)
            self._write_log(schedule.appointment_id, schedule.kind, schedule.channel, message,
                            NotificationResult.failure(str(e), retryable=False))
            self._mark_failed(schedule, str(e))
            return FAILED

        message = self.render_message(appointment, recipient, template.content, template.subject)
        result = provider.send(message)
        self._write_log(schedule.appointment_id, schedule.kind, schedule.channel, message, result)

        if result.success:
            self.schedule_db.update(schedule.id, {
                "status": NotificationStatus.SENT,
                "error_message": None
            })
            logger.info(f"Notification sent: schedule {schedule.id} via {schedule.channel.value}")
            return SENT

        return self._handle_failure(schedule, result, cfg, now)

    def _handle_failure(self, schedule: NotificationSchedule, result: NotificationResult,
                        cfg: NotificationConfiguration, now: datetime) -> str:
        if not result.retryable:
            self._mark_failed(schedule, result.error_message)
            return FAILED

        retry_count = schedule.retry_count
        if retry_count < cfg.retry_attempts:
            retry_count += 1
            if retry_count < cfg.retry_attempts:
                retry_at = now + timedelta(minutes=cfg.retry_interval_minutes)
                self.schedule_db.update(schedule.id, {
                    "status": NotificationStatus.PENDING,
                    "retry_count": retry_count,
                    "scheduled_for": retry_at,
                    "error_message": result.error_message
                })
                logger.info(f"Notification {schedule.id} rescheduled for retry {retry_count} at {retry_at.isoformat()}")
                return RETRIED

        self.schedule_db.update(schedule.id, {
            "status": NotificationStatus.FAILED,
            "retry_count": retry_count,
            "error_message": result.error_message
        })
        logger.warning(f"Notification {schedule.id} failed after {retry_count} attempts: {result.error_message}")
        return FAILED

    def _mark_failed(self, schedule: NotificationSchedule, error_message: Optional[str]):
        try:
            self.schedule_db.update(schedule.id, {
                "status": NotificationStatus.FAILED,
                "error_message": error_message
            })
        except Exception as e:
            logger.error(f"Could not mark schedule {schedule.id} as failed: {e}")
        logger.warning(f"Notification {schedule.id} failed: {error_message}")

    # Logs and statistics

    def get_notification_stats(self, appointment_id: Optional[str] = None,
                               date_from: Optional[datetime] = None,
                               date_to: Optional[datetime] = None) -> Dict[str, Any]:
        return self.log_db.stats(appointment_id=appointment_id, date_from=date_from, date_to=date_to)

    def list_logs(self, page: int = 1, limit: int = 50, **filters) -> Dict[str, Any]:
        logs, total = self.log_db.find_all(page=page, limit=limit, **filters)
        return {
            "logs": logs,
            "total": total,
            "page": page,
            "limit": limit,
            "total_pages": (total + limit - 1) // limit if limit else 0
        }

    def record_delivery_receipt(self, log_id: int, status: NotificationStatus,
                                at: Optional[datetime] = None) -> Optional[NotificationLog]:
        log = self.log_db.update_receipt(log_id, status, at or self._now())
        if log is None:
            logger.warning(f"Delivery receipt for unknown log {log_id}")
        return log

    def get_providers_status(self) -> Dict:
        return self.registry.providers_status()
