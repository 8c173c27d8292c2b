from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from .appointment import Appointment
from .enums import NotificationChannel, NotificationStatus, ReminderKind


class NotificationSchedule(BaseModel):
    """One pending or processed reminder for an appointment"""

    id: Optional[int] = None
    appointment_id: str
    template_id: Optional[int] = None
    kind: ReminderKind
    channel: NotificationChannel
    scheduled_for: datetime  # UTC
    status: NotificationStatus = NotificationStatus.PENDING
    retry_count: int = Field(0, ge=0)
    last_attempt: Optional[datetime] = None
    error_message: Optional[str] = None
    appointment: Appointment  # snapshot used for rendering
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def to_dict(self):
        return {
            "id": self.id,
            "appointment_id": self.appointment_id,
            "template_id": self.template_id,
            "kind": self.kind.value,
            "channel": self.channel.value,
            "scheduled_for": self.scheduled_for.isoformat(),
            "status": self.status.value,
            "retry_count": self.retry_count,
            "last_attempt": self.last_attempt.isoformat() if self.last_attempt else "",
            "error_message": self.error_message or "",
            "patient_name": self.appointment.patient.full_name,
            "created_at": self.created_at.isoformat() if self.created_at else ""
        }
