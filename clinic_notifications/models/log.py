from pydantic import BaseModel
from typing import Any, Dict, Optional
from datetime import datetime

from .enums import NotificationChannel, NotificationStatus, ReminderKind


class NotificationLog(BaseModel):
    id: Optional[int] = None
    appointment_id: Optional[str] = None
    channel: NotificationChannel
    kind: ReminderKind
    recipient: str
    content: str
    subject: Optional[str] = None
    status: NotificationStatus
    error_message: Optional[str] = None
    provider_message_id: Optional[str] = None
    provider_payload: Optional[Dict[str, Any]] = None
    sent_at: Optional[datetime] = None
    delivered_at: Optional[datetime] = None
    read_at: Optional[datetime] = None

    def to_dict(self):
        return {
            "id": self.id,
            "appointment_id": self.appointment_id or "",
            "channel": self.channel.value,
            "kind": self.kind.value,
            "recipient": self.recipient,
            "subject": self.subject or "",
            "content": self.content,
            "status": self.status.value,
            "error_message": self.error_message or "",
            "provider_message_id": self.provider_message_id or "",
            "sent_at": self.sent_at.isoformat() if self.sent_at else "",
            "delivered_at": self.delivered_at.isoformat() if self.delivered_at else "",
            "read_at": self.read_at.isoformat() if self.read_at else ""
        }
