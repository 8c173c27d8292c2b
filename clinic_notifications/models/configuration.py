from pydantic import BaseModel, Field
from typing import Optional
from datetime import datetime

from .enums import NotificationChannel

DEFAULT_CONFIGURATION = {
    "enabled": True,
    "default_channel": NotificationChannel.WHATSAPP,
    "first_reminder_days": 3,
    "second_reminder_days": 1,
    "third_reminder_hours": 2,
    "whatsapp_enabled": True,
    "sms_enabled": True,
    "email_enabled": True,
    "retry_attempts": 3,
    "retry_interval_minutes": 30,
}

UPDATABLE_FIELDS = set(DEFAULT_CONFIGURATION)


class NotificationConfiguration(BaseModel):
    id: Optional[int] = None
    enabled: bool = True
    default_channel: NotificationChannel = NotificationChannel.WHATSAPP
    first_reminder_days: int = Field(3, ge=0)
    second_reminder_days: int = Field(1, ge=0)
    third_reminder_hours: int = Field(2, ge=0)
    whatsapp_enabled: bool = True
    sms_enabled: bool = True
    email_enabled: bool = True
    retry_attempts: int = Field(3, ge=0)
    retry_interval_minutes: int = Field(30, ge=1)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    def is_channel_enabled(self, channel: NotificationChannel) -> bool:
        if channel == NotificationChannel.WHATSAPP:
            return self.whatsapp_enabled
        if channel == NotificationChannel.SMS:
            return self.sms_enabled
        if channel == NotificationChannel.EMAIL:
            return self.email_enabled
        return False
