from pydantic import BaseModel, field_validator
from typing import Optional

from .enums import NotificationChannel
from ..utils.validation import clean_contact, sanitize_phone


class Patient(BaseModel):
    patient_id: str
    full_name: str
    phone: Optional[str] = None
    whatsapp: Optional[str] = None
    email: Optional[str] = None

    @field_validator('phone', 'whatsapp', 'email')
    @classmethod
    def blank_to_none(cls, v):
        return clean_contact(v)

    def contact_for(self, channel: NotificationChannel) -> Optional[str]:
        """Recipient address for a channel, following the channel's preference order"""
        if channel == NotificationChannel.WHATSAPP:
            value = self.whatsapp or self.phone
        elif channel == NotificationChannel.SMS:
            value = self.phone or self.whatsapp
        elif channel == NotificationChannel.EMAIL:
            return self.email
        else:
            return None
        return sanitize_phone(value) or None
