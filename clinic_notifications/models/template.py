from pydantic import BaseModel
from typing import Optional
from datetime import datetime

from .enums import NotificationChannel, ReminderKind

# Variables available to every template
TEMPLATE_VARIABLES = [
    "patient",
    "practitioner",
    "service",
    "date",
    "time",
    "room",
    "clinic",
    "address",
    "phone",
]


class NotificationTemplate(BaseModel):
    id: Optional[int] = None
    name: str
    kind: ReminderKind
    channel: NotificationChannel
    content: str
    subject: Optional[str] = None
    active: bool = True
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None
