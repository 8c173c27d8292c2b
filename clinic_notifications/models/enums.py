from enum import Enum


class NotificationChannel(str, Enum):
    WHATSAPP = "WHATSAPP"  # chat-message gateway
    SMS = "SMS"
    EMAIL = "EMAIL"


# Fallback order when the default channel has no usable contact
CHANNEL_FALLBACK_ORDER = [
    NotificationChannel.WHATSAPP,
    NotificationChannel.SMS,
    NotificationChannel.EMAIL,
]


class ReminderKind(str, Enum):
    FIRST_REMINDER = "FIRST_REMINDER"
    SECOND_REMINDER = "SECOND_REMINDER"
    THIRD_REMINDER = "THIRD_REMINDER"
    IMMEDIATE = "IMMEDIATE"


class NotificationStatus(str, Enum):
    PENDING = "PENDING"
    SENDING = "SENDING"
    SENT = "SENT"
    DELIVERED = "DELIVERED"
    READ = "READ"
    FAILED = "FAILED"
    CANCELLED = "CANCELLED"


RECEIPT_STATUSES = {NotificationStatus.DELIVERED, NotificationStatus.READ}
