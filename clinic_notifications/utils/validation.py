import re
from typing import Optional

INTERNATIONAL_PHONE_PATTERN = r'^\+\d{10,15}$'
EMAIL_PATTERN = r'^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$'


def validate_email(email: str) -> bool:
    """Validate email format"""
    if not email:
        return False
    return bool(re.match(EMAIL_PATTERN, email.strip()))


def validate_international_phone(phone: str) -> bool:
    """Validate an international-format phone number, e.g. +5511999999999"""
    if not phone:
        return False
    return bool(re.match(INTERNATIONAL_PHONE_PATTERN, sanitize_phone(phone)))


def sanitize_phone(phone: Optional[str]) -> str:
    """Sanitize phone number"""
    if not phone:
        return ""

    # Remove spaces, dashes, dots, parentheses
    return re.sub(r'[\s\-\.\(\)]', '', phone.strip())


def clean_contact(value: Optional[str]) -> Optional[str]:
    if value is None:
        return None
    text = str(value).strip()
    return text or None
