from datetime import datetime, timedelta, timezone
from typing import Optional
import pytz
from dateutil import parser

from .config import config


def get_clinic_timezone(tz_name: Optional[str] = None):
    """Get the clinic timezone"""
    return pytz.timezone(tz_name or config.CLINIC_TIMEZONE)


def utc_now() -> datetime:
    """Get current UTC datetime"""
    return datetime.now(timezone.utc)


def ensure_aware(dt: datetime, tz_name: Optional[str] = None) -> datetime:
    """Attach the clinic timezone to naive datetimes"""
    if dt.tzinfo is None:
        return get_clinic_timezone(tz_name).localize(dt)
    return dt


def to_utc_iso(dt: Optional[datetime]) -> Optional[str]:
    """Serialize for storage; a fixed format keeps TEXT columns sortable."""
    if dt is None:
        return None
    return ensure_aware(dt).astimezone(timezone.utc).isoformat(timespec="microseconds")


def parse_iso(value: Optional[str]) -> Optional[datetime]:
    if not value:
        return None
    dt = parser.isoparse(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def combine_date_and_time(date_str: str, time_str: str, tz_name: Optional[str] = None) -> datetime:
    """Build the aware start instant of an appointment from 'YYYY-MM-DD' and 'HH:MM[:SS]'"""
    day = parser.isoparse(date_str).date()
    parts = [int(p) for p in time_str.strip().split(":")]
    while len(parts) < 3:
        parts.append(0)
    naive = datetime(day.year, day.month, day.day, parts[0], parts[1], parts[2])
    return get_clinic_timezone(tz_name).localize(naive)


def subtract_offset(start: datetime, amount: int, unit: str) -> datetime:
    """Calculate a reminder instant `amount` days or hours before `start`"""
    if unit == "days":
        # same wall-clock time N days earlier
        tz = start.tzinfo
        naive = start.replace(tzinfo=None) - timedelta(days=amount)
        if hasattr(tz, "localize"):
            return tz.localize(naive)
        return naive.replace(tzinfo=tz)
    if unit == "hours":
        return start.astimezone(timezone.utc) - timedelta(hours=amount)
    raise ValueError(f"Unsupported offset unit: {unit}")


def format_date_for_display(dt: datetime, fmt: Optional[str] = None, tz_name: Optional[str] = None) -> str:
    """Format a date for patients, in the clinic timezone"""
    local = ensure_aware(dt, tz_name).astimezone(get_clinic_timezone(tz_name))
    return local.strftime(fmt or config.DATE_DISPLAY_FORMAT)


def format_time_for_display(dt: datetime, tz_name: Optional[str] = None) -> str:
    local = ensure_aware(dt, tz_name).astimezone(get_clinic_timezone(tz_name))
    return local.strftime("%H:%M")
