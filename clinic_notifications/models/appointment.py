from pydantic import BaseModel, field_validator
from typing import Optional
from datetime import datetime

from .patient import Patient
from ..utils.date_utils import combine_date_and_time


class Appointment(BaseModel):
    """Appointment as handed over by the scheduling collaborators"""

    appointment_id: str
    date: str  # YYYY-MM-DD, clinic local date
    start_time: str  # HH:MM, clinic local time
    patient: Patient
    partner_name: Optional[str] = None
    service_name: Optional[str] = None
    room_name: Optional[str] = None
    status: str = "scheduled"

    @field_validator('date')
    @classmethod
    def validate_date(cls, v):
        try:
            datetime.strptime(v, '%Y-%m-%d')
            return v
        except ValueError:
            raise ValueError('Date must be in YYYY-MM-DD format')

    @field_validator('start_time')
    @classmethod
    def validate_start_time(cls, v):
        for fmt in ('%H:%M', '%H:%M:%S'):
            try:
                datetime.strptime(v, fmt)
                return v
            except ValueError:
                continue
        raise ValueError('Start time must be in HH:MM format')

    def starts_at(self, tz_name: Optional[str] = None) -> datetime:
        """Aware start instant in the clinic timezone"""
        return combine_date_and_time(self.date, self.start_time, tz_name)
