import pytest
from pydantic import ValidationError

from clinic_notifications.models.appointment import Appointment
from clinic_notifications.models.enums import NotificationChannel
from clinic_notifications.models.patient import Patient


def test_patient_blank_contacts_become_none():
    patient = Patient(patient_id="p", full_name="Maria", phone="  ", email="")
    assert patient.phone is None
    assert patient.email is None
    assert patient.contact_for(NotificationChannel.SMS) is None


def test_patient_phone_contacts_are_sanitized():
    patient = Patient(patient_id="p", full_name="Maria", whatsapp="+55 (11) 99999-0001")
    assert patient.contact_for(NotificationChannel.WHATSAPP) == "+5511999990001"
    assert patient.contact_for(NotificationChannel.SMS) == "+5511999990001"


@pytest.mark.parametrize("field,value", [("date", "10/01/2024"), ("start_time", "2pm")])
def test_appointment_rejects_bad_formats(field, value):
    data = {
        "appointment_id": "a",
        "date": "2024-01-10",
        "start_time": "14:00",
        "patient": {"patient_id": "p", "full_name": "Maria"},
    }
    data[field] = value
    with pytest.raises(ValidationError):
        Appointment(**data)


def test_appointment_accepts_seconds():
    appointment = Appointment(appointment_id="a", date="2024-01-10", start_time="14:00:30",
                              patient=Patient(patient_id="p", full_name="Maria"))
    assert appointment.starts_at("America/Sao_Paulo").second == 30
