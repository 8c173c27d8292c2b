# scripts/seed_notification_templates.py
"""Install a default active template for every (reminder kind, channel) pair that lacks one."""
import argparse
import logging
import os
import sys

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from clinic_notifications.database.template_db import TemplateDB
from clinic_notifications.models.enums import NotificationChannel, ReminderKind
from clinic_notifications.models.template import NotificationTemplate

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')

LEAD_TEXT = {
    ReminderKind.FIRST_REMINDER: "Sua consulta de {service} com {practitioner} está marcada para {date} às {time}.",
    ReminderKind.SECOND_REMINDER: "Lembrete: amanhã, {date} às {time}, você tem {service} com {practitioner}.",
    ReminderKind.THIRD_REMINDER: "Sua consulta começa em breve, às {time}, com {practitioner}.",
    ReminderKind.IMMEDIATE: "Informações sobre sua consulta de {date} às {time} com {practitioner}.",
}

SUBJECTS = {
    ReminderKind.FIRST_REMINDER: "Lembrete de consulta - {clinic}",
    ReminderKind.SECOND_REMINDER: "Sua consulta é amanhã - {clinic}",
    ReminderKind.THIRD_REMINDER: "Sua consulta é hoje - {clinic}",
    ReminderKind.IMMEDIATE: "Aviso sobre sua consulta - {clinic}",
}


def default_template(kind: ReminderKind, channel: NotificationChannel) -> NotificationTemplate:
    content = f"Olá, {{patient}}! {LEAD_TEXT[kind]}"
    if channel == NotificationChannel.EMAIL:
        content += "\n\nEndereço: {address}\nTelefone: {phone}\n\n{clinic}"
    else:
        content += " {clinic} - {phone}"
    return NotificationTemplate(
        name=f"{kind.value.lower()}_{channel.value.lower()}",
        kind=kind,
        channel=channel,
        content=content,
        subject=SUBJECTS[kind] if channel == NotificationChannel.EMAIL else None,
        active=True
    )


def seed(db_path=None):
    template_db = TemplateDB(db_path)
    created = 0
    for kind in ReminderKind:
        for channel in NotificationChannel:
            if template_db.find_by_kind_and_channel(kind, channel):
                continue
            template_db.create(default_template(kind, channel))
            created += 1
    return created


if __name__ == "__main__":
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--db", default=None, help="SQLite database path")
    args = ap.parse_args()
    print(f"Created {seed(args.db)} templates")
