# scripts/export_notification_logs.py
"""Export the notification delivery log (and optionally the schedules) to Excel or CSV."""
import argparse
import logging
import os
import sys

from dateutil import parser

sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from clinic_notifications.services.export_service import ExportService
from clinic_notifications.database.log_db import LogDB
from clinic_notifications.database.schedule_db import ScheduleDB

logging.basicConfig(level=logging.INFO, format='%(asctime)s - %(name)s - %(levelname)s - %(message)s')


def main():
    ap = argparse.ArgumentParser(description=__doc__)
    ap.add_argument("--db", default=None, help="SQLite database path")
    ap.add_argument("--out", default=None, help="export directory")
    ap.add_argument("--format", default="xlsx", choices=["xlsx", "csv"])
    ap.add_argument("--appointment")
    ap.add_argument("--channel", type=str.upper)
    ap.add_argument("--status", type=str.upper)
    ap.add_argument("--date-from")
    ap.add_argument("--date-to")
    ap.add_argument("--schedules", action="store_true", help="also export reminder schedules")
    args = ap.parse_args()

    exporter = ExportService(log_db=LogDB(args.db), schedule_db=ScheduleDB(args.db), export_dir=args.out)
    path = exporter.export_notification_logs(
        appointment_id=args.appointment,
        channel=args.channel,
        status=args.status,
        date_from=parser.isoparse(args.date_from) if args.date_from else None,
        date_to=parser.isoparse(args.date_to) if args.date_to else None,
        fmt=args.format
    )
    print(path or "No logs matched")

    if args.schedules:
        path = exporter.export_schedules(appointment_id=args.appointment, fmt=args.format)
        print(path or "No schedules matched")


if __name__ == "__main__":
    main()
