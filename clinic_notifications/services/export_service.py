import os
import pandas as pd
from typing import Optional
from datetime import datetime
import logging

from ..database.log_db import LogDB
from ..database.schedule_db import ScheduleDB
from ..models.enums import NotificationChannel, NotificationStatus
from ..utils.config import config
from ..utils.date_utils import utc_now

logger = logging.getLogger(__name__)

EXPORT_PAGE_SIZE = 500


class ExportService:
    def __init__(self, log_db: Optional[LogDB] = None, schedule_db: Optional[ScheduleDB] = None,
                 export_dir: Optional[str] = None):
        self.log_db = log_db or LogDB()
        self.schedule_db = schedule_db or ScheduleDB()
        self.export_dir = export_dir or config.EXPORTS_PATH
        os.makedirs(self.export_dir, exist_ok=True)

    def _write(self, df: pd.DataFrame, basename: str, fmt: str) -> str:
        fmt = fmt.lower()
        if fmt not in ("xlsx", "csv"):
            raise ValueError(f"Unsupported export format: {fmt}")

        filename = f"{basename}_{utc_now().strftime('%Y%m%d_%H%M%S')}.{fmt}"
        filepath = os.path.join(self.export_dir, filename)
        if fmt == "xlsx":
            df.to_excel(filepath, index=False, engine='openpyxl')
        else:
            df.to_csv(filepath, index=False)
        return filepath

    def export_notification_logs(self, appointment_id: Optional[str] = None,
                                 channel: Optional[NotificationChannel] = None,
                                 status: Optional[NotificationStatus] = None,
                                 date_from: Optional[datetime] = None,
                                 date_to: Optional[datetime] = None,
                                 fmt: str = "xlsx") -> str:
        """Export the delivery log, newest first; returns "" when nothing matches"""
        logs = []
        page = 1
        while True:
            batch, total = self.log_db.find_all(
                appointment_id=appointment_id, channel=channel, status=status,
                date_from=date_from, date_to=date_to, page=page, limit=EXPORT_PAGE_SIZE
            )
            logs.extend(batch)
            if not batch or len(logs) >= total:
                break
            page += 1

        if not logs:
            logger.warning("No notification logs to export")
            return ""

        export_data = []
        for log in logs:
            row = log.to_dict()
            export_data.append({
                'Log ID': row['id'],
                'Appointment ID': row['appointment_id'],
                'Channel': row['channel'],
                'Reminder': row['kind'],
                'Recipient': row['recipient'],
                'Subject': row['subject'],
                'Content': row['content'],
                'Status': row['status'],
                'Error': row['error_message'],
                'Provider Message ID': row['provider_message_id'],
                'Sent At': row['sent_at'],
                'Delivered At': row['delivered_at'],
                'Read At': row['read_at']
            })

        filepath = self._write(pd.DataFrame(export_data), "notification_logs", fmt)
        logger.info(f"Exported {len(export_data)} notification logs: {filepath}")
        return filepath

    def export_schedules(self, status: Optional[NotificationStatus] = None,
                         appointment_id: Optional[str] = None, fmt: str = "xlsx") -> str:
        """Export reminder schedules; returns "" when nothing matches"""
        schedules = self.schedule_db.find_all(status=status, appointment_id=appointment_id)
        if not schedules:
            logger.warning("No notification schedules to export")
            return ""

        export_data = []
        for schedule in schedules:
            row = schedule.to_dict()
            export_data.append({
                'Schedule ID': row['id'],
                'Appointment ID': row['appointment_id'],
                'Patient Name': row['patient_name'],
                'Reminder': row['kind'],
                'Channel': row['channel'],
                'Scheduled For': row['scheduled_for'],
                'Status': row['status'],
                'Retries': row['retry_count'],
                'Last Attempt': row['last_attempt'],
                'Error': row['error_message'],
                'Created At': row['created_at']
            })

        filepath = self._write(pd.DataFrame(export_data), "notification_schedules", fmt)
        logger.info(f"Exported {len(export_data)} notification schedules: {filepath}")
        return filepath
