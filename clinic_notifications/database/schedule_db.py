from datetime import datetime
from typing import Optional, List, Dict, Any
import logging

from .connection import ensure_db_dir, get_connection
from ..models.appointment import Appointment
from ..models.enums import NotificationStatus
from ..models.schedule import NotificationSchedule
from ..utils.config import config
from ..utils.date_utils import to_utc_iso, parse_iso, utc_now

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ["status", "retry_count", "scheduled_for", "last_attempt", "error_message"]
DATETIME_FIELDS = ["scheduled_for", "last_attempt"]


class ScheduleDB:
    def __init__(self, db_path: str = None):
        self.db_path = db_path or config.DB_PATH
        ensure_db_dir(self.db_path)
        self._init_db()

    def _init_db(self):
        """Initialize notification schedules table"""
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS notification_schedules (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    appointment_id TEXT NOT NULL,
                    template_id INTEGER,
                    kind TEXT NOT NULL,
                    channel TEXT NOT NULL,
                    scheduled_for TEXT NOT NULL,
                    status TEXT NOT NULL DEFAULT 'PENDING',
                    retry_count INTEGER NOT NULL DEFAULT 0,
                    last_attempt TEXT,
                    error_message TEXT,
                    appointment_json TEXT NOT NULL,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_schedules_status_due
                ON notification_schedules (status, scheduled_for)
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_schedules_appointment
                ON notification_schedules (appointment_id)
            """)
            conn.commit()
        finally:
            conn.close()

    def _row_to_schedule(self, row) -> NotificationSchedule:
        return NotificationSchedule(
            id=row["id"],
            appointment_id=row["appointment_id"],
            template_id=row["template_id"],
            kind=row["kind"],
            channel=row["channel"],
            scheduled_for=parse_iso(row["scheduled_for"]),
            status=row["status"],
            retry_count=row["retry_count"],
            last_attempt=parse_iso(row["last_attempt"]),
            error_message=row["error_message"],
            appointment=Appointment.model_validate_json(row["appointment_json"]),
            created_at=parse_iso(row["created_at"]),
            updated_at=parse_iso(row["updated_at"])
        )

    def _fetch(self, query: str, params=()) -> List[NotificationSchedule]:
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [self._row_to_schedule(row) for row in rows]

    def replace_for_appointment(self, appointment_id: str,
                                schedules: List[NotificationSchedule]) -> List[NotificationSchedule]:
        """Delete every schedule of the appointment and insert `schedules`, in one transaction"""
        now = to_utc_iso(utc_now())
        conn = get_connection(self.db_path)
        try:
            with conn:
                conn.execute(
                    "DELETE FROM notification_schedules WHERE appointment_id = ?", (appointment_id,)
                )
                for schedule in schedules:
                    conn.execute("""
                        INSERT INTO notification_schedules
                        (appointment_id, template_id, kind, channel, scheduled_for, status,
                         retry_count, last_attempt, error_message, appointment_json,
                         created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """, (
                        appointment_id, schedule.template_id, schedule.kind.value,
                        schedule.channel.value, to_utc_iso(schedule.scheduled_for),
                        schedule.status.value, schedule.retry_count,
                        to_utc_iso(schedule.last_attempt), schedule.error_message,
                        schedule.appointment.model_dump_json(), now, now
                    ))
        finally:
            conn.close()

        return self.find_by_appointment(appointment_id)

    def delete_by_appointment(self, appointment_id: str) -> int:
        """Delete all schedules of an appointment, returning how many were removed"""
        conn = get_connection(self.db_path)
        try:
            with conn:
                cursor = conn.execute(
                    "DELETE FROM notification_schedules WHERE appointment_id = ?", (appointment_id,)
                )
            return cursor.rowcount
        finally:
            conn.close()

    def find_due(self, now: datetime, limit: Optional[int] = None) -> List[NotificationSchedule]:
        """PENDING schedules due at `now`, oldest first"""
        query = """
            SELECT * FROM notification_schedules
            WHERE status = ? AND scheduled_for <= ?
            ORDER BY scheduled_for, id
        """
        params = [NotificationStatus.PENDING.value, to_utc_iso(now)]
        if limit:
            query += " LIMIT ?"
            params.append(limit)
        return self._fetch(query, params)

    def claim(self, schedule_id: int, now: datetime) -> Optional[NotificationSchedule]:
        """Atomically move a due schedule from PENDING to SENDING.

        Returns the claimed row as stored, or None when another worker got
        there first or the schedule was pushed past `now` in the meantime.
        """
        conn = get_connection(self.db_path)
        try:
            with conn:
                cursor = conn.execute("""
                    UPDATE notification_schedules
                    SET status = ?, last_attempt = ?, updated_at = ?
                    WHERE id = ? AND status = ? AND scheduled_for <= ?
                """, (
                    NotificationStatus.SENDING.value, to_utc_iso(now), to_utc_iso(utc_now()),
                    schedule_id, NotificationStatus.PENDING.value, to_utc_iso(now)
                ))
            if cursor.rowcount != 1:
                return None
        finally:
            conn.close()
        return self.get(schedule_id)

    def update(self, schedule_id: int, updates: Dict[str, Any]) -> bool:
        """Update schedule state fields"""
        set_clauses = []
        values = []
        for field, value in updates.items():
            if field not in UPDATABLE_FIELDS:
                raise ValueError(f"Cannot update schedule field: {field}")
            if field in DATETIME_FIELDS:
                value = to_utc_iso(value)
            elif field == "status":
                value = NotificationStatus(value).value
            set_clauses.append(f"{field} = ?")
            values.append(value)

        if not set_clauses:
            return False

        set_clauses.append("updated_at = ?")
        values.append(to_utc_iso(utc_now()))
        values.append(schedule_id)

        conn = get_connection(self.db_path)
        try:
            with conn:
                cursor = conn.execute(
                    f"UPDATE notification_schedules SET {', '.join(set_clauses)} WHERE id = ?",
                    values
                )
            return cursor.rowcount > 0
        finally:
            conn.close()

    def get(self, schedule_id: int) -> Optional[NotificationSchedule]:
        schedules = self._fetch("SELECT * FROM notification_schedules WHERE id = ?", (schedule_id,))
        return schedules[0] if schedules else None

    def find_by_appointment(self, appointment_id: str) -> List[NotificationSchedule]:
        return self._fetch("""
            SELECT * FROM notification_schedules
            WHERE appointment_id = ?
            ORDER BY scheduled_for, id
        """, (appointment_id,))

    def find_all(self, status: Optional[NotificationStatus] = None,
                 appointment_id: Optional[str] = None) -> List[NotificationSchedule]:
        query = "SELECT * FROM notification_schedules WHERE 1=1"
        params = []
        if status is not None:
            query += " AND status = ?"
            params.append(NotificationStatus(status).value)
        if appointment_id:
            query += " AND appointment_id = ?"
            params.append(appointment_id)
        query += " ORDER BY scheduled_for, id"
        return self._fetch(query, params)
