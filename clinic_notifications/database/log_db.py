import json
from datetime import datetime
from typing import Optional, List, Dict, Any, Tuple
import logging

from .connection import ensure_db_dir, get_connection
from ..models.enums import NotificationChannel, NotificationStatus, RECEIPT_STATUSES
from ..models.log import NotificationLog
from ..utils.config import config
from ..utils.date_utils import to_utc_iso, parse_iso, utc_now

logger = logging.getLogger(__name__)

SENT_STATUSES = [NotificationStatus.SENT, NotificationStatus.DELIVERED, NotificationStatus.READ]


class LogDB:
    def __init__(self, db_path: str = None):
        self.db_path = db_path or config.DB_PATH
        ensure_db_dir(self.db_path)
        self._init_db()

    def _init_db(self):
        """Initialize notification logs table"""
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS notification_logs (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    appointment_id TEXT,
                    channel TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    recipient TEXT NOT NULL,
                    content TEXT NOT NULL,
                    subject TEXT,
                    status TEXT NOT NULL,
                    error_message TEXT,
                    provider_message_id TEXT,
                    provider_payload TEXT,
                    sent_at TEXT NOT NULL,
                    delivered_at TEXT,
                    read_at TEXT
                )
            """)
            conn.execute("""
                CREATE INDEX IF NOT EXISTS idx_logs_appointment
                ON notification_logs (appointment_id)
            """)
            conn.commit()
        finally:
            conn.close()

    def _row_to_log(self, row) -> NotificationLog:
        payload = json.loads(row["provider_payload"]) if row["provider_payload"] else None
        return NotificationLog(
            id=row["id"],
            appointment_id=row["appointment_id"],
            channel=row["channel"],
            kind=row["kind"],
            recipient=row["recipient"],
            content=row["content"],
            subject=row["subject"],
            status=row["status"],
            error_message=row["error_message"],
            provider_message_id=row["provider_message_id"],
            provider_payload=payload,
            sent_at=parse_iso(row["sent_at"]),
            delivered_at=parse_iso(row["delivered_at"]),
            read_at=parse_iso(row["read_at"])
        )

    def _filters(self, appointment_id=None, channel=None, status=None,
                 date_from: Optional[datetime] = None, date_to: Optional[datetime] = None):
        clauses = []
        params = []
        if appointment_id:
            clauses.append("appointment_id = ?")
            params.append(appointment_id)
        if channel is not None:
            clauses.append("channel = ?")
            params.append(NotificationChannel(channel).value)
        if status is not None:
            clauses.append("status = ?")
            params.append(NotificationStatus(status).value)
        if date_from is not None:
            clauses.append("sent_at >= ?")
            params.append(to_utc_iso(date_from))
        if date_to is not None:
            clauses.append("sent_at <= ?")
            params.append(to_utc_iso(date_to))
        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        return where, params

    def create(self, log: NotificationLog) -> NotificationLog:
        """Append a delivery attempt"""
        sent_at = log.sent_at or utc_now()
        payload = json.dumps(log.provider_payload, default=str) if log.provider_payload is not None else None
        conn = get_connection(self.db_path)
        try:
            with conn:
                cursor = conn.execute("""
                    INSERT INTO notification_logs
                    (appointment_id, channel, kind, recipient, content, subject, status,
                     error_message, provider_message_id, provider_payload, sent_at,
                     delivered_at, read_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    log.appointment_id, log.channel.value, log.kind.value, log.recipient,
                    log.content, log.subject, log.status.value, log.error_message,
                    log.provider_message_id, payload, to_utc_iso(sent_at),
                    to_utc_iso(log.delivered_at), to_utc_iso(log.read_at)
                ))
                log_id = cursor.lastrowid
        finally:
            conn.close()
        return self.find_by_id(log_id)

    def find_all(self, appointment_id: Optional[str] = None,
                 channel: Optional[NotificationChannel] = None,
                 status: Optional[NotificationStatus] = None,
                 date_from: Optional[datetime] = None, date_to: Optional[datetime] = None,
                 page: int = 1, limit: int = 50) -> Tuple[List[NotificationLog], int]:
        """Return one page of logs, newest first, and the total matching count"""
        page = max(1, int(page or 1))
        limit = max(1, int(limit or 50))
        where, params = self._filters(appointment_id, channel, status, date_from, date_to)

        conn = get_connection(self.db_path)
        try:
            total = conn.execute(
                f"SELECT COUNT(*) FROM notification_logs {where}", params
            ).fetchone()[0]
            rows = conn.execute(
                f"SELECT * FROM notification_logs {where} ORDER BY sent_at DESC, id DESC LIMIT ? OFFSET ?",
                params + [limit, (page - 1) * limit]
            ).fetchall()
        finally:
            conn.close()
        return [self._row_to_log(row) for row in rows], total

    def find_by_id(self, log_id: int) -> Optional[NotificationLog]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("SELECT * FROM notification_logs WHERE id = ?", (log_id,)).fetchone()
        finally:
            conn.close()
        return self._row_to_log(row) if row else None

    def find_by_appointment(self, appointment_id: str) -> List[NotificationLog]:
        conn = get_connection(self.db_path)
        try:
            rows = conn.execute("""
                SELECT * FROM notification_logs
                WHERE appointment_id = ?
                ORDER BY sent_at DESC, id DESC
            """, (appointment_id,)).fetchall()
        finally:
            conn.close()
        return [self._row_to_log(row) for row in rows]

    def update_receipt(self, log_id: int, status: NotificationStatus,
                       at: Optional[datetime] = None) -> Optional[NotificationLog]:
        """Record a DELIVERED or READ receipt"""
        status = NotificationStatus(status)
        if status not in RECEIPT_STATUSES:
            raise ValueError(f"Receipt status must be DELIVERED or READ, got {status.value}")

        at_iso = to_utc_iso(at or utc_now())
        if status == NotificationStatus.DELIVERED:
            query = "UPDATE notification_logs SET status = ?, delivered_at = ? WHERE id = ?"
            params = (status.value, at_iso, log_id)
        else:
            # a read message was delivered too
            query = """
                UPDATE notification_logs
                SET status = ?, read_at = ?, delivered_at = COALESCE(delivered_at, ?)
                WHERE id = ?
            """
            params = (status.value, at_iso, at_iso, log_id)

        conn = get_connection(self.db_path)
        try:
            with conn:
                cursor = conn.execute(query, params)
            if cursor.rowcount == 0:
                return None
        finally:
            conn.close()
        return self.find_by_id(log_id)

    def stats(self, appointment_id: Optional[str] = None, date_from: Optional[datetime] = None,
              date_to: Optional[datetime] = None) -> Dict[str, Any]:
        """Counts over the log: total, sent, failed, pending, by channel"""
        where, params = self._filters(appointment_id, date_from=date_from, date_to=date_to)
        conn = get_connection(self.db_path)
        try:
            by_status = conn.execute(
                f"SELECT status, COUNT(*) AS total FROM notification_logs {where} GROUP BY status",
                params
            ).fetchall()
            by_channel = conn.execute(
                f"SELECT channel, COUNT(*) AS total FROM notification_logs {where} GROUP BY channel",
                params
            ).fetchall()
        finally:
            conn.close()

        counts = {row["status"]: row["total"] for row in by_status}
        channel_counts = {channel.value: 0 for channel in NotificationChannel}
        for row in by_channel:
            channel_counts[row["channel"]] = row["total"]

        return {
            "total": sum(counts.values()),
            "sent": sum(counts.get(s.value, 0) for s in SENT_STATUSES),
            "failed": counts.get(NotificationStatus.FAILED.value, 0),
            "pending": counts.get(NotificationStatus.PENDING.value, 0),
            "by_channel": channel_counts
        }
