import sqlite3
from typing import Optional, List, Dict, Any
import logging

from pydantic import ValidationError

from .connection import ensure_db_dir, get_connection
from ..models.enums import NotificationChannel, ReminderKind
from ..models.template import NotificationTemplate
from ..utils.config import config
from ..utils.date_utils import to_utc_iso, parse_iso, utc_now

logger = logging.getLogger(__name__)

UPDATABLE_FIELDS = ["name", "kind", "channel", "content", "subject", "active"]


class TemplateDB:
    def __init__(self, db_path: str = None):
        self.db_path = db_path or config.DB_PATH
        ensure_db_dir(self.db_path)
        self._init_db()

    def _init_db(self):
        """Initialize notification templates table"""
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS notification_templates (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    name TEXT NOT NULL,
                    kind TEXT NOT NULL,
                    channel TEXT NOT NULL,
                    content TEXT NOT NULL,
                    subject TEXT,
                    active INTEGER NOT NULL DEFAULT 1,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            # one active template per (kind, channel)
            conn.execute("""
                CREATE UNIQUE INDEX IF NOT EXISTS idx_templates_active_kind_channel
                ON notification_templates (kind, channel) WHERE active = 1
            """)
            conn.commit()
        finally:
            conn.close()

    def _row_to_template(self, row) -> NotificationTemplate:
        return NotificationTemplate(
            id=row["id"],
            name=row["name"],
            kind=row["kind"],
            channel=row["channel"],
            content=row["content"],
            subject=row["subject"],
            active=bool(row["active"]),
            created_at=parse_iso(row["created_at"]),
            updated_at=parse_iso(row["updated_at"])
        )

    def list(self, kind: Optional[ReminderKind] = None, channel: Optional[NotificationChannel] = None,
             active: Optional[bool] = None) -> List[NotificationTemplate]:
        """List templates, optionally filtered"""
        query = "SELECT * FROM notification_templates WHERE 1=1"
        params = []
        if kind is not None:
            query += " AND kind = ?"
            params.append(ReminderKind(kind).value)
        if channel is not None:
            query += " AND channel = ?"
            params.append(NotificationChannel(channel).value)
        if active is not None:
            query += " AND active = ?"
            params.append(int(active))
        query += " ORDER BY kind, channel, id"

        conn = get_connection(self.db_path)
        try:
            rows = conn.execute(query, params).fetchall()
        finally:
            conn.close()
        return [self._row_to_template(row) for row in rows]

    def get(self, template_id: int) -> Optional[NotificationTemplate]:
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT * FROM notification_templates WHERE id = ?", (template_id,)
            ).fetchone()
        finally:
            conn.close()
        return self._row_to_template(row) if row else None

    def find_by_kind_and_channel(self, kind: ReminderKind,
                                 channel: NotificationChannel) -> Optional[NotificationTemplate]:
        """Return the active template for (kind, channel), or None"""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute("""
                SELECT * FROM notification_templates
                WHERE kind = ? AND channel = ? AND active = 1
            """, (ReminderKind(kind).value, NotificationChannel(channel).value)).fetchone()
        finally:
            conn.close()
        return self._row_to_template(row) if row else None

    def create(self, template: NotificationTemplate) -> NotificationTemplate:
        """Insert a template; a second active template for the same pair is rejected"""
        now = to_utc_iso(utc_now())
        conn = get_connection(self.db_path)
        try:
            with conn:
                cursor = conn.execute("""
                    INSERT INTO notification_templates
                    (name, kind, channel, content, subject, active, created_at, updated_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """, (
                    template.name, template.kind.value, template.channel.value,
                    template.content, template.subject, int(template.active), now, now
                ))
                template_id = cursor.lastrowid
        except sqlite3.IntegrityError as e:
            raise ValueError(
                f"An active template already exists for {template.kind.value} / {template.channel.value}"
            ) from e
        finally:
            conn.close()

        logger.info(f"Created template {template_id} for {template.kind.value} / {template.channel.value}")
        return self.get(template_id)

    def update(self, template_id: int, updates: Dict[str, Any]) -> Optional[NotificationTemplate]:
        """Apply a partial update; returns None when the template does not exist"""
        unknown = sorted(set(updates) - set(UPDATABLE_FIELDS))
        if unknown:
            raise ValueError(f"Unknown template fields: {', '.join(unknown)}")

        current = self.get(template_id)
        if current is None:
            return None

        merged = current.model_dump()
        merged.update(updates)
        try:
            validated = NotificationTemplate.model_validate(merged)
        except ValidationError as e:
            raise ValueError(f"Invalid template: {e}") from e

        conn = get_connection(self.db_path)
        try:
            with conn:
                conn.execute("""
                    UPDATE notification_templates
                    SET name = ?, kind = ?, channel = ?, content = ?, subject = ?,
                        active = ?, updated_at = ?
                    WHERE id = ?
                """, (
                    validated.name, validated.kind.value, validated.channel.value,
                    validated.content, validated.subject, int(validated.active),
                    to_utc_iso(utc_now()), template_id
                ))
        except sqlite3.IntegrityError as e:
            raise ValueError(
                f"An active template already exists for {validated.kind.value} / {validated.channel.value}"
            ) from e
        finally:
            conn.close()

        return self.get(template_id)

    def delete(self, template_id: int) -> bool:
        conn = get_connection(self.db_path)
        try:
            with conn:
                cursor = conn.execute("DELETE FROM notification_templates WHERE id = ?", (template_id,))
            return cursor.rowcount > 0
        finally:
            conn.close()
