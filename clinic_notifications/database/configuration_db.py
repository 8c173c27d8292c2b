from typing import Dict, Any
import logging

from pydantic import ValidationError

from .connection import ensure_db_dir, get_connection
from ..models.configuration import NotificationConfiguration, DEFAULT_CONFIGURATION, UPDATABLE_FIELDS
from ..utils.config import config
from ..utils.date_utils import to_utc_iso, parse_iso, utc_now

logger = logging.getLogger(__name__)

BOOL_FIELDS = ["enabled", "whatsapp_enabled", "sms_enabled", "email_enabled"]


class ConfigurationDB:
    def __init__(self, db_path: str = None):
        self.db_path = db_path or config.DB_PATH
        ensure_db_dir(self.db_path)
        self._init_db()

    def _init_db(self):
        """Initialize notification configuration table"""
        conn = get_connection(self.db_path)
        try:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS notification_configuration (
                    id INTEGER PRIMARY KEY AUTOINCREMENT,
                    enabled INTEGER NOT NULL DEFAULT 1,
                    default_channel TEXT NOT NULL DEFAULT 'WHATSAPP',
                    first_reminder_days INTEGER NOT NULL DEFAULT 3,
                    second_reminder_days INTEGER NOT NULL DEFAULT 1,
                    third_reminder_hours INTEGER NOT NULL DEFAULT 2,
                    whatsapp_enabled INTEGER NOT NULL DEFAULT 1,
                    sms_enabled INTEGER NOT NULL DEFAULT 1,
                    email_enabled INTEGER NOT NULL DEFAULT 1,
                    retry_attempts INTEGER NOT NULL DEFAULT 3,
                    retry_interval_minutes INTEGER NOT NULL DEFAULT 30,
                    created_at TEXT NOT NULL,
                    updated_at TEXT NOT NULL
                )
            """)
            conn.commit()
        finally:
            conn.close()

    def _row_to_configuration(self, row) -> NotificationConfiguration:
        data = {field: row[field] for field in DEFAULT_CONFIGURATION}
        for field in BOOL_FIELDS:
            data[field] = bool(data[field])
        return NotificationConfiguration(
            id=row["id"],
            created_at=parse_iso(row["created_at"]),
            updated_at=parse_iso(row["updated_at"]),
            **data
        )

    def get(self) -> NotificationConfiguration:
        """Return the live configuration, creating it with defaults on first read"""
        conn = get_connection(self.db_path)
        try:
            row = conn.execute(
                "SELECT * FROM notification_configuration ORDER BY id LIMIT 1"
            ).fetchone()
            if row is None:
                now = to_utc_iso(utc_now())
                defaults = NotificationConfiguration()
                with conn:
                    conn.execute("""
                        INSERT INTO notification_configuration
                        (enabled, default_channel, first_reminder_days, second_reminder_days,
                         third_reminder_hours, whatsapp_enabled, sms_enabled, email_enabled,
                         retry_attempts, retry_interval_minutes, created_at, updated_at)
                        VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """, (
                        int(defaults.enabled), defaults.default_channel.value,
                        defaults.first_reminder_days, defaults.second_reminder_days,
                        defaults.third_reminder_hours, int(defaults.whatsapp_enabled),
                        int(defaults.sms_enabled), int(defaults.email_enabled),
                        defaults.retry_attempts, defaults.retry_interval_minutes, now, now
                    ))
                logger.info("Created default notification configuration")
                row = conn.execute(
                    "SELECT * FROM notification_configuration ORDER BY id LIMIT 1"
                ).fetchone()
            return self._row_to_configuration(row)
        finally:
            conn.close()

    def update(self, updates: Dict[str, Any]) -> NotificationConfiguration:
        """Merge `updates` into the live configuration.

        Raises ValueError for unknown fields or values the model rejects.
        """
        unknown = sorted(set(updates) - UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown configuration fields: {', '.join(unknown)}")

        current = self.get()
        updates = dict(updates)
        if isinstance(updates.get("default_channel"), str):
            updates["default_channel"] = updates["default_channel"].strip().upper()

        merged = current.model_dump()
        merged.update(updates)
        try:
            validated = NotificationConfiguration.model_validate(merged)
        except ValidationError as e:
            raise ValueError(f"Invalid configuration: {e}") from e

        set_clauses = []
        values = []
        for field in updates:
            value = getattr(validated, field)
            if field in BOOL_FIELDS:
                value = int(value)
            elif field == "default_channel":
                value = value.value
            set_clauses.append(f"{field} = ?")
            values.append(value)

        set_clauses.append("updated_at = ?")
        values.append(to_utc_iso(utc_now()))
        values.append(current.id)

        conn = get_connection(self.db_path)
        try:
            with conn:
                conn.execute(
                    f"UPDATE notification_configuration SET {', '.join(set_clauses)} WHERE id = ?",
                    values
                )
        finally:
            conn.close()

        logger.info(f"Updated notification configuration: {sorted(updates)}")
        return self.get()
