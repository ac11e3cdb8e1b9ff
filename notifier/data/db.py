"""
Event Notifier — SQLite document stores.

One class per collection: events, users, the reminder ledger
(scheduled_notifications) and the in-app notifications. Timestamps are stored
as fixed-width ISO-8601 UTC strings so range queries compare lexically.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from datetime import datetime
from pathlib import Path

from notifier.data.models import (
    Event,
    Notification,
    ScheduledNotificationRecord,
    User,
    parse_timestamp,
)
from notifier.ports.store_port import StoreError

logger = logging.getLogger(__name__)


def _iso(value: datetime | None) -> str | None:
    if value is None:
        return None
    return parse_timestamp(value).isoformat(timespec="microseconds")


class _SQLiteDB:
    """Shared connection handling for the collection stores."""

    def __init__(self, db_path: str | None = None) -> None:
        if db_path is None:
            from notifier.config import settings
            db_path = settings.DATABASE_PATH

        self._db_path = db_path
        Path(db_path).parent.mkdir(parents=True, exist_ok=True)
        self._init_db()

    def _connect(self) -> sqlite3.Connection:
        conn = sqlite3.connect(self._db_path)
        conn.row_factory = sqlite3.Row
        return conn

    def _init_db(self) -> None:
        raise NotImplementedError


class EventDB(_SQLiteDB):
    """SQLite-backed events collection."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS events (
                    id                    TEXT PRIMARY KEY,
                    user_id               TEXT NOT NULL,
                    name                  TEXT NOT NULL,
                    event_date            TEXT NOT NULL,
                    status                TEXT NOT NULL,
                    requires_registration INTEGER NOT NULL DEFAULT 0,
                    registration_deadline TEXT,
                    url_link              TEXT
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_events_event_date ON events (event_date)"
            )
        logger.debug("Events table initialized at %s", self._db_path)

    @staticmethod
    def _row_to_event(row: sqlite3.Row) -> Event:
        return Event.from_record({
            "id": row["id"],
            "userId": row["user_id"],
            "name": row["name"],
            "eventDate": row["event_date"],
            "status": row["status"],
            "requiresRegistration": bool(row["requires_registration"]),
            "registrationDeadline": row["registration_deadline"],
            "urlLink": row["url_link"],
        })

    def _query_events(self, query: str, params: tuple) -> list[Event]:
        try:
            with self._connect() as conn:
                rows = conn.execute(query, params).fetchall()
        except sqlite3.Error as exc:
            logger.error("Event query failed: %s", exc)
            raise StoreError(f"Failed to query events: {exc}") from exc

        events = []
        for row in rows:
            try:
                events.append(self._row_to_event(row))
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping malformed event %s: %s", row["id"], exc)
        return events

    def upsert_event(self, event: Event) -> Event:
        """Insert or replace an event (client-side write, used for seeding)."""
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO events
                        (id, user_id, name, event_date, status,
                         requires_registration, registration_deadline, url_link)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        event.id, event.user_id, event.name, _iso(event.event_date),
                        event.status, int(event.requires_registration),
                        _iso(event.registration_deadline), event.url_link,
                    ),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write event {event.id}: {exc}") from exc
        logger.info("Event upserted: %s '%s'", event.id, event.name)
        return event

    def list_events_between(self, start: datetime, end: datetime) -> list[Event]:
        """Events whose event_date lies in [start, end], both ends inclusive."""
        return self._query_events(
            "SELECT * FROM events WHERE event_date >= ? AND event_date <= ? "
            "ORDER BY event_date",
            (_iso(start), _iso(end)),
        )

    def list_registration_deadlines_between(
        self, start: datetime, end: datetime,
    ) -> list[Event]:
        """Events requiring registration whose deadline lies in [start, end]."""
        return self._query_events(
            "SELECT * FROM events WHERE requires_registration = 1 "
            "AND registration_deadline IS NOT NULL "
            "AND registration_deadline >= ? AND registration_deadline <= ? "
            "ORDER BY registration_deadline",
            (_iso(start), _iso(end)),
        )


class UserDB(_SQLiteDB):
    """SQLite-backed users collection."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS users (
                    id                       TEXT PRIMARY KEY,
                    fcm_token                TEXT,
                    notification_preferences TEXT
                )
            """)
        logger.debug("Users table initialized at %s", self._db_path)

    def upsert_user(self, user: User) -> User:
        prefs = user.notification_preferences
        prefs_json = json.dumps(prefs.to_record()) if prefs is not None else None
        try:
            with self._connect() as conn:
                conn.execute(
                    "INSERT OR REPLACE INTO users (id, fcm_token, notification_preferences) "
                    "VALUES (?, ?, ?)",
                    (user.id, user.fcm_token, prefs_json),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write user {user.id}: {exc}") from exc
        logger.info("User upserted: %s", user.id)
        return user

    def get_user(self, user_id: str) -> User | None:
        """Fetch a user by id, or None when absent."""
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT * FROM users WHERE id = ?", (user_id,)
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to read user {user_id}: {exc}") from exc
        if row is None:
            return None
        return User.from_record({
            "id": row["id"],
            "fcmToken": row["fcm_token"],
            "notificationPreferences": row["notification_preferences"],
        })


class ScheduledNotificationDB(_SQLiteDB):
    """SQLite-backed reminder ledger, keyed by ``<userId>_<eventId>``.

    Plain get/set: a read-modify-write across two overlapping runs can still
    send the same reminder twice.
    """

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS scheduled_notifications (
                    doc_id                     TEXT PRIMARY KEY,
                    event_id                   TEXT NOT NULL,
                    user_id                    TEXT NOT NULL,
                    scheduled_reminders        TEXT NOT NULL DEFAULT '[]',
                    registration_deadline_sent INTEGER NOT NULL DEFAULT 0,
                    last_checked               TEXT
                )
            """)
        logger.debug("Scheduled notifications table initialized at %s", self._db_path)

    @staticmethod
    def doc_id(user_id: str, event_id: str) -> str:
        return f"{user_id}_{event_id}"

    def get_record(
        self, user_id: str, event_id: str,
    ) -> ScheduledNotificationRecord | None:
        try:
            with self._connect() as conn:
                row = conn.execute(
                    "SELECT * FROM scheduled_notifications WHERE doc_id = ?",
                    (self.doc_id(user_id, event_id),),
                ).fetchone()
        except sqlite3.Error as exc:
            raise StoreError(
                f"Failed to read ledger for {user_id}/{event_id}: {exc}"
            ) from exc
        if row is None:
            return None
        return ScheduledNotificationRecord.from_record({
            "eventId": row["event_id"],
            "userId": row["user_id"],
            "scheduledReminders": row["scheduled_reminders"],
            "registrationDeadlineSent": bool(row["registration_deadline_sent"]),
            "lastChecked": row["last_checked"],
        })

    def save_record(self, record: ScheduledNotificationRecord) -> None:
        doc_id = self.doc_id(record.user_id, record.event_id)
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO scheduled_notifications
                        (doc_id, event_id, user_id, scheduled_reminders,
                         registration_deadline_sent, last_checked)
                    VALUES (?, ?, ?, ?, ?, ?)
                    """,
                    (
                        doc_id, record.event_id, record.user_id,
                        json.dumps(list(record.scheduled_reminders)),
                        int(record.registration_deadline_sent),
                        _iso(record.last_checked),
                    ),
                )
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to write ledger {doc_id}: {exc}") from exc
        logger.info("Updated scheduled notification: %s", doc_id)


class NotificationDB(_SQLiteDB):
    """SQLite-backed in-app notifications (users/{userId}/notifications)."""

    def _init_db(self) -> None:
        with self._connect() as conn:
            conn.execute("""
                CREATE TABLE IF NOT EXISTS notifications (
                    id          TEXT PRIMARY KEY,
                    user_id     TEXT NOT NULL,
                    type        TEXT NOT NULL,
                    title       TEXT NOT NULL,
                    message     TEXT NOT NULL,
                    action_text TEXT,
                    action_url  TEXT,
                    event_id    TEXT,
                    is_read     INTEGER NOT NULL DEFAULT 0,
                    timestamp   TEXT NOT NULL,
                    created_at  TEXT NOT NULL
                )
            """)
            conn.execute(
                "CREATE INDEX IF NOT EXISTS idx_notifications_user ON notifications (user_id)"
            )
        logger.debug("Notifications table initialized at %s", self._db_path)

    def create_notification(self, notification: Notification) -> None:
        """Write a notification by id. Writing the same id twice overwrites it."""
        try:
            with self._connect() as conn:
                conn.execute(
                    """
                    INSERT OR REPLACE INTO notifications
                        (id, user_id, type, title, message, action_text,
                         action_url, event_id, is_read, timestamp, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (
                        notification.id, notification.user_id,
                        notification.type.value, notification.title,
                        notification.message, notification.action_text,
                        notification.action_url, notification.event_id,
                        int(notification.is_read),
                        _iso(notification.timestamp),
                        _iso(notification.created_at),
                    ),
                )
        except sqlite3.Error as exc:
            raise StoreError(
                f"Failed to create notification {notification.id}: {exc}"
            ) from exc
        logger.info(
            "Created notification: %s for user: %s",
            notification.id, notification.user_id,
        )

    def list_for_user(self, user_id: str) -> list[Notification]:
        """Return a user's notifications, newest first."""
        try:
            with self._connect() as conn:
                rows = conn.execute(
                    "SELECT * FROM notifications WHERE user_id = ? "
                    "ORDER BY created_at DESC",
                    (user_id,),
                ).fetchall()
        except sqlite3.Error as exc:
            raise StoreError(f"Failed to list notifications for {user_id}: {exc}") from exc
        return [
            Notification.from_record({
                "id": r["id"],
                "userId": r["user_id"],
                "type": r["type"],
                "title": r["title"],
                "message": r["message"],
                "actionText": r["action_text"],
                "actionUrl": r["action_url"],
                "eventId": r["event_id"],
                "isRead": bool(r["is_read"]),
                "timestamp": r["timestamp"],
                "createdAt": r["created_at"],
            })
            for r in rows
        ]
