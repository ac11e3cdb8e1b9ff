"""
Event Notifier — Data Models.

Events and users are written by the mobile client; the scheduler only reads
them. The ledger (ScheduledNotificationRecord) and Notification rows are the
scheduler's own state.

Store rows arrive loosely typed, so every model exposes a ``from_record``
constructor that validates and defaults at the adapter boundary.
"""

from __future__ import annotations

import json
from dataclasses import dataclass
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Mapping


class EventStatus(str, Enum):
    GOING = "Going"
    INTERESTED = "Interested"
    NOT_GOING = "Not Going"


class NotificationType(str, Enum):
    EVENT = "Event"
    DEADLINE = "Deadline"
    REGISTRATION = "Registration"
    GENERAL = "General"


def parse_timestamp(value: Any) -> datetime | None:
    """Coerce a stored timestamp into an aware UTC datetime.

    Accepts datetimes or ISO-8601 strings. Naive values are taken as UTC.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    elif isinstance(value, str):
        dt = datetime.fromisoformat(value.replace("Z", "+00:00"))
    else:
        raise ValueError(f"Unsupported timestamp value: {value!r}")
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def epoch_millis(value: datetime) -> int:
    return int(value.timestamp() * 1000)


@dataclass(frozen=True)
class NotificationPreferences:
    """Per-user notification toggles. Every toggle defaults to enabled."""

    event_reminders_enabled: bool = True
    reminder_week_before: bool = True
    reminder_day_before: bool = True
    reminder_3_hours: bool = True
    reminder_interested_day_before: bool = True
    registration_deadlines_enabled: bool = True

    # wire key -> attribute
    _KEYS = {
        "eventRemindersEnabled": "event_reminders_enabled",
        "reminderWeekBefore": "reminder_week_before",
        "reminderDayBefore": "reminder_day_before",
        "reminder3Hours": "reminder_3_hours",
        "reminderInterestedDayBefore": "reminder_interested_day_before",
        "registrationDeadlinesEnabled": "registration_deadlines_enabled",
    }

    @classmethod
    def from_record(cls, data: Mapping[str, Any] | None) -> NotificationPreferences:
        """Build preferences from a stored mapping.

        A missing mapping, or a missing key inside it, means "enabled".
        """
        if not data:
            return cls()
        kwargs = {
            attr: bool(data[key])
            for key, attr in cls._KEYS.items()
            if data.get(key) is not None
        }
        return cls(**kwargs)

    def to_record(self) -> dict[str, bool]:
        return {key: getattr(self, attr) for key, attr in self._KEYS.items()}

    def is_enabled(self, key: str) -> bool:
        """Look up a toggle by its wire name (e.g. ``reminderWeekBefore``)."""
        return getattr(self, self._KEYS[key])


@dataclass(frozen=True)
class User:
    """A user who owns events and receives notifications."""

    id: str
    fcm_token: str | None = None
    notification_preferences: NotificationPreferences | None = None

    @property
    def effective_preferences(self) -> NotificationPreferences:
        return self.notification_preferences or NotificationPreferences()

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> User:
        prefs = data.get("notificationPreferences")
        if isinstance(prefs, str):
            prefs = json.loads(prefs)
        return cls(
            id=str(data["id"]),
            fcm_token=data.get("fcmToken") or None,
            notification_preferences=(
                NotificationPreferences.from_record(prefs) if prefs is not None else None
            ),
        )


@dataclass(frozen=True)
class Event:
    """A user-created happening. Read-only from the scheduler's side."""

    id: str
    user_id: str
    name: str
    event_date: datetime
    status: str
    requires_registration: bool = False
    registration_deadline: datetime | None = None
    url_link: str | None = None

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> Event:
        event_date = parse_timestamp(data.get("eventDate"))
        if event_date is None:
            raise ValueError(f"Event {data.get('id')!r} has no eventDate")
        return cls(
            id=str(data["id"]),
            user_id=str(data["userId"]),
            name=data.get("name") or "",
            event_date=event_date,
            status=data.get("status") or "",
            requires_registration=bool(data.get("requiresRegistration") or False),
            registration_deadline=parse_timestamp(data.get("registrationDeadline")),
            url_link=data.get("urlLink") or None,
        )


@dataclass(frozen=True)
class ScheduledNotificationRecord:
    """Ledger entry: which reminders were already sent for (user, event)."""

    event_id: str
    user_id: str
    scheduled_reminders: tuple[str, ...] = ()
    registration_deadline_sent: bool = False
    last_checked: datetime | None = None

    def has_sent(self, kind: str) -> bool:
        return kind in self.scheduled_reminders

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> ScheduledNotificationRecord:
        reminders = data.get("scheduledReminders") or ()
        if isinstance(reminders, str):
            reminders = json.loads(reminders)
        return cls(
            event_id=str(data["eventId"]),
            user_id=str(data["userId"]),
            scheduled_reminders=tuple(reminders),
            registration_deadline_sent=bool(data.get("registrationDeadlineSent") or False),
            last_checked=parse_timestamp(data.get("lastChecked")),
        )


@dataclass(frozen=True)
class Notification:
    """A persisted, user-visible record of a sent alert."""

    id: str
    user_id: str
    type: NotificationType
    title: str
    message: str
    timestamp: datetime
    created_at: datetime
    action_text: str | None = None
    action_url: str | None = None
    event_id: str | None = None
    is_read: bool = False

    @classmethod
    def from_record(cls, data: Mapping[str, Any]) -> Notification:
        return cls(
            id=str(data["id"]),
            user_id=str(data["userId"]),
            type=NotificationType(data["type"]),
            title=data["title"],
            message=data["message"],
            timestamp=parse_timestamp(data["timestamp"]),
            created_at=parse_timestamp(data["createdAt"]),
            action_text=data.get("actionText") or None,
            action_url=data.get("actionUrl") or None,
            event_id=data.get("eventId") or None,
            is_read=bool(data.get("isRead") or False),
        )


@dataclass(frozen=True)
class PushPayload:
    """What a push message carries, independent of the transport."""

    title: str
    body: str
    type: NotificationType
    notification_id: str
    event_id: str | None = None
    action_url: str | None = None

    def to_data(self) -> dict[str, str]:
        """Data block of the wire message. Optional fields are omitted, not nulled."""
        data = {"type": self.type.value, "notificationId": self.notification_id}
        if self.event_id:
            data["eventId"] = self.event_id
        if self.action_url:
            data["actionUrl"] = self.action_url
        return data

    def to_dict(self) -> dict[str, str]:
        return {"title": self.title, "body": self.body, **self.to_data()}


@dataclass
class RunSummary:
    """Counters returned by a scheduler run."""

    events_checked: int = 0
    notifications_sent: int = 0
