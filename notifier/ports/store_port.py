"""Store ports — abstract interfaces for the document collections.

Core modules depend on these protocols, never on a specific database.
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from notifier.data.models import Event, Notification, ScheduledNotificationRecord, User


class StoreError(Exception):
    """Raised when a query, read or write against any store fails."""


class EventStore(Protocol):
    """Read side of the events collection."""

    def list_events_between(self, start: datetime, end: datetime) -> list[Event]: ...

    def list_registration_deadlines_between(
        self, start: datetime, end: datetime
    ) -> list[Event]: ...


class UserStore(Protocol):
    def get_user(self, user_id: str) -> User | None: ...


class LedgerStore(Protocol):
    """Per (user, event) record of reminders already sent."""

    def get_record(
        self, user_id: str, event_id: str
    ) -> ScheduledNotificationRecord | None: ...

    def save_record(self, record: ScheduledNotificationRecord) -> None: ...


class NotificationStore(Protocol):
    def create_notification(self, notification: Notification) -> None: ...
