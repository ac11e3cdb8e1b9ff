"""Adapter factory — wires the stores and push transport from config."""

from __future__ import annotations

from notifier.config import settings
from notifier.core.dispatch import PushDispatcher
from notifier.core.scheduler import SchedulerDeps
from notifier.ports.push_port import PushTransport


def create_push_transport() -> PushTransport:
    """Return the push transport matching the PUSH_PROVIDER setting."""
    provider = settings.PUSH_PROVIDER.lower()

    if provider == "fcm":
        from notifier.adapters.fcm_transport import FcmTransport

        return FcmTransport(
            project_id=settings.FCM_PROJECT_ID,
            credentials_path=settings.GOOGLE_APPLICATION_CREDENTIALS,
            timeout=settings.FCM_TIMEOUT_SECONDS,
        )

    if provider == "log":
        from notifier.adapters.fcm_transport import LogTransport

        return LogTransport()

    raise ValueError(f"Unknown PUSH_PROVIDER: {provider!r}")


def create_scheduler_deps(
    db_path: str | None = None,
    transport: PushTransport | None = None,
) -> SchedulerDeps:
    """Build SQLite-backed stores sharing one database file."""
    from notifier.data.db import EventDB, NotificationDB, ScheduledNotificationDB, UserDB

    return SchedulerDeps(
        events=EventDB(db_path=db_path),
        users=UserDB(db_path=db_path),
        ledger=ScheduledNotificationDB(db_path=db_path),
        notifications=NotificationDB(db_path=db_path),
        dispatcher=PushDispatcher(transport or create_push_transport()),
    )
