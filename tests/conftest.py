"""Shared test fixtures and configuration.

Sets up fake environment variables so notifier.config doesn't sys.exit(),
and provides temp-file stores, a fixed clock and an in-memory push transport.
"""

import os
import tempfile

# Patch env vars BEFORE any notifier imports
os.environ.setdefault("FCM_PROJECT_ID", "demo-project")
os.environ.setdefault("PUSH_PROVIDER", "log")
os.environ.setdefault(
    "DATABASE_PATH", os.path.join(tempfile.gettempdir(), "notifier_test.db")
)
os.environ.setdefault("SCHEDULER_ENABLED", "false")

from datetime import datetime, timezone

import pytest

from notifier.ports.push_port import DispatchError, SendResult

NOW = datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)


class FakeTransport:
    """In-memory PushTransport. Tokens in ``reject`` fail like UNREGISTERED."""

    def __init__(self) -> None:
        self.reject: set[str] = set()
        self.sent: list[dict] = []
        self.batches: list[list[str]] = []

    async def send(self, message: dict) -> str:
        if message["token"] in self.reject:
            raise DispatchError("Requested entity was not found.", status="UNREGISTERED")
        self.sent.append(message)
        return f"projects/demo-project/messages/{len(self.sent)}"

    async def send_each(self, messages: list[dict]) -> list[SendResult]:
        self.batches.append([m["token"] for m in messages])
        results = []
        for m in messages:
            if m["token"] in self.reject:
                results.append(SendResult(success=False, error="UNREGISTERED"))
            else:
                self.sent.append(m)
                results.append(SendResult(success=True, message_id=f"msg-{len(self.sent)}"))
        return results


@pytest.fixture
def now():
    return NOW


@pytest.fixture
def tmp_db_path(tmp_path):
    """Return a temporary SQLite DB path."""
    return str(tmp_path / "test_notifier.db")


@pytest.fixture
def event_db(tmp_db_path):
    from notifier.data.db import EventDB
    return EventDB(db_path=tmp_db_path)


@pytest.fixture
def user_db(tmp_db_path):
    from notifier.data.db import UserDB
    return UserDB(db_path=tmp_db_path)


@pytest.fixture
def ledger_db(tmp_db_path):
    from notifier.data.db import ScheduledNotificationDB
    return ScheduledNotificationDB(db_path=tmp_db_path)


@pytest.fixture
def notification_db(tmp_db_path):
    from notifier.data.db import NotificationDB
    return NotificationDB(db_path=tmp_db_path)


@pytest.fixture
def fake_transport():
    return FakeTransport()


@pytest.fixture
def deps(event_db, user_db, ledger_db, notification_db, fake_transport):
    """SchedulerDeps over temp-file SQLite stores and the fake transport."""
    from notifier.core.dispatch import PushDispatcher
    from notifier.core.scheduler import SchedulerDeps

    return SchedulerDeps(
        events=event_db,
        users=user_db,
        ledger=ledger_db,
        notifications=notification_db,
        dispatcher=PushDispatcher(fake_transport),
    )
