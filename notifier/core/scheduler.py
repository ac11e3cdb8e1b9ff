"""
Event Notifier — Reminder Schedulers.

Event Reminders: for every event in the next 7 days, send at most one
reminder per kind ("1week", "1day", "3hours") according to the owner's
status and preferences.

Registration Deadlines: for every event whose registration closes within
3 days, send a one-time deadline notice.

Both runs are idempotent across repeated invocations through the ledger
(ScheduledNotificationRecord). Each run takes an explicit ``now`` so callers
and tests control the clock.

This module is store-agnostic: it depends on the store and push ports, not
on SQLite or FCM.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, replace
from datetime import datetime, timedelta, timezone

from notifier.core.dispatch import PushDispatcher
from notifier.core.reminder_rules import (
    DEADLINE_STATUSES,
    build_deadline_notification,
    build_event_notification,
    decide_event_reminder,
    payload_for,
    should_send_deadline,
)
from notifier.data.models import (
    Event,
    Notification,
    RunSummary,
    ScheduledNotificationRecord,
    User,
    parse_timestamp,
)
from notifier.ports.push_port import DispatchError
from notifier.ports.store_port import EventStore, LedgerStore, NotificationStore, UserStore

logger = logging.getLogger(__name__)

EVENT_REMINDER_LOOKAHEAD = timedelta(days=7)
REGISTRATION_DEADLINE_LOOKAHEAD = timedelta(days=3)


@dataclass
class SchedulerDeps:
    """Collaborators shared by both scheduler runs."""

    events: EventStore
    users: UserStore
    ledger: LedgerStore
    notifications: NotificationStore
    dispatcher: PushDispatcher


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


async def _deliver(deps: SchedulerDeps, user: User, notification: Notification) -> None:
    """Persist the in-app notification, then push it if the user has a token.

    A rejected push is logged but does not undo the in-app notification, which
    is what counts as "sent".
    """
    deps.notifications.create_notification(notification)

    if not user.fcm_token:
        logger.debug("No push token for user %s; in-app notification only", user.id)
        return
    try:
        await deps.dispatcher.send_push_notification(user.fcm_token, payload_for(notification))
    except DispatchError as exc:
        logger.warning(
            "Push for notification %s to user %s failed: %s",
            notification.id, user.id, exc,
        )


def _ledger_base(record: ScheduledNotificationRecord | None, event: Event) -> ScheduledNotificationRecord:
    return record or ScheduledNotificationRecord(event_id=event.id, user_id=event.user_id)


# ---------------------------------------------------------------------------
# Event reminders
# ---------------------------------------------------------------------------


async def run_event_reminders(deps: SchedulerDeps, now: datetime | None = None) -> RunSummary:
    """Scan the next 7 days of events and send due reminders.

    A failing candidate query raises (StoreError); failures on a single event
    are logged and the run moves on.
    """
    now = parse_timestamp(now) if now else utcnow()
    window_end = now + EVENT_REMINDER_LOOKAHEAD
    logger.info(
        "EventReminders - Query range: %s to %s", now.isoformat(), window_end.isoformat(),
    )

    events = deps.events.list_events_between(now, window_end)
    logger.info("EventReminders - Found %d upcoming events", len(events))

    summary = RunSummary()
    for event in events:
        summary.events_checked += 1
        try:
            if await _process_event_reminder(deps, event, now):
                summary.notifications_sent += 1
        except Exception as exc:
            logger.error("EventReminders - Failed for event %s: %s", event.id, exc)

    logger.info(
        "EventReminders - Completed. Checked %d events, sent %d notifications",
        summary.events_checked, summary.notifications_sent,
    )
    return summary


async def _process_event_reminder(deps: SchedulerDeps, event: Event, now: datetime) -> bool:
    """Decide and deliver the reminder for one event. Returns True if one was sent."""
    user = deps.users.get_user(event.user_id)
    if user is None:
        logger.warning("EventReminders - User %s not found for event %s", event.user_id, event.id)
        return False

    prefs = user.effective_preferences
    if not prefs.event_reminders_enabled:
        logger.debug("EventReminders - Reminders disabled for user %s", user.id)
        return False

    record = deps.ledger.get_record(event.user_id, event.id)
    window = decide_event_reminder(event, prefs, record, now)
    if window is None:
        return False

    logger.info("EventReminders - Sending %s reminder for event %s", window.kind, event.id)
    await _deliver(deps, user, build_event_notification(event, user, window, now))

    base = _ledger_base(record, event)
    deps.ledger.save_record(replace(
        base,
        scheduled_reminders=base.scheduled_reminders + (window.kind,),
        last_checked=now,
    ))
    return True


# ---------------------------------------------------------------------------
# Registration deadlines
# ---------------------------------------------------------------------------


async def run_registration_deadlines(
    deps: SchedulerDeps, now: datetime | None = None,
) -> RunSummary:
    """Send a one-time notice for registrations closing within 3 days."""
    now = parse_timestamp(now) if now else utcnow()
    events = deps.events.list_registration_deadlines_between(
        now, now + REGISTRATION_DEADLINE_LOOKAHEAD,
    )
    logger.info(
        "RegistrationDeadlines - Found %d events with upcoming deadlines", len(events),
    )

    summary = RunSummary()
    for event in events:
        summary.events_checked += 1
        try:
            if await _process_registration_deadline(deps, event, now):
                summary.notifications_sent += 1
        except Exception as exc:
            logger.error("RegistrationDeadlines - Failed for event %s: %s", event.id, exc)

    logger.info(
        "RegistrationDeadlines - Completed. Checked %d events, sent %d notifications",
        summary.events_checked, summary.notifications_sent,
    )
    return summary


async def _process_registration_deadline(
    deps: SchedulerDeps, event: Event, now: datetime,
) -> bool:
    if event.registration_deadline is None:
        return False
    if event.status not in DEADLINE_STATUSES:
        return False

    user = deps.users.get_user(event.user_id)
    if user is None:
        logger.warning(
            "RegistrationDeadlines - User %s not found for event %s", event.user_id, event.id,
        )
        return False

    record = deps.ledger.get_record(event.user_id, event.id)
    if not should_send_deadline(event, user.effective_preferences, record):
        return False

    notification = build_deadline_notification(event, user, now)
    logger.info("RegistrationDeadlines - %s", notification.message)
    await _deliver(deps, user, notification)

    deps.ledger.save_record(replace(
        _ledger_base(record, event),
        registration_deadline_sent=True,
        last_checked=now,
    ))
    return True
