"""Reminder rules — pure decision logic for both schedulers.

Given an event, the user's preferences, the ledger record and "now", decides
which reminder (if any) is due and builds the notification to persist.

No I/O: this module only transforms data.
"""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timedelta

from notifier.data.models import (
    Event,
    EventStatus,
    Notification,
    NotificationPreferences,
    NotificationType,
    PushPayload,
    ScheduledNotificationRecord,
    User,
    epoch_millis,
)

REMINDER_WEEK = "1week"
REMINDER_DAY = "1day"
REMINDER_3_HOURS = "3hours"

_ONE_DAY = timedelta(days=1)
_ONE_HOUR = timedelta(hours=1)


@dataclass(frozen=True)
class ReminderWindow:
    """One row of the reminder table: lower < value <= upper."""

    status: str
    kind: str
    preference: str        # wire name of the toggle gating this window
    fragment: str          # e.g. "in one week"
    lower: float
    upper: float
    unit: str = "days"     # "days" | "hours"

    def matches(self, status: str, days_until: float, hours_until: float) -> bool:
        if status != self.status:
            return False
        value = days_until if self.unit == "days" else hours_until
        return self.lower < value <= self.upper


# Evaluated in order; the first matching window wins.
REMINDER_WINDOWS: tuple[ReminderWindow, ...] = (
    ReminderWindow(EventStatus.GOING.value, REMINDER_WEEK, "reminderWeekBefore",
                   "in one week", 6, 7),
    ReminderWindow(EventStatus.GOING.value, REMINDER_DAY, "reminderDayBefore",
                   "tomorrow", 0.8, 1),
    ReminderWindow(EventStatus.GOING.value, REMINDER_3_HOURS, "reminder3Hours",
                   "in 3 hours", 2, 3, unit="hours"),
    ReminderWindow(EventStatus.INTERESTED.value, REMINDER_DAY, "reminderInterestedDayBefore",
                   "tomorrow", 0.8, 1),
)

DEADLINE_STATUSES = frozenset({EventStatus.GOING.value, EventStatus.INTERESTED.value})


def days_until(target: datetime, now: datetime) -> float:
    return (target - now) / _ONE_DAY


def hours_until(target: datetime, now: datetime) -> float:
    return (target - now) / _ONE_HOUR


def match_window(status: str, days: float, hours: float) -> ReminderWindow | None:
    """Return the first window matching status and timing, or None."""
    for window in REMINDER_WINDOWS:
        if window.matches(status, days, hours):
            return window
    return None


def decide_event_reminder(
    event: Event,
    prefs: NotificationPreferences,
    record: ScheduledNotificationRecord | None,
    now: datetime,
) -> ReminderWindow | None:
    """Return the reminder window to fire for this event now, or None.

    Fires only when a window matches, its kind is not yet in the ledger and
    its preference toggle is on. The ledger tag carries no status, so a
    "1day" sent while Going also suppresses the Interested "1day".
    """
    window = match_window(
        event.status,
        days_until(event.event_date, now),
        hours_until(event.event_date, now),
    )
    if window is None:
        return None
    if record is not None and record.has_sent(window.kind):
        return None
    if not prefs.is_enabled(window.preference):
        return None
    return window


def days_until_deadline(deadline: datetime, now: datetime) -> int:
    """Whole days until the deadline, rounded up."""
    return math.ceil(days_until(deadline, now))


def deadline_text(days: int) -> str:
    if days == 0:
        return "today"
    if days == 1:
        return "tomorrow"
    return f"in {days} days"


def should_send_deadline(
    event: Event,
    prefs: NotificationPreferences,
    record: ScheduledNotificationRecord | None,
) -> bool:
    """One-shot check for the registration deadline notice."""
    if event.status not in DEADLINE_STATUSES:
        return False
    if not prefs.registration_deadlines_enabled:
        return False
    return not (record is not None and record.registration_deadline_sent)


def build_event_notification(
    event: Event, user: User, window: ReminderWindow, now: datetime,
) -> Notification:
    return Notification(
        id=f"{event.id}_{window.kind}_{epoch_millis(now)}",
        user_id=user.id,
        type=NotificationType.EVENT,
        title="Event Reminder",
        message=f"{event.name} is {window.fragment}!",
        action_text="View Event",
        action_url=f"/events/{event.id}",
        event_id=event.id,
        timestamp=now,
        created_at=now,
    )


def build_deadline_notification(event: Event, user: User, now: datetime) -> Notification:
    text = deadline_text(days_until_deadline(event.registration_deadline, now))
    return Notification(
        id=f"{event.id}_registration_{epoch_millis(now)}",
        user_id=user.id,
        type=NotificationType.DEADLINE,
        title="Registration Deadline",
        message=f"Registration for {event.name} closes {text}!",
        action_text="Register Now",
        action_url=event.url_link or f"/events/{event.id}",
        event_id=event.id,
        timestamp=now,
        created_at=now,
    )


def payload_for(notification: Notification) -> PushPayload:
    """Push payload mirroring a persisted notification."""
    return PushPayload(
        title=notification.title,
        body=notification.message,
        type=notification.type,
        notification_id=notification.id,
        event_id=notification.event_id,
        action_url=notification.action_url,
    )
