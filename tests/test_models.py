"""Tests for notifier.data.models — record parsing and payload shaping."""

import json
from datetime import datetime, timedelta, timezone

import pytest

from notifier.data.models import (
    Event,
    NotificationPreferences,
    NotificationType,
    PushPayload,
    ScheduledNotificationRecord,
    User,
    epoch_millis,
    parse_timestamp,
)


class TestParseTimestamp:
    def test_naive_is_taken_as_utc(self):
        dt = parse_timestamp(datetime(2026, 3, 10, 12, 0))
        assert dt == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    def test_z_suffix(self):
        dt = parse_timestamp("2026-03-10T12:00:00Z")
        assert dt == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)

    def test_offset_is_normalized_to_utc(self):
        dt = parse_timestamp("2026-03-10T08:00:00-04:00")
        assert dt == datetime(2026, 3, 10, 12, 0, tzinfo=timezone.utc)
        assert dt.utcoffset() == timedelta(0)

    def test_empty_is_none(self):
        assert parse_timestamp(None) is None
        assert parse_timestamp("") is None

    def test_unsupported_type_raises(self):
        with pytest.raises(ValueError):
            parse_timestamp(12345)

    def test_epoch_millis(self):
        assert epoch_millis(datetime(1970, 1, 1, 0, 0, 1, tzinfo=timezone.utc)) == 1000


class TestNotificationPreferences:
    def test_absent_means_all_enabled(self):
        prefs = NotificationPreferences.from_record(None)
        assert all(prefs.to_record().values())

    def test_missing_key_defaults_to_enabled(self):
        prefs = NotificationPreferences.from_record({"reminderWeekBefore": False})
        assert prefs.reminder_week_before is False
        assert prefs.reminder_day_before is True
        assert prefs.event_reminders_enabled is True

    def test_is_enabled_by_wire_key(self):
        prefs = NotificationPreferences(reminder_3_hours=False)
        assert prefs.is_enabled("reminder3Hours") is False
        assert prefs.is_enabled("reminderInterestedDayBefore") is True


class TestUser:
    def test_preferences_as_json_string(self):
        user = User.from_record({
            "id": "u1",
            "fcmToken": "tok",
            "notificationPreferences": json.dumps({"eventRemindersEnabled": False}),
        })
        assert user.fcm_token == "tok"
        assert user.effective_preferences.event_reminders_enabled is False

    def test_no_preferences_uses_defaults(self):
        user = User.from_record({"id": "u1"})
        assert user.notification_preferences is None
        assert user.effective_preferences == NotificationPreferences()

    def test_empty_token_is_none(self):
        assert User.from_record({"id": "u1", "fcmToken": ""}).fcm_token is None


class TestEvent:
    def test_from_record(self):
        event = Event.from_record({
            "id": "e1",
            "userId": "u1",
            "name": "Team Offsite",
            "eventDate": "2026-03-17T09:00:00Z",
            "status": "Going",
            "requiresRegistration": True,
            "registrationDeadline": "2026-03-11T09:00:00Z",
        })
        assert event.event_date.tzinfo is not None
        assert event.requires_registration is True
        assert event.url_link is None

    def test_missing_event_date_raises(self):
        with pytest.raises(ValueError, match="no eventDate"):
            Event.from_record({"id": "e1", "userId": "u1", "status": "Going"})


class TestScheduledNotificationRecord:
    def test_reminders_as_json_string(self):
        record = ScheduledNotificationRecord.from_record({
            "eventId": "e1",
            "userId": "u1",
            "scheduledReminders": '["1week", "1day"]',
        })
        assert record.has_sent("1day")
        assert not record.has_sent("3hours")
        assert record.registration_deadline_sent is False


class TestPushPayload:
    def test_optional_fields_omitted(self):
        payload = PushPayload(
            title="Hi", body="There", type=NotificationType.GENERAL,
            notification_id="notification_1",
        )
        assert payload.to_data() == {"type": "General", "notificationId": "notification_1"}

    def test_to_dict_includes_everything(self):
        payload = PushPayload(
            title="Hi", body="There", type=NotificationType.EVENT,
            notification_id="n1", event_id="e1", action_url="/events/e1",
        )
        assert payload.to_dict() == {
            "title": "Hi",
            "body": "There",
            "type": "Event",
            "notificationId": "n1",
            "eventId": "e1",
            "actionUrl": "/events/e1",
        }
