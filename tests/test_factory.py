"""Tests for notifier.adapters.factory — transport and store wiring."""

import pytest
from unittest.mock import patch

from notifier.adapters.factory import create_push_transport, create_scheduler_deps
from notifier.adapters.fcm_transport import FcmTransport, LogTransport
from notifier.data.db import EventDB, ScheduledNotificationDB


class TestCreatePushTransport:
    def test_log_provider(self):
        with patch("notifier.adapters.factory.settings") as mock_settings:
            mock_settings.PUSH_PROVIDER = "log"
            assert isinstance(create_push_transport(), LogTransport)

    def test_fcm_provider(self):
        with patch("notifier.adapters.factory.settings") as mock_settings:
            mock_settings.PUSH_PROVIDER = "FCM"
            mock_settings.FCM_PROJECT_ID = "demo-project"
            mock_settings.GOOGLE_APPLICATION_CREDENTIALS = "sa.json"
            mock_settings.FCM_TIMEOUT_SECONDS = 5.0
            assert isinstance(create_push_transport(), FcmTransport)

    def test_unknown_provider(self):
        with patch("notifier.adapters.factory.settings") as mock_settings:
            mock_settings.PUSH_PROVIDER = "carrier-pigeon"
            with pytest.raises(ValueError, match="Unknown PUSH_PROVIDER"):
                create_push_transport()


class TestCreateSchedulerDeps:
    def test_stores_share_one_file(self, tmp_db_path, fake_transport):
        deps = create_scheduler_deps(db_path=tmp_db_path, transport=fake_transport)
        assert isinstance(deps.events, EventDB)
        assert isinstance(deps.ledger, ScheduledNotificationDB)
        assert deps.events._db_path == deps.notifications._db_path == tmp_db_path
