"""Tests for notifier.adapters.fcm_transport — FCM HTTP v1 adapter."""

import pytest
from unittest.mock import AsyncMock, MagicMock, patch

import httpx

from notifier.adapters.fcm_transport import FcmTransport, LogTransport
from notifier.ports.push_port import DispatchError

MESSAGE = {"token": "tok-1", "notification": {"title": "T", "body": "B"}, "data": {}}


def _creds(valid=True):
    creds = MagicMock()
    creds.valid = valid
    creds.token = "access-token"
    return creds


def _client(*responses, side_effect=None):
    mock_client = AsyncMock()
    mock_client.__aenter__ = AsyncMock(return_value=mock_client)
    mock_client.__aexit__ = AsyncMock(return_value=False)
    if side_effect is not None:
        mock_client.post = AsyncMock(side_effect=side_effect)
    else:
        mock_client.post = AsyncMock(side_effect=list(responses))
    return mock_client


def _resp(status_code, body):
    resp = MagicMock()
    resp.status_code = status_code
    resp.json.return_value = body
    resp.text = str(body)
    return resp


def _unregistered():
    return _resp(404, {
        "error": {
            "code": 404,
            "status": "NOT_FOUND",
            "message": "Requested entity was not found.",
            "details": [{
                "@type": "type.googleapis.com/google.firebase.fcm.v1.FcmError",
                "errorCode": "UNREGISTERED",
            }],
        }
    })


class TestFcmTransportSend:
    @pytest.mark.asyncio
    async def test_success_returns_message_name(self):
        transport = FcmTransport("demo-project", "unused.json", credentials=_creds())
        mock_client = _client(_resp(200, {"name": "projects/demo-project/messages/42"}))

        with patch("notifier.adapters.fcm_transport.httpx.AsyncClient", return_value=mock_client):
            name = await transport.send(MESSAGE)

        assert name == "projects/demo-project/messages/42"
        args, kwargs = mock_client.post.call_args
        assert args[0] == "https://fcm.googleapis.com/v1/projects/demo-project/messages:send"
        assert kwargs["json"] == {"message": MESSAGE}
        assert kwargs["headers"]["Authorization"] == "Bearer access-token"

    @pytest.mark.asyncio
    async def test_unregistered_token_raises_with_code(self):
        transport = FcmTransport("demo-project", "unused.json", credentials=_creds())
        mock_client = _client(_unregistered())

        with patch("notifier.adapters.fcm_transport.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(DispatchError) as exc_info:
                await transport.send(MESSAGE)

        assert exc_info.value.status == "UNREGISTERED"
        assert "404" in str(exc_info.value)

    @pytest.mark.asyncio
    async def test_network_error_raises_dispatch_error(self):
        transport = FcmTransport("demo-project", "unused.json", credentials=_creds())
        mock_client = _client(side_effect=httpx.ConnectError("connection refused"))

        with patch("notifier.adapters.fcm_transport.httpx.AsyncClient", return_value=mock_client):
            with pytest.raises(DispatchError, match="FCM request failed"):
                await transport.send(MESSAGE)

    @pytest.mark.asyncio
    async def test_expired_credentials_are_refreshed(self):
        creds = _creds(valid=False)
        transport = FcmTransport("demo-project", "unused.json", credentials=creds)
        mock_client = _client(_resp(200, {"name": "n"}))

        with patch("notifier.adapters.fcm_transport.httpx.AsyncClient", return_value=mock_client):
            await transport.send(MESSAGE)

        creds.refresh.assert_called_once()

    @pytest.mark.asyncio
    async def test_refresh_failure_raises_dispatch_error(self):
        creds = _creds(valid=False)
        creds.refresh.side_effect = RuntimeError("invalid_grant")
        transport = FcmTransport("demo-project", "unused.json", credentials=creds)

        with pytest.raises(DispatchError, match="access token"):
            await transport.send(MESSAGE)

    @pytest.mark.asyncio
    async def test_missing_service_account_file(self, tmp_path):
        transport = FcmTransport("demo-project", str(tmp_path / "missing.json"))
        with pytest.raises(DispatchError, match="Service account file not found"):
            await transport.send(MESSAGE)


class TestFcmTransportSendEach:
    @pytest.mark.asyncio
    async def test_mixed_results_in_order(self):
        transport = FcmTransport("demo-project", "unused.json", credentials=_creds())
        mock_client = _client(
            _resp(200, {"name": "m1"}),
            _unregistered(),
            _resp(200, {"name": "m3"}),
        )
        messages = [dict(MESSAGE, token=t) for t in ("a", "b", "c")]

        with patch("notifier.adapters.fcm_transport.httpx.AsyncClient", return_value=mock_client):
            results = await transport.send_each(messages)

        assert [r.success for r in results] == [True, False, True]
        assert results[0].message_id == "m1"
        assert "Requested entity was not found." in results[1].error
        assert mock_client.post.await_count == 3


class TestLogTransport:
    @pytest.mark.asyncio
    async def test_always_succeeds(self):
        transport = LogTransport()
        assert await transport.send(MESSAGE) == "log/messages/1"
        results = await transport.send_each([MESSAGE, MESSAGE])
        assert [r.message_id for r in results] == ["log/messages/2", "log/messages/3"]
