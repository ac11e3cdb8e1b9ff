"""FCM push adapter — implements PushTransport over the FCM HTTP v1 API.

Authenticates with a Google service account (OAuth2 access token scoped to
firebase.messaging) and posts one message per request. A bounded batch is
sent as concurrent single sends sharing one HTTP client, which is what the
v1 API supports.
"""

from __future__ import annotations

import asyncio
import logging
from pathlib import Path

import httpx
from google.auth.transport.requests import Request
from google.oauth2 import service_account

from notifier.ports.push_port import DispatchError, SendResult

logger = logging.getLogger(__name__)

_FCM_SEND_URL = "https://fcm.googleapis.com/v1/projects/{project_id}/messages:send"
_SCOPES = ["https://www.googleapis.com/auth/firebase.messaging"]


def _parse_error(resp: httpx.Response) -> tuple[str | None, str]:
    """Pull the FCM error code (e.g. UNREGISTERED) and message out of a response."""
    try:
        error = resp.json().get("error", {})
    except ValueError:
        return None, resp.text
    status = error.get("status")
    for detail in error.get("details", []):
        if detail.get("errorCode"):
            status = detail["errorCode"]
            break
    return status, error.get("message", resp.text)


class FcmTransport:
    """Firebase Cloud Messaging implementation of PushTransport."""

    def __init__(
        self,
        project_id: str,
        credentials_path: str,
        timeout: float = 10.0,
        credentials: service_account.Credentials | None = None,
    ) -> None:
        self._url = _FCM_SEND_URL.format(project_id=project_id)
        self._credentials_path = credentials_path
        self._credentials = credentials
        self._timeout = timeout

    def _load_credentials(self) -> service_account.Credentials:
        if self._credentials is None:
            path = Path(self._credentials_path)
            if not path.exists():
                raise DispatchError(
                    f"Service account file not found at {path}. "
                    "Download it from the Firebase console."
                )
            self._credentials = service_account.Credentials.from_service_account_file(
                str(path), scopes=_SCOPES,
            )
            logger.debug("Loaded FCM service account from %s", path)
        return self._credentials

    async def _access_token(self) -> str:
        creds = self._load_credentials()
        if not creds.valid:
            try:
                # google-auth refresh is blocking I/O
                await asyncio.to_thread(creds.refresh, Request())
            except Exception as exc:
                logger.error("FCM access token refresh failed: %s", exc)
                raise DispatchError(f"Failed to obtain FCM access token: {exc}") from exc
        return creds.token

    async def _post(self, client: httpx.AsyncClient, message: dict, access_token: str) -> str:
        try:
            resp = await client.post(
                self._url,
                json={"message": message},
                headers={"Authorization": f"Bearer {access_token}"},
            )
        except httpx.HTTPError as exc:
            raise DispatchError(f"FCM request failed: {exc}") from exc

        if resp.status_code == 200:
            return resp.json().get("name", "")

        status, detail = _parse_error(resp)
        raise DispatchError(f"FCM returned {resp.status_code}: {detail}", status=status)

    async def send(self, message: dict) -> str:
        """Send one message. Returns the FCM message name."""
        access_token = await self._access_token()
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            return await self._post(client, message, access_token)

    async def send_each(self, messages: list[dict]) -> list[SendResult]:
        """Send a bounded batch. Returns one result per message, in order."""
        access_token = await self._access_token()
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            responses = await asyncio.gather(
                *(self._post(client, m, access_token) for m in messages),
                return_exceptions=True,
            )

        results = []
        for resp in responses:
            if isinstance(resp, Exception):
                results.append(SendResult(success=False, error=str(resp)))
            elif isinstance(resp, BaseException):
                raise resp
            else:
                results.append(SendResult(success=True, message_id=resp))
        return results


class LogTransport:
    """PushTransport that only logs. Used when no FCM credentials are configured."""

    def __init__(self) -> None:
        self._counter = 0

    def _next_id(self) -> str:
        self._counter += 1
        return f"log/messages/{self._counter}"

    async def send(self, message: dict) -> str:
        logger.info(
            "Push (log only) to %s...: %s",
            message.get("token", "")[:20], message.get("notification"),
        )
        return self._next_id()

    async def send_each(self, messages: list[dict]) -> list[SendResult]:
        return [SendResult(success=True, message_id=await self.send(m)) for m in messages]
