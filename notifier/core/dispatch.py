"""Notification dispatch — single and batch push sends over a PushTransport.

Single sends propagate DispatchError to the caller. Batch sends are
best-effort: tokens are split into chunks of FCM_BATCH_SIZE, each chunk is
one bounded transport call, and every token gets a tagged outcome instead of
an exception.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from typing import Any, Mapping

from notifier.data.models import NotificationType, PushPayload
from notifier.ports.push_port import DispatchError, PushTransport

logger = logging.getLogger(__name__)

FCM_BATCH_SIZE = 500


class InvalidRequestError(ValueError):
    """A send request is missing its title, body or tokens, or is malformed."""


def build_message(token: str, payload: PushPayload) -> dict:
    """Build the transport message for one token."""
    return {
        "token": token,
        "notification": {"title": payload.title, "body": payload.body},
        "data": payload.to_data(),
        "apns": {"payload": {"aps": {"sound": "default", "badge": 1}}},
    }


def chunk_tokens(tokens: list[str], size: int = FCM_BATCH_SIZE) -> list[list[str]]:
    """Split tokens into consecutive chunks of at most ``size``, keeping order."""
    return [tokens[i:i + size] for i in range(0, len(tokens), size)]


@dataclass(frozen=True)
class TokenOutcome:
    token: str
    success: bool
    message_id: str | None = None
    error: str | None = None


@dataclass
class BatchResult:
    """Per-token outcomes of a batch send."""

    outcomes: list[TokenOutcome] = field(default_factory=list)
    chunk_sizes: list[int] = field(default_factory=list)

    @property
    def success_count(self) -> int:
        return sum(1 for o in self.outcomes if o.success)

    @property
    def failure_count(self) -> int:
        return len(self.outcomes) - self.success_count

    @property
    def failed_tokens(self) -> list[str]:
        return [o.token for o in self.outcomes if not o.success]


class PushDispatcher:
    """Sends push payloads through a PushTransport."""

    def __init__(self, transport: PushTransport, batch_size: int = FCM_BATCH_SIZE) -> None:
        self._transport = transport
        self._batch_size = batch_size

    async def send_push_notification(self, token: str, payload: PushPayload) -> str:
        """Send one push. Raises DispatchError if the transport rejects it."""
        logger.info("Sending push notification to token: %s...", token[:20])
        logger.debug("  Title: %s | Body: %s", payload.title, payload.body)
        try:
            message_id = await self._transport.send(build_message(token, payload))
        except DispatchError as exc:
            logger.error("Failed to send push notification to %s...: %s", token[:20], exc)
            raise
        logger.info("Push notification sent: %s", message_id)
        return message_id

    async def send_batch_push_notifications(
        self, tokens: list[str], payload: PushPayload,
    ) -> BatchResult:
        """Send one payload to many tokens. Never raises."""
        logger.info("Sending batch push notifications to %d tokens...", len(tokens))
        result = BatchResult()

        for chunk in chunk_tokens(tokens, self._batch_size):
            result.chunk_sizes.append(len(chunk))
            messages = [build_message(token, payload) for token in chunk]
            try:
                responses = await self._transport.send_each(messages)
            except Exception as exc:
                logger.error("Failed to send batch of %d notifications: %s", len(chunk), exc)
                result.outcomes.extend(
                    TokenOutcome(token=token, success=False, error=str(exc))
                    for token in chunk
                )
                continue

            failures = 0
            for token, resp in zip(chunk, responses):
                if not resp.success:
                    failures += 1
                    logger.error("  Failed for token %s...: %s", token[:20], resp.error)
                result.outcomes.append(TokenOutcome(
                    token=token,
                    success=resp.success,
                    message_id=resp.message_id,
                    error=resp.error,
                ))
            logger.info(
                "Batch sent: %d successful, %d failed", len(chunk) - failures, failures,
            )

        return result


# ---------------------------------------------------------------------------
# Ad-hoc send requests (callable + test endpoint)
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class SendRequest:
    """A validated request to push a message to one or many tokens."""

    title: str
    body: str
    type: NotificationType = NotificationType.GENERAL
    fcm_token: str | None = None
    fcm_tokens: tuple[str, ...] = ()
    event_id: str | None = None
    action_url: str | None = None

    @classmethod
    def from_data(cls, data: Mapping[str, Any] | None) -> SendRequest:
        """Validate raw request data. Raises InvalidRequestError."""
        if data is None:
            data = {}
        if not isinstance(data, Mapping):
            raise InvalidRequestError("Request data must be an object")

        title, body = data.get("title"), data.get("body")
        if not title or not body or not isinstance(title, str) or not isinstance(body, str):
            raise InvalidRequestError("Title and body are required")

        fcm_token = data.get("fcmToken") or None
        if fcm_token is not None and not isinstance(fcm_token, str):
            raise InvalidRequestError("fcmToken must be a string")

        raw_tokens = data.get("fcmTokens") or []
        if not isinstance(raw_tokens, list) or not all(isinstance(t, str) for t in raw_tokens):
            raise InvalidRequestError("fcmTokens must be a list of strings")
        fcm_tokens = tuple(t for t in raw_tokens if t.strip())

        if not fcm_token and not fcm_tokens:
            raise InvalidRequestError(
                "At least one FCM token is required (fcmToken or fcmTokens array)"
            )

        for key in ("eventId", "actionUrl"):
            if data.get(key) is not None and not isinstance(data[key], str):
                raise InvalidRequestError(f"{key} must be a string")

        try:
            notification_type = NotificationType(data.get("type") or "General")
        except ValueError as exc:
            raise InvalidRequestError(f"Unknown notification type: {data.get('type')!r}") from exc

        return cls(
            title=title,
            body=body,
            type=notification_type,
            fcm_token=fcm_token,
            fcm_tokens=fcm_tokens,
            event_id=data.get("eventId") or None,
            action_url=data.get("actionUrl") or None,
        )

    def to_payload(self, notification_id: str) -> PushPayload:
        return PushPayload(
            title=self.title,
            body=self.body,
            type=self.type,
            notification_id=notification_id,
            event_id=self.event_id,
            action_url=self.action_url,
        )


async def send_to_tokens(
    dispatcher: PushDispatcher, request: SendRequest, payload: PushPayload,
) -> tuple[int, int]:
    """Dispatch to the single token if given, else to the batch.

    Returns (tokens addressed, tokens that failed). Single-send failures
    propagate instead of being counted.
    """
    if request.fcm_token:
        await dispatcher.send_push_notification(request.fcm_token, payload)
        return 1, 0
    result = await dispatcher.send_batch_push_notifications(list(request.fcm_tokens), payload)
    return len(request.fcm_tokens), result.failure_count
