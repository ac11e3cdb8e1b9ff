"""Push port — abstract interface for the messaging transport.

Core modules depend on this protocol, never on a specific push provider.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Protocol


class DispatchError(Exception):
    """Raised when the transport rejects a token or a message."""

    def __init__(self, message: str, status: str | None = None) -> None:
        super().__init__(message)
        self.status = status


@dataclass(frozen=True)
class SendResult:
    """Outcome of one message inside a bounded batch send."""

    success: bool
    message_id: str | None = None
    error: str | None = None


class PushTransport(Protocol):
    """Token-addressed push delivery."""

    async def send(self, message: dict) -> str: ...

    async def send_each(self, messages: list[dict]) -> list[SendResult]: ...
