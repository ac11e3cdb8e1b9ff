"""Caller authentication for callable endpoints.

Callers present a Firebase ID token as ``Authorization: Bearer <token>``.
The token is verified against Google's public certs with the project id as
audience. Any failure leaves the caller unauthenticated.
"""

from __future__ import annotations

import asyncio
import logging

from fastapi import Header
from google.auth.exceptions import GoogleAuthError
from google.auth.transport.requests import Request
from google.oauth2 import id_token

from notifier.config import settings

logger = logging.getLogger(__name__)


def _verify(token: str) -> dict | None:
    return id_token.verify_firebase_token(
        token, Request(), audience=settings.FCM_PROJECT_ID,
    )


async def get_caller_uid(authorization: str | None = Header(default=None)) -> str | None:
    """Return the verified caller's uid, or None when unauthenticated."""
    if not authorization or not authorization.lower().startswith("bearer "):
        return None
    token = authorization[len("bearer "):].strip()
    if not token:
        return None

    try:
        # cert fetch + signature check are blocking
        claims = await asyncio.to_thread(_verify, token)
    except (ValueError, GoogleAuthError) as exc:
        logger.warning("ID token verification failed: %s", exc)
        return None

    if not claims:
        return None
    return claims.get("sub") or claims.get("user_id")
