"""
Trigger and send endpoints.

Endpoints:
- GET/POST /testEventReminders - run the event reminder scheduler now
- GET/POST /testRegistrationDeadlines - run the registration deadline scheduler now
- POST /sendNotificationToToken - authenticated callable: push to one or many tokens
- POST /testSendNotificationToToken - unauthenticated test variant (405 on other methods)
"""

from __future__ import annotations

import json
import logging
from typing import Any, Callable

from fastapi import APIRouter, Depends, Request
from fastapi.responses import JSONResponse

from notifier.api.auth import get_caller_uid
from notifier.core.dispatch import InvalidRequestError, SendRequest, send_to_tokens
from notifier.core.scheduler import SchedulerDeps, run_event_reminders, run_registration_deadlines
from notifier.data.models import epoch_millis

logger = logging.getLogger(__name__)

router = APIRouter()


class CallableError(Exception):
    """Typed error for callable endpoints, with a machine-readable code."""

    # code -> (canonical status, HTTP status)
    STATUS = {
        "unauthenticated": ("UNAUTHENTICATED", 401),
        "invalid-argument": ("INVALID_ARGUMENT", 400),
        "internal": ("INTERNAL", 500),
    }

    def __init__(self, code: str, message: str) -> None:
        super().__init__(message)
        self.code = code
        self.message = message

    @property
    def http_status(self) -> int:
        return self.STATUS[self.code][1]

    def to_body(self) -> dict:
        return {
            "error": {
                "code": self.code,
                "status": self.STATUS[self.code][0],
                "message": self.message,
            }
        }


# --- Dependencies ---


def get_deps(request: Request) -> SchedulerDeps:
    return request.app.state.deps


def get_clock(request: Request) -> Callable:
    return request.app.state.clock


async def _read_json(request: Request) -> Any:
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        return None


# --- Scheduler triggers ---


@router.api_route("/testEventReminders", methods=["GET", "POST"])
async def test_event_reminders(
    deps: SchedulerDeps = Depends(get_deps),
    clock: Callable = Depends(get_clock),
):
    """Run the event reminder scheduler once and report counts."""
    logger.info("testEventReminders - Manual trigger")
    try:
        summary = await run_event_reminders(deps, now=clock())
    except Exception as exc:
        logger.exception("testEventReminders - Error: %s", exc)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    return {
        "success": True,
        "message": "Event reminders check completed",
        "eventsChecked": summary.events_checked,
        "notificationsSent": summary.notifications_sent,
    }


@router.api_route("/testRegistrationDeadlines", methods=["GET", "POST"])
async def test_registration_deadlines(
    deps: SchedulerDeps = Depends(get_deps),
    clock: Callable = Depends(get_clock),
):
    """Run the registration deadline scheduler once and report counts."""
    logger.info("testRegistrationDeadlines - Manual trigger")
    try:
        summary = await run_registration_deadlines(deps, now=clock())
    except Exception as exc:
        logger.exception("testRegistrationDeadlines - Error: %s", exc)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    return {
        "success": True,
        "message": "Registration deadlines check completed",
        "eventsChecked": summary.events_checked,
        "notificationsSent": summary.notifications_sent,
    }


# --- Ad-hoc sends ---


@router.post("/sendNotificationToToken")
async def send_notification_to_token(
    request: Request,
    uid: str | None = Depends(get_caller_uid),
    deps: SchedulerDeps = Depends(get_deps),
    clock: Callable = Depends(get_clock),
):
    """Callable: body is ``{"data": {...}}``, reply is ``{"result": {...}}``."""
    if uid is None:
        raise CallableError(
            "unauthenticated", "User must be authenticated to send notifications",
        )

    body = await _read_json(request)
    data = body.get("data") if isinstance(body, dict) else None
    try:
        send_request = SendRequest.from_data(data)
    except InvalidRequestError as exc:
        raise CallableError("invalid-argument", str(exc)) from exc

    payload = send_request.to_payload(f"notification_{epoch_millis(clock())}")
    try:
        tokens_sent, failures = await send_to_tokens(deps.dispatcher, send_request, payload)
    except Exception as exc:
        logger.error("Error sending notification for caller %s: %s", uid, exc)
        raise CallableError("internal", "Failed to send notification") from exc

    result = {"success": True, "tokensSent": tokens_sent}
    if send_request.fcm_token:
        result["message"] = "Notification sent successfully"
    else:
        result["message"] = "Batch notifications sent successfully"
        result["failureCount"] = failures
    return {"result": result}


@router.api_route(
    "/testSendNotificationToToken",
    methods=["GET", "POST", "PUT", "PATCH", "DELETE"],
)
async def test_send_notification_to_token(
    request: Request,
    deps: SchedulerDeps = Depends(get_deps),
    clock: Callable = Depends(get_clock),
):
    """Unauthenticated test variant of sendNotificationToToken. POST only."""
    logger.info("Test endpoint for sending notification to FCM token")
    if request.method != "POST":
        return JSONResponse(
            status_code=405,
            content={"success": False, "error": "Method not allowed. Use POST."},
        )

    try:
        send_request = SendRequest.from_data(await _read_json(request))
    except InvalidRequestError as exc:
        return JSONResponse(status_code=400, content={"success": False, "error": str(exc)})

    payload = send_request.to_payload(f"test_notification_{epoch_millis(clock())}")
    try:
        tokens_sent, failures = await send_to_tokens(deps.dispatcher, send_request, payload)
    except Exception as exc:
        logger.error("Error sending notification: %s", exc)
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})

    return {
        "success": True,
        "message": "Notification(s) sent successfully",
        "tokensSent": tokens_sent,
        "failureCount": failures,
        "payload": payload.to_dict(),
    }
