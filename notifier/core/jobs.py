"""
APScheduler-based timed triggers for the reminder schedulers.

Event reminders run every EVENT_REMINDER_INTERVAL_HOURS (default 1) and
registration deadlines every REGISTRATION_DEADLINE_INTERVAL_HOURS (default 6).
Jobs live in memory only: the ledger, not the job store, is what makes runs
idempotent.
"""

from __future__ import annotations

import logging

from apscheduler.schedulers.asyncio import AsyncIOScheduler

from notifier.config import settings
from notifier.core.scheduler import (
    SchedulerDeps,
    run_event_reminders,
    run_registration_deadlines,
)

logger = logging.getLogger(__name__)

EVENT_REMINDERS_JOB_ID = "event_reminders"
REGISTRATION_DEADLINES_JOB_ID = "registration_deadlines"


async def event_reminders_job(deps: SchedulerDeps) -> None:
    try:
        await run_event_reminders(deps)
    except Exception as exc:
        logger.exception("EventReminders job failed: %s", exc)


async def registration_deadlines_job(deps: SchedulerDeps) -> None:
    try:
        await run_registration_deadlines(deps)
    except Exception as exc:
        logger.exception("RegistrationDeadlines job failed: %s", exc)


def init_scheduler(deps: SchedulerDeps) -> AsyncIOScheduler:
    """Create and start the scheduler. Call from inside the running event loop."""
    scheduler = AsyncIOScheduler(
        timezone=settings.SCHEDULER_TIMEZONE,
        job_defaults={
            "coalesce": True,  # Combine missed runs into one
            "max_instances": 1,
            "misfire_grace_time": 3600,
        },
    )
    scheduler.add_job(
        event_reminders_job,
        "interval",
        hours=settings.EVENT_REMINDER_INTERVAL_HOURS,
        id=EVENT_REMINDERS_JOB_ID,
        args=[deps],
        replace_existing=True,
    )
    scheduler.add_job(
        registration_deadlines_job,
        "interval",
        hours=settings.REGISTRATION_DEADLINE_INTERVAL_HOURS,
        id=REGISTRATION_DEADLINES_JOB_ID,
        args=[deps],
        replace_existing=True,
    )
    scheduler.start()
    logger.info(
        "Scheduler started: event reminders every %dh, registration deadlines every %dh (%s)",
        settings.EVENT_REMINDER_INTERVAL_HOURS,
        settings.REGISTRATION_DEADLINE_INTERVAL_HOURS,
        settings.SCHEDULER_TIMEZONE,
    )
    return scheduler
