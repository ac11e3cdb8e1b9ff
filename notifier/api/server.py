"""
Event Notifier — FastAPI application.

Builds the app, wires the stores and push transport, and starts the timed
scheduler jobs in the lifespan when SCHEDULER_ENABLED.
"""

from __future__ import annotations

import logging
from contextlib import asynccontextmanager
from typing import Callable

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse

from notifier.api.routes import CallableError, router
from notifier.config import settings
from notifier.core.scheduler import SchedulerDeps, utcnow

logger = logging.getLogger(__name__)


def create_app(
    deps: SchedulerDeps | None = None,
    clock: Callable = utcnow,
    enable_scheduler: bool | None = None,
) -> FastAPI:
    """Build the application.

    Args:
        deps: Stores + dispatcher. Defaults to SQLite stores and the
              configured push transport.
        clock: Source of "now" for manual triggers.
        enable_scheduler: Start the timed jobs. Defaults to SCHEDULER_ENABLED.
    """
    if deps is None:
        from notifier.adapters.factory import create_scheduler_deps

        deps = create_scheduler_deps()
    if enable_scheduler is None:
        enable_scheduler = settings.SCHEDULER_ENABLED

    @asynccontextmanager
    async def lifespan(app: FastAPI):
        scheduler = None
        if enable_scheduler:
            from notifier.core.jobs import init_scheduler

            scheduler = init_scheduler(app.state.deps)
        logger.info("Event notifier ready")
        yield
        if scheduler is not None:
            scheduler.shutdown(wait=False)

    app = FastAPI(title="Event Notifier", version="0.1.0", lifespan=lifespan)
    app.state.deps = deps
    app.state.clock = clock

    @app.exception_handler(CallableError)
    async def callable_error_handler(request: Request, exc: CallableError):
        return JSONResponse(status_code=exc.http_status, content=exc.to_body())

    app.include_router(router)

    @app.get("/health")
    def health() -> dict[str, str]:
        return {"status": "ok"}

    return app


def main() -> None:
    """Entry point: build the app and serve it."""
    import uvicorn

    logging.getLogger().setLevel(settings.LOG_LEVEL)
    logger.info("Starting event notifier on %s:%d...", settings.HOST, settings.PORT)
    uvicorn.run(
        create_app(),
        host=settings.HOST,
        port=settings.PORT,
        log_level=settings.LOG_LEVEL.lower(),
    )


if __name__ == "__main__":
    logging.basicConfig(
        level=logging.INFO,
        format="%(asctime)s [%(levelname)s] %(name)s: %(message)s",
    )
    main()
