"""ASGI app factory for the reprocessor control API."""

import os
from collections.abc import AsyncIterator
from contextlib import asynccontextmanager
from datetime import timedelta
from typing import Any, Optional

from fastapi import Depends, FastAPI, Request
from fastapi.responses import JSONResponse

from installment_reprocessor.logging_config import (
    configure_logging,
    get_logger,
    log_settings_from_env,
)
from installment_reprocessor.middleware import ContextMiddleware, RequestLoggingMiddleware
from installment_reprocessor.services.installment_processor import (
    InstallmentProcessor,
    get_installment_processor,
)
from installment_reprocessor.utils.durations import format_duration

SERVICE_NAME = "installment-reprocessor"
VERSION = "0.1.0"

logger = get_logger(__name__)


def _iso_or_none(duration: Optional[timedelta]) -> Optional[str]:
    return format_duration(duration) if duration is not None else None


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncIterator[None]:
    """Run the Pub/Sub event dispatcher for the lifetime of the app."""
    from installment_reprocessor.services.event_dispatcher import get_event_dispatcher

    dispatcher = get_event_dispatcher()
    logger.info("reprocessor_started", version=VERSION, events_enabled=dispatcher.is_enabled())
    try:
        yield
    finally:
        dispatcher.shutdown()
        logger.info("reprocessor_stopped")


async def health(
        processor: InstallmentProcessor = Depends(get_installment_processor),
) -> dict[str, Any]:
    """Liveness probe, also reporting the virtual time and active policy."""
    return {
        "service": SERVICE_NAME,
        "status": "healthy",
        "version": VERSION,
        "now": processor.clock.now().isoformat(),
        "reprocessing_interval": _iso_or_none(processor.config.reprocessing_interval),
        "maximum_reprocessing_time": _iso_or_none(processor.config.maximum_reprocessing_time),
    }


async def unexpected_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error(
        "unhandled_exception",
        path=request.url.path,
        error=str(exc),
        error_type=type(exc).__name__,
        exc_info=True,
    )
    return JSONResponse(
        status_code=500,
        content={"error": "internal_server_error", "message": "Request could not be processed"},
    )


def create_app(use_lifespan: bool = True) -> FastAPI:
    """Build the FastAPI app with logging, middleware and routes.

    Args:
        use_lifespan: Start the event dispatcher with the app; disabled in tests
                      that inject their own processor
    """
    log_level, json_format = log_settings_from_env()
    configure_logging(log_level=log_level, json_format=json_format)

    app = FastAPI(
        title="Installment Reprocessor",
        description="Retry and reprocessing lifecycle for subscription installments",
        version=VERSION,
        lifespan=lifespan if use_lifespan else None,
    )

    app.add_middleware(
        RequestLoggingMiddleware,
        include_request_details=os.getenv("LOG_REQUEST_DETAILS", "true").lower() == "true",
    )
    # Outermost, so path ids are bound before request_started is logged
    app.add_middleware(ContextMiddleware)

    from installment_reprocessor.api.control import router as control_router

    app.include_router(control_router)
    app.add_api_route("/health", health, methods=["GET"], tags=["health"])
    app.add_exception_handler(Exception, unexpected_error_handler)

    logger.info("app_created", routes=len(app.routes))
    return app
