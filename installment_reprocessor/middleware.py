"""Request logging and log-context middleware for the control API."""

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from installment_reprocessor.logging_config import bind_context, clear_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Path segments followed by an identifier worth binding to the log context
_CONTEXT_SEGMENTS = {
    "installments": "installment_id",
    "subscriptions": "subscription_id",
}


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request under a correlation id.

    A caller supplied X-Request-ID is reused, otherwise one is generated. The
    id is bound to every log line of the request and echoed in the response.
    """

    def __init__(self, app: ASGIApp, include_request_details: bool = True):
        super().__init__(app)
        self.include_request_details = include_request_details

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
        bind_context(request_id=request_id, method=request.method, path=request.url.path)

        details = {}
        if self.include_request_details:
            details = {
                "query": str(request.query_params) or None,
                "client_host": request.client.host if request.client else None,
            }
        logger.info("request_started", **details)
        started = time.perf_counter()

        try:
            response = await call_next(request)
        except Exception as exc:
            logger.error(
                "request_failed",
                duration_ms=_elapsed_ms(started),
                error=str(exc),
                error_type=type(exc).__name__,
                exc_info=True,
            )
            raise
        else:
            log = logger.warning if response.status_code >= 400 else logger.info
            log("request_completed", status_code=response.status_code, duration_ms=_elapsed_ms(started))
            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()


class ContextMiddleware(BaseHTTPMiddleware):
    """Binds installment and subscription ids found in the path to the log context."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        parts = request.url.path.strip("/").split("/")
        for index, part in enumerate(parts[:-1]):
            key = _CONTEXT_SEGMENTS.get(part)
            identifier = parts[index + 1]
            # "actionable" is a listing, not an id
            if key and identifier != "actionable":
                bind_context(**{key: identifier})

        return await call_next(request)
