"""FastAPI middleware: request correlation and per-request logging context."""

import time
import uuid
from typing import Callable, Optional

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from rental_bot.logging_config import bind_context, clear_context, get_logger

logger = get_logger(__name__)

REQUEST_ID_HEADER = "X-Request-ID"

# Path segments followed by a group identifier
GROUP_PATH_SEGMENTS = ("groups", "rentals")
NON_GROUP_SEGMENTS = {"sweep"}


def group_id_from_path(path: str) -> Optional[str]:
    """Extract the group id from a control API path, if it names one.

    Example:
        >>> group_id_from_path("/control/rentals/12036@g.us/extend")
        '12036@g.us'
    """
    parts = [part for part in path.split("/") if part]
    for segment in GROUP_PATH_SEGMENTS:
        if segment not in parts:
            continue
        index = parts.index(segment)
        if len(parts) > index + 1 and parts[index + 1] not in NON_GROUP_SEGMENTS:
            return parts[index + 1]
    return None


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request once on arrival and once on completion.

    A fresh request_id is bound to the logging context for the whole request
    and returned to the caller in the X-Request-ID header. Client errors are
    logged as warnings, server errors as errors.

    Args:
        app: ASGI application
        include_request_details: also log query string, client address and user agent
    """

    def __init__(self, app: ASGIApp, include_request_details: bool = True):
        super().__init__(app)
        self.include_request_details = include_request_details

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request_id = uuid.uuid4().hex
        bind_context(request_id=request_id, method=request.method, path=request.url.path)

        details = {}
        if self.include_request_details:
            details = {
                "query": str(request.query_params) or None,
                "client_host": request.client.host if request.client else None,
                "user_agent": request.headers.get("user-agent"),
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
            log = logger.info
            if response.status_code >= 500:
                log = logger.error
            elif response.status_code >= 400:
                log = logger.warning
            log("request_completed", status_code=response.status_code, duration_ms=_elapsed_ms(started))

            response.headers[REQUEST_ID_HEADER] = request_id
            return response
        finally:
            clear_context()


class ContextMiddleware(BaseHTTPMiddleware):
    """Binds the group named in the request path to the logging context."""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        group_id = group_id_from_path(request.url.path)
        if group_id is not None:
            bind_context(group_id=group_id)
        return await call_next(request)


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
