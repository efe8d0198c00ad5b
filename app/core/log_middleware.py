"""
Request tracing middleware for the feedback API.

Every request gets a request id and a correlation id. Either may be supplied
by the caller (``x-request-id`` / ``x-correlation-id``); missing ones are
generated. Both are bound to contextvars for the duration of the request so
every log line written while handling it (analysis, cache, store) carries
them, and both are echoed on the response.
"""
from __future__ import annotations

import logging
import time
import uuid

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response

from app.core.structured_logging import correlation_id_var, request_id_var

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "x-request-id"
CORRELATION_ID_HEADER = "x-correlation-id"


def _incoming_id(request: Request, header: str) -> str:
    return request.headers.get(header) or uuid.uuid4().hex


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Bind request/correlation ids and log one ``request_completed`` line."""

    async def dispatch(self, request: Request, call_next) -> Response:
        ids = {
            REQUEST_ID_HEADER: _incoming_id(request, REQUEST_ID_HEADER),
            CORRELATION_ID_HEADER: _incoming_id(request, CORRELATION_ID_HEADER),
        }
        tokens = (
            request_id_var.set(ids[REQUEST_ID_HEADER]),
            correlation_id_var.set(ids[CORRELATION_ID_HEADER]),
        )

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
        finally:
            logger.info(
                "request_completed",
                extra={
                    "http.method": request.method,
                    "http.path": request.url.path,
                    "http.status_code": status_code,
                    "duration_ms": round((time.perf_counter() - started) * 1000, 2),
                },
            )
            request_id_var.reset(tokens[0])
            correlation_id_var.reset(tokens[1])

        response.headers.update(ids)
        return response
