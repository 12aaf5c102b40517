"""Request middleware for the Wave Ledger service.

Propagates correlation IDs, binds them to the logging context and writes
one ``http.request`` log entry per ledger request.
"""

from __future__ import annotations

import time
import uuid
from typing import Callable

from fastapi import Request, Response
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .logging import bind_context, clear_context, get_logger

CORRELATION_ID_HEADER = "X-Correlation-ID"
REQUEST_ID_HEADER = "X-Request-ID"

# Polled by orchestrators; logging them would drown out ledger traffic
QUIET_PATHS = frozenset({"/healthz", "/ready"})

logger = get_logger(__name__)


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Middleware to propagate or generate correlation IDs.

    - If incoming request has X-Correlation-ID, use it
    - Otherwise, generate a new UUID
    - Echo it (and a short request ID) in the response headers
    - Log method, path, status and duration outside ``quiet_paths``
    """

    def __init__(self, app: ASGIApp, quiet_paths: frozenset[str] = QUIET_PATHS) -> None:
        super().__init__(app)
        self.quiet_paths = quiet_paths

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or str(uuid.uuid4())
        request_id = str(uuid.uuid4())[:8]

        request.state.correlation_id = correlation_id
        request.state.request_id = request_id

        bind_context(
            correlation_id=correlation_id,
            request_id=request_id,
            path=request.url.path,
            method=request.method,
        )

        started = time.perf_counter()
        try:
            response = await call_next(request)
            response.headers[CORRELATION_ID_HEADER] = correlation_id
            response.headers[REQUEST_ID_HEADER] = request_id
            if request.url.path not in self.quiet_paths:
                logger.info(
                    "http.request",
                    method=request.method,
                    path=request.url.path,
                    status_code=response.status_code,
                    duration_ms=round((time.perf_counter() - started) * 1000, 2),
                    correlation_id=correlation_id,
                )
            return response
        finally:
            clear_context()


__all__ = [
    "CorrelationIdMiddleware",
    "CORRELATION_ID_HEADER",
    "QUIET_PATHS",
    "REQUEST_ID_HEADER",
]
