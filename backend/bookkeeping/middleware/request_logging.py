"""Middleware that writes one access-log line per HTTP request.

The line carries method, path, status code, duration and, when the request
was authenticated, the caller's subject (set on ``request.state.user`` by
``get_current_user()`` in ``middleware/auth.py``).
"""

from __future__ import annotations

import logging
import time

from fastapi import Request
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

logger = logging.getLogger("bookkeeping.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Log every request except the configured quiet paths."""

    def __init__(self, app, quiet_paths: list[str] | None = None) -> None:
        super().__init__(app)
        self.quiet_paths = quiet_paths or []

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path in self.quiet_paths:
            return await call_next(request)

        started = time.perf_counter()
        status_code = 500
        try:
            response = await call_next(request)
            status_code = response.status_code
            return response
        finally:
            elapsed_ms = (time.perf_counter() - started) * 1000
            user_info = getattr(request.state, "user", None)
            subject = user_info["user_id"] if user_info else "-"
            logger.info(
                f"{request.method} {path} {status_code} "
                f"{elapsed_ms:.1f}ms user={subject}"
            )
