"""
Notecase Backend — Request Logging Middleware
===============================================

What:  One access log line per HTTP request.
How:   Times the downstream call and logs method, path, status and duration
       on the "notecase.access" logger, at a level chosen by status code.
Who:   Applied to every request except /health.

Log line:
    PUT /api/notes 200 12.3ms [a1b2c3d4] from 192.168.1.100

Bodies are never logged: they carry note content and attachment bytes.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from notecase.middleware.request_id import request_id_var

logger = logging.getLogger("notecase.access")


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """
    Logs structured information about each HTTP request and response.

    Level by status:
        5xx → ERROR, 4xx → WARNING, everything else → INFO

    The same fields are attached as `extra` so a JSON formatter can emit
    them as separate keys.
    """

    # Probed every few seconds; logging them drowns everything else
    SILENT_PATHS = {"/health"}

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in self.SILENT_PATHS:
            return await call_next(request)

        start_time = time.perf_counter()
        client_ip = request.client.host if request.client else "unknown"
        method = request.method
        path = request.url.path

        response = await call_next(request)

        duration_ms = (time.perf_counter() - start_time) * 1000
        rid = request_id_var.get("")
        status = response.status_code
        if status >= 500:
            log_level = logging.ERROR
        elif status >= 400:
            log_level = logging.WARNING
        else:
            log_level = logging.INFO

        logger.log(
            log_level,
            "%s %s %d %.1fms [%s] from %s",
            method,
            path,
            status,
            duration_ms,
            rid,
            client_ip,
            extra={
                "request_id": rid,
                "method": method,
                "path": path,
                "status": status,
                "duration_ms": round(duration_ms, 2),
                "client_ip": client_ip,
            },
        )

        return response
