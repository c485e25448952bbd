"""
Notecase Backend — API Key Middleware
=======================================

What:  Shared-secret gate in front of the notes API.
How:   Compares the X-API-Key header with settings.api_key in constant time.
       An empty API_KEY disables the check (local development).
Who:   Applied to every request via Starlette middleware.

Excluded:
    - /health and the OpenAPI docs (probes and humans)
    - /api/files/... (browsers follow those links without headers; the
      URL signature is the credential there)
    - OPTIONS preflights (answered by CORSMiddleware)
"""

import hmac
import logging

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from notecase.config import settings
from notecase.exceptions import AuthenticationError
from notecase.middleware.request_id import request_id_var

logger = logging.getLogger(__name__)


class ApiKeyMiddleware(BaseHTTPMiddleware):
    """
    Rejects requests without the configured X-API-Key with 401.

    settings.api_key is read on every request, so tests and operators can
    change it without rebuilding the app.
    """

    EXCLUDED_PATHS = {"/health", "/docs", "/openapi.json", "/redoc"}
    EXCLUDED_PREFIXES = ("/api/files/",)

    def is_excluded(self, request: Request) -> bool:
        path = request.url.path
        return (
            request.method == "OPTIONS"
            or path in self.EXCLUDED_PATHS
            or path.startswith(self.EXCLUDED_PREFIXES)
        )

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        expected = settings.api_key
        if not expected or self.is_excluded(request):
            return await call_next(request)

        supplied = request.headers.get("X-API-Key", "")
        if hmac.compare_digest(supplied.encode("utf-8"), expected.encode("utf-8")):
            return await call_next(request)

        exc = AuthenticationError()
        rid = request_id_var.get("")
        logger.warning(
            "[%s] Rejected %s %s: %s API key",
            rid,
            request.method,
            request.url.path,
            "wrong" if supplied else "missing",
        )
        return JSONResponse(
            status_code=401,
            content={
                "error": "authentication_error",
                "message": exc.message,
                "request_id": rid,
            },
        )
