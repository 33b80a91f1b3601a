"""
EdgeGate Backend — Request Logging Middleware
=============================================

What:  One access-log line per request on the `edgegate.access` logger.
Why:   Most interesting outcomes here are decided by the admission pipeline
       (redirects, CSRF rejections), so the line records where a redirect
       pointed as well as the status.
How:   Wraps everything below the request ID middleware, so the ID is
       already in the ContextVar and the admission outcome is already in the
       response.

Line format:
    GET /dashboard 307 → /login?callbackUrl=%2Fdashboard 1.4ms [a1b2c3d4] 1.2.3.4
    POST /api/posts 201 12.9ms [a1b2c3d4] 1.2.3.4

Skipped: /api/health (polled by load balancers).
Never logged: bodies, cookies, CSRF header values.
"""

import logging
import time

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from app.middleware.request_id import request_id_var
from app.services.rate_limiter import client_ip

logger = logging.getLogger("edgegate.access")

SKIP_PATHS = frozenset({"/api/health"})


def level_for_status(status: int) -> int:
    if status >= 500:
        return logging.ERROR
    if status >= 400:
        return logging.WARNING
    return logging.INFO


class RequestLoggingMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        if request.url.path in SKIP_PATHS:
            return await call_next(request)

        started = time.perf_counter()
        response = await call_next(request)
        elapsed_ms = (time.perf_counter() - started) * 1000

        outcome = str(response.status_code)
        location = response.headers.get("location")
        if location:
            outcome = f"{outcome} → {location}"

        logger.log(
            level_for_status(response.status_code),
            "%s %s %s %.1fms [%s] %s",
            request.method,
            request.url.path,
            outcome,
            elapsed_ms,
            request_id_var.get(""),
            client_ip(request),
        )
        return response
