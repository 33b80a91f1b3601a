"""
EdgeGate Backend — Request ID Middleware
========================================

What:  Gives every request a short correlation ID and echoes it back in the
       X-Request-ID response header.
Why:   Error bodies carry the same ID, so a user-reported error maps straight
       to the log lines of that request.
How:   Reuses a client-supplied X-Request-ID, otherwise the first 8 chars of
       a uuid4. Stored in a ContextVar (for loggers and exception handlers)
       and on request.state (for route handlers).
When:  Outermost of the application middlewares.
"""

import uuid
from contextvars import ContextVar

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

# Coroutine-local: concurrent requests on one event loop each see their own ID
request_id_var: ContextVar[str] = ContextVar("request_id", default="")

# Client-supplied IDs longer than this are replaced; they end up in logs
MAX_REQUEST_ID_LENGTH = 64


class RequestIDMiddleware(BaseHTTPMiddleware):

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        rid = request.headers.get("X-Request-ID", "")
        if not rid or len(rid) > MAX_REQUEST_ID_LENGTH:
            rid = str(uuid.uuid4())[:8]

        request_id_var.set(rid)
        request.state.request_id = rid

        response = await call_next(request)
        response.headers["X-Request-ID"] = rid
        return response
