"""
EdgeGate Backend — CORS Policy
==============================

What:  Answers preflight requests and decorates responses with
       Access-Control-* headers for allowed origins.
Why:   Starlette's CORSMiddleware wraps the whole app, which would also
       decorate the admission pipeline's CSRF rejections. Those must go out
       bare, so CORS is applied from inside the pipeline instead.
How:   Origin allowlist from CORS_ORIGINS ("*" allows any origin). Allowed
       origins are echoed back (never "*") because credentials are allowed.

Behaviour:
    OPTIONS + Origin            → preflight: 204, no body
    Origin allowed              → Allow-Origin/Credentials (+ Methods/Headers/
                                  Max-Age on preflight)
    Origin missing/not allowed  → response untouched (preflight still 204)
    Vary: Origin                → always on preflight, and on decorated responses
"""

from typing import Optional, Sequence

from starlette.requests import Request
from starlette.responses import Response

from app.config import settings


class CorsPolicy:

    def __init__(
        self,
        allowed_origins: Sequence[str],
        allow_methods: Sequence[str],
        allow_headers: Sequence[str],
        max_age: int = 86400,
    ):
        self.allowed_origins = set(allowed_origins)
        self.allow_any = "*" in self.allowed_origins
        self.allow_methods = ", ".join(allow_methods)
        self.allow_headers = ", ".join(allow_headers)
        self.max_age = max_age

    def is_allowed_origin(self, origin: Optional[str]) -> bool:
        if not origin:
            return False
        return self.allow_any or origin in self.allowed_origins

    @staticmethod
    def is_preflight(request: Request) -> bool:
        return request.method.upper() == "OPTIONS" and "origin" in request.headers

    def handle_preflight(self, request: Request) -> Response:
        response = Response(status_code=204)
        origin = request.headers.get("origin")
        if self.is_allowed_origin(origin):
            response.headers["Access-Control-Allow-Origin"] = origin
            response.headers["Access-Control-Allow-Credentials"] = "true"
            response.headers["Access-Control-Allow-Methods"] = self.allow_methods
            response.headers["Access-Control-Allow-Headers"] = self.allow_headers
            response.headers["Access-Control-Max-Age"] = str(self.max_age)
        response.headers["Vary"] = "Origin"
        return response

    def apply_headers(self, request: Request, response: Response) -> Response:
        origin = request.headers.get("origin")
        if not self.is_allowed_origin(origin):
            return response
        response.headers["Access-Control-Allow-Origin"] = origin
        response.headers["Access-Control-Allow-Credentials"] = "true"
        response.headers["Access-Control-Expose-Headers"] = (
            "X-Request-ID, Retry-After, X-RateLimit-Limit, X-RateLimit-Remaining, X-RateLimit-Reset"
        )
        vary = response.headers.get("Vary")
        if not vary:
            response.headers["Vary"] = "Origin"
        elif "origin" not in vary.lower():
            response.headers["Vary"] = f"{vary}, Origin"
        return response


# Singleton built from settings
cors_policy = CorsPolicy(
    allowed_origins=settings.cors_origins_list,
    allow_methods=settings.cors_allow_methods_list,
    allow_headers=settings.cors_allow_headers_list,
    max_age=settings.cors_max_age,
)
