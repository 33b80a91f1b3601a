"""
EdgeGate Backend — CSRF Guard (double-submit cookie)
====================================================

What:  Rejects state-changing requests that cannot prove they came from our
       own pages.
Why:   Session cookies are sent automatically by the browser, so a hostile
       site could otherwise POST on the user's behalf.
How:   Double-submit: a random token lives in a cookie that page scripts can
       read; every unsafe request must echo it in the X-CSRF-Token header.
       A cross-site attacker can make the browser send the cookie but cannot
       read it, so cannot produce a matching header.
Who:   Used by AdmissionMiddleware on both the API and the page branch.

Rules:
    GET, HEAD, OPTIONS          → always pass
    POST, PUT, PATCH, DELETE    → cookie AND header present and equal
                                  (hmac.compare_digest)

Cookie attributes:
    SameSite=Lax, Path=/, NOT HttpOnly (client script must read it),
    Secure when APP_ENV=production. Issued only when the request has none.
"""

import hmac
import secrets

from starlette.requests import Request
from starlette.responses import JSONResponse, Response

from app.config import settings

SAFE_METHODS = frozenset({"GET", "HEAD", "OPTIONS"})


class CsrfGuard:

    def __init__(
        self,
        cookie_name: str = settings.csrf_cookie_name,
        header_name: str = settings.csrf_header_name,
        secure: bool = settings.is_production,
    ):
        self.cookie_name = cookie_name
        self.header_name = header_name
        self.secure = secure

    def validate(self, request: Request) -> bool:
        if request.method.upper() in SAFE_METHODS:
            return True
        cookie_token = request.cookies.get(self.cookie_name)
        header_token = request.headers.get(self.header_name)
        if not cookie_token or not header_token:
            return False
        return hmac.compare_digest(cookie_token.encode(), header_token.encode())

    @staticmethod
    def generate_token() -> str:
        return secrets.token_hex(32)

    def ensure_token(self, request: Request, response: Response) -> Response:
        """Attach a fresh token cookie unless the request already carries one."""
        if not request.cookies.get(self.cookie_name):
            response.set_cookie(
                self.cookie_name,
                self.generate_token(),
                path="/",
                secure=self.secure,
                httponly=False,
                samesite="lax",
            )
        return response

    @staticmethod
    def error_response() -> JSONResponse:
        return JSONResponse(
            status_code=403,
            content={
                "error": "csrf_token_invalid",
                "message": "Missing or invalid CSRF token",
            },
        )


# Singleton instance
csrf_guard = CsrfGuard()
