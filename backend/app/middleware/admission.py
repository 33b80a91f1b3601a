"""
EdgeGate Backend — Admission Middleware
=======================================

What:  Per-request gate in front of every route: CORS preflight, CSRF check,
       locale redirect and session-based page gating.
Why:   Pages are protected by default. Deciding access in one place, before
       routing, means no page handler can forget to check.
How:   Starlette BaseHTTPMiddleware. Each request takes exactly one of the
       branches below and either short-circuits with a response or passes
       through to the router.
Who:   Registered in main.create_app(); runs after RequestID and logging.

Pipeline:
    /docs, /redoc, /openapi.json, /static/, /favicon.ico → untouched

    API branch (/api/...):
        preflight?          → 204 (undecorated)
        CSRF fails?         → 403 (undecorated)
        otherwise           → route, response decorated

    Page branch:
        preflight?          → 204 (undecorated)
        CSRF fails?         → 403 (undecorated)
        locale redirect computed (not returned yet)
        session lookup      → failure counts as anonymous
        classify path
        signed in + AUTH_ONLY      → 307 /
        anonymous + PROTECTED      → 307 /login?callbackUrl=<encoded path>
        locale redirect pending    → 307 /{locale}{path}
        otherwise                  → route, response decorated

    "Decorated" = CORS headers for an allowed Origin + CSRF cookie if the
    request had none.

Failure handling:
    A session lookup that raises counts as SessionLookupFailed (anonymous).
    Any other exception while deciding is logged with traceback and turned into a
    JSON 500 {error, message, stack?}. `stack` is present only when
    EXPOSE_ERROR_STACK is on. Exceptions raised by routes are NOT caught
    here; they belong to the global exception handlers in main.py.

Downstream contract:
    Page requests carry the SessionResult on request.state.session_result.
"""

import logging
import traceback
from typing import Optional
from urllib.parse import quote

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import JSONResponse, RedirectResponse, Response
from starlette.types import ASGIApp

from app.config import settings
from app.middleware.cors import CorsPolicy, cors_policy
from app.middleware.csrf import CsrfGuard, csrf_guard
from app.middleware.locale import LocaleResolver, locale_resolver
from app.middleware.paths import PathClassification, PathClassifier, path_classifier
from app.services.session_service import (
    SessionFound,
    SessionLookupFailed,
    SessionNotFound,
    SessionService,
    session_service,
)

logger = logging.getLogger(__name__)


class AdmissionMiddleware(BaseHTTPMiddleware):
    """
    Collaborators default to the module singletons; tests pass their own
    through add_middleware(AdmissionMiddleware, session_service=...).
    """

    EXCLUDED_PREFIXES = ("/docs", "/redoc", "/openapi.json", "/static/", "/favicon.ico")

    def __init__(
        self,
        app: ASGIApp,
        session_service: SessionService = session_service,
        locale_resolver: LocaleResolver = locale_resolver,
        classifier: PathClassifier = path_classifier,
        csrf: CsrfGuard = csrf_guard,
        cors: CorsPolicy = cors_policy,
        expose_stack: Optional[bool] = None,
    ):
        super().__init__(app)
        self.session_service = session_service
        self.locale_resolver = locale_resolver
        self.classifier = classifier
        self.csrf = csrf
        self.cors = cors
        self.expose_stack = settings.expose_error_stack if expose_stack is None else expose_stack

    def _finalize(self, request: Request, response: Response) -> Response:
        return self.csrf.ensure_token(request, self.cors.apply_headers(request, response))

    def _redirect(self, request: Request, location: str) -> Response:
        return self._finalize(request, RedirectResponse(location, status_code=307))

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        path = request.url.path
        if path.startswith(self.EXCLUDED_PREFIXES):
            return await call_next(request)

        try:
            if path.startswith("/api/"):
                response = self._admit_api(request)
            else:
                response = await self._admit_page(request)
        except Exception as e:
            return self._diagnostic_response(request, e)

        if response is not None:
            return response

        response = await call_next(request)
        return self._finalize(request, response)

    # ── Branches ──────────────────────────────────────────────────────────
    # Each returns the short-circuit response, or None to pass through.

    def _admit_api(self, request: Request) -> Optional[Response]:
        if self.cors.is_preflight(request):
            return self.cors.handle_preflight(request)
        if not self.csrf.validate(request):
            logger.warning("CSRF rejected %s %s", request.method, request.url.path)
            return self.csrf.error_response()
        return None

    async def _admit_page(self, request: Request) -> Optional[Response]:
        path = request.url.path

        if self.cors.is_preflight(request):
            return self.cors.handle_preflight(request)
        if not self.csrf.validate(request):
            logger.warning("CSRF rejected %s %s", request.method, path)
            return self.csrf.error_response()

        locale_redirect = self.locale_resolver.resolve(
            path,
            request.headers.get("accept-language"),
            request.url.query,
        )

        try:
            result = await self.session_service.get_session(request.cookies)
        except Exception as e:
            # A throwing session backend is a soft failure, never a 500
            logger.warning("Session lookup raised: %s", e)
            result = SessionLookupFailed(error=e)
        request.state.session_result = result
        if isinstance(result, SessionFound):
            authenticated = True
        elif isinstance(result, SessionLookupFailed):
            logger.warning("Treating request as anonymous after session lookup failure")
            authenticated = False
        elif isinstance(result, SessionNotFound):
            authenticated = False
        else:
            raise TypeError(f"Unexpected session result {result!r}")

        classification = self.classifier.classify(path)

        if authenticated and classification is PathClassification.AUTH_ONLY:
            return self._redirect(request, "/")

        if not authenticated and classification is PathClassification.PROTECTED:
            return self._redirect(request, f"/login?callbackUrl={quote(path, safe='')}")

        if locale_redirect is not None:
            return self._redirect(request, locale_redirect)

        return None

    # ── Hard failure ──────────────────────────────────────────────────────

    def _diagnostic_response(self, request: Request, exc: Exception) -> JSONResponse:
        logger.error(
            "Admission failed for %s %s: %s",
            request.method,
            request.url.path,
            exc,
            exc_info=True,
        )
        content = {"error": "admission_error", "message": str(exc) or type(exc).__name__}
        if self.expose_stack:
            content["stack"] = "".join(
                traceback.format_exception(type(exc), exc, exc.__traceback__)
            )
        return JSONResponse(status_code=500, content=content)
