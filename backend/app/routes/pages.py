"""
EdgeGate Backend — Page Route Handlers
======================================

What:  Locale-prefixed page endpoints answering a small JSON page
       descriptor. The browser client renders the page itself.
Why:   Gives the admission pipeline real page routes to gate: by the time a
       handler here runs, the locale is in the path and access has been
       decided.

Routes:
    GET /{locale}
    GET /{locale}/{page...}

Unknown locales answer 404. The descriptor reports the session result the
admission pipeline stored on request.state.
"""

from fastapi import APIRouter, Request
from pydantic import BaseModel

from app.exceptions import NotFoundError
from app.middleware.locale import locale_resolver
from app.services.session_service import SessionFound

router = APIRouter(tags=["Pages"])


class PageResponse(BaseModel):
    locale: str
    path: str
    authenticated: bool
    user_id: int | None = None


def _describe(request: Request, locale: str, path: str) -> PageResponse:
    if locale not in locale_resolver.locales:
        raise NotFoundError("page", request.url.path)
    result = getattr(request.state, "session_result", None)
    if isinstance(result, SessionFound):
        return PageResponse(
            locale=locale, path=path, authenticated=True, user_id=result.session.user_id
        )
    return PageResponse(locale=locale, path=path, authenticated=False)


@router.get("/{locale}", response_model=PageResponse, summary="Locale home page")
async def home_page(locale: str, request: Request) -> PageResponse:
    return _describe(request, locale, "/")


@router.get("/{locale}/{page:path}", response_model=PageResponse, summary="Locale page")
async def page(locale: str, page: str, request: Request) -> PageResponse:
    return _describe(request, locale, "/" + page.strip("/"))
