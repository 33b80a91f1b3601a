"""
EdgeGate Backend — Application Package Initializer
==================================================

What: Marks the `app` directory as a Python package.
Who:  Imported by uvicorn (app.main:app), Alembic and pytest.

Architecture Note:
    ┌─────────────────────────────────────┐
    │   Middleware (Admission Pipeline)   │  ← CSRF, CORS, locale, gating
    ├─────────────────────────────────────┤
    │           Routes (API Layer)        │  ← HTTP concerns only
    ├─────────────────────────────────────┤
    │         Services (Business Logic)   │  ← sessions, auth, posts, limits
    ├─────────────────────────────────────┤
    │       Models & Schemas (Data)       │  ← SQLAlchemy ORM + Pydantic
    ├─────────────────────────────────────┤
    │   Database & Cache (Persistence)    │  ← async SQLAlchemy, Redis
    └─────────────────────────────────────┘

    The admission pipeline decides whether a request reaches a route at
    all; routes assume it already ran.
"""

__version__ = "1.0.0"
