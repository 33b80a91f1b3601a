# Middleware package init
"""
EdgeGate Backend — Middleware Package
=====================================

What:  Cross-cutting concerns applied to every request.

Middleware Chain (execution order):
    Request → [Request ID] → [Logging] → [Admission] → [GZip] → Route Handler

    1. Request ID first: every later log line and error body can carry it
    2. Logging: sees the final status, including admission short-circuits
    3. Admission: CORS preflight, CSRF, locale redirect, session gating

Admission building blocks (plain classes, no Starlette dependency beyond
Request/Response):
    locale.py  LocaleResolver   prefix detection, Accept-Language, stripping
    csrf.py    CsrfGuard        double-submit cookie validation and issuing
    cors.py    CorsPolicy       preflight answers and response decoration
    paths.py   PathClassifier   PUBLIC / AUTH_ONLY / PROTECTED / API_PUBLIC
"""
