# Services package init
"""
EdgeGate Backend — Services Layer
=================================

What:  Business logic between routes (HTTP) and the database/cache.
How:   Stateless classes with a module-level singleton each; routes pass in
       the request's AsyncSession.

Service Inventory:
    - session_service: session lookup (SessionResult), creation, revocation
    - auth_service:    registration, sign-in/out, password reset requests
    - user_service:    user reads (cached) and self-updates
    - post_service:    post CRUD, publish/unpublish, owner checks
    - rate_limiter:    fixed-window counters over the cache, with presets
    - cache:           fail-soft Redis client, read-through helper, key layout
    - passwords:       PBKDF2 hashing and constant-time verification
"""
