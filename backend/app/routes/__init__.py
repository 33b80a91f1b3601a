# Routes package init
"""
EdgeGate Backend — API Routes Package
=====================================

Route Inventory:
    - auth.py:    POST /api/register, /api/auth/sign-in/email, /api/auth/sign-out,
                  /api/auth/password-reset; GET /api/auth/get-session
    - users.py:   /api/users, /api/users/me, /api/users/{id}
    - posts.py:   /api/posts CRUD, /api/posts/{id}/publish|unpublish
    - pages.py:   GET /{locale}, GET /{locale}/{page...}
    - health.py:  GET /api/health

Routes stay thin: read the request, call a service, shape the response.
Page access control is done by the admission middleware; API routes that
need a user depend on `dependencies.get_current_user`.
"""
