"""
auth/dependencies.py -- FastAPI Depends() helpers for authentication.

The access token is looked for in priority order:
  1. "accessToken" cookie -- set by POST /auth/login and /auth/refresh.
  2. Authorization: Bearer <token> header -- non-browser clients.

try_get_current_user() is the soft variant (returns None on failure).
get_current_user() wraps it and raises HTTP 401 if unauthenticated. Logout
sits behind get_current_user(), which is what guarantees revoke() is only
called for the identity that owns the request.

Layer rule: no imports from api/ or core/.
  auth/dependencies.py may import from fastapi (for Request/HTTPException)
  because this module is part of the FastAPI dependency injection system.
"""

from __future__ import annotations

from fastapi import HTTPException, Request

from auth.errors import AuthError
from auth.models import User

ACCESS_COOKIE = "accessToken"


def _read_access_token(request: Request) -> str | None:
    token: str | None = request.cookies.get(ACCESS_COOKIE)
    if not token:
        auth_header = request.headers.get("Authorization", "")
        if auth_header.startswith("Bearer "):
            token = auth_header[7:]
    return token or None


def try_get_current_user(request: Request) -> User | None:
    """Authenticate the request by access token. Returns None on any failure.

    Never raises -- callers that need a hard 401 should use get_current_user().
    """
    token = _read_access_token(request)
    if token is None:
        return None
    try:
        claims = request.app.state.issuer.decode_access_token(token)
    except AuthError:
        return None
    return request.app.state.user_store.get_by_id(claims.user_id)


def get_current_user(request: Request) -> User:
    """Require a valid access token. Raises HTTP 401 otherwise.

    Use as a FastAPI dependency:
        @router.post("/auth/logout")
        def logout(user: User = Depends(get_current_user)): ...
    """
    user = try_get_current_user(request)
    if user is None:
        raise HTTPException(
            status_code=401,
            detail={"code": "unauthorized", "message": "Authentication required."},
        )
    return user
