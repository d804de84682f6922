"""
api/routes/v1/auth.py -- Authentication REST endpoints.

Routes:
  POST  /api/v1/auth/register  -- create an account; 201, 409 on duplicate
  POST  /api/v1/auth/login     -- username or email + password; sets both cookies
  POST  /api/v1/auth/refresh   -- rotate the refresh token; sets both cookies
  POST  /api/v1/auth/logout    -- revoke the session; clears both cookies
  GET   /api/v1/auth/me        -- current user (requires access token)
  PATCH /api/v1/auth/me        -- update profile fields (requires access token)

The routes are thin: SessionManager does the work and raises AuthError
subclasses, which api/main.py turns into status codes. Handlers here only
move tokens between cookies/bodies and the core.

Security:
  [H2] POST /login and /refresh are rate-limited per IP (Settings).
  [C1] SessionManager.login() goes through authenticate_user(), which
       provides timing equalization -- never inline the lookup + check here.
  [M5] Cache-Control: no-store on every response that carries tokens.
"""

from __future__ import annotations

from typing import Optional

from fastapi import APIRouter, Depends, HTTPException, Request
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError

from api.cookies import REFRESH_COOKIE, clear_session_cookies, set_session_cookies
from api.limiter import limiter, login_limit, refresh_limit
from api.models import (
    LoginRequest,
    LoginResponse,
    MessageResponse,
    ProfileUpdate,
    RefreshRequest,
    RegisterRequest,
    TokenResponse,
    UserResponse,
)
from auth.credentials import hash_password
from auth.dependencies import get_current_user
from auth.models import User
from auth.sessions import SessionManager
from auth.store import UserStore
from core.config import get_settings

# Auth policy:
# - POST  /api/v1/auth/register:  public
# - POST  /api/v1/auth/login:     public, rate-limited
# - POST  /api/v1/auth/refresh:   public (the refresh token IS the credential), rate-limited
# - POST  /api/v1/auth/logout:    requires access token (get_current_user)
# - GET   /api/v1/auth/me:        requires access token (get_current_user)
# - PATCH /api/v1/auth/me:        requires access token (get_current_user)
router = APIRouter()


# ---------------------------------------------------------------------------
# Public endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/register", response_model=UserResponse, status_code=201)
def register(request: Request, body: RegisterRequest) -> UserResponse:
    """Create an account. No session is started -- the client logs in next."""
    user_store: UserStore = request.app.state.user_store
    new_user = User(
        username=body.username,
        email=body.email,
        full_name=body.full_name,
        hashed_password=hash_password(body.password),
        avatar=body.avatar,
        cover_image=body.cover_image,
    )
    try:
        user_id = user_store.create_user(new_user)
    except IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "A user with that username or email already exists."},
        ) from exc
    return _user_to_response(user_store.get_by_id(user_id))


@router.post("/auth/login", response_model=LoginResponse)
@limiter.limit(login_limit)  # [H2] under @router so the registered endpoint is the limited one
def login(request: Request, body: LoginRequest) -> JSONResponse:
    """Authenticate with username or email plus password; set session cookies.

    Unknown account and wrong password produce the same bad_credentials
    error so the response does not reveal which accounts exist.
    """
    sessions: SessionManager = request.app.state.sessions
    result = sessions.login(body.password, username=body.username, email=body.email)

    pair = result.tokens
    resp = JSONResponse(
        status_code=200,
        content=LoginResponse(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.access_expires_in,
            user=UserResponse.from_user(result.user),
        ).model_dump(),
    )
    set_session_cookies(resp, pair, secure=get_settings().secure_cookies)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


@router.post("/auth/refresh", response_model=TokenResponse)
@limiter.limit(refresh_limit)  # [H2]
def refresh(request: Request, body: Optional[RefreshRequest] = None) -> JSONResponse:
    """Exchange the current refresh token for a new pair.

    The refreshToken cookie is read first; the JSON refresh_token field is a
    fallback for clients without cookies. The presented token is single-use:
    a second refresh with it answers session_revoked.
    """
    sessions: SessionManager = request.app.state.sessions
    pair = sessions.refresh(
        cookie_token=request.cookies.get(REFRESH_COOKIE),
        body_token=body.refresh_token if body is not None else None,
    )
    resp = JSONResponse(status_code=200, content=TokenResponse.from_pair(pair).model_dump())
    set_session_cookies(resp, pair, secure=get_settings().secure_cookies)
    resp.headers["Cache-Control"] = "no-store"  # [M5]
    return resp


# ---------------------------------------------------------------------------
# Authenticated endpoints
# ---------------------------------------------------------------------------


@router.post("/auth/logout", response_model=MessageResponse)
def logout(request: Request, current_user: User = Depends(get_current_user)) -> JSONResponse:
    """Revoke the caller's session and clear both cookies.

    Safe to repeat: logging out an already-revoked session still returns 200.
    """
    sessions: SessionManager = request.app.state.sessions
    sessions.logout(current_user.id)
    resp = JSONResponse(content=MessageResponse(message="Logged out.").model_dump())
    clear_session_cookies(resp, secure=get_settings().secure_cookies)
    return resp


@router.get("/auth/me", response_model=UserResponse)
def me(current_user: User = Depends(get_current_user)) -> UserResponse:
    """Return the currently authenticated user."""
    return UserResponse.from_user(current_user)


@router.patch("/auth/me", response_model=UserResponse)
def update_me(
    request: Request,
    body: ProfileUpdate,
    current_user: User = Depends(get_current_user),
) -> UserResponse:
    """Update profile fields. Password and session state are never touched here."""
    user_store: UserStore = request.app.state.user_store
    updates = body.model_dump(exclude_none=True)
    if not updates:
        raise HTTPException(
            status_code=400,
            detail={"code": "no_changes", "message": "No fields to update."},
        )
    try:
        updated = user_store.update_user(current_user.id, **updates)
    except IntegrityError as exc:
        raise HTTPException(
            status_code=409,
            detail={"code": "conflict", "message": "That email is already in use."},
        ) from exc
    return _user_to_response(updated)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _user_to_response(user: User | None) -> UserResponse:
    if user is None:
        raise HTTPException(
            status_code=404,
            detail={"code": "not_found", "message": "User not found."},
        )
    return UserResponse.from_user(user)
