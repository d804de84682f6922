"""
auth/models.py -- Domain dataclasses for authentication entities.

Pattern: Data class (pure data container, zero logic). Stores and the session
manager do the work; these only own the shape.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime


@dataclass
class User:
    """One account.

    username and email are stored lower-cased; the store normalizes on write
    and on lookup so "Alice" and "alice" are the same identity.

    refresh_token holds the single currently-valid refresh token, or None when
    no session is live (never logged in, or logged out). Only the token issuer
    and logout are allowed to change it.

    avatar / cover_image are references to already-uploaded images. The
    upload itself happens outside this service.
    """

    username: str
    email: str
    full_name: str
    hashed_password: str
    id: int | None = None
    avatar: str = ""
    cover_image: str = ""
    refresh_token: str | None = None
    created_at: str | None = None
    updated_at: str | None = None


@dataclass(frozen=True)
class TokenPair:
    """An access/refresh pair minted in one call.

    Never persisted as an object -- only refresh_token is written to the
    user row. The *_expires_in values are the TTLs in seconds, used for
    cookie max_age and the expires_in response field.
    """

    access_token: str
    refresh_token: str
    access_expires_in: int
    refresh_expires_in: int


@dataclass(frozen=True)
class TokenClaims:
    """Verified claims of a decoded token."""

    user_id: int
    token_type: str  # "access" or "refresh"
    issued_at: datetime
    expires_at: datetime
    jti: str
