"""
API request and response models for SessionVault REST endpoints.

These Pydantic v2 models define the HTTP transport contract. They are
intentionally separate from the dataclasses in auth/models.py, which own the
internal domain representation. Route handlers map between the two.

UserResponse never carries hashed_password or refresh_token: the only way
to turn a User into JSON is UserResponse.from_user().
"""

from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator

from auth.models import TokenPair, User

# ---------------------------------------------------------------------------
# Constants
# ---------------------------------------------------------------------------

USERNAME_PATTERN = r"^[A-Za-z0-9_.-]{3,30}$"
# Deliberately loose: one @, something on each side, a dot in the domain.
EMAIL_PATTERN = r"^[^@\s]+@[^@\s]+\.[^@\s]+$"


# ---------------------------------------------------------------------------
# Request models
# ---------------------------------------------------------------------------


class RegisterRequest(BaseModel):
    """Request body for POST /api/v1/auth/register.

    avatar / cover_image are references (URLs) to images already uploaded to
    object storage. Passwords are capped at 72 UTF-8 bytes, bcrypt's input
    limit; max_length counts characters, so the byte check is separate.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    username: str = Field(pattern=USERNAME_PATTERN)
    email: str = Field(max_length=255, pattern=EMAIL_PATTERN)
    full_name: str = Field(min_length=1, max_length=255)
    password: str = Field(min_length=8, max_length=72)
    avatar: str = Field(min_length=1, max_length=2048)
    cover_image: str = Field(default="", max_length=2048)

    @field_validator("password")
    @classmethod
    def password_fits_bcrypt(cls, v: str) -> str:
        if len(v.encode("utf-8")) > 72:
            raise ValueError("password must be at most 72 bytes when UTF-8 encoded")
        return v


class LoginRequest(BaseModel):
    """Request body for POST /api/v1/auth/login.

    Every field is optional at the schema level. Whether enough was supplied
    (one identifier plus a password) is decided by the session core, which
    answers with missing_field rather than a generic validation error.
    """

    model_config = ConfigDict(str_strip_whitespace=True)

    username: Optional[str] = Field(default=None, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255)
    password: Optional[str] = Field(default=None, max_length=255)


class RefreshRequest(BaseModel):
    """Optional body for POST /api/v1/auth/refresh. The cookie wins if both are sent."""

    refresh_token: Optional[str] = Field(default=None, max_length=4096)


class ProfileUpdate(BaseModel):
    """Request body for PATCH /api/v1/auth/me. Omitted fields are left untouched."""

    model_config = ConfigDict(str_strip_whitespace=True)

    full_name: Optional[str] = Field(default=None, min_length=1, max_length=255)
    email: Optional[str] = Field(default=None, max_length=255, pattern=EMAIL_PATTERN)
    avatar: Optional[str] = Field(default=None, min_length=1, max_length=2048)
    cover_image: Optional[str] = Field(default=None, max_length=2048)


# ---------------------------------------------------------------------------
# Response models
# ---------------------------------------------------------------------------


class UserResponse(BaseModel):
    """Public view of a user. No password hash, no refresh token."""

    model_config = ConfigDict(frozen=True)

    id: int
    username: str
    email: str
    full_name: str
    avatar: str
    cover_image: str
    created_at: str
    updated_at: str

    @classmethod
    def from_user(cls, user: User) -> "UserResponse":
        return cls(
            id=user.id,
            username=user.username,
            email=user.email,
            full_name=user.full_name,
            avatar=user.avatar,
            cover_image=user.cover_image,
            created_at=user.created_at or "",
            updated_at=user.updated_at or "",
        )


class TokenResponse(BaseModel):
    """Response for POST /api/v1/auth/refresh.

    The same tokens are also set as httpOnly cookies; the body copy is for
    clients that cannot use cookies.
    """

    model_config = ConfigDict(frozen=True)

    access_token: str
    refresh_token: str
    token_type: str = "bearer"
    expires_in: int

    @classmethod
    def from_pair(cls, pair: TokenPair) -> "TokenResponse":
        return cls(
            access_token=pair.access_token,
            refresh_token=pair.refresh_token,
            expires_in=pair.access_expires_in,
        )


class LoginResponse(TokenResponse):
    """Response for POST /api/v1/auth/login: the token pair plus the user."""

    user: UserResponse


class MessageResponse(BaseModel):
    model_config = ConfigDict(frozen=True)

    message: str


class ErrorDetail(BaseModel):
    """Machine-readable error payload."""

    model_config = ConfigDict(frozen=True)

    code: str
    message: str
    detail: Optional[str] = None


class ErrorResponse(BaseModel):
    """Top-level error envelope returned on 4xx/5xx responses."""

    model_config = ConfigDict(frozen=True)

    error: ErrorDetail


class HealthResponse(BaseModel):
    """Response for GET /api/v1/health."""

    model_config = ConfigDict(frozen=True)

    status: str = "healthy"
    version: str
    components: dict[str, str]
