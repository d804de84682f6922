"""
auth/tokens.py -- Access/refresh token minting, verification, and persistence.

Security design decisions:
  JWT: python-jose with HS256. Access and refresh tokens are signed with
       DIFFERENT secrets, so a leaked access secret cannot forge a refresh
       token and vice versa. Each token also carries a "type" claim and a
       random jti: two pairs minted in the same second never collide, which
       matters because rotation compares tokens byte-for-byte.

  Claims: the access token's username/email are a snapshot taken at mint
       time and go stale after a profile update. Nothing server-side reads
       them; requests resolve the user from "sub" against the store.

  Lifetimes: access tokens live minutes, refresh tokens days. TokenConfig
       refuses a refresh TTL that does not exceed the access TTL.

  Persistence: issue() writes the refresh half to the user row before
       returning. If that write fails the tokens are discarded and
       TokenPersistenceFailed is raised -- an access token must never reach a
       client without a stored refresh token that logout can revoke.

  Configuration is an explicit TokenConfig passed at construction, not
       module-level state, so tests can build issuers with any secrets/TTLs.

Layer rule: no imports from api/. Import from core/ is allowed -- core/ is
the kernel and has no reverse dependencies.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import TYPE_CHECKING

from jose import ExpiredSignatureError, JWTError, jwt
from sqlalchemy.exc import SQLAlchemyError

from auth.errors import Expired, SessionRevoked, SignatureInvalid, TokenPersistenceFailed
from auth.models import TokenClaims, TokenPair

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore
    from core.config import Settings

logger = logging.getLogger("sessionvault.auth")

ACCESS = "access"
REFRESH = "refresh"


@dataclass(frozen=True)
class TokenConfig:
    """Signing secrets and lifetimes for one TokenIssuer."""

    access_secret: str
    refresh_secret: str
    access_ttl_seconds: int
    refresh_ttl_seconds: int
    algorithm: str = "HS256"

    def __post_init__(self) -> None:
        if self.access_secret == self.refresh_secret:
            raise ValueError("access and refresh secrets must differ")
        if self.access_ttl_seconds <= 0:
            raise ValueError("access TTL must be positive")
        if self.refresh_ttl_seconds <= self.access_ttl_seconds:
            raise ValueError("refresh TTL must exceed access TTL")

    @classmethod
    def from_settings(cls, settings: Settings) -> TokenConfig:
        return cls(
            access_secret=settings.access_token_secret,
            refresh_secret=settings.refresh_token_secret,
            access_ttl_seconds=settings.access_token_expire_seconds,
            refresh_ttl_seconds=settings.refresh_token_expire_seconds,
        )


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TokenIssuer:
    """Mints and verifies token pairs, and writes the refresh half to the store.

    Usage:
        issuer = TokenIssuer(TokenConfig.from_settings(get_settings()), store)
        pair = issuer.issue(user)                         # login
        pair = issuer.issue(user, replacing=old_refresh)  # rotation
        claims = issuer.decode_access_token(pair.access_token)
    """

    def __init__(self, config: TokenConfig, store: UserStore, clock: Callable[[], datetime] = _utcnow) -> None:
        self.config = config
        self.store = store
        self._clock = clock

    # ------------------------------------------------------------------
    # Minting
    # ------------------------------------------------------------------

    def mint(self, user: User) -> TokenPair:
        """Sign a fresh access/refresh pair for user. Pure -- no store access."""
        now = self._clock()
        cfg = self.config
        subject = str(user.id)
        access_claims = {
            "sub": subject,
            "type": ACCESS,
            "username": user.username,
            "email": user.email,
            "iat": now,
            "exp": now + timedelta(seconds=cfg.access_ttl_seconds),
            "jti": secrets.token_hex(16),
        }
        refresh_claims = {
            "sub": subject,
            "type": REFRESH,
            "iat": now,
            "exp": now + timedelta(seconds=cfg.refresh_ttl_seconds),
            "jti": secrets.token_hex(16),
        }
        return TokenPair(
            access_token=jwt.encode(access_claims, cfg.access_secret, algorithm=cfg.algorithm),
            refresh_token=jwt.encode(refresh_claims, cfg.refresh_secret, algorithm=cfg.algorithm),
            access_expires_in=cfg.access_ttl_seconds,
            refresh_expires_in=cfg.refresh_ttl_seconds,
        )

    def issue(self, user: User, replacing: str | None = None) -> TokenPair:
        """Mint a pair and persist its refresh token for user.

        replacing=None overwrites whatever is stored (login). With replacing
        set, the write only happens if the stored token still equals it
        (rotation); losing that race raises SessionRevoked.

        Raises:
            SessionRevoked:         replacing no longer matches the stored token.
            TokenPersistenceFailed: the user row is gone or the write errored.
        """
        pair = self.mint(user)
        try:
            if replacing is None:
                written = self.store.set_refresh_token(user.id, pair.refresh_token)
            else:
                written = self.store.swap_refresh_token(user.id, replacing, pair.refresh_token)
                if not written and self.store.get_by_id(user.id) is not None:
                    logger.warning("Refresh rotation lost race for user_id=%s", user.id)
                    raise SessionRevoked()
        except SQLAlchemyError as exc:
            logger.error("Refresh token write failed for user_id=%s: %s", user.id, exc)
            raise TokenPersistenceFailed() from exc
        if not written:
            logger.error("Refresh token write failed for user_id=%s: user not found", user.id)
            raise TokenPersistenceFailed()
        return pair

    # ------------------------------------------------------------------
    # Verification
    # ------------------------------------------------------------------

    def decode_access_token(self, token: str) -> TokenClaims:
        """Verify an access token. Raises Expired or SignatureInvalid."""
        return self._decode(token, self.config.access_secret, ACCESS)

    def decode_refresh_token(self, token: str) -> TokenClaims:
        """Verify a refresh token. Raises Expired or SignatureInvalid."""
        return self._decode(token, self.config.refresh_secret, REFRESH)

    def _decode(self, token: str, secret: str, expected_type: str) -> TokenClaims:
        # jose checks the signature before exp, so a forged token that is also
        # past its exp still reports SignatureInvalid.
        try:
            payload = jwt.decode(token, secret, algorithms=[self.config.algorithm])
        except ExpiredSignatureError as exc:
            raise Expired() from exc
        except JWTError as exc:
            raise SignatureInvalid() from exc

        if payload.get("type") != expected_type:
            raise SignatureInvalid()
        try:
            return TokenClaims(
                user_id=int(payload["sub"]),
                token_type=payload["type"],
                issued_at=datetime.fromtimestamp(payload["iat"], tz=timezone.utc),
                expires_at=datetime.fromtimestamp(payload["exp"], tz=timezone.utc),
                jti=payload["jti"],
            )
        except (KeyError, TypeError, ValueError) as exc:
            raise SignatureInvalid() from exc
