"""
auth/sessions.py -- Login, refresh-token rotation, and logout.

A session is valid while the refresh token held by the client equals the one
stored on the user row and has not expired. Three paths touch the stored
token:

  login   -- verify credentials, issue a pair, overwrite the stored token.
  refresh -- verify the presented token, cross-check it against the stored
             one, then issue a new pair replacing it (rotation-on-use).
  logout  -- clear the stored token.

Refresh steps, in order (the first four are read-only):
  1. extract   cookie first, then request body         -> MissingToken
  2. verify    signature and expiry                    -> SignatureInvalid / Expired
  3. resolve   user named by the sub claim             -> UnknownSubject
  4. compare   presented == stored, byte-for-byte      -> SessionRevoked
  5. rotate    conditional swap of the stored token    -> SessionRevoked on a lost race

Step 4 is what makes an already-rotated token useless. Step 5's conditional
swap is what keeps two concurrent refreshes with the same token from both
succeeding.

This module knows nothing about HTTP. api/routes/v1/auth.py moves tokens in
and out of cookies and maps AuthError to status codes.
"""

from __future__ import annotations

import hmac
import logging
from dataclasses import dataclass

from auth.credentials import PasswordVerifier, authenticate_user, verify_password
from auth.errors import MissingToken, SessionRevoked, UnknownSubject
from auth.models import TokenPair, User
from auth.store import UserStore
from auth.tokens import TokenIssuer

logger = logging.getLogger("sessionvault.auth")


@dataclass(frozen=True)
class LoginResult:
    user: User
    tokens: TokenPair


def extract_refresh_token(cookie_token: str | None, body_token: str | None) -> str:
    """Pick the refresh token to use: trusted cookie first, then body field."""
    for candidate in (cookie_token, body_token):
        if candidate and candidate.strip():
            return candidate.strip()
    raise MissingToken()


class SessionManager:
    """Session lifecycle over a UserStore and a TokenIssuer.

    Usage:
        sessions = SessionManager(store, issuer)
        result = sessions.login("s3cret-pass", username="alice")
        pair = sessions.refresh(cookie_token=result.tokens.refresh_token)
        sessions.logout(result.user.id)
    """

    def __init__(self, store: UserStore, issuer: TokenIssuer, verify: PasswordVerifier = verify_password) -> None:
        self.store = store
        self.issuer = issuer
        self._verify = verify

    def login(self, password: str | None, username: str | None = None, email: str | None = None) -> LoginResult:
        """Authenticate and start a new session, superseding any previous one."""
        user = authenticate_user(self.store, password, username=username, email=email, verify=self._verify)
        tokens = self.issuer.issue(user)
        logger.info("Login succeeded for user_id=%s", user.id)
        return LoginResult(user=user, tokens=tokens)

    def refresh(self, cookie_token: str | None = None, body_token: str | None = None) -> TokenPair:
        """Rotate the session: exchange a valid refresh token for a new pair."""
        presented = extract_refresh_token(cookie_token, body_token)
        claims = self.issuer.decode_refresh_token(presented)

        user = self.store.get_by_id(claims.user_id)
        if user is None:
            logger.info("Refresh rejected: unknown subject user_id=%s", claims.user_id)
            raise UnknownSubject()

        stored = user.refresh_token
        if stored is None or not hmac.compare_digest(stored.encode("utf-8"), presented.encode("utf-8")):
            # Authentic token that is no longer current: logged out, or
            # replayed after it was rotated away.
            logger.warning("Refresh rejected: stale or revoked token for user_id=%s", user.id)
            raise SessionRevoked()

        tokens = self.issuer.issue(user, replacing=presented)
        logger.info("Refresh token rotated for user_id=%s", user.id)
        return tokens

    def logout(self, user_id: int) -> None:
        """Revoke the user's session. Idempotent; an unknown id is a no-op."""
        if not self.store.clear_refresh_token(user_id):
            logger.info("Logout for unknown user_id=%s ignored", user_id)
            return
        logger.info("Session revoked for user_id=%s", user_id)
