"""
auth/errors.py -- Typed failures of the authentication core.

Every failure of login, refresh, and logout is raised as an AuthError
subclass carrying a stable machine-readable code. Status codes are NOT
defined here: the core never touches transport framing. api/main.py owns the
class -> HTTP status mapping.

None of these are retried. Each one is a definitive answer for the client
(re-login after SessionRevoked, fix the request after MissingField), except
TokenPersistenceFailed which is a server fault.

Layer rule: stdlib only.
"""

from __future__ import annotations


class AuthError(Exception):
    """Base class for authentication failures."""

    code: str = "unauthorized"
    message: str = "Authentication failed."

    def __init__(self, message: str | None = None) -> None:
        super().__init__(message or self.message)
        if message is not None:
            self.message = message


class MissingField(AuthError):
    code = "missing_field"
    message = "Username or email, and password, are required."


class InvalidCredentials(AuthError):
    """Unknown identifier or wrong password.

    Both cases share one code and message so the response does not reveal
    whether an account exists. reason keeps them apart for logging only:
    "not_registered" or "wrong_password".
    """

    code = "bad_credentials"
    message = "Invalid username, email or password."

    def __init__(self, reason: str) -> None:
        super().__init__()
        self.reason = reason


class MissingToken(AuthError):
    code = "missing_token"
    message = "Refresh token is required."


class SignatureInvalid(AuthError):
    code = "invalid_token"
    message = "Token is invalid."


class Expired(AuthError):
    code = "token_expired"
    message = "Token has expired."


class UnknownSubject(AuthError):
    code = "unknown_subject"
    message = "Token subject no longer exists."


class SessionRevoked(AuthError):
    """The token was authentic but is no longer the stored one.

    Raised after logout, and when a refresh token that was already rotated
    away is presented again (possible theft).
    """

    code = "session_revoked"
    message = "Session has been revoked. Please log in again."


class TokenPersistenceFailed(AuthError):
    """The refresh token could not be written, so no tokens may be delivered."""

    code = "token_persistence_failed"
    message = "Could not start a session. Please try again."
