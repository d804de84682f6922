"""
auth/credentials.py -- Password hashing and credential verification.

Passwords: bcrypt used directly (no passlib wrapper). bcrypt.checkpw compares
digests in constant time, so a mismatch does not leak how many bytes matched.

Timing equalization [C1]: when no account matches the submitted identifier we
still run bcrypt against _DUMMY_HASH. Response time is then the same for
"no such user" and "wrong password", and the two cases also share one
external error code (bad_credentials). InvalidCredentials.reason keeps them
apart in the logs.

The verifier takes the password check as a parameter (verify=). The session
core treats hashing as an opaque capability; tests can pass a stub.

Layer rule: no imports from api/ or core/.
"""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import TYPE_CHECKING

import bcrypt

from auth.errors import InvalidCredentials, MissingField

if TYPE_CHECKING:
    from auth.models import User
    from auth.store import UserStore

logger = logging.getLogger("sessionvault.auth")

PasswordVerifier = Callable[[str, str], bool]


def hash_password(plain: str) -> str:
    """Return a bcrypt hash of the given plaintext password.

    bcrypt truncates inputs past 72 bytes. The register route caps passwords
    at 72 characters so nothing is silently dropped for ASCII input.
    """
    return bcrypt.hashpw(plain.encode("utf-8"), bcrypt.gensalt()).decode("utf-8")


def verify_password(plain: str, hashed: str) -> bool:
    """Return True if the plaintext password matches the bcrypt hash."""
    try:
        return bcrypt.checkpw(plain.encode("utf-8"), hashed.encode("utf-8"))
    except ValueError:
        # Malformed stored hash.
        return False


# Computed once at import so the first failed login is not measurably
# slower than later ones.
_DUMMY_HASH: str = hash_password("sessionvault_timing_dummy")


def authenticate_user(
    store: UserStore,
    password: str | None,
    username: str | None = None,
    email: str | None = None,
    verify: PasswordVerifier = verify_password,
) -> User:
    """Return the user matching (username or email, password).

    Either identifier is enough. Blank strings count as missing.

    Raises:
        MissingField:       no identifier or no password (no lookup is made).
        InvalidCredentials: no matching account, or wrong password.
    """
    username = (username or "").strip() or None
    email = (email or "").strip() or None
    if not password or (username is None and email is None):
        raise MissingField()

    user = store.find_by_username_or_email(username=username, email=email)
    if user is None:
        # Equalize timing -- do NOT return before running the hash check [C1]
        verify(password, _DUMMY_HASH)
        logger.info("Login rejected: not registered (username=%r email=%r)", username, email)
        raise InvalidCredentials(reason="not_registered")
    if not verify(password, user.hashed_password):
        logger.info("Login rejected: wrong password (user_id=%s)", user.id)
        raise InvalidCredentials(reason="wrong_password")
    return user
