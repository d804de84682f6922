"""
api/cookies.py -- Session cookie transport.

Both tokens travel as cookies named accessToken and refreshToken:
  httponly=True:      JS cannot read them (XSS mitigation).
  samesite="strict":  never sent on cross-site requests (CSRF mitigation for
                      the refresh and logout POSTs).
  secure:             HTTPS only when Settings.secure_cookies (on by default
                      outside DEBUG).
  max_age:            each cookie expires with its token.

Clearing uses the same attribute set; browsers only drop a cookie when the
deletion matches the attributes it was set with.
"""

from __future__ import annotations

from fastapi import Response

from auth.dependencies import ACCESS_COOKIE
from auth.models import TokenPair

REFRESH_COOKIE = "refreshToken"


def set_session_cookies(response: Response, pair: TokenPair, secure: bool) -> None:
    """Write both tokens of pair as httpOnly cookies on response."""
    for name, value, max_age in (
        (ACCESS_COOKIE, pair.access_token, pair.access_expires_in),
        (REFRESH_COOKIE, pair.refresh_token, pair.refresh_expires_in),
    ):
        response.set_cookie(
            name,
            value=value,
            httponly=True,
            samesite="strict",
            secure=secure,
            max_age=max_age,
        )


def clear_session_cookies(response: Response, secure: bool) -> None:
    """Tell the client to discard both session cookies."""
    for name in (ACCESS_COOKIE, REFRESH_COOKIE):
        response.delete_cookie(name, httponly=True, samesite="strict", secure=secure)
