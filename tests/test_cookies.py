"""
tests/test_cookies.py -- Session cookie attributes.

Covers:
  - set_session_cookies / clear_session_cookies carry Secure only when asked
  - clearing uses the same HttpOnly / SameSite attributes as setting
  - login and logout emit Secure cookies when Settings.secure_cookies is on
"""

from __future__ import annotations

import pytest
from fastapi import Response
from fastapi.testclient import TestClient

from api.cookies import clear_session_cookies, set_session_cookies
from api.routes.v1 import auth as auth_routes
from auth.models import TokenPair
from core.config import get_settings

PAIR = TokenPair(
    access_token="access-value",
    refresh_token="refresh-value",
    access_expires_in=900,
    refresh_expires_in=864000,
)


def _headers_by_name(set_cookie_headers) -> dict[str, str]:
    return {header.split("=", 1)[0].strip(): header.lower() for header in set_cookie_headers}


@pytest.mark.parametrize("secure", [True, False])
def test_set_session_cookies_secure_flag(secure: bool) -> None:
    resp = Response()
    set_session_cookies(resp, PAIR, secure=secure)
    headers = _headers_by_name(resp.headers.getlist("set-cookie"))
    assert set(headers) == {"accessToken", "refreshToken"}
    for header in headers.values():
        assert ("; secure" in header) is secure
        assert "httponly" in header
        assert "samesite=strict" in header
    assert "max-age=900" in headers["accessToken"]
    assert "max-age=864000" in headers["refreshToken"]


@pytest.mark.parametrize("secure", [True, False])
def test_clear_session_cookies_matches_set_attributes(secure: bool) -> None:
    resp = Response()
    clear_session_cookies(resp, secure=secure)
    headers = _headers_by_name(resp.headers.getlist("set-cookie"))
    assert set(headers) == {"accessToken", "refreshToken"}
    for header in headers.values():
        assert ("; secure" in header) is secure
        assert "httponly" in header
        assert "samesite=strict" in header
        assert "max-age=0" in header


@pytest.fixture()
def secure_cookies(monkeypatch):
    """Serve the auth routes with production cookie settings."""
    secure = get_settings().model_copy(update={"secure_cookies": True})
    monkeypatch.setattr(auth_routes, "get_settings", lambda: secure)


def test_login_and_logout_emit_secure_cookies(client: TestClient, secure_cookies) -> None:
    body = {
        "username": "secure_user",
        "email": "secure_user@example.com",
        "full_name": "Secure User",
        "password": "https-only-please",
        "avatar": "https://img.example.com/s.png",
    }
    assert client.post("/api/v1/auth/register", json=body).status_code == 201

    login = client.post("/api/v1/auth/login", json={"username": "secure_user", "password": body["password"]})
    client.cookies.clear()
    assert login.status_code == 200, login.text
    for header in _headers_by_name(login.headers.get_list("set-cookie")).values():
        assert "; secure" in header

    logout = client.post(
        "/api/v1/auth/logout",
        headers={"Authorization": f"Bearer {login.json()['access_token']}"},
    )
    client.cookies.clear()
    assert logout.status_code == 200
    cleared = _headers_by_name(logout.headers.get_list("set-cookie"))
    assert set(cleared) == {"accessToken", "refreshToken"}
    for header in cleared.values():
        assert "; secure" in header
