from __future__ import annotations

import pytest
from sqlalchemy import select

from chatgate.domain.models import AccessLogEntry, UserProfile
from chatgate.services.auth.provider import AuthUser
from chatgate.tests.utils.app import BLOCKED_IP, headers_for


async def _profile(harness, user_id: str) -> UserProfile | None:
    async with harness.session() as session:
        result = await session.execute(select(UserProfile).where(UserProfile.id == user_id))
        return result.scalar_one_or_none()


@pytest.mark.asyncio
async def test_login_sets_cookies_and_tracks_profile(harness, allowed_ip) -> None:
    harness.auth.add_account("ada@example.com", "pw", AuthUser(id="u-ada", email="ada@example.com", full_name="Ada"))
    async with harness.client() as client:
        response = await client.post(
            "/api/auth/login",
            json={"email": "ada@example.com", "password": "pw"},
            headers=headers_for(allowed_ip),
        )

    assert response.status_code == 200
    assert response.json()["user"]["id"] == "u-ada"
    cookies = response.headers.get_list("set-cookie")
    assert any(c.startswith("sb-access-token=token-u-ada") for c in cookies)
    assert any(c.startswith("sb-refresh-token=refresh-u-ada") for c in cookies)

    profile = await _profile(harness, "u-ada")
    assert profile is not None
    assert profile.email == "ada@example.com"
    assert profile.last_login is not None
    # Credential endpoints skip the session layer.
    assert harness.auth.lookups == 0


@pytest.mark.asyncio
async def test_login_failures(harness, allowed_ip) -> None:
    async with harness.client() as client:
        missing = await client.post(
            "/api/auth/login", json={"email": "ada@example.com"}, headers=headers_for(allowed_ip)
        )
        wrong = await client.post(
            "/api/auth/login",
            json={"email": "ada@example.com", "password": "bad"},
            headers=headers_for(allowed_ip),
        )

    assert missing.status_code == 400
    assert missing.json() == {"error": "Email and password are required"}
    assert wrong.status_code == 401
    assert "Invalid email or password" in wrong.json()["error"]


@pytest.mark.asyncio
@pytest.mark.parametrize("path", ["/api/auth/login", "/api/auth/signup"])
async def test_credential_endpoints_deny_unlisted_ip(harness, path) -> None:
    harness.auth.add_account("ada@example.com", "pw", AuthUser(id="u-ada", email="ada@example.com"))
    async with harness.client() as client:
        response = await client.post(
            path, json={"email": "ada@example.com", "password": "pw"}, headers=headers_for(BLOCKED_IP)
        )

    assert response.status_code == 307
    assert response.headers["location"] == "/access-denied"
    assert not any(c.startswith("sb-access-token=") for c in response.headers.get_list("set-cookie"))
    assert harness.auth.credential_attempts == 0
    assert harness.auth.lookups == 0

    async with harness.session() as session:
        rows = (await session.execute(select(AccessLogEntry))).scalars().all()
    assert [(row.path, row.access_granted) for row in rows] == [(path, False)]


@pytest.mark.asyncio
async def test_signup_creates_profile(harness, allowed_ip) -> None:
    async with harness.client() as client:
        response = await client.post(
            "/api/auth/signup",
            json={"email": "grace@example.com", "password": "pw", "full_name": "Grace"},
            headers=headers_for(allowed_ip),
        )
    assert response.status_code == 201
    user_id = response.json()["user"]["id"]
    profile = await _profile(harness, user_id)
    assert profile is not None
    assert profile.full_name == "Grace"


@pytest.mark.asyncio
async def test_callback_exchanges_code(harness) -> None:
    harness.auth.codes["code-1"] = AuthUser(id="u-cb", email="cb@example.com")
    async with harness.client() as client:
        ok = await client.get("/api/auth/callback?code=code-1")
        bad = await client.get("/api/auth/callback?code=nope")
        none = await client.get("/api/auth/callback")

    assert ok.status_code == 307
    assert ok.headers["location"] == "/"
    assert any(c.startswith("sb-access-token=token-u-cb") for c in ok.headers.get_list("set-cookie"))
    assert bad.headers["location"] == "/login"
    assert none.headers["location"] == "/"
    assert await _profile(harness, "u-cb") is not None


@pytest.mark.asyncio
async def test_logout_revokes_and_clears_cookies(harness, signed_in) -> None:
    async with harness.client() as client:
        response = await client.post("/api/auth/logout", headers=headers_for(BLOCKED_IP, cookies=signed_in))

    assert response.status_code == 200
    assert response.json() == {"success": True}
    assert harness.auth.signed_out == ["valid-token"]
    cleared = response.headers.get_list("set-cookie")
    assert any(c.startswith("sb-access-token=") and "Max-Age=0" in c for c in cleared)
