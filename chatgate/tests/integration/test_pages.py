from __future__ import annotations

import pytest

from chatgate.tests.utils.app import BLOCKED_IP, headers_for


@pytest.mark.asyncio
async def test_health(harness) -> None:
    async with harness.client() as client:
        response = await client.get("/health")
    assert response.status_code == 200
    assert response.json() == {"status": "ok"}
    assert response.headers["x-request-id"]


@pytest.mark.asyncio
async def test_request_id_is_preserved(harness) -> None:
    async with harness.client() as client:
        response = await client.get("/health", headers={"X-Request-Id": "req-123"})
    assert response.headers["x-request-id"] == "req-123"


@pytest.mark.asyncio
async def test_access_denied_page_shows_blocked_ip(harness) -> None:
    async with harness.client() as client:
        with_cookie = await client.get(
            "/access-denied", headers=headers_for(BLOCKED_IP, cookies={"blocked_ip": BLOCKED_IP})
        )
        without_cookie = await client.get("/access-denied")

    assert with_cookie.status_code == 200
    assert BLOCKED_IP in with_cookie.text
    assert "administrator" in with_cookie.text
    assert "Unknown" in without_cookie.text


@pytest.mark.asyncio
async def test_login_and_signup_pages_render(harness) -> None:
    async with harness.client() as client:
        login = await client.get("/login")
        signup = await client.get("/signup")
    assert login.status_code == 200
    assert "/api/auth/login" in login.text
    assert signup.status_code == 200
    assert "/api/auth/signup" in signup.text


@pytest.mark.asyncio
async def test_chat_page_sends_session_and_fingerprint(harness, allowed_ip, signed_in) -> None:
    async with harness.client() as client:
        response = await client.get("/", headers=headers_for(allowed_ip, cookies=signed_in))
    assert response.status_code == 200
    assert "/api/chat" in response.text
    assert "JSON.stringify({message, sessionId, fingerprint})" in response.text
    assert "chat_fingerprint" in response.text
