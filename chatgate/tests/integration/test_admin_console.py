from __future__ import annotations

from datetime import timedelta

import pytest
from sqlalchemy import func, select

from chatgate.domain.models import ChatSession, UserProfile, WhitelistEntry, utc_now
from chatgate.services.relay import ChatTurn
from chatgate.tests.utils.app import ADMIN_SECRET, headers_for


def _admin_headers() -> dict[str, str]:
    return headers_for("192.0.2.50", cookies={"admin_key": ADMIN_SECRET})


@pytest.mark.asyncio
async def test_admin_login_sets_strict_cookie(harness) -> None:
    async with harness.client() as client:
        missing = await client.post("/api/admin/login", json={})
        wrong = await client.post("/api/admin/login", json={"secretKey": "nope"})
        ok = await client.post("/api/admin/login", json={"secretKey": ADMIN_SECRET})
        logout = await client.post("/api/admin/logout")

    assert missing.status_code == 400
    assert missing.json() == {"error": "Secret key is required"}
    assert wrong.status_code == 401
    assert wrong.json() == {"error": "Invalid secret key"}
    assert ok.status_code == 200
    assert ok.json() == {"success": True}
    set_cookie = ok.headers["set-cookie"]
    assert f"admin_key={ADMIN_SECRET}" in set_cookie
    assert "HttpOnly" in set_cookie
    assert "SameSite=strict" in set_cookie
    assert "Max-Age=86400" in set_cookie
    assert "admin_key=" in logout.headers["set-cookie"]


@pytest.mark.asyncio
async def test_admin_api_rejects_missing_or_wrong_key(harness) -> None:
    async with harness.client() as client:
        anonymous = await client.get("/api/admin/ip-whitelist", headers=headers_for("192.0.2.50"))
        wrong = await client.get(
            "/api/admin/stats", headers=headers_for("192.0.2.50", cookies={"admin_key": "guess"})
        )
    assert anonymous.status_code == 401
    assert anonymous.json() == {"error": "Unauthorized"}
    assert wrong.status_code == 401


@pytest.mark.asyncio
async def test_whitelist_crud(harness) -> None:
    headers = _admin_headers()
    async with harness.client() as client:
        created = await client.post(
            "/api/admin/ip-whitelist",
            json={"ip_address": "203.0.113.77", "description": "branch office"},
            headers=headers,
        )
        assert created.status_code == 201
        entry = created.json()
        assert entry["ip_address"] == "203.0.113.77"
        assert entry["added_by"] == "admin"
        assert entry["is_active"] is True

        listed = await client.get("/api/admin/ip-whitelist", headers=headers)
        assert [row["id"] for row in listed.json()] == [entry["id"]]

        patched = await client.patch(
            "/api/admin/ip-whitelist", json={"id": entry["id"], "is_active": False}, headers=headers
        )
        assert patched.status_code == 200
        assert patched.json()["is_active"] is False

        deleted = await client.delete(f"/api/admin/ip-whitelist?id={entry['id']}", headers=headers)
        assert deleted.status_code == 200
        assert deleted.json() == {"success": True}

        listed = await client.get("/api/admin/ip-whitelist", headers=headers)
        assert listed.json() == []


@pytest.mark.asyncio
async def test_whitelist_validation_and_missing_ids(harness) -> None:
    headers = _admin_headers()
    async with harness.client() as client:
        no_ip = await client.post("/api/admin/ip-whitelist", json={"description": "x"}, headers=headers)
        bad_ip = await client.post("/api/admin/ip-whitelist", json={"ip_address": "300.1.1.1"}, headers=headers)
        no_fields = await client.patch("/api/admin/ip-whitelist", json={"id": "abc"}, headers=headers)
        unknown_patch = await client.patch(
            "/api/admin/ip-whitelist", json={"id": "missing", "is_active": True}, headers=headers
        )
        no_id = await client.delete("/api/admin/ip-whitelist", headers=headers)
        unknown_delete = await client.delete("/api/admin/ip-whitelist?id=missing", headers=headers)

    assert no_ip.status_code == 400
    assert no_ip.json() == {"error": "IP address is required"}
    assert bad_ip.status_code == 400
    assert no_fields.status_code == 400
    assert no_fields.json() == {"error": "ID and is_active are required"}
    assert unknown_patch.status_code == 404
    assert no_id.status_code == 400
    assert no_id.json() == {"error": "ID is required"}
    assert unknown_delete.status_code == 404


@pytest.mark.asyncio
async def test_duplicate_ip_is_rejected(harness) -> None:
    headers = _admin_headers()
    async with harness.client() as client:
        first = await client.post("/api/admin/ip-whitelist", json={"ip_address": "203.0.113.8"}, headers=headers)
        second = await client.post("/api/admin/ip-whitelist", json={"ip_address": "203.0.113.8"}, headers=headers)

    assert first.status_code == 201
    assert second.status_code == 400
    assert second.json() == {"error": "IP address already exists in whitelist"}
    async with harness.session() as session:
        count = await session.execute(
            select(func.count()).select_from(WhitelistEntry).where(WhitelistEntry.ip_address == "203.0.113.8")
        )
    assert count.scalar() == 1


@pytest.mark.asyncio
async def test_sessions_history_users_and_stats(harness, allowed_ip) -> None:
    now = utc_now()
    async with harness.session() as session:
        session.add(UserProfile(id="user-1", email="ada@example.com", last_login=now))
        session.add(UserProfile(id="user-2", email="old@example.com", last_login=now - timedelta(days=90)))
        await session.commit()

    relay = harness.services.relay
    async with harness.session() as db:
        await relay.handle_turn(db, ChatTurn(message="hello", session_id="s1", user_id="user-1"))
        await relay.handle_turn(db, ChatTurn(message="again", session_id="s1"))
        await relay.handle_turn(db, ChatTurn(message="anon", session_id="s2"))

    headers = _admin_headers()
    async with harness.client() as client:
        sessions = await client.get("/api/admin/sessions", headers=headers)
        history = await client.get("/api/admin/sessions/s1/history", headers=headers)
        users = await client.get("/api/admin/users", headers=headers)
        logs = await client.get("/api/admin/access-logs?limit=2", headers=headers)
        too_many = await client.get("/api/admin/access-logs?limit=5000", headers=headers)
        stats = await client.get("/api/admin/stats", headers=headers)

    by_id = {row["session_id"]: row for row in sessions.json()}
    assert by_id["s1"]["user_email"] == "ada@example.com"
    assert by_id["s1"]["message_count"] == 2
    assert by_id["s2"]["user_email"] is None

    assert [(m["role"], m["content"]) for m in history.json()] == [
        ("user", "hello"),
        ("assistant", "hi there"),
        ("user", "again"),
        ("assistant", "hi there"),
    ]
    assert {row["email"] for row in users.json()} == {"ada@example.com", "old@example.com"}
    assert len(logs.json()) == 2
    assert too_many.status_code == 400

    assert stats.json() == {
        "totalUsers": 2,
        "activeUsers": 1,
        "whitelistedIPs": 1,
        "totalAccessLogs": 3,
        "grantedAccess": 3,
        "deniedAccess": 0,
        "activeSessions": 2,
        "totalMessages": 3,
    }
    async with harness.session() as session:
        total = await session.execute(select(func.sum(ChatSession.message_count)))
    assert total.scalar() == 3
