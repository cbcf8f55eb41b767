from __future__ import annotations

import pytest

from chatgate.domain.models import WhitelistEntry
from chatgate.services.auth.provider import AuthUser
from chatgate.tests.utils.app import ALLOWED_IP, build_harness, make_settings


@pytest.fixture
def settings(tmp_path):
    return make_settings(tmp_path)


@pytest.fixture
async def harness(settings):
    # Fresh SQLite file per test; dispose engine and httpx clients afterwards.
    harness = await build_harness(settings)
    yield harness
    await harness.services.aclose()


@pytest.fixture
async def allowed_ip(harness) -> str:
    async with harness.session() as session:
        session.add(WhitelistEntry(ip_address=ALLOWED_IP, description="office", added_by="admin"))
        await session.commit()
    return ALLOWED_IP


@pytest.fixture
def signed_in(harness) -> dict[str, str]:
    user = AuthUser(id="user-1", email="ada@example.com", full_name="Ada")
    harness.auth.add_session("valid-token", user)
    return {harness.settings.access_token_cookie_name: "valid-token"}
