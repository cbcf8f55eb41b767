from __future__ import annotations

from dataclasses import dataclass, field

import httpx
from sqlalchemy.ext.asyncio import AsyncEngine, AsyncSession, async_sessionmaker

from chatgate.core.config import Settings
from chatgate.persistence.db import build_engine, build_sessionmaker
from chatgate.services.auth.provider import AuthProviderClient
from chatgate.services.gate import AccessGate
from chatgate.services.relay import ChatRelay


@dataclass
class AppServices:
    """Process-wide collaborators, built once in ``create_app`` and held on ``app.state``."""

    settings: Settings
    engine: AsyncEngine
    sessionmaker: async_sessionmaker[AsyncSession]
    auth: AuthProviderClient
    relay: ChatRelay
    gate: AccessGate
    _owned_clients: list[httpx.AsyncClient] = field(default_factory=list)

    async def aclose(self) -> None:
        for client in self._owned_clients:
            await client.aclose()
        await self.engine.dispose()


def build_services(
    settings: Settings,
    *,
    engine: AsyncEngine | None = None,
    auth: AuthProviderClient | None = None,
    webhook_transport: httpx.AsyncBaseTransport | None = None,
    auth_transport: httpx.AsyncBaseTransport | None = None,
) -> AppServices:
    # Transports and the auth client are injectable so tests never touch the network.
    owned: list[httpx.AsyncClient] = []
    engine = engine or build_engine(settings)
    sessionmaker = build_sessionmaker(engine)

    if auth is None:
        auth_http = httpx.AsyncClient(timeout=settings.auth_timeout_s, transport=auth_transport)
        owned.append(auth_http)
        auth = AuthProviderClient(
            base_url=settings.auth_api_url,
            anon_key=settings.store_anon_key,
            service_role_key=settings.store_service_role_key,
            http_client=auth_http,
        )

    webhook_http = httpx.AsyncClient(timeout=settings.chat_webhook_timeout_s, transport=webhook_transport)
    owned.append(webhook_http)
    relay = ChatRelay(
        http_client=webhook_http,
        webhook_url=settings.chat_webhook_url,
        timeout_s=settings.chat_webhook_timeout_s,
    )
    gate = AccessGate(settings=settings, sessionmaker=sessionmaker, auth=auth)
    return AppServices(
        settings=settings,
        engine=engine,
        sessionmaker=sessionmaker,
        auth=auth,
        relay=relay,
        gate=gate,
        _owned_clients=owned,
    )
