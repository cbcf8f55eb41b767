from __future__ import annotations

from typing import AsyncGenerator

from fastapi import Depends, Request
from sqlalchemy.ext.asyncio import AsyncSession

from chatgate.apps.api.container import AppServices
from chatgate.core.config import Settings
from chatgate.core.errors import UnauthorizedError
from chatgate.domain.context import RequestContext
from chatgate.services.auth.admin import verify_admin_secret
from chatgate.services.auth.provider import AuthProviderClient
from chatgate.services.client_ip import extract_client_ip
from chatgate.services.relay import ChatRelay


def build_request_context(request: Request) -> RequestContext:
    # Snapshot headers/cookies once; downstream code only sees this object.
    state = request.state
    return RequestContext(
        path=request.url.path,
        method=request.method,
        headers={k.lower(): v for k, v in request.headers.items()},
        cookies=dict(request.cookies),
        request_id=getattr(state, "request_id", None),
        client_ip=getattr(state, "client_ip", None),
        user=getattr(state, "user", None),
    )


def get_services(request: Request) -> AppServices:
    return request.app.state.services


def get_app_settings(services: AppServices = Depends(get_services)) -> Settings:
    return services.settings


def get_auth_client(services: AppServices = Depends(get_services)) -> AuthProviderClient:
    return services.auth


def get_relay(services: AppServices = Depends(get_services)) -> ChatRelay:
    return services.relay


async def get_db(services: AppServices = Depends(get_services)) -> AsyncGenerator[AsyncSession, None]:
    # One AsyncSession per request; context manager ensures close on success/error.
    async with services.sessionmaker() as session:
        yield session


def get_request_context(request: Request) -> RequestContext:
    ctx = build_request_context(request)
    if ctx.client_ip is None:
        # Gate was bypassed for this path (public prefix); resolve here instead.
        ctx = RequestContext(
            path=ctx.path,
            method=ctx.method,
            headers=ctx.headers,
            cookies=ctx.cookies,
            request_id=ctx.request_id,
            client_ip=extract_client_ip(ctx.headers),
            user=ctx.user,
        )
    return ctx


def require_admin(
    ctx: RequestContext = Depends(get_request_context),
    settings: Settings = Depends(get_app_settings),
) -> RequestContext:
    # Checked on every admin API call independently of the gate.
    if not verify_admin_secret(ctx.cookie(settings.admin_cookie_name), settings.admin_secret_key):
        raise UnauthorizedError(public_message="Unauthorized")
    return ctx
