from __future__ import annotations

import logging

from fastapi import APIRouter, Depends, Query, Response
from fastapi.responses import RedirectResponse
from pydantic import BaseModel
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chatgate.apps.api.deps import get_app_settings, get_auth_client, get_db, get_request_context
from chatgate.core.config import Settings
from chatgate.core.errors import UpstreamError, ValidationError
from chatgate.domain.context import RequestContext
from chatgate.persistence.repos import users as user_repo
from chatgate.services.auth.provider import AuthProviderClient, AuthSession, AuthUser


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/auth", tags=["auth"])


class LoginRequest(BaseModel):
    email: str | None = None
    password: str | None = None


class SignupRequest(BaseModel):
    email: str | None = None
    password: str | None = None
    full_name: str | None = None


class AuthUserResponse(BaseModel):
    id: str
    email: str | None = None
    full_name: str | None = None


class LogoutResponse(BaseModel):
    success: bool = True


class AuthResponse(BaseModel):
    success: bool = True
    user: AuthUserResponse | None = None
    # False when the provider wants the address confirmed before issuing a session.
    session_active: bool = True


def _user_response(user: AuthUser) -> AuthUserResponse:
    return AuthUserResponse(id=user.id, email=user.email, full_name=user.full_name)


def _set_session_cookies(response: Response, settings: Settings, session: AuthSession) -> None:
    max_age = session.expires_in or settings.auth_cookie_max_age_s
    response.set_cookie(
        settings.access_token_cookie_name,
        session.access_token,
        max_age=max_age,
        httponly=True,
        secure=settings.is_production,
        samesite="lax",
        path="/",
    )
    if session.refresh_token:
        response.set_cookie(
            settings.refresh_token_cookie_name,
            session.refresh_token,
            max_age=settings.auth_cookie_max_age_s,
            httponly=True,
            secure=settings.is_production,
            samesite="lax",
            path="/",
        )


def _clear_session_cookies(response: Response, settings: Settings) -> None:
    response.delete_cookie(settings.access_token_cookie_name, path="/")
    response.delete_cookie(settings.refresh_token_cookie_name, path="/")


async def _sync_profile(db: AsyncSession, user: AuthUser, *, touch_login: bool) -> None:
    try:
        await user_repo.ensure_profile(db, user_id=user.id, email=user.email, full_name=user.full_name)
        if touch_login:
            await user_repo.touch_last_login(db, user.id)
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamError(f"profile sync failed user_id={user.id}") from exc


def _require_credentials(email: str | None, password: str | None) -> tuple[str, str]:
    email = (email or "").strip()
    if not email or not password:
        raise ValidationError("Email and password are required")
    return email, password


@router.post("/login", response_model=AuthResponse)
async def login(
    payload: LoginRequest,
    response: Response,
    settings: Settings = Depends(get_app_settings),
    auth: AuthProviderClient = Depends(get_auth_client),
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    email, password = _require_credentials(payload.email, payload.password)
    session = await auth.sign_in_with_password(email, password)
    await _sync_profile(db, session.user, touch_login=True)
    _set_session_cookies(response, settings, session)
    logger.info("auth_login_ok user_id=%s", session.user.id)
    return AuthResponse(user=_user_response(session.user))


@router.post("/signup", response_model=AuthResponse, status_code=201)
async def signup(
    payload: SignupRequest,
    response: Response,
    settings: Settings = Depends(get_app_settings),
    auth: AuthProviderClient = Depends(get_auth_client),
    db: AsyncSession = Depends(get_db),
) -> AuthResponse:
    email, password = _require_credentials(payload.email, payload.password)
    user, session = await auth.sign_up(email, password, full_name=payload.full_name or None)
    await _sync_profile(db, user, touch_login=session is not None)
    if session is not None:
        _set_session_cookies(response, settings, session)
    logger.info("auth_signup_ok user_id=%s session_active=%s", user.id, session is not None)
    return AuthResponse(user=_user_response(user), session_active=session is not None)


@router.get("/callback")
async def callback(
    code: str | None = Query(default=None),
    settings: Settings = Depends(get_app_settings),
    auth: AuthProviderClient = Depends(get_auth_client),
    db: AsyncSession = Depends(get_db),
) -> RedirectResponse:
    if not code:
        return RedirectResponse(url="/", status_code=307)
    try:
        session = await auth.exchange_code_for_session(code)
    except UpstreamError as exc:
        logger.warning("auth_callback_exchange_failed", exc_info=exc)
        return RedirectResponse(url=settings.gate_login_path, status_code=307)
    await _sync_profile(db, session.user, touch_login=True)
    response = RedirectResponse(url="/", status_code=307)
    _set_session_cookies(response, settings, session)
    return response


@router.post("/logout", response_model=LogoutResponse)
async def logout(
    response: Response,
    ctx: RequestContext = Depends(get_request_context),
    settings: Settings = Depends(get_app_settings),
    auth: AuthProviderClient = Depends(get_auth_client),
) -> LogoutResponse:
    token = ctx.cookie(settings.access_token_cookie_name)
    if token:
        try:
            await auth.sign_out(token)
        except UpstreamError as exc:
            # Local cookies are cleared regardless; the upstream token simply expires.
            logger.warning("auth_logout_revoke_failed", exc_info=exc)
    _clear_session_cookies(response, settings)
    return LogoutResponse()
