from __future__ import annotations

from datetime import datetime
import logging
from typing import Any
from uuid import UUID

from fastapi import APIRouter, Depends, Query, Response
from pydantic import BaseModel, ConfigDict
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chatgate.apps.api.deps import get_app_settings, get_db, require_admin
from chatgate.core.config import Settings
from chatgate.core.errors import NotFoundError, UnauthorizedError, UpstreamError, ValidationError
from chatgate.persistence.repos import access_logs as access_log_repo
from chatgate.persistence.repos import messages as message_repo
from chatgate.persistence.repos import sessions as session_repo
from chatgate.persistence.repos import users as user_repo
from chatgate.persistence.repos import whitelist as whitelist_repo
from chatgate.services.admin_stats import collect_stats
from chatgate.services.auth.admin import verify_admin_secret
from chatgate.services.client_ip import is_valid_ip


logger = logging.getLogger(__name__)

router = APIRouter(prefix="/api/admin", tags=["admin"])

DUPLICATE_IP_MESSAGE = "IP address already exists in whitelist"
ACCESS_LOG_LIMIT_MAX = 1000


class AdminLoginRequest(BaseModel):
    secretKey: str | None = None


class SuccessResponse(BaseModel):
    success: bool = True


class WhitelistEntryResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    ip_address: str
    description: str | None
    added_by: str | None
    is_active: bool
    created_at: datetime | None
    updated_at: datetime | None


class WhitelistCreateRequest(BaseModel):
    ip_address: str | None = None
    description: str | None = None


class WhitelistPatchRequest(BaseModel):
    id: str | None = None
    is_active: bool | None = None


class AccessLogResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: int
    ip_address: str
    access_granted: bool
    user_agent: str | None
    browser_name: str | None
    browser_version: str | None
    os_name: str | None
    device_type: str | None
    fingerprint: str | None
    path: str | None
    session_id: str | None
    timestamp: datetime | None


class ChatSessionResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    session_id: str
    user_id: str | None
    user_email: str | None = None
    ip_address: str | None
    fingerprint: str | None
    first_seen: datetime | None
    last_seen: datetime | None
    message_count: int
    is_active: bool


class ChatMessageResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: UUID
    session_id: str
    role: str
    content: str
    timestamp: datetime | None


class UserProfileResponse(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    id: str
    email: str | None
    full_name: str | None
    created_at: datetime | None
    last_login: datetime | None
    is_active: bool


def _set_admin_cookie(response: Response, settings: Settings, value: str) -> None:
    response.set_cookie(
        settings.admin_cookie_name,
        value,
        max_age=settings.admin_cookie_max_age_s,
        httponly=True,
        secure=settings.is_production,
        samesite="strict",
        path="/",
    )


@router.post("/login", response_model=SuccessResponse)
async def admin_login(
    payload: AdminLoginRequest,
    response: Response,
    settings: Settings = Depends(get_app_settings),
) -> SuccessResponse:
    if not payload.secretKey:
        raise ValidationError("Secret key is required")
    if not verify_admin_secret(payload.secretKey, settings.admin_secret_key):
        logger.info("admin_login_rejected")
        raise UnauthorizedError(public_message="Invalid secret key")
    _set_admin_cookie(response, settings, payload.secretKey)
    return SuccessResponse()


@router.post("/logout", response_model=SuccessResponse)
async def admin_logout(
    response: Response,
    settings: Settings = Depends(get_app_settings),
) -> SuccessResponse:
    response.delete_cookie(settings.admin_cookie_name, path="/")
    return SuccessResponse()


@router.get(
    "/ip-whitelist",
    response_model=list[WhitelistEntryResponse],
    dependencies=[Depends(require_admin)],
)
async def list_whitelist(db: AsyncSession = Depends(get_db)) -> list[WhitelistEntryResponse]:
    try:
        entries = await whitelist_repo.list_entries(db)
    except SQLAlchemyError as exc:
        raise UpstreamError("whitelist list failed", public_message="Failed to fetch IP whitelist") from exc
    return [WhitelistEntryResponse.model_validate(entry) for entry in entries]


@router.post(
    "/ip-whitelist",
    response_model=WhitelistEntryResponse,
    status_code=201,
    dependencies=[Depends(require_admin)],
)
async def add_whitelist_entry(
    payload: WhitelistCreateRequest,
    db: AsyncSession = Depends(get_db),
) -> WhitelistEntryResponse:
    ip_address = (payload.ip_address or "").strip()
    if not ip_address:
        raise ValidationError("IP address is required")
    if not is_valid_ip(ip_address):
        raise ValidationError("IP address is not a valid IPv4 or IPv6 address")
    try:
        if await whitelist_repo.get_by_ip(db, ip_address) is not None:
            raise ValidationError(DUPLICATE_IP_MESSAGE)
        entry = await whitelist_repo.add_entry(
            db,
            ip_address=ip_address,
            description=payload.description or None,
            added_by="admin",
        )
        await db.commit()
    except IntegrityError as exc:
        # Lost a race with a concurrent insert of the same literal.
        await db.rollback()
        raise ValidationError(DUPLICATE_IP_MESSAGE) from exc
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamError("whitelist insert failed", public_message="Failed to add IP to whitelist") from exc
    logger.info("whitelist_entry_added ip=%s id=%s", entry.ip_address, entry.id)
    return WhitelistEntryResponse.model_validate(entry)


@router.patch(
    "/ip-whitelist",
    response_model=WhitelistEntryResponse,
    dependencies=[Depends(require_admin)],
)
async def update_whitelist_entry(
    payload: WhitelistPatchRequest,
    db: AsyncSession = Depends(get_db),
) -> WhitelistEntryResponse:
    if not payload.id or payload.is_active is None:
        raise ValidationError("ID and is_active are required")
    try:
        entry = await whitelist_repo.set_active(db, payload.id, payload.is_active)
        if entry is None:
            raise NotFoundError("IP whitelist entry not found")
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamError("whitelist update failed", public_message="Failed to update IP") from exc
    logger.info("whitelist_entry_updated id=%s is_active=%s", entry.id, entry.is_active)
    return WhitelistEntryResponse.model_validate(entry)


@router.delete(
    "/ip-whitelist",
    response_model=SuccessResponse,
    dependencies=[Depends(require_admin)],
)
async def delete_whitelist_entry(
    id: str | None = Query(default=None),
    db: AsyncSession = Depends(get_db),
) -> SuccessResponse:
    if not id:
        raise ValidationError("ID is required")
    try:
        deleted = await whitelist_repo.delete_entry(db, id)
        if not deleted:
            raise NotFoundError("IP whitelist entry not found")
        await db.commit()
    except SQLAlchemyError as exc:
        await db.rollback()
        raise UpstreamError("whitelist delete failed", public_message="Failed to delete IP") from exc
    logger.info("whitelist_entry_deleted id=%s", id)
    return SuccessResponse()


@router.get(
    "/access-logs",
    response_model=list[AccessLogResponse],
    dependencies=[Depends(require_admin)],
)
async def list_access_logs(
    limit: int = Query(default=ACCESS_LOG_LIMIT_MAX, ge=1, le=ACCESS_LOG_LIMIT_MAX),
    db: AsyncSession = Depends(get_db),
) -> list[AccessLogResponse]:
    try:
        rows = await access_log_repo.list_recent(db, limit=limit)
    except SQLAlchemyError as exc:
        raise UpstreamError("access log list failed", public_message="Failed to fetch access logs") from exc
    return [AccessLogResponse.model_validate(row) for row in rows]


@router.get(
    "/sessions",
    response_model=list[ChatSessionResponse],
    dependencies=[Depends(require_admin)],
)
async def list_chat_sessions(db: AsyncSession = Depends(get_db)) -> list[ChatSessionResponse]:
    try:
        rows = await session_repo.list_sessions(db)
        emails = await user_repo.emails_by_id(db, sorted({row.user_id for row in rows if row.user_id}))
    except SQLAlchemyError as exc:
        raise UpstreamError("session list failed", public_message="Failed to fetch sessions") from exc
    results: list[ChatSessionResponse] = []
    for row in rows:
        item = ChatSessionResponse.model_validate(row)
        item.user_email = emails.get(row.user_id) if row.user_id else None
        results.append(item)
    return results


@router.get(
    "/sessions/{session_id}/history",
    response_model=list[ChatMessageResponse],
    dependencies=[Depends(require_admin)],
)
async def get_session_history(
    session_id: str,
    db: AsyncSession = Depends(get_db),
) -> list[ChatMessageResponse]:
    try:
        rows = await message_repo.list_messages(db, session_id)
    except SQLAlchemyError as exc:
        raise UpstreamError(
            f"history list failed session_id={session_id}", public_message="Failed to fetch chat history"
        ) from exc
    return [ChatMessageResponse.model_validate(row) for row in rows]


@router.get(
    "/users",
    response_model=list[UserProfileResponse],
    dependencies=[Depends(require_admin)],
)
async def list_users(db: AsyncSession = Depends(get_db)) -> list[UserProfileResponse]:
    try:
        rows = await user_repo.list_profiles(db)
    except SQLAlchemyError as exc:
        raise UpstreamError("user list failed", public_message="Failed to fetch users") from exc
    return [UserProfileResponse.model_validate(row) for row in rows]


@router.get("/stats", dependencies=[Depends(require_admin)])
async def get_stats(db: AsyncSession = Depends(get_db)) -> dict[str, Any]:
    try:
        stats = await collect_stats(db)
    except SQLAlchemyError as exc:
        raise UpstreamError("stats query failed", public_message="Failed to fetch stats") from exc
    return stats.as_dict()
