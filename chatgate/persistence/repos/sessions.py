from __future__ import annotations

from sqlalchemy import func, select, update
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert
from sqlalchemy.ext.asyncio import AsyncSession

from chatgate.core.errors import UpstreamError
from chatgate.domain.models import ChatSession, new_id, utc_now
from chatgate.persistence.db import dialect_name


async def get_session(session: AsyncSession, session_id: str) -> ChatSession | None:
    result = await session.execute(select(ChatSession).where(ChatSession.session_id == session_id))
    return result.scalar_one_or_none()


async def upsert_session(
    session: AsyncSession,
    *,
    session_id: str,
    ip_address: str | None,
    fingerprint: str | None,
    user_id: str | None,
) -> None:
    now = utc_now()
    values = {
        "id": new_id(),
        "session_id": session_id,
        "user_id": user_id,
        "ip_address": ip_address,
        "fingerprint": fingerprint,
        "first_seen": now,
        "last_seen": now,
        "message_count": 0,
        "is_active": True,
    }
    # Race-safe insert: a concurrent first turn on the same session_id is a no-op here.
    insert = sqlite_insert if dialect_name(session) == "sqlite" else pg_insert
    stmt = insert(ChatSession).values(**values)
    stmt = stmt.on_conflict_do_nothing(index_elements=[ChatSession.session_id])
    await session.execute(stmt)

    changes: dict[str, object] = {"last_seen": now, "is_active": True}
    if ip_address:
        changes["ip_address"] = ip_address
    if fingerprint:
        changes["fingerprint"] = fingerprint
    if user_id:
        changes["user_id"] = user_id
    await session.execute(
        update(ChatSession).where(ChatSession.session_id == session_id).values(**changes)
    )


async def increment_message_count(session: AsyncSession, session_id: str) -> None:
    # In-place increment; never read-modify-write from Python.
    result = await session.execute(
        update(ChatSession)
        .where(ChatSession.session_id == session_id)
        .values(message_count=ChatSession.message_count + 1)
    )
    if result.rowcount == 0:
        raise UpstreamError(f"chat session {session_id!r} missing after upsert")


async def list_sessions(session: AsyncSession) -> list[ChatSession]:
    result = await session.execute(
        select(ChatSession).order_by(ChatSession.last_seen.desc(), ChatSession.id.desc())
    )
    return list(result.scalars().all())


async def count_active(session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count()).select_from(ChatSession).where(ChatSession.is_active.is_(True))
    )
    return int(result.scalar() or 0)


async def total_messages(session: AsyncSession) -> int:
    result = await session.execute(select(func.coalesce(func.sum(ChatSession.message_count), 0)))
    return int(result.scalar() or 0)
