from __future__ import annotations

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from chatgate.domain.models import AccessLogEntry, utc_now


async def append(
    session: AsyncSession,
    *,
    ip_address: str,
    access_granted: bool,
    user_agent: str | None,
    browser_name: str | None,
    browser_version: str | None,
    os_name: str | None,
    device_type: str | None,
    path: str | None,
    fingerprint: str | None = None,
    session_id: str | None = None,
) -> AccessLogEntry:
    # Rows are append-only; callers own the commit.
    entry = AccessLogEntry(
        ip_address=ip_address,
        access_granted=access_granted,
        user_agent=user_agent,
        browser_name=browser_name,
        browser_version=browser_version,
        os_name=os_name,
        device_type=device_type,
        fingerprint=fingerprint,
        path=path,
        session_id=session_id,
        timestamp=utc_now(),
    )
    session.add(entry)
    await session.flush()
    return entry


async def list_recent(session: AsyncSession, *, limit: int = 1000) -> list[AccessLogEntry]:
    result = await session.execute(
        select(AccessLogEntry)
        .order_by(AccessLogEntry.timestamp.desc(), AccessLogEntry.id.desc())
        .limit(limit)
    )
    return list(result.scalars().all())


async def count_entries(session: AsyncSession, *, access_granted: bool | None = None) -> int:
    stmt = select(func.count()).select_from(AccessLogEntry)
    if access_granted is not None:
        stmt = stmt.where(AccessLogEntry.access_granted.is_(access_granted))
    result = await session.execute(stmt)
    return int(result.scalar() or 0)
