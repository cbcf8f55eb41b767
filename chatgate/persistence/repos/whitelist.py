from __future__ import annotations

from sqlalchemy import delete, func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chatgate.domain.models import WhitelistEntry, utc_now


async def is_ip_allowed(session: AsyncSession, ip_address: str) -> bool:
    # Exact literal match on an active row; no subnet semantics.
    result = await session.execute(
        select(WhitelistEntry.id).where(
            WhitelistEntry.ip_address == ip_address,
            WhitelistEntry.is_active.is_(True),
        )
    )
    return result.first() is not None


async def get_by_ip(session: AsyncSession, ip_address: str) -> WhitelistEntry | None:
    result = await session.execute(
        select(WhitelistEntry).where(WhitelistEntry.ip_address == ip_address)
    )
    return result.scalar_one_or_none()


async def get_entry(session: AsyncSession, entry_id: str) -> WhitelistEntry | None:
    result = await session.execute(select(WhitelistEntry).where(WhitelistEntry.id == entry_id))
    return result.scalar_one_or_none()


async def list_entries(session: AsyncSession) -> list[WhitelistEntry]:
    result = await session.execute(
        select(WhitelistEntry).order_by(WhitelistEntry.created_at.desc(), WhitelistEntry.id.desc())
    )
    return list(result.scalars().all())


async def add_entry(
    session: AsyncSession,
    *,
    ip_address: str,
    description: str | None,
    added_by: str,
) -> WhitelistEntry:
    now = utc_now()
    entry = WhitelistEntry(
        ip_address=ip_address,
        description=description,
        added_by=added_by,
        is_active=True,
        created_at=now,
        updated_at=now,
    )
    session.add(entry)
    await session.flush()
    return entry


async def set_active(session: AsyncSession, entry_id: str, is_active: bool) -> WhitelistEntry | None:
    result = await session.execute(
        update(WhitelistEntry)
        .where(WhitelistEntry.id == entry_id)
        .values(is_active=is_active, updated_at=utc_now())
    )
    if result.rowcount == 0:
        return None
    entry = await get_entry(session, entry_id)
    if entry is not None:
        # The bulk update bypasses the identity map; reload the persisted values.
        await session.refresh(entry)
    return entry


async def delete_entry(session: AsyncSession, entry_id: str) -> bool:
    result = await session.execute(delete(WhitelistEntry).where(WhitelistEntry.id == entry_id))
    return result.rowcount > 0


async def count_active(session: AsyncSession) -> int:
    result = await session.execute(
        select(func.count()).select_from(WhitelistEntry).where(WhitelistEntry.is_active.is_(True))
    )
    return int(result.scalar() or 0)
