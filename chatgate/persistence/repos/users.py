from __future__ import annotations

from datetime import datetime

from sqlalchemy import func, select, update
from sqlalchemy.ext.asyncio import AsyncSession

from chatgate.domain.models import UserProfile, utc_now


async def get_profile(session: AsyncSession, user_id: str) -> UserProfile | None:
    result = await session.execute(select(UserProfile).where(UserProfile.id == user_id))
    return result.scalar_one_or_none()


async def ensure_profile(
    session: AsyncSession,
    *,
    user_id: str,
    email: str | None,
    full_name: str | None = None,
) -> UserProfile:
    profile = await get_profile(session, user_id)
    if profile is not None:
        return profile
    profile = UserProfile(id=user_id, email=email, full_name=full_name, created_at=utc_now())
    session.add(profile)
    await session.flush()
    return profile


async def touch_last_login(session: AsyncSession, user_id: str) -> None:
    await session.execute(
        update(UserProfile).where(UserProfile.id == user_id).values(last_login=utc_now())
    )


async def list_profiles(session: AsyncSession) -> list[UserProfile]:
    result = await session.execute(
        select(UserProfile).order_by(UserProfile.created_at.desc(), UserProfile.id.desc())
    )
    return list(result.scalars().all())


async def emails_by_id(session: AsyncSession, user_ids: list[str]) -> dict[str, str | None]:
    if not user_ids:
        return {}
    result = await session.execute(
        select(UserProfile.id, UserProfile.email).where(UserProfile.id.in_(user_ids))
    )
    return {row.id: row.email for row in result}


async def count_profiles(session: AsyncSession, *, logged_in_since: datetime | None = None) -> int:
    stmt = select(func.count()).select_from(UserProfile)
    if logged_in_since is not None:
        stmt = stmt.where(UserProfile.last_login >= logged_in_since)
    result = await session.execute(stmt)
    return int(result.scalar() or 0)
