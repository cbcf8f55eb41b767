from __future__ import annotations

from dataclasses import asdict, dataclass
from datetime import datetime, timedelta, timezone
from typing import Any

from sqlalchemy.ext.asyncio import AsyncSession

from chatgate.persistence.repos import access_logs as access_log_repo
from chatgate.persistence.repos import sessions as session_repo
from chatgate.persistence.repos import users as user_repo
from chatgate.persistence.repos import whitelist as whitelist_repo


ACTIVE_USER_WINDOW_DAYS = 30


@dataclass(frozen=True)
class DashboardStats:
    totalUsers: int
    activeUsers: int
    whitelistedIPs: int
    totalAccessLogs: int
    grantedAccess: int
    deniedAccess: int
    activeSessions: int
    totalMessages: int

    def as_dict(self) -> dict[str, Any]:
        return asdict(self)


async def collect_stats(session: AsyncSession, *, now: datetime | None = None) -> DashboardStats:
    # Plain counts only; queries run sequentially on one session.
    now = now or datetime.now(timezone.utc)
    active_since = now - timedelta(days=ACTIVE_USER_WINDOW_DAYS)
    return DashboardStats(
        totalUsers=await user_repo.count_profiles(session),
        activeUsers=await user_repo.count_profiles(session, logged_in_since=active_since),
        whitelistedIPs=await whitelist_repo.count_active(session),
        totalAccessLogs=await access_log_repo.count_entries(session),
        grantedAccess=await access_log_repo.count_entries(session, access_granted=True),
        deniedAccess=await access_log_repo.count_entries(session, access_granted=False),
        activeSessions=await session_repo.count_active(session),
        totalMessages=await session_repo.total_messages(session),
    )
