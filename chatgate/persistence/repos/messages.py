from __future__ import annotations

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from chatgate.domain.models import ChatMessage, utc_now


async def add_message(session: AsyncSession, session_id: str, role: str, content: str) -> ChatMessage:
    message = ChatMessage(session_id=session_id, role=role, content=content, timestamp=utc_now())
    session.add(message)
    return message


async def list_messages(session: AsyncSession, session_id: str) -> list[ChatMessage]:
    result = await session.execute(
        select(ChatMessage)
        .where(ChatMessage.session_id == session_id)
        .order_by(ChatMessage.timestamp.asc())
    )
    return list(result.scalars().all())
