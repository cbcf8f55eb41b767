from __future__ import annotations

from typing import Any

from fastapi import APIRouter, Depends
from pydantic import BaseModel, Field
from sqlalchemy.ext.asyncio import AsyncSession

from chatgate.apps.api.deps import get_db, get_relay, get_request_context
from chatgate.domain.context import RequestContext
from chatgate.services.relay import ChatRelay, ChatTurn

router = APIRouter(tags=["chat"])


class ChatRequest(BaseModel):
    # Untyped here: absent, empty or non-string messages all get the relay's "Message is required".
    message: Any = None
    sessionId: str | None = Field(default=None, max_length=255)
    fingerprint: str | None = Field(default=None, max_length=255)


class ChatResponse(BaseModel):
    reply: str
    sessionId: str | None = None
    metadata: Any = None


@router.post(
    "/api/chat",
    response_model=ChatResponse,
    response_model_exclude_none=True,
)
async def chat(
    payload: ChatRequest,
    ctx: RequestContext = Depends(get_request_context),
    relay: ChatRelay = Depends(get_relay),
    db: AsyncSession = Depends(get_db),
) -> ChatResponse:
    user_id = getattr(ctx.user, "id", None)
    turn = ChatTurn(
        message=payload.message,
        session_id=payload.sessionId,
        fingerprint=payload.fingerprint,
        client_ip=ctx.client_ip,
        user_agent=ctx.user_agent,
        path=ctx.path,
        user_id=user_id,
    )
    reply = await relay.handle_turn(db, turn)
    return ChatResponse(reply=reply.reply, sessionId=reply.session_id, metadata=reply.metadata)
