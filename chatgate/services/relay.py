from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime, timezone
import logging
import time
from typing import Any

import httpx
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from chatgate.core.errors import UpstreamError, ValidationError
from chatgate.persistence.repos import access_logs as access_log_repo
from chatgate.persistence.repos import messages as message_repo
from chatgate.persistence.repos import sessions as session_repo
from chatgate.services.device import parse_user_agent


logger = logging.getLogger(__name__)

ROLE_USER = "user"
ROLE_ASSISTANT = "assistant"

NO_RESPONSE_REPLY = "No response from assistant"
GENERIC_FAILURE_MESSAGE = "Failed to process request"
CONNECTION_FAILURE_MESSAGE = "I'm having trouble connecting right now. Please try again in a moment."

# Responder payloads differ between scenario versions; first non-empty string wins.
REPLY_FIELDS = ("answer", "response", "message", "output")
_ERROR_FIELDS = ("error", "message")


@dataclass(frozen=True)
class ChatTurn:
    message: str | None
    session_id: str | None = None
    fingerprint: str | None = None
    client_ip: str | None = None
    user_agent: str | None = None
    path: str | None = None
    user_id: str | None = None


@dataclass(frozen=True)
class ChatReply:
    reply: str
    session_id: str | None = None
    metadata: Any = None


def extract_reply(payload: Any) -> str:
    """Pick the assistant reply out of a responder payload.

    Fields are probed in ``REPLY_FIELDS`` order: ``answer``, ``response``,
    ``message``, ``output``. Anything else (non-object payloads, empty or
    non-string values) falls back to ``NO_RESPONSE_REPLY`` and is logged.
    """
    if isinstance(payload, dict):
        for name in REPLY_FIELDS:
            value = payload.get(name)
            if isinstance(value, str) and value:
                return value
        logger.warning("chat_reply_fields_missing keys=%s", sorted(str(k) for k in payload.keys()))
    else:
        logger.warning("chat_reply_payload_not_object type=%s", type(payload).__name__)
    return NO_RESPONSE_REPLY


def extract_error_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    for name in _ERROR_FIELDS:
        value = body.get(name)
        if isinstance(value, str) and value:
            return value
    return None


class ChatRelay:
    def __init__(
        self,
        *,
        http_client: httpx.AsyncClient,
        webhook_url: str | None,
        timeout_s: float,
    ) -> None:
        self._http = http_client
        self._webhook_url = webhook_url
        self._timeout_s = timeout_s

    async def handle_turn(self, db: AsyncSession, turn: ChatTurn) -> ChatReply:
        if not isinstance(turn.message, str) or not turn.message:
            raise ValidationError("Message is required")

        if turn.session_id:
            await self._record_user_turn(db, turn)

        payload = await self._call_responder(turn)
        reply = extract_reply(payload)
        metadata = payload.get("metadata") if isinstance(payload, dict) else None

        if turn.session_id:
            try:
                await message_repo.add_message(db, turn.session_id, ROLE_ASSISTANT, reply)
                await db.commit()
            except SQLAlchemyError as exc:
                await db.rollback()
                raise UpstreamError(f"failed to persist assistant turn session_id={turn.session_id}") from exc

        return ChatReply(reply=reply, session_id=turn.session_id, metadata=metadata)

    async def _record_user_turn(self, db: AsyncSession, turn: ChatTurn) -> None:
        session_id = turn.session_id
        device = parse_user_agent(turn.user_agent)
        try:
            await session_repo.upsert_session(
                db,
                session_id=session_id,
                ip_address=turn.client_ip,
                fingerprint=turn.fingerprint,
                user_id=turn.user_id,
            )
            await session_repo.increment_message_count(db, session_id)
            await message_repo.add_message(db, session_id, ROLE_USER, turn.message)
            await access_log_repo.append(
                db,
                ip_address=turn.client_ip or "0.0.0.0",
                access_granted=True,
                user_agent=turn.user_agent or "",
                path=turn.path,
                fingerprint=turn.fingerprint,
                session_id=session_id,
                **device.as_dict(),
            )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            raise UpstreamError(f"failed to persist user turn session_id={session_id}") from exc

    async def _call_responder(self, turn: ChatTurn) -> Any:
        if not self._webhook_url:
            raise UpstreamError("chat webhook url is not configured")

        body: dict[str, Any] = {
            "query": turn.message,
            "timestamp": datetime.now(timezone.utc).isoformat(),
        }
        if turn.session_id:
            body["sessionId"] = turn.session_id

        start = time.monotonic()
        try:
            response = await self._http.post(self._webhook_url, json=body, timeout=self._timeout_s)
        except httpx.TimeoutException as exc:
            logger.warning(
                "chat_webhook_timeout session_id=%s timeout_s=%s", turn.session_id, self._timeout_s
            )
            raise UpstreamError("chat webhook timed out", public_message=CONNECTION_FAILURE_MESSAGE) from exc
        except httpx.HTTPError as exc:
            logger.warning("chat_webhook_unreachable session_id=%s", turn.session_id, exc_info=exc)
            raise UpstreamError("chat webhook unreachable", public_message=CONNECTION_FAILURE_MESSAGE) from exc
        latency_ms = (time.monotonic() - start) * 1000.0

        if response.status_code >= 400 or response.status_code < 200:
            # Responder error text can name the upstream scenario; it stays in the log.
            detail = extract_error_message(response)
            logger.error(
                "chat_webhook_failed status=%s detail=%s latency_ms=%.1f session_id=%s",
                response.status_code,
                detail,
                latency_ms,
                turn.session_id,
            )
            raise UpstreamError(
                f"chat webhook responded with status {response.status_code}",
                public_message=GENERIC_FAILURE_MESSAGE,
            )

        logger.info("chat_webhook_ok status=%s latency_ms=%.1f", response.status_code, latency_ms)
        try:
            return response.json()
        except ValueError:
            logger.warning("chat_webhook_non_json status=%s", response.status_code)
            return None
