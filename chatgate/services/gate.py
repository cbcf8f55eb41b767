"""Per-request access gate: IP allowlist first, then session, then admin secret.

Credential endpoints (``gate_ip_only_paths``) stop after the allowlist layer.

Every non-public request that reaches the allowlist check produces exactly one
``access_logs`` row, written and committed before any redirect is returned.
Ordering matters: callers from networks that are not allowlisted never reach
the auth provider.
"""
from __future__ import annotations

from dataclasses import dataclass
import logging

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from chatgate.core.config import Settings
from chatgate.core.errors import UpstreamError
from chatgate.domain.context import RequestContext
from chatgate.persistence.repos import access_logs as access_log_repo
from chatgate.persistence.repos import whitelist as whitelist_repo
from chatgate.services.auth.admin import verify_admin_secret
from chatgate.services.auth.provider import AuthProviderClient, AuthUser
from chatgate.services.client_ip import extract_client_ip, is_local_ip
from chatgate.services.device import parse_user_agent


logger = logging.getLogger(__name__)

OUTCOME_PUBLIC = "public"
OUTCOME_DEV_BYPASS = "dev_bypass"
OUTCOME_ALLOW = "allow"
OUTCOME_DENIED = "denied"
OUTCOME_LOGIN = "login_required"
OUTCOME_ADMIN_LOGIN = "admin_login_required"
OUTCOME_UNAVAILABLE = "unavailable"

_PASS_OUTCOMES = {OUTCOME_PUBLIC, OUTCOME_DEV_BYPASS, OUTCOME_ALLOW}


@dataclass(frozen=True)
class GateDecision:
    outcome: str
    client_ip: str | None = None
    redirect_to: str | None = None
    # Set only on denial; rendered by the access-denied page.
    blocked_ip: str | None = None
    user: AuthUser | None = None

    @property
    def allowed(self) -> bool:
        return self.outcome in _PASS_OUTCOMES


def _matches_prefix(path: str, prefix: str) -> bool:
    if prefix.endswith("/"):
        return path.startswith(prefix)
    return path == prefix or path.startswith(prefix + "/")


class AccessGate:
    def __init__(
        self,
        *,
        settings: Settings,
        sessionmaker: async_sessionmaker[AsyncSession],
        auth: AuthProviderClient,
    ) -> None:
        self._settings = settings
        self._sessionmaker = sessionmaker
        self._auth = auth
        self._public_prefixes = settings.public_path_prefixes
        self._ip_only_prefixes = settings.ip_only_path_prefixes

    def is_public(self, path: str) -> bool:
        return any(_matches_prefix(path, prefix) for prefix in self._public_prefixes)

    def is_ip_only(self, path: str) -> bool:
        return any(_matches_prefix(path, prefix) for prefix in self._ip_only_prefixes)

    def is_admin_path(self, path: str) -> bool:
        if _matches_prefix(path, self._settings.gate_admin_login_path):
            return False
        return _matches_prefix(path, self._settings.gate_admin_prefix)

    async def evaluate(self, ctx: RequestContext) -> GateDecision:
        if self.is_public(ctx.path):
            return GateDecision(outcome=OUTCOME_PUBLIC)

        client_ip = extract_client_ip(ctx.headers)

        # Operator convenience for local development: silent, unlogged pass-through.
        if not self._settings.is_production and is_local_ip(client_ip):
            logger.debug("gate_dev_bypass ip=%s path=%s", client_ip, ctx.path)
            return GateDecision(outcome=OUTCOME_DEV_BYPASS, client_ip=client_ip)

        async with self._sessionmaker() as db:
            try:
                allowed_by_ip = await whitelist_repo.is_ip_allowed(db, client_ip)
            except SQLAlchemyError as exc:
                logger.error(
                    "gate_allowlist_lookup_failed ip=%s path=%s request_id=%s",
                    client_ip,
                    ctx.path,
                    ctx.request_id,
                    exc_info=exc,
                )
                return GateDecision(outcome=OUTCOME_UNAVAILABLE, client_ip=client_ip)

            logged = await self._record_access(db, ctx, client_ip, allowed_by_ip)

        if not logged and self._settings.gate_audit_fail_mode == "closed":
            return GateDecision(outcome=OUTCOME_UNAVAILABLE, client_ip=client_ip)

        if not allowed_by_ip:
            logger.info("gate_denied ip=%s path=%s request_id=%s", client_ip, ctx.path, ctx.request_id)
            return GateDecision(
                outcome=OUTCOME_DENIED,
                client_ip=client_ip,
                redirect_to=self._settings.gate_denied_path,
                blocked_ip=client_ip,
            )

        # Credential endpoints: the caller is signing in, so no session yet.
        if self.is_ip_only(ctx.path):
            return GateDecision(outcome=OUTCOME_ALLOW, client_ip=client_ip)

        user = await self._resolve_user(ctx)
        if user is None:
            return GateDecision(
                outcome=OUTCOME_LOGIN,
                client_ip=client_ip,
                redirect_to=self._settings.gate_login_path,
            )

        if self.is_admin_path(ctx.path):
            presented = ctx.cookie(self._settings.admin_cookie_name)
            if not verify_admin_secret(presented, self._settings.admin_secret_key):
                logger.info("gate_admin_secret_rejected ip=%s path=%s", client_ip, ctx.path)
                return GateDecision(
                    outcome=OUTCOME_ADMIN_LOGIN,
                    client_ip=client_ip,
                    redirect_to=self._settings.gate_admin_login_path,
                    user=user,
                )

        return GateDecision(outcome=OUTCOME_ALLOW, client_ip=client_ip, user=user)

    async def _record_access(
        self,
        db: AsyncSession,
        ctx: RequestContext,
        client_ip: str,
        allowed_by_ip: bool,
    ) -> bool:
        device = parse_user_agent(ctx.user_agent)
        try:
            await access_log_repo.append(
                db,
                ip_address=client_ip,
                access_granted=allowed_by_ip,
                user_agent=ctx.user_agent or "",
                path=ctx.path,
                **device.as_dict(),
            )
            await db.commit()
        except SQLAlchemyError as exc:
            await db.rollback()
            level = logger.error if self._settings.gate_audit_fail_mode == "closed" else logger.warning
            level(
                "gate_access_log_write_failed ip=%s path=%s fail_mode=%s request_id=%s",
                client_ip,
                ctx.path,
                self._settings.gate_audit_fail_mode,
                ctx.request_id,
                exc_info=exc,
            )
            return False
        return True

    async def _resolve_user(self, ctx: RequestContext) -> AuthUser | None:
        token = ctx.cookie(self._settings.access_token_cookie_name)
        if not token:
            return None
        try:
            return await self._auth.get_user(token)
        except UpstreamError as exc:
            logger.warning("gate_session_lookup_failed path=%s request_id=%s", ctx.path, ctx.request_id, exc_info=exc)
            return None
