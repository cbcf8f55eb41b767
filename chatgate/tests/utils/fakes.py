from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable

import httpx

from chatgate.services.auth.provider import (
    AuthProviderError,
    AuthSession,
    AuthUser,
    InvalidCredentialsError,
)


@dataclass
class FakeAuthProvider:
    """In-memory stand-in for AuthProviderClient keyed by access token."""

    users_by_token: dict[str, AuthUser] = field(default_factory=dict)
    passwords: dict[str, tuple[str, AuthUser]] = field(default_factory=dict)
    codes: dict[str, AuthUser] = field(default_factory=dict)
    fail_lookups: bool = False
    lookups: int = 0
    credential_attempts: int = 0
    signed_out: list[str] = field(default_factory=list)

    def add_session(self, token: str, user: AuthUser) -> None:
        self.users_by_token[token] = user

    def add_account(self, email: str, password: str, user: AuthUser) -> None:
        self.passwords[email] = (password, user)

    async def get_user(self, access_token: str) -> AuthUser | None:
        self.lookups += 1
        if self.fail_lookups:
            raise AuthProviderError("auth provider unreachable")
        return self.users_by_token.get(access_token)

    def _issue(self, user: AuthUser) -> AuthSession:
        token = f"token-{user.id}"
        self.users_by_token[token] = user
        return AuthSession(access_token=token, refresh_token=f"refresh-{user.id}", expires_in=3600, user=user)

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        self.credential_attempts += 1
        account = self.passwords.get(email)
        if account is None or account[0] != password:
            raise InvalidCredentialsError()
        return self._issue(account[1])

    async def sign_up(
        self, email: str, password: str, *, full_name: str | None = None
    ) -> tuple[AuthUser, AuthSession | None]:
        self.credential_attempts += 1
        user = AuthUser(id=f"user-{len(self.passwords) + 1}", email=email, full_name=full_name)
        self.passwords[email] = (password, user)
        return user, self._issue(user)

    async def exchange_code_for_session(self, code: str, code_verifier: str | None = None) -> AuthSession:
        user = self.codes.get(code)
        if user is None:
            raise AuthProviderError("unknown code")
        return self._issue(user)

    async def sign_out(self, access_token: str) -> None:
        self.signed_out.append(access_token)
        self.users_by_token.pop(access_token, None)


@dataclass
class RecordingResponder:
    """httpx handler that records webhook calls and answers with a canned response."""

    status_code: int = 200
    payload: Any = field(default_factory=lambda: {"answer": "hi there"})
    raise_exc: Callable[[httpx.Request], Exception] | None = None
    requests: list[httpx.Request] = field(default_factory=list)

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.raise_exc is not None:
            raise self.raise_exc(request)
        if isinstance(self.payload, (bytes, str)):
            return httpx.Response(self.status_code, content=self.payload)
        return httpx.Response(self.status_code, json=self.payload)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)
