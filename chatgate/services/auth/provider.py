from __future__ import annotations

from dataclasses import dataclass
from typing import Any

import httpx

from chatgate.core.errors import UnauthorizedError, UpstreamError


@dataclass(frozen=True)
class AuthUser:
    id: str
    email: str | None = None
    full_name: str | None = None


@dataclass(frozen=True)
class AuthSession:
    access_token: str
    refresh_token: str | None
    expires_in: int | None
    user: AuthUser


class AuthProviderError(UpstreamError):
    """The hosted auth API failed or answered with something unusable."""


class InvalidCredentialsError(UnauthorizedError):
    default_public_message = "Invalid email or password. Please check your credentials and try again."


def _user_from_payload(payload: dict[str, Any] | None) -> AuthUser | None:
    if not isinstance(payload, dict) or not payload.get("id"):
        return None
    metadata = payload.get("user_metadata") or {}
    return AuthUser(
        id=str(payload["id"]),
        email=payload.get("email"),
        full_name=metadata.get("full_name") if isinstance(metadata, dict) else None,
    )


def _json_body(response: httpx.Response) -> Any:
    try:
        return response.json()
    except ValueError as exc:
        raise AuthProviderError(f"auth provider returned invalid JSON status={response.status_code}") from exc


def _session_from_payload(payload: Any) -> AuthSession:
    if not isinstance(payload, dict):
        raise AuthProviderError("auth provider returned a malformed session")
    user = _user_from_payload(payload.get("user"))
    access_token = payload.get("access_token")
    if not access_token or user is None:
        raise AuthProviderError("auth provider returned a session without token or user")
    expires_in = payload.get("expires_in")
    return AuthSession(
        access_token=str(access_token),
        refresh_token=payload.get("refresh_token"),
        expires_in=int(expires_in) if isinstance(expires_in, (int, float)) else None,
        user=user,
    )


def _provider_message(response: httpx.Response) -> str | None:
    try:
        body = response.json()
    except ValueError:
        return None
    if not isinstance(body, dict):
        return None
    for key in ("error_description", "msg", "message", "error"):
        value = body.get(key)
        if isinstance(value, str) and value:
            return value
    return None


class AuthProviderClient:
    """Client for a GoTrue-compatible auth API.

    End-user calls (password login, signup, token validation) are sent with the
    anon key; server-originated calls (code exchange, logout) use the
    service-role key.
    """

    def __init__(
        self,
        *,
        base_url: str,
        anon_key: str,
        service_role_key: str,
        http_client: httpx.AsyncClient,
    ) -> None:
        self._base_url = base_url.rstrip("/")
        self._anon_key = anon_key
        self._service_role_key = service_role_key
        self._http = http_client

    def _headers(self, *, privileged: bool = False, bearer: str | None = None) -> dict[str, str]:
        key = self._service_role_key if privileged else self._anon_key
        headers = {"apikey": key, "Content-Type": "application/json"}
        headers["Authorization"] = f"Bearer {bearer or key}"
        return headers

    async def _request(self, method: str, path: str, **kwargs: Any) -> httpx.Response:
        try:
            return await self._http.request(method, f"{self._base_url}{path}", **kwargs)
        except httpx.HTTPError as exc:
            raise AuthProviderError(f"auth provider request failed path={path}: {exc}") from exc

    async def get_user(self, access_token: str) -> AuthUser | None:
        # Invalid or expired tokens are "no session", not an error.
        response = await self._request("GET", "/user", headers=self._headers(bearer=access_token))
        if response.status_code in (401, 403, 404):
            return None
        if response.status_code >= 400:
            raise AuthProviderError(f"auth provider user lookup failed status={response.status_code}")
        return _user_from_payload(_json_body(response))

    async def sign_in_with_password(self, email: str, password: str) -> AuthSession:
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "password"},
            json={"email": email, "password": password},
            headers=self._headers(),
        )
        if response.status_code in (400, 401, 422):
            message = _provider_message(response) or ""
            if "Email not confirmed" in message:
                raise InvalidCredentialsError(
                    public_message=(
                        "Please confirm your email address before logging in. "
                        "Check your inbox for a confirmation email."
                    )
                )
            raise InvalidCredentialsError()
        if response.status_code >= 400:
            raise AuthProviderError(f"auth provider login failed status={response.status_code}")
        return _session_from_payload(_json_body(response))

    async def sign_up(
        self, email: str, password: str, *, full_name: str | None = None
    ) -> tuple[AuthUser, AuthSession | None]:
        body: dict[str, Any] = {"email": email, "password": password}
        if full_name:
            body["data"] = {"full_name": full_name}
        response = await self._request("POST", "/signup", json=body, headers=self._headers())
        if response.status_code in (400, 422):
            raise AuthProviderError(
                f"auth provider rejected signup status={response.status_code}",
                public_message=_provider_message(response) or "Signup failed",
            )
        if response.status_code >= 400:
            raise AuthProviderError(f"auth provider signup failed status={response.status_code}")
        payload = _json_body(response)
        # Auto-confirmed projects answer with a full session, others with just the user.
        if isinstance(payload, dict) and payload.get("access_token"):
            session = _session_from_payload(payload)
            return session.user, session
        if isinstance(payload, dict) and isinstance(payload.get("user"), dict):
            payload = payload["user"]
        user = _user_from_payload(payload)
        if user is None:
            raise AuthProviderError("auth provider signup returned no user")
        return user, None

    async def exchange_code_for_session(self, code: str, code_verifier: str | None = None) -> AuthSession:
        body: dict[str, Any] = {"auth_code": code}
        if code_verifier:
            body["code_verifier"] = code_verifier
        response = await self._request(
            "POST",
            "/token",
            params={"grant_type": "pkce"},
            json=body,
            headers=self._headers(privileged=True),
        )
        if response.status_code >= 400:
            raise AuthProviderError(f"auth code exchange failed status={response.status_code}")
        return _session_from_payload(_json_body(response))

    async def sign_out(self, access_token: str) -> None:
        response = await self._request(
            "POST",
            "/logout",
            headers={"apikey": self._service_role_key, "Authorization": f"Bearer {access_token}"},
        )
        if response.status_code >= 400 and response.status_code not in (401, 403, 404):
            raise AuthProviderError(f"auth provider logout failed status={response.status_code}")
