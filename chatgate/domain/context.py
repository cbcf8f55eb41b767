from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Mapping


@dataclass(frozen=True)
class RequestContext:
    """Everything the gate and relay may read about an inbound request.

    Built once per request at the HTTP boundary so downstream code never
    reaches into framework globals for headers or cookies.
    """

    path: str
    method: str = "GET"
    # Lower-cased header names.
    headers: Mapping[str, str] = field(default_factory=dict)
    cookies: Mapping[str, str] = field(default_factory=dict)
    request_id: str | None = None
    # Filled in by the gate once the request is allowed through.
    client_ip: str | None = None
    user: Any = None

    @property
    def user_agent(self) -> str | None:
        return self.headers.get("user-agent")

    def cookie(self, name: str) -> str | None:
        value = self.cookies.get(name)
        return value or None
