"""Best-effort client IP resolution from proxy headers."""
from __future__ import annotations

import ipaddress
from typing import Mapping


UNKNOWN_IP = "0.0.0.0"

# Checked in order; the first header carrying a well-formed literal wins.
IP_HEADERS = (
    "x-real-ip",
    "x-forwarded-for",
    "cf-connecting-ip",
    "x-client-ip",
)


def is_valid_ip(value: str) -> bool:
    try:
        ipaddress.ip_address(value)
    except ValueError:
        return False
    return True


def extract_client_ip(headers: Mapping[str, str] | None) -> str:
    """Return the client IP advertised by the proxy chain, or ``UNKNOWN_IP``.

    Header names are matched case-insensitively. ``x-forwarded-for`` may list
    several hops; only the first (originating client) is considered. Missing
    or malformed values are skipped rather than raised.
    """
    if not headers:
        return UNKNOWN_IP
    try:
        lowered = {str(k).lower(): v for k, v in headers.items()}
    except (AttributeError, TypeError):
        return UNKNOWN_IP
    for name in IP_HEADERS:
        value = lowered.get(name)
        if not value or not isinstance(value, str):
            continue
        candidate = value.split(",")[0].strip()
        if candidate and is_valid_ip(candidate):
            return candidate
    return UNKNOWN_IP


LOCAL_NETWORKS = tuple(
    ipaddress.ip_network(net)
    for net in (
        "127.0.0.0/8",
        "::1/128",
        "10.0.0.0/8",
        "172.16.0.0/12",
        "192.168.0.0/16",
        "fc00::/7",
    )
)


def is_local_ip(value: str) -> bool:
    """Loopback or RFC 1918 / unique-local address, plus the unknown sentinel."""
    if value == UNKNOWN_IP:
        return True
    try:
        ip = ipaddress.ip_address(value)
    except ValueError:
        return False
    return any(ip in net for net in LOCAL_NETWORKS)
