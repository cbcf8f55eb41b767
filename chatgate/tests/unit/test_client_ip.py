from __future__ import annotations

import pytest

from chatgate.services.client_ip import UNKNOWN_IP, extract_client_ip, is_local_ip, is_valid_ip


def test_forwarded_for_uses_first_hop() -> None:
    headers = {"x-forwarded-for": "203.0.113.5, 10.0.0.1"}
    assert extract_client_ip(headers) == "203.0.113.5"


def test_no_recognized_header_returns_sentinel() -> None:
    assert extract_client_ip({"user-agent": "curl/8.0"}) == UNKNOWN_IP
    assert extract_client_ip({}) == UNKNOWN_IP
    assert extract_client_ip(None) == UNKNOWN_IP


def test_header_priority_and_case_insensitivity() -> None:
    headers = {
        "X-Forwarded-For": "198.51.100.1",
        "X-Real-IP": "203.0.113.9",
        "CF-Connecting-IP": "192.0.2.44",
    }
    assert extract_client_ip(headers) == "203.0.113.9"
    assert extract_client_ip({"CF-Connecting-IP": "192.0.2.44"}) == "192.0.2.44"
    assert extract_client_ip({"x-client-ip": "2001:db8::1"}) == "2001:db8::1"


def test_malformed_values_fall_through_to_next_header() -> None:
    headers = {"x-real-ip": "not-an-ip", "x-forwarded-for": " , 10.0.0.1", "x-client-ip": "192.0.2.10"}
    assert extract_client_ip(headers) == "192.0.2.10"
    assert extract_client_ip({"x-real-ip": "999.1.1.1"}) == UNKNOWN_IP


def test_local_ip_classification() -> None:
    assert is_local_ip("127.0.0.1")
    assert is_local_ip("::1")
    assert is_local_ip("10.1.2.3")
    assert is_local_ip("192.168.0.20")
    assert is_local_ip(UNKNOWN_IP)
    assert not is_local_ip("203.0.113.5")
    assert not is_local_ip("garbage")


@pytest.mark.parametrize(
    "value",
    ["172.16.0.1", "172.31.255.254", "fd12:3456::1", "127.8.8.8"],
)
def test_private_and_loopback_ranges_are_local(value) -> None:
    assert is_local_ip(value)


@pytest.mark.parametrize(
    "value",
    [
        "192.0.2.10",
        "198.51.100.7",
        "198.18.0.1",
        "169.254.1.1",
        "240.0.0.1",
        "172.32.0.1",
        "100.64.0.1",
        "2001:db8::1",
        "8.8.8.8",
    ],
)
def test_reserved_but_routable_ranges_are_not_local(value) -> None:
    assert not is_local_ip(value)


def test_is_valid_ip() -> None:
    assert is_valid_ip("8.8.8.8")
    assert is_valid_ip("2001:db8::1")
    assert not is_valid_ip("8.8.8")
    assert not is_valid_ip("")
