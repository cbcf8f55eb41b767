from __future__ import annotations

from chatgate.services.gate import AccessGate
from chatgate.tests.utils.app import make_settings


def _gate(tmp_path) -> AccessGate:
    # Path classification never touches the store or the auth provider.
    return AccessGate(settings=make_settings(tmp_path), sessionmaker=None, auth=None)  # type: ignore[arg-type]


def test_public_prefixes_match_on_segment_boundaries(tmp_path) -> None:
    gate = _gate(tmp_path)
    assert gate.is_public("/login")
    assert gate.is_public("/api/auth/callback")
    assert gate.is_public("/api/admin/ip-whitelist")
    assert gate.is_public("/static/app.css")
    assert gate.is_public("/health")
    assert not gate.is_public("/")
    assert not gate.is_public("/api/chat")
    assert not gate.is_public("/loginx")
    assert not gate.is_public("/healthz")


def test_admin_paths_exclude_admin_login(tmp_path) -> None:
    gate = _gate(tmp_path)
    assert gate.is_admin_path("/admin")
    assert gate.is_admin_path("/admin/sessions")
    assert not gate.is_admin_path("/admin/login")
    assert not gate.is_admin_path("/administrator")
    assert not gate.is_admin_path("/api/chat")


def test_credential_endpoints_are_ip_only_not_public(tmp_path) -> None:
    gate = _gate(tmp_path)
    for path in ("/api/auth/login", "/api/auth/signup"):
        assert not gate.is_public(path)
        assert gate.is_ip_only(path)
    assert gate.is_public("/api/auth/logout")
    assert not gate.is_ip_only("/api/auth/callback")
    assert not gate.is_ip_only("/api/chat")
