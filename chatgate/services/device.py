from __future__ import annotations

from dataclasses import asdict, dataclass

from user_agents import parse as parse_ua


DEVICE_MOBILE = "mobile"
DEVICE_TABLET = "tablet"
DEVICE_DESKTOP = "desktop"

_UNKNOWN_FAMILY = "Other"


@dataclass(frozen=True)
class DeviceInfo:
    browser_name: str | None
    browser_version: str | None
    os_name: str | None
    # Always set; no device hint means desktop.
    device_type: str

    def as_dict(self) -> dict[str, str | None]:
        return asdict(self)


def _known(value: str | None) -> str | None:
    if not value or value == _UNKNOWN_FAMILY:
        return None
    return value


def parse_user_agent(user_agent: str | None) -> DeviceInfo:
    ua = parse_ua(user_agent or "")
    if ua.is_tablet:
        device_type = DEVICE_TABLET
    elif ua.is_mobile:
        device_type = DEVICE_MOBILE
    else:
        device_type = DEVICE_DESKTOP
    return DeviceInfo(
        browser_name=_known(ua.browser.family),
        browser_version=_known(ua.browser.version_string),
        os_name=_known(ua.os.family),
        device_type=device_type,
    )
