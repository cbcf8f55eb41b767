from __future__ import annotations

import hmac


def verify_admin_secret(presented: str | None, configured: str) -> bool:
    # Exact match against the static secret, compared in constant time.
    if not presented or not configured:
        return False
    return hmac.compare_digest(presented.encode("utf-8"), configured.encode("utf-8"))
