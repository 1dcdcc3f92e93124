from __future__ import annotations

import secrets

from fastapi import HTTPException

from kwsearch.config import settings


def verify_admin_key(key: str) -> None:
    """Constant-time comparison against the admin API key. Raises 403 on mismatch."""
    if not settings.admin_api_key or not secrets.compare_digest(key, settings.admin_api_key):
        raise HTTPException(status_code=403, detail="Invalid admin key")
