# ovr_core/shared_access/tokens.py
from __future__ import annotations

import secrets
from datetime import datetime, timedelta
from typing import Optional

from django.conf import settings
from django.utils import timezone

TOKEN_BYTES = 32


def generate_token() -> str:
    """64 hex chars from 32 random bytes."""
    return secrets.token_hex(TOKEN_BYTES)


def default_expiry(*, at: Optional[datetime] = None) -> datetime:
    days = int(getattr(settings, "OVR_SHARED_ACCESS_TTL_DAYS", 30))
    return (at or timezone.now()) + timedelta(days=days)


def tokens_match(candidate: str, stored: str) -> bool:
    return secrets.compare_digest(str(candidate or ""), str(stored or ""))


def redact(token: Optional[str]) -> str:
    """Log-safe form: first 8 chars only."""
    if not token:
        return "<none>"
    return f"{token[:8]}..."
