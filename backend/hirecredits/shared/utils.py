"""Shared utility functions used across components."""

import secrets
from datetime import datetime, timezone


def utcnow() -> datetime:
    """Return the current UTC datetime (timezone-aware)."""
    return datetime.now(timezone.utc)


def ensure_utc(dt: datetime | None) -> datetime | None:
    """Return datetime as timezone-aware UTC. Returns None if input is None.

    SQLite hands back naive datetimes even for ``DateTime(timezone=True)``
    columns; everything we store is UTC so attaching the zone is safe.
    """
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt


def new_invitation_token() -> str:
    return secrets.token_urlsafe(32)


def slugify(value: str) -> str:
    return "-".join(part for part in str(value or "").strip().lower().replace("_", " ").split() if part)
