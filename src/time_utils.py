"""Time helpers for UTC storage and RFC3339 presentation."""

from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy.orm import Session


def utc_now() -> datetime:
    """Return the current time as an aware UTC datetime."""
    return datetime.now(timezone.utc)


def to_utc(value: datetime) -> datetime:
    """Convert a datetime to UTC, treating naive values as already UTC."""
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value.astimezone(timezone.utc)


def format_rfc3339(value: datetime) -> str:
    """Render a datetime as an RFC3339 string with second precision."""
    return to_utc(value).replace(microsecond=0).isoformat().replace("+00:00", "Z")


def normalize_for_bind(session: Session, value: datetime) -> datetime:
    """Normalize timestamps for storage backends without timezone support."""
    if session.bind and session.bind.dialect.name == "sqlite" and value.tzinfo is not None:
        return to_utc(value).replace(tzinfo=None)
    return value
