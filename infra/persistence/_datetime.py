from __future__ import annotations

from datetime import datetime, timezone


def dt_to_iso(dt: datetime | None) -> str | None:
    """UTC ISO-8601 text; rows compare chronologically as plain strings."""
    if dt is None:
        return None
    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc).isoformat()
    return dt.astimezone(timezone.utc).isoformat()


def iso_to_dt(value: str | None) -> datetime | None:
    if not value:
        return None
    dt = datetime.fromisoformat(value)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt
