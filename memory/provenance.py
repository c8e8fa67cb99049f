"""Identifier, session and timestamp stamping for persisted records."""

from __future__ import annotations

import secrets
import time
import uuid
from datetime import UTC, datetime, timedelta


def utc_now() -> datetime:
    """Return UTC datetime for default timestamps."""
    return datetime.now(UTC)


def new_id(prefix: str = "") -> str:
    """Return a random record id, optionally prefixed (``ep-``, ``k-``, ``f-``)."""
    raw = str(uuid.uuid4())
    return f"{prefix}-{raw}" if prefix else raw


def new_session_id() -> str:
    """Opaque session id stamped onto every record written during a session."""
    return f"session_{int(time.time() * 1000)}_{secrets.token_hex(3)}"


def as_utc(moment: datetime) -> datetime:
    """Treat naive datetimes as UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=UTC)
    return moment


def age_hours(timestamp: datetime, now: datetime) -> float:
    """Signed age in hours; callers clamp."""
    return (as_utc(now) - as_utc(timestamp)).total_seconds() / 3600.0


def date_key(moment: datetime | None = None) -> str:
    """Local-calendar YYYY-MM-DD used for daily log names."""
    moment = as_utc(moment or utc_now())
    return moment.astimezone().strftime("%Y-%m-%d")


def yesterday_key(moment: datetime | None = None) -> str:
    return date_key(as_utc(moment or utc_now()) - timedelta(days=1))
