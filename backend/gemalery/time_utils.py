# Overview: UTC helpers shared by models, services and reports.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Optional

DATE_ONLY_LENGTH = len("YYYY-MM-DD")


def utcnow() -> datetime:
    """Naive UTC. Every timestamp column stores this form."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def parse_iso_datetime(value: Optional[str]) -> Optional[datetime]:
    """
    ISO-8601 string to naive UTC.

    Blank input gives None. Values without an offset are taken as UTC;
    values with "Z" or an explicit offset are shifted to UTC. Raises
    ValueError on anything fromisoformat rejects.
    """
    if value is None or not value.strip():
        return None

    text = value.strip()
    if text[-1] in "zZ":
        text = f"{text[:-1]}+00:00"

    parsed = datetime.fromisoformat(text)
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed


def is_date_only(value: Optional[str]) -> bool:
    """True for a bare calendar date such as "2026-03-31"."""
    return bool(value) and len(value.strip()) == DATE_ONLY_LENGTH


def to_utc_z(dt: Optional[datetime]) -> Optional[str]:
    """Second-precision ISO-8601 with a trailing Z; naive input is UTC."""
    if dt is None:
        return None
    if dt.tzinfo is not None:
        dt = dt.astimezone(timezone.utc).replace(tzinfo=None)
    return dt.replace(microsecond=0).isoformat() + "Z"
