"""Timestamp helpers."""

from datetime import datetime, timezone


def now_iso() -> str:
    """Current UTC time as an RFC 3339 string, e.g. 2025-01-15T10:00:00.123456+00:00"""
    return datetime.now(timezone.utc).isoformat()
