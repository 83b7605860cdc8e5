"""Utility functions for the application."""

from __future__ import annotations

import datetime
from typing import Any


def utc_now() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.datetime.now(datetime.timezone.utc).isoformat()


def display_name(member: dict[str, Any] | None) -> str:
    """Return a display name for a club member record.

    Members imported from the club spreadsheet carry either a ``name`` or a
    ``firstName``/``lastName`` pair. Falls back to ``Unknown Player``.
    """
    if not member:
        return "Unknown Player"
    if name := (member.get("name") or member.get("playerName")):
        return str(name).strip()
    parts = [member.get("firstName"), member.get("lastName")]
    full = " ".join(str(p).strip() for p in parts if p)
    return full or "Unknown Player"
