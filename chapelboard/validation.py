"""
Input checks shared by the service modules.
"""

from __future__ import annotations

from datetime import date as date_type
from datetime import datetime, timezone
from typing import List, Optional

from chapelboard.errors import InvalidInput


def require_fields(message: str = "All fields are required", **fields) -> None:
    """Raise ``InvalidInput`` when any field is missing or blank."""
    missing = [
        name
        for name, value in fields.items()
        if value is None or (isinstance(value, str) and not value.strip())
    ]
    if missing:
        raise InvalidInput(f"{message}: {', '.join(missing)}")


def date_key(value: Optional[str]) -> str:
    """Validate a calendar-day key (``YYYY-MM-DD``) and return it unchanged."""
    if not value:
        raise InvalidInput("Date is required")
    try:
        parsed = date_type.fromisoformat(value)
    except ValueError as exc:
        raise InvalidInput(f"Invalid date: {value}") from exc
    if parsed.isoformat() != value:
        raise InvalidInput(f"Invalid date: {value}")
    return value


def timestamp_key(value: Optional[str]) -> Optional[str]:
    """
    Normalize a client timestamp to UTC ``YYYY-MM-DD HH:MM:SS``, the form
    stored server-side, so day prefixes and ordering agree.

    Accepts ISO 8601 with or without an offset (``Z`` included); naive values
    are taken as UTC. Blank input returns ``None``.
    """
    if not value or not value.strip():
        return None
    text = value.strip()
    if text[-1] in "Zz":
        text = text[:-1] + "+00:00"
    try:
        parsed = datetime.fromisoformat(text)
    except ValueError as exc:
        raise InvalidInput(f"Invalid timestamp: {value}") from exc
    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc)
    return parsed.strftime("%Y-%m-%d %H:%M:%S")


def parse_id_list(raw: Optional[str]) -> List[int]:
    """Parse a comma-separated id list, dropping anything that isn't an int."""
    if not raw:
        return []
    ids = []
    for part in raw.split(","):
        part = part.strip()
        if part.isdigit():
            ids.append(int(part))
    return ids


