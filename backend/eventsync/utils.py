# backend/eventsync/utils.py
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Any


def utcnow() -> datetime:
    """Timezone-aware UTC now."""
    return datetime.now(timezone.utc)


def to_datetime(v: Any) -> datetime | None:
    """
    Accepts:
      - None / ''
      - datetime (naive values are taken as UTC)
      - date (midnight UTC)
      - ISO-8601 string ('2024-03-01' or '2024-03-01T09:00:00Z')
    Returns:
      - timezone-aware UTC datetime or None
    """
    if v is None or v == "":
        return None
    if isinstance(v, datetime):
        if v.tzinfo is None:
            return v.replace(tzinfo=timezone.utc)
        return v.astimezone(timezone.utc)
    if isinstance(v, date):
        return datetime(v.year, v.month, v.day, tzinfo=timezone.utc)
    if isinstance(v, str):
        s = v.strip()
        if s.endswith("Z"):
            s = s[:-1] + "+00:00"
        return to_datetime(datetime.fromisoformat(s))
    raise ValueError(f"Invalid date value: {v!r}")


def sanitize_for_json(obj: Any) -> Any:
    """
    Make a value JSON-serializable:
      - datetime/date => isoformat
      - Enum => value
      - dict/list/tuple => recursive
    """
    if obj is None:
        return None
    if isinstance(obj, (str, int, float, bool)):
        # str-based enums land here too
        return getattr(obj, "value", obj)
    if isinstance(obj, (datetime, date)):
        return obj.isoformat()
    if isinstance(obj, dict):
        return {k: sanitize_for_json(v) for k, v in obj.items()}
    if isinstance(obj, (list, tuple)):
        return [sanitize_for_json(x) for x in obj]
    return str(obj)
