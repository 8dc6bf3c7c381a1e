"""Re-export Base and provide row conversion helpers for ORM models."""

from datetime import datetime, timezone
from typing import Any

from pbportal.database import Base

__all__ = ["Base", "row_to_dict"]


def row_to_dict(obj, skip_cols=None) -> dict[str, Any]:
    """ORM row -> plain dict keyed by attribute name.

    SQLite hands ``DateTime(timezone=True)`` columns back naive; they were
    written as UTC, so UTC is re-attached here.
    """
    skip = skip_cols or set()
    result = {}
    for col in obj.__table__.columns:
        if col.key in skip:
            continue
        value = getattr(obj, col.key, None)
        if isinstance(value, datetime) and value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        result[col.key] = value
    return result
