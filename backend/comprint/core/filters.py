# comprint/core/filters.py
"""
Helpers turning query-string filters into SQLAlchemy clauses.

Free-text search is an OR across columns (case-insensitive substring);
every other filter is ANDed by the caller with `.where(...)`.
"""
from __future__ import annotations

from datetime import date, datetime, time, timezone
from typing import Optional

from sqlalchemy import ColumnElement, or_

from comprint.core.errors import ValidationError


def search_clause(query: Optional[str], *columns) -> Optional[ColumnElement[bool]]:
    q = (query or "").strip()
    if not q:
        return None
    return or_(*(col.icontains(q, autoescape=True) for col in columns))


def parse_bool_flag(value: Optional[str]) -> Optional[bool]:
    """'true' -> True, anything else given -> False, missing -> None."""
    if value is None:
        return None
    return value.strip().lower() == "true"


def parse_date_bound(value: Optional[str], *, name: str, end: bool = False) -> Optional[datetime]:
    """
    Accepts ISO dates or datetimes ('2024-03-01', '2024-03-01T10:00:00Z').
    A bare date used as an upper bound covers the whole day.
    Returned values are UTC-aware.
    """
    if value is None or not value.strip():
        return None
    raw = value.strip()
    try:
        if len(raw) == 10:
            d = date.fromisoformat(raw)
            dt = datetime.combine(d, time.max if end else time.min)
        else:
            dt = datetime.fromisoformat(raw.replace("Z", "+00:00"))
    except ValueError:
        raise ValidationError(f"{name} must be an ISO-8601 date or datetime")

    if dt.tzinfo is None:
        return dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def date_range_clauses(column, start: Optional[datetime], end: Optional[datetime]) -> list:
    clauses = []
    if start is not None:
        clauses.append(column >= start)
    if end is not None:
        clauses.append(column <= end)
    return clauses
