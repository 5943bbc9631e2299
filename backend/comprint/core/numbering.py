# comprint/core/numbering.py
from __future__ import annotations

from datetime import date, datetime, timezone
from typing import Optional

INVOICE_PREFIX = "INV"
SERVICE_REQUEST_PREFIX = "SR"
SEQUENCE_WIDTH = 4


def utcnow() -> datetime:
    return datetime.now(timezone.utc)


def daily_prefix(kind: str, day: Optional[date] = None) -> str:
    """INV + 2024-03-07 -> 'INV-240307-'"""
    d = day or utcnow().date()
    return f"{kind}-{d:%y%m%d}-"


def next_sequence_number(prefix: str, latest: Optional[str]) -> str:
    """
    Given the highest existing number for today's prefix (or None),
    return the next one. Unparseable tails restart the sequence at 1.
    """
    seq = 1
    if latest and latest.startswith(prefix):
        tail = latest[len(prefix):]
        if tail.isdigit():
            seq = int(tail) + 1
    return f"{prefix}{seq:0{SEQUENCE_WIDTH}d}"
