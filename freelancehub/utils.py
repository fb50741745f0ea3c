"""Small shared helpers for timestamps, ids and serialization."""

import uuid
from datetime import datetime, timezone
from decimal import Decimal
from typing import Any, Optional

from dateutil.parser import isoparse


def utc_now() -> datetime:
    """Get current UTC timestamp."""
    return datetime.now(timezone.utc)


def new_id() -> str:
    return str(uuid.uuid4())


def parse_datetime(value: Any) -> Optional[datetime]:
    """Parse an ISO-8601 string (or pass through a datetime).

    Naive values are assumed to be UTC, which is how Postgres
    ``timestamptz`` columns come back from PostgREST.
    """
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        dt = value
    else:
        dt = isoparse(str(value))
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt


def iso(value: Optional[datetime]) -> Optional[str]:
    return value.isoformat() if value else None


def to_decimal(value: Any) -> Decimal:
    """Coerce floats/ints/strings to Decimal without float artifacts."""
    if isinstance(value, Decimal):
        return value
    return Decimal(str(value))
