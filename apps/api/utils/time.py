"""UTC time helpers. Timestamps are stored naive, in UTC."""
from __future__ import annotations

from datetime import datetime, timezone


def utc_now() -> datetime:
    """Return the current UTC time without tzinfo for DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)
