"""Timestamps are naive local time throughout; aware inputs are converted on the way in."""

from datetime import datetime
from typing import Optional


def to_naive_local(value: Optional[datetime]) -> Optional[datetime]:
    """Convert an aware datetime to naive local time. Naive values pass through."""
    if isinstance(value, datetime) and value.tzinfo is not None:
        return value.astimezone().replace(tzinfo=None)
    return value
