"""Helpers shared by the in-memory stores."""

from datetime import datetime
from typing import Callable, Optional

from pydantic import BaseModel

Clock = Callable[[], datetime]


def apply_updates(record: BaseModel, updates: dict) -> BaseModel:
    """Validate `updates` against the record's model, then apply in place.

    Identity is preserved so callers holding the record see the change.
    Keys the model does not declare are rejected with ValueError.
    """
    unknown = set(updates) - set(type(record).model_fields)
    if unknown:
        raise ValueError(f"unknown fields: {', '.join(sorted(unknown))}")
    validated = type(record).model_validate({**record.model_dump(), **updates})
    for field_name in updates:
        setattr(record, field_name, getattr(validated, field_name))
    return record


def resolve_clock(clock: Optional[Clock]) -> Clock:
    return clock or datetime.now
