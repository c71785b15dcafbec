"""Resource usage, allowances and provider reachability."""

from datetime import datetime
from typing import Optional

from pydantic import BaseModel, field_validator

from orgpatrol.models.timeutil import to_naive_local


class UsageRecord(BaseModel):
    """One LLM call charged to an actor."""

    actor_id: str
    prompt_tokens: int = 0
    completion_tokens: int = 0
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def normalize_times(cls, value):
        return to_naive_local(value)

    @property
    def total_tokens(self) -> int:
        return self.prompt_tokens + self.completion_tokens


class UsageSummary(BaseModel):
    """Per-actor aggregate over a time window."""

    actor_id: str
    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_tokens: int = 0
    call_count: int = 0
    last_used: Optional[datetime] = None


class UsageTotals(BaseModel):
    total_prompt_tokens: int = 0
    total_completion_tokens: int = 0
    total_tokens: int = 0
    call_count: int = 0


class ResourceAllowance(BaseModel):
    daily_limit: Optional[int] = None       # None or <= 0 means unlimited
    total_limit: Optional[int] = None


class ProbeResult(BaseModel):
    available: bool
    error: Optional[str] = None
