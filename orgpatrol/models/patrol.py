"""Patrol configuration and cooldown bookkeeping."""

import os
from datetime import datetime, timedelta
from enum import Enum
from typing import List

from pydantic import BaseModel, ConfigDict


class CooldownFamily(str, Enum):
    """Namespaces for cooldown keys. One per alerting detector."""

    NUDGE = "nudge"
    DEADLINE = "deadline"
    BACKLOG = "backlog"
    APPROVAL = "approval"
    INACTIVE = "inactive"
    INTEGRITY = "integrity"
    FORECAST = "forecast"
    TODO = "todo"


class CooldownKey(BaseModel):
    """What was alerted about whom. Hashable, compared field by field."""

    model_config = ConfigDict(frozen=True)

    family: CooldownFamily
    subject_id: str

    def __str__(self) -> str:
        return f"{self.family.value}:{self.subject_id}"


class CooldownEntry(BaseModel):
    key: CooldownKey
    last_triggered_at: datetime


class PatrolConfig(BaseModel):
    """Configuration for the patrol engine."""

    interval_seconds: float = 300
    warmup_seconds: float = 30

    nudge_cooldown_minutes: int = 60
    deadline_cooldown_hours: int = 24

    stale_threshold_minutes: int = 30
    deadline_horizon_hours: int = 24
    delegation_stale_minutes: int = 120
    message_stale_minutes: int = 30
    approval_stale_minutes: int = 30
    inactivity_threshold_minutes: int = 120
    memory_maintenance_interval_minutes: int = 30

    daily_digest_hour: int = 18
    forecast_high_water_percent: int = 80
    forecast_projection_limit_percent: int = 100
    forecast_min_elapsed_hours: float = 1.0
    progress_tolerance_percent: int = 5

    dispatch_pacing_seconds: float = 3.0

    announcer_id: str = "secretary"
    system_actor_id: str = "system"
    passive_actor_ids: List[str] = ["secretary"]
    skip_provider_names: List[str] = ["mock"]
    integrity_report_limit: int = 5

    def cooldown_window(self, family: CooldownFamily) -> timedelta:
        """Minimum gap between two findings for the same key in a family."""
        if family in (CooldownFamily.DEADLINE, CooldownFamily.FORECAST):
            return timedelta(hours=self.deadline_cooldown_hours)
        return timedelta(minutes=self.nudge_cooldown_minutes)

    @classmethod
    def from_env(cls, prefix: str = "ORGPATROL_") -> "PatrolConfig":
        """Overlay ORGPATROL_<FIELD> environment variables on the defaults."""
        overrides = {}
        for name, field in cls.model_fields.items():
            raw = os.getenv(f"{prefix}{name.upper()}")
            if raw is None or not raw.strip():
                continue
            if field.annotation == List[str]:
                overrides[name] = [p.strip() for p in raw.split(",") if p.strip()]
            else:
                overrides[name] = raw.strip()
        return cls.model_validate(overrides)
