"""Findings and digests — the ephemeral output of one patrol pass."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel


class FindingKind(str, Enum):
    NUDGE = "nudge"
    STATUS_SYNC = "status-sync"
    DEADLINE_OVERDUE = "deadline-overdue"
    DEADLINE_APPROACHING = "deadline-approaching"
    KPI_DELTA = "kpi-delta"
    BACKLOG = "backlog"
    APPROVAL_STALE = "approval-stale"
    INACTIVE_ACTOR = "inactive-actor"
    INTEGRITY_ISSUE = "integrity-issue"
    RESOURCE_FORECAST = "resource-forecast"
    HEALTH_CHANGE = "health-change"


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class Finding(BaseModel):
    """A single detected condition. Never persisted."""

    kind: FindingKind
    severity: Severity = Severity.MEDIUM
    subject_id: str                         # work item id or actor id
    detail: dict = {}                       # free-form payload for rendering
    detected_at: datetime


class DigestSection(BaseModel):
    key: str
    title: str
    lines: List[str]

    def render(self) -> str:
        return "\n".join([self.title] + self.lines)


class NotificationDigest(BaseModel):
    """Ordered sections from one pass. Built fresh every pass."""

    generated_at: datetime
    sections: List[DigestSection] = []
    header: str = "Patrol report"

    @property
    def is_empty(self) -> bool:
        return not self.sections

    def render(self) -> str:
        body = "\n\n".join(s.render() for s in self.sections)
        return f"{self.header}\n\n{body}"


class PassResult(BaseModel):
    """What one pass observed and delivered."""

    started_at: datetime
    finished_at: Optional[datetime] = None
    findings: List[Finding] = []
    digest: Optional[NotificationDigest] = None
    digest_pushed: bool = False
    daily_digest_pushed: bool = False
    aborted: bool = False
