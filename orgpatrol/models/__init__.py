"""Patrol data models."""

from orgpatrol.models.finding import (
    DigestSection,
    Finding,
    FindingKind,
    NotificationDigest,
    PassResult,
    Severity,
)
from orgpatrol.models.org import (
    Actor,
    ActorStatus,
    ApprovalRequest,
    DirectedMessage,
    MessageStatus,
    Notification,
    PendingMessage,
    TodoItem,
    TodoStatus,
)
from orgpatrol.models.patrol import (
    CooldownEntry,
    CooldownFamily,
    CooldownKey,
    PatrolConfig,
)
from orgpatrol.models.resources import (
    ProbeResult,
    ResourceAllowance,
    UsageRecord,
    UsageSummary,
    UsageTotals,
)
from orgpatrol.models.work import (
    DelegatedTask,
    DelegatedTaskStatus,
    Goal,
    GoalStatus,
    Kpi,
    KpiMetricSource,
    Milestone,
    MilestoneStatus,
    OpsTask,
    ProgressNote,
    Project,
    ProjectStatus,
    ProjectTask,
    WorkItem,
    WorkStatus,
)

__all__ = [
    "Actor",
    "ActorStatus",
    "ApprovalRequest",
    "CooldownEntry",
    "CooldownFamily",
    "CooldownKey",
    "DelegatedTask",
    "DelegatedTaskStatus",
    "DigestSection",
    "DirectedMessage",
    "Finding",
    "FindingKind",
    "Goal",
    "GoalStatus",
    "Kpi",
    "KpiMetricSource",
    "MessageStatus",
    "Milestone",
    "MilestoneStatus",
    "Notification",
    "NotificationDigest",
    "OpsTask",
    "PassResult",
    "PatrolConfig",
    "PendingMessage",
    "ProbeResult",
    "ProgressNote",
    "Project",
    "ProjectStatus",
    "ProjectTask",
    "ResourceAllowance",
    "Severity",
    "TodoItem",
    "TodoStatus",
    "UsageRecord",
    "UsageSummary",
    "UsageTotals",
    "WorkItem",
    "WorkStatus",
]
