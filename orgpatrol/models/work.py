"""Work Items — the three independently-owned views of a unit of work."""

from datetime import datetime
from enum import Enum
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator

from orgpatrol.models.timeutil import to_naive_local


class WorkStatus(str, Enum):
    TODO = "todo"
    IN_PROGRESS = "in_progress"
    DONE = "done"
    BLOCKED = "blocked"
    CANCELLED = "cancelled"
    REVIEW = "review"


ACTIVE_STATUSES = (WorkStatus.TODO, WorkStatus.IN_PROGRESS)
TERMINAL_STATUSES = (WorkStatus.DONE, WorkStatus.CANCELLED)


class WorkItem(BaseModel):
    """Shape shared by operational, project-plan and delegated work."""

    id: str
    title: str
    status: WorkStatus = WorkStatus.TODO
    assignee_id: Optional[str] = None
    due_date: Optional[datetime] = None
    updated_at: Optional[datetime] = None
    created_at: datetime

    @field_validator("due_date", "updated_at", "created_at", "completed_at", check_fields=False)
    @classmethod
    def normalize_times(cls, value):
        return to_naive_local(value)

    @property
    def last_touched(self) -> datetime:
        return self.updated_at or self.created_at

    @property
    def is_active(self) -> bool:
        return self.status in ACTIVE_STATUSES


class OpsTask(WorkItem):
    """Operational task. The source of truth for status."""

    description: str = ""
    priority: str = "normal"
    assignee_name: str = ""
    requester_id: Optional[str] = None
    requester_name: str = ""
    completed_at: Optional[datetime] = None
    cancel_reason: Optional[str] = None


class ProgressNote(BaseModel):
    content: str
    updated_by: str
    updated_by_name: str = ""
    timestamp: datetime

    @field_validator("timestamp")
    @classmethod
    def normalize_times(cls, value):
        return to_naive_local(value)


class ProjectTask(WorkItem):
    """Project-plan task. Linked to the other stores by foreign key only."""

    assignee_name: str = ""
    milestone_id: Optional[str] = None
    ops_task_id: Optional[str] = None       # linked operational task
    delegated_task_id: Optional[str] = None  # linked delegated hand-off
    blocker_note: Optional[str] = None
    progress_notes: List[ProgressNote] = []
    completed_at: Optional[datetime] = None


class MilestoneStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"


class Milestone(BaseModel):
    id: str
    name: str
    due_date: Optional[datetime] = None
    progress: int = Field(ge=0, le=100, default=0)
    status: MilestoneStatus = MilestoneStatus.PENDING

    @field_validator("due_date")
    @classmethod
    def normalize_times(cls, value):
        return to_naive_local(value)


class ProjectStatus(str, Enum):
    PLANNING = "planning"
    ACTIVE = "active"
    PAUSED = "paused"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class Project(BaseModel):
    id: str
    name: str
    status: ProjectStatus = ProjectStatus.ACTIVE
    progress: int = Field(ge=0, le=100, default=0)  # cached aggregate
    milestones: List[Milestone] = []
    tasks: List[ProjectTask] = []
    updated_at: Optional[datetime] = None

    @field_validator("updated_at")
    @classmethod
    def normalize_times(cls, value):
        return to_naive_local(value)

    def completion_percent(self) -> int:
        """Task completion ratio as a whole percentage."""
        if not self.tasks:
            return 0
        done = sum(1 for t in self.tasks if t.status == WorkStatus.DONE)
        return round(done * 100 / len(self.tasks))


class DelegatedTaskStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    COMPLETED = "completed"
    FAILED = "failed"


class DelegatedTask(BaseModel):
    """A hand-off from one actor to another over the communication channel."""

    id: str
    from_actor: str
    to_actor: str
    description: str = ""
    status: DelegatedTaskStatus = DelegatedTaskStatus.PENDING
    created_at: datetime
    started_at: Optional[datetime] = None
    result: Optional[str] = None

    @field_validator("created_at", "started_at")
    @classmethod
    def normalize_times(cls, value):
        return to_naive_local(value)


class KpiMetricSource(str, Enum):
    """Explicit binding between a KPI and the figure that feeds it."""

    TASKS_COMPLETED = "tasks_completed"
    GOAL_COMPLETION_RATE = "goal_completion_rate"
    PROJECT_PROGRESS = "project_progress"
    CALLS_TODAY = "calls_today"


class Kpi(BaseModel):
    id: str
    name: str
    current: Optional[float] = None
    unit: str = ""
    owner_id: Optional[str] = None
    metric_source: Optional[KpiMetricSource] = None  # None = maintained by hand


class GoalStatus(str, Enum):
    ACTIVE = "active"
    COMPLETED = "completed"
    ABANDONED = "abandoned"


class Goal(BaseModel):
    id: str
    title: str
    status: GoalStatus = GoalStatus.ACTIVE
