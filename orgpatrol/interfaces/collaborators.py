"""
Collaborator contracts — the narrow interfaces the patrol consumes.

The patrol owns none of these stores. It is handed already-initialized
collaborators at construction time and calls only the methods below.
Every collaborator is optional: a detector whose collaborator is absent
skips its check.

Store reads and writes are synchronous and individually consistent.
Outbound calls (directed messages, provider probes, memory maintenance)
are coroutines; the patrol awaits each before moving on.
"""

from datetime import datetime
from typing import Dict, List, Optional, Protocol, Tuple

from orgpatrol.models.org import (
    Actor,
    ApprovalRequest,
    DirectedMessage,
    PendingMessage,
    TodoItem,
)
from orgpatrol.models.resources import (
    ProbeResult,
    ResourceAllowance,
    UsageSummary,
    UsageTotals,
)
from orgpatrol.models.work import (
    DelegatedTask,
    Goal,
    Kpi,
    OpsTask,
    ProgressNote,
    Project,
    ProjectStatus,
    ProjectTask,
    WorkStatus,
)


class OperationsStore(Protocol):
    """Operational tasks, KPIs and goals."""

    def list_tasks(
        self,
        status: Optional[WorkStatus] = None,
        assignee_id: Optional[str] = None,
    ) -> List[OpsTask]: ...

    def update_task(
        self, task_id: str, updates: dict, actor_id: str, actor_name: str
    ) -> Optional[OpsTask]: ...

    def list_kpis(self) -> List[Kpi]: ...

    def update_kpi_value(
        self, kpi_id: str, value: float, actor_id: str, actor_name: str
    ) -> Optional[Kpi]: ...

    def list_goals(self) -> List[Goal]: ...


class ProjectStore(Protocol):
    """Project plans: milestones, tasks and cached progress."""

    def list_projects(self, status: Optional[ProjectStatus] = None) -> List[Project]: ...

    def update_task(
        self, project_id: str, task_id: str, updates: dict
    ) -> Optional[ProjectTask]: ...

    def add_progress_note(
        self, project_id: str, task_id: str, note: ProgressNote
    ) -> None: ...

    def recalculate_progress(self, project_id: str) -> int: ...

    def find_by_ops_task_id(
        self, ops_task_id: str
    ) -> Optional[Tuple[Project, ProjectTask]]: ...

    def find_by_delegated_task_id(
        self, delegated_task_id: str
    ) -> Optional[Tuple[Project, ProjectTask]]: ...


class CommunicationChannel(Protocol):
    """Inter-actor messaging and delegation."""

    async def send_message(self, message: DirectedMessage) -> None: ...

    def list_delegated_tasks(self) -> List[DelegatedTask]: ...

    def list_pending_messages(self) -> List[PendingMessage]: ...


class NotificationChannel(Protocol):
    """Passive channel for messages attributed to an announcer actor."""

    def push(self, announcer_id: str, text: str) -> None: ...


class ApprovalQueue(Protocol):
    def list_pending(self) -> List[ApprovalRequest]: ...


class ActorDirectory(Protocol):
    def get(self, actor_id: str) -> Optional[Actor]: ...

    def list_all(self) -> List[Actor]: ...


class UsageLedger(Protocol):
    """Resource (token) usage by actor."""

    def summaries(
        self,
        actor_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[UsageSummary]: ...

    def total_usage(self, since: Optional[datetime] = None) -> UsageTotals: ...


class AllowanceConfig(Protocol):
    def current_allowance(self) -> ResourceAllowance: ...


class ProviderRegistry(Protocol):
    """Configured LLM providers."""

    def provider_names(self) -> List[str]: ...

    async def probe(self, name: str) -> ProbeResult: ...


class MemoryMaintenance(Protocol):
    async def run_maintenance(self) -> None: ...


class TodoStore(Protocol):
    def list_all(self) -> Dict[str, List[TodoItem]]: ...
