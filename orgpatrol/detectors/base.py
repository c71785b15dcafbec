"""
Detector base — shared shape for every patrol check.

A detector receives the pass's `now`, reads its collaborators through the
PatrolContext, consults the cooldown ledger, and returns zero or more
findings. Detectors declare the collaborators they need; the engine skips
a detector whose collaborators are missing.
"""

from datetime import datetime
from typing import Callable, List, Optional, Tuple

from orgpatrol.interfaces.collaborators import (
    ActorDirectory,
    AllowanceConfig,
    ApprovalQueue,
    CommunicationChannel,
    MemoryMaintenance,
    NotificationChannel,
    OperationsStore,
    ProjectStore,
    ProviderRegistry,
    TodoStore,
    UsageLedger,
)
from orgpatrol.models.finding import Finding, FindingKind, Severity
from orgpatrol.models.org import Actor
from orgpatrol.models.patrol import CooldownFamily, CooldownKey, PatrolConfig
from orgpatrol.patrol.cooldown import CooldownLedger
from orgpatrol.patrol.dispatcher import ActionDispatcher


class PatrolContext:
    """Collaborators and bookkeeping handed to every detector."""

    def __init__(
        self,
        config: PatrolConfig,
        ledger: CooldownLedger,
        dispatcher: ActionDispatcher,
        should_abort: Callable[[], bool],
        ops_store: Optional[OperationsStore] = None,
        project_store: Optional[ProjectStore] = None,
        communication: Optional[CommunicationChannel] = None,
        notifications: Optional[NotificationChannel] = None,
        approval_queue: Optional[ApprovalQueue] = None,
        directory: Optional[ActorDirectory] = None,
        usage_ledger: Optional[UsageLedger] = None,
        allowance: Optional[AllowanceConfig] = None,
        providers: Optional[ProviderRegistry] = None,
        memory: Optional[MemoryMaintenance] = None,
        todo_store: Optional[TodoStore] = None,
    ):
        self.config = config
        self.ledger = ledger
        self.dispatcher = dispatcher
        self.should_abort = should_abort
        self.ops_store = ops_store
        self.project_store = project_store
        self.communication = communication
        self.notifications = notifications
        self.approval_queue = approval_queue
        self.directory = directory
        self.usage_ledger = usage_ledger
        self.allowance = allowance
        self.providers = providers
        self.memory = memory
        self.todo_store = todo_store

    def actor(self, actor_id: Optional[str]) -> Optional[Actor]:
        if not actor_id or self.directory is None:
            return None
        return self.directory.get(actor_id)

    def actor_can_work(self, actor_id: Optional[str]) -> bool:
        """True when the actor exists and is neither suspended nor terminated."""
        actor = self.actor(actor_id)
        return actor is not None and actor.can_work

    def actor_name(self, actor_id: Optional[str], fallback: str = "") -> str:
        actor = self.actor(actor_id)
        if actor is not None:
            return actor.name
        return fallback or actor_id or ""


class Detector:
    """Base class. Subclasses set `name`, `requires`, and implement `detect`."""

    name: str = "detector"
    requires: Tuple[str, ...] = ()

    def __init__(self, ctx: PatrolContext):
        self.ctx = ctx

    @property
    def config(self) -> PatrolConfig:
        return self.ctx.config

    def missing_collaborators(self) -> List[str]:
        return [r for r in self.requires if getattr(self.ctx, r) is None]

    async def detect(self, now: datetime) -> List[Finding]:
        raise NotImplementedError

    def reset(self) -> None:
        """Forget detector-held state. Called on reinitialize."""
        pass

    # --- Helpers ---

    def claim(self, family: CooldownFamily, subject_id: str, now: datetime) -> bool:
        """Record a trigger for the key unless it is still cooling down."""
        key = CooldownKey(family=family, subject_id=subject_id)
        if self.ctx.ledger.is_in_cooldown(key, now):
            return False
        self.ctx.ledger.record_trigger(key, now)
        return True

    def in_cooldown(self, family: CooldownFamily, subject_id: str, now: datetime) -> bool:
        key = CooldownKey(family=family, subject_id=subject_id)
        return self.ctx.ledger.is_in_cooldown(key, now)

    def finding(
        self,
        kind: FindingKind,
        subject_id: str,
        now: datetime,
        severity: Severity = Severity.MEDIUM,
        **detail,
    ) -> Finding:
        return Finding(
            kind=kind,
            severity=severity,
            subject_id=subject_id,
            detail=detail,
            detected_at=now,
        )


def minutes_between(earlier: datetime, later: datetime) -> int:
    return round((later - earlier).total_seconds() / 60)


def hours_between(earlier: datetime, later: datetime) -> int:
    return round((later - earlier).total_seconds() / 3600)
