"""Tests for the patrol detectors."""

import asyncio
from datetime import datetime, timedelta

from orgpatrol.detectors.activity import InactivityDetector, TodoStalenessDetector
from orgpatrol.detectors.backlog import ApprovalDetector, BacklogDetector
from orgpatrol.detectors.base import PatrolContext
from orgpatrol.detectors.deadlines import (
    APPROACHING,
    OVERDUE,
    DeadlineDetector,
    classify_deadline,
)
from orgpatrol.detectors.forecasting import ResourceForecastDetector
from orgpatrol.detectors.health import MemoryMaintenanceDetector, ProviderHealthDetector
from orgpatrol.detectors.kpi import KpiRefreshDetector
from orgpatrol.detectors.nudging import WorkNudgeDetector
from orgpatrol.models import (
    Actor,
    ActorStatus,
    ApprovalRequest,
    DelegatedTask,
    FindingKind,
    Goal,
    GoalStatus,
    Kpi,
    KpiMetricSource,
    Milestone,
    MilestoneStatus,
    OpsTask,
    PatrolConfig,
    PendingMessage,
    ProbeResult,
    Project,
    ProjectTask,
    ResourceAllowance,
    Severity,
    TodoItem,
    UsageRecord,
    WorkStatus,
)
from orgpatrol.patrol.cooldown import CooldownLedger
from orgpatrol.patrol.dispatcher import ActionDispatcher
from orgpatrol.stores.communication import InMemoryCommunicationChannel
from orgpatrol.stores.operations import InMemoryOperationsStore
from orgpatrol.stores.organization import (
    InMemoryActorDirectory,
    InMemoryApprovalQueue,
    InMemoryTodoStore,
)
from orgpatrol.stores.projects import InMemoryProjectStore
from orgpatrol.stores.resources import (
    InMemoryMemorySubsystem,
    InMemoryProviderRegistry,
    InMemoryUsageLedger,
    StaticAllowanceConfig,
)

NOW = datetime(2026, 3, 10, 10, 0)


def _make_context(config=None, **collaborators) -> PatrolContext:
    config = config or PatrolConfig(dispatch_pacing_seconds=0)
    return PatrolContext(
        config=config,
        ledger=CooldownLedger(config.cooldown_window),
        dispatcher=ActionDispatcher(collaborators.get("communication"), pacing_seconds=0),
        should_abort=lambda: False,
        **collaborators,
    )


def _make_directory(*actors: Actor) -> InMemoryActorDirectory:
    directory = InMemoryActorDirectory()
    for actor in actors:
        directory.upsert(actor)
    return directory


def _detect(detector, now=NOW):
    return asyncio.run(detector.detect(now))


class TestWorkNudgeDetector:
    def setup_method(self):
        self.ops = InMemoryOperationsStore()
        self.comms = InMemoryCommunicationChannel()
        self.directory = _make_directory(
            Actor(id="a1", name="Mina", title="Marketer"),
            Actor(id="a2", name="Oren", status=ActorStatus.SUSPENDED),
        )
        self.ctx = _make_context(
            ops_store=self.ops, directory=self.directory, communication=self.comms
        )
        self.detector = WorkNudgeDetector(self.ctx)

    def test_todo_task_nudged_once_per_cooldown(self):
        self.ops.add_task(OpsTask(
            id="T1", title="Draft newsletter", assignee_id="a1",
            created_at=NOW - timedelta(minutes=10),
        ))

        findings = _detect(self.detector)
        assert len(findings) == 1
        assert findings[0].kind == FindingKind.NUDGE
        assert findings[0].subject_id == "T1"
        assert findings[0].detail["reason"] == "todo"
        assert findings[0].detail["assignee_name"] == "Mina"
        assert findings[0].detail["dispatched"] is True
        assert len(self.comms.messages_to("a1")) == 1
        assert "T1" in self.comms.messages_to("a1")[0].message

        assert _detect(self.detector, NOW + timedelta(minutes=5)) == []
        assert len(self.comms.messages_to("a1")) == 1

        again = _detect(self.detector, NOW + timedelta(minutes=60))
        assert len(again) == 1
        assert len(self.comms.messages_to("a1")) == 2

    def test_suspended_or_missing_assignee_skipped(self):
        self.ops.add_task(OpsTask(id="T1", title="A", assignee_id="a2", created_at=NOW))
        self.ops.add_task(OpsTask(id="T2", title="B", assignee_id="ghost", created_at=NOW))
        self.ops.add_task(OpsTask(id="T3", title="C", created_at=NOW))
        assert _detect(self.detector) == []
        assert self.comms.sent == []

    def test_stale_in_progress_task(self):
        self.ops.add_task(OpsTask(
            id="T1", title="Fix pricing page", status=WorkStatus.IN_PROGRESS,
            assignee_id="a1", created_at=NOW - timedelta(hours=3),
            updated_at=NOW - timedelta(minutes=45),
        ))
        self.ops.add_task(OpsTask(
            id="T2", title="Fresh work", status=WorkStatus.IN_PROGRESS,
            assignee_id="a1", created_at=NOW - timedelta(hours=3),
            updated_at=NOW - timedelta(minutes=10),
        ))

        findings = _detect(self.detector)
        assert [f.subject_id for f in findings] == ["T1"]
        assert findings[0].detail["reason"] == "stale"
        assert findings[0].detail["stale_minutes"] == 45

    def test_nudge_and_deadline_cooldowns_are_separate(self):
        self.ops.add_task(OpsTask(
            id="T1", title="Draft newsletter", assignee_id="a1",
            created_at=NOW, due_date=NOW + timedelta(hours=2),
        ))
        deadlines = DeadlineDetector(self.ctx)

        assert len(_detect(self.detector)) == 1
        assert len(_detect(deadlines)) == 1


class TestDeadlineClassification:
    def test_boundaries(self):
        horizon = timedelta(hours=24)
        assert classify_deadline(NOW + timedelta(hours=24, seconds=1), NOW, horizon) is None
        assert classify_deadline(NOW + timedelta(hours=23, minutes=59), NOW, horizon) == APPROACHING
        assert classify_deadline(NOW - timedelta(seconds=1), NOW, horizon) == OVERDUE
        assert classify_deadline(NOW, NOW, horizon) == APPROACHING


class TestDeadlineDetector:
    def setup_method(self):
        self.ops = InMemoryOperationsStore()
        self.projects = InMemoryProjectStore()
        self.ctx = _make_context(ops_store=self.ops, project_store=self.projects)
        self.detector = DeadlineDetector(self.ctx)

    def test_ops_task_deadlines(self):
        self.ops.add_task(OpsTask(
            id="late", title="Invoice run", assignee_name="Mina",
            created_at=NOW, due_date=NOW - timedelta(hours=3),
        ))
        self.ops.add_task(OpsTask(
            id="soon", title="Board deck", created_at=NOW,
            due_date=NOW + timedelta(hours=23, minutes=59),
        ))
        self.ops.add_task(OpsTask(
            id="later", title="Roadmap", created_at=NOW,
            due_date=NOW + timedelta(hours=24, seconds=1),
        ))
        self.ops.add_task(OpsTask(
            id="done", title="Shipped", status=WorkStatus.DONE, created_at=NOW,
            due_date=NOW - timedelta(hours=3),
        ))

        findings = {f.subject_id: f for f in _detect(self.detector)}
        assert set(findings) == {"late", "soon"}
        assert findings["late"].kind == FindingKind.DEADLINE_OVERDUE
        assert findings["late"].severity == Severity.HIGH
        assert findings["late"].detail["hours_overdue"] == 3
        assert findings["soon"].kind == FindingKind.DEADLINE_APPROACHING
        assert findings["soon"].detail["hours_left"] == 24

    def test_project_milestones_and_tasks(self):
        self.projects.add_project(Project(
            id="p1", name="Launch",
            milestones=[
                Milestone(id="m1", name="Beta", due_date=NOW - timedelta(hours=1)),
                Milestone(
                    id="m2", name="GA", due_date=NOW - timedelta(hours=1),
                    status=MilestoneStatus.COMPLETED, progress=100,
                ),
            ],
            tasks=[
                ProjectTask(id="pt1", title="Docs", created_at=NOW, due_date=NOW + timedelta(hours=5)),
                ProjectTask(
                    id="pt2", title="Cancelled", status=WorkStatus.CANCELLED,
                    created_at=NOW, due_date=NOW + timedelta(hours=5),
                ),
            ],
        ))
        self.projects.add_project(Project(
            id="p2", name="Paused", status="paused",
            milestones=[Milestone(id="m3", name="Old", due_date=NOW - timedelta(days=3))],
        ))

        findings = {f.subject_id: f for f in _detect(self.detector)}
        assert set(findings) == {"m1", "pt1"}
        assert findings["m1"].detail["category"] == "milestone"
        assert findings["m1"].detail["title"] == "Launch → Beta"
        assert findings["pt1"].detail["category"] == "project_task"

    def test_deadline_cooldown_is_a_day(self):
        self.ops.add_task(OpsTask(
            id="late", title="Invoice run", created_at=NOW, due_date=NOW - timedelta(hours=1),
        ))
        assert len(_detect(self.detector)) == 1
        assert _detect(self.detector, NOW + timedelta(hours=23)) == []
        assert len(_detect(self.detector, NOW + timedelta(hours=24))) == 1

    def test_skipped_without_stores(self):
        detector = DeadlineDetector(_make_context())
        assert detector.missing_collaborators() == ["ops_store", "project_store"]
        assert DeadlineDetector(_make_context(ops_store=self.ops)).missing_collaborators() == []


class TestKpiRefreshDetector:
    def setup_method(self):
        self.ops = InMemoryOperationsStore()
        self.projects = InMemoryProjectStore()
        self.usage = InMemoryUsageLedger()
        self.ctx = _make_context(
            ops_store=self.ops, project_store=self.projects, usage_ledger=self.usage
        )
        self.detector = KpiRefreshDetector(self.ctx)

    def test_tasks_completed_written_back_only_on_change(self):
        self.ops.add_kpi(Kpi(
            id="k1", name="Shipped tasks", current=0,
            metric_source=KpiMetricSource.TASKS_COMPLETED,
        ))
        self.ops.add_task(OpsTask(id="t1", title="A", status=WorkStatus.DONE, created_at=NOW))
        self.ops.add_task(OpsTask(id="t2", title="B", status=WorkStatus.DONE, created_at=NOW))

        findings = _detect(self.detector)
        assert len(findings) == 1
        assert findings[0].kind == FindingKind.KPI_DELTA
        assert findings[0].detail["old_value"] == 0
        assert findings[0].detail["new_value"] == 2
        assert self.ops.list_kpis()[0].current == 2

        assert _detect(self.detector) == []

    def test_owner_filter(self):
        self.ops.add_kpi(Kpi(
            id="k1", name="Mina's output", owner_id="a1",
            metric_source=KpiMetricSource.TASKS_COMPLETED,
        ))
        self.ops.add_task(OpsTask(
            id="t1", title="A", status=WorkStatus.DONE, assignee_id="a1", created_at=NOW,
        ))
        self.ops.add_task(OpsTask(
            id="t2", title="B", status=WorkStatus.DONE, assignee_id="a2", created_at=NOW,
        ))

        _detect(self.detector)
        assert self.ops.list_kpis()[0].current == 1

    def test_goal_rate_project_progress_and_calls(self):
        self.ops.add_kpi(Kpi(id="goals", name="Goals", metric_source=KpiMetricSource.GOAL_COMPLETION_RATE))
        self.ops.add_kpi(Kpi(id="proj", name="Projects", metric_source=KpiMetricSource.PROJECT_PROGRESS))
        self.ops.add_kpi(Kpi(id="calls", name="Calls", metric_source=KpiMetricSource.CALLS_TODAY))
        self.ops.add_goal(Goal(id="g1", title="Grow", status=GoalStatus.COMPLETED))
        self.ops.add_goal(Goal(id="g2", title="Hire"))
        self.projects.add_project(Project(id="p1", name="A", progress=40))
        self.projects.add_project(Project(id="p2", name="B", progress=60))
        self.usage.record(UsageRecord(actor_id="a1", timestamp=NOW - timedelta(hours=1)))
        self.usage.record(UsageRecord(actor_id="a1", timestamp=NOW - timedelta(days=1)))

        _detect(self.detector)
        values = {k.id: k.current for k in self.ops.list_kpis()}
        assert values == {"goals": 50, "proj": 50, "calls": 1}

    def test_manual_kpis_untouched(self):
        self.ops.add_kpi(Kpi(id="k1", name="Revenue tasks completed", current=7))
        self.ops.add_task(OpsTask(id="t1", title="A", status=WorkStatus.DONE, created_at=NOW))
        assert _detect(self.detector) == []
        assert self.ops.list_kpis()[0].current == 7


class TestBacklogDetector:
    def setup_method(self):
        self.comms = InMemoryCommunicationChannel()
        self.ctx = _make_context(communication=self.comms)
        self.detector = BacklogDetector(self.ctx)

    def test_stale_delegations(self):
        self.comms.add_delegated_task(DelegatedTask(
            id="d1", from_actor="a1", to_actor="a2", description="Review contract",
            created_at=NOW - timedelta(hours=3),
        ))
        self.comms.add_delegated_task(DelegatedTask(
            id="d2", from_actor="a1", to_actor="a2", created_at=NOW - timedelta(hours=1),
        ))
        self.comms.add_delegated_task(DelegatedTask(
            id="d3", from_actor="a1", to_actor="a2", status="completed",
            created_at=NOW - timedelta(hours=5),
        ))

        findings = _detect(self.detector)
        assert len(findings) == 1
        assert findings[0].subject_id == "d1"
        assert findings[0].detail["type"] == "delegated_task"
        assert findings[0].detail["age_hours"] == 3

        assert _detect(self.detector, NOW + timedelta(minutes=30)) == []

    def test_pending_messages_aggregate(self):
        for i, age in enumerate((45, 90, 10)):
            self.comms.add_pending_message(PendingMessage(
                id=f"m{i}", from_actor="a1", to_actor="a2",
                created_at=NOW - timedelta(minutes=age),
            ))

        findings = _detect(self.detector)
        assert len(findings) == 1
        assert findings[0].detail == {
            "type": "pending_messages",
            "count": 2,
            "oldest_minutes": 90,
        }


class TestApprovalDetector:
    def setup_method(self):
        self.queue = InMemoryApprovalQueue()
        self.detector = ApprovalDetector(_make_context(approval_queue=self.queue))

    def test_stale_request_flagged_once(self):
        self.queue.submit(ApprovalRequest(
            id="r1", role_name="Designer", requester_id="a1", requester_name="Mina",
            created_at=NOW - timedelta(minutes=45),
        ))

        findings = _detect(self.detector)
        assert len(findings) == 1
        assert findings[0].kind == FindingKind.APPROVAL_STALE
        assert findings[0].detail["requester"] == "Mina"
        assert findings[0].detail["age_minutes"] == 45

        assert _detect(self.detector, NOW + timedelta(minutes=5)) == []

    def test_young_request_ignored(self):
        self.queue.submit(ApprovalRequest(
            id="r1", role_name="Designer", requester_id="a1",
            created_at=NOW - timedelta(minutes=20),
        ))
        assert _detect(self.detector) == []

    def test_reviewed_request_dropped(self):
        self.queue.submit(ApprovalRequest(
            id="r1", role_name="Designer", requester_id="a1",
            created_at=NOW - timedelta(minutes=45),
        ))
        self.queue.review("r1", "approved")
        assert _detect(self.detector) == []


class TestInactivityDetector:
    def setup_method(self):
        self.ops = InMemoryOperationsStore()
        self.usage = InMemoryUsageLedger()
        self.comms = InMemoryCommunicationChannel()
        self.directory = _make_directory(
            Actor(id="a1", name="Mina", title="Marketer"),
            Actor(id="secretary", name="Sec"),
            Actor(id="a3", name="Noor"),
        )
        self.ctx = _make_context(
            ops_store=self.ops, usage_ledger=self.usage,
            communication=self.comms, directory=self.directory,
        )
        self.detector = InactivityDetector(self.ctx)
        for actor_id in ("a1", "secretary", "a3"):
            self.ops.add_task(OpsTask(
                id=f"t-{actor_id}", title="Open", assignee_id=actor_id, created_at=NOW,
            ))
            self.usage.record(UsageRecord(actor_id=actor_id, timestamp=NOW - timedelta(hours=3)))

    def test_inactive_actor_with_open_work(self):
        self.usage.record(UsageRecord(actor_id="a3", timestamp=NOW - timedelta(minutes=30)))

        findings = _detect(self.detector)
        assert [f.subject_id for f in findings] == ["a1"]
        assert findings[0].detail["inactive_minutes"] == 180
        assert findings[0].detail["open_items"] == 1

    def test_delegation_start_counts_as_activity(self):
        self.comms.add_delegated_task(DelegatedTask(
            id="d1", from_actor="a3", to_actor="a1", status="in_progress",
            created_at=NOW - timedelta(hours=4), started_at=NOW - timedelta(minutes=20),
        ))
        subjects = [f.subject_id for f in _detect(self.detector)]
        assert "a1" not in subjects

    def test_no_activity_record_not_judged(self):
        self.ops.add_task(OpsTask(id="t-new", title="Open", assignee_id="a4", created_at=NOW))
        self.directory.upsert(Actor(id="a4", name="New hire"))
        subjects = [f.subject_id for f in _detect(self.detector)]
        assert "a4" not in subjects

    def test_no_open_work_exempt(self):
        self.ops.update_task("t-a1", {"status": "done"}, "test", "Test")
        subjects = [f.subject_id for f in _detect(self.detector)]
        assert "a1" not in subjects


class TestTodoStalenessDetector:
    def setup_method(self):
        self.todos = InMemoryTodoStore()
        self.comms = InMemoryCommunicationChannel()
        self.directory = _make_directory(
            Actor(id="a1", name="Mina"),
            Actor(id="a2", name="Oren", status=ActorStatus.SUSPENDED),
        )
        self.detector = TodoStalenessDetector(_make_context(
            todo_store=self.todos, communication=self.comms, directory=self.directory,
        ))

    def test_stale_todos_reminded_once(self):
        self.todos.add("a1", TodoItem(id="x1", title="Call supplier", created_at=NOW - timedelta(hours=1)))
        self.todos.add("a1", TodoItem(id="x2", title="File receipts", created_at=NOW - timedelta(minutes=5)))
        self.todos.add("a1", TodoItem(
            id="x3", title="Finished", status="done", created_at=NOW - timedelta(hours=2),
        ))

        findings = _detect(self.detector)
        assert len(findings) == 1
        assert findings[0].detail["reason"] == "todo_list"
        assert findings[0].detail["titles"] == ["Call supplier"]
        assert len(self.comms.messages_to("a1")) == 1

        assert _detect(self.detector, NOW + timedelta(minutes=10)) == []

    def test_suspended_actor_skipped(self):
        self.todos.add("a2", TodoItem(id="x1", title="Call supplier", created_at=NOW - timedelta(hours=1)))
        assert _detect(self.detector) == []
        assert self.comms.sent == []


class _FlakyRegistry(InMemoryProviderRegistry):
    def __init__(self):
        super().__init__()
        self.raise_for = set()

    async def probe(self, name: str) -> ProbeResult:
        if name in self.raise_for:
            raise TimeoutError("connect timed out")
        return await super().probe(name)


class TestProviderHealthDetector:
    def setup_method(self):
        self.registry = _FlakyRegistry()
        self.detector = ProviderHealthDetector(_make_context(providers=self.registry))

    def test_only_transitions_reported(self):
        self.registry.register("openai", available=False, error="401")

        results = [_detect(self.detector, NOW + timedelta(minutes=5 * i)) for i in range(3)]
        assert [len(r) for r in results] == [1, 0, 0]
        assert results[0][0].severity == Severity.HIGH
        assert results[0][0].detail["error"] == "401"

        self.registry.set_available("openai", True)
        recovered = _detect(self.detector)
        assert len(recovered) == 1
        assert recovered[0].detail["recovered"] is True
        assert _detect(self.detector) == []

    def test_healthy_provider_silent(self):
        self.registry.register("anthropic", available=True)
        assert _detect(self.detector) == []
        assert self.detector.last_status("anthropic") is True

    def test_mock_provider_skipped(self):
        self.registry.register("mock", available=False)
        assert _detect(self.detector) == []
        assert self.registry.probe_count == 0

    def test_raising_provider_reported_unavailable(self):
        self.registry.register("openai", available=True)
        self.registry.raise_for.add("openai")

        results = [_detect(self.detector, NOW + timedelta(minutes=5 * i)) for i in range(3)]
        assert [len(r) for r in results] == [1, 0, 0]
        assert results[0][0].detail["available"] is False
        assert "timed out" in results[0][0].detail["error"]
        assert self.detector.last_status("openai") is False

        self.registry.raise_for.clear()
        recovered = _detect(self.detector)
        assert len(recovered) == 1
        assert recovered[0].detail["recovered"] is True

    def test_reset_forgets_status(self):
        self.registry.register("openai", available=False)
        _detect(self.detector)
        self.detector.reset()
        assert self.detector.last_status("openai") is None
        assert len(_detect(self.detector)) == 1


class _BrokenMemory(InMemoryMemorySubsystem):
    async def run_maintenance(self) -> None:
        raise RuntimeError("vector store offline")


class TestMemoryMaintenanceDetector:
    def test_throttled_to_interval(self):
        memory = InMemoryMemorySubsystem()
        detector = MemoryMaintenanceDetector(_make_context(memory=memory))

        assert _detect(detector) == []
        _detect(detector, NOW + timedelta(minutes=10))
        assert memory.runs == 1
        _detect(detector, NOW + timedelta(minutes=30))
        assert memory.runs == 2

    def test_failure_swallowed(self):
        detector = MemoryMaintenanceDetector(_make_context(memory=_BrokenMemory()))
        assert _detect(detector) == []


class TestResourceForecastDetector:
    def setup_method(self):
        self.usage = InMemoryUsageLedger()
        self.allowance = StaticAllowanceConfig(ResourceAllowance(daily_limit=1_000_000))
        self.detector = ResourceForecastDetector(_make_context(
            usage_ledger=self.usage, allowance=self.allowance,
        ))
        self.five_am = datetime(2026, 3, 10, 5, 0)

    def test_projection_over_limit_warns_once_per_day(self):
        self.usage.record(UsageRecord(
            actor_id="a1", prompt_tokens=300_000, completion_tokens=200_000,
            timestamp=self.five_am - timedelta(hours=2),
        ))

        findings = _detect(self.detector, self.five_am)
        assert len(findings) == 1
        detail = findings[0].detail
        assert detail["used"] == 500_000
        assert detail["usage_percent"] == 50
        assert detail["hourly_rate"] == 100_000
        assert detail["projected_total"] == 2_400_000
        assert detail["projected_percent"] == 240
        assert findings[0].severity == Severity.HIGH

        assert _detect(self.detector, self.five_am + timedelta(hours=3)) == []

    def test_yesterdays_usage_ignored(self):
        self.usage.record(UsageRecord(
            actor_id="a1", prompt_tokens=900_000, timestamp=self.five_am - timedelta(days=1),
        ))
        assert _detect(self.detector, self.five_am) == []

    def test_high_water_mark(self):
        evening = datetime(2026, 3, 10, 22, 0)
        self.usage.record(UsageRecord(actor_id="a1", prompt_tokens=850_000, timestamp=evening))
        findings = _detect(self.detector, evening)
        assert len(findings) == 1
        assert findings[0].detail["usage_percent"] == 85
        assert findings[0].severity == Severity.MEDIUM

    def test_too_early_in_the_day(self):
        early = datetime(2026, 3, 10, 0, 30)
        self.usage.record(UsageRecord(actor_id="a1", prompt_tokens=900_000, timestamp=early))
        assert _detect(self.detector, early) == []

    def test_unlimited_allowance(self):
        self.allowance.set_allowance(ResourceAllowance(daily_limit=None))
        self.usage.record(UsageRecord(actor_id="a1", prompt_tokens=900_000, timestamp=self.five_am))
        assert _detect(self.detector, self.five_am) == []
