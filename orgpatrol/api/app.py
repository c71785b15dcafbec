"""
Org Patrol API — FastAPI host for the patrol engine.

Exposes:
- Patrol control (start / stop / reinitialize) and status
- Ingestion into the in-memory stores the patrol watches
- The announcer's notification feed
"""

from typing import Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from pydantic import BaseModel

from orgpatrol.models import (
    Actor,
    ApprovalRequest,
    DelegatedTask,
    Kpi,
    Milestone,
    OpsTask,
    PatrolConfig,
    PendingMessage,
    Project,
    ProjectTask,
    ResourceAllowance,
    UsageRecord,
)
from orgpatrol.patrol.loop import PatrolEngine
from orgpatrol.stores.communication import (
    InMemoryCommunicationChannel,
    InMemoryNotificationChannel,
)
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


# --- Request/Response Models ---

class StartRequest(BaseModel):
    interval_seconds: Optional[float] = None


class ApprovalReviewRequest(BaseModel):
    decision: str


class ProviderRegisterRequest(BaseModel):
    name: str
    available: bool = True
    error: Optional[str] = None


# --- Application Factory ---

def create_app(
    config: Optional[PatrolConfig] = None,
    ops_store: Optional[InMemoryOperationsStore] = None,
    project_store: Optional[InMemoryProjectStore] = None,
    directory: Optional[InMemoryActorDirectory] = None,
    notifications: Optional[InMemoryNotificationChannel] = None,
) -> FastAPI:
    """Create and configure the FastAPI application."""

    if config is None:
        load_dotenv()
        config = PatrolConfig.from_env()

    app = FastAPI(
        title="Org Patrol API",
        description="Periodic reconciliation and notification loop for an AI-staffed organization",
        version="0.1.0",
    )

    ops = ops_store or InMemoryOperationsStore()
    projects = project_store or InMemoryProjectStore()
    actors = directory or InMemoryActorDirectory()
    notices = notifications or InMemoryNotificationChannel()
    comms = InMemoryCommunicationChannel()
    approvals = InMemoryApprovalQueue()
    usage = InMemoryUsageLedger()
    allowance = StaticAllowanceConfig()
    providers = InMemoryProviderRegistry()
    memory = InMemoryMemorySubsystem()
    todos = InMemoryTodoStore()

    engine = PatrolEngine(
        config,
        ops_store=ops,
        project_store=projects,
        communication=comms,
        notifications=notices,
        approval_queue=approvals,
        directory=actors,
        usage_ledger=usage,
        allowance=allowance,
        providers=providers,
        memory=memory,
        todo_store=todos,
    )

    app.state.ops_store = ops
    app.state.project_store = projects
    app.state.directory = actors
    app.state.notifications = notices
    app.state.communication = comms
    app.state.approval_queue = approvals
    app.state.usage_ledger = usage
    app.state.allowance = allowance
    app.state.providers = providers
    app.state.engine = engine

    # === PATROL CONTROL ===
    # Control endpoints are async so the engine schedules onto the server loop.

    @app.get("/patrol/status")
    def patrol_status():
        """Current patrol status."""
        return {
            "status": engine.status,
            "checking": engine.is_checking,
            "pass_count": engine.pass_count,
            "cooldown_entries": len(engine.ledger),
            "detectors": [d.name for d in engine.detectors],
        }

    @app.post("/patrol/start")
    async def start_patrol(req: Optional[StartRequest] = None):
        """Start the periodic patrol."""
        engine.start(interval_seconds=req.interval_seconds if req else None)
        return {"status": engine.status}

    @app.post("/patrol/stop")
    async def stop_patrol():
        """Stop the patrol. An in-flight pass returns early."""
        engine.stop()
        return {"status": engine.status}

    @app.post("/patrol/reinitialize")
    async def reinitialize_patrol():
        """Stop and forget cooldowns, provider status and the daily marker."""
        engine.reinitialize()
        return {"status": engine.status, "cooldown_entries": len(engine.ledger)}

    @app.get("/patrol/config")
    def get_patrol_config():
        """Current patrol configuration."""
        return engine.config.model_dump()

    # === ORGANIZATION ===

    @app.post("/actors")
    def upsert_actor(actor: Actor):
        actors.upsert(actor)
        return actor.model_dump(mode="json")

    @app.get("/actors")
    def list_actors():
        return [a.model_dump(mode="json") for a in actors.list_all()]

    @app.get("/actors/{actor_id}")
    def get_actor(actor_id: str):
        actor = actors.get(actor_id)
        if not actor:
            raise HTTPException(404, "Actor not found")
        return actor.model_dump(mode="json")

    @app.post("/approvals")
    def submit_approval(request: ApprovalRequest):
        approvals.submit(request)
        return request.model_dump(mode="json")

    @app.get("/approvals/pending")
    def list_pending_approvals():
        return [r.model_dump(mode="json") for r in approvals.list_pending()]

    @app.post("/approvals/{request_id}/review")
    def review_approval(request_id: str, req: ApprovalReviewRequest):
        result = approvals.review(request_id, req.decision)
        if not result:
            raise HTTPException(404, "Approval request not found or not pending")
        return result.model_dump(mode="json")

    # === OPERATIONS ===

    @app.post("/ops/tasks")
    def add_ops_task(task: OpsTask):
        ops.add_task(task)
        return task.model_dump(mode="json")

    @app.get("/ops/tasks")
    def list_ops_tasks():
        return [t.model_dump(mode="json") for t in ops.list_tasks()]

    @app.patch("/ops/tasks/{task_id}")
    def update_ops_task(task_id: str, updates: dict):
        """Manual status change, as an operator would make it."""
        try:
            task = ops.update_task(task_id, updates, actor_id="api", actor_name="API")
        except ValueError as e:
            raise HTTPException(422, str(e))
        if not task:
            raise HTTPException(404, "Task not found")
        return task.model_dump(mode="json")

    @app.post("/ops/kpis")
    def add_kpi(kpi: Kpi):
        ops.add_kpi(kpi)
        return kpi.model_dump(mode="json")

    @app.get("/ops/kpis")
    def list_kpis():
        return [k.model_dump(mode="json") for k in ops.list_kpis()]

    # === PROJECTS ===

    @app.post("/projects")
    def add_project(project: Project):
        projects.add_project(project)
        return project.model_dump(mode="json")

    @app.get("/projects")
    def list_projects():
        return [p.model_dump(mode="json") for p in projects.list_projects()]

    @app.get("/projects/{project_id}")
    def get_project(project_id: str):
        project = projects.get_project(project_id)
        if not project:
            raise HTTPException(404, "Project not found")
        return project.model_dump(mode="json")

    @app.post("/projects/{project_id}/tasks")
    def add_project_task(project_id: str, task: ProjectTask):
        if not projects.add_task(project_id, task):
            raise HTTPException(404, "Project not found")
        return task.model_dump(mode="json")

    @app.post("/projects/{project_id}/milestones")
    def add_milestone(project_id: str, milestone: Milestone):
        if not projects.add_milestone(project_id, milestone):
            raise HTTPException(404, "Project not found")
        return milestone.model_dump(mode="json")

    # === COMMUNICATION ===

    @app.post("/delegations")
    def add_delegation(task: DelegatedTask):
        comms.add_delegated_task(task)
        return task.model_dump(mode="json")

    @app.post("/messages/pending")
    def add_pending_message(message: PendingMessage):
        comms.add_pending_message(message)
        return message.model_dump(mode="json")

    @app.get("/messages/sent")
    def list_sent_messages(actor_id: Optional[str] = None):
        """Directives the patrol has dispatched."""
        sent = comms.messages_to(actor_id) if actor_id else comms.sent
        return [m.model_dump(mode="json") for m in sent]

    # === RESOURCES ===

    @app.post("/usage")
    def record_usage(record: UsageRecord):
        usage.record(record)
        return record.model_dump(mode="json")

    @app.put("/usage/allowance")
    def set_allowance(req: ResourceAllowance):
        allowance.set_allowance(req)
        return req.model_dump(mode="json")

    @app.post("/providers")
    def register_provider(req: ProviderRegisterRequest):
        providers.register(req.name, available=req.available, error=req.error)
        return {"status": "registered", "name": req.name}

    # === NOTIFICATIONS ===

    @app.get("/notifications")
    def list_notifications(limit: int = 20):
        """What the announcer has pushed, oldest first."""
        return [n.model_dump(mode="json") for n in notices.recent(limit)]

    return app


# Default application instance
app = create_app()
