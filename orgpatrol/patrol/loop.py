"""
Patrol Engine — the periodic reconciliation and notification loop.

Runs every detector in a fixed order against one shared `now`, delivers
directive nudges as it goes, folds everything informational into one
digest, and prunes the cooldown ledger at the end of the pass.

Scheduling:
  start()  → warm-up delay → first pass, plus a repeating interval timer
  tick     → spawns a pass unless one is still running (no queueing)
  stop()   → cancels timers; an in-flight pass notices and returns early
Nothing raised inside a pass escapes it.
"""

import asyncio
import logging
from datetime import datetime
from typing import Callable, List, Optional

from orgpatrol.detectors.activity import InactivityDetector, TodoStalenessDetector
from orgpatrol.detectors.backlog import ApprovalDetector, BacklogDetector
from orgpatrol.detectors.base import Detector, PatrolContext
from orgpatrol.detectors.deadlines import DeadlineDetector
from orgpatrol.detectors.forecasting import ResourceForecastDetector
from orgpatrol.detectors.health import MemoryMaintenanceDetector, ProviderHealthDetector
from orgpatrol.detectors.integrity import IntegrityDetector
from orgpatrol.detectors.kpi import KpiRefreshDetector
from orgpatrol.detectors.nudging import WorkNudgeDetector
from orgpatrol.detectors.reconciliation import ReconciliationDetector
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
from orgpatrol.models.finding import Finding, PassResult
from orgpatrol.models.patrol import PatrolConfig
from orgpatrol.patrol.cooldown import CooldownLedger
from orgpatrol.patrol.daily import DailyDigestBuilder
from orgpatrol.patrol.digest import NotificationBatcher
from orgpatrol.patrol.dispatcher import ActionDispatcher
from orgpatrol.patrol.errors import DetectorError

logger = logging.getLogger(__name__)


class PatrolEngine:
    """
    The organization's heartbeat.

    Collaborators are injected, already initialized, and all optional.
    Cooldowns, provider status and the daily-digest marker live on the
    instance and are cleared by reinitialize().
    """

    def __init__(
        self,
        config: Optional[PatrolConfig] = None,
        *,
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
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.config = config or PatrolConfig()
        self._clock = clock or datetime.now

        self.ledger = CooldownLedger(lambda family: self.config.cooldown_window(family))
        self.dispatcher = ActionDispatcher(
            communication,
            sender_id=self.config.system_actor_id,
            pacing_seconds=self.config.dispatch_pacing_seconds,
        )
        self.batcher = NotificationBatcher(
            notifications,
            announcer_id=self.config.announcer_id,
            integrity_limit=self.config.integrity_report_limit,
        )
        self.daily = DailyDigestBuilder(
            notifications,
            announcer_id=self.config.announcer_id,
            digest_hour=self.config.daily_digest_hour,
            ops_store=ops_store,
            project_store=project_store,
            directory=directory,
            approval_queue=approval_queue,
            usage_ledger=usage_ledger,
        )
        self.context = PatrolContext(
            config=self.config,
            ledger=self.ledger,
            dispatcher=self.dispatcher,
            should_abort=self._should_abort,
            ops_store=ops_store,
            project_store=project_store,
            communication=communication,
            notifications=notifications,
            approval_queue=approval_queue,
            directory=directory,
            usage_ledger=usage_ledger,
            allowance=allowance,
            providers=providers,
            memory=memory,
            todo_store=todo_store,
        )

        self._detectors: List[Detector] = []
        self._register_default_detectors()

        self._running = False
        self._checking = False
        self._in_flight = False       # cleared only when the pass itself returns
        self._generation = 0          # bumped by stop(); a pass aborts when it changes
        self._pass_generation = 0
        self._warmup_handle: Optional[asyncio.TimerHandle] = None
        self._timer_task: Optional[asyncio.Task] = None
        self._pass_task: Optional[asyncio.Task] = None
        self.pass_count = 0

    def _register_default_detectors(self) -> None:
        """Register detectors in their fixed pass order."""
        ctx = self.context
        self._detectors = [
            WorkNudgeDetector(ctx),
            ReconciliationDetector(ctx),
            DeadlineDetector(ctx),
            KpiRefreshDetector(ctx),
            BacklogDetector(ctx),
            ApprovalDetector(ctx),
            InactivityDetector(ctx),
            MemoryMaintenanceDetector(ctx),
            ProviderHealthDetector(ctx),
            IntegrityDetector(ctx),
            ResourceForecastDetector(ctx),
            TodoStalenessDetector(ctx),
        ]

    @property
    def status(self) -> str:
        return "running" if self._running else "stopped"

    @property
    def is_checking(self) -> bool:
        return self._checking

    @property
    def detectors(self) -> List[Detector]:
        return list(self._detectors)

    def get_detector(self, name: str) -> Optional[Detector]:
        return next((d for d in self._detectors if d.name == name), None)

    # --- Lifecycle ---

    def start(self, interval_seconds: Optional[float] = None) -> None:
        """Schedule the warm-up pass and the repeating timer. Idempotent.

        Has no effect outside a running event loop.
        """
        if self._running:
            return
        try:
            loop = asyncio.get_running_loop()
        except RuntimeError:
            logger.error("Patrol start ignored: no running event loop")
            return

        interval = interval_seconds or self.config.interval_seconds
        self._running = True
        self._warmup_handle = loop.call_later(self.config.warmup_seconds, self._on_warmup)
        self._timer_task = loop.create_task(self._interval_timer(interval))
        logger.info(
            "Patrol started (interval=%ss, warmup=%ss)",
            interval, self.config.warmup_seconds,
        )

    def stop(self) -> None:
        """Cancel pending timers and ask any in-flight pass to return. Safe to repeat."""
        was_running = self._running
        self._running = False
        self._checking = False
        self._generation += 1

        if self._warmup_handle is not None:
            self._warmup_handle.cancel()
            self._warmup_handle = None
        if self._timer_task is not None:
            self._timer_task.cancel()
            self._timer_task = None

        if was_running:
            logger.info("Patrol stopped")

    def reinitialize(self) -> None:
        """Stop and forget all in-memory bookkeeping (workspace swap)."""
        self.stop()
        self.ledger.clear()
        self.daily.reset()
        for detector in self._detectors:
            detector.reset()
        self.pass_count = 0
        logger.info("Patrol reinitialized")

    def _on_warmup(self) -> None:
        self._warmup_handle = None
        self._tick()

    async def _interval_timer(self, interval: float) -> None:
        while self._running:
            await asyncio.sleep(interval)
            self._tick()

    def _tick(self) -> None:
        if not self._running:
            return
        if self._checking or (self._pass_task is not None and not self._pass_task.done()):
            logger.debug("Previous patrol pass still running; tick skipped")
            return
        self._pass_task = asyncio.get_running_loop().create_task(self.run_once())

    def _should_abort(self) -> bool:
        return self._pass_generation != self._generation

    # --- The pass ---

    async def run_once(self, now: Optional[datetime] = None) -> Optional[PassResult]:
        """
        Run one full pass. Returns None when a pass is already in flight.
        """
        if self._checking or self._in_flight:
            logger.debug("Patrol pass already in progress")
            return None
        self._checking = True
        self._in_flight = True
        self._pass_generation = self._generation

        now = now or self._clock()
        result = PassResult(started_at=now)
        try:
            for detector in self._detectors:
                if self._should_abort():
                    result.aborted = True
                    return result
                result.findings.extend(await self._run_detector(detector, now))

            if self._should_abort():
                result.aborted = True
                return result

            try:
                result.daily_digest_pushed = self.daily.maybe_build(now)
            except Exception:
                logger.exception("Daily digest delivery failed")

            if self._should_abort():
                result.aborted = True
                return result

            digest = self.batcher.assemble(result.findings, now)
            result.digest = digest
            result.digest_pushed = self.batcher.push(digest)

            self.ledger.prune(now)
            self.pass_count += 1
            logger.info(
                "Patrol pass complete: %d findings, %d digest sections",
                len(result.findings), len(digest.sections),
            )
        except Exception:
            logger.exception("Patrol pass failed")
        finally:
            self._in_flight = False
            self._checking = False
            result.finished_at = self._clock()
        return result

    async def _run_detector(self, detector: Detector, now: datetime) -> List[Finding]:
        missing = detector.missing_collaborators()
        if missing:
            logger.debug("Skipping %s: missing %s", detector.name, ", ".join(missing))
            return []
        try:
            return await detector.detect(now)
        except DetectorError as e:
            logger.warning("Patrol detector %s gave up: %s", detector.name, e)
        except Exception:
            logger.exception("Patrol detector %s failed", detector.name)
        return []
