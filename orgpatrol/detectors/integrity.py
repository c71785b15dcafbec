"""
Data integrity — detect, and where safe repair, cross-store inconsistencies.

  1. Active ops tasks whose assignee is gone or terminated are cancelled
     with a recorded reason. Once cancelled they are no longer active, so
     each is repaired exactly once.
  2. An ops task that is done while its linked project task is not is
     reported only; which side is right is ambiguous.
  3. A project's cached progress drifting from its task completion ratio
     beyond the tolerance is recomputed in place.
"""

import logging
from datetime import datetime
from typing import List

from orgpatrol.detectors.base import Detector
from orgpatrol.models.finding import Finding, FindingKind, Severity
from orgpatrol.models.org import ActorStatus
from orgpatrol.models.patrol import CooldownFamily
from orgpatrol.models.work import ProjectStatus, WorkStatus

logger = logging.getLogger(__name__)


class IntegrityDetector(Detector):
    name = "data_integrity"

    def missing_collaborators(self) -> List[str]:
        if self.ctx.ops_store is None and self.ctx.project_store is None:
            return ["ops_store", "project_store"]
        return []

    async def detect(self, now: datetime) -> List[Finding]:
        findings: List[Finding] = []
        if self.ctx.ops_store is not None and self.ctx.project_store is not None:
            findings.extend(self._status_mismatches(now))
        if self.ctx.ops_store is not None and self.ctx.directory is not None:
            findings.extend(self._orphaned_tasks(now))
        if self.ctx.project_store is not None:
            findings.extend(self._progress_drift(now))

        if findings:
            logger.info("Data integrity issues: %d", len(findings))
        return findings

    def _status_mismatches(self, now: datetime) -> List[Finding]:
        findings = []
        for ops_task in self.ctx.ops_store.list_tasks(status=WorkStatus.DONE):
            found = self.ctx.project_store.find_by_ops_task_id(ops_task.id)
            if not found:
                continue
            _, pt = found
            if pt.status == WorkStatus.DONE:
                continue
            if not self.claim(CooldownFamily.INTEGRITY, f"mismatch:{ops_task.id}", now):
                continue
            findings.append(self.finding(
                FindingKind.INTEGRITY_ISSUE,
                ops_task.id,
                now,
                type="status_mismatch",
                repaired=False,
                project_task_id=pt.id,
                description=(
                    f"Ops task \"{ops_task.title}\" is done but project task "
                    f"\"{pt.title}\" is {pt.status.value}"
                ),
            ))
        return findings

    def _orphaned_tasks(self, now: datetime) -> List[Finding]:
        store = self.ctx.ops_store
        findings = []
        active = (
            store.list_tasks(status=WorkStatus.TODO)
            + store.list_tasks(status=WorkStatus.IN_PROGRESS)
        )
        for task in active:
            if not task.assignee_id:
                continue
            actor = self.ctx.directory.get(task.assignee_id)
            if actor is None:
                reason = "assignee no longer exists"
                issue = "orphan_task"
                description = (
                    f"Cancelled \"{task.title}\": assignee {task.assignee_id} does not exist"
                )
            elif actor.status == ActorStatus.TERMINATED:
                reason = f"assignee {actor.name} has left the organization"
                issue = "terminated_assignee"
                description = f"Cancelled \"{task.title}\": {actor.name} has left"
            else:
                continue

            store.update_task(
                task.id,
                {"status": WorkStatus.CANCELLED, "cancel_reason": reason},
                self.config.system_actor_id,
                "Patrol",
            )
            findings.append(self.finding(
                FindingKind.INTEGRITY_ISSUE,
                task.id,
                now,
                severity=Severity.HIGH,
                type=issue,
                repaired=True,
                description=description,
            ))
        return findings

    def _progress_drift(self, now: datetime) -> List[Finding]:
        store = self.ctx.project_store
        findings = []
        for project in store.list_projects(status=ProjectStatus.ACTIVE):
            if not project.tasks:
                continue
            expected = project.completion_percent()
            if abs(project.progress - expected) <= self.config.progress_tolerance_percent:
                continue

            cached = project.progress
            store.recalculate_progress(project.id)
            findings.append(self.finding(
                FindingKind.INTEGRITY_ISSUE,
                project.id,
                now,
                severity=Severity.LOW,
                type="progress_mismatch",
                repaired=True,
                description=(
                    f"Project \"{project.name}\" showed {cached}% but "
                    f"{expected}% of its tasks are done; recomputed"
                ),
            ))
        return findings
