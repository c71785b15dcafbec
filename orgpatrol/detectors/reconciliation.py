"""
Cross-store reconciliation — project status follows operations and delegation.

The only detector that writes. Synchronization is one-directional: the
operational and delegated sides are the source of truth and are never
modified here. Each project-side update is committed on its own; running
the same comparison again finds nothing to change.
"""

import logging
from datetime import datetime
from typing import Dict, List, Optional

from orgpatrol.detectors.base import Detector
from orgpatrol.models.finding import Finding, FindingKind, Severity
from orgpatrol.models.work import (
    TERMINAL_STATUSES,
    DelegatedTaskStatus,
    ProgressNote,
    Project,
    ProjectStatus,
    ProjectTask,
    WorkStatus,
)
from orgpatrol.patrol.errors import DetectorError

logger = logging.getLogger(__name__)

OPS_TO_PROJECT_STATUS: Dict[WorkStatus, WorkStatus] = {
    WorkStatus.DONE: WorkStatus.DONE,
    WorkStatus.IN_PROGRESS: WorkStatus.IN_PROGRESS,
    WorkStatus.CANCELLED: WorkStatus.BLOCKED,
    WorkStatus.REVIEW: WorkStatus.REVIEW,
}

SYNCABLE_PROJECT_STATUSES = (ProjectStatus.PLANNING, ProjectStatus.ACTIVE)


class ReconciliationDetector(Detector):
    name = "reconciliation"
    requires = ("project_store",)

    async def detect(self, now: datetime) -> List[Finding]:
        findings = []
        if self.ctx.ops_store is not None:
            findings.extend(self._sync_operations(now))
        if self.ctx.communication is not None:
            findings.extend(self._sync_delegations(now))
        if findings:
            logger.info("Reconciled %d project tasks", len(findings))
        return findings

    def _sync_operations(self, now: datetime) -> List[Finding]:
        findings = []
        for ops_task in self.ctx.ops_store.list_tasks():
            target = OPS_TO_PROJECT_STATUS.get(ops_task.status)
            if target is None:
                continue
            found = self.ctx.project_store.find_by_ops_task_id(ops_task.id)
            if not found:
                continue

            project, pt = found
            if project.status not in SYNCABLE_PROJECT_STATUSES:
                continue
            if pt.status == target or pt.status in TERMINAL_STATUSES:
                continue

            findings.append(self._apply(
                project, pt, target, now,
                source="operations",
                note=f"synced from operations: {pt.status.value} → {target.value}",
            ))
        return findings

    def _sync_delegations(self, now: datetime) -> List[Finding]:
        findings = []
        for dt in self.ctx.communication.list_delegated_tasks():
            if dt.status not in (DelegatedTaskStatus.COMPLETED, DelegatedTaskStatus.FAILED):
                continue
            found = self.ctx.project_store.find_by_delegated_task_id(dt.id)
            if not found:
                continue

            project, pt = found
            if project.status != ProjectStatus.ACTIVE:
                continue

            target: Optional[WorkStatus] = None
            blocker_note = None
            if dt.status == DelegatedTaskStatus.COMPLETED:
                if pt.status not in (WorkStatus.DONE, WorkStatus.REVIEW, WorkStatus.CANCELLED):
                    target = WorkStatus.DONE
            elif pt.status not in (WorkStatus.BLOCKED,) + TERMINAL_STATUSES:
                target = WorkStatus.BLOCKED
                blocker_note = f"delegation failed: {dt.result or 'unknown'}"
            if target is None:
                continue

            findings.append(self._apply(
                project, pt, target, now,
                source="delegation",
                note=f"synced from delegation: {pt.status.value} → {target.value}",
                blocker_note=blocker_note,
            ))
        return findings

    def _apply(
        self,
        project: Project,
        pt: ProjectTask,
        target: WorkStatus,
        now: datetime,
        source: str,
        note: str,
        blocker_note: Optional[str] = None,
    ) -> Finding:
        store = self.ctx.project_store
        old_status = pt.status

        updates: dict = {"status": target}
        if blocker_note:
            updates["blocker_note"] = blocker_note
        if store.update_task(project.id, pt.id, updates) is None:
            raise DetectorError(f"project task {pt.id} vanished from project {project.id}")
        store.add_progress_note(project.id, pt.id, ProgressNote(
            content=note,
            updated_by="patrol",
            updated_by_name="Patrol",
            timestamp=now,
        ))
        progress = store.recalculate_progress(project.id)

        logger.debug(
            "Project %s task %s: %s -> %s (%s)",
            project.id, pt.id, old_status.value, target.value, source,
        )
        return self.finding(
            FindingKind.STATUS_SYNC,
            pt.id,
            now,
            severity=Severity.LOW,
            source=source,
            project_id=project.id,
            project_name=project.name,
            task_title=pt.title,
            old_status=old_status.value,
            new_status=target.value,
            progress=progress,
        )
