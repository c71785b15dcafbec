"""
Work nudging — reminds assignees about work that is not moving.

Two cases, one cooldown per task:
  - todo: assigned but not started
  - stale: in progress with no update past the staleness threshold
Only tasks whose assignee is active are considered.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Tuple

from orgpatrol.detectors.base import Detector, minutes_between
from orgpatrol.models.finding import Finding, FindingKind, Severity
from orgpatrol.models.patrol import CooldownFamily
from orgpatrol.models.work import OpsTask, WorkStatus

logger = logging.getLogger(__name__)


class WorkNudgeDetector(Detector):
    name = "work_nudging"
    requires = ("ops_store", "directory")

    async def detect(self, now: datetime) -> List[Finding]:
        store = self.ctx.ops_store
        stale_cutoff = now - timedelta(minutes=self.config.stale_threshold_minutes)

        candidates: List[Tuple[OpsTask, str]] = []
        for task in store.list_tasks(status=WorkStatus.TODO):
            if self.ctx.actor_can_work(task.assignee_id):
                candidates.append((task, "todo"))
        for task in store.list_tasks(status=WorkStatus.IN_PROGRESS):
            if self.ctx.actor_can_work(task.assignee_id) and task.last_touched < stale_cutoff:
                candidates.append((task, "stale"))

        findings = []
        for task, reason in candidates:
            if self.ctx.should_abort():
                break
            if not self.claim(CooldownFamily.NUDGE, task.id, now):
                continue

            # Everything that can fail on a bad record runs before the send,
            # so a dispatch always has a finding to go with it.
            finding = self.finding(
                FindingKind.NUDGE,
                task.id,
                now,
                severity=Severity.LOW if reason == "todo" else Severity.MEDIUM,
                reason=reason,
                title=task.title,
                assignee_id=task.assignee_id,
                assignee_name=task.assignee_name or self.ctx.actor_name(task.assignee_id),
                stale_minutes=minutes_between(task.last_touched, now),
                dispatched=False,
            )
            directive = self._directive(task, reason, now)
            finding.detail["dispatched"] = await self.ctx.dispatcher.dispatch(
                task.assignee_id, directive
            )
            findings.append(finding)

        if findings:
            logger.info("Nudged %d operational tasks", len(findings))
        return findings

    def _directive(self, task: OpsTask, reason: str, now: datetime) -> str:
        if reason == "stale":
            return (
                "[Task follow-up]\n"
                f"Your task \"{task.title}\" (ID: {task.id}) has not been updated for "
                f"{minutes_between(task.last_touched, now)} minutes.\n"
                "Keep it moving, or report what is blocking it."
            )

        lines = ["[Task reminder]", f"Task: {task.title}"]
        if task.description:
            lines.append(f"Description: {task.description}")
        lines.append(f"Priority: {task.priority}")
        lines.append(f"Requested by: {task.requester_name or task.requester_id or 'system'}")
        lines.append(f"Task ID: {task.id}")
        if task.due_date:
            lines.append(f"Due: {task.due_date:%Y-%m-%d}")
        lines.append("")
        lines.append("Next steps:")
        lines.append(f"1. Mark task {task.id} as in_progress")
        lines.append(f"2. Mark task {task.id} as done when finished")
        lines.append("3. Report the outcome")
        return "\n".join(lines)
