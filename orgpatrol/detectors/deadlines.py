"""
Deadline forecasting — overdue and approaching due dates.

Classification against the pass's `now` and a horizon H:
  due < now              → overdue
  now <= due < now + H   → approaching
  otherwise              → nothing yet
Deadline cooldowns are their own family, so a stale-task nudge never
suppresses a deadline warning for the same item.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from orgpatrol.detectors.base import Detector, hours_between
from orgpatrol.models.finding import Finding, FindingKind, Severity
from orgpatrol.models.patrol import CooldownFamily
from orgpatrol.models.work import (
    MilestoneStatus,
    ProjectStatus,
    WorkStatus,
)

logger = logging.getLogger(__name__)

OVERDUE = "overdue"
APPROACHING = "approaching"


def classify_deadline(
    due: datetime, now: datetime, horizon: timedelta
) -> Optional[str]:
    if due < now:
        return OVERDUE
    if due < now + horizon:
        return APPROACHING
    return None


class DeadlineDetector(Detector):
    name = "deadlines"

    def missing_collaborators(self) -> List[str]:
        if self.ctx.ops_store is None and self.ctx.project_store is None:
            return ["ops_store", "project_store"]
        return []

    async def detect(self, now: datetime) -> List[Finding]:
        horizon = timedelta(hours=self.config.deadline_horizon_hours)
        findings: List[Finding] = []

        if self.ctx.ops_store is not None:
            for status in (WorkStatus.TODO, WorkStatus.IN_PROGRESS):
                for task in self.ctx.ops_store.list_tasks(status=status):
                    if task.due_date is None:
                        continue
                    self._classify(
                        findings, now, horizon,
                        subject=f"ops_task:{task.id}",
                        subject_id=task.id,
                        due=task.due_date,
                        category="ops_task",
                        title=task.title,
                        assignee=task.assignee_name or task.assignee_id,
                    )

        if self.ctx.project_store is not None:
            for project in self.ctx.project_store.list_projects(status=ProjectStatus.ACTIVE):
                for ms in project.milestones:
                    if ms.status == MilestoneStatus.COMPLETED or ms.due_date is None:
                        continue
                    self._classify(
                        findings, now, horizon,
                        subject=f"milestone:{ms.id}",
                        subject_id=ms.id,
                        due=ms.due_date,
                        category="milestone",
                        title=f"{project.name} → {ms.name}",
                        progress=ms.progress,
                    )
                for task in project.tasks:
                    if task.status in (WorkStatus.DONE, WorkStatus.CANCELLED):
                        continue
                    if task.due_date is None:
                        continue
                    self._classify(
                        findings, now, horizon,
                        subject=f"project_task:{task.id}",
                        subject_id=task.id,
                        due=task.due_date,
                        category="project_task",
                        title=f"{project.name} → {task.title}",
                        assignee=task.assignee_name or task.assignee_id,
                    )

        if findings:
            logger.info("Deadline warnings: %d", len(findings))
        return findings

    def _classify(
        self,
        findings: List[Finding],
        now: datetime,
        horizon: timedelta,
        subject: str,
        subject_id: str,
        due: datetime,
        **detail,
    ) -> None:
        state = classify_deadline(due, now, horizon)
        if state is None:
            return
        if not self.claim(CooldownFamily.DEADLINE, subject, now):
            return

        if state == OVERDUE:
            findings.append(self.finding(
                FindingKind.DEADLINE_OVERDUE,
                subject_id,
                now,
                severity=Severity.HIGH,
                due_date=due.isoformat(),
                hours_overdue=hours_between(due, now),
                **detail,
            ))
        else:
            findings.append(self.finding(
                FindingKind.DEADLINE_APPROACHING,
                subject_id,
                now,
                severity=Severity.MEDIUM,
                due_date=due.isoformat(),
                hours_left=hours_between(now, due),
                **detail,
            ))
