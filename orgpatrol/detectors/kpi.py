"""
KPI refresh — recompute KPIs that declare where their figure comes from.

KPIs are bound to a metric by an explicit `metric_source`; a KPI without
one is maintained by hand and never touched. Values are written back only
when they change.
"""

import logging
from datetime import datetime
from typing import List, Optional

from orgpatrol.detectors.base import Detector
from orgpatrol.models.finding import Finding, FindingKind, Severity
from orgpatrol.models.work import (
    GoalStatus,
    Kpi,
    KpiMetricSource,
    ProjectStatus,
    WorkStatus,
)

logger = logging.getLogger(__name__)


class KpiRefreshDetector(Detector):
    name = "kpi_refresh"
    requires = ("ops_store",)

    async def detect(self, now: datetime) -> List[Finding]:
        store = self.ctx.ops_store
        findings = []
        for kpi in store.list_kpis():
            if kpi.metric_source is None:
                continue
            value = self._compute(kpi, now)
            if value is None or value == kpi.current:
                continue

            old_value = kpi.current
            store.update_kpi_value(kpi.id, value, self.config.system_actor_id, "Patrol")
            findings.append(self.finding(
                FindingKind.KPI_DELTA,
                kpi.id,
                now,
                severity=Severity.LOW,
                name=kpi.name,
                old_value=old_value,
                new_value=value,
                unit=kpi.unit,
            ))
            logger.debug("KPI %s: %s -> %s", kpi.name, old_value, value)
        return findings

    def _compute(self, kpi: Kpi, now: datetime) -> Optional[float]:
        source = kpi.metric_source
        store = self.ctx.ops_store

        if source == KpiMetricSource.TASKS_COMPLETED:
            done = store.list_tasks(status=WorkStatus.DONE)
            if kpi.owner_id:
                done = [t for t in done if t.assignee_id == kpi.owner_id]
            return len(done)

        if source == KpiMetricSource.GOAL_COMPLETION_RATE:
            goals = store.list_goals()
            if not goals:
                return 0
            completed = sum(1 for g in goals if g.status == GoalStatus.COMPLETED)
            return round(completed * 100 / len(goals))

        if source == KpiMetricSource.PROJECT_PROGRESS:
            if self.ctx.project_store is None:
                return None
            projects = self.ctx.project_store.list_projects(status=ProjectStatus.ACTIVE)
            if not projects:
                return None
            return round(sum(p.progress for p in projects) / len(projects))

        if source == KpiMetricSource.CALLS_TODAY:
            if self.ctx.usage_ledger is None:
                return None
            day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
            return self.ctx.usage_ledger.total_usage(since=day_start).call_count

        return None
