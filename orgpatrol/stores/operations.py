"""
Operations Store — in-memory operational tasks, KPIs and goals.

Reference implementation of the OperationsStore contract. Production
deployments persist these records elsewhere; the patrol does not care.
"""

import logging
from typing import Dict, List, Optional

from orgpatrol.models.work import Goal, Kpi, OpsTask, WorkStatus
from orgpatrol.stores.base import Clock, apply_updates, resolve_clock

logger = logging.getLogger(__name__)


class InMemoryOperationsStore:
    def __init__(self, clock: Optional[Clock] = None):
        self._clock = resolve_clock(clock)
        self._tasks: Dict[str, OpsTask] = {}
        self._kpis: Dict[str, Kpi] = {}
        self._goals: Dict[str, Goal] = {}
        self.activity_log: List[dict] = []

    # --- Tasks ---

    def add_task(self, task: OpsTask) -> OpsTask:
        self._tasks[task.id] = task
        return task

    def get_task(self, task_id: str) -> Optional[OpsTask]:
        return self._tasks.get(task_id)

    def list_tasks(
        self,
        status: Optional[WorkStatus] = None,
        assignee_id: Optional[str] = None,
    ) -> List[OpsTask]:
        tasks = list(self._tasks.values())
        if status is not None:
            tasks = [t for t in tasks if t.status == status]
        if assignee_id is not None:
            tasks = [t for t in tasks if t.assignee_id == assignee_id]
        return tasks

    def update_task(
        self, task_id: str, updates: dict, actor_id: str, actor_name: str
    ) -> Optional[OpsTask]:
        task = self._tasks.get(task_id)
        if task is None:
            return None

        old_status = task.status
        now = self._clock()
        apply_updates(task, updates)
        task.updated_at = now
        if task.status == WorkStatus.DONE and old_status != WorkStatus.DONE:
            task.completed_at = now

        self._log("task", "update", actor_id, actor_name, {
            "task_id": task_id,
            "fields": sorted(updates),
        })
        return task

    # --- KPIs ---

    def add_kpi(self, kpi: Kpi) -> Kpi:
        self._kpis[kpi.id] = kpi
        return kpi

    def list_kpis(self) -> List[Kpi]:
        return list(self._kpis.values())

    def update_kpi_value(
        self, kpi_id: str, value: float, actor_id: str, actor_name: str
    ) -> Optional[Kpi]:
        kpi = self._kpis.get(kpi_id)
        if kpi is None:
            return None
        old_value = kpi.current
        kpi.current = value
        self._log("kpi", "update_value", actor_id, actor_name, {
            "kpi_id": kpi_id,
            "old": old_value,
            "new": value,
        })
        return kpi

    # --- Goals ---

    def add_goal(self, goal: Goal) -> Goal:
        self._goals[goal.id] = goal
        return goal

    def list_goals(self) -> List[Goal]:
        return list(self._goals.values())

    def _log(
        self, category: str, action: str, actor_id: str, actor_name: str, data: dict
    ) -> None:
        entry = {
            "category": category,
            "action": action,
            "actor_id": actor_id,
            "actor_name": actor_name,
            "data": data,
            "timestamp": self._clock().isoformat(),
        }
        self.activity_log.append(entry)
        logger.debug("operations %s.%s by %s: %s", category, action, actor_id, data)
