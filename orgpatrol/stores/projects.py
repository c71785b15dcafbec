"""
Project Store — in-memory project plans.

Progress is purely mechanical: the share of tasks in `done`, per
milestone and per project. A project reaching 100% while active is
marked completed.
"""

from typing import Dict, List, Optional, Tuple

from orgpatrol.models.work import (
    Milestone,
    MilestoneStatus,
    ProgressNote,
    Project,
    ProjectStatus,
    ProjectTask,
    WorkStatus,
)
from orgpatrol.stores.base import Clock, apply_updates, resolve_clock


class InMemoryProjectStore:
    def __init__(self, clock: Optional[Clock] = None):
        self._clock = resolve_clock(clock)
        self._projects: Dict[str, Project] = {}

    def add_project(self, project: Project) -> Project:
        self._projects[project.id] = project
        return project

    def get_project(self, project_id: str) -> Optional[Project]:
        return self._projects.get(project_id)

    def list_projects(self, status: Optional[ProjectStatus] = None) -> List[Project]:
        projects = list(self._projects.values())
        if status is not None:
            projects = [p for p in projects if p.status == status]
        return projects

    def add_milestone(self, project_id: str, milestone: Milestone) -> Optional[Milestone]:
        project = self._projects.get(project_id)
        if project is None:
            return None
        project.milestones.append(milestone)
        project.updated_at = self._clock()
        return milestone

    def add_task(self, project_id: str, task: ProjectTask) -> Optional[ProjectTask]:
        project = self._projects.get(project_id)
        if project is None:
            return None
        project.tasks.append(task)
        project.updated_at = self._clock()
        return task

    def get_task(self, project_id: str, task_id: str) -> Optional[ProjectTask]:
        project = self._projects.get(project_id)
        if project is None:
            return None
        return next((t for t in project.tasks if t.id == task_id), None)

    def update_task(
        self, project_id: str, task_id: str, updates: dict
    ) -> Optional[ProjectTask]:
        task = self.get_task(project_id, task_id)
        if task is None:
            return None

        old_status = task.status
        now = self._clock()
        apply_updates(task, updates)
        task.updated_at = now
        if task.status == WorkStatus.DONE and old_status != WorkStatus.DONE:
            task.completed_at = now

        self._projects[project_id].updated_at = now
        return task

    def add_progress_note(
        self, project_id: str, task_id: str, note: ProgressNote
    ) -> None:
        task = self.get_task(project_id, task_id)
        if task is None:
            return
        task.progress_notes.append(note)
        self._projects[project_id].updated_at = self._clock()

    def recalculate_progress(self, project_id: str) -> int:
        """Recompute milestone and project progress from task completion."""
        project = self._projects.get(project_id)
        if project is None:
            return 0

        for ms in project.milestones:
            ms_tasks = [t for t in project.tasks if t.milestone_id == ms.id]
            if not ms_tasks:
                ms.progress = 0
                ms.status = MilestoneStatus.PENDING
                continue

            done = sum(1 for t in ms_tasks if t.status == WorkStatus.DONE)
            ms.progress = round(done * 100 / len(ms_tasks))
            if ms.progress >= 100:
                ms.status = MilestoneStatus.COMPLETED
            elif any(t.status != WorkStatus.TODO for t in ms_tasks):
                ms.status = MilestoneStatus.IN_PROGRESS
            else:
                ms.status = MilestoneStatus.PENDING

        project.progress = project.completion_percent()
        if project.progress >= 100 and project.status == ProjectStatus.ACTIVE:
            project.status = ProjectStatus.COMPLETED

        project.updated_at = self._clock()
        return project.progress

    def find_by_ops_task_id(
        self, ops_task_id: str
    ) -> Optional[Tuple[Project, ProjectTask]]:
        for project in self._projects.values():
            for task in project.tasks:
                if task.ops_task_id == ops_task_id:
                    return project, task
        return None

    def find_by_delegated_task_id(
        self, delegated_task_id: str
    ) -> Optional[Tuple[Project, ProjectTask]]:
        for project in self._projects.values():
            for task in project.tasks:
                if task.delegated_task_id == delegated_task_id:
                    return project, task
        return None
