"""
Daily Digest Builder — one narrative summary per calendar day.

Gated by a date marker and an hour-of-day threshold. The marker is set
before building, so a failed build is not retried until the next day.
"""

import logging
from datetime import date, datetime
from typing import List, Optional

from orgpatrol.interfaces.collaborators import (
    ActorDirectory,
    ApprovalQueue,
    NotificationChannel,
    OperationsStore,
    ProjectStore,
    UsageLedger,
)
from orgpatrol.models.org import ActorStatus
from orgpatrol.models.work import ProjectStatus, WorkStatus

logger = logging.getLogger(__name__)


class DailyDigestBuilder:
    def __init__(
        self,
        notifications: Optional[NotificationChannel],
        announcer_id: str = "secretary",
        digest_hour: int = 18,
        ops_store: Optional[OperationsStore] = None,
        project_store: Optional[ProjectStore] = None,
        directory: Optional[ActorDirectory] = None,
        approval_queue: Optional[ApprovalQueue] = None,
        usage_ledger: Optional[UsageLedger] = None,
    ):
        self.notifications = notifications
        self.announcer_id = announcer_id
        self.digest_hour = digest_hour
        self.ops_store = ops_store
        self.project_store = project_store
        self.directory = directory
        self.approval_queue = approval_queue
        self.usage_ledger = usage_ledger
        self.last_digest_date: Optional[date] = None

    def reset(self) -> None:
        self.last_digest_date = None

    def is_due(self, now: datetime) -> bool:
        if self.last_digest_date == now.date():
            return False
        return now.hour >= self.digest_hour

    def maybe_build(self, now: datetime) -> bool:
        """Build and push today's digest if it is due. Returns whether it was pushed."""
        if self.notifications is None or not self.is_due(now):
            return False

        self.last_digest_date = now.date()
        try:
            report = self.build(now)
        except Exception:
            logger.exception("Daily digest build failed")
            return False

        self.notifications.push(self.announcer_id, report)
        logger.info("Daily digest pushed for %s", now.date().isoformat())
        return True

    def build(self, now: datetime) -> str:
        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        lines: List[str] = [f"📰 Daily work briefing ({now:%Y-%m-%d})", ""]

        if self.usage_ledger is not None:
            usage = self.usage_ledger.total_usage(since=day_start)
            lines.append(
                f"💬 Calls: {usage.call_count}, {usage.total_tokens:,} tokens"
            )
            top = sorted(
                self.usage_ledger.summaries(since=day_start),
                key=lambda s: s.total_tokens,
                reverse=True,
            )[:3]
            if top:
                names = [
                    f"{self._actor_name(s.actor_id)} ({s.call_count} calls/{s.total_tokens:,}t)"
                    for s in top
                ]
                lines.append(f"  Most active: {', '.join(names)}")

        if self.ops_store is not None:
            tasks = self.ops_store.list_tasks()
            done_today = [
                t for t in tasks
                if t.status == WorkStatus.DONE
                and t.completed_at is not None
                and t.completed_at >= day_start
            ]
            todo = sum(1 for t in tasks if t.status == WorkStatus.TODO)
            in_progress = sum(1 for t in tasks if t.status == WorkStatus.IN_PROGRESS)
            done = sum(1 for t in tasks if t.status == WorkStatus.DONE)
            lines.append("")
            lines.append(
                f"📋 Operations: {len(done_today)} completed today | "
                f"todo {todo} / in progress {in_progress} / done {done}"
            )
            if done_today:
                titles = ", ".join(t.title for t in done_today[:5])
                more = " ..." if len(done_today) > 5 else ""
                lines.append(f"  Completed today: {titles}{more}")

        if self.project_store is not None:
            active = self.project_store.list_projects(status=ProjectStatus.ACTIVE)
            if active:
                lines.append("")
                lines.append(f"📊 Active projects: {len(active)}")
                for p in active[:5]:
                    done = sum(1 for t in p.tasks if t.status == WorkStatus.DONE)
                    lines.append(
                        f"  • {p.name}: {p.progress}% ({done}/{len(p.tasks)} tasks done)"
                    )

        if self.directory is not None:
            actors = self.directory.list_all()
            on_duty = sum(1 for a in actors if a.status == ActorStatus.ACTIVE)
            suspended = sum(1 for a in actors if a.status == ActorStatus.SUSPENDED)
            team = f"👥 Team: {on_duty} on duty"
            if suspended:
                team += f", {suspended} suspended"
            lines.append("")
            lines.append(team)

        if self.approval_queue is not None:
            pending = self.approval_queue.list_pending()
            if pending:
                lines.append(f"📝 Hiring requests awaiting approval: {len(pending)}")

        lines.append("")
        lines.append("---")
        lines.append("_Generated automatically by the patrol_")
        return "\n".join(lines)

    def _actor_name(self, actor_id: str) -> str:
        if self.directory is None:
            return actor_id
        actor = self.directory.get(actor_id)
        return actor.name if actor else actor_id
