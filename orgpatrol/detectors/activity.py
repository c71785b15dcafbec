"""
Activity monitoring — actors holding work but showing no sign of life,
and personal todos that have stalled.

An actor's last activity is the later of its most recent resource usage
and the most recent start of a hand-off delegated to it. Actors with no
open work are exempt, and so is the passive announcer.
"""

import logging
from datetime import datetime, timedelta
from typing import List, Optional

from orgpatrol.detectors.base import Detector, minutes_between
from orgpatrol.models.finding import Finding, FindingKind, Severity
from orgpatrol.models.org import Actor, ActorStatus, TodoStatus
from orgpatrol.models.patrol import CooldownFamily

logger = logging.getLogger(__name__)


class InactivityDetector(Detector):
    name = "actor_activity"
    requires = ("directory", "ops_store")

    async def detect(self, now: datetime) -> List[Finding]:
        threshold = timedelta(minutes=self.config.inactivity_threshold_minutes)
        findings = []

        for actor in self.ctx.directory.list_all():
            if actor.status != ActorStatus.ACTIVE:
                continue
            if actor.id in self.config.passive_actor_ids:
                continue

            open_items = [
                t for t in self.ctx.ops_store.list_tasks(assignee_id=actor.id)
                if t.is_active
            ]
            if not open_items:
                continue

            last_active = self.last_activity(actor)
            if last_active is None or now - last_active <= threshold:
                continue
            if not self.claim(CooldownFamily.INACTIVE, actor.id, now):
                continue

            findings.append(self.finding(
                FindingKind.INACTIVE_ACTOR,
                actor.id,
                now,
                severity=Severity.LOW,
                name=actor.name,
                title=actor.title,
                inactive_minutes=minutes_between(last_active, now),
                open_items=len(open_items),
            ))

        return findings

    def last_activity(self, actor: Actor) -> Optional[datetime]:
        """Derived per pass; never stored."""
        candidates = []
        if self.ctx.usage_ledger is not None:
            for summary in self.ctx.usage_ledger.summaries(actor_id=actor.id):
                if summary.last_used is not None:
                    candidates.append(summary.last_used)
        if self.ctx.communication is not None:
            for dt in self.ctx.communication.list_delegated_tasks():
                if dt.to_actor == actor.id and dt.started_at is not None:
                    candidates.append(dt.started_at)
        return max(candidates) if candidates else None


class TodoStalenessDetector(Detector):
    name = "todo_staleness"
    requires = ("todo_store",)

    async def detect(self, now: datetime) -> List[Finding]:
        cutoff = now - timedelta(minutes=self.config.stale_threshold_minutes)
        findings = []

        for actor_id, todos in self.ctx.todo_store.list_all().items():
            if self.ctx.should_abort():
                break

            stale = [
                t for t in todos
                if t.status in (TodoStatus.PENDING, TodoStatus.IN_PROGRESS)
                and t.last_touched < cutoff
            ]
            if not stale:
                continue
            if self.in_cooldown(CooldownFamily.TODO, actor_id, now):
                continue

            actor = self.ctx.actor(actor_id)
            if actor is not None and not actor.can_work:
                continue

            summary = "\n".join(f"• {t.title}" for t in stale)
            finding = self.finding(
                FindingKind.NUDGE,
                actor_id,
                now,
                severity=Severity.LOW,
                reason="todo_list",
                assignee_name=self.ctx.actor_name(actor_id),
                count=len(stale),
                titles=[t.title for t in stale],
                dispatched=False,
            )
            self.claim(CooldownFamily.TODO, actor_id, now)
            finding.detail["dispatched"] = await self.ctx.dispatcher.dispatch(
                actor_id,
                f"[Todo reminder] {len(stale)} of your todos have not been updated "
                f"for a while:\n{summary}\n\nPlease keep working through them.",
            )
            findings.append(finding)

        return findings
