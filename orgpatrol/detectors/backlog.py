"""Backlog and approval staleness — hand-offs, messages and hiring requests left waiting."""

import logging
from datetime import datetime, timedelta
from typing import List

from orgpatrol.detectors.base import Detector, hours_between, minutes_between
from orgpatrol.models.finding import Finding, FindingKind, Severity
from orgpatrol.models.org import MessageStatus
from orgpatrol.models.patrol import CooldownFamily
from orgpatrol.models.work import DelegatedTaskStatus

logger = logging.getLogger(__name__)


class BacklogDetector(Detector):
    name = "communication_backlog"
    requires = ("communication",)

    async def detect(self, now: datetime) -> List[Finding]:
        channel = self.ctx.communication
        findings = []

        delegation_cutoff = now - timedelta(minutes=self.config.delegation_stale_minutes)
        for dt in channel.list_delegated_tasks():
            if dt.status != DelegatedTaskStatus.PENDING:
                continue
            if dt.created_at > delegation_cutoff:
                continue
            if not self.claim(CooldownFamily.BACKLOG, f"delegated:{dt.id}", now):
                continue
            findings.append(self.finding(
                FindingKind.BACKLOG,
                dt.id,
                now,
                type="delegated_task",
                description=dt.description[:80],
                from_actor=dt.from_actor,
                to_actor=dt.to_actor,
                age_hours=hours_between(dt.created_at, now),
            ))

        message_cutoff = now - timedelta(minutes=self.config.message_stale_minutes)
        stale = [
            m for m in channel.list_pending_messages()
            if m.status == MessageStatus.PENDING and m.created_at < message_cutoff
        ]
        if stale and self.claim(CooldownFamily.BACKLOG, "messages", now):
            oldest = min(m.created_at for m in stale)
            findings.append(self.finding(
                FindingKind.BACKLOG,
                "messages",
                now,
                severity=Severity.LOW,
                type="pending_messages",
                count=len(stale),
                oldest_minutes=minutes_between(oldest, now),
            ))

        if findings:
            logger.info("Communication backlog: %d items", len(findings))
        return findings


class ApprovalDetector(Detector):
    name = "approval_staleness"
    requires = ("approval_queue",)

    async def detect(self, now: datetime) -> List[Finding]:
        cutoff = now - timedelta(minutes=self.config.approval_stale_minutes)
        findings = []
        for req in self.ctx.approval_queue.list_pending():
            if req.created_at > cutoff:
                continue
            if not self.claim(CooldownFamily.APPROVAL, req.id, now):
                continue
            findings.append(self.finding(
                FindingKind.APPROVAL_STALE,
                req.id,
                now,
                role_name=req.role_name,
                requester=req.requester_name or req.requester_id,
                age_minutes=minutes_between(req.created_at, now),
            ))

        if findings:
            logger.info("Hiring approvals waiting: %d", len(findings))
        return findings
