"""
Notification Batcher — one digest per pass.

Each detector family renders its own section; sections are assembled in a
fixed order, empty sections are skipped, and a digest with no sections is
never pushed. A formatter that fails drops its own section only.
"""

import logging
from datetime import datetime
from typing import Callable, Dict, List, Optional, Sequence, Tuple

from orgpatrol.interfaces.collaborators import NotificationChannel
from orgpatrol.models.finding import (
    DigestSection,
    Finding,
    FindingKind,
    NotificationDigest,
)

logger = logging.getLogger(__name__)


def _format_nudges(findings: List[Finding], limit: int) -> List[str]:
    lines = []
    for f in findings:
        d = f.detail
        who = d.get("assignee_name") or f.subject_id
        reason = d.get("reason")
        if reason == "stale":
            line = (
                f"  • {who}: \"{d.get('title')}\" untouched for "
                f"{d.get('stale_minutes')} min, followed up"
            )
        elif reason == "todo_list":
            line = f"  • {who}: {d.get('count')} personal todos stalled, reminded"
        else:
            line = f"  • {who}: \"{d.get('title')}\" not started yet, reminded"
        if d.get("dispatched") is False:
            line += " (delivery failed)"
        lines.append(line)
    return lines


def _format_project_sync(findings: List[Finding], limit: int) -> List[str]:
    grouped: Dict[str, dict] = {}
    for f in findings:
        d = f.detail
        group = grouped.setdefault(
            d["project_name"], {"completed": [], "other": [], "progress": 0}
        )
        if d["new_status"] == "done":
            group["completed"].append(d["task_title"])
        else:
            group["other"].append(
                f"{d['task_title']}: {d['old_status']} → {d['new_status']}"
            )
        group["progress"] = d["progress"]

    lines = []
    for name, info in grouped.items():
        lines.append(f"  {name} ({info['progress']}%):")
        if info["completed"]:
            lines.append(f"    done: {', '.join(info['completed'])}")
        if info["other"]:
            lines.append(f"    changed: {'; '.join(info['other'])}")
    return lines


def _format_deadlines(findings: List[Finding], limit: int) -> List[str]:
    overdue = [f for f in findings if f.kind == FindingKind.DEADLINE_OVERDUE]
    approaching = [f for f in findings if f.kind == FindingKind.DEADLINE_APPROACHING]

    lines = []
    if overdue:
        lines.append(f"  Overdue ({len(overdue)}):")
        for f in overdue:
            who = f.detail.get("assignee")
            lines.append(f"    • {f.detail['title']}" + (f" ({who})" if who else ""))
    if approaching:
        lines.append(f"  Approaching ({len(approaching)}):")
        for f in approaching:
            lines.append(f"    • {f.detail['title']}, due in {f.detail['hours_left']}h")
    return lines


def _format_kpis(findings: List[Finding], limit: int) -> List[str]:
    return [
        f"  • {f.detail['name']}: {f.detail['old_value']} → "
        f"{f.detail['new_value']} {f.detail.get('unit', '')}".rstrip()
        for f in findings
    ]


def _format_backlog(findings: List[Finding], limit: int) -> List[str]:
    lines = []
    for f in findings:
        d = f.detail
        if d["type"] == "delegated_task":
            lines.append(
                f"  • Hand-off pending {d['age_hours']}h: "
                f"{d.get('description') or f.subject_id}"
            )
        elif d["type"] == "pending_messages":
            lines.append(
                f"  • {d['count']} messages unanswered "
                f"(oldest {d['oldest_minutes']} min)"
            )
    return lines


def _format_approvals(findings: List[Finding], limit: int) -> List[str]:
    return [
        f"  • \"{f.detail['role_name']}\" requested by {f.detail['requester']}, "
        f"waiting {f.detail['age_minutes']} min"
        for f in findings
    ]


def _format_inactive(findings: List[Finding], limit: int) -> List[str]:
    lines = []
    for f in findings:
        d = f.detail
        title = f" ({d['title']})" if d.get("title") else ""
        lines.append(
            f"  • {d['name']}{title}: no activity for {d['inactive_minutes']} min "
            f"with {d['open_items']} open items"
        )
    return lines


def _format_providers(findings: List[Finding], limit: int) -> List[str]:
    lines = []
    for f in findings:
        if f.detail.get("recovered"):
            lines.append(f"  ✅ {f.detail['provider']} recovered")
        else:
            lines.append(f"  ❌ {f.detail['provider']} unavailable: {f.detail.get('error')}")
    return lines


def _format_integrity(findings: List[Finding], limit: int) -> List[str]:
    lines = [f"  • {f.detail['description']}" for f in findings[:limit]]
    if len(findings) > limit:
        lines.append(f"  ... and {len(findings) - limit} more")
    return lines


def _format_forecast(findings: List[Finding], limit: int) -> List[str]:
    lines = []
    for f in findings:
        d = f.detail
        lines.append(
            f"  Used today: {d['used']:,} / {d['limit']:,} ({d['usage_percent']}%)"
        )
        lines.append(
            f"  Projected end of day: {d['projected_total']:,} ({d['projected_percent']}%)"
        )
        lines.append(f"  Calls today: {d['call_count']}")
        if d["projected_percent"] >= d["projection_limit_percent"]:
            lines.append("  ⚠️ Projected to exceed the daily allowance")
        else:
            lines.append("  ⚠️ Usage is high")
    return lines


Formatter = Callable[[List[Finding], int], List[str]]

# Fixed section order. Matches the detector order of a pass.
SECTIONS: Sequence[Tuple[str, str, Tuple[FindingKind, ...], Formatter]] = (
    ("nudges", "🔔 Work nudges", (FindingKind.NUDGE,), _format_nudges),
    ("project_sync", "📊 Project auto-updates", (FindingKind.STATUS_SYNC,), _format_project_sync),
    (
        "deadlines",
        "⏰ Deadline warnings",
        (FindingKind.DEADLINE_OVERDUE, FindingKind.DEADLINE_APPROACHING),
        _format_deadlines,
    ),
    ("kpi", "📈 KPI updates", (FindingKind.KPI_DELTA,), _format_kpis),
    ("backlog", "📬 Communication backlog", (FindingKind.BACKLOG,), _format_backlog),
    ("approvals", "📝 Hiring approvals waiting", (FindingKind.APPROVAL_STALE,), _format_approvals),
    ("activity", "💤 Inactive actors", (FindingKind.INACTIVE_ACTOR,), _format_inactive),
    ("providers", "🔌 LLM provider status", (FindingKind.HEALTH_CHANGE,), _format_providers),
    ("integrity", "🔍 Data integrity", (FindingKind.INTEGRITY_ISSUE,), _format_integrity),
    ("forecast", "💰 Resource forecast", (FindingKind.RESOURCE_FORECAST,), _format_forecast),
)


class NotificationBatcher:
    def __init__(
        self,
        channel: Optional[NotificationChannel],
        announcer_id: str = "secretary",
        integrity_limit: int = 5,
    ):
        self.channel = channel
        self.announcer_id = announcer_id
        self.integrity_limit = integrity_limit

    def assemble(self, findings: List[Finding], now: datetime) -> NotificationDigest:
        """Render every non-empty section in fixed order."""
        digest = NotificationDigest(generated_at=now)
        for key, title, kinds, formatter in SECTIONS:
            selected = [f for f in findings if f.kind in kinds]
            if not selected:
                continue
            try:
                lines = formatter(selected, self.integrity_limit)
            except Exception:
                logger.exception("Rendering digest section %s failed", key)
                continue
            if not lines:
                continue
            if key == "integrity":
                title = f"{title} ({len(selected)} issues)"
            digest.sections.append(DigestSection(key=key, title=title, lines=lines))
        return digest

    def push(self, digest: NotificationDigest) -> bool:
        """Push the digest if it has content. Returns whether anything was sent."""
        if digest.is_empty or self.channel is None:
            return False
        self.channel.push(self.announcer_id, digest.render())
        logger.info("Patrol digest pushed with %d sections", len(digest.sections))
        return True
