"""In-memory usage ledger, allowance config, provider registry and memory upkeep."""

from datetime import datetime
from typing import Dict, List, Optional

from orgpatrol.models.resources import (
    ProbeResult,
    ResourceAllowance,
    UsageRecord,
    UsageSummary,
    UsageTotals,
)
from orgpatrol.stores.base import Clock, resolve_clock


class InMemoryUsageLedger:
    def __init__(self):
        self._records: List[UsageRecord] = []

    def record(self, usage: UsageRecord) -> UsageRecord:
        self._records.append(usage)
        return usage

    def summaries(
        self,
        actor_id: Optional[str] = None,
        since: Optional[datetime] = None,
    ) -> List[UsageSummary]:
        """Per-actor aggregates, optionally filtered by actor and start time."""
        grouped: Dict[str, UsageSummary] = {}
        for r in self._records:
            if actor_id and r.actor_id != actor_id:
                continue
            if since and r.timestamp < since:
                continue

            summary = grouped.get(r.actor_id)
            if summary is None:
                summary = UsageSummary(actor_id=r.actor_id, last_used=r.timestamp)
                grouped[r.actor_id] = summary

            summary.total_prompt_tokens += r.prompt_tokens
            summary.total_completion_tokens += r.completion_tokens
            summary.total_tokens += r.total_tokens
            summary.call_count += 1
            if r.timestamp > summary.last_used:
                summary.last_used = r.timestamp

        return list(grouped.values())

    def total_usage(self, since: Optional[datetime] = None) -> UsageTotals:
        totals = UsageTotals()
        for s in self.summaries(since=since):
            totals.total_prompt_tokens += s.total_prompt_tokens
            totals.total_completion_tokens += s.total_completion_tokens
            totals.total_tokens += s.total_tokens
            totals.call_count += s.call_count
        return totals


class StaticAllowanceConfig:
    def __init__(self, allowance: Optional[ResourceAllowance] = None):
        self._allowance = allowance or ResourceAllowance()

    def set_allowance(self, allowance: ResourceAllowance) -> None:
        self._allowance = allowance

    def current_allowance(self) -> ResourceAllowance:
        return self._allowance


class InMemoryProviderRegistry:
    """Providers whose reachability is set by hand rather than probed."""

    def __init__(self):
        self._status: Dict[str, ProbeResult] = {}
        self.probe_count = 0

    def register(self, name: str, available: bool = True, error: Optional[str] = None) -> None:
        self._status[name] = ProbeResult(available=available, error=error)

    def set_available(self, name: str, available: bool, error: Optional[str] = None) -> None:
        self.register(name, available, error)

    def provider_names(self) -> List[str]:
        return list(self._status)

    async def probe(self, name: str) -> ProbeResult:
        self.probe_count += 1
        result = self._status.get(name)
        if result is None:
            return ProbeResult(available=False, error=f"Unknown provider: {name}")
        return result


class InMemoryMemorySubsystem:
    """Counts maintenance runs; stands in for long-term memory decay."""

    def __init__(self, clock: Optional[Clock] = None):
        self._clock = resolve_clock(clock)
        self.runs = 0
        self.last_run_at: Optional[datetime] = None

    async def run_maintenance(self) -> None:
        self.runs += 1
        self.last_run_at = self._clock()
