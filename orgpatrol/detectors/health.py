"""
External health — LLM provider reachability and memory upkeep.

Provider findings are raised only on transitions. The first observation
of an unavailable provider counts as a transition from "available". A
provider whose check raises is logged and treated as unavailable, with the
exception text as its error.
"""

import logging
from datetime import datetime, timedelta
from typing import Dict, List, Optional

from orgpatrol.detectors.base import Detector
from orgpatrol.models.finding import Finding, FindingKind, Severity
from orgpatrol.models.resources import ProbeResult

logger = logging.getLogger(__name__)


class ProviderHealthDetector(Detector):
    name = "provider_health"
    requires = ("providers",)

    def __init__(self, ctx):
        super().__init__(ctx)
        self._last_status: Dict[str, bool] = {}

    def reset(self) -> None:
        self._last_status.clear()

    def last_status(self, provider: str) -> Optional[bool]:
        return self._last_status.get(provider)

    async def detect(self, now: datetime) -> List[Finding]:
        findings = []
        for name in self.ctx.providers.provider_names():
            if name in self.config.skip_provider_names:
                continue
            if self.ctx.should_abort():
                break

            try:
                result = await self.ctx.providers.probe(name)
            except Exception as e:
                logger.exception("Health probe for provider %s failed", name)
                result = ProbeResult(available=False, error=str(e) or type(e).__name__)

            previous = self._last_status.get(name)
            if not result.available and previous is not False:
                logger.warning("LLM provider %s unavailable: %s", name, result.error)
                findings.append(self.finding(
                    FindingKind.HEALTH_CHANGE,
                    name,
                    now,
                    severity=Severity.HIGH,
                    provider=name,
                    available=False,
                    error=result.error or "connection failed",
                ))
            elif result.available and previous is False:
                logger.info("LLM provider %s recovered", name)
                findings.append(self.finding(
                    FindingKind.HEALTH_CHANGE,
                    name,
                    now,
                    severity=Severity.LOW,
                    provider=name,
                    available=True,
                    recovered=True,
                ))

            self._last_status[name] = result.available
        return findings


class MemoryMaintenanceDetector(Detector):
    """Fire-and-forget upkeep. Never produces findings."""

    name = "memory_maintenance"
    requires = ("memory",)

    def __init__(self, ctx):
        super().__init__(ctx)
        self._last_run_at: Optional[datetime] = None

    def reset(self) -> None:
        self._last_run_at = None

    async def detect(self, now: datetime) -> List[Finding]:
        interval = timedelta(minutes=self.config.memory_maintenance_interval_minutes)
        if self._last_run_at is not None and now - self._last_run_at < interval:
            return []

        try:
            await self.ctx.memory.run_maintenance()
            self._last_run_at = now
            logger.info("Memory maintenance completed")
        except Exception:
            logger.exception("Memory maintenance failed")
        return []
