"""
Resource forecasting — linear projection of today's consumption.

  rate      = used / hours_elapsed
  projected = used + rate * (24 - hours_elapsed)
A warning is raised when current usage reaches the high-water mark or the
projection reaches the projection limit, at most once per calendar day.
"""

import logging
from datetime import datetime
from typing import List

from orgpatrol.detectors.base import Detector
from orgpatrol.models.finding import Finding, FindingKind, Severity
from orgpatrol.models.patrol import CooldownFamily

logger = logging.getLogger(__name__)


class ResourceForecastDetector(Detector):
    name = "resource_forecast"
    requires = ("usage_ledger", "allowance")

    async def detect(self, now: datetime) -> List[Finding]:
        limit = self.ctx.allowance.current_allowance().daily_limit
        if not limit or limit <= 0:
            return []

        day_start = now.replace(hour=0, minute=0, second=0, microsecond=0)
        hours_elapsed = (now - day_start).total_seconds() / 3600
        if hours_elapsed < self.config.forecast_min_elapsed_hours:
            return []

        usage = self.ctx.usage_ledger.total_usage(since=day_start)
        used = usage.total_tokens
        hourly_rate = used / hours_elapsed
        projected = used + hourly_rate * (24 - hours_elapsed)

        usage_percent = round(used * 100 / limit)
        projected_percent = round(projected * 100 / limit)

        if (
            usage_percent < self.config.forecast_high_water_percent
            and projected_percent < self.config.forecast_projection_limit_percent
        ):
            return []
        if not self.claim(CooldownFamily.FORECAST, day_start.date().isoformat(), now):
            return []

        logger.info(
            "Resource forecast warning: %d%% used, %d%% projected",
            usage_percent, projected_percent,
        )
        return [self.finding(
            FindingKind.RESOURCE_FORECAST,
            day_start.date().isoformat(),
            now,
            severity=(
                Severity.HIGH
                if projected_percent >= self.config.forecast_projection_limit_percent
                else Severity.MEDIUM
            ),
            used=used,
            limit=limit,
            usage_percent=usage_percent,
            hourly_rate=round(hourly_rate),
            projected_total=round(projected),
            projected_percent=projected_percent,
            projection_limit_percent=self.config.forecast_projection_limit_percent,
            call_count=usage.call_count,
        )]
