"""
Cooldown Ledger — keyed last-triggered times.

Behavioral Contract:
- A key in cooldown must not produce a second finding until its
  family's window has elapsed since the last trigger.
- Keys are typed (family + subject), so detectors never collide.
- Entries older than twice their window are pruned at the end of a pass.
- In-memory only. A restart forgets every cooldown, which can make the
  first pass after a restart re-notify early.
"""

import logging
from datetime import datetime, timedelta
from typing import Callable, Dict, List, Optional

from orgpatrol.models.patrol import CooldownEntry, CooldownFamily, CooldownKey

logger = logging.getLogger(__name__)


class CooldownLedger:
    def __init__(self, window_for: Callable[[CooldownFamily], timedelta]):
        self._window_for = window_for
        self._entries: Dict[CooldownKey, datetime] = {}

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, key: CooldownKey) -> bool:
        return key in self._entries

    def window(self, key: CooldownKey) -> timedelta:
        return self._window_for(key.family)

    def is_in_cooldown(self, key: CooldownKey, now: datetime) -> bool:
        last = self._entries.get(key)
        if last is None:
            return False
        return now - last < self.window(key)

    def record_trigger(self, key: CooldownKey, now: datetime) -> None:
        self._entries[key] = now

    def last_triggered(self, key: CooldownKey) -> Optional[datetime]:
        return self._entries.get(key)

    def prune(self, now: datetime) -> int:
        """Drop entries older than twice their window. Returns the count removed."""
        stale = [
            key for key, ts in self._entries.items()
            if now - ts > self.window(key) * 2
        ]
        for key in stale:
            del self._entries[key]
        if stale:
            logger.debug("Pruned %d cooldown entries", len(stale))
        return len(stale)

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> List[CooldownEntry]:
        return [
            CooldownEntry(key=key, last_triggered_at=ts)
            for key, ts in self._entries.items()
        ]
