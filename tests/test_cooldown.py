"""Tests for the Cooldown Ledger and Action Dispatcher."""

import asyncio
from datetime import datetime, timedelta

from orgpatrol.models import CooldownFamily, CooldownKey, DirectedMessage, PatrolConfig
from orgpatrol.patrol.cooldown import CooldownLedger
from orgpatrol.patrol.dispatcher import ActionDispatcher
from orgpatrol.stores.communication import InMemoryCommunicationChannel

NOW = datetime(2026, 3, 10, 10, 0)


def _key(family=CooldownFamily.NUDGE, subject="t1") -> CooldownKey:
    return CooldownKey(family=family, subject_id=subject)


class TestCooldownLedger:
    def setup_method(self):
        self.ledger = CooldownLedger(PatrolConfig().cooldown_window)

    def test_unknown_key_not_in_cooldown(self):
        assert not self.ledger.is_in_cooldown(_key(), NOW)

    def test_window_boundary(self):
        self.ledger.record_trigger(_key(), NOW)
        assert self.ledger.is_in_cooldown(_key(), NOW + timedelta(minutes=59, seconds=59))
        assert not self.ledger.is_in_cooldown(_key(), NOW + timedelta(minutes=60))

    def test_family_windows_are_independent(self):
        self.ledger.record_trigger(_key(CooldownFamily.DEADLINE), NOW)
        later = NOW + timedelta(hours=2)
        assert self.ledger.is_in_cooldown(_key(CooldownFamily.DEADLINE), later)
        assert not self.ledger.is_in_cooldown(_key(CooldownFamily.NUDGE), later)

    def test_prune_drops_entries_past_twice_the_window(self):
        self.ledger.record_trigger(_key(subject="old"), NOW)
        self.ledger.record_trigger(_key(subject="fresh"), NOW + timedelta(minutes=90))
        self.ledger.record_trigger(_key(CooldownFamily.DEADLINE, "due"), NOW)

        removed = self.ledger.prune(NOW + timedelta(minutes=121))
        assert removed == 1
        assert _key(subject="old") not in self.ledger
        assert _key(subject="fresh") in self.ledger
        assert _key(CooldownFamily.DEADLINE, "due") in self.ledger
        assert len(self.ledger) == 2

    def test_clear(self):
        self.ledger.record_trigger(_key(), NOW)
        self.ledger.clear()
        assert len(self.ledger) == 0
        assert self.ledger.last_triggered(_key()) is None

    def test_entries(self):
        self.ledger.record_trigger(_key(), NOW)
        entries = self.ledger.entries()
        assert len(entries) == 1
        assert entries[0].key == _key()
        assert entries[0].last_triggered_at == NOW


class _FailingChannel(InMemoryCommunicationChannel):
    def __init__(self, fail_for):
        super().__init__()
        self.fail_for = fail_for

    async def send_message(self, message: DirectedMessage) -> None:
        if message.to_actor == self.fail_for:
            raise ConnectionError("actor unreachable")
        await super().send_message(message)


class TestActionDispatcher:
    def test_dispatch_sends_directed_message(self):
        channel = InMemoryCommunicationChannel()
        dispatcher = ActionDispatcher(channel, sender_id="system", pacing_seconds=0)

        assert asyncio.run(dispatcher.dispatch("a1", "Please start")) is True
        assert dispatcher.sent_count == 1
        sent = channel.messages_to("a1")
        assert len(sent) == 1
        assert sent[0].from_actor == "system"
        assert sent[0].allow_tools is True
        assert sent[0].include_user_context is False

    def test_failure_reported_not_raised(self):
        channel = _FailingChannel(fail_for="a1")
        dispatcher = ActionDispatcher(channel, pacing_seconds=0)

        async def run():
            first = await dispatcher.dispatch("a1", "hello")
            second = await dispatcher.dispatch("a2", "hello")
            return first, second

        assert asyncio.run(run()) == (False, True)
        assert dispatcher.failures == 1
        assert dispatcher.sent_count == 1

    def test_no_channel(self):
        dispatcher = ActionDispatcher(None, pacing_seconds=0)
        assert not dispatcher.available
        assert asyncio.run(dispatcher.dispatch("a1", "hello")) is False
