"""
Action Dispatcher — directive messages to specific actors.

Used only by the detectors that need someone to act (work nudges and
activity monitoring). Every dispatch is followed by a pacing delay so a
single pass does not burst many concurrent calls into the actor/LLM layer.
A failed send is logged and reported as False; it never stops the caller.
"""

import asyncio
import logging
from typing import Optional

from orgpatrol.interfaces.collaborators import CommunicationChannel
from orgpatrol.models.org import DirectedMessage

logger = logging.getLogger(__name__)


class ActionDispatcher:
    def __init__(
        self,
        channel: Optional[CommunicationChannel],
        sender_id: str = "system",
        pacing_seconds: float = 3.0,
    ):
        self.channel = channel
        self.sender_id = sender_id
        self.pacing_seconds = pacing_seconds
        self.sent_count = 0
        self.failures = 0

    @property
    def available(self) -> bool:
        return self.channel is not None

    async def dispatch(self, actor_id: str, message: str) -> bool:
        """Send one directive to `actor_id`, then pace."""
        if self.channel is None:
            return False

        sent = False
        try:
            await self.channel.send_message(DirectedMessage(
                from_actor=self.sender_id,
                to_actor=actor_id,
                message=message,
            ))
            self.sent_count += 1
            sent = True
        except Exception:
            self.failures += 1
            logger.exception("Dispatch to %s failed", actor_id)

        if self.pacing_seconds > 0:
            await asyncio.sleep(self.pacing_seconds)
        return sent
