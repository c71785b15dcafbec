"""In-memory inter-actor communication and passive notification channels."""

import logging
from typing import List, Optional

from orgpatrol.models.org import DirectedMessage, Notification, PendingMessage
from orgpatrol.models.work import DelegatedTask
from orgpatrol.stores.base import Clock, resolve_clock

logger = logging.getLogger(__name__)


class InMemoryCommunicationChannel:
    """Records directed messages instead of handing them to an LLM actor."""

    def __init__(self):
        self.sent: List[DirectedMessage] = []
        self._delegated: List[DelegatedTask] = []
        self._pending: List[PendingMessage] = []

    async def send_message(self, message: DirectedMessage) -> None:
        self.sent.append(message)
        logger.debug("directed message %s -> %s", message.from_actor, message.to_actor)

    def add_delegated_task(self, task: DelegatedTask) -> DelegatedTask:
        self._delegated.append(task)
        return task

    def list_delegated_tasks(self) -> List[DelegatedTask]:
        return list(self._delegated)

    def add_pending_message(self, message: PendingMessage) -> PendingMessage:
        self._pending.append(message)
        return message

    def list_pending_messages(self) -> List[PendingMessage]:
        return list(self._pending)

    def messages_to(self, actor_id: str) -> List[DirectedMessage]:
        return [m for m in self.sent if m.to_actor == actor_id]


class InMemoryNotificationChannel:
    def __init__(self, clock: Optional[Clock] = None):
        self._clock = resolve_clock(clock)
        self.notifications: List[Notification] = []

    def push(self, announcer_id: str, text: str) -> None:
        self.notifications.append(
            Notification(announcer_id=announcer_id, text=text, pushed_at=self._clock())
        )

    def recent(self, limit: int = 20) -> List[Notification]:
        if limit <= 0:
            return []
        return self.notifications[-limit:]
