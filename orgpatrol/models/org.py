"""Organization records — actors, hiring approvals, messages and personal todos."""

from datetime import datetime
from enum import Enum
from typing import Optional

from pydantic import BaseModel, field_validator

from orgpatrol.models.timeutil import to_naive_local


class ActorStatus(str, Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    TERMINATED = "terminated"


class Actor(BaseModel):
    """An employee-like agent in the actor directory."""

    id: str
    name: str
    title: str = ""
    status: ActorStatus = ActorStatus.ACTIVE

    @property
    def can_work(self) -> bool:
        return self.status == ActorStatus.ACTIVE


class ApprovalRequest(BaseModel):
    """A hiring request waiting in the approval queue."""

    id: str
    role_name: str
    requester_id: str
    requester_name: str = ""
    status: str = "pending"                 # "pending" | "approved" | "rejected"
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def normalize_times(cls, value):
        return to_naive_local(value)


class MessageStatus(str, Enum):
    PENDING = "pending"
    DELIVERED = "delivered"
    ACKNOWLEDGED = "acknowledged"


class PendingMessage(BaseModel):
    """An inter-actor message as seen from the outbound queue."""

    id: str
    from_actor: str
    to_actor: str
    status: MessageStatus = MessageStatus.PENDING
    created_at: datetime

    @field_validator("created_at")
    @classmethod
    def normalize_times(cls, value):
        return to_naive_local(value)


class DirectedMessage(BaseModel):
    """Payload for a directive dispatch to one actor."""

    from_actor: str
    to_actor: str
    message: str
    allow_tools: bool = True
    include_user_context: bool = False


class TodoStatus(str, Enum):
    PENDING = "pending"
    IN_PROGRESS = "in_progress"
    DONE = "done"


class TodoItem(BaseModel):
    """An actor's personal scratch todo."""

    id: str
    title: str
    status: TodoStatus = TodoStatus.PENDING
    created_at: datetime
    updated_at: Optional[datetime] = None

    @field_validator("created_at", "updated_at")
    @classmethod
    def normalize_times(cls, value):
        return to_naive_local(value)

    @property
    def last_touched(self) -> datetime:
        return self.updated_at or self.created_at


class Notification(BaseModel):
    """A message pushed through the passive notification channel."""

    announcer_id: str
    text: str
    pushed_at: datetime
