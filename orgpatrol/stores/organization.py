"""In-memory actor directory, hiring approval queue and personal todo lists."""

from typing import Dict, List, Optional

from orgpatrol.models.org import Actor, ApprovalRequest, TodoItem
from orgpatrol.stores.base import Clock, apply_updates, resolve_clock


class InMemoryActorDirectory:
    def __init__(self):
        self._actors: Dict[str, Actor] = {}

    def upsert(self, actor: Actor) -> Actor:
        self._actors[actor.id] = actor
        return actor

    def remove(self, actor_id: str) -> bool:
        return self._actors.pop(actor_id, None) is not None

    def get(self, actor_id: str) -> Optional[Actor]:
        return self._actors.get(actor_id)

    def list_all(self) -> List[Actor]:
        return list(self._actors.values())


class InMemoryApprovalQueue:
    def __init__(self):
        self._requests: Dict[str, ApprovalRequest] = {}

    def submit(self, request: ApprovalRequest) -> ApprovalRequest:
        self._requests[request.id] = request
        return request

    def review(self, request_id: str, decision: str) -> Optional[ApprovalRequest]:
        """Approve or reject a pending request."""
        request = self._requests.get(request_id)
        if request is None or request.status != "pending":
            return None
        request.status = decision
        return request

    def list_pending(self) -> List[ApprovalRequest]:
        return [r for r in self._requests.values() if r.status == "pending"]


class InMemoryTodoStore:
    def __init__(self, clock: Optional[Clock] = None):
        self._clock = resolve_clock(clock)
        self._todos: Dict[str, List[TodoItem]] = {}

    def add(self, actor_id: str, item: TodoItem) -> TodoItem:
        self._todos.setdefault(actor_id, []).append(item)
        return item

    def update(self, actor_id: str, todo_id: str, updates: dict) -> Optional[TodoItem]:
        item = next((t for t in self._todos.get(actor_id, []) if t.id == todo_id), None)
        if item is None:
            return None
        apply_updates(item, updates)
        item.updated_at = self._clock()
        return item

    def list_all(self) -> Dict[str, List[TodoItem]]:
        return {actor_id: list(items) for actor_id, items in self._todos.items()}
