"""Ordered queue of pending actor intents.

FIFO with targeted reordering: events can be prepended to splice in
prerequisite steps, and the head can be replaced by a successor in one step.
At most one DECIDE_GOAL per actor is ever queued.
"""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterator, List, Optional

from .schemas import Event, EventType


class EventQueue:
    def __init__(self) -> None:
        self._events: Deque[Event] = deque()

    def __len__(self) -> int:
        return len(self._events)

    def __iter__(self) -> Iterator[Event]:
        return iter(self._events)

    def __bool__(self) -> bool:
        return bool(self._events)

    @property
    def head(self) -> Optional[Event]:
        return self._events[0] if self._events else None

    def has_decide_goal(self, actor_id: str) -> bool:
        return any(e.type == EventType.DECIDE_GOAL and e.actor_id == actor_id for e in self._events)

    def has_pending(self, actor_id: str) -> bool:
        """True when any queued event belongs to ``actor_id``."""
        return any(e.actor_id == actor_id for e in self._events)

    def queue_event(self, event: Event, to_front: bool = False) -> bool:
        """Append (or prepend) ``event``.

        Returns False when the event was a duplicate DECIDE_GOAL and was not
        queued.
        """
        if event.type == EventType.DECIDE_GOAL and self.has_decide_goal(event.actor_id):
            return False
        if to_front:
            self._events.appendleft(event)
        else:
            self._events.append(event)
        return True

    def pop(self) -> Optional[Event]:
        return self._events.popleft() if self._events else None

    def replace_current_event(self, current: Event, successor: Optional[Event] = None) -> None:
        """Remove ``current`` (normally the head) and prepend ``successor``.

        ``current`` is matched by identity, so a handler that already purged
        it from the queue leaves nothing else to remove.
        """
        for index, queued in enumerate(self._events):
            if queued is current:
                del self._events[index]
                break
        if successor is not None:
            self.queue_event(successor, to_front=True)

    def postpone_head(self) -> None:
        """Move the head to the tail, or drop it when a duplicate decide-goal is already queued."""
        event = self.pop()
        if event is None:
            return
        if event.type == EventType.DECIDE_GOAL and self.has_decide_goal(event.actor_id):
            return
        self._events.append(event)

    def purge_actor(self, actor_id: str) -> List[Event]:
        """Remove every event owned by ``actor_id`` and return them."""
        removed = [e for e in self._events if e.actor_id == actor_id]
        self._events = deque(e for e in self._events if e.actor_id != actor_id)
        return removed

    def remove_where(self, predicate) -> List[Event]:
        removed = [e for e in self._events if predicate(e)]
        if removed:
            self._events = deque(e for e in self._events if not predicate(e))
        return removed

    def clear(self) -> None:
        self._events.clear()

    def snapshot(self) -> List[Event]:
        return [event.model_copy(deep=True) for event in self._events]
