"""In-memory event log shown to observers of a running simulation."""

from __future__ import annotations

from collections import deque
from typing import Deque, Iterator, List, Literal, Optional

from pydantic import BaseModel, Field

from .logging_utils import (
    LOG_TAG_DETERMINISTIC,
    LOG_TAG_INFO,
    LOG_TAG_SUCCESS,
    LOG_TAG_TRADE,
    log_deterministic,
    log_info,
    log_success,
    log_trade,
    verbose_enabled,
)

LogCategory = Literal["system", "info", "action", "trade"]


class LogEntry(BaseModel):
    id: int
    time: str = Field(..., description="Simulation clock label, e.g. 'Day 3, 14:00'")
    message: str
    category: LogCategory = "info"
    count: int = Field(1, description="How many consecutive times this message was logged")
    actor_id: Optional[str] = None


_ECHO = {
    "system": (LOG_TAG_SUCCESS, log_success),
    "info": (LOG_TAG_INFO, log_info),
    "action": (LOG_TAG_DETERMINISTIC, log_deterministic),
    "trade": (LOG_TAG_TRADE, log_trade),
}


class EventLog:
    """Bounded, de-duplicating log.

    A message identical to the previous entry from the same actor bumps that
    entry's ``count`` instead of adding a new line.
    """

    def __init__(self, limit: int = 100, *, echo: Optional[bool] = None) -> None:
        self.limit = limit
        self.echo = verbose_enabled() if echo is None else echo
        self._entries: Deque[LogEntry] = deque(maxlen=limit)
        self._next_id = 1

    def add(
        self,
        message: str,
        category: LogCategory = "info",
        *,
        time: str,
        actor_id: Optional[str] = None,
    ) -> LogEntry:
        last = self._entries[-1] if self._entries else None
        if last is not None and last.message == message and last.actor_id == actor_id:
            last.count += 1
            last.time = time
            return last

        entry = LogEntry(id=self._next_id, time=time, message=message, category=category, actor_id=actor_id)
        self._next_id += 1
        self._entries.append(entry)
        if self.echo:
            tag, printer = _ECHO[category]
            printer(f"  {tag} [{time}] {message}")
        return entry

    def resize(self, limit: int) -> None:
        self.limit = limit
        self._entries = deque(self._entries, maxlen=limit)

    def clear(self) -> None:
        self._entries.clear()

    def entries(self) -> List[LogEntry]:
        return [entry.model_copy() for entry in self._entries]

    def messages(self) -> List[str]:
        return [entry.message for entry in self._entries]

    def __iter__(self) -> Iterator[LogEntry]:
        return iter(self._entries)

    def __len__(self) -> int:
        return len(self._entries)
