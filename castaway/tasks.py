"""Tracking of in-flight reasoning requests.

Collaborator calls run as asyncio tasks. They never touch simulation state
themselves: a finished task only parks its result here, and the dispatcher
applies results synchronously at the start of its pass. Each request carries
the simulation epoch it was issued in, so answers that arrive after a reset
are dropped without side effects.
"""

from __future__ import annotations

import asyncio
from collections import deque
from dataclasses import dataclass
from typing import Any, Awaitable, Callable, Deque, Dict, List, Optional, Set, Tuple


@dataclass(eq=False)
class PendingRequest:
    key: str
    epoch: int
    task: "asyncio.Task[Any]"
    on_complete: Callable[[Any], None]
    on_error: Callable[[BaseException], None]


Completion = Tuple[PendingRequest, Any, Optional[BaseException]]


class RequestTracker:
    """At most one request per key, results delivered through a queue.

    Keys name the purpose and owner, e.g. ``goal:robinson``,
    ``trade:trade-3`` or ``invention:friday``.
    """

    def __init__(self) -> None:
        self._pending: Dict[str, PendingRequest] = {}
        self._detached: Set[PendingRequest] = set()
        self._completed: Deque[Completion] = deque()

    def in_flight(self, key: str) -> bool:
        return key in self._pending

    def pending_keys(self) -> List[str]:
        return list(self._pending)

    def submit(
        self,
        key: str,
        epoch: int,
        coro: Awaitable[Any],
        *,
        on_complete: Callable[[Any], None],
        on_error: Callable[[BaseException], None],
    ) -> bool:
        """Start ``coro`` as a task registered under ``key``.

        Returns False, and closes the coroutine unstarted, when a request with
        the same key is already in flight. Must be called from inside a
        running event loop.
        """
        if key in self._pending:
            close = getattr(coro, "close", None)
            if close is not None:
                close()
            return False
        task = asyncio.get_running_loop().create_task(coro)
        request = PendingRequest(key=key, epoch=epoch, task=task, on_complete=on_complete, on_error=on_error)
        self._pending[key] = request
        task.add_done_callback(lambda t, r=request: self._finished(r, t))
        return True

    def _finished(self, request: PendingRequest, task: "asyncio.Task[Any]") -> None:
        registered = self._pending.get(request.key) is request
        if registered:
            del self._pending[request.key]
        elif request in self._detached:
            self._detached.discard(request)
        else:
            return
        if task.cancelled():
            return
        error = task.exception()
        self._completed.append((request, None if error else task.result(), error))

    def cancel(self, key: str) -> bool:
        request = self._pending.pop(key, None)
        if request is None:
            return False
        request.task.cancel()
        return True

    def detach_all(self) -> None:
        """Release every key while letting the tasks run to completion.

        Used on reset: the keys become free for the new session and the
        eventual answers are reported (and discarded) as stale.
        """
        self._detached.update(self._pending.values())
        self._pending.clear()

    def cancel_all(self) -> None:
        for request in [*self._pending.values(), *self._detached]:
            request.task.cancel()
        self._pending.clear()
        self._detached.clear()
        self._completed.clear()

    def apply_completed(self, current_epoch: int, on_stale: Callable[[str], None]) -> int:
        """Deliver parked results, returning how many were applied.

        Results from another epoch are passed to ``on_stale`` instead of
        their handlers.
        """
        applied = 0
        while self._completed:
            request, result, error = self._completed.popleft()
            if request.epoch != current_epoch:
                on_stale(request.key)
                continue
            if error is not None:
                request.on_error(error)
            else:
                request.on_complete(result)
            applied += 1
        return applied

    def has_completed(self) -> bool:
        return bool(self._completed)

    async def wait_all(self) -> None:
        """Wait until every registered and detached task has finished."""
        while True:
            tasks = [r.task for r in [*self._pending.values(), *self._detached] if not r.task.done()]
            if not tasks:
                return
            await asyncio.gather(*tasks, return_exceptions=True)
