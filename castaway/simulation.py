"""
Simulation session.

``Simulation`` owns one island session and the control surface around it:
ticking manually (``tick``/``step``/``run``), a background run loop
(``start``/``stop``), resets, configuration updates and read-only snapshots.

All engine components share a single ``SimulationContext`` that is rebuilt on
reset. The ``RequestTracker`` outlives resets: outstanding reasoning calls are
detached rather than cancelled, and their answers are discarded when they
arrive because they carry the old epoch.
"""

from __future__ import annotations

import asyncio
import random
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .cognition import FallbackReasoner, LLMReasoner, Reasoner
from .config import Config, SimulationConfig, default_config
from .context import SimulationContext
from .dispatcher import EventDispatcher
from .event_log import EventLog, LogEntry
from .inventions import InventionDiscovery
from .logging_utils import LOG_TAG_INFO, LOG_TAG_SUCCESS, log_info, log_success
from .scenario import Scenario, build_world, default_scenario
from .scheduler import TickScheduler
from .schemas import Actor, Event, Invention, Season, Trade, WorldObject
from .tasks import RequestTracker
from .trade import TradeProtocol


class SimulationSnapshot(BaseModel):
    """Deep-copied view of a session for presentation layers."""

    epoch: int
    ticks: int
    time_label: str
    season: Season
    running: bool
    actors: List[Actor]
    objects: List[WorldObject]
    trades: List[Trade]
    inventions: List[Invention]
    queue: List[Event] = Field(default_factory=list)
    log: List[LogEntry] = Field(default_factory=list)
    island: List[str] = Field(default_factory=list, description="Map rows, '#' land and '~' water")


def default_reasoner() -> Reasoner:
    """LLM reasoner when the configured provider has credentials, else rules."""
    if Config.llm_available():
        return LLMReasoner()
    return FallbackReasoner()


class Simulation:
    """One island session.

    ``tick`` and ``start`` create asyncio tasks for reasoning calls, so they
    must be used from inside a running event loop.
    """

    def __init__(
        self,
        config: Optional[SimulationConfig] = None,
        scenario: Optional[Scenario] = None,
        reasoner: Optional[Reasoner] = None,
        *,
        seed: Optional[int] = None,
        echo_log: Optional[bool] = None,
    ) -> None:
        self.config = config or default_config()
        self.scenario = scenario or default_scenario()
        self.reasoner = reasoner or default_reasoner()
        self.seed = seed if seed is not None else Config.RANDOM_SEED
        self.echo_log = echo_log
        self.tracker = RequestTracker()
        self._epoch = 0
        self._running = False
        self._ticking = False
        self._loop_task: Optional[asyncio.Task] = None
        self._build_context()

    def _build_context(self) -> None:
        self._epoch += 1
        rng = random.Random(self.seed)
        world, actors = build_world(self.scenario, self.config, rng)
        self.context = SimulationContext(
            config=self.config,
            world=world,
            actors=actors,
            reasoner=self.reasoner,
            rng=rng,
            epoch=self._epoch,
            tracker=self.tracker,
            log=EventLog(self.config.log_limit, echo=self.echo_log),
        )
        self.trades = TradeProtocol(self.context)
        self.dispatcher = EventDispatcher(self.context, self.trades)
        self.discovery = InventionDiscovery(self.context)
        self.scheduler = TickScheduler(self.context, self.dispatcher, self.trades, self.discovery)
        self.context.record(f"Welcome to {self.scenario.name}.", "system")

    # ------------------------------------------------------------------
    # Ticking
    # ------------------------------------------------------------------

    @property
    def running(self) -> bool:
        return self._running

    @property
    def epoch(self) -> int:
        return self._epoch

    def tick(self) -> bool:
        """Advance one tick; returns False when a tick is already in progress."""
        if self._ticking:
            return False
        self._ticking = True
        try:
            self.scheduler.advance()
        finally:
            self._ticking = False
        return True

    async def settle(self) -> int:
        """Wait for every outstanding reasoning call and apply the answers."""
        await self.tracker.wait_all()
        return self.dispatcher.apply_responses()

    async def step(self, settle: bool = False) -> None:
        self.tick()
        if settle:
            await self.settle()
        else:
            # let finished reasoning tasks park their results
            await asyncio.sleep(0)

    async def run(self, ticks: int, settle: bool = False) -> SimulationSnapshot:
        """Run ``ticks`` ticks back to back and return the final snapshot.

        With ``settle`` every reasoning call is awaited before the next tick,
        which makes runs reproducible for a fixed seed and reasoner.
        """
        for _ in range(ticks):
            await self.step(settle=settle)
        return self.snapshot()

    # ------------------------------------------------------------------
    # Run loop
    # ------------------------------------------------------------------

    def start(self) -> bool:
        if self._loop_task is not None and not self._loop_task.done():
            return False
        self._running = True
        self._loop_task = asyncio.get_running_loop().create_task(self._loop())
        self.context.record("Simulation started.", "system")
        log_success(f"  {LOG_TAG_SUCCESS} Simulation started ({self.context.time_label})")
        return True

    async def _loop(self) -> None:
        while self._running:
            self.tick()
            await asyncio.sleep(self.config.tick_interval_seconds)

    def stop(self) -> None:
        if not self._running and self._loop_task is None:
            return
        self._running = False
        if self._loop_task is not None and not self._loop_task.done():
            self._loop_task.cancel()
        self._loop_task = None
        self.context.record("Simulation paused.", "system")
        log_info(f"  {LOG_TAG_INFO} Simulation paused at {self.context.time_label}")

    # ------------------------------------------------------------------
    # Control surface
    # ------------------------------------------------------------------

    def reset(self) -> None:
        """Stop the loop and rebuild the island from the scenario.

        Reasoning calls still in flight are left to finish; their answers
        belong to the previous epoch and are discarded.
        """
        self.stop()
        self.tracker.detach_all()
        self._build_context()
        log_info(f"  {LOG_TAG_INFO} Simulation reset (epoch {self._epoch})")

    def update_config(self, **changes: Any) -> SimulationConfig:
        """Apply validated setting changes and reset the session."""
        self.config = self.config.with_updates(**changes)
        self.reset()
        return self.config

    def restore_defaults(self) -> SimulationConfig:
        self.config = default_config()
        self.reset()
        return self.config

    def snapshot(self) -> SimulationSnapshot:
        ctx = self.context
        return SimulationSnapshot(
            epoch=ctx.epoch,
            ticks=ctx.ticks,
            time_label=ctx.time_label,
            season=ctx.season,
            running=self._running,
            actors=[actor.model_copy(deep=True) for actor in ctx.actors.values()],
            objects=ctx.world.snapshot(),
            trades=[trade.model_copy(deep=True) for trade in ctx.trades.values()],
            inventions=[invention.model_copy(deep=True) for invention in ctx.inventions.values()],
            queue=ctx.queue.snapshot(),
            log=ctx.log.entries(),
            island=ctx.world.grid.render_ascii().splitlines(),
        )

    async def close(self) -> None:
        """Stop the loop and cancel every outstanding reasoning call."""
        task = self._loop_task
        self.stop()
        if task is not None:
            await asyncio.gather(task, return_exceptions=True)
        self.tracker.cancel_all()
