"""Shared simulation context.

One ``SimulationContext`` holds all mutable state of a session and is passed
by reference to the scheduler, dispatcher, trade protocol and discovery
components. A reset builds a fresh context; nothing lives in module globals.
"""

from __future__ import annotations

import itertools
import random
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from typing import Dict, Iterator, List, Optional

from .cognition.reasoner import Reasoner
from .config import SimulationConfig
from .event_log import EventLog, LogCategory
from .event_queue import EventQueue
from .schemas import Actor, Event, EventType, Invention, Season, Trade
from .tasks import RequestTracker
from .world import World

SIMULATION_START = datetime(1970, 1, 1)
DAYS_PER_YEAR = 364
SEASON_STARTS = ((91, Season.SPRING), (182, Season.SUMMER), (273, Season.AUTUMN), (DAYS_PER_YEAR, Season.WINTER))


def season_for_day(day_of_year: int) -> Season:
    for limit, season in SEASON_STARTS:
        if day_of_year < limit:
            return season
    return Season.WINTER


@dataclass
class SimulationContext:
    config: SimulationConfig
    world: World
    actors: Dict[str, Actor]
    reasoner: Reasoner
    rng: random.Random = field(default_factory=random.Random)
    epoch: int = 1
    ticks: int = 0
    queue: EventQueue = field(default_factory=EventQueue)
    trades: Dict[str, Trade] = field(default_factory=dict)
    inventions: Dict[str, Invention] = field(default_factory=dict)
    tracker: RequestTracker = field(default_factory=RequestTracker)
    log: EventLog = field(default_factory=EventLog)
    _ids: Iterator[int] = field(default_factory=lambda: itertools.count(1), repr=False)

    # Clock ----------------------------------------------------------------

    @property
    def now(self) -> datetime:
        return SIMULATION_START + timedelta(hours=self.ticks)

    @property
    def day(self) -> int:
        return self.ticks // 24 + 1

    @property
    def season(self) -> Season:
        return season_for_day((self.ticks // 24) % DAYS_PER_YEAR)

    @property
    def time_label(self) -> str:
        return f"Day {self.day}, {self.now:%H:%M}"

    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    # Lookup ---------------------------------------------------------------

    def actor(self, actor_id: Optional[str]) -> Optional[Actor]:
        if actor_id is None:
            return None
        return self.actors.get(actor_id)

    def peers_of(self, actor_id: str) -> List[Actor]:
        return [a for a in self.actors.values() if a.id != actor_id]

    def other_actor_positions(self, actor_id: str):
        return [a.position for a in self.actors.values() if a.id != actor_id]

    # Bookkeeping ----------------------------------------------------------

    def record(self, message: str, category: LogCategory = "info", actor_id: Optional[str] = None) -> None:
        self.log.add(message, category, time=self.time_label, actor_id=actor_id)

    def remember(self, actor: Actor, entry: str) -> None:
        actor.remember(entry, self.config.short_term_memory_limit)

    def request_decision(self, actor_id: str, to_front: bool = False) -> None:
        self.queue.queue_event(Event(type=EventType.DECIDE_GOAL, actor_id=actor_id), to_front=to_front)

    def abandon_plan(self, actor: Actor, reason: str) -> None:
        """Drop the plan, go idle and let the scheduler ask for a new goal."""
        actor.plan.clear()
        actor.set_idle()
        self.remember(actor, f"I had to give up on my plan: {reason}")
        self.record(f"{actor.name} abandons their plan: {reason}", "info", actor.id)
