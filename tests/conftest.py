"""Shared builders for engine tests.

Tests assemble a ``SimulationContext`` by hand on a small all-land island so
each scenario controls positions, inventories and actions exactly.
"""

from __future__ import annotations

import asyncio
import random
from dataclasses import dataclass
from typing import Dict, Iterable, List, Optional

import pytest

from castaway.cognition.fallback import fallback_goal, fallback_trade
from castaway.config import SimulationConfig
from castaway.context import SimulationContext
from castaway.dispatcher import EventDispatcher
from castaway.environment import IslandGrid
from castaway.event_log import EventLog
from castaway.inventions import InventionDiscovery
from castaway.scheduler import TickScheduler
from castaway.schemas import (
    Actor,
    GoalDecision,
    InventionSpec,
    ObjectType,
    Position,
    Resource,
    Stats,
    TradeDecision,
    WorldObject,
)
from castaway.trade import TradeProtocol
from castaway.world import TREE_RESOURCES, World


class ScriptedReasoner:
    """Reasoner that replays queued answers and records every request.

    Falls back to the rule-based answers once a script runs out. Exceptions
    placed in a script are raised instead of returned.
    """

    def __init__(
        self,
        goals: Optional[List[object]] = None,
        trades: Optional[List[object]] = None,
        spec: object = None,
        icon: object = "<circle r='4' />",
        gate: Optional[asyncio.Event] = None,
    ) -> None:
        self.goals = list(goals or [])
        self.trades = list(trades or [])
        self.spec = spec
        self.icon = icon
        self.gate = gate
        self.goal_requests: List = []
        self.trade_requests: List = []
        self.spec_calls = 0

    @staticmethod
    def _answer(value):
        if isinstance(value, BaseException):
            raise value
        return value

    async def decide_goal(self, request) -> GoalDecision:
        self.goal_requests.append(request)
        if self.gate is not None:
            await self.gate.wait()
        if self.goals:
            return self._answer(self.goals.pop(0))
        return fallback_goal(request)

    async def decide_trade(self, request) -> TradeDecision:
        self.trade_requests.append(request)
        if self.trades:
            return self._answer(self.trades.pop(0))
        return fallback_trade(request)

    async def specify_invention(self, category, config) -> Optional[InventionSpec]:
        self.spec_calls += 1
        return self._answer(self.spec)

    async def design_icon(self, spec, config) -> str:
        return self._answer(self.icon)


@dataclass
class Harness:
    ctx: SimulationContext
    trades: TradeProtocol
    dispatcher: EventDispatcher
    discovery: InventionDiscovery
    scheduler: TickScheduler
    reasoner: ScriptedReasoner

    async def settle(self) -> int:
        await self.ctx.tracker.wait_all()
        return self.dispatcher.apply_responses()


def build_actor(
    actor_id: str,
    x: int = 0,
    y: int = 0,
    *,
    energy: float = 100,
    hunger: float = 80,
    inventory: Optional[Dict[Resource, int]] = None,
    productivity: Optional[Dict[Resource, float]] = None,
    name: Optional[str] = None,
) -> Actor:
    return Actor(
        id=actor_id,
        name=name or actor_id.capitalize(),
        position=Position(x=x, y=y),
        stats=Stats(energy=energy, hunger=hunger),
        inventory=dict(inventory or {}),
        productivity=dict(productivity or {}),
    )


def build_object(object_id: str, object_type: ObjectType, x: int, y: int, **extra) -> WorldObject:
    resources = dict(TREE_RESOURCES) if object_type == ObjectType.TREE else {}
    return WorldObject(id=object_id, type=object_type, position=Position(x=x, y=y), resources=resources, **extra)


def build_harness(
    actors: Iterable[Actor],
    objects: Iterable[WorldObject] = (),
    *,
    config: Optional[SimulationConfig] = None,
    reasoner: Optional[ScriptedReasoner] = None,
    size: int = 20,
    seed: int = 7,
) -> Harness:
    config = config or SimulationConfig(invention_chance=0.0, shelter_catastrophe_chance=0.0)
    reasoner = reasoner or ScriptedReasoner()
    ctx = SimulationContext(
        config=config,
        world=World(IslandGrid.all_land(size, size), objects),
        actors={actor.id: actor for actor in actors},
        reasoner=reasoner,
        rng=random.Random(seed),
        log=EventLog(config.log_limit, echo=False),
    )
    trades = TradeProtocol(ctx)
    dispatcher = EventDispatcher(ctx, trades)
    discovery = InventionDiscovery(ctx)
    scheduler = TickScheduler(ctx, dispatcher, trades, discovery)
    return Harness(ctx, trades, dispatcher, discovery, scheduler, reasoner)


@pytest.fixture
def make_actor():
    return build_actor


@pytest.fixture
def make_object():
    return build_object


@pytest.fixture
def make_harness():
    return build_harness


@pytest.fixture
def scripted_reasoner():
    return ScriptedReasoner
