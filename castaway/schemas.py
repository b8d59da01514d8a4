"""
Pydantic schemas for the castaway economy.

Every record the engine mutates, and every structured answer the reasoning
collaborator returns, is defined here.

Design notes:
- Actions are a tagged record (``ActionKind`` plus structured fields) rather
  than display strings, so the state machine can switch on the kind.
- Inventories are sparse ``Resource -> int`` maps that never go negative;
  ``Actor.debit`` refuses an overdraft instead of clamping.
- Trade status changes go through ``Trade.transition`` which enforces the
  negotiation graph.
"""

from __future__ import annotations

import math
from enum import Enum
from typing import Annotated, Any, Dict, List, Literal, Optional, Union

from pydantic import BaseModel, Field


class CastawayError(Exception):
    """Base class for engine invariant violations."""


class InsufficientResourcesError(CastawayError):
    """Raised when a debit would drive an inventory count below zero."""

    def __init__(self, actor_id: str, shortfall: Dict["Resource", int]) -> None:
        self.actor_id = actor_id
        self.shortfall = shortfall
        missing = ", ".join(f"{amount} {resource.value}" for resource, amount in shortfall.items())
        super().__init__(
            f"Actor '{actor_id}' cannot pay: missing {missing}. "
            "Debits must be checked with Actor.can_afford() before they are applied."
        )


class InvalidTradeTransition(CastawayError):
    """Raised when a trade status change is not allowed by the negotiation graph."""

    def __init__(self, trade_id: str, current: "TradeStatus", requested: "TradeStatus") -> None:
        self.trade_id = trade_id
        self.current = current
        self.requested = requested
        allowed = ", ".join(s.value for s in TRADE_TRANSITIONS.get(current, ())) or "none (terminal)"
        super().__init__(
            f"Trade '{trade_id}' cannot move from {current.value} to {requested.value}. "
            f"Allowed next states: {allowed}."
        )


# ============================================================================
# Resources, seasons and positions
# ============================================================================


class Resource(str, Enum):
    WOOD = "Wood"
    STONE = "Stone"
    COCONUT = "Coconut"
    FISH = "Fish"
    AXE = "Axe"
    SHELTER = "Shelter"


GATHERABLE_RESOURCES = (Resource.WOOD, Resource.STONE, Resource.COCONUT, Resource.FISH)
FOOD_RESOURCES = (Resource.COCONUT, Resource.FISH)


class Season(str, Enum):
    SPRING = "Spring"
    SUMMER = "Summer"
    AUTUMN = "Autumn"
    WINTER = "Winter"


class Position(BaseModel):
    """Integer grid coordinate."""

    model_config = {"frozen": True}

    x: int
    y: int

    def distance_to(self, other: "Position") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)

    def neighbours(self) -> List["Position"]:
        """The four orthogonal neighbours, north first, clockwise."""
        return [
            Position(x=self.x, y=self.y - 1),
            Position(x=self.x + 1, y=self.y),
            Position(x=self.x, y=self.y + 1),
            Position(x=self.x - 1, y=self.y),
        ]

    def __str__(self) -> str:
        return f"({self.x}, {self.y})"


# ============================================================================
# Events
# ============================================================================


class EventType(str, Enum):
    DECIDE_GOAL = "DECIDE_GOAL"
    IDLE = "IDLE"
    MOVE = "MOVE"
    GATHER = "GATHER"
    CONSUME = "CONSUME"
    SLEEP = "SLEEP"
    CRAFT_AXE = "CRAFT_AXE"
    BUILD_SHELTER = "BUILD_SHELTER"
    BUILD_INVENTION = "BUILD_INVENTION"
    TRADE_INITIATE = "TRADE_INITIATE"
    TRADE_NEGOTIATE = "TRADE_NEGOTIATE"
    TRADE_FINALIZE = "TRADE_FINALIZE"


class Event(BaseModel):
    """A pending intent for one actor.

    ``from_plan`` marks events that execute the head of the actor's plan
    queue; the plan step is popped when the resulting action completes.
    """

    type: EventType
    actor_id: str
    target_id: Optional[str] = None
    payload: Dict[str, Any] = Field(default_factory=dict)
    from_plan: bool = False


# ============================================================================
# Actions (per-actor state machine)
# ============================================================================


class ActionKind(str, Enum):
    IDLE = "Idle"
    THINKING = "Thinking"
    MOVING = "Moving"
    GATHERING = "Gathering"
    SLEEPING = "Sleeping"
    EATING = "Eating"
    CRAFTING_AXE = "Crafting Axe"
    BUILDING_SHELTER = "Building Shelter"
    BUILDING_INVENTION = "Building Invention"
    NEGOTIATING = "Negotiating"
    AWAITING_TRADE_RESPONSE = "Awaiting Trade Response"
    MOVING_TO_TRADE = "Moving to Trade"


class Action(BaseModel):
    """What an actor is currently doing, plus the data needed to finish it."""

    kind: ActionKind = ActionKind.IDLE
    resource: Optional[Resource] = None
    invention_id: Optional[str] = None
    destination: Optional[Position] = None
    target_id: Optional[str] = Field(None, description="World object or trade id the action refers to")
    target_amount: int = 0
    gathered_amount: int = 0
    at_shelter: bool = False
    next_event: Optional[Event] = Field(None, description="Event spliced in when a move arrives")
    plan_step: bool = False

    @property
    def label(self) -> str:
        if self.kind == ActionKind.GATHERING and self.resource is not None:
            return f"Gathering {self.resource.value}"
        if self.kind == ActionKind.EATING and self.resource is not None:
            return f"Eating {self.resource.value}"
        if self.kind == ActionKind.BUILDING_INVENTION and self.invention_id:
            return f"Building {self.invention_id}"
        return self.kind.value


# ============================================================================
# Actors
# ============================================================================


class Stats(BaseModel):
    energy: float = Field(..., description="0 (exhausted) to max_energy")
    hunger: float = Field(..., description="0 (starving) to max_hunger; higher is better fed")
    leisure_threshold: float = 8


class LastTrade(BaseModel):
    partner_id: str
    outcome: str
    details: str


class LongTermMemory(BaseModel):
    housing_status: Literal["Unhoused", "Has Shelter"] = "Unhoused"
    tool_status: Literal["No Tools", "Has Axe"] = "No Tools"
    last_trade: Optional[LastTrade] = None


class PendingTrade(BaseModel):
    """A trade the holder agreed to and still has to pay for.

    ``give_*`` is what the holder owes, ``take_*`` what it receives.
    """

    trade_id: str
    partner_id: str
    give_resource: Resource
    give_amount: int
    take_resource: Resource
    take_amount: int


class Actor(BaseModel):
    id: str
    name: str
    position: Position
    stats: Stats
    inventory: Dict[Resource, int] = Field(default_factory=dict)
    tools: Dict[Resource, float] = Field(default_factory=dict, description="Tool -> durability (0-100)")
    productivity: Dict[Resource, float] = Field(default_factory=dict)
    goal: str = "Idle"
    action: Action = Field(default_factory=Action)
    action_progress: int = 0
    last_completed_action: Optional[str] = None
    plan: List[Event] = Field(default_factory=list, description="Plan queue, head executes next")
    short_term_memory: List[str] = Field(default_factory=list, description="Most recent first")
    long_term_memory: LongTermMemory = Field(default_factory=LongTermMemory)
    inventions: List[str] = Field(default_factory=list)
    trade_cooldown: int = 0
    pending_trade: Optional[PendingTrade] = None
    interruption_cooldown: int = 0

    @property
    def is_idle(self) -> bool:
        return self.action.kind == ActionKind.IDLE

    @property
    def has_axe(self) -> bool:
        return self.tools.get(Resource.AXE, 0) > 0

    def count(self, resource: Resource) -> int:
        return self.inventory.get(resource, 0)

    def can_afford(self, costs: Dict[Resource, int]) -> bool:
        return all(self.count(resource) >= amount for resource, amount in costs.items())

    def debit(self, costs: Dict[Resource, int]) -> None:
        """Remove ``costs`` from the inventory, all or nothing."""
        shortfall = {
            resource: amount - self.count(resource)
            for resource, amount in costs.items()
            if self.count(resource) < amount
        }
        if shortfall:
            raise InsufficientResourcesError(self.id, shortfall)
        for resource, amount in costs.items():
            remaining = self.count(resource) - amount
            if remaining:
                self.inventory[resource] = remaining
            else:
                self.inventory.pop(resource, None)

    def credit(self, resource: Resource, amount: int) -> None:
        if amount <= 0:
            return
        self.inventory[resource] = self.count(resource) + amount

    def remember(self, entry: str, limit: int) -> None:
        self.short_term_memory.insert(0, entry)
        del self.short_term_memory[limit:]

    def set_action(self, action: Action) -> None:
        self.action = action
        self.action_progress = 0

    def set_idle(self) -> None:
        self.set_action(Action())


# ============================================================================
# World objects
# ============================================================================


class ObjectType(str, Enum):
    TREE = "Tree"
    ROCK = "Rock"
    WATER = "Water"
    SHELTER = "Shelter"


class WorldObject(BaseModel):
    id: str
    type: ObjectType
    position: Position
    resources: Dict[Resource, int] = Field(default_factory=dict)
    owner_id: Optional[str] = None
    wood_extracted: int = 0


# ============================================================================
# Trades
# ============================================================================


class TradeStatus(str, Enum):
    MOVING = "Moving to Trade"
    NEGOTIATING = "Negotiating"
    GATHERING = "Gathering Resources"
    FINALIZING = "Finalizing Deal"
    ACCEPTED = "Accepted"
    REJECTED = "Rejected"
    FULFILLED = "Fulfilled"
    FAILED = "Failed"


TRADE_TRANSITIONS: Dict[TradeStatus, frozenset] = {
    TradeStatus.MOVING: frozenset({TradeStatus.NEGOTIATING, TradeStatus.FAILED}),
    TradeStatus.NEGOTIATING: frozenset(
        {TradeStatus.GATHERING, TradeStatus.ACCEPTED, TradeStatus.REJECTED, TradeStatus.FAILED}
    ),
    TradeStatus.GATHERING: frozenset({TradeStatus.FINALIZING, TradeStatus.FAILED}),
    TradeStatus.FINALIZING: frozenset({TradeStatus.FULFILLED, TradeStatus.FAILED}),
    TradeStatus.ACCEPTED: frozenset(),
    TradeStatus.REJECTED: frozenset(),
    TradeStatus.FULFILLED: frozenset(),
    TradeStatus.FAILED: frozenset(),
}

TERMINAL_TRADE_STATUSES = frozenset(status for status, nxt in TRADE_TRANSITIONS.items() if not nxt)


class TradeDecisionKind(str, Enum):
    ACCEPT = "accept"
    REJECT = "reject"
    COUNTER = "counter"
    ACCEPT_AND_GATHER = "accept_and_gather"


class TradeOffer(BaseModel):
    """One proposal: ``from_id`` gives ``give_*`` to ``to_id`` in exchange for ``take_*``."""

    from_id: str
    to_id: str
    give_resource: Resource
    give_amount: int = Field(..., gt=0)
    take_resource: Resource
    take_amount: int = Field(..., gt=0)
    turn: int = 1
    decision: Optional[TradeDecisionKind] = None
    reasoning: Optional[str] = None

    def describe(self) -> str:
        return (
            f"{self.give_amount} {self.give_resource.value} for "
            f"{self.take_amount} {self.take_resource.value}"
        )


class Trade(BaseModel):
    id: str
    initiator_id: str
    recipient_id: str
    history: List[TradeOffer] = Field(default_factory=list)
    status: TradeStatus = TradeStatus.MOVING
    decision_maker_id: Optional[str] = None
    final_reasoning: Optional[str] = None

    @property
    def latest_offer(self) -> Optional[TradeOffer]:
        return self.history[-1] if self.history else None

    @property
    def is_terminal(self) -> bool:
        return self.status in TERMINAL_TRADE_STATUSES

    def involves(self, actor_id: str) -> bool:
        return actor_id in (self.initiator_id, self.recipient_id)

    def transition(self, status: TradeStatus, reasoning: Optional[str] = None) -> None:
        if status not in TRADE_TRANSITIONS[self.status]:
            raise InvalidTradeTransition(self.id, self.status, status)
        self.status = status
        if reasoning is not None:
            self.final_reasoning = reasoning
        if status in TERMINAL_TRADE_STATUSES:
            self.decision_maker_id = None


# ============================================================================
# Inventions
# ============================================================================


class GenericInventionType(str, Enum):
    TOOL_IMPROVEMENT = "TOOL_IMPROVEMENT"
    FOOD_PRESERVATION = "FOOD_PRESERVATION"
    SHELTER_IMPROVEMENT = "SHELTER_IMPROVEMENT"
    RESOURCE_EFFICIENCY = "RESOURCE_EFFICIENCY"


class ProductivityBoost(BaseModel):
    type: Literal["PRODUCTIVITY_BOOST"] = "PRODUCTIVITY_BOOST"
    resource: Resource
    multiplier: float = Field(..., gt=0, description="Applied to the gathering productivity, e.g. 1.2")


class StatDecayModifier(BaseModel):
    type: Literal["STAT_DECAY_MODIFIER"] = "STAT_DECAY_MODIFIER"
    stat: Literal["hunger", "energy"]
    multiplier: float = Field(..., ge=0, description="Applied to the decay rate, e.g. 0.8")


class GatherYieldBonus(BaseModel):
    type: Literal["GATHER_YIELD_BONUS"] = "GATHER_YIELD_BONUS"
    resource: Resource
    bonus: int = Field(..., ge=0, description="Extra units per gather")


InventionEffect = Annotated[
    Union[ProductivityBoost, StatDecayModifier, GatherYieldBonus],
    Field(discriminator="type"),
]


class Invention(BaseModel):
    id: str
    name: str
    description: str
    category: GenericInventionType
    cost: Dict[Resource, int] = Field(default_factory=dict)
    effect: InventionEffect
    svg_icon: str = ""
    owner_ids: List[str] = Field(default_factory=list)


# ============================================================================
# Reasoning collaborator responses
# ============================================================================


class PlanAction(str, Enum):
    GATHER = "GATHER"
    BUILD_SHELTER = "BUILD_SHELTER"
    CRAFT_AXE = "CRAFT_AXE"
    CONSUME = "CONSUME"
    SLEEP = "SLEEP"
    TRADE_INITIATE = "TRADE_INITIATE"
    TRADE_FINALIZE = "TRADE_FINALIZE"
    BUILD_INVENTION = "BUILD_INVENTION"
    IDLE = "IDLE"


class PlanParameters(BaseModel):
    resource: Optional[Resource] = Field(None, description="GATHER / CONSUME: which resource")
    amount: Optional[int] = Field(None, ge=1, description="GATHER: how many units to collect")
    target_character_id: Optional[str] = Field(None, description="TRADE_INITIATE: trade partner id")
    give_resource: Optional[Resource] = None
    give_amount: Optional[int] = Field(None, ge=1)
    take_resource: Optional[Resource] = None
    take_amount: Optional[int] = Field(None, ge=1)
    invention_id: Optional[str] = Field(None, description="BUILD_INVENTION: which invention")


class PlannedAction(BaseModel):
    action: PlanAction
    parameters: PlanParameters = Field(default_factory=PlanParameters)


class GoalDecision(BaseModel):
    goal: str = Field(..., description="Short statement of the current goal")
    reasoning: str = Field(..., description="Why this goal was chosen")
    plan: List[PlannedAction] = Field(default_factory=list, description="Ordered steps to reach the goal")
    memory_entry: str = Field(..., description="First-person note to remember")


class CounterOffer(BaseModel):
    """Counter proposal from the responder's point of view."""

    give_resource: Resource
    give_amount: int = Field(..., gt=0)
    take_resource: Resource
    take_amount: int = Field(..., gt=0)


class TradeDecision(BaseModel):
    decision: TradeDecisionKind
    reasoning: str
    counter_offer: Optional[CounterOffer] = None


class InventionSpec(BaseModel):
    name: str
    description: str
    cost: Dict[Resource, int] = Field(..., description="Resources consumed to build it")
    effect: InventionEffect


class InventionIcon(BaseModel):
    svg: str = Field(..., description="Inner SVG markup for a 24x24 viewBox")
