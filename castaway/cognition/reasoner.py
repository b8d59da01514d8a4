"""Interface to the reasoning collaborator.

The engine asks three kinds of questions: what should this actor do next,
how does it answer a trade offer, and what could it invent. Requests carry
deep copies of the relevant state so an answer computed in the background can
never observe or mutate live simulation objects.
"""

from __future__ import annotations

from typing import List, Optional, Protocol

from pydantic import BaseModel, Field

from castaway.config import SimulationConfig
from castaway.schemas import (
    Actor,
    GenericInventionType,
    GoalDecision,
    Invention,
    InventionSpec,
    Season,
    TradeDecision,
    TradeOffer,
    WorldObject,
)


class GoalRequest(BaseModel):
    actor: Actor
    peers: List[Actor] = Field(default_factory=list)
    objects: List[WorldObject] = Field(default_factory=list)
    inventions: List[Invention] = Field(default_factory=list)
    config: SimulationConfig
    time_label: str
    season: Season


class TradeRequest(BaseModel):
    """A trade offer as seen by the actor who must answer it."""

    actor: Actor
    counterpart: Actor
    offer: TradeOffer
    history: List[TradeOffer] = Field(default_factory=list)
    config: SimulationConfig

    @property
    def temperature(self) -> float:
        return self.config.ai_temperature

    @property
    def turns_left(self) -> int:
        return max(0, self.config.max_negotiation_turns - self.offer.turn)


class Reasoner(Protocol):
    """Protocol for goal, trade and invention decisions.

    Implementations may call an LLM, apply fixed rules, or both. They may
    raise; callers substitute the deterministic fallback on any failure.
    """

    async def decide_goal(self, request: GoalRequest) -> GoalDecision:
        ...

    async def decide_trade(self, request: TradeRequest) -> TradeDecision:
        ...

    async def specify_invention(
        self, category: GenericInventionType, config: SimulationConfig
    ) -> Optional[InventionSpec]:
        ...

    async def design_icon(self, spec: InventionSpec, config: SimulationConfig) -> str:
        ...
