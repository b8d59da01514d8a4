"""Deterministic reasoner used when no LLM is configured or a call fails."""

from __future__ import annotations

from typing import List, Optional

from castaway.config import SimulationConfig
from castaway.schemas import (
    FOOD_RESOURCES,
    GATHERABLE_RESOURCES,
    GenericInventionType,
    GoalDecision,
    InventionSpec,
    PlanAction,
    PlannedAction,
    PlanParameters,
    Resource,
    TradeDecision,
    TradeDecisionKind,
)

from .reasoner import GoalRequest, TradeRequest

DEFAULT_INVENTION_ICON = '<path d="M12 2L2 22h20L12 2zm0 4l7 12H5l7-12z" />'

HUNGRY_BELOW = 50
TIRED_BELOW = 30
FOOD_GATHER_AMOUNT = 5
MATERIAL_GATHER_AMOUNT = 3


def _step(action: PlanAction, **parameters) -> PlannedAction:
    return PlannedAction(action=action, parameters=PlanParameters(**parameters))


def _decision(goal: str, reasoning: str, plan: List[PlannedAction], memory: str) -> GoalDecision:
    return GoalDecision(goal=goal, reasoning=reasoning, plan=plan, memory_entry=memory)


def fallback_goal(request: GoalRequest) -> GoalDecision:
    """Survival first, then debts, then shelter; otherwise rest."""
    actor = request.actor
    config = request.config

    if actor.stats.hunger < HUNGRY_BELOW:
        food = next((r for r in FOOD_RESOURCES if actor.count(r) > 0), None)
        if food is not None:
            return _decision(
                "Eat something",
                "I am hungry and have food with me.",
                [_step(PlanAction.CONSUME, resource=food)],
                f"I was hungry, so I decided to eat a {food.value}.",
            )
        return _decision(
            "Find food",
            "I am hungry and have nothing to eat.",
            [_step(PlanAction.GATHER, resource=Resource.COCONUT, amount=FOOD_GATHER_AMOUNT)],
            "I was hungry with no food, so I went looking for coconuts.",
        )

    if actor.stats.energy < TIRED_BELOW:
        return _decision("Rest", "I am exhausted.", [_step(PlanAction.SLEEP)], "I was exhausted and needed sleep.")

    pending = actor.pending_trade
    if pending is not None:
        plan: List[PlannedAction] = []
        shortfall = pending.give_amount - actor.count(pending.give_resource)
        if shortfall > 0 and pending.give_resource in GATHERABLE_RESOURCES:
            plan.append(_step(PlanAction.GATHER, resource=pending.give_resource, amount=shortfall))
        plan.append(_step(PlanAction.TRADE_FINALIZE))
        return _decision(
            "Fulfilling Trade",
            f"I promised {pending.give_amount} {pending.give_resource.value} and intend to deliver.",
            plan,
            "I have a trade to complete.",
        )

    if actor.long_term_memory.housing_status == "Unhoused":
        costs = {Resource.WOOD: config.shelter_wood_cost, Resource.STONE: config.shelter_stone_cost}
        missing = [(r, n - actor.count(r)) for r, n in costs.items() if actor.count(r) < n]
        if not missing:
            return _decision(
                "Build a shelter",
                "I have the materials for a shelter.",
                [_step(PlanAction.BUILD_SHELTER)],
                "I gathered enough to build a shelter.",
            )
        resource, short = missing[0]
        return _decision(
            "Collect building materials",
            f"I need {short} more {resource.value} for a shelter.",
            [_step(PlanAction.GATHER, resource=resource, amount=min(short, MATERIAL_GATHER_AMOUNT))],
            f"I am collecting {resource.value} for my shelter.",
        )

    return _decision("Relax", "My needs are met for now.", [_step(PlanAction.IDLE)], "I took some time to relax.")


def fallback_trade(request: TradeRequest) -> TradeDecision:
    """Accept when the responder can pay what is asked, otherwise reject."""
    offer = request.offer
    if request.actor.count(offer.take_resource) >= offer.take_amount:
        return TradeDecision(
            decision=TradeDecisionKind.ACCEPT,
            reasoning=f"I have {offer.take_amount} {offer.take_resource.value} to spare.",
        )
    return TradeDecision(
        decision=TradeDecisionKind.REJECT,
        reasoning=f"I do not have {offer.take_amount} {offer.take_resource.value}.",
    )


class FallbackReasoner:
    """Rule-based reasoner; never raises and never invents anything."""

    async def decide_goal(self, request: GoalRequest) -> GoalDecision:
        return fallback_goal(request)

    async def decide_trade(self, request: TradeRequest) -> TradeDecision:
        return fallback_trade(request)

    async def specify_invention(
        self, category: GenericInventionType, config: SimulationConfig
    ) -> Optional[InventionSpec]:
        return None

    async def design_icon(self, spec: InventionSpec, config: SimulationConfig) -> str:
        return DEFAULT_INVENTION_ICON
