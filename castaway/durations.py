"""Action duration and yield policy.

Pure functions: given an actor, the rules and the invention registry they
return tick counts and gather yields without touching any state.
"""

from __future__ import annotations

import math
from typing import Dict, Iterable, Mapping, Optional

from .config import SimulationConfig
from .schemas import (
    ActionKind,
    Actor,
    GatherYieldBonus,
    Invention,
    ProductivityBoost,
    Resource,
    StatDecayModifier,
)
from .world import World

AXE_WOOD_YIELD = 3


def _owned(actor: Actor, inventions: Mapping[str, Invention]) -> Iterable[Invention]:
    for invention_id in actor.inventions:
        invention = inventions.get(invention_id)
        if invention is not None:
            yield invention


def effective_productivity(actor: Actor, resource: Resource, inventions: Mapping[str, Invention]) -> float:
    """Base productivity compounded by every matching productivity boost."""
    productivity = actor.productivity.get(resource, 1.0)
    for invention in _owned(actor, inventions):
        effect = invention.effect
        if isinstance(effect, ProductivityBoost) and effect.resource == resource:
            productivity *= effect.multiplier
    return productivity


def decay_rates(actor: Actor, config: SimulationConfig, inventions: Mapping[str, Invention]) -> Dict[str, float]:
    rates = {"energy": config.energy_decay_rate, "hunger": config.hunger_decay_rate}
    for invention in _owned(actor, inventions):
        effect = invention.effect
        if isinstance(effect, StatDecayModifier):
            rates[effect.stat] *= effect.multiplier
    return rates


def gather_yield(actor: Actor, resource: Resource, inventions: Mapping[str, Invention]) -> int:
    amount = AXE_WOOD_YIELD if resource == Resource.WOOD and actor.has_axe else 1
    for invention in _owned(actor, inventions):
        effect = invention.effect
        if isinstance(effect, GatherYieldBonus) and effect.resource == resource:
            amount += effect.bonus
    return amount


def travel_time(distance: float, config: SimulationConfig) -> int:
    if distance <= 0:
        return 1
    return max(1, math.ceil(distance / config.map_width * config.move_time))


def action_duration(
    actor: Actor,
    config: SimulationConfig,
    inventions: Mapping[str, Invention],
    world: Optional[World] = None,
) -> int:
    """Ticks needed to finish the actor's current action.

    Unknown or idle actions last a single tick.
    """
    action = actor.action
    kind = action.kind

    if kind == ActionKind.GATHERING and action.resource is not None:
        base: float = config.gather_time
        if action.resource == Resource.WOOD and actor.has_axe:
            base /= 2
        productivity = effective_productivity(actor, action.resource, inventions)
        return max(1, math.ceil(base / productivity))

    if kind in (ActionKind.MOVING, ActionKind.MOVING_TO_TRADE):
        if action.destination is None:
            return 1
        return travel_time(actor.position.distance_to(action.destination), config)

    if kind == ActionKind.SLEEPING:
        at_shelter = action.at_shelter or (world is not None and world.is_at_own_shelter(actor.id, actor.position))
        if at_shelter:
            return math.ceil(config.sleep_time / config.sleep_in_shelter_multiplier)
        return config.sleep_time

    durations = {
        ActionKind.EATING: config.consume_time,
        ActionKind.CRAFTING_AXE: config.craft_time,
        ActionKind.BUILDING_SHELTER: config.build_time,
        ActionKind.BUILDING_INVENTION: config.build_time,
        ActionKind.THINKING: config.thinking_time,
        ActionKind.NEGOTIATING: config.negotiation_timeout,
        ActionKind.AWAITING_TRADE_RESPONSE: config.negotiation_timeout,
    }
    return durations.get(kind, 1)
