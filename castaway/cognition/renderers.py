"""Prompt rendering utilities."""

from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Dict, Mapping

from castaway.schemas import Actor, GenericInventionType, InventionSpec, ObjectType

from .prompts import PromptTemplate
from .reasoner import GoalRequest, TradeRequest

_PLACEHOLDER = re.compile(r"\{\{\s*(\w+)\s*\}\}")

CRITICAL_ALERT = (
    "CRITICAL ALERT: your vitals are dangerously low. Your only priority is to eat or gather food "
    "if hungry, or to sleep if exhausted. Do not build, craft or trade until you are stable.\n\n"
)


@dataclass
class RenderedPrompt:
    system: str
    user: str


def render_prompt(template: PromptTemplate, values: Mapping[str, object]) -> RenderedPrompt:
    """Replace ``{{placeholder}}`` slots in both parts of ``template``.

    Unknown placeholders are left in place so a typo is visible in the prompt
    rather than silently blank.
    """

    def _sub(text: str) -> str:
        def _replace(match: re.Match) -> str:
            key = match.group(1)
            if key not in values:
                return match.group(0)
            return str(values[key])

        return _PLACEHOLDER.sub(_replace, text)

    return RenderedPrompt(system=_sub(template.system), user=_sub(template.user))


def _format_amounts(amounts: Mapping) -> str:
    if not amounts:
        return "nothing"
    parts = []
    for key, value in amounts.items():
        label = getattr(key, "value", key)
        parts.append(f"{label}: {value:g}" if isinstance(value, float) else f"{label}: {value}")
    return ", ".join(parts)


def _format_productivity(actor: Actor) -> str:
    return _format_amounts({k: round(v, 2) for k, v in actor.productivity.items()})


def goal_prompt_values(request: GoalRequest) -> Dict[str, object]:
    actor = request.actor
    config = request.config
    names = {inv.id: inv.name for inv in request.inventions}
    available = [inv for inv in request.inventions if inv.id not in actor.inventions]

    pending = actor.pending_trade
    if pending is not None:
        pending_text = (
            f"- Agreed trade to deliver: you owe {pending.give_amount} {pending.give_resource.value} "
            f"and will receive {pending.take_amount} {pending.take_resource.value} (trade {pending.trade_id})"
        )
    else:
        pending_text = "- No trade commitments"

    sources = []
    for object_type in (ObjectType.TREE, ObjectType.ROCK, ObjectType.WATER):
        nearby = [o for o in request.objects if o.type == object_type]
        if nearby:
            closest = min(nearby, key=lambda o: o.position.distance_to(actor.position))
            sources.append(f"{object_type.value} at {closest.position} ({len(nearby)} total)")

    critical = actor.stats.hunger < config.critical_hunger or actor.stats.energy < config.critical_energy
    last_trade = actor.long_term_memory.last_trade

    return {
        "name": actor.name,
        "time": request.time_label,
        "season": request.season.value,
        "energy": f"{actor.stats.energy:.1f}",
        "hunger": f"{actor.stats.hunger:.1f}",
        "max_energy": f"{config.max_energy:g}",
        "max_hunger": f"{config.max_hunger:g}",
        "inventory": _format_amounts(actor.inventory),
        "tools": _format_amounts({k: round(v, 1) for k, v in actor.tools.items()}),
        "productivity": _format_productivity(actor),
        "owned_inventions": ", ".join(names.get(i, i) for i in actor.inventions) or "none",
        "pending_trade": pending_text,
        "housing": actor.long_term_memory.housing_status,
        "tool_status": actor.long_term_memory.tool_status,
        "last_trade": f"{last_trade.outcome} with {last_trade.partner_id}: {last_trade.details}" if last_trade else "none",
        "short_term_memory": "\n".join(f"- {m}" for m in actor.short_term_memory) or "- nothing yet",
        "peers": ", ".join(f"{p.name} (id: {p.id}) at {p.position}" for p in request.peers) or "none",
        "sources": "; ".join(sources) or "none visible",
        "shelter_wood": config.shelter_wood_cost,
        "shelter_stone": config.shelter_stone_cost,
        "axe_wood": config.axe_wood_cost,
        "axe_stone": config.axe_stone_cost,
        "available_inventions": "\n".join(
            f"  - {inv.name} (id: {inv.id}): {inv.description} Cost: {_format_amounts(inv.cost)}" for inv in available
        )
        or "  - none discovered yet",
        "critical_alert": CRITICAL_ALERT if critical else "",
    }


def trade_prompt_values(request: TradeRequest) -> Dict[str, object]:
    actor = request.actor
    offer = request.offer
    history = "\n".join(
        f"- turn {o.turn}: {o.from_id} offered {o.describe()}"
        + (f" -> {o.decision.value}: {o.reasoning}" if o.decision else "")
        for o in request.history
    )
    final_turn = request.turns_left == 0
    return {
        "name": actor.name,
        "partner": request.counterpart.name,
        "turn": offer.turn,
        "max_turns": request.config.max_negotiation_turns,
        "give": f"{offer.give_amount} {offer.give_resource.value}",
        "take": f"{offer.take_amount} {offer.take_resource.value}",
        "energy": f"{actor.stats.energy:.1f}",
        "hunger": f"{actor.stats.hunger:.1f}",
        "inventory": _format_amounts(actor.inventory),
        "productivity": _format_productivity(actor),
        "partner_productivity": _format_productivity(request.counterpart),
        "history": history or "- this is the opening offer",
        "counter_hint": " (this is the final turn; a counter will end the negotiation)" if final_turn else "",
    }


def invention_spec_values(category: GenericInventionType) -> Dict[str, object]:
    return {"category": category.value.replace("_", " ").lower()}


def invention_icon_values(spec: InventionSpec) -> Dict[str, object]:
    return {"invention_name": spec.name, "invention_description": spec.description}
