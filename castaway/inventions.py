"""Invention discovery.

Each tick, every actor that started the tick idle has a small chance of
having an idea. The idea is worked out in the background: the reasoner
specifies the invention, then designs an icon for it. A registered invention
becomes buildable through a BUILD_INVENTION plan step.
"""

from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from .cognition.fallback import DEFAULT_INVENTION_ICON
from .config import SimulationConfig
from .context import SimulationContext
from .logging_utils import LOG_TAG_ERROR, log_error
from .schemas import GenericInventionType, Invention, InventionSpec

INVENTION_CATEGORIES: Tuple[GenericInventionType, ...] = tuple(GenericInventionType)


def invention_key(actor_id: str) -> str:
    return f"invention:{actor_id}"


class InventionDiscovery:
    def __init__(self, context: SimulationContext) -> None:
        self.ctx = context

    def roll(self, actor_ids: Iterable[str]) -> List[str]:
        """Roll for ideas; returns the ids of actors whose discovery started."""
        ctx = self.ctx
        started: List[str] = []
        for actor_id in actor_ids:
            actor = ctx.actor(actor_id)
            if actor is None or ctx.tracker.in_flight(invention_key(actor_id)):
                continue
            if ctx.rng.random() >= ctx.config.invention_chance:
                continue
            category = ctx.rng.choice(INVENTION_CATEGORIES)
            submitted = ctx.tracker.submit(
                invention_key(actor_id),
                ctx.epoch,
                self._discover(category, ctx.config.model_copy()),
                on_complete=lambda result, a=actor_id, c=category: self._register(a, c, result),
                on_error=lambda exc, a=actor_id: self._failed(a, exc),
            )
            if submitted:
                started.append(actor_id)
        return started

    async def _discover(
        self, category: GenericInventionType, config: SimulationConfig
    ) -> Optional[Tuple[InventionSpec, str]]:
        spec = await self.ctx.reasoner.specify_invention(category, config)
        if spec is None:
            return None
        try:
            icon = await self.ctx.reasoner.design_icon(spec, config)
        except Exception as exc:  # icon is cosmetic; keep the invention
            log_error(f"  {LOG_TAG_ERROR} Icon design for {spec.name} failed: {exc}")
            icon = DEFAULT_INVENTION_ICON
        return spec, icon or DEFAULT_INVENTION_ICON

    def _register(
        self,
        actor_id: str,
        category: GenericInventionType,
        result: Optional[Tuple[InventionSpec, str]],
    ) -> None:
        if result is None:
            return
        ctx = self.ctx
        spec, icon = result
        invention = Invention(
            id=ctx.next_id("inv"),
            name=spec.name,
            description=spec.description,
            category=category,
            cost={resource: amount for resource, amount in spec.cost.items() if amount > 0},
            effect=spec.effect,
            svg_icon=icon,
        )
        ctx.inventions[invention.id] = invention
        actor = ctx.actor(actor_id)
        name = actor.name if actor else actor_id
        if actor is not None:
            ctx.remember(actor, f"I had an idea for a new invention: {invention.name}.")
        ctx.record(f"{name} had an idea for a new invention: {invention.name}!", "system", actor_id)

    def _failed(self, actor_id: str, exc: BaseException) -> None:
        log_error(f"  {LOG_TAG_ERROR} Invention discovery for {actor_id} failed: {exc}")
        self.ctx.record("An idea for an invention fizzled out.", "system", actor_id)
