"""Tick scheduler.

``TickScheduler.advance`` performs one simulated hour:

1. advance the clock and season
2. interrupt actors whose vitals turned critical while they had a plan
3. decay stats, count down cooldowns and progress everyone else's action,
   applying completion effects
4. run one dispatcher pass over the event queue
5. day-boundary catastrophes and periodic tree regrowth
6. give every idle actor without a queued event its next plan step, or a
   decide-goal when the plan is empty

The scheduler never raises for world inconsistencies: a missing target drops
the plan step and the actor replans.
"""

from __future__ import annotations

from typing import List, Optional, Set

from .context import SimulationContext
from .dispatcher import EventDispatcher, move_then
from .durations import action_duration, decay_rates, gather_yield
from .inventions import InventionDiscovery
from .schemas import (
    Action,
    ActionKind,
    Actor,
    Event,
    EventType,
    ObjectType,
    Resource,
    WorldObject,
)
from .trade import TradeProtocol
from .world import shelter_id

AXE_DURABILITY = 100.0
HOURS_PER_DAY = 24


class TickScheduler:
    def __init__(
        self,
        context: SimulationContext,
        dispatcher: EventDispatcher,
        trades: TradeProtocol,
        discovery: InventionDiscovery,
    ) -> None:
        self.ctx = context
        self.dispatcher = dispatcher
        self.trades = trades
        self.discovery = discovery

    def advance(self) -> None:
        ctx = self.ctx
        previous_season = ctx.season
        ctx.ticks += 1
        if ctx.season != previous_season:
            ctx.record(f"The season turns to {ctx.season.value}.", "system")

        idle_at_start = [actor.id for actor in ctx.actors.values() if actor.is_idle]
        interrupted = self._interrupt_critical()
        for actor in list(ctx.actors.values()):
            if actor.id not in interrupted:
                self._progress(actor)

        for actor_id in interrupted:
            ctx.queue.purge_actor(actor_id)
            ctx.request_decision(actor_id, to_front=True)

        self.discovery.roll(idle_at_start)
        self.dispatcher.process()
        self._periodic_effects()
        self._schedule_idle()

    # ------------------------------------------------------------------
    # Interruption
    # ------------------------------------------------------------------

    def _interrupt_critical(self) -> Set[str]:
        ctx = self.ctx
        config = ctx.config
        interrupted: Set[str] = set()
        for actor in ctx.actors.values():
            starving = actor.stats.hunger < config.critical_hunger
            exhausted = actor.stats.energy < config.critical_energy
            if not (starving or exhausted) or not actor.plan or actor.interruption_cooldown > 0:
                continue
            reason = "starvation" if starving else "exhaustion"
            self.trades.cancel_for_actor(actor.id, f"{actor.name} had to attend to their {reason} risk.")
            ctx.tracker.cancel(f"goal:{actor.id}")
            actor.plan.clear()
            actor.set_idle()
            actor.interruption_cooldown = config.interruption_cooldown
            ctx.remember(actor, f"My vitals are critical! I must abandon my plan to avoid {reason}.")
            ctx.record(f"{actor.name}'s vitals are critical! Their plan has been interrupted.", "system", actor.id)
            interrupted.add(actor.id)
        return interrupted

    # ------------------------------------------------------------------
    # Per-actor progress
    # ------------------------------------------------------------------

    def _progress(self, actor: Actor) -> None:
        ctx = self.ctx
        if actor.action.kind != ActionKind.SLEEPING:
            rates = decay_rates(actor, ctx.config, ctx.inventions)
            actor.stats.energy = max(0.0, actor.stats.energy - rates["energy"])
            actor.stats.hunger = max(0.0, actor.stats.hunger - rates["hunger"])
        if actor.trade_cooldown > 0:
            actor.trade_cooldown -= 1
        if actor.interruption_cooldown > 0:
            actor.interruption_cooldown -= 1

        if actor.is_idle:
            return
        actor.action_progress += 1
        duration = action_duration(actor, ctx.config, ctx.inventions, ctx.world)
        if actor.action_progress >= duration:
            self._complete(actor, duration)

    def _complete(self, actor: Actor, duration: int) -> None:
        ctx = self.ctx
        config = ctx.config
        action = actor.action
        kind = action.kind
        step_complete = True

        if kind in (ActionKind.MOVING, ActionKind.MOVING_TO_TRADE):
            if action.destination is not None:
                actor.position = action.destination
                ctx.remember(actor, f"Arrived at position {action.destination}.")
            ctx.record(f"{actor.name} arrived at destination.", "info", actor.id)
            successor = action.next_event
            if successor is not None:
                ctx.queue.queue_event(successor, to_front=True)
                if successor.type == EventType.TRADE_NEGOTIATE:
                    actor.last_completed_action = action.label
                    actor.set_action(Action(kind=ActionKind.AWAITING_TRADE_RESPONSE, target_id=successor.target_id))
                    return
                step_complete = False

        elif kind == ActionKind.GATHERING:
            source = ctx.world.get(action.target_id)
            if source is None:
                ctx.abandon_plan(actor, f"the {action.resource.value if action.resource else 'resource'} source disappeared")
                return
            step_complete = self._finish_gather(actor, action, source)

        elif kind == ActionKind.SLEEPING:
            multiplier = config.sleep_in_shelter_multiplier if action.at_shelter else 1.0
            gained = duration * config.energy_per_sleep_tick * multiplier
            actor.stats.energy = min(config.max_energy, actor.stats.energy + gained)
            ctx.remember(actor, f"Slept and restored {gained:.1f} energy.")
            ctx.record(f"{actor.name} woke up feeling refreshed.", "info", actor.id)

        elif kind == ActionKind.EATING:
            food = action.resource
            if food is not None and actor.count(food) > 0:
                restored = config.hunger_per_coconut if food == Resource.COCONUT else config.hunger_per_fish
                actor.debit({food: 1})
                actor.stats.hunger = min(config.max_hunger, actor.stats.hunger + restored)
                ctx.remember(actor, f"Ate a {food.value}, restoring {restored:g} hunger.")
                ctx.record(f"{actor.name} finished eating a {food.value}.", "info", actor.id)
            else:
                ctx.remember(actor, "I sat down to eat but had no food left.")

        elif kind == ActionKind.CRAFTING_AXE:
            cost = {Resource.WOOD: config.axe_wood_cost, Resource.STONE: config.axe_stone_cost}
            if not actor.can_afford(cost):
                ctx.abandon_plan(actor, "my materials ran out before the axe was finished")
                return
            actor.debit(cost)
            actor.tools[Resource.AXE] = AXE_DURABILITY
            actor.long_term_memory.tool_status = "Has Axe"
            ctx.remember(actor, "I crafted a new axe.")
            ctx.record(f"{actor.name} successfully crafted an axe!", "system", actor.id)

        elif kind == ActionKind.BUILDING_SHELTER:
            cost = {Resource.WOOD: config.shelter_wood_cost, Resource.STONE: config.shelter_stone_cost}
            if not actor.can_afford(cost) or ctx.world.shelter_of(actor.id) is not None:
                ctx.abandon_plan(actor, "the shelter could not be finished")
                return
            actor.debit(cost)
            ctx.world.add(
                WorldObject(id=shelter_id(actor.id), type=ObjectType.SHELTER, position=actor.position, owner_id=actor.id)
            )
            actor.long_term_memory.housing_status = "Has Shelter"
            ctx.remember(actor, "I built a new shelter.")
            ctx.record(f"{actor.name} finished building a shelter!", "system", actor.id)

        elif kind == ActionKind.BUILDING_INVENTION:
            invention = ctx.inventions.get(action.invention_id or "")
            if invention is None or not actor.can_afford(invention.cost):
                ctx.abandon_plan(actor, "the invention could not be finished")
                return
            actor.debit(invention.cost)
            if invention.id not in actor.inventions:
                actor.inventions.append(invention.id)
            if actor.id not in invention.owner_ids:
                invention.owner_ids.append(actor.id)
            ctx.remember(actor, f"I built the {invention.name}.")
            ctx.record(f"{actor.name} finished building {invention.name}!", "system", actor.id)

        elif kind == ActionKind.THINKING:
            self.dispatcher.expire_thinking(actor)
            return

        elif kind in (ActionKind.NEGOTIATING, ActionKind.AWAITING_TRADE_RESPONSE):
            self.trades.expire(action.target_id)
            if actor.action.kind == kind:
                actor.set_idle()
            return

        actor.last_completed_action = action.label
        actor.set_idle()
        if step_complete and action.plan_step and actor.plan:
            actor.plan.pop(0)

    def _finish_gather(self, actor: Actor, action: Action, source: WorldObject) -> bool:
        """Credit one gather cycle; False when more cycles are queued."""
        ctx = self.ctx
        config = ctx.config
        resource = action.resource
        amount = gather_yield(actor, resource, ctx.inventions)
        actor.credit(resource, amount)
        ctx.remember(actor, f"Gathered {amount} {resource.value}.")
        ctx.record(f"{actor.name} gathered {amount} {resource.value}.", "action", actor.id)
        gathered = action.gathered_amount + amount

        if resource == Resource.WOOD:
            if actor.has_axe:
                durability = actor.tools[Resource.AXE] - config.axe_depreciation_rate
                if durability <= 0:
                    del actor.tools[Resource.AXE]
                    actor.long_term_memory.tool_status = "No Tools"
                    ctx.remember(actor, "My axe broke!")
                    ctx.record(f"{actor.name}'s axe broke!", "system", actor.id)
                else:
                    actor.tools[Resource.AXE] = durability
            source.wood_extracted += amount
            if source.wood_extracted >= config.tree_wood_depletion_limit:
                ctx.world.remove(source.id)
                ctx.record("A tree has been depleted and removed.", "info")

        if gathered >= action.target_amount:
            return True

        progress = {"resource": resource, "amount": action.target_amount, "gathered": gathered}
        if action.plan_step and actor.plan and actor.plan[0].type == EventType.GATHER:
            actor.plan[0].payload.update(progress)
        ctx.queue.queue_event(
            Event(
                type=EventType.GATHER,
                actor_id=actor.id,
                target_id=source.id,
                payload=progress,
                from_plan=action.plan_step,
            ),
            to_front=True,
        )
        return False

    # ------------------------------------------------------------------
    # World effects
    # ------------------------------------------------------------------

    def _periodic_effects(self) -> None:
        ctx = self.ctx
        config = ctx.config
        if ctx.ticks % HOURS_PER_DAY == 0:
            for shelter in ctx.world.of_type(ObjectType.SHELTER):
                if ctx.rng.random() >= config.shelter_catastrophe_chance:
                    continue
                ctx.world.remove(shelter.id)
                owner = ctx.actor(shelter.owner_id)
                if owner is not None:
                    owner.long_term_memory.housing_status = "Unhoused"
                    ctx.remember(owner, "My shelter was destroyed by a catastrophe!")
                    ctx.record(f"A natural catastrophe has destroyed {owner.name}'s shelter!", "system", owner.id)

        if ctx.ticks % config.tree_regrowth_time == 0:
            actor_positions = [a.position for a in ctx.actors.values()]
            tree = ctx.world.spawn_tree(ctx.rng, ctx.next_id("tree"), actor_positions)
            if tree is not None:
                ctx.record(f"A new tree has grown at {tree.position}.", "info")

    # ------------------------------------------------------------------
    # Idle actors
    # ------------------------------------------------------------------

    def _schedule_idle(self) -> None:
        ctx = self.ctx
        for actor in ctx.actors.values():
            if not actor.is_idle or ctx.queue.has_pending(actor.id):
                continue
            if not actor.plan:
                ctx.request_decision(actor.id)
                continue
            event = self._resolve_plan_head(actor)
            if event is None:
                ctx.request_decision(actor.id)
            else:
                ctx.queue.queue_event(event, to_front=True)

    def _resolve_plan_head(self, actor: Actor) -> Optional[Event]:
        """Turn the plan head into a dispatchable event, routing via a move when needed."""
        ctx = self.ctx
        event = actor.plan[0].model_copy(deep=True)
        event.from_plan = True

        if event.type == EventType.GATHER:
            try:
                resource = Resource(event.payload.get("resource"))
            except ValueError:
                ctx.abandon_plan(actor, "I did not know what to gather")
                return None
            source = ctx.world.find_source(resource, actor.position)
            if source is None:
                ctx.abandon_plan(actor, f"there is no {resource.value} source left")
                return None
            event.target_id = source.id
            if source.position != actor.position:
                return move_then(actor.id, source.position, event)
            return event

        if event.type == EventType.BUILD_SHELTER and ctx.world.shelter_of(actor.id) is None:
            spot = ctx.world.find_empty_spot(actor.position, ctx.other_actor_positions(actor.id))
            if spot is None:
                ctx.abandon_plan(actor, "there is no clear spot to build a shelter")
                return None
            event.payload.update({"x": spot.x, "y": spot.y})
            if spot != actor.position:
                return move_then(actor.id, spot, event)
            return event

        return event
