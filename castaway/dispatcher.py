"""Event dispatcher.

Once per tick the dispatcher first applies any reasoning results that arrived
since the last pass, then handles the head of the event queue. A handler may
return a successor event (for example "move there first"); the successor
replaces the head and is handled in the same pass, up to
``SimulationConfig.max_dispatch_chain`` events.
"""

from __future__ import annotations

from typing import Callable, Dict, Optional

from .cognition.fallback import fallback_goal
from .cognition.reasoner import GoalRequest
from .context import SimulationContext
from .logging_utils import LOG_TAG_ERROR, log_error
from .schemas import (
    FOOD_RESOURCES,
    Action,
    ActionKind,
    Actor,
    Event,
    EventType,
    GoalDecision,
    PlanAction,
    PlannedAction,
    Position,
    Resource,
)
from .trade import TradeProtocol
from .world import DEFAULT_YIELD, SOURCE_TYPES

Handler = Callable[[Event, Actor], Optional[Event]]

PLAN_EVENTS: Dict[PlanAction, EventType] = {
    PlanAction.GATHER: EventType.GATHER,
    PlanAction.BUILD_SHELTER: EventType.BUILD_SHELTER,
    PlanAction.CRAFT_AXE: EventType.CRAFT_AXE,
    PlanAction.CONSUME: EventType.CONSUME,
    PlanAction.SLEEP: EventType.SLEEP,
    PlanAction.TRADE_INITIATE: EventType.TRADE_INITIATE,
    PlanAction.TRADE_FINALIZE: EventType.TRADE_FINALIZE,
    PlanAction.BUILD_INVENTION: EventType.BUILD_INVENTION,
    PlanAction.IDLE: EventType.IDLE,
}


def goal_key(actor_id: str) -> str:
    return f"goal:{actor_id}"


def plan_event(actor_id: str, step: PlannedAction) -> Event:
    """Convert a planned action into a queued-intent record."""
    payload = step.parameters.model_dump(exclude_none=True)
    return Event(
        type=PLAN_EVENTS[step.action],
        actor_id=actor_id,
        target_id=payload.get("target_character_id"),
        payload=payload,
        from_plan=True,
    )


def move_then(actor_id: str, destination: Position, next_event: Event) -> Event:
    return Event(
        type=EventType.MOVE,
        actor_id=actor_id,
        payload={"x": destination.x, "y": destination.y, "next_event": next_event.model_dump()},
        from_plan=next_event.from_plan,
    )


def _resource(value) -> Optional[Resource]:
    if value is None:
        return None
    try:
        return Resource(value)
    except ValueError:
        return None


class EventDispatcher:
    def __init__(self, context: SimulationContext, trades: TradeProtocol) -> None:
        self.ctx = context
        self.trades = trades
        self._handlers: Dict[EventType, Handler] = {
            EventType.DECIDE_GOAL: self._decide_goal,
            EventType.IDLE: self._idle,
            EventType.MOVE: self._move,
            EventType.GATHER: self._gather,
            EventType.CONSUME: self._consume,
            EventType.SLEEP: self._sleep,
            EventType.CRAFT_AXE: self._craft_axe,
            EventType.BUILD_SHELTER: self._build_shelter,
            EventType.BUILD_INVENTION: self._build_invention,
            EventType.TRADE_INITIATE: trades.initiate,
            EventType.TRADE_NEGOTIATE: trades.negotiate,
            EventType.TRADE_FINALIZE: trades.finalize,
        }

    # ------------------------------------------------------------------
    # Pass
    # ------------------------------------------------------------------

    def apply_responses(self) -> int:
        return self.ctx.tracker.apply_completed(self.ctx.epoch, self._discard_stale)

    def _discard_stale(self, key: str) -> None:
        self.ctx.record(f"A stale response ({key}) from a previous session was discarded.", "system")

    def process(self) -> int:
        """Run one dispatcher pass; returns the number of events handled."""
        ctx = self.ctx
        self.apply_responses()
        handled = 0
        while ctx.queue and handled < ctx.config.max_dispatch_chain:
            event = ctx.queue.head
            handled += 1
            actor = ctx.actor(event.actor_id)
            if actor is None:
                ctx.queue.pop()
                continue
            if event.type == EventType.DECIDE_GOAL and not actor.is_idle:
                ctx.queue.postpone_head()
                break
            successor = self._handlers[event.type](event, actor)
            ctx.queue.replace_current_event(event, successor)
            if successor is None:
                break
        return handled

    # ------------------------------------------------------------------
    # Goals
    # ------------------------------------------------------------------

    def goal_request(self, actor: Actor) -> GoalRequest:
        ctx = self.ctx
        return GoalRequest(
            actor=actor.model_copy(deep=True),
            peers=[peer.model_copy(deep=True) for peer in ctx.peers_of(actor.id)],
            objects=ctx.world.snapshot(),
            inventions=[inv.model_copy(deep=True) for inv in ctx.inventions.values()],
            config=ctx.config.model_copy(),
            time_label=ctx.time_label,
            season=ctx.season,
        )

    def _decide_goal(self, event: Event, actor: Actor) -> Optional[Event]:
        ctx = self.ctx
        key = goal_key(actor.id)
        if ctx.tracker.in_flight(key):
            return None
        request = self.goal_request(actor)
        actor.set_action(Action(kind=ActionKind.THINKING))
        actor_id = actor.id
        ctx.tracker.submit(
            key,
            ctx.epoch,
            ctx.reasoner.decide_goal(request),
            on_complete=lambda decision: self.apply_goal(actor_id, decision),
            on_error=lambda exc: self._goal_failed(actor_id, request, exc),
        )
        ctx.record(f"{actor.name} is thinking about what to do next.", "action", actor.id)
        return None

    def apply_goal(self, actor_id: str, decision: GoalDecision) -> None:
        ctx = self.ctx
        actor = ctx.actor(actor_id)
        if actor is None or actor.action.kind != ActionKind.THINKING:
            ctx.record(f"A late goal decision for {actor.name if actor else actor_id} was discarded.", "system")
            return
        ctx.remember(actor, decision.memory_entry)
        actor.goal = decision.goal
        actor.plan = [plan_event(actor.id, step) for step in decision.plan]
        actor.last_completed_action = ActionKind.THINKING.value
        actor.set_idle()
        ctx.record(f"{actor.name} decided: {decision.goal}. {decision.reasoning}", "action", actor.id)

    def _goal_failed(self, actor_id: str, request: GoalRequest, exc: BaseException) -> None:
        log_error(f"  {LOG_TAG_ERROR} Goal decision for {request.actor.name} failed: {exc}")
        self.ctx.record(f"The goal decision for {request.actor.name} failed; using survival instincts.", "system")
        self.apply_goal(actor_id, fallback_goal(request))

    def expire_thinking(self, actor: Actor) -> None:
        """Thinking budget spent: drop the request and decide by rule."""
        self.ctx.tracker.cancel(goal_key(actor.id))
        self.ctx.record(f"{actor.name} could not make up their mind and follows their instincts.", "system", actor.id)
        self.apply_goal(actor.id, fallback_goal(self.goal_request(actor)))

    # ------------------------------------------------------------------
    # Actions
    # ------------------------------------------------------------------

    def _pop_plan_step(self, actor: Actor, event: Event) -> None:
        if event.from_plan and actor.plan:
            actor.plan.pop(0)

    def _idle(self, event: Event, actor: Actor) -> Optional[Event]:
        self._pop_plan_step(actor, event)
        actor.set_idle()
        return None

    def _move(self, event: Event, actor: Actor) -> Optional[Event]:
        payload = event.payload
        next_payload = payload.get("next_event")
        actor.set_action(
            Action(
                kind=ActionKind.MOVING,
                destination=Position(x=payload["x"], y=payload["y"]),
                next_event=Event.model_validate(next_payload) if next_payload else None,
                plan_step=event.from_plan,
            )
        )
        return None

    def _gather(self, event: Event, actor: Actor) -> Optional[Event]:
        ctx = self.ctx
        resource = _resource(event.payload.get("resource"))
        if event.target_id is not None:
            source = ctx.world.get(event.target_id)
            if source is None:
                ctx.record(f"{actor.name}'s gathering spot is gone.", "info", actor.id)
                actor.set_idle()
                return None
        else:
            if resource is None:
                ctx.abandon_plan(actor, "I did not know what to gather")
                return None
            source = ctx.world.find_source(resource, actor.position)
            if source is None:
                ctx.abandon_plan(actor, f"there is no {resource.value} left to gather")
                return None

        if resource is None:
            resource = DEFAULT_YIELD.get(source.type)
        if resource is None or SOURCE_TYPES.get(resource) != source.type:
            ctx.abandon_plan(actor, f"nothing I need grows at the {source.type.value.lower()}")
            return None

        if actor.position != source.position:
            at_source = event.model_copy(
                update={"target_id": source.id, "payload": {**event.payload, "resource": resource}}
            )
            return move_then(actor.id, source.position, at_source)

        actor.set_action(
            Action(
                kind=ActionKind.GATHERING,
                resource=resource,
                target_id=source.id,
                target_amount=int(event.payload.get("amount") or 1),
                gathered_amount=int(event.payload.get("gathered") or 0),
                plan_step=event.from_plan,
            )
        )
        ctx.record(f"{actor.name} starts gathering {resource.value}.", "action", actor.id)
        return None

    def _consume(self, event: Event, actor: Actor) -> Optional[Event]:
        requested = _resource(event.payload.get("resource"))
        if requested in FOOD_RESOURCES and actor.count(requested) > 0:
            food = requested
        else:
            food = next((r for r in FOOD_RESOURCES if actor.count(r) > 0), None)
        if food is None:
            self.ctx.abandon_plan(actor, "I have nothing to eat")
            return None
        actor.set_action(Action(kind=ActionKind.EATING, resource=food, plan_step=event.from_plan))
        self.ctx.record(f"{actor.name} starts eating a {food.value}.", "action", actor.id)
        return None

    def _sleep(self, event: Event, actor: Actor) -> Optional[Event]:
        at_shelter = self.ctx.world.is_at_own_shelter(actor.id, actor.position)
        actor.set_action(Action(kind=ActionKind.SLEEPING, at_shelter=at_shelter, plan_step=event.from_plan))
        where = " in their shelter" if at_shelter else ""
        self.ctx.record(f"{actor.name} goes to sleep{where}.", "action", actor.id)
        return None

    def _craft_axe(self, event: Event, actor: Actor) -> Optional[Event]:
        config = self.ctx.config
        if not actor.can_afford({Resource.WOOD: config.axe_wood_cost, Resource.STONE: config.axe_stone_cost}):
            self.ctx.record(f"{actor.name} lacks resources to craft an axe.", "info", actor.id)
            self.ctx.abandon_plan(actor, "I lack the wood and stone for an axe")
            return None
        actor.set_action(Action(kind=ActionKind.CRAFTING_AXE, plan_step=event.from_plan))
        self.ctx.record(f"{actor.name} starts crafting an axe.", "action", actor.id)
        return None

    def _build_shelter(self, event: Event, actor: Actor) -> Optional[Event]:
        ctx = self.ctx
        config = ctx.config
        if ctx.world.shelter_of(actor.id) is not None:
            self._pop_plan_step(actor, event)
            ctx.remember(actor, "I already have a shelter.")
            actor.set_idle()
            return None
        if not actor.can_afford({Resource.WOOD: config.shelter_wood_cost, Resource.STONE: config.shelter_stone_cost}):
            ctx.record(f"{actor.name} lacks resources to build a shelter.", "info", actor.id)
            ctx.abandon_plan(actor, "I lack the materials for a shelter")
            return None

        others = ctx.other_actor_positions(actor.id)
        planned = event.payload
        if "x" in planned and "y" in planned:
            spot = Position(x=planned["x"], y=planned["y"])
            if spot != actor.position or spot in ctx.world.occupied_positions(others):
                spot = ctx.world.find_empty_spot(actor.position, others)
        else:
            spot = ctx.world.find_empty_spot(actor.position, others)
        if spot is None:
            ctx.abandon_plan(actor, "there is no clear spot to build a shelter")
            return None
        if spot != actor.position:
            build_there = event.model_copy(update={"payload": {**planned, "x": spot.x, "y": spot.y}})
            return move_then(actor.id, spot, build_there)

        actor.set_action(Action(kind=ActionKind.BUILDING_SHELTER, destination=spot, plan_step=event.from_plan))
        ctx.record(f"{actor.name} starts building a shelter.", "action", actor.id)
        return None

    def _build_invention(self, event: Event, actor: Actor) -> Optional[Event]:
        ctx = self.ctx
        invention = ctx.inventions.get(event.payload.get("invention_id") or "")
        if invention is None:
            ctx.abandon_plan(actor, "I do not know how to build that invention")
            return None
        if invention.id in actor.inventions:
            self._pop_plan_step(actor, event)
            actor.set_idle()
            return None
        if not actor.can_afford(invention.cost):
            ctx.record(f"{actor.name} lacks resources to build {invention.name}.", "info", actor.id)
            ctx.abandon_plan(actor, f"I lack the materials for {invention.name}")
            return None
        actor.set_action(
            Action(kind=ActionKind.BUILDING_INVENTION, invention_id=invention.id, plan_step=event.from_plan)
        )
        ctx.record(f"{actor.name} starts building {invention.name}.", "action", actor.id)
        return None
