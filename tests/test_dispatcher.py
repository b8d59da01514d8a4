"""Dispatcher pass rules: dropped, postponed and chained events."""

import pytest

from castaway.config import SimulationConfig
from castaway.schemas import (
    Action,
    ActionKind,
    Event,
    EventType,
    ObjectType,
    Resource,
    TradeDecision,
    TradeDecisionKind,
    TradeStatus,
)


def _queued(harness):
    return [(e.type, e.actor_id) for e in harness.ctx.queue]


def _sleeping(make_actor, actor_id="robinson"):
    actor = make_actor(actor_id, 2, 2, energy=30)
    actor.set_action(Action(kind=ActionKind.SLEEPING))
    return actor


def test_event_for_missing_actor_is_dropped(make_harness, make_actor):
    robinson = _sleeping(make_actor)
    harness = make_harness([robinson])
    harness.ctx.queue.queue_event(Event(type=EventType.IDLE, actor_id="ghost"))
    harness.ctx.queue.queue_event(Event(type=EventType.DECIDE_GOAL, actor_id="robinson"))

    handled = harness.dispatcher.process()

    assert handled == 2
    assert _queued(harness) == [(EventType.DECIDE_GOAL, "robinson")]
    assert robinson.action.kind == ActionKind.SLEEPING


def test_busy_actor_decision_waits_behind_other_events(make_harness, make_actor):
    robinson = _sleeping(make_actor)
    friday = make_actor("friday", 5, 5)
    friday.set_action(Action(kind=ActionKind.THINKING))
    harness = make_harness([robinson, friday])
    harness.ctx.queue.queue_event(Event(type=EventType.DECIDE_GOAL, actor_id="robinson"))
    harness.ctx.queue.queue_event(Event(type=EventType.IDLE, actor_id="friday"))

    assert harness.dispatcher.process() == 1
    assert _queued(harness) == [(EventType.IDLE, "friday"), (EventType.DECIDE_GOAL, "robinson")]
    assert friday.action.kind == ActionKind.THINKING
    assert harness.ctx.tracker.pending_keys() == []

    assert harness.dispatcher.process() == 1
    assert friday.is_idle
    assert _queued(harness) == [(EventType.DECIDE_GOAL, "robinson")]


def test_successor_is_handled_in_the_same_pass(make_harness, make_actor, make_object):
    robinson = make_actor("robinson", 2, 2)
    tree = make_object("tree-1", ObjectType.TREE, 6, 6)
    harness = make_harness([robinson], [tree])
    harness.ctx.queue.queue_event(
        Event(type=EventType.GATHER, actor_id="robinson", payload={"resource": "Wood", "amount": 2})
    )

    assert harness.dispatcher.process() == 2
    assert len(harness.ctx.queue) == 0
    assert robinson.action.kind == ActionKind.MOVING
    assert robinson.action.destination == tree.position
    assert robinson.action.next_event.type == EventType.GATHER
    assert robinson.action.next_event.target_id == "tree-1"


def test_chain_stops_at_configured_length(make_harness, make_actor, make_object):
    robinson = make_actor("robinson", 2, 2)
    tree = make_object("tree-1", ObjectType.TREE, 6, 6)
    config = SimulationConfig(invention_chance=0.0, shelter_catastrophe_chance=0.0, max_dispatch_chain=1)
    harness = make_harness([robinson], [tree], config=config)
    harness.ctx.queue.queue_event(
        Event(type=EventType.GATHER, actor_id="robinson", payload={"resource": "Wood", "amount": 2})
    )

    assert harness.dispatcher.process() == 1
    assert _queued(harness) == [(EventType.MOVE, "robinson")]
    assert robinson.is_idle

    assert harness.dispatcher.process() == 1
    assert robinson.action.kind == ActionKind.MOVING
    assert len(harness.ctx.queue) == 0


def test_dropped_events_count_towards_chain_length(make_harness, make_actor):
    robinson = make_actor("robinson")
    config = SimulationConfig(invention_chance=0.0, shelter_catastrophe_chance=0.0, max_dispatch_chain=2)
    harness = make_harness([robinson], config=config)
    for ghost in ("ghost-1", "ghost-2", "ghost-3"):
        harness.ctx.queue.queue_event(Event(type=EventType.IDLE, actor_id=ghost))

    assert harness.dispatcher.process() == 2
    assert _queued(harness) == [(EventType.IDLE, "ghost-3")]


@pytest.mark.asyncio
async def test_trade_answer_from_previous_epoch_changes_nothing(make_harness, make_actor, scripted_reasoner):
    robinson = make_actor("robinson", 4, 4, inventory={Resource.WOOD: 5})
    friday = make_actor("friday", 4, 4, inventory={Resource.COCONUT: 3})
    reasoner = scripted_reasoner(trades=[TradeDecision(decision=TradeDecisionKind.ACCEPT, reasoning="Fair.")])
    harness = make_harness([robinson, friday], reasoner=reasoner)
    harness.ctx.queue.queue_event(
        Event(
            type=EventType.TRADE_INITIATE,
            actor_id="robinson",
            target_id="friday",
            payload={
                "target_character_id": "friday",
                "give_resource": "Wood",
                "give_amount": 2,
                "take_resource": "Coconut",
                "take_amount": 2,
            },
        )
    )
    harness.dispatcher.process()
    (trade,) = harness.ctx.trades.values()

    harness.ctx.epoch += 1
    applied = await harness.settle()

    assert applied == 0
    assert trade.status == TradeStatus.NEGOTIATING
    assert trade.latest_offer.decision is None
    assert robinson.inventory == {Resource.WOOD: 5}
    assert friday.inventory == {Resource.COCONUT: 3}
    assert friday.action.kind == ActionKind.NEGOTIATING
    assert robinson.action.kind == ActionKind.AWAITING_TRADE_RESPONSE
    assert f"A stale response (trade:{trade.id}) from a previous session was discarded." in harness.ctx.log.messages()
