"""Tests for the trade negotiation protocol."""

import pytest

from castaway.schemas import (
    Action,
    ActionKind,
    CounterOffer,
    Event,
    EventType,
    InvalidTradeTransition,
    PendingTrade,
    Resource,
    Trade,
    TradeDecision,
    TradeDecisionKind,
    TradeOffer,
    TradeStatus,
)


def _initiate(actor_id="robinson", partner_id="friday", give=("Wood", 2), take=("Coconut", 2)) -> Event:
    return Event(
        type=EventType.TRADE_INITIATE,
        actor_id=actor_id,
        target_id=partner_id,
        payload={
            "target_character_id": partner_id,
            "give_resource": give[0],
            "give_amount": give[1],
            "take_resource": take[0],
            "take_amount": take[1],
        },
        from_plan=True,
    )


def _pair(make_actor, robinson_inventory, friday_inventory, friday_at=(4, 4)):
    robinson = make_actor("robinson", 4, 4, inventory=robinson_inventory)
    friday = make_actor("friday", *friday_at, inventory=friday_inventory)
    return robinson, friday


def _only_trade(harness) -> Trade:
    trades = list(harness.ctx.trades.values())
    assert len(trades) == 1
    return trades[0]


@pytest.mark.asyncio
async def test_accepted_trade_exchanges_resources(make_harness, make_actor, scripted_reasoner):
    robinson, friday = _pair(make_actor, {Resource.WOOD: 5}, {Resource.COCONUT: 3})
    reasoner = scripted_reasoner(trades=[TradeDecision(decision=TradeDecisionKind.ACCEPT, reasoning="Fair.")])
    harness = make_harness([robinson, friday], reasoner=reasoner)
    robinson.plan = [_initiate()]
    harness.ctx.queue.queue_event(robinson.plan[0])

    harness.dispatcher.process()

    trade = _only_trade(harness)
    assert robinson.plan == []
    assert trade.status == TradeStatus.NEGOTIATING
    assert trade.decision_maker_id == "friday"
    assert friday.action.kind == ActionKind.NEGOTIATING
    assert robinson.action.kind == ActionKind.AWAITING_TRADE_RESPONSE

    await harness.settle()

    assert trade.status == TradeStatus.ACCEPTED
    assert robinson.inventory == {Resource.WOOD: 3, Resource.COCONUT: 2}
    assert friday.inventory == {Resource.COCONUT: 1, Resource.WOOD: 2}
    assert reasoner.trade_requests[0].offer.give_amount == 2


@pytest.mark.asyncio
async def test_unaffordable_accept_fails_trade(make_harness, make_actor, scripted_reasoner):
    robinson, friday = _pair(make_actor, {Resource.WOOD: 5}, {})
    reasoner = scripted_reasoner(trades=[TradeDecision(decision=TradeDecisionKind.ACCEPT, reasoning="Sure.")])
    harness = make_harness([robinson, friday], reasoner=reasoner)
    harness.ctx.queue.queue_event(_initiate())

    harness.dispatcher.process()
    await harness.settle()

    trade = _only_trade(harness)
    assert trade.status == TradeStatus.FAILED
    assert trade.decision_maker_id is None
    assert robinson.inventory == {Resource.WOOD: 5}
    assert friday.inventory == {}
    cooldown = harness.ctx.config.trade_attempt_cooldown
    for actor in (robinson, friday):
        assert actor.is_idle
        assert actor.trade_cooldown == cooldown
        assert actor.long_term_memory.last_trade.outcome == "Failed"
        assert harness.ctx.queue.has_decide_goal(actor.id)


@pytest.mark.asyncio
async def test_counter_at_max_turns_ends_negotiation(make_harness, make_actor, scripted_reasoner):
    robinson, friday = _pair(make_actor, {Resource.WOOD: 5}, {Resource.COCONUT: 3})
    counter = TradeDecision(
        decision=TradeDecisionKind.COUNTER,
        reasoning="Not quite.",
        counter_offer=CounterOffer(
            give_resource=Resource.COCONUT, give_amount=1, take_resource=Resource.WOOD, take_amount=3
        ),
    )
    reasoner = scripted_reasoner(trades=[counter, counter.model_copy(deep=True)])
    harness = make_harness([robinson, friday], reasoner=reasoner)
    harness.ctx.config.max_negotiation_turns = 2
    harness.ctx.queue.queue_event(_initiate())

    harness.dispatcher.process()
    await harness.settle()

    trade = _only_trade(harness)
    assert trade.status == TradeStatus.NEGOTIATING
    assert len(trade.history) == 2
    assert trade.latest_offer.from_id == "friday"
    assert trade.latest_offer.turn == 2
    assert friday.action.kind == ActionKind.AWAITING_TRADE_RESPONSE
    assert harness.ctx.queue.head.type == EventType.TRADE_NEGOTIATE
    assert harness.ctx.queue.head.actor_id == "robinson"

    harness.dispatcher.process()
    await harness.settle()

    assert trade.is_terminal
    assert trade.status == TradeStatus.REJECTED
    assert trade.final_reasoning == "Negotiations broke down."
    assert len(trade.history) == 2
    assert not any(e.type == EventType.TRADE_NEGOTIATE for e in harness.ctx.queue)


@pytest.mark.asyncio
async def test_duplicate_negotiation_event_is_ignored(make_harness, make_actor):
    robinson, friday = _pair(make_actor, {Resource.WOOD: 5}, {Resource.COCONUT: 3})
    harness = make_harness([robinson, friday])
    harness.ctx.queue.queue_event(_initiate())
    harness.dispatcher.process()
    trade = _only_trade(harness)

    harness.ctx.queue.queue_event(
        Event(type=EventType.TRADE_NEGOTIATE, actor_id="friday", target_id=trade.id, payload={"turn": 1})
    )
    harness.dispatcher.process()

    assert f"Ignoring duplicate negotiation event for trade {trade.id}." in harness.ctx.log.messages()
    await harness.settle()
    assert len(harness.reasoner.trade_requests) == 1
    assert trade.status == TradeStatus.ACCEPTED


@pytest.mark.asyncio
async def test_accept_and_gather_then_finalize(make_harness, make_actor, scripted_reasoner):
    robinson, friday = _pair(make_actor, {Resource.WOOD: 5}, {})
    reasoner = scripted_reasoner(
        trades=[TradeDecision(decision=TradeDecisionKind.ACCEPT_AND_GATHER, reasoning="I will fetch coconuts.")]
    )
    harness = make_harness([robinson, friday], reasoner=reasoner)
    harness.ctx.queue.queue_event(_initiate())

    harness.dispatcher.process()
    await harness.settle()

    trade = _only_trade(harness)
    assert trade.status == TradeStatus.GATHERING
    pending = friday.pending_trade
    assert pending.give_resource == Resource.COCONUT and pending.give_amount == 2
    assert pending.take_resource == Resource.WOOD and pending.take_amount == 2
    assert friday.goal == "Fulfilling Trade"

    friday.inventory[Resource.COCONUT] = 2
    harness.ctx.queue.clear()
    robinson.goal = "Collect building materials"
    robinson.set_action(Action(kind=ActionKind.GATHERING, resource=Resource.WOOD, target_amount=3))
    harness.ctx.queue.queue_event(Event(type=EventType.TRADE_FINALIZE, actor_id="friday", from_plan=True))
    harness.dispatcher.process()

    assert trade.status == TradeStatus.FULFILLED
    assert friday.pending_trade is None
    assert robinson.inventory == {Resource.WOOD: 3, Resource.COCONUT: 2}
    assert friday.inventory == {Resource.WOOD: 2}
    assert robinson.long_term_memory.last_trade.outcome == "Fulfilled"
    assert robinson.is_idle and friday.is_idle
    assert robinson.goal == friday.goal == "Idle"
    assert harness.ctx.queue.has_decide_goal("robinson")


@pytest.mark.asyncio
async def test_gathering_trade_blocks_a_second_one_with_same_partner(make_harness, make_actor, scripted_reasoner):
    robinson, friday = _pair(make_actor, {Resource.WOOD: 5}, {})
    gather = TradeDecision(decision=TradeDecisionKind.ACCEPT_AND_GATHER, reasoning="I will fetch coconuts.")
    reasoner = scripted_reasoner(trades=[gather, gather.model_copy()])
    harness = make_harness([robinson, friday], reasoner=reasoner)
    harness.ctx.queue.queue_event(_initiate())
    harness.dispatcher.process()
    await harness.settle()
    first = _only_trade(harness)

    harness.ctx.queue.clear()
    robinson.trade_cooldown = 0
    harness.ctx.queue.queue_event(_initiate())
    harness.dispatcher.process()
    await harness.settle()

    assert _only_trade(harness) is first
    assert first.status == TradeStatus.GATHERING
    assert friday.pending_trade.trade_id == first.id
    assert len(reasoner.trade_requests) == 1
    assert robinson.is_idle
    assert any("a trade with Friday is still open" in m for m in harness.ctx.log.messages())


@pytest.mark.asyncio
async def test_second_gather_commitment_is_turned_down(make_harness, make_actor, scripted_reasoner):
    robinson, friday = _pair(make_actor, {Resource.WOOD: 5}, {})
    atkins = make_actor("atkins", 4, 4, inventory={Resource.FISH: 3})
    gather = TradeDecision(decision=TradeDecisionKind.ACCEPT_AND_GATHER, reasoning="I will fetch coconuts.")
    reasoner = scripted_reasoner(trades=[gather, gather.model_copy()])
    harness = make_harness([robinson, friday, atkins], reasoner=reasoner)
    harness.ctx.queue.queue_event(_initiate())
    harness.dispatcher.process()
    await harness.settle()
    first = _only_trade(harness)

    harness.ctx.queue.clear()
    harness.ctx.queue.queue_event(_initiate(actor_id="atkins", give=("Fish", 1), take=("Coconut", 1)))
    harness.dispatcher.process()
    await harness.settle()

    second = next(t for t in harness.ctx.trades.values() if t.id != first.id)
    statuses = [t.status for t in harness.ctx.trades.values()]
    assert statuses.count(TradeStatus.GATHERING) == 1
    assert first.status == TradeStatus.GATHERING
    assert second.status == TradeStatus.REJECTED
    assert second.latest_offer.decision == TradeDecisionKind.REJECT
    assert second.final_reasoning == f"Friday is still gathering for trade {first.id}."
    assert friday.pending_trade.trade_id == first.id
    assert atkins.trade_cooldown == harness.ctx.config.trade_attempt_cooldown


def test_finalize_walks_to_partner_first(make_harness, make_actor):
    robinson, friday = _pair(make_actor, {Resource.WOOD: 5}, {Resource.COCONUT: 2}, friday_at=(9, 9))
    harness = make_harness([robinson, friday])
    trade = Trade(
        id="trade-1",
        initiator_id="robinson",
        recipient_id="friday",
        history=[
            TradeOffer(
                from_id="robinson",
                to_id="friday",
                give_resource=Resource.WOOD,
                give_amount=2,
                take_resource=Resource.COCONUT,
                take_amount=2,
            )
        ],
        status=TradeStatus.GATHERING,
    )
    harness.ctx.trades[trade.id] = trade
    friday.pending_trade = PendingTrade(
        trade_id="trade-1",
        partner_id="robinson",
        give_resource=Resource.COCONUT,
        give_amount=2,
        take_resource=Resource.WOOD,
        take_amount=2,
    )
    harness.ctx.queue.queue_event(Event(type=EventType.TRADE_FINALIZE, actor_id="friday", from_plan=True))

    harness.dispatcher.process()

    assert friday.action.kind == ActionKind.MOVING
    assert friday.action.destination == robinson.position
    assert friday.action.next_event.type == EventType.TRADE_FINALIZE
    assert trade.status == TradeStatus.GATHERING


def test_initiation_refused_during_cooldown(make_harness, make_actor):
    robinson, friday = _pair(make_actor, {Resource.WOOD: 5}, {Resource.COCONUT: 3})
    robinson.trade_cooldown = 3
    harness = make_harness([robinson, friday])
    robinson.plan = [_initiate()]
    harness.ctx.queue.queue_event(robinson.plan[0])

    harness.dispatcher.process()

    assert harness.ctx.trades == {}
    assert robinson.plan == []
    assert robinson.is_idle


def test_initiation_requires_offered_goods(make_harness, make_actor):
    robinson, friday = _pair(make_actor, {Resource.WOOD: 1}, {Resource.COCONUT: 3})
    harness = make_harness([robinson, friday])
    harness.ctx.queue.queue_event(_initiate())

    harness.dispatcher.process()

    assert harness.ctx.trades == {}
    assert any("to offer" in m for m in harness.ctx.log.messages())


def test_distant_initiator_walks_over(make_harness, make_actor):
    robinson, friday = _pair(make_actor, {Resource.WOOD: 5}, {Resource.COCONUT: 3}, friday_at=(12, 4))
    harness = make_harness([robinson, friday])
    harness.ctx.queue.queue_event(_initiate())

    harness.dispatcher.process()

    trade = _only_trade(harness)
    assert trade.status == TradeStatus.MOVING
    assert robinson.action.kind == ActionKind.MOVING_TO_TRADE
    assert robinson.action.next_event.type == EventType.TRADE_NEGOTIATE
    assert robinson.action.next_event.actor_id == "friday"


def test_unanswered_offer_expires(make_harness, make_actor):
    robinson, friday = _pair(make_actor, {Resource.WOOD: 5}, {Resource.COCONUT: 3})
    harness = make_harness([robinson, friday])
    trade = Trade(id="trade-9", initiator_id="robinson", recipient_id="friday", status=TradeStatus.NEGOTIATING)
    harness.ctx.trades[trade.id] = trade

    harness.trades.expire(trade.id)

    assert trade.status == TradeStatus.FAILED
    assert trade.final_reasoning == "Negotiation timed out."
    assert robinson.trade_cooldown == friday.trade_cooldown == harness.ctx.config.trade_attempt_cooldown


def test_trade_status_graph():
    trade = Trade(id="t", initiator_id="a", recipient_id="b")

    with pytest.raises(InvalidTradeTransition):
        trade.transition(TradeStatus.ACCEPTED)

    trade.transition(TradeStatus.NEGOTIATING)
    trade.decision_maker_id = "b"
    trade.transition(TradeStatus.GATHERING)
    trade.transition(TradeStatus.FINALIZING)
    trade.transition(TradeStatus.FULFILLED, "done")

    assert trade.is_terminal
    assert trade.decision_maker_id is None
    assert trade.final_reasoning == "done"
    for status in TradeStatus:
        with pytest.raises(InvalidTradeTransition):
            trade.transition(status)
