"""Trade negotiation protocol.

A trade runs through the event queue like any other intent:

    TRADE_INITIATE   the initiator proposes terms and, if needed, walks over
    TRADE_NEGOTIATE  the addressee of the newest offer asks its reasoner
    (decision)       accept / accept_and_gather / reject / counter
    TRADE_FINALIZE   the gatherer delivers an accept_and_gather commitment

Nothing is escrowed. Affordability is re-checked at every point where
resources change hands.
"""

from __future__ import annotations

from typing import Dict, Optional

from .cognition.fallback import fallback_trade
from .cognition.reasoner import TradeRequest
from .context import SimulationContext
from .logging_utils import LOG_TAG_ERROR, log_error
from .schemas import (
    Action,
    ActionKind,
    Actor,
    Event,
    EventType,
    LastTrade,
    PendingTrade,
    Resource,
    Trade,
    TradeDecision,
    TradeDecisionKind,
    TradeOffer,
    TradeStatus,
)

OPEN_STATUSES = (TradeStatus.MOVING, TradeStatus.NEGOTIATING)
# A pair with an agreed but undelivered trade may not start another one.
UNSETTLED_STATUSES = OPEN_STATUSES + (TradeStatus.GATHERING, TradeStatus.FINALIZING)


def trade_key(trade_id: str) -> str:
    return f"trade:{trade_id}"


def _exchange(giver: Actor, receiver: Actor, offer: TradeOffer) -> None:
    """Swap the offer's goods: ``giver`` pays give_*, ``receiver`` pays take_*."""
    giver.debit({offer.give_resource: offer.give_amount})
    receiver.debit({offer.take_resource: offer.take_amount})
    receiver.credit(offer.give_resource, offer.give_amount)
    giver.credit(offer.take_resource, offer.take_amount)


def _both_can_pay(giver: Actor, receiver: Actor, offer: TradeOffer) -> bool:
    return giver.can_afford({offer.give_resource: offer.give_amount}) and receiver.can_afford(
        {offer.take_resource: offer.take_amount}
    )


class TradeProtocol:
    def __init__(self, context: SimulationContext) -> None:
        self.ctx = context

    def _log(self, message: str, actor_id: Optional[str] = None) -> None:
        self.ctx.record(message, "trade", actor_id)

    def _pop_plan_step(self, actor: Actor, event: Event) -> None:
        if event.from_plan and actor.plan and actor.plan[0].type == event.type:
            actor.plan.pop(0)

    def open_trade_between(self, first: str, second: str) -> Optional[Trade]:
        for trade in self.ctx.trades.values():
            if trade.status in UNSETTLED_STATUSES and trade.involves(first) and trade.involves(second):
                return trade
        return None

    def open_commitment(self, actor: Actor) -> Optional[Trade]:
        """The trade ``actor`` agreed to gather for and has not yet delivered."""
        pending = actor.pending_trade
        if pending is None:
            return None
        trade = self.ctx.trades.get(pending.trade_id)
        if trade is None or trade.status not in (TradeStatus.GATHERING, TradeStatus.FINALIZING):
            return None
        return trade

    # ------------------------------------------------------------------
    # Initiation
    # ------------------------------------------------------------------

    def initiate(self, event: Event, initiator: Actor) -> Optional[Event]:
        ctx = self.ctx
        payload = event.payload
        partner = ctx.actor(payload.get("target_character_id") or event.target_id)
        if partner is None or partner.id == initiator.id:
            ctx.abandon_plan(initiator, "the trade partner could not be found")
            return None
        if initiator.trade_cooldown > 0:
            ctx.abandon_plan(initiator, f"it is too soon to propose another trade ({initiator.trade_cooldown} hours)")
            return None
        if self.open_trade_between(initiator.id, partner.id) is not None:
            ctx.abandon_plan(initiator, f"a trade with {partner.name} is still open")
            return None

        try:
            offer = TradeOffer(
                from_id=initiator.id,
                to_id=partner.id,
                give_resource=Resource(payload["give_resource"]),
                give_amount=int(payload["give_amount"]),
                take_resource=Resource(payload["take_resource"]),
                take_amount=int(payload["take_amount"]),
                turn=1,
            )
        except (KeyError, TypeError, ValueError):
            ctx.abandon_plan(initiator, "the trade proposal was incomplete")
            return None
        if not initiator.can_afford({offer.give_resource: offer.give_amount}):
            ctx.abandon_plan(initiator, f"I do not have {offer.give_amount} {offer.give_resource.value} to offer")
            return None

        self._pop_plan_step(initiator, event)
        trade = Trade(id=ctx.next_id("trade"), initiator_id=initiator.id, recipient_id=partner.id, history=[offer])
        ctx.trades[trade.id] = trade
        negotiate = Event(
            type=EventType.TRADE_NEGOTIATE, actor_id=partner.id, target_id=trade.id, payload={"turn": offer.turn}
        )

        if initiator.position == partner.position:
            initiator.set_action(Action(kind=ActionKind.AWAITING_TRADE_RESPONSE, target_id=trade.id))
            self._log(f"{initiator.name} offers {partner.name} {offer.describe()}.", initiator.id)
            return negotiate

        initiator.set_action(
            Action(
                kind=ActionKind.MOVING_TO_TRADE,
                destination=partner.position,
                target_id=trade.id,
                next_event=negotiate,
            )
        )
        ctx.record(f"{initiator.name} is going to {partner.name} to trade.", "action", initiator.id)
        return None

    # ------------------------------------------------------------------
    # Negotiation
    # ------------------------------------------------------------------

    def negotiate(self, event: Event, decider: Actor) -> Optional[Event]:
        ctx = self.ctx
        trade = ctx.trades.get(event.target_id or "")
        if trade is None:
            ctx.record(f"{decider.name} was asked about a trade that no longer exists.", "system")
            return None

        offer = trade.latest_offer
        duplicate = (
            trade.status not in OPEN_STATUSES
            or offer is None
            or offer.turn != event.payload.get("turn", offer.turn)
            or offer.decision is not None
            or offer.to_id != decider.id
            or trade.decision_maker_id is not None
        )
        if duplicate:
            ctx.record(f"Ignoring duplicate negotiation event for trade {trade.id}.", "system")
            return None

        offerer = ctx.actor(offer.from_id)
        if offerer is None:
            trade.transition(TradeStatus.FAILED, "Trade partner was not found.")
            self.end_negotiation(trade)
            return None

        if trade.status == TradeStatus.MOVING:
            trade.transition(TradeStatus.NEGOTIATING)
        trade.decision_maker_id = decider.id
        for party in (decider, offerer):
            ctx.tracker.cancel(f"goal:{party.id}")
        decider.set_action(Action(kind=ActionKind.NEGOTIATING, target_id=trade.id))
        offerer.set_action(Action(kind=ActionKind.AWAITING_TRADE_RESPONSE, target_id=trade.id))
        self._log(
            f"{decider.name} is considering an offer from {offerer.name}: "
            f"give {offer.take_amount} {offer.take_resource.value} for {offer.give_amount} {offer.give_resource.value}.",
            decider.id,
        )

        request = TradeRequest(
            actor=decider.model_copy(deep=True),
            counterpart=offerer.model_copy(deep=True),
            offer=offer.model_copy(deep=True),
            history=[o.model_copy(deep=True) for o in trade.history],
            config=ctx.config.model_copy(),
        )
        turn = offer.turn
        trade_id = trade.id
        ctx.tracker.submit(
            trade_key(trade_id),
            ctx.epoch,
            ctx.reasoner.decide_trade(request),
            on_complete=lambda decision: self.apply_decision(trade_id, turn, decision),
            on_error=lambda exc: self._decision_failed(trade_id, turn, request, exc),
        )
        return None

    def _decision_failed(self, trade_id: str, turn: int, request: TradeRequest, exc: BaseException) -> None:
        log_error(f"  {LOG_TAG_ERROR} Trade decision for {request.actor.name} failed: {exc}")
        self.ctx.record(f"The trade decision for {request.actor.name} failed; using the fallback answer.", "system")
        self.apply_decision(trade_id, turn, fallback_trade(request))

    def apply_decision(self, trade_id: str, turn: int, decision: TradeDecision) -> None:
        """Apply the decider's answer to the offer made at ``turn``."""
        ctx = self.ctx
        trade = ctx.trades.get(trade_id)
        offer = trade.latest_offer if trade is not None else None
        if trade is None or trade.status != TradeStatus.NEGOTIATING or offer is None or offer.turn != turn or offer.decision is not None:
            ctx.record(f"A late answer for trade {trade_id} was discarded.", "system")
            return

        decider = ctx.actor(offer.to_id)
        offerer = ctx.actor(offer.from_id)
        if decision.decision == TradeDecisionKind.ACCEPT_AND_GATHER and decider is not None:
            commitment = self.open_commitment(decider)
            if commitment is not None:
                decision = TradeDecision(
                    decision=TradeDecisionKind.REJECT,
                    reasoning=f"{decider.name} is still gathering for trade {commitment.id}.",
                )
        offer.decision = decision.decision
        offer.reasoning = decision.reasoning
        trade.decision_maker_id = None
        if decider is None or offerer is None:
            trade.transition(TradeStatus.FAILED, "Trade partner was not found.")
            self.end_negotiation(trade)
            return

        self._log(f"{decider.name} decided to {decision.decision.value}. Reason: {decision.reasoning}", decider.id)
        kind = decision.decision

        if kind == TradeDecisionKind.ACCEPT:
            if _both_can_pay(offerer, decider, offer):
                _exchange(offerer, decider, offer)
                trade.transition(TradeStatus.ACCEPTED, decision.reasoning)
                self._log(f"Trade accepted: {offerer.name} traded {offer.describe()} with {decider.name}.")
            else:
                trade.transition(TradeStatus.FAILED, "A party could not afford the trade.")
                self._log("The trade failed because one party could not afford it.")
            self.end_negotiation(trade)
            return

        if kind == TradeDecisionKind.ACCEPT_AND_GATHER:
            trade.transition(TradeStatus.GATHERING, decision.reasoning)
            decider.pending_trade = PendingTrade(
                trade_id=trade.id,
                partner_id=offerer.id,
                give_resource=offer.take_resource,
                give_amount=offer.take_amount,
                take_resource=offer.give_resource,
                take_amount=offer.give_amount,
            )
            decider.goal = "Fulfilling Trade"
            ctx.remember(
                decider,
                f"I agreed to give {offerer.name} {offer.take_amount} {offer.take_resource.value} once I have gathered it.",
            )
            ctx.remember(offerer, f"{decider.name} agreed to my trade and will deliver later.")
            self._log(f"{decider.name} agrees to the trade, but needs to gather the resources first!", decider.id)
            for party in (decider, offerer):
                party.set_idle()
                ctx.request_decision(party.id)
            return

        if kind == TradeDecisionKind.REJECT:
            trade.transition(TradeStatus.REJECTED, decision.reasoning or "The offer was rejected.")
            self._log(f"{decider.name} rejected the offer from {offerer.name}.")
            self.end_negotiation(trade)
            return

        counter = decision.counter_offer
        if kind == TradeDecisionKind.COUNTER and counter is not None and turn < ctx.config.max_negotiation_turns:
            new_offer = TradeOffer(
                from_id=decider.id,
                to_id=offerer.id,
                give_resource=counter.give_resource,
                give_amount=counter.give_amount,
                take_resource=counter.take_resource,
                take_amount=counter.take_amount,
                turn=turn + 1,
            )
            trade.history.append(new_offer)
            decider.set_action(Action(kind=ActionKind.AWAITING_TRADE_RESPONSE, target_id=trade.id))
            self._log(f"{decider.name} counters: {new_offer.describe()}.", decider.id)
            ctx.queue.queue_event(
                Event(
                    type=EventType.TRADE_NEGOTIATE,
                    actor_id=offerer.id,
                    target_id=trade.id,
                    payload={"turn": new_offer.turn},
                ),
                to_front=True,
            )
            return

        if _both_can_pay(offerer, decider, offer):
            trade.transition(TradeStatus.REJECTED, "Negotiations broke down.")
        else:
            trade.transition(TradeStatus.FAILED, "Negotiations broke down; a party could not afford the terms.")
        self._log("Negotiations have broken down.")
        self.end_negotiation(trade)

    def end_negotiation(self, trade: Trade) -> None:
        """Memories, cooldown and a fresh decision for both parties."""
        ctx = self.ctx
        ctx.queue.remove_where(lambda e: e.type == EventType.TRADE_NEGOTIATE and e.target_id == trade.id)
        parties: Dict[str, str] = {trade.initiator_id: trade.recipient_id, trade.recipient_id: trade.initiator_id}
        for actor_id, partner_id in parties.items():
            actor = ctx.actor(actor_id)
            if actor is None:
                continue
            partner = ctx.actor(partner_id)
            partner_name = partner.name if partner else partner_id
            actor.long_term_memory.last_trade = LastTrade(
                partner_id=partner_id,
                outcome=trade.status.value,
                details=trade.final_reasoning or "",
            )
            ctx.remember(actor, f"My trade with {partner_name} ended: {trade.status.value}.")
            actor.set_idle()
            actor.trade_cooldown = ctx.config.trade_attempt_cooldown
            ctx.request_decision(actor.id)

    def expire(self, trade_id: Optional[str]) -> None:
        """Fail an offer nobody answered within the negotiation timeout."""
        trade = self.ctx.trades.get(trade_id or "")
        if trade is None or trade.status not in OPEN_STATUSES:
            return
        self.ctx.tracker.cancel(trade_key(trade.id))
        trade.transition(TradeStatus.FAILED, "Negotiation timed out.")
        self._log("A trade offer went unanswered and was withdrawn.")
        self.end_negotiation(trade)

    def cancel_for_actor(self, actor_id: str, reason: str) -> None:
        for trade in list(self.ctx.trades.values()):
            if trade.status in OPEN_STATUSES and trade.involves(actor_id):
                self.ctx.tracker.cancel(trade_key(trade.id))
                trade.transition(TradeStatus.FAILED, reason)
                self.end_negotiation(trade)

    # ------------------------------------------------------------------
    # Finalization
    # ------------------------------------------------------------------

    def finalize(self, event: Event, gatherer: Actor) -> Optional[Event]:
        ctx = self.ctx
        pending = gatherer.pending_trade
        if pending is None:
            self._pop_plan_step(gatherer, event)
            ctx.remember(gatherer, "I had no trade left to finalize.")
            gatherer.set_idle()
            return None

        trade = ctx.trades.get(pending.trade_id)
        if trade is None or trade.status != TradeStatus.GATHERING:
            self._pop_plan_step(gatherer, event)
            gatherer.pending_trade = None
            ctx.record(f"{gatherer.name}'s trade commitment is no longer open.", "system", gatherer.id)
            gatherer.set_idle()
            return None

        partner = ctx.actor(pending.partner_id)
        if partner is None:
            self._pop_plan_step(gatherer, event)
            trade.transition(TradeStatus.FAILED, "Trade partner was not found.")
            gatherer.pending_trade = None
            gatherer.goal = "Idle"
            gatherer.set_idle()
            ctx.record(f"{gatherer.name} went to finalize a trade, but the partner was gone.", "system", gatherer.id)
            ctx.request_decision(gatherer.id)
            return None

        if partner.position != gatherer.position:
            gatherer.set_action(Action(kind=ActionKind.MOVING, destination=partner.position, next_event=event))
            ctx.record(f"{gatherer.name} heads to {partner.name} to deliver a trade.", "action", gatherer.id)
            return None

        self._pop_plan_step(gatherer, event)
        trade.transition(TradeStatus.FINALIZING)
        self._log(f"{gatherer.name} is finalizing the trade with {partner.name}.", gatherer.id)
        owed = {pending.give_resource: pending.give_amount}
        due = {pending.take_resource: pending.take_amount}
        if gatherer.can_afford(owed) and partner.can_afford(due):
            gatherer.debit(owed)
            partner.debit(due)
            partner.credit(pending.give_resource, pending.give_amount)
            gatherer.credit(pending.take_resource, pending.take_amount)
            trade.transition(TradeStatus.FULFILLED, "The agreement was successfully completed.")
            self._log("Trade agreement fulfilled successfully!")
        else:
            trade.transition(TradeStatus.FAILED, "A party lacked resources upon finalization.")
            ctx.record("Trade finalization failed. One party did not have the required resources.", "system")

        gatherer.pending_trade = None
        gatherer.goal = "Idle"
        for actor, other in ((gatherer, partner), (partner, gatherer)):
            actor.long_term_memory.last_trade = LastTrade(
                partner_id=other.id, outcome=trade.status.value, details=trade.final_reasoning or ""
            )
            ctx.remember(actor, f"My agreed trade with {other.name} ended: {trade.status.value}.")
        ctx.tracker.cancel(f"goal:{partner.id}")
        partner.goal = "Idle"
        for actor in (gatherer, partner):
            actor.set_idle()
        ctx.request_decision(gatherer.id)
        ctx.request_decision(partner.id)
        return None
