from castaway.cognition.prompts import DEFAULT_PROMPTS, PromptTemplate
from castaway.cognition.reasoner import GoalRequest, TradeRequest
from castaway.cognition.renderers import (
    CRITICAL_ALERT,
    goal_prompt_values,
    invention_spec_values,
    render_prompt,
    trade_prompt_values,
)
from castaway.config import SimulationConfig
from castaway.schemas import GenericInventionType, PendingTrade, Resource, Season, TradeOffer


def _goal_request(actor, **extra):
    return GoalRequest(
        actor=actor,
        config=SimulationConfig(),
        time_label="Day 1, 08:00",
        season=Season.SPRING,
        **extra,
    )


def test_placeholders_fill_both_parts():
    tmpl = PromptTemplate(name="t", system="I am {{ name }}.", user="Hunger {{hunger}}")
    rendered = render_prompt(tmpl, {"name": "Robinson", "hunger": 40})
    assert rendered.system == "I am Robinson."
    assert rendered.user == "Hunger 40"


def test_unknown_placeholder_is_left_visible():
    tmpl = PromptTemplate(name="t", system="S", user="{{missing}} and {{name}}")
    rendered = render_prompt(tmpl, {"name": "Friday"})
    assert rendered.user == "{{missing}} and Friday"


def test_goal_prompt_carries_actor_state(make_actor):
    actor = make_actor("robinson", inventory={Resource.WOOD: 4})
    actor.pending_trade = PendingTrade(
        trade_id="trade-2",
        partner_id="friday",
        give_resource=Resource.WOOD,
        give_amount=3,
        take_resource=Resource.FISH,
        take_amount=1,
    )
    peer = make_actor("friday", 5, 5)

    rendered = render_prompt(DEFAULT_PROMPTS.get("goal"), goal_prompt_values(_goal_request(actor, peers=[peer])))

    assert rendered.system.startswith("You are Robinson, a castaway")
    assert "Day 1, 08:00" in rendered.system
    text = rendered.system + rendered.user
    assert "Wood: 4" in text
    assert "you owe 3 Wood" in text
    assert "Friday (id: friday)" in text
    assert CRITICAL_ALERT not in text
    assert "{{" not in text


def test_critical_alert_is_injected_when_starving(make_actor):
    actor = make_actor("robinson", hunger=10)
    values = goal_prompt_values(_goal_request(actor))
    assert values["critical_alert"] == CRITICAL_ALERT


def test_trade_prompt_marks_final_turn(make_actor):
    robinson = make_actor("robinson")
    friday = make_actor("friday")
    offer = TradeOffer(
        from_id="robinson",
        to_id="friday",
        give_resource=Resource.WOOD,
        give_amount=2,
        take_resource=Resource.COCONUT,
        take_amount=1,
        turn=4,
    )
    request = TradeRequest(actor=friday, counterpart=robinson, offer=offer, history=[offer], config=SimulationConfig())

    values = trade_prompt_values(request)
    rendered = render_prompt(DEFAULT_PROMPTS.get("trade"), values)

    assert values["give"] == "2 Wood"
    assert "final turn" in values["counter_hint"]
    assert "{{" not in rendered.system + rendered.user


def test_invention_category_is_humanised():
    assert invention_spec_values(GenericInventionType.FOOD_PRESERVATION) == {"category": "food preservation"}
