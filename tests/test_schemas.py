"""Unit tests for the core schema building blocks."""

import pytest

from castaway.schemas import (
    InsufficientResourcesError,
    Position,
    Resource,
    TradeOffer,
)


def test_debit_is_all_or_nothing(make_actor):
    actor = make_actor("robinson", inventory={Resource.WOOD: 4, Resource.STONE: 1})

    with pytest.raises(InsufficientResourcesError) as excinfo:
        actor.debit({Resource.WOOD: 2, Resource.STONE: 3})

    assert excinfo.value.shortfall == {Resource.STONE: 2}
    assert actor.inventory == {Resource.WOOD: 4, Resource.STONE: 1}

    actor.debit({Resource.WOOD: 4})
    assert actor.inventory == {Resource.STONE: 1}


def test_credit_ignores_non_positive_amounts(make_actor):
    actor = make_actor("friday")
    actor.credit(Resource.FISH, 0)
    actor.credit(Resource.FISH, 2)
    assert actor.inventory == {Resource.FISH: 2}


def test_short_term_memory_keeps_newest_first(make_actor):
    actor = make_actor("friday")
    for n in range(4):
        actor.remember(f"note {n}", limit=3)
    assert actor.short_term_memory == ["note 3", "note 2", "note 1"]


def test_offer_amounts_must_be_positive():
    with pytest.raises(ValueError):
        TradeOffer(
            from_id="a",
            to_id="b",
            give_resource=Resource.WOOD,
            give_amount=0,
            take_resource=Resource.FISH,
            take_amount=1,
        )


def test_positions_are_hashable_values():
    assert {Position(x=1, y=2), Position(x=1, y=2)} == {Position(x=1, y=2)}
    assert str(Position(x=3, y=4)) == "(3, 4)"
    assert Position(x=0, y=0).distance_to(Position(x=3, y=4)) == 5
