import pytest

from castaway.cognition.fallback import DEFAULT_INVENTION_ICON
from castaway.config import SimulationConfig
from castaway.durations import effective_productivity
from castaway.inventions import invention_key
from castaway.schemas import (
    ActionKind,
    Event,
    EventType,
    GenericInventionType,
    InventionSpec,
    ProductivityBoost,
    Resource,
)


def _always() -> SimulationConfig:
    return SimulationConfig(invention_chance=1.0, shelter_catastrophe_chance=0.0)


def _spec(name="Sharp Adze") -> InventionSpec:
    return InventionSpec(
        name=name,
        description="A stone blade lashed to a handle.",
        cost={Resource.WOOD: 2, Resource.STONE: 1, Resource.FISH: 0},
        effect=ProductivityBoost(resource=Resource.WOOD, multiplier=1.5),
    )


@pytest.mark.asyncio
async def test_discovery_registers_invention(make_harness, make_actor, scripted_reasoner):
    robinson = make_actor("robinson")
    harness = make_harness([robinson], config=_always(), reasoner=scripted_reasoner(spec=_spec()))

    assert harness.discovery.roll(["robinson"]) == ["robinson"]
    await harness.settle()

    (invention,) = harness.ctx.inventions.values()
    assert invention.name == "Sharp Adze"
    assert invention.cost == {Resource.WOOD: 2, Resource.STONE: 1}
    assert invention.category in GenericInventionType
    assert invention.svg_icon == "<circle r='4' />"
    assert "Robinson had an idea for a new invention: Sharp Adze!" in harness.ctx.log.messages()
    assert "I had an idea for a new invention: Sharp Adze." in robinson.short_term_memory


@pytest.mark.asyncio
async def test_one_discovery_in_flight_per_actor(make_harness, make_actor, scripted_reasoner):
    harness = make_harness([make_actor("robinson")], config=_always(), reasoner=scripted_reasoner(spec=_spec()))

    assert harness.discovery.roll(["robinson"]) == ["robinson"]
    assert harness.ctx.tracker.in_flight(invention_key("robinson"))
    assert harness.discovery.roll(["robinson"]) == []

    await harness.settle()

    assert harness.reasoner.spec_calls == 1
    assert len(harness.ctx.inventions) == 1
    assert harness.discovery.roll(["robinson"]) == ["robinson"]
    await harness.settle()


@pytest.mark.asyncio
async def test_icon_failure_keeps_invention_with_default_icon(make_harness, make_actor, scripted_reasoner):
    reasoner = scripted_reasoner(spec=_spec(), icon=RuntimeError("icon service down"))
    harness = make_harness([make_actor("friday")], config=_always(), reasoner=reasoner)

    harness.discovery.roll(["friday"])
    await harness.settle()

    (invention,) = harness.ctx.inventions.values()
    assert invention.svg_icon == DEFAULT_INVENTION_ICON


@pytest.mark.asyncio
async def test_failed_specification_fizzles_out(make_harness, make_actor, scripted_reasoner):
    reasoner = scripted_reasoner(spec=RuntimeError("provider down"))
    harness = make_harness([make_actor("friday")], config=_always(), reasoner=reasoner)

    harness.discovery.roll(["friday"])
    await harness.settle()

    assert harness.ctx.inventions == {}
    assert "An idea for an invention fizzled out." in harness.ctx.log.messages()
    assert not harness.ctx.tracker.in_flight(invention_key("friday"))


@pytest.mark.asyncio
async def test_empty_specification_registers_nothing(make_harness, make_actor, scripted_reasoner):
    harness = make_harness([make_actor("friday")], config=_always(), reasoner=scripted_reasoner(spec=None))

    harness.discovery.roll(["friday"])
    await harness.settle()

    assert harness.ctx.inventions == {}
    assert not any("invention" in m for m in harness.ctx.log.messages())


def test_zero_chance_never_rolls(make_harness, make_actor):
    harness = make_harness([make_actor("robinson")])

    assert harness.discovery.roll(["robinson"]) == []
    assert harness.ctx.tracker.pending_keys() == []


@pytest.mark.asyncio
async def test_built_invention_boosts_gathering(make_harness, make_actor, scripted_reasoner):
    robinson = make_actor("robinson", inventory={Resource.WOOD: 3, Resource.STONE: 1})
    harness = make_harness([robinson], config=_always(), reasoner=scripted_reasoner(spec=_spec()))
    harness.discovery.roll(["robinson"])
    await harness.settle()
    (invention,) = harness.ctx.inventions.values()
    harness.ctx.config.invention_chance = 0.0

    harness.ctx.queue.queue_event(
        Event(type=EventType.BUILD_INVENTION, actor_id="robinson", payload={"invention_id": invention.id})
    )
    harness.dispatcher.process()
    assert robinson.action.kind == ActionKind.BUILDING_INVENTION

    robinson.action_progress = harness.ctx.config.build_time - 1
    harness.scheduler.advance()

    assert robinson.inventions == [invention.id]
    assert invention.owner_ids == ["robinson"]
    assert robinson.inventory == {Resource.WOOD: 1}
    assert robinson.is_idle
    assert effective_productivity(robinson, Resource.WOOD, harness.ctx.inventions) == pytest.approx(1.5)
