"""End-to-end tests for the Simulation session and control surface."""

import asyncio
from collections import Counter

import pytest

from castaway import Simulation
from castaway.cognition import FallbackReasoner
from castaway.config import SimulationConfig
from castaway.scenario import ActorSpec, ObjectSpec, Scenario
from castaway.schemas import EventType, ObjectType, Position, Resource


def _scenario() -> Scenario:
    return Scenario(
        name="Test Cove",
        island=["########"] * 8,
        random_placement=False,
        actors=[
            ActorSpec(id="robinson", name="Robinson", position=Position(x=1, y=1), inventory={Resource.WOOD: 3}),
            ActorSpec(id="friday", name="Friday", position=Position(x=6, y=6), inventory={Resource.COCONUT: 3}),
        ],
        objects=[
            ObjectSpec(id="tree-1", type=ObjectType.TREE, position=Position(x=2, y=5)),
            ObjectSpec(id="tree-2", type=ObjectType.TREE, position=Position(x=5, y=2)),
            ObjectSpec(id="rock-1", type=ObjectType.ROCK, position=Position(x=4, y=4)),
            ObjectSpec(id="water-1", type=ObjectType.WATER, position=Position(x=0, y=7)),
        ],
    )


def _config(**overrides) -> SimulationConfig:
    values = {"map_width": 8, "map_height": 8, "invention_chance": 0.0, "shelter_catastrophe_chance": 0.0}
    values.update(overrides)
    return SimulationConfig(**values)


@pytest.mark.asyncio
async def test_fallback_run_keeps_invariants():
    simulation = Simulation(_config(), _scenario(), FallbackReasoner(), seed=3, echo_log=False)

    for _ in range(72):
        await simulation.step(settle=True)
        snapshot = simulation.snapshot()
        for actor in snapshot.actors:
            assert all(amount >= 0 for amount in actor.inventory.values())
            assert 0 <= actor.stats.energy <= 100
            assert 0 <= actor.stats.hunger <= 100
        decides = Counter(e.actor_id for e in snapshot.queue if e.type == EventType.DECIDE_GOAL)
        assert all(count <= 1 for count in decides.values())

    snapshot = simulation.snapshot()
    assert snapshot.ticks == 72
    assert snapshot.time_label == "Day 4, 00:00"
    assert any(actor.last_completed_action for actor in snapshot.actors)
    await simulation.close()


@pytest.mark.asyncio
async def test_reset_discards_answers_from_previous_epoch(scripted_reasoner):
    gate = asyncio.Event()
    reasoner = scripted_reasoner(gate=gate)
    simulation = Simulation(_config(), _scenario(), reasoner, seed=5, echo_log=False)

    simulation.tick()
    simulation.tick()
    assert simulation.tracker.pending_keys() == ["goal:robinson"]

    simulation.reset()
    assert simulation.epoch == 2
    before = [actor.model_dump() for actor in simulation.snapshot().actors]

    gate.set()
    await simulation.settle()

    after = simulation.snapshot()
    assert [actor.model_dump() for actor in after.actors] == before
    assert after.ticks == 0
    assert "A stale response (goal:robinson) from a previous session was discarded." in [
        entry.message for entry in after.log
    ]
    await simulation.close()


@pytest.mark.asyncio
async def test_update_config_validates_and_resets():
    simulation = Simulation(_config(), _scenario(), FallbackReasoner(), seed=1, echo_log=False)
    await simulation.run(3, settle=True)

    updated = simulation.update_config(move_time=3, tick_interval_seconds=0.0)

    assert updated.move_time == 3
    assert updated.tick_interval_seconds == 0.01
    assert simulation.context.ticks == 0
    assert simulation.epoch == 2

    with pytest.raises(ValueError):
        simulation.update_config(warp_speed=9)

    simulation.restore_defaults()
    assert simulation.config.move_time == SimulationConfig().move_time
    assert simulation.epoch == 3
    await simulation.close()


@pytest.mark.asyncio
async def test_start_and_stop_run_loop():
    simulation = Simulation(_config(tick_interval_seconds=0.01), _scenario(), FallbackReasoner(), echo_log=False)

    assert simulation.start() is True
    assert simulation.start() is False
    assert simulation.running
    await asyncio.sleep(0.1)
    simulation.stop()
    ticks = simulation.context.ticks

    assert not simulation.running
    assert ticks > 0
    await asyncio.sleep(0.05)
    assert simulation.context.ticks == ticks
    await simulation.close()


@pytest.mark.asyncio
async def test_snapshot_is_detached_from_live_state():
    simulation = Simulation(_config(), _scenario(), FallbackReasoner(), seed=2, echo_log=False)

    snapshot = simulation.snapshot()
    snapshot.actors[0].inventory[Resource.WOOD] = 99

    assert simulation.context.actors["robinson"].inventory[Resource.WOOD] == 3
    assert len(snapshot.island) == 8
    assert snapshot.season.value == "Spring"
    await simulation.close()
