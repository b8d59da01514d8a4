"""
Scenario definitions and loading.

A scenario is the initial condition of an island: who lives there, what they
carry and how good they are at each job, and which trees, rocks and fishing
spots exist. Scenarios are data, so they can be kept as JSON files:

```json
{
  "name": "Two castaways",
  "actors": [
    {"id": "robinson", "name": "Robinson Crusoe", "position": {"x": 3, "y": 3},
     "energy": 100, "hunger": 80, "inventory": {"Wood": 3},
     "productivity": {"Wood": 1.2, "Stone": 1.1}}
  ],
  "objects": [{"id": "tree-1", "type": "Tree", "position": {"x": 2, "y": 8}}],
  "island": ["....", ".##.", ".##.", "...."]
}
```

Without an ``island`` block a map is generated. With ``random_placement`` on
(the default) actors and objects are moved to random free land cells so the
layout always fits the generated island; their listed positions only matter
for hand-drawn islands.
"""

import random
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, Field

from .config import Config, SimulationConfig
from .environment import IslandGrid, find_random_land_position, generate_island
from .schemas import Actor, ObjectType, Position, Resource, Stats, WorldObject
from .world import TREE_RESOURCES, World

OBJECT_RESOURCES: Dict[ObjectType, Dict[Resource, int]] = {
    ObjectType.TREE: TREE_RESOURCES,
    ObjectType.ROCK: {Resource.STONE: 100},
    ObjectType.WATER: {Resource.FISH: 1000},
}


class ScenarioError(ValueError):
    """Raised when a scenario cannot be placed on its island."""


class ActorSpec(BaseModel):
    id: str
    name: str
    position: Position = Field(default_factory=lambda: Position(x=0, y=0))
    energy: float = 100
    hunger: float = 80
    leisure_threshold: Optional[float] = None
    inventory: Dict[Resource, int] = Field(default_factory=dict)
    productivity: Dict[Resource, float] = Field(default_factory=dict)


class ObjectSpec(BaseModel):
    id: str
    type: ObjectType
    position: Position
    resources: Optional[Dict[Resource, int]] = None


class Scenario(BaseModel):
    name: str = "Castaway Island"
    description: str = ""
    actors: List[ActorSpec]
    objects: List[ObjectSpec] = Field(default_factory=list)
    island: Optional[List[str]] = Field(None, description="Rows of the map, '#' for land")
    random_placement: bool = True


def default_scenario() -> Scenario:
    """Robinson and Friday on a freshly generated island."""
    return Scenario(
        name="Robinson and Friday",
        description="Two castaways with complementary skills.",
        actors=[
            ActorSpec(
                id="robinson",
                name="Robinson Crusoe",
                position=Position(x=3, y=3),
                energy=100,
                hunger=80,
                leisure_threshold=10,
                inventory={Resource.WOOD: 3},
                productivity={
                    Resource.WOOD: 1.2,
                    Resource.STONE: 1.1,
                    Resource.COCONUT: 1.2,
                    Resource.FISH: 0.7,
                },
            ),
            ActorSpec(
                id="friday",
                name="Friday",
                position=Position(x=17, y=17),
                energy=100,
                hunger=85,
                leisure_threshold=8,
                inventory={Resource.COCONUT: 3, Resource.WOOD: 1},
                productivity={
                    Resource.WOOD: 0.7,
                    Resource.STONE: 0.8,
                    Resource.COCONUT: 0.8,
                    Resource.FISH: 1.3,
                },
            ),
        ],
        objects=[
            ObjectSpec(id="tree-1", type=ObjectType.TREE, position=Position(x=2, y=8)),
            ObjectSpec(id="tree-2", type=ObjectType.TREE, position=Position(x=18, y=5)),
            ObjectSpec(id="tree-3", type=ObjectType.TREE, position=Position(x=10, y=15)),
            ObjectSpec(id="tree-4", type=ObjectType.TREE, position=Position(x=5, y=18)),
            ObjectSpec(id="rock-1", type=ObjectType.ROCK, position=Position(x=8, y=2)),
            ObjectSpec(id="rock-2", type=ObjectType.ROCK, position=Position(x=15, y=12)),
            ObjectSpec(id="water-1", type=ObjectType.WATER, position=Position(x=0, y=10)),
            ObjectSpec(id="water-2", type=ObjectType.WATER, position=Position(x=1, y=10)),
            ObjectSpec(id="water-3", type=ObjectType.WATER, position=Position(x=19, y=10)),
            ObjectSpec(id="water-4", type=ObjectType.WATER, position=Position(x=19, y=11)),
        ],
    )


def load_scenario(path: Path) -> Scenario:
    """Load a scenario from a JSON file.

    Args:
        path: A file path, or a bare name looked up in ``Config.SCENARIOS_DIR``.

    Raises:
        FileNotFoundError: If no such scenario file exists.
        pydantic.ValidationError: If the file does not describe a scenario.
    """
    path = Path(path)
    if not path.exists() and not path.suffix:
        path = Config.SCENARIOS_DIR / f"{path.name}.json"
    if not path.exists():
        raise FileNotFoundError(f"Scenario not found at {path}")
    return Scenario.model_validate_json(path.read_text())


def list_scenarios(scenarios_dir: Optional[Path] = None) -> List[str]:
    directory = scenarios_dir or Config.SCENARIOS_DIR
    if not directory.exists():
        return []
    return sorted(f.stem for f in directory.glob("*.json") if not f.name.startswith("_"))


def _place(
    grid: IslandGrid,
    wanted: Position,
    taken: List[Position],
    rng: random.Random,
    randomize: bool,
    label: str,
) -> Position:
    if not randomize and grid.is_land(wanted) and wanted not in taken:
        return wanted
    position = find_random_land_position(grid, taken, rng)
    if position is None:
        raise ScenarioError(f"No free land left on the island to place {label}.")
    return position


def build_world(
    scenario: Scenario,
    config: SimulationConfig,
    rng: Optional[random.Random] = None,
) -> Tuple[World, Dict[str, Actor]]:
    """Create the world and actors a simulation starts from."""
    rng = rng or random.Random()
    if scenario.island:
        grid = IslandGrid.from_rows(scenario.island)
    else:
        grid = generate_island(config.map_width, config.map_height, rng)

    taken: List[Position] = []
    actors: Dict[str, Actor] = {}
    for spec in scenario.actors:
        position = _place(grid, spec.position, taken, rng, scenario.random_placement, spec.name)
        taken.append(position)
        threshold = spec.leisure_threshold if spec.leisure_threshold is not None else config.leisure_threshold
        actors[spec.id] = Actor(
            id=spec.id,
            name=spec.name,
            position=position,
            stats=Stats(energy=spec.energy, hunger=spec.hunger, leisure_threshold=threshold),
            inventory={resource: amount for resource, amount in spec.inventory.items() if amount > 0},
            productivity=dict(spec.productivity),
        )

    objects: List[WorldObject] = []
    for spec in scenario.objects:
        position = _place(grid, spec.position, taken, rng, scenario.random_placement, spec.id)
        taken.append(position)
        resources = spec.resources if spec.resources is not None else OBJECT_RESOURCES.get(spec.type, {})
        objects.append(WorldObject(id=spec.id, type=spec.type, position=position, resources=dict(resources)))

    return World(grid, objects), actors
