"""Placed objects on the island and spatial queries over them."""

from __future__ import annotations

import random
from typing import Dict, Iterable, List, Optional

from .environment import IslandGrid, find_random_land_position
from .schemas import ObjectType, Position, Resource, WorldObject

# Which object type supplies each gatherable resource.
SOURCE_TYPES: Dict[Resource, ObjectType] = {
    Resource.WOOD: ObjectType.TREE,
    Resource.COCONUT: ObjectType.TREE,
    Resource.STONE: ObjectType.ROCK,
    Resource.FISH: ObjectType.WATER,
}

# Resource gathered when a GATHER event names a source but no resource.
DEFAULT_YIELD: Dict[ObjectType, Resource] = {
    ObjectType.TREE: Resource.COCONUT,
    ObjectType.ROCK: Resource.STONE,
    ObjectType.WATER: Resource.FISH,
}

TREE_RESOURCES = {Resource.WOOD: 50, Resource.COCONUT: 10}


def shelter_id(owner_id: str) -> str:
    return f"shelter_{owner_id}"


class World:
    """Island grid plus the mutable set of objects placed on it."""

    def __init__(self, grid: IslandGrid, objects: Iterable[WorldObject] = ()) -> None:
        self.grid = grid
        self.objects: Dict[str, WorldObject] = {obj.id: obj for obj in objects}

    def get(self, object_id: Optional[str]) -> Optional[WorldObject]:
        if object_id is None:
            return None
        return self.objects.get(object_id)

    def add(self, obj: WorldObject) -> None:
        self.objects[obj.id] = obj

    def remove(self, object_id: str) -> Optional[WorldObject]:
        return self.objects.pop(object_id, None)

    def of_type(self, object_type: ObjectType) -> List[WorldObject]:
        return [obj for obj in self.objects.values() if obj.type == object_type]

    def shelter_of(self, owner_id: str) -> Optional[WorldObject]:
        return self.objects.get(shelter_id(owner_id))

    def is_at_own_shelter(self, owner_id: str, position: Position) -> bool:
        shelter = self.shelter_of(owner_id)
        return shelter is not None and shelter.position == position

    def occupied_positions(self, extra: Iterable[Position] = ()) -> List[Position]:
        return [obj.position for obj in self.objects.values()] + list(extra)

    def find_closest(self, object_type: ObjectType, origin: Position) -> Optional[WorldObject]:
        """Nearest object of ``object_type`` by straight-line distance."""
        candidates = self.of_type(object_type)
        if not candidates:
            return None
        return min(candidates, key=lambda obj: obj.position.distance_to(origin))

    def find_source(self, resource: Resource, origin: Position) -> Optional[WorldObject]:
        object_type = SOURCE_TYPES.get(resource)
        if object_type is None:
            return None
        return self.find_closest(object_type, origin)

    def find_empty_spot(self, origin: Position, actor_positions: Iterable[Position] = ()) -> Optional[Position]:
        """First free land cell among ``origin`` and its four neighbours.

        A cell is free when it is land, inside the map, and holds neither an
        object nor another actor.
        """
        taken = set(self.occupied_positions(actor_positions))
        for candidate in [origin, *origin.neighbours()]:
            if self.grid.is_land(candidate) and candidate not in taken:
                return candidate
        return None

    def spawn_tree(self, rng: random.Random, tree_id: str, actor_positions: Iterable[Position] = ()) -> Optional[WorldObject]:
        position = find_random_land_position(self.grid, self.occupied_positions(actor_positions), rng)
        if position is None:
            return None
        tree = WorldObject(id=tree_id, type=ObjectType.TREE, position=position, resources=dict(TREE_RESOURCES))
        self.add(tree)
        return tree

    def snapshot(self) -> List[WorldObject]:
        return [obj.model_copy(deep=True) for obj in self.objects.values()]
