"""Island grid and procedural generation."""

from .grid import IslandGrid
from .generator import find_random_land_position, generate_island

__all__ = [
    "IslandGrid",
    "generate_island",
    "find_random_land_position",
]
