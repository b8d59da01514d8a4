"""Procedural island generation.

Random noise is smoothed with a cellular automaton (map edges count against
land so the result pulls away from the border), then only the largest
4-connected landmass is kept.
"""

from __future__ import annotations

import random
from collections import deque
from typing import Iterable, List, Optional, Set, Tuple

from castaway.schemas import Position

from .grid import IslandGrid

SMOOTHING_PASSES = 5
MAX_LAND_RATIO = 0.8


def _smooth(land: List[List[bool]], width: int, height: int) -> List[List[bool]]:
    result = [row[:] for row in land]
    for y in range(height):
        for x in range(width):
            surrounding = 0
            for dy in (-1, 0, 1):
                for dx in (-1, 0, 1):
                    if dx == 0 and dy == 0:
                        continue
                    nx, ny = x + dx, y + dy
                    if 0 <= nx < width and 0 <= ny < height:
                        if land[ny][nx]:
                            surrounding += 1
                    else:
                        surrounding -= 1
            if surrounding > 4:
                result[y][x] = True
            elif surrounding < 3:
                result[y][x] = False
    return result


def _landmasses(land: List[List[bool]], width: int, height: int) -> List[List[Tuple[int, int]]]:
    """Group land cells into 4-connected components (BFS)."""
    visited: Set[Tuple[int, int]] = set()
    masses: List[List[Tuple[int, int]]] = []
    for y in range(height):
        for x in range(width):
            if not land[y][x] or (x, y) in visited:
                continue
            component: List[Tuple[int, int]] = []
            queue = deque([(x, y)])
            visited.add((x, y))
            while queue:
                cx, cy = queue.popleft()
                component.append((cx, cy))
                for nx, ny in ((cx, cy - 1), (cx + 1, cy), (cx, cy + 1), (cx - 1, cy)):
                    if 0 <= nx < width and 0 <= ny < height and land[ny][nx] and (nx, ny) not in visited:
                        visited.add((nx, ny))
                        queue.append((nx, ny))
            masses.append(component)
    return masses


def generate_island(
    width: int,
    height: int,
    rng: Optional[random.Random] = None,
    land_ratio: float = 0.5,
) -> IslandGrid:
    """Generate a single-island grid.

    When smoothing erases all land the attempt is repeated with more initial
    land (up to ``MAX_LAND_RATIO``); past that a single centre tile is used.
    """
    rng = rng or random.Random()
    ratio = land_ratio
    while True:
        land = [[rng.random() < ratio for _ in range(width)] for _ in range(height)]
        for _ in range(SMOOTHING_PASSES):
            land = _smooth(land, width, height)
        masses = _landmasses(land, width, height)
        if masses:
            break
        if ratio >= MAX_LAND_RATIO:
            grid = IslandGrid(width=width, height=height)
            grid.land[height // 2][width // 2] = True
            return grid
        ratio += 0.1

    largest = max(masses, key=len)
    grid = IslandGrid(width=width, height=height)
    for x, y in largest:
        grid.land[y][x] = True
    return grid


def find_random_land_position(
    grid: IslandGrid,
    occupied: Iterable[Position],
    rng: Optional[random.Random] = None,
) -> Optional[Position]:
    """Pick a land cell not in ``occupied``; ``None`` when the island is full."""
    rng = rng or random.Random()
    taken = set(occupied)
    available = [cell for cell in grid.land_cells() if cell not in taken]
    if not available:
        return None
    return rng.choice(available)
