"""Island traversability grid.

The grid is fixed for a session: ``True`` cells are land an actor may stand on,
``False`` cells are water. Placed objects (trees, rocks, shelters) live in
``castaway.world`` and are layered on top.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Iterable, Iterator, List, Sequence

from castaway.schemas import Position


@dataclass
class IslandGrid:
    """2D boolean land mask indexed as ``land[y][x]``."""

    width: int
    height: int
    land: List[List[bool]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if not self.land:
            self.land = [[False] * self.width for _ in range(self.height)]
        if len(self.land) != self.height or any(len(row) != self.width for row in self.land):
            raise ValueError(
                f"Land mask must be {self.height} rows of {self.width} cells; "
                f"got {len(self.land)} rows"
            )

    @classmethod
    def from_rows(cls, rows: Sequence[str], land_char: str = "#") -> "IslandGrid":
        """Build a grid from strings such as ``["..#..", ".###."]``."""
        height = len(rows)
        width = len(rows[0]) if rows else 0
        land = [[char == land_char for char in row] for row in rows]
        return cls(width=width, height=height, land=land)

    @classmethod
    def all_land(cls, width: int, height: int) -> "IslandGrid":
        return cls(width=width, height=height, land=[[True] * width for _ in range(height)])

    def in_bounds(self, position: Position) -> bool:
        return 0 <= position.x < self.width and 0 <= position.y < self.height

    def is_land(self, position: Position) -> bool:
        return self.in_bounds(position) and self.land[position.y][position.x]

    def land_cells(self) -> Iterator[Position]:
        for y, row in enumerate(self.land):
            for x, is_land in enumerate(row):
                if is_land:
                    yield Position(x=x, y=y)

    def land_count(self) -> int:
        return sum(sum(1 for cell in row if cell) for row in self.land)

    def render_ascii(self, markers: Iterable[tuple[Position, str]] = ()) -> str:
        """Render the island as text, ``#`` for land and ``~`` for water.

        ``markers`` overlays single characters (actors, objects) on top.
        """
        canvas = [["#" if cell else "~" for cell in row] for row in self.land]
        for position, glyph in markers:
            if self.in_bounds(position):
                canvas[position.y][position.x] = glyph[:1]
        return "\n".join("".join(row) for row in canvas)
