"""Grid cells and the spatial hashes derived from them."""

from __future__ import annotations

from dataclasses import dataclass
from itertools import product
from typing import ClassVar, Hashable, Iterator

_U64_MASK = (1 << 64) - 1
_MAX_RADIUS = 255


@dataclass(frozen=True, order=True)
class GridCell:
    """Integer index of a cell within a grid."""

    x: int = 0
    y: int = 0
    z: int = 0

    ZERO: ClassVar[GridCell]
    ONE: ClassVar[GridCell]

    def __add__(self, other: GridCell) -> GridCell:
        if not isinstance(other, GridCell):
            return NotImplemented
        return GridCell(self.x + other.x, self.y + other.y, self.z + other.z)

    def __sub__(self, other: GridCell) -> GridCell:
        if not isinstance(other, GridCell):
            return NotImplemented
        return GridCell(self.x - other.x, self.y - other.y, self.z - other.z)

    def min(self, other: GridCell) -> GridCell:
        """Component-wise minimum."""
        return GridCell(min(self.x, other.x), min(self.y, other.y), min(self.z, other.z))

    def max(self, other: GridCell) -> GridCell:
        """Component-wise maximum."""
        return GridCell(max(self.x, other.x), max(self.y, other.y), max(self.z, other.z))


GridCell.ZERO = GridCell(0, 0, 0)
GridCell.ONE = GridCell(1, 1, 1)


class GridHash:
    """A spatial hash shared by all entities in the same cell of the same grid.

    Equality compares the cell and the grid; the precomputed hash is only a
    shortcut and may collide.
    """

    __slots__ = ("_cell", "_grid", "_pre_hash")

    def __init__(self, cell: GridCell, grid: Hashable, pre_hash: int) -> None:
        self._cell = cell
        self._grid = grid
        self._pre_hash = pre_hash

    @classmethod
    def from_parent(cls, parent: Hashable, cell: GridCell) -> GridHash:
        """Build the hash of ``cell`` inside the grid entity ``parent``."""
        pre_hash = hash((parent, cell.x, cell.y, cell.z)) & _U64_MASK
        return cls(cell, parent, pre_hash)

    @property
    def pre_hash(self) -> int:
        """The precomputed 64-bit hash value."""
        return self._pre_hash

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, GridHash):
            return NotImplemented
        return self._cell == other._cell and self._grid == other._grid

    def __hash__(self) -> int:
        return self._pre_hash

    def __repr__(self) -> str:
        return f"GridHash(cell={self._cell!r}, grid={self._grid!r})"

    def fast_eq(self, other: GridHash) -> bool:
        """Compare only the precomputed hashes: false positives are possible."""
        return self._pre_hash == other._pre_hash

    def adjacent(self, cell_radius: int) -> Iterator[GridHash]:
        """Yield the hashes of all cells within ``cell_radius``, except this one."""
        if not 0 <= cell_radius <= _MAX_RADIUS:
            raise ValueError(f"cell_radius must be within 0..={_MAX_RADIUS}")
        span = range(-cell_radius, cell_radius + 1)
        for dz, dy, dx in product(span, repeat=3):
            if dx == dy == dz == 0:
                continue
            yield GridHash.from_parent(self._grid, self._cell + GridCell(dx, dy, dz))

    def cell(self) -> GridCell:
        """The grid cell of this hash."""
        return self._cell

    def grid(self) -> Hashable:
        """The grid entity of this hash."""
        return self._grid


@dataclass(frozen=True, eq=False)
class FastGridHash:
    """A lossy spatial hash that compares only the precomputed value."""

    value: int

    @classmethod
    def from_grid_hash(cls, value: GridHash) -> FastGridHash:
        """Take the precomputed hash of a :class:`GridHash`."""
        return cls(value.pre_hash)

    def __eq__(self, other: object) -> bool:
        if isinstance(other, FastGridHash):
            return self.value == other.value
        if isinstance(other, GridHash):
            return self.value == other.pre_hash
        return NotImplemented

    def __hash__(self) -> int:
        return self.value