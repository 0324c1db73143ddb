"""A spatial hash map relating entities to the grid cells they occupy."""

from __future__ import annotations

from collections import deque
from dataclasses import dataclass, field
from itertools import chain
from typing import Hashable, Iterable, Iterator, NamedTuple, Optional, Union

from .component import GridHash


@dataclass(eq=False)
class GridHashEntry:
    """The entities in one grid cell, plus the occupied cells next to it."""

    entities: set[Hashable] = field(default_factory=set)
    occupied_neighbors: list[GridHash] = field(default_factory=list)

    def _drop_neighbor(self, hash: GridHash) -> None:
        # Recently added cells are the most likely to be removed, so search from the end.
        for index in range(len(self.occupied_neighbors) - 1, -1, -1):
            if self.occupied_neighbors[index] == hash:
                del self.occupied_neighbors[index]
                return
        raise LookupError(f"{hash!r} is not an occupied neighbor")

    def nearby(self, grid_map: GridHashMap) -> Iterator[GridHashEntry]:
        """Iterate over this cell and its occupied neighbors in ``grid_map``."""
        return grid_map.nearby(self)


class Neighbor(NamedTuple):
    """A cell visited by a flood fill: its hash and its entry."""

    hash: GridHash
    entry: GridHashEntry

    @property
    def entities(self) -> set[Hashable]:
        """The entities located in this cell."""
        return self.entry.entities


def entities(entries: Iterable[Union[GridHashEntry, Neighbor]]) -> Iterator[Hashable]:
    """Flatten entries or flood-fill neighbors into the entities they hold."""
    for item in entries:
        yield from item.entities


class GridHashMap:
    """Maps spatial hashes to the entities inside them, with neighbor lookups."""

    def __init__(self) -> None:
        self._cells: dict[GridHash, GridHashEntry] = {}
        self._reverse: dict[Hashable, GridHash] = {}
        self._just_inserted: set[GridHash] = set()
        self._just_removed: set[GridHash] = set()

    def __len__(self) -> int:
        return len(self._cells)

    def __repr__(self) -> str:
        return f"GridHashMap(cells={len(self._cells)}, entities={len(self._reverse)})"

    def get(self, hash: GridHash) -> Optional[GridHashEntry]:
        """The entry of an occupied cell, or ``None``."""
        return self._cells.get(hash)

    def contains(self, hash: GridHash) -> bool:
        """Whether the cell is occupied."""
        return hash in self._cells

    def __contains__(self, hash: object) -> bool:
        return hash in self._cells

    def all_entries(self) -> Iterator[tuple[GridHash, GridHashEntry]]:
        """All occupied cells and their entries, in arbitrary order."""
        return iter(self._cells.items())

    def nearby(self, entry: GridHashEntry) -> Iterator[GridHashEntry]:
        """Iterate over ``entry`` and the entries of its occupied neighbors."""
        yield entry
        for neighbor_hash in entry.occupied_neighbors:
            yield self._cells[neighbor_hash]

    def within_cube(self, center: GridHash, radius: int) -> Iterator[GridHashEntry]:
        """Iterate over the occupied cells of the cube around ``center``."""
        for hash in chain((center,), center.adjacent(radius)):
            entry = self._cells.get(hash)
            if entry is not None:
                yield entry

    def flood(self, seed: GridHash, max_depth: Optional[int] = None) -> Iterator[Neighbor]:
        """Breadth-first traversal of connected occupied cells starting at ``seed``.

        Traversal stops at the first cell whose offset from the seed exceeds
        ``max_depth`` on any axis.
        """
        start = seed.cell()
        for neighbor in self._contiguous(seed):
            if max_depth is not None:
                dist = neighbor.hash.cell() - start
                if not (dist.x <= max_depth and dist.y <= max_depth and dist.z <= max_depth):
                    return
            yield neighbor

    def _contiguous(self, seed: GridHash) -> Iterator[Neighbor]:
        entry = self._cells.get(seed)
        if entry is None:
            return
        queue = deque([Neighbor(seed, entry)])
        visited = {seed}
        while queue:
            current = queue.popleft()
            for neighbor_hash in current.entry.occupied_neighbors:
                if neighbor_hash in visited:
                    continue
                visited.add(neighbor_hash)
                queue.append(Neighbor(neighbor_hash, self._cells[neighbor_hash]))
            yield current

    def just_inserted(self) -> frozenset[GridHash]:
        """Cells that became occupied since the last :meth:`clear_changes`."""
        return frozenset(self._just_inserted)

    def just_removed(self) -> frozenset[GridHash]:
        """Cells that became empty since the last :meth:`clear_changes`."""
        return frozenset(self._just_removed)

    def clear_changes(self) -> None:
        """Start a new update: forget which cells were just inserted or removed."""
        self._just_inserted.clear()
        self._just_removed.clear()

    def insert(self, entity: Hashable, hash: GridHash) -> None:
        """Place ``entity`` in the cell ``hash``, moving it if it was elsewhere."""
        old_hash = self._reverse.get(entity)
        if old_hash is not None:
            if old_hash == hash:
                return
            self._remove_from_cell(entity, old_hash)
        self._reverse[entity] = hash
        self._add_to_cell(entity, hash)

    def remove(self, entity: Hashable) -> None:
        """Remove ``entity`` from the map, if it is present."""
        old_hash = self._reverse.pop(entity, None)
        if old_hash is not None:
            self._remove_from_cell(entity, old_hash)

    def _add_to_cell(self, entity: Hashable, hash: GridHash) -> None:
        entry = self._cells.get(hash)
        if entry is not None:
            entry.entities.add(entity)
            return
        occupied = []
        for neighbor_hash in hash.adjacent(1):
            neighbor = self._cells.get(neighbor_hash)
            if neighbor is not None:
                neighbor.occupied_neighbors.append(hash)
                occupied.append(neighbor_hash)
        self._cells[hash] = GridHashEntry({entity}, occupied)
        if hash in self._just_removed:
            # Removed and re-added within one update: it existed all along.
            self._just_removed.discard(hash)
        else:
            self._just_inserted.add(hash)

    def _remove_from_cell(self, entity: Hashable, old_hash: GridHash) -> None:
        entry = self._cells.get(old_hash)
        if entry is None:
            return
        entry.entities.discard(entity)
        if entry.entities:
            return
        del self._cells[old_hash]
        for neighbor_hash in entry.occupied_neighbors:
            self._cells[neighbor_hash]._drop_neighbor(old_hash)
        if old_hash in self._just_inserted:
            # Added and removed within one update: it never existed.
            self._just_inserted.discard(old_hash)
        else:
            self._just_removed.add(old_hash)