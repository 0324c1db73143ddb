"""Groups of connected occupied grid cells, kept up to date as cells change."""

from __future__ import annotations

import time
from dataclasses import dataclass
from datetime import timedelta
from typing import Hashable, Iterable, Iterator, Optional

from .component import GridCell, GridHash
from .hash_map import GridHashMap
from .timing import GridHashStats

_BOUND = 10_000_000_000


@dataclass(frozen=True, order=True)
class GridPartitionId:
    """Uniquely identifies a partition within a :class:`GridPartitionMap`."""

    id: int

    def __hash__(self) -> int:
        return hash(self.id)


class GridPartition:
    """An island of adjacent occupied cells, disconnected from all other cells."""

    #: Tables smaller than this are folded into an existing table when merging;
    #: larger ones are kept as separate tables.
    MIN_TABLE_SIZE = 20_000

    def __init__(
        self,
        grid: Hashable,
        tables: Iterable[set[GridHash]],
        min: GridCell,
        max: GridCell,
    ) -> None:
        self._grid = grid
        self._tables: list[set[GridHash]] = list(tables)
        self._min = min
        self._max = max

    def __repr__(self) -> str:
        return (
            f"GridPartition(grid={self._grid!r}, cells={self.num_cells()}, "
            f"min={self._min!r}, max={self._max!r})"
        )

    def contains(self, hash: GridHash) -> bool:
        """Whether ``hash`` is in this partition."""
        return any(hash in table for table in self._tables)

    def __contains__(self, hash: object) -> bool:
        return any(hash in table for table in self._tables)

    def __iter__(self) -> Iterator[GridHash]:
        for table in self._tables:
            yield from table

    def num_cells(self) -> int:
        """The total number of cells in this partition."""
        return sum(len(table) for table in self._tables)

    def grid(self) -> Hashable:
        """The grid this partition resides in."""
        return self._grid

    def min(self) -> GridCell:
        """The minimum cell extent of the partition."""
        return self._min

    def max(self) -> GridCell:
        """The maximum cell extent of the partition."""
        return self._max

    def is_empty(self) -> bool:
        """Whether the partition holds no cells."""
        return not self._tables

    def _smallest_table(self) -> Optional[int]:
        if not self._tables:
            return None
        return min(range(len(self._tables)), key=lambda i: len(self._tables[i]))

    def insert(self, hash: GridHash) -> None:
        """Add a cell to the partition, widening its bounds."""
        if self.contains(hash):
            return
        index = self._smallest_table()
        if index is None:
            self._tables.append({hash})
        else:
            self._tables[index].add(hash)
        self._min = self._min.min(hash.cell())
        self._max = self._max.max(hash.cell())

    def extend(self, other: GridPartition) -> None:
        """Absorb every cell of ``other``, which must be in the same grid."""
        if self._grid != other._grid:
            raise ValueError("cannot merge partitions of different grids")
        for table in other._tables:
            if len(table) < self.MIN_TABLE_SIZE:
                index = self._smallest_table()
                if index is None:
                    self._tables.append(table)
                else:
                    self._tables[index].update(table)
            else:
                self._tables.append(table)
        other._tables = []
        self._min = self._min.min(other._min)
        self._max = self._max.max(other._max)

    def remove(self, hash: GridHash) -> bool:
        """Remove a cell from the partition; return whether it was present."""
        for index, table in enumerate(self._tables):
            if hash in table:
                table.discard(hash)
                if not table:
                    self._tables[index] = self._tables[-1]
                    self._tables.pop()
                break
        else:
            return False

        cell = hash.cell()
        lo, hi = self._min, self._max
        if lo.x == cell.x or lo.y == cell.y or lo.z == cell.z:
            self._compute_min()
        if hi.x == cell.x or hi.y == cell.y or hi.z == cell.z:
            self._compute_max()
        return True

    def _compute_min(self) -> None:
        result: Optional[GridCell] = None
        for hash in self:
            result = hash.cell() if result is None else result.min(hash.cell())
        self._min = result if result is not None else GridCell(_BOUND, _BOUND, _BOUND)

    def _compute_max(self) -> None:
        result: Optional[GridCell] = None
        for hash in self:
            result = hash.cell() if result is None else result.max(hash.cell())
        self._max = result if result is not None else GridCell(-_BOUND, -_BOUND, -_BOUND)


class GridPartitionMap:
    """Groups the occupied cells of a :class:`GridHashMap` into partitions."""

    def __init__(self) -> None:
        self._partitions: dict[GridPartitionId, GridPartition] = {}
        self._reverse: dict[GridHash, GridPartitionId] = {}
        self._next_partition = 0

    def __repr__(self) -> str:
        return f"GridPartitionMap(partitions={len(self._partitions)})"

    def resolve(self, partition_id: GridPartitionId) -> Optional[GridPartition]:
        """The partition with this id, or ``None``."""
        return self._partitions.get(partition_id)

    def get(self, hash: GridHash) -> Optional[GridPartitionId]:
        """The id of the partition holding ``hash``, or ``None``."""
        return self._reverse.get(hash)

    def __iter__(self) -> Iterator[GridPartitionId]:
        return iter(self._partitions)

    def __len__(self) -> int:
        return len(self._partitions)

    def items(self) -> Iterator[tuple[GridPartitionId, GridPartition]]:
        """All partitions with their ids."""
        return iter(self._partitions.items())

    def _insert(self, partition_id: GridPartitionId, cells: set[GridHash]) -> None:
        if not cells:
            return
        first = next(iter(cells))
        lo = hi = first.cell()
        for hash in cells:
            self._reverse[hash] = partition_id
            lo = lo.min(hash.cell())
            hi = hi.max(hash.cell())
        self._partitions[partition_id] = GridPartition(first.grid(), [cells], lo, hi)

    def _push(self, partition_id: GridPartitionId, hash: GridHash) -> None:
        partition = self._partitions.get(partition_id)
        if partition is None:
            return
        partition.insert(hash)
        self._reverse[hash] = partition_id

    def _remove(self, hash: GridHash) -> None:
        old_id = self._reverse.pop(hash, None)
        if old_id is None:
            return
        partition = self._partitions.get(old_id)
        if partition is not None and partition.remove(hash) and partition.is_empty():
            del self._partitions[old_id]

    def _take_next_id(self) -> GridPartitionId:
        partition_id = GridPartitionId(self._next_partition)
        self._next_partition += 1
        return partition_id

    def _merge(self, partition_ids: list[GridPartitionId]) -> None:
        candidates = [pid for pid in partition_ids if pid in self._partitions]
        if not candidates:
            return
        largest = max(candidates, key=lambda pid: self._partitions[pid].num_cells())
        target = self._partitions[largest]
        for pid in partition_ids:
            if pid == largest:
                continue
            partition = self._partitions.pop(pid, None)
            if partition is None:
                continue
            for hash in partition:
                self._reverse[hash] = largest
            target.extend(partition)

    def update(self, hash_map: GridHashMap, stats: Optional[GridHashStats] = None) -> None:
        """Apply the cells just inserted into and removed from ``hash_map``."""
        start = time.perf_counter()

        for added in hash_map.just_inserted():
            # The partition map is consulted instead of the hash map so that a cell
            # vacated in this same update still links the new cell to its partition.
            neighbors = [
                self._reverse[hash] for hash in added.adjacent(1) if hash in self._reverse
            ]
            if neighbors:
                self._push(neighbors[0], added)
                self._merge(neighbors)
            else:
                self._insert(self._take_next_id(), {added})

        removed_cells = hash_map.just_removed()
        for removed in removed_cells:
            self._remove(removed)

        adjacent_to_removals: dict[GridPartitionId, set[GridHash]] = {}
        for removed in removed_cells:
            for hash in removed.adjacent(1):
                if not hash_map.contains(hash):
                    continue
                partition_id = self._reverse.get(hash)
                if partition_id is not None:
                    adjacent_to_removals.setdefault(partition_id, set()).add(hash)

        splits = [
            (partition_id, pieces)
            for partition_id, affected in adjacent_to_removals.items()
            if (pieces := self._find_split(hash_map, affected)) is not None
        ]

        for original_id, pieces in splits:
            pieces.sort(key=len)
            self._insert(original_id, pieces.pop())
            for piece in pieces:
                self._insert(self._take_next_id(), piece)

        if stats is not None:
            stats.update_partition += timedelta(seconds=time.perf_counter() - start)

    @staticmethod
    def _find_split(
        hash_map: GridHashMap, affected: set[GridHash]
    ) -> Optional[list[set[GridHash]]]:
        """Return the disconnected pieces, or ``None`` if all cells stay connected."""
        pieces: list[set[GridHash]] = []
        while affected:
            this_cell = next(iter(affected))
            for neighbor in hash_map.flood(this_cell):
                affected.discard(neighbor.hash)
                if not affected:
                    break
            if not affected and not pieces:
                return None
            pieces.append({neighbor.hash for neighbor in hash_map.flood(this_cell)})
        return pieces