"""Keeps the spatial hashes of tracked entities and their hash map up to date."""

from __future__ import annotations

import enum
import time
from datetime import timedelta
from typing import Callable, Hashable, Iterable, Optional

from .component import GridCell, GridHash
from .hash_map import GridHashMap
from .timing import GridHashStats

EntityFilter = Callable[[frozenset], bool]


class GridHashMapSystem(enum.Enum):
    """The stages of a spatial hashing update, in the order they run."""

    UPDATE_HASH = "update_hash"
    UPDATE_MAP = "update_map"
    UPDATE_PARTITION = "update_partition"


class GridHashPlugin:
    """Computes the :class:`GridHash` of spatial entities and maintains a :class:`GridHashMap`.

    Entities are reported with :meth:`track` whenever their parent grid or cell
    may have changed, and with :meth:`untrack` when they are despawned. Changes
    are applied in batches by :meth:`update`. An optional ``entity_filter``
    receives an entity's component names and decides whether the entity takes
    part in this plugin's hashing at all.
    """

    def __init__(self, entity_filter: Optional[EntityFilter] = None) -> None:
        self.entity_filter = entity_filter
        self.map = GridHashMap()
        self._spatial: dict[Hashable, tuple[Hashable, GridCell]] = {}
        self._hashes: dict[Hashable, GridHash] = {}
        self._pending: dict[Hashable, None] = {}
        self._removed: dict[Hashable, None] = {}

    def __repr__(self) -> str:
        return f"GridHashPlugin(entities={len(self._spatial)}, map={self.map!r})"

    def __len__(self) -> int:
        return len(self._spatial)

    def _accepts(self, components: Iterable[str]) -> bool:
        if self.entity_filter is None:
            return True
        return bool(self.entity_filter(frozenset(components)))

    def track(
        self,
        entity: Hashable,
        parent: Hashable,
        cell: GridCell,
        components: Iterable[str] = (),
    ) -> bool:
        """Record the parent grid and cell of ``entity``.

        Returns whether the entity is tracked by this plugin. An entity that no
        longer passes the filter is untracked.
        """
        if not self._accepts(components):
            self.untrack(entity)
            return False
        location = (parent, cell)
        if self._spatial.get(entity) == location and entity not in self._removed:
            return True
        self._spatial[entity] = location
        self._pending[entity] = None
        self._removed.pop(entity, None)
        return True

    def untrack(self, entity: Hashable) -> bool:
        """Stop tracking ``entity``; it leaves the map on the next update.

        Returns whether the entity was tracked.
        """
        if entity not in self._spatial:
            return False
        del self._spatial[entity]
        self._pending.pop(entity, None)
        self._hashes.pop(entity, None)
        self._removed[entity] = None
        return True

    def hash_of(self, entity: Hashable) -> Optional[GridHash]:
        """The hash computed for ``entity`` by the last update, or ``None``."""
        return self._hashes.get(entity)

    def update(self, stats: Optional[GridHashStats] = None) -> list[Hashable]:
        """Recompute changed hashes and apply them to the map.

        Returns the entities whose hash changed, i.e. that moved to another cell
        or were hashed for the first time.
        """
        start = time.perf_counter()
        updated: list[Hashable] = []
        for entity in self._pending:
            parent, cell = self._spatial[entity]
            new_hash = GridHash.from_parent(parent, cell)
            old_hash = self._hashes.get(entity)
            self._hashes[entity] = new_hash
            if old_hash is None or old_hash != new_hash:
                updated.append(entity)
        self._pending.clear()
        hashed = time.perf_counter()
        if stats is not None:
            stats.hash_update_duration += timedelta(seconds=hashed - start)

        self.map.clear_changes()
        for entity in self._removed:
            self.map.remove(entity)
        self._removed.clear()
        if stats is not None:
            stats.moved_entities = len(updated)
        for entity in updated:
            self.map.insert(entity, self._hashes[entity])
        if stats is not None:
            stats.map_update_duration += timedelta(seconds=time.perf_counter() - hashed)
        return updated