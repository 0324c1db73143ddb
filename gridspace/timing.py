"""Timing statistics for transform propagation and spatial hashing."""

from __future__ import annotations

import operator
from collections import deque
from dataclasses import dataclass
from datetime import timedelta
from functools import reduce
from typing import Callable, Deque, Generic, TypeVar

_ZERO = timedelta(0)

#: Number of samples kept by a :class:`SmoothedStat`.
SMOOTHING_WINDOW = 64


@dataclass
class PropagationStats:
    """Aggregate runtime statistics for transform propagation."""

    grid_recentering: timedelta = _ZERO
    local_origin_propagation: timedelta = _ZERO
    high_precision_propagation: timedelta = _ZERO
    low_precision_root_tagging: timedelta = _ZERO
    low_precision_propagation: timedelta = _ZERO
    total: timedelta = _ZERO

    def __add__(self, other: PropagationStats) -> PropagationStats:
        if not isinstance(other, PropagationStats):
            return NotImplemented
        return PropagationStats(
            grid_recentering=self.grid_recentering + other.grid_recentering,
            local_origin_propagation=self.local_origin_propagation
            + other.local_origin_propagation,
            high_precision_propagation=self.high_precision_propagation
            + other.high_precision_propagation,
            low_precision_root_tagging=self.low_precision_root_tagging
            + other.low_precision_root_tagging,
            low_precision_propagation=self.low_precision_propagation
            + other.low_precision_propagation,
            total=self.total + other.total,
        )

    def __truediv__(self, divisor: int) -> PropagationStats:
        """Divide every duration by an integer, truncating."""
        return PropagationStats(
            grid_recentering=self.grid_recentering // divisor,
            local_origin_propagation=self.local_origin_propagation // divisor,
            high_precision_propagation=self.high_precision_propagation // divisor,
            low_precision_root_tagging=self.low_precision_root_tagging // divisor,
            low_precision_propagation=self.low_precision_propagation // divisor,
            total=self.total // divisor,
        )

    def update_total(self) -> None:
        """Recompute ``total`` from the individual stages."""
        self.total = (
            self.grid_recentering
            + self.high_precision_propagation
            + self.local_origin_propagation
            + self.low_precision_propagation
            + self.low_precision_root_tagging
        )


@dataclass
class GridHashStats:
    """Aggregate runtime statistics across all spatial hashing plugins."""

    moved_entities: int = 0
    hash_update_duration: timedelta = _ZERO
    map_update_duration: timedelta = _ZERO
    update_partition: timedelta = _ZERO
    total: timedelta = _ZERO

    def __add__(self, other: GridHashStats) -> GridHashStats:
        if not isinstance(other, GridHashStats):
            return NotImplemented
        return GridHashStats(
            moved_entities=self.moved_entities + other.moved_entities,
            hash_update_duration=self.hash_update_duration + other.hash_update_duration,
            map_update_duration=self.map_update_duration + other.map_update_duration,
            update_partition=self.update_partition + other.update_partition,
            total=self.total + other.total,
        )

    def __truediv__(self, divisor: int) -> GridHashStats:
        """Divide every field by an integer, truncating."""
        return GridHashStats(
            moved_entities=self.moved_entities // divisor,
            hash_update_duration=self.hash_update_duration // divisor,
            map_update_duration=self.map_update_duration // divisor,
            update_partition=self.update_partition // divisor,
            total=self.total // divisor,
        )

    def update_total(self) -> None:
        """Recompute ``total`` from the individual stages."""
        self.total = (
            self.hash_update_duration + self.map_update_duration + self.update_partition
        )


T = TypeVar("T")


class SmoothedStat(Generic[T]):
    """A moving average over the most recent samples of a statistic."""

    def __init__(self, factory: Callable[[], T]) -> None:
        self._factory = factory
        self._queue: Deque[T] = deque(maxlen=SMOOTHING_WINDOW)
        self._avg: T = factory()

    def __len__(self) -> int:
        return len(self._queue)

    def push(self, value: T) -> SmoothedStat[T]:
        """Add a sample, dropping the oldest one once the window is full."""
        self._queue.appendleft(value)
        return self

    def compute_avg(self) -> SmoothedStat[T]:
        """Recompute the average over the stored samples."""
        total = reduce(operator.add, self._queue, self._factory())
        self._avg = total / len(self._queue)
        return self

    def avg(self) -> T:
        """The smoothed average value."""
        return self._avg