from datetime import timedelta

import pytest

from gridspace.timing import GridHashStats, PropagationStats, SmoothedStat


def _prop(ms: int) -> PropagationStats:
    d = timedelta(milliseconds=ms)
    return PropagationStats(d, d, d, d, d, d)


def test_propagation_default_is_zero():
    stats = PropagationStats()
    stats.update_total()
    assert stats.total == timedelta(0)


def test_propagation_update_total_single_stage():
    d = timedelta(milliseconds=7)
    stats = PropagationStats(low_precision_root_tagging=d)
    stats.update_total()
    assert stats.total == d


def test_propagation_update_total_matches_sum_of_added_stages():
    a = PropagationStats(grid_recentering=timedelta(milliseconds=3))
    b = PropagationStats(high_precision_propagation=timedelta(milliseconds=4))
    combined = a + b
    combined.update_total()
    a.update_total()
    b.update_total()
    assert combined.total == a.total + b.total


def test_propagation_add_then_divide_round_trips():
    a = _prop(10)
    assert (a + a) / 2 == a


def test_propagation_divide_by_zero_raises():
    with pytest.raises(ZeroDivisionError):
        _prop(1) / 0


def test_grid_hash_stats_add_and_divide():
    a = GridHashStats(moved_entities=6, hash_update_duration=timedelta(milliseconds=2))
    assert (a + a) / 2 == a


def test_grid_hash_stats_division_truncates():
    stats = GridHashStats(moved_entities=5) / 2
    assert stats.moved_entities == 2


def test_grid_hash_stats_update_total():
    d = timedelta(microseconds=9)
    stats = GridHashStats(update_partition=d)
    stats.update_total()
    assert stats.total == d


def test_smoothed_initial_avg_from_factory():
    smoothed = SmoothedStat(GridHashStats)
    assert smoothed.avg() == GridHashStats()


def test_smoothed_average_of_identical_samples():
    smoothed = SmoothedStat(PropagationStats)
    sample = _prop(4)
    for _ in range(5):
        smoothed.push(sample)
    assert smoothed.compute_avg() is smoothed
    assert smoothed.avg() == sample


def test_smoothed_window_drops_oldest_sample():
    smoothed = SmoothedStat(GridHashStats)
    smoothed.push(GridHashStats(moved_entities=640))
    for _ in range(63):
        smoothed.push(GridHashStats())
    assert smoothed.compute_avg().avg().moved_entities == 10
    smoothed.push(GridHashStats())
    assert len(smoothed) == 64
    assert smoothed.compute_avg().avg().moved_entities == 0


def test_smoothed_compute_avg_empty_raises():
    with pytest.raises(ZeroDivisionError):
        SmoothedStat(GridHashStats).compute_avg()