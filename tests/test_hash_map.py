import pytest

from gridspace.component import GridCell, GridHash
from gridspace.hash_map import GridHashEntry, GridHashMap, Neighbor, entities

ROOT = "root"
CHILD_GRID = "child-grid"


def h(x, y, z, grid=ROOT):
    return GridHash.from_parent(grid, GridCell(x, y, z))


def uniform_map(half_extent):
    grid_map = GridHashMap()
    n = 0
    r = range(-half_extent, half_extent)
    for x in r:
        for y in r:
            for z in r:
                grid_map.insert(n, h(x, y, z))
                n += 1
    return grid_map


def test_entity_despawn():
    grid_map = GridHashMap()
    hash = h(0, 0, 0)
    grid_map.insert("e", hash)
    assert grid_map.get(hash) is not None
    grid_map.remove("e")
    assert grid_map.get(hash) is None
    assert not grid_map.contains(hash)


def test_get_hash_groups_same_cell_same_parent():
    grid_map = GridHashMap()
    grid_map.insert("a", h(0, 1, 2))
    grid_map.insert("b", h(0, 1, 2))
    grid_map.insert("c", h(5, 5, 5))
    grid_map.insert("x", h(0, 1, 2, CHILD_GRID))
    grid_map.insert("y", h(0, 1, 2, CHILD_GRID))
    grid_map.insert("z", h(5, 5, 5, CHILD_GRID))
    found = grid_map.get(h(0, 1, 2)).entities
    assert found == {"a", "b"}
    assert grid_map.get(h(0, 1, 2, CHILD_GRID)).entities == {"x", "y"}


def test_neighbors_and_flood():
    grid_map = GridHashMap()
    grid_map.insert("a", h(0, 0, 0))
    grid_map.insert("b", h(1, 1, 1))
    grid_map.insert("c", h(2, 2, 2))
    entry = grid_map.get(h(0, 0, 0))
    near = set(entities(grid_map.nearby(entry)))
    assert "a" in near and "b" in near and "c" not in near
    assert set(entities(entry.nearby(grid_map))) == near
    flooded = set(entities(grid_map.flood(h(0, 0, 0), None)))
    assert flooded == {"a", "b", "c"}


def test_changed_cell_tracking():
    grid_map = GridHashMap()
    a0, b0, c0 = h(0, 0, 0), h(1, 1, 1), h(2, 2, 2)
    grid_map.insert("a", a0)
    grid_map.insert("b", b0)
    grid_map.insert("c", c0)
    assert {a0, b0, c0} <= grid_map.just_inserted()

    grid_map.clear_changes()
    a1, b1 = h(0, 0, 1), h(1, 1, 100)
    grid_map.insert("a", a1)
    grid_map.insert("b", b1)
    grid_map.insert("c", c0)
    assert a0 in grid_map.just_removed()
    assert b0 in grid_map.just_removed()
    assert c0 not in grid_map.just_removed()
    assert a1 in grid_map.just_inserted()
    assert b1 in grid_map.just_inserted()
    assert c0 not in grid_map.just_inserted()


def test_remove_then_add_in_same_update_is_not_a_change():
    grid_map = GridHashMap()
    grid_map.insert("e", h(3, 3, 3))
    grid_map.clear_changes()
    grid_map.remove("e")
    grid_map.insert("e", h(3, 3, 3))
    assert grid_map.just_inserted() == frozenset()
    assert grid_map.just_removed() == frozenset()


def test_add_then_remove_in_same_update_is_not_a_change():
    grid_map = GridHashMap()
    grid_map.insert("e", h(3, 3, 3))
    grid_map.remove("e")
    assert grid_map.just_inserted() == frozenset()
    assert grid_map.just_removed() == frozenset()


def test_uniform_population_1000():
    grid_map = uniform_map(5)
    entry = grid_map.get(h(0, 0, 0))
    assert sum(1 for _ in grid_map.nearby(entry)) == 27
    assert sum(1 for _ in grid_map.flood(h(0, 0, 0), None)) == 1000


def test_occupied_neighbors_are_symmetric_and_cleaned_up():
    grid_map = GridHashMap()
    grid_map.insert("a", h(0, 0, 0))
    grid_map.insert("b", h(1, 0, 0))
    assert grid_map.get(h(0, 0, 0)).occupied_neighbors == [h(1, 0, 0)]
    assert grid_map.get(h(1, 0, 0)).occupied_neighbors == [h(0, 0, 0)]
    grid_map.remove("b")
    assert grid_map.get(h(0, 0, 0)).occupied_neighbors == []


def test_cell_stays_while_other_entities_remain():
    grid_map = GridHashMap()
    grid_map.insert("a", h(0, 0, 0))
    grid_map.insert("b", h(0, 0, 0))
    grid_map.remove("a")
    assert grid_map.get(h(0, 0, 0)).entities == {"b"}


def test_flood_max_depth_stops_traversal():
    grid_map = GridHashMap()
    for x in range(6):
        grid_map.insert(x, h(x, 0, 0))
    visited = [n.hash.cell().x for n in grid_map.flood(h(0, 0, 0), 2)]
    assert visited == [0, 1, 2]


def test_flood_yields_neighbors_in_breadth_first_order():
    grid_map = GridHashMap()
    for x in range(4):
        grid_map.insert(x, h(x, 0, 0))
    result = list(grid_map.flood(h(0, 0, 0)))
    assert all(isinstance(n, Neighbor) for n in result)
    assert [n.hash for n in result] == [h(x, 0, 0) for x in range(4)]


def test_flood_from_empty_cell_is_empty():
    grid_map = GridHashMap()
    grid_map.insert("a", h(0, 0, 0))
    assert list(grid_map.flood(h(9, 9, 9))) == []


def test_within_cube_finds_occupied_cells():
    grid_map = GridHashMap()
    grid_map.insert("a", h(0, 0, 0))
    grid_map.insert("b", h(2, 2, 2))
    grid_map.insert("c", h(5, 5, 5))
    found = set(entities(grid_map.within_cube(h(1, 1, 1), 1)))
    assert found == {"a", "b"}
    assert set(entities(grid_map.within_cube(h(0, 0, 0), 0))) == {"a"}


def test_within_cube_rejects_bad_radius():
    grid_map = GridHashMap()
    with pytest.raises(ValueError):
        list(grid_map.within_cube(h(0, 0, 0), -1))


def test_all_entries_lists_every_cell():
    grid_map = GridHashMap()
    grid_map.insert("a", h(0, 0, 0))
    grid_map.insert("b", h(7, 0, 0))
    cells = {hash: entry.entities for hash, entry in grid_map.all_entries()}
    assert cells == {h(0, 0, 0): {"a"}, h(7, 0, 0): {"b"}}
    assert all(isinstance(e, GridHashEntry) for _, e in grid_map.all_entries())


def test_reinserting_same_cell_is_noop():
    grid_map = GridHashMap()
    grid_map.insert("a", h(0, 0, 0))
    grid_map.clear_changes()
    grid_map.insert("a", h(0, 0, 0))
    assert grid_map.just_inserted() == frozenset()
    assert grid_map.get(h(0, 0, 0)).entities == {"a"}


def test_remove_unknown_entity_does_nothing():
    grid_map = GridHashMap()
    grid_map.insert("a", h(0, 0, 0))
    grid_map.remove("missing")
    assert len(grid_map) == 1