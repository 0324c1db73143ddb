# gridspace

This package keeps track of where entities are in worlds that are laid out on nested integer grids.

Each entity sits in a `GridCell` of its parent grid. The pair (parent grid, cell) gives a `GridHash`. The package builds the following on top of these hashes:

- `gridspace.hash_map.GridHashMap` records which entities are in which cell. It caches links to the occupied cells next to each cell. It answers neighbourhood queries (`nearby`, `within_cube`) and runs breadth-first flood fills (`flood`, with an optional `max_depth`). `just_inserted()` and `just_removed()` report the cells that became occupied or empty since the last `clear_changes()`.
- `gridspace.partition.GridPartitionMap` groups connected occupied cells into `GridPartition`s. It keeps these groups up to date from a `GridHashMap`, one batch of changes at a time, and merges and splits partitions as needed.
- `gridspace.hashing.GridHashPlugin` tracks entities and recomputes a hash whenever an entity's parent or cell changes. It applies the changes to its `map` (a `GridHashMap`) on each `update`. An optional filter can limit it to some entities only.
- `gridspace.validation` checks that a tree of entities follows the allowed layout of grids and of high-precision and low-precision spatial entities. It has `Hierarchy`, `validate_hierarchy` and `HierarchyValidator`.
- `gridspace.timing` holds the timing figures `PropagationStats` and `GridHashStats`, and `SmoothedStat`, a rolling average over the last 64 samples.

## Installation

```
pip install gridspace
```

## Spatial hashing

```python
from gridspace.component import GridCell
from gridspace.hashing import GridHashPlugin
from gridspace.hash_map import entities
from gridspace.partition import GridPartitionMap
from gridspace.timing import GridHashStats

ROOT = 1
plugin = GridHashPlugin()
plugin.track("a", ROOT, GridCell(0, 0, 0))
plugin.track("b", ROOT, GridCell(1, 1, 1))
plugin.track("c", ROOT, GridCell(2, 2, 2))

stats = GridHashStats()
plugin.update(stats)             # returns the entities whose hash changed

grid_map = plugin.map
entry = grid_map.get(plugin.hash_of("a"))
print(set(entities(grid_map.nearby(entry))))                      # {'a', 'b'}
print(set(entities(grid_map.flood(plugin.hash_of("a"), None))))   # {'a', 'b', 'c'}

partitions = GridPartitionMap()
partitions.update(grid_map, stats)
print(len(partitions))                                            # 1
```

### Moving and removing entities

- **Moving:** call `track` again with the entity's new cell (or new parent). The next `update` moves the entity in the map.
- **Removing:** call `untrack` to drop an entity. It leaves the map on the next `update`.

Each `update` clears the map's change sets first. After the update, `grid_map.just_inserted()` and `grid_map.just_removed()` describe that update only. Pass the map to `GridPartitionMap.update` after each `update` so that the partitions follow along.

### Filtering

A filter receives an entity's component names as a `frozenset` and decides whether the plugin hashes that entity:

```python
players = GridHashPlugin(lambda components: "Player" in components)
players.track("p1", ROOT, GridCell.ZERO, {"Player"})   # True: tracked
players.track("rock", ROOT, GridCell.ZERO, ())         # False: ignored
```

### Equality and hashing of cells

- `GridHash` equality compares the cell and the grid.
- `fast_eq` and `FastGridHash` compare only the precomputed 64-bit value, so they can give false positives.

The precomputed value comes from Python's `hash`. It is therefore not stable across interpreter runs when string entities are used.

## Validating a hierarchy

Entities are described by the names of their components, such as `"BigSpace"`, `"Grid"`, `"GridCell"`, `"Transform"`, `"GlobalTransform"`, `"FloatingOrigin"` and `"LowPrecisionRoot"`. A child implicitly carries `"ChildOf"`.

```python
from gridspace.validation import Hierarchy, validate_hierarchy

world = Hierarchy()
world.add("space", {"BigSpace", "Grid", "GlobalTransform"}, None)
world.add("ship", {"GridCell", "Transform", "GlobalTransform"}, "space")
world.add("stray", {"GridCell", "Transform", "GlobalTransform"}, "ship")

for error in validate_hierarchy(world, None):
    print(error.entity, error.parent_node)   # stray Non-root high precision spatial entity
```

Each error is a `ValidationError`. Its message lists the kinds of node that are allowed under the parent and the components the entity has. Errors are also logged through the `gridspace.validation` logger.

A `HierarchyValidator` that is kept between calls reports each entity only once.

## What this package does not do

This package handles only the bookkeeping. It does not:

- compute transforms or global positions;
- choose or move a floating origin;
- run any scheduling loop.

Callers report entity positions with `GridHashPlugin.track` and drive each step themselves with `update`. Nothing is stored to disk.

## Running the tests

```
pip install -e ".[test]"
pytest
```