"""Validation of high-precision entity hierarchies.

Entities are described by the names of the components they carry. An entity
with a parent implicitly carries :data:`CHILD_OF`.
"""

from __future__ import annotations

import logging
from typing import ClassVar, Hashable, Iterable, Optional

_log = logging.getLogger(__name__)

GRID_CELL = "GridCell"
TRANSFORM = "Transform"
GLOBAL_TRANSFORM = "GlobalTransform"
BIG_SPACE = "BigSpace"
GRID = "Grid"
FLOATING_ORIGIN = "FloatingOrigin"
CHILD_OF = "ChildOf"
LOW_PRECISION_ROOT = "LowPrecisionRoot"


class Hierarchy:
    """A forest of entities, each with a set of component names."""

    def __init__(self) -> None:
        self._components: dict[Hashable, frozenset[str]] = {}
        self._parents: dict[Hashable, Hashable] = {}
        self._children: dict[Hashable, list[Hashable]] = {}

    def __len__(self) -> int:
        return len(self._components)

    def __contains__(self, entity: object) -> bool:
        return entity in self._components

    def add(
        self,
        entity: Hashable,
        components: Iterable[str] = (),
        parent: Optional[Hashable] = None,
    ) -> Hashable:
        """Add ``entity`` with its components, optionally as a child of ``parent``."""
        if entity in self._components:
            raise ValueError(f"entity {entity!r} already exists")
        if parent is not None and parent not in self._components:
            raise KeyError(parent)
        self._components[entity] = frozenset(components)
        self._children[entity] = []
        if parent is not None:
            self._parents[entity] = parent
            self._children[parent].append(entity)
        return entity

    def children(self, entity: Hashable) -> list[Hashable]:
        """The children of ``entity`` in the order they were added."""
        return list(self._children[entity])

    def roots(self) -> list[Hashable]:
        """All entities without a parent, in the order they were added."""
        return [entity for entity in self._components if entity not in self._parents]

    def components(self, entity: Hashable) -> frozenset[str]:
        """The component names of ``entity``, including :data:`CHILD_OF` for children."""
        components = self._components[entity]
        if entity in self._parents:
            return components | {CHILD_OF}
        return components


class ValidationError(Exception):
    """An entity whose components fit none of the nodes allowed under its parent."""

    def __init__(
        self,
        entity: Hashable,
        parent_node: str,
        allowed: Iterable[str],
        components: Iterable[str],
    ) -> None:
        self.entity = entity
        self.parent_node = parent_node
        self.allowed = tuple(allowed)
        self.components = tuple(sorted(components))
        possibilities = "".join(f"  - {name}\n" for name in self.allowed)
        found = "".join(f"  - {name}\n" for name in self.components)
        super().__init__(
            f"Entity {entity!r} is a child of a {parent_node!r}, but the components on "
            "this entity do not match any of the allowed archetypes for children of "
            f"this parent.\n\nBecause it is a child of a {parent_node!r}, the entity must "
            f"be one of the following:\n{possibilities}\nHowever, the entity has the "
            f"following components:\n{found}\nCommon errors include spawning an entity "
            "with a GridCell as a child of an entity without a Grid."
        )


class ValidHierarchyNode:
    """A kind of node in a valid hierarchy: required and forbidden components,
    and the kinds of nodes allowed as its children."""

    required: ClassVar[frozenset[str]] = frozenset()
    forbidden: ClassVar[frozenset[str]] = frozenset()
    label: ClassVar[str] = ""

    def matches(self, components: Iterable[str]) -> bool:
        """Whether an entity with ``components`` is this kind of node."""
        present = frozenset(components)
        return self.required <= present and not (self.forbidden & present)

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        """The kinds of nodes that may be children of this node."""
        return []

    def name(self) -> str:
        """A unique, readable name of this kind of node."""
        return self.label or type(self).__qualname__

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, ValidHierarchyNode):
            return NotImplemented
        return type(self) is type(other)

    def __hash__(self) -> int:
        return hash(type(self))

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class SpatialHierarchyRoot(ValidHierarchyNode):
    """The top of the world: every parentless entity is its child."""

    label = "Root"

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [RootFrame(), RootSpatialLowPrecision(), AnyNonSpatial()]


class AnyNonSpatial(ValidHierarchyNode):
    label = "Any non-spatial entity"
    forbidden = frozenset(
        {GRID_CELL, TRANSFORM, GLOBAL_TRANSFORM, BIG_SPACE, GRID, FLOATING_ORIGIN}
    )

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [AnyNonSpatial()]


class RootFrame(ValidHierarchyNode):
    label = "Root of a BigSpace"
    required = frozenset({BIG_SPACE, GRID, GLOBAL_TRANSFORM})
    forbidden = frozenset({GRID_CELL, TRANSFORM, CHILD_OF, FLOATING_ORIGIN})

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [
            ChildFrame(),
            ChildSpatialLowPrecision(),
            ChildSpatialHighPrecision(),
            AnyNonSpatial(),
        ]


class RootSpatialLowPrecision(ValidHierarchyNode):
    label = "Root of a Transform hierarchy at the root of the tree outside of any BigSpace"
    required = frozenset({TRANSFORM, GLOBAL_TRANSFORM})
    forbidden = frozenset({GRID_CELL, BIG_SPACE, GRID, CHILD_OF, FLOATING_ORIGIN})

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [ChildSpatialLowPrecision(), AnyNonSpatial()]


class ChildFrame(ValidHierarchyNode):
    label = "Non-root Grid"
    required = frozenset({GRID, GRID_CELL, TRANSFORM, GLOBAL_TRANSFORM, CHILD_OF})
    forbidden = frozenset({BIG_SPACE})

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [
            ChildFrame(),
            ChildRootSpatialLowPrecision(),
            ChildSpatialHighPrecision(),
            AnyNonSpatial(),
        ]


class ChildRootSpatialLowPrecision(ValidHierarchyNode):
    label = "Root of a low-precision Transform hierarchy, within a BigSpace"
    required = frozenset({TRANSFORM, GLOBAL_TRANSFORM, CHILD_OF, LOW_PRECISION_ROOT})
    forbidden = frozenset({GRID_CELL, BIG_SPACE, GRID, FLOATING_ORIGIN})

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [ChildSpatialLowPrecision(), AnyNonSpatial()]


class ChildSpatialLowPrecision(ValidHierarchyNode):
    label = "Non-root low-precision spatial entity"
    required = frozenset({TRANSFORM, GLOBAL_TRANSFORM, CHILD_OF})
    forbidden = frozenset({GRID_CELL, BIG_SPACE, GRID, FLOATING_ORIGIN})

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [ChildSpatialLowPrecision(), AnyNonSpatial()]


class ChildSpatialHighPrecision(ValidHierarchyNode):
    label = "Non-root high precision spatial entity"
    required = frozenset({GRID_CELL, TRANSFORM, GLOBAL_TRANSFORM, CHILD_OF})
    forbidden = frozenset({BIG_SPACE, GRID})

    def allowed_child_nodes(self) -> list[ValidHierarchyNode]:
        return [ChildRootSpatialLowPrecision(), AnyNonSpatial()]


class HierarchyValidator:
    """Walks a hierarchy from its roots and reports misplaced entities.

    Each entity is reported at most once over the lifetime of the validator.
    """

    def __init__(self, root: Optional[ValidHierarchyNode] = None) -> None:
        self.root = root if root is not None else SpatialHierarchyRoot()
        self._allowed_cache: dict[str, list[ValidHierarchyNode]] = {}
        self._reported: set[Hashable] = set()

    def _allowed(self, node: ValidHierarchyNode) -> list[ValidHierarchyNode]:
        allowed = self._allowed_cache.get(node.name())
        if allowed is None:
            allowed = node.allowed_child_nodes()
            self._allowed_cache[node.name()] = allowed
        return allowed

    def validate(self, world: Hierarchy) -> list[ValidationError]:
        """Validate ``world``, returning errors for entities not yet reported."""
        errors: list[ValidationError] = []
        stack: list[tuple[ValidHierarchyNode, list[Hashable]]] = [
            (self.root, world.roots())
        ]
        while stack:
            parent_node, children = stack.pop()
            allowed = self._allowed(parent_node)
            for entity in children:
                components = world.components(entity)
                matched = next((node for node in allowed if node.matches(components)), None)
                if matched is not None:
                    grandchildren = world.children(entity)
                    if grandchildren:
                        stack.append((matched, grandchildren))
                    continue
                if entity in self._reported:
                    continue
                error = ValidationError(
                    entity,
                    parent_node.name(),
                    (node.name() for node in allowed),
                    components,
                )
                _log.error("hierarchy validation error: %s", error)
                self._reported.add(entity)
                errors.append(error)
        return errors


def validate_hierarchy(
    world: Hierarchy, root: Optional[ValidHierarchyNode] = None
) -> list[ValidationError]:
    """Validate ``world`` once with a fresh validator and return all errors."""
    return HierarchyValidator(root).validate(world)