"""
valpipe Dependency Topology

Directed acyclic graph over registered rule (or validator) names.

- Forward edges come from each entry's declared dependencies; reverse
  edges are rebuilt on every structural change.
- Insertions that would close a cycle are rejected and the graph is
  restored to its previous shape.
- Topological order is memoized and recomputed lazily with Kahn's
  algorithm; ties go to higher priority, then earlier registration.
- Levels group names whose dependencies all lie in earlier levels, so
  every member of a level may run concurrently.

The graph tolerates dependencies on names it does not hold; they do not
constrain ordering. Such dangling edges appear only when an entry is
removed, because ValidationPipeline refuses to register an entry whose
dependencies are not registered yet (or added in the same batch).
"""

from __future__ import annotations
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional, Sequence, Set, Tuple
from heapq import heappush, heappop
import logging

from .errors import ConfigurationError, CyclicDependencyError

logger = logging.getLogger(__name__)


# =============================================================================
# DEPENDENCY NODE
# =============================================================================

@dataclass
class DependencyNode:
    """A node in the dependency graph."""
    name: str
    dependencies: Set[str] = field(default_factory=set)
    dependents: Set[str] = field(default_factory=set)  # Reverse edges
    priority: int = 0
    sequence: int = 0  # Registration order

    # Computed
    order: int = 0
    level: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "dependencies": sorted(self.dependencies),
            "dependents": sorted(self.dependents),
            "priority": self.priority,
            "order": self.order,
            "level": self.level,
        }


GraphEntry = Tuple[str, Iterable[str], int]


# =============================================================================
# DEPENDENCY GRAPH
# =============================================================================

class DependencyGraph:
    """Dependency graph with cycle rejection and lazy topological ordering."""

    def __init__(self):
        self._nodes: Dict[str, DependencyNode] = {}
        self._sequence: int = 0
        self._order: Optional[List[str]] = None
        self._levels: Optional[List[List[str]]] = None

    # -------------------------------------------------------------------------
    # Structure
    # -------------------------------------------------------------------------

    def add(self, name: str, dependencies: Iterable[str] = (), priority: int = 0) -> DependencyNode:
        """
        Add a single node.

        Raises:
            ConfigurationError: the name is already present
            CyclicDependencyError: the new edges would close a cycle
        """
        self.add_many([(name, dependencies, priority)])
        return self._nodes[name]

    def add_many(self, entries: Sequence[GraphEntry]) -> None:
        """Add several nodes atomically: either all are inserted or none."""
        names = [name for name, _, _ in entries]
        duplicates = [n for n in names if n in self._nodes or names.count(n) > 1]
        if duplicates:
            raise ConfigurationError(
                f"Dependency graph already contains: {sorted(set(duplicates))}",
                code="VALIDATION_DUPLICATE_NAME",
                details={"names": sorted(set(duplicates))},
            )

        sequence_before = self._sequence
        for name, dependencies, priority in entries:
            self._sequence += 1
            self._nodes[name] = DependencyNode(
                name=name,
                dependencies=set(dependencies),
                priority=priority,
                sequence=self._sequence,
            )

        cycle = self._find_cycle()
        if cycle:
            for name in names:
                del self._nodes[name]
            self._sequence = sequence_before
            self._rebuild_reverse_edges()
            logger.warning(f"Rejected {names}: cycle {' -> '.join(cycle)}")
            raise CyclicDependencyError(cycle)

        self._rebuild_reverse_edges()
        self._invalidate()
        logger.debug(f"Dependency graph: added {names} ({len(self._nodes)} nodes)")

    def remove(self, name: str) -> bool:
        """Remove a node; dependents keep their (now dangling) declaration."""
        if name not in self._nodes:
            return False
        dependents = self._nodes[name].dependents
        if dependents:
            logger.warning(f"Removing '{name}' still depended on by {sorted(dependents)}")
        del self._nodes[name]
        self._rebuild_reverse_edges()
        self._invalidate()
        return True

    def clear(self) -> None:
        self._nodes.clear()
        self._invalidate()

    def _rebuild_reverse_edges(self) -> None:
        for node in self._nodes.values():
            node.dependents.clear()
        for node_id, node in self._nodes.items():
            for dep_id in node.dependencies:
                if dep_id in self._nodes:
                    self._nodes[dep_id].dependents.add(node_id)

    def _invalidate(self) -> None:
        self._order = None
        self._levels = None

    def _find_cycle(self) -> Optional[List[str]]:
        """Detect a cycle using DFS with a recursion stack."""
        visited: Set[str] = set()
        rec_stack: Set[str] = set()

        def dfs(node_id: str, path: List[str]) -> Optional[List[str]]:
            visited.add(node_id)
            rec_stack.add(node_id)
            path.append(node_id)

            for dep_id in sorted(self._nodes[node_id].dependencies):
                if dep_id not in self._nodes:
                    continue
                if dep_id in rec_stack:
                    return path[path.index(dep_id):] + [dep_id]
                if dep_id not in visited:
                    cycle = dfs(dep_id, path)
                    if cycle:
                        return cycle

            path.pop()
            rec_stack.remove(node_id)
            return None

        for node_id in self._nodes:
            if node_id not in visited:
                cycle = dfs(node_id, [])
                if cycle:
                    return cycle
        return None

    # -------------------------------------------------------------------------
    # Ordering
    # -------------------------------------------------------------------------

    def _sort_key(self, name: str) -> Tuple[int, int]:
        node = self._nodes[name]
        return (-node.priority, node.sequence)

    def topological_order(self) -> List[str]:
        """Deterministic dependency-respecting order (memoized)."""
        if self._order is None:
            self._order = self._kahn(set(self._nodes))
            for rank, name in enumerate(self._order):
                self._nodes[name].order = rank
        return list(self._order)

    def _kahn(self, subset: Set[str]) -> List[str]:
        in_degree = {
            n: len(self._nodes[n].dependencies & subset) for n in subset
        }
        heap: List[Tuple[int, int, str]] = []
        for name, degree in in_degree.items():
            if degree == 0:
                heappush(heap, (*self._sort_key(name), name))

        order: List[str] = []
        while heap:
            *_, name = heappop(heap)
            order.append(name)
            for dependent in self._nodes[name].dependents:
                if dependent not in subset:
                    continue
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heappush(heap, (*self._sort_key(dependent), dependent))

        if len(order) != len(subset):
            # Unreachable while insertion rejects cycles
            raise CyclicDependencyError(sorted(subset - set(order)))
        return order

    def levels(self) -> List[List[str]]:
        """Execution levels over the whole graph (memoized)."""
        if self._levels is None:
            self._levels = self._group_levels(self.topological_order())
            for depth, level in enumerate(self._levels):
                for name in level:
                    self._nodes[name].level = depth
        return [list(level) for level in self._levels]

    def execution_plan(self, names: Iterable[str]) -> List[List[str]]:
        """
        Levels restricted to `names`.

        Dependencies outside the subset are treated as satisfied, so a
        rule whose prerequisite does not apply still runs.
        """
        subset = {n for n in names if n in self._nodes}
        order = [n for n in self.topological_order() if n in subset]
        return self._group_levels(order)

    def _group_levels(self, order: List[str]) -> List[List[str]]:
        members = set(order)
        depth: Dict[str, int] = {}
        levels: List[List[str]] = []
        for name in order:
            deps = self._nodes[name].dependencies & members
            d = max((depth[dep] + 1 for dep in deps), default=0)
            depth[name] = d
            while len(levels) <= d:
                levels.append([])
            levels[d].append(name)
        return levels

    # -------------------------------------------------------------------------
    # Traversal
    # -------------------------------------------------------------------------

    def get_transitive_dependents(self, name: str) -> Set[str]:
        """All names that transitively depend on `name`."""
        result: Set[str] = set()
        to_process = [name]
        while to_process:
            node = self._nodes.get(to_process.pop())
            if node:
                for dep_id in node.dependents:
                    if dep_id not in result:
                        result.add(dep_id)
                        to_process.append(dep_id)
        return result

    def get_transitive_dependencies(self, name: str) -> Set[str]:
        """All registered names `name` transitively depends on."""
        result: Set[str] = set()
        to_process = [name]
        while to_process:
            node = self._nodes.get(to_process.pop())
            if node:
                for dep_id in node.dependencies:
                    if dep_id in self._nodes and dep_id not in result:
                        result.add(dep_id)
                        to_process.append(dep_id)
        return result

    def get_node(self, name: str) -> Optional[DependencyNode]:
        return self._nodes.get(name)

    def __contains__(self, name: object) -> bool:
        return name in self._nodes

    def __len__(self) -> int:
        return len(self._nodes)

    @property
    def names(self) -> List[str]:
        return list(self._nodes)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize graph shape and computed ordering."""
        levels = self.levels()
        return {
            "nodes": {name: node.to_dict() for name, node in self._nodes.items()},
            "order": self.topological_order(),
            "levels": levels,
        }
