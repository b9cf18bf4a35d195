"""Dependency graph with deterministic topological sort and cycle detection.

Nodes are hashable identifiers (token ids, field names). An edge
``dependency -> dependent`` means the dependent cannot run before the
dependency completes.

Ordering among independent nodes is fixed by discovery rank: the node that
was registered first (as either end of an edge, or via add_node) is emitted
first. This keeps independent chains in declaration order and keeps one
chain contiguous when nothing else is interleaved with it.
"""

import heapq
from collections.abc import Hashable, Iterable


class CircularDependencyError(Exception):
    """Raised when the graph contains a cycle.

    Attributes:
        nodes: Exactly the nodes left with unresolved dependencies, in
            discovery order.
    """

    def __init__(self, nodes: list[Hashable]):
        self.nodes = list(nodes)
        listing = "\n".join(str(n) for n in self.nodes)
        super().__init__(
            f"At least 1 circular dependency in nodes:\n\n{listing}\n\n"
            "Graph cannot be sorted!"
        )


class DependencyGraph:
    """Directed graph sorted with Kahn's algorithm."""

    def __init__(self) -> None:
        self._rank: dict[Hashable, int] = {}
        self._dependents: dict[Hashable, list[Hashable]] = {}
        self._dependencies: dict[Hashable, set[Hashable]] = {}

    def _register(self, node: Hashable) -> None:
        if node not in self._rank:
            self._rank[node] = len(self._rank)

    def add_node(self, node: Hashable) -> None:
        """Register a node that may have no edges."""
        self._register(node)

    def add_edge(
        self, dependency: Hashable, dependents: Hashable | Iterable[Hashable]
    ) -> None:
        """Add one edge, or one edge per dependent if given a list/tuple/set."""
        if isinstance(dependents, (list, tuple, set, frozenset)):
            targets = list(dependents)
        else:
            targets = [dependents]

        self._register(dependency)
        for dependent in targets:
            if dependent == dependency:
                raise ValueError(f"Node {dependency!r} cannot depend on itself")
            self._register(dependent)
            deps = self._dependencies.setdefault(dependent, set())
            if dependency in deps:
                continue
            deps.add(dependency)
            self._dependents.setdefault(dependency, []).append(dependent)

    def has_dependency(self, node: Hashable) -> bool:
        return bool(self._dependencies.get(node))

    def has_dependents(self, node: Hashable) -> bool:
        return bool(self._dependents.get(node))

    @property
    def nodes(self) -> list[Hashable]:
        return list(self._rank)

    def sort(self) -> list[Hashable]:
        """Return all nodes so each appears after everything it depends on.

        Raises:
            CircularDependencyError: listing the nodes with residual in-degree
        """
        in_degree = {node: len(self._dependencies.get(node, ())) for node in self._rank}

        ready = [(self._rank[n], n) for n, degree in in_degree.items() if degree == 0]
        heapq.heapify(ready)
        order: list[Hashable] = []

        while ready:
            _, node = heapq.heappop(ready)
            order.append(node)

            for dependent in self._dependents.get(node, ()):
                in_degree[dependent] -= 1
                if in_degree[dependent] == 0:
                    heapq.heappush(ready, (self._rank[dependent], dependent))

        if len(order) != len(self._rank):
            remaining = [n for n in self._rank if in_degree[n] != 0]
            raise CircularDependencyError(remaining)

        return order


def topological_sort(dependencies: dict[str, list[str]]) -> list[str]:
    """Sort names given a mapping of name -> names it depends on.

    Example:
        >>> topological_sort({"b": ["a"], "a": [], "c": ["b"]})
        ['a', 'b', 'c']

    Raises:
        CircularDependencyError: If the dependencies contain a cycle
    """
    graph = DependencyGraph()
    for name in dependencies:
        graph.add_node(name)
    for name, deps in dependencies.items():
        for dep in deps:
            graph.add_edge(dep, name)
    return graph.sort()
