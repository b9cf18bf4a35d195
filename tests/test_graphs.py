"""Tests for DependencyGraph and topological_sort."""

import pytest

from fieldwright.utils import CircularDependencyError, DependencyGraph, topological_sort


def _assert_respects_edges(order, edges):
    index = {node: i for i, node in enumerate(order)}
    for dependency, dependent in edges:
        assert index[dependency] < index[dependent], (dependency, dependent)


class TestSort:
    def test_chain(self):
        graph = DependencyGraph()
        graph.add_edge("b", "c")
        graph.add_edge("a", "b")
        assert graph.sort() == ["a", "b", "c"]

    def test_every_node_after_its_dependencies(self):
        edges = [
            ("a", "d"),
            ("b", "d"),
            ("c", "e"),
            ("d", "f"),
            ("e", "f"),
            ("a", "e"),
            ("g", "a"),
        ]
        graph = DependencyGraph()
        for dependency, dependent in edges:
            graph.add_edge(dependency, dependent)

        order = graph.sort()

        assert sorted(order) == sorted({n for edge in edges for n in edge})
        _assert_respects_edges(order, edges)

    def test_independent_nodes_keep_registration_order(self):
        graph = DependencyGraph()
        for node in ["z", "m", "a"]:
            graph.add_node(node)
        assert graph.sort() == ["z", "m", "a"]

    def test_chain_stays_contiguous(self):
        graph = DependencyGraph()
        for node in ["x0", "x1", "x2", "y0", "y1"]:
            graph.add_node(node)
        graph.add_edge("x0", "x1")
        graph.add_edge("x1", "x2")
        graph.add_edge("y0", "y1")
        assert graph.sort() == ["x0", "x1", "x2", "y0", "y1"]

    def test_add_edge_with_many_dependents(self):
        graph = DependencyGraph()
        graph.add_edge("root", ["a", "b", "c"])
        order = graph.sort()
        assert order[0] == "root"
        assert order[1:] == ["a", "b", "c"]

    def test_duplicate_edges_ignored(self):
        graph = DependencyGraph()
        graph.add_edge("a", "b")
        graph.add_edge("a", "b")
        graph.add_edge("a", ["b"])
        assert graph.sort() == ["a", "b"]

    def test_isolated_node_included(self):
        graph = DependencyGraph()
        graph.add_edge("a", "b")
        graph.add_node("lonely")
        assert set(graph.sort()) == {"a", "b", "lonely"}

    def test_empty_graph(self):
        assert DependencyGraph().sort() == []


class TestQueries:
    def test_has_dependency_and_dependents(self):
        graph = DependencyGraph()
        graph.add_edge("a", "b")
        graph.add_node("c")

        assert graph.has_dependents("a")
        assert not graph.has_dependency("a")
        assert graph.has_dependency("b")
        assert not graph.has_dependents("b")
        assert not graph.has_dependency("c")
        assert not graph.has_dependents("c")
        assert graph.nodes == ["a", "b", "c"]

    def test_self_edge_rejected(self):
        graph = DependencyGraph()
        with pytest.raises(ValueError):
            graph.add_edge("a", "a")


class TestCycles:
    def test_two_node_cycle(self):
        graph = DependencyGraph()
        graph.add_edge("a", "b")
        graph.add_edge("b", "a")
        with pytest.raises(CircularDependencyError) as exc_info:
            graph.sort()
        assert exc_info.value.nodes == ["a", "b"]

    def test_reports_exactly_residual_nodes(self):
        graph = DependencyGraph()
        graph.add_edge("x", "a")
        graph.add_edge("a", "b")
        graph.add_edge("b", "a")
        graph.add_edge("b", "y")
        graph.add_edge("x", "z")

        with pytest.raises(CircularDependencyError) as exc_info:
            graph.sort()

        # x and z resolve; y is blocked behind the cycle
        assert exc_info.value.nodes == ["a", "b", "y"]
        assert "a" in str(exc_info.value)


class TestTopologicalSort:
    def test_mapping_form(self):
        assert topological_sort({"b": ["a"], "a": [], "c": ["b"]}) == ["a", "b", "c"]

    def test_mapping_cycle(self):
        with pytest.raises(CircularDependencyError):
            topological_sort({"a": ["b"], "b": ["a"]})
