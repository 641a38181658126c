"""
Unit tests for the dependency graph.
"""

import pytest

from valpipe import ConfigurationError, CyclicDependencyError, DependencyGraph


class TestGraphStructure:
    """Tests for adding and removing nodes."""

    def test_empty_graph(self):
        graph = DependencyGraph()
        assert len(graph) == 0
        assert graph.topological_order() == []
        assert graph.levels() == []

    def test_add_wires_reverse_edges(self):
        graph = DependencyGraph()
        graph.add("a")
        graph.add("b", ["a"])

        assert "b" in graph
        assert graph.get_node("a").dependents == {"b"}
        assert graph.get_node("b").dependencies == {"a"}

    def test_duplicate_rejected(self):
        graph = DependencyGraph()
        graph.add("a")
        with pytest.raises(ConfigurationError) as exc_info:
            graph.add("a")
        assert exc_info.value.code == "VALIDATION_DUPLICATE_NAME"

    def test_self_cycle_rejected(self):
        graph = DependencyGraph()
        with pytest.raises(CyclicDependencyError):
            graph.add("a", ["a"])
        assert "a" not in graph

    def test_cycle_through_dangling_dependency_rejected(self):
        """A node declared earlier against a missing name closes a cycle later."""
        graph = DependencyGraph()
        graph.add("a", ["b"])
        with pytest.raises(CyclicDependencyError) as exc_info:
            graph.add("b", ["a"])

        assert exc_info.value.cycle[0] == exc_info.value.cycle[-1]
        assert "b" not in graph
        assert graph.names == ["a"]
        assert graph.get_node("a").dependents == set()

    def test_add_many_is_atomic(self):
        graph = DependencyGraph()
        graph.add("root")
        with pytest.raises(CyclicDependencyError):
            graph.add_many([
                ("x", ["root", "y"], 0),
                ("y", ["x"], 0),
            ])
        assert graph.names == ["root"]
        assert graph.topological_order() == ["root"]

    def test_remove(self):
        graph = DependencyGraph()
        graph.add("a")
        graph.add("b", ["a"])

        assert graph.remove("a") is True
        assert graph.remove("a") is False
        assert graph.names == ["b"]
        # Dangling dependency no longer constrains ordering
        assert graph.levels() == [["b"]]

    def test_clear(self):
        graph = DependencyGraph()
        graph.add("a")
        graph.clear()
        assert len(graph) == 0
        assert graph.topological_order() == []


class TestOrdering:
    """Tests for topological order and levels."""

    def test_linear_chain(self):
        graph = DependencyGraph()
        graph.add("c1")
        graph.add("c2", ["c1"])
        graph.add("c3", ["c2"])

        assert graph.topological_order() == ["c1", "c2", "c3"]
        assert graph.levels() == [["c1"], ["c2"], ["c3"]]
        assert graph.get_node("c3").level == 2
        assert graph.get_node("c3").order == 2

    def test_diamond_levels(self):
        graph = DependencyGraph()
        graph.add("base")
        graph.add("left", ["base"])
        graph.add("right", ["base"])
        graph.add("top", ["left", "right"])

        assert graph.levels() == [["base"], ["left", "right"], ["top"]]

    def test_priority_breaks_ties(self):
        graph = DependencyGraph()
        graph.add("low", priority=1)
        graph.add("high", priority=10)
        graph.add("mid", priority=5)

        assert graph.topological_order() == ["high", "mid", "low"]

    def test_registration_order_breaks_equal_priority(self):
        graph = DependencyGraph()
        for name in ["first", "second", "third"]:
            graph.add(name)
        assert graph.topological_order() == ["first", "second", "third"]

    def test_dependency_beats_priority(self):
        graph = DependencyGraph()
        graph.add("dep", priority=0)
        graph.add("eager", ["dep"], priority=100)
        order = graph.topological_order()
        assert order.index("dep") < order.index("eager")

    def test_order_recomputed_after_change(self):
        graph = DependencyGraph()
        graph.add("a")
        assert graph.topological_order() == ["a"]
        graph.add("b", priority=5)
        assert graph.topological_order() == ["b", "a"]

    def test_execution_plan_subset(self):
        graph = DependencyGraph()
        graph.add("a")
        graph.add("b", ["a"])
        graph.add("c", ["b"])

        # "b" excluded: "c" no longer waits on anything
        assert graph.execution_plan(["a", "c"]) == [["a", "c"]]
        assert graph.execution_plan(["b", "c", "unknown"]) == [["b"], ["c"]]


class TestTraversal:
    """Tests for transitive queries."""

    def test_transitive(self):
        graph = DependencyGraph()
        graph.add("a")
        graph.add("b", ["a"])
        graph.add("c", ["b"])
        graph.add("d")

        assert graph.get_transitive_dependents("a") == {"b", "c"}
        assert graph.get_transitive_dependencies("c") == {"a", "b"}
        assert graph.get_transitive_dependencies("d") == set()

    def test_to_dict(self):
        graph = DependencyGraph()
        graph.add("a")
        graph.add("b", ["a"])
        data = graph.to_dict()
        assert data["order"] == ["a", "b"]
        assert data["levels"] == [["a"], ["b"]]
        assert data["nodes"]["b"]["dependencies"] == ["a"]
        assert data["nodes"]["a"]["dependents"] == ["b"]
