"""
Tests for execution ordering and the graph index.
"""

import pytest

from canvasai.services.errors import CycleDetected
from canvasai.services.graph import GraphIndex
from canvasai.services.scheduler import topological_order

from helpers import make_edge, make_node


def _nodes(*ids: str):
    return [make_node(nid, "textInput") for nid in ids]


class TestTopologicalOrder:
    """Tests for Kahn ordering and cycle detection."""

    def test_simple_chain(self):
        """Test A -> B -> C chain, listed out of order."""
        nodes = _nodes("C", "B", "A")
        edges = [make_edge("A", "B", "in"), make_edge("B", "C", "in")]

        assert topological_order(nodes, edges) == ["A", "B", "C"]

    def test_independent_roots_keep_node_list_order(self):
        nodes = _nodes("x", "a", "m")

        assert topological_order(nodes, []) == ["x", "a", "m"]

    def test_ready_nodes_are_fifo(self):
        """Roots first in list order, then successors in the order they became ready."""
        nodes = _nodes("r1", "r2", "c2", "c1")
        edges = [make_edge("r2", "c2", "in"), make_edge("r1", "c1", "in")]

        assert topological_order(nodes, edges) == ["r1", "r2", "c1", "c2"]

    def test_diamond_dependency(self):
        """Test diamond: A -> B, A -> C, B -> D, C -> D."""
        nodes = _nodes("A", "B", "C", "D")
        edges = [
            make_edge("A", "B", "in"),
            make_edge("A", "C", "in"),
            make_edge("B", "D", "in1"),
            make_edge("C", "D", "in2"),
        ]

        order = topological_order(nodes, edges)

        assert order == ["A", "B", "C", "D"]
        for edge in edges:
            assert order.index(edge.source) < order.index(edge.target)

    def test_parallel_edges_between_same_nodes(self):
        nodes = _nodes("A", "B")
        edges = [make_edge("A", "B", "prompt"), make_edge("A", "B", "image")]

        assert topological_order(nodes, edges) == ["A", "B"]

    def test_two_node_cycle(self):
        nodes = _nodes("a", "b")
        edges = [make_edge("a", "b"), make_edge("b", "a")]

        with pytest.raises(CycleDetected) as exc_info:
            topological_order(nodes, edges)

        assert "cycle" in str(exc_info.value)
        assert set(exc_info.value.node_ids) == {"a", "b"}

    def test_self_loop_is_a_cycle(self):
        with pytest.raises(CycleDetected):
            topological_order(_nodes("a"), [make_edge("a", "a", "in")])

    def test_cycle_downstream_of_valid_prefix(self):
        nodes = _nodes("root", "x", "y")
        edges = [make_edge("root", "x"), make_edge("x", "y"), make_edge("y", "x")]

        with pytest.raises(CycleDetected) as exc_info:
            topological_order(nodes, edges)

        assert set(exc_info.value.node_ids) == {"x", "y"}

    def test_dangling_edges_are_ignored(self):
        nodes = _nodes("A", "B")
        edges = [
            make_edge("ghost", "B", "in"),
            make_edge("A", "missing", "in"),
            make_edge("A", "B", "in"),
        ]

        assert topological_order(nodes, edges) == ["A", "B"]

    def test_empty_graph(self):
        assert topological_order([], []) == []


class TestGraphIndex:
    """Tests for incoming-edge lookups."""

    def test_inputs_of_in_edge_order(self):
        nodes = _nodes("t1", "t2", "img")
        edges = [make_edge("t1", "img", "prompt"), make_edge("t2", "img", "referenceImage")]
        index = GraphIndex(nodes, edges)

        assert index.inputs_of("img") == [("prompt", "t1"), ("referenceImage", "t2")]
        assert index.inputs_of("t1") == []

    def test_unknown_node_returns_empty(self):
        index = GraphIndex(_nodes("a"), [])

        assert index.inputs_of("stale-id") == []
        assert index.get_incoming_edges("stale-id") == []
        assert index.get_node("stale-id") is None
        assert not index.has_node("stale-id")
        assert index.has_node("a")
