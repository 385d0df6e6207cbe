"""Read-only index over one editor graph snapshot."""
from __future__ import annotations

from canvasai.models.workflow import Edge, Node


class GraphIndex:
    def __init__(self, nodes: list[Node], edges: list[Edge]):
        self.nodes = nodes
        self.edges = edges
        self._nodes_by_id: dict[str, Node] = {}
        for node in nodes:
            # First occurrence wins for duplicated ids
            self._nodes_by_id.setdefault(node.id, node)
        self._incoming: dict[str, list[Edge]] = {}
        for edge in edges:
            self._incoming.setdefault(edge.target, []).append(edge)

    def has_node(self, node_id: str) -> bool:
        return node_id in self._nodes_by_id

    def get_node(self, node_id: str) -> Node | None:
        return self._nodes_by_id.get(node_id)

    def get_incoming_edges(self, node_id: str) -> list[Edge]:
        return list(self._incoming.get(node_id, []))

    def inputs_of(self, node_id: str) -> list[tuple[str | None, str]]:
        """(target_handle, source_node_id) for every edge into `node_id`, in edge order."""
        return [(e.target_handle, e.source) for e in self._incoming.get(node_id, [])]
