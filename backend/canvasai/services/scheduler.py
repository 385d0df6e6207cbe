"""Execution ordering for editor graphs."""
from __future__ import annotations

from collections import deque

from canvasai.models.workflow import Edge, Node
from canvasai.services.errors import CycleDetected


def topological_order(nodes: list[Node], edges: list[Edge]) -> list[str]:
    """
    Kahn's algorithm returning node IDs in execution order.

    Ready nodes are taken first-in first-out, so independent roots run in
    the order they appear in `nodes`. Edges pointing at unknown nodes are
    ignored.

    Raises:
        CycleDetected: if some nodes can never become ready
    """
    in_degree: dict[str, int] = {}
    adjacency: dict[str, list[str]] = {}
    for node in nodes:
        in_degree.setdefault(node.id, 0)
        adjacency.setdefault(node.id, [])

    # One entry per edge, so parallel edges need as many decrements
    for edge in edges:
        if edge.source in adjacency and edge.target in in_degree:
            adjacency[edge.source].append(edge.target)
            in_degree[edge.target] += 1

    queue: deque[str] = deque(nid for nid, deg in in_degree.items() if deg == 0)
    order: list[str] = []

    while queue:
        node_id = queue.popleft()
        order.append(node_id)
        for successor in adjacency[node_id]:
            in_degree[successor] -= 1
            if in_degree[successor] == 0:
                queue.append(successor)

    if len(order) != len(in_degree):
        raise CycleDetected([nid for nid, deg in in_degree.items() if deg > 0])

    return order
