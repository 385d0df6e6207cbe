"""Shared builders and fakes for the workflow engine tests."""
from typing import Any

from canvasai.agents.generation.capabilities import GenerationOutcome
from canvasai.models.workflow import Edge, Node, NodeData, NodeParameter


class FakeCapabilities:
    """
    Records every capability invocation and answers from a canned table.

    `responses` maps capability ids to a GenerationOutcome, or to an
    exception instance that is raised instead.
    """

    def __init__(
        self,
        responses: dict[str, Any] | None = None,
        default: GenerationOutcome | None = None,
    ):
        self.calls: list[tuple[str, dict[str, Any]]] = []
        self.responses = responses or {}
        self.default = default or GenerationOutcome(primary_result_url="https://cdn.example/out.png")

    async def invoke(self, capability_id: str, arguments: dict[str, Any]) -> GenerationOutcome:
        self.calls.append((capability_id, arguments))
        response = self.responses.get(capability_id, self.default)
        if isinstance(response, Exception):
            raise response
        return response


def make_node(node_id: str, node_type: str, result: Any = None, **parameters: Any) -> Node:
    return Node(
        id=node_id,
        type=node_type,
        data=NodeData(
            result=result,
            parameters=[
                NodeParameter(id=key, type="select", value=value)
                for key, value in parameters.items()
            ],
        ),
    )


def make_edge(source: str, target: str, target_handle: str | None = None) -> Edge:
    return Edge(
        id=f"{source}->{target}:{target_handle}",
        source=source,
        target=target,
        targetHandle=target_handle,
    )


class UpdateRecorder:
    """Collects on_node_update calls in order."""

    def __init__(self):
        self.calls: list[tuple[str, dict[str, Any]]] = []

    def __call__(self, node_id: str, fields: dict[str, Any]) -> None:
        self.calls.append((node_id, dict(fields)))

    def statuses(self, node_id: str) -> list[str]:
        return [fields.get("status") for nid, fields in self.calls if nid == node_id]
