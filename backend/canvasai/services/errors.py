"""
Workflow execution errors.

Workflow-level errors stop a run before any node executes. Node-level
errors are recorded against the failing node and halt the run there.
"""


class WorkflowError(Exception):
    """Base class for errors raised while scheduling or executing a workflow."""


class CycleDetected(WorkflowError):
    """The graph has no valid execution order."""

    def __init__(self, node_ids: list[str]):
        self.node_ids = node_ids
        if node_ids:
            message = f"Workflow contains a cycle involving nodes: {', '.join(node_ids)}"
        else:
            message = "Workflow contains a cycle"
        super().__init__(message)


class NodeExecutionError(WorkflowError):
    """A single node failed; the message is shown on the node in the editor."""


class MissingInput(NodeExecutionError):
    def __init__(self, message: str, input_keys: tuple[str, ...] = ()):
        self.input_keys = input_keys
        super().__init__(message)


class UnknownNodeType(NodeExecutionError):
    def __init__(self, node_type: str):
        self.node_type = node_type
        super().__init__(f"Unknown node type: {node_type}")


class GenerationFailed(NodeExecutionError):
    """The external generation provider reported an error."""

    def __init__(self, kind: str, detail: str):
        self.detail = detail
        super().__init__(f"{kind} generation failed: {detail}")


class NoOutputProduced(NodeExecutionError):
    """The provider finished without returning a usable result reference."""

    def __init__(self, kind: str):
        super().__init__(f"{kind} generation produced no output")
