"""
Workflow models: the editor graph snapshot handed to the execution engine.

Nodes and edges arrive in the editor's (ReactFlow) JSON shape, so fields
accept the camelCase keys the frontend sends. The engine never persists
these objects; it only reports status/result/error changes back through
an update callback.
"""

from __future__ import annotations

from typing import Any, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field


NodeDataType = Literal["text", "image", "number", "video", "array", "mask"]
NodeCategory = Literal["input", "ai-generation", "processing", "output"]
NodeStatus = Literal["idle", "running", "complete", "error"]
ParameterType = Literal["text", "number", "select", "slider", "checkbox"]


class NodeInput(BaseModel):
    id: str
    label: str = ""
    type: NodeDataType
    required: bool = False


class NodeOutput(BaseModel):
    id: str
    label: str = ""
    type: NodeDataType


class ParameterOption(BaseModel):
    label: str
    value: Any


class NodeParameter(BaseModel):
    id: str
    label: str = ""
    type: ParameterType
    value: Any = None
    options: Optional[list[ParameterOption]] = None
    min: Optional[float] = None
    max: Optional[float] = None
    step: Optional[float] = None


class NodeData(BaseModel):
    label: str = ""
    category: Optional[NodeCategory] = None
    inputs: list[NodeInput] = Field(default_factory=list)
    outputs: list[NodeOutput] = Field(default_factory=list)
    parameters: list[NodeParameter] = Field(default_factory=list)
    status: NodeStatus = "idle"
    result: Any = None
    error: Optional[str] = None

    def parameter(self, parameter_id: str, default: Any = None) -> Any:
        """Return a parameter value, falling back to `default` when unset or falsy."""
        for param in self.parameters:
            if param.id == parameter_id:
                return param.value or default
        return default


class Position(BaseModel):
    x: float = 0.0
    y: float = 0.0


class Node(BaseModel):
    # Kept as a plain string: unknown tags must survive parsing and fail at dispatch
    id: str
    type: str
    position: Position = Field(default_factory=Position)
    data: NodeData = Field(default_factory=NodeData)


class Edge(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: Optional[str] = None
    source: str
    target: str
    source_handle: Optional[str] = Field(default=None, alias="sourceHandle")
    target_handle: Optional[str] = Field(default=None, alias="targetHandle")


class ExecutionResult(BaseModel):
    success: bool
    results: dict[str, Any] = Field(default_factory=dict)
    errors: dict[str, str] = Field(default_factory=dict)
    execution_order: list[str] = Field(default_factory=list)
    total_execution_time_ms: int = 0
