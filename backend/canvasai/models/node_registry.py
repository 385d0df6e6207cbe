"""
Node type registry: source of truth for what each node type accepts and produces.

Maps editor node type strings to their port schemas, default parameters
and initial state. New nodes dropped on the canvas are built from these
templates.
"""

from __future__ import annotations

import time
from enum import Enum
from typing import Any

from pydantic import BaseModel

from canvasai.models.workflow import (
    Node,
    NodeCategory,
    NodeData,
    NodeInput,
    NodeOutput,
    NodeParameter,
    NodeStatus,
    ParameterOption,
    Position,
)


class NodeType(str, Enum):
    TEXT_INPUT = "textInput"
    IMAGE_UPLOAD = "imageUpload"
    COLOR_REFERENCE = "colorReference"
    TEXT_TO_IMAGE = "textToImage"
    GENERATE_3D = "generate3D"
    VIDEO_GEN = "videoGen"
    PREVIEW = "preview"


DEFAULT_COLOR = "#3b82f6"


class NodeTemplate(BaseModel):
    label: str
    category: NodeCategory
    inputs: list[NodeInput] = []
    outputs: list[NodeOutput] = []
    parameters: list[NodeParameter] = []
    status: NodeStatus = "idle"
    result: Any = None


def _select(parameter_id: str, label: str, value: Any, options: list[tuple[str, Any]]) -> NodeParameter:
    return NodeParameter(
        id=parameter_id,
        label=label,
        type="select",
        value=value,
        options=[ParameterOption(label=opt_label, value=opt_value) for opt_label, opt_value in options],
    )


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------
# Keys match the ReactFlow node `type` values used in the editor.

NODE_TEMPLATES: dict[NodeType, NodeTemplate] = {
    # ---- Input nodes ----
    NodeType.TEXT_INPUT: NodeTemplate(
        label="Text Input",
        category="input",
        outputs=[NodeOutput(id="text", label="Text", type="text")],
        result="",
    ),
    NodeType.IMAGE_UPLOAD: NodeTemplate(
        label="Image Upload",
        category="input",
        outputs=[NodeOutput(id="image", label="Image", type="image")],
    ),
    NodeType.COLOR_REFERENCE: NodeTemplate(
        label="Color Reference",
        category="input",
        outputs=[NodeOutput(id="color", label="Color", type="text")],
        status="complete",
        result=DEFAULT_COLOR,
    ),

    # ---- AI generation nodes ----
    NodeType.TEXT_TO_IMAGE: NodeTemplate(
        label="Text to Image",
        category="ai-generation",
        inputs=[
            NodeInput(id="prompt", label="Prompt", type="text", required=True),
            NodeInput(id="referenceImage", label="Reference Image", type="image", required=False),
        ],
        outputs=[NodeOutput(id="image", label="Image", type="image")],
        parameters=[
            _select("model", "Model", "flux-pro", [
                ("Flux Pro", "flux-pro"),
                ("SDXL", "sdxl"),
                ("Stable Diffusion 3.5", "sd-3.5"),
                ("Gemini 2.5 Flash (Imagen 3)", "gemini-2.5-flash"),
            ]),
            _select("aspectRatio", "Aspect Ratio", "auto", [
                ("Auto", "auto"),
                ("21:9", "21:9"),
                ("16:9", "16:9"),
                ("3:2", "3:2"),
                ("4:3", "4:3"),
                ("5:4", "5:4"),
                ("1:1", "1:1"),
                ("4:5", "4:5"),
                ("3:4", "3:4"),
                ("2:3", "2:3"),
                ("9:16", "9:16"),
            ]),
            NodeParameter(id="width", label="Width", type="number", value=1024, min=256, max=2048),
            NodeParameter(id="height", label="Height", type="number", value=1024, min=256, max=2048),
            NodeParameter(id="steps", label="Steps", type="slider", value=30, min=1, max=100),
        ],
    ),
    NodeType.GENERATE_3D: NodeTemplate(
        label="Generate 3D Model",
        category="ai-generation",
        inputs=[
            NodeInput(id="image", label="Image", type="image", required=True),
            NodeInput(id="prompt", label="Prompt", type="text"),
        ],
        outputs=[NodeOutput(id="model", label="3D Model", type="text")],
        parameters=[
            _select("model", "Model", "rodin-2.0", [("Rodin 2.0", "rodin-2.0")]),
            _select("format", "Format", "glb", [("GLB", "glb"), ("OBJ", "obj")]),
        ],
    ),
    NodeType.VIDEO_GEN: NodeTemplate(
        label="Generate Video",
        category="ai-generation",
        inputs=[
            NodeInput(id="image", label="Image", type="image", required=False),
            NodeInput(id="prompt", label="Prompt", type="text", required=False),
        ],
        outputs=[NodeOutput(id="video", label="Video", type="video")],
        parameters=[
            _select("model", "Model", "minimax", [
                ("MiniMax", "minimax"),
                ("Kling", "kling"),
                ("Veo 3", "veo-3"),
            ]),
            _select("duration", "Duration", "5s", [
                ("2 seconds", "2s"),
                ("4 seconds", "4s"),
                ("5 seconds", "5s"),
                ("6 seconds", "6s"),
                ("8 seconds", "8s"),
                ("10 seconds", "10s"),
            ]),
            _select("aspectRatio", "Aspect Ratio", "9:16", [
                ("Auto", "auto"),
                ("9:16", "9:16"),
                ("16:9", "16:9"),
                ("1:1", "1:1"),
            ]),
        ],
    ),

    # ---- Output nodes ----
    NodeType.PREVIEW: NodeTemplate(
        label="Preview",
        category="output",
        inputs=[NodeInput(id="data", label="Data", type="image")],
    ),
}


def get_node_template(node_type: str) -> NodeTemplate | None:
    """Look up a node template, returning None if the type is unknown."""
    try:
        return NODE_TEMPLATES[NodeType(node_type)]
    except ValueError:
        return None


def create_node_from_template(node_type: str, position: dict[str, float] | None = None) -> Node:
    """Build a fresh node of `node_type` at `position`."""
    template = get_node_template(node_type)
    if template is None:
        raise ValueError(f"Unknown node type: {node_type}")

    return Node(
        id=f"{node_type}-{int(time.time() * 1000)}",
        type=node_type,
        position=Position(**(position or {})),
        data=NodeData(**template.model_dump(mode="python")),
    )
