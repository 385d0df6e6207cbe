"""
Node dispatch: runs one node given its collected inputs.

Each NodeType has exactly one async handler registered with @handler.
Input nodes relay the value stored on the node by the editor; generation
nodes build provider arguments from their parameters and call out through
a GenerationCapability.

Handlers receive (node, inputs, capabilities) where `inputs` maps input
port ids to upstream values from the current run.
"""

from __future__ import annotations

import logging
import re
from typing import Any, Awaitable, Callable

from canvasai.agents.generation.capabilities import (
    GEMINI_IMAGE_TO_IMAGE,
    GEMINI_TEXT_TO_IMAGE,
    SIMULATED_3D,
    GenerationCapability,
)
from canvasai.config import GenerationConfig
from canvasai.models.node_registry import DEFAULT_COLOR, NodeType
from canvasai.models.workflow import Node
from canvasai.services.errors import (
    GenerationFailed,
    MissingInput,
    NoOutputProduced,
    UnknownNodeType,
)

logger = logging.getLogger(__name__)

NodeHandler = Callable[[Node, dict[str, Any], GenerationCapability], Awaitable[Any]]

# ---------------------------------------------------------------------------
# Provider routing tables
# ---------------------------------------------------------------------------

DEFAULT_IMAGE_MODEL = "flux-pro"
GEMINI_IMAGE_MODEL_OPTION = "gemini-2.5-flash"

IMAGE_ENDPOINTS: dict[str, str] = {
    "flux-pro": "fal-ai/flux-pro",
    "sdxl": "fal-ai/fast-sdxl",
    "sd-3.5": "fal-ai/stable-diffusion-v3-medium",
}
IMAGE_TO_IMAGE_ENDPOINT = "fal-ai/flux/dev/image-to-image"

DEFAULT_VIDEO_MODEL = "minimax"
VIDEO_ENDPOINTS: dict[str, dict[str, str]] = {
    "minimax": {
        "image": "fal-ai/minimax-video/image-to-video",
        "text": "fal-ai/minimax-video",
    },
    "kling": {
        "image": "fal-ai/kling-video/v2/master/image-to-video",
        "text": "fal-ai/kling-video/v2/master/text-to-video",
    },
    "veo-3": {
        "image": "fal-ai/veo3.1/fast/image-to-video",
        "text": "fal-ai/veo3.1/fast",
    },
}
DEFAULT_MOTION_PROMPT = "Animate this image with smooth, natural motion"
VIDEO_NEGATIVE_PROMPT = "blur, distort, and low quality"

MODEL_3D_ENDPOINTS: dict[str, str] = {
    "rodin-2.0": "fal-ai/hyper3d/rodin",
}


# ---------------------------------------------------------------------------
# Handler registry
# ---------------------------------------------------------------------------

_handlers: dict[NodeType, NodeHandler] = {}


def handler(node_type: NodeType):
    """
    Decorator that registers the async handler for a node type.

    Usage:
        @handler(NodeType.PREVIEW)
        async def _run_preview(node, inputs, capabilities):
            return inputs.get("data")
    """
    def decorator(fn: NodeHandler) -> NodeHandler:
        _handlers[node_type] = fn
        return fn
    return decorator


async def dispatch_node(
    node: Node,
    inputs: dict[str, Any],
    capabilities: GenerationCapability,
) -> Any:
    """Run `node` and return its output value; raises NodeExecutionError subclasses."""
    try:
        node_type = NodeType(node.type)
    except ValueError:
        raise UnknownNodeType(node.type) from None

    return await _handlers[node_type](node, inputs, capabilities)


# ---------------------------------------------------------------------------
# Input merging
# ---------------------------------------------------------------------------


def _join_prompts(existing: Any, incoming: Any) -> str:
    return ", ".join(str(part) for part in (existing, incoming) if part)


# Only ports listed here combine multiple incoming edges; all others keep
# the value of the last edge.
INPUT_MERGERS: dict[NodeType, dict[str, Callable[[Any, Any], Any]]] = {
    NodeType.TEXT_TO_IMAGE: {"prompt": _join_prompts},
}


def merge_input_value(node_type: str, input_key: str, existing: Any, incoming: Any) -> Any:
    try:
        mergers = INPUT_MERGERS.get(NodeType(node_type), {})
    except ValueError:
        mergers = {}
    merge = mergers.get(input_key)
    if merge is None:
        return incoming
    return merge(existing, incoming)


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


def _as_int(value: Any, default: int) -> int:
    try:
        return int(value)
    except (TypeError, ValueError):
        return default


def _duration_seconds(value: Any, default: int = 5) -> int:
    """Leading integer of a duration such as "5s"; anything after it is ignored."""
    match = re.match(r"\s*(\d+)", str(value))
    return int(match.group(1)) if match else default


async def _generate(
    capabilities: GenerationCapability,
    kind: str,
    capability_id: str,
    arguments: dict[str, Any],
) -> str:
    """Invoke a capability and turn its outcome into a URL or a typed error."""
    logger.debug("Invoking %s with %s", capability_id, sorted(arguments))
    try:
        outcome = await capabilities.invoke(capability_id, arguments)
    except Exception as e:
        raise GenerationFailed(kind, str(e) or type(e).__name__) from e

    if outcome.error:
        raise GenerationFailed(kind, outcome.error)
    if not outcome.primary_result_url:
        raise NoOutputProduced(kind)
    return outcome.primary_result_url


# ---------------------------------------------------------------------------
# Input nodes
# ---------------------------------------------------------------------------


@handler(NodeType.TEXT_INPUT)
async def _run_text_input(node: Node, inputs: dict[str, Any], capabilities: GenerationCapability) -> Any:
    return node.data.result or ""


@handler(NodeType.IMAGE_UPLOAD)
async def _run_image_upload(node: Node, inputs: dict[str, Any], capabilities: GenerationCapability) -> Any:
    return node.data.result or None


@handler(NodeType.COLOR_REFERENCE)
async def _run_color_reference(node: Node, inputs: dict[str, Any], capabilities: GenerationCapability) -> Any:
    return node.data.result or DEFAULT_COLOR


# ---------------------------------------------------------------------------
# AI generation nodes
# ---------------------------------------------------------------------------


@handler(NodeType.TEXT_TO_IMAGE)
async def _run_text_to_image(node: Node, inputs: dict[str, Any], capabilities: GenerationCapability) -> Any:
    """
    Generate an image from the `prompt` input.

    Params:
    - model: "flux-pro" | "sdxl" | "sd-3.5" | "gemini-2.5-flash" (default flux-pro)
    - width, height: pixels (default 1024)
    - steps: inference steps (default 30)
    - aspectRatio: forwarded to Gemini unless "auto"

    An optional `referenceImage` input switches to image-guided generation.
    """
    prompt = inputs.get("prompt")
    if not prompt:
        raise MissingInput("Text to Image requires a prompt input", ("prompt",))

    params = node.data
    model = params.parameter("model", DEFAULT_IMAGE_MODEL)
    reference_image = inputs.get("referenceImage")

    if model == GEMINI_IMAGE_MODEL_OPTION:
        arguments: dict[str, Any] = {"prompt": prompt}
        aspect_ratio = params.parameter("aspectRatio", "auto")
        if aspect_ratio != "auto":
            arguments["aspect_ratio"] = aspect_ratio
        if reference_image:
            arguments["image_url"] = reference_image
            capability_id = GEMINI_IMAGE_TO_IMAGE
        else:
            capability_id = GEMINI_TEXT_TO_IMAGE
    else:
        arguments = {
            "prompt": prompt,
            "image_size": {
                "width": _as_int(params.parameter("width", 1024), 1024),
                "height": _as_int(params.parameter("height", 1024), 1024),
            },
            "num_inference_steps": _as_int(params.parameter("steps", 30), 30),
        }
        if reference_image:
            arguments["image_url"] = reference_image
            capability_id = IMAGE_TO_IMAGE_ENDPOINT
        else:
            capability_id = IMAGE_ENDPOINTS.get(model, IMAGE_ENDPOINTS[DEFAULT_IMAGE_MODEL])

    return await _generate(capabilities, "Image", capability_id, arguments)


@handler(NodeType.GENERATE_3D)
async def _run_generate_3d(node: Node, inputs: dict[str, Any], capabilities: GenerationCapability) -> Any:
    image = inputs.get("image")
    if not image:
        raise MissingInput("3D Generation requires an image input", ("image",))

    params = node.data
    arguments: dict[str, Any] = {
        "input_image_urls": [image],
        "geometry_file_format": params.parameter("format", "glb"),
    }
    if inputs.get("prompt"):
        arguments["prompt"] = inputs["prompt"]

    if GenerationConfig.SIMULATE_3D:
        capability_id = SIMULATED_3D
    else:
        model = params.parameter("model", "rodin-2.0")
        capability_id = MODEL_3D_ENDPOINTS.get(model, MODEL_3D_ENDPOINTS["rodin-2.0"])

    return await _generate(capabilities, "3D", capability_id, arguments)


@handler(NodeType.VIDEO_GEN)
async def _run_video_gen(node: Node, inputs: dict[str, Any], capabilities: GenerationCapability) -> Any:
    """
    Generate a video from an `image` input, a `prompt` input, or both.

    - image + prompt: image-to-video guided by the prompt
    - image only: image-to-video with a default motion instruction
    - prompt only: text-to-video
    """
    image = inputs.get("image")
    prompt = inputs.get("prompt")
    if not image and not prompt:
        raise MissingInput(
            "Video Generation requires either an image or prompt input", ("image", "prompt")
        )

    params = node.data
    model = params.parameter("model", DEFAULT_VIDEO_MODEL)
    if model not in VIDEO_ENDPOINTS:
        logger.warning("Unknown video model '%s' on node %s, using %s", model, node.id, DEFAULT_VIDEO_MODEL)
        model = DEFAULT_VIDEO_MODEL

    seconds = _duration_seconds(params.parameter("duration", "5s"))
    arguments: dict[str, Any] = {
        "duration": f"{seconds}s" if model == "veo-3" else seconds,
    }

    if image:
        capability_id = VIDEO_ENDPOINTS[model]["image"]
        arguments["image_url"] = image
        arguments["prompt"] = prompt or DEFAULT_MOTION_PROMPT
    else:
        capability_id = VIDEO_ENDPOINTS[model]["text"]
        arguments["prompt"] = prompt

    aspect_ratio = params.parameter("aspectRatio", "auto")
    if aspect_ratio != "auto":
        arguments["aspect_ratio"] = aspect_ratio
    if model == "kling":
        arguments["negative_prompt"] = VIDEO_NEGATIVE_PROMPT

    return await _generate(capabilities, "Video", capability_id, arguments)


# ---------------------------------------------------------------------------
# Output nodes
# ---------------------------------------------------------------------------


@handler(NodeType.PREVIEW)
async def _run_preview(node: Node, inputs: dict[str, Any], capabilities: GenerationCapability) -> Any:
    return inputs.get("data")


_unhandled = [t.value for t in NodeType if t not in _handlers]
if _unhandled:
    raise RuntimeError(f"No handler registered for node types: {', '.join(_unhandled)}")
