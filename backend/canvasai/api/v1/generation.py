"""
Single-node generation API endpoints.

Used by a node's "Run" button in the editor to regenerate one output
without executing the whole workflow. Requests are turned into a
transient node and sent through the same dispatch as a workflow run.
"""
import logging
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException
from pydantic import BaseModel, ConfigDict, Field

from canvasai.agents.generation.capabilities import GenerationCapability
from canvasai.api.v1.workflows import get_capabilities
from canvasai.models.node_registry import NodeType
from canvasai.models.workflow import Node, NodeData, NodeParameter
from canvasai.services.errors import NodeExecutionError
from canvasai.services.node_dispatch import dispatch_node

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/generate", tags=["generation"])


class TextToImageRequest(BaseModel):
    prompt: Optional[str] = None
    model: str = "flux-pro"
    width: int = Field(1024, ge=256, le=2048)
    height: int = Field(1024, ge=256, le=2048)
    steps: int = Field(30, ge=1, le=100)


class ImageToVideoRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    image_url: Optional[str] = Field(None, alias="imageUrl")
    prompt: Optional[str] = None
    model: str = "minimax"
    duration: str = "5s"
    aspect_ratio: str = Field("auto", alias="aspectRatio")


class TextToVideoRequest(BaseModel):
    prompt: Optional[str] = None
    model: str = "minimax"
    duration: str = "5s"


class GenerateImageResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    image_url: Optional[str] = Field(None, alias="imageUrl")
    error: Optional[str] = None


class GenerateVideoResponse(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    success: bool
    video_url: Optional[str] = Field(None, alias="videoUrl")
    error: Optional[str] = None


async def _run_single_node(
    node_type: NodeType,
    parameters: dict[str, Any],
    inputs: dict[str, Any],
    capabilities: GenerationCapability,
) -> tuple[Optional[str], Optional[str]]:
    """Returns (url, error) for a one-off generation."""
    node = Node(
        id=f"{node_type.value}-run",
        type=node_type.value,
        data=NodeData(
            parameters=[
                NodeParameter(
                    id=key,
                    type="number" if isinstance(value, (int, float)) else "select",
                    value=value,
                )
                for key, value in parameters.items()
            ]
        ),
    )
    try:
        return await dispatch_node(node, inputs, capabilities), None
    except NodeExecutionError as e:
        logger.warning("%s generation failed: %s", node_type.value, e)
        return None, str(e)


@router.post("/text-to-image", response_model=GenerateImageResponse)
async def generate_text_to_image(
    request: TextToImageRequest,
    capabilities: GenerationCapability = Depends(get_capabilities),
):
    if not request.prompt:
        raise HTTPException(status_code=400, detail="Prompt is required")

    image_url, error = await _run_single_node(
        NodeType.TEXT_TO_IMAGE,
        {
            "model": request.model,
            "width": request.width,
            "height": request.height,
            "steps": request.steps,
        },
        {"prompt": request.prompt},
        capabilities,
    )
    if error:
        return GenerateImageResponse(success=False, error=error)
    return GenerateImageResponse(success=True, image_url=image_url)


@router.post("/image-to-video", response_model=GenerateVideoResponse)
async def generate_image_to_video(
    request: ImageToVideoRequest,
    capabilities: GenerationCapability = Depends(get_capabilities),
):
    if not request.image_url:
        raise HTTPException(status_code=400, detail="Image URL is required")

    inputs: dict[str, Any] = {"image": request.image_url}
    if request.prompt:
        inputs["prompt"] = request.prompt

    video_url, error = await _run_single_node(
        NodeType.VIDEO_GEN,
        {
            "model": request.model,
            "duration": request.duration,
            "aspectRatio": request.aspect_ratio,
        },
        inputs,
        capabilities,
    )
    if error:
        return GenerateVideoResponse(success=False, error=error)
    return GenerateVideoResponse(success=True, video_url=video_url)


@router.post("/text-to-video", response_model=GenerateVideoResponse)
async def generate_text_to_video(
    request: TextToVideoRequest,
    capabilities: GenerationCapability = Depends(get_capabilities),
):
    if not request.prompt:
        raise HTTPException(status_code=400, detail="Prompt is required")

    video_url, error = await _run_single_node(
        NodeType.VIDEO_GEN,
        {"model": request.model, "duration": request.duration},
        {"prompt": request.prompt},
        capabilities,
    )
    if error:
        return GenerateVideoResponse(success=False, error=error)
    return GenerateVideoResponse(success=True, video_url=video_url)
