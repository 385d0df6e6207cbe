"""
Node palette API endpoints.
"""
from typing import Dict, Optional

from fastapi import APIRouter, HTTPException
from pydantic import BaseModel

from canvasai.models.node_registry import NODE_TEMPLATES, NodeTemplate, create_node_from_template
from canvasai.models.workflow import Node, Position

router = APIRouter(prefix="/node-types", tags=["nodes"])


class CreateNodeRequest(BaseModel):
    position: Optional[Position] = None


@router.get("", response_model=Dict[str, NodeTemplate])
async def list_node_types():
    """Templates for every node type the editor can place."""
    return {node_type.value: template for node_type, template in NODE_TEMPLATES.items()}


@router.post("/{node_type}/nodes", response_model=Node, status_code=201)
async def create_node(node_type: str, request: CreateNodeRequest):
    """Build a new node of `node_type`, ready to be added to the canvas."""
    position = request.position.model_dump() if request.position else None
    try:
        return create_node_from_template(node_type, position)
    except ValueError as e:
        raise HTTPException(status_code=404, detail=str(e))
