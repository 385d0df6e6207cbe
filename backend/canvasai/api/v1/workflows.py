"""
Workflow execution API endpoints.

The editor posts its current node/edge snapshot; nothing about the graph
is stored here. Only one run per workflow id may be in progress at a time,
since the editor applies node updates to a single shared store.
"""

import logging
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, status
from fastapi.responses import StreamingResponse
from starlette.background import BackgroundTask
from pydantic import BaseModel, Field

from canvasai.agents.generation.capabilities import GenerationCapability, default_capabilities
from canvasai.models.workflow import Edge, ExecutionResult, Node
from canvasai.services.workflow_executor import (
    execute_workflow,
    execute_workflow_streaming,
    save_execution_log,
)

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/workflows", tags=["workflows"])


class ExecuteWorkflowRequest(BaseModel):
    nodes: List[Node] = Field(..., description="ReactFlow nodes")
    edges: List[Edge] = Field(default_factory=list, description="ReactFlow edges (connections)")
    workflow_id: Optional[str] = None
    title: Optional[str] = None


class ExecuteWorkflowResponse(ExecutionResult):
    persistence_warning: Optional[str] = None


def get_capabilities() -> GenerationCapability:
    """Dependency providing the generation provider router."""
    return default_capabilities()


_active_runs: set[str] = set()


def _claim_run(workflow_id: Optional[str]) -> None:
    if workflow_id is None:
        return
    if workflow_id in _active_runs:
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="This workflow is already running",
        )
    _active_runs.add(workflow_id)


def _release_run(workflow_id: Optional[str]) -> None:
    if workflow_id is not None:
        _active_runs.discard(workflow_id)


@router.post("/execute", response_model=ExecuteWorkflowResponse)
async def execute_workflow_raw(
    request: ExecuteWorkflowRequest,
    capabilities: GenerationCapability = Depends(get_capabilities),
):
    """
    Execute an editor graph and return the aggregated result.

    The response always has status 200 once the body validates; node and
    cycle failures are reported in `errors`.
    """
    _claim_run(request.workflow_id)
    try:
        result = await execute_workflow(
            request.nodes,
            request.edges,
            capabilities=capabilities,
        )
    finally:
        _release_run(request.workflow_id)

    _, warning = save_execution_log(result, request.workflow_id)
    return ExecuteWorkflowResponse(**result.model_dump(), persistence_warning=warning)


@router.post("/execute/stream")
async def execute_workflow_stream(
    request: ExecuteWorkflowRequest,
    capabilities: GenerationCapability = Depends(get_capabilities),
):
    """
    Execute an editor graph with Server-Sent Events (SSE) streaming.

    Returns a stream of events as each node changes state:
    - workflow_start: Run accepted
    - node_update: A node is running, complete, or failed
    - workflow_complete: All nodes finished successfully
    - workflow_error: Execution stopped due to an error
    """
    _claim_run(request.workflow_id)

    def persist(result: ExecutionResult) -> None:
        _, warning = save_execution_log(result, request.workflow_id)
        if warning:
            logger.warning("Workflow %s: %s", request.workflow_id, warning)

    async def event_generator():
        try:
            async for event in execute_workflow_streaming(
                request.nodes,
                request.edges,
                capabilities=capabilities,
                on_complete=persist,
            ):
                yield event
        finally:
            _release_run(request.workflow_id)

    return StreamingResponse(
        event_generator(),
        media_type="text/event-stream",
        headers={
            "Cache-Control": "no-cache",
            "Connection": "keep-alive",
            "X-Accel-Buffering": "no",  # Disable nginx buffering
        },
        background=BackgroundTask(_release_run, request.workflow_id),
    )
