"""
Workflow execution engine.

Takes the editor's node and edge snapshot, orders the nodes with a
topological sort, and runs them one at a time. Each node receives the
values its upstream nodes produced earlier in the same run. Status
changes are reported through an optional `on_node_update(node_id, fields)`
callback so the editor can reflect them.

Key behaviour:
- A cycle stops the run before any node is touched.
- The first failing node stops the run; later nodes are left untouched.
- `execute_workflow` never raises. Every failure ends up in
  `ExecutionResult.errors`, keyed by node id or by "workflow".
- Runs are strictly sequential, even for independent branches.
"""

from __future__ import annotations

import asyncio
import json
import logging
import time
from datetime import datetime, timedelta, timezone
from typing import Any, AsyncIterator, Callable

from canvasai.agents.generation.capabilities import GenerationCapability, default_capabilities
from canvasai.config import ExecutionConfig
from canvasai.db.supabase import get_supabase
from canvasai.models.workflow import Edge, ExecutionResult, Node
from canvasai.services.errors import CycleDetected, NodeExecutionError
from canvasai.services.graph import GraphIndex
from canvasai.services.node_dispatch import dispatch_node, merge_input_value
from canvasai.services.scheduler import topological_order

logger = logging.getLogger(__name__)

WORKFLOW_ERROR_KEY = "workflow"
CANCELLED_MESSAGE = "Workflow execution cancelled"

NodeUpdateCallback = Callable[[str, dict[str, Any]], None]


# ---------------------------------------------------------------------------
# Input resolution
# ---------------------------------------------------------------------------


def collect_node_inputs(
    index: GraphIndex,
    node: Node,
    results: dict[str, Any],
) -> dict[str, Any]:
    """
    Map each input port of `node` to the value its upstream node produced.

    Only results from the current run are used. Edges without a target
    handle, and edges whose source has not produced a result, are skipped.
    Several edges into one port are combined per node type (see
    node_dispatch.INPUT_MERGERS), otherwise the last edge wins.
    """
    inputs: dict[str, Any] = {}
    for target_handle, source_id in index.inputs_of(node.id):
        if not target_handle or source_id not in results:
            continue
        value = results[source_id]
        if target_handle in inputs:
            inputs[target_handle] = merge_input_value(
                node.type, target_handle, inputs[target_handle], value
            )
        else:
            inputs[target_handle] = value
    return inputs


# ---------------------------------------------------------------------------
# Main execution function
# ---------------------------------------------------------------------------


async def execute_workflow(
    nodes: list[Node],
    edges: list[Edge],
    on_node_update: NodeUpdateCallback | None = None,
    *,
    capabilities: GenerationCapability | None = None,
    cancel_event: asyncio.Event | None = None,
) -> ExecutionResult:
    """
    Execute every node of the graph in topological order.

    Args:
        nodes: editor nodes (read-only for the duration of the run)
        edges: editor edges
        on_node_update: called synchronously with partial node fields
            ({"status", "result", "error"}) as each node starts and finishes
        capabilities: generation provider; defaults to the configured router
        cancel_event: when set, the run stops before the next node starts
    """
    start_time = time.perf_counter()
    results: dict[str, Any] = {}
    errors: dict[str, str] = {}
    order: list[str] = []

    def notify(node_id: str, **fields: Any) -> None:
        if on_node_update is not None:
            on_node_update(node_id, fields)

    def finish() -> ExecutionResult:
        return ExecutionResult(
            success=not errors,
            results=dict(results),
            errors=dict(errors),
            execution_order=order,
            total_execution_time_ms=int((time.perf_counter() - start_time) * 1000),
        )

    try:
        try:
            order = topological_order(nodes, edges)
        except CycleDetected as e:
            logger.warning("Refusing to execute workflow: %s", e)
            errors[WORKFLOW_ERROR_KEY] = str(e)
            return finish()

        if capabilities is None:
            capabilities = default_capabilities()
        index = GraphIndex(nodes, edges)
        logger.info("Executing workflow: %d nodes", len(order))

        for node_id in order:
            if cancel_event is not None and cancel_event.is_set():
                logger.info("Workflow execution cancelled before node %s", node_id)
                errors[WORKFLOW_ERROR_KEY] = CANCELLED_MESSAGE
                break

            node = index.get_node(node_id)
            if node is None:
                continue

            # Callback failures propagate to the outer handler and are
            # reported under "workflow", not against the node
            notify(node_id, status="running", error=None)
            try:
                inputs = collect_node_inputs(index, node, results)
                logger.debug("Node %s (%s) inputs: %s", node_id, node.type, sorted(inputs))

                value = await dispatch_node(node, inputs, capabilities)
            except NodeExecutionError as e:
                message = str(e)
                logger.warning("Node %s failed: %s", node_id, message)
                errors[node_id] = message
                notify(node_id, status="error", error=message)
                break
            except Exception as e:
                message = str(e) or "Execution failed"
                logger.exception("Node %s failed unexpectedly: %s", node_id, message)
                errors[node_id] = message
                notify(node_id, status="error", error=message)
                break

            results[node_id] = value
            notify(node_id, status="complete", result=value)

    except Exception as e:
        logger.exception("Workflow execution failed: %s", e)
        errors[WORKFLOW_ERROR_KEY] = str(e) or "Execution failed"

    result = finish()
    logger.info(
        "Workflow execution finished: success=%s, %d results, %d errors in %d ms",
        result.success,
        len(result.results),
        len(result.errors),
        result.total_execution_time_ms,
    )
    return result


# ---------------------------------------------------------------------------
# Streaming execution (SSE)
# ---------------------------------------------------------------------------


def _sse(event: dict[str, Any]) -> str:
    return f"data: {json.dumps(event, default=str)}\n\n"


async def execute_workflow_streaming(
    nodes: list[Node],
    edges: list[Edge],
    *,
    capabilities: GenerationCapability | None = None,
    cancel_event: asyncio.Event | None = None,
    on_complete: Callable[[ExecutionResult], None] | None = None,
) -> AsyncIterator[str]:
    """
    Execute the workflow and yield Server-Sent Events as nodes change state.

    Yields JSON events:
    - {"event": "workflow_start", "total_nodes": N}
    - {"event": "node_update", "node_id": "...", "status": "...", "result"|"error": ...}
    - {"event": "workflow_complete", "success": true, "results": {...}, "errors": {}, ...}
    - {"event": "workflow_error", "success": false, "results": {...}, "errors": {...}, ...}
    """
    event_queue: asyncio.Queue = asyncio.Queue()

    def on_node_update(node_id: str, fields: dict[str, Any]) -> None:
        event_queue.put_nowait({"event": "node_update", "node_id": node_id, **fields})

    async def runner() -> None:
        try:
            result = await execute_workflow(
                nodes,
                edges,
                on_node_update,
                capabilities=capabilities,
                cancel_event=cancel_event,
            )
            if on_complete is not None:
                try:
                    on_complete(result)
                except Exception:
                    logger.exception("Workflow completion hook failed")
            await event_queue.put({
                "event": "workflow_complete" if result.success else "workflow_error",
                **result.model_dump(mode="json"),
            })
        finally:
            # Sentinel for completion
            await event_queue.put(None)

    yield _sse({"event": "workflow_start", "total_nodes": len(nodes)})

    runner_task = asyncio.create_task(runner())
    try:
        while True:
            event = await event_queue.get()
            if event is None:
                break
            yield _sse(event)
        await runner_task
    finally:
        if not runner_task.done():
            runner_task.cancel()
            try:
                await runner_task
            except asyncio.CancelledError:
                pass


# ---------------------------------------------------------------------------
# Execution history
# ---------------------------------------------------------------------------


def save_execution_log(
    result: ExecutionResult,
    workflow_id: str | None,
    user_id: str | None = None,
) -> tuple[str | None, str | None]:
    """
    Persist a run summary to the `executions` table when Supabase is configured.

    Returns:
        (execution_id, persistence_warning)
    """
    if not ExecutionConfig.persistence_enabled():
        return None, None

    completed_at = datetime.now(timezone.utc)
    started_at = completed_at - timedelta(milliseconds=result.total_execution_time_ms)
    payload = result.model_dump(mode="json")
    execution_row = {
        "workflow_id": workflow_id,
        "user_id": user_id,
        "status": "complete" if result.success else "failed",
        "results": payload["results"],
        "error": "; ".join(f"{key}: {msg}" for key, msg in result.errors.items()) or None,
        "started_at": started_at.isoformat(),
        "completed_at": completed_at.isoformat(),
    }

    try:
        supabase = get_supabase().client
        insert_result = supabase.table("executions").insert(execution_row).execute()
    except Exception as e:
        logger.exception("Failed to save execution log for workflow %s: %s", workflow_id, str(e))
        return None, "Execution completed but could not be saved to history."

    if not insert_result.data:
        logger.warning("Execution log insert returned no data for workflow %s", workflow_id)
        return None, "Execution completed but could not be saved to history."
    return str(insert_result.data[0]["id"]), None
