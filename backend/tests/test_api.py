"""
Tests for the HTTP API.

Generation providers are replaced through FastAPI dependency overrides,
so no request leaves the test process.
"""

import json

import pytest
from fastapi.testclient import TestClient

from canvasai.agents.generation.capabilities import GenerationOutcome
from canvasai.api.v1 import workflows
from canvasai.api.v1.workflows import get_capabilities
from canvasai.config import ExecutionConfig
from canvasai.main import app

from helpers import FakeCapabilities


def _node(node_id, node_type, result=None, **parameters):
    return {
        "id": node_id,
        "type": node_type,
        "position": {"x": 0, "y": 0},
        "data": {
            "label": node_id,
            "result": result,
            "parameters": [
                {"id": key, "type": "select", "value": value} for key, value in parameters.items()
            ],
        },
    }


def _edge(source, target, target_handle):
    return {
        "id": f"e-{source}-{target}",
        "source": source,
        "target": target,
        "sourceHandle": "output",
        "targetHandle": target_handle,
    }


@pytest.fixture
def capabilities():
    return FakeCapabilities(default=GenerationOutcome(primary_result_url="https://x/cat.png"))


@pytest.fixture
def client(capabilities, monkeypatch):
    monkeypatch.setattr(ExecutionConfig, "SUPABASE_URL", None)
    app.dependency_overrides[get_capabilities] = lambda: capabilities
    yield TestClient(app)
    app.dependency_overrides.clear()


class TestWorkflowExecution:
    def test_execute_chain(self, client):
        response = client.post("/api/v1/workflows/execute", json={
            "nodes": [_node("t1", "textInput", "a cat"), _node("i1", "textToImage", model="flux-pro")],
            "edges": [_edge("t1", "i1", "prompt")],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is True
        assert body["results"] == {"t1": "a cat", "i1": "https://x/cat.png"}
        assert body["execution_order"] == ["t1", "i1"]
        assert body["persistence_warning"] is None

    def test_cycle_is_reported_in_body(self, client):
        response = client.post("/api/v1/workflows/execute", json={
            "nodes": [_node("a", "preview"), _node("b", "preview")],
            "edges": [_edge("a", "b", "data"), _edge("b", "a", "data")],
        })

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert "cycle" in body["errors"]["workflow"]

    def test_malformed_graph_is_rejected(self, client):
        response = client.post("/api/v1/workflows/execute", json={"nodes": [{"type": "textInput"}]})

        assert response.status_code == 422

    def test_concurrent_run_of_same_workflow(self, client):
        workflows._active_runs.add("wf-busy")
        try:
            response = client.post("/api/v1/workflows/execute", json={"nodes": [], "workflow_id": "wf-busy"})
        finally:
            workflows._active_runs.discard("wf-busy")

        assert response.status_code == 409
        assert response.json()["detail"] == "This workflow is already running"

    def test_run_is_released_after_completion(self, client):
        payload = {"nodes": [_node("t1", "textInput", "hi")], "workflow_id": "wf-1"}

        assert client.post("/api/v1/workflows/execute", json=payload).status_code == 200
        assert client.post("/api/v1/workflows/execute", json=payload).status_code == 200
        assert "wf-1" not in workflows._active_runs

    def test_stream(self, client):
        response = client.post("/api/v1/workflows/execute/stream", json={
            "nodes": [_node("t1", "textInput", "a cat"), _node("i1", "textToImage")],
            "edges": [_edge("t1", "i1", "prompt")],
            "workflow_id": "wf-stream",
        })

        assert response.status_code == 200
        assert response.headers["content-type"].startswith("text/event-stream")
        events = [
            json.loads(line[len("data: "):])
            for line in response.text.split("\n\n")
            if line.startswith("data: ")
        ]
        assert events[0]["event"] == "workflow_start"
        assert events[-1]["event"] == "workflow_complete"
        assert events[-1]["results"]["i1"] == "https://x/cat.png"
        assert "wf-stream" not in workflows._active_runs

    @pytest.mark.asyncio
    async def test_stream_never_iterated_still_releases_run(self, capabilities):
        request = workflows.ExecuteWorkflowRequest(nodes=[], edges=[], workflow_id="wf-dropped")

        response = await workflows.execute_workflow_stream(request, capabilities)
        assert "wf-dropped" in workflows._active_runs

        # Client went away before the body was read; only the response's
        # background task runs
        await response.background()

        assert "wf-dropped" not in workflows._active_runs


class TestNodeTypes:
    def test_list_templates(self, client):
        response = client.get("/api/v1/node-types")

        assert response.status_code == 200
        templates = response.json()
        assert set(templates) == {
            "textInput", "imageUpload", "colorReference", "textToImage",
            "generate3D", "videoGen", "preview",
        }

    def test_create_node(self, client):
        response = client.post("/api/v1/node-types/videoGen/nodes", json={"position": {"x": 40, "y": 80}})

        assert response.status_code == 201
        node = response.json()
        assert node["type"] == "videoGen"
        assert node["id"].startswith("videoGen-")
        assert node["position"] == {"x": 40, "y": 80}
        assert node["data"]["status"] == "idle"

    def test_create_unknown_node(self, client):
        response = client.post("/api/v1/node-types/upscaler/nodes", json={})

        assert response.status_code == 404


class TestGeneration:
    def test_text_to_image(self, client, capabilities):
        response = client.post("/api/v1/generate/text-to-image", json={"prompt": "a cat", "model": "sdxl"})

        assert response.status_code == 200
        assert response.json() == {"success": True, "imageUrl": "https://x/cat.png", "error": None}
        assert capabilities.calls[0][0] == "fal-ai/fast-sdxl"

    def test_text_to_image_requires_prompt(self, client):
        response = client.post("/api/v1/generate/text-to-image", json={"prompt": ""})

        assert response.status_code == 400
        assert response.json()["detail"] == "Prompt is required"

    def test_text_to_image_rejects_out_of_range_size(self, client):
        response = client.post("/api/v1/generate/text-to-image", json={"prompt": "a cat", "width": 64})

        assert response.status_code == 422

    def test_provider_failure(self, client, capabilities):
        capabilities.default = GenerationOutcome(error="HTTP 401: Unauthorized")

        response = client.post("/api/v1/generate/text-to-image", json={"prompt": "a cat"})

        assert response.status_code == 200
        body = response.json()
        assert body["success"] is False
        assert body["error"] == "Image generation failed: HTTP 401: Unauthorized"

    def test_image_to_video(self, client, capabilities):
        response = client.post("/api/v1/generate/image-to-video", json={
            "imageUrl": "https://x/cat.png",
            "model": "kling",
            "aspectRatio": "16:9",
        })

        assert response.status_code == 200
        assert response.json()["success"] is True
        capability_id, arguments = capabilities.calls[0]
        assert capability_id == "fal-ai/kling-video/v2/master/image-to-video"
        assert arguments["aspect_ratio"] == "16:9"

    def test_image_to_video_requires_image(self, client):
        response = client.post("/api/v1/generate/image-to-video", json={"prompt": "jump"})

        assert response.status_code == 400
        assert response.json()["detail"] == "Image URL is required"

    def test_text_to_video(self, client, capabilities):
        response = client.post("/api/v1/generate/text-to-video", json={"prompt": "waves", "model": "veo-3"})

        assert response.json()["videoUrl"] == "https://x/cat.png"
        assert capabilities.calls[0] == ("fal-ai/veo3.1/fast", {"duration": "5s", "prompt": "waves"})
