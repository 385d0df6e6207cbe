"""
Generation capabilities: the boundary between workflow nodes and the
external AI providers.

Every capability answers `invoke(capability_id, arguments)` with a
GenerationOutcome. Provider failures come back as `outcome.error` instead
of exceptions, and a finished call without a usable URL comes back with
neither field set.

Capability ids:
- fal.ai application ids, e.g. "fal-ai/flux-pro" (default route)
- "gemini/text-to-image", "gemini/image-to-image"
- "simulated/3d"
"""

from __future__ import annotations

import asyncio
import base64
import logging
import time
from typing import Any, Optional, Protocol

import httpx
from pydantic import BaseModel

from canvasai.config import GenerationConfig

logger = logging.getLogger(__name__)

GEMINI_PREFIX = "gemini/"
SIMULATED_PREFIX = "simulated/"

GEMINI_TEXT_TO_IMAGE = "gemini/text-to-image"
GEMINI_IMAGE_TO_IMAGE = "gemini/image-to-image"
SIMULATED_3D = "simulated/3d"


class GenerationOutcome(BaseModel):
    primary_result_url: Optional[str] = None
    error: Optional[str] = None


class GenerationCapability(Protocol):
    async def invoke(self, capability_id: str, arguments: dict[str, Any]) -> GenerationOutcome:
        ...


def extract_primary_url(payload: Any) -> str | None:
    """Pull the main asset URL out of a provider response body."""
    if not isinstance(payload, dict):
        return None

    images = payload.get("images")
    if isinstance(images, list) and images:
        first = images[0]
        if isinstance(first, dict) and isinstance(first.get("url"), str) and first["url"]:
            return first["url"]

    for key in ("image", "video", "model_mesh"):
        candidate = payload.get(key)
        if isinstance(candidate, dict) and isinstance(candidate.get("url"), str) and candidate["url"]:
            return candidate["url"]
    return None


def _describe_http_error(exc: httpx.HTTPStatusError) -> str:
    response = exc.response
    try:
        body = response.json()
    except ValueError:
        body = None

    if isinstance(body, dict):
        detail = body.get("detail") or body.get("error") or body.get("message")
        if isinstance(detail, list):
            detail = "; ".join(
                str(item.get("msg", item)) if isinstance(item, dict) else str(item)
                for item in detail
            )
        if detail:
            return f"HTTP {response.status_code}: {detail}"
    text = response.text.strip()
    if text:
        return f"HTTP {response.status_code}: {text[:300]}"
    return f"HTTP {response.status_code}"


# ---------------------------------------------------------------------------
# fal.ai
# ---------------------------------------------------------------------------


class FalCapability:
    """
    fal.ai queue API client.

    Submits a request to the queue, polls its status until COMPLETED and
    then fetches the result. Each HTTP call has its own timeout, and the
    whole request is bounded by `timeout` seconds.
    """

    def __init__(
        self,
        api_key: str | None = None,
        queue_url: str | None = None,
        poll_interval: float | None = None,
        timeout: float | None = None,
        transport: httpx.AsyncBaseTransport | None = None,
    ):
        self.api_key = api_key
        self.queue_url = (queue_url or GenerationConfig.FAL_QUEUE_URL).rstrip("/")
        self.poll_interval = (
            poll_interval if poll_interval is not None else GenerationConfig.FAL_POLL_INTERVAL_SECONDS
        )
        self.timeout = timeout if timeout is not None else GenerationConfig.FAL_TIMEOUT_SECONDS
        self._transport = transport

    async def invoke(self, capability_id: str, arguments: dict[str, Any]) -> GenerationOutcome:
        try:
            api_key = self.api_key or GenerationConfig.get_fal_key()
        except ValueError as e:
            return GenerationOutcome(error=str(e))

        headers = {"Authorization": f"Key {api_key}"}
        try:
            async with httpx.AsyncClient(
                headers=headers, timeout=60.0, transport=self._transport
            ) as client:
                payload = await self._subscribe(client, capability_id, arguments)
        except httpx.HTTPStatusError as e:
            message = _describe_http_error(e)
            logger.warning("fal request to %s failed: %s", capability_id, message)
            return GenerationOutcome(error=message)
        except (httpx.HTTPError, TimeoutError, ValueError) as e:
            message = str(e) or type(e).__name__
            logger.warning("fal request to %s failed: %s", capability_id, message)
            return GenerationOutcome(error=message)

        return GenerationOutcome(primary_result_url=extract_primary_url(payload))

    async def _subscribe(
        self,
        client: httpx.AsyncClient,
        capability_id: str,
        arguments: dict[str, Any],
    ) -> Any:
        logger.info("Submitting fal request to %s", capability_id)
        submit = await client.post(f"{self.queue_url}/{capability_id}", json=arguments)
        submit.raise_for_status()
        ticket = submit.json()

        status_url = ticket.get("status_url")
        response_url = ticket.get("response_url")
        if not status_url or not response_url:
            raise ValueError(f"fal queue response for {capability_id} is missing status/response URLs")

        request_id = ticket.get("request_id")
        deadline = time.monotonic() + self.timeout
        while True:
            status_resp = await client.get(status_url)
            status_resp.raise_for_status()
            status = status_resp.json().get("status")
            logger.debug("fal request %s status: %s", request_id, status)
            if status == "COMPLETED":
                break
            if time.monotonic() >= deadline:
                raise TimeoutError(
                    f"Timed out after {self.timeout:g}s waiting for {capability_id}"
                )
            await asyncio.sleep(self.poll_interval)

        result = await client.get(response_url)
        result.raise_for_status()
        logger.info("fal request %s to %s completed", request_id, capability_id)
        return result.json()


# ---------------------------------------------------------------------------
# Gemini native image generation
# ---------------------------------------------------------------------------


async def _load_image_bytes(image_ref: str) -> tuple[bytes, str]:
    """Resolve a data URL or http(s) URL into (bytes, mime_type)."""
    if image_ref.startswith("data:"):
        header, encoded = image_ref.split(",", 1)
        mime_type = header[len("data:"):].split(";")[0] or "image/png"
        return base64.b64decode(encoded), mime_type

    if image_ref.startswith("http://") or image_ref.startswith("https://"):
        async with httpx.AsyncClient(timeout=60.0) as client:
            resp = await client.get(image_ref)
            resp.raise_for_status()
            content_type = resp.headers.get("content-type", "").split(";")[0].strip()
            return resp.content, content_type or "image/png"

    raise ValueError("Unsupported reference image; expected a data URL or http(s) URL")


class GeminiImageCapability:
    """Image generation through the Gemini API's image response modality."""

    def __init__(self, api_key: str | None = None, model: str | None = None, client: Any = None):
        self.api_key = api_key
        self.model = model or GenerationConfig.GEMINI_IMAGE_MODEL
        self._client = client

    def _get_client(self):
        if self._client is None:
            from google import genai

            self._client = genai.Client(api_key=self.api_key or GenerationConfig.get_gemini_key())
        return self._client

    async def invoke(self, capability_id: str, arguments: dict[str, Any]) -> GenerationOutcome:
        from google.genai import types

        prompt = arguments.get("prompt", "")
        contents: Any = prompt
        try:
            if capability_id == GEMINI_IMAGE_TO_IMAGE:
                image_bytes, mime_type = await _load_image_bytes(arguments["image_url"])
                contents = [
                    prompt,
                    types.Part.from_bytes(data=image_bytes, mime_type=mime_type),
                ]
            elif capability_id != GEMINI_TEXT_TO_IMAGE:
                return GenerationOutcome(error=f"Unsupported Gemini capability: {capability_id}")

            image_config = None
            if arguments.get("aspect_ratio"):
                image_config = types.ImageConfig(aspect_ratio=arguments["aspect_ratio"])

            client = self._get_client()
            response = await asyncio.to_thread(
                client.models.generate_content,
                model=self.model,
                contents=contents,
                config=types.GenerateContentConfig(
                    response_modalities=["Image"],
                    image_config=image_config,
                ),
            )
        except Exception as e:
            logger.warning("Gemini image generation failed: %s", e)
            return GenerationOutcome(error=str(e) or type(e).__name__)

        for part in response.parts or []:
            if part.inline_data is not None:
                mime_type = part.inline_data.mime_type or "image/png"
                image_data = base64.b64encode(part.inline_data.data).decode("utf-8")
                return GenerationOutcome(primary_result_url=f"data:{mime_type};base64,{image_data}")

        return GenerationOutcome()


# ---------------------------------------------------------------------------
# Simulated 3D generation
# ---------------------------------------------------------------------------


class Simulated3DCapability:
    """Stands in for the Rodin 3D API: waits, then returns a placeholder model URL."""

    def __init__(self, delay_seconds: float | None = None):
        self.delay_seconds = (
            delay_seconds if delay_seconds is not None else GenerationConfig.SIMULATED_3D_DELAY_SECONDS
        )

    async def invoke(self, capability_id: str, arguments: dict[str, Any]) -> GenerationOutcome:
        await asyncio.sleep(self.delay_seconds)
        file_format = arguments.get("geometry_file_format") or "glb"
        return GenerationOutcome(
            primary_result_url=f"https://example.com/3d-model-{int(time.time() * 1000)}.{file_format}"
        )


# ---------------------------------------------------------------------------
# Routing
# ---------------------------------------------------------------------------


class CapabilityRouter:
    """Sends each capability id to the provider that serves it."""

    def __init__(
        self,
        fal: GenerationCapability | None = None,
        gemini: GenerationCapability | None = None,
        simulated: GenerationCapability | None = None,
    ):
        self.fal = fal or FalCapability()
        self.gemini = gemini or GeminiImageCapability()
        self.simulated = simulated or Simulated3DCapability()

    async def invoke(self, capability_id: str, arguments: dict[str, Any]) -> GenerationOutcome:
        if capability_id.startswith(GEMINI_PREFIX):
            return await self.gemini.invoke(capability_id, arguments)
        if capability_id.startswith(SIMULATED_PREFIX):
            return await self.simulated.invoke(capability_id, arguments)
        return await self.fal.invoke(capability_id, arguments)


def default_capabilities() -> CapabilityRouter:
    return CapabilityRouter()
