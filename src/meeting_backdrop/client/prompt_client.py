"""Async client for the background generator, with the submit/result state machine."""
from __future__ import annotations
import base64
import enum
import logging
from pathlib import Path

import httpx

LOGGER = logging.getLogger("meeting_backdrop.client")

DEFAULT_FILENAME = "ai-zoom-background.jpg"


class ClientState(str, enum.Enum):
    IDLE = "idle"
    SUBMITTING = "submitting"
    SUCCESS = "success"
    FAILED = "failed"


class PromptClient:
    """
    Submit prompts to ``POST /api/generate-image`` and hold the latest outcome.

    States move ``IDLE -> SUBMITTING -> SUCCESS | FAILED``; any settled state
    may submit again. Only non-empty prompts are checked locally, the server
    enforces the length cap. There is no retry.
    """

    def __init__(
        self,
        base_url: str = "http://localhost:8787",
        timeout: float = 120.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self.state = ClientState.IDLE
        self.image_bytes: str | None = None
        self.error: str | None = None

    def reset(self) -> None:
        self.state = ClientState.IDLE
        self.image_bytes = None
        self.error = None

    def _fail(self, message: str) -> None:
        LOGGER.error("Error generating image via API: %s", message)
        self.state = ClientState.FAILED
        self.error = message

    async def generate(self, prompt: str) -> ClientState:
        self.image_bytes = None
        self.error = None
        trimmed = prompt.strip()
        if not trimmed:
            self._fail("Prompt cannot be empty.")
            return self.state

        self.state = ClientState.SUBMITTING
        try:
            async with httpx.AsyncClient(timeout=self.timeout, transport=self._transport) as client:
                r = await client.post(f"{self.base_url}/api/generate-image", json={"prompt": trimmed})
        except httpx.HTTPError as e:
            self._fail(str(e) or "Failed to generate image.")
            return self.state

        try:
            data = r.json()
        except ValueError:
            data = None

        if r.is_error:
            message = data.get("error") if isinstance(data, dict) else None
            self._fail(message or f"Server error: {r.status_code}")
            return self.state

        image = data.get("imageBytes") if isinstance(data, dict) else None
        if not image:
            self._fail("Image generation failed: empty response from server.")
            return self.state

        self.state = ClientState.SUCCESS
        self.image_bytes = image
        return self.state

    def data_uri(self) -> str:
        if self.image_bytes is None:
            raise RuntimeError("no image has been generated")
        return f"data:image/jpeg;base64,{self.image_bytes}"

    def save(self, path: str | Path = DEFAULT_FILENAME) -> Path:
        """Write the decoded JPEG to ``path`` and return it."""
        if self.image_bytes is None:
            raise RuntimeError("no image has been generated")
        out = Path(path)
        out.write_bytes(base64.b64decode(self.image_bytes))
        return out
