"""Validate a prompt, call the provider under a deadline, and shape the result."""
from __future__ import annotations
import asyncio
import base64
import logging

from meeting_backdrop.common.config import Settings
from meeting_backdrop.common.errors import (
    GENERIC_FAILURE,
    GenerationTimeout,
    InternalError,
    InvalidInput,
    ProxyError,
    ServiceUnavailable,
    UpstreamEmpty,
)
from meeting_backdrop.common.schema import GenerationRequest
from meeting_backdrop.common.templates import render_prompt
from meeting_backdrop.server.imagen import PLACEHOLDER_JPEG_B64, ImageGenerator

LOGGER = logging.getLogger("meeting_backdrop.server.generation")


class GenerationService:
    """
    Turn a :class:`GenerationRequest` into base64 JPEG data.

    A call that loses the race against ``settings.image_timeout_ms`` is
    left running. It is held in ``pending`` until it settles and its
    outcome is then dropped.
    """

    def __init__(self, settings: Settings, generator: ImageGenerator | None, template: str) -> None:
        self.settings = settings
        self.generator = generator
        self.template = template
        self.pending: set[asyncio.Task] = set()

    def validate(self, request: GenerationRequest) -> None:
        if len(request.prompt) < 1:
            raise InvalidInput("Prompt is required")
        limit = self.settings.max_prompt_length
        if len(request.prompt) > limit:
            raise InvalidInput(f"Prompt must be {limit} characters or fewer")

    async def generate(self, request: GenerationRequest) -> str:
        self.validate(request)

        if self.settings.mock_ai:
            return PLACEHOLDER_JPEG_B64

        if self.generator is None:
            raise ServiceUnavailable()

        full_prompt = render_prompt(self.template, request.prompt)
        task = asyncio.ensure_future(self.generator.generate(full_prompt))
        done, _ = await asyncio.wait({task}, timeout=self.settings.image_timeout_s)

        if task not in done:
            self.pending.add(task)
            task.add_done_callback(self._abandoned)
            raise GenerationTimeout()

        try:
            image = task.result()
        except ProxyError:
            raise
        except Exception as e:
            message = GENERIC_FAILURE if self.settings.production else (str(e) or type(e).__name__)
            raise InternalError(message) from e

        if not image:
            raise UpstreamEmpty()
        return base64.b64encode(image).decode("ascii")

    def _abandoned(self, task: asyncio.Task) -> None:
        self.pending.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            LOGGER.debug("Late provider call failed after timeout: %s", exc)
        else:
            LOGGER.debug("Late provider call finished after timeout; result dropped")
