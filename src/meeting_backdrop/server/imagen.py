"""Image providers behind the generation endpoint."""
from __future__ import annotations
import base64
import logging
from abc import ABC, abstractmethod

from google import genai
from google.genai import types

LOGGER = logging.getLogger("meeting_backdrop.server.imagen")

# 1x1 JPEG returned when MOCK_AI is enabled.
PLACEHOLDER_JPEG_B64 = (
    "/9j/4AAQSkZJRgABAQAAAQABAAD/2wCEAAkGBxAQEBUQFRUQFRUVFRUVFRUVFRUVFhUVFhUVFRUYHSggGBolHRUVITEhJSkrLi4u"
    "Fx8zODMsNygtLisBCgoKDg0OGxAQGy0lICUtLS0tLS0tLS0tLS0tLS0tLS0tLS0tLS0tLS0tLS0tLS0tLS0tLS0tLS0tLS0tLf/A"
    "ABEIAAEAAQMBIgACEQEDEQH/xAAXAAEBAQEAAAAAAAAAAAAAAAAABQEE/8QAFxABAQEBAAAAAAAAAAAAAAAAAQACIf/EABYBAQEB"
    "AAAAAAAAAAAAAAAAAAACA//EABYRAQEBAAAAAAAAAAAAAAAAAAABEf/aAAwDAQACEQMRAD8A7wCKAAAAAAAAAAAAAAAAAAAAAAAA"
    "AAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAAf/2Q=="
)


class ImageGenerator(ABC):
    """Abstract interface for an image generation provider."""

    @abstractmethod
    async def generate(self, prompt: str) -> bytes | None:
        """Generate one JPEG for ``prompt``; ``None`` or empty bytes when nothing came back."""


class GeminiImageGenerator(ImageGenerator):
    """Generate images with Imagen through the Google GenAI SDK."""

    def __init__(self, client: genai.Client, model: str, aspect_ratio: str = "16:9") -> None:
        self._client = client
        self._model = model
        self._aspect_ratio = aspect_ratio

    @classmethod
    def from_api_key(cls, api_key: str, model: str) -> "GeminiImageGenerator":
        return cls(genai.Client(api_key=api_key), model)

    async def generate(self, prompt: str) -> bytes | None:
        LOGGER.info("Requesting image from %s", self._model)
        response = await self._client.aio.models.generate_images(
            model=self._model,
            prompt=prompt,
            config=types.GenerateImagesConfig(
                number_of_images=1,
                output_mime_type="image/jpeg",
                aspect_ratio=self._aspect_ratio,
            ),
        )
        if not response.generated_images:
            return None
        image = response.generated_images[0].image
        if image is None or not image.image_bytes:
            return None
        data = image.image_bytes
        if isinstance(data, str):
            return base64.b64decode(data)
        return data
