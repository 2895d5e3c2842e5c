from __future__ import annotations

import asyncio
from dataclasses import replace

import pytest
from fastapi.testclient import TestClient

from meeting_backdrop.common.config import Settings
from meeting_backdrop.server.fastapi_app import create_app
from meeting_backdrop.server.imagen import ImageGenerator


class FakeGenerator(ImageGenerator):
    """Records prompts and returns a canned result, or raises it if it is an exception."""

    def __init__(self, result: bytes | None | Exception = b"\xff\xd8\xffjpeg", delay: float = 0.0) -> None:
        self.result = result
        self.delay = delay
        self.prompts: list[str] = []

    async def generate(self, prompt: str) -> bytes | None:
        self.prompts.append(prompt)
        if self.delay:
            await asyncio.sleep(self.delay)
        if isinstance(self.result, Exception):
            raise self.result
        return self.result


@pytest.fixture()
def settings() -> Settings:
    return Settings(static_dir=None)


@pytest.fixture()
def mock_settings(settings: Settings) -> Settings:
    return replace(settings, mock_ai=True)


def make_client(settings: Settings, generator: ImageGenerator | None = None) -> TestClient:
    return TestClient(create_app(settings, generator))
