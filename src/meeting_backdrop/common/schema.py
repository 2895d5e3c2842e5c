"""Pydantic models and dataclasses for request/response types."""
from __future__ import annotations
from dataclasses import dataclass
from typing import Any

from pydantic import BaseModel

class GenerateOut(BaseModel):
    imageBytes: str

class ErrorOut(BaseModel):
    error: str

class HealthOut(BaseModel):
    ok: bool = True

@dataclass(frozen=True)
class GenerationRequest:
    """A validated prompt, already trimmed."""
    prompt: str

    @classmethod
    def from_body(cls, body: Any) -> "GenerationRequest":
        """Coerce a decoded JSON body; anything but a string prompt becomes empty."""
        prompt = body.get("prompt") if isinstance(body, dict) else None
        if not isinstance(prompt, str):
            prompt = ""
        return cls(prompt=prompt.strip())
