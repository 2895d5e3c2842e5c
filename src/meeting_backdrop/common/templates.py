"""Prompt templating helpers."""
from __future__ import annotations
from pathlib import Path

PLACEHOLDER = "{{input}}"

BACKGROUND_TEMPLATE = (
    "A professional, high-resolution 16:9 aspect ratio virtual background for a video conference. "
    "The style is photorealistic and visually appealing. The scene is: {{input}}. "
    "The image must be suitable for a professional setting, with good lighting and composition. "
    "Avoid text and logos."
)

def load_template(path: str | None = None) -> str:
    """
    Load a prompt template, falling back to the built-in background framing.

    Args:
        path: Optional path to a template file containing {{input}}.
    """
    if not path:
        return BACKGROUND_TEMPLATE
    return Path(path).read_text(encoding="utf-8")

def render_prompt(template: str, user_input: str) -> str:
    """
    Render user input into the template.

    Args:
        template: Template content containing {{input}}.
        user_input: Input string.

    Returns:
        Rendered prompt.
    """
    return template.replace(PLACEHOLDER, user_input)
