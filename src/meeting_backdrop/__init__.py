"""
Meeting Backdrop package.

Provides:
- A FastAPI proxy that turns a text prompt into an AI-generated meeting background (Imagen)
- A small async client and CLI for requesting and saving backgrounds
"""

__version__ = "0.1.0"
