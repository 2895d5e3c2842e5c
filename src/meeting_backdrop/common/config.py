"""Environment-driven configuration.

Settings are read once at startup into an immutable :class:`Settings` and
handed to :func:`meeting_backdrop.server.fastapi_app.create_app`.
"""
from __future__ import annotations
import os
from dataclasses import dataclass
from pathlib import Path
from typing import Mapping

from dotenv import load_dotenv

from meeting_backdrop.common.errors import ConfigError

DEFAULT_PORT = 8787
DEFAULT_TIMEOUT_MS = 30_000
MIN_TIMEOUT_MS = 1_000
DEFAULT_MAX_PROMPT_LENGTH = 2000
DEFAULT_MAX_BODY_BYTES = 2 * 1024 * 1024
DEFAULT_MODEL = "imagen-3.0-generate-002"


@dataclass(frozen=True)
class Settings:
    """Runtime configuration for the proxy service."""
    port: int = DEFAULT_PORT
    host: str = "0.0.0.0"
    api_key: str | None = None
    mock_ai: bool = False
    production: bool = False
    allowed_origins: tuple[str, ...] = ()
    image_timeout_ms: int = DEFAULT_TIMEOUT_MS
    imagen_model: str = DEFAULT_MODEL
    max_prompt_length: int = DEFAULT_MAX_PROMPT_LENGTH
    rate_limit_max: int = 10
    rate_limit_window_ms: int = 60_000
    max_body_bytes: int = DEFAULT_MAX_BODY_BYTES
    static_dir: str | None = "dist"
    prompt_template_path: str | None = None
    log_level: str = "INFO"

    def __post_init__(self) -> None:
        if not 1 <= self.port <= 65535:
            raise ConfigError(f'Invalid PORT "{self.port}". Expected an integer between 1 and 65535.')
        if self.image_timeout_ms < MIN_TIMEOUT_MS:
            raise ConfigError(
                f'Invalid IMAGE_TIMEOUT_MS "{self.image_timeout_ms}". Use an integer >= {MIN_TIMEOUT_MS}.'
            )
        if self.production and not self.allowed_origins:
            raise ConfigError("ALLOWED_ORIGINS must be set in production (comma-separated list).")
        for name in ("max_prompt_length", "rate_limit_max", "rate_limit_window_ms", "max_body_bytes"):
            if getattr(self, name) < 1:
                raise ConfigError(f"Invalid {name.upper()} {getattr(self, name)!r}. Expected a positive integer.")

    @property
    def has_credential(self) -> bool:
        return bool(self.api_key)

    @property
    def image_timeout_s(self) -> float:
        return self.image_timeout_ms / 1000.0


def load_env_files(base: Path | None = None) -> None:
    """Load ``server/.env`` if present, else ``.env``; never overrides set variables."""
    base = base or Path.cwd()
    server_env = base / "server" / ".env"
    if server_env.exists():
        load_dotenv(server_env, override=False)
    else:
        load_dotenv(base / ".env", override=False)


def _parse_int(env: Mapping[str, str], name: str, default: int) -> int:
    raw = env.get(name)
    if raw is None or raw.strip() == "":
        return default
    try:
        return int(raw.strip())
    except ValueError:
        raise ConfigError(f'Invalid {name} "{raw}". Expected an integer.') from None


def _parse_bool(env: Mapping[str, str], name: str) -> bool:
    return env.get(name, "").strip().lower() == "true"


def _parse_origins(raw: str) -> tuple[str, ...]:
    return tuple(origin.strip() for origin in raw.split(",") if origin.strip())


def load_settings(env: Mapping[str, str] | None = None) -> Settings:
    """
    Build settings from environment variables.

    Args:
        env: Mapping to read from; defaults to ``os.environ``.

    Raises:
        ConfigError: If a value is malformed or out of range.
    """
    env = os.environ if env is None else env
    static_dir = env.get("STATIC_DIR", "dist").strip() or None
    return Settings(
        port=_parse_int(env, "PORT", DEFAULT_PORT),
        host=env.get("HOST", "0.0.0.0").strip() or "0.0.0.0",
        api_key=env.get("GEMINI_API_KEY") or None,
        mock_ai=_parse_bool(env, "MOCK_AI"),
        production=env.get("APP_ENV", "development").strip().lower() == "production",
        allowed_origins=_parse_origins(env.get("ALLOWED_ORIGINS", "")),
        image_timeout_ms=_parse_int(env, "IMAGE_TIMEOUT_MS", DEFAULT_TIMEOUT_MS),
        imagen_model=env.get("IMAGEN_MODEL", DEFAULT_MODEL).strip() or DEFAULT_MODEL,
        max_prompt_length=_parse_int(env, "MAX_PROMPT_LENGTH", DEFAULT_MAX_PROMPT_LENGTH),
        rate_limit_max=_parse_int(env, "RATE_LIMIT_MAX", 10),
        rate_limit_window_ms=_parse_int(env, "RATE_LIMIT_WINDOW_MS", 60_000),
        max_body_bytes=_parse_int(env, "MAX_BODY_BYTES", DEFAULT_MAX_BODY_BYTES),
        static_dir=static_dir,
        prompt_template_path=env.get("PROMPT_TEMPLATE_PATH") or None,
        log_level=env.get("LOG_LEVEL", "INFO").strip() or "INFO",
    )
