"""FastAPI proxy for the Imagen background generator.

Endpoints:
- GET /health
- POST /api/generate-image  { "prompt": "..." }
"""
from __future__ import annotations
import json
import logging
from pathlib import Path

from fastapi import FastAPI, Request
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.responses import Response

from meeting_backdrop.common.config import Settings
from meeting_backdrop.common.errors import ProxyError, RateLimited
from meeting_backdrop.common.schema import ErrorOut, GenerateOut, GenerationRequest, HealthOut
from meeting_backdrop.common.templates import PLACEHOLDER, load_template
from meeting_backdrop.server.generation import GenerationService
from meeting_backdrop.server.imagen import GeminiImageGenerator, ImageGenerator
from meeting_backdrop.server.rate_limit import SlidingWindowLimiter, client_key, rate_limit_headers
from meeting_backdrop.server.security import (
    BodySizeLimitMiddleware,
    SecurityHeadersMiddleware,
    SPAStaticFiles,
    add_cors,
)

LOGGER = logging.getLogger("meeting_backdrop.server.app")

RATE_LIMITED_PREFIX = "/api/"


def _load_checked_template(path: str | None) -> str:
    """Read the prompt template and warn if it has nowhere to put the user's text."""
    template = load_template(path)
    if PLACEHOLDER not in template:
        LOGGER.warning("Prompt template %s has no %s placeholder; user text will be ignored", path, PLACEHOLDER)
    return template


def error_response(exc: ProxyError, headers: dict[str, str] | None = None) -> JSONResponse:
    return JSONResponse({"error": exc.message}, status_code=exc.status_code, headers=headers)


def _log_failure(request: Request, exc: ProxyError) -> None:
    cause = exc.__cause__ if exc.__cause__ is not None else exc.message
    if exc.status_code >= 500:
        LOGGER.error("Error in %s %s (%s): %s", request.method, request.url.path, exc.status_code, cause)
    else:
        LOGGER.warning("Rejected %s %s (%s): %s", request.method, request.url.path, exc.status_code, cause)


async def _json_body(request: Request) -> object:
    """Decode a JSON body; other content types and malformed JSON read as empty."""
    media_type = request.headers.get("content-type", "").split(";")[0].strip().lower()
    if media_type != "application/json":
        return {}
    raw = await request.body()
    try:
        return json.loads(raw) if raw else {}
    except (UnicodeDecodeError, json.JSONDecodeError):
        return {}


def create_app(settings: Settings, generator: ImageGenerator | None = None) -> FastAPI:
    """
    Build the proxy application.

    Args:
        settings: Immutable runtime configuration.
        generator: Provider to call; built from ``settings.api_key`` when omitted.
    """
    if generator is None and settings.has_credential:
        generator = GeminiImageGenerator.from_api_key(settings.api_key, settings.imagen_model)

    service = GenerationService(settings, generator, _load_checked_template(settings.prompt_template_path))
    limiter = SlidingWindowLimiter(settings.rate_limit_max, settings.rate_limit_window_ms / 1000.0)

    app = FastAPI(title="Meeting Backdrop", docs_url=None, redoc_url=None, openapi_url=None)
    app.state.settings = settings
    app.state.service = service
    app.state.limiter = limiter

    @app.exception_handler(ProxyError)
    async def _proxy_error_handler(request: Request, exc: ProxyError) -> JSONResponse:
        _log_failure(request, exc)
        return error_response(exc)

    async def _rate_limit(request: Request, call_next: RequestResponseEndpoint) -> Response:
        if not request.url.path.startswith(RATE_LIMITED_PREFIX) or request.method == "OPTIONS":
            return await call_next(request)
        decision = limiter.hit(client_key(request, trust_proxy=settings.production))
        headers = rate_limit_headers(decision)
        if not decision.allowed:
            exc = RateLimited(decision.retry_after)
            _log_failure(request, exc)
            return error_response(exc, headers=headers)
        response = await call_next(request)
        response.headers.update(headers)
        return response

    # Last added runs first: headers -> origin gate (production) -> CORS -> body cap -> rate limit -> routes.
    app.add_middleware(BaseHTTPMiddleware, dispatch=_rate_limit)
    app.add_middleware(BodySizeLimitMiddleware, max_bytes=settings.max_body_bytes)
    add_cors(app, settings)
    app.add_middleware(SecurityHeadersMiddleware, production=settings.production)

    @app.get("/health", response_model=HealthOut)
    def health() -> dict[str, bool]:
        return {"ok": True}

    @app.post(
        "/api/generate-image",
        response_model=GenerateOut,
        responses={code: {"model": ErrorOut} for code in (400, 403, 413, 429, 500, 502, 503, 504)},
    )
    async def generate_image(request: Request) -> dict[str, str]:
        body = await _json_body(request)
        image_bytes = await service.generate(GenerationRequest.from_body(body))
        return {"imageBytes": image_bytes}

    if settings.static_dir and Path(settings.static_dir).is_dir():
        LOGGER.info("Serving static files from %s", settings.static_dir)
        app.mount("/", SPAStaticFiles(directory=settings.static_dir, html=True), name="static")

    return app
