"""Error taxonomy shared by the proxy service and its configuration."""
from __future__ import annotations

GENERIC_FAILURE = "Image generation failed. Please try again."


class ConfigError(ValueError):
    """Raised at startup when the environment holds an invalid setting."""


class ProxyError(Exception):
    """Base for every failure the generation endpoint reports to a caller."""

    status_code = 500
    default_message = "Internal server error"

    def __init__(self, message: str | None = None) -> None:
        self.message = message or self.default_message
        super().__init__(self.message)


class InvalidInput(ProxyError):
    status_code = 400
    default_message = "Prompt is required"


class CorsRejected(ProxyError):
    status_code = 403
    default_message = "Not allowed by CORS"


class PayloadTooLarge(ProxyError):
    status_code = 413
    default_message = "Request body too large"


class RateLimited(ProxyError):
    status_code = 429
    default_message = "Too many requests. Please try again later."

    def __init__(self, retry_after: int, message: str | None = None) -> None:
        super().__init__(message)
        self.retry_after = retry_after


class InternalError(ProxyError):
    status_code = 500
    default_message = GENERIC_FAILURE


class UpstreamEmpty(ProxyError):
    status_code = 502
    default_message = GENERIC_FAILURE


class ServiceUnavailable(ProxyError):
    status_code = 503
    default_message = "Image generation service is temporarily unavailable"


class GenerationTimeout(ProxyError):
    status_code = 504
    default_message = "Image generation timed out. Please try again."
