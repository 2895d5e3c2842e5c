"""Launch the proxy with uvicorn after loading and validating configuration."""
from __future__ import annotations
import logging
import sys

import uvicorn

from meeting_backdrop.common.config import load_env_files, load_settings
from meeting_backdrop.common.errors import ConfigError
from meeting_backdrop.common.logging_setup import setup_logging
from meeting_backdrop.server.fastapi_app import create_app

LOGGER = logging.getLogger("meeting_backdrop.server")

def main() -> None:
    load_env_files()
    try:
        settings = load_settings()
    except ConfigError as e:
        setup_logging()
        LOGGER.error("Invalid configuration: %s", e)
        sys.exit(1)

    setup_logging(settings.log_level)
    app = create_app(settings)
    LOGGER.info("Server listening on http://%s:%s", settings.host, settings.port)
    if settings.mock_ai:
        LOGGER.info("MOCK_AI enabled: returning placeholder images")
    elif not settings.has_credential:
        LOGGER.warning("GEMINI_API_KEY is not set; generation requests will return 503")

    # One worker: the rate limiter keeps its counters in process memory.
    uvicorn.run(
        app,
        host=settings.host,
        port=settings.port,
        workers=1,
        proxy_headers=False,
        server_header=False,
        log_config=None,
    )

if __name__ == "__main__":
    main()
