"""Generate a meeting background from the command line."""
from __future__ import annotations
import argparse
import asyncio
import logging
import sys

from meeting_backdrop.client.prompt_client import DEFAULT_FILENAME, ClientState, PromptClient
from meeting_backdrop.common.logging_setup import setup_logging

LOGGER = logging.getLogger("meeting_backdrop.client.cli")

def main(argv: list[str] | None = None) -> int:
    setup_logging()
    ap = argparse.ArgumentParser(description="Generate an AI meeting background")
    ap.add_argument("--prompt", required=True, help="Scene description")
    ap.add_argument("--base-url", default="http://localhost:8787", help="Proxy service URL")
    ap.add_argument("--out", default=DEFAULT_FILENAME, help="Where to write the JPEG")
    ap.add_argument("--timeout", type=float, default=120.0)
    args = ap.parse_args(argv)

    client = PromptClient(args.base_url, timeout=args.timeout)
    state = asyncio.run(client.generate(args.prompt))
    if state is not ClientState.SUCCESS:
        print(client.error, file=sys.stderr)
        return 1

    path = client.save(args.out)
    LOGGER.info("Saved background to %s", path)
    print(path)
    return 0

if __name__ == "__main__":
    sys.exit(main())
