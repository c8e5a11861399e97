#!/usr/bin/env python
"""Print the heartbeat of a Chroma server.

Usage:
    python -m scripts.heartbeat --endpoint localhost:8000

Exits non-zero when the server cannot be reached, so it can be used as a
readiness probe before running integration tests.
"""

import argparse
import asyncio
import sys

from chroma_client import ChromaConnectionError, connect
from chroma_client.logging_config import get_logger, setup_logging

logger = get_logger(__name__)


async def check(endpoint: str | None) -> int:
    """Connect, print heartbeat and version, and return an exit code."""
    try:
        client = await connect(endpoint)
    except ChromaConnectionError as e:
        logger.error(e.message, extra={"details": e.details})
        return 1

    async with client:
        heartbeat = await client.heartbeat()
        version = await client.version()

    print(heartbeat)
    logger.info(f"Chroma {version} at {client.connection.base_url}")
    return 0


def main() -> None:
    """Main entry point."""
    parser = argparse.ArgumentParser(
        description="Check that a Chroma server is alive",
        formatter_class=argparse.ArgumentDefaultsHelpFormatter,
    )
    parser.add_argument(
        "--endpoint",
        type=str,
        default=None,
        help="Server URL or host:port (default: CHROMA_HOST/CHROMA_PORT)",
    )
    parser.add_argument(
        "--log-level",
        type=str,
        default="INFO",
        help="Logging level",
    )

    args = parser.parse_args()
    setup_logging(level=args.log_level)
    sys.exit(asyncio.run(check(args.endpoint)))


if __name__ == "__main__":
    main()
