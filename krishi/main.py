"""Krishi server entry point."""

import asyncio
import contextlib
import logging

from krishi.config import settings

logging.basicConfig(
    format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    level=getattr(logging, settings.log_level),
)
logger = logging.getLogger(__name__)


async def _serve() -> None:
    from krishi.server.app import AssistantServer

    server = AssistantServer()
    await server.start()
    try:
        await asyncio.Event().wait()
    finally:
        await server.stop()


def main() -> None:
    """Start the HTTP server and run until interrupted."""
    logger.info("Starting Krishi with model %s...", settings.claude_model)
    with contextlib.suppress(KeyboardInterrupt):
        asyncio.run(_serve())


if __name__ == "__main__":
    main()
