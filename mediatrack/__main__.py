"""Module executed when running ``python -m mediatrack``."""

from __future__ import annotations

import argparse
import asyncio
import logging
from contextlib import AsyncExitStack

import uvicorn

from app.config import settings

logger = logging.getLogger("mediatrack")


def serve() -> None:
    """Start the uvicorn server using the configured settings."""

    uvicorn.run(
        "app.main:app",
        host=settings.server_host,
        port=settings.server_port,
        reload=settings.environment == "development",
    )


async def backfill() -> int:
    """Fill missing metadata for every stored item, then exit."""

    from app.main import build_services

    async with AsyncExitStack() as exit_stack:
        services = await build_services(settings, exit_stack)
        return await services.list_service.backfill_metadata()


def main(argv: list[str] | None = None) -> None:
    parser = argparse.ArgumentParser(prog="mediatrack")
    parser.add_argument(
        "command",
        nargs="?",
        default="serve",
        choices=("serve", "backfill"),
        help="run the HTTP API (default) or a one-off metadata backfill",
    )
    args = parser.parse_args(argv)

    if args.command == "backfill":
        updated = asyncio.run(backfill())
        logger.info("Backfill complete: %s items updated", updated)
        return
    serve()


if __name__ == "__main__":  # pragma: no cover - runtime entrypoint
    main()
