"""Serve the panel's monitoring endpoints with uvicorn."""

from __future__ import annotations

import argparse
import asyncio
import logging

import uvicorn

from smmpanel.api import build_health_app
from smmpanel.app import SmmPanelApplication
from smmpanel.config import get_settings


async def serve(host: str, port: int, log_level: str) -> None:
    app = SmmPanelApplication()
    uvicorn_config = uvicorn.Config(
        app=build_health_app(app),
        host=host,
        port=port,
        log_level=log_level.lower(),
        loop="asyncio",
    )
    server = uvicorn.Server(uvicorn_config)
    await server.serve()


def main() -> None:
    settings = get_settings()
    parser = argparse.ArgumentParser(description="Serve the SMM panel system-health API.")
    parser.add_argument("--host", default=settings.host, help=f"Bind address (default: {settings.host}).")
    parser.add_argument("--port", type=int, default=settings.port, help=f"Bind port (default: {settings.port}).")
    parser.add_argument(
        "--log-level",
        default="INFO",
        help="Logging level (DEBUG, INFO, WARNING, ...).",
    )
    args = parser.parse_args()

    logging.basicConfig(
        level=getattr(logging, args.log_level.upper(), logging.INFO),
        format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
    )

    try:
        asyncio.run(serve(args.host, args.port, args.log_level))
    except KeyboardInterrupt:
        pass


if __name__ == "__main__":
    main()
