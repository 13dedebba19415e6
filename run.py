"""Entry point for the domain directory service.

Serves the FastAPI application with Uvicorn.  Host and port are read
from the ``DIRECTORY_HOST`` and ``DIRECTORY_PORT`` environment
variables (defaults ``0.0.0.0`` and ``9400``); everything else is
configured through the variables documented in
``domain_directory_api.app.core.config``.

Usage:
    python run.py
"""
import asyncio
import logging
import os

from uvicorn import Config, Server

from domain_directory_api.app.core.config import settings
from domain_directory_api.app.main import app


async def main() -> None:
    host = os.getenv("DIRECTORY_HOST", "0.0.0.0")
    port = int(os.getenv("DIRECTORY_PORT", "9400"))
    config = Config(app=app, host=host, port=port, reload=False, log_level=settings.log_level.lower())
    server = Server(config)
    logging.getLogger(__name__).info("Serving domain directory on %s:%d", host, port)
    await server.serve()


if __name__ == "__main__":
    try:
        asyncio.run(main())
    except (KeyboardInterrupt, SystemExit):
        pass
