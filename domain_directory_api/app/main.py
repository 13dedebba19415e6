"""
Main entrypoint for the Domain Directory API.

This module assembles the FastAPI application, sets up logging and
includes versioned routers.  The app is instantiated at import time
as ``app`` so it can be served with::

    uvicorn domain_directory_api.app.main:app
"""

from fastapi import FastAPI

from .api.v1.router import router as v1_router
from .core.config import settings
from .core.db import init_db
from .core.logging_config import setup_logging


def create_app() -> FastAPI:
    """Create and configure a FastAPI application.

    Logging is configured first so that everything imported or started
    afterwards can log.  The database schema is migrated on startup.
    """
    setup_logging(settings.log_level, settings.log_file or None)

    app = FastAPI(title=settings.project_name, version=settings.api_version, debug=settings.debug)
    app.include_router(v1_router, prefix="/api/v1")

    @app.on_event("startup")
    async def startup_event() -> None:
        init_db()

    return app


app = create_app()
