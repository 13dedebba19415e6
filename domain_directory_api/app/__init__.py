"""
Application package initializer.

The project is organised into logical pieces: ``core`` holds
configuration, logging, persistence and token handling; ``services``
holds the business rules for domains, places and permissions;
``schemas`` holds the pydantic models; and ``api`` exposes the
versioned routers.
"""

from .main import app  # noqa: F401
