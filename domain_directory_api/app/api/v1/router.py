"""
Top‑level router for version 1 of the API.
"""

from fastapi import APIRouter

from .endpoints import domains

router = APIRouter()

router.include_router(domains.router, prefix="/domains", tags=["domains"])
