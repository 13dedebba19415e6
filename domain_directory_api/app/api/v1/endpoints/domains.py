"""
Domain endpoints for API v1.

``GET``, ``PUT`` and ``DELETE`` on ``/domains/{domain_id}``.  ``PUT``
doubles as the heartbeat of a running domain server.  The handlers
only render what ``DomainService`` returns; they never raise
``HTTPException`` so every outcome uses the same response envelope.
"""

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse

from domain_directory_api.app.api.deps import domain_context, domain_update_context
from domain_directory_api.app.schemas.domain import RequestContext
from domain_directory_api.app.services.domain_service import DomainService

router = APIRouter()


@router.get("/{domain_id}")
async def get_domain(ctx: RequestContext = Depends(domain_context)) -> JSONResponse:
    """Return the public information of a domain.

    An unknown domain answers 401 so the domain server renegotiates its
    identity.
    """
    resp = await DomainService.get_domain(ctx)
    return resp.to_response()


@router.put("/{domain_id}")
async def put_domain(ctx: RequestContext = Depends(domain_update_context)) -> JSONResponse:
    """Heartbeat and settings update.

    Callable by the domain itself (domain token or API key), its
    sponsor or managers, and administrators.  The body is either
    ``{"domain": {<flat fields>, "heartbeat": {...}}}`` or
    ``{"domain": {"meta": {...}}}``.
    """
    resp = await DomainService.update_domain(ctx)
    return resp.to_response()


@router.delete("/{domain_id}")
async def delete_domain(ctx: RequestContext = Depends(domain_context)) -> JSONResponse:
    """Delete a domain and its places.  Administrators only."""
    resp = await DomainService.delete_domain(ctx)
    return resp.to_response()
