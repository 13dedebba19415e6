"""
Read, heartbeat/update and delete of a single domain.

The endpoint builds a :class:`RequestContext` and hands it to one of
the ``DomainService`` operations, which always answer with a
:class:`RestResponse`.

Update path::

    domain resolved? --no--> 401 (domain error)
    credential?      --no--> 401 "Unauthorized"
    payload usable?  --no--> 400 "badly formed data"
    DOMAIN/SPONSOR/ADMIN? --no--> 401 "Unauthorized"
    apply fields, stamp heartbeat, commit once --> success

Deletion is reserved for administrators and removes every place of
the domain after the domain itself.
"""

import logging
import sqlite3
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, List, Optional

from fastapi import status

from domain_directory_api.app.core.config import settings
from domain_directory_api.app.schemas.domain import Domain, DomainInfo, RequestContext
from domain_directory_api.app.schemas.response import RestResponse
from domain_directory_api.app.services.account_service import AccountService
from domain_directory_api.app.services.audit_service import AuditService
from domain_directory_api.app.services.domain_fields import FieldResult, set_domain_field
from domain_directory_api.app.services.domain_payload import (
    MalformedPayloadError,
    normalize_domain_payload,
)
from domain_directory_api.app.services.domain_store import DomainStore
from domain_directory_api.app.services.permissions import Perm, check_access_to_entity
from domain_directory_api.app.services.place_service import PlaceService

logger = logging.getLogger(__name__)

DOMAIN_NOT_FOUND = "Domain not found"
UNAUTHORIZED = "Unauthorized"
NOT_AUTHORIZED = "Not authorized"
TARGET_DOES_NOT_EXIST = "Target domain does not exist"

UPDATE_PERMS = frozenset({Perm.DOMAIN, Perm.SPONSOR, Perm.ADMIN})


@dataclass
class CascadeReport:
    """Outcome of removing the places of a deleted domain."""

    domain_id: str
    removed: List[str] = field(default_factory=list)
    failed: List[str] = field(default_factory=list)
    complete: bool = True


def _as_utc(moment: Optional[datetime]) -> Optional[datetime]:
    if moment is None:
        return None
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def next_heartbeat_time(previous: Optional[datetime], now: Optional[datetime] = None) -> datetime:
    """Current UTC time, never earlier than the stored heartbeat."""
    now = _as_utc(now) or datetime.now(timezone.utc)
    previous = _as_utc(previous)
    if previous is not None and previous > now:
        return previous
    return now


def build_domain_info(domain: Domain, now: Optional[datetime] = None) -> Dict[str, Any]:
    """Public snapshot of ``domain``.  Contains no secrets."""
    now = _as_utc(now) or datetime.now(timezone.utc)
    last_heartbeat = _as_utc(domain.time_of_last_heartbeat)
    active = (
        last_heartbeat is not None
        and (now - last_heartbeat).total_seconds() < settings.domain_offline_seconds
    )
    info = DomainInfo(
        domain_id=domain.domain_id,
        id=domain.domain_id,
        name=domain.name,
        visibility=domain.visibility,
        sponsor_account_id=domain.sponsor_account_id,
        label=domain.name,
        network_address=domain.network_addr,
        network_port=domain.network_port,
        automatic_networking=domain.automatic_networking,
        version=domain.version,
        protocol_version=domain.protocol,
        restricted=domain.restricted,
        restriction=domain.restriction,
        capacity=domain.capacity,
        maturity=domain.maturity,
        description=domain.description,
        contact_info=domain.contact_info,
        thumbnail=domain.thumbnail,
        images=domain.images,
        world_name=domain.world_name,
        hosts=domain.hosts,
        tags=domain.tags,
        managers=domain.managers,
        num_users=domain.num_users,
        num_anon_users=domain.num_anon_users,
        total_users=domain.num_users + domain.num_anon_users,
        active=active,
        time_of_last_heartbeat=last_heartbeat,
        time_of_last_heartbeat_s=int(last_heartbeat.timestamp()) if last_heartbeat else None,
    )
    return info.model_dump(mode="json")


class DomainService:
    """Operations on the domain named in the request path."""

    @classmethod
    async def get_domain(cls, ctx: RequestContext) -> RestResponse:
        if ctx.domain is None:
            # 401 rather than 404 so the domain server renegotiates
            return RestResponse.unauthorized(ctx.domain_error or DOMAIN_NOT_FOUND)
        domain_info = build_domain_info(ctx.domain)
        resp = RestResponse.ok({"domain": domain_info})
        # Older domain servers read the record from the top level
        resp.add_additional_field("domain", domain_info)
        return resp

    @classmethod
    async def update_domain(cls, ctx: RequestContext) -> RestResponse:
        """Apply a heartbeat or settings update to the resolved domain."""
        domain = ctx.domain
        if domain is None:
            return RestResponse.unauthorized(ctx.domain_error or DOMAIN_NOT_FOUND)
        if ctx.auth_token is None:
            return RestResponse.unauthorized(UNAUTHORIZED)

        try:
            fields = normalize_domain_payload(ctx.body)
        except MalformedPayloadError as exc:
            return RestResponse.failure(str(exc), status.HTTP_400_BAD_REQUEST)

        if not await check_access_to_entity(ctx.auth_token, domain, UPDATE_PERMS, ctx.account):
            return RestResponse.unauthorized(UNAUTHORIZED)

        updates: Dict[str, Any] = {}
        results: List[FieldResult] = []
        for name, value in fields:
            results.append(
                await set_domain_field(ctx.auth_token, domain, name, value, ctx.account, updates)
            )
        rejected = [r for r in results if not r.accepted]
        if rejected:
            # Rejected fields are dropped without telling the caller.
            logger.debug(
                "Domain %s: ignored fields %s",
                domain.domain_id,
                ", ".join(f"{r.field} ({r.reason})" for r in rejected),
            )

        updates["time_of_last_heartbeat"] = next_heartbeat_time(domain.time_of_last_heartbeat)
        logger.debug("Updating domain %s with %s", domain.domain_id, updates)
        try:
            await DomainStore.update_fields(domain, updates)
        except sqlite3.Error:
            logger.exception("Failed to update domain %s", domain.domain_id)
            return RestResponse.failure("Domain update failed", status.HTTP_500_INTERNAL_SERVER_ERROR)

        await AuditService.record(
            account_id=ctx.auth_token.account_id,
            action="heartbeat",
            object_type="domain",
            object_id=domain.domain_id,
            details=updates,
        )
        return RestResponse.ok()

    @classmethod
    async def delete_domain(cls, ctx: RequestContext) -> RestResponse:
        """Remove the domain and all of its places.  Administrators only."""
        if ctx.account is None or not AccountService.is_admin(ctx.account):
            return RestResponse.unauthorized(NOT_AUTHORIZED)
        domain = ctx.domain
        if domain is None:
            return RestResponse.unauthorized(TARGET_DOES_NOT_EXIST)

        try:
            await DomainStore.remove_domain(domain)
        except sqlite3.Error:
            logger.exception("Failed to remove domain %s", domain.domain_id)
            return RestResponse.failure("Domain removal failed", status.HTTP_500_INTERNAL_SERVER_ERROR)

        report = await cls.remove_domain_places(domain.domain_id)
        await AuditService.record(
            account_id=ctx.account.account_id,
            action="delete",
            object_type="domain",
            object_id=domain.domain_id,
            details={
                "places_removed": len(report.removed),
                "places_failed": report.failed,
                "cascade_complete": report.complete,
            },
        )
        return RestResponse.ok()

    @classmethod
    async def remove_domain_places(cls, domain_id: str) -> CascadeReport:
        """Remove every place of ``domain_id``, one at a time.

        A failure to remove one place is logged and recorded in the
        report; the remaining places are still removed and the domain
        removal is not undone.
        """
        report = CascadeReport(domain_id)
        try:
            async for place in PlaceService.enumerate_places(domain_id):
                try:
                    await PlaceService.remove_place(place)
                except Exception:
                    logger.warning(
                        "Could not remove place %s of deleted domain %s",
                        place.place_id,
                        domain_id,
                        exc_info=True,
                    )
                    report.failed.append(place.place_id)
                else:
                    report.removed.append(place.place_id)
        except sqlite3.Error:
            logger.exception("Place enumeration for deleted domain %s stopped early", domain_id)
            report.complete = False
        if report.failed:
            logger.warning(
                "Domain %s deleted; %d place(s) could not be removed", domain_id, len(report.failed)
            )
        else:
            logger.info("Domain %s deleted with %d place(s)", domain_id, len(report.removed))
        return report
