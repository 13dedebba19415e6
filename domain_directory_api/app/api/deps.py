"""
Request context dependencies.

Before a domain operation runs, the request is resolved into an
immutable :class:`RequestContext`:

1. the domain named in the path (or a reason why there is none);
2. the bearer credential, as an :class:`AuthToken`;
3. for updates, the domain API key carried in ``domain.api_key`` of
   the body, which must match the domain's stored key hash;
4. the account behind an owner token.

Services receive the context by parameter and never look at the raw
request.
"""

import json
import logging
from typing import Any, Mapping, Optional

from fastapi import Depends, Path, Request
from fastapi.security import HTTPAuthorizationCredentials

from domain_directory_api.app.core.security import bearer_scheme, resolve_auth_token, verify_secret
from domain_directory_api.app.schemas.auth import AuthToken, TokenScope
from domain_directory_api.app.schemas.domain import RequestContext
from domain_directory_api.app.services.account_service import AccountService
from domain_directory_api.app.services.domain_service import DOMAIN_NOT_FOUND
from domain_directory_api.app.services.domain_store import DomainStore

logger = logging.getLogger(__name__)

API_KEY_MISMATCH = "Domain API key does not match"


async def read_json_body(request: Request) -> Optional[Any]:
    """Parsed JSON body, or ``None`` when the body is empty or not JSON."""
    raw = await request.body()
    if not raw:
        return None
    try:
        return json.loads(raw)
    except ValueError:
        logger.debug("Ignoring non-JSON body on %s", request.url.path)
        return None


def domain_api_key_from_body(body: Any) -> Optional[str]:
    if not isinstance(body, Mapping):
        return None
    values = body.get("domain")
    if not isinstance(values, Mapping):
        return None
    api_key = values.get("api_key")
    return api_key if isinstance(api_key, str) and api_key else None


async def build_request_context(
    domain_id: str,
    bearer: Optional[str],
    body: Optional[Any] = None,
    verify_api_key: bool = False,
) -> RequestContext:
    domain = await DomainStore.get_domain(domain_id)
    domain_error = None if domain else DOMAIN_NOT_FOUND

    auth_token: Optional[AuthToken] = resolve_auth_token(bearer)

    if verify_api_key and domain is not None:
        api_key = domain_api_key_from_body(body)
        if api_key is not None:
            if verify_secret(api_key, domain.api_key_hash):
                if auth_token is None:
                    auth_token = AuthToken(scope=TokenScope.DOMAIN, domain_id=domain.domain_id)
            else:
                logger.info("Domain %s presented a non-matching API key", domain_id)
                domain, domain_error = None, API_KEY_MISMATCH

    account = None
    if auth_token is not None and auth_token.scope == TokenScope.OWNER:
        account = await AccountService.get_account(auth_token.account_id)

    return RequestContext(
        domain_id=domain_id,
        domain=domain,
        domain_error=domain_error,
        account=account,
        auth_token=auth_token,
        body=body,
    )


def _bearer_value(credentials: Optional[HTTPAuthorizationCredentials]) -> Optional[str]:
    return credentials.credentials if credentials is not None else None


async def domain_context(
    domain_id: str = Path(..., description="Identifier of the domain"),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
) -> RequestContext:
    """Context for reads and deletes: domain from the path plus the bearer identity."""
    return await build_request_context(domain_id, _bearer_value(credentials))


async def domain_update_context(
    domain_id: str = Path(..., description="Identifier of the domain"),
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(bearer_scheme),
    body: Optional[Any] = Depends(read_json_body),
) -> RequestContext:
    """Context for updates: also reads the body and checks its domain API key."""
    return await build_request_context(
        domain_id, _bearer_value(credentials), body=body, verify_api_key=True
    )
