"""
Role checks against a single domain.

``check_access_to_entity`` answers one question: does the caller
behind ``auth_token`` hold at least one of the requested roles with
respect to ``domain``?  The answer is a plain ``bool``; callers never
learn which role failed.

Roles
-----
``Perm.DOMAIN``
    The credential belongs to the domain itself (a domain token or the
    domain's API key).
``Perm.SPONSOR``
    The account sponsors the domain or is listed among its managers.
``Perm.ADMIN``
    The account carries the ``admin`` role.
"""

import logging
import sqlite3
from enum import Enum
from typing import Iterable, Optional

from domain_directory_api.app.schemas.auth import AuthToken, TokenScope
from domain_directory_api.app.schemas.domain import Account, Domain
from domain_directory_api.app.services.account_service import AccountService

logger = logging.getLogger(__name__)


class Perm(str, Enum):
    DOMAIN = "domain"
    SPONSOR = "sponsor"
    ADMIN = "admin"


def _is_domain(auth_token: AuthToken, domain: Domain) -> bool:
    return auth_token.scope == TokenScope.DOMAIN and auth_token.domain_id == domain.domain_id


def _is_sponsor(account: Optional[Account], domain: Domain) -> bool:
    if account is None:
        return False
    if domain.sponsor_account_id and account.account_id == domain.sponsor_account_id:
        return True
    return account.username in domain.managers


async def check_access_to_entity(
    auth_token: Optional[AuthToken],
    domain: Domain,
    required: Iterable[Perm],
    account: Optional[Account] = None,
) -> bool:
    """Return True if the caller satisfies any role in ``required``.

    ``account`` may be passed when the caller's account was already
    looked up; otherwise it is loaded from the token.  An account that
    does not match the token's subject is ignored.  A failed account
    lookup denies access.
    """
    if auth_token is None:
        return False
    required = set(required)
    if not required:
        return False

    if Perm.DOMAIN in required and _is_domain(auth_token, domain):
        return True

    if auth_token.scope != TokenScope.OWNER or not auth_token.account_id:
        return False
    if account is None or account.account_id != auth_token.account_id:
        try:
            account = await AccountService.get_account(auth_token.account_id)
        except sqlite3.Error:
            logger.exception("Account lookup for %s failed", auth_token.account_id)
            return False
        if account is None:
            logger.debug("Token subject %s has no account", auth_token.account_id)
            return False

    if Perm.SPONSOR in required and _is_sponsor(account, domain):
        return True
    if Perm.ADMIN in required and AccountService.is_admin(account):
        return True
    return False
