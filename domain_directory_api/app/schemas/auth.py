"""
Authentication credential model.

An :class:`AuthToken` is the resolved form of the bearer token (or
domain API key) a caller presented.  It identifies either an account
(``owner`` scope) or a domain (``domain`` scope), never both.
"""

from enum import Enum
from typing import Optional

from pydantic import BaseModel


class TokenScope(str, Enum):
    OWNER = "owner"
    DOMAIN = "domain"


class AuthToken(BaseModel):
    scope: TokenScope
    account_id: Optional[str] = None
    domain_id: Optional[str] = None

    model_config = {"frozen": True}
