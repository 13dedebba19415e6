"""
Pydantic models for domains, accounts and places.

``Domain`` mirrors a row of the ``domains`` table, including the API
key hash; it never leaves the service.  ``DomainInfo`` is the public
snapshot returned by ``GET /domains/{domain_id}``.
"""

from datetime import datetime
from enum import Enum
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from .auth import AuthToken


class Maturity(str, Enum):
    UNRATED = "unrated"
    EVERYONE = "everyone"
    TEEN = "teen"
    MATURE = "mature"
    ADULT = "adult"


class Restriction(str, Enum):
    OPEN = "open"
    HIFI = "hifi"
    ACL = "acl"


class AutomaticNetworking(str, Enum):
    FULL = "full"
    IP = "ip"
    DISABLED = "disabled"


class Domain(BaseModel):
    domain_id: str
    name: Optional[str] = None
    visibility: str = "open"
    sponsor_account_id: Optional[str] = None
    managers: List[str] = Field(default_factory=list)
    api_key_hash: Optional[str] = None
    version: Optional[str] = None
    protocol: Optional[str] = None
    network_addr: Optional[str] = None
    network_port: Optional[int] = None
    automatic_networking: str = AutomaticNetworking.DISABLED.value
    restricted: bool = False
    restriction: str = Restriction.OPEN.value
    capacity: int = 0
    maturity: str = Maturity.UNRATED.value
    description: Optional[str] = None
    contact_info: Optional[str] = None
    thumbnail: Optional[str] = None
    images: List[str] = Field(default_factory=list)
    world_name: Optional[str] = None
    hosts: List[str] = Field(default_factory=list)
    tags: List[str] = Field(default_factory=list)
    num_users: int = 0
    num_anon_users: int = 0
    time_of_last_heartbeat: Optional[datetime] = None
    when_created: Optional[datetime] = None

    model_config = {"from_attributes": True}


class DomainInfo(BaseModel):
    """Public snapshot of a domain.  ``id`` duplicates ``domain_id`` for older clients."""

    domain_id: str
    id: str
    name: Optional[str] = None
    visibility: str
    sponsor_account_id: Optional[str] = None
    label: Optional[str] = None
    network_address: Optional[str] = None
    network_port: Optional[int] = None
    automatic_networking: str
    version: Optional[str] = None
    protocol_version: Optional[str] = None
    restricted: bool
    restriction: str
    capacity: int
    maturity: str
    description: Optional[str] = None
    contact_info: Optional[str] = None
    thumbnail: Optional[str] = None
    images: List[str]
    world_name: Optional[str] = None
    hosts: List[str]
    tags: List[str]
    managers: List[str]
    num_users: int
    num_anon_users: int
    total_users: int
    active: bool
    time_of_last_heartbeat: Optional[datetime] = None
    time_of_last_heartbeat_s: Optional[int] = None


class Account(BaseModel):
    account_id: str
    username: str
    email: Optional[str] = None
    roles: List[str] = Field(default_factory=lambda: ["user"])

    model_config = {"from_attributes": True}

    @property
    def is_admin(self) -> bool:
        return "admin" in self.roles


class Place(BaseModel):
    place_id: str
    name: str
    domain_id: str
    description: Optional[str] = None

    model_config = {"from_attributes": True}


class RequestContext(BaseModel):
    """Everything the upstream dependencies resolved for one request.

    Built once per request by ``api.deps`` and passed to the services
    by parameter.
    """

    domain_id: str
    domain: Optional[Domain] = None
    domain_error: Optional[str] = None
    account: Optional[Account] = None
    auth_token: Optional[AuthToken] = None
    body: Optional[Any] = None

    model_config = {"frozen": True}

