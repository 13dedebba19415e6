"""
Validated, permission‑checked updates of individual domain fields.

The requester can send almost anything in a heartbeat, so nothing is
copied into a domain record without passing through this module.
``DOMAIN_FIELDS`` maps each settable field name to a :class:`FieldSpec`
holding:

* a validator that returns the coerced value or raises
  :class:`FieldValidationError`;
* the roles allowed to set the field;
* optionally a setter, for fields that also write a derived column.

``set_domain_field`` never raises for bad input.  It reports the
outcome as a :class:`FieldResult` and only writes into the caller's
change‑set on success.  Heartbeat handling discards rejected results
on purpose: one bad field must not block an otherwise valid
heartbeat.

Names missing from ``DOMAIN_FIELDS`` are rejected outright, which is
what keeps ``domain_id``, ``api_key_hash``, ``sponsor_account_id`` and
the heartbeat timestamp out of reach of callers.
"""

import ipaddress
import logging
import re
from dataclasses import dataclass
from typing import Any, Callable, Dict, FrozenSet, Iterable, List, Optional

from domain_directory_api.app.schemas.auth import AuthToken
from domain_directory_api.app.schemas.domain import (
    Account,
    AutomaticNetworking,
    Domain,
    Maturity,
    Restriction,
)
from domain_directory_api.app.services.permissions import Perm, check_access_to_entity

logger = logging.getLogger(__name__)

MAX_PORT = 65535
# Largest value an SQLite INTEGER column holds
MAX_INT = 2**63 - 1

_HOST_LABEL = re.compile(r"(?!-)[A-Za-z0-9-]{1,63}(?<!-)")


class FieldValidationError(ValueError):
    """Raised by a validator when a candidate value is unacceptable."""


@dataclass(frozen=True)
class FieldResult:
    field: str
    accepted: bool
    reason: Optional[str] = None


Validator = Callable[[Any], Any]
Setter = Callable[[Any, Dict[str, Any]], None]


@dataclass(frozen=True)
class FieldSpec:
    validate: Validator
    set_perms: FrozenSet[Perm]
    setter: Optional[Setter] = None

    def apply(self, name: str, value: Any, updates: Dict[str, Any]) -> None:
        if self.setter is not None:
            self.setter(value, updates)
        else:
            updates[name] = value


# ---------------------------------------------------------------------------
# Validators
# ---------------------------------------------------------------------------

def validate_string(value: Any) -> str:
    if not isinstance(value, str):
        raise FieldValidationError("expected a string")
    return value


def validate_bool(value: Any) -> bool:
    if not isinstance(value, bool):
        raise FieldValidationError("expected a boolean")
    return value


def _to_int(value: Any) -> int:
    # bool is an int subclass; reject it explicitly
    if isinstance(value, bool):
        raise FieldValidationError("expected an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float) and value.is_integer():
        return int(value)
    if isinstance(value, str):
        text = value.strip()
        if text.isascii() and text.isdecimal():
            return int(text)
    raise FieldValidationError("expected an integer")


def validate_non_negative_int(value: Any) -> int:
    number = _to_int(value)
    if number < 0:
        raise FieldValidationError("expected a non-negative integer")
    if number > MAX_INT:
        raise FieldValidationError("integer too large")
    return number


def validate_port(value: Any) -> int:
    port = _to_int(value)
    if not 1 <= port <= MAX_PORT:
        raise FieldValidationError("port out of range")
    return port


def validate_host(value: Any) -> str:
    """Accept a DNS host name or an IPv4/IPv6 literal.  Empty clears the address."""
    host = validate_string(value).strip()
    if host == "":
        return host
    try:
        ipaddress.ip_address(host)
        return host
    except ValueError:
        pass
    name = host[:-1] if host.endswith(".") else host
    if len(name) > 253 or not all(_HOST_LABEL.fullmatch(label) for label in name.split(".")):
        raise FieldValidationError("not a valid host")
    return host


def enum_validator(choices: Iterable[str]) -> Validator:
    allowed = frozenset(choices)

    def _validate(value: Any) -> str:
        text = validate_string(value).strip().lower()
        if text not in allowed:
            raise FieldValidationError(f"expected one of {sorted(allowed)}")
        return text

    return _validate


def validate_string_list(value: Any) -> List[str]:
    """A list of strings, de‑duplicated with first‑seen order kept."""
    if not isinstance(value, (list, tuple)):
        raise FieldValidationError("expected a list of strings")
    seen: Dict[str, None] = {}
    for item in value:
        if not isinstance(item, str):
            raise FieldValidationError("expected a list of strings")
        seen.setdefault(item, None)
    return list(seen)


# ---------------------------------------------------------------------------
# Setters with side effects
# ---------------------------------------------------------------------------

def _set_restriction(value: str, updates: Dict[str, Any]) -> None:
    # ``restricted`` is derived from the restriction level
    updates["restriction"] = value
    updates["restricted"] = value != Restriction.OPEN.value


# ---------------------------------------------------------------------------
# Field table
# ---------------------------------------------------------------------------

ANY_CONTROLLER = frozenset({Perm.DOMAIN, Perm.SPONSOR, Perm.ADMIN})
ACCOUNT_CONTROLLER = frozenset({Perm.SPONSOR, Perm.ADMIN})

DOMAIN_FIELDS: Dict[str, FieldSpec] = {
    "version": FieldSpec(validate_string, ANY_CONTROLLER),
    "protocol": FieldSpec(validate_string, ANY_CONTROLLER),
    "network_addr": FieldSpec(validate_host, ANY_CONTROLLER),
    "network_port": FieldSpec(validate_port, ANY_CONTROLLER),
    "automatic_networking": FieldSpec(
        enum_validator(m.value for m in AutomaticNetworking), ANY_CONTROLLER
    ),
    "restricted": FieldSpec(validate_bool, ANY_CONTROLLER),
    "restriction": FieldSpec(
        enum_validator(r.value for r in Restriction), ANY_CONTROLLER, _set_restriction
    ),
    "capacity": FieldSpec(validate_non_negative_int, ANY_CONTROLLER),
    "num_users": FieldSpec(validate_non_negative_int, ANY_CONTROLLER),
    "num_anon_users": FieldSpec(validate_non_negative_int, ANY_CONTROLLER),
    "description": FieldSpec(validate_string, ANY_CONTROLLER),
    "contact_info": FieldSpec(validate_string, ANY_CONTROLLER),
    "thumbnail": FieldSpec(validate_string, ANY_CONTROLLER),
    "world_name": FieldSpec(validate_string, ANY_CONTROLLER),
    "maturity": FieldSpec(enum_validator(m.value for m in Maturity), ANY_CONTROLLER),
    "tags": FieldSpec(validate_string_list, ANY_CONTROLLER),
    "hosts": FieldSpec(validate_string_list, ANY_CONTROLLER),
    "images": FieldSpec(validate_string_list, ANY_CONTROLLER),
    "managers": FieldSpec(validate_string_list, ACCOUNT_CONTROLLER),
}


async def set_domain_field(
    auth_token: Optional[AuthToken],
    domain: Domain,
    field: str,
    value: Any,
    account: Optional[Account],
    updates: Dict[str, Any],
) -> FieldResult:
    """Validate ``value`` for ``field`` and stage it in ``updates``.

    The domain record itself is not touched; the caller commits
    ``updates`` in one go.  Returns the outcome for the field.
    """
    spec = DOMAIN_FIELDS.get(field)
    if spec is None:
        return FieldResult(field, False, "unknown field")
    if not await check_access_to_entity(auth_token, domain, spec.set_perms, account):
        return FieldResult(field, False, "not permitted")
    try:
        coerced = spec.validate(value)
    except FieldValidationError as exc:
        return FieldResult(field, False, str(exc))
    spec.apply(field, coerced, updates)
    return FieldResult(field, True)
