"""
Extraction of updatable fields from a ``PUT /domains/{id}`` body.

Two shapes reach the endpoint:

* the heartbeat a domain server sends periodically, with flat fields
  under ``domain`` plus an optional ``heartbeat`` object carrying user
  counts;
* the settings page of a domain server, which nests its values under
  ``domain.meta``.

Each shape has its own allow‑list.  Only keys actually present are
returned, so an explicit ``""`` or ``0`` is applied while a missing
key leaves the stored value alone.
"""

from typing import Any, List, Mapping, Tuple

BADLY_FORMED = "badly formed data"

HEARTBEAT_FIELDS: Tuple[str, ...] = (
    "version",
    "protocol",
    "network_addr",
    "network_port",
    "automatic_networking",
    "restricted",
    "capacity",
    "description",
    "maturity",
    # after ``restricted`` so an explicit restriction level wins
    "restriction",
    "hosts",
    "tags",
)

HEARTBEAT_COUNT_FIELDS: Tuple[str, ...] = ("num_users", "num_anon_users")

META_FIELDS: Tuple[str, ...] = (
    "capacity",
    "contact_info",
    "description",
    "managers",
    "tags",
    "images",
    "maturity",
    "restriction",
    "thumbnail",
    "world_name",
)


class MalformedPayloadError(ValueError):
    def __init__(self, message: str = BADLY_FORMED) -> None:
        super().__init__(message)


def normalize_domain_payload(body: Any) -> List[Tuple[str, Any]]:
    """Return the ``(field, value)`` pairs to feed the field update engine.

    Order follows the allow‑lists, not the order of the request body.

    Raises
    ------
    MalformedPayloadError
        If the body has no ``domain`` object or that object is empty.
    """
    if not isinstance(body, Mapping):
        raise MalformedPayloadError()
    values = body.get("domain")
    if not isinstance(values, Mapping) or not values:
        raise MalformedPayloadError()

    meta = values.get("meta")
    if isinstance(meta, Mapping) and meta:
        return [(field, meta[field]) for field in META_FIELDS if field in meta]

    pairs = [(field, values[field]) for field in HEARTBEAT_FIELDS if field in values]
    heartbeat = values.get("heartbeat")
    if isinstance(heartbeat, Mapping):
        pairs.extend(
            (field, heartbeat[field]) for field in HEARTBEAT_COUNT_FIELDS if field in heartbeat
        )
    return pairs
