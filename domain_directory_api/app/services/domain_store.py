"""
Persistence for domain records.

``DomainStore`` reads and writes rows of the ``domains`` table.
``update_fields`` is the only write path used by heartbeats: it turns
a change‑set into one ``UPDATE`` statement so all fields of a
heartbeat become visible together.
"""

import json
import logging
import sqlite3
import uuid
from datetime import datetime
from typing import Any, Dict, Optional

from domain_directory_api.app.core.db import get_connection
from domain_directory_api.app.schemas.domain import Domain

logger = logging.getLogger(__name__)

JSON_COLUMNS = frozenset({"managers", "images", "hosts", "tags"})

# Columns a change‑set may touch.  ``domain_id`` and ``when_created``
# are deliberately absent.
UPDATABLE_COLUMNS = frozenset(
    {
        "name", "visibility", "sponsor_account_id", "managers", "api_key_hash",
        "version", "protocol", "network_addr", "network_port",
        "automatic_networking", "restricted", "restriction", "capacity",
        "maturity", "description", "contact_info", "thumbnail", "images",
        "world_name", "hosts", "tags", "num_users", "num_anon_users",
        "time_of_last_heartbeat",
    }
)


def _row_to_domain(row: sqlite3.Row) -> Domain:
    values = dict(row)
    for column in JSON_COLUMNS:
        values[column] = json.loads(values[column]) if values.get(column) else []
    return Domain(**values)


def _to_column_value(column: str, value: Any) -> Any:
    if column in JSON_COLUMNS:
        return json.dumps(list(value or []))
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, datetime):
        return value.isoformat()
    return value


class DomainStore:
    """Reads and writes domain rows."""

    @classmethod
    async def get_domain(cls, domain_id: str) -> Optional[Domain]:
        conn = get_connection()
        try:
            row = conn.execute("SELECT * FROM domains WHERE domain_id = ?", (domain_id,)).fetchone()
            return _row_to_domain(row) if row else None
        finally:
            conn.close()

    @classmethod
    async def create_domain(
        cls,
        name: str,
        sponsor_account_id: Optional[str] = None,
        api_key_hash: Optional[str] = None,
        domain_id: Optional[str] = None,
        **fields: Any,
    ) -> Domain:
        """Insert a new domain.  Registration proper lives outside this service."""
        values: Dict[str, Any] = {
            "domain_id": domain_id or str(uuid.uuid4()),
            "name": name,
            "sponsor_account_id": sponsor_account_id,
            "api_key_hash": api_key_hash,
        }
        for column, value in fields.items():
            if column not in UPDATABLE_COLUMNS:
                raise ValueError(f"Unknown domain column {column}")
            values[column] = value
        columns = list(values)
        conn = get_connection()
        try:
            conn.execute(
                f"INSERT INTO domains ({', '.join(columns)}) VALUES ({', '.join('?' for _ in columns)})",
                tuple(_to_column_value(c, values[c]) for c in columns),
            )
            conn.commit()
            logger.info("Domain %s created", values["domain_id"])
        finally:
            conn.close()
        domain = await cls.get_domain(values["domain_id"])
        assert domain is not None
        return domain

    @classmethod
    async def update_fields(cls, domain: Domain, updates: Dict[str, Any]) -> None:
        """Apply a change‑set to ``domain`` in a single statement."""
        if not updates:
            return
        unknown = set(updates) - UPDATABLE_COLUMNS
        if unknown:
            raise ValueError(f"Refusing to update columns {sorted(unknown)}")
        columns = list(updates)
        assignments = ", ".join(f"{column} = ?" for column in columns)
        params = [_to_column_value(column, updates[column]) for column in columns]
        params.append(domain.domain_id)
        conn = get_connection()
        try:
            conn.execute(f"UPDATE domains SET {assignments} WHERE domain_id = ?", tuple(params))
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def remove_domain(cls, domain: Domain) -> bool:
        conn = get_connection()
        try:
            cursor = conn.execute("DELETE FROM domains WHERE domain_id = ?", (domain.domain_id,))
            conn.commit()
            removed = cursor.rowcount > 0
        finally:
            conn.close()
        if removed:
            logger.info("Domain %s removed", domain.domain_id)
        return removed
