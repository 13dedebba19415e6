"""
Audit trail of changes made to domains.

Each accepted heartbeat stores the change‑set it committed, and each
deletion stores how many places the cascade removed.  Audit writes
must never fail the operation being audited, so ``record`` logs and
swallows storage errors; ``log`` is the raw insert.
"""

from __future__ import annotations

import json
import logging
import sqlite3
from typing import Any, Dict, List, Optional

from fastapi.encoders import jsonable_encoder

from domain_directory_api.app.core.db import get_connection

logger = logging.getLogger(__name__)


class AuditService:
    """Service class for writing and retrieving audit logs."""

    @classmethod
    async def log(
        cls,
        account_id: Optional[str],
        action: str,
        object_type: str,
        object_id: Optional[str] = None,
        details: Optional[dict] = None,
    ) -> None:
        """Insert a new audit record.

        Parameters
        ----------
        account_id : Optional[str]
            Account that performed the action, ``None`` when the domain
            itself did (heartbeats authenticated by API key or domain
            token).
        action : str
            ``"heartbeat"`` or ``"delete"``.
        object_type : str
            Type of object affected, e.g. ``"domain"``.
        object_id : Optional[str]
            Identifier of the affected object.
        details : Optional[dict]
            Structured data stored as JSON.
        """
        conn = get_connection()
        try:
            details_json = json.dumps(jsonable_encoder(details)) if details else None
            conn.execute(
                """
                INSERT INTO audit_logs (account_id, action, object_type, object_id, details)
                VALUES (?, ?, ?, ?, ?)
                """,
                (account_id, action, object_type, object_id, details_json),
            )
            conn.commit()
        finally:
            conn.close()

    @classmethod
    async def record(cls, *args: Any, **kwargs: Any) -> None:
        """Like :meth:`log`, but a failed write is only logged."""
        try:
            await cls.log(*args, **kwargs)
        except sqlite3.Error:
            logger.warning("Could not write audit record %s", kwargs or args, exc_info=True)

    @classmethod
    async def list_logs(
        cls,
        object_type: Optional[str] = None,
        object_id: Optional[str] = None,
        action: Optional[str] = None,
        limit: int = 100,
        offset: int = 0,
    ) -> List[Dict[str, Any]]:
        """Return audit records, newest first, with optional filters."""
        conn = get_connection()
        try:
            where_clauses: List[str] = []
            params: List[Any] = []
            if object_type:
                where_clauses.append("object_type = ?")
                params.append(object_type)
            if object_id:
                where_clauses.append("object_id = ?")
                params.append(object_id)
            if action:
                where_clauses.append("action = ?")
                params.append(action)
            query = "SELECT id, account_id, action, object_type, object_id, timestamp, details FROM audit_logs"
            if where_clauses:
                query += " WHERE " + " AND ".join(where_clauses)
            query += " ORDER BY id DESC LIMIT ? OFFSET ?"
            params.extend([limit, offset])
            rows = conn.execute(query, tuple(params)).fetchall()
            return [
                {
                    "id": row["id"],
                    "account_id": row["account_id"],
                    "action": row["action"],
                    "object_type": row["object_type"],
                    "object_id": row["object_id"],
                    "timestamp": row["timestamp"],
                    "details": json.loads(row["details"]) if row["details"] else None,
                }
                for row in rows
            ]
        finally:
            conn.close()
