"""
Service layer for places.

A place is a named location inside exactly one domain.  The database
does not tie a place to its domain with a foreign key; when a domain
is deleted the domain service walks ``enumerate_places`` and removes
each place in turn.
"""

import logging
import sqlite3
import uuid
from typing import AsyncIterator, List, Optional

from domain_directory_api.app.core.config import settings
from domain_directory_api.app.core.db import get_connection
from domain_directory_api.app.schemas.domain import Place

logger = logging.getLogger(__name__)


def _row_to_place(row: sqlite3.Row) -> Place:
    return Place(
        place_id=row["place_id"],
        name=row["name"],
        domain_id=row["domain_id"],
        description=row["description"],
    )


class PlaceService:
    """Lookup, enumeration and removal of places."""

    @classmethod
    async def create_place(
        cls,
        name: str,
        domain_id: str,
        description: Optional[str] = None,
        place_id: Optional[str] = None,
    ) -> Place:
        place = Place(
            place_id=place_id or str(uuid.uuid4()),
            name=name,
            domain_id=domain_id,
            description=description,
        )
        conn = get_connection()
        try:
            conn.execute(
                "INSERT INTO places (place_id, name, domain_id, description) VALUES (?, ?, ?, ?)",
                (place.place_id, place.name, place.domain_id, place.description),
            )
            conn.commit()
            return place
        finally:
            conn.close()

    @classmethod
    async def get_place(cls, place_id: str) -> Optional[Place]:
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT place_id, name, domain_id, description FROM places WHERE place_id = ?",
                (place_id,),
            ).fetchone()
            return _row_to_place(row) if row else None
        finally:
            conn.close()

    @classmethod
    async def list_places(cls, domain_id: str) -> List[Place]:
        return [place async for place in cls.enumerate_places(domain_id)]

    @classmethod
    async def enumerate_places(
        cls, domain_id: str, batch_size: Optional[int] = None
    ) -> AsyncIterator[Place]:
        """Yield every place of ``domain_id``, ordered by ``place_id``.

        Rows are fetched a page at a time using the last seen
        ``place_id`` as the cursor, so callers may delete the places they
        receive without skipping any of the rest.
        """
        batch_size = batch_size or settings.place_enumeration_batch
        last_id = ""
        while True:
            conn = get_connection()
            try:
                rows = conn.execute(
                    """
                    SELECT place_id, name, domain_id, description FROM places
                    WHERE domain_id = ? AND place_id > ?
                    ORDER BY place_id LIMIT ?
                    """,
                    (domain_id, last_id, batch_size),
                ).fetchall()
            finally:
                conn.close()
            for row in rows:
                yield _row_to_place(row)
            if len(rows) < batch_size:
                return
            last_id = rows[-1]["place_id"]

    @classmethod
    async def remove_place(cls, place: Place) -> None:
        conn = get_connection()
        try:
            conn.execute("DELETE FROM places WHERE place_id = ?", (place.place_id,))
            conn.commit()
            logger.debug("Place %s removed from domain %s", place.place_id, place.domain_id)
        finally:
            conn.close()
