"""
SQLite database integration and simple migration system.

This module provides functions for obtaining a database connection
(``get_connection``), a committing cursor context manager
(``get_cursor``) and ``init_db`` which applies migrations on
application start.

List valued attributes (account roles, domain managers, tags, images
and hosts) are stored as JSON text.  Places reference their domain by
``domain_id`` without a ``REFERENCES`` clause: removing a domain's
places is the job of the domain service, not of the database.
"""

import os
import sqlite3
from contextlib import contextmanager
from pathlib import Path
from typing import Iterator

from .config import settings


def get_database_path() -> str:
    """Compute the path to the SQLite database file.

    If ``settings.database_url`` is an absolute path it is used
    directly.  Otherwise it is resolved relative to the project root.
    """
    db_url = settings.database_url
    if os.path.isabs(db_url):
        return db_url
    base_dir = Path(__file__).resolve().parent.parent.parent.parent
    return str((base_dir / db_url).resolve())


def get_connection() -> sqlite3.Connection:
    """Create and return a new SQLite connection.

    Rows are returned as ``sqlite3.Row`` so columns can be accessed by
    name.  Timestamps are stored as ISO strings and parsed by the
    pydantic models, so no type detection is enabled here.
    """
    conn = sqlite3.connect(get_database_path())
    conn.row_factory = sqlite3.Row
    conn.execute("PRAGMA foreign_keys = ON")
    return conn


@contextmanager
def get_cursor() -> Iterator[sqlite3.Cursor]:
    """Yield a cursor, commit on success and always close the connection."""
    conn = get_connection()
    try:
        yield conn.cursor()
        conn.commit()
    finally:
        conn.close()


MIGRATIONS: list[tuple[int, str]] = [
    # Migration 1: accounts, domains and places
    (
        1,
        """
        CREATE TABLE IF NOT EXISTS accounts (
            account_id TEXT PRIMARY KEY,
            username TEXT NOT NULL UNIQUE,
            email TEXT,
            roles TEXT NOT NULL DEFAULT '["user"]',
            when_created TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE TABLE IF NOT EXISTS domains (
            domain_id TEXT PRIMARY KEY,
            name TEXT,
            visibility TEXT NOT NULL DEFAULT 'open',
            sponsor_account_id TEXT,
            managers TEXT NOT NULL DEFAULT '[]',
            api_key_hash TEXT,
            version TEXT,
            protocol TEXT,
            network_addr TEXT,
            network_port INTEGER,
            automatic_networking TEXT NOT NULL DEFAULT 'disabled',
            restricted INTEGER NOT NULL DEFAULT 0,
            restriction TEXT NOT NULL DEFAULT 'open',
            capacity INTEGER NOT NULL DEFAULT 0,
            maturity TEXT NOT NULL DEFAULT 'unrated',
            description TEXT,
            contact_info TEXT,
            thumbnail TEXT,
            images TEXT NOT NULL DEFAULT '[]',
            world_name TEXT,
            hosts TEXT NOT NULL DEFAULT '[]',
            tags TEXT NOT NULL DEFAULT '[]',
            num_users INTEGER NOT NULL DEFAULT 0,
            num_anon_users INTEGER NOT NULL DEFAULT 0,
            time_of_last_heartbeat TIMESTAMP,
            when_created TIMESTAMP DEFAULT (strftime('%Y-%m-%dT%H:%M:%SZ', 'now'))
        );

        CREATE TABLE IF NOT EXISTS places (
            place_id TEXT PRIMARY KEY,
            name TEXT NOT NULL,
            domain_id TEXT NOT NULL,
            description TEXT,
            when_created TIMESTAMP DEFAULT CURRENT_TIMESTAMP
        );

        CREATE INDEX IF NOT EXISTS idx_places_domain_id ON places(domain_id);
        """,
    ),
    # Migration 2: audit trail for heartbeats and deletions
    (
        2,
        """
        CREATE TABLE IF NOT EXISTS audit_logs (
            id INTEGER PRIMARY KEY AUTOINCREMENT,
            account_id TEXT,
            action TEXT NOT NULL,
            object_type TEXT,
            object_id TEXT,
            timestamp TIMESTAMP DEFAULT CURRENT_TIMESTAMP,
            details TEXT
        );

        CREATE INDEX IF NOT EXISTS idx_audit_logs_object ON audit_logs(object_type, object_id);
        """,
    ),
]


def init_db() -> None:
    """Initialise the database and apply pending migrations.

    Creates the ``migrations`` table if it does not exist, checks the
    current schema version and applies every entry of ``MIGRATIONS``
    with a higher version number, in order.
    """
    with get_cursor() as cursor:
        cursor.execute(
            "CREATE TABLE IF NOT EXISTS migrations (version INTEGER PRIMARY KEY)"
        )
        cursor.execute("SELECT MAX(version) as version FROM migrations")
        row = cursor.fetchone()
        current_version = row["version"] if row and row["version"] is not None else 0

        for version, sql in MIGRATIONS:
            if version > current_version:
                cursor.executescript(sql)
                cursor.execute(
                    "INSERT INTO migrations (version) VALUES (?)", (version,)
                )
                current_version = version
