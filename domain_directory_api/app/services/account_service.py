"""
Service layer for accounts.

Accounts are created by the registration flow of the wider directory;
this service only needs to look them up and answer role questions.
``create_account`` exists for seeding and tests.
"""

import json
import logging
import sqlite3
import uuid
from typing import List, Optional

from domain_directory_api.app.core.db import get_connection
from domain_directory_api.app.schemas.domain import Account

logger = logging.getLogger(__name__)


def _row_to_account(row: sqlite3.Row) -> Account:
    return Account(
        account_id=row["account_id"],
        username=row["username"],
        email=row["email"],
        roles=json.loads(row["roles"]) if row["roles"] else [],
    )


class AccountService:
    """Lookup and seeding of accounts."""

    @classmethod
    async def get_account(cls, account_id: Optional[str]) -> Optional[Account]:
        if not account_id:
            return None
        conn = get_connection()
        try:
            row = conn.execute(
                "SELECT account_id, username, email, roles FROM accounts WHERE account_id = ?",
                (account_id,),
            ).fetchone()
            return _row_to_account(row) if row else None
        finally:
            conn.close()

    @classmethod
    async def create_account(
        cls,
        username: str,
        email: Optional[str] = None,
        roles: Optional[List[str]] = None,
        account_id: Optional[str] = None,
    ) -> Account:
        account = Account(
            account_id=account_id or str(uuid.uuid4()),
            username=username,
            email=email,
            roles=roles if roles is not None else ["user"],
        )
        conn = get_connection()
        try:
            conn.execute(
                "INSERT INTO accounts (account_id, username, email, roles) VALUES (?, ?, ?, ?)",
                (account.account_id, account.username, account.email, json.dumps(account.roles)),
            )
            conn.commit()
            logger.info("Account %s created (%s)", account.account_id, account.username)
            return account
        finally:
            conn.close()

    @staticmethod
    def is_admin(account: Optional[Account]) -> bool:
        return account is not None and account.is_admin
