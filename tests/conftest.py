"""Pytest configuration and fixtures for the domain directory tests."""

import asyncio
from dataclasses import dataclass

import pytest
import pytest_asyncio
from fastapi.testclient import TestClient

from domain_directory_api.app.core.config import settings
from domain_directory_api.app.core.db import init_db
from domain_directory_api.app.core.security import (
    create_account_token,
    create_domain_token,
    hash_secret,
    resolve_auth_token,
)
from domain_directory_api.app.main import app
from domain_directory_api.app.schemas.auth import AuthToken
from domain_directory_api.app.schemas.domain import Account, Domain
from domain_directory_api.app.services.account_service import AccountService
from domain_directory_api.app.services.domain_store import DomainStore

DOMAIN_API_KEY = "domain-api-key-0123"


@dataclass
class Directory:
    """Accounts, a domain and tokens seeded for a test."""

    admin: Account
    sponsor: Account
    manager: Account
    stranger: Account
    domain: Domain
    other_domain: Domain
    admin_token: str
    sponsor_token: str
    manager_token: str
    stranger_token: str
    domain_token: str
    other_domain_token: str

    def auth(self, token: str) -> AuthToken:
        resolved = resolve_auth_token(token)
        assert resolved is not None
        return resolved

    async def reload(self) -> Domain:
        domain = await DomainStore.get_domain(self.domain.domain_id)
        assert domain is not None
        return domain


@pytest.fixture(autouse=True)
def database(tmp_path, monkeypatch):
    """Point the service at a fresh SQLite file for every test."""
    path = tmp_path / "directory.db"
    monkeypatch.setattr(settings, "database_url", str(path))
    monkeypatch.setattr(settings, "secret_key", "test-secret")
    init_db()
    return path


async def _seed() -> Directory:
    admin = await AccountService.create_account("admin", roles=["user", "admin"])
    sponsor = await AccountService.create_account("sponsor")
    manager = await AccountService.create_account("manager")
    stranger = await AccountService.create_account("stranger")
    domain = await DomainStore.create_domain(
        "Alpha",
        sponsor_account_id=sponsor.account_id,
        api_key_hash=hash_secret(DOMAIN_API_KEY),
        managers=["manager"],
        capacity=5,
        network_port=40102,
        description="first",
    )
    other_domain = await DomainStore.create_domain("Beta", sponsor_account_id=stranger.account_id)
    return Directory(
        admin=admin,
        sponsor=sponsor,
        manager=manager,
        stranger=stranger,
        domain=domain,
        other_domain=other_domain,
        admin_token=create_account_token(admin.account_id),
        sponsor_token=create_account_token(sponsor.account_id),
        manager_token=create_account_token(manager.account_id),
        stranger_token=create_account_token(stranger.account_id),
        domain_token=create_domain_token(domain.domain_id),
        other_domain_token=create_domain_token(other_domain.domain_id),
    )


@pytest_asyncio.fixture
async def directory(database) -> Directory:
    return await _seed()


@pytest.fixture
def seeded(database) -> Directory:
    """Same records as ``directory``, for synchronous (HTTP client) tests."""
    return asyncio.run(_seed())


@pytest.fixture
def client(database):
    with TestClient(app) as test_client:
        yield test_client


def bearer(token: str) -> dict:
    return {"Authorization": f"Bearer {token}"}
