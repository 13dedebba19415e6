"""Tests for the domain read/update/delete operations."""

from datetime import datetime, timedelta, timezone

import pytest

from domain_directory_api.app.api.deps import build_request_context
from domain_directory_api.app.core.config import settings
from domain_directory_api.app.schemas.domain import RequestContext
from domain_directory_api.app.services.audit_service import AuditService
from domain_directory_api.app.services.domain_service import (
    DomainService,
    build_domain_info,
    next_heartbeat_time,
)
from domain_directory_api.app.services.domain_store import DomainStore
from domain_directory_api.app.services.place_service import PlaceService


async def _update(directory, token, body):
    ctx = await build_request_context(directory.domain.domain_id, token, body=body, verify_api_key=True)
    return await DomainService.update_domain(ctx)


async def _delete(domain_id, token):
    ctx = await build_request_context(domain_id, token)
    return await DomainService.delete_domain(ctx)


class TestGetDomain:
    @pytest.mark.asyncio
    async def test_snapshot_has_no_secrets(self, directory):
        ctx = await build_request_context(directory.domain.domain_id, None)
        resp = await DomainService.get_domain(ctx)
        assert resp.success
        info = resp.data["domain"]
        assert info["domain_id"] == info["id"] == directory.domain.domain_id
        assert "api_key_hash" not in info
        assert "api_key" not in info
        assert resp.body()["domain"] == info
        assert info["active"] is False

    @pytest.mark.asyncio
    async def test_unknown_domain_is_unauthorized(self, directory):
        ctx = await build_request_context("missing", None)
        resp = await DomainService.get_domain(ctx)
        assert not resp.success
        assert resp.message == "Domain not found"
        assert resp.http_status == 401

    @pytest.mark.asyncio
    async def test_active_follows_last_heartbeat(self, directory):
        now = datetime(2026, 1, 1, tzinfo=timezone.utc)
        fresh = directory.domain.model_copy(update={"time_of_last_heartbeat": now - timedelta(seconds=5)})
        stale = directory.domain.model_copy(
            update={"time_of_last_heartbeat": now - timedelta(seconds=settings.domain_offline_seconds + 1)}
        )
        assert build_domain_info(fresh, now=now)["active"] is True
        assert build_domain_info(stale, now=now)["active"] is False


class TestUpdateDomain:
    @pytest.mark.asyncio
    async def test_domain_updates_itself(self, directory):
        before = datetime.now(timezone.utc)
        resp = await _update(
            directory, directory.domain_token, {"domain": {"capacity": 10, "network_port": 40103}}
        )
        assert resp.success
        domain = await directory.reload()
        assert domain.capacity == 10
        assert domain.network_port == 40103
        assert domain.time_of_last_heartbeat >= before

    @pytest.mark.asyncio
    async def test_api_key_authenticates_the_domain(self, directory):
        from conftest import DOMAIN_API_KEY

        body = {"domain": {"api_key": DOMAIN_API_KEY, "heartbeat": {"num_users": 4, "num_anon_users": 2}}}
        resp = await _update(directory, None, body)
        assert resp.success
        domain = await directory.reload()
        assert (domain.num_users, domain.num_anon_users) == (4, 2)

    @pytest.mark.asyncio
    async def test_wrong_api_key_unresolves_the_domain(self, directory):
        body = {"domain": {"api_key": "wrong", "capacity": 99}}
        resp = await _update(directory, directory.domain_token, body)
        assert not resp.success
        assert resp.message == "Domain API key does not match"
        assert resp.http_status == 401
        assert (await directory.reload()).capacity == 5

    @pytest.mark.asyncio
    @pytest.mark.parametrize("who", ["sponsor_token", "manager_token", "admin_token"])
    async def test_accounts_with_a_role_may_update(self, directory, who):
        resp = await _update(directory, getattr(directory, who), {"domain": {"description": "new"}})
        assert resp.success
        assert (await directory.reload()).description == "new"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("who", ["stranger_token", "other_domain_token"])
    async def test_callers_without_a_role_are_unauthorized(self, directory, who):
        resp = await _update(directory, getattr(directory, who), {"domain": {"capacity": 1}})
        assert not resp.success
        assert resp.message == "Unauthorized"
        assert resp.http_status == 401
        domain = await directory.reload()
        assert domain.capacity == 5
        assert domain.time_of_last_heartbeat is None

    @pytest.mark.asyncio
    async def test_missing_credential_is_unauthorized(self, directory):
        resp = await _update(directory, None, {"domain": {"capacity": 1}})
        assert resp.message == "Unauthorized"
        assert resp.http_status == 401

    @pytest.mark.asyncio
    @pytest.mark.parametrize("body", [{"domain": {}}, {}, None])
    async def test_badly_formed_payload_commits_nothing(self, directory, body):
        resp = await _update(directory, directory.domain_token, body)
        assert not resp.success
        assert resp.message == "badly formed data"
        assert resp.http_status == 400
        assert (await directory.reload()).time_of_last_heartbeat is None

    @pytest.mark.asyncio
    async def test_invalid_field_does_not_block_valid_one(self, directory):
        resp = await _update(
            directory, directory.domain_token, {"domain": {"capacity": 7, "network_port": "not-a-port"}}
        )
        assert resp.success
        domain = await directory.reload()
        assert domain.capacity == 7
        assert domain.network_port == 40102

    @pytest.mark.asyncio
    @pytest.mark.parametrize(
        "values",
        [
            {"network_port": "\u00b2"},
            {"network_addr": "evil\n.example.com"},
            {"capacity": 2**70},
            {"heartbeat": {"num_users": 1e300, "num_anon_users": 2}},
        ],
    )
    async def test_unstorable_value_is_skipped_and_the_rest_commits(self, directory, values):
        body = {"domain": {"description": "still here", **values}}
        resp = await _update(directory, directory.domain_token, body)
        assert resp.success
        domain = await directory.reload()
        assert domain.description == "still here"
        assert domain.network_port == 40102
        assert domain.capacity == 5
        assert domain.num_users == 0
        assert domain.time_of_last_heartbeat is not None

    @pytest.mark.asyncio
    async def test_unlisted_fields_never_change_state(self, directory):
        body = {"domain": {"api_key_hash": "x", "domain_id": "hijack", "sponsor_account_id": "me"}}
        for token in (directory.admin_token, directory.domain_token):
            resp = await _update(directory, token, body)
            assert resp.success
        domain = await directory.reload()
        assert domain.domain_id == directory.domain.domain_id
        assert domain.api_key_hash == directory.domain.api_key_hash
        assert domain.sponsor_account_id == directory.sponsor.account_id
        assert await DomainStore.get_domain("hijack") is None

    @pytest.mark.asyncio
    async def test_domain_cannot_change_its_managers(self, directory):
        body = {"domain": {"meta": {"managers": ["intruder"], "world_name": "Alpha World"}}}
        resp = await _update(directory, directory.domain_token, body)
        assert resp.success
        domain = await directory.reload()
        assert domain.managers == ["manager"]
        assert domain.world_name == "Alpha World"

    @pytest.mark.asyncio
    async def test_sponsor_sets_meta_fields(self, directory):
        body = {
            "domain": {
                "meta": {
                    "managers": ["manager", "helper"],
                    "restriction": "hifi",
                    "images": ["a.png"],
                    "thumbnail": "t.png",
                    "contact_info": "ops@example.com",
                }
            }
        }
        resp = await _update(directory, directory.sponsor_token, body)
        assert resp.success
        domain = await directory.reload()
        assert domain.managers == ["manager", "helper"]
        assert domain.restriction == "hifi"
        assert domain.restricted is True
        assert domain.images == ["a.png"]
        assert domain.thumbnail == "t.png"
        assert domain.contact_info == "ops@example.com"

    @pytest.mark.asyncio
    async def test_heartbeat_time_never_goes_backwards(self, directory):
        stamps = []
        for count in range(4):
            resp = await _update(
                directory, directory.domain_token, {"domain": {"heartbeat": {"num_users": count}}}
            )
            assert resp.success
            stamps.append((await directory.reload()).time_of_last_heartbeat)
        assert stamps == sorted(stamps)

    @pytest.mark.asyncio
    async def test_heartbeat_time_keeps_a_later_stored_value(self, directory):
        future = datetime.now(timezone.utc) + timedelta(hours=1)
        await DomainStore.update_fields(directory.domain, {"time_of_last_heartbeat": future})
        resp = await _update(directory, directory.domain_token, {"domain": {"capacity": 3}})
        assert resp.success
        assert (await directory.reload()).time_of_last_heartbeat == future

    def test_next_heartbeat_time_treats_naive_as_utc(self):
        now = datetime(2026, 1, 1, 12, tzinfo=timezone.utc)
        assert next_heartbeat_time(None, now) == now
        assert next_heartbeat_time(datetime(2026, 1, 1, 13), now) == datetime(
            2026, 1, 1, 13, tzinfo=timezone.utc
        )

    @pytest.mark.asyncio
    async def test_heartbeat_is_audited(self, directory):
        await _update(directory, directory.sponsor_token, {"domain": {"capacity": 8}})
        logs = await AuditService.list_logs(object_type="domain", object_id=directory.domain.domain_id)
        assert logs[0]["action"] == "heartbeat"
        assert logs[0]["account_id"] == directory.sponsor.account_id
        assert logs[0]["details"]["capacity"] == 8


class TestDeleteDomain:
    @pytest.mark.asyncio
    async def test_admin_deletes_domain_and_its_places(self, directory):
        for n in range(3):
            await PlaceService.create_place(f"place-{n}", directory.domain.domain_id)
        survivor = await PlaceService.create_place("elsewhere", directory.other_domain.domain_id)

        resp = await _delete(directory.domain.domain_id, directory.admin_token)
        assert resp.success
        assert resp.data is None
        assert await DomainStore.get_domain(directory.domain.domain_id) is None
        assert await PlaceService.list_places(directory.domain.domain_id) == []
        assert await PlaceService.get_place(survivor.place_id) == survivor

    @pytest.mark.asyncio
    @pytest.mark.parametrize("who", ["sponsor_token", "manager_token", "stranger_token", "domain_token"])
    async def test_non_admins_may_not_delete(self, directory, who):
        await PlaceService.create_place("kept", directory.domain.domain_id)
        resp = await _delete(directory.domain.domain_id, getattr(directory, who))
        assert not resp.success
        assert resp.message == "Not authorized"
        assert await DomainStore.get_domain(directory.domain.domain_id) is not None
        assert len(await PlaceService.list_places(directory.domain.domain_id)) == 1

    @pytest.mark.asyncio
    async def test_anonymous_delete_is_not_authorized(self, directory):
        resp = await _delete(directory.domain.domain_id, None)
        assert resp.message == "Not authorized"
        assert resp.http_status == 401

    @pytest.mark.asyncio
    async def test_missing_target(self, directory):
        resp = await _delete("missing", directory.admin_token)
        assert not resp.success
        assert resp.message == "Target domain does not exist"
        assert resp.http_status == 401

    @pytest.mark.asyncio
    async def test_cascade_pages_through_all_places(self, directory, monkeypatch):
        monkeypatch.setattr(settings, "place_enumeration_batch", 2)
        for n in range(7):
            await PlaceService.create_place(f"p{n}", directory.domain.domain_id)
        report = await DomainService.remove_domain_places(directory.domain.domain_id)
        assert len(report.removed) == 7
        assert report.failed == []
        assert report.complete
        assert await PlaceService.list_places(directory.domain.domain_id) == []

    @pytest.mark.asyncio
    async def test_one_failing_place_does_not_stop_the_cascade(self, directory, monkeypatch):
        monkeypatch.setattr(settings, "place_enumeration_batch", 2)
        places = [
            await PlaceService.create_place(f"p{n}", directory.domain.domain_id, place_id=f"place-{n}")
            for n in range(5)
        ]
        broken = places[2]
        remove_place = PlaceService.remove_place

        async def flaky_remove(place):
            if place.place_id == broken.place_id:
                raise RuntimeError("storage hiccup")
            await remove_place(place)

        monkeypatch.setattr(PlaceService, "remove_place", flaky_remove)

        resp = await _delete(directory.domain.domain_id, directory.admin_token)
        assert resp.success
        assert await DomainStore.get_domain(directory.domain.domain_id) is None
        remaining = await PlaceService.list_places(directory.domain.domain_id)
        assert [p.place_id for p in remaining] == [broken.place_id]

        logs = await AuditService.list_logs(action="delete")
        assert logs[0]["details"]["places_removed"] == 4
        assert logs[0]["details"]["places_failed"] == [broken.place_id]


@pytest.mark.asyncio
async def test_context_is_immutable(directory):
    ctx = await build_request_context(directory.domain.domain_id, directory.domain_token)
    assert isinstance(ctx, RequestContext)
    with pytest.raises(Exception):
        ctx.domain = None
