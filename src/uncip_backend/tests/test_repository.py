"""
Tests for permission-filtered repository reads and writes.
"""

import pytest
from unittest.mock import AsyncMock

from uncip_backend.api.exceptions import ConflictException, NotFoundException, ServiceUnavailableException
from uncip_backend.interface.base import ResourceType
from uncip_backend.permissions.core import check_permissions
from uncip_backend.permissions.principal import Role
from uncip_backend.permissions.query_builders import FilterPredicate
from uncip_backend.repositories.base import ResourceRepository
from uncip_backend.store.base import StoreError
from uncip_backend.store.memory import MemoryDocumentStore
from uncip_backend.tests.fixtures import make_actor


async def seeded_repository() -> ResourceRepository:
    store = MemoryDocumentStore()
    await store.create("children", {"guardians": ["p1"], "school_id": "sch-1"}, doc_id="c1")
    await store.create("children", {"guardians": ["p2"], "school_id": "sch-2"}, doc_id="c2")
    await store.create("alerts", {"child_id": "c1", "status": "active", "alert_type": "missing"}, doc_id="a1")
    await store.create("alerts", {"child_id": "c2", "status": "active", "alert_type": "missing"}, doc_id="a2")
    await store.create("users", {"email": "p1@example.org", "role": "parent", "roles": ["parent"]}, doc_id="p1")
    return ResourceRepository(store)


@pytest.mark.unit
class TestFilteredReads:

    @pytest.mark.asyncio
    async def test_parent_lists_only_guarded_children(self):
        repository = await seeded_repository()
        predicate = check_permissions(make_actor("p1", Role.PARENT), ResourceType.CHILD)

        children = await repository.list(ResourceType.CHILD, predicate)
        assert [c["id"] for c in children] == ["c1"]

    @pytest.mark.asyncio
    async def test_parent_lists_alerts_through_children(self):
        repository = await seeded_repository()
        predicate = check_permissions(make_actor("p2", Role.PARENT), ResourceType.ALERT)

        alerts = await repository.list(ResourceType.ALERT, predicate)
        assert [a["id"] for a in alerts] == ["a2"]

    @pytest.mark.asyncio
    async def test_school_lists_alerts_of_its_children(self):
        repository = await seeded_repository()
        predicate = check_permissions(make_actor("s", Role.SCHOOL, school_id="sch-1"), ResourceType.ALERT)

        alerts = await repository.list(ResourceType.ALERT, predicate)
        assert [a["id"] for a in alerts] == ["a1"]

    @pytest.mark.asyncio
    async def test_empty_child_set_skips_alert_query(self):
        repository = await seeded_repository()
        repository.store.query = AsyncMock(wraps=repository.store.query)
        predicate = check_permissions(make_actor("p9", Role.PARENT), ResourceType.ALERT)

        assert await repository.list(ResourceType.ALERT, predicate) == []
        collections = [call.args[0] for call in repository.store.query.await_args_list]
        assert collections == ["children"]

    @pytest.mark.asyncio
    async def test_nothing_predicate_never_queries(self):
        repository = await seeded_repository()
        repository.store.query = AsyncMock()

        assert await repository.list(ResourceType.CHILD, FilterPredicate.nothing()) == []
        repository.store.query.assert_not_awaited()

    @pytest.mark.asyncio
    async def test_get_excluded_record_is_not_found(self):
        repository = await seeded_repository()
        predicate = check_permissions(make_actor("p1", Role.PARENT), ResourceType.ALERT)

        assert (await repository.get(ResourceType.ALERT, "a1", predicate))["id"] == "a1"
        with pytest.raises(NotFoundException):
            await repository.get(ResourceType.ALERT, "a2", predicate)

    @pytest.mark.asyncio
    async def test_get_missing_record_is_not_found(self):
        repository = await seeded_repository()
        with pytest.raises(NotFoundException):
            await repository.get(ResourceType.CHILD, "nope", FilterPredicate.everything())

    @pytest.mark.asyncio
    async def test_union_does_not_duplicate(self):
        repository = await seeded_repository()
        actor = make_actor("p1", Role.PARENT, roles=[Role.PARENT, Role.SCHOOL], school_id="sch-1")
        predicate = check_permissions(actor, ResourceType.CHILD)

        children = await repository.list(ResourceType.CHILD, predicate)
        assert [c["id"] for c in children] == ["c1"]


@pytest.mark.unit
class TestWrites:

    @pytest.mark.asyncio
    async def test_non_admin_cannot_change_role_fields(self):
        repository = await seeded_repository()

        updated = await repository.update(
            ResourceType.USER, "p1", {"role": "admin", "roles": ["admin"], "display_name": "P"},
            actor=make_actor("p1", Role.PARENT),
        )
        assert updated["role"] == "parent"
        assert updated["display_name"] == "P"

    @pytest.mark.asyncio
    async def test_admin_changes_role_fields(self):
        repository = await seeded_repository()

        updated = await repository.update(
            ResourceType.USER, "p1", {"role": "school", "roles": ["school"]},
            actor=make_actor("admin-1", Role.ADMIN),
        )
        assert updated["role"] == "school"

    @pytest.mark.asyncio
    async def test_update_missing_is_not_found(self):
        repository = await seeded_repository()
        with pytest.raises(NotFoundException):
            await repository.update(ResourceType.CHILD, "nope", {"first_name": "x"})

    @pytest.mark.asyncio
    async def test_delete_is_hard(self):
        repository = await seeded_repository()
        await repository.delete(ResourceType.ALERT, "a1")
        assert await repository.find(ResourceType.ALERT, "a1") is None

    @pytest.mark.asyncio
    async def test_duplicate_id_is_conflict(self):
        repository = await seeded_repository()
        with pytest.raises(ConflictException):
            await repository.create(ResourceType.CHILD, {"guardians": ["p1"]}, resource_id="c1")

    @pytest.mark.asyncio
    async def test_store_failure_is_unavailable(self):
        repository = await seeded_repository()
        repository.store.get = AsyncMock(side_effect=StoreError("connection reset"))

        with pytest.raises(ServiceUnavailableException) as exc_info:
            await repository.find(ResourceType.CHILD, "c1")
        assert exc_info.value.status_code == 503
        assert "connection reset" not in exc_info.value.detail["message"]
