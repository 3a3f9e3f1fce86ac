"""
Tests for child profile management.
"""

import pytest

from uncip_backend.api.exceptions import BadRequestException, ConflictException, ForbiddenException, NotFoundException
from uncip_backend.services.children import create_child, delete_child, get_child, list_children, update_child
from uncip_backend.tests.fixtures import child_payload


@pytest.mark.integration
class TestChildLifecycle:

    @pytest.mark.asyncio
    async def test_guardians_default_to_creating_parent(self, context, parent, other_parent):
        child = await create_child(context, parent, child_payload())

        assert child["guardians"] == ["p1"]
        assert child["created_by"] == "p1"
        assert [c["id"] for c in await list_children(context, parent)] == [child["id"]]
        assert await list_children(context, other_parent) == []

    @pytest.mark.asyncio
    async def test_round_trip_as_creator(self, context, parent):
        payload = child_payload(school_id="sch-1")
        created = await create_child(context, parent, payload)
        fetched = await get_child(context, parent, created["id"])

        for key, value in payload.items():
            assert fetched[key] == value
        assert "p1" in fetched["guardians"]
        assert fetched["id"] == created["id"]
        assert fetched["created_at"] == fetched["updated_at"]

    @pytest.mark.asyncio
    async def test_supplied_guardians_keep_creator(self, context, parent):
        child = await create_child(context, parent, child_payload(guardians=["p7", "p7"]))
        assert child["guardians"] == ["p7", "p1"]

    @pytest.mark.asyncio
    async def test_admin_must_name_guardians(self, context, admin):
        with pytest.raises(BadRequestException) as exc_info:
            await create_child(context, admin, child_payload())
        assert "guardians" in exc_info.value.fields

        child = await create_child(context, admin, child_payload(guardians=["p1"]))
        assert child["guardians"] == ["p1"]
        assert child["created_by"] == "admin-1"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("missing", ["first_name", "last_name", "date_of_birth", "gender"])
    async def test_required_fields(self, context, parent, missing):
        payload = child_payload()
        payload.pop(missing)

        with pytest.raises(BadRequestException) as exc_info:
            await create_child(context, parent, payload)
        assert missing in exc_info.value.fields

    @pytest.mark.asyncio
    async def test_gender_is_case_insensitive(self, context, parent):
        child = await create_child(context, parent, child_payload(gender="Female"))
        assert child["gender"] == "female"

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role_fixture", ["school", "authority", "community"])
    async def test_other_roles_cannot_create(self, context, request, role_fixture):
        actor = request.getfixturevalue(role_fixture)
        with pytest.raises(ForbiddenException):
            await create_child(context, actor, child_payload(guardians=["p1"]))


@pytest.mark.integration
class TestChildVisibility:

    @pytest.mark.asyncio
    async def test_school_sees_only_its_pupils(self, context, parent, school):
        mine = await create_child(context, parent, child_payload(school_id="sch-1"))
        await create_child(context, parent, child_payload(first_name="Juma", school_id="sch-2"))

        assert [c["id"] for c in await list_children(context, school)] == [mine["id"]]

    @pytest.mark.asyncio
    @pytest.mark.parametrize("role_fixture", ["admin", "authority", "community"])
    async def test_unrestricted_readers_see_all(self, context, request, parent, other_parent, role_fixture):
        await create_child(context, parent, child_payload())
        await create_child(context, other_parent, child_payload(first_name="Juma"))

        actor = request.getfixturevalue(role_fixture)
        assert len(await list_children(context, actor)) == 2

    @pytest.mark.asyncio
    async def test_get_outside_guardianship_is_not_found(self, context, parent, other_parent):
        child = await create_child(context, parent, child_payload())
        with pytest.raises(NotFoundException):
            await get_child(context, other_parent, child["id"])


@pytest.mark.integration
class TestChildModification:

    @pytest.mark.asyncio
    async def test_update_outside_guardianship_is_not_found(self, context, parent, other_parent):
        child = await create_child(context, parent, child_payload())

        with pytest.raises(NotFoundException):
            await update_child(context, other_parent, child["id"], {"first_name": "X"})

    @pytest.mark.asyncio
    async def test_delete_outside_guardianship_is_not_found(self, context, parent, other_parent):
        child = await create_child(context, parent, child_payload())

        with pytest.raises(NotFoundException):
            await delete_child(context, other_parent, child["id"])
        assert await get_child(context, parent, child["id"])

    @pytest.mark.asyncio
    async def test_visible_but_not_modifiable_is_forbidden(self, context, parent, school):
        child = await create_child(context, parent, child_payload(school_id="sch-1"))

        with pytest.raises(ForbiddenException):
            await update_child(context, school, child["id"], {"first_name": "X"})

    @pytest.mark.asyncio
    async def test_guardian_updates_fields(self, context, parent):
        child = await create_child(context, parent, child_payload())
        updated = await update_child(context, parent, child["id"], {"first_name": "Aminah", "created_by": "p9"})

        assert updated["first_name"] == "Aminah"
        assert updated["created_by"] == "p1"
        assert updated["created_at"] == child["created_at"]

    @pytest.mark.asyncio
    async def test_guardian_cannot_drop_self(self, context, parent):
        child = await create_child(context, parent, child_payload())
        updated = await update_child(context, parent, child["id"], {"guardians": ["p2"]})
        assert updated["guardians"] == ["p2", "p1"]

    @pytest.mark.asyncio
    async def test_admin_cannot_empty_guardians(self, context, parent, admin):
        child = await create_child(context, parent, child_payload())
        with pytest.raises(BadRequestException):
            await update_child(context, admin, child["id"], {"guardians": []})

    @pytest.mark.asyncio
    async def test_guardian_deletes(self, context, parent):
        child = await create_child(context, parent, child_payload())
        await delete_child(context, parent, child["id"])

        with pytest.raises(NotFoundException):
            await get_child(context, parent, child["id"])


@pytest.mark.integration
class TestDuplicateChildren:

    @pytest.mark.asyncio
    async def test_same_identification_number(self, context, parent):
        await create_child(context, parent, child_payload(identification_number="ID-1"))

        with pytest.raises(ConflictException) as exc_info:
            await create_child(context, parent, child_payload(first_name="Juma", identification_number="ID-1"))
        assert exc_info.value.reason == "duplicate-child"

    @pytest.mark.asyncio
    async def test_hidden_children_are_not_revealed(self, context, parent, other_parent):
        await create_child(context, parent, child_payload(identification_number="ID-1"))
        assert await list_children(context, other_parent) == []

        twin = await create_child(context, other_parent, child_payload(identification_number="ID-1"))

        assert twin["guardians"] == ["p2"]
        assert [c["id"] for c in await list_children(context, other_parent)] == [twin["id"]]

    @pytest.mark.asyncio
    async def test_admin_checks_whole_registry(self, context, parent, admin):
        await create_child(context, parent, child_payload())

        with pytest.raises(ConflictException) as exc_info:
            await create_child(context, admin, child_payload(guardians=["p2"]))
        assert exc_info.value.reason == "duplicate-child"

    @pytest.mark.asyncio
    async def test_same_name_and_birth_date(self, context, parent):
        await create_child(context, parent, child_payload())

        with pytest.raises(ConflictException):
            await create_child(context, parent, child_payload())

    @pytest.mark.asyncio
    async def test_update_to_existing_identity_is_conflict(self, context, parent):
        await create_child(context, parent, child_payload(identification_number="ID-1"))
        second = await create_child(context, parent, child_payload(first_name="Juma", identification_number="ID-2"))

        with pytest.raises(ConflictException):
            await update_child(context, parent, second["id"], {"identification_number": "ID-1"})

        unchanged = await update_child(context, parent, second["id"], {"identification_number": "ID-2"})
        assert unchanged["identification_number"] == "ID-2"
