"""
Pytest configuration and fixtures for all tests.
"""

import pytest

from uncip_backend.context import BackendContext
from uncip_backend.permissions.principal import Role
from uncip_backend.store.memory import MemoryDocumentStore
from uncip_backend.tests.fixtures import FakeIdentityProvider, make_actor


@pytest.fixture
def store():
    return MemoryDocumentStore()


@pytest.fixture
def identity_provider():
    return FakeIdentityProvider()


@pytest.fixture
def context(store, identity_provider):
    return BackendContext(store=store, identity_provider=identity_provider)


@pytest.fixture
def admin():
    return make_actor("admin-1", Role.ADMIN)


@pytest.fixture
def parent():
    return make_actor("p1", Role.PARENT)


@pytest.fixture
def other_parent():
    return make_actor("p2", Role.PARENT)


@pytest.fixture
def school():
    return make_actor("school-1", Role.SCHOOL, school_id="sch-1")


@pytest.fixture
def authority():
    return make_actor("auth-1", Role.AUTHORITY)


@pytest.fixture
def community():
    return make_actor("comm-1", Role.COMMUNITY)
