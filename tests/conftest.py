import pytest
from fastapi.testclient import TestClient

from schemas import Child
from service import KidQuestService
from tests.helpers import FakeGenerator, InMemoryParentStore


@pytest.fixture
def store() -> InMemoryParentStore:
    return InMemoryParentStore()


@pytest.fixture
def generator() -> FakeGenerator:
    return FakeGenerator()


@pytest.fixture
def service(store, generator) -> KidQuestService:
    return KidQuestService(store, generator)


@pytest.fixture
def family(service):
    """A parent with one child, returned as (parent_id, child_id)."""
    parent = service.create_parent({"name": "Sam", "email": "sam@example.com"})
    parent = service.add_kid(parent.id, {"name": "Alice", "age": 8, "level": "beginner"})
    return parent.id, parent.children[0].id


@pytest.fixture
def child() -> Child:
    return Child(name="Alice", age=8)


@pytest.fixture
def client(service):
    from main import app, get_service

    app.dependency_overrides[get_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
