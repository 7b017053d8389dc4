import os
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

# Ensure we default to memory backend for tests to avoid filesystem dependencies
os.environ.setdefault("PERSISTENCE_BACKEND", "memory")
os.environ.setdefault("RECONCILER_ENABLED", "false")

from todo_api.main import app  # noqa: E402
from todo_api.repositories import InMemoryRepository  # noqa: E402
from todo_api.service import TodoService, get_todo_service  # noqa: E402

from .fakes import TickingClock  # noqa: E402


@pytest.fixture()
def repo() -> InMemoryRepository:
    return InMemoryRepository(clock=TickingClock(datetime.now()))


@pytest.fixture()
def service(repo: InMemoryRepository) -> TodoService:
    return TodoService(repo)


@pytest.fixture()
def client(service: TodoService):
    """TestClient wired to a fresh in-memory store for each test."""
    app.dependency_overrides[get_todo_service] = lambda: service
    try:
        yield TestClient(app)
    finally:
        app.dependency_overrides.clear()
