from contextlib import ExitStack
from datetime import datetime

import pytest
from fastapi.testclient import TestClient

from taskflow.core.config import Settings
from taskflow.main import create_app


def make_settings(tmp_path, **overrides) -> Settings:
    """Settings for a fresh file-backed SQLite database under ``tmp_path``."""
    values = {
        "database_url": f"sqlite+aiosqlite:///{tmp_path / 'tasks.db'}",
        "status_field": True,
        "completed_at_tracking": True,
        "metrics_enabled": False,
        "health_check_database": True,
        "fail_fast": True,
        "cache_enabled": False,
        "redis_dsn": None,
    }
    values.update(overrides)
    return Settings(**values)


def parse_timestamp(value: str) -> datetime:
    return datetime.fromisoformat(value.replace("Z", "+00:00"))


@pytest.fixture
def anyio_backend():
    return "asyncio"


@pytest.fixture(name="build_client")
def build_client_fixture(tmp_path):
    """Factory for a started TestClient; keyword arguments override settings."""
    with ExitStack() as stack:

        def build(**overrides) -> TestClient:
            app = create_app(make_settings(tmp_path, **overrides))
            return stack.enter_context(TestClient(app))

        yield build


@pytest.fixture(name="client")
def client_fixture(build_client):
    return build_client()


@pytest.fixture(name="create_task")
def create_task_fixture(client):
    def create(**fields) -> dict:
        response = client.post("/api/items", json=fields)
        assert response.status_code == 201, response.text
        return response.json()["item"]

    return create
