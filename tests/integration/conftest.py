"""Integration-test fixtures.

All integration tests share a single event-loop so that the module-level
SQLAlchemy async engine pool and Redis pool (both created at import time)
remain valid across the entire test session.

Skipped unless RUN_INTEGRATION=1 (needs PostgreSQL + Redis and
`alembic upgrade head`).
"""

import os
import uuid

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from src.main import app


def pytest_collection_modifyitems(config: pytest.Config, items: list[pytest.Item]) -> None:
    if os.environ.get("RUN_INTEGRATION") == "1":
        return
    skip = pytest.mark.skip(reason="set RUN_INTEGRATION=1 to run against PG + Redis")
    for item in items:
        if "tests/integration" in str(item.fspath):
            item.add_marker(pytest.mark.integration)
            item.add_marker(skip)


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def client() -> AsyncClient:  # type: ignore[override]
    """Session-scoped client with the app lifespan running (service wired)."""
    async with app.router.lifespan_context(app):
        transport = ASGITransport(app=app)
        async with AsyncClient(transport=transport, base_url="http://test") as ac:
            yield ac


@pytest_asyncio.fixture(loop_scope="session", scope="session")
async def auth_headers(client: AsyncClient) -> dict[str, str]:
    """Registers a fresh user and returns its Bearer header."""
    uid = uuid.uuid4().hex[:8]
    user = {"name": "fixture user", "email": f"fixture_{uid}@example.com", "password": "TestPass1"}
    await client.post("/api/v1/auth/register", json=user)
    login_resp = await client.post(
        "/api/v1/auth/login",
        json={"email": user["email"], "password": user["password"]},
    )
    token = login_resp.json()["data"]["token"]
    return {"Authorization": f"Bearer {token}"}
