"""Root conftest — shared PostgreSQL fixtures for DB-backed tests.

Integration tests share one session-scoped PostgreSQL testcontainer. Each
test provisions a fresh, fully migrated database with a random name, so rows
never leak between tests.
"""

from __future__ import annotations

import asyncio
import logging
import shutil
import uuid
from collections.abc import AsyncIterator, Callable, Iterator
from contextlib import AbstractAsyncContextManager, asynccontextmanager
from typing import TYPE_CHECKING

import pytest

if TYPE_CHECKING:
    from testcontainers.postgres import PostgresContainer

    from greenlight.db import Database

docker_available = shutil.which("docker") is not None
logger = logging.getLogger(__name__)


def _unique_test_db_name() -> str:
    return f"test_{uuid.uuid4().hex[:12]}"


@pytest.fixture(scope="session")
def postgres_container() -> Iterator[PostgresContainer]:
    """Shared Postgres testcontainer for all DB-backed tests in this pytest session."""
    from testcontainers.postgres import PostgresContainer

    with PostgresContainer("postgres:16") as pg:
        yield pg


@pytest.fixture
def provisioned_database(
    postgres_container: PostgresContainer,
) -> Callable[..., AbstractAsyncContextManager[Database]]:
    """Create a fresh, migrated database with a connected pool for one test.

    Tests should use this as:
        async with provisioned_database() as db:
            ...
    """
    from greenlight.db import Database
    from greenlight.migrations import run_migrations

    @asynccontextmanager
    async def _provision(
        *,
        min_pool_size: int = 1,
        max_pool_size: int = 4,
    ) -> AsyncIterator[Database]:
        db = Database(
            db_name=_unique_test_db_name(),
            host=postgres_container.get_container_host_ip(),
            port=int(postgres_container.get_exposed_port(5432)),
            user=postgres_container.username,
            password=postgres_container.password,
            min_pool_size=min_pool_size,
            max_pool_size=max_pool_size,
        )
        await db.provision()
        # Alembic is synchronous; keep it off the event loop.
        await asyncio.to_thread(run_migrations, db.url())
        await db.connect()
        try:
            yield db
        finally:
            await db.close()

    return _provision
