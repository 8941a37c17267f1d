"""PostgreSQL connection settings and the pool the record stores share."""

from __future__ import annotations

import asyncio
import logging
import os
from typing import Any
from urllib.parse import parse_qs, quote, urlparse

import asyncpg

logger = logging.getLogger(__name__)

DEFAULT_DB_NAME = "greenlight"
SSL_MODES = frozenset({"disable", "prefer", "allow", "require", "verify-ca", "verify-full"})


def _ssl_mode(value: str | None) -> str | None:
    if not value or not value.strip():
        return None
    mode = value.strip().lower()
    if mode not in SSL_MODES:
        logger.warning("Ignoring unknown sslmode %r", value)
        return None
    return mode


def db_params_from_env() -> dict[str, str | int | None]:
    """Connection parameters from ``DATABASE_URL`` or the ``POSTGRES_*`` variables.

    Keys: ``host``, ``port``, ``user``, ``password``, ``database``, ``ssl``.
    """
    env = os.environ
    if url := env.get("DATABASE_URL"):
        parsed = urlparse(url)
        return {
            "host": parsed.hostname or "localhost",
            "port": parsed.port or 5432,
            "user": parsed.username or DEFAULT_DB_NAME,
            "password": parsed.password or DEFAULT_DB_NAME,
            "database": parsed.path.lstrip("/") or DEFAULT_DB_NAME,
            "ssl": _ssl_mode(parse_qs(parsed.query).get("sslmode", [None])[0]),
        }
    return {
        "host": env.get("POSTGRES_HOST", "localhost"),
        "port": int(env.get("POSTGRES_PORT", "5432")),
        "user": env.get("POSTGRES_USER", DEFAULT_DB_NAME),
        "password": env.get("POSTGRES_PASSWORD", DEFAULT_DB_NAME),
        "database": env.get("POSTGRES_DB", DEFAULT_DB_NAME),
        "ssl": _ssl_mode(env.get("POSTGRES_SSLMODE")),
    }


class Database:
    """The catalogue database: creation, migrations URL and the shared pool.

    The query methods mirror ``asyncpg.Pool`` so a ``Database`` can be handed
    to the record stores directly. Their ``timeout`` bounds pool checkout and
    the statement together.
    """

    def __init__(
        self,
        db_name: str = DEFAULT_DB_NAME,
        host: str = "localhost",
        port: int = 5432,
        user: str = "postgres",
        password: str = "postgres",
        ssl: str | None = None,
        min_pool_size: int = 2,
        max_pool_size: int = 10,
        max_idle_time_s: float = 300.0,
    ) -> None:
        self.db_name = db_name
        self.host = host
        self.port = port
        self.user = user
        self.password = password
        self.ssl = ssl
        self.min_pool_size = min_pool_size
        self.max_pool_size = max_pool_size
        self.max_idle_time_s = max_idle_time_s
        self.pool: asyncpg.Pool | None = None

    @classmethod
    def from_env(cls, db_name: str | None = None) -> Database:
        params = db_params_from_env()
        return cls(
            db_name=db_name or str(params["database"]),
            host=str(params["host"]),
            port=int(params["port"]),
            user=str(params["user"]),
            password=str(params["password"]),
            ssl=params["ssl"] if isinstance(params["ssl"], str) else None,
        )

    def url(self) -> str:
        """libpq URL for this database, as Alembic expects it."""
        creds = f"{quote(self.user, safe='')}:{quote(self.password, safe='')}"
        url = f"postgresql://{creds}@{self.host}:{self.port}/{self.db_name}"
        return f"{url}?sslmode={self.ssl}" if self.ssl else url

    def _connect_kwargs(self, database: str) -> dict[str, Any]:
        kwargs: dict[str, Any] = {
            "host": self.host,
            "port": self.port,
            "user": self.user,
            "password": self.password,
            "database": database,
        }
        if self.ssl:
            kwargs["ssl"] = self.ssl
        return kwargs

    async def provision(self) -> None:
        """Create the database through the ``postgres`` maintenance database if missing."""
        conn = await asyncpg.connect(**self._connect_kwargs("postgres"))
        try:
            if await conn.fetchval("SELECT 1 FROM pg_database WHERE datname = $1", self.db_name):
                return
            # CREATE DATABASE takes no parameters.
            ident = self.db_name.replace('"', '""')
            await conn.execute(f'CREATE DATABASE "{ident}"')
            logger.info("Created database %s", self.db_name)
        finally:
            await conn.close()

    async def connect(self) -> asyncpg.Pool:
        self.pool = await asyncpg.create_pool(
            min_size=self.min_pool_size,
            max_size=self.max_pool_size,
            max_inactive_connection_lifetime=self.max_idle_time_s,
            **self._connect_kwargs(self.db_name),
        )
        logger.info("Connection pool opened for %s", self.db_name)
        return self.pool

    async def close(self) -> None:
        if self.pool is None:
            return
        await self.pool.close()
        self.pool = None
        logger.info("Connection pool closed for %s", self.db_name)

    async def _run(
        self, method: str, query: str, args: tuple[Any, ...], timeout: float | None
    ) -> Any:
        if self.pool is None:
            raise RuntimeError(f"Database '{self.db_name}' has no active connection pool")
        async with asyncio.timeout(timeout):
            return await getattr(self.pool, method)(query, *args, timeout=timeout)

    async def fetch(self, query: str, *args: Any, timeout: float | None = None) -> list[Any]:
        return await self._run("fetch", query, args, timeout)

    async def fetchrow(self, query: str, *args: Any, timeout: float | None = None) -> Any:
        return await self._run("fetchrow", query, args, timeout)

    async def fetchval(self, query: str, *args: Any, timeout: float | None = None) -> Any:
        return await self._run("fetchval", query, args, timeout)

    async def execute(self, query: str, *args: Any, timeout: float | None = None) -> str:
        return await self._run("execute", query, args, timeout)
