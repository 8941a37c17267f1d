"""Permission codes granted to users, read through the users_permissions join."""

from __future__ import annotations

import logging
from collections.abc import Iterable

import asyncpg

from greenlight.core.telemetry import store_span
from greenlight.data import DEFAULT_TIMEOUT_S
from greenlight.data.errors import NotPermittedError, store_call

logger = logging.getLogger(__name__)

MOVIES_READ = "movies:read"
MOVIES_WRITE = "movies:write"


class Permissions(list[str]):
    """Capability codes held by one user. Only membership is meaningful."""

    def include(self, code: str) -> bool:
        for granted in self:
            if granted == code:
                return True
        return False

    def require(self, code: str) -> None:
        """Raise :exc:`NotPermittedError` unless *code* is present."""
        if not self.include(code):
            raise NotPermittedError(code)


class PermissionModel:
    """Reads and grants permission codes."""

    def __init__(self, pool: asyncpg.Pool, timeout: float = DEFAULT_TIMEOUT_S) -> None:
        self.pool = pool
        self.timeout = timeout

    @store_span("permissions.get_all_for_user")
    async def get_all_for_user(self, user_id: int) -> Permissions:
        """Return every code granted to *user_id*; empty when there are none."""
        async with store_call("permissions.get_all_for_user", self.timeout):
            rows = await self.pool.fetch(
                """
                SELECT permissions.code
                FROM permissions
                INNER JOIN users_permissions ON users_permissions.permission_id = permissions.id
                INNER JOIN users ON users_permissions.user_id = users.id
                WHERE users.id = $1
                ORDER BY permissions.code
                """,
                user_id,
                timeout=self.timeout,
            )
        return Permissions(row["code"] for row in rows)

    @store_span("permissions.add_for_user")
    async def add_for_user(self, user_id: int, *codes: str) -> None:
        """Grant *codes* to *user_id*. Unknown codes are ignored; re-grants are no-ops."""
        code_list: list[str] = list(_dedupe(codes))
        if not code_list:
            return
        async with store_call("permissions.add_for_user", self.timeout):
            await self.pool.execute(
                """
                INSERT INTO users_permissions (user_id, permission_id)
                SELECT $1, permissions.id FROM permissions WHERE permissions.code = ANY($2::text[])
                ON CONFLICT DO NOTHING
                """,
                user_id,
                code_list,
                timeout=self.timeout,
            )
        logger.info("Granted permissions %s to user %d", code_list, user_id)


def _dedupe(codes: Iterable[str]) -> Iterable[str]:
    seen: set[str] = set()
    for code in codes:
        if code not in seen:
            seen.add(code)
            yield code
