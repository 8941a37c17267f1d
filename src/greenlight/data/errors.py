"""Error kinds surfaced by the data layer.

``RecordNotFoundError`` and ``EditConflictError`` are routine outcomes that
callers are expected to branch on; ``StoreError`` wraps everything the
backing store reports that has no domain meaning (connectivity, deadline,
constraint violations).
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
from collections.abc import AsyncIterator, Iterator

import asyncpg

logger = logging.getLogger(__name__)


class DataError(Exception):
    """Base class for every error raised by ``greenlight.data``."""


class RecordNotFoundError(DataError):
    """No row matched the requested identifier."""

    def __init__(self, record_id: int | None = None) -> None:
        self.record_id = record_id
        super().__init__("record not found")


class EditConflictError(DataError):
    """The stored version moved on since the caller read the record.

    Attributes:
        record_id: Identifier of the record being updated.
        expected_version: The version the caller held when it attempted the write.
    """

    def __init__(self, record_id: int, expected_version: int) -> None:
        self.record_id = record_id
        self.expected_version = expected_version
        super().__init__(
            f"edit conflict on record {record_id}: version {expected_version} is no longer current"
        )


class InvalidRuntimeFormatError(DataError):
    """A runtime value was not of the exact form ``"<int> mins"``."""

    def __init__(self) -> None:
        super().__init__("invalid runtime format")


class ValidationFailedError(DataError):
    """One or more fields failed validation; *errors* maps field to message."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = errors
        fields = ", ".join(errors)
        super().__init__(f"validation failed: {fields}")


class NotPermittedError(DataError):
    """The permission set does not contain the required capability code."""

    def __init__(self, code: str) -> None:
        self.code = code
        super().__init__(f"missing permission: {code}")


class StoreError(DataError):
    """The backing store failed for a reason with no domain meaning."""


class StoreTimeoutError(StoreError):
    """A store round-trip exceeded its deadline."""


@contextlib.contextmanager
def store_errors(operation: str) -> Iterator[None]:
    """Translate asyncpg, socket and deadline failures into :exc:`StoreError`.

    Domain errors raised inside the block pass through untouched.
    """
    try:
        yield
    except DataError:
        raise
    except TimeoutError as exc:
        logger.warning("Store deadline exceeded during %s", operation)
        raise StoreTimeoutError(f"{operation}: deadline exceeded") from exc
    except (asyncpg.PostgresError, asyncpg.InterfaceError, OSError) as exc:
        raise StoreError(f"{operation}: {exc}") from exc


@contextlib.asynccontextmanager
async def store_call(operation: str, timeout: float) -> AsyncIterator[None]:
    """Run one store round-trip under a *timeout* second deadline.

    The deadline covers pool checkout as well as the statement itself, and
    failures are translated as in :func:`store_errors`.
    """
    with store_errors(operation):
        async with asyncio.timeout(timeout):
            yield
