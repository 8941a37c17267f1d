"""Movie records: validation and the PostgreSQL-backed record store.

Updates use optimistic concurrency. Every row carries a ``version`` that
starts at 1. An update only applies when the caller's version still matches
the stored one, and it bumps the version by exactly 1 in the same statement.
A writer holding a stale version gets :exc:`EditConflictError` and must
re-read before trying again.
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import asyncpg
from pydantic import BaseModel, Field

from greenlight.core.telemetry import store_span
from greenlight.data import DEFAULT_TIMEOUT_S
from greenlight.data.errors import EditConflictError, RecordNotFoundError, store_call
from greenlight.data.filters import Filters, Metadata, calculate_metadata
from greenlight.data.runtime import Runtime
from greenlight.validator import Validator, unique

logger = logging.getLogger(__name__)

MAX_TITLE_BYTES = 500
MIN_YEAR = 1888
MAX_GENRES = 5

_MOVIE_COLUMNS = "id, created_at, title, year, runtime, genres, version"


class Movie(BaseModel):
    """A catalogued movie.

    ``id``, ``created_at`` and ``version`` are assigned by the store.
    ``created_at`` is kept for internal use and never serialized.
    """

    id: int = 0
    created_at: datetime | None = Field(default=None, exclude=True)
    title: str = ""
    year: int = 0
    runtime: Runtime = 0
    genres: list[str] | None = None
    version: int = 0

    model_config = {"validate_assignment": True}


def validate_movie(v: Validator, movie: Movie) -> None:
    """Run the movie field checks against *v*, in a fixed order."""
    v.check(movie.title != "", "title", "must be provided")
    v.check(
        len(movie.title.encode(errors="surrogatepass")) <= MAX_TITLE_BYTES,
        "title",
        "must not be more than 500 bytes long",
    )

    v.check(movie.year != 0, "year", "must be provided")
    v.check(movie.year >= MIN_YEAR, "year", "must be greater than or equal to 1888")

    v.check(movie.runtime != 0, "runtime", "must be provided")
    v.check(movie.runtime > 0, "runtime", "must be a positive integer")

    genres = movie.genres
    v.check(genres is not None, "genres", "must be provided")
    v.check(genres is not None and len(genres) >= 1, "genres", "must contain at least 1 genre")
    v.check(
        genres is None or len(genres) <= MAX_GENRES,
        "genres",
        "must not contain more than 5 genres",
    )
    v.check(genres is None or unique(genres), "genres", "must not contain duplicate values")


def _movie_from_row(row: Any) -> Movie:
    return Movie(
        id=row["id"],
        created_at=row["created_at"],
        title=row["title"],
        year=row["year"],
        runtime=row["runtime"],
        genres=list(row["genres"]),
        version=row["version"],
    )


def _affected_rows(status: str) -> int:
    """Parse the row count from an asyncpg command tag such as ``DELETE 1``."""
    try:
        return int(status.rsplit(" ", 1)[-1])
    except ValueError:
        return 0


class MovieModel:
    """Record store for the ``movies`` table.

    *pool* is anything exposing asyncpg's ``fetch``/``fetchrow``/``execute``
    coroutines with a ``timeout`` keyword (an ``asyncpg.Pool`` or a
    :class:`greenlight.db.Database`). Each call, pool checkout included, is
    bounded by *timeout* seconds. Nothing is cached between calls.
    """

    def __init__(self, pool: asyncpg.Pool, timeout: float = DEFAULT_TIMEOUT_S) -> None:
        self.pool = pool
        self.timeout = timeout

    @store_span("movies.insert")
    async def insert(self, movie: Movie) -> None:
        """Insert *movie* and write the assigned id, created_at and version back onto it."""
        async with store_call("movies.insert", self.timeout):
            row = await self.pool.fetchrow(
                """
                INSERT INTO movies (title, year, runtime, genres)
                VALUES ($1, $2, $3, $4::text[])
                RETURNING id, created_at, version
                """,
                movie.title,
                movie.year,
                movie.runtime,
                movie.genres,
                timeout=self.timeout,
            )
        movie.id = row["id"]
        movie.created_at = row["created_at"]
        movie.version = row["version"]
        logger.debug("Inserted movie %d", movie.id)

    @store_span("movies.get")
    async def get(self, movie_id: int) -> Movie:
        """Return the movie with *movie_id*.

        Raises:
            RecordNotFoundError: If *movie_id* < 1 (no query is issued) or no
                row matches.
        """
        if movie_id < 1:
            raise RecordNotFoundError(movie_id)

        async with store_call("movies.get", self.timeout):
            row = await self.pool.fetchrow(
                f"SELECT {_MOVIE_COLUMNS} FROM movies WHERE id = $1",
                movie_id,
                timeout=self.timeout,
            )
        if row is None:
            logger.info("Movie %d not found", movie_id)
            raise RecordNotFoundError(movie_id)
        return _movie_from_row(row)

    @store_span("movies.update")
    async def update(self, movie: Movie) -> None:
        """Write *movie* back if its version is still current.

        On success ``movie.version`` is advanced to the stored value, which is
        always the previous version plus one.

        Raises:
            EditConflictError: If no row has this id at this version, either
                because another writer got there first or because the row
                was deleted.
        """
        async with store_call("movies.update", self.timeout):
            row = await self.pool.fetchrow(
                """
                UPDATE movies
                SET title = $1, year = $2, runtime = $3, genres = $4::text[], version = version + 1
                WHERE id = $5 AND version = $6
                RETURNING version
                """,
                movie.title,
                movie.year,
                movie.runtime,
                movie.genres,
                movie.id,
                movie.version,
                timeout=self.timeout,
            )
        if row is None:
            logger.info("Edit conflict on movie %d at version %d", movie.id, movie.version)
            raise EditConflictError(movie.id, movie.version)
        movie.version = row["version"]

    @store_span("movies.delete")
    async def delete(self, movie_id: int) -> None:
        """Delete the movie with *movie_id*.

        Raises:
            RecordNotFoundError: If *movie_id* < 1 or nothing was deleted.
        """
        if movie_id < 1:
            raise RecordNotFoundError(movie_id)

        async with store_call("movies.delete", self.timeout):
            status = await self.pool.execute(
                "DELETE FROM movies WHERE id = $1",
                movie_id,
                timeout=self.timeout,
            )
        if _affected_rows(status) == 0:
            logger.info("Movie %d not found for delete", movie_id)
            raise RecordNotFoundError(movie_id)
        logger.debug("Deleted movie %d", movie_id)

    @store_span("movies.get_all")
    async def get_all(
        self,
        title: str,
        genres: list[str],
        filters: Filters,
    ) -> tuple[list[Movie], Metadata]:
        """List movies matching *title* and *genres*, one page at a time.

        An empty *title* or an empty *genres* list matches everything. Title
        matching is full-text (``simple`` configuration); genre matching
        requires every requested genre to be present. Rows are ordered by the
        filter's sort column then by ``id`` ascending, so pages are stable
        across duplicate sort values. The total match count comes from a
        window function in the same query.
        """
        # Only safelisted identifiers reach the query text.
        query = f"""
            SELECT count(*) OVER() AS total_records, {_MOVIE_COLUMNS}
            FROM movies
            WHERE (to_tsvector('simple', title) @@ plainto_tsquery('simple', $1) OR $1 = '')
            AND (genres @> $2::text[] OR $2::text[] = '{{}}')
            ORDER BY {filters.sort_column()} {filters.sort_direction()}, id ASC
            LIMIT $3 OFFSET $4
        """

        async with store_call("movies.get_all", self.timeout):
            rows = await self.pool.fetch(
                query,
                title,
                list(genres),
                filters.limit(),
                filters.offset(),
                timeout=self.timeout,
            )

        total_records = 0
        movies: list[Movie] = []
        for row in rows:
            total_records = row["total_records"]
            movies.append(_movie_from_row(row))

        metadata = calculate_metadata(total_records, filters.page, filters.page_size)
        return movies, metadata
