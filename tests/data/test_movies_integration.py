"""Integration tests for the movie record store against PostgreSQL."""

from __future__ import annotations

import asyncio
import shutil

import pytest

from greenlight.data.errors import EditConflictError, RecordNotFoundError, StoreError
from greenlight.data.filters import Filters, Metadata
from greenlight.data.movies import Movie, MovieModel

docker_available = shutil.which("docker") is not None
pytestmark = [
    pytest.mark.integration,
    pytest.mark.skipif(not docker_available, reason="Docker not available"),
    # Share the session loop with the container-backed fixtures.
    pytest.mark.asyncio(loop_scope="session"),
]

_CATALOGUE = [
    ("Moana", 2016, 107, ["animation", "adventure"]),
    ("Black Panther", 2018, 134, ["action", "adventure"]),
    ("Deadpool", 2016, 108, ["action", "comedy"]),
    ("The Breakfast Club", 1985, 96, ["drama"]),
    ("Casablanca", 1942, 102, ["drama", "romance"]),
]


@pytest.fixture
async def movies(provisioned_database):
    async with provisioned_database() as db:
        yield MovieModel(db)


async def _seed(model: MovieModel) -> list[Movie]:
    seeded = []
    for title, year, runtime, genres in _CATALOGUE:
        movie = Movie(title=title, year=year, runtime=runtime, genres=genres)
        await model.insert(movie)
        seeded.append(movie)
    return seeded


# ------------------------------------------------------------------
# insert / get
# ------------------------------------------------------------------


async def test_insert_assigns_id_created_at_and_version(movies):
    movie = Movie(title="Moana", year=2016, runtime=107, genres=["animation"])
    await movies.insert(movie)

    assert movie.id >= 1
    assert movie.created_at is not None
    assert movie.version == 1

    fetched = await movies.get(movie.id)
    assert fetched == movie


async def test_get_missing_id(movies):
    with pytest.raises(RecordNotFoundError):
        await movies.get(999_999)


async def test_insert_constraint_violation_is_store_error(movies):
    movie = Movie(title="Too Old", year=1800, runtime=10, genres=["drama"])
    with pytest.raises(StoreError):
        await movies.insert(movie)


# ------------------------------------------------------------------
# update — optimistic concurrency
# ------------------------------------------------------------------


async def test_update_increments_version_by_one(movies):
    movie = Movie(title="Moana", year=2016, runtime=107, genres=["animation"])
    await movies.insert(movie)

    movie.runtime = 108
    await movies.update(movie)
    assert movie.version == 2

    movie.genres = ["animation", "musical"]
    await movies.update(movie)
    assert movie.version == 3

    stored = await movies.get(movie.id)
    assert stored.version == 3
    assert stored.runtime == 108
    assert stored.genres == ["animation", "musical"]


async def test_update_with_stale_version_conflicts(movies):
    movie = Movie(title="Moana", year=2016, runtime=107, genres=["animation"])
    await movies.insert(movie)

    first = await movies.get(movie.id)
    second = await movies.get(movie.id)

    first.title = "Moana (2016)"
    await movies.update(first)

    second.title = "Moana!"
    with pytest.raises(EditConflictError):
        await movies.update(second)

    stored = await movies.get(movie.id)
    assert stored.title == "Moana (2016)"
    assert stored.version == 2


async def test_concurrent_updates_from_same_version_exactly_one_wins(movies):
    movie = Movie(title="Deadpool", year=2016, runtime=108, genres=["action"])
    await movies.insert(movie)

    copies = [await movies.get(movie.id) for _ in range(4)]
    for i, copy in enumerate(copies):
        copy.runtime = 200 + i

    results = await asyncio.gather(
        *(movies.update(copy) for copy in copies),
        return_exceptions=True,
    )

    successes = [r for r in results if r is None]
    conflicts = [r for r in results if isinstance(r, EditConflictError)]
    assert len(successes) == 1
    assert len(conflicts) == 3
    assert (await movies.get(movie.id)).version == 2


async def test_update_deleted_record_conflicts(movies):
    movie = Movie(title="Deadpool", year=2016, runtime=108, genres=["action"])
    await movies.insert(movie)
    await movies.delete(movie.id)

    with pytest.raises(EditConflictError):
        await movies.update(movie)


# ------------------------------------------------------------------
# delete
# ------------------------------------------------------------------


async def test_delete_removes_row(movies):
    movie = Movie(title="Deadpool", year=2016, runtime=108, genres=["action"])
    await movies.insert(movie)

    await movies.delete(movie.id)

    with pytest.raises(RecordNotFoundError):
        await movies.get(movie.id)
    with pytest.raises(RecordNotFoundError):
        await movies.delete(movie.id)


# ------------------------------------------------------------------
# get_all
# ------------------------------------------------------------------


async def test_get_all_without_filters_returns_everything_by_id(movies):
    seeded = await _seed(movies)

    result, metadata = await movies.get_all("", [], Filters())

    assert [m.id for m in result] == [m.id for m in seeded]
    assert metadata == Metadata(
        current_page=1, page_size=20, first_page=1, last_page=1, total_records=5
    )


async def test_get_all_genre_filter_requires_every_genre(movies):
    await _seed(movies)

    drama, _ = await movies.get_all("", ["drama"], Filters())
    assert {m.title for m in drama} == {"The Breakfast Club", "Casablanca"}
    assert all("drama" in m.genres for m in drama)

    action_comedy, _ = await movies.get_all("", ["action", "comedy"], Filters())
    assert [m.title for m in action_comedy] == ["Deadpool"]


async def test_get_all_title_full_text_match(movies):
    await _seed(movies)

    result, metadata = await movies.get_all("panther", [], Filters())

    assert [m.title for m in result] == ["Black Panther"]
    assert metadata.total_records == 1


async def test_get_all_sort_ties_break_on_id(movies):
    seeded = await _seed(movies)
    by_title = {m.title: m for m in seeded}

    result, _ = await movies.get_all("", [], Filters(sort="-year"))

    assert [m.title for m in result] == [
        "Black Panther",
        "Moana",
        "Deadpool",
        "The Breakfast Club",
        "Casablanca",
    ]
    # Both 2016 films: lower id first regardless of direction.
    assert by_title["Moana"].id < by_title["Deadpool"].id


async def test_get_all_paginates_with_stable_order(movies):
    await _seed(movies)

    page_one, meta_one = await movies.get_all("", [], Filters(page=1, page_size=2, sort="year"))
    page_two, _ = await movies.get_all("", [], Filters(page=2, page_size=2, sort="year"))
    page_three, _ = await movies.get_all("", [], Filters(page=3, page_size=2, sort="year"))

    titles = [m.title for m in page_one + page_two + page_three]
    assert titles == [
        "Casablanca",
        "The Breakfast Club",
        "Moana",
        "Deadpool",
        "Black Panther",
    ]
    assert meta_one == Metadata(
        current_page=1, page_size=2, first_page=1, last_page=3, total_records=5
    )


async def test_get_all_no_matches_is_empty(movies):
    await _seed(movies)

    result, metadata = await movies.get_all("", ["western"], Filters())

    assert result == []
    assert metadata == Metadata()
