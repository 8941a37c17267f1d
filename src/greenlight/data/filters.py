"""Query filters: allow-listed sorting, page-based pagination, and metadata.

Sort keys reach SQL only through :meth:`Filters.sort_column`, which returns a
column name taken verbatim from the safelist. Caller-supplied text is never
interpolated into a query.
"""

from __future__ import annotations

from dataclasses import dataclass

from pydantic import BaseModel, model_serializer

from greenlight.validator import Validator, permitted_value

MAX_PAGE = 10_000_000
MAX_PAGE_SIZE = 100
DEFAULT_PAGE_SIZE = 20
DESCENDING_PREFIX = "-"

MOVIE_SORT_SAFELIST: tuple[str, ...] = (
    "id",
    "title",
    "year",
    "runtime",
    "-id",
    "-title",
    "-year",
    "-runtime",
)


@dataclass
class Filters:
    """Page, page size and sort key for a list query."""

    page: int = 1
    page_size: int = DEFAULT_PAGE_SIZE
    sort: str = "id"
    sort_safelist: tuple[str, ...] = MOVIE_SORT_SAFELIST

    def sort_column(self) -> str:
        """Return the bare column for :attr:`sort`.

        Raises:
            RuntimeError: If :attr:`sort` is not in the safelist. Values are
                validated before reaching the store, so this signals a bug.
        """
        for safe_value in self.sort_safelist:
            if self.sort == safe_value:
                return self.sort.removeprefix(DESCENDING_PREFIX)
        raise RuntimeError(f"unsafe sort parameter: {self.sort!r}")

    def sort_direction(self) -> str:
        if self.sort.startswith(DESCENDING_PREFIX):
            return "DESC"
        return "ASC"

    def limit(self) -> int:
        return self.page_size

    def offset(self) -> int:
        return (self.page - 1) * self.page_size


def validate_filters(v: Validator, f: Filters) -> None:
    """Bounds-check page and page size and allow-list the sort key."""
    v.check(f.page > 0, "page", "must be greater than zero")
    v.check(f.page <= MAX_PAGE, "page", "must be a maximum of 10 million")
    v.check(f.page_size > 0, "page_size", "must be greater than zero")
    v.check(f.page_size <= MAX_PAGE_SIZE, "page_size", "must be a maximum of 100")
    v.check(permitted_value(f.sort, *f.sort_safelist), "sort", "invalid sort value")


class Metadata(BaseModel):
    """Pagination metadata derived from a total row count.

    Every field is zero when the query matched nothing; zero fields are left
    out of serialized output.
    """

    current_page: int = 0
    page_size: int = 0
    first_page: int = 0
    last_page: int = 0
    total_records: int = 0

    model_config = {"frozen": True}

    @model_serializer(mode="wrap")
    def _omit_zero_fields(self, handler):  # noqa: ANN001, ANN202
        return {key: value for key, value in handler(self).items() if value}


def calculate_metadata(total_records: int, page: int, page_size: int) -> Metadata:
    """Build :class:`Metadata` for *total_records* rows split into *page_size* pages."""
    if total_records == 0:
        return Metadata()

    return Metadata(
        current_page=page,
        page_size=page_size,
        first_page=1,
        last_page=(total_records + page_size - 1) // page_size,
        total_records=total_records,
    )
