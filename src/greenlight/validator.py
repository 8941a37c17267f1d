"""Field-level validation accumulator shared by every entity type.

A :class:`Validator` collects at most one human-readable message per field.
Entity-specific routines (e.g. ``validate_movie``) run a fixed sequence of
``check`` calls against it; the first failing check for a field wins.
"""

from __future__ import annotations

import re
from collections.abc import Hashable, Iterable
from typing import Any

from greenlight.data.errors import ValidationFailedError

EMAIL_RX = re.compile(
    r"^[a-zA-Z0-9.!#$%&'*+/=?^_`{|}~-]+@[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?"
    r"(?:\.[a-zA-Z0-9](?:[a-zA-Z0-9-]{0,61}[a-zA-Z0-9])?)*$"
)


class Validator:
    """Mutable mapping from field name to its first failure message."""

    def __init__(self) -> None:
        self.errors: dict[str, str] = {}

    def valid(self) -> bool:
        """True when no failures have been recorded."""
        return not self.errors

    def add_error(self, key: str, message: str) -> None:
        """Record *message* for *key* unless *key* already has one."""
        if key not in self.errors:
            self.errors[key] = message

    def check(self, ok: bool, key: str, message: str) -> None:
        """Record *message* for *key* when *ok* is false."""
        if not ok:
            self.add_error(key, message)

    def raise_if_invalid(self) -> None:
        """Raise :exc:`ValidationFailedError` carrying a copy of the messages."""
        if self.errors:
            raise ValidationFailedError(dict(self.errors))

    def __repr__(self) -> str:
        return f"Validator(errors={self.errors!r})"


def permitted_value(value: Any, *permitted: Any) -> bool:
    """Return True if *value* is one of *permitted*."""
    return value in permitted


def matches(value: str, rx: re.Pattern[str]) -> bool:
    return rx.match(value) is not None


def unique(values: Iterable[Hashable]) -> bool:
    """Return True when *values* contains no duplicates."""
    seen: set[Hashable] = set()
    for value in values:
        if value in seen:
            return False
        seen.add(value)
    return True
