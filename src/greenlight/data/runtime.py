"""Runtime codec: integer minutes <-> the JSON string ``"<int> mins"``.

Parsing is strict. Anything other than a JSON string literal holding a
signed base-10 int32, one space, and the word ``mins`` is rejected with
:exc:`InvalidRuntimeFormatError`.
"""

from __future__ import annotations

import json
import re
from typing import Annotated, Any

from pydantic import BeforeValidator, PlainSerializer, ValidationInfo

from greenlight.data.errors import InvalidRuntimeFormatError

_INT32_MIN = -(2**31)
_INT32_MAX = 2**31 - 1
_UNIT = "mins"
_INTEGER_PATTERN = re.compile(r"[+-]?[0-9]+")


def format_runtime(minutes: int) -> str:
    """Return the unquoted text form, e.g. ``102 mins``."""
    return f"{minutes} {_UNIT}"


def encode_runtime(minutes: int) -> str:
    """Return the JSON text for *minutes*, quotes included: ``"102 mins"``."""
    return json.dumps(format_runtime(minutes))


def parse_runtime_text(text: str) -> int:
    """Parse an already-unquoted runtime such as ``102 mins``."""
    parts = text.split(" ")
    if len(parts) != 2 or parts[1] != _UNIT:
        raise InvalidRuntimeFormatError()

    if _INTEGER_PATTERN.fullmatch(parts[0]) is None:
        raise InvalidRuntimeFormatError()
    minutes = int(parts[0])
    if not _INT32_MIN <= minutes <= _INT32_MAX:
        raise InvalidRuntimeFormatError()
    return minutes


def decode_runtime(data: str | bytes) -> int:
    """Decode JSON text such as ``"102 mins"`` (quotes included) to minutes."""
    if isinstance(data, bytes):
        try:
            data = data.decode()
        except UnicodeDecodeError as exc:
            raise InvalidRuntimeFormatError() from exc

    if len(data) < 2 or data[0] != '"' or data[-1] != '"':
        raise InvalidRuntimeFormatError()
    try:
        text = json.loads(data)
    except ValueError as exc:
        raise InvalidRuntimeFormatError() from exc
    if not isinstance(text, str):
        raise InvalidRuntimeFormatError()

    return parse_runtime_text(text)


def _validate_runtime(value: Any, info: ValidationInfo) -> int:
    # JSON input must use the text form; Python callers (and database rows)
    # hand over plain ints.
    if isinstance(value, str):
        try:
            return parse_runtime_text(value)
        except InvalidRuntimeFormatError as exc:
            raise ValueError(str(exc)) from exc
    if info.mode == "json" or isinstance(value, bool):
        raise ValueError(str(InvalidRuntimeFormatError()))
    return value


Runtime = Annotated[
    int,
    BeforeValidator(_validate_runtime),
    PlainSerializer(format_runtime, return_type=str, when_used="json"),
]
"""Runtime in minutes; rendered as ``"N mins"`` in JSON output."""
