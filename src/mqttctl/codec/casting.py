"""Conversions between payload/topic text and typed handler values.

Primitive targets follow fixed rules (``"0"``/``"1"`` booleans, integers that
tolerate an all-zero fractional part, single characters). Every other target
is deserialized from JSON through a pydantic ``TypeAdapter``; bare text that
is not JSON is validated as a JSON string would be.
"""

from __future__ import annotations

import re
from enum import Enum
from functools import lru_cache
from typing import Any, NewType

import orjson
from pydantic import TypeAdapter, ValidationError
from pydantic.errors import PydanticSchemaGenerationError, PydanticUserError
from pydantic_core import PydanticSerializationError, to_jsonable_python

from mqttctl.domain.errors import CastError

Char = NewType("Char", str)
"""Marker type for single-character values."""

_INTEGER_RE = re.compile(r"^([+-]?\d+)(?:\.(\d*))?$")
_TEXT_TARGETS = (str, bool, int, Char, float)


def _cast_bool(text: str) -> bool:
    if text == "0":
        return False
    if text == "1":
        return True
    lowered = text.lower()
    if lowered == "true":
        return True
    if lowered == "false":
        return False
    raise CastError(f"Cannot cast {text!r} to bool")


def _cast_int(text: str) -> int:
    match = _INTEGER_RE.match(text)
    if match is None:
        raise CastError(f"Cannot cast {text!r} to int")
    decimals = match.group(2) or ""
    if decimals.strip("0"):
        raise CastError(f"Cannot cast number {text!r} with decimals bigger than 0")
    return int(match.group(1))


def _cast_char(text: str) -> str:
    if len(text) != 1:
        raise CastError(f"Cannot cast string of length {len(text)} to a single character")
    return text


def _cast_float(text: str) -> float:
    try:
        return float(text)
    except ValueError:
        raise CastError(f"Cannot cast {text!r} to float") from None


def _is_json_syntax_error(exc: ValidationError) -> bool:
    return any(error["type"] == "json_invalid" for error in exc.errors())


@lru_cache(maxsize=256)
def _adapter(target: Any) -> TypeAdapter[Any]:
    return TypeAdapter(target)


def cast_to_type(text: str, target: Any) -> Any:
    """Convert ``text`` into a value of ``target``.

    Raises:
        CastError: if the text does not fit the target, or the target is not
            something pydantic can validate.
    """

    if target is str:
        return text
    if target is bool:
        return _cast_bool(text)
    if target is int:
        return _cast_int(text)
    if target is Char:
        return _cast_char(text)
    if target is float:
        return _cast_float(text)

    try:
        adapter = _adapter(target)
        try:
            return adapter.validate_json(text)
        except ValidationError as exc:
            if not _is_json_syntax_error(exc):
                raise
        # Bare text such as an enum value or timestamp read as a JSON string.
        return adapter.validate_python(text)
    except ValidationError as exc:
        raise CastError(f"Cannot cast {text!r} to {target!r}: {exc}") from exc
    except (PydanticSchemaGenerationError, PydanticUserError, TypeError) as exc:
        raise CastError(f"Cast to {target!r} is not supported: {exc}") from exc


def cast_json_value(value: Any, target: Any) -> Any:
    """Convert an already parsed JSON ``value`` into ``target``.

    Primitive targets go through the same text rules as :func:`cast_to_type`;
    everything else is validated from the JSON value itself.
    """

    if target in _TEXT_TARGETS:
        return cast_to_type(encode_value(value), target)
    try:
        return _adapter(target).validate_python(value)
    except ValidationError as exc:
        raise CastError(f"Cannot cast {value!r} to {target!r}: {exc}") from exc
    except (PydanticSchemaGenerationError, PydanticUserError, TypeError) as exc:
        raise CastError(f"Cast to {target!r} is not supported: {exc}") from exc


def encode_value(value: Any) -> str:
    """Render ``value`` in the text form :func:`cast_to_type` reads back."""

    if isinstance(value, Enum):
        return encode_value(value.value)
    if isinstance(value, str):
        return str.__str__(value)
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    try:
        document = orjson.dumps(value, default=to_jsonable_python)
    except (orjson.JSONEncodeError, PydanticSerializationError) as exc:
        raise CastError(f"Cannot serialize value of type {type(value).__name__}: {exc}") from exc
    if document.startswith(b'"'):
        # Datetimes, UUIDs and the like travel as their bare string form.
        return orjson.loads(document)
    return document.decode()


__all__ = ["Char", "cast_json_value", "cast_to_type", "encode_value"]
