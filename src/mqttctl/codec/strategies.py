"""Payload strategies mapping raw message bytes onto typed payload slots."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum
from typing import Any, Iterable, Mapping, Sequence

import orjson
from pydantic_core import PydanticSerializationError, to_jsonable_python

from mqttctl.domain.errors import (
    CastError,
    MissingFieldError,
    PayloadArityError,
    PayloadFormatError,
)

from .casting import cast_json_value, cast_to_type, encode_value


class PayloadStrategy(str, Enum):
    """How payload-bound slots map onto the message body."""

    # The whole body is one value: a primitive as text, anything else as JSON.
    SIMPLE = "simple"
    # The body is a flat JSON object; each slot reads the property of its name.
    JSON_DECONSTRUCT = "json_deconstruct"
    # The body is ``v1,v2,...``; slots bind segments in declaration order.
    COMMA_SEPARATED = "comma_separated"


class SlotRole(str, Enum):
    PAYLOAD = "payload"
    TOPIC = "topic"


@dataclass(frozen=True, slots=True)
class Slot:
    """Typed description of one handler argument."""

    name: str
    type: Any = str
    role: SlotRole = SlotRole.PAYLOAD


def payload(name: str, type_: Any = str) -> Slot:
    return Slot(name, type_, SlotRole.PAYLOAD)


def topic(name: str, type_: Any = str) -> Slot:
    return Slot(name, type_, SlotRole.TOPIC)


def payload_slots(slots: Iterable[Slot]) -> list[Slot]:
    return [slot for slot in slots if slot.role is SlotRole.PAYLOAD]


def _as_text(raw: bytes | str) -> str:
    if isinstance(raw, str):
        return raw
    try:
        return bytes(raw).decode("utf-8")
    except UnicodeDecodeError as exc:
        raise PayloadFormatError(f"Payload is not valid UTF-8: {exc}") from exc


def _check_simple(strategy: PayloadStrategy, slots: Sequence[Slot]) -> None:
    if len(slots) > 1:
        raise PayloadArityError(
            f"There can only be one payload slot with the {strategy.value} strategy, got {len(slots)}"
        )


def _decode_json_object(text: str) -> Mapping[str, Any]:
    try:
        document = orjson.loads(text)
    except orjson.JSONDecodeError as exc:
        raise PayloadFormatError(f"Payload is not valid JSON: {exc}") from exc
    if not isinstance(document, dict):
        raise PayloadFormatError(f"Expected a JSON object payload, got {type(document).__name__}")
    return document


def decode(strategy: PayloadStrategy, slots: Sequence[Slot], raw: bytes | str) -> list[Any]:
    """Decode ``raw`` into one value per payload slot, in declaration order.

    Topic slots in ``slots`` are skipped; they are filled from the topic by
    the caller.

    Raises:
        PayloadArityError: too many slots for SIMPLE, or too few comma
            separated segments.
        MissingFieldError: a JSON property bound to a slot is absent or null.
        PayloadFormatError: the body is not UTF-8, or not a JSON object for
            JSON_DECONSTRUCT.
        CastError: a value does not fit its slot type.
    """

    bound = payload_slots(slots)
    if strategy is PayloadStrategy.SIMPLE:
        _check_simple(strategy, bound)
        if not bound:
            return []
        return [cast_to_type(_as_text(raw), bound[0].type)]

    text = _as_text(raw)
    if strategy is PayloadStrategy.JSON_DECONSTRUCT:
        document = _decode_json_object(text)
        values: list[Any] = []
        for slot in bound:
            value = document.get(slot.name)
            if value is None:
                raise MissingFieldError(slot.name)
            values.append(cast_json_value(value, slot.type))
        return values

    if strategy is PayloadStrategy.COMMA_SEPARATED:
        segments = text.split(",")
        if len(segments) < len(bound):
            raise PayloadArityError(
                f"Not enough comma separated values: expected {len(bound)}, got {len(segments)} in {text!r}"
            )
        # Segments past the last slot are ignored.
        return [cast_to_type(segment, slot.type) for slot, segment in zip(bound, segments)]

    raise ValueError(f"Unsupported payload strategy: {strategy!r}")


def _value_for(slot: Slot, values: Mapping[str, Any]) -> Any:
    try:
        return values[slot.name]
    except KeyError:
        raise PayloadArityError(f"No value supplied for payload slot {slot.name!r}") from None


def encode(strategy: PayloadStrategy, slots: Sequence[Slot], values: Mapping[str, Any]) -> bytes:
    """Encode the payload slot ``values`` (keyed by slot name) into message bytes."""

    bound = payload_slots(slots)
    if strategy is PayloadStrategy.SIMPLE:
        _check_simple(strategy, bound)
        if not bound:
            return b""
        return encode_value(_value_for(bound[0], values)).encode("utf-8")

    if strategy is PayloadStrategy.JSON_DECONSTRUCT:
        document = {slot.name: _value_for(slot, values) for slot in bound}
        try:
            return orjson.dumps(document, default=to_jsonable_python)
        except (orjson.JSONEncodeError, PydanticSerializationError) as exc:
            raise CastError(f"Cannot serialize JSON payload: {exc}") from exc

    if strategy is PayloadStrategy.COMMA_SEPARATED:
        return ",".join(encode_value(_value_for(slot, values)) for slot in bound).encode("utf-8")

    raise ValueError(f"Unsupported payload strategy: {strategy!r}")


__all__ = [
    "PayloadStrategy",
    "Slot",
    "SlotRole",
    "decode",
    "encode",
    "payload",
    "payload_slots",
    "topic",
]
