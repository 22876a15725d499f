"""Unit tests for the SIMPLE, JSON_DECONSTRUCT and COMMA_SEPARATED strategies."""

from datetime import datetime, timezone
from enum import Enum
from uuid import UUID

import orjson
import pytest
from pydantic import BaseModel

from mqttctl.codec.strategies import PayloadStrategy, SlotRole, decode, encode, payload, topic
from mqttctl.domain.errors import (
    CastError,
    MissingFieldError,
    PayloadArityError,
    PayloadError,
    PayloadFormatError,
)


class Reading(BaseModel):
    id: int
    name: str


class Mode(str, Enum):
    OFF = "off"
    AUTO = "auto"


def test_slot_helpers_set_roles():
    assert payload("v", int).role is SlotRole.PAYLOAD
    assert topic("id").role is SlotRole.TOPIC
    assert topic("id").type is str


class TestSimple:
    """Tests for PayloadStrategy.SIMPLE."""

    def test_decode_primitive(self):
        assert decode(PayloadStrategy.SIMPLE, [payload("celsius", float)], b"21.5") == [21.5]

    def test_decode_model(self):
        raw = b'{"id": 123, "name": "Aaron"}'

        assert decode(PayloadStrategy.SIMPLE, [payload("reading", Reading)], raw) == [Reading(id=123, name="Aaron")]

    def test_decode_skips_topic_slots(self):
        slots = [topic("id", int), payload("level", int)]

        assert decode(PayloadStrategy.SIMPLE, slots, b"5") == [5]

    def test_decode_without_payload_slots(self):
        assert decode(PayloadStrategy.SIMPLE, [topic("id")], b"ignored") == []

    def test_more_than_one_slot_raises(self):
        with pytest.raises(PayloadArityError):
            decode(PayloadStrategy.SIMPLE, [payload("a"), payload("b")], b"x")

    def test_invalid_utf8_raises(self):
        with pytest.raises(PayloadFormatError):
            decode(PayloadStrategy.SIMPLE, [payload("text")], b"\xff\xfe")

    def test_encode_primitive(self):
        assert encode(PayloadStrategy.SIMPLE, [payload("celsius", float)], {"celsius": 21.5}) == b"21.5"

    def test_encode_model(self):
        body = encode(PayloadStrategy.SIMPLE, [payload("reading", Reading)], {"reading": Reading(id=1, name="a")})

        assert orjson.loads(body) == {"id": 1, "name": "a"}

    def test_enum_round_trip(self):
        slots = [payload("mode", Mode)]

        body = encode(PayloadStrategy.SIMPLE, slots, {"mode": Mode.OFF})

        assert body == b"off"
        assert decode(PayloadStrategy.SIMPLE, slots, body) == [Mode.OFF]

    def test_encode_without_payload_slots(self):
        assert encode(PayloadStrategy.SIMPLE, [], {}) == b""

    def test_encode_more_than_one_slot_raises(self):
        with pytest.raises(PayloadArityError):
            encode(PayloadStrategy.SIMPLE, [payload("a"), payload("b")], {"a": 1, "b": 2})


class TestJsonDeconstruct:
    """Tests for PayloadStrategy.JSON_DECONSTRUCT."""

    slots = [payload("id", int), payload("name", str)]

    def test_decode(self):
        raw = b'{"id": 123, "name": "Aaron"}'

        assert decode(PayloadStrategy.JSON_DECONSTRUCT, self.slots, raw) == [123, "Aaron"]

    def test_decode_whole_float_into_int(self):
        raw = b'{"id": 123.0, "name": "Aaron"}'

        assert decode(PayloadStrategy.JSON_DECONSTRUCT, self.slots, raw) == [123, "Aaron"]

    def test_decode_bool_and_nested_object(self):
        slots = [payload("online", bool), payload("reading", Reading)]
        raw = b'{"online": true, "reading": {"id": 1, "name": "a"}}'

        assert decode(PayloadStrategy.JSON_DECONSTRUCT, slots, raw) == [True, Reading(id=1, name="a")]

    def test_missing_field_raises(self):
        with pytest.raises(MissingFieldError) as excinfo:
            decode(PayloadStrategy.JSON_DECONSTRUCT, self.slots, b'{"id": 123}')

        assert excinfo.value.name == "name"
        assert isinstance(excinfo.value, PayloadError)

    def test_null_field_counts_as_missing(self):
        with pytest.raises(MissingFieldError):
            decode(PayloadStrategy.JSON_DECONSTRUCT, self.slots, b'{"id": 123, "name": null}')

    @pytest.mark.parametrize("raw", [b"not json", b"[1, 2]", b'"text"'])
    def test_non_object_payload_raises(self, raw):
        with pytest.raises(PayloadFormatError):
            decode(PayloadStrategy.JSON_DECONSTRUCT, self.slots, raw)

    def test_cast_failure_propagates(self):
        with pytest.raises(CastError):
            decode(PayloadStrategy.JSON_DECONSTRUCT, self.slots, b'{"id": 1.5, "name": "Aaron"}')

    def test_encode(self):
        body = encode(PayloadStrategy.JSON_DECONSTRUCT, self.slots, {"id": 123, "name": "Aaron"})

        assert orjson.loads(body) == {"id": 123, "name": "Aaron"}

    def test_enum_datetime_and_uuid_survive_encode_decode(self):
        slots = [payload("mode", Mode), payload("at", datetime), payload("device", UUID)]
        values = {
            "mode": Mode.AUTO,
            "at": datetime(2026, 10, 18, 8, 30, tzinfo=timezone.utc),
            "device": UUID("12345678-1234-5678-1234-567812345678"),
        }

        body = encode(PayloadStrategy.JSON_DECONSTRUCT, slots, values)

        assert decode(PayloadStrategy.JSON_DECONSTRUCT, slots, body) == list(values.values())

    def test_string_field_into_enum(self):
        raw = b'{"mode": "off"}'

        assert decode(PayloadStrategy.JSON_DECONSTRUCT, [payload("mode", Mode)], raw) == [Mode.OFF]

    def test_unknown_enum_value_raises(self):
        with pytest.raises(CastError):
            decode(PayloadStrategy.JSON_DECONSTRUCT, [payload("mode", Mode)], b'{"mode": "turbo"}')

    def test_encode_missing_value_raises(self):
        with pytest.raises(PayloadArityError):
            encode(PayloadStrategy.JSON_DECONSTRUCT, self.slots, {"id": 123})


class TestCommaSeparated:
    """Tests for PayloadStrategy.COMMA_SEPARATED."""

    slots = [payload("id", int), payload("name", str)]

    def test_decode(self):
        assert decode(PayloadStrategy.COMMA_SEPARATED, self.slots, b"123,Aaron") == [123, "Aaron"]

    def test_too_few_segments_raises(self):
        with pytest.raises(PayloadArityError):
            decode(PayloadStrategy.COMMA_SEPARATED, self.slots, b"123")

    def test_extra_segments_are_ignored(self):
        assert decode(PayloadStrategy.COMMA_SEPARATED, self.slots, b"123,Aaron,extra") == [123, "Aaron"]

    def test_decode_interleaved_topic_slot(self):
        slots = [payload("id", int), topic("room"), payload("online", bool)]

        assert decode(PayloadStrategy.COMMA_SEPARATED, slots, b"7,1") == [7, True]

    def test_encode(self):
        body = encode(PayloadStrategy.COMMA_SEPARATED, self.slots, {"id": 123, "name": "Aaron"})

        assert body == b"123,Aaron"

    def test_encode_bool_and_float(self):
        slots = [payload("online", bool), payload("celsius", float)]

        assert encode(PayloadStrategy.COMMA_SEPARATED, slots, {"online": True, "celsius": 21.5}) == b"true,21.5"

    def test_encoded_body_decodes_back(self):
        values = {"id": 9, "name": "Zoe"}

        body = encode(PayloadStrategy.COMMA_SEPARATED, self.slots, values)

        assert decode(PayloadStrategy.COMMA_SEPARATED, self.slots, body) == [9, "Zoe"]
