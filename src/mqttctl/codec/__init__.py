"""Payload strategies and the type casting rules they rely on."""

from .casting import Char, cast_json_value, cast_to_type, encode_value
from .strategies import PayloadStrategy, Slot, SlotRole, decode, encode, payload, topic

__all__ = [
    "Char",
    "PayloadStrategy",
    "Slot",
    "SlotRole",
    "cast_json_value",
    "cast_to_type",
    "decode",
    "encode",
    "encode_value",
    "payload",
    "topic",
]
