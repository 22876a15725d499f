"""Topic-template routing and payload codecs for MQTT handlers."""

from mqttctl.codec import Char, PayloadStrategy, Slot, SlotRole, cast_to_type, encode_value, payload, topic
from mqttctl.config import ControllerSettings
from mqttctl.domain import (
    CastError,
    MatchPolicy,
    MatchResult,
    MissingFieldError,
    MissingTopicParameter,
    MqttControllerError,
    PayloadArityError,
    PayloadError,
    PayloadFormatError,
    SlotError,
    TemplateSyntaxError,
    TopicTemplate,
    TransportError,
    augment,
)
from mqttctl.runtime.controller import Controller
from mqttctl.runtime.router import Router
from mqttctl.runtime.table import HandlerTable

__all__ = [
    "CastError",
    "Char",
    "Controller",
    "ControllerSettings",
    "HandlerTable",
    "MatchPolicy",
    "MatchResult",
    "MissingFieldError",
    "MissingTopicParameter",
    "MqttControllerError",
    "PayloadArityError",
    "PayloadError",
    "PayloadFormatError",
    "PayloadStrategy",
    "Router",
    "Slot",
    "SlotError",
    "SlotRole",
    "TemplateSyntaxError",
    "TopicTemplate",
    "TransportError",
    "augment",
    "cast_to_type",
    "encode_value",
    "payload",
    "topic",
]
