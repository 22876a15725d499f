"""Transport-free routing primitives: topic templates, match policies and errors."""

from .errors import (
    CastError,
    InvalidTopicParameter,
    MissingFieldError,
    MissingTopicParameter,
    MqttControllerError,
    PayloadArityError,
    PayloadError,
    PayloadFormatError,
    SlotError,
    TemplateSyntaxError,
    TransportError,
)
from .policy import MatchPolicy, augment
from .topics import Literal, MatchResult, Parameter, TopicTemplate, normalize_topic

__all__ = [
    "CastError",
    "InvalidTopicParameter",
    "Literal",
    "MatchPolicy",
    "MatchResult",
    "MissingFieldError",
    "MissingTopicParameter",
    "MqttControllerError",
    "Parameter",
    "PayloadArityError",
    "PayloadError",
    "PayloadFormatError",
    "SlotError",
    "TemplateSyntaxError",
    "TopicTemplate",
    "TransportError",
    "augment",
    "normalize_topic",
]
