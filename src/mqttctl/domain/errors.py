"""Error hierarchy shared by the routing core, codecs and adapters."""

from __future__ import annotations


class MqttControllerError(Exception):
    """Base class for every error raised by mqttctl."""


class TemplateSyntaxError(MqttControllerError, ValueError):
    """Raised when a topic template cannot be parsed."""

    def __init__(self, template: str, reason: str) -> None:
        super().__init__(f"Invalid topic template {template!r}: {reason}")
        self.template = template
        self.reason = reason


class MissingTopicParameter(MqttControllerError, LookupError):
    """Raised when a topic parameter has no value to bind."""

    def __init__(self, name: str) -> None:
        super().__init__(f"No value for topic parameter {name!r}")
        self.name = name


class InvalidTopicParameter(MqttControllerError, ValueError):
    """Raised when a value cannot be placed in a single topic level."""

    def __init__(self, name: str, value: str, reason: str) -> None:
        super().__init__(f"Invalid value {value!r} for topic parameter {name!r}: {reason}")
        self.name = name
        self.value = value


class PayloadError(MqttControllerError):
    """Base class for payload decode/encode failures."""


class PayloadArityError(PayloadError):
    """Payload segments and declared payload slots do not line up."""


class MissingFieldError(PayloadError):
    """A JSON payload is missing a field bound to a payload slot."""

    def __init__(self, name: str) -> None:
        super().__init__(f"The JSON payload does not contain the property {name!r}")
        self.name = name


class PayloadFormatError(PayloadError):
    """Payload bytes are not in the shape the strategy requires."""


class CastError(MqttControllerError, ValueError):
    """Raised when text cannot be converted to the requested type."""


class SlotError(MqttControllerError, ValueError):
    """Raised when a handler's slot descriptors are inconsistent."""


class TransportError(MqttControllerError, RuntimeError):
    """Raised when the transport cannot service a request."""


__all__ = [
    "CastError",
    "InvalidTopicParameter",
    "MissingFieldError",
    "MissingTopicParameter",
    "MqttControllerError",
    "PayloadArityError",
    "PayloadError",
    "PayloadFormatError",
    "SlotError",
    "TemplateSyntaxError",
    "TransportError",
]
