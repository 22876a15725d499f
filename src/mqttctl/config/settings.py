"""Controller configuration loaded from the environment."""

from __future__ import annotations

import logging
import os
from typing import Callable, Mapping, Optional, TypeVar
from urllib.parse import urlparse

from pydantic import BaseModel, ConfigDict, Field, ValidationInfo, field_validator

from mqttctl.domain.policy import MatchPolicy

logger = logging.getLogger(__name__)

EnvMapping = Mapping[str, str]

N = TypeVar("N", int, float)


class ConnectionParams(BaseModel):
    """Broker address and credentials taken from ``MQTT_URL``.

    The password never appears in ``repr``/``str`` so settings can be logged.
    """

    hostname: str
    port: int = 1883
    username: Optional[str] = None
    password: Optional[str] = None

    def __repr__(self) -> str:
        secret = "***REDACTED***" if self.password else None
        return (
            f"{type(self).__name__}(hostname={self.hostname!r}, port={self.port}, "
            f"username={self.username!r}, password={secret!r})"
        )

    __str__ = __repr__


def parse_mqtt_url(url: str) -> ConnectionParams:
    """Split ``mqtt://[user:pass@]host[:port]`` into :class:`ConnectionParams`.

    Host defaults to ``localhost`` and port to 1883.

    >>> parse_mqtt_url("mqtt://broker.example.com").port
    1883
    """
    parsed = urlparse(url)
    if parsed.scheme != "mqtt":
        raise ValueError(f"Unsupported MQTT URL scheme {parsed.scheme!r} in {url!r}; expected mqtt://")
    return ConnectionParams(
        hostname=parsed.hostname or "localhost",
        port=parsed.port or 1883,
        username=parsed.username,
        password=parsed.password,
    )


class _EnvReader:
    """Typed lookups over one environment mapping.

    Unparsable numbers fall back to the default with a warning rather than
    failing startup; range checks are left to the pydantic model.
    """

    def __init__(self, env: Optional[EnvMapping] = None) -> None:
        self._env: EnvMapping = os.environ if env is None else env

    def required(self, name: str) -> str:
        value = self._env.get(name)
        if value is None:
            raise KeyError(name)
        return value

    def text(self, name: str, default: str) -> str:
        return self._env.get(name, default)

    def number(self, name: str, default: N, convert: Callable[[str], N]) -> N:
        raw = self._env.get(name)
        if raw is None:
            return default
        try:
            return convert(raw.strip())
        except ValueError:
            logger.warning("Ignoring %s=%r: not a valid %s, using %s", name, raw, convert.__name__, default)
            return default


class ControllerSettings(BaseModel):
    """Settings for one controller: broker connection plus its base topic.

    Attributes:
        mqtt_url: MQTT broker URL (mqtt://[user:pass@]host[:port])
        client_id: Unique client identifier for broker connection
        base_topic: Topic prefix every handler template is relative to
        match_policy: Wildcard appended to the base topic when subscribing
        keepalive: MQTT protocol keepalive interval in seconds
        qos: QoS used for the base-topic subscription and publishes
        reconnect_min_delay: Min reconnection backoff delay in seconds
        reconnect_max_delay: Max reconnection backoff delay in seconds
        log_level: Root log level for configure_logging()
    """

    model_config = ConfigDict(frozen=True)

    mqtt_url: str
    client_id: str
    base_topic: str = ""
    match_policy: MatchPolicy = MatchPolicy.MULTI_LEVEL
    keepalive: int = Field(default=60, ge=1, le=3600)
    qos: int = Field(default=0, ge=0, le=2)
    reconnect_min_delay: float = Field(default=0.5, ge=0.1)
    reconnect_max_delay: float = Field(default=5.0, ge=0.5)
    log_level: str = "INFO"

    @field_validator("mqtt_url")
    @classmethod
    def validate_mqtt_url(cls, v: str) -> str:
        parse_mqtt_url(v)
        return v

    @field_validator("match_policy", mode="before")
    @classmethod
    def parse_match_policy(cls, v: object) -> object:
        if isinstance(v, str):
            return MatchPolicy.parse(v)
        return v

    @field_validator("reconnect_max_delay")
    @classmethod
    def validate_reconnect_delays(cls, v: float, info: ValidationInfo) -> float:
        """Ensure reconnect_max_delay >= reconnect_min_delay."""
        if "reconnect_min_delay" in info.data:
            min_delay = info.data["reconnect_min_delay"]
            if v < min_delay:
                raise ValueError(
                    f"reconnect_max_delay ({v}) must be >= reconnect_min_delay ({min_delay})"
                )
        return v

    @property
    def connection(self) -> ConnectionParams:
        return parse_mqtt_url(self.mqtt_url)

    @classmethod
    def from_env(cls, env: Optional[EnvMapping] = None) -> ControllerSettings:
        """Load settings from environment variables.

        Required environment variables:
            MQTT_URL: MQTT broker URL
            MQTT_CLIENT_ID: Unique client identifier

        Optional environment variables:
            MQTT_BASE_TOPIC: Base topic (default: "")
            MQTT_MATCH_POLICY: none | single_level | multi_level (default: multi_level)
            MQTT_KEEPALIVE: Protocol keepalive interval (default: 60)
            MQTT_QOS: Subscription/publish QoS (default: 0)
            MQTT_RECONNECT_MIN_DELAY: Min backoff delay (default: 0.5)
            MQTT_RECONNECT_MAX_DELAY: Max backoff delay (default: 5.0)
            LOG_LEVEL: Log level (default: INFO)

        Raises:
            KeyError: If a required environment variable is missing
            ValueError: If validation fails
        """
        read = _EnvReader(env)
        return cls(
            mqtt_url=read.required("MQTT_URL"),
            client_id=read.required("MQTT_CLIENT_ID"),
            base_topic=read.text("MQTT_BASE_TOPIC", ""),
            match_policy=read.text("MQTT_MATCH_POLICY", MatchPolicy.MULTI_LEVEL.value),
            keepalive=read.number("MQTT_KEEPALIVE", 60, int),
            qos=read.number("MQTT_QOS", 0, int),
            reconnect_min_delay=read.number("MQTT_RECONNECT_MIN_DELAY", 0.5, float),
            reconnect_max_delay=read.number("MQTT_RECONNECT_MAX_DELAY", 5.0, float),
            log_level=read.text("LOG_LEVEL", "INFO"),
        )


__all__ = ["ConnectionParams", "ControllerSettings", "EnvMapping", "parse_mqtt_url"]
