"""Configuration models for mqttctl."""

from .settings import ConnectionParams, ControllerSettings, parse_mqtt_url

__all__ = ["ConnectionParams", "ControllerSettings", "parse_mqtt_url"]
