"""Adapter implementations bridging domain ports to infrastructure."""

from .mqtt_asyncio import AsyncioMQTTTransport, topic_matches

__all__ = ["AsyncioMQTTTransport", "topic_matches"]
