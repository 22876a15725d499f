"""asyncio-mqtt transport for controllers.

The transport owns one broker connection, remembers every subscription so it
can be re-issued after a reconnect, and fans incoming messages out to the
callbacks whose subscription filter matches the topic.
"""

from __future__ import annotations

import asyncio
import logging
from contextlib import suppress
from typing import TYPE_CHECKING, Any, Optional, Tuple

import asyncio_mqtt as mqtt

from mqttctl.config.settings import ConnectionParams
from mqttctl.domain.errors import TransportError
from mqttctl.domain.ports import MessageCallback, Transport

if TYPE_CHECKING:  # pragma: no cover
    from mqttctl.config.settings import ControllerSettings

logger = logging.getLogger(__name__)


def topic_matches(topic: str, pattern: str) -> bool:
    """Check if ``topic`` matches an MQTT subscription filter.

    Supports:
    - + for single level wildcard (e.g., "system/health/+" matches "system/health/stt")
    - # for multi-level wildcard (e.g., "events/#" matches "events" and "events/user/login")
    """
    if pattern == topic:
        return True

    topic_parts = topic.split("/")
    pattern_parts = pattern.split("/")

    for index, part in enumerate(pattern_parts):
        if part == "#":
            return True
        if index >= len(topic_parts):
            return False
        if part != "+" and part != topic_parts[index]:
            return False

    return len(topic_parts) == len(pattern_parts)


def _payload_bytes(payload: Any) -> Optional[bytes]:
    if isinstance(payload, bytes):
        return payload
    if isinstance(payload, bytearray):
        return bytes(payload)
    if isinstance(payload, str):
        return payload.encode("utf-8")
    return None


class AsyncioMQTTTransport(Transport):
    """Transport implementation backed by an asyncio-mqtt client.

    Example:
        ```python
        transport = AsyncioMQTTTransport(parse_mqtt_url("mqtt://localhost"), "sensors")
        controller = Controller(transport, table, base_topic="home")
        async with transport, controller:
            await transport.run_forever()
        ```
    """

    def __init__(
        self,
        connection: ConnectionParams,
        client_id: str,
        *,
        keepalive: int = 60,
        reconnect_min_delay: float = 0.5,
        reconnect_max_delay: float = 5.0,
    ) -> None:
        self._conn_params = connection
        self._client_id = client_id
        self._keepalive = keepalive
        self._reconnect_min_delay = reconnect_min_delay
        self._reconnect_max_delay = reconnect_max_delay

        self._client: Optional[mqtt.Client] = None
        self._subscriptions: dict[str, Tuple[MessageCallback, int]] = {}
        self._pump_task: Optional[asyncio.Task[None]] = None
        self._connected = False
        self._stopping = False

    @classmethod
    def from_settings(cls, settings: ControllerSettings) -> AsyncioMQTTTransport:
        return cls(
            settings.connection,
            settings.client_id,
            keepalive=settings.keepalive,
            reconnect_min_delay=settings.reconnect_min_delay,
            reconnect_max_delay=settings.reconnect_max_delay,
        )

    @property
    def client(self) -> Optional[mqtt.Client]:
        """Underlying asyncio-mqtt client, or None if not connected."""
        return self._client

    @property
    def connected(self) -> bool:
        return self._connected

    @property
    def subscriptions(self) -> Tuple[str, ...]:
        return tuple(self._subscriptions)

    async def __aenter__(self) -> AsyncioMQTTTransport:
        await self.connect()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.disconnect()

    # --- Lifecycle ---

    async def connect(self) -> None:
        """Connect, re-issue recorded subscriptions and start the message pump."""
        if self._connected:
            logger.debug("Already connected, skipping connect()")
            return

        self._stopping = False
        self._client = mqtt.Client(
            hostname=self._conn_params.hostname,
            port=self._conn_params.port,
            username=self._conn_params.username,
            password=self._conn_params.password,
            client_id=self._client_id,
            keepalive=self._keepalive,
        )
        await self._client.__aenter__()
        self._connected = True
        logger.info(
            "Connected to MQTT broker at %s:%d (client_id=%s)",
            self._conn_params.hostname,
            self._conn_params.port,
            self._client_id,
        )

        for topic, (_, qos) in list(self._subscriptions.items()):
            await self._client.subscribe(topic, qos=qos)
            logger.info("Subscribed to topic: %s (qos=%d)", topic, qos)

        self._pump_task = asyncio.create_task(self._pump())

    async def disconnect(self) -> None:
        """Stop the pump and close the connection. Safe to call when not connected."""
        self._stopping = True
        await self._teardown()

    async def _teardown(self) -> None:
        task, self._pump_task = self._pump_task, None
        if task is not None and not task.done():
            task.cancel()
            with suppress(asyncio.CancelledError, asyncio.TimeoutError):
                await asyncio.wait_for(task, timeout=1.0)

        client, self._client = self._client, None
        if client is not None and self._connected:
            with suppress(mqtt.MqttError):
                await client.__aexit__(None, None, None)
            logger.info("Disconnected from MQTT broker")
        self._connected = False

    async def run_forever(self) -> None:
        """Keep the connection alive, reconnecting with exponential backoff.

        Returns once :meth:`disconnect` has been called.
        """
        delay = self._reconnect_min_delay
        while not self._stopping:
            try:
                await self.connect()
                delay = self._reconnect_min_delay
                assert self._pump_task is not None
                await self._pump_task
            except mqtt.MqttError as exc:
                logger.warning("MQTT connection lost: %s", exc)
            except asyncio.CancelledError:
                if self._stopping:
                    return
                raise
            if self._stopping:
                return
            await self._teardown()
            logger.info("Reconnecting in %.1fs", delay)
            await asyncio.sleep(delay)
            delay = min(delay * 2, self._reconnect_max_delay)

    # --- Ports ---

    async def publish(self, topic: str, payload: bytes, qos: int = 0, retain: bool = False) -> None:
        if not self._connected or self._client is None:
            raise TransportError("Cannot publish: not connected to MQTT broker")
        await self._client.publish(topic, payload, qos=qos, retain=retain)
        logger.debug("Published: topic=%s bytes=%d qos=%d retain=%s", topic, len(payload), qos, retain)

    async def subscribe(self, topic: str, on_message: MessageCallback, qos: int = 0) -> None:
        """Record ``topic`` and subscribe at the broker when connected.

        Subscribing again to the same topic replaces its callback; it is
        re-issued at the broker but never duplicated.
        """
        self._subscriptions[topic] = (on_message, qos)
        if self._connected and self._client is not None:
            await self._client.subscribe(topic, qos=qos)
            logger.info("Subscribed to topic: %s (qos=%d)", topic, qos)

    async def unsubscribe(self, topic: str) -> None:
        if self._subscriptions.pop(topic, None) is None:
            return
        if self._connected and self._client is not None:
            await self._client.unsubscribe(topic)
            logger.info("Unsubscribed from topic: %s", topic)

    # --- Delivery ---

    async def _pump(self) -> None:
        assert self._client is not None, "Client must be set before dispatch"
        try:
            async with self._client.messages() as messages:
                async for message in messages:
                    topic = str(getattr(message.topic, "value", message.topic))
                    payload = _payload_bytes(message.payload)
                    if payload is None:
                        logger.warning("Unexpected payload type %s, skipping", type(message.payload))
                        continue
                    self.deliver(topic, payload)
        except asyncio.CancelledError:
            logger.debug("Message pump cancelled")
            raise

    def deliver(self, topic: str, payload: bytes) -> int:
        """Hand one message to every callback whose filter matches ``topic``."""
        delivered = 0
        for pattern, (callback, _) in list(self._subscriptions.items()):
            if not topic_matches(topic, pattern):
                continue
            try:
                callback(topic, payload)
            except Exception as e:
                logger.error("Error in message callback for topic %s: %s", topic, e, exc_info=True)
            else:
                delivered += 1
        if not delivered:
            logger.debug("No callback accepted topic: %s", topic)
        return delivered


__all__ = ["AsyncioMQTTTransport", "topic_matches"]
