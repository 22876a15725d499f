from __future__ import annotations

from typing import Optional

from mqttctl.adapters.mqtt_asyncio import AsyncioMQTTTransport
from mqttctl.config.settings import ControllerSettings
from mqttctl.runtime.controller import Controller
from mqttctl.runtime.logging import configure_logging
from mqttctl.runtime.table import HandlerTable


async def serve(table: HandlerTable, settings: Optional[ControllerSettings] = None) -> None:
    """Run ``table`` against the broker described by ``settings`` until cancelled.

    Settings default to :meth:`ControllerSettings.from_env`. The transport
    reconnects on its own; the controller's base-topic subscription is
    recorded once and re-issued after every reconnect.
    """

    settings = settings or ControllerSettings.from_env()
    logger = configure_logging(
        settings.log_level,
        name="mqttctl.app",
        fields={"client_id": settings.client_id, "base_topic": settings.base_topic},
    )
    transport = AsyncioMQTTTransport.from_settings(settings)
    controller = Controller.from_settings(settings, transport, table, logger=logger)

    logger.info(
        "controller.serve",
        extra={"base_topic": controller.router.base_topic, "policy": settings.match_policy.value},
    )
    await controller.start()
    try:
        await transport.run_forever()
    finally:
        await controller.stop()
        await transport.disconnect()


__all__ = ["serve"]
