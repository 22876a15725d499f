from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Any, Iterable, Mapping, Optional

from mqttctl.codec.strategies import PayloadStrategy, Slot
from mqttctl.domain.policy import MatchPolicy
from mqttctl.domain.ports import Transport

from .logging import Logger
from .router import Router
from .table import HandlerTable, Publication

if TYPE_CHECKING:  # pragma: no cover
    from mqttctl.config.settings import ControllerSettings


class Controller:
    """Bind a handler table to one base topic over a transport.

    ``start`` installs the table on the router (once) and subscribes the
    transport to the router's wildcard-augmented base topic; ``stop`` removes
    that subscription. Several controllers can share a transport as long as
    their base topics differ.
    """

    def __init__(
        self,
        transport: Transport,
        table: Optional[HandlerTable] = None,
        *,
        base_topic: str = "",
        policy: MatchPolicy = MatchPolicy.MULTI_LEVEL,
        qos: int = 0,
        logger: Optional[Logger] = None,
    ) -> None:
        self._transport = transport
        self._table = table or HandlerTable()
        self._logger: Logger = logger if logger is not None else logging.getLogger(__name__)
        self._router = Router(base_topic, policy, logger=self._logger)
        self._qos = qos
        self._installed = False
        self._subscribed_topic: Optional[str] = None

    @classmethod
    def from_settings(
        cls,
        settings: ControllerSettings,
        transport: Transport,
        table: Optional[HandlerTable] = None,
        *,
        logger: Optional[Logger] = None,
    ) -> Controller:
        return cls(
            transport,
            table,
            base_topic=settings.base_topic,
            policy=settings.match_policy,
            qos=settings.qos,
            logger=logger,
        )

    @property
    def router(self) -> Router:
        return self._router

    @property
    def table(self) -> HandlerTable:
        return self._table

    @property
    def started(self) -> bool:
        return self._subscribed_topic is not None

    async def __aenter__(self) -> Controller:
        await self.start()
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.stop()

    async def start(self) -> None:
        if not self._installed:
            self._table.install(self._router)
            self._installed = True
        topic = self._router.subscription_topic
        await self._transport.subscribe(topic, self.on_message, qos=self._qos)
        self._subscribed_topic = topic
        self._logger.info(
            "controller.started",
            extra={"topic": topic, "handlers": len(self._router.registrations)},
        )

    async def stop(self) -> None:
        topic, self._subscribed_topic = self._subscribed_topic, None
        if topic is None:
            return
        await self._transport.unsubscribe(topic)
        # Late deliveries after unsubscribe find nothing to call.
        self._router.clear()
        self._installed = False
        self._logger.info("controller.stopped", extra={"topic": topic})

    def on_message(self, topic: str, payload: bytes) -> None:
        self._router.dispatch(topic, payload)

    async def publish(self, name: str, /, *, qos: Optional[int] = None, retain: bool = False, **values: Any) -> str:
        """Publish through the named publication of the table; returns the topic used."""
        return await self._send(self._table.publication(name), values, qos=qos, retain=retain)

    async def publish_to(
        self,
        template: str,
        values: Mapping[str, Any],
        slots: Iterable[Slot] = (),
        *,
        strategy: PayloadStrategy = PayloadStrategy.SIMPLE,
        qos: Optional[int] = None,
        retain: bool = False,
    ) -> str:
        """Publish without a table entry; ``values`` are keyed by slot name."""
        publication = Publication(template, template, tuple(slots), strategy)
        return await self._send(publication, values, qos=qos, retain=retain)

    async def _send(
        self,
        publication: Publication,
        values: Mapping[str, Any],
        *,
        qos: Optional[int],
        retain: bool,
    ) -> str:
        topic, body = publication.render(self._router, values)
        await self._transport.publish(topic, body, qos=self._qos if qos is None else qos, retain=retain)
        self._logger.debug(
            "controller.publish",
            extra={"publication": publication.name, "topic": topic, "bytes": len(body)},
        )
        return topic


__all__ = ["Controller"]
