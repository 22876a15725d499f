"""Explicit handler table bridging typed handlers and the router.

Each subscription pairs a topic template with a handler and the ordered slot
descriptors of its arguments. When a message matches, payload slots are
decoded with the subscription's :class:`PayloadStrategy`, topic slots are cast
from the bound topic parameters, and the handler is called positionally in
slot order.

Publications are the outbound mirror: named (template, slots, strategy)
bindings that render a concrete topic and payload from keyword values.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from dataclasses import dataclass, field
from typing import Any, Callable, Iterable, Mapping, Sequence, Tuple

from mqttctl.codec import strategies as payload_codec
from mqttctl.codec.casting import cast_to_type, encode_value
from mqttctl.codec.strategies import PayloadStrategy, Slot, SlotRole
from mqttctl.domain.errors import MissingTopicParameter, SlotError
from mqttctl.domain.policy import MatchPolicy
from mqttctl.domain.topics import TopicTemplate

from .router import Registration, Router

logger = logging.getLogger(__name__)

Handler = Callable[..., Any]

_pending: set[asyncio.Task[Any]] = set()


def _validate_slots(template: str, slots: Sequence[Slot], strategy: PayloadStrategy) -> None:
    parsed = TopicTemplate.parse(template)
    bound = payload_codec.payload_slots(slots)
    if strategy is PayloadStrategy.SIMPLE and len(bound) > 1:
        raise SlotError(
            f"Template {template!r} declares {len(bound)} payload slots; the simple strategy allows one"
        )
    seen: set[str] = set()
    for slot in slots:
        if slot.name in seen:
            raise SlotError(f"Duplicate slot {slot.name!r} for template {template!r}")
        seen.add(slot.name)
        if slot.role is SlotRole.TOPIC and slot.name not in parsed.parameter_names:
            raise SlotError(f"Topic slot {slot.name!r} is not a parameter of template {template!r}")


def _log_task_result(task: asyncio.Task[Any]) -> None:
    _pending.discard(task)
    if task.cancelled():
        return
    exc = task.exception()
    if exc is not None:
        logger.error(
            "handler.task.error",
            extra={"task": task.get_name(), "error": str(exc)},
            exc_info=(type(exc), exc, exc.__traceback__),
        )


@dataclass(frozen=True, slots=True)
class Subscription:
    """Inbound binding of a topic template to a typed handler."""

    template: str
    handler: Handler
    slots: Tuple[Slot, ...] = ()
    strategy: PayloadStrategy = PayloadStrategy.SIMPLE
    policy: MatchPolicy = MatchPolicy.NONE

    def arguments(self, raw_payload: bytes, parameters: Mapping[str, str]) -> list[Any]:
        """Decode the handler's positional arguments for one message."""
        decoded = iter(payload_codec.decode(self.strategy, self.slots, raw_payload))
        args: list[Any] = []
        for slot in self.slots:
            if slot.role is SlotRole.PAYLOAD:
                args.append(next(decoded))
                continue
            try:
                text = parameters[slot.name]
            except KeyError:
                raise MissingTopicParameter(slot.name) from None
            args.append(cast_to_type(text, slot.type))
        return args

    def __call__(self, raw_payload: bytes, parameters: Mapping[str, str]) -> None:
        result = self.handler(*self.arguments(raw_payload, parameters))
        if inspect.iscoroutine(result):
            # Coroutine handlers run on the transport's loop; failures are logged by the callback.
            try:
                loop = asyncio.get_running_loop()
            except RuntimeError:
                result.close()
                raise
            task = loop.create_task(result, name=f"mqttctl:{self.template}")
            _pending.add(task)
            task.add_done_callback(_log_task_result)


@dataclass(frozen=True, slots=True)
class Publication:
    """Outbound binding used to build a topic and payload from values."""

    name: str
    template: str
    slots: Tuple[Slot, ...] = ()
    strategy: PayloadStrategy = PayloadStrategy.SIMPLE

    def render(self, router: Router, values: Mapping[str, Any]) -> Tuple[str, bytes]:
        """Return ``(topic, payload)`` for ``values`` keyed by slot name.

        Raises:
            MissingTopicParameter: a topic slot has no value.
            PayloadError: payload slots cannot be encoded with the strategy.
        """
        topic_values = {
            slot.name: encode_value(values[slot.name])
            for slot in self.slots
            if slot.role is SlotRole.TOPIC and slot.name in values
        }
        body = payload_codec.encode(self.strategy, self.slots, values)
        return router.build_publish_topic(self.template, topic_values), body


@dataclass(slots=True)
class HandlerTable:
    """Startup-time table of subscriptions and publications.

    Example:
        ```python
        table = HandlerTable()

        @table.on("sensor/{id}/", topic("id", int), payload("celsius", float))
        def on_reading(sensor_id: int, celsius: float) -> None: ...

        table.publisher("alarm", "alarm/{id}/", topic("id", int), payload("level", int))
        ```
    """

    _subscriptions: list[Subscription] = field(default_factory=list)
    _publications: dict[str, Publication] = field(default_factory=dict)

    @property
    def subscriptions(self) -> Tuple[Subscription, ...]:
        return tuple(self._subscriptions)

    @property
    def publications(self) -> Tuple[Publication, ...]:
        return tuple(self._publications.values())

    def subscribe(
        self,
        template: str,
        handler: Handler,
        slots: Iterable[Slot] = (),
        *,
        strategy: PayloadStrategy = PayloadStrategy.SIMPLE,
        policy: MatchPolicy = MatchPolicy.NONE,
    ) -> Subscription:
        declared = tuple(slots)
        _validate_slots(template, declared, strategy)
        subscription = Subscription(template, handler, declared, strategy, policy)
        self._subscriptions.append(subscription)
        return subscription

    def on(
        self,
        template: str,
        *slots: Slot,
        strategy: PayloadStrategy = PayloadStrategy.SIMPLE,
        policy: MatchPolicy = MatchPolicy.NONE,
    ) -> Callable[[Handler], Handler]:
        """Decorator form of :meth:`subscribe`."""

        def decorator(handler: Handler) -> Handler:
            self.subscribe(template, handler, slots, strategy=strategy, policy=policy)
            return handler

        return decorator

    def publisher(
        self,
        name: str,
        template: str,
        *slots: Slot,
        strategy: PayloadStrategy = PayloadStrategy.SIMPLE,
    ) -> Publication:
        if name in self._publications:
            raise SlotError(f"Publication {name!r} is already defined")
        _validate_slots(template, slots, strategy)
        publication = Publication(name, template, tuple(slots), strategy)
        self._publications[name] = publication
        return publication

    def publication(self, name: str) -> Publication:
        try:
            return self._publications[name]
        except KeyError:
            raise KeyError(f"Unknown publication: {name}") from None

    def install(self, router: Router) -> list[Registration]:
        """Register every subscription on ``router``."""
        return [router.register(sub.template, sub.policy, sub) for sub in self._subscriptions]


__all__ = ["Handler", "HandlerTable", "Publication", "Subscription"]
