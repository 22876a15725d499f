"""Route messages received under one base topic to registered handlers."""

from __future__ import annotations

import logging
import threading
from dataclasses import dataclass
from functools import lru_cache
from typing import Callable, Mapping, Optional, Tuple

from mqttctl.domain.errors import CastError, MissingTopicParameter, PayloadError
from mqttctl.domain.policy import MatchPolicy, augment
from mqttctl.domain.topics import TopicTemplate, normalize_topic

from .logging import Logger

RouteHandler = Callable[[bytes, Mapping[str, str]], None]
"""Handler signature: raw payload plus the parameters bound from the topic."""


@dataclass(frozen=True, slots=True)
class Registration:
    template: TopicTemplate
    policy: MatchPolicy
    handler: RouteHandler


class Router:
    """Match incoming topics against templates relative to ``base_topic``.

    Every registration is tried for every message and all matching handlers
    run. Handler failures are logged and contained so one bad handler cannot
    starve the others or break the transport's delivery loop.

    Example:
        ```python
        router = Router("home", MatchPolicy.MULTI_LEVEL)
        router.register("sensor/{id}/", MatchPolicy.NONE, on_sensor)
        router.dispatch("home/sensor/234/", b"21.5")  # on_sensor(b"21.5", {"id": "234"})
        router.build_publish_topic("sensor/{id}/", {"id": "234"})  # "home/sensor/234/"
        ```
    """

    def __init__(
        self,
        base_topic: str = "",
        policy: MatchPolicy = MatchPolicy.MULTI_LEVEL,
        *,
        logger: Optional[Logger] = None,
        template_cache_size: int = 256,
    ) -> None:
        self._base_topic = normalize_topic(base_topic)
        self._policy = policy
        self._logger: Logger = logger if logger is not None else logging.getLogger(__name__)
        self._lock = threading.Lock()
        self._registrations: Tuple[Registration, ...] = ()
        self._parse = lru_cache(maxsize=template_cache_size)(TopicTemplate.parse)

    @property
    def base_topic(self) -> str:
        return self._base_topic

    @property
    def policy(self) -> MatchPolicy:
        return self._policy

    @property
    def subscription_topic(self) -> str:
        """Filter handed to the transport when subscribing."""
        return augment(self._base_topic, self._policy)

    @property
    def registrations(self) -> Tuple[Registration, ...]:
        return self._registrations

    def template(self, template: str) -> TopicTemplate:
        """Return the parsed ``template``.

        Parses are kept in a bounded LRU cache; registrations hold their own
        parsed template, so eviction only costs a re-parse on publish.
        """
        return self._parse(template)

    def register(
        self,
        template: str,
        policy: MatchPolicy,
        handler: RouteHandler,
    ) -> Registration:
        registration = Registration(self.template(template), policy, handler)
        with self._lock:
            self._registrations = (*self._registrations, registration)
        self._logger.debug(
            "router.register",
            extra={"base_topic": self._base_topic, "template": str(registration.template)},
        )
        return registration

    def clear(self) -> None:
        with self._lock:
            self._registrations = ()

    def relative_topic(self, full_topic: str) -> str:
        if self._base_topic and full_topic.startswith(self._base_topic):
            return full_topic[len(self._base_topic):]
        return full_topic

    def dispatch(self, full_topic: str, raw_payload: bytes) -> int:
        """Invoke every handler whose template matches ``full_topic``.

        Returns the number of handlers that completed without raising.
        """

        relative = self.relative_topic(full_topic)
        delivered = 0
        matched = 0
        for registration in self._registrations:
            result = registration.template.match(relative)
            if not result.matched:
                continue
            matched += 1
            try:
                registration.handler(raw_payload, result.parameters)
            except (PayloadError, CastError, MissingTopicParameter) as exc:
                self._logger.warning(
                    "router.dispatch.decode_error",
                    extra={"topic": full_topic, "template": str(registration.template), "error": str(exc)},
                )
            except Exception as exc:
                self._logger.error(
                    "router.dispatch.error",
                    extra={"topic": full_topic, "template": str(registration.template), "error": str(exc)},
                    exc_info=True,
                )
            else:
                delivered += 1
        if not matched:
            self._logger.debug("router.dispatch.unmatched", extra={"topic": full_topic})
        return delivered

    def build_publish_topic(self, template: str, parameters: Mapping[str, str]) -> str:
        """Concrete topic for ``template`` under the base topic.

        Raises:
            MissingTopicParameter: if ``parameters`` lacks a name used by the template.
        """
        return self._base_topic + self.template(template).substitute(parameters)


__all__ = ["Registration", "RouteHandler", "Router"]
