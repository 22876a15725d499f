from __future__ import annotations

from typing import Callable, Protocol

MessageCallback = Callable[[str, bytes], None]


class Publisher(Protocol):
    async def publish(self, topic: str, payload: bytes, qos: int = 0, retain: bool = False) -> None: ...


class Subscriber(Protocol):
    async def subscribe(self, topic: str, on_message: MessageCallback, qos: int = 0) -> None: ...

    async def unsubscribe(self, topic: str) -> None: ...


class Transport(Publisher, Subscriber, Protocol):
    """Publisher and subscriber over one broker connection."""
