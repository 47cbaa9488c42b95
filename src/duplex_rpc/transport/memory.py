"""In-process channel pairs.

Two MemoryPorts wired back to back behave like the two ends of a message
port: whatever one side posts is delivered to the other side's handler on
a later loop iteration, never synchronously.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable
from typing import Any

from ..channel import ChannelBinding, InboundHandler
from ..protocol.codec import identity

logger = logging.getLogger(__name__)


class MemoryPort:
    """One end of an in-process channel.

    Every posted message is also kept in ``sent`` so tests can inspect
    the traffic.
    """

    def __init__(self, name: str = "port") -> None:
        self.name = name
        self.peer: MemoryPort | None = None
        self.sent: list[Any] = []
        self._handler: InboundHandler | None = None

    @property
    def connected(self) -> bool:
        return self.peer is not None

    def post(self, message: Any, *extras: Any) -> None:
        if self.peer is None:
            raise ConnectionError(f"{self.name} is not connected")
        self.sent.append(message)
        asyncio.get_running_loop().call_soon(self.peer._deliver, message, extras)

    def on(self, handler: InboundHandler) -> Callable[[], None]:
        self._handler = handler

        def remove() -> None:
            if self._handler is handler:
                self._handler = None

        return remove

    def disconnect(self) -> None:
        """Detach both ends; further posts raise ConnectionError."""
        peer, self.peer = self.peer, None
        if peer is not None and peer.peer is self:
            peer.peer = None

    def binding(
        self,
        serialize: Callable[[Any], Any] = identity,
        deserialize: Callable[[Any], Any] = identity,
    ) -> ChannelBinding:
        return ChannelBinding(
            post=self.post, on=self.on, serialize=serialize, deserialize=deserialize
        )

    def _deliver(self, message: Any, extras: tuple[Any, ...]) -> None:
        if self._handler is None:
            logger.debug(f"{self.name}: no handler, dropping message")
            return
        self._handler(message, *extras)

    def __repr__(self) -> str:
        return f"<MemoryPort {self.name!r} connected={self.connected}>"


def create_port_pair(left: str = "left", right: str = "right") -> tuple[MemoryPort, MemoryPort]:
    """Create two connected ports."""
    a, b = MemoryPort(left), MemoryPort(right)
    a.peer, b.peer = b, a
    return a, b


def create_channel_pair(
    serialize: Callable[[Any], Any] = identity,
    deserialize: Callable[[Any], Any] = identity,
) -> tuple[ChannelBinding, ChannelBinding]:
    """Create two bindings connected to each other."""
    a, b = create_port_pair()
    return a.binding(serialize, deserialize), b.binding(serialize, deserialize)
