"""Pytest configuration and shared fixtures."""

from __future__ import annotations

from typing import Any
from unittest.mock import MagicMock

import pytest

from duplex_rpc.channel import ChannelBinding
from duplex_rpc.transport.memory import MemoryPort, create_port_pair


@pytest.fixture(scope="module")
def anyio_backend():
    """Configure anyio to use asyncio backend."""
    return "asyncio"


class ManualChannel:
    """Channel whose traffic is driven by the test.

    Posted messages are recorded; inbound messages are injected with
    ``receive``.
    """

    def __init__(self) -> None:
        self.post = MagicMock()
        self.handler: Any = None
        self.unsubscribe = MagicMock()

    def on(self, handler: Any) -> Any:
        self.handler = handler
        return self.unsubscribe

    def binding(self) -> ChannelBinding:
        return ChannelBinding(post=self.post, on=self.on)

    @property
    def sent(self) -> list[Any]:
        return [c.args[0] for c in self.post.call_args_list]

    def receive(self, message: Any, *extras: Any) -> Any:
        return self.handler(message, *extras)


@pytest.fixture
def manual_channel() -> ManualChannel:
    return ManualChannel()


@pytest.fixture
def ports() -> tuple[MemoryPort, MemoryPort]:
    """Two connected in-memory ports: (server side, client side)."""
    return create_port_pair("server", "client")
