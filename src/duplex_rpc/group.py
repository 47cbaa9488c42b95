"""Broadcasting one logical call over many channels.

An RpcGroup exposes the same local functions on every channel it holds and
lets callers address all peers at once. One Correlator is kept per channel
binding in an arena keyed by binding identity; entries are created on first
use and dropped only when update_channels() removes their binding.
"""

from __future__ import annotations

import asyncio
import logging
from collections.abc import Callable, Mapping
from typing import Any

from .channel import ChannelBinding
from .config import RpcOptions
from .correlator import Correlator
from .stubs import RemoteProxy

logger = logging.getLogger(__name__)

ChannelMutator = Callable[[list[ChannelBinding]], Any]


class BroadcastStub:
    """Calls one method on every peer of the group."""

    def __init__(self, group: RpcGroup, method: str) -> None:
        self._stubs = [client.get_stub(method) for client in group.clients]
        self.method = method

    def __call__(self, *args: Any) -> asyncio.Future[list[Any]]:
        """Call every peer; results come back in channel order.

        Fails with the first error raised by any peer.
        """
        futures: list[asyncio.Future[Any]] = []
        try:
            for stub in self._stubs:
                futures.append(self._call_one(stub, args))
        except BaseException:
            # Drop calls already posted to earlier channels
            for future in futures:
                future.cancel()
            raise
        return asyncio.gather(*futures)

    def as_event(self, *args: Any) -> None:
        """Send to every peer without waiting."""
        for stub in self._stubs:
            stub.as_event(*args)

    @staticmethod
    def _call_one(stub: Any, args: tuple[Any, ...]) -> asyncio.Future[Any]:
        result = stub(*args)
        if result is None:
            # Event-only name: nothing to wait for
            future: asyncio.Future[Any] = asyncio.get_running_loop().create_future()
            future.set_result(None)
            return future
        return result

    def __repr__(self) -> str:
        return f"<BroadcastStub {self.method!r} x{len(self._stubs)}>"


class BroadcastProxy:
    """Attribute/item access to broadcast stubs of a group."""

    def __init__(self, group: RpcGroup) -> None:
        self._group = group

    def get_stub(self, method: str) -> BroadcastStub:
        # Rebuilt on each access so the current channel list is used
        return BroadcastStub(self._group, method)

    def __getitem__(self, method: str) -> BroadcastStub:
        return self.get_stub(method)

    def __getattr__(self, method: str) -> BroadcastStub:
        if method.startswith("_"):
            raise AttributeError(method)
        return self.get_stub(method)


class RpcGroup:
    """Bidirectional RPC over a mutable list of channels.

    Usage:
        group = RpcGroup(functions, [binding_a, binding_b])
        results = await group.broadcast.ping()     # [result_a, result_b]
        group.broadcast.notify.as_event("hello")

        group.update_channels(lambda channels: channels.append(binding_c))
    """

    def __init__(
        self,
        functions: Mapping[str, Callable[..., Any]] | Any,
        channels: list[ChannelBinding],
        options: RpcOptions | None = None,
        *,
        event_names: list[str] | None = None,
        timeout: float | None = None,
    ) -> None:
        self.functions = functions
        self.options = RpcOptions.build(options, event_names=event_names, timeout=timeout)
        self._channels = channels
        self._arena: dict[int, tuple[ChannelBinding, Correlator]] = {}
        self.broadcast = BroadcastProxy(self)

        # Start listening on every channel right away
        self._materialize()

    @property
    def channels(self) -> list[ChannelBinding]:
        return self._channels

    @property
    def clients(self) -> list[RemoteProxy]:
        """Per-channel proxies, in channel order."""
        return [correlator.proxy for correlator in self._materialize()]

    def correlator_for(self, channel: ChannelBinding) -> Correlator:
        """Get (creating on first use) the correlator of one channel."""
        entry = self._arena.get(id(channel))
        if entry is None:
            correlator = Correlator(self.functions, channel, self.options)
            self._arena[id(channel)] = (channel, correlator)
            logger.debug(f"Created correlator for channel {id(channel):#x}")
            return correlator
        return entry[1]

    def update_channels(self, mutator: ChannelMutator | None = None) -> list[RemoteProxy]:
        """Change the channel list and return the refreshed clients.

        The mutator receives the live list and may add, remove or reorder
        bindings in place. Correlators of removed bindings are closed.
        """
        if mutator is not None:
            mutator(self._channels)

        current = {id(channel) for channel in self._channels}
        for key in [key for key in self._arena if key not in current]:
            _, correlator = self._arena.pop(key)
            correlator.close()
            logger.debug(f"Dropped correlator for removed channel {key:#x}")

        return self.clients

    def close(self) -> None:
        """Close every correlator of the group."""
        for _, correlator in self._arena.values():
            correlator.close()
        self._arena.clear()

    def _materialize(self) -> list[Correlator]:
        return [self.correlator_for(channel) for channel in self._channels]
