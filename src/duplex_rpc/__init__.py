"""duplex_rpc - bidirectional RPC over any duplex message channel.

Two peers expose named local functions to each other. Either side may
call the other's functions and await the result, or send events that
expect no response. A group fans one call out over many channels.
"""

from __future__ import annotations

from typing import Any

from .channel import ChannelBinding
from .config import DEFAULT_TIMEOUT, RpcOptions
from .correlator import Correlator, PendingCall, current_rpc
from .errors import (
    MethodNotFoundError,
    RemoteError,
    RpcClosedError,
    RpcError,
    RpcTimeoutError,
)
from .group import BroadcastProxy, BroadcastStub, RpcGroup
from .stubs import CallStub, EventStub, RemoteProxy

__version__ = "0.1.0"


def create_rpc(
    functions: Any,
    channel: ChannelBinding,
    options: RpcOptions | None = None,
    **overrides: Any,
) -> RemoteProxy:
    """Bind local functions to a channel and return the proxy to the peer."""
    return Correlator(functions, channel, options, **overrides).proxy


def create_group(
    functions: Any,
    channels: list[ChannelBinding],
    options: RpcOptions | None = None,
    **overrides: Any,
) -> RpcGroup:
    """Bind local functions to a list of channels."""
    return RpcGroup(functions, channels, options, **overrides)


__all__ = [
    "ChannelBinding",
    "DEFAULT_TIMEOUT",
    "RpcOptions",
    "Correlator",
    "PendingCall",
    "current_rpc",
    "create_rpc",
    "create_group",
    "RpcGroup",
    "BroadcastProxy",
    "BroadcastStub",
    "CallStub",
    "EventStub",
    "RemoteProxy",
    "RpcError",
    "RpcTimeoutError",
    "RpcClosedError",
    "MethodNotFoundError",
    "RemoteError",
]
