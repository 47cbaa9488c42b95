"""Channel binding: the transport-facing side of a correlator.

A binding is the pair of raw operations a transport offers plus the codec
applied around them:

- post(message, *extras): send one serialized message. Extras are
  transport-specific and passed through unchanged.
- on(handler): register the single handler called once per inbound raw
  message (plus any extras). It may return a function that removes the
  handler again.
- serialize / deserialize: codec hooks, identity by default.
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import Any

from .protocol.codec import identity

InboundHandler = Callable[..., Any]
PostFn = Callable[..., Any]
OnFn = Callable[[InboundHandler], Callable[[], None] | None]


@dataclass(eq=False)
class ChannelBinding:
    """One duplex channel to a peer.

    Bindings compare and hash by identity; a group keys its correlators
    on the binding object itself.
    """

    post: PostFn
    on: OnFn
    serialize: Callable[[Any], Any] = identity
    deserialize: Callable[[Any], Any] = identity

    def send(self, message: dict[str, Any], *extras: Any) -> None:
        """Serialize and post one wire message."""
        self.post(self.serialize(message), *extras)

    def subscribe(self, handler: InboundHandler) -> Callable[[], None] | None:
        """Register the inbound handler, returning its remover if the transport has one."""
        remover = self.on(handler)
        return remover if callable(remover) else None
