"""Ready-made channel bindings.

- memory: in-process port pairs (tests, threads of one program)
- stream: newline-delimited JSON over asyncio streams, subprocesses, stdio

Any other transport only needs a ChannelBinding with post/on hooks.
"""

from .memory import MemoryPort, create_channel_pair, create_port_pair
from .stream import StreamChannel, SubprocessChannel, open_stdio_channel

__all__ = [
    "MemoryPort",
    "create_channel_pair",
    "create_port_pair",
    "StreamChannel",
    "SubprocessChannel",
    "open_stdio_channel",
]
