"""Newline-delimited JSON over asyncio streams.

Works with anything that yields an asyncio StreamReader/StreamWriter pair:
TCP connections, subprocess pipes, or the process's own stdin/stdout.

Wire format (UTF-8, one message per line, LF only):
    → {"t":"q","i":"V1StGXR8_Z5jdHi6B-myT","m":"add","a":[2,3]}
    ← {"t":"s","i":"V1StGXR8_Z5jdHi6B-myT","r":5}

Lines that are not JSON objects (stray prints, log output) are skipped.
"""

from __future__ import annotations

import asyncio
import contextlib
import logging
import os
import sys
from collections.abc import Callable
from typing import Any, TextIO

from ..channel import ChannelBinding, InboundHandler
from ..protocol.codec import JsonCodec

logger = logging.getLogger(__name__)

# UTF-8 encoding for all JSON lines
ENCODING = "utf-8"

NEWLINE = b"\n"

# Longest accepted line, in bytes
DEFAULT_LIMIT = 16 * 1024 * 1024


class StreamChannel:
    """Bidirectional JSON-lines channel over a stream pair.

    Usage:
        reader, writer = await asyncio.open_connection(host, port)
        channel = StreamChannel(reader, writer)
        rpc = Correlator(functions, channel.binding())
        await channel.run()  # until the peer closes the stream
    """

    def __init__(
        self,
        reader: asyncio.StreamReader,
        writer: asyncio.StreamWriter,
        codec: JsonCodec | None = None,
    ) -> None:
        self._reader = reader
        self._writer = writer
        self._codec = codec or JsonCodec()
        self._handler: InboundHandler | None = None
        self._running = False

    @property
    def running(self) -> bool:
        return self._running

    def binding(self) -> ChannelBinding:
        return ChannelBinding(post=self.post, on=self.on, **self._codec.hooks())

    def post(self, message: str | bytes, *extras: Any) -> None:
        if self._writer.is_closing():
            raise ConnectionError("stream is closed")
        if isinstance(message, str):
            message = message.encode(ENCODING)
        self._writer.write(message + NEWLINE)

    def on(self, handler: InboundHandler) -> Callable[[], None]:
        self._handler = handler

        def remove() -> None:
            if self._handler is handler:
                self._handler = None

        return remove

    async def drain(self) -> None:
        """Wait until buffered output has been flushed."""
        await self._writer.drain()

    async def run(self) -> None:
        """Read lines and hand them to the handler until EOF."""
        self._running = True
        try:
            while self._running:
                line = await self._reader.readline()
                if not line:
                    logger.debug("Stream closed by peer")
                    break
                self._process_line(line)
        except asyncio.CancelledError:
            logger.debug("Stream reader cancelled")
            raise
        except Exception as e:
            logger.exception(f"Stream read error: {e}")
        finally:
            self._running = False

    def stop(self) -> None:
        self._running = False

    async def close(self) -> None:
        """Stop reading and close the writer."""
        self._running = False
        self._writer.close()
        with contextlib.suppress(ConnectionError):
            await self._writer.wait_closed()

    def _process_line(self, line: bytes) -> None:
        try:
            text = line.decode(ENCODING).strip()
        except UnicodeDecodeError as e:
            logger.debug(f"Skipping line that is not valid UTF-8: {e}")
            return
        if not text:
            return

        # Skip UTF-8 BOM if present
        if text.startswith("\ufeff"):
            text = text[1:]

        if not text.startswith("{"):
            logger.debug(f"Skipping non-JSON line: {text[:50]}")
            return

        if self._handler is None:
            logger.debug("No handler registered, dropping line")
            return
        self._handler(text)


class SubprocessChannel(StreamChannel):
    """Channel to a child process speaking JSON lines on stdin/stdout.

    The child's stderr is inherited so its logs stay visible.
    """

    def __init__(self, process: asyncio.subprocess.Process, codec: JsonCodec | None = None):
        if process.stdout is None or process.stdin is None:
            raise ValueError("process needs piped stdin and stdout")
        super().__init__(process.stdout, process.stdin, codec)
        self.process = process

    @classmethod
    async def spawn(
        cls,
        *command: str,
        env: dict[str, str] | None = None,
        cwd: str | None = None,
    ) -> SubprocessChannel:
        """Launch ``command`` and connect to its stdin/stdout."""
        if env:
            env = {**os.environ, **env}

        process = await asyncio.create_subprocess_exec(
            *command,
            stdin=asyncio.subprocess.PIPE,
            stdout=asyncio.subprocess.PIPE,
            cwd=cwd,
            env=env,
            limit=DEFAULT_LIMIT,
        )
        logger.info(f"Launched subprocess: {' '.join(command)} (pid={process.pid})")
        return cls(process)

    async def close(self) -> None:
        """Close stdin and wait for the child, terminating it if needed."""
        self._running = False
        if not self._writer.is_closing():
            self._writer.close()

        if self.process.returncode is None:
            try:
                await asyncio.wait_for(self.process.wait(), timeout=5.0)
            except TimeoutError:
                self.process.terminate()
                try:
                    await asyncio.wait_for(self.process.wait(), timeout=5.0)
                except TimeoutError:
                    self.process.kill()
                    await self.process.wait()
        logger.info(f"Subprocess exited (pid={self.process.pid}, code={self.process.returncode})")


async def open_stdio_channel(
    stdin: TextIO | None = None,
    stdout: TextIO | None = None,
) -> StreamChannel:
    """Build a channel over this process's stdin/stdout."""
    loop = asyncio.get_running_loop()

    reader = asyncio.StreamReader(limit=DEFAULT_LIMIT)
    await loop.connect_read_pipe(
        lambda: asyncio.StreamReaderProtocol(reader), stdin or sys.stdin
    )

    transport, protocol = await loop.connect_write_pipe(
        asyncio.streams.FlowControlMixin, stdout or sys.stdout
    )
    writer = asyncio.StreamWriter(transport, protocol, reader, loop)
    return StreamChannel(reader, writer)
