"""Call correlation over a single channel.

A Correlator owns one channel binding and plays both roles of the
protocol at once:

- Outbound: call() posts a Request with a fresh id and returns a future
  that settles when the matching Response arrives or the timeout fires.
  event() posts a Request without an id and returns immediately.
- Inbound: handle_inbound() is registered with the channel. Requests run
  the named local function and, when they carry an id, answer with a
  Response. Responses settle the pending call with the same id.

Everything runs on the asyncio event loop; the pending-call map is only
ever touched from loop callbacks, so no locking is needed.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
from collections.abc import Callable, Mapping
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any

from .channel import ChannelBinding
from .config import RpcOptions
from .errors import MethodNotFoundError, RpcClosedError, RpcTimeoutError, as_exception
from .protocol.messages import Request, Response, generate_unique_id, parse_message
from .stubs import RemoteProxy

logger = logging.getLogger(__name__)

# Proxy of the correlator whose inbound request is being handled (async-safe)
_current_rpc: ContextVar[RemoteProxy | None] = ContextVar("current_rpc", default=None)


def current_rpc() -> RemoteProxy:
    """Get the proxy back to the peer whose request is being handled.

    Local functions use this to call the peer that invoked them.

    Raises:
        LookupError: If called outside of an inbound request.
    """
    proxy = _current_rpc.get()
    if proxy is None:
        raise LookupError("current_rpc() used outside of an inbound request")
    return proxy


@dataclass
class PendingCall:
    """An outbound call waiting for its response."""

    id: str
    method: str
    future: asyncio.Future[Any]
    timeout_handle: asyncio.TimerHandle | None = None

    def cancel_timer(self) -> None:
        if self.timeout_handle is not None:
            self.timeout_handle.cancel()
            self.timeout_handle = None


class Correlator:
    """Bidirectional RPC over one channel binding.

    Usage:
        left, right = create_channel_pair()
        server = Correlator({"add": lambda x, y: x + y}, left)
        client = Correlator({}, right)

        assert await client.proxy.add(2, 3) == 5
    """

    def __init__(
        self,
        functions: Mapping[str, Callable[..., Any]] | Any,
        channel: ChannelBinding,
        options: RpcOptions | None = None,
        *,
        event_names: list[str] | None = None,
        timeout: float | None = None,
    ) -> None:
        """Bind local functions to a channel.

        Args:
            functions: Mapping of name to callable, or an object whose public
                attributes are the exposed callables
            channel: The channel to the peer
            options: Base options (defaults to RpcOptions())
            event_names: Remote functions that are always sent as events
            timeout: Milliseconds before a call fails; negative disables
        """
        self.functions = functions
        self.channel = channel
        self.options = RpcOptions.build(options, event_names=event_names, timeout=timeout)

        self._pending: dict[str, PendingCall] = {}
        self._tasks: set[asyncio.Task[None]] = set()
        self._closed = False

        self.proxy = RemoteProxy(self)
        self._unsubscribe = channel.subscribe(self.handle_inbound)

    @property
    def closed(self) -> bool:
        return self._closed

    @property
    def pending_count(self) -> int:
        """Number of calls still waiting for a response."""
        return len(self._pending)

    # =========================================================================
    # Outbound
    # =========================================================================

    def call(self, method: str, *args: Any) -> asyncio.Future[Any]:
        """Call a remote function and return a future for its result.

        The request is posted before this returns, so transport failures
        raise here rather than through the future.

        Raises:
            RpcClosedError: If the correlator was closed
        """
        self._ensure_open()
        loop = asyncio.get_running_loop()

        call_id = generate_unique_id(self._pending)
        future: asyncio.Future[Any] = loop.create_future()
        pending = PendingCall(id=call_id, method=method, future=future)
        self._pending[call_id] = pending

        try:
            self.channel.send(Request.call(method, list(args), call_id).to_wire())
        except BaseException:
            self._pending.pop(call_id, None)
            future.cancel()
            raise

        # A synchronous transport may already have settled the call
        if self.options.timeout_enabled and call_id in self._pending:
            pending.timeout_handle = loop.call_later(
                self.options.timeout_seconds, self._expire, call_id
            )

        # Caller gave up (cancelled); forget the call
        future.add_done_callback(lambda _: self._discard(call_id, future))

        logger.debug(f"Posted call {method!r} (id={call_id})")
        return future

    def event(self, method: str, *args: Any) -> None:
        """Send a remote function call without waiting for any response."""
        self._ensure_open()
        self.channel.send(Request.event(method, list(args)).to_wire())
        logger.debug(f"Posted event {method!r}")

    def _expire(self, call_id: str) -> None:
        pending = self._pending.pop(call_id, None)
        if pending is None:
            return
        pending.timeout_handle = None
        if not pending.future.done():
            logger.warning(f"Call {pending.method!r} timed out (id={call_id})")
            pending.future.set_exception(RpcTimeoutError(pending.method, self.options.timeout))

    def _discard(self, call_id: str, future: asyncio.Future[Any]) -> None:
        pending = self._pending.get(call_id)
        if pending is not None and pending.future is future:
            del self._pending[call_id]
            pending.cancel_timer()

    # =========================================================================
    # Inbound
    # =========================================================================

    def handle_inbound(self, data: Any, *extras: Any) -> asyncio.Task[None] | None:
        """Handle one raw message from the channel.

        Responses are settled immediately. Requests are run in a task,
        which is returned so transports may await it.
        """
        if self._closed:
            return None

        try:
            raw = self.channel.deserialize(data)
        except Exception as e:
            logger.debug(f"Dropping undecodable message: {e}")
            return None

        message = parse_message(raw)
        if message is None:
            return None

        if isinstance(message, Response):
            self._settle(message)
            return None

        task = asyncio.get_running_loop().create_task(self._dispatch(message, extras))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    def _settle(self, response: Response) -> None:
        pending = self._pending.pop(response.id, None)
        if pending is None:
            logger.debug(f"Ignoring response for unknown call (id={response.id})")
            return

        pending.cancel_timer()
        if pending.future.done():
            return

        if response.is_error():
            pending.future.set_exception(as_exception(response.error))
        else:
            pending.future.set_result(response.result)

    async def _dispatch(self, request: Request, extras: tuple[Any, ...]) -> None:
        result: Any = None
        error: BaseException | None = None

        token = _current_rpc.set(self.proxy)
        try:
            result = await self._invoke(request.method, request.args)
        except Exception as e:
            error = e
        finally:
            _current_rpc.reset(token)

        if request.is_event():
            if error is not None:
                logger.warning(f"Event handler {request.method!r} failed: {error!r}")
            return

        if self._closed:
            logger.debug(f"Dropping response to {request.method!r}: correlator closed")
            return

        response = Response(id=request.id, result=result, error=error)
        try:
            self.channel.send(response.to_wire(), *extras)
        except Exception as e:
            # Result could not be posted (e.g. not serializable); report that instead
            logger.debug(f"Response to {request.method!r} not posted, sending error: {e}")
            try:
                self.channel.send(Response(id=request.id, error=e).to_wire(), *extras)
            except Exception:
                logger.exception(
                    f"Failed to post response to {request.method!r} (id={request.id})"
                )

    async def _invoke(self, method: str, args: list[Any]) -> Any:
        fn = self._lookup(method)
        result = fn(*args)
        if inspect.isawaitable(result):
            result = await result
        return result

    def _lookup(self, method: str) -> Callable[..., Any]:
        if isinstance(self.functions, Mapping):
            fn = self.functions.get(method)
        elif method.startswith("_"):
            fn = None
        else:
            fn = getattr(self.functions, method, None)

        if not callable(fn):
            raise MethodNotFoundError(method)
        return fn

    # =========================================================================
    # Lifecycle
    # =========================================================================

    async def wait_inbound(self) -> None:
        """Wait until every inbound request being handled has finished."""
        while self._tasks:
            await asyncio.gather(*self._tasks, return_exceptions=True)

    def close(self) -> None:
        """Stop using the channel.

        Pending calls fail with RpcClosedError, in-flight inbound requests
        are cancelled, and the inbound handler is removed when the
        transport supports it.
        """
        if self._closed:
            return
        self._closed = True

        if self._unsubscribe is not None:
            self._unsubscribe()
            self._unsubscribe = None

        pending = list(self._pending.values())
        self._pending.clear()
        for call in pending:
            call.cancel_timer()
            if not call.future.done():
                call.future.set_exception(
                    RpcClosedError(f'channel closed before "{call.method}" settled')
                )

        for task in list(self._tasks):
            task.cancel()

        logger.debug(f"Correlator closed ({len(pending)} pending calls rejected)")

    def _ensure_open(self) -> None:
        if self._closed:
            raise RpcClosedError("correlator is closed")
