"""Callable stubs for remote functions.

A stub is produced for any method name without checking that the peer
exposes it; an unknown name only fails once the peer answers.

- CallStub: calling it waits for the result; ``as_event`` sends the same
  call without waiting.
- EventStub: for names configured as events. Calling it never waits, and
  ``as_event`` is the stub itself.
"""

from __future__ import annotations

import asyncio
from typing import TYPE_CHECKING, Any

if TYPE_CHECKING:
    from .correlator import Correlator


class EventStub:
    """Fire-and-forget stub."""

    def __init__(self, correlator: Correlator, method: str) -> None:
        self._correlator = correlator
        self.method = method

    def __call__(self, *args: Any) -> None:
        self._correlator.event(self.method, *args)

    @property
    def as_event(self) -> EventStub:
        return self

    def __repr__(self) -> str:
        return f"<EventStub {self.method!r}>"


class CallStub:
    """Stub that waits for the remote result."""

    def __init__(self, correlator: Correlator, method: str) -> None:
        self._correlator = correlator
        self.method = method

    def __call__(self, *args: Any) -> asyncio.Future[Any]:
        return self._correlator.call(self.method, *args)

    def as_event(self, *args: Any) -> None:
        """Send without asking for a response."""
        self._correlator.event(self.method, *args)

    def __repr__(self) -> str:
        return f"<CallStub {self.method!r}>"


Stub = CallStub | EventStub


class RemoteProxy:
    """Access to the peer's functions as stubs.

    Usage:
        await proxy.add(2, 3)          # attribute access
        await proxy["add"](2, 3)       # item access, any name
        proxy.get_stub("log")("hi")    # explicit lookup
        proxy.add.as_event(2, 3)       # do not wait
    """

    def __init__(self, correlator: Correlator) -> None:
        self._correlator = correlator
        self._stubs: dict[str, Stub] = {}

    @property
    def correlator(self) -> Correlator:
        return self._correlator

    def get_stub(self, method: str) -> Stub:
        """Get the stub for a remote function."""
        stub = self._stubs.get(method)
        if stub is None:
            if self._correlator.options.is_event(method):
                stub = EventStub(self._correlator, method)
            else:
                stub = CallStub(self._correlator, method)
            self._stubs[method] = stub
        return stub

    def __getitem__(self, method: str) -> Stub:
        return self.get_stub(method)

    def __getattr__(self, method: str) -> Stub:
        # Private and dunder lookups must not turn into remote calls
        if method.startswith("_"):
            raise AttributeError(method)
        return self.get_stub(method)

    def __repr__(self) -> str:
        return f"<RemoteProxy pending={self._correlator.pending_count}>"
