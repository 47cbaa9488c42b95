"""Exceptions raised by duplex_rpc.

Every error the package raises derives from RpcError. Errors raised by a
remote function are re-raised verbatim when the codec preserves them;
otherwise they surface as RemoteError.
"""

from __future__ import annotations

from typing import Any


class RpcError(Exception):
    """Base class for all duplex_rpc errors."""


class RpcTimeoutError(RpcError, TimeoutError):
    """A call was not answered within the configured timeout."""

    def __init__(self, method: str, timeout: float) -> None:
        super().__init__(f'timeout on calling "{method}" after {timeout:g}ms')
        self.method = method
        self.timeout = timeout


class MethodNotFoundError(RpcError, LookupError):
    """A request named a function the receiving side does not expose."""

    def __init__(self, method: str) -> None:
        super().__init__(f'method "{method}" not found')
        self.method = method


class RpcClosedError(RpcError):
    """The correlator was closed before the call settled."""


class RemoteError(RpcError):
    """An error reported by the peer that is not an exception instance.

    Produced when the response's error value went through a codec that
    cannot carry exception objects (e.g. JSON), so the peer sent a
    ``{"name": ..., "message": ...}`` dict or some other plain value.
    """

    def __init__(self, message: str, name: str | None = None, error: Any = None) -> None:
        super().__init__(message)
        self.message = message
        self.name = name
        self.error = error

    @classmethod
    def from_payload(cls, error: Any) -> RemoteError:
        """Build a RemoteError from a decoded error payload."""
        if isinstance(error, dict):
            message = error.get("message")
            name = error.get("name")
            return cls(str(message) if message is not None else str(error), name=name, error=error)
        return cls(str(error), error=error)

    def __str__(self) -> str:
        if self.name:
            return f"{self.name}: {self.message}"
        return self.message


def as_exception(error: Any) -> BaseException:
    """Turn a response's error value into something raisable."""
    if isinstance(error, BaseException):
        return error
    return RemoteError.from_payload(error)
