"""Serialization hooks for channel bindings.

A channel binding serializes every outbound wire dict and deserializes
every inbound raw message. The default passes messages through untouched,
which suits in-process channels where exception objects survive as-is.

JsonCodec produces text for byte-oriented transports (pipes, sockets).
JSON cannot carry exception objects, so errors in responses are reduced to
{"name": ..., "message": ...} and re-raised by the caller as RemoteError.
"""

from __future__ import annotations

import json
from collections.abc import Callable
from typing import Any

Serializer = Callable[[Any], Any]
Deserializer = Callable[[Any], Any]


def identity(data: Any) -> Any:
    """Pass data through unchanged."""
    return data


def error_to_payload(error: BaseException) -> dict[str, str]:
    """Describe an exception as a JSON-friendly dict."""
    return {"name": type(error).__name__, "message": str(error)}


def _default(value: Any) -> Any:
    if isinstance(value, BaseException):
        return error_to_payload(value)
    if isinstance(value, (set, frozenset, tuple)):
        return list(value)
    raise TypeError(f"Object of type {type(value).__name__} is not JSON serializable")


class JsonCodec:
    """JSON text codec for wire messages.

    Usage:
        codec = JsonCodec()
        binding = ChannelBinding(post=..., on=..., **codec.hooks())
    """

    def __init__(self, ensure_ascii: bool = False) -> None:
        self._ensure_ascii = ensure_ascii

    def serialize(self, message: dict[str, Any]) -> str:
        if isinstance(message.get("e"), BaseException):
            message = {**message, "e": error_to_payload(message["e"])}
        return json.dumps(
            message,
            default=_default,
            ensure_ascii=self._ensure_ascii,
            separators=(",", ":"),
        )

    def deserialize(self, data: str | bytes) -> Any:
        if isinstance(data, bytes):
            data = data.decode("utf-8")
        return json.loads(data)

    def hooks(self) -> dict[str, Callable[[Any], Any]]:
        """Keyword arguments for ChannelBinding."""
        return {"serialize": self.serialize, "deserialize": self.deserialize}
