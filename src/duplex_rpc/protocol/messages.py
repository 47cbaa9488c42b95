"""Wire messages for the protocol layer.

Two shapes travel over a channel once deserialized:

- Request:  {"t": "q", "i": "<id>", "m": "<method>", "a": [...]}
            "i" is omitted for events (no response expected).
- Response: {"t": "s", "i": "<id>", "r": <result>, "e": <error>}
            "r" and "e" are omitted when absent. Both absent means the call
            succeeded without a value.

The single-character keys are the wire contract and must not change.
"""

from __future__ import annotations

import logging
import secrets
from collections.abc import Container
from typing import Any, Literal

from pydantic import BaseModel, ConfigDict, Field, ValidationError

logger = logging.getLogger(__name__)

REQUEST = "q"
RESPONSE = "s"

# URL-safe alphabet, 64 symbols
URL_ALPHABET = "useandom-26T198340PX75pxJACKVERYMINDBUSHWOLF_GQZbfghjklqvwyzrict"
DEFAULT_ID_SIZE = 21


def generate_id(size: int = DEFAULT_ID_SIZE) -> str:
    """Generate a random URL-safe id."""
    return "".join(URL_ALPHABET[b & 63] for b in secrets.token_bytes(size))


def generate_unique_id(taken: Container[str], attempts: int = 10) -> str:
    """Generate an id that is not in ``taken``.

    Raises:
        ValueError: If no free id was found within ``attempts`` tries.
    """
    for _ in range(attempts):
        candidate = generate_id()
        if candidate not in taken:
            return candidate
    raise ValueError("unable to generate a unique call id")


class Request(BaseModel):
    """A call or event sent to the peer.

    Example (call):
        {"t": "q", "i": "V1StGXR8_Z5jdHi6B-myT", "m": "add", "a": [2, 3]}

    Example (event):
        {"t": "q", "m": "log", "a": ["hi"]}
    """

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["q"] = Field(default=REQUEST, alias="t")
    id: str | None = Field(default=None, alias="i")
    method: str = Field(alias="m")
    args: list[Any] = Field(default_factory=list, alias="a")

    def is_event(self) -> bool:
        """Check if the sender expects no response."""
        return self.id is None

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"t": REQUEST}
        if self.id is not None:
            data["i"] = self.id
        data["m"] = self.method
        data["a"] = list(self.args)
        return data

    @classmethod
    def call(cls, method: str, args: list[Any], call_id: str) -> Request:
        return cls(method=method, args=args, id=call_id)

    @classmethod
    def event(cls, method: str, args: list[Any]) -> Request:
        return cls(method=method, args=args)


class Response(BaseModel):
    """The answer to a Request that carried an id.

    Example (success):
        {"t": "s", "i": "V1StGXR8_Z5jdHi6B-myT", "r": 5}

    Example (failure):
        {"t": "s", "i": "V1StGXR8_Z5jdHi6B-myT", "e": {"name": "ValueError", "message": "bad args"}}
    """

    model_config = ConfigDict(populate_by_name=True)

    type: Literal["s"] = Field(default=RESPONSE, alias="t")
    id: str = Field(alias="i")
    result: Any = Field(default=None, alias="r")
    error: Any = Field(default=None, alias="e")

    def is_error(self) -> bool:
        """Check if the call failed. The error wins over any result."""
        return self.error is not None

    def to_wire(self) -> dict[str, Any]:
        data: dict[str, Any] = {"t": RESPONSE, "i": self.id}
        if self.result is not None:
            data["r"] = self.result
        if self.error is not None:
            data["e"] = self.error
        return data


Message = Request | Response


def parse_message(data: Any) -> Message | None:
    """Validate a deserialized payload as a Request or Response.

    Returns None for anything that matches neither shape.
    """
    if not isinstance(data, dict):
        logger.debug(f"Dropping non-object message: {type(data).__name__}")
        return None

    kind = data.get("t")
    try:
        if kind == REQUEST:
            return Request.model_validate(data)
        if kind == RESPONSE:
            return Response.model_validate(data)
    except ValidationError as e:
        logger.debug(f"Dropping malformed {kind!r} message: {e}")
        return None

    logger.debug(f"Dropping message with unknown type {kind!r}")
    return None
