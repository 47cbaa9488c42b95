"""Transport-agnostic message protocol.

Defines the request/response shapes exchanged by two peers and the
codecs that turn them into whatever a transport carries.

Key concepts:
- Request: a call (carries an id) or an event (no id)
- Response: mirrors a call's id and carries a result or an error
- Codec: serialize/deserialize hooks, identity by default
"""

from .codec import JsonCodec, error_to_payload, identity
from .messages import (
    REQUEST,
    RESPONSE,
    Message,
    Request,
    Response,
    generate_id,
    generate_unique_id,
    parse_message,
)

__all__ = [
    "REQUEST",
    "RESPONSE",
    "Message",
    "Request",
    "Response",
    "generate_id",
    "generate_unique_id",
    "parse_message",
    "JsonCodec",
    "error_to_payload",
    "identity",
]
