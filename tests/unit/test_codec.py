"""Unit tests for serialization codecs and error mapping."""

import json

from duplex_rpc.errors import (
    MethodNotFoundError,
    RemoteError,
    RpcError,
    RpcTimeoutError,
    as_exception,
)
from duplex_rpc.protocol.codec import JsonCodec, error_to_payload, identity


class TestIdentity:
    def test_passes_through(self):
        data = {"t": "q", "m": "x", "a": []}

        assert identity(data) is data


class TestJsonCodec:
    """Test the JSON text codec."""

    def test_serialize_is_compact(self):
        codec = JsonCodec()

        text = codec.serialize({"t": "q", "i": "a1", "m": "add", "a": [2, 3]})

        assert text == '{"t":"q","i":"a1","m":"add","a":[2,3]}'

    def test_serialize_keeps_unicode(self):
        text = JsonCodec().serialize({"t": "q", "m": "greet", "a": ["héllo"]})

        assert "héllo" in text

    def test_error_becomes_payload(self):
        """Exceptions cannot travel as JSON; name and message do."""
        text = JsonCodec().serialize({"t": "s", "i": "a1", "e": ValueError("bad args")})

        assert json.loads(text)["e"] == {"name": "ValueError", "message": "bad args"}

    def test_tuples_and_sets_become_lists(self):
        text = JsonCodec().serialize({"t": "s", "i": "a1", "r": (1, 2)})

        assert json.loads(text)["r"] == [1, 2]

    def test_deserialize_bytes(self):
        data = JsonCodec().deserialize(b'{"t":"s","i":"a1","r":5}')

        assert data == {"t": "s", "i": "a1", "r": 5}

    def test_hooks(self):
        codec = JsonCodec()
        hooks = codec.hooks()

        assert hooks["serialize"] == codec.serialize
        assert hooks["deserialize"] == codec.deserialize


class TestErrorMapping:
    """Test turning response errors into exceptions."""

    def test_exception_is_kept(self):
        error = ValueError("bad args")

        assert as_exception(error) is error

    def test_payload_becomes_remote_error(self):
        exc = as_exception(error_to_payload(KeyError("missing")))

        assert isinstance(exc, RemoteError)
        assert exc.name == "KeyError"
        assert exc.message == "'missing'"
        assert str(exc) == "KeyError: 'missing'"

    def test_plain_value_becomes_remote_error(self):
        exc = as_exception("boom")

        assert isinstance(exc, RemoteError)
        assert exc.name is None
        assert str(exc) == "boom"
        assert exc.error == "boom"

    def test_dict_without_message(self):
        exc = RemoteError.from_payload({"code": 3})

        assert exc.message == "{'code': 3}"

    def test_timeout_error_hierarchy(self):
        exc = RpcTimeoutError("add", 50)

        assert isinstance(exc, TimeoutError)
        assert isinstance(exc, RpcError)
        assert exc.method == "add"
        assert str(exc) == 'timeout on calling "add" after 50ms'

    def test_method_not_found(self):
        exc = MethodNotFoundError("nope")

        assert isinstance(exc, LookupError)
        assert str(exc) == 'method "nope" not found'
