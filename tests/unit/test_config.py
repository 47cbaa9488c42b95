"""Unit tests for RpcOptions."""

import pytest

from duplex_rpc.config import DEFAULT_TIMEOUT, RpcOptions


class TestDefaults:
    def test_defaults(self):
        options = RpcOptions()

        assert options.timeout == DEFAULT_TIMEOUT == 60_000
        assert options.event_names == frozenset()
        assert options.timeout_enabled is True
        assert options.timeout_seconds == 60

    def test_negative_timeout_disables(self):
        assert RpcOptions(timeout=-1).timeout_enabled is False

    def test_zero_timeout_is_enabled(self):
        assert RpcOptions(timeout=0).timeout_enabled is True

    def test_event_names_normalized(self):
        options = RpcOptions(event_names=["log", "notify"])

        assert options.event_names == frozenset({"log", "notify"})
        assert options.is_event("log") is True
        assert options.is_event("add") is False


class TestOverrides:
    def test_merged_ignores_none(self):
        base = RpcOptions(timeout=100, event_names={"log"})

        merged = base.merged(timeout=None, event_names=None)

        assert merged == base

    def test_merged_applies_values(self):
        merged = RpcOptions().merged(timeout=5, event_names=["log"])

        assert merged.timeout == 5
        assert merged.event_names == frozenset({"log"})

    def test_build_without_base(self):
        options = RpcOptions.build(timeout=-1)

        assert options.timeout == -1
        assert options.event_names == frozenset()

    def test_build_keeps_base(self):
        base = RpcOptions(timeout=10)

        assert RpcOptions.build(base, event_names=["x"]).timeout == 10


class TestFromEnv:
    def test_unset_uses_defaults(self, monkeypatch):
        monkeypatch.delenv("DUPLEX_RPC_TIMEOUT", raising=False)
        monkeypatch.delenv("DUPLEX_RPC_EVENT_NAMES", raising=False)

        assert RpcOptions.from_env() == RpcOptions()

    def test_reads_values(self, monkeypatch):
        monkeypatch.setenv("DUPLEX_RPC_TIMEOUT", "2500")
        monkeypatch.setenv("DUPLEX_RPC_EVENT_NAMES", "log, notify,,")

        options = RpcOptions.from_env()

        assert options.timeout == 2500
        assert options.event_names == frozenset({"log", "notify"})

    def test_custom_prefix(self, monkeypatch):
        monkeypatch.setenv("MYAPP_TIMEOUT", "-1")

        assert RpcOptions.from_env(prefix="MYAPP_").timeout_enabled is False

    def test_invalid_timeout(self, monkeypatch):
        monkeypatch.setenv("DUPLEX_RPC_TIMEOUT", "soon")

        with pytest.raises(ValueError, match="DUPLEX_RPC_TIMEOUT"):
            RpcOptions.from_env()
