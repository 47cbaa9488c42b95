"""Configuration for correlators and groups."""

from __future__ import annotations

import os
from collections.abc import Iterable
from dataclasses import dataclass, field, replace
from typing import Any

DEFAULT_TIMEOUT = 60_000.0  # 1 minute, in milliseconds

ENV_PREFIX = "DUPLEX_RPC_"


@dataclass(frozen=True)
class RpcOptions:
    """Options shared by every correlator built from them.

    A negative timeout disables timeout scheduling: calls then wait for
    their response indefinitely.
    """

    # Remote functions that never expect a response
    event_names: frozenset[str] = field(default_factory=frozenset)

    # Milliseconds before an unanswered call fails
    timeout: float = DEFAULT_TIMEOUT

    def __post_init__(self) -> None:
        if not isinstance(self.event_names, frozenset):
            object.__setattr__(self, "event_names", frozenset(self.event_names))

    @property
    def timeout_enabled(self) -> bool:
        return self.timeout >= 0

    @property
    def timeout_seconds(self) -> float:
        return self.timeout / 1000

    def is_event(self, method: str) -> bool:
        return method in self.event_names

    def merged(self, **overrides: Any) -> RpcOptions:
        """Return a copy with the non-None overrides applied."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if "event_names" in changes:
            changes["event_names"] = frozenset(changes["event_names"])
        return replace(self, **changes)

    @classmethod
    def build(
        cls,
        options: RpcOptions | None = None,
        *,
        event_names: Iterable[str] | None = None,
        timeout: float | None = None,
    ) -> RpcOptions:
        """Combine an optional base with keyword overrides."""
        base = options or cls()
        return base.merged(event_names=event_names, timeout=timeout)

    @classmethod
    def from_env(cls, prefix: str = ENV_PREFIX) -> RpcOptions:
        """Load options from environment variables.

        Reads ``<prefix>TIMEOUT`` (milliseconds) and ``<prefix>EVENT_NAMES``
        (comma-separated). Unset variables keep their defaults.

        Raises:
            ValueError: If the timeout is not a number.
        """
        timeout = DEFAULT_TIMEOUT
        if raw_timeout := os.getenv(f"{prefix}TIMEOUT"):
            try:
                timeout = float(raw_timeout)
            except ValueError:
                raise ValueError(f"Invalid {prefix}TIMEOUT: {raw_timeout!r}") from None

        names = os.getenv(f"{prefix}EVENT_NAMES", "")
        event_names = frozenset(n.strip() for n in names.split(",") if n.strip())

        return cls(event_names=event_names, timeout=timeout)
