"""Connection configuration."""

from __future__ import annotations

import ssl
from collections.abc import Mapping
from dataclasses import dataclass, field

SUPPORTED_SCHEMES = ("http", "https")


@dataclass(slots=True, frozen=True)
class TransportConfig:
    """Transport-related settings."""

    dial_timeout_seconds: float = 30.0
    conn_max_lifetime_seconds: float = 3600.0
    read_timeout_seconds: float = 300.0

    def validate(self) -> None:
        for field_name in (
            "dial_timeout_seconds",
            "conn_max_lifetime_seconds",
            "read_timeout_seconds",
        ):
            if getattr(self, field_name) <= 0:
                raise ValueError(f"transport.{field_name} must be > 0")


@dataclass(slots=True, frozen=True)
class Auth:
    """Credentials sent with every request."""

    database: str = ""
    username: str = "default"
    password: str = ""


@dataclass(slots=True, frozen=True)
class ConnectionOptions:
    """Runtime configuration for an HTTP connection."""

    addr: tuple[str, ...] = ("localhost:8123",)
    scheme: str = "http"
    settings: Mapping[str, object] = field(default_factory=dict)
    auth: Auth = field(default_factory=Auth)
    tls: ssl.SSLContext | None = None
    user_agent: str = "clickhouse-http-client/0.1.0"

    transport: TransportConfig = field(default_factory=TransportConfig)

    def validate(self) -> None:
        if not self.addr:
            raise ValueError("addr must not be empty")
        if any(not host for host in self.addr):
            raise ValueError("addr entries must not be empty")
        if self.scheme not in SUPPORTED_SCHEMES:
            raise ValueError(f"scheme must be one of {', '.join(SUPPORTED_SCHEMES)}")
        if any(not isinstance(key, str) or not key for key in self.settings):
            raise ValueError("settings keys must be non-empty strings")
        self.transport.validate()


__all__ = [
    "TransportConfig",
    "Auth",
    "ConnectionOptions",
]
