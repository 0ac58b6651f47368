from __future__ import annotations

from dataclasses import FrozenInstanceError

import httpx
import pytest

from clickhouse_http.config import Auth, ConnectionOptions, TransportConfig
from clickhouse_http.connection_shared import (
    build_default_headers,
    build_default_timeout,
    build_keepalive_socket_options,
    build_limits,
)


def test_options_are_immutable():
    options = ConnectionOptions()
    with pytest.raises(FrozenInstanceError):
        options.scheme = "https"  # type: ignore[misc]


def test_default_options_validate():
    ConnectionOptions().validate()


@pytest.mark.parametrize(
    "options",
    [
        ConnectionOptions(addr=()),
        ConnectionOptions(addr=("",)),
        ConnectionOptions(scheme="tcp"),
        ConnectionOptions(settings={"": 1}),
    ],
    ids=["no-addr", "empty-addr", "bad-scheme", "empty-setting-key"],
)
def test_options_validate_rejects_invalid_values(options: ConnectionOptions):
    with pytest.raises(ValueError):
        options.validate()


@pytest.mark.parametrize(
    "field",
    ["dial_timeout_seconds", "conn_max_lifetime_seconds", "read_timeout_seconds"],
)
def test_transport_validate_rejects_non_positive_values(field: str):
    options = ConnectionOptions(transport=TransportConfig(**{field: 0.0}))
    with pytest.raises(ValueError, match=f"transport.{field} must be > 0"):
        options.validate()


def test_transport_keeps_one_idle_connection_for_configured_lifetime():
    options = ConnectionOptions(transport=TransportConfig(conn_max_lifetime_seconds=42.0))

    limits = build_limits(options)

    assert limits.max_keepalive_connections == 1
    assert limits.keepalive_expiry == 42.0
    assert build_keepalive_socket_options(options)[0][2] == 1


def test_timeouts_follow_config():
    options = ConnectionOptions(
        transport=TransportConfig(dial_timeout_seconds=2.0, read_timeout_seconds=9.0)
    )

    timeout = build_default_timeout(options)

    assert timeout == httpx.Timeout(connect=2.0, read=9.0, write=9.0, pool=2.0)


def test_headers_omit_empty_password_and_database():
    headers = build_default_headers(ConnectionOptions(auth=Auth(username="reader")))

    assert headers["X-ClickHouse-User"] == "reader"
    assert "X-ClickHouse-Key" not in headers
    assert "X-ClickHouse-Database" not in headers
