"""Shared helpers for sync/async HTTP connections."""

from __future__ import annotations

import socket
from collections.abc import Iterable, Mapping, Sequence
from datetime import tzinfo

import httpx
import pytz

from .config import ConnectionOptions
from .core.errors import ConnectError, PingError

HANDSHAKE_QUERY = "SELECT timeZone()"
PING_QUERY = "SELECT 1"
PROTOCOL_REVISION = 0

SocketOption = tuple[int, int, int]


def validate_connection_options(options: ConnectionOptions) -> None:
    try:
        options.validate()
    except ValueError as exc:
        raise ConnectError(str(exc)) from exc


def build_default_headers(options: ConnectionOptions) -> Mapping[str, str]:
    headers = {
        "User-Agent": options.user_agent,
        "X-ClickHouse-User": options.auth.username,
    }
    if options.auth.password:
        headers["X-ClickHouse-Key"] = options.auth.password
    if options.auth.database:
        headers["X-ClickHouse-Database"] = options.auth.database
    return headers


def build_default_timeout(options: ConnectionOptions) -> httpx.Timeout:
    transport = options.transport
    return httpx.Timeout(
        connect=transport.dial_timeout_seconds,
        read=transport.read_timeout_seconds,
        write=transport.read_timeout_seconds,
        pool=transport.dial_timeout_seconds,
    )


def build_limits(options: ConnectionOptions) -> httpx.Limits:
    return httpx.Limits(
        max_keepalive_connections=1,
        keepalive_expiry=options.transport.conn_max_lifetime_seconds,
    )


def build_keepalive_socket_options(options: ConnectionOptions) -> list[SocketOption]:
    interval = max(1, int(options.transport.conn_max_lifetime_seconds))
    socket_options: list[SocketOption] = [(socket.SOL_SOCKET, socket.SO_KEEPALIVE, 1)]
    # not every platform exposes the per-socket knobs
    if hasattr(socket, "TCP_KEEPIDLE"):
        socket_options.append((socket.IPPROTO_TCP, socket.TCP_KEEPIDLE, interval))
    if hasattr(socket, "TCP_KEEPINTVL"):
        socket_options.append((socket.IPPROTO_TCP, socket.TCP_KEEPINTVL, interval))
    return socket_options


def build_transport_kwargs(options: ConnectionOptions) -> dict[str, object]:
    return {
        "verify": options.tls if options.tls is not None else True,
        "limits": build_limits(options),
        "socket_options": build_keepalive_socket_options(options),
        "retries": 0,
    }


def resolve_location(names: Iterable[object]) -> tzinfo | None:
    """Resolve each handshake row to a timezone; the last one wins."""

    location: tzinfo | None = None
    for name in names:
        if not isinstance(name, str):
            raise ConnectError(f"unexpected server timezone value {name!r}")
        try:
            location = pytz.timezone(name)
        except pytz.UnknownTimeZoneError as exc:
            raise ConnectError(f"unknown server timezone {name!r}") from exc
    return location


def check_ping_columns(columns: Sequence[str]) -> None:
    if len(columns) == 1 and columns[0] == "1":
        return
    raise PingError("clickhouse [ping]:: cannot ping clickhouse")


__all__ = [
    "HANDSHAKE_QUERY",
    "PING_QUERY",
    "PROTOCOL_REVISION",
    "validate_connection_options",
    "build_default_headers",
    "build_default_timeout",
    "build_limits",
    "build_keepalive_socket_options",
    "build_transport_kwargs",
    "resolve_location",
    "check_ping_columns",
]
