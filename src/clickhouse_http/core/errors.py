"""Error types raised by the HTTP connection."""

from __future__ import annotations


class ClickHouseHttpError(Exception):
    """Base exception for this package."""

    def __init__(
        self,
        message: str,
        *,
        http_status: int | None = None,
        code: int | None = None,
        cause: str | None = None,
    ) -> None:
        super().__init__(message)
        self.http_status = http_status
        self.code = code
        self.cause = cause


class ConnectError(ClickHouseHttpError):
    """Dial or handshake failure."""


class PingError(ClickHouseHttpError):
    """Liveness check failed."""


class ConnectionClosedError(ClickHouseHttpError):
    """Raised when a closed connection is used.

    Upstream reconnect logic should dispatch on this type.
    """


class NetworkError(ClickHouseHttpError):
    """Network/transport-level failure."""


class ServerError(ClickHouseHttpError):
    """Server answered with a non-OK status."""

    def __init__(
        self,
        http_status: int,
        body: str,
        *,
        code: int | None = None,
    ) -> None:
        super().__init__(
            f"clickhouse [execute]:: {http_status} code: {body}",
            http_status=http_status,
            code=code,
            cause="server",
        )
        self.body = body


class ReadError(ClickHouseHttpError):
    """Response body could not be drained."""


class EncodeError(ClickHouseHttpError):
    """Block could not be encoded."""


class DecodeError(ClickHouseHttpError):
    """Block could not be decoded."""


class UnsupportedOperationError(ClickHouseHttpError):
    """Operation is not available over this transport."""


class RequestConstructionError(ClickHouseHttpError):
    """Outbound request could not be built."""


def parse_exception_code(value: str | None) -> int | None:
    if value is None:
        return None
    text = value.strip()
    if text.isdigit():
        return int(text)
    return None


__all__ = [
    "ClickHouseHttpError",
    "ConnectError",
    "PingError",
    "ConnectionClosedError",
    "NetworkError",
    "ServerError",
    "ReadError",
    "EncodeError",
    "DecodeError",
    "UnsupportedOperationError",
    "RequestConstructionError",
    "parse_exception_code",
]
