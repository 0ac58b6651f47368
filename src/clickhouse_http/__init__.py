"""Public package exports for the ClickHouse HTTP connection."""

from .async_connection import AsyncHttpConnection, dial_http_async
from .config import Auth, ConnectionOptions, TransportConfig
from .connection import HttpConnection, dial_http
from .core.codec import Block, Column
from .core.errors import (
    ClickHouseHttpError,
    ConnectError,
    ConnectionClosedError,
    DecodeError,
    EncodeError,
    NetworkError,
    PingError,
    ReadError,
    RequestConstructionError,
    ServerError,
    UnsupportedOperationError,
)
from .core.request import QueryOptions

__all__ = [
    "HttpConnection",
    "AsyncHttpConnection",
    "dial_http",
    "dial_http_async",
    "ConnectionOptions",
    "TransportConfig",
    "Auth",
    "QueryOptions",
    "Block",
    "Column",
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
]
