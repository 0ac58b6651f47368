"""Synchronous HTTP connection."""

from __future__ import annotations

import io
import logging
from functools import partial
from collections.abc import Iterable, Mapping
from datetime import tzinfo
from types import TracebackType

import httpx

from .config import ConnectionOptions
from .connection_shared import (
    HANDSHAKE_QUERY,
    PING_QUERY,
    PROTOCOL_REVISION,
    build_default_headers,
    build_default_timeout,
    build_transport_kwargs,
    check_ping_columns,
    resolve_location,
    validate_connection_options,
)
from .core.codec import Block, Decoder, Encoder
from .core.errors import (
    ClickHouseHttpError,
    ConnectError,
    ConnectionClosedError,
    NetworkError,
    ReadError,
    UnsupportedOperationError,
)
from .core.request import (
    QueryOptions,
    RequestBody,
    build_endpoint_url,
    prepare_request,
    with_statement,
)
from .core.response import is_success, read_response, server_error
from .core.rows import Rows

logger = logging.getLogger("clickhouse_http")


class HttpConnection:
    """One logical connection to a ClickHouse HTTP endpoint."""

    def __init__(
        self,
        url: httpx.URL,
        client: httpx.Client,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: httpx.Timeout | None = None,
        connection_id: int = 0,
    ) -> None:
        self.url = url
        self.connection_id = connection_id
        self._client: httpx.Client | None = client
        self._headers = dict(headers or {})
        self._timeout = timeout
        self._location: tzinfo | None = None
        self._encoder = Encoder()
        self._decoder = Decoder()

    @property
    def location(self) -> tzinfo | None:
        """Server timezone learned during the handshake."""

        return self._location

    def is_bad(self) -> bool:
        return self._client is None

    def prepare_request(self, body: RequestBody, options: QueryOptions | None = None) -> httpx.Request:
        return prepare_request(
            self.url,
            body,
            options,
            headers=self._headers,
            timeout=self._timeout,
        )

    def execute_request(self, request: httpx.Request) -> httpx.Response:
        """Send ``request`` and return the open response on HTTP 200.

        The caller owns the returned response and must close it.
        """

        client = self._client
        if client is None:
            raise ConnectionClosedError("connection is closed")
        logger.debug(
            "request start connection_id=%s query_id=%s",
            self.connection_id,
            request.url.params.get("query_id"),
        )
        try:
            response = client.send(request, stream=True)
        except httpx.TransportError as exc:
            logger.error(
                "request network error connection_id=%s error=%s",
                self.connection_id,
                exc.__class__.__name__,
            )
            raise NetworkError("network/transport error", cause="network") from exc
        logger.debug(
            "response received connection_id=%s http_status=%s",
            self.connection_id,
            response.status_code,
        )
        if not is_success(response):
            body = read_response(response)
            raise server_error(response, body)
        return response

    def query(self, query: str, options: QueryOptions | None = None) -> Rows:
        """Run ``query`` and stream its result.

        Every call gets its own decoder, so rows opened earlier keep reading
        their own response.
        """

        request = self.prepare_request(query.encode("utf-8"), options)
        response = self.execute_request(request)
        decoder = Decoder()
        decoder.attach(response.iter_bytes())
        self._decoder = decoder
        try:
            first_block = self._read_block(decoder)
        except BaseException:
            response.close()
            decoder.detach()
            raise
        return Rows(response, first_block, partial(self._read_block, decoder), decoder.detach)

    def exec(self, query: str, options: QueryOptions | None = None) -> None:
        request = self.prepare_request(query.encode("utf-8"), options)
        read_response(self.execute_request(request))

    def insert(
        self,
        query: str,
        blocks: Iterable[Block],
        options: QueryOptions | None = None,
    ) -> None:
        """Send ``blocks`` as the Native payload of an ``INSERT ... FORMAT Native`` statement."""

        body = io.BytesIO()
        self._encoder.attach(body)
        try:
            for block in blocks:
                self.write_data(block)
        finally:
            self._encoder.detach()
        request = self.prepare_request(body.getvalue(), with_statement(options, query))
        read_response(self.execute_request(request))

    def write_data(self, block: Block) -> None:
        self._encoder.encode_block(block, PROTOCOL_REVISION)

    def read_data(self) -> Block | None:
        """Decode the next block of the current response, ``None`` at end of stream."""

        return self._read_block(self._decoder)

    def _read_block(self, decoder: Decoder) -> Block | None:
        try:
            return Block.decode(decoder, PROTOCOL_REVISION)
        except httpx.HTTPError as exc:
            raise ReadError("failed to read the response", cause="network") from exc

    def async_insert(self, query: str, wait: bool) -> None:
        raise UnsupportedOperationError("HTTP: not supported")

    def ping(self) -> None:
        with self.query(PING_QUERY) as rows:
            check_ping_columns(rows.columns)

    def close(self) -> None:
        client = self._client
        if client is None:
            return
        self._client = None
        client.close()
        logger.info("connection closed connection_id=%s", self.connection_id)

    def _handshake(self) -> None:
        with self.query(HANDSHAKE_QUERY) as rows:
            names = [row[0] if row else None for row in rows]
        self._location = resolve_location(names)

    def __enter__(self) -> "HttpConnection":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        self.close()
        return False


def dial_http(
    addr: str,
    num: int,
    options: ConnectionOptions,
    *,
    transport: httpx.BaseTransport | None = None,
) -> HttpConnection:
    """Open a connection to ``addr`` and resolve the server timezone."""

    validate_connection_options(options)
    try:
        url = build_endpoint_url(options.scheme, addr, options.settings)
    except ClickHouseHttpError as exc:
        raise ConnectError(str(exc)) from exc

    timeout = build_default_timeout(options)
    client = httpx.Client(
        transport=transport or httpx.HTTPTransport(**build_transport_kwargs(options)),
        timeout=timeout,
    )
    conn = HttpConnection(
        url,
        client,
        headers=build_default_headers(options),
        timeout=timeout,
        connection_id=num,
    )
    try:
        conn._handshake()
    except ConnectError:
        conn.close()
        raise
    except ClickHouseHttpError as exc:
        conn.close()
        logger.error("dial failed addr=%s connection_id=%s error=%s", addr, num, exc)
        raise ConnectError(f"clickhouse [dial]:: {exc}", cause="handshake") from exc

    logger.info(
        "dial success addr=%s connection_id=%s location=%s",
        addr,
        num,
        conn.location,
    )
    return conn


__all__ = [
    "HttpConnection",
    "dial_http",
]
