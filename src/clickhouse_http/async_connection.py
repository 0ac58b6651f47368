"""Asyncio HTTP connection."""

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
from .core.codec import AsyncDecoder, Block, Encoder
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
from .core.response import aread_response, is_success, server_error
from .core.rows import AsyncRows

logger = logging.getLogger("clickhouse_http")


class AsyncHttpConnection:
    """Asynchronous connection; cancel the awaiting task to abort a request."""

    def __init__(
        self,
        url: httpx.URL,
        client: httpx.AsyncClient,
        *,
        headers: Mapping[str, str] | None = None,
        timeout: httpx.Timeout | None = None,
        connection_id: int = 0,
    ) -> None:
        self.url = url
        self.connection_id = connection_id
        self._client: httpx.AsyncClient | None = client
        self._headers = dict(headers or {})
        self._timeout = timeout
        self._location: tzinfo | None = None
        self._encoder = Encoder()
        self._decoder = AsyncDecoder()

    @property
    def location(self) -> tzinfo | None:
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

    async def execute_request(self, request: httpx.Request) -> httpx.Response:
        client = self._client
        if client is None:
            raise ConnectionClosedError("connection is closed")
        logger.debug(
            "request start connection_id=%s query_id=%s",
            self.connection_id,
            request.url.params.get("query_id"),
        )
        try:
            response = await client.send(request, stream=True)
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
            body = await aread_response(response)
            raise server_error(response, body)
        return response

    async def query(self, query: str, options: QueryOptions | None = None) -> AsyncRows:
        request = self.prepare_request(query.encode("utf-8"), options)
        response = await self.execute_request(request)
        decoder = AsyncDecoder()
        decoder.attach(response.aiter_bytes())
        self._decoder = decoder
        try:
            first_block = await self._read_block(decoder)
        except BaseException:
            decoder.detach()
            await response.aclose()
            raise
        return AsyncRows(response, first_block, partial(self._read_block, decoder), decoder.detach)

    async def exec(self, query: str, options: QueryOptions | None = None) -> None:
        request = self.prepare_request(query.encode("utf-8"), options)
        await aread_response(await self.execute_request(request))

    async def insert(
        self,
        query: str,
        blocks: Iterable[Block],
        options: QueryOptions | None = None,
    ) -> None:
        body = io.BytesIO()
        self._encoder.attach(body)
        try:
            for block in blocks:
                self.write_data(block)
        finally:
            self._encoder.detach()
        request = self.prepare_request(body.getvalue(), with_statement(options, query))
        await aread_response(await self.execute_request(request))

    def write_data(self, block: Block) -> None:
        self._encoder.encode_block(block, PROTOCOL_REVISION)

    async def read_data(self) -> Block | None:
        return await self._read_block(self._decoder)

    async def _read_block(self, decoder: AsyncDecoder) -> Block | None:
        try:
            return await decoder.decode_block(PROTOCOL_REVISION)
        except httpx.HTTPError as exc:
            raise ReadError("failed to read the response", cause="network") from exc

    async def async_insert(self, query: str, wait: bool) -> None:
        raise UnsupportedOperationError("HTTP: not supported")

    async def ping(self) -> None:
        async with await self.query(PING_QUERY) as rows:
            check_ping_columns(rows.columns)

    async def close(self) -> None:
        client = self._client
        if client is None:
            return
        self._client = None
        await client.aclose()
        logger.info("connection closed connection_id=%s", self.connection_id)

    async def _handshake(self) -> None:
        async with await self.query(HANDSHAKE_QUERY) as rows:
            names = [row[0] if row else None async for row in rows]
        self._location = resolve_location(names)

    async def __aenter__(self) -> "AsyncHttpConnection":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        await self.close()
        return False


async def dial_http_async(
    addr: str,
    num: int,
    options: ConnectionOptions,
    *,
    transport: httpx.AsyncBaseTransport | None = None,
) -> AsyncHttpConnection:
    validate_connection_options(options)
    try:
        url = build_endpoint_url(options.scheme, addr, options.settings)
    except ClickHouseHttpError as exc:
        raise ConnectError(str(exc)) from exc

    timeout = build_default_timeout(options)
    client = httpx.AsyncClient(
        transport=transport or httpx.AsyncHTTPTransport(**build_transport_kwargs(options)),
        timeout=timeout,
    )
    conn = AsyncHttpConnection(
        url,
        client,
        headers=build_default_headers(options),
        timeout=timeout,
        connection_id=num,
    )
    try:
        await conn._handshake()
    except ConnectError:
        await conn.close()
        raise
    except ClickHouseHttpError as exc:
        await conn.close()
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
    "AsyncHttpConnection",
    "dial_http_async",
]
