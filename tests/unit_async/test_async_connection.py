from __future__ import annotations

import asyncio

import httpx
import pytest

from clickhouse_http.async_connection import AsyncHttpConnection, dial_http_async
from clickhouse_http.core.errors import (
    ConnectError,
    ConnectionClosedError,
    PingError,
    ServerError,
    UnsupportedOperationError,
)
from clickhouse_http.core.request import QueryOptions
from tests.shared.server import (
    FakeClickHouse,
    build_options,
    chunked,
    decode_body,
    make_block,
    native_body,
)


async def _dial(server: FakeClickHouse) -> AsyncHttpConnection:
    return await dial_http_async("ch.local:8123", 2, build_options(), transport=server.transport())


@pytest.mark.asyncio
async def test_async_dial_resolves_timezone(server: FakeClickHouse):
    conn = await _dial(server)
    assert str(conn.location) == "Europe/Berlin"
    await conn.close()


@pytest.mark.asyncio
async def test_async_dial_without_rows_leaves_location_unset(server: FakeClickHouse):
    server.set_timezones([])
    conn = await _dial(server)
    assert conn.location is None
    await conn.close()


@pytest.mark.asyncio
async def test_async_dial_wraps_handshake_failure(server: FakeClickHouse):
    server.route("SELECT timeZone()", lambda _: httpx.Response(502, text="bad gateway"))

    with pytest.raises(ConnectError) as exc_info:
        await _dial(server)

    assert isinstance(exc_info.value.__cause__, ServerError)
    assert server.transports[-1].closed is True


@pytest.mark.asyncio
async def test_async_ping_and_close(server: FakeClickHouse):
    async with await _dial(server) as conn:
        await conn.ping()
        assert conn.is_bad() is False
    assert conn.is_bad() is True
    await conn.close()


@pytest.mark.asyncio
async def test_async_ping_rejects_unexpected_column(server: FakeClickHouse):
    conn = await _dial(server)
    server.route("SELECT 1", lambda _: server.native(make_block(("x", "UInt8", [1]))))
    with pytest.raises(PingError):
        await conn.ping()
    await conn.close()


@pytest.mark.asyncio
async def test_async_closed_connection_fails_without_network_io(server: FakeClickHouse):
    conn = await _dial(server)
    await conn.close()
    calls = server.calls

    with pytest.raises(ConnectionClosedError):
        await conn.query("SELECT 1")

    assert server.calls == calls


@pytest.mark.asyncio
@pytest.mark.parametrize("wait", [True, False])
async def test_async_insert_is_never_supported(server: FakeClickHouse, wait: bool):
    conn = await _dial(server)
    with pytest.raises(UnsupportedOperationError):
        await conn.async_insert("", wait)
    await conn.close()


@pytest.mark.asyncio
async def test_async_query_decodes_streamed_chunks(server: FakeClickHouse):
    conn = await _dial(server)
    payload = native_body(
        make_block(("n", "Int64", [-1, 0]), ("s", "Nullable(String)", [None, "b"])),
        make_block(("n", "Int64", [1]), ("s", "Nullable(String)", ["c"])),
    )

    async def _chunks():
        for chunk in chunked(payload, 5):
            yield chunk

    server.route("SELECT n, s FROM t", lambda _: httpx.Response(200, content=_chunks()))

    async with await conn.query("SELECT n, s FROM t", QueryOptions(query_id="a1")) as rows:
        assert rows.columns == ["n", "s"]
        result = [row async for row in rows]

    assert result == [(-1, None), (0, "b"), (1, "c")]
    assert server.requests[-1].url.params["query_id"] == "a1"
    await conn.close()


@pytest.mark.asyncio
async def test_async_open_rows_keep_reading_their_own_response(server: FakeClickHouse):
    conn = await _dial(server)

    def _stream(*blocks):
        payload = native_body(*blocks)

        async def _chunks():
            for chunk in chunked(payload, 3):
                yield chunk

        return lambda _: httpx.Response(200, content=_chunks())

    server.route("SELECT a", _stream(make_block(("a", "UInt8", [1])), make_block(("a", "UInt8", [2]))))
    server.route("SELECT b", _stream(make_block(("b", "String", ["x"])), make_block(("b", "String", ["y"]))))

    first = await conn.query("SELECT a")
    second = await conn.query("SELECT b")

    assert [row async for row in first] == [(1,), (2,)]
    assert [row async for row in second] == [("x",), ("y",)]
    await conn.close()


@pytest.mark.asyncio
async def test_async_insert_round_trips_blocks(server: FakeClickHouse):
    conn = await _dial(server)
    statement = "INSERT INTO t FORMAT Native"
    server.route(statement, lambda _: httpx.Response(200))
    blocks = [make_block(("id", "UInt16", [7, 8]))]

    await conn.insert(statement, blocks)

    assert decode_body(server.requests[-1].content) == blocks
    await conn.close()


@pytest.mark.asyncio
async def test_async_query_can_be_cancelled(server: FakeClickHouse):
    conn = await _dial(server)
    started = asyncio.Event()

    async def _slow(request: httpx.Request) -> httpx.Response:
        started.set()
        await asyncio.sleep(10)
        return httpx.Response(200)

    server.route("SELECT sleep(10)", _slow)  # type: ignore[arg-type]
    task = asyncio.create_task(conn.query("SELECT sleep(10)"))
    await started.wait()
    task.cancel()

    with pytest.raises(asyncio.CancelledError):
        await task
    await conn.close()
