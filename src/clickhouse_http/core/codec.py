"""Native block codec bound to the stream of the current request.

Column payloads are read and written by ``clickhouse_connect``'s type registry;
this module only frames blocks and binds the codec to a byte stream.
"""

from __future__ import annotations

import asyncio
import queue
import struct
from collections.abc import AsyncIterable, Iterable, Iterator, Sequence
from dataclasses import dataclass, field
from typing import Protocol

from clickhouse_connect.datatypes.registry import get_from_name
from clickhouse_connect.driver.common import write_leb128
from clickhouse_connect.driver.ctypes import RespBuffCls
from clickhouse_connect.driver.exceptions import ClickHouseError, StreamCompleteException
from clickhouse_connect.driver.insert import InsertContext
from clickhouse_connect.driver.query import QueryContext

from .errors import DecodeError, EncodeError

# Servers at or above this revision prefix each block with a BlockInfo header.
BLOCK_INFO_REVISION = 51903
_BLOCK_INFO = b"\x01\x00\x02\xff\xff\xff\xff\x00"

_ENCODE_FAILURES = (ClickHouseError, TypeError, ValueError, AttributeError, OverflowError, struct.error)
_DECODE_FAILURES = (ClickHouseError, ValueError, UnicodeDecodeError, struct.error)


@dataclass(slots=True)
class Column:
    name: str
    type: str
    values: list[object] = field(default_factory=list)


@dataclass(slots=True)
class Block:
    """One unit of tabular data in Native format."""

    columns: list[Column] = field(default_factory=list)

    @property
    def num_rows(self) -> int:
        if not self.columns:
            return 0
        return len(self.columns[0].values)

    @property
    def column_names(self) -> list[str]:
        return [column.name for column in self.columns]

    @property
    def column_types(self) -> list[str]:
        return [column.type for column in self.columns]

    def append_column(self, name: str, type_name: str, values: Sequence[object]) -> None:
        self.columns.append(Column(name=name, type=type_name, values=list(values)))

    def rows(self) -> Iterator[tuple[object, ...]]:
        return zip(*(column.values for column in self.columns))

    def encode(self, encoder: "Encoder", revision: int) -> None:
        encoder.encode_block(self, revision)

    @classmethod
    def decode(cls, decoder: "Decoder", revision: int) -> "Block | None":
        return decoder.decode_block(revision)


class ByteSink(Protocol):
    def write(self, data: bytes, /) -> object: ...


def _put_string(out: bytearray, value: str) -> None:
    raw = value.encode("utf-8")
    write_leb128(len(raw), out)
    out += raw


class Encoder:
    """Writes Native blocks to the attached sink."""

    def __init__(self) -> None:
        self._sink: ByteSink | None = None

    def attach(self, sink: ByteSink) -> None:
        self._sink = sink

    def detach(self) -> None:
        self._sink = None

    def encode_block(self, block: Block, revision: int) -> None:
        if self._sink is None:
            raise EncodeError("encoder is not attached to a stream")
        num_rows = block.num_rows
        out = bytearray()
        if revision >= BLOCK_INFO_REVISION:
            out += _BLOCK_INFO
        write_leb128(len(block.columns), out)
        write_leb128(num_rows, out)
        try:
            column_types = [get_from_name(column.type) for column in block.columns]
            context = InsertContext("", block.column_names, column_types)
            for column, column_type in zip(block.columns, column_types):
                if len(column.values) != num_rows:
                    raise EncodeError(
                        f"column {column.name!r} has {len(column.values)} values, expected {num_rows}"
                    )
                _put_string(out, column.name)
                _put_string(out, column.type)
                if num_rows:
                    context.start_column(column.name)
                    column_type.write_column(column.values, out, context)
        except _ENCODE_FAILURES as exc:
            raise EncodeError(f"cannot encode block: {exc}") from exc
        self._sink.write(bytes(out))


class _ChunkSource:
    """Chunk source in the shape ``ResponseBuffer`` pulls from."""

    def __init__(self, chunks: Iterable[bytes]) -> None:
        # an empty chunk reads as end of stream
        self.gen = (chunk for chunk in chunks if chunk)

    def close(self) -> None:
        self.gen.close()


class Decoder:
    """Reads Native blocks from the attached chunk iterator.

    The buffer pulls another chunk only when a read runs past the bytes it holds.
    """

    def __init__(self) -> None:
        self._source: object | None = None
        self._context = QueryContext()

    def attach(self, chunks: Iterable[bytes]) -> None:
        self.attach_source(_ChunkSource(chunks))

    def attach_source(self, source: object) -> None:
        self._source = RespBuffCls(source)

    def detach(self) -> None:
        self._source = None

    def decode_block(self, revision: int) -> Block | None:
        """Return the next block, or ``None`` at a clean end of stream."""

        source = self._source
        if source is None:
            raise DecodeError("decoder is not attached to a stream")
        try:
            if revision >= BLOCK_INFO_REVISION:
                source.read_bytes(len(_BLOCK_INFO))
            num_columns = source.read_leb128()
        except StreamCompleteException:
            return None
        block = Block()
        try:
            num_rows = source.read_leb128()
            for _ in range(num_columns):
                name = source.read_leb128_str()
                type_name = source.read_leb128_str()
                values: Sequence[object] = ()
                if num_rows:
                    self._context.start_column(name)
                    values = get_from_name(type_name).read_column(source, num_rows, self._context)
                block.append_column(name, type_name, values)
        except StreamCompleteException as exc:
            raise DecodeError("unexpected end of stream inside a block") from exc
        except _DECODE_FAILURES as exc:
            raise DecodeError(f"malformed native block: {exc}") from exc
        return block


_END = object()


class _QueueSource:
    """Chunks pumped from the event loop, drained by a worker thread."""

    def __init__(self) -> None:
        self._queue: queue.SimpleQueue[object] = queue.SimpleQueue()
        self.gen = self._drain()

    def put(self, item: object) -> None:
        self._queue.put(item)

    def _drain(self) -> Iterator[bytes]:
        while True:
            item = self._queue.get()
            if item is _END:
                return
            if isinstance(item, BaseException):
                raise item
            yield item  # type: ignore[misc]

    def close(self) -> None:
        return None


class AsyncDecoder:
    """Reads Native blocks from an async chunk iterator.

    A task pumps chunks into a queue while the blocking decoder runs in a worker
    thread, so the event loop is never blocked on parsing.
    """

    def __init__(self) -> None:
        self._decoder = Decoder()
        self._chunks: AsyncIterable[bytes] | None = None
        self._source: _QueueSource | None = None
        self._pump: asyncio.Task[None] | None = None

    def attach(self, chunks: AsyncIterable[bytes]) -> None:
        self.detach()
        self._chunks = chunks
        self._source = _QueueSource()
        self._decoder.attach_source(self._source)

    def detach(self) -> None:
        if self._pump is not None:
            self._pump.cancel()
            self._pump = None
        self._chunks = None
        self._source = None
        self._decoder.detach()

    async def decode_block(self, revision: int) -> Block | None:
        if self._source is None or self._chunks is None:
            raise DecodeError("decoder is not attached to a stream")
        if self._pump is None:
            self._pump = asyncio.create_task(_pump(self._chunks, self._source))
        return await asyncio.to_thread(self._decoder.decode_block, revision)


async def _pump(chunks: AsyncIterable[bytes], source: _QueueSource) -> None:
    try:
        async for chunk in chunks:
            if chunk:
                source.put(chunk)
    except Exception as exc:
        source.put(exc)
    finally:
        source.put(_END)


__all__ = [
    "BLOCK_INFO_REVISION",
    "Column",
    "Block",
    "Encoder",
    "Decoder",
    "AsyncDecoder",
]
