"""Row iteration over a stream of decoded blocks."""

from __future__ import annotations

from collections.abc import AsyncIterator, Awaitable, Callable, Iterator
from types import TracebackType

import httpx

from .codec import Block


class Rows:
    """Rows of a streamed query result.

    The response stays open until the rows are exhausted or ``close`` is called.
    """

    def __init__(
        self,
        response: httpx.Response,
        first_block: Block | None,
        read_block: Callable[[], Block | None],
        release: Callable[[], object] | None = None,
    ) -> None:
        self._response = response
        self._block = first_block
        self._read_block = read_block
        self._release = release
        self.columns: list[str] = first_block.column_names if first_block else []
        self.column_types: list[str] = first_block.column_types if first_block else []
        self._closed = False

    def __iter__(self) -> Iterator[tuple[object, ...]]:
        try:
            while self._block is not None:
                yield from self._block.rows()
                self._block = self._read_block()
        finally:
            self.close()

    def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._block = None
        try:
            self._response.close()
        finally:
            if self._release is not None:
                self._release()

    def __enter__(self) -> "Rows":
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        self.close()
        return False


class AsyncRows:
    """Async counterpart of :class:`Rows`."""

    def __init__(
        self,
        response: httpx.Response,
        first_block: Block | None,
        read_block: Callable[[], Awaitable[Block | None]],
        release: Callable[[], object] | None = None,
    ) -> None:
        self._response = response
        self._block = first_block
        self._read_block = read_block
        self._release = release
        self.columns: list[str] = first_block.column_names if first_block else []
        self.column_types: list[str] = first_block.column_types if first_block else []
        self._closed = False

    async def __aiter__(self) -> AsyncIterator[tuple[object, ...]]:
        try:
            while self._block is not None:
                for row in self._block.rows():
                    yield row
                self._block = await self._read_block()
        finally:
            await self.close()

    async def close(self) -> None:
        if self._closed:
            return
        self._closed = True
        self._block = None
        try:
            await self._response.aclose()
        finally:
            if self._release is not None:
                self._release()

    async def __aenter__(self) -> "AsyncRows":
        return self

    async def __aexit__(
        self,
        exc_type: type[BaseException] | None,
        exc: BaseException | None,
        tb: TracebackType | None,
    ) -> bool:
        await self.close()
        return False


__all__ = [
    "Rows",
    "AsyncRows",
]
