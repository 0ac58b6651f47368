"""Response draining and status classification."""

from __future__ import annotations

import logging

import httpx

from .errors import ReadError, ServerError, parse_exception_code

logger = logging.getLogger("clickhouse_http")

EXCEPTION_CODE_HEADER = "X-ClickHouse-Exception-Code"


def _content_length(response: httpx.Response) -> int:
    length = response.headers.get("Content-Length")
    if length is not None and length.isdigit():
        return int(length)
    return 0


class _BodyBuffer:
    """Byte buffer pre-sized to the advertised content length."""

    def __init__(self, size_hint: int) -> None:
        self._data = bytearray(max(size_hint, 0))
        self._size = 0

    def write(self, chunk: bytes) -> None:
        end = self._size + len(chunk)
        if end > len(self._data):
            self._data.extend(bytes(end - len(self._data)))
        self._data[self._size:end] = chunk
        self._size = end

    def getvalue(self) -> bytes:
        return bytes(self._data[: self._size])


def read_response(response: httpx.Response) -> bytes:
    """Drain the whole body and close the response."""

    buffer = _BodyBuffer(_content_length(response))
    try:
        for chunk in response.iter_bytes():
            buffer.write(chunk)
    except httpx.HTTPError as exc:
        raise ReadError("failed to read the response", cause="network") from exc
    finally:
        response.close()
    return buffer.getvalue()


async def aread_response(response: httpx.Response) -> bytes:
    buffer = _BodyBuffer(_content_length(response))
    try:
        async for chunk in response.aiter_bytes():
            buffer.write(chunk)
    except httpx.HTTPError as exc:
        raise ReadError("failed to read the response", cause="network") from exc
    finally:
        await response.aclose()
    return buffer.getvalue()


def is_success(response: httpx.Response) -> bool:
    return response.status_code == httpx.codes.OK


def server_error(response: httpx.Response, body: bytes) -> ServerError:
    text = body.decode("utf-8", errors="replace")
    code = parse_exception_code(response.headers.get(EXCEPTION_CODE_HEADER))
    logger.error(
        "request failed http_status=%s exception_code=%s",
        response.status_code,
        code,
    )
    return ServerError(response.status_code, text, code=code)


__all__ = [
    "EXCEPTION_CODE_HEADER",
    "read_response",
    "aread_response",
    "is_success",
    "server_error",
]
