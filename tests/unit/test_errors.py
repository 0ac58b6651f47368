from __future__ import annotations

import pytest

from clickhouse_http.connection_shared import check_ping_columns, resolve_location
from clickhouse_http.core.errors import (
    ClickHouseHttpError,
    ConnectError,
    ConnectionClosedError,
    PingError,
    ServerError,
    parse_exception_code,
)


def test_all_errors_share_the_package_base():
    for error_type in (ConnectError, PingError, ConnectionClosedError, ServerError):
        assert issubclass(error_type, ClickHouseHttpError)


def test_connection_closed_error_is_matched_by_type_not_message():
    err = ConnectionClosedError("anything at all")
    assert isinstance(err, ConnectionClosedError)
    assert not isinstance(ServerError(500, "connection is closed"), ConnectionClosedError)


def test_server_error_message_format():
    err = ServerError(500, "syntax error", code=62)
    assert str(err) == "clickhouse [execute]:: 500 code: syntax error"
    assert err.code == 62


@pytest.mark.parametrize(("value", "expected"), [("62", 62), (" 60 ", 60), ("x", None), (None, None)])
def test_parse_exception_code(value, expected):
    assert parse_exception_code(value) == expected


def test_resolve_location_with_no_rows_is_none():
    assert resolve_location([]) is None


def test_resolve_location_rejects_non_string_value():
    with pytest.raises(ConnectError):
        resolve_location([None])


@pytest.mark.parametrize("columns", [[], ["2"], ["1", "1"]])
def test_check_ping_columns_rejects_anything_but_single_one(columns):
    with pytest.raises(PingError):
        check_ping_columns(columns)
