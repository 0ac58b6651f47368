"""Outbound request construction."""

from __future__ import annotations

from collections.abc import AsyncIterable, Iterable, Mapping
from dataclasses import dataclass, field, replace

import httpx

from .errors import RequestConstructionError

DEFAULT_FORMAT_PARAM_NAME = "default_format"
DEFAULT_FORMAT = "Native"
QUERY_ID_PARAM_NAME = "query_id"
QUOTA_KEY_PARAM_NAME = "quota_key"
QUERY_PARAM_NAME = "query"

RequestBody = bytes | Iterable[bytes] | AsyncIterable[bytes]


@dataclass(slots=True, frozen=True)
class QueryOptions:
    """Request-scoped parameters."""

    query_id: str = ""
    quota_key: str = ""
    settings: Mapping[str, object] = field(default_factory=dict)


def with_statement(options: QueryOptions | None, query: str) -> QueryOptions:
    """Carry ``query`` in the URL so the body can hold the insert payload."""

    base = options or QueryOptions()
    return replace(base, settings={**base.settings, QUERY_PARAM_NAME: query})


def format_setting(value: object) -> str:
    if isinstance(value, bool):
        return "1" if value else "0"
    return str(value)


def build_endpoint_url(scheme: str, addr: str, settings: Mapping[str, object]) -> httpx.URL:
    """Build the connection URL with default settings baked into the query string."""

    params = {key: format_setting(value) for key, value in settings.items()}
    params[DEFAULT_FORMAT_PARAM_NAME] = DEFAULT_FORMAT
    try:
        return httpx.URL(f"{scheme}://{addr}", params=params)
    except httpx.InvalidURL as exc:
        raise RequestConstructionError(f"invalid endpoint address {addr!r}") from exc


def merge_query_params(
    params: httpx.QueryParams,
    options: QueryOptions,
) -> httpx.QueryParams:
    if options.query_id:
        params = params.set(QUERY_ID_PARAM_NAME, options.query_id)
    if options.quota_key:
        params = params.set(QUOTA_KEY_PARAM_NAME, options.quota_key)
    for key, value in options.settings.items():
        # the connection-level format must not change
        if key == DEFAULT_FORMAT_PARAM_NAME:
            continue
        params = params.set(key, format_setting(value))
    return params


def prepare_request(
    url: httpx.URL,
    body: RequestBody,
    options: QueryOptions | None,
    *,
    headers: Mapping[str, str] | None = None,
    timeout: httpx.Timeout | None = None,
) -> httpx.Request:
    """Build a POST request to ``url`` carrying ``body`` untouched."""

    target = url
    if options is not None:
        target = url.copy_with(params=merge_query_params(url.params, options))
    extensions = {"timeout": timeout.as_dict()} if timeout is not None else None
    try:
        return httpx.Request("POST", target, content=body, headers=headers, extensions=extensions)
    except (httpx.InvalidURL, TypeError) as exc:
        raise RequestConstructionError("cannot build request") from exc


__all__ = [
    "DEFAULT_FORMAT_PARAM_NAME",
    "DEFAULT_FORMAT",
    "QUERY_ID_PARAM_NAME",
    "QUOTA_KEY_PARAM_NAME",
    "QUERY_PARAM_NAME",
    "QueryOptions",
    "with_statement",
    "format_setting",
    "build_endpoint_url",
    "merge_query_params",
    "prepare_request",
]
