from __future__ import annotations

import importlib
import pkgutil

import pytest

import clickhouse_http


def _module_names() -> list[str]:
    names = [clickhouse_http.__name__]
    for info in pkgutil.walk_packages(clickhouse_http.__path__, prefix=f"{clickhouse_http.__name__}."):
        names.append(info.name)
    return sorted(names)


def test_package_tree_is_discovered():
    names = _module_names()
    assert "clickhouse_http.connection" in names
    assert "clickhouse_http.core.codec" in names


@pytest.mark.parametrize("module_name", _module_names())
def test_module_exports_resolve(module_name: str):
    module = importlib.import_module(module_name)
    exported = getattr(module, "__all__", None)

    assert isinstance(exported, list), f"{module_name} has no __all__ list"
    assert len(exported) == len(set(exported)), f"{module_name} exports a name twice"
    unresolved = [name for name in exported if not hasattr(module, name)]
    assert unresolved == []
