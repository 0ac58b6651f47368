from __future__ import annotations

import sys
from pathlib import Path

import pytest

ROOT = Path(__file__).resolve().parents[1]
SRC = ROOT / "src"
if str(SRC) not in sys.path:
    sys.path.insert(0, str(SRC))

from tests.shared.server import FakeClickHouse  # noqa: E402


@pytest.fixture
def server() -> FakeClickHouse:
    return FakeClickHouse()
