# Shared pytest fixtures
from __future__ import annotations

import tempfile
from collections.abc import Callable, Sequence
from pathlib import Path

import pandas as pd
import pytest

from inquiry_ingest.logging.init import reset_logging
from inquiry_ingest.models.schema import EXPECTED_HEADERS

HEADERS = list(EXPECTED_HEADERS)


@pytest.fixture(autouse=True)
def _fresh_logging():
    # handler はテストごとの stdout (capsys) に張り直す
    reset_logging()
    yield
    reset_logging()


@pytest.fixture()
def temp_workdir(monkeypatch) -> Path:
    with tempfile.TemporaryDirectory() as d:
        p = Path(d)
        (p / "config").mkdir()
        (p / "data").mkdir()
        (p / "logs").mkdir()
        monkeypatch.chdir(p)
        yield p


def write_sheet(path: Path, rows: Sequence[Sequence[object]]) -> Path:
    """Write rows to the first sheet as-is (row 0 is not treated as a header)."""
    with pd.ExcelWriter(path, engine="openpyxl") as writer:
        pd.DataFrame(list(rows)).to_excel(writer, sheet_name="Sheet1", header=False, index=False)
    return path


@pytest.fixture()
def make_xlsx(temp_workdir: Path) -> Callable[..., Path]:
    """Factory: make_xlsx(rows, name="inquiry.xlsx") -> path under data/."""
    def _make(rows: Sequence[Sequence[object]], name: str = "inquiry.xlsx") -> Path:
        return write_sheet(temp_workdir / "data" / name, rows)
    return _make


@pytest.fixture()
def sample_rows() -> list[list[str]]:
    return [
        HEADERS,
        ["CMP-1001", "봄 프로모션", "AAAA-1111", "김민수", "010-1234-5678", ""],
        ["CMP-1002", "리워드 캠페인", "BBBB-2222", "이서연", "010-2222-3333", "재확인 필요"],
    ]


@pytest.fixture()
def sample_config_yaml() -> str:
    return """timeout_ms: 8000
log_dir: ./logs
upload:
  max_bytes: 1048576
  allowed_extensions: [".xlsx", ".csv"]
database:
  host: localhost
  port: 5432
  user: appuser
  password: secret
  database: appdb
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "ingest.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg
