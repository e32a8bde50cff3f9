# Shared pytest fixtures
from __future__ import annotations
import json
import tempfile
from pathlib import Path
from typing import Any

import pytest

from gridchunker.logging.init import reset_logging


@pytest.fixture(autouse=True)
def _clean_logging():
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
        for name in ("OLAP_SERVER_URL", "OLAP_USERNAME", "OLAP_PASSWORD", "OLAP_APPLICATION"):
            monkeypatch.delenv(name, raising=False)
        yield p


@pytest.fixture()
def sample_config_yaml() -> str:
    return """chunking:
  max_payload_size: 1048576
  max_cells_per_chunk: 10000
  chunk_by_dimension: true
  preserve_structure: true
assembly:
  validate_integrity: true
  handle_missing_chunks: error
  sort_by_chunk_index: true
  merge_strategy: smart
mapping:
  merge_rows: true
  highlight_color: "#E8F4FD"
connection:
  connection_type: hyperion
  server_url: https://planning.example.com
  application: Vision
  cube_name: Plan1
  username: admin
  timeout_seconds: 15
error_log_dir: ./logs
"""


@pytest.fixture()
def write_config(temp_workdir: Path, sample_config_yaml: str) -> Path:
    cfg = temp_workdir / "config" / "gridchunker.yml"
    cfg.write_text(sample_config_yaml, encoding="utf-8")
    return cfg


@pytest.fixture()
def region_grid() -> list[list[str]]:
    """Two month columns, two left header columns, no POV rows."""
    return [
        ["", "", "Jan", "Feb"],
        ["Region", "Actual", "", ""],
        ["East", "", "100", "200"],
        ["West", "", "150", ""],
    ]


@pytest.fixture()
def pov_grid() -> list[list[str]]:
    """POV rows FY24/Actual, months Jan/Feb, Entity x Account on the left."""
    return [
        ["", "", "FY24", ""],
        ["", "", "Actual", ""],
        ["", "", "Jan", "Feb"],
        ["East", "Sales", "", ""],
        ["West", "Sales", "", ""],
    ]


@pytest.fixture()
def pov_grid_bodies() -> list[dict[str, Any]]:
    """Backend bodies for pov_grid split one entity per chunk."""
    return [
        {"rows": [{"data": ["100", "200"], "members": ["East", "Sales"]}]},
        {"rows": [{"data": ["150", ""], "members": ["West", "Sales"]}]},
    ]


@pytest.fixture()
def write_grid_csv(temp_workdir: Path):
    def _write(grid: list[list[str]], name: str = "grid.csv") -> Path:
        path = temp_workdir / "data" / name
        lines = [",".join(row) for row in grid]
        path.write_text("\n".join(lines) + "\n", encoding="utf-8")
        return path

    return _write


@pytest.fixture()
def write_responses(temp_workdir: Path):
    def _write(entries: list[Any], name: str = "responses.json") -> Path:
        path = temp_workdir / "data" / name
        path.write_text(json.dumps(entries), encoding="utf-8")
        return path

    return _write
