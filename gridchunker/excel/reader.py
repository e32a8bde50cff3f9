from __future__ import annotations

from pathlib import Path
from typing import Any

import pandas as pd

from ..models.grid import Grid

"""Grid file I/O with pandas.

A sheet is read raw (no header row, every cell as text) so the structure
detector sees exactly what the user laid out. Supported: .xlsx/.xlsm (openpyxl)
and .csv.
"""

__all__ = [
    "GridReadError",
    "read_grid_file",
    "write_grid_file",
    "dataframe_to_grid",
]

EXCEL_SUFFIXES = {".xlsx", ".xlsm"}
CSV_SUFFIXES = {".csv"}


class GridReadError(Exception):
    """Raised when a grid file cannot be read or has an unsupported format."""


def dataframe_to_grid(df: pd.DataFrame) -> Grid:
    """Convert a raw (header=None) DataFrame into a grid of strings.

    NaN cells become "". Whole-number floats coming from Excel ("150.0") are
    written back as "150".
    """
    grid: Grid = []
    for raw in df.itertuples(index=False, name=None):
        grid.append([_cell_to_text(v) for v in raw])
    return grid


def _cell_to_text(value: Any) -> str:
    if value is None:
        return ""
    if isinstance(value, float):
        if pd.isna(value):
            return ""
        if value.is_integer():
            return str(int(value))
    return str(value)


def read_grid_file(path: Path, sheet: str | None = None) -> Grid:
    """Read one sheet (xlsx) or the whole file (csv) as a grid.

    Parameters
    ----------
    path: 入力ファイル
    sheet: シート名 (None なら先頭シート, csv では無視)
    """
    if not path.exists():
        raise GridReadError(f"input file not found: {path}")
    suffix = path.suffix.lower()
    try:
        if suffix in EXCEL_SUFFIXES:
            df = pd.read_excel(
                path,
                sheet_name=sheet if sheet is not None else 0,
                header=None,
                keep_default_na=False,  # "NA" 等の文字列メンバーを NaN にしない
                engine="openpyxl",
            )
        elif suffix in CSV_SUFFIXES:
            df = pd.read_csv(
                path,
                header=None,
                dtype=str,
                keep_default_na=False,
                skip_blank_lines=False,
            )
        else:
            raise GridReadError(f"unsupported input format: {path.suffix}")
    except GridReadError:
        raise
    except (OSError, ValueError, pd.errors.ParserError) as e:
        raise GridReadError(f"cannot read {path}: {e}") from e
    return dataframe_to_grid(df)


def write_grid_file(path: Path, grid: Grid, sheet: str = "Sheet1") -> Path:
    """Write a grid back to .xlsx or .csv (no header, no index)."""
    width = max((len(r) for r in grid), default=0)
    padded = [list(r) + [""] * (width - len(r)) for r in grid]
    df = pd.DataFrame(padded)
    suffix = path.suffix.lower()
    path.parent.mkdir(parents=True, exist_ok=True)
    if suffix in EXCEL_SUFFIXES:
        df.to_excel(path, sheet_name=sheet, header=False, index=False, engine="openpyxl")
    elif suffix in CSV_SUFFIXES:
        df.to_csv(path, header=False, index=False)
    else:
        raise GridReadError(f"unsupported output format: {path.suffix}")
    return path
