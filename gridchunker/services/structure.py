from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

from ..exceptions import StructureError
from ..models.grid import Grid, RangeStructure, ValidationResult

"""Grid validation, normalization and structure detection.

Layout recognized in a selection (0-based):

    row 0 .. h-2     POV rows        (members from data_start_col onward)
    row h-1          column headers  (leaf column axis)
    row h ..         data rows       (left-side row headers in columns
                                      0 .. data_start_col-1, values after)

where h = data_start_row = first row whose column 0 is non-empty and
data_start_col = first non-empty column of row 0.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "LARGE_RANGE_CELLS",
    "validate_range",
    "clean_empty_rows",
    "identify_structure",
]

LARGE_RANGE_CELLS = 100_000


def _cell_text(cell: Any) -> str:
    if cell is None:
        return ""
    return str(cell).strip()


def validate_range(grid: Sequence[Sequence[Any]] | None) -> ValidationResult:
    """Validate a raw grid for basic shape requirements.

    Errors (fatal): empty grid, fewer than 2 rows, fewer than 2 columns in
    the first row. Warnings: very large selections and rows whose length
    differs from the first row.
    """
    errors: list[str] = []
    warnings: list[str] = []

    if not grid:
        errors.append("Range is empty or undefined")
        return ValidationResult(is_valid=False, errors=errors, warnings=warnings)

    if len(grid) < 2:
        errors.append("Range must have at least 2 rows")

    first_len = len(grid[0])
    if first_len < 2:
        errors.append("Range must have at least 2 columns")

    total_cells = len(grid) * first_len
    if total_cells > LARGE_RANGE_CELLS:
        warnings.append(
            f"Large range detected ({total_cells} cells). "
            "Consider using smaller ranges for better performance."
        )

    for index, row in enumerate(grid):
        if index > 0 and len(row) != first_len:
            warnings.append(f"Row {index + 1} has different length than first row")
            break

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def clean_empty_rows(grid: Sequence[Sequence[Any]]) -> Grid:
    """Drop blank rows and coerce every cell to a trimmed string.

    None becomes "". Applying it twice gives the same grid.
    """
    cleaned: Grid = []
    for row in grid:
        cells = [_cell_text(c) for c in row]
        if any(cells):
            cleaned.append(cells)
    return cleaned


def _first_index(values: Sequence[str]) -> int:
    for i, v in enumerate(values):
        if v != "":
            return i
    return -1


def identify_structure(grid: Grid) -> RangeStructure:
    """Detect POV rows, column headers, row headers and the data block.

    Expects a grid normalized by clean_empty_rows.

    Raises:
        StructureError: the grid is empty, row 0 has no non-empty cell, or no
            row has a non-empty first column.
    """
    if not grid:
        raise StructureError("No valid data structure found in the range")

    data_start_col = _first_index(grid[0])
    if data_start_col == -1:
        raise StructureError("Could not find header start")

    data_start_row = -1
    for i, row in enumerate(grid):
        if row and row[0] != "":
            data_start_row = i
            break
    if data_start_row == -1:
        raise StructureError("Could not find data row start")

    # POV: data_start_row - 1 より上の行 (ヘッダ行は除く)
    pov_members: list[list[str]] = []
    for row in grid[: max(0, data_start_row - 1)]:
        members = [c for c in row[data_start_col:] if c != ""]
        if members:
            pov_members.append(members)

    column_headers: list[str] = []
    if data_start_row > 0:
        header_row = grid[data_start_row - 1]
        column_headers = [c for c in header_row[data_start_col:] if c != ""]

    row_headers = [row[0] for row in grid[data_start_row:] if row and row[0] != ""]

    structure = RangeStructure(
        pov_members=pov_members,
        column_headers=column_headers,
        row_headers=row_headers,
        data_start_row=data_start_row,
        data_start_col=data_start_col,
        total_rows=len(grid),
        total_cols=len(grid[0]),
        is_empty=False,
    )
    logger.debug(
        "structure detected: data_start=(%d, %d) pov_rows=%d column_headers=%d row_headers=%d",
        data_start_row,
        data_start_col,
        len(pov_members),
        len(column_headers),
        len(row_headers),
    )
    return structure
