from __future__ import annotations

import logging

from ..models.grid import DimensionData, DimensionMember, Grid, RangeStructure

"""Dimension extraction from a structured grid.

Row headers are read per data row from columns 0 .. data_start_col-1 and
transposed, so that the i-th non-empty header of every row forms row
dimension i (RowDim_<i+1>). POV rows become POV_<n>.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "extract_dimensions",
    "pov_dimension_name",
    "row_dimension_name",
]


def pov_dimension_name(index: int) -> str:
    return f"POV_{index + 1}"


def row_dimension_name(index: int) -> str:
    return f"RowDim_{index + 1}"


def extract_dimensions(grid: Grid, structure: RangeStructure) -> DimensionData:
    """Derive named dimensions and their members.

    Ragged rows contribute nothing to the dimensions they do not reach (no
    empty-string members). member_combinations holds each dimension's
    unique members in order of first appearance; row_member_sequences keeps
    the positional sequences with duplicates.
    """
    pov_dimensions = {
        pov_dimension_name(i): list(members) for i, members in enumerate(structure.pov_members)
    }

    header_rows: list[list[str]] = []
    for row in grid[structure.data_start_row:]:
        headers = [c for c in row[: structure.data_start_col] if c != ""]
        if headers:
            header_rows.append(headers)

    row_dimensions: list[str] = []
    member_combinations: list[list[DimensionMember]] = []
    row_member_sequences: list[list[str]] = []

    if header_rows:
        max_dimensions = max(len(r) for r in header_rows)
        for dim_index in range(max_dimensions):
            name = row_dimension_name(dim_index)
            sequence = [r[dim_index] for r in header_rows if dim_index < len(r)]
            # dict.fromkeys: 出現順を保った重複排除
            unique = list(dict.fromkeys(sequence))
            row_dimensions.append(name)
            row_member_sequences.append(sequence)
            member_combinations.append([DimensionMember(dimension=name, member=m) for m in unique])

    dimensions = DimensionData(
        pov_dimensions=pov_dimensions,
        column_dimensions=list(structure.column_headers),
        row_dimensions=row_dimensions,
        member_combinations=member_combinations,
        row_member_sequences=row_member_sequences,
    )
    logger.debug(
        "dimensions extracted: pov=%d columns=%d row_dims=%s",
        len(pov_dimensions),
        len(dimensions.column_dimensions),
        [len(c) for c in member_combinations],
    )
    return dimensions
