from __future__ import annotations

from dataclasses import dataclass, field

"""Grid-side domain models for the OLAP grid chunking pipeline.

A Grid is the raw rectangular selection read from the host spreadsheet
(rows of string cells, empty cell = ""). Everything in this module is derived
from a Grid and never mutates it.
"""

__all__ = [
    "Grid",
    "ValidationResult",
    "RangeStructure",
    "DimensionMember",
    "DimensionData",
]

Grid = list[list[str]]


@dataclass(frozen=True)
class ValidationResult:
    """Outcome of a validation pass (raw grid or chunk responses)."""
    is_valid: bool
    errors: list[str] = field(default_factory=list)
    warnings: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class RangeStructure:
    """Structural descriptor of a normalized Grid.

    data_start_row is the first row whose column 0 is non-empty and
    data_start_col the first non-empty column of row 0. The row right above
    data_start_row is the column-header row; every row above that one is a
    POV row.
    """
    pov_members: list[list[str]]
    column_headers: list[str]
    row_headers: list[str]  # column 0 of the data rows only (legacy)
    data_start_row: int
    data_start_col: int
    total_rows: int
    total_cols: int
    is_empty: bool = False

    @property
    def has_pov(self) -> bool:
        return bool(self.pov_members)


@dataclass(frozen=True)
class DimensionMember:
    """One member observed along a synthesized dimension."""
    dimension: str
    member: str
    level: int | None = None
    parent: str | None = None


@dataclass(frozen=True)
class DimensionData:
    """Dimensions derived from a Grid and its RangeStructure.

    Attributes:
        pov_dimensions: POV_<n> -> members of the n-th POV row
        column_dimensions: leaf column header list
        row_dimensions: RowDim_<n> names, one per left-side header column
        member_combinations: per row dimension, unique members in order of
            first appearance
        row_member_sequences: per row dimension, the positional member
            sequence (duplicates kept) in data-row order
    """
    pov_dimensions: dict[str, list[str]]
    column_dimensions: list[str]
    row_dimensions: list[str]
    member_combinations: list[list[DimensionMember]]
    row_member_sequences: list[list[str]] = field(default_factory=list)

    def __post_init__(self) -> None:
        if len(self.row_dimensions) != len(self.member_combinations):
            raise ValueError(
                "row_dimensions and member_combinations must have the same length "
                f"({len(self.row_dimensions)} != {len(self.member_combinations)})"
            )

    def row_members(self) -> list[list[str]]:
        """Plain member names per row dimension (unique, ordered)."""
        return [[dm.member for dm in combo] for combo in self.member_combinations]

    @property
    def is_empty(self) -> bool:
        return not self.column_dimensions and not self.member_combinations
