from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Cell placement models for writing assembled values back to the host.

CellMapping is ephemeral (computed per operation, never persisted).
RangeGroup is a rectangular block of mappings written with one host call.
"""

__all__ = [
    "DataType",
    "CellFormat",
    "CellValidation",
    "CellMapping",
    "RangeGroup",
]


class DataType(Enum):
    NUMBER = "number"
    STRING = "string"
    FORMULA = "formula"
    EMPTY = "empty"


@dataclass(frozen=True)
class CellFormat:
    """Presentation hints applied by the host writer."""
    number_format: str | None = None
    font_color: str | None = None
    background_color: str | None = None
    font_weight: str | None = None  # normal / bold
    font_style: str | None = None  # normal / italic
    text_align: str | None = None  # left / center / right

    def to_dict(self) -> dict[str, str]:
        return {
            key: value
            for key, value in (
                ("numberFormat", self.number_format),
                ("fontColor", self.font_color),
                ("backgroundColor", self.background_color),
                ("fontWeight", self.font_weight),
                ("fontStyle", self.font_style),
                ("textAlign", self.text_align),
            )
            if value is not None
        }


@dataclass(frozen=True)
class CellValidation:
    is_valid: bool = True
    error_message: str | None = None
    warning_message: str | None = None


@dataclass(frozen=True)
class CellMapping:
    """One data cell's resolved placement.

    source_* index into the assembled response, target_* are absolute
    positions within the grid the structure was detected on.
    """
    source_row: int
    source_col: int
    target_row: int
    target_col: int
    value: Any
    data_type: DataType
    formatting: CellFormat = field(default_factory=CellFormat)
    validation: CellValidation = field(default_factory=CellValidation)


@dataclass
class RangeGroup:
    """A rectangular block of contiguous target cells (one batch write).

    Mutable while the grouper extends it; treated as read-only afterwards.
    """
    start_row: int
    start_col: int
    num_rows: int
    num_cols: int
    values: list[list[Any]]
    formatting: CellFormat | None = None

    @property
    def end_col(self) -> int:
        """Exclusive end column."""
        return self.start_col + self.num_cols

    @property
    def end_row(self) -> int:
        """Exclusive end row."""
        return self.start_row + self.num_rows

    @property
    def cell_count(self) -> int:
        return self.num_rows * self.num_cols
