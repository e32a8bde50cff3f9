from __future__ import annotations

import logging
import math
import re
from collections.abc import Sequence
from typing import TYPE_CHECKING, Any

from ..exceptions import HostWriteError
from ..models.cell_mapping import CellFormat, CellMapping, CellValidation, DataType, RangeGroup
from ..models.chunk import OLAPResponseData
from ..models.config_models import MappingOptions
from ..models.grid import RangeStructure
from ..models.processing_result import WriteOutcome

if TYPE_CHECKING:
    from ..sink.writer import RangeWriter

"""Cell mapping: place assembled values on target cells and batch the writes.

Row r / column c of the assembled response lands on
(data_start_row + r, data_start_col + c) of the grid the structure was
detected on. Adjacent cells in a row form one run; with merge_rows, runs
stacked on consecutive rows with the same column span become one
rectangular group.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "EMPTY_FILL_COLOR",
    "NUMBER_FORMAT",
    "PRECISION_DIGITS",
    "is_numeric_text",
    "parse_value",
    "determine_data_type",
    "validate_cell_value",
    "default_formatting",
    "map_to_cells",
    "group_mappings",
    "apply_groups",
]

NUMBER_FORMAT = "#,##0.00"
EMPTY_FILL_COLOR = "#f8f8f8"
PRECISION_DIGITS = 15  # これを超える数字文字列は精度落ちの恐れ

_NUMERIC_RE = re.compile(r"^[+-]?(?:\d+(?:\.\d*)?|\.\d+)(?:[eE][+-]?\d+)?$")
_ERROR_MARKERS = ("error", "invalid")


def is_numeric_text(text: str) -> bool:
    """True for a finite decimal literal (optional sign and exponent)."""
    stripped = text.strip()
    if not _NUMERIC_RE.match(stripped):
        return False
    return math.isfinite(float(stripped))


def _is_empty(value: Any) -> bool:
    return value is None or (isinstance(value, str) and value == "")


def parse_value(value: Any) -> Any:
    """Typed cell value: "" for empty, float for numbers, text otherwise."""
    if _is_empty(value):
        return ""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, (int, float)):
        return float(value) if math.isfinite(value) else str(value)
    text = str(value)
    if is_numeric_text(text):
        return float(text.strip())
    return text


def determine_data_type(value: Any) -> DataType:
    if _is_empty(value):
        return DataType.EMPTY
    if isinstance(value, (int, float)) and not isinstance(value, bool):
        return DataType.NUMBER if math.isfinite(value) else DataType.STRING
    text = str(value)
    if is_numeric_text(text):
        return DataType.NUMBER
    if text.startswith("="):
        return DataType.FORMULA
    return DataType.STRING


def validate_cell_value(value: Any) -> CellValidation:
    """Flag error markers (invalid) and long numeric strings (warning)."""
    if not isinstance(value, str):
        return CellValidation()

    error_message = None
    warning_message = None
    lowered = value.lower()
    if any(marker in lowered for marker in _ERROR_MARKERS):
        error_message = "Cell contains error indicator"
    if len(value) > PRECISION_DIGITS and is_numeric_text(value):
        warning_message = "Very large number detected, may lose precision"

    return CellValidation(
        is_valid=error_message is None,
        error_message=error_message,
        warning_message=warning_message,
    )


def default_formatting(data_type: DataType) -> CellFormat:
    if data_type is DataType.NUMBER:
        return CellFormat(number_format=NUMBER_FORMAT, text_align="right")
    if data_type is DataType.STRING:
        return CellFormat(text_align="left")
    if data_type is DataType.FORMULA:
        return CellFormat(font_style="italic", text_align="left")
    return CellFormat(background_color=EMPTY_FILL_COLOR)


def map_to_cells(data: OLAPResponseData, structure: RangeStructure) -> list[CellMapping]:
    """One CellMapping per value of every assembled row."""
    mappings: list[CellMapping] = []
    for row_index, row in enumerate(data.rows):
        for col_index, raw in enumerate(row.data):
            data_type = determine_data_type(raw)
            mappings.append(
                CellMapping(
                    source_row=row_index,
                    source_col=col_index,
                    target_row=structure.data_start_row + row_index,
                    target_col=structure.data_start_col + col_index,
                    value=parse_value(raw),
                    data_type=data_type,
                    formatting=default_formatting(data_type),
                    validation=validate_cell_value(raw),
                )
            )
    return mappings


def _row_runs(mappings: Sequence[CellMapping]) -> list[RangeGroup]:
    ordered = sorted(mappings, key=lambda m: (m.target_row, m.target_col))
    runs: list[RangeGroup] = []
    current: RangeGroup | None = None
    for mapping in ordered:
        if (
            current is not None
            and mapping.target_row == current.start_row
            and mapping.target_col == current.start_col + current.num_cols
        ):
            current.values[0].append(mapping.value)
            current.num_cols += 1
            continue
        current = RangeGroup(
            start_row=mapping.target_row,
            start_col=mapping.target_col,
            num_rows=1,
            num_cols=1,
            values=[[mapping.value]],
            formatting=mapping.formatting,
        )
        runs.append(current)
    return runs


def group_mappings(mappings: Sequence[CellMapping], merge_rows: bool = True) -> list[RangeGroup]:
    """Collapse mappings into contiguous range groups.

    Args:
        mappings: cell mappings in any order
        merge_rows: stack same-span runs of consecutive rows into one group;
            False keeps every group one row tall

    Returns:
        Groups ordered by (start_row, start_col). Each group takes the
        formatting of its first mapping.
    """
    runs = _row_runs(mappings)
    if not merge_rows:
        return runs

    groups: list[RangeGroup] = []
    open_blocks: dict[tuple[int, int], RangeGroup] = {}
    for run in runs:
        key = (run.start_col, run.num_cols)
        block = open_blocks.get(key)
        if block is not None and block.end_row == run.start_row:
            block.values.append(run.values[0])
            block.num_rows += 1
            continue
        groups.append(run)
        open_blocks[key] = run
    return groups


async def apply_groups(
    groups: Sequence[RangeGroup],
    writer: RangeWriter,
    options: MappingOptions | None = None,
) -> WriteOutcome:
    """Write every group through the host writer, then commit once.

    A failing group is recorded and the others are still written. A failing
    commit discards the whole batch.
    """
    options = options or MappingOptions()
    errors: list[str] = []
    cells = 0
    ranges = 0
    for group in groups:
        try:
            await writer.write_range(group, highlight=options.highlight_color)
        except HostWriteError as e:
            errors.append(f"Failed to update range starting at ({group.start_row}, {group.start_col}): {e}")
            continue
        cells += group.cell_count
        ranges += 1

    try:
        await writer.commit()
    except HostWriteError as e:
        errors.append(f"Host update failed: {e}")
        return WriteOutcome(cells_updated=0, ranges_updated=0, errors=errors)

    logger.debug("wrote %d cells in %d ranges", cells, ranges)
    return WriteOutcome(cells_updated=cells, ranges_updated=ranges, errors=errors)
