from __future__ import annotations

import copy
import logging
from typing import Any, Protocol

from ..exceptions import HostWriteError
from ..models.cell_mapping import CellFormat, RangeGroup

"""Host range-write collaborator.

RangeWriter is the contract the cell mapper writes through: one
write_range per RangeGroup (values + highlight + formatting), then a single
commit. MemoryGridWriter implements it on a copy of a grid; the CLI uses it
to produce the refreshed sheet.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "RangeWriter",
    "MemoryGridWriter",
]


class RangeWriter(Protocol):
    async def write_range(self, group: RangeGroup, highlight: str | None = None) -> None: ...

    async def commit(self) -> None: ...


class MemoryGridWriter:
    """Apply range groups onto an in-memory copy of a grid.

    Writes are staged until commit(); writing the same group twice gives the
    same result. Cells outside the grid extend it (rows/columns padded with "").
    """

    def __init__(self, grid: list[list[Any]]) -> None:
        self._committed: list[list[Any]] = copy.deepcopy([list(r) for r in grid])
        self._staged: list[tuple[RangeGroup, str | None]] = []
        self.formats: dict[tuple[int, int], CellFormat] = {}
        self.highlights: dict[tuple[int, int], str] = {}
        self.write_calls = 0
        self.commits = 0

    @property
    def grid(self) -> list[list[Any]]:
        return self._committed

    async def write_range(self, group: RangeGroup, highlight: str | None = None) -> None:
        if group.num_rows < 1 or group.num_cols < 1:
            raise HostWriteError(f"empty range {group.num_rows}x{group.num_cols}")
        if len(group.values) != group.num_rows or any(len(r) != group.num_cols for r in group.values):
            raise HostWriteError(
                f"values do not match range size {group.num_rows}x{group.num_cols}"
            )
        if group.start_row < 0 or group.start_col < 0:
            raise HostWriteError(f"negative anchor ({group.start_row}, {group.start_col})")
        self._staged.append((group, highlight))
        self.write_calls += 1

    async def commit(self) -> None:
        for group, highlight in self._staged:
            self._apply(group, highlight)
        self._staged.clear()
        self.commits += 1

    def _ensure_size(self, rows: int, cols: int) -> None:
        while len(self._committed) < rows:
            self._committed.append([])
        for row in self._committed:
            if len(row) < cols:
                row.extend([""] * (cols - len(row)))

    def _apply(self, group: RangeGroup, highlight: str | None) -> None:
        width = max((len(r) for r in self._committed), default=0)
        self._ensure_size(group.end_row, max(width, group.end_col))
        for dr, values in enumerate(group.values):
            r = group.start_row + dr
            for dc, value in enumerate(values):
                c = group.start_col + dc
                self._committed[r][c] = value
                if highlight:
                    self.highlights[(r, c)] = highlight
                if group.formatting is not None:
                    self.formats[(r, c)] = group.formatting
