from __future__ import annotations

import logging
import math
import time
from collections.abc import Callable

from ..exceptions import EmptyQueryError
from ..models.chunk import (
    ChunkMetadata,
    DataChunk,
    DimensionRanges,
    GridAxis,
    GridDefinition,
    OriginalRange,
)
from ..models.config_models import ChunkingStrategy
from ..models.grid import DimensionData, RangeStructure

"""Chunk planning: split one grid query into size-bounded DataChunks.

Slicing rule: when the estimated cell count exceeds max_cells_per_chunk, the
first row dimension's members are cut into contiguous, order-preserving
windows of ceil(members / chunk_count). POV and column members are repeated
in every chunk. With preserve_structure the remaining row dimensions are
repeated too; without it they are cut with the same positional window, and
a window that comes out empty stays in place so member lists keep their
dimension positions.

There is no separate payload-size slicer: chunk_by_dimension=False uses the
same windows.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "REQUEST_OVERHEAD_BYTES",
    "estimate_cells",
    "estimate_chunk_size",
    "build_grid_definition",
    "plan_chunks",
]

REQUEST_OVERHEAD_BYTES = 1024


def estimate_cells(dimensions: DimensionData) -> int:
    """columns (or 1) x sum of row-dimension member counts (or 1)."""
    column_count = len(dimensions.column_dimensions) or 1
    row_count = sum(len(combo) for combo in dimensions.member_combinations) or 1
    return column_count * row_count


def _estimate_cells_for(columns: list[str], row_members: list[list[str]]) -> int:
    return (len(columns) or 1) * (sum(len(m) for m in row_members) or 1)


def estimate_chunk_size(grid_definition: GridDefinition) -> int:
    """Approximate request size in bytes.

    2 bytes per serialized character plus a fixed request envelope.
    """
    return len(grid_definition.to_json()) * 2 + REQUEST_OVERHEAD_BYTES


def build_grid_definition(dimensions: DimensionData, row_members: list[list[str]]) -> GridDefinition:
    """Grid definition for the given row members; POV and columns as-is."""
    pov = list(dimensions.pov_dimensions.values())
    return GridDefinition(
        pov=[list(m) for m in pov] if pov else None,
        columns=[GridAxis(members=[list(dimensions.column_dimensions)])],
        rows=[GridAxis(members=[list(m) for m in row_members])] if row_members else [GridAxis(members=[[]])],
        export_planning_data=False,
        suppress_missing_blocks=True,
    )


def _build_metadata(structure: RangeStructure, member_offset: int, member_count: int) -> ChunkMetadata:
    last_row = structure.total_rows - 1
    last_col = structure.total_cols - 1
    return ChunkMetadata(
        original_range=OriginalRange(start_row=0, start_col=0, end_row=last_row, end_col=last_col),
        dimension_ranges=DimensionRanges(
            pov_start=0,
            pov_end=structure.data_start_row - 1,
            column_start=structure.data_start_col,
            column_end=last_col,
            row_start=structure.data_start_row,
            row_end=last_row,
        ),
        member_offset=member_offset,
        member_count=member_count,
    )


def _slice_windows(
    row_members: list[list[str]], chunk_count: int, preserve_structure: bool
) -> list[tuple[int, list[list[str]]]]:
    """(offset, row members) per chunk, never with an empty first window."""
    first = row_members[0]
    size = math.ceil(len(first) / chunk_count)
    windows: list[tuple[int, list[list[str]]]] = []
    for start in range(0, len(first), size):
        window = first[start : start + size]
        if preserve_structure:
            others = [list(m) for m in row_members[1:]]
        else:
            others = [m[start : start + size] for m in row_members[1:]]
        windows.append((start, [window, *others]))
    return windows


def plan_chunks(
    dimensions: DimensionData,
    structure: RangeStructure,
    strategy: ChunkingStrategy | None = None,
    *,
    clock: Callable[[], float] = time.time,
) -> list[DataChunk]:
    """Partition the grid query into one or more DataChunks.

    Args:
        dimensions: extracted dimensions
        structure: structure the dimensions were extracted with
        strategy: chunking policy (defaults when None)
        clock: time source for chunk ids (seconds since epoch)

    Returns:
        Chunks in chunk_index order; never empty.

    Raises:
        EmptyQueryError: no column and no row dimensions to query
    """
    strategy = strategy or ChunkingStrategy()
    if dimensions.is_empty:
        raise EmptyQueryError("No dimensions to query: both column and row dimensions are empty")

    row_members = dimensions.row_members()
    total_cells = estimate_cells(dimensions)
    stamp = int(clock() * 1000)

    if total_cells <= strategy.max_cells_per_chunk or not row_members:
        if total_cells > strategy.max_cells_per_chunk:
            logger.warning(
                "estimated %d cells exceed max_cells_per_chunk=%d but there are no row members to split",
                total_cells,
                strategy.max_cells_per_chunk,
            )
        windows = [(0, row_members)]
    else:
        chunk_count = math.ceil(total_cells / strategy.max_cells_per_chunk)
        if not strategy.chunk_by_dimension:
            logger.debug("size-based chunking falls back to dimension slicing")
        windows = _slice_windows(row_members, chunk_count, strategy.preserve_structure)
        logger.debug(
            "splitting %d cells into %d chunks (requested %d)", total_cells, len(windows), chunk_count
        )

    total_chunks = len(windows)
    chunks: list[DataChunk] = []
    for index, (offset, members) in enumerate(windows):
        grid_definition = build_grid_definition(dimensions, members)
        estimated_size = estimate_chunk_size(grid_definition)
        if estimated_size > strategy.max_payload_size:
            logger.warning(
                "chunk %d estimated at %d bytes exceeds max_payload_size=%d",
                index,
                estimated_size,
                strategy.max_payload_size,
            )
        chunks.append(
            DataChunk(
                chunk_id=f"chunk_{index}_{stamp}",
                chunk_index=index,
                total_chunks=total_chunks,
                grid_definition=grid_definition,
                estimated_cells=_estimate_cells_for(dimensions.column_dimensions, members),
                estimated_size=estimated_size,
                metadata=_build_metadata(structure, offset, len(members[0]) if members else 0),
            )
        )
    return chunks
