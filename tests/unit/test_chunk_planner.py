from __future__ import annotations

import logging

import pytest

from gridchunker.exceptions import EmptyQueryError
from gridchunker.models.config_models import ChunkingStrategy
from gridchunker.models.grid import DimensionData
from gridchunker.services.chunk_planner import (
    REQUEST_OVERHEAD_BYTES,
    build_grid_definition,
    estimate_cells,
    estimate_chunk_size,
    plan_chunks,
)
from gridchunker.services.dimensions import extract_dimensions
from gridchunker.services.structure import identify_structure

FIXED_CLOCK = lambda: 1_700_000_000.0  # noqa: E731


def _plan(grid, strategy=None):
    structure = identify_structure(grid)
    dims = extract_dimensions(grid, structure)
    return dims, plan_chunks(dims, structure, strategy, clock=FIXED_CLOCK)


def _entity_grid(entities: int, months: int = 12) -> list[list[str]]:
    header = [""] + [f"M{m + 1:02d}" for m in range(months)]
    rows = [[f"Entity_{i:03d}"] + [""] * months for i in range(entities)]
    return [header, *rows]


def test_estimate_cells(pov_grid):
    dims, _ = _plan(pov_grid)
    # 2 columns x (2 entities + 1 account)
    assert estimate_cells(dims) == 6


def test_single_chunk_payload(pov_grid):
    _, chunks = _plan(pov_grid)
    assert len(chunks) == 1
    chunk = chunks[0]
    assert chunk.chunk_index == 0
    assert chunk.total_chunks == 1
    assert chunk.chunk_id == "chunk_0_1700000000000"
    assert chunk.estimated_cells == 6
    assert chunk.grid_definition.to_payload() == {
        "exportPlanningData": False,
        "gridDefinition": {
            "suppressMissingBlocks": True,
            "pov": {"members": [["FY24"], ["Actual"]]},
            "columns": [{"members": [["Jan", "Feb"]]}],
            "rows": [{"members": [["East", "West"], ["Sales"]]}],
        },
    }


def test_no_pov_key_without_pov_rows(region_grid):
    _, chunks = _plan(region_grid)
    grid_definition = chunks[0].grid_definition.to_payload()["gridDefinition"]
    assert "pov" not in grid_definition


def test_split_preserves_other_row_dimensions(pov_grid):
    _, chunks = _plan(pov_grid, ChunkingStrategy(max_cells_per_chunk=2))
    assert [c.chunk_index for c in chunks] == [0, 1]
    assert all(c.total_chunks == 2 for c in chunks)
    assert chunks[0].grid_definition.row_members() == [["East"], ["Sales"]]
    assert chunks[1].grid_definition.row_members() == [["West"], ["Sales"]]
    assert [c.metadata.member_offset for c in chunks] == [0, 1]
    assert [c.metadata.member_count for c in chunks] == [1, 1]
    assert chunks[0].estimated_cells == 4
    # POV and columns repeated in every chunk
    for chunk in chunks:
        assert chunk.grid_definition.pov == [["FY24"], ["Actual"]]
        assert chunk.grid_definition.column_members() == [["Jan", "Feb"]]


def test_split_without_preserve_structure_windows_all_dimensions(pov_grid):
    strategy = ChunkingStrategy(max_cells_per_chunk=2, preserve_structure=False)
    _, chunks = _plan(pov_grid, strategy)
    assert chunks[0].grid_definition.row_members() == [["East"], ["Sales"]]
    # the second window of RowDim_2 is empty but keeps its slot
    assert chunks[1].grid_definition.row_members() == [["West"], []]


def test_empty_window_keeps_later_dimensions_in_place():
    grid = [["", "", "", "Jan"], ["A", "X", "P", "1"], ["B", "X", "Q", "2"]]
    strategy = ChunkingStrategy(max_cells_per_chunk=3, preserve_structure=False)
    dims, chunks = _plan(grid, strategy)
    assert len(dims.row_dimensions) == 3
    assert [c.grid_definition.row_members() for c in chunks] == [
        [["A"], ["X"], ["P"]],
        [["B"], [], ["Q"]],
    ]
    assert all(len(c.grid_definition.row_members()) == 3 for c in chunks)


def test_slices_are_contiguous_and_complete():
    grid = _entity_grid(100)
    dims, chunks = _plan(grid, ChunkingStrategy(max_cells_per_chunk=100))
    assert len(chunks) == 12
    assert [c.chunk_index for c in chunks] == list(range(12))
    assert all(c.total_chunks == 12 for c in chunks)
    members = [m for c in chunks for m in c.grid_definition.row_members()[0]]
    assert members == dims.row_members()[0]
    assert all(c.grid_definition.row_members()[0] for c in chunks)


def test_chunk_by_dimension_false_uses_same_slicing():
    grid = _entity_grid(30)
    _, by_dim = _plan(grid, ChunkingStrategy(max_cells_per_chunk=120))
    _, by_size = _plan(grid, ChunkingStrategy(max_cells_per_chunk=120, chunk_by_dimension=False))
    assert [c.grid_definition.row_members() for c in by_dim] == [
        c.grid_definition.row_members() for c in by_size
    ]


def test_estimate_chunk_size(pov_grid):
    dims, _ = _plan(pov_grid)
    gd = build_grid_definition(dims, dims.row_members())
    assert estimate_chunk_size(gd) == len(gd.to_json()) * 2 + REQUEST_OVERHEAD_BYTES
    assert " " not in gd.to_json()


def test_oversized_chunk_is_only_a_warning(pov_grid, caplog):
    with caplog.at_level(logging.WARNING):
        _, chunks = _plan(pov_grid, ChunkingStrategy(max_payload_size=10))
    assert len(chunks) == 1
    assert any("exceeds max_payload_size" in r.getMessage() for r in caplog.records)


def test_metadata_maps_back_to_original_range(pov_grid):
    _, chunks = _plan(pov_grid)
    meta = chunks[0].metadata.to_dict()
    assert meta["originalRange"] == {"startRow": 0, "startCol": 0, "endRow": 4, "endCol": 3}
    assert meta["dimensionRanges"]["povEnd"] == 2
    assert meta["dimensionRanges"]["rowStart"] == 3
    assert meta["dimensionRanges"]["columnStart"] == 2


def test_empty_query_raises(region_grid):
    structure = identify_structure(region_grid)
    empty = DimensionData(pov_dimensions={}, column_dimensions=[], row_dimensions=[], member_combinations=[])
    with pytest.raises(EmptyQueryError):
        plan_chunks(empty, structure)


def test_chunking_strategy_validation_and_update():
    with pytest.raises(ValueError):
        ChunkingStrategy(max_cells_per_chunk=0)
    base = ChunkingStrategy()
    changed = base.updated(max_cells_per_chunk=50)
    assert changed.max_cells_per_chunk == 50
    assert base.max_cells_per_chunk == 10000
