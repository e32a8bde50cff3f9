from __future__ import annotations

import warnings

import pytest

from gridchunker.exceptions import AssemblyError, IntegrityWarning
from gridchunker.models.chunk import (
    ChunkResponse,
    ChunkStatus,
    OLAPResponseData,
    ResponseColumn,
    ResponseRow,
)
from gridchunker.models.config_models import AssemblyOptions, MergeStrategy, MissingChunkPolicy
from gridchunker.services.assembler import (
    assemble,
    assemble_responses,
    check_integrity,
    merge_rows,
    summarize_responses,
    validate_responses,
)


def _ok(index: int, rows: list[list[str]], members: list[list[str]] | None = None, t: float = 0.5) -> ChunkResponse:
    data = OLAPResponseData(
        rows=[
            ResponseRow(data=r, members=members[i] if members else None) for i, r in enumerate(rows)
        ],
        columns=[ResponseColumn(name="Jan"), ResponseColumn(name="Feb")],
    )
    return ChunkResponse(
        chunk_index=index,
        chunk_id=f"chunk_{index}_1",
        status=ChunkStatus.SUCCESS,
        data=data,
        actual_cells=data.cell_count,
        processing_time=t,
    )


def _err(index: int, message: str = "timeout") -> ChunkResponse:
    return ChunkResponse(chunk_index=index, chunk_id=f"chunk_{index}_1", status=ChunkStatus.ERROR, error=message)


def test_all_error_responses_raise_listing_failures():
    responses = [_err(0, "e1"), _err(1, "e2"), _err(2, "e3")]
    with pytest.raises(AssemblyError) as e:
        assemble(responses)
    assert "3 chunks failed" in str(e.value)
    assert "e1, e2, e3" in str(e.value)
    assert any("Missing 3 chunks" in msg for msg in e.value.errors)


def test_empty_response_list_is_invalid():
    result = validate_responses([])
    assert result.is_valid is False
    assert result.errors == ["No responses provided"]
    with pytest.raises(AssemblyError):
        assemble_responses([])


def test_single_success_is_returned_unchanged():
    response = _ok(0, [["1", "2"]])
    assert assemble([response]) is response.data


def test_merge_in_chunk_index_order():
    responses = [_ok(1, [["3", "4"]], [["West"]]), _ok(0, [["1", "2"]], [["East"]])]
    data = assemble(responses)
    assert [r.data for r in data.rows] == [["1", "2"], ["3", "4"]]
    assert data.metadata is not None
    assert data.metadata.total_rows == 2
    assert data.metadata.total_columns == 2
    assert data.metadata.data_source == "assembled"
    assert data.metadata.query_time == pytest.approx(1.0)
    assert [c.name for c in data.columns] == ["Jan", "Feb"]


def test_unsorted_merge_keeps_arrival_order():
    responses = [_ok(1, [["3", "4"]]), _ok(0, [["1", "2"]])]
    options = AssemblyOptions(sort_by_chunk_index=False)
    data = assemble(responses, options)
    assert [r.data for r in data.rows] == [["3", "4"], ["1", "2"]]


@pytest.mark.parametrize("strategy", [MergeStrategy.SMART, MergeStrategy.OVERLAY])
def test_dedup_strategies_keep_first_row_per_members(strategy):
    responses = [
        _ok(0, [["1", "2"]], [["East", "Sales"]]),
        _ok(1, [["9", "9"], ["3", "4"]], [["East", "Sales"], ["West", "Sales"]]),
    ]
    rows = merge_rows(responses, strategy)
    assert [r.data for r in rows] == [["1", "2"], ["3", "4"]]


def test_append_keeps_duplicates_and_rows_without_members():
    responses = [_ok(0, [["1", "2"]], [["East"]]), _ok(1, [["1", "2"]], [["East"]]), _ok(2, [["5", "6"]])]
    assert len(merge_rows(responses, MergeStrategy.APPEND)) == 3
    smart = merge_rows(responses, MergeStrategy.SMART)
    assert [r.data for r in smart] == [["1", "2"], ["5", "6"]]


def test_skip_policy_assembles_partial_results():
    responses = [_ok(0, [["1", "2"]]), _err(1)]
    options = AssemblyOptions(handle_missing_chunks=MissingChunkPolicy.SKIP)
    outcome = assemble_responses(responses, options)
    assert outcome.data is responses[0].data
    assert "1 chunks failed but will be handled according to strategy: timeout" in outcome.warnings
    assert "Missing 1 chunks, will be handled according to strategy" in outcome.warnings
    assert outcome.integrity_warnings == []


def test_interpolate_behaves_like_skip():
    responses = [_ok(0, [["1", "2"]]), _err(1)]
    skip = assemble_responses(responses, AssemblyOptions(handle_missing_chunks="skip"))
    interpolate = assemble_responses(responses, AssemblyOptions(handle_missing_chunks="interpolate"))
    assert interpolate.data is skip.data
    assert interpolate.warnings == skip.warnings


def test_error_policy_fails_on_partial_results():
    with pytest.raises(AssemblyError, match="1 chunks failed: boom"):
        assemble_responses([_ok(0, [["1", "2"]]), _err(1, "boom")])


def test_no_success_under_skip_policy_raises():
    options = AssemblyOptions(handle_missing_chunks=MissingChunkPolicy.SKIP)
    with pytest.raises(AssemblyError, match="No successful responses"):
        assemble_responses([_err(0)], options)


def test_integrity_warnings():
    first = _ok(0, [["1", "2"]])
    ragged = ChunkResponse(
        chunk_index=1,
        chunk_id="chunk_1_1",
        status=ChunkStatus.SUCCESS,
        data=OLAPResponseData(rows=[ResponseRow(data=["3"])]),
        actual_cells=5,  # backend reported more cells than it sent
    )
    outcome = assemble_responses([first, ragged])
    assert "Cell count mismatch: expected 7, got 3" in outcome.integrity_warnings
    assert "1 rows have inconsistent column counts" in outcome.integrity_warnings

    with warnings.catch_warnings(record=True) as caught:
        warnings.simplefilter("always")
        assemble([first, ragged])
    assert [w.category for w in caught] == [IntegrityWarning, IntegrityWarning]


def test_integrity_check_can_be_disabled():
    ragged = ChunkResponse(
        chunk_index=0,
        chunk_id="chunk_0_1",
        status=ChunkStatus.SUCCESS,
        data=OLAPResponseData(rows=[ResponseRow(data=["3"])]),
        actual_cells=5,
    )
    outcome = assemble_responses([ragged], AssemblyOptions(validate_integrity=False))
    assert outcome.integrity_warnings == []
    assert check_integrity(ragged.data, [ragged]) == ["Cell count mismatch: expected 5, got 1"]


def test_column_count_check_uses_first_row_and_columns():
    columns = [ResponseColumn(name="Jan"), ResponseColumn(name="Feb"), ResponseColumn(name="Mar")]
    # rows agree with each other but not with the three declared columns
    data = OLAPResponseData(rows=[ResponseRow(data=["1", "2"]), ResponseRow(data=["3", "4"])], columns=columns)
    response = ChunkResponse(
        chunk_index=0, chunk_id="chunk_0_1", status=ChunkStatus.SUCCESS, data=data, actual_cells=4
    )
    assert check_integrity(data, [response]) == ["2 rows have inconsistent column counts"]

    # without columns, the first row is the reference
    bare = OLAPResponseData(rows=[ResponseRow(data=["1", "2"]), ResponseRow(data=["3"])])
    response = ChunkResponse(
        chunk_index=0, chunk_id="chunk_0_1", status=ChunkStatus.SUCCESS, data=bare, actual_cells=3
    )
    assert check_integrity(bare, [response]) == ["1 rows have inconsistent column counts"]


def test_summarize_responses():
    valid, summary = summarize_responses([_ok(0, [["1", "2"]]), _err(1)])
    assert valid is False
    assert summary == "2 chunks, 2 errors, 0 warnings"
