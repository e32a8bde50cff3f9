from __future__ import annotations

import logging
import warnings as _warnings
from collections.abc import Sequence
from dataclasses import dataclass, field

from ..exceptions import AssemblyError, IntegrityWarning
from ..models.chunk import ChunkResponse, ChunkStatus, OLAPResponseData, ResponseMetadata, ResponseRow
from ..models.config_models import AssemblyOptions, MergeStrategy, MissingChunkPolicy
from ..models.grid import ValidationResult

"""Response assembly: validate chunk responses and merge them into one.

Validation runs first (failed / missing chunks are errors or warnings
depending on handle_missing_chunks), then rows of the successful responses
are merged in chunk_index order. The integrity check afterwards only ever
produces warnings.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "AssemblyOutcome",
    "validate_responses",
    "merge_rows",
    "check_integrity",
    "assemble_responses",
    "assemble",
    "summarize_responses",
]


@dataclass(frozen=True)
class AssemblyOutcome:
    data: OLAPResponseData
    validation_warnings: list[str] = field(default_factory=list)
    integrity_warnings: list[str] = field(default_factory=list)

    @property
    def warnings(self) -> list[str]:
        return [*self.validation_warnings, *self.integrity_warnings]


def validate_responses(
    responses: Sequence[ChunkResponse], options: AssemblyOptions | None = None
) -> ValidationResult:
    """Check for failed and missing chunks.

    expected chunks = max(chunk_index) + 1; every expected chunk without a
    success counts as missing.
    """
    options = options or AssemblyOptions()
    strict = options.handle_missing_chunks is MissingChunkPolicy.ERROR
    errors: list[str] = []
    warnings: list[str] = []

    if not responses:
        errors.append("No responses provided")
        return ValidationResult(is_valid=False, errors=errors, warnings=warnings)

    failed = [r for r in responses if r.status is ChunkStatus.ERROR]
    if failed:
        details = ", ".join(str(r.error) for r in failed)
        if strict:
            errors.append(f"{len(failed)} chunks failed: {details}")
        else:
            warnings.append(f"{len(failed)} chunks failed but will be handled according to strategy: {details}")

    expected = max(r.chunk_index for r in responses) + 1
    actual = sum(1 for r in responses if r.status is ChunkStatus.SUCCESS)
    if actual < expected:
        missing = expected - actual
        if strict:
            errors.append(f"Missing {missing} chunks")
        else:
            warnings.append(f"Missing {missing} chunks, will be handled according to strategy")

    return ValidationResult(is_valid=not errors, errors=errors, warnings=warnings)


def merge_rows(responses: Sequence[ChunkResponse], strategy: MergeStrategy) -> list[ResponseRow]:
    """Concatenate rows of the given (successful) responses.

    APPEND keeps everything. OVERLAY / SMART keep only the first row for each
    distinct members list; rows without members are always kept.
    """
    all_rows: list[ResponseRow] = []
    for response in responses:
        if response.data is not None:
            all_rows.extend(response.data.rows)

    if strategy is MergeStrategy.APPEND:
        return all_rows

    seen: set[tuple[str, ...]] = set()
    unique: list[ResponseRow] = []
    for row in all_rows:
        if row.members is None:
            unique.append(row)
            continue
        key = tuple(row.members)
        if key in seen:
            continue
        seen.add(key)
        unique.append(row)
    return unique


def check_integrity(data: OLAPResponseData, responses: Sequence[ChunkResponse]) -> list[str]:
    """Advisory cell-count and column-count checks on assembled data."""
    warnings: list[str] = []

    expected_cells = sum(r.actual_cells or 0 for r in responses)
    actual_cells = data.cell_count
    if expected_cells != actual_cells:
        warnings.append(f"Cell count mismatch: expected {expected_cells}, got {actual_cells}")

    # 先頭行の列数・columns の数のどちらかと異なる行を数える
    expected_lengths = {len(data.rows[0].data)} if data.rows else set()
    if data.columns:
        expected_lengths.add(len(data.columns))
    inconsistent = [row for row in data.rows if {len(row.data)} != expected_lengths]
    if inconsistent:
        warnings.append(f"{len(inconsistent)} rows have inconsistent column counts")

    return warnings


def assemble_responses(
    responses: Sequence[ChunkResponse], options: AssemblyOptions | None = None
) -> AssemblyOutcome:
    """Validate, merge and integrity-check chunk responses.

    Raises:
        AssemblyError: validation failed under handle_missing_chunks=error,
            or no response succeeded.
    """
    options = options or AssemblyOptions()
    validation = validate_responses(responses, options)
    if not validation.is_valid:
        raise AssemblyError(
            f"Response validation failed: {', '.join(validation.errors)}", errors=validation.errors
        )
    successful = [r for r in responses if r.status is ChunkStatus.SUCCESS]
    if options.sort_by_chunk_index:
        successful.sort(key=lambda r: r.chunk_index)
    if not successful:
        raise AssemblyError("No successful responses to assemble")

    payloads = [r.data for r in successful if r.data is not None]
    if len(payloads) == 1:
        data = payloads[0]
    else:
        first = payloads[0]
        rows = merge_rows(successful, options.merge_strategy)
        data = OLAPResponseData(
            rows=rows,
            columns=first.columns,
            metadata=ResponseMetadata(
                total_rows=len(rows),
                total_columns=len(first.columns) if first.columns else 0,
                data_source="assembled",
                query_time=sum(r.processing_time or 0.0 for r in successful),
            ),
        )
        logger.debug(
            "assembled %d rows from %d chunks (strategy=%s)",
            len(rows),
            len(successful),
            options.merge_strategy.value,
        )

    integrity = check_integrity(data, responses) if options.validate_integrity else []

    return AssemblyOutcome(
        data=data,
        validation_warnings=list(validation.warnings),
        integrity_warnings=integrity,
    )


def assemble(responses: Sequence[ChunkResponse], options: AssemblyOptions | None = None) -> OLAPResponseData:
    """Assemble chunk responses into one OLAPResponseData.

    Warnings are logged (integrity warnings are also emitted as
    IntegrityWarning); use assemble_responses to get them back as lists.
    """
    outcome = assemble_responses(responses, options)
    for message in outcome.validation_warnings:
        logger.warning(message)
    for message in outcome.integrity_warnings:
        logger.warning(message)
        _warnings.warn(message, IntegrityWarning, stacklevel=2)
    return outcome.data


def summarize_responses(responses: Sequence[ChunkResponse]) -> tuple[bool, str]:
    """Quick validity check with a one-line summary (default options)."""
    validation = validate_responses(responses)
    summary = (
        f"{len(responses)} chunks, {len(validation.errors)} errors, {len(validation.warnings)} warnings"
    )
    return validation.is_valid, summary
