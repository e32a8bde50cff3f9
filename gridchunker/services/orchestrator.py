from __future__ import annotations

import logging
import time
from collections.abc import Sequence
from enum import Enum
from typing import Any

from ..exceptions import (
    ChunkTransportError,
    GridValidationError,
    OperationCancelledError,
    OperationInProgressError,
    ProcessingError,
)
from ..logging.error_log import ErrorLogBuffer, ErrorRecord
from ..models.chunk import ChunkResponse, DataChunk
from ..models.config_models import ChunkingStrategy, PipelineConfig
from ..models.processing_result import (
    ChunkStatsAccumulator,
    OperationResult,
    PerformanceMetrics,
    PreprocessedData,
)
from ..sink.writer import RangeWriter
from ..transport.base import ChunkTransport
from .assembler import assemble_responses
from .cell_mapper import apply_groups, group_mappings, map_to_cells
from .chunk_planner import plan_chunks
from .dimensions import extract_dimensions
from .progress import ProgressTracker
from .structure import clean_empty_rows, identify_structure, validate_range

logger = logging.getLogger(__name__)

"""Operation orchestration for one grid refresh.

preprocess() turns a raw grid into planned chunks. GridPipeline drives one
operation through explicit states:

    IDLE -> PREPROCESSING -> DISPATCHING -> ASSEMBLING -> MAPPING -> DONE

A run cancelled during DISPATCHING still assembles and maps the chunks
already answered, then ends in CANCELLED. Any state may end in FAILED.

Chunks are submitted one at a time in chunk_index order; each is resolved
(success or error response) before the next. A transport failure never stops
the loop. Fatal errors (validation, structure, empty query, assembly)
propagate to the caller after being written to the error log.
"""

__all__ = [
    "PipelineState",
    "GridPipeline",
    "preprocess",
]


class PipelineState(Enum):
    IDLE = "idle"
    PREPROCESSING = "preprocessing"
    DISPATCHING = "dispatching"
    ASSEMBLING = "assembling"
    MAPPING = "mapping"
    DONE = "done"
    FAILED = "failed"
    CANCELLED = "cancelled"


def preprocess(grid: Sequence[Sequence[Any]], strategy: ChunkingStrategy | None = None) -> PreprocessedData:
    """Validate, normalize and plan a raw grid.

    Raises:
        GridValidationError: the grid is empty or too small
        StructureError: no header/data boundary found
        EmptyQueryError: nothing to query
    """
    start = time.perf_counter()
    validation = validate_range(grid)
    if not validation.is_valid:
        raise GridValidationError(validation.errors)
    for message in validation.warnings:
        logger.warning(message)

    normalized = clean_empty_rows(grid)
    structure = identify_structure(normalized)
    dimensions = extract_dimensions(normalized, structure)
    chunks = plan_chunks(dimensions, structure, strategy)

    elapsed = time.perf_counter() - start
    result = PreprocessedData(
        structure=structure,
        dimensions=dimensions,
        chunks=chunks,
        validation=validation,
        normalized_grid=normalized,
        estimated_total_cells=sum(c.estimated_cells for c in chunks),
        estimated_total_size=sum(c.estimated_size for c in chunks),
        processing_seconds=elapsed,
    )
    logger.info(
        "Planned %d chunk(s) for %dx%d grid (data starts at row %d, col %d; ~%d cells)",
        result.chunk_count,
        structure.total_rows,
        structure.total_cols,
        structure.data_start_row,
        structure.data_start_col,
        result.estimated_total_cells,
    )
    return result


class GridPipeline:
    """One grid refresh operation.

    Construct one instance per operation; run() may only be called once.
    cancel() is cooperative: it is checked before every chunk dispatch and
    the chunks already answered are still assembled and written.
    """

    def __init__(
        self,
        config: PipelineConfig,
        transport: ChunkTransport,
        writer: RangeWriter,
        error_log: ErrorLogBuffer | None = None,
    ) -> None:
        self.config = config
        self.transport = transport
        self.writer = writer
        self.error_log = error_log if error_log is not None else ErrorLogBuffer(config.error_log_dir)
        self.state = PipelineState.IDLE
        self.responses: list[ChunkResponse] = []
        self.preprocessed: PreprocessedData | None = None
        self._cancel_requested = False

    @property
    def cancel_requested(self) -> bool:
        return self._cancel_requested

    def cancel(self) -> None:
        if self.state in (PipelineState.DONE, PipelineState.FAILED, PipelineState.CANCELLED):
            return
        logger.info("Cancellation requested (state=%s)", self.state.value)
        self._cancel_requested = True

    def _transition(self, state: PipelineState) -> None:
        logger.debug("pipeline state %s -> %s", self.state.value, state.value)
        self.state = state

    def _record_error(self, chunk_index: int, chunk_id: str, error_type: str, message: str) -> None:
        self.error_log.append(ErrorRecord.create(chunk_index, chunk_id, error_type, message))

    def _flush_error_log(self) -> None:
        try:
            path = self.error_log.flush()
        except OSError as e:
            # error log の失敗で処理結果は変えない
            logger.warning("Failed to write error log: %s", e)
            return
        if path is not None and self.error_log.written:
            logger.info("Error log: %s", path)

    async def run(self, grid: Sequence[Sequence[Any]]) -> OperationResult:
        """Run the whole operation on a raw grid.

        Returns:
            OperationResult; success is False when any chunk or host write failed

        Raises:
            OperationInProgressError: run() was already called on this pipeline
            OperationCancelledError: cancelled before the first chunk was sent
            ProcessingError: fatal validation/structure/empty query/assembly error
        """
        if self.state is not PipelineState.IDLE:
            raise OperationInProgressError(f"operation already {self.state.value}")

        start = time.perf_counter()
        try:
            return await self._run(grid, start)
        except OperationCancelledError:
            self._transition(PipelineState.CANCELLED)
            raise
        except ProcessingError as e:
            self._transition(PipelineState.FAILED)
            self._record_error(-1, "", _error_type(e), str(e))
            logger.error("%s", e)
            raise
        finally:
            self._flush_error_log()

    async def _run(self, grid: Sequence[Sequence[Any]], start: float) -> OperationResult:
        self._transition(PipelineState.PREPROCESSING)
        self.preprocessed = preprocess(grid, self.config.chunking)
        chunks = self.preprocessed.chunks

        if self._cancel_requested:
            raise OperationCancelledError("operation cancelled before dispatch")

        self._transition(PipelineState.DISPATCHING)
        stats = ChunkStatsAccumulator()
        dispatched = await self._dispatch(chunks, stats)
        cancelled = dispatched < len(chunks)
        if cancelled and not self.responses:
            raise OperationCancelledError("operation cancelled before dispatch")

        self._transition(PipelineState.ASSEMBLING)
        outcome = assemble_responses(self.responses, self.config.assembly)
        warnings = list(outcome.warnings)
        for message in warnings:
            logger.warning(message)
        if cancelled:
            message = f"Operation cancelled after {dispatched} of {len(chunks)} chunks"
            logger.warning(message)
            warnings.append(message)

        self._transition(PipelineState.MAPPING)
        mappings = map_to_cells(outcome.data, self.preprocessed.structure)
        groups = group_mappings(mappings, merge_rows=self.config.mapping.merge_rows)
        write_start = time.perf_counter()
        write = await apply_groups(groups, self.writer, self.config.mapping)
        host_seconds = time.perf_counter() - write_start

        errors = [r.error for r in self.responses if not r.is_success and r.error]
        for message in write.errors:
            logger.error(message)
            self._record_error(-1, "", "HOST_WRITE_ERROR", message)
        errors.extend(write.errors)

        failed = sum(1 for r in self.responses if not r.is_success)
        succeeded = len(self.responses) - failed
        self._transition(PipelineState.CANCELLED if cancelled else PipelineState.DONE)

        _, avg, p95 = stats.get_stats()
        return OperationResult(
            cells_updated=write.cells_updated,
            ranges_updated=write.ranges_updated,
            success=not errors and failed == 0,
            errors=errors,
            warnings=warnings,
            chunks_total=len(chunks),
            chunks_succeeded=succeeded,
            chunks_failed=failed,
            cancelled=cancelled,
            state=self.state.value,
            performance=PerformanceMetrics(
                total_seconds=time.perf_counter() - start,
                host_update_seconds=host_seconds,
                validation_seconds=self.preprocessed.processing_seconds,
                avg_chunk_seconds=avg,
                p95_chunk_seconds=p95,
            ),
        )

    async def _dispatch(self, chunks: list[DataChunk], stats: ChunkStatsAccumulator) -> int:
        """Submit chunks in order; returns how many were dispatched."""
        dispatched = 0
        with ProgressTracker(len(chunks)) as progress:
            for chunk in chunks:
                if self._cancel_requested:
                    break
                progress.start_chunk(chunk)
                chunk_start = time.perf_counter()
                try:
                    data = await self.transport.submit(chunk)
                except ChunkTransportError as e:
                    elapsed = time.perf_counter() - chunk_start
                    message = str(e) or "transport error"
                    response = ChunkResponse.failure(chunk, message, elapsed)
                    self._record_error(chunk.chunk_index, chunk.chunk_id, "CHUNK_TRANSPORT_ERROR", message)
                    logger.error("chunk %d/%d failed: %s", chunk.chunk_index + 1, chunk.total_chunks, message)
                else:
                    elapsed = time.perf_counter() - chunk_start
                    response = ChunkResponse.success(chunk, data, elapsed)
                    logger.debug(
                        "chunk %d/%d ok rows=%d cells=%d",
                        chunk.chunk_index + 1,
                        chunk.total_chunks,
                        len(data.rows),
                        response.actual_cells,
                    )
                stats.add_chunk_time(elapsed)
                self.responses.append(response)
                dispatched += 1
                progress.finish_chunk(success=response.is_success)
        return dispatched


def _error_type(error: Exception) -> str:
    """CamelCase exception name -> UPPER_SNAKE error_type."""
    name = type(error).__name__
    out = []
    for i, ch in enumerate(name):
        if ch.isupper() and i > 0:
            out.append("_")
        out.append(ch.upper())
    return "".join(out)
