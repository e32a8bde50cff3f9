from __future__ import annotations

import statistics
from dataclasses import dataclass, field

from .chunk import DataChunk
from .grid import DimensionData, RangeStructure, ValidationResult

"""Processing result models for the OLAP grid chunking pipeline.

This module defines the records that aggregate one operation's outcome:
the preprocessing output (structure + chunks), the host write outcome and the
final OperationResult used for the SUMMARY line and the CLI exit code.
"""


@dataclass(frozen=True)
class PreprocessedData:
    """Everything computed from a grid before any chunk is sent."""
    structure: RangeStructure
    dimensions: DimensionData
    chunks: list[DataChunk]
    validation: ValidationResult
    normalized_grid: list[list[str]]
    estimated_total_cells: int  # 全チャンク合計
    estimated_total_size: int  # bytes
    processing_seconds: float

    @property
    def chunk_count(self) -> int:
        return len(self.chunks)


@dataclass(frozen=True)
class WriteOutcome:
    """Result of applying range groups through the host writer."""
    cells_updated: int
    ranges_updated: int
    errors: list[str] = field(default_factory=list)


@dataclass(frozen=True)
class PerformanceMetrics:
    total_seconds: float = 0.0
    host_update_seconds: float = 0.0
    validation_seconds: float = 0.0
    # Per-chunk dispatch timing statistics
    avg_chunk_seconds: float = 0.0
    p95_chunk_seconds: float = 0.0


@dataclass(frozen=True)
class OperationResult:
    """Aggregated result of one grid refresh operation.

    success is False as soon as any chunk or host write failed, even when
    cells were written (partial success: cells_updated > 0).
    """
    cells_updated: int
    ranges_updated: int
    success: bool
    errors: list[str]
    warnings: list[str]
    chunks_total: int
    chunks_succeeded: int
    chunks_failed: int
    cancelled: bool = False
    state: str = "done"
    performance: PerformanceMetrics = field(default_factory=PerformanceMetrics)

    @property
    def partial(self) -> bool:
        return not self.success and self.cells_updated > 0


class ChunkStatsAccumulator:
    """Helper class to accumulate per-chunk dispatch timings.

    Collects individual chunk round-trip times and calculates summary statistics.
    """

    def __init__(self) -> None:
        self.chunk_times: list[float] = []

    def add_chunk_time(self, elapsed_seconds: float) -> None:
        """Add a chunk round-trip measurement."""
        self.chunk_times.append(elapsed_seconds)

    def get_stats(self) -> tuple[int, float, float]:
        """Calculate chunk statistics.

        Returns:
            tuple: (total_chunks, avg_chunk_seconds, p95_chunk_seconds)
        """
        if not self.chunk_times:
            return (0, 0.0, 0.0)

        total = len(self.chunk_times)
        avg = statistics.mean(self.chunk_times)

        if total == 1:
            p95 = self.chunk_times[0]
        else:
            # 95th percentile (19th out of 20 quantiles, 0-indexed)
            p95 = statistics.quantiles(self.chunk_times, n=20, method="inclusive")[18]

        return (total, avg, p95)
