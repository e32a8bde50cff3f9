from __future__ import annotations

from ..models.processing_result import OperationResult

"""Summary line rendering for one grid refresh operation.

Format:
SUMMARY chunks={ok}/{total} failed={failed} cells={cells} ranges={ranges}
errors={errors} warnings={warnings} elapsed_sec={elapsed}
"""


def _format_seconds(value: float) -> str:
    if value == 0:
        return "0"
    if value == int(value):
        return str(int(value))
    if value < 0.01:
        # Format very small numbers to avoid scientific notation
        return f"{value:.6f}".rstrip("0").rstrip(".")
    return f"{value:.3f}".rstrip("0").rstrip(".")


def render_summary_line(result: OperationResult) -> str:
    """Render a SUMMARY line from an OperationResult.

    Examples:
        >>> from gridchunker.models.processing_result import OperationResult
        >>> result = OperationResult(
        ...     cells_updated=6, ranges_updated=1, success=True, errors=[], warnings=[],
        ...     chunks_total=2, chunks_succeeded=2, chunks_failed=0,
        ... )
        >>> render_summary_line(result)
        'SUMMARY chunks=2/2 failed=0 cells=6 ranges=1 errors=0 warnings=0 elapsed_sec=0'
    """
    return (
        f"SUMMARY chunks={result.chunks_succeeded}/{result.chunks_total} "
        f"failed={result.chunks_failed} "
        f"cells={result.cells_updated} "
        f"ranges={result.ranges_updated} "
        f"errors={len(result.errors)} "
        f"warnings={len(result.warnings)} "
        f"elapsed_sec={_format_seconds(result.performance.total_seconds)}"
    )
