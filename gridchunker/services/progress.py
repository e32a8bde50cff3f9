from __future__ import annotations

import sys
from typing import Any

from tqdm import tqdm
from tqdm.std import tqdm as TqdmType

from ..models.chunk import DataChunk

"""Progress display service with tqdm (TTY only).

Chunks are dispatched one at a time; the bar advances once per resolved
chunk (success or error). In non-TTY environments (CI, pipes) no bar is
created so log output stays free of control sequences.
"""

__all__ = [
    "ProgressTracker",
    "is_tty_enabled",
]


def is_tty_enabled() -> bool:
    """Check if TTY output is enabled.

    Returns:
        True if stdout is a TTY and progress should be displayed, False otherwise
    """
    return sys.stdout.isatty()


class ProgressTracker:
    """Progress tracker using tqdm for chunk dispatching."""

    def __init__(self, total_chunks: int, *, description: str = "Dispatching chunks") -> None:
        self.total_chunks = total_chunks
        self.description = description
        self.current_chunk = 0
        self.succeeded = 0
        self.failed = 0

        self.enabled = is_tty_enabled()
        self.pbar: TqdmType[Any] | None
        if self.enabled:
            self.pbar = tqdm(
                total=total_chunks,
                desc=description,
                unit="chunk",
                disable=False,
                leave=True,
                position=0,
                ncols=80,
                ascii=True,
            )
        else:
            self.pbar = None

    def start_chunk(self, chunk: DataChunk) -> None:
        self.current_chunk += 1
        if self.enabled and self.pbar is not None:
            self.pbar.set_description(f"{self.description} ({chunk.chunk_index + 1}/{chunk.total_chunks})")

    def finish_chunk(self, success: bool = True) -> None:
        if success:
            self.succeeded += 1
        else:
            self.failed += 1
        if self.enabled and self.pbar is not None:
            self.pbar.update(1)
            self.pbar.set_description(self.description)
            self.pbar.set_postfix(ok=self.succeeded, failed=self.failed)

    def close(self) -> None:
        if self.enabled and self.pbar is not None:
            self.pbar.close()
            self.pbar = None

    def __enter__(self) -> ProgressTracker:
        return self

    def __exit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        self.close()
