from __future__ import annotations

import json
from dataclasses import asdict, dataclass
from datetime import UTC, datetime

"""ErrorRecord model for chunk error logging.

This module defines the ErrorRecord dataclass used for structured error logging
of failed chunk submissions and operation-level failures. It supports
chunk_index=-1 as a sentinel value for errors that do not belong to a single
chunk (structure detection, assembly, host commit).
"""

__all__ = [
    "ErrorRecord",
]


@dataclass(frozen=True)
class ErrorRecord:
    """Structured error record for JSON Lines logging.

    Attributes:
        timestamp: ISO8601 UTC timestamp with 'Z' suffix
        chunk_index: 0-based chunk index. Use -1 for operation-level errors
        chunk_id: Chunk identifier ("" for operation-level errors)
        error_type: Error classification in UPPER_SNAKE_CASE format
        message: Transport or pipeline error message
    """
    timestamp: str  # ISO8601 UTC
    chunk_index: int  # 不明な場合 -1 許容
    chunk_id: str
    error_type: str  # UPPER_SNAKE
    message: str

    @staticmethod
    def create(chunk_index: int, chunk_id: str, error_type: str, message: str) -> ErrorRecord:
        """Create a new ErrorRecord with current UTC timestamp."""
        ts = datetime.now(UTC).isoformat().replace("+00:00", "Z")
        return ErrorRecord(
            timestamp=ts,
            chunk_index=chunk_index,
            chunk_id=chunk_id,
            error_type=error_type,
            message=message,
        )

    def to_json_line(self) -> str:
        """Serialize ErrorRecord to JSON Lines format (fixed key set)."""
        return json.dumps(asdict(self), ensure_ascii=False)
