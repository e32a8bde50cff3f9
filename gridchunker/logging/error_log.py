from __future__ import annotations

from datetime import UTC, datetime
from pathlib import Path

from ..models.error_record import ErrorRecord

"""Error log buffering for failed chunks.

- JSON Lines, fixed key set (timestamp, chunk_index, chunk_id, error_type, message)
- One file per run: `<log_dir>/errors-YYYYMMDD-HHMMSS.log` (UTC), created on first flush
- Records are buffered in memory and appended on flush()
"""

__all__ = [
    "ErrorRecord",
    "ErrorLogBuffer",
]

DEFAULT_LOGS_DIR = Path("./logs")
TIMESTAMP_FMT = "%Y%m%d-%H%M%S"


class ErrorLogBuffer:
    """In-memory buffer for error records. Flush writes JSON Lines.

    The file path is fixed on first access. An empty buffer never creates
    the directory or the file. Single-threaded use only.
    """

    def __init__(self, log_dir: Path | str | None = None) -> None:
        self.log_dir = Path(log_dir) if log_dir is not None else DEFAULT_LOGS_DIR
        self._records: list[ErrorRecord] = []
        self._file_path: Path | None = None
        self.written = 0

    @property
    def file_path(self) -> Path:
        if self._file_path is None:
            self.log_dir.mkdir(parents=True, exist_ok=True)
            stamp = datetime.now(UTC).strftime(TIMESTAMP_FMT)
            self._file_path = self.log_dir / f"errors-{stamp}.log"
        return self._file_path

    def append(self, record: ErrorRecord) -> None:
        self._records.append(record)

    @property
    def records(self) -> list[ErrorRecord]:
        return list(self._records)

    def __len__(self) -> int:  # pragma: no cover (trivial)
        return len(self._records)

    def flush(self) -> Path | None:
        """Append buffered records to the log file.

        Returns:
            The log file path, or None when nothing was ever written
        """
        if not self._records:
            return self._file_path
        fp = self.file_path
        with fp.open("a", encoding="utf-8") as f:
            for r in self._records:
                f.write(r.to_json_line() + "\n")
        self.written += len(self._records)
        self._records.clear()
        return fp
