from __future__ import annotations

import json
from pathlib import Path
from typing import Any

from ..exceptions import ChunkTransportError
from ..models.chunk import DataChunk, OLAPResponseData

"""Replay transport: answer chunks from recorded response bodies.

The document is a JSON list indexed by chunk index. Each entry is a response
body ({"rows": [...]}), null (chunk fails) or {"error": "..."} (chunk fails
with that message). Used for offline CLI runs and tests.
"""

__all__ = [
    "ReplayTransport",
]


class ReplayTransport:
    def __init__(self, entries: list[Any]) -> None:
        self.entries = list(entries)
        self.submitted: list[DataChunk] = []

    @classmethod
    def from_file(cls, path: Path) -> ReplayTransport:
        try:
            data = json.loads(path.read_text(encoding="utf-8"))
        except (OSError, json.JSONDecodeError) as e:
            raise ValueError(f"cannot read responses file {path}: {e}") from e
        if isinstance(data, dict):
            data = [data]
        if not isinstance(data, list):
            raise ValueError(f"responses file {path} must hold a list of response bodies")
        return cls(data)

    async def submit(self, chunk: DataChunk) -> OLAPResponseData:
        self.submitted.append(chunk)
        if chunk.chunk_index >= len(self.entries):
            raise ChunkTransportError(f"no recorded response for chunk {chunk.chunk_index}")
        entry = self.entries[chunk.chunk_index]
        if entry is None:
            raise ChunkTransportError(f"recorded failure for chunk {chunk.chunk_index}")
        if isinstance(entry, dict) and "error" in entry and "rows" not in entry:
            raise ChunkTransportError(str(entry["error"]))
        try:
            return OLAPResponseData.from_dict(entry)
        except (ValueError, TypeError) as e:
            raise ChunkTransportError(f"invalid recorded response for chunk {chunk.chunk_index}: {e}") from e
