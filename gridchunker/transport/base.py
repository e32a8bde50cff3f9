from __future__ import annotations

from typing import Protocol

from ..models.chunk import DataChunk, OLAPResponseData

"""Transport collaborator contract.

A transport submits one DataChunk and returns the backend's response body,
or raises ChunkTransportError. Timeouts belong to the transport.
"""

__all__ = [
    "ChunkTransport",
]


class ChunkTransport(Protocol):
    async def submit(self, chunk: DataChunk) -> OLAPResponseData: ...
