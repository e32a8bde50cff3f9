from __future__ import annotations

import logging
from typing import Any

import httpx

from ..exceptions import ChunkTransportError
from ..models.chunk import DataChunk, OLAPResponseData
from ..models.config_models import ConnectionConfig, ConnectionType

"""HTTP transport for the export data slice endpoint.

Endpoints per connection type:
- hyperion: {server}/HyperionPlanning/rest/v3/applications/{app}/plantypes/{cube}/exportdataslice
  (HTTP Basic auth)
- olapcube: {server}/api/v1/app/{app}/cube/{cube}/slice/ (no auth)

The request body is the chunk's grid definition payload.
"""

logger = logging.getLogger(__name__)

__all__ = [
    "build_endpoint_url",
    "HttpChunkTransport",
]

_MAX_ERROR_BODY = 500


def build_endpoint_url(connection: ConnectionConfig, cube_name: str | None = None) -> str:
    """Resolve the export data slice URL for a connection.

    Raises:
        ValueError: server_url or application is not configured
    """
    if not connection.server_url:
        raise ValueError("connection.server_url is not configured")
    if not connection.application:
        raise ValueError("connection.application is not configured")
    server = connection.server_url.rstrip("/")
    cube = cube_name or connection.cube_name
    if connection.connection_type is ConnectionType.HYPERION:
        return (
            f"{server}/HyperionPlanning/rest/v3/applications/{connection.application}"
            f"/plantypes/{cube}/exportdataslice"
        )
    return f"{server}/api/v1/app/{connection.application}/cube/{cube}/slice/"


class HttpChunkTransport:
    """Submit chunks with httpx.AsyncClient.

    Usable as an async context manager; a client passed in is not closed.
    """

    def __init__(self, connection: ConnectionConfig, client: httpx.AsyncClient | None = None) -> None:
        self.connection = connection
        self.url = build_endpoint_url(connection)
        self._owns_client = client is None
        auth = None
        if connection.connection_type is ConnectionType.HYPERION and connection.username:
            auth = httpx.BasicAuth(connection.username, connection.password or "")
        self._auth = auth
        self.client = client or httpx.AsyncClient(
            timeout=connection.timeout_seconds,
            headers={"Content-Type": "application/json", "Accept": "application/json"},
        )

    async def submit(self, chunk: DataChunk) -> OLAPResponseData:
        request = chunk.to_request()
        payload = request["gridDefinition"]
        meta = request["metadata"]
        logger.debug(
            "POST %s chunk=%d/%d members=%d+%d est_size=%d",
            self.url,
            chunk.chunk_index + 1,
            chunk.total_chunks,
            meta["memberOffset"],
            meta["memberCount"],
            chunk.estimated_size,
        )
        try:
            kwargs: dict[str, Any] = {"json": payload}
            if self._auth is not None:
                kwargs["auth"] = self._auth
            response = await self.client.post(self.url, **kwargs)
        except httpx.HTTPError as e:
            raise ChunkTransportError(f"request failed: {e}") from e

        if response.status_code >= 400:
            body = response.text[:_MAX_ERROR_BODY]
            raise ChunkTransportError(
                f"HTTP error! status: {response.status_code}, message: {body}",
                status_code=response.status_code,
            )

        try:
            return OLAPResponseData.from_dict(response.json())
        except (ValueError, TypeError) as e:
            # json.JSONDecodeError も ValueError
            raise ChunkTransportError(f"Invalid JSON response from server: {e}") from e

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    async def __aenter__(self) -> HttpChunkTransport:
        return self

    async def __aexit__(self, exc_type: Any, exc_val: Any, exc_tb: Any) -> None:
        await self.aclose()
