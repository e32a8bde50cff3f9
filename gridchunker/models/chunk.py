from __future__ import annotations

import json
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

"""Chunk and response models for the OLAP grid chunking pipeline.

DataChunk is one bounded query submitted to the backend; ChunkResponse is
what came back for it. OLAPResponseData mirrors the backend's
``exportdataslice`` JSON body (rows of ``data`` with optional ``members``).

Field names on the wire are camelCase (exportPlanningData,
suppressMissingBlocks, ...) and must not change: the backend matches them
literally.
"""

__all__ = [
    "GridAxis",
    "GridDefinition",
    "OriginalRange",
    "DimensionRanges",
    "ProcessingHints",
    "ChunkMetadata",
    "DataChunk",
    "ChunkStatus",
    "ResponseRow",
    "ResponseColumn",
    "ResponseMetadata",
    "OLAPResponseData",
    "ChunkResponse",
]


@dataclass(frozen=True)
class GridAxis:
    """One entry of gridDefinition.columns / gridDefinition.rows."""
    members: list[list[str]]
    dimensions: list[str] | None = None

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {}
        if self.dimensions is not None:
            out["dimensions"] = list(self.dimensions)
        out["members"] = [list(m) for m in self.members]
        return out


@dataclass(frozen=True)
class GridDefinition:
    """Query payload for one chunk."""
    columns: list[GridAxis]
    rows: list[GridAxis]
    pov: list[list[str]] | None = None  # gridDefinition.pov.members
    export_planning_data: bool = False
    suppress_missing_blocks: bool = True

    def to_dict(self) -> dict[str, Any]:
        """Flat representation (used for size estimation)."""
        out: dict[str, Any] = {
            "exportPlanningData": self.export_planning_data,
            "suppressMissingBlocks": self.suppress_missing_blocks,
        }
        if self.pov is not None:
            out["pov"] = {"members": [list(m) for m in self.pov]}
        out["columns"] = [c.to_dict() for c in self.columns]
        out["rows"] = [r.to_dict() for r in self.rows]
        return out

    def to_payload(self) -> dict[str, Any]:
        """Request body in the shape the backend expects."""
        grid: dict[str, Any] = {"suppressMissingBlocks": self.suppress_missing_blocks}
        if self.pov is not None:
            grid["pov"] = {"members": [list(m) for m in self.pov]}
        grid["columns"] = [c.to_dict() for c in self.columns]
        grid["rows"] = [r.to_dict() for r in self.rows]
        return {"exportPlanningData": self.export_planning_data, "gridDefinition": grid}

    def to_json(self) -> str:
        # JSON.stringify 相当 (空白なし)
        return json.dumps(self.to_dict(), ensure_ascii=False, separators=(",", ":"))

    def row_members(self) -> list[list[str]]:
        return [m for axis in self.rows for m in axis.members]

    def column_members(self) -> list[list[str]]:
        return [m for axis in self.columns for m in axis.members]


@dataclass(frozen=True)
class OriginalRange:
    start_row: int
    start_col: int
    end_row: int
    end_col: int


@dataclass(frozen=True)
class DimensionRanges:
    pov_start: int
    pov_end: int
    column_start: int
    column_end: int
    row_start: int
    row_end: int


@dataclass(frozen=True)
class ProcessingHints:
    requires_transformation: bool = False
    has_formulas: bool = False
    has_conditional_data: bool = False


@dataclass(frozen=True)
class ChunkMetadata:
    """Maps a chunk back to the grid it was planned from.

    member_offset / member_count give the slice of the first row dimension
    carried by the chunk (offset 0 and the full count for a single chunk).
    """
    original_range: OriginalRange
    dimension_ranges: DimensionRanges
    processing_hints: ProcessingHints = field(default_factory=ProcessingHints)
    member_offset: int = 0
    member_count: int = 0

    def to_dict(self) -> dict[str, Any]:
        o, d, h = self.original_range, self.dimension_ranges, self.processing_hints
        return {
            "originalRange": {
                "startRow": o.start_row,
                "startCol": o.start_col,
                "endRow": o.end_row,
                "endCol": o.end_col,
            },
            "dimensionRanges": {
                "povStart": d.pov_start,
                "povEnd": d.pov_end,
                "columnStart": d.column_start,
                "columnEnd": d.column_end,
                "rowStart": d.row_start,
                "rowEnd": d.row_end,
            },
            "processingHints": {
                "requiresTransformation": h.requires_transformation,
                "hasFormulas": h.has_formulas,
                "hasConditionalData": h.has_conditional_data,
            },
            "memberOffset": self.member_offset,
            "memberCount": self.member_count,
        }


@dataclass(frozen=True)
class DataChunk:
    """A unit of work submitted to the transport. Immutable once planned."""
    chunk_id: str
    chunk_index: int
    total_chunks: int
    grid_definition: GridDefinition
    estimated_cells: int
    estimated_size: int  # bytes
    metadata: ChunkMetadata

    def to_request(self) -> dict[str, Any]:
        """Transport contract: ``{gridDefinition, metadata}`` for this chunk."""
        return {
            "gridDefinition": self.grid_definition.to_payload(),
            "metadata": self.metadata.to_dict(),
        }


class ChunkStatus(Enum):
    SUCCESS = "success"
    ERROR = "error"
    PENDING = "pending"


@dataclass(frozen=True)
class ResponseRow:
    data: list[Any]
    members: list[str] | None = None
    metadata: dict[str, Any] | None = None

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> ResponseRow:
        if not isinstance(raw, dict):
            raise ValueError(f"response row must be an object, got {type(raw).__name__}")
        data = raw.get("data") or []
        if not isinstance(data, list):
            raise ValueError(f"response row 'data' must be a list, got {type(data).__name__}")
        members = raw.get("members")
        if members is None:
            # 旧レスポンスは headers キーで行メンバーを返す
            members = raw.get("headers")
        if members is not None and not isinstance(members, list):
            raise ValueError(f"response row 'members' must be a list, got {type(members).__name__}")
        metadata = raw.get("metadata")
        if metadata is not None and not isinstance(metadata, dict):
            raise ValueError(f"response row 'metadata' must be an object, got {type(metadata).__name__}")
        return ResponseRow(
            data=list(data),
            members=list(members) if members is not None else None,
            metadata=metadata,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"data": list(self.data)}
        if self.members is not None:
            out["members"] = list(self.members)
        if self.metadata is not None:
            out["metadata"] = dict(self.metadata)
        return out


@dataclass(frozen=True)
class ResponseColumn:
    name: str
    type: str | None = None
    format: str | None = None

    @staticmethod
    def from_dict(raw: Any) -> ResponseColumn:
        if isinstance(raw, str):
            return ResponseColumn(name=raw)
        if not isinstance(raw, dict):
            raise ValueError(f"response column must be a name or an object, got {type(raw).__name__}")
        return ResponseColumn(name=str(raw.get("name", "")), type=raw.get("type"), format=raw.get("format"))

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"name": self.name}
        if self.type is not None:
            out["type"] = self.type
        if self.format is not None:
            out["format"] = self.format
        return out


@dataclass(frozen=True)
class ResponseMetadata:
    total_rows: int
    total_columns: int
    data_source: str = ""
    query_time: float = 0.0


@dataclass(frozen=True)
class OLAPResponseData:
    """Backend response body for one data slice (or several, assembled)."""
    rows: list[ResponseRow]
    columns: list[ResponseColumn] | None = None
    metadata: ResponseMetadata | None = None

    @property
    def cell_count(self) -> int:
        return sum(len(r.data) for r in self.rows)

    @staticmethod
    def from_dict(raw: dict[str, Any]) -> OLAPResponseData:
        if not isinstance(raw, dict):
            raise ValueError(f"response body must be an object, got {type(raw).__name__}")
        rows_raw = raw.get("rows")
        if not isinstance(rows_raw, list):
            raise ValueError("response body has no 'rows' list")
        columns_raw = raw.get("columns")
        meta_raw = raw.get("metadata")
        metadata = None
        if isinstance(meta_raw, dict):
            metadata = ResponseMetadata(
                total_rows=int(meta_raw.get("totalRows", len(rows_raw))),
                total_columns=int(meta_raw.get("totalColumns", 0)),
                data_source=str(meta_raw.get("dataSource", "")),
                query_time=float(meta_raw.get("queryTime", 0.0)),
            )
        return OLAPResponseData(
            rows=[ResponseRow.from_dict(r) for r in rows_raw],
            columns=[ResponseColumn.from_dict(c) for c in columns_raw] if isinstance(columns_raw, list) else None,
            metadata=metadata,
        )

    def to_dict(self) -> dict[str, Any]:
        out: dict[str, Any] = {"rows": [r.to_dict() for r in self.rows]}
        if self.columns is not None:
            out["columns"] = [c.to_dict() for c in self.columns]
        if self.metadata is not None:
            out["metadata"] = {
                "totalRows": self.metadata.total_rows,
                "totalColumns": self.metadata.total_columns,
                "dataSource": self.metadata.data_source,
                "queryTime": self.metadata.query_time,
            }
        return out


@dataclass(frozen=True)
class ChunkResponse:
    """Result of submitting one DataChunk.

    data is present iff status is SUCCESS, error iff status is ERROR.
    """
    chunk_index: int
    chunk_id: str
    status: ChunkStatus
    data: OLAPResponseData | None = None
    error: str | None = None
    actual_cells: int = 0
    processing_time: float = 0.0  # seconds

    def __post_init__(self) -> None:
        if self.status is ChunkStatus.SUCCESS and self.data is None:
            raise ValueError(f"chunk {self.chunk_index}: success response requires data")
        if self.status is ChunkStatus.ERROR and not self.error:
            raise ValueError(f"chunk {self.chunk_index}: error response requires an error message")

    @staticmethod
    def success(chunk: DataChunk, data: OLAPResponseData, processing_time: float = 0.0) -> ChunkResponse:
        return ChunkResponse(
            chunk_index=chunk.chunk_index,
            chunk_id=chunk.chunk_id,
            status=ChunkStatus.SUCCESS,
            data=data,
            actual_cells=data.cell_count,
            processing_time=processing_time,
        )

    @staticmethod
    def failure(chunk: DataChunk, error: str, processing_time: float = 0.0) -> ChunkResponse:
        return ChunkResponse(
            chunk_index=chunk.chunk_index,
            chunk_id=chunk.chunk_id,
            status=ChunkStatus.ERROR,
            error=error,
            processing_time=processing_time,
        )

    @property
    def is_success(self) -> bool:
        return self.status is ChunkStatus.SUCCESS
