from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

"""Config dataclasses for the OLAP grid chunking pipeline.

These are the typed records threaded through one operation. The YAML loader in
gridchunker/config/loader.py builds them; callers that want to change a
setting between operations derive a new record with ``updated(...)`` instead
of mutating shared state.
"""

__all__ = [
    "MissingChunkPolicy",
    "MergeStrategy",
    "ConnectionType",
    "ChunkingStrategy",
    "AssemblyOptions",
    "MappingOptions",
    "ConnectionConfig",
    "PipelineConfig",
]


class MissingChunkPolicy(Enum):
    """How the assembler treats failed or missing chunks.

    - ERROR: hard failure listing the missing count
    - SKIP: warning, assemble whatever succeeded
    - INTERPOLATE: currently identical to SKIP (no gap filling)
    """
    ERROR = "error"
    SKIP = "skip"
    INTERPOLATE = "interpolate"


class MergeStrategy(Enum):
    """Row merge strategy across chunks.

    APPEND keeps every row. OVERLAY and SMART drop a row whose members equal
    an earlier row's members; the two behave the same.
    """
    APPEND = "append"
    OVERLAY = "overlay"
    SMART = "smart"


class ConnectionType(Enum):
    HYPERION = "hyperion"
    OLAPCUBE = "olapcube"


def _coerce_enum(enum_cls: type[Enum], value: Any) -> Any:
    if isinstance(value, enum_cls):
        return value
    try:
        return enum_cls(value)
    except ValueError as e:
        allowed = ", ".join(m.value for m in enum_cls)
        raise ValueError(f"invalid {enum_cls.__name__} '{value}' (allowed: {allowed})") from e


@dataclass(frozen=True)
class ChunkingStrategy:
    """Chunk size/count policy used by the chunk planner."""
    max_payload_size: int = 1024 * 1024  # bytes
    max_cells_per_chunk: int = 10000
    chunk_by_dimension: bool = True
    preserve_structure: bool = True  # False: other row dims are windowed like the first

    def __post_init__(self) -> None:
        if self.max_cells_per_chunk < 1:
            raise ValueError("max_cells_per_chunk must be 1 or greater")
        if self.max_payload_size < 1:
            raise ValueError("max_payload_size must be 1 or greater")

    def updated(self, **changes: Any) -> ChunkingStrategy:
        return replace(self, **changes)


@dataclass(frozen=True)
class AssemblyOptions:
    """Options for validating and merging chunk responses."""
    validate_integrity: bool = True
    handle_missing_chunks: MissingChunkPolicy = MissingChunkPolicy.ERROR
    sort_by_chunk_index: bool = True
    merge_strategy: MergeStrategy = MergeStrategy.SMART

    def __post_init__(self) -> None:
        # YAML / kwargs から文字列で来るケースを許容
        object.__setattr__(
            self, "handle_missing_chunks", _coerce_enum(MissingChunkPolicy, self.handle_missing_chunks)
        )
        object.__setattr__(self, "merge_strategy", _coerce_enum(MergeStrategy, self.merge_strategy))

    def updated(self, **changes: Any) -> AssemblyOptions:
        return replace(self, **changes)


@dataclass(frozen=True)
class MappingOptions:
    """Options for grouping cell mappings into host writes."""
    merge_rows: bool = True  # False: one group never spans more than one row
    highlight_color: str | None = "#E8F4FD"

    def updated(self, **changes: Any) -> MappingOptions:
        return replace(self, **changes)


@dataclass(frozen=True)
class ConnectionConfig:
    """Backend connection settings handed to the HTTP transport."""
    connection_type: ConnectionType = ConnectionType.HYPERION
    server_url: str | None = None
    application: str | None = None
    cube_name: str = "main"
    username: str | None = None
    password: str | None = None
    timeout_seconds: float = 30.0

    def __post_init__(self) -> None:
        object.__setattr__(self, "connection_type", _coerce_enum(ConnectionType, self.connection_type))

    def __repr__(self) -> str:  # password は出力しない
        return (
            f"ConnectionConfig(connection_type={self.connection_type.value!r}, "
            f"server_url={self.server_url!r}, application={self.application!r}, "
            f"cube_name={self.cube_name!r}, username={self.username!r}, "
            f"password={'***' if self.password else None}, timeout_seconds={self.timeout_seconds!r})"
        )


@dataclass(frozen=True)
class PipelineConfig:
    """Root configuration object for one pipeline operation."""
    chunking: ChunkingStrategy = field(default_factory=ChunkingStrategy)
    assembly: AssemblyOptions = field(default_factory=AssemblyOptions)
    mapping: MappingOptions = field(default_factory=MappingOptions)
    connection: ConnectionConfig = field(default_factory=ConnectionConfig)
    error_log_dir: str | None = "./logs"

    def updated(self, **changes: Any) -> PipelineConfig:
        return replace(self, **changes)
