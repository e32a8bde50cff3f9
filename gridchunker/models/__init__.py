"""Domain models for the OLAP grid chunking pipeline.

This package contains the domain model classes used throughout the application:
grid structure and dimensions, chunks and responses, cell mappings and the
configuration / result records of one operation.
"""

from .cell_mapping import CellFormat, CellMapping, CellValidation, DataType, RangeGroup
from .chunk import (
    ChunkMetadata,
    ChunkResponse,
    ChunkStatus,
    DataChunk,
    GridAxis,
    GridDefinition,
    OLAPResponseData,
    ResponseColumn,
    ResponseRow,
)
from .config_models import (
    AssemblyOptions,
    ChunkingStrategy,
    ConnectionConfig,
    ConnectionType,
    MappingOptions,
    MergeStrategy,
    MissingChunkPolicy,
    PipelineConfig,
)
from .error_record import ErrorRecord
from .grid import DimensionData, DimensionMember, Grid, RangeStructure, ValidationResult
from .processing_result import (
    ChunkStatsAccumulator,
    OperationResult,
    PerformanceMetrics,
    PreprocessedData,
    WriteOutcome,
)

__all__ = [
    # Grid models
    "Grid",
    "RangeStructure",
    "DimensionMember",
    "DimensionData",
    "ValidationResult",
    # Chunk / response models
    "GridAxis",
    "GridDefinition",
    "ChunkMetadata",
    "DataChunk",
    "ChunkStatus",
    "ChunkResponse",
    "ResponseRow",
    "ResponseColumn",
    "OLAPResponseData",
    # Cell models
    "DataType",
    "CellFormat",
    "CellValidation",
    "CellMapping",
    "RangeGroup",
    # Configuration models
    "ChunkingStrategy",
    "AssemblyOptions",
    "MappingOptions",
    "ConnectionConfig",
    "ConnectionType",
    "MergeStrategy",
    "MissingChunkPolicy",
    "PipelineConfig",
    # Result models
    "PreprocessedData",
    "WriteOutcome",
    "PerformanceMetrics",
    "OperationResult",
    "ChunkStatsAccumulator",
    "ErrorRecord",
]
