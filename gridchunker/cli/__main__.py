from __future__ import annotations

import argparse
import asyncio
import json
import sys
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

from ..config.loader import ConfigError, config_from_dict, load_config
from ..excel.reader import GridReadError, read_grid_file, write_grid_file
from ..exceptions import ProcessingError
from ..logging.error_log import ErrorLogBuffer
from ..logging.init import log_summary, setup_logging
from ..models.config_models import PipelineConfig
from ..models.processing_result import OperationResult
from ..services.orchestrator import GridPipeline, preprocess
from ..services.structure import clean_empty_rows
from ..services.summary import render_summary_line
from ..sink.writer import MemoryGridWriter
from ..transport.http import HttpChunkTransport
from ..transport.replay import ReplayTransport

"""CLI entrypoint.

Flow:
- Load .env (override) and the YAML config
- Read the input grid (.xlsx/.csv)
- --plan-only: print structure + chunk payloads as JSON and exit
- Otherwise run the pipeline against the backend (or a recorded responses
  file with --responses), write the refreshed grid to --output and print
  the SUMMARY line
"""

EXIT_SUCCESS_ALL = 0
EXIT_PARTIAL_FAILURE = 2
EXIT_FATAL = 1

DEFAULT_CONFIG_PATH = Path("config/gridchunker.yml")


def _load_env_file(path: Path, override: bool = True) -> None:
    """Load .env using python-dotenv.

    override=True: .env の値で既存の環境変数 (OLAP_*) を上書きする。
    """
    if path.exists():
        load_dotenv(dotenv_path=path, override=override)


def _parse_args(argv: list[str]) -> argparse.Namespace:
    p = argparse.ArgumentParser(
        prog="gridchunker",
        description="Refresh an OLAP grid sheet through chunked export data slice requests",
    )
    p.add_argument("input", type=Path, help="Input grid (.xlsx or .csv)")
    p.add_argument("--sheet", help="Sheet name (xlsx only, default: first sheet)")
    p.add_argument(
        "--config",
        type=Path,
        default=None,
        help=f"YAML config (default: {DEFAULT_CONFIG_PATH} when present)",
    )
    p.add_argument("--output", type=Path, help="Write the refreshed grid to this .xlsx/.csv file")
    p.add_argument("--responses", type=Path, help="Answer chunks from a recorded JSON responses file")
    p.add_argument("--plan-only", action="store_true", help="Print structure and chunk payloads, then exit")
    p.add_argument("--debug", action="store_true", help="Enable debug logging")
    return p.parse_args(argv)


def _resolve_config(path: Path | None) -> PipelineConfig:
    if path is not None:
        return load_config(path)
    if DEFAULT_CONFIG_PATH.exists():
        return load_config(DEFAULT_CONFIG_PATH)
    # config なし: 既定値 + OLAP_* 環境変数
    return config_from_dict({})


def _plan_document(grid: list[list[str]], config: PipelineConfig) -> dict[str, Any]:
    pre = preprocess(grid, config.chunking)
    s = pre.structure
    return {
        "structure": {
            "povMembers": s.pov_members,
            "columnHeaders": s.column_headers,
            "rowHeaders": s.row_headers,
            "dataStartRow": s.data_start_row,
            "dataStartCol": s.data_start_col,
            "totalRows": s.total_rows,
            "totalCols": s.total_cols,
        },
        "estimatedTotalCells": pre.estimated_total_cells,
        "estimatedTotalSize": pre.estimated_total_size,
        "chunks": [
            {
                "chunkId": c.chunk_id,
                "chunkIndex": c.chunk_index,
                "totalChunks": c.total_chunks,
                "estimatedCells": c.estimated_cells,
                "estimatedSize": c.estimated_size,
                "metadata": c.metadata.to_dict(),
                "payload": c.grid_definition.to_payload(),
            }
            for c in pre.chunks
        ],
    }


async def _run_pipeline(
    grid: list[list[str]], config: PipelineConfig, responses: Path | None, writer: MemoryGridWriter
) -> OperationResult:
    error_log = ErrorLogBuffer(config.error_log_dir)
    if responses is not None:
        transport = ReplayTransport.from_file(responses)
        return await GridPipeline(config, transport, writer, error_log).run(grid)
    async with HttpChunkTransport(config.connection) as http_transport:
        return await GridPipeline(config, http_transport, writer, error_log).run(grid)


def main(argv: list[str] | None = None) -> int:
    # NOTE: [] が渡されたときに sys.argv[1:] を読まないよう None のときだけ参照
    if argv is None:
        argv = sys.argv[1:]
    args = _parse_args(argv)
    logger = setup_logging(debug=args.debug)
    if args.debug:
        logger.debug("debug mode enabled")

    _load_env_file(Path(".env"), override=True)
    try:
        config = _resolve_config(args.config)
    except ConfigError as e:
        logger.error(f"config: {e}")
        return EXIT_FATAL

    try:
        grid = read_grid_file(args.input, sheet=args.sheet)
    except GridReadError as e:
        logger.error(f"input: {e}")
        return EXIT_FATAL
    logger.info(f"Read {len(grid)} rows from: {args.input}")

    if args.plan_only:
        try:
            document = _plan_document(grid, config)
        except ProcessingError as e:
            logger.error(f"processing: {e}")
            return EXIT_FATAL
        print(json.dumps(document, ensure_ascii=False, indent=2))
        return EXIT_SUCCESS_ALL

    writer = MemoryGridWriter(clean_empty_rows(grid))
    try:
        result = asyncio.run(_run_pipeline(grid, config, args.responses, writer))
    except ProcessingError as e:
        logger.error(f"processing: {e}")
        return EXIT_FATAL
    except ValueError as e:
        # responses file / connection settings
        logger.error(f"setup: {e}")
        return EXIT_FATAL

    if args.output is not None:
        try:
            write_grid_file(args.output, writer.grid)
        except (OSError, GridReadError) as e:
            logger.error(f"output: {e}")
            return EXIT_FATAL
        logger.info(f"Wrote refreshed grid to: {args.output}")

    summary_line = render_summary_line(result)
    # log_summary adds the "SUMMARY " prefix
    log_summary(summary_line[len("SUMMARY ") :])

    if result.success:
        return EXIT_SUCCESS_ALL
    return EXIT_PARTIAL_FAILURE


if __name__ == "__main__":  # pragma: no cover
    raise SystemExit(main())
