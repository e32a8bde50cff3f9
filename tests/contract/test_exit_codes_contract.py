from __future__ import annotations

from pathlib import Path

from gridchunker.cli.__main__ import EXIT_FATAL, EXIT_PARTIAL_FAILURE, EXIT_SUCCESS_ALL
from gridchunker.cli.__main__ import main as cli_main

"""Exit code contract: 0 success, 2 partial failure, 1 fatal."""


def test_exit_code_constants():
    assert (EXIT_SUCCESS_ALL, EXIT_FATAL, EXIT_PARTIAL_FAILURE) == (0, 1, 2)


def test_exit_code_all_success(temp_workdir: Path, pov_grid, pov_grid_bodies, write_grid_csv, write_responses, capsys):
    body = {"rows": [row for b in pov_grid_bodies for row in b["rows"]]}
    code = cli_main([str(write_grid_csv(pov_grid)), "--responses", str(write_responses([body]))])
    assert code == 0
    assert "SUMMARY " in capsys.readouterr().out


def test_exit_code_partial_failure(temp_workdir: Path, pov_grid, pov_grid_bodies, write_grid_csv, write_responses, capsys):
    cfg = temp_workdir / "config" / "gridchunker.yml"
    cfg.write_text(
        "chunking:\n  max_cells_per_chunk: 2\nassembly:\n  handle_missing_chunks: skip\n",
        encoding="utf-8",
    )
    responses = write_responses([pov_grid_bodies[0], {"error": "timeout"}])

    code = cli_main([str(write_grid_csv(pov_grid)), "--responses", str(responses)])

    out = capsys.readouterr().out
    assert code == 2
    assert "ERROR chunk 2/2 failed: timeout" in out
    assert "SUMMARY chunks=1/2 failed=1 cells=2" in out
    assert list((temp_workdir / "logs").glob("errors-*.log"))


def test_exit_code_fatal_missing_input(temp_workdir: Path, capsys):
    code = cli_main([str(temp_workdir / "data" / "missing.csv")])
    assert code == 1
    assert "ERROR input:" in capsys.readouterr().out


def test_exit_code_fatal_bad_config(temp_workdir: Path, pov_grid, write_grid_csv, capsys):
    cfg = temp_workdir / "config" / "gridchunker.yml"
    cfg.write_text("unknown_section: true\n", encoding="utf-8")
    code = cli_main([str(write_grid_csv(pov_grid))])
    assert code == 1
    assert "ERROR config:" in capsys.readouterr().out


def test_exit_code_fatal_structure(temp_workdir: Path, write_grid_csv, capsys):
    grid = [["", "Jan", "Feb"], ["", "1", "2"]]
    code = cli_main([str(write_grid_csv(grid)), "--plan-only"])
    assert code == 1
    assert "ERROR processing: Could not find data row start" in capsys.readouterr().out


def test_exit_code_fatal_assembly(temp_workdir: Path, pov_grid, write_grid_csv, write_responses, capsys):
    code = cli_main([str(write_grid_csv(pov_grid)), "--responses", str(write_responses([None]))])
    assert code == 1
    assert "ERROR processing: Response validation failed" in capsys.readouterr().out


def test_exit_code_fatal_missing_connection(temp_workdir: Path, pov_grid, write_grid_csv, capsys):
    # no --responses and no server_url configured
    code = cli_main([str(write_grid_csv(pov_grid))])
    assert code == 1
    assert "ERROR setup: connection.server_url is not configured" in capsys.readouterr().out
