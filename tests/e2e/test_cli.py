"""End-to-end tests for the fibdispatch CLI."""

from __future__ import annotations

import pytest
from typer.testing import CliRunner

from fibdispatch import __version__
from fibdispatch.cli.app import app

runner = CliRunner()


# ---------------------------------------------------------------------------
# Tests: version and help
# ---------------------------------------------------------------------------


def test_version_flag():
    """--version prints version and exits 0."""
    result = runner.invoke(app, ["--version"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_version_short_flag():
    """-V also prints version."""
    result = runner.invoke(app, ["-V"])
    assert result.exit_code == 0
    assert __version__ in result.output


def test_help_output():
    """--help lists the commands."""
    result = runner.invoke(app, ["--help"])
    assert result.exit_code == 0
    assert "fibdispatch" in result.output.lower()
    for command in ("serve", "compute", "bench"):
        assert command in result.output


def test_serve_help():
    """fibdispatch serve --help shows server options."""
    result = runner.invoke(app, ["serve", "--help"])
    assert result.exit_code == 0
    assert "--port" in result.output
    assert "--timeout" in result.output
    assert "--start-method" in result.output


# ---------------------------------------------------------------------------
# Tests: fibdispatch compute
# ---------------------------------------------------------------------------


def test_compute_inline():
    """fibdispatch compute prints the value as the last line."""
    result = runner.invoke(app, ["compute", "10"])
    assert result.exit_code == 0, result.output
    assert result.stdout.strip().splitlines()[-1] == "55"


def test_compute_sequence():
    result = runner.invoke(app, ["compute", "5", "--variant", "sequence"])
    assert result.exit_code == 0, result.output
    assert result.stdout.strip().splitlines()[-1] == "1,1,2,3,5"


@pytest.mark.timeout(60)
def test_compute_in_worker():
    """--worker runs the computation in a spawned process."""
    result = runner.invoke(app, ["compute", "20", "--worker"])
    assert result.exit_code == 0, result.output
    assert result.stdout.strip().splitlines()[-1] == "6765"


def test_compute_rejects_unknown_variant():
    result = runner.invoke(app, ["compute", "10", "--variant", "matrix"])
    assert result.exit_code == 1


def test_compute_rejects_negative_input():
    result = runner.invoke(app, ["compute", "--", "-3"])
    assert result.exit_code == 1


# ---------------------------------------------------------------------------
# Tests: fibdispatch bench
# ---------------------------------------------------------------------------


@pytest.mark.timeout(120)
def test_bench_against_live_server(sync_fib_server: str):
    """fibdispatch bench hits both routes and reports the speed-up."""
    result = runner.invoke(app, ["bench", "15", "--url", sync_fib_server, "-r", "2"])
    assert result.exit_code == 0, result.output
    assert "speed-up" in result.output


def test_bench_unreachable_server():
    """fibdispatch bench exits 1 when the server cannot be reached."""
    result = runner.invoke(app, ["bench", "5", "--url", "http://127.0.0.1:9", "-t", "2"])
    assert result.exit_code == 1
