"""Main Typer application — entry point for the ``fibdispatch`` CLI."""

from __future__ import annotations

import typer

from fibdispatch import __version__
from fibdispatch.cli.bench import bench_cmd
from fibdispatch.cli.compute_cmd import compute_cmd
from fibdispatch.cli.serve import serve_cmd

app = typer.Typer(
    name="fibdispatch",
    help="Serve CPU-bound work inline or in per-request worker processes.",
    no_args_is_help=True,
    rich_markup_mode="rich",
)

app.command("serve", help="Run the HTTP server.")(serve_cmd)
app.command("compute", help="Compute one value locally, inline or in a worker.")(compute_cmd)
app.command("bench", help="Compare the direct and worker routes of a running server.")(bench_cmd)


def _version_callback(value: bool) -> None:
    """Print version and exit.

    Args:
        value: True if --version was passed.
    """
    if value:
        typer.echo(f"fibdispatch {__version__}")
        raise typer.Exit


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit.",
        callback=_version_callback,
        is_eager=True,
    ),
) -> None:
    """fibdispatch — offload CPU-bound work to worker processes."""
