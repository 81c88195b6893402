"""``fibdispatch bench`` — compare the direct and worker routes of a live server."""

from __future__ import annotations

import asyncio
import logging
from typing import TYPE_CHECKING

import aiohttp
import typer
from rich.console import Console
from rich.table import Table

from fibdispatch._internal.logging import setup_logging
from fibdispatch.bench.client import run_benchmark

if TYPE_CHECKING:
    from fibdispatch.bench.client import RouteBenchmark

console = Console(stderr=True)


def _make_results_table(results: list[RouteBenchmark], requests: int) -> Table:
    """Build a Rich table comparing the benchmarked routes.

    Args:
        results: One RouteBenchmark per route.
        requests: Concurrent requests issued per route.

    Returns:
        Formatted Rich Table.
    """
    table = Table(
        title=f"{requests} concurrent requests per route",
        show_header=True,
        header_style="bold cyan",
        expand=True,
    )
    table.add_column("Route", style="bold")
    table.add_column("OK", justify="right")
    table.add_column("Errors", justify="right")
    table.add_column("Wall time", justify="right")
    table.add_column("Min", justify="right")
    table.add_column("Avg", justify="right")
    table.add_column("p50", justify="right")
    table.add_column("Max", justify="right")
    table.add_column("Serialized", justify="center")

    for bench in results:
        stats = bench.stats
        table.add_row(
            f"/{bench.route}/{bench.n}",
            str(len(bench.reports)),
            str(len(bench.errors)),
            f"{bench.wall_time_ms:.0f}ms",
            f"{stats.min:.0f}ms",
            f"{stats.avg:.0f}ms",
            f"{stats.p50:.0f}ms",
            f"{stats.max:.0f}ms",
            "yes" if bench.serialized else "no",
        )
    return table


def bench_cmd(
    n: int = typer.Argument(35, help="Input sent with every request."),
    url: str = typer.Option(
        "http://127.0.0.1:3000",
        "--url",
        "-u",
        help="Base URL of a running fibdispatch server.",
    ),
    requests: int = typer.Option(
        2,
        "--requests",
        "-r",
        help="Concurrent requests per route.",
        min=1,
    ),
    timeout: float = typer.Option(
        300.0,
        "--timeout",
        "-t",
        help="Client timeout per request, in seconds.",
        min=1.0,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
) -> None:
    """Fire concurrent requests at both routes and compare wall-clock time."""
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING)

    try:
        results = asyncio.run(run_benchmark(url, n, requests=requests, timeout=timeout))
    except aiohttp.ClientError as exc:
        console.print(f"[red]Benchmark failed:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(_make_results_table(results, requests))

    for bench in results:
        for error in bench.errors:
            console.print(f"[red]/{bench.route}:[/red] {error}")

    direct, dispatched = results
    if direct.reports and dispatched.reports:
        speedup = direct.wall_time_ms / max(dispatched.wall_time_ms, 1.0)
        console.print(f"[green]Worker route speed-up:[/green] {speedup:.2f}x")

    if any(bench.errors for bench in results):
        raise typer.Exit(code=1)
