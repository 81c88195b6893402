"""``fibdispatch compute`` — run one computation without the HTTP server."""

from __future__ import annotations

import asyncio
import logging

import typer
from rich.console import Console
from rich.panel import Panel

from fibdispatch._internal.errors import FibDispatchError
from fibdispatch._internal.logging import setup_logging
from fibdispatch.compute.fibonacci import validate_variant
from fibdispatch.engine.coordinator import DispatchCoordinator
from fibdispatch.server.router import ComputeReport, RequestRouter, format_timestamp, format_value

console = Console(stderr=True)


async def _dispatch_once(n: int, variant: str, timeout: float | None) -> ComputeReport:
    """Run a single dispatched computation with a throwaway coordinator."""
    coordinator = DispatchCoordinator(default_timeout=timeout)
    try:
        return await RequestRouter(coordinator).dispatched_compute(n, variant)  # type: ignore[arg-type]
    finally:
        await coordinator.close()


def compute_cmd(
    n: int = typer.Argument(..., help="Input integer (n >= 0)."),
    variant: str = typer.Option(
        "term",
        "--variant",
        help="Algorithm: term (n-th number) or sequence (first n numbers).",
    ),
    use_worker: bool = typer.Option(
        False,
        "--worker/--no-worker",
        help="Compute in a separate worker process instead of inline.",
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Worker timeout in seconds (only with --worker).",
        min=0.001,
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
) -> None:
    """Compute one value and print the result with its timing."""
    setup_logging(level=logging.DEBUG if verbose else logging.WARNING)

    try:
        checked_variant = validate_variant(variant)
        if use_worker:
            report = asyncio.run(_dispatch_once(n, checked_variant, timeout))
        else:
            report = RequestRouter(DispatchCoordinator()).direct_compute(n, checked_variant)
    except FibDispatchError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    console.print(
        Panel(
            f"[bold]Mode:[/bold]       {'worker' if use_worker else 'inline'}\n"
            f"[bold]Start time:[/bold] {format_timestamp(report.start_time)}\n"
            f"[bold]End time:[/bold]   {format_timestamp(report.end_time)}\n"
            f"[bold]Duration:[/bold]   {report.duration_ms} ms",
            title=f"{variant}({n})",
            border_style="cyan",
        )
    )
    typer.echo(format_value(report.result))
