"""``fibdispatch serve`` — run the HTTP server."""

from __future__ import annotations

import logging
import os
from dataclasses import replace

import typer
from rich.console import Console
from rich.panel import Panel

from fibdispatch._internal.config import load_config
from fibdispatch._internal.errors import ConfigError
from fibdispatch._internal.logging import setup_logging
from fibdispatch._internal.types import START_METHODS
from fibdispatch.server.app import run_server

console = Console(stderr=True)


def serve_cmd(
    host: str | None = typer.Option(
        None,
        "--host",
        help="Bind address (default: FIBDISPATCH_HOST or 127.0.0.1).",
    ),
    port: int | None = typer.Option(
        None,
        "--port",
        "-p",
        help="Listen port (default: FIBDISPATCH_PORT or 3000).",
        min=1,
        max=65535,
    ),
    timeout: float | None = typer.Option(
        None,
        "--timeout",
        "-t",
        help="Seconds to wait for a worker before failing the request (default: no timeout).",
        min=0.001,
    ),
    start_method: str | None = typer.Option(
        None,
        "--start-method",
        help="Worker start method: spawn, fork, or forkserver.",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        "-v",
        help="Enable verbose (DEBUG) logging.",
    ),
    json_logs: bool = typer.Option(
        False,
        "--json-logs",
        help="Emit structured JSON logs.",
    ),
) -> None:
    """Run the HTTP server until interrupted."""
    try:
        config = load_config()
    except ConfigError as exc:
        console.print(f"[red]Error:[/red] {exc}")
        raise typer.Exit(code=1) from exc

    if start_method is not None and start_method not in START_METHODS:
        msg = f"Unknown start method: {start_method}. Choose from: {', '.join(START_METHODS)}"
        raise typer.BadParameter(msg)

    overrides: dict[str, object] = {}
    if host is not None:
        overrides["host"] = host
    if port is not None:
        overrides["port"] = port
    if timeout is not None:
        overrides["dispatch_timeout"] = timeout
    if start_method is not None:
        overrides["start_method"] = start_method
    config = replace(config, **overrides)  # type: ignore[arg-type]

    log_level = logging.DEBUG if verbose else logging.INFO
    if json_logs:
        # Spawned workers read this when they configure logging
        os.environ["FIBDISPATCH_JSON_LOGS"] = "1"
    setup_logging(level=log_level, json_format=json_logs)

    console.print(
        Panel(
            f"[bold]URL:[/bold]          http://{config.host}:{config.port}\n"
            f"[bold]Start method:[/bold] {config.start_method}\n"
            f"[bold]Timeout:[/bold]      "
            f"{'none' if config.dispatch_timeout is None else f'{config.dispatch_timeout}s'}",
            title="fibdispatch",
            border_style="cyan",
        )
    )

    run_server(config, log_level=log_level)
