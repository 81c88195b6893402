"""Configuration loading for fibdispatch."""

from __future__ import annotations

import math
import os
from dataclasses import dataclass

from fibdispatch._internal.errors import ConfigError
from fibdispatch._internal.types import START_METHODS, StartMethod


@dataclass(frozen=True)
class ServerConfig:
    """Global fibdispatch configuration.

    Attributes:
        host: Interface the HTTP server binds to.
        port: TCP port the HTTP server listens on.
        dispatch_timeout: Seconds to wait for a worker result before
            failing the request. None waits indefinitely.
        start_method: multiprocessing start method used for workers.
    """

    host: str = "127.0.0.1"
    port: int = 3000
    dispatch_timeout: float | None = None
    start_method: StartMethod = "spawn"


def load_config() -> ServerConfig:
    """Load configuration from environment variables with defaults.

    Environment variables:
        FIBDISPATCH_HOST: Bind address (default: 127.0.0.1).
        FIBDISPATCH_PORT: Listen port (default: 3000).
        FIBDISPATCH_DISPATCH_TIMEOUT: Worker timeout in seconds (default: none).
        FIBDISPATCH_START_METHOD: spawn, fork, or forkserver (default: spawn).

    Returns:
        Populated ServerConfig instance.

    Raises:
        ConfigError: If an environment variable has an invalid value.
    """
    port_str = os.environ.get("FIBDISPATCH_PORT", "3000")
    timeout_str = os.environ.get("FIBDISPATCH_DISPATCH_TIMEOUT", "").strip()
    start_method = os.environ.get("FIBDISPATCH_START_METHOD", "spawn")

    try:
        port = int(port_str)
    except ValueError:
        msg = f"FIBDISPATCH_PORT must be an integer, got: {port_str!r}"
        raise ConfigError(msg) from None

    if not 1 <= port <= 65535:
        msg = f"FIBDISPATCH_PORT must be between 1 and 65535, got: {port}"
        raise ConfigError(msg)

    timeout: float | None = None
    if timeout_str:
        try:
            timeout = float(timeout_str)
        except ValueError:
            msg = f"FIBDISPATCH_DISPATCH_TIMEOUT must be a number, got: {timeout_str!r}"
            raise ConfigError(msg) from None

        if not math.isfinite(timeout) or timeout <= 0:
            msg = f"FIBDISPATCH_DISPATCH_TIMEOUT must be positive, got: {timeout}"
            raise ConfigError(msg)

    if start_method not in START_METHODS:
        msg = (
            f"FIBDISPATCH_START_METHOD must be one of {', '.join(START_METHODS)}, "
            f"got: {start_method!r}"
        )
        raise ConfigError(msg)

    return ServerConfig(
        host=os.environ.get("FIBDISPATCH_HOST", "127.0.0.1"),
        port=port,
        dispatch_timeout=timeout,
        start_method=start_method,  # type: ignore[arg-type]
    )
