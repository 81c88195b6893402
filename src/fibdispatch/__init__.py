"""fibdispatch — serve CPU-bound work inline or in per-request worker processes."""

from __future__ import annotations

from fibdispatch._internal.config import ServerConfig, load_config
from fibdispatch._internal.errors import (
    ComputeError,
    ConfigError,
    DispatchError,
    DispatchTimeoutError,
    FibDispatchError,
    InputParseError,
    InvalidInputError,
    WorkerCrashError,
)
from fibdispatch.compute.fibonacci import compute, fibonacci, fibonacci_sequence
from fibdispatch.engine.coordinator import DispatchCoordinator, WorkerHandle
from fibdispatch.engine.protocol import WorkerState, WorkResult, WorkUnit
from fibdispatch.server.router import ComputeReport, RequestRouter

__version__ = "0.1.0"

__all__ = [
    "ComputeError",
    "ComputeReport",
    "ConfigError",
    "DispatchCoordinator",
    "DispatchError",
    "DispatchTimeoutError",
    "FibDispatchError",
    "InputParseError",
    "InvalidInputError",
    "RequestRouter",
    "ServerConfig",
    "WorkResult",
    "WorkUnit",
    "WorkerCrashError",
    "WorkerHandle",
    "WorkerState",
    "compute",
    "fibonacci",
    "fibonacci_sequence",
    "load_config",
]
