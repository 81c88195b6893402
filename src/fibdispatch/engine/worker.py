"""Single-use worker process entry point with uvloop event loop helper."""

from __future__ import annotations

import os
import signal
import sys
from typing import TYPE_CHECKING

from fibdispatch._internal.logging import get_logger, setup_logging
from fibdispatch.compute.fibonacci import compute
from fibdispatch.engine.protocol import WorkResult, WorkUnit

if TYPE_CHECKING:
    from multiprocessing.connection import Connection

logger = get_logger("engine.worker")


def install_uvloop() -> None:
    """Install uvloop as the default event loop policy if available.

    Falls back silently to the default asyncio event loop on Windows
    or if uvloop is not installed.
    """
    if sys.platform == "win32":
        return

    try:
        import uvloop

        uvloop.install()
        logger.debug("uvloop installed as event loop policy")
    except ImportError:
        logger.debug("uvloop not available, using default asyncio event loop")


def run_worker_process(conn: Connection, log_level: int = 20) -> None:
    """Entry point for a worker subprocess.

    Receives exactly one WorkUnit on ``conn``, computes it, sends exactly
    one WorkResult back, and returns. The process then exits; there is no
    loop back to receive more work.

    A computation error is reported as a WorkResult with ``error`` set,
    after which the process exits with status 1. If the parent end of the
    pipe is gone before a unit arrives, the process exits with status 1
    without sending anything.

    Args:
        conn: Worker end of the duplex pipe to the coordinator.
        log_level: Logging level.
    """
    # Shutdown is driven by the server process
    signal.signal(signal.SIGINT, signal.SIG_IGN)
    setup_logging(level=log_level)
    pid = os.getpid()

    try:
        unit: WorkUnit = conn.recv()
    except (EOFError, OSError):
        logger.warning("Worker %d: channel closed before a work unit arrived", pid)
        conn.close()
        sys.exit(1)

    logger.debug("Worker %d: received %r", pid, unit)

    try:
        value = compute(unit.input, unit.variant)
    except Exception as exc:
        logger.exception("Worker %d: computation failed for input=%d", pid, unit.input)
        _send(conn, WorkResult(value=None, error=f"{type(exc).__name__}: {exc}", worker_pid=pid))
        conn.close()
        sys.exit(1)

    _send(conn, WorkResult(value=value, worker_pid=pid))
    conn.close()
    logger.debug("Worker %d: result sent", pid)


def _send(conn: Connection, result: WorkResult) -> None:
    """Send the result, tolerating a parent that already gave up.

    Args:
        conn: Worker end of the pipe.
        result: The one result this worker produces.
    """
    try:
        conn.send(result)
    except (BrokenPipeError, OSError):
        logger.warning("Worker %d: coordinator went away before the result was sent", result.worker_pid)
