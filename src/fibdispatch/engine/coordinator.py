"""Per-request worker process coordinator.

Every ``dispatch`` call spawns a fresh worker process, sends it one
WorkUnit over a private pipe, and suspends only the calling coroutine
until the worker answers or exits. Completion is observed through two
one-shot event-loop readers: the pipe (first message is the result) and
the process sentinel (exit before any message is a failure). Both feed a
single future, so each dispatch resolves exactly once.

Requires an event loop with ``add_reader`` support (the default selector
loop on POSIX, or uvloop).
"""

from __future__ import annotations

import asyncio
import itertools
import multiprocessing
from typing import TYPE_CHECKING, Final

from fibdispatch._internal.errors import DispatchError, DispatchTimeoutError, WorkerCrashError
from fibdispatch._internal.logging import get_logger
from fibdispatch.engine.protocol import WorkerState, WorkResult, WorkUnit
from fibdispatch.engine.worker import run_worker_process

if TYPE_CHECKING:
    from collections.abc import Callable
    from multiprocessing.connection import Connection
    from multiprocessing.process import BaseProcess

    from fibdispatch._internal.types import StartMethod, Variant

logger = get_logger("engine.coordinator")

# Upper bound on a blocking join once a worker is known to be exiting.
_REAP_TIMEOUT: Final = 1.0


class _UseDefault:
    """Marker type for "use the coordinator's default timeout"."""


_USE_DEFAULT: Final = _UseDefault()


class WorkerHandle:
    """The coordinator's handle to one spawned, single-use worker process.

    State machine: PENDING -> COMPLETED (result received)
                           -> FAILED (error result, early exit, abort)

    The transition happens at most once. Right after it the pipe is
    closed, and the process is reaped as soon as its exit is observed.
    A handle is never reused.

    Attributes:
        pid: OS process id of the worker.
        state: Current completion state.
        exit_code: Process exit code once observed, else None.
        future: Resolved with the WorkResult or failed with a
            WorkerCrashError.
        reaped: Set once the process has been joined and closed.
    """

    def __init__(
        self,
        process: BaseProcess,
        conn: Connection,
        loop: asyncio.AbstractEventLoop,
        on_reaped: Callable[[WorkerHandle], None],
    ) -> None:
        self.pid: int | None = process.pid
        self.state = WorkerState.PENDING
        self.exit_code: int | None = None
        self.future: asyncio.Future[WorkResult] = loop.create_future()
        self.reaped = asyncio.Event()

        self._process = process
        self._conn: Connection | None = conn
        self._conn_fd = conn.fileno()
        self._sentinel = process.sentinel
        self._loop = loop
        self._on_reaped = on_reaped
        self._watching_conn = False
        self._watching_exit = False

    def __repr__(self) -> str:
        return f"WorkerHandle(pid={self.pid}, state={self.state.name})"

    def watch(self) -> None:
        """Register the message and exit listeners on the event loop."""
        self._loop.add_reader(self._conn_fd, self._on_message)
        self._watching_conn = True
        self._loop.add_reader(self._sentinel, self._on_exit)
        self._watching_exit = True

    def abort(self, exc: BaseException | None = None) -> None:
        """Give up on the worker: fail the handle and terminate the process.

        Used for timeouts, cancelled callers and coordinator shutdown. The
        process is reaped asynchronously once its exit is observed.

        Args:
            exc: Exception delivered to a still-waiting caller. If None the
                pending future is cancelled instead.
        """
        if self.reaped.is_set():
            return
        if self.state is WorkerState.PENDING:
            self.state = WorkerState.FAILED
            if not self.future.done():
                if exc is None:
                    self.future.cancel()
                else:
                    self.future.set_exception(exc)
        self._close_conn()
        if self._process.exitcode is None:
            logger.debug("Terminating worker %s", self.pid)
            self._process.terminate()

    def kill(self) -> None:
        """Forcefully kill and reap the worker, blocking briefly."""
        if self.reaped.is_set():
            return
        self.abort()
        if self._process.exitcode is None:
            self._process.kill()
        self._reap()

    # -- event loop callbacks ------------------------------------------------

    def _on_message(self) -> None:
        if self._conn is None:
            return
        try:
            result = self._conn.recv()
        except (EOFError, OSError):
            # Worker end closed without a message; the exit event decides.
            self._stop_watching_conn()
            return
        self._complete(result)

    def _on_exit(self) -> None:
        self._stop_watching_exit()
        self.exit_code = self._join()

        # A result sent right before a clean exit may still be buffered.
        if self.state is WorkerState.PENDING and self._conn is not None and self._conn.poll():
            self._on_message()

        if self.state is WorkerState.PENDING:
            msg = f"Worker {self.pid} exited with code {self.exit_code} before sending a result"
            self._fail(
                WorkerCrashError(msg, worker_pid=self.pid, exit_code=self.exit_code)
            )
        self._reap()

    # -- transitions ---------------------------------------------------------

    def _complete(self, result: WorkResult) -> None:
        if not result.ok:
            msg = f"Worker {self.pid} failed: {result.error}"
            self._fail(
                WorkerCrashError(msg, worker_pid=self.pid, exit_code=self._process.exitcode)
            )
            return
        if self.state is not WorkerState.PENDING:
            self._close_conn()
            return
        self.state = WorkerState.COMPLETED
        if not self.future.done():
            self.future.set_result(result)
        logger.debug("Worker %s completed", self.pid)
        self._close_conn()

    def _fail(self, exc: WorkerCrashError) -> None:
        if self.state is not WorkerState.PENDING:
            return
        self.state = WorkerState.FAILED
        if not self.future.done():
            self.future.set_exception(exc)
        logger.warning("%s", exc)
        self._close_conn()

    # -- release -------------------------------------------------------------

    def _close_conn(self) -> None:
        self._stop_watching_conn()
        if self._conn is not None:
            self._conn.close()
            self._conn = None

    def _join(self) -> int | None:
        self._process.join(timeout=_REAP_TIMEOUT)
        if self._process.exitcode is None:
            self._process.kill()
            self._process.join(timeout=_REAP_TIMEOUT)
        return self._process.exitcode

    def _reap(self) -> None:
        if self.reaped.is_set():
            return
        self._stop_watching_exit()
        self._close_conn()
        self.exit_code = self._join()
        self._process.close()
        self.reaped.set()
        logger.debug("Worker %s reaped (exit code %s)", self.pid, self.exit_code)
        self._on_reaped(self)

    def _stop_watching_conn(self) -> None:
        if self._watching_conn:
            self._loop.remove_reader(self._conn_fd)
            self._watching_conn = False

    def _stop_watching_exit(self) -> None:
        if self._watching_exit:
            self._loop.remove_reader(self._sentinel)
            self._watching_exit = False


class DispatchCoordinator:
    """Spawns one worker process per request and routes its result back.

    No worker is shared between dispatch calls and no pool is kept. The
    coordinator only tracks handles that have not been reaped yet so it
    can terminate them on shutdown.

    Attributes:
        start_method: multiprocessing start method used for workers.
        default_timeout: Seconds to wait for a worker when ``dispatch`` is
            called without an explicit timeout. None waits indefinitely.
    """

    def __init__(
        self,
        *,
        start_method: StartMethod = "spawn",
        default_timeout: float | None = None,
        log_level: int = 20,
    ) -> None:
        """Initialize the coordinator.

        Args:
            start_method: multiprocessing start method for workers.
            default_timeout: Default per-dispatch timeout in seconds.
            log_level: Logging level passed to workers.
        """
        self.start_method = start_method
        self.default_timeout = default_timeout
        self._log_level = log_level
        self._ctx = multiprocessing.get_context(start_method)
        self._handles: set[WorkerHandle] = set()
        self._seq = itertools.count(1)
        self._closed = False

    @property
    def active_count(self) -> int:
        """Return the number of workers not yet reaped."""
        return len(self._handles)

    @property
    def handles(self) -> list[WorkerHandle]:
        """Return a snapshot of the handles not yet reaped."""
        return list(self._handles)

    @property
    def closed(self) -> bool:
        """Return True once ``close()`` has been called."""
        return self._closed

    async def dispatch(
        self,
        value: int,
        *,
        variant: Variant = "term",
        timeout: float | None | _UseDefault = _USE_DEFAULT,
    ) -> WorkResult:
        """Compute ``value`` in a new worker process.

        Args:
            value: Input integer for the compute function.
            variant: Algorithm variant, "term" or "sequence".
            timeout: Seconds to wait for the result. Defaults to
                ``default_timeout``; pass None to wait indefinitely.

        Returns:
            The worker's WorkResult.

        Raises:
            DispatchError: If the worker could not be spawned or sent its
                work unit, or the coordinator is closed.
            WorkerCrashError: If the worker failed or exited before
                sending a result.
            DispatchTimeoutError: If the timeout expired first. The
                worker is terminated.
        """
        if self._closed:
            msg = "Coordinator is closed"
            raise DispatchError(msg)

        effective_timeout = self.default_timeout if isinstance(timeout, _UseDefault) else timeout
        loop = asyncio.get_running_loop()
        handle = self._spawn(WorkUnit(input=value, variant=variant), loop)

        try:
            return await asyncio.wait_for(handle.future, timeout=effective_timeout)
        except TimeoutError:
            handle.abort()
            msg = f"Worker {handle.pid} did not respond within {effective_timeout}s"
            logger.warning(msg)
            raise DispatchTimeoutError(msg, timeout=effective_timeout or 0.0) from None
        except asyncio.CancelledError:
            handle.abort()
            raise

    def _spawn(self, unit: WorkUnit, loop: asyncio.AbstractEventLoop) -> WorkerHandle:
        """Start a worker process, send it ``unit``, and watch it.

        Args:
            unit: The single work unit for the new worker.
            loop: Running event loop that will observe the worker.

        Returns:
            The registered WorkerHandle.

        Raises:
            DispatchError: If the process could not be started or the
                work unit could not be sent.
        """
        parent_conn, child_conn = self._ctx.Pipe(duplex=True)
        process = self._ctx.Process(
            target=run_worker_process,
            args=(child_conn, self._log_level),
            name=f"fibdispatch-worker-{next(self._seq)}",
            daemon=True,
        )

        try:
            process.start()
        except Exception as exc:
            parent_conn.close()
            msg = f"Failed to spawn worker process: {exc}"
            raise DispatchError(msg) from exc
        finally:
            # Only the worker holds this end, so its exit shows up as EOF
            child_conn.close()

        handle = WorkerHandle(process, parent_conn, loop, self._handles.discard)
        self._handles.add(handle)
        logger.debug("Started worker process: pid=%d, name=%s", process.pid or 0, process.name)

        try:
            parent_conn.send(unit)
        except Exception as exc:
            handle.kill()
            msg = f"Failed to send work unit to worker {handle.pid}: {exc}"
            raise DispatchError(msg) from exc

        handle.watch()
        return handle

    async def close(self, timeout: float = 5.0) -> None:
        """Terminate every outstanding worker and wait for it to be reaped.

        Pending dispatch calls fail with DispatchError. Workers that do
        not exit within ``timeout`` are killed.

        Args:
            timeout: Maximum seconds to wait for terminated workers.
        """
        self._closed = True
        handles = list(self._handles)
        if not handles:
            return

        for handle in handles:
            handle.abort(DispatchError(f"Coordinator closed while worker {handle.pid} was running"))

        waiters = [asyncio.ensure_future(h.reaped.wait()) for h in handles]
        _done, pending = await asyncio.wait(waiters, timeout=timeout)
        for waiter in pending:
            waiter.cancel()

        for handle in list(self._handles):
            logger.warning("Worker %s did not exit in time, killing", handle.pid)
            handle.kill()

        logger.info("Coordinator closed, %d outstanding workers stopped", len(handles))
