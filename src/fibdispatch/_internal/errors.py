"""Custom exception hierarchy for fibdispatch."""

from __future__ import annotations


class FibDispatchError(Exception):
    """Base exception for all fibdispatch errors.

    Everything raised by the compute, dispatch, and server layers derives
    from this class, so a single except clause can catch any of them.
    """


class ConfigError(FibDispatchError):
    """Raised when configuration is invalid or missing.

    Examples:
        - ``FIBDISPATCH_PORT`` is not an integer.
        - ``FIBDISPATCH_START_METHOD`` names an unknown start method.
    """


class InvalidInputError(FibDispatchError):
    """Raised when a compute input is outside the function's domain.

    Examples:
        - A negative ``n`` is passed to ``fibonacci``.
        - A non-integer value is passed where an integer is required.
    """


class InputParseError(InvalidInputError):
    """Raised when a path parameter cannot be parsed as an integer."""


class ComputeError(FibDispatchError):
    """Raised when an in-process computation fails on valid input.

    Examples:
        - ``fibonacci`` recurses past the interpreter's recursion limit.
    """


class DispatchError(FibDispatchError):
    """Raised when work could not be handed to a worker process.

    Examples:
        - The OS refused to create a new process.
        - The coordinator was already closed.
    """


class WorkerCrashError(DispatchError):
    """Raised when a worker process failed before delivering a result.

    Attributes:
        worker_pid: PID of the failed worker, if it was ever started.
        exit_code: Process exit code (negative for a signal), or None if
            the worker reported an error before its exit was observed.
    """

    def __init__(
        self,
        message: str,
        *,
        worker_pid: int | None = None,
        exit_code: int | None = None,
    ) -> None:
        super().__init__(message)
        self.worker_pid = worker_pid
        self.exit_code = exit_code


class DispatchTimeoutError(DispatchError):
    """Raised when a worker did not report back within the dispatch timeout.

    Attributes:
        timeout: The timeout, in seconds, that expired.
    """

    def __init__(self, message: str, *, timeout: float) -> None:
        super().__init__(message)
        self.timeout = timeout
