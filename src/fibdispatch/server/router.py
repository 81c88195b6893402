"""Direct and dispatched compute operations with start/end timing."""

from __future__ import annotations

import re
import time
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from fibdispatch._internal.errors import ComputeError, InputParseError
from fibdispatch._internal.logging import get_logger
from fibdispatch.compute.fibonacci import compute, validate_input, validate_variant

if TYPE_CHECKING:
    from fibdispatch._internal.types import ComputeValue, Variant
    from fibdispatch.engine.coordinator import DispatchCoordinator

logger = get_logger("server.router")

_INT_RE = re.compile(r"^[+-]?\d+$")


def format_timestamp(moment: datetime) -> str:
    """Format a datetime as UTC ISO 8601 with milliseconds and a ``Z`` suffix.

    Example: ``2024-05-01T12:00:00.123Z``.
    """
    return moment.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")


def format_value(value: ComputeValue) -> str:
    """Render a compute result: a list is comma-joined without spaces."""
    if isinstance(value, list):
        return ",".join(str(v) for v in value)
    return str(value)


def parse_input(raw: str) -> int:
    """Parse a path segment as a decimal integer.

    Args:
        raw: Raw path segment, e.g. ``"30"``.

    Returns:
        The parsed integer. The sign is kept; range checks happen in the
        compute layer.

    Raises:
        InputParseError: If ``raw`` is not an optional sign followed by
            decimal digits, or has too many digits to convert.
    """
    if not _INT_RE.match(raw.strip()):
        msg = f"Expected an integer, got: {raw!r}"
        raise InputParseError(msg)
    try:
        return int(raw)
    except ValueError:
        # Digit strings past the interpreter's int conversion limit
        msg = f"Expected an integer, got {len(raw.strip())} digits"
        raise InputParseError(msg) from None


@dataclass(frozen=True)
class ComputeReport:
    """Outcome of one compute request with its timing.

    Attributes:
        result: Computed value.
        start_time: Wall-clock time the request started (UTC).
        end_time: Wall-clock time the result became available (UTC).
        duration_ms: Elapsed milliseconds, from a monotonic clock.
    """

    result: ComputeValue
    start_time: datetime
    end_time: datetime
    duration_ms: int

    def format(self) -> str:
        """Return the response body line for this report."""
        return (
            f"Result: {format_value(self.result)}, "
            f"Start time: {format_timestamp(self.start_time)}, "
            f"End time: {format_timestamp(self.end_time)}, "
            f"Duration: {self.duration_ms} ms"
        )


class _Stopwatch:
    """Captures wall-clock start/end and a monotonic duration."""

    def __init__(self) -> None:
        self.start_time = datetime.now(UTC)
        self._start = time.monotonic()

    def report(self, result: ComputeValue) -> ComputeReport:
        duration_ms = round((time.monotonic() - self._start) * 1000)
        return ComputeReport(
            result=result,
            start_time=self.start_time,
            end_time=datetime.now(UTC),
            duration_ms=duration_ms,
        )


class RequestRouter:
    """Maps requests to direct or worker-dispatched computation.

    ``direct_compute`` runs in the caller's thread and therefore blocks
    the event loop for the whole computation: concurrent direct requests
    are strictly serialized. ``dispatched_compute`` suspends only the
    calling coroutine while a worker process does the work.
    """

    def __init__(self, coordinator: DispatchCoordinator) -> None:
        self.coordinator = coordinator

    def direct_compute(self, value: int, variant: Variant = "term") -> ComputeReport:
        """Compute in the current execution context.

        Raises:
            InvalidInputError: If ``value`` is outside the compute domain.
            ComputeError: If the computation exceeds the recursion limit.
        """
        stopwatch = _Stopwatch()
        try:
            result = compute(value, variant)
        except RecursionError as exc:
            msg = f"Computation failed for n={value}: RecursionError: {exc}"
            raise ComputeError(msg) from exc
        report = stopwatch.report(result)
        logger.debug("Direct compute n=%d took %d ms", value, report.duration_ms)
        return report

    async def dispatched_compute(
        self,
        value: int,
        variant: Variant = "term",
        timeout: float | None = None,
    ) -> ComputeReport:
        """Compute in a freshly spawned worker process.

        Args:
            value: Input integer.
            variant: Algorithm variant.
            timeout: Per-request timeout in seconds. None falls back to
                the coordinator's default.

        Returns:
            Report whose ``end_time`` is when the worker result arrived.

        Raises:
            InvalidInputError: If ``value`` or ``variant`` is invalid. No
                worker is spawned in that case.
            DispatchError: If the worker could not be spawned, crashed, or
                timed out (see the subclasses).
        """
        # Reject bad input here rather than paying for a worker that would fail
        validate_input(value)
        validate_variant(variant)

        stopwatch = _Stopwatch()
        if timeout is None:
            work = await self.coordinator.dispatch(value, variant=variant)
        else:
            work = await self.coordinator.dispatch(value, variant=variant, timeout=timeout)
        report = stopwatch.report(work.value)  # type: ignore[arg-type]
        logger.debug(
            "Dispatched compute n=%d on worker %d took %d ms",
            value,
            work.worker_pid,
            report.duration_ms,
        )
        return report
