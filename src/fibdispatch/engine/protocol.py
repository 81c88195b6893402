"""Protocol types for inter-process communication between coordinator and workers."""

from __future__ import annotations

from dataclasses import dataclass
from enum import Enum, auto
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from fibdispatch._internal.types import ComputeValue, Variant


class WorkerState(Enum):
    """Completion state of a single worker handle."""

    PENDING = auto()
    COMPLETED = auto()
    FAILED = auto()


@dataclass(frozen=True)
class WorkUnit:
    """The single message sent from the coordinator to a worker process.

    Attributes:
        input: Integer argument for the compute function.
        variant: Algorithm to run, "term" or "sequence".
    """

    input: int
    variant: Variant = "term"


@dataclass(frozen=True)
class WorkResult:
    """The single message sent from a worker process back to the coordinator.

    Attributes:
        value: Computed value, or None if the computation failed.
        error: Error description if the computation raised inside the
            worker, None otherwise.
        worker_pid: PID of the worker that produced this result.
    """

    value: ComputeValue | None
    error: str | None = None
    worker_pid: int = 0

    @property
    def ok(self) -> bool:
        """Return True if the worker computed a value."""
        return self.error is None
