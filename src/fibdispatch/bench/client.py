"""Concurrent HTTP benchmark comparing the direct and dispatched routes."""

from __future__ import annotations

import asyncio
import re
import time
from dataclasses import dataclass, field
from datetime import datetime
from typing import TYPE_CHECKING

import aiohttp
import numpy as np

from fibdispatch._internal.errors import FibDispatchError
from fibdispatch._internal.logging import get_logger
from fibdispatch.server.router import ComputeReport

if TYPE_CHECKING:
    from fibdispatch._internal.types import Variant

logger = get_logger("bench.client")

ROUTES: tuple[str, ...] = ("no-worker", "worker")

_REPORT_RE = re.compile(
    r"^Result: (?P<result>.*), Start time: (?P<start>\S+), "
    r"End time: (?P<end>\S+), Duration: (?P<duration>\d+) ms$"
)


def parse_report_body(body: str, variant: Variant | None = None) -> ComputeReport:
    """Parse a response body produced by ``ComputeReport.format``.

    A one-term sequence renders the same as a single term, so pass
    ``variant`` when the request selected one.

    Args:
        body: Response text.
        variant: Variant the request used. "sequence" always yields a
            list and "term" an int. None infers the shape from the text.

    Returns:
        The reconstructed ComputeReport.

    Raises:
        FibDispatchError: If the body does not have the expected shape.
    """
    match = _REPORT_RE.match(body.strip())
    if match is None:
        msg = f"Unexpected response body: {body!r}"
        raise FibDispatchError(msg)

    raw_result = match.group("result")
    result: int | list[int]
    try:
        if variant == "sequence" or (variant is None and "," in raw_result):
            result = [int(part) for part in raw_result.split(",")]
        else:
            result = int(raw_result)
    except ValueError:
        msg = f"Unexpected result value: {raw_result!r}"
        raise FibDispatchError(msg) from None

    return ComputeReport(
        result=result,
        start_time=datetime.fromisoformat(match.group("start")),
        end_time=datetime.fromisoformat(match.group("end")),
        duration_ms=int(match.group("duration")),
    )


@dataclass(frozen=True)
class DurationStats:
    """Summary of per-request durations in milliseconds."""

    min: float
    max: float
    avg: float
    p50: float
    p95: float


def _compute_stats(durations: list[float]) -> DurationStats:
    """Compute duration statistics.

    Args:
        durations: Per-request durations in milliseconds.

    Returns:
        DurationStats, all zero if ``durations`` is empty.
    """
    if not durations:
        return DurationStats(0.0, 0.0, 0.0, 0.0, 0.0)

    arr = np.array(durations, dtype=np.float64)
    p50, p95 = np.percentile(arr, [50.0, 95.0])
    return DurationStats(
        min=float(np.min(arr)),
        max=float(np.max(arr)),
        avg=float(np.mean(arr)),
        p50=float(p50),
        p95=float(p95),
    )


@dataclass
class RouteBenchmark:
    """Outcome of firing concurrent requests at one route.

    Attributes:
        route: Route name, "no-worker" or "worker".
        n: Input sent with every request.
        wall_time_ms: Time from issuing the first request to receiving
            the last response.
        reports: Parsed reports of successful requests.
        errors: Error descriptions of failed requests.
    """

    route: str
    n: int
    wall_time_ms: float
    reports: list[ComputeReport] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)

    @property
    def stats(self) -> DurationStats:
        """Return server-reported duration statistics."""
        return _compute_stats([float(r.duration_ms) for r in self.reports])

    @property
    def serialized(self) -> bool:
        """Return True if no two request intervals overlapped.

        Requests are ordered by start time; each must start no earlier
        than the previous one ended.
        """
        ordered = sorted(self.reports, key=lambda r: r.start_time)
        return all(
            later.start_time >= earlier.end_time
            for earlier, later in zip(ordered, ordered[1:], strict=False)
        )


async def _fetch(session: aiohttp.ClientSession, url: str) -> ComputeReport:
    async with session.get(url) as resp:
        body = await resp.text()
        if resp.status != 200:
            msg = f"HTTP {resp.status}: {body.strip()}"
            raise FibDispatchError(msg)
        return parse_report_body(body)


async def run_route(
    session: aiohttp.ClientSession,
    base_url: str,
    route: str,
    n: int,
    requests: int = 2,
) -> RouteBenchmark:
    """Fire ``requests`` concurrent GETs at ``/{route}/{n}``.

    Args:
        session: Open aiohttp client session.
        base_url: Server base URL, e.g. ``http://127.0.0.1:3000``.
        route: "no-worker" or "worker".
        n: Input for every request.
        requests: Number of concurrent requests.

    Returns:
        The RouteBenchmark for this route.
    """
    url = f"{base_url.rstrip('/')}/{route}/{n}"
    start = time.monotonic()
    outcomes = await asyncio.gather(
        *(_fetch(session, url) for _ in range(requests)),
        return_exceptions=True,
    )
    wall_time_ms = (time.monotonic() - start) * 1000

    bench = RouteBenchmark(route=route, n=n, wall_time_ms=wall_time_ms)
    for outcome in outcomes:
        if isinstance(outcome, ComputeReport):
            bench.reports.append(outcome)
        elif isinstance(outcome, Exception):
            bench.errors.append(f"{type(outcome).__name__}: {outcome}")
        else:
            raise outcome

    logger.info(
        "%s: %d/%d requests ok in %.0f ms",
        route,
        len(bench.reports),
        requests,
        wall_time_ms,
    )
    return bench


async def run_benchmark(
    base_url: str,
    n: int,
    *,
    requests: int = 2,
    timeout: float = 300.0,
) -> list[RouteBenchmark]:
    """Benchmark both routes one after the other.

    Args:
        base_url: Server base URL.
        n: Input for every request.
        requests: Concurrent requests per route.
        timeout: Total client timeout per request, in seconds.

    Returns:
        One RouteBenchmark per route, direct route first.
    """
    client_timeout = aiohttp.ClientTimeout(total=timeout)
    async with aiohttp.ClientSession(timeout=client_timeout) as session:
        return [await run_route(session, base_url, route, n, requests) for route in ROUTES]
