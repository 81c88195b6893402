"""Tests for benchmark body parsing and statistics."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from fibdispatch._internal.errors import FibDispatchError
from fibdispatch.bench.client import RouteBenchmark, _compute_stats, parse_report_body
from fibdispatch.server.router import ComputeReport

_T0 = datetime(2024, 5, 1, 12, 0, 0, tzinfo=UTC)


def _report(start_ms: int, end_ms: int) -> ComputeReport:
    return ComputeReport(
        result=1,
        start_time=_T0 + timedelta(milliseconds=start_ms),
        end_time=_T0 + timedelta(milliseconds=end_ms),
        duration_ms=end_ms - start_ms,
    )


class TestParseReportBody:
    def test_parses_integer_result(self) -> None:
        body = (
            "Result: 832040, Start time: 2024-05-01T12:00:00.000Z, "
            "End time: 2024-05-01T12:00:00.250Z, Duration: 250 ms"
        )
        report = parse_report_body(body)
        assert report.result == 832040
        assert report.start_time == _T0
        assert report.end_time == _T0 + timedelta(milliseconds=250)
        assert report.duration_ms == 250

    def test_parses_sequence_result(self) -> None:
        body = (
            "Result: 1,1,2,3, Start time: 2024-05-01T12:00:00.000Z, "
            "End time: 2024-05-01T12:00:00.001Z, Duration: 1 ms"
        )
        assert parse_report_body(body).result == [1, 1, 2, 3]

    def test_single_term_sequence_keeps_list_shape(self) -> None:
        body = (
            "Result: 1, Start time: 2024-05-01T12:00:00.000Z, "
            "End time: 2024-05-01T12:00:00.001Z, Duration: 1 ms"
        )
        assert parse_report_body(body, "sequence").result == [1]
        assert parse_report_body(body, "term").result == 1
        assert parse_report_body(body).result == 1

    def test_sequence_report_round_trips_with_variant(self) -> None:
        report = ComputeReport(
            result=[1],
            start_time=_T0,
            end_time=_T0 + timedelta(milliseconds=1),
            duration_ms=1,
        )
        assert parse_report_body(report.format(), "sequence") == report

    def test_term_variant_rejects_list_result(self) -> None:
        body = (
            "Result: 1,1,2, Start time: 2024-05-01T12:00:00.000Z, "
            "End time: 2024-05-01T12:00:00.001Z, Duration: 1 ms"
        )
        with pytest.raises(FibDispatchError, match="Unexpected result value"):
            parse_report_body(body, "term")

    def test_round_trips_formatted_report(self) -> None:
        report = _report(0, 120)
        assert parse_report_body(report.format()) == report

    def test_rejects_unexpected_body(self) -> None:
        with pytest.raises(FibDispatchError, match="Unexpected response body"):
            parse_report_body("Error: boom")


class TestStats:
    def test_empty(self) -> None:
        stats = _compute_stats([])
        assert stats.min == stats.max == stats.avg == 0.0

    def test_values(self) -> None:
        stats = _compute_stats([100.0, 200.0, 300.0])
        assert stats.min == 100.0
        assert stats.max == 300.0
        assert stats.avg == pytest.approx(200.0)
        assert stats.p50 == pytest.approx(200.0)


class TestRouteBenchmark:
    def test_back_to_back_requests_are_serialized(self) -> None:
        bench = RouteBenchmark(
            route="no-worker", n=30, wall_time_ms=400.0, reports=[_report(200, 400), _report(0, 200)]
        )
        assert bench.serialized

    def test_overlapping_requests_are_not_serialized(self) -> None:
        bench = RouteBenchmark(
            route="worker", n=30, wall_time_ms=220.0, reports=[_report(0, 210), _report(5, 220)]
        )
        assert not bench.serialized

    def test_stats_use_reported_durations(self) -> None:
        bench = RouteBenchmark(
            route="worker", n=30, wall_time_ms=220.0, reports=[_report(0, 100), _report(0, 300)]
        )
        assert bench.stats.max == 300.0
