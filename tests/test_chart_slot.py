"""Unit tests for the shared displayed-chart slot."""

from __future__ import annotations

from datetime import datetime, timezone

from datastore.chart_slot import ChartOrdering, ChartSlot
from models.records import DangerRange, ForecastSeries, SafetyStatus, Verdict, VerdictRule


def _series(site_id: str) -> ForecastSeries:
    return ForecastSeries(
        site_id=site_id,
        site_name=f"Dam {site_id}",
        danger_range=DangerRange(min=1.0, max=2.0),
        timestamps=[datetime(2024, 1, 1, tzinfo=timezone.utc)],
        labels=["Jan 1, 12 AM"],
        median=[1.5],
        upper=[],
        lower=[],
        verdict=Verdict(
            dangerous=True,
            rule=VerdictRule.current_median,
            status=SafetyStatus.dangerous,
            current_flow=1.5,
            dangerous_indices=[0],
        ),
    )


def test_issue_is_monotonic() -> None:
    slot = ChartSlot()

    assert [slot.issue() for _ in range(3)] == [1, 2, 3]


def test_empty_slot_has_no_series() -> None:
    assert ChartSlot().current() is None


def test_request_ordering_drops_older_results() -> None:
    slot = ChartSlot(ordering=ChartOrdering.request)
    first = slot.issue()
    second = slot.issue()

    assert slot.replace(_series("b"), second) is True
    assert slot.replace(_series("a"), first) is False

    current = slot.current()
    assert current is not None
    assert current.site_id == "b"
    assert slot.current_sequence == second


def test_arrival_ordering_installs_every_result() -> None:
    slot = ChartSlot(ordering=ChartOrdering.arrival)
    first = slot.issue()
    second = slot.issue()

    assert slot.replace(_series("b"), second) is True
    assert slot.replace(_series("a"), first) is True

    assert slot.current().site_id == "a"  # type: ignore[union-attr]


def test_current_returns_deep_copy() -> None:
    slot = ChartSlot()
    slot.replace(_series("a"), slot.issue())

    fetched = slot.current()
    assert fetched is not None
    fetched.median[0] = 99.0

    assert slot.current().median == [1.5]  # type: ignore[union-attr]


def test_clear_releases_series() -> None:
    slot = ChartSlot()
    slot.replace(_series("a"), slot.issue())

    slot.clear()

    assert slot.current() is None


def test_clear_accepts_older_in_flight_result() -> None:
    slot = ChartSlot(ordering=ChartOrdering.request)
    first = slot.issue()
    second = slot.issue()
    slot.replace(_series("b"), second)

    slot.clear()

    assert slot.current_sequence == 0
    assert slot.replace(_series("a"), first) is True
    assert slot.current().site_id == "a"  # type: ignore[union-attr]
