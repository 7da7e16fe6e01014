from datetime import datetime, timedelta, timezone

import pytest

from campus_parking.models import Violation
from campus_parking.patrol import (
    build_patrol_route,
    count_flagged_violations,
    stop_priority,
    suppress_duplicate_violations,
)

NOW = datetime(2024, 3, 13, 12, 0)


def violations_for(lot_id, n, hours_ago=1, status="flagged", plate_prefix="ABC"):
    return [
        Violation(
            lot_id=lot_id,
            license_plate=f"{plate_prefix}{i}",
            violation_type="no_permit",
            timestamp=NOW - timedelta(hours=hours_ago, minutes=i),
            status=status,
        )
        for i in range(n)
    ]


@pytest.fixture
def lots(make_lot):
    return [make_lot("C"), make_lot("B"), make_lot("A"), make_lot("D")]


def test_route_prioritizes_hotspots(lots):
    violations = violations_for("A", 7) + violations_for("B", 3)
    route = build_patrol_route(violations, lots, now=NOW, officer_id="officer-1")

    assert [s.lot_id for s in route.stops] == ["A", "B", "C", "D"]
    a, b, c, d = route.stops
    assert (a.violation_count, a.priority, a.estimated_time) == (7, "high", 24)
    assert (b.violation_count, b.priority, b.estimated_time) == (3, "medium", 16)
    assert (c.violation_count, c.priority, c.estimated_time) == (0, "low", 10)
    assert route.total_time == 24 + 16 + 10 + 10 + 5 * 3
    assert route.total_stops == 4
    assert route.high_priority_stops == 1
    assert route.officer_id == "officer-1"
    assert route.status == "pending"
    assert route.start_time == NOW


def test_only_recent_flagged_violations_count(lots):
    violations = (
        violations_for("A", 2)
        + violations_for("A", 4, status="cited")
        + violations_for("A", 4, status="dismissed")
        + violations_for("A", 5, hours_ago=25)
    )
    counts = count_flagged_violations(violations, NOW)
    assert counts["A"] == 2
    route = build_patrol_route(violations, lots, now=NOW)
    assert route.stops[0].lot_id == "A"
    assert route.stops[0].priority == "low"


def test_route_keeps_top_six(make_lot):
    lots = [make_lot(str(i)) for i in range(8)]
    violations = violations_for("7", 4) + violations_for("5", 1)
    route = build_patrol_route(violations, lots, now=NOW)
    assert [s.lot_id for s in route.stops] == ["7", "5", "0", "1", "2", "3"]
    assert route.total_stops == 6
    assert route.total_time == (18 + 12 + 10 * 4) + 5 * 5


def test_empty_violations_still_builds_route(make_lot):
    lots = [make_lot(str(i)) for i in range(7)]
    route = build_patrol_route([], lots, now=NOW)
    assert [s.lot_id for s in route.stops] == ["0", "1", "2", "3", "4", "5"]
    assert all(s.priority == "low" and s.estimated_time == 10 for s in route.stops)
    assert route.total_time == 6 * 10 + 5 * 5
    assert route.high_priority_stops == 0


def test_no_lots_gives_empty_route():
    route = build_patrol_route(violations_for("A", 3), [], now=NOW)
    assert route.stops == []
    assert route.total_time == 0
    assert route.total_stops == 0


def test_violations_for_unknown_lots_are_ignored(lots):
    route = build_patrol_route(violations_for("ghost", 9), lots, now=NOW)
    assert {s.lot_id for s in route.stops} == {"A", "B", "C", "D"}
    assert all(s.violation_count == 0 for s in route.stops)


@pytest.mark.parametrize(
    "count,priority",
    [(0, "low"), (2, "low"), (3, "medium"), (5, "medium"), (6, "high")],
)
def test_stop_priority(count, priority):
    assert stop_priority(count) == priority


def test_route_is_deterministic(lots):
    violations = violations_for("B", 4) + violations_for("D", 4)
    assert build_patrol_route(violations, lots, now=NOW) == build_patrol_route(
        violations, lots, now=NOW
    )
    assert [s.lot_id for s in build_patrol_route(violations, lots, now=NOW).stops][:2] == ["B", "D"]


def _report(plate, minute, lot_id="A", vtype="no_permit"):
    return Violation(
        lot_id=lot_id,
        license_plate=plate,
        violation_type=vtype,
        timestamp=datetime(2024, 3, 13, 10, 0) + timedelta(minutes=minute),
    )


def test_duplicate_reports_within_an_hour_are_dropped():
    reports = [
        _report("xyz123", 30),
        _report("XYZ123", 0),
        _report("XYZ123", 65),
        _report("XYZ123", 10, vtype="expired_meter"),
        _report("XYZ123", 20, lot_id="B"),
    ]
    kept = suppress_duplicate_violations(reports)
    assert [(v.lot_id, v.violation_type, v.timestamp.minute) for v in kept] == [
        ("A", "no_permit", 0),
        ("A", "expired_meter", 10),
        ("B", "no_permit", 20),
        ("A", "no_permit", 5),
    ]


def test_duplicate_window_is_configurable():
    reports = [_report("XYZ123", 0), _report("XYZ123", 30)]
    assert len(suppress_duplicate_violations(reports, window=timedelta(minutes=15))) == 2


def test_timezone_aware_now(lots):
    aware_now = NOW.astimezone(timezone.utc)
    route = build_patrol_route(violations_for("A", 7), lots, now=aware_now)
    assert route.stops[0].lot_id == "A"
    assert route.stops[0].violation_count == 7
    assert route.start_time == NOW


def test_default_now_counts_recent_violations(lots):
    recent = [
        Violation(
            lot_id="D",
            license_plate=f"R{i}",
            violation_type="no_permit",
            timestamp=datetime.now() - timedelta(minutes=5 + i),
        )
        for i in range(3)
    ]
    route = build_patrol_route(recent, lots)
    assert route.stops[0].lot_id == "D"
    assert route.stops[0].priority == "medium"
