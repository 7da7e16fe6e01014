from __future__ import annotations

import logging
from collections import Counter
from datetime import datetime, timedelta
from typing import Iterable, Sequence

from campus_parking.config import Settings, settings as default_settings
from campus_parking.models import Lot, Priority, Route, RouteStop, Violation, to_local_naive

logger = logging.getLogger(__name__)


def stop_priority(count: int, cfg: Settings = default_settings) -> Priority:
    if count > cfg.high_priority_above:
        return "high"
    if count > cfg.medium_priority_above:
        return "medium"
    return "low"


def count_flagged_violations(
    violations: Iterable[Violation],
    now: datetime,
    cfg: Settings = default_settings,
) -> Counter[str]:
    now = to_local_naive(now)
    since = now - timedelta(hours=cfg.violation_window_hours)
    return Counter(
        v.lot_id for v in violations if v.status == "flagged" and since <= v.timestamp <= now
    )


def build_patrol_route(
    violations: Sequence[Violation],
    lots: Sequence[Lot],
    now: datetime | None = None,
    officer_id: str | None = None,
    cfg: Settings = default_settings,
) -> Route:
    """Order lots by recent flagged violations and keep the busiest as patrol stops."""
    now = to_local_naive(now) if now is not None else datetime.now()
    counts = count_flagged_violations(violations, now, cfg)

    known = {lot.id for lot in lots}
    unknown = set(counts) - known
    if unknown:
        logger.warning("Ignoring violations for unknown lots: %s", ", ".join(sorted(unknown)))

    stops = [
        RouteStop(
            lot_id=lot.id,
            lot_name=lot.name,
            location=lot.location,
            violation_count=counts.get(lot.id, 0),
            priority=stop_priority(counts.get(lot.id, 0), cfg),
            estimated_time=cfg.stop_base_minutes + counts.get(lot.id, 0) * cfg.minutes_per_violation,
        )
        for lot in lots
    ]

    # sort() is stable, equal counts keep the lot order
    stops.sort(key=lambda s: s.violation_count, reverse=True)
    selected = stops[: cfg.patrol_max_stops]

    total = sum(s.estimated_time for s in selected)
    if selected:
        total += (len(selected) - 1) * cfg.travel_minutes_between_stops

    return Route(
        stops=selected,
        total_time=total,
        start_time=now,
        officer_id=officer_id,
        total_stops=len(selected),
        high_priority_stops=sum(1 for s in selected if s.priority == "high"),
    )


def suppress_duplicate_violations(
    violations: Iterable[Violation],
    window: timedelta | None = None,
    cfg: Settings = default_settings,
) -> list[Violation]:
    """Drop repeat reports of the same plate, lot and type within ``window``.

    A report is kept only if no kept report with the same key happened in the
    preceding window. Output is in chronological order.
    """
    window = window if window is not None else timedelta(minutes=cfg.duplicate_window_minutes)
    last_kept: dict[tuple[str, str, str], datetime] = {}
    kept: list[Violation] = []

    for v in sorted(violations, key=lambda v: v.timestamp):
        key = (v.license_plate.strip().upper(), v.lot_id, v.violation_type)
        prev = last_kept.get(key)
        if prev is not None and v.timestamp - prev <= window:
            logger.debug("Duplicate violation ignored: %s", key)
            continue
        last_kept[key] = v.timestamp
        kept.append(v)

    return kept
