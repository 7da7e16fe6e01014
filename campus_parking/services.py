from __future__ import annotations

import logging
from datetime import datetime
from typing import Iterable

from campus_parking.config import Settings, settings as default_settings
from campus_parking.errors import MissingLocation
from campus_parking.geo import distance_between, validate_coordinate
from campus_parking.models import (
    DriverPreferences,
    Location,
    Lot,
    OccupancyObservation,
    OccupancyStatus,
    RecommendationLabel,
    RecommendationResult,
)

logger = logging.getLogger(__name__)


def permit_allows(lot: Lot, permit: str | None) -> bool:
    if not lot.permit_restrictions:
        return True
    return permit is not None and permit in lot.permit_restrictions


def recommendation_label(score: float, cfg: Settings = default_settings) -> RecommendationLabel:
    if score > cfg.highly_recommended_above:
        return "highly_recommended"
    if score > cfg.recommended_above:
        return "recommended"
    return "available"


def score_lot(
    lot: Lot,
    distance_m: float,
    preferences: DriverPreferences,
    cfg: Settings = default_settings,
) -> tuple[float, int, float]:
    """Return (score, available_spots, occupancy_rate) for one lot."""
    available = max(0, lot.capacity - lot.current_occupancy)
    rate = lot.current_occupancy / lot.capacity if lot.capacity > 0 else 0.0

    score = max(0.0, cfg.distance_horizon_m - distance_m) / cfg.distance_divisor
    score += available * cfg.available_spot_weight
    score += (1 - rate) * cfg.free_rate_weight

    amenities = lot.amenities
    if preferences.prefer_covered and "covered" in amenities:
        score += cfg.covered_bonus
    if preferences.need_ev_charging and "ev_charging" in amenities:
        score += cfg.ev_charging_bonus
    if preferences.need_handicap_access and "handicap_accessible" in amenities:
        score += cfg.handicap_bonus

    return score, available, rate


def recommend_lots(
    lots: Iterable[Lot],
    location: Location | None,
    permit: str | None,
    preferences: DriverPreferences | None = None,
    limit: int | None = None,
    cfg: Settings = default_settings,
) -> list[RecommendationResult]:
    """Rank the lots a driver may use, best first.

    Lots whose permit restrictions exclude ``permit`` are dropped before
    scoring. Ties keep the input order of ``lots``.
    """
    if location is None:
        raise MissingLocation()
    validate_coordinate(location.lat, location.lng)

    preferences = preferences or DriverPreferences()

    rows: list[RecommendationResult] = []
    for lot in lots:
        if not permit_allows(lot, permit):
            continue

        d = distance_between(location, lot.location)
        score, available, rate = score_lot(lot, d, preferences, cfg)

        anomalous = lot.capacity <= 0 or lot.current_occupancy > lot.capacity
        if anomalous:
            logger.warning(
                "Lot %s has inconsistent occupancy %d/%d",
                lot.id,
                lot.current_occupancy,
                lot.capacity,
            )

        rows.append(
            RecommendationResult(
                lot=lot,
                distance_m=d,
                available_spots=available,
                occupancy_rate=rate,
                score=score,
                recommendation=recommendation_label(score, cfg),
                within_walking_distance=d <= preferences.max_walking_distance,
                anomalous=anomalous,
            )
        )

    rows.sort(key=lambda r: r.score, reverse=True)
    if limit is not None:
        rows = rows[: max(0, int(limit))]
    return rows


def occupancy_status(current: int, capacity: int, cfg: Settings = default_settings) -> OccupancyStatus:
    if capacity <= 0:
        return "full"
    rate = current / capacity
    if rate >= cfg.full_rate:
        return "full"
    if rate >= cfg.busy_rate:
        return "busy"
    return "available"


def apply_occupancy_reading(
    lot: Lot,
    occupancy_count: int,
    timestamp: datetime | None = None,
) -> tuple[Lot, OccupancyObservation]:
    """Validate a sensor count and return the updated snapshot plus its history row."""
    if occupancy_count < 0:
        raise ValueError(f"Occupancy count for lot {lot.id} cannot be negative")
    if occupancy_count > lot.capacity:
        raise ValueError(
            f"Occupancy count {occupancy_count} exceeds capacity {lot.capacity} of lot {lot.id}"
        )

    updated = lot.model_copy(update={"current_occupancy": occupancy_count})
    observation = OccupancyObservation(
        lot_id=lot.id,
        occupancy_count=occupancy_count,
        timestamp=timestamp or datetime.now(),
        source="sensor",
    )
    return updated, observation
