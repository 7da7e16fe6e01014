from __future__ import annotations

import logging
import math
import random
from datetime import datetime, timedelta
from typing import Callable, Iterable, Sequence

from campus_parking.config import Settings, settings as default_settings
from campus_parking.errors import NoHistoricalData, PartialForecastFailure
from campus_parking.geo import distance_between
from campus_parking.models import (
    Event,
    Forecast,
    ForecastFailure,
    Lot,
    OccupancyObservation,
    PredictionMethod,
    PredictionResult,
    to_local_naive,
)

logger = logging.getLogger(__name__)


def _round_half_up(v: float) -> int:
    return int(math.floor(v + 0.5))


def historical_average(
    lot_id: str,
    target: datetime,
    observations: Iterable[OccupancyObservation],
    now: datetime,
    cfg: Settings = default_settings,
) -> float:
    """Mean occupancy for the same weekday and hour as ``target``.

    Only samples from the trailing ``history_window_days`` before ``now`` are
    used. Raises NoHistoricalData when nothing matches.
    """
    target, now = to_local_naive(target), to_local_naive(now)
    since = now - timedelta(days=cfg.history_window_days)
    day, hour = target.weekday(), target.hour

    counts = [
        o.occupancy_count
        for o in observations
        if o.lot_id == lot_id
        and o.timestamp >= since
        and o.timestamp.weekday() == day
        and o.timestamp.hour == hour
    ]
    if not counts:
        raise NoHistoricalData(lot_id, day, hour)
    return sum(counts) / len(counts)


def event_impact(
    lot: Lot,
    target: datetime,
    events: Iterable[Event],
    cfg: Settings = default_settings,
) -> float:
    target = to_local_naive(target)
    margin = timedelta(hours=cfg.event_margin_hours)
    impact = 0.0
    for ev in events:
        if not (ev.start_time - margin <= target <= ev.end_time + margin):
            continue
        if distance_between(ev.location, lot.location) > ev.impact_radius_m:
            continue
        impact += ev.expected_attendance * cfg.event_attendance_factor
    return impact


def heuristic_baseline(target: datetime) -> tuple[float, str]:
    """Share of capacity expected from the campus calendar alone."""
    hour = target.hour
    is_weekend = target.weekday() >= 5

    if not is_weekend and 9 <= hour <= 15:
        return 0.80, "weekday_peak"
    if 18 <= hour <= 22:
        return 0.60, "evening"
    if is_weekend:
        return 0.40, "weekend"
    return 0.30, "off_peak"


def _result(
    lot: Lot,
    target: datetime,
    predicted: int,
    confidence: float,
    method: PredictionMethod,
    reason: str,
) -> PredictionResult:
    predicted = max(0, min(lot.capacity, predicted))
    rate = predicted / lot.capacity * 100 if lot.capacity > 0 else 0.0
    return PredictionResult(
        lot_id=lot.id,
        prediction_time=target,
        capacity=lot.capacity,
        predicted_occupancy=predicted,
        predicted_availability=lot.capacity - predicted,
        occupancy_rate=rate,
        confidence=confidence,
        method=method,
        reason=reason,
    )


def heuristic_prediction(
    lot: Lot,
    target: datetime,
    rng: random.Random | None = None,
    cfg: Settings = default_settings,
) -> PredictionResult:
    target = to_local_naive(target)
    rng = rng or random.Random()
    share, label = heuristic_baseline(target)
    base = lot.capacity * share
    variation = (rng.random() - 0.5) * cfg.heuristic_jitter * lot.capacity
    reason = f"{label}({share:.2f});jitter({variation:+.1f})"
    return _result(
        lot, target, _round_half_up(base + variation), cfg.confidence_heuristic, "heuristic", reason
    )


def predict_occupancy(
    lot: Lot,
    target: datetime,
    observations: Sequence[OccupancyObservation] | None,
    events: Iterable[Event] = (),
    now: datetime | None = None,
    rng: random.Random | None = None,
    fallback: bool = True,
    cfg: Settings = default_settings,
) -> PredictionResult:
    """Predict the occupancy of ``lot`` at ``target``.

    Confidence tiers:
      0.8  historical samples matched (plus nearby event impact)
      0.6  calendar heuristic, used when history is missing or unavailable
      0.3  no history and ``fallback=False``; event impact only

    ``observations=None`` means the history source could not be read, which
    always takes the heuristic path.
    """
    target = to_local_naive(target)
    now = to_local_naive(now) if now is not None else datetime.now()

    if observations is None:
        logger.debug("Occupancy history unavailable for lot %s, using heuristic", lot.id)
        return heuristic_prediction(lot, target, rng, cfg)

    impact = event_impact(lot, target, events, cfg)
    try:
        avg = historical_average(lot.id, target, observations, now, cfg)
    except NoHistoricalData as e:
        if fallback:
            logger.debug("%s; using heuristic", e)
            return heuristic_prediction(lot, target, rng, cfg)
        return _result(
            lot,
            target,
            _round_half_up(impact),
            cfg.confidence_no_data,
            "no_data",
            f"no_history;events(+{impact:.1f})",
        )

    return _result(
        lot,
        target,
        _round_half_up(avg + impact),
        cfg.confidence_historical,
        "historical",
        f"history({avg:.1f});events(+{impact:.1f})",
    )


def prediction_to_observation(result: PredictionResult) -> OccupancyObservation:
    return OccupancyObservation(
        lot_id=result.lot_id,
        occupancy_count=result.predicted_occupancy,
        timestamp=result.prediction_time,
        source="prediction",
    )


def forecast_occupancy(
    lot: Lot,
    hours: int,
    observations: Sequence[OccupancyObservation] | None,
    events: Sequence[Event] = (),
    now: datetime | None = None,
    rng: random.Random | None = None,
    predict: Callable[..., PredictionResult] = predict_occupancy,
    cfg: Settings = default_settings,
) -> Forecast:
    """Predict each of the next ``hours`` hours independently.

    An offset that fails is logged and reported in ``Forecast.failures``;
    the remaining offsets are still computed.
    """
    now = to_local_naive(now) if now is not None else datetime.now()
    hours = max(1, min(cfg.forecast_max_hours, int(hours)))
    rng = rng or random.Random()

    forecast = Forecast(lot_id=lot.id, lot_name=lot.name, capacity=lot.capacity, generated_at=now)
    for i in range(1, hours + 1):
        target = now + timedelta(hours=i)
        try:
            result = predict(lot, target, observations, events, now=now, rng=rng, cfg=cfg)
        except Exception as e:
            failure = PartialForecastFailure(i, str(e))
            logger.warning("%s", failure)
            forecast.failures.append(ForecastFailure(hour_offset=i, reason=failure.reason))
            continue
        forecast.predictions.append(result.model_copy(update={"hour_offset": i}))

    return forecast
