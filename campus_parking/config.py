import os

from pydantic import BaseModel


def _env_float(name: str, default: float) -> float:
    v = os.getenv(name, "").strip()
    if not v:
        return default
    try:
        return float(v)
    except ValueError:
        return default


def _env_int(name: str, default: int) -> int:
    v = os.getenv(name, "").strip()
    if not v:
        return default
    try:
        return int(float(v))
    except ValueError:
        return default


class Settings(BaseModel):
    # Local snapshot exported from the parking data store (JSON).
    snapshot_path: str = os.getenv("CAMPUS_PARKING_SNAPSHOT_PATH", "parking_snapshot.json")
    log_level: str = os.getenv("CAMPUS_PARKING_LOG_LEVEL", "INFO").strip().upper() or "INFO"

    # Recommendation scoring
    distance_horizon_m: float = 1000.0
    distance_divisor: float = 10.0
    available_spot_weight: float = 2.0
    free_rate_weight: float = 50.0
    covered_bonus: float = 20.0
    ev_charging_bonus: float = 30.0
    handicap_bonus: float = 25.0
    highly_recommended_above: float = 100.0
    recommended_above: float = 50.0
    recommendation_limit: int = _env_int("CAMPUS_PARKING_RECOMMENDATION_LIMIT", 3)
    default_walking_distance_m: float = 500.0

    # Occupancy status labels
    full_rate: float = 0.90
    busy_rate: float = 0.70

    # Prediction
    history_window_days: int = _env_int("CAMPUS_PARKING_HISTORY_WINDOW_DAYS", 30)
    event_margin_hours: float = 1.0
    event_attendance_factor: float = 0.3
    confidence_historical: float = 0.8
    confidence_heuristic: float = 0.6
    confidence_no_data: float = 0.3
    heuristic_jitter: float = _env_float("CAMPUS_PARKING_HEURISTIC_JITTER", 0.2)
    forecast_default_hours: int = 6
    forecast_max_hours: int = _env_int("CAMPUS_PARKING_FORECAST_MAX_HOURS", 48)

    # Patrol routes
    violation_window_hours: float = 24.0
    patrol_max_stops: int = _env_int("CAMPUS_PARKING_PATROL_MAX_STOPS", 6)
    stop_base_minutes: int = 10
    minutes_per_violation: int = 2
    travel_minutes_between_stops: int = 5
    high_priority_above: int = 5
    medium_priority_above: int = 2
    duplicate_window_minutes: int = 60


settings = Settings()
