from __future__ import annotations

from datetime import datetime
from typing import Annotated, Literal

from pydantic import AfterValidator, BaseModel, ConfigDict, Field, model_validator

from campus_parking.geo import validate_coordinate

ObservationSource = Literal["sensor", "manual", "prediction"]
ViolationStatus = Literal["flagged", "cited", "dismissed"]
RecommendationLabel = Literal["highly_recommended", "recommended", "available"]
OccupancyStatus = Literal["full", "busy", "available"]
PredictionMethod = Literal["historical", "heuristic", "no_data"]
Priority = Literal["high", "medium", "low"]


def to_local_naive(v: datetime) -> datetime:
    # The core compares timestamps as naive local time; aware input is converted.
    if v.tzinfo is not None:
        return v.astimezone().replace(tzinfo=None)
    return v


LocalDatetime = Annotated[datetime, AfterValidator(to_local_naive)]


class Location(BaseModel):
    model_config = ConfigDict(frozen=True)

    lat: float
    lng: float

    @model_validator(mode="after")
    def _check_range(self) -> Location:
        validate_coordinate(self.lat, self.lng)
        return self


class Lot(BaseModel):
    """Read-only snapshot of a parking lot as stored in the data store."""

    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    capacity: int = Field(..., ge=0)
    current_occupancy: int = Field(0, ge=0)
    location: Location
    permit_restrictions: tuple[str, ...] = ()
    amenities: tuple[str, ...] = ()


class OccupancyObservation(BaseModel):
    model_config = ConfigDict(frozen=True)

    lot_id: str
    occupancy_count: int = Field(..., ge=0)
    timestamp: LocalDatetime
    source: ObservationSource = "sensor"


class Event(BaseModel):
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    id: str | None = None
    name: str
    location: Location
    start_time: LocalDatetime
    end_time: LocalDatetime
    expected_attendance: int = Field(..., ge=0)
    impact_radius_m: float = Field(..., ge=0, alias="impact_radius")


class Violation(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: str | None = None
    lot_id: str
    license_plate: str
    violation_type: str
    timestamp: LocalDatetime
    status: ViolationStatus = "flagged"


class DriverPreferences(BaseModel):
    # Profiles are stored with camelCase keys; both spellings are accepted.
    model_config = ConfigDict(frozen=True, populate_by_name=True)

    prefer_covered: bool = Field(False, alias="preferCovered")
    need_ev_charging: bool = Field(False, alias="needEvCharging")
    need_handicap_access: bool = Field(False, alias="needHandicapAccess")
    max_walking_distance: float = Field(500.0, ge=0, alias="maxWalkingDistance")


class RecommendationResult(BaseModel):
    lot: Lot
    distance_m: float
    available_spots: int
    occupancy_rate: float
    score: float
    recommendation: RecommendationLabel
    within_walking_distance: bool = True
    anomalous: bool = False


class PredictionResult(BaseModel):
    lot_id: str
    prediction_time: LocalDatetime
    capacity: int
    predicted_occupancy: int = Field(..., ge=0)
    predicted_availability: int
    occupancy_rate: float
    confidence: float = Field(..., ge=0.0, le=1.0)
    method: PredictionMethod
    reason: str = ""
    hour_offset: int | None = None


class ForecastFailure(BaseModel):
    hour_offset: int
    reason: str


class Forecast(BaseModel):
    lot_id: str
    lot_name: str
    capacity: int
    generated_at: datetime
    predictions: list[PredictionResult] = []
    failures: list[ForecastFailure] = []


class RouteStop(BaseModel):
    lot_id: str
    lot_name: str
    location: Location
    violation_count: int = Field(..., ge=0)
    priority: Priority
    estimated_time: int


class Route(BaseModel):
    stops: list[RouteStop] = []
    total_time: int = 0
    start_time: LocalDatetime
    officer_id: str | None = None
    total_stops: int = 0
    high_priority_stops: int = 0
    status: str = "pending"


class RecommendationQuery(BaseModel):
    location: Location | None = None
    permit: str | None = None
    preferences: DriverPreferences = DriverPreferences()
    limit: int | None = None


class PredictionQuery(BaseModel):
    lot_id: str
    prediction_time: LocalDatetime | None = None


class RouteQuery(BaseModel):
    officer_id: str | None = None
