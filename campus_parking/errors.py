from __future__ import annotations


class ParkingCoreError(Exception):
    """Base class for errors raised by the scoring and prediction core."""


class InvalidCoordinate(ParkingCoreError, ValueError):
    def __init__(self, lat: object, lng: object, reason: str = "out of range"):
        self.lat = lat
        self.lng = lng
        self.reason = reason
        super().__init__(f"Invalid coordinate ({lat!r}, {lng!r}): {reason}")


class MissingLocation(ParkingCoreError):
    def __init__(self, message: str = "Driver location is required to score lots"):
        super().__init__(message)


class NoHistoricalData(ParkingCoreError):
    """No matching occupancy samples; callers fall back to the heuristic."""

    def __init__(self, lot_id: str, day_of_week: int, hour: int):
        self.lot_id = lot_id
        self.day_of_week = day_of_week
        self.hour = hour
        super().__init__(
            f"No occupancy history for lot {lot_id} on weekday {day_of_week} at hour {hour}"
        )


class PartialForecastFailure(ParkingCoreError):
    """A single hour offset of a forecast could not be predicted."""

    def __init__(self, hour_offset: int, reason: str):
        self.hour_offset = hour_offset
        self.reason = reason
        super().__init__(f"Prediction for hour offset {hour_offset} failed: {reason}")
