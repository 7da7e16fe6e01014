from __future__ import annotations

import math
from typing import TYPE_CHECKING

from campus_parking.errors import InvalidCoordinate

if TYPE_CHECKING:
    from campus_parking.models import Location

EARTH_RADIUS_M = 6371000.0


def validate_coordinate(lat: float, lng: float) -> None:
    if isinstance(lat, bool) or isinstance(lng, bool):
        raise InvalidCoordinate(lat, lng, "not a number")
    if not isinstance(lat, (int, float)) or not isinstance(lng, (int, float)):
        raise InvalidCoordinate(lat, lng, "not a number")
    if not (math.isfinite(lat) and math.isfinite(lng)):
        raise InvalidCoordinate(lat, lng, "not finite")
    if not -90.0 <= lat <= 90.0:
        raise InvalidCoordinate(lat, lng, "latitude outside [-90, 90]")
    if not -180.0 <= lng <= 180.0:
        raise InvalidCoordinate(lat, lng, "longitude outside [-180, 180]")


def haversine_m(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Great-circle distance in metres between two points given in degrees."""
    validate_coordinate(lat1, lng1)
    validate_coordinate(lat2, lng2)

    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1))
        * math.cos(math.radians(lat2))
        * math.sin(d_lng / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_between(a: Location, b: Location) -> float:
    return haversine_m(a.lat, a.lng, b.lat, b.lng)
