from __future__ import annotations

import pytest

from campus_parking.models import Location, Lot


class FixedRandom:
    """Stands in for random.Random with a constant draw."""

    def __init__(self, value: float = 0.5):
        self.value = value

    def random(self) -> float:
        return self.value


@pytest.fixture
def make_lot():
    def _make(
        lot_id: str = "A",
        capacity: int = 100,
        occupancy: int = 0,
        lat: float = 0.0,
        lng: float = 0.0,
        restrictions: tuple[str, ...] = (),
        amenities: tuple[str, ...] = (),
        name: str | None = None,
    ) -> Lot:
        return Lot(
            id=lot_id,
            name=name or f"Lot {lot_id}",
            capacity=capacity,
            current_occupancy=occupancy,
            location=Location(lat=lat, lng=lng),
            permit_restrictions=restrictions,
            amenities=amenities,
        )

    return _make


@pytest.fixture
def fixed_random():
    return FixedRandom
