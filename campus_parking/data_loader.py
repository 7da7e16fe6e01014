from __future__ import annotations

import csv
import json
import logging
import os
from dataclasses import dataclass, field
from typing import Any, Iterable, TypeVar

from pydantic import BaseModel, ValidationError

from campus_parking.models import Event, Location, Lot, OccupancyObservation, Violation

logger = logging.getLogger(__name__)

M = TypeVar("M", bound=BaseModel)


def _polygon_centroid(ring: list) -> tuple[float, float] | None:
    # ring: [[lng, lat], ...]; vertex average is close enough for a lot outline
    pts = [
        (float(p[0]), float(p[1]))
        for p in ring
        if isinstance(p, (list, tuple)) and len(p) >= 2
    ]
    if len(pts) < 3:
        return None
    return (sum(p[0] for p in pts) / len(pts), sum(p[1] for p in pts) / len(pts))


def _geom_to_point_latlng(geom: dict) -> tuple[float, float] | None:
    if not isinstance(geom, dict):
        return None

    gtype = geom.get("type")
    coords = geom.get("coordinates")

    if gtype == "Point" and isinstance(coords, (list, tuple)) and len(coords) >= 2:
        return (float(coords[1]), float(coords[0]))

    if gtype == "Polygon" and isinstance(coords, list) and coords:
        c = _polygon_centroid(coords[0]) if isinstance(coords[0], list) else None
        if c is None:
            return None
        lng, lat = c
        return (lat, lng)

    return None


@dataclass(frozen=True)
class LoadResult:
    lots: list[Lot]
    source: str


@dataclass(frozen=True)
class ParkingSnapshot:
    """Read view of the data store handed to the scoring core."""

    lots: list[Lot] = field(default_factory=list)
    observations: list[OccupancyObservation] = field(default_factory=list)
    events: list[Event] = field(default_factory=list)
    violations: list[Violation] = field(default_factory=list)
    source: str = ""

    def lot(self, lot_id: str) -> Lot | None:
        for lot in self.lots:
            if lot.id == lot_id:
                return lot
        return None

    def observations_for(self, lot_id: str) -> list[OccupancyObservation]:
        return [o for o in self.observations if o.lot_id == lot_id]


def _try_parse_float(v: object) -> float | None:
    if v is None:
        return None
    if isinstance(v, (int, float)):
        return float(v)
    s = str(v).strip()
    if s == "":
        return None
    try:
        return float(s)
    except ValueError:
        return None


def _try_parse_int(v: object) -> int | None:
    f = _try_parse_float(v)
    return int(f) if f is not None else None


def _row_get(row: dict, keys: Iterable[str]) -> object | None:
    for k in keys:
        if k in row and row[k] not in (None, ""):
            return row[k]
    return None


def _split_list(v: object) -> tuple[str, ...]:
    if v is None:
        return ()
    if isinstance(v, (list, tuple)):
        return tuple(str(x).strip() for x in v if str(x).strip())
    return tuple(s.strip() for s in str(v).split(";") if s.strip())


def _normalize_lot(row: dict, idx: int) -> Lot | None:
    loc = row.get("location")
    if isinstance(loc, dict):
        row = {**loc, **row}

    lat = _try_parse_float(_row_get(row, ["lat", "latitude", "LAT", "Y"]))
    lng = _try_parse_float(_row_get(row, ["lng", "lon", "longitude", "LON", "X"]))
    capacity = _try_parse_int(_row_get(row, ["capacity", "CAPACITY"]))
    if lat is None or lng is None or capacity is None:
        return None

    lot_id = str(_row_get(row, ["id", "ID", "lot_id", "LOT_ID"]) or idx)
    name = _row_get(row, ["name", "NAME", "lot_name", "LOT_NAME"]) or lot_id
    occupancy = _try_parse_int(_row_get(row, ["current_occupancy", "occupancy"])) or 0

    try:
        return Lot(
            id=lot_id,
            name=str(name),
            capacity=capacity,
            current_occupancy=occupancy,
            location=Location(lat=lat, lng=lng),
            permit_restrictions=_split_list(row.get("permit_restrictions")),
            amenities=_split_list(row.get("amenities")),
        )
    except ValidationError as e:
        logger.warning("Skipping lot row %d: %s", idx, e.errors()[0].get("msg", e))
        return None


def _lots_from_rows(rows: Iterable[Any]) -> list[Lot]:
    lots: list[Lot] = []
    for idx, row in enumerate(rows):
        if not isinstance(row, dict):
            continue
        lot = _normalize_lot(row, idx)
        if lot is None:
            logger.warning("Skipping unparseable lot row %d", idx)
            continue
        lots.append(lot)
    return lots


def _parse_records(rows: Iterable[Any], model: type[M], kind: str) -> list[M]:
    out: list[M] = []
    for idx, row in enumerate(rows or []):
        try:
            out.append(model.model_validate(row))
        except ValidationError as e:
            logger.warning("Skipping %s record %d: %d validation error(s)", kind, idx, e.error_count())
    return out


def load_lots_from_file(path: str) -> LoadResult:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Parking lot file not found: {path}")

    ext = os.path.splitext(path)[1].lower()
    if ext in (".csv",):
        with open(path, "r", encoding="utf-8-sig", newline="") as f:
            return LoadResult(lots=_lots_from_rows(csv.DictReader(f)), source=path)

    if ext in (".json", ".geojson"):
        with open(path, "r", encoding="utf-8") as f:
            obj = json.load(f)

        if isinstance(obj, dict) and "features" in obj:
            rows: list[dict] = []
            for feat in obj.get("features", []):
                if not isinstance(feat, dict):
                    continue
                row = dict(feat.get("properties") or {})
                ll = _geom_to_point_latlng(feat.get("geometry") or {})
                if ll is not None:
                    row.setdefault("lat", ll[0])
                    row.setdefault("lng", ll[1])
                rows.append(row)
            return LoadResult(lots=_lots_from_rows(rows), source=path)

        if isinstance(obj, dict) and "lots" in obj:
            return LoadResult(lots=_lots_from_rows(obj["lots"]), source=path)

        if isinstance(obj, list):
            return LoadResult(lots=_lots_from_rows(obj), source=path)

        raise ValueError(f"Unsupported JSON structure in {path}")

    raise ValueError(f"Unsupported file extension: {ext} (expected .csv/.json/.geojson)")


def load_snapshot(path: str) -> ParkingSnapshot:
    if not os.path.exists(path):
        raise FileNotFoundError(f"Parking snapshot not found: {path}")

    with open(path, "r", encoding="utf-8") as f:
        obj = json.load(f)
    if not isinstance(obj, dict):
        raise ValueError(f"Unsupported snapshot structure in {path}")

    return ParkingSnapshot(
        lots=_lots_from_rows(obj.get("lots") or []),
        observations=_parse_records(obj.get("occupancy_history"), OccupancyObservation, "occupancy"),
        events=_parse_records(obj.get("events"), Event, "event"),
        violations=_parse_records(obj.get("violations"), Violation, "violation"),
        source=path,
    )
