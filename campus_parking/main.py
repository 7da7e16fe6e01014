import logging
from datetime import datetime, timedelta
from typing import Optional

from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
import uvicorn

from campus_parking.config import settings
from campus_parking.data_loader import ParkingSnapshot, load_snapshot
from campus_parking.errors import MissingLocation
from campus_parking.models import (
    Forecast,
    Lot,
    PredictionQuery,
    PredictionResult,
    RecommendationQuery,
    RecommendationResult,
    Route,
    RouteQuery,
)
from campus_parking.patrol import build_patrol_route
from campus_parking.prediction import forecast_occupancy, predict_occupancy
from campus_parking.services import occupancy_status, recommend_lots

logger = logging.getLogger(__name__)
logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s:%(message)s")

app = FastAPI(title="Campus Parking API", version="0.1.0")

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

# Read snapshot of the parking data store
snapshot: Optional[ParkingSnapshot] = None


@app.on_event("startup")
def load_data():
    global snapshot
    try:
        snapshot = load_snapshot(settings.snapshot_path)
        logger.info(
            "Loaded %d lots, %d observations, %d events, %d violations from %s",
            len(snapshot.lots),
            len(snapshot.observations),
            len(snapshot.events),
            len(snapshot.violations),
            snapshot.source,
        )
    except (OSError, ValueError) as e:
        logger.error("Error loading parking snapshot: %s", e)


def _require_snapshot() -> ParkingSnapshot:
    if snapshot is None:
        raise HTTPException(status_code=503, detail="Parking data not loaded")
    return snapshot


def _require_lot(data: ParkingSnapshot, lot_id: str) -> Lot:
    lot = data.lot(lot_id)
    if lot is None:
        raise HTTPException(status_code=404, detail="Lot not found")
    return lot


@app.get("/health")
def health():
    return {
        "status": "ok",
        "lots_loaded": len(snapshot.lots) if snapshot is not None else 0,
    }


@app.get("/lots")
def list_lots() -> list[dict]:
    data = _require_snapshot()
    return [
        {
            **lot.model_dump(),
            "status": occupancy_status(lot.current_occupancy, lot.capacity),
        }
        for lot in data.lots
    ]


@app.get("/lots/{lot_id}/status")
def lot_status(lot_id: str) -> dict:
    lot = _require_lot(_require_snapshot(), lot_id)
    return {
        "lot_id": lot.id,
        "name": lot.name,
        "capacity": lot.capacity,
        "current_occupancy": lot.current_occupancy,
        "availability": max(0, lot.capacity - lot.current_occupancy),
        "status": occupancy_status(lot.current_occupancy, lot.capacity),
    }


@app.post("/recommendations", response_model=list[RecommendationResult])
def get_recommendations(query: RecommendationQuery) -> list[RecommendationResult]:
    """
    Rank the lots the driver's permit allows, best first.

    - **location**: driver position (required)
    - **permit**: driver's permit type
    - **preferences**: covered / EV charging / handicap access flags
    - **limit**: number of lots to return (default: 3)
    """
    data = _require_snapshot()
    limit = query.limit if query.limit is not None else settings.recommendation_limit
    try:
        return recommend_lots(
            data.lots,
            location=query.location,
            permit=query.permit,
            preferences=query.preferences,
            limit=limit,
        )
    except MissingLocation as e:
        raise HTTPException(status_code=400, detail=str(e))


@app.post("/predictions/occupancy", response_model=PredictionResult)
def post_prediction(query: PredictionQuery) -> PredictionResult:
    """
    Predict the occupancy of one lot.

    - **lot_id**: lot to predict for
    - **prediction_time**: optional timestamp (defaults to 30 minutes from now)
    """
    data = _require_snapshot()
    lot = _require_lot(data, query.lot_id)
    target = query.prediction_time or datetime.now() + timedelta(minutes=30)
    return predict_occupancy(lot, target, data.observations_for(lot.id), data.events)


@app.get("/predictions/occupancy", response_model=Forecast)
def get_forecast(lot_id: str, hours: int = settings.forecast_default_hours) -> Forecast:
    """
    Hourly occupancy forecast for the next **hours** hours.
    """
    data = _require_snapshot()
    lot = _require_lot(data, lot_id)
    return forecast_occupancy(lot, hours, data.observations_for(lot.id), data.events)


@app.post("/routes/optimize", response_model=Route)
def optimize_route(query: RouteQuery) -> Route:
    data = _require_snapshot()
    return build_patrol_route(data.violations, data.lots, officer_id=query.officer_id)


if __name__ == "__main__":
    uvicorn.run("campus_parking.main:app", host="127.0.0.1", port=8000, reload=True)
