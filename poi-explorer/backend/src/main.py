from __future__ import annotations

import math
import time
from typing import Any, Dict, List, Optional

from dotenv import load_dotenv
from fastapi import FastAPI, HTTPException
from fastapi.middleware.cors import CORSMiddleware
from loguru import logger
from pydantic import BaseModel, ConfigDict, Field

from config import Configuration
from models import POI, Coordinate, Zone
from services.aggregator import fetch_nearby_pois
from services.places_provider import PlacesUnavailableError
from services.zones import build_zones


load_dotenv()

app = FastAPI(title="POI Explorer API")
app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

MAX_ZOOM_PARAM = 24


class LocationPayload(BaseModel):
    lat: float
    lng: float


class PoiPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    location: LocationPayload
    address: Optional[str] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = Field(None, alias="ratingCount")
    categories: List[str] = []
    open_now: Optional[bool] = Field(None, alias="openNow")
    photo_ref: Optional[str] = Field(None, alias="photoRef")
    icon: Optional[str] = None
    distance_meters: float = Field(0.0, alias="distanceMeters")
    score: float
    source: str = "google"


class ZonePayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    id: str
    name: str
    centroid: LocationPayload
    radius_meters: float = Field(..., alias="radiusMeters")
    member_ids: List[str] = Field(..., alias="memberIds")
    score: float


class ZonesRequest(BaseModel):
    pois: List[PoiPayload]
    zoom: int = Field(12, ge=0, le=MAX_ZOOM_PARAM, description="Map zoom level used for clustering")


def _poi_json(p: POI) -> Dict[str, Any]:
    payload = PoiPayload(
        id=p.id,
        name=p.name,
        location=LocationPayload(lat=p.location.lat, lng=p.location.lng),
        address=p.address,
        rating=p.rating,
        rating_count=p.rating_count,
        categories=list(p.categories),
        open_now=p.open_now,
        photo_ref=p.photo_ref,
        icon=p.icon,
        distance_meters=p.distance_meters,
        score=p.score,
        source=p.source,
    )
    # optional provider fields are omitted rather than sent as null
    return payload.model_dump(by_alias=True, exclude_none=True)


def _zone_json(z: Zone) -> Dict[str, Any]:
    payload = ZonePayload(
        id=z.id,
        name=z.name,
        centroid=LocationPayload(lat=z.centroid.lat, lng=z.centroid.lng),
        radius_meters=z.radius_meters,
        member_ids=list(z.member_ids),
        score=z.score,
    )
    return payload.model_dump(by_alias=True)


def _to_poi(p: PoiPayload) -> POI:
    return POI(
        id=p.id,
        name=p.name,
        location=Coordinate(lat=p.location.lat, lng=p.location.lng),
        address=p.address,
        rating=p.rating,
        rating_count=p.rating_count,
        categories=tuple(p.categories),
        open_now=p.open_now,
        photo_ref=p.photo_ref,
        icon=p.icon,
        distance_meters=p.distance_meters,
        score=p.score,
        source=p.source,
    )


def _parse_coordinate(value: Optional[str]) -> Optional[float]:
    if value is None:
        return None
    try:
        parsed = float(value)
    except (TypeError, ValueError):
        return None
    return parsed if math.isfinite(parsed) else None


def _parse_int(value: Optional[str], default: int, name: str) -> int:
    if value is None or value == "":
        return default
    try:
        return int(value)
    except (TypeError, ValueError):
        raise HTTPException(status_code=400, detail=f"{name} must be an integer")


@app.get("/api/health")
def health() -> dict:
    cfg = Configuration.from_env()
    logger.info("cfg: {}", cfg.log_summary())
    return {"status": "ok", "message": "POI Explorer API is running"}


@app.get("/api/poi/nearby")
async def nearby(
    lat: Optional[str] = None,
    lng: Optional[str] = None,
    radius: Optional[str] = None,
    language: Optional[str] = None,
    keyword: Optional[str] = None,
    zoom: Optional[str] = None,
) -> dict:
    cfg = Configuration.from_env()
    logger.info("poi /nearby lat={} lng={} radius={} language={} keyword={}", lat, lng, radius, language, keyword)

    lat_v = _parse_coordinate(lat)
    lng_v = _parse_coordinate(lng)
    if lat_v is None or lng_v is None:
        logger.error("invalid coordinates lat={} lng={}", lat, lng)
        raise HTTPException(
            status_code=400,
            detail="lat and lng query params are required and must be valid numbers",
        )

    radius_m = _parse_int(radius, cfg.default_radius_m, "radius")
    if radius_m > cfg.max_radius_m:
        logger.error("radius too large: {}", radius_m)
        raise HTTPException(status_code=400, detail=f"radius too large (max {cfg.max_radius_m}m)")
    if radius_m <= 0:
        raise HTTPException(status_code=400, detail="radius must be positive")

    zoom_v: Optional[int] = None
    if zoom is not None and zoom != "":
        zoom_v = _parse_int(zoom, 0, "zoom")
        if not 0 <= zoom_v <= MAX_ZOOM_PARAM:
            raise HTTPException(status_code=400, detail=f"zoom must be between 0 and {MAX_ZOOM_PARAM}")

    started = time.time()
    try:
        result = await fetch_nearby_pois(
            cfg,
            Coordinate(lat=lat_v, lng=lng_v),
            radius_m,
            language=language or cfg.lang_default,
            keyword=keyword or None,
        )
    except PlacesUnavailableError as exc:
        logger.error("place search unavailable: {}", exc)
        raise HTTPException(status_code=503, detail=f"Place search unavailable: {exc}")
    except Exception as exc:
        logger.exception("Failed to fetch nearby POI: {}", exc)
        raise HTTPException(status_code=500, detail="Failed to fetch nearby POI")

    logger.info("fetched {} POIs in {:.0f}ms", result.count, (time.time() - started) * 1000)

    body: Dict[str, Any] = {
        "pois": [_poi_json(p) for p in result.pois],
        "highlight": _poi_json(result.highlight) if result.highlight else None,
        "count": result.count,
    }
    if zoom_v is not None:
        zones = build_zones(result.pois, zoom_v, cfg.zone_settings())
        body["zones"] = [_zone_json(z) for z in zones]
    return body


@app.post("/api/poi/zones")
def zones(req: ZonesRequest) -> dict:
    cfg = Configuration.from_env()
    pois = [_to_poi(p) for p in req.pois]
    try:
        built = build_zones(pois, req.zoom, cfg.zone_settings())
    except ValueError as exc:
        raise HTTPException(status_code=400, detail=str(exc))
    logger.info("zones: {} from {} pois at zoom {}", len(built), len(pois), req.zoom)
    return {"zones": [_zone_json(z) for z in built]}


if __name__ == "__main__":
    import uvicorn

    cfg = Configuration.from_env()
    uvicorn.run("main:app", host=cfg.host, port=cfg.port, reload=True)
