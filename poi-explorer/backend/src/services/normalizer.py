from __future__ import annotations

import math
from dataclasses import dataclass
from typing import Any, Dict, Optional

from loguru import logger

from models import POI, Coordinate
from utils import distance_meters


@dataclass(frozen=True)
class ScoringPolicy:
    """Weights for the composite POI score.

    score = rating * rating_weight + ln(1 + rating_count) - distance / distance_divisor_m

    Missing ratings and counts fall back to the defaults.
    """

    rating_weight: float = 1.5
    default_rating: float = 4.0
    default_rating_count: int = 10
    distance_divisor_m: float = 10000.0


DEFAULT_SCORING = ScoringPolicy()


def score_place(
    rating: Optional[float],
    rating_count: Optional[int],
    distance_m: float,
    policy: ScoringPolicy = DEFAULT_SCORING,
) -> float:
    r = rating if rating is not None else policy.default_rating
    n = rating_count if rating_count is not None else policy.default_rating_count
    return r * policy.rating_weight + math.log1p(n) - distance_m / policy.distance_divisor_m


def as_finite_float(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if not math.isfinite(value):
        return None
    return value


def rating_count_of(raw: Dict[str, Any]) -> Optional[int]:
    """``user_ratings_total`` as a non-negative int, or None when unusable."""
    count = as_finite_float(raw.get("user_ratings_total"))
    if count is None or count < 0:
        return None
    return int(count)


def _resolve_location(raw: Dict[str, Any]) -> Optional[Coordinate]:
    geometry = raw.get("geometry") or {}
    loc = geometry.get("location") if isinstance(geometry, dict) else None
    if not isinstance(loc, dict):
        return None
    lat = as_finite_float(loc.get("lat"))
    lng = as_finite_float(loc.get("lng"))
    if lat is None or lng is None:
        return None
    return Coordinate(lat=lat, lng=lng)


def normalize_place(
    raw: Dict[str, Any],
    origin: Coordinate,
    policy: ScoringPolicy = DEFAULT_SCORING,
    source: str = "google",
) -> Optional[POI]:
    """Turn a raw Nearby Search record into a POI, or None when unusable."""
    place_id = raw.get("place_id")
    if not place_id:
        logger.debug("dropping record without place_id: {}", raw.get("name"))
        return None
    location = _resolve_location(raw)
    if location is None:
        logger.debug("dropping record without location: {}", place_id)
        return None

    dist = distance_meters(origin, location)
    rating = as_finite_float(raw.get("rating"))
    rating_count = rating_count_of(raw)

    opening_hours = raw.get("opening_hours") or {}
    open_now = opening_hours.get("open_now") if isinstance(opening_hours, dict) else None
    photos = raw.get("photos") or []
    photo_ref = None
    if isinstance(photos, list) and photos and isinstance(photos[0], dict):
        photo_ref = photos[0].get("photo_reference")

    return POI(
        id=str(place_id),
        name=str(raw.get("name") or ""),
        location=location,
        address=raw.get("vicinity") or raw.get("formatted_address") or None,
        rating=rating,
        rating_count=rating_count,
        categories=tuple(str(t) for t in (raw.get("types") or [])),
        open_now=open_now if isinstance(open_now, bool) else None,
        photo_ref=photo_ref,
        icon=raw.get("icon"),
        distance_meters=dist,
        score=score_place(rating, rating_count, dist, policy),
        source=source,
    )
