"""Utility helpers for the POI explorer backend."""

from __future__ import annotations

import math
from typing import Optional

from models import Coordinate


EARTH_RADIUS_M = 6371000.0


def mask_secret(value: Optional[str], visible: int = 4) -> str:
    if not value:
        return "unset"
    if len(value) <= visible * 2:
        return "*" * len(value)
    return f"{value[:visible]}...{value[-visible:]}"


def haversine_m(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Great-circle distance in meters."""
    phi1 = math.radians(lat1)
    phi2 = math.radians(lat2)
    dphi = math.radians(lat2 - lat1)
    dlambda = math.radians(lon2 - lon1)
    a = math.sin(dphi / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlambda / 2) ** 2
    # rounding can push a just outside [0, 1] near antipodes
    a = min(max(a, 0.0), 1.0)
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return EARTH_RADIUS_M * c


def distance_meters(a: Coordinate, b: Coordinate) -> float:
    return haversine_m(a.lat, a.lng, b.lat, b.lng)


def needs_refetch(
    last_origin: Optional[Coordinate],
    new_origin: Coordinate,
    min_distance_m: float = 200.0,
) -> bool:
    """True when a client should aggregate again after moving to ``new_origin``.

    The backend keeps no memory of previous origins; callers pass the last
    origin they fetched for (or None on the first fetch).
    """
    if last_origin is None:
        return True
    return distance_meters(last_origin, new_origin) >= min_distance_m
