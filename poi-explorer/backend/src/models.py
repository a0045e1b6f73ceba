"""Data models for the POI explorer backend."""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional


@dataclass(frozen=True)
class Coordinate:
    lat: float
    lng: float


@dataclass(frozen=True)
class POI:
    id: str
    name: str
    location: Coordinate
    distance_meters: float
    score: float
    source: str
    categories: tuple[str, ...] = ()
    address: Optional[str] = None
    rating: Optional[float] = None
    rating_count: Optional[int] = None
    open_now: Optional[bool] = None
    photo_ref: Optional[str] = None
    icon: Optional[str] = None


@dataclass(frozen=True)
class Zone:
    id: str
    name: str
    centroid: Coordinate
    radius_meters: float
    member_ids: tuple[str, ...]
    score: float


@dataclass
class CategoryOutcome:
    category: str
    status: str  # "ok", "empty" or "error"
    records: List[Dict[str, Any]] = field(default_factory=list)
    error: Optional[str] = None

    @property
    def failed(self) -> bool:
        return self.status == "error"


@dataclass
class AggregationResult:
    pois: List[POI]
    highlight: Optional[POI]
    outcomes: List[CategoryOutcome] = field(default_factory=list)

    @property
    def count(self) -> int:
        return len(self.pois)
