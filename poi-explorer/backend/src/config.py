from __future__ import annotations

import os
from typing import Any, List, Optional

from pydantic import BaseModel, Field

from utils import mask_secret


DEFAULT_CATEGORIES: List[str] = [
    "tourist_attraction",
    "museum",
    "art_gallery",
    "park",
    "church",
    "hindu_temple",
    "mosque",
    "synagogue",
    "zoo",
    "amusement_park",
]


class Configuration(BaseModel):
    # Google Places
    places_api_key: Optional[str] = Field(default=None)
    places_base_url: str = Field(default="https://maps.googleapis.com/maps/api/place")
    places_timeout: int = Field(default=15)
    categories: List[str] = Field(default_factory=lambda: list(DEFAULT_CATEGORIES))

    # Search defaults
    default_radius_m: int = Field(default=5000)
    max_radius_m: int = Field(default=50000)
    lang_default: str = Field(default="en")
    aggregate_timeout_sec: float = Field(default=30.0)

    # Scoring policy
    score_rating_weight: float = Field(default=1.5)
    score_default_rating: float = Field(default=4.0)
    score_default_rating_count: int = Field(default=10)
    score_distance_divisor_m: float = Field(default=10000.0)

    # Zones
    zone_radius_px: float = Field(default=80.0)
    zone_extent: int = Field(default=512)
    zone_min_zoom: int = Field(default=0)
    zone_max_zoom: int = Field(default=17)
    zone_min_points: int = Field(default=2)
    zone_min_radius_m: float = Field(default=150.0)

    # Server
    host: str = Field(default="0.0.0.0")
    port: int = Field(default=3002)

    @classmethod
    def from_env(cls, overrides: Optional[dict[str, Any]] = None) -> "Configuration":
        raw: dict[str, Any] = {}

        env_map = {
            "places_api_key": os.getenv("GOOGLE_PLACES_API_KEY"),
            "places_base_url": os.getenv("GOOGLE_PLACES_BASE_URL"),
            "places_timeout": os.getenv("GOOGLE_PLACES_TIMEOUT"),
            "categories": os.getenv("POI_CATEGORIES"),
            "default_radius_m": os.getenv("DEFAULT_RADIUS_M"),
            "max_radius_m": os.getenv("MAX_RADIUS_M"),
            "lang_default": os.getenv("LANG_DEFAULT"),
            "aggregate_timeout_sec": os.getenv("AGGREGATE_TIMEOUT_SEC"),
            "score_rating_weight": os.getenv("SCORE_RATING_WEIGHT"),
            "score_default_rating": os.getenv("SCORE_DEFAULT_RATING"),
            "score_default_rating_count": os.getenv("SCORE_DEFAULT_RATING_COUNT"),
            "score_distance_divisor_m": os.getenv("SCORE_DISTANCE_DIVISOR_M"),
            "zone_radius_px": os.getenv("ZONE_RADIUS_PX"),
            "zone_extent": os.getenv("ZONE_EXTENT"),
            "zone_min_zoom": os.getenv("ZONE_MIN_ZOOM"),
            "zone_max_zoom": os.getenv("ZONE_MAX_ZOOM"),
            "zone_min_points": os.getenv("ZONE_MIN_POINTS"),
            "zone_min_radius_m": os.getenv("ZONE_MIN_RADIUS_M"),
            "host": os.getenv("HOST"),
            "port": os.getenv("PORT"),
        }

        list_fields = {"categories"}

        for k, v in env_map.items():
            if v is None:
                continue
            if k in list_fields:
                items = [part.strip() for part in str(v).split(",") if part.strip()]
                if items:
                    raw[k] = items
            else:
                raw[k] = v

        if overrides:
            raw.update({k: v for k, v in overrides.items() if v is not None})

        return cls(**raw)

    def require_places(self) -> None:
        if not self.places_api_key:
            raise ValueError("GOOGLE_PLACES_API_KEY is not configured")

    def scoring_policy(self):
        from services.normalizer import ScoringPolicy

        return ScoringPolicy(
            rating_weight=self.score_rating_weight,
            default_rating=self.score_default_rating,
            default_rating_count=self.score_default_rating_count,
            distance_divisor_m=self.score_distance_divisor_m,
        )

    def zone_settings(self):
        from services.zones import ZoneSettings

        return ZoneSettings(
            radius_px=self.zone_radius_px,
            extent=self.zone_extent,
            min_zoom=self.zone_min_zoom,
            max_zoom=self.zone_max_zoom,
            min_points=self.zone_min_points,
            min_radius_m=self.zone_min_radius_m,
        )

    def log_summary(self) -> str:
        return (
            "places=%s base=%s timeout=%s categories=%d max_radius_m=%s lang_default=%s api_key=%s"
            % (
                bool(self.places_api_key),
                self.places_base_url,
                self.places_timeout,
                len(self.categories),
                self.max_radius_m,
                self.lang_default,
                mask_secret(self.places_api_key),
            )
        )
