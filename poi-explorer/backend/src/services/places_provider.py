from __future__ import annotations

import time
from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Protocol

import requests
from loguru import logger

from config import Configuration
from models import Coordinate


class PlacesProviderError(RuntimeError):
    """A single provider query failed."""

    def __init__(self, message: str, status: Optional[str] = None) -> None:
        super().__init__(message)
        self.status = status


class PlacesUnavailableError(PlacesProviderError):
    """The provider is unconfigured or failed for every category."""


class AggregationTimeoutError(PlacesUnavailableError):
    pass


class PlaceSearchProvider(Protocol):
    source: str

    def search(
        self,
        origin: Coordinate,
        radius_m: int,
        language: str,
        category: str,
        keyword: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        ...


@dataclass
class _RetryPolicy:
    retries: int = 3
    base_delay: float = 0.5


class GooglePlacesClient:
    """Nearby Search client for the Google Places web service."""

    source = "google"

    def __init__(self, cfg: Configuration, session: Optional[requests.Session] = None) -> None:
        self.cfg = cfg
        self.base = cfg.places_base_url.rstrip("/")
        self.session = session or requests.Session()
        self.retry = _RetryPolicy()

    def _get(self, path: str, params: dict) -> dict:
        url = f"{self.base}{path}"
        headers = {"Accept": "application/json"}
        params = {**params, "key": self.cfg.places_api_key}
        attempt = 0
        while True:
            attempt += 1
            try:
                resp = self.session.get(url, headers=headers, params=params, timeout=self.cfg.places_timeout)
            except requests.RequestException as exc:  # network error
                if attempt <= self.retry.retries:
                    time.sleep(self.retry.base_delay * attempt)
                    continue
                raise PlacesProviderError(f"request error: {exc}")

            if resp.status_code in (429, 500, 502, 503, 504):
                if attempt <= self.retry.retries:
                    time.sleep(self.retry.base_delay * attempt)
                    continue
                snippet = resp.text[:300]
                raise PlacesProviderError(f"upstream {resp.status_code}: {snippet}")

            if not resp.ok:
                snippet = resp.text[:300]
                raise PlacesProviderError(f"upstream {resp.status_code}: {snippet}")

            try:
                return resp.json()
            except ValueError:
                raise PlacesProviderError("invalid json response")

    def search(
        self,
        origin: Coordinate,
        radius_m: int,
        language: str,
        category: str,
        keyword: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        params: Dict[str, Any] = {
            "location": f"{origin.lat},{origin.lng}",
            "radius": int(radius_m),
            "language": language,
            "type": category,
        }
        if keyword:
            params["keyword"] = keyword

        logger.debug("places nearby type={} radius={} lang={}", category, radius_m, language)
        payload = self._get("/nearbysearch/json", params)
        status = payload.get("status")
        if status == "OK":
            return list(payload.get("results") or [])
        if status == "ZERO_RESULTS":
            return []
        message = payload.get("error_message") or "no error message"
        raise PlacesProviderError(f"places status {status}: {message}", status=status)
