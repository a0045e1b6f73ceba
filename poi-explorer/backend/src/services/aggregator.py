from __future__ import annotations

import asyncio
import time
from typing import Any, Dict, Iterable, List, Optional, Sequence

from loguru import logger

from config import DEFAULT_CATEGORIES, Configuration
from models import AggregationResult, CategoryOutcome, Coordinate, POI
from services.normalizer import DEFAULT_SCORING, ScoringPolicy, normalize_place, rating_count_of
from services.places_provider import (
    AggregationTimeoutError,
    GooglePlacesClient,
    PlaceSearchProvider,
    PlacesUnavailableError,
)


async def _query_category(
    provider: PlaceSearchProvider,
    origin: Coordinate,
    radius_m: int,
    language: str,
    category: str,
    keyword: Optional[str],
) -> CategoryOutcome:
    try:
        records = await asyncio.to_thread(provider.search, origin, radius_m, language, category, keyword)
    except Exception as exc:
        logger.warning("places query failed for type={}: {}", category, exc)
        return CategoryOutcome(category=category, status="error", error=str(exc))

    if not records:
        return CategoryOutcome(category=category, status="empty")
    logger.debug("found {} places for type={}", len(records), category)
    return CategoryOutcome(category=category, status="ok", records=list(records))


def _rating_count(record: Dict[str, Any]) -> int:
    count = rating_count_of(record)
    return -1 if count is None else count


def dedupe_records(records: Iterable[Dict[str, Any]]) -> List[Dict[str, Any]]:
    """Collapse records sharing a ``place_id``.

    The record with more ratings wins; on equal counts the later one wins.
    Each id keeps the position where it was first seen.
    """
    merged: Dict[str, Dict[str, Any]] = {}
    for record in records:
        place_id = record.get("place_id")
        if not place_id:
            logger.debug("skipping record without place_id: {}", record.get("name"))
            continue
        existing = merged.get(place_id)
        if existing is None or _rating_count(record) >= _rating_count(existing):
            merged[place_id] = record
    return list(merged.values())


def rank_pois(pois: Sequence[POI]) -> List[POI]:
    # sorted() is stable so equal scores keep encounter order
    return sorted(pois, key=lambda p: p.score, reverse=True)


async def aggregate_nearby(
    provider: PlaceSearchProvider,
    origin: Coordinate,
    radius_m: int,
    language: str = "en",
    keyword: Optional[str] = None,
    categories: Optional[Sequence[str]] = None,
    *,
    policy: ScoringPolicy = DEFAULT_SCORING,
    timeout_sec: float = 30.0,
) -> AggregationResult:
    """Query every category, merge, dedupe, score and rank the results.

    Categories are queried concurrently and merged only once all of them have
    settled. Individual failures are tolerated; if every category errors the
    provider is considered unavailable. Running past ``timeout_sec`` discards
    whatever has been collected.
    """
    cats = list(categories) if categories is not None else list(DEFAULT_CATEGORIES)
    started = time.monotonic()

    tasks = [_query_category(provider, origin, radius_m, language, cat, keyword) for cat in cats]
    try:
        outcomes: List[CategoryOutcome] = list(await asyncio.wait_for(asyncio.gather(*tasks), timeout=timeout_sec))
    except asyncio.TimeoutError:
        raise AggregationTimeoutError(f"place search did not finish within {timeout_sec:.1f}s")

    failed = [o for o in outcomes if o.failed]
    if outcomes and len(failed) == len(outcomes):
        raise PlacesUnavailableError(
            "place search failed for every category: %s" % "; ".join(f"{o.category}: {o.error}" for o in failed)
        )

    raw_records: List[Dict[str, Any]] = []
    for outcome in outcomes:
        raw_records.extend(outcome.records)
    unique = dedupe_records(raw_records)

    source = getattr(provider, "source", "google")
    pois: List[POI] = []
    for record in unique:
        poi = normalize_place(record, origin, policy, source=source)
        if poi is not None:
            pois.append(poi)

    ranked = rank_pois(pois)
    highlight = ranked[0] if ranked else None

    elapsed_ms = (time.monotonic() - started) * 1000
    logger.info(
        "aggregated raw={} unique={} pois={} failed_categories={}/{} in {:.0f}ms",
        len(raw_records),
        len(unique),
        len(ranked),
        len(failed),
        len(outcomes),
        elapsed_ms,
    )
    if highlight is not None:
        logger.info("highlight poi: {} (score: {:.2f})", highlight.name, highlight.score)

    return AggregationResult(pois=ranked, highlight=highlight, outcomes=outcomes)


async def fetch_nearby_pois(
    cfg: Configuration,
    origin: Coordinate,
    radius_m: int,
    language: Optional[str] = None,
    keyword: Optional[str] = None,
    provider: Optional[PlaceSearchProvider] = None,
) -> AggregationResult:
    """Aggregate using the configured Google Places client and policies."""
    if provider is None:
        try:
            cfg.require_places()
        except ValueError as exc:
            raise PlacesUnavailableError(str(exc))
        provider = GooglePlacesClient(cfg)

    return await aggregate_nearby(
        provider,
        origin,
        radius_m,
        language=language or cfg.lang_default,
        keyword=keyword,
        categories=cfg.categories,
        policy=cfg.scoring_policy(),
        timeout_sec=cfg.aggregate_timeout_sec,
    )
