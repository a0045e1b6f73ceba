from __future__ import annotations

import pytest

from config import DEFAULT_CATEGORIES, Configuration


ENV_VARS = [
    "GOOGLE_PLACES_API_KEY",
    "POI_CATEGORIES",
    "MAX_RADIUS_M",
    "ZONE_RADIUS_PX",
    "ZONE_MIN_POINTS",
    "AGGREGATE_TIMEOUT_SEC",
    "SCORE_RATING_WEIGHT",
    "SCORE_DEFAULT_RATING",
    "SCORE_DEFAULT_RATING_COUNT",
    "SCORE_DISTANCE_DIVISOR_M",
    "ZONE_EXTENT",
    "ZONE_MIN_ZOOM",
]


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    for name in ENV_VARS:
        monkeypatch.delenv(name, raising=False)


def test_defaults() -> None:
    cfg = Configuration.from_env()
    assert cfg.places_api_key is None
    assert cfg.categories == DEFAULT_CATEGORIES
    assert cfg.max_radius_m == 50000
    assert cfg.default_radius_m == 5000
    assert cfg.lang_default == "en"
    assert cfg.score_rating_weight == 1.5
    assert cfg.zone_extent == 512


def test_env_values_are_parsed(monkeypatch) -> None:
    monkeypatch.setenv("GOOGLE_PLACES_API_KEY", "abcdefgh12345678")
    monkeypatch.setenv("POI_CATEGORIES", "museum, park ,,zoo")
    monkeypatch.setenv("MAX_RADIUS_M", "20000")
    monkeypatch.setenv("ZONE_RADIUS_PX", "60")
    monkeypatch.setenv("AGGREGATE_TIMEOUT_SEC", "4.5")

    cfg = Configuration.from_env()

    assert cfg.categories == ["museum", "park", "zoo"]
    assert cfg.max_radius_m == 20000
    assert cfg.zone_radius_px == 60.0
    assert cfg.aggregate_timeout_sec == 4.5
    assert "abcd...5678" in cfg.log_summary()
    assert "abcdefgh12345678" not in cfg.log_summary()


def test_overrides_win_over_env(monkeypatch) -> None:
    monkeypatch.setenv("ZONE_MIN_POINTS", "4")
    cfg = Configuration.from_env({"zone_min_points": 3, "lang_default": None})
    assert cfg.zone_min_points == 3
    assert cfg.lang_default == "en"


def test_require_places() -> None:
    with pytest.raises(ValueError):
        Configuration().require_places()
    Configuration(places_api_key="k").require_places()


def test_policy_builders() -> None:
    cfg = Configuration(score_rating_weight=2.0, zone_min_radius_m=100.0, zone_max_zoom=15)
    policy = cfg.scoring_policy()
    settings = cfg.zone_settings()
    assert policy.rating_weight == 2.0
    assert policy.default_rating == 4.0
    assert settings.min_radius_m == 100.0
    assert settings.max_zoom == 15
    assert settings.radius_px == 80.0


def test_scoring_and_zone_policies_read_env(monkeypatch) -> None:
    monkeypatch.setenv("SCORE_RATING_WEIGHT", "2.5")
    monkeypatch.setenv("SCORE_DEFAULT_RATING", "3.5")
    monkeypatch.setenv("SCORE_DEFAULT_RATING_COUNT", "0")
    monkeypatch.setenv("SCORE_DISTANCE_DIVISOR_M", "5000")
    monkeypatch.setenv("ZONE_EXTENT", "256")
    monkeypatch.setenv("ZONE_MIN_ZOOM", "3")

    cfg = Configuration.from_env()
    policy = cfg.scoring_policy()
    settings = cfg.zone_settings()

    assert policy.rating_weight == 2.5
    assert policy.default_rating == 3.5
    assert policy.default_rating_count == 0
    assert policy.distance_divisor_m == 5000.0
    assert settings.extent == 256
    assert settings.min_zoom == 3
