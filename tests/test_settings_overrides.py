from __future__ import annotations

from typing import Iterable

from datastore.chart_slot import ChartOrdering, build_default_slot
from models.records import VerdictRule
from services.forecast import build_default_forecast_service
from settings import DEFAULT_FORECAST_URL_TEMPLATE, get_settings
from storage.overlays import build_default_overlays


def _clear_caches(caches: Iterable) -> None:
    for cache in caches:
        cache.cache_clear()


CACHES = (
    get_settings,
    build_default_slot,
    build_default_overlays,
    build_default_forecast_service,
)


def test_environment_overrides_apply(monkeypatch, tmp_path) -> None:
    overlay_root = tmp_path / "overlays"

    monkeypatch.setenv("DAM_CATALOG_PATH", str(tmp_path / "dams.csv"))
    monkeypatch.setenv("FORECAST_API_URL_TEMPLATE", "https://forecast.test/{site_id}.json")
    monkeypatch.setenv("FORECAST_TIMEOUT_SECONDS", "12.5")
    monkeypatch.setenv("VERDICT_RULE", "current_median")
    monkeypatch.setenv("CHART_ORDERING", "Arrival")
    monkeypatch.setenv("OVERLAY_ROOT_PATH", str(overlay_root))
    monkeypatch.setenv("LOG_LEVEL", "debug")
    _clear_caches(CACHES)

    try:
        settings = get_settings()
        service = build_default_forecast_service()
        overlays = build_default_overlays()

        assert settings.catalog_path == str(tmp_path / "dams.csv")
        assert settings.log_level == "DEBUG"
        assert service.client.url_for("42") == "https://forecast.test/42.json"
        assert service.client.timeout == 12.5
        assert service.classifier.rule is VerdictRule.current_median
        assert service.slot.ordering is ChartOrdering.arrival
        assert overlays.root_path == overlay_root
    finally:
        _clear_caches(CACHES)


def test_invalid_values_fall_back_to_defaults(monkeypatch) -> None:
    monkeypatch.setenv("FORECAST_API_URL_TEMPLATE", "https://forecast.test/no-placeholder")
    monkeypatch.setenv("FORECAST_TIMEOUT_SECONDS", "-3")
    monkeypatch.setenv("VERDICT_RULE", "median-ish")
    monkeypatch.setenv("CHART_ORDERING", " ")
    monkeypatch.setenv("DISPLAY_TIMEZONE", "")
    _clear_caches(CACHES)

    try:
        settings = get_settings()

        assert settings.forecast_url_template == DEFAULT_FORECAST_URL_TEMPLATE
        assert settings.forecast_timeout == 30.0
        assert settings.verdict_rule == "band_overlap"
        assert settings.chart_ordering == "request"
        assert settings.display_timezone is None
    finally:
        _clear_caches(CACHES)
