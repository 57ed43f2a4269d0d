from __future__ import annotations

import os
from dataclasses import dataclass
from functools import lru_cache
from typing import Optional


DEFAULT_FORECAST_URL_TEMPLATE = "https://geoglows.ecmwf.int/api/v2/forecast/{site_id}?format=json"

_CATALOG_PATH_ENV = "DAM_CATALOG_PATH"
_FORECAST_URL_ENV = "FORECAST_API_URL_TEMPLATE"
_FORECAST_TIMEOUT_ENV = "FORECAST_TIMEOUT_SECONDS"
_VERDICT_RULE_ENV = "VERDICT_RULE"
_CHART_ORDERING_ENV = "CHART_ORDERING"
_DISPLAY_TZ_ENV = "DISPLAY_TIMEZONE"
_OVERLAY_ROOT_ENV = "OVERLAY_ROOT_PATH"
_LOG_LEVEL_ENV = "LOG_LEVEL"

_VERDICT_RULES = ("band_overlap", "current_median")
_CHART_ORDERINGS = ("request", "arrival")


@dataclass(frozen=True)
class Settings:
    catalog_path: str
    forecast_url_template: str
    forecast_timeout: float
    verdict_rule: str
    chart_ordering: str
    display_timezone: Optional[str]
    overlay_root_path: Optional[str]
    log_level: str


def _read_str_env(name: str, default: str) -> str:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or default


def _read_optional_env(name: str, default: Optional[str]) -> Optional[str]:
    value = os.getenv(name)
    if value is None:
        return default
    candidate = value.strip()
    return candidate or None


def _read_timeout(default: float) -> float:
    value = os.getenv(_FORECAST_TIMEOUT_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    try:
        parsed = float(candidate)
    except ValueError:
        return default
    return parsed if parsed > 0 else default


def _read_choice(name: str, choices: tuple[str, ...], default: str) -> str:
    candidate = _read_str_env(name, default).lower()
    return candidate if candidate in choices else default


def _read_url_template(default: str) -> str:
    candidate = _read_str_env(_FORECAST_URL_ENV, default)
    return candidate if "{site_id}" in candidate else default


def _read_log_level(default: str) -> str:
    value = os.getenv(_LOG_LEVEL_ENV)
    if value is None:
        return default
    candidate = value.strip()
    if not candidate:
        return default
    return candidate.upper()


@lru_cache
def get_settings() -> Settings:
    return Settings(
        catalog_path=_read_str_env(_CATALOG_PATH_ENV, "./data/full_lhd_website.csv"),
        forecast_url_template=_read_url_template(DEFAULT_FORECAST_URL_TEMPLATE),
        forecast_timeout=_read_timeout(30.0),
        verdict_rule=_read_choice(_VERDICT_RULE_ENV, _VERDICT_RULES, "band_overlap"),
        chart_ordering=_read_choice(_CHART_ORDERING_ENV, _CHART_ORDERINGS, "request"),
        display_timezone=_read_optional_env(_DISPLAY_TZ_ENV, None),
        overlay_root_path=_read_optional_env(_OVERLAY_ROOT_ENV, "./data/overlays"),
        log_level=_read_log_level("INFO"),
    )
