"""Dam catalog loading and lookup."""

from __future__ import annotations

import csv
import io
import logging
import math
from functools import lru_cache
from pathlib import Path
from typing import Iterable, Iterator, List, Optional

import httpx

from models.records import DamRecord, DangerRange
from services.exceptions import CatalogLoadError
from settings import get_settings

logger = logging.getLogger(__name__)

LATITUDE_COLUMN = "Latitude"
LONGITUDE_COLUMN = "Longitude"
SITE_ID_COLUMN = "LinkNo"
DANGER_MIN_COLUMN = "Qmin"
DANGER_MAX_COLUMN = "Qmax"
NAME_COLUMN = "Dam_Name"
STREAM_COLUMN = "River/Stream"
CITY_COLUMN = "City"
STATE_COLUMN = "State"
FATALITIES_COLUMN = "Fatalities"

_REQUIRED_COLUMNS = (LATITUDE_COLUMN, LONGITUDE_COLUMN)


class DamCatalog:
    """Immutable, in-memory collection of dams loaded once at startup."""

    def __init__(self, dams: Iterable[DamRecord] = (), load_error: Optional[str] = None) -> None:
        self._dams = tuple(dams)
        self.load_error = load_error

    def __iter__(self) -> Iterator[DamRecord]:
        return iter(self._dams)

    def __len__(self) -> int:
        return len(self._dams)

    def all(self) -> List[DamRecord]:
        return list(self._dams)

    def checkable(self) -> List[DamRecord]:
        return [dam for dam in self._dams if dam.is_checkable]

    def find(self, site_id: str) -> List[DamRecord]:
        """Return every dam with the identifier, duplicates included, in source order."""
        return [dam for dam in self._dams if dam.id == site_id]

    def find_checkable(self, site_id: str) -> Optional[DamRecord]:
        for dam in self.find(site_id):
            if dam.is_checkable:
                return dam
        return None


def _cell(row: dict, column: str) -> str:
    return (row.get(column) or "").strip()


def _parse_finite(value: str) -> Optional[float]:
    if not value:
        return None
    try:
        parsed = float(value)
    except ValueError:
        return None
    return parsed if math.isfinite(parsed) else None


def _parse_fatalities(value: str) -> int:
    parsed = _parse_finite(value)
    if parsed is None:
        return 0
    return max(int(parsed), 0)


def _format_location(city: str, state: str) -> str:
    return ", ".join(part for part in (city, state) if part)


def parse_catalog(text: str, source: str = "<memory>") -> DamCatalog:
    """Parse catalog CSV text into a :class:`DamCatalog`.

    Rows without finite coordinates are skipped. The danger range is kept only
    when both bounds parse and ``Qmin <= Qmax``.
    """
    reader = csv.DictReader(io.StringIO(text))
    if not reader.fieldnames:
        raise CatalogLoadError(f"Catalog {source} is missing a header row.")

    missing = [column for column in _REQUIRED_COLUMNS if column not in reader.fieldnames]
    if missing:
        raise CatalogLoadError(
            f"Catalog {source} missing required columns: {', '.join(missing)}"
        )

    dams: list[DamRecord] = []
    for row_number, row in enumerate(reader, start=2):
        latitude = _parse_finite(_cell(row, LATITUDE_COLUMN))
        longitude = _parse_finite(_cell(row, LONGITUDE_COLUMN))
        if latitude is None or longitude is None:
            logger.warning(
                "Skipping row without usable coordinates",
                extra={"source": source, "row_number": row_number, "reason": "invalid coordinates"},
            )
            continue

        site_id = _cell(row, SITE_ID_COLUMN)
        danger_min = _parse_finite(_cell(row, DANGER_MIN_COLUMN))
        danger_max = _parse_finite(_cell(row, DANGER_MAX_COLUMN))
        danger_range: Optional[DangerRange] = None
        if danger_min is not None and danger_max is not None:
            if danger_min <= danger_max:
                danger_range = DangerRange(min=danger_min, max=danger_max)
            else:
                logger.warning(
                    "Dropping inverted danger range",
                    extra={
                        "source": source,
                        "row_number": row_number,
                        "site_id": site_id or None,
                        "reason": f"Qmin {danger_min} > Qmax {danger_max}",
                    },
                )

        dams.append(
            DamRecord(
                id=site_id,
                name=_cell(row, NAME_COLUMN) or "Unnamed dam",
                location=_format_location(_cell(row, CITY_COLUMN), _cell(row, STATE_COLUMN)),
                stream=_cell(row, STREAM_COLUMN),
                latitude=latitude,
                longitude=longitude,
                danger_range=danger_range,
                fatality_count=_parse_fatalities(_cell(row, FATALITIES_COLUMN)),
            )
        )

    return DamCatalog(dams)


def _read_source(source: str) -> str:
    if source.startswith(("http://", "https://")):
        try:
            response = httpx.get(source, timeout=30.0, follow_redirects=True)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            raise CatalogLoadError(f"Unable to download catalog {source}: {exc}") from exc
        return response.text.lstrip("\ufeff")

    path = Path(source)
    try:
        return path.read_text(encoding="utf-8-sig")
    except (OSError, UnicodeDecodeError) as exc:
        raise CatalogLoadError(f"Unable to read catalog {source}: {exc}") from exc


def load_catalog(source: str | Path) -> DamCatalog:
    """Load the catalog from a local CSV path or an http(s) URL."""
    source_name = str(source)
    try:
        catalog = parse_catalog(_read_source(source_name), source=source_name)
    except csv.Error as exc:
        raise CatalogLoadError(f"Catalog {source_name} is not valid CSV: {exc}") from exc
    logger.info(
        "Loaded dam catalog",
        extra={"source": source_name, "dam_count": len(catalog)},
    )
    return catalog


@lru_cache
def build_default_catalog(source: Optional[str] = None) -> DamCatalog:
    """Load the configured catalog, degrading to an empty one on failure."""
    catalog_source = source or get_settings().catalog_path
    try:
        return load_catalog(catalog_source)
    except CatalogLoadError as exc:
        logger.error(
            "Dam catalog unavailable; continuing with no dams",
            extra={"source": catalog_source, "reason": str(exc)},
        )
        return DamCatalog(load_error=str(exc))
