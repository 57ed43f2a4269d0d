"""Domain models shared across services."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Iterator, List, Optional


class VerdictRule(str, Enum):
    """Rule used to decide whether a forecast reaches the danger range."""

    band_overlap = "band_overlap"
    current_median = "current_median"


class SafetyStatus(str, Enum):
    """Human-facing classification of a forecast against a danger range."""

    dangerous = "dangerous"
    safe_low_flow = "safe_low_flow"
    safe_drowned_out = "safe_drowned_out"


@dataclass(frozen=True, slots=True)
class DangerRange:
    """Flow band, in cfs, at which a submerged hydraulic jump is expected."""

    min: float
    max: float

    def contains(self, flow: float) -> bool:
        return self.min <= flow <= self.max

    def overlaps(self, lower: float, upper: float) -> bool:
        return upper >= self.min and lower <= self.max


@dataclass(frozen=True, slots=True)
class DamRecord:
    """A single dam parsed from the catalog CSV."""

    id: str
    name: str
    location: str
    stream: str
    latitude: float
    longitude: float
    danger_range: Optional[DangerRange] = None
    fatality_count: int = 0

    @property
    def coordinates(self) -> tuple[float, float]:
        return (self.latitude, self.longitude)

    @property
    def is_checkable(self) -> bool:
        return self.danger_range is not None and bool(self.id)


@dataclass(slots=True)
class ForecastSample:
    """One hourly flow estimate after alignment and conversion to cfs."""

    timestamp: datetime
    label: str
    median_flow: Optional[float]
    upper_flow: Optional[float] = None
    lower_flow: Optional[float] = None


@dataclass(slots=True)
class Verdict:
    dangerous: bool
    rule: VerdictRule
    status: SafetyStatus
    current_flow: Optional[float]
    dangerous_indices: List[int] = field(default_factory=list)
    explanation: str = ""


@dataclass(slots=True)
class ForecastSeries:
    """Aligned, converted forecast for one site together with its verdict.

    ``upper`` and ``lower`` are empty when the forecast carries no uncertainty
    bounds; otherwise every sequence has the same length as ``timestamps``.
    """

    site_id: str
    site_name: str
    danger_range: DangerRange
    timestamps: List[datetime]
    labels: List[str]
    median: List[Optional[float]]
    upper: List[Optional[float]]
    lower: List[Optional[float]]
    verdict: Verdict

    @property
    def has_bounds(self) -> bool:
        return bool(self.upper) and bool(self.lower)

    def samples(self) -> Iterator[ForecastSample]:
        for index, timestamp in enumerate(self.timestamps):
            yield ForecastSample(
                timestamp=timestamp,
                label=self.labels[index],
                median_flow=self.median[index],
                upper_flow=self.upper[index] if self.has_bounds else None,
                lower_flow=self.lower[index] if self.has_bounds else None,
            )
