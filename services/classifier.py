"""Turn raw forecast payloads into aligned, classified flow series."""

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone, tzinfo
from typing import Any, List, Optional, Sequence

from models.records import DangerRange, ForecastSeries, SafetyStatus, Verdict, VerdictRule
from services.exceptions import MalformedForecastError, NoForecastDataError

CMS_TO_CFS = 35.3147

DATETIME_KEY = "datetime"
MEDIAN_KEY = "flow_median"
UPPER_KEY = "flow_uncertainty_upper"
LOWER_KEY = "flow_uncertainty_lower"

STATUS_MESSAGES = {
    SafetyStatus.dangerous: "WARNING: Condition is DANGEROUS. Submerged hydraulic jump likely.",
    SafetyStatus.safe_drowned_out: "Status: Safe (drowned out, fully submerged).",
    SafetyStatus.safe_low_flow: "Status: Safe (low flow).",
}


def cms_to_cfs(value: float) -> float:
    return value * CMS_TO_CFS


def cfs_to_cms(value: float) -> float:
    return value / CMS_TO_CFS


def local_zone() -> tzinfo:
    zone = datetime.now().astimezone().tzinfo
    return zone if zone is not None else timezone.utc


def truncate_to_hour(moment: datetime) -> datetime:
    return moment.replace(minute=0, second=0, microsecond=0)


def alignment_index(timestamps: Sequence[datetime], cutoff: datetime) -> int:
    """Index of the first timestamp at or after ``cutoff``, or 0 if all are earlier."""
    for index, timestamp in enumerate(timestamps):
        if timestamp >= cutoff:
            return index
    return 0


def format_label(timestamp: datetime, zone: tzinfo) -> str:
    """Short time-axis label such as ``Jan 5, 3 PM`` in the given zone."""
    local = timestamp.astimezone(zone)
    hour = local.strftime("%I %p").lstrip("0")
    return f"{local:%b} {local.day}, {hour}"


def parse_timestamp(value: str) -> datetime:
    candidate = value.strip()
    if not candidate:
        raise ValueError("Timestamp is empty.")

    if candidate.endswith("Z"):
        candidate = candidate[:-1] + "+00:00"

    try:
        parsed = datetime.fromisoformat(candidate)
    except ValueError as exc:
        raise ValueError("Invalid timestamp format") from exc

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=timezone.utc)

    return parsed


@dataclass
class RawForecast:
    """Forecast arrays as reported by the service, still in cms."""

    timestamps: List[datetime]
    median: List[Optional[float]]
    upper: List[Optional[float]]
    lower: List[Optional[float]]


def _coerce_flows(values: Any, key: str) -> List[Optional[float]]:
    if not isinstance(values, list):
        raise MalformedForecastError(f"Forecast field {key!r} is not a list.")
    flows: List[Optional[float]] = []
    for value in values:
        if value is None:
            flows.append(None)
            continue
        if isinstance(value, bool) or not isinstance(value, (int, float)):
            raise MalformedForecastError(f"Forecast field {key!r} contains non-numeric value {value!r}.")
        try:
            number = float(value)
        except OverflowError as exc:
            raise MalformedForecastError(f"Forecast field {key!r} contains out-of-range value.") from exc
        flows.append(number if math.isfinite(number) else None)
    return flows


def _optional_bounds(payload: dict, key: str, expected: int) -> List[Optional[float]]:
    raw = payload.get(key)
    if raw is None:
        return []
    flows = _coerce_flows(raw, key)
    if flows and len(flows) != expected:
        raise MalformedForecastError(
            f"Forecast field {key!r} has {len(flows)} values, expected {expected}."
        )
    return flows


def parse_forecast_payload(payload: Any) -> RawForecast:
    """Validate the JSON document returned by the forecast service."""
    if not isinstance(payload, dict):
        raise MalformedForecastError("Forecast response is not a JSON object.")

    if not payload.get(MEDIAN_KEY):
        raise NoForecastDataError("Forecast response contains no median flow values.")
    median = _coerce_flows(payload[MEDIAN_KEY], MEDIAN_KEY)

    raw_times = payload.get(DATETIME_KEY)
    if not isinstance(raw_times, list) or len(raw_times) != len(median):
        raise MalformedForecastError(
            f"Forecast field {DATETIME_KEY!r} must list one timestamp per median value."
        )
    try:
        timestamps = [parse_timestamp(str(value)) for value in raw_times]
    except ValueError as exc:
        raise MalformedForecastError(f"Forecast contains an invalid timestamp: {exc}") from exc

    upper = _optional_bounds(payload, UPPER_KEY, len(median))
    lower = _optional_bounds(payload, LOWER_KEY, len(median))
    if not upper or not lower:
        upper, lower = [], []

    return RawForecast(timestamps=timestamps, median=median, upper=upper, lower=lower)


def _convert(values: Sequence[Optional[float]]) -> List[Optional[float]]:
    return [None if value is None else cms_to_cfs(value) for value in values]


def _fmt(value: float) -> str:
    return f"{value:,.0f}"


class ForecastClassifier:
    """Pure classification component that can be unit tested in isolation."""

    def __init__(
        self,
        rule: VerdictRule = VerdictRule.band_overlap,
        zone: Optional[tzinfo] = None,
    ) -> None:
        self.rule = rule
        self.zone = zone

    def classify(
        self,
        payload: Any,
        site_id: str,
        site_name: str,
        danger_range: DangerRange,
        now: Optional[datetime] = None,
    ) -> ForecastSeries:
        raw = parse_forecast_payload(payload)
        zone = self.zone or local_zone()
        current = now or datetime.now(zone)
        if current.tzinfo is None:
            current = current.replace(tzinfo=zone)
        cutoff = truncate_to_hour(current.astimezone(zone))

        start = alignment_index(raw.timestamps, cutoff)
        timestamps = raw.timestamps[start:]
        median = _convert(raw.median[start:])
        upper = _convert(raw.upper[start:])
        lower = _convert(raw.lower[start:])
        labels = [format_label(timestamp, zone) for timestamp in timestamps]

        verdict = self.judge(danger_range, median, upper, lower, labels)
        return ForecastSeries(
            site_id=site_id,
            site_name=site_name,
            danger_range=danger_range,
            timestamps=timestamps,
            labels=labels,
            median=median,
            upper=upper,
            lower=lower,
            verdict=verdict,
        )

    def judge(
        self,
        danger_range: DangerRange,
        median: Sequence[Optional[float]],
        upper: Sequence[Optional[float]],
        lower: Sequence[Optional[float]],
        labels: Optional[Sequence[str]] = None,
    ) -> Verdict:
        """Decide the verdict for already aligned cfs values.

        The band rule needs uncertainty bounds; without them the current
        median rule is applied and reported instead.
        """
        current_index = next(
            (index for index, value in enumerate(median) if value is not None), None
        )
        current_flow = median[current_index] if current_index is not None else None
        span = f"{_fmt(danger_range.min)} - {_fmt(danger_range.max)} cfs"

        if self.rule is VerdictRule.band_overlap and upper and lower:
            rule = VerdictRule.band_overlap
            indices = [
                index
                for index, (high, low) in enumerate(zip(upper, lower))
                if high is not None and low is not None and danger_range.overlaps(low, high)
            ]
            if indices:
                first = labels[indices[0]] if labels else f"hour {indices[0]}"
                explanation = (
                    f"Forecast uncertainty band reaches the dangerous range {span} "
                    f"in {len(indices)} of {len(upper)} forecast hours, first at {first}."
                )
            else:
                explanation = f"No forecast hour's uncertainty band reaches the dangerous range {span}."
        else:
            rule = VerdictRule.current_median
            indices = []
            if current_flow is None:
                explanation = f"No current forecasted flow to compare with the dangerous range {span}."
            else:
                if danger_range.contains(current_flow):
                    indices = [current_index]
                explanation = (
                    f"Current forecasted flow {current_flow:,.2f} cfs compared with "
                    f"the dangerous range {span}."
                )

        dangerous = bool(indices)
        if dangerous:
            status = SafetyStatus.dangerous
        elif current_flow is not None and current_flow > danger_range.max:
            status = SafetyStatus.safe_drowned_out
        else:
            status = SafetyStatus.safe_low_flow

        return Verdict(
            dangerous=dangerous,
            rule=rule,
            status=status,
            current_flow=current_flow,
            dangerous_indices=indices,
            explanation=f"{explanation} {STATUS_MESSAGES[status]}",
        )
