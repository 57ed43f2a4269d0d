from __future__ import annotations

import copy
import logging
from enum import Enum
from functools import lru_cache
from threading import Lock
from typing import Optional

from models.records import ForecastSeries
from settings import get_settings

logger = logging.getLogger(__name__)


class ChartOrdering(str, Enum):
    """Which completed check is allowed to take over the displayed chart."""

    request = "request"
    arrival = "arrival"


class ChartSlot:
    """The single "currently displayed forecast" shared by every check.

    ``issue`` tags a check when it starts. With request ordering a completed
    check only replaces the displayed series if it was issued after it.
    """

    def __init__(self, ordering: ChartOrdering = ChartOrdering.request) -> None:
        self.ordering = ordering
        self._current: Optional[ForecastSeries] = None
        self._current_sequence = 0
        self._issued = 0
        self._lock = Lock()

    def issue(self) -> int:
        with self._lock:
            self._issued += 1
            return self._issued

    def replace(self, series: ForecastSeries, sequence: int) -> bool:
        """Release the displayed series and install ``series`` in one step."""
        with self._lock:
            if self.ordering is ChartOrdering.request and sequence < self._current_sequence:
                logger.info(
                    "Dropping stale forecast result",
                    extra={"site_id": series.site_id, "sequence": sequence},
                )
                return False
            previous = self._current
            self._current = copy.deepcopy(series)
            self._current_sequence = sequence

        if previous is not None:
            logger.debug(
                "Released displayed forecast",
                extra={"site_id": previous.site_id},
            )
        return True

    def current(self) -> Optional[ForecastSeries]:
        with self._lock:
            return copy.deepcopy(self._current)

    @property
    def current_sequence(self) -> int:
        with self._lock:
            return self._current_sequence

    def clear(self) -> None:
        """Empty the slot and reset the ordering watermark."""
        with self._lock:
            self._current = None
            self._current_sequence = 0


@lru_cache
def build_default_slot(ordering: Optional[str] = None) -> ChartSlot:
    settings = get_settings()
    return ChartSlot(ordering=ChartOrdering(ordering or settings.chart_ordering))
