from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path
from threading import Lock
from typing import Dict, Iterable, Mapping, Optional

from settings import get_settings

logger = logging.getLogger(__name__)

OVERLAY_MEDIA_TYPE = "application/geopackage+sqlite3"

OVERLAY_FILES: Mapping[str, str] = {
    "major_rivers": "major_rivers.gpkg",
    "streams": "streams.gpkg",
    "waterbodies": "waterbodies.gpkg",
    "watersheds": "watersheds.gpkg",
}


class OverlayStore:
    """Background hydrography layers, each loaded independently of the others."""

    def __init__(
        self,
        root_path: Optional[Path] = None,
        files: Mapping[str, str] = OVERLAY_FILES,
    ) -> None:
        self.root_path = root_path
        self.files = dict(files)
        self._layers: Dict[str, bytes] = {}
        self._failures: Dict[str, str] = {}
        self._lock = Lock()

    def load_all(self) -> Dict[str, str]:
        """Load every known overlay; return the failures keyed by overlay name."""
        for name in self.files:
            try:
                data = self._read(name)
            except (OSError, KeyError) as exc:
                logger.warning(
                    "Overlay could not be loaded",
                    extra={"overlay": name, "reason": str(exc)},
                )
                with self._lock:
                    self._failures[name] = str(exc)
                    self._layers.pop(name, None)
                continue
            with self._lock:
                self._layers[name] = data
                self._failures.pop(name, None)
        with self._lock:
            return dict(self._failures)

    def get(self, name: str) -> bytes:
        with self._lock:
            data = self._layers.get(name)
        if data is None:
            raise KeyError(f"Overlay {name!r} is not loaded.")
        return data

    def list_layers(self) -> Iterable[str]:
        with self._lock:
            return sorted(self._layers)

    def _read(self, name: str) -> bytes:
        if self.root_path is None:
            raise KeyError("No overlay directory configured.")
        path = self.root_path / self.files[name]
        data = path.read_bytes()
        if not data:
            raise OSError(f"Overlay file {path} is empty.")
        return data


@lru_cache
def build_default_overlays(root_path: Optional[str] = None) -> OverlayStore:
    settings = get_settings()
    overlay_root = settings.overlay_root_path if root_path is None else root_path
    path = Path(overlay_root) if overlay_root else None
    return OverlayStore(root_path=path)
