"""Device-local key-value cache.

Holds the counter's day-boundary state (last reset date, baseline, today's
count) across app restarts. One file per device, never synced.
"""

import json
import logging
import os
import threading
from pathlib import Path
from typing import Optional

logger = logging.getLogger(__name__)


def get_data_dir() -> Path:
    """Get local data directory.

    Configurable via WELLMORIA_DATA_DIR, otherwise XDG_DATA_HOME or
    ~/.local/share/wellmoria.
    """
    if env_dir := os.environ.get("WELLMORIA_DATA_DIR"):
        return Path(env_dir)
    if env_dir := os.environ.get("XDG_DATA_HOME"):
        return Path(env_dir) / "wellmoria"
    return Path.home() / ".local" / "share" / "wellmoria"


class LocalCache:
    """String key-value store backed by a JSON file.

    Usage:
        cache = LocalCache.default()
        cache.set("last_reset_date", "2024-01-02")
        cache.get("last_reset_date")
    """

    FILENAME = "counter-cache.json"

    def __init__(self, path: Path):
        self.path = path
        self._lock = threading.Lock()
        self._values: Optional[dict] = None

    @classmethod
    def default(cls) -> "LocalCache":
        """Cache in the default data directory."""
        return cls(get_data_dir() / cls.FILENAME)

    def _load(self) -> dict:
        if self._values is not None:
            return self._values

        values = {}
        if self.path.exists():
            try:
                with open(self.path) as f:
                    raw = json.load(f)
                if isinstance(raw, dict):
                    values = {str(k): str(v) for k, v in raw.items() if v is not None}
                else:
                    logger.warning("Ignoring cache file %s: not an object", self.path)
            except (json.JSONDecodeError, OSError) as e:
                logger.warning("Could not read cache %s: %s", self.path, e)

        self._values = values
        return values

    def _flush(self) -> None:
        self.path.parent.mkdir(parents=True, exist_ok=True)
        tmp = self.path.with_suffix(".tmp")
        with open(tmp, "w") as f:
            json.dump(self._values, f, indent=2)
        tmp.replace(self.path)

    def get(self, key: str) -> Optional[str]:
        with self._lock:
            return self._load().get(key)

    def set(self, key: str, value: str) -> None:
        with self._lock:
            self._load()[key] = str(value)
            self._flush()

    def delete(self, key: str) -> None:
        with self._lock:
            if self._load().pop(key, None) is not None:
                self._flush()

    def snapshot(self) -> dict:
        """Copy of every stored value."""
        with self._lock:
            return dict(self._load())
