import json
import logging
from pathlib import Path
from typing import Optional

from .settings import settings

logger = logging.getLogger(__name__)

MIN_MAG_KEY = "sentinel_min_mag"
DEFAULT_MIN_MAGNITUDE = 1.0


def video_key(widget_id: str) -> str:
    return f"sentinel_video_{widget_id}"


class Preferences:
    """Small key/value store kept in one JSON file, read on init and written on every change."""

    def __init__(self, path: Optional[Path] = None):
        self.path = Path(path) if path is not None else settings.preferences_path
        self._values = self._load()

    def _load(self) -> dict:
        try:
            if self.path.exists():
                with self.path.open("r", encoding="utf-8") as f:
                    data = json.load(f)
                if isinstance(data, dict):
                    return data
        except (OSError, ValueError) as e:
            logger.warning(f"Ignoring unreadable preferences file {self.path}: {e}")
        return {}

    def _save(self) -> None:
        try:
            self.path.parent.mkdir(parents=True, exist_ok=True)
            with self.path.open("w", encoding="utf-8") as f:
                json.dump(self._values, f, ensure_ascii=False, indent=2)
        except OSError as e:
            logger.error(f"Failed to save preferences to {self.path}: {e}")

    @property
    def min_magnitude(self) -> float:
        raw = self._values.get(MIN_MAG_KEY)
        try:
            return float(raw) if raw is not None else DEFAULT_MIN_MAGNITUDE
        except (TypeError, ValueError):
            return DEFAULT_MIN_MAGNITUDE

    @min_magnitude.setter
    def min_magnitude(self, value: float) -> None:
        self._values[MIN_MAG_KEY] = str(float(value))
        self._save()

    def get_video_id(self, widget_id: str) -> Optional[str]:
        return self._values.get(video_key(widget_id))

    def set_video_id(self, widget_id: str, video_id: str) -> None:
        self._values[video_key(widget_id)] = video_id
        self._save()
