"""Persisted player progress: level counter and preferences."""

import json
import logging
from pathlib import Path
from typing import Optional

from platformdirs import user_data_dir
from pydantic import BaseModel, Field, ValidationError

from .config import APP_NAME

logger = logging.getLogger(__name__)


class Progress(BaseModel):
    level: int = Field(default=0, ge=0)
    sound_enabled: bool = True
    camera_label: Optional[str] = None


class ProgressStore:
    """JSON-backed store for the level counter and player preferences."""

    def __init__(self, data_dir: Optional[Path] = None) -> None:
        self._data_dir = Path(data_dir) if data_dir else Path(user_data_dir(APP_NAME))
        self._file = self._data_dir / "progress.json"
        self._progress = self._load()

    @property
    def path(self) -> Path:
        return self._file

    def _load(self) -> Progress:
        if not self._file.exists():
            return Progress()
        try:
            with open(self._file) as f:
                return Progress(**json.load(f))
        except (OSError, ValueError, ValidationError) as e:
            logger.warning(f"Progress file {self._file} is unreadable, starting from level 0: {e}")
            return Progress()

    def _save(self) -> None:
        self._data_dir.mkdir(parents=True, exist_ok=True)
        with open(self._file, "w") as f:
            json.dump(self._progress.model_dump(), f, indent=2)

    def get_level(self) -> int:
        return self._progress.level

    def set_level(self, level: int) -> None:
        self._progress = self._progress.model_copy(update={"level": Progress(level=level).level})
        self._save()
        logger.info(f"Level saved: {level}")

    def get_sound_enabled(self) -> bool:
        return self._progress.sound_enabled

    def set_sound_enabled(self, enabled: bool) -> None:
        self._progress = self._progress.model_copy(update={"sound_enabled": bool(enabled)})
        self._save()

    def get_preferred_camera_label(self) -> Optional[str]:
        return self._progress.camera_label

    def set_preferred_camera_label(self, label: Optional[str]) -> None:
        self._progress = self._progress.model_copy(update={"camera_label": label or None})
        self._save()

    def reset_all(self) -> None:
        """Forget level and preferences."""
        self._progress = Progress()
        if self._file.exists():
            self._file.unlink()
        logger.info("Progress reset")
