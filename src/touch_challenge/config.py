"""Configuration management for Touch Challenge."""

import json
import logging
from pathlib import Path
from typing import Any, List, Optional

from platformdirs import user_config_dir
from pydantic import BaseModel, Field, ValidationError

from .body_parts import FACE_LABELS, HAND_LABELS, SegmentationOptions
from .tiers import DEFAULT_TIERS, Tier, TierTable

logger = logging.getLogger(__name__)

APP_NAME = "touch-challenge"


class TierConfig(BaseModel):
    """One reward tier."""

    seconds: int = Field(ge=1)
    reward: str


class ChallengeConfig(BaseModel):
    """Challenge timing and touch detection parameters."""

    segmentation_interval_ms: int = Field(default=300, ge=10, le=5000)
    tick_interval_ms: int = Field(default=1000, ge=10, le=5000)
    min_touch_count: int = Field(default=4, ge=1, le=100)
    shake_threshold: float = Field(default=1.0, gt=0.0)
    motion_buffer_size: int = Field(default=60, ge=1, le=1000)
    face_labels: List[int] = Field(default_factory=lambda: list(FACE_LABELS))
    hand_labels: List[int] = Field(default_factory=lambda: list(HAND_LABELS))
    tiers: List[TierConfig] = Field(
        default_factory=lambda: [TierConfig(seconds=t.time_limit_seconds, reward=t.reward_asset) for t in DEFAULT_TIERS],
        min_length=1,
    )
    failure_asset: str = "virus_hand.png"

    def tier_table(self) -> TierTable:
        return TierTable(Tier(t.seconds, t.reward) for t in self.tiers)


class SegmentationConfig(BaseModel):
    """Segmentation provider settings."""

    flip_horizontal: bool = False
    internal_resolution: float = Field(default=0.5, gt=0.0, le=1.0)
    segmentation_threshold: float = Field(default=0.8, ge=0.1, le=0.99)

    def options(self) -> SegmentationOptions:
        return SegmentationOptions(
            flip_horizontal=self.flip_horizontal,
            internal_resolution=self.internal_resolution,
            segmentation_threshold=self.segmentation_threshold,
        )


class CameraConfig(BaseModel):
    """Camera settings."""

    device_id: int = Field(default=0, ge=0)
    width: int = Field(default=640, ge=160, le=1920)
    height: int = Field(default=320, ge=120, le=1080)


class NotificationConfig(BaseModel):
    """Outcome notification settings."""

    enabled: bool = True
    title: str = "Touch Challenge"
    duration_seconds: int = Field(default=3, ge=1, le=30)


class ServerConfig(BaseModel):
    """WebSocket front-end channel."""

    host: str = "localhost"
    port: int = Field(default=8765, ge=0, le=65535)


class AppConfig(BaseModel):
    """Main configuration."""

    challenge: ChallengeConfig = Field(default_factory=ChallengeConfig)
    segmentation: SegmentationConfig = Field(default_factory=SegmentationConfig)
    camera: CameraConfig = Field(default_factory=CameraConfig)
    notifications: NotificationConfig = Field(default_factory=NotificationConfig)
    server: ServerConfig = Field(default_factory=ServerConfig)


class ConfigManager:
    """Manages application configuration."""

    def __init__(self, config_dir: Optional[Path] = None) -> None:
        self._config_dir = Path(config_dir) if config_dir else Path(user_config_dir(APP_NAME))
        self._config_file = self._config_dir / "settings.json"
        self._config: Optional[AppConfig] = None

    @property
    def config_file(self) -> Path:
        return self._config_file

    def load_config(self) -> AppConfig:
        """Load configuration from file or create default."""
        if self._config:
            return self._config

        if self._config_file.exists():
            try:
                with open(self._config_file) as f:
                    self._config = AppConfig(**json.load(f))
            except (OSError, ValueError, ValidationError) as e:
                logger.warning(f"Ignoring unreadable config {self._config_file}: {e}")
                self._config = AppConfig()
        else:
            self._config = AppConfig()

        return self._config

    def save_config(self, config: Optional[AppConfig] = None) -> None:
        """Save configuration to file."""
        if not config:
            config = self._config
        if not config:
            return

        self._config_dir.mkdir(parents=True, exist_ok=True)
        with open(self._config_file, "w") as f:
            json.dump(config.model_dump(), f, indent=2)
        self._config = config

    def update_config(self, **kwargs: Any) -> AppConfig:
        """Update specific configuration values."""
        config = self.load_config()
        config_dict = config.model_dump()

        for key, value in kwargs.items():
            if key in config_dict and isinstance(value, dict):
                config_dict[key].update(value)
            else:
                config_dict[key] = value

        updated_config = AppConfig(**config_dict)
        self.save_config(updated_config)
        return updated_config


_config_manager: Optional[ConfigManager] = None


def get_config_manager() -> ConfigManager:
    """Get configuration manager instance."""
    global _config_manager
    if _config_manager is None:
        _config_manager = ConfigManager()
    return _config_manager


def get_config() -> AppConfig:
    """Get current configuration."""
    return get_config_manager().load_config()
