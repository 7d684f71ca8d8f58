"""Touch Challenge - a don't-touch-your-face challenge timer."""

__version__ = "0.1.0"

from .body_parts import BodyPartGrid, SegmentationOptions
from .classifier import TouchClassifier, TouchResult
from .clock import ChallengeClock, ClockReading
from .config import AppConfig, ChallengeConfig, get_config, get_config_manager
from .controller import ChallengeController, ChallengeListener, ChallengeState, LoggingListener
from .errors import ChallengeError, ClassificationFailure, InputUnavailable, InvalidStateError, SensorUnavailable
from .filters import MotionGuard, MotionReading, TouchCounter
from .progress import ProgressStore
from .tiers import Tier, TierTable, format_duration

__all__ = [
    "AppConfig",
    "BodyPartGrid",
    "ChallengeClock",
    "ChallengeConfig",
    "ChallengeController",
    "ChallengeError",
    "ChallengeListener",
    "ChallengeState",
    "ClassificationFailure",
    "ClockReading",
    "InputUnavailable",
    "InvalidStateError",
    "LoggingListener",
    "MotionGuard",
    "MotionReading",
    "ProgressStore",
    "SegmentationOptions",
    "SensorUnavailable",
    "Tier",
    "TierTable",
    "TouchClassifier",
    "TouchCounter",
    "TouchResult",
    "format_duration",
    "get_config",
    "get_config_manager",
]
