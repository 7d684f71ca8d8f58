"""Reward tiers: time limit and reward asset per challenge level."""

from dataclasses import dataclass
from typing import Iterable, List


@dataclass(frozen=True)
class Tier:
    time_limit_seconds: int
    reward_asset: str


DEFAULT_TIERS = [
    Tier(10, "otanjoubi_birthday_present_balloon.png"),
    Tier(20, "sweets_cake_pavlova.png"),
    Tier(30, "game_coin.png"),
    Tier(40, "coin_medal_gold.png"),
    Tier(50, "yusyou_cup_bronze.png"),
    Tier(60, "yusyou_cup_silver.png"),
    Tier(120, "yusyou_cup_gold.png"),
    Tier(180, "kaizoku_takara.png"),
    Tier(300, "royal_king_gyokuza.png"),
]


class TierTable:
    """Ordered tiers. Levels past the end keep repeating the hardest tier."""

    def __init__(self, tiers: Iterable[Tier] = DEFAULT_TIERS):
        self._tiers: List[Tier] = list(tiers)
        if not self._tiers:
            raise ValueError("At least one tier is required")

    def __len__(self) -> int:
        return len(self._tiers)

    def __iter__(self):
        return iter(self._tiers)

    def tier_for(self, level: int) -> Tier:
        if level < 0:
            raise ValueError(f"Level must be non-negative, got {level}")
        return self._tiers[min(level, len(self._tiers) - 1)]

    def threshold_for(self, level: int) -> int:
        return self.tier_for(level).time_limit_seconds

    def reward_for(self, level: int) -> str:
        return self.tier_for(level).reward_asset

    def is_all_cleared(self, level: int) -> bool:
        return level >= len(self._tiers)


def format_duration(seconds: float, for_countdown: bool = False, shorten: bool = False) -> str:
    """Format seconds as a countdown ("mm:ss") or a human label ("2 minutes", "30sec")."""
    seconds = max(0.0, seconds)
    h = int(seconds / 3600)
    m = int((seconds / 60) % 60)
    s = int(seconds % 60)

    if for_countdown:
        return f"{m:02d}:{s:02d}"

    if s != 0:
        return f"{s}{'sec' if shorten else ' seconds'}"
    elif m == 1:
        return f"{m}{'min' if shorten else ' minute'}"
    elif m != 0:
        return f"{m}{'min' if shorten else ' minutes'}"
    elif h == 1:
        return f"{h} hour"
    else:
        return f"{h} hours"
