"""Tests for reward tiers and time formatting"""

import pytest

from touch_challenge.tiers import DEFAULT_TIERS, Tier, TierTable, format_duration


def test_default_tier_table():
    tiers = TierTable()
    assert len(tiers) == 9
    assert [tier.time_limit_seconds for tier in tiers] == [10, 20, 30, 40, 50, 60, 120, 180, 300]
    assert tiers.reward_for(0) == "otanjoubi_birthday_present_balloon.png"


def test_last_tier_repeats_past_the_end():
    tiers = TierTable()
    last = DEFAULT_TIERS[-1]
    assert tiers.tier_for(8) == last
    assert tiers.tier_for(9) == last
    assert tiers.threshold_for(1000) == 300


def test_all_cleared_boundary():
    tiers = TierTable([Tier(5, "a.png"), Tier(6, "b.png")])
    assert tiers.is_all_cleared(1) is False
    assert tiers.is_all_cleared(2) is True
    assert tiers.is_all_cleared(3) is True


def test_negative_level_rejected():
    with pytest.raises(ValueError):
        TierTable().tier_for(-1)


def test_empty_table_rejected():
    with pytest.raises(ValueError):
        TierTable([])


@pytest.mark.parametrize(
    "seconds, expected",
    [
        (0, "00:00"),
        (9, "00:09"),
        (65, "01:05"),
        (299.6, "04:59"),
        (-1, "00:00"),
    ],
)
def test_countdown_format(seconds, expected):
    assert format_duration(seconds, for_countdown=True) == expected


@pytest.mark.parametrize(
    "seconds, shorten, expected",
    [
        (10, False, "10 seconds"),
        (10, True, "10sec"),
        (60, False, "1 minute"),
        (60, True, "1min"),
        (120, False, "2 minutes"),
        (300, True, "5min"),
        (90, False, "30 seconds"),
        (3600, False, "1 hour"),
        (7200, False, "2 hours"),
    ],
)
def test_label_format(seconds, shorten, expected):
    assert format_duration(seconds, shorten=shorten) == expected
