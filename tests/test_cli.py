"""Tests for the command line interface"""

import subprocess
import sys

import pytest

from touch_challenge import main as cli
from touch_challenge.body_parts import MockSegmenter
from touch_challenge.config import AppConfig, ChallengeConfig, TierConfig
from touch_challenge.progress import ProgressStore


@pytest.fixture
def store(tmp_path, monkeypatch):
    store = ProgressStore(tmp_path)
    monkeypatch.setattr(cli, "ProgressStore", lambda: store)
    monkeypatch.setattr(cli, "get_config", lambda: AppConfig())
    return store


def test_status(store, capsys):
    store.set_level(2)
    assert cli.main(["status"]) == 0
    out = capsys.readouterr().out
    assert "Level: 2" in out
    assert "Challenge time: 30 seconds" in out


def test_status_all_cleared(store, capsys):
    store.set_level(9)
    cli.main(["status"])
    out = capsys.readouterr().out
    assert "Challenge time: 5 minutes" in out
    assert "All tiers cleared!" in out


def test_tiers_mark_unlocked_rewards(store, capsys):
    store.set_level(1)
    assert cli.main(["tiers"]) == 0
    lines = capsys.readouterr().out.splitlines()
    assert len(lines) == 9
    assert lines[0] == "✓ Lv.1 (10sec) otanjoubi_birthday_present_balloon.png"
    assert lines[1] == "? Lv.2 (20sec)"
    assert lines[6] == "? Lv.7 (2min)"


def test_sound_and_camera_preferences(store, capsys):
    assert cli.main(["sound", "off"]) == 0
    assert cli.main(["set-camera", "Camera 1"]) == 0
    assert store.get_sound_enabled() is False
    assert store.get_preferred_camera_label() == "Camera 1"


def test_reset_requires_confirmation(store, monkeypatch, capsys):
    store.set_level(4)
    monkeypatch.setattr("builtins.input", lambda prompt: "n")
    assert cli.main(["reset"]) == 1
    assert store.get_level() == 4

    assert cli.main(["reset", "--yes"]) == 0
    assert store.get_level() == 0


def test_no_command_prints_help(store, capsys):
    assert cli.main([]) == 0
    assert "touch-challenge" in capsys.readouterr().out


def test_mock_camera_uses_mock_segmenter(store):
    args = cli.build_parser().parse_args(["play", "--mock-camera", "--no-notify"])
    controller = cli.build_controller(args, AppConfig(), store)

    assert isinstance(controller.segmenter, MockSegmenter)
    assert controller.frame_source.use_mock is True


@pytest.mark.integration
def test_play_with_mock_camera_clears_level(store, monkeypatch, capsys):
    challenge = ChallengeConfig(
        segmentation_interval_ms=20,
        tick_interval_ms=20,
        tiers=[TierConfig(seconds=1, reward="first.png"), TierConfig(seconds=2, reward="second.png")],
    )
    monkeypatch.setattr(cli, "get_config", lambda: AppConfig(challenge=challenge))

    assert cli.main(["play", "--mock-camera", "--no-notify"]) == 0
    out = capsys.readouterr().out
    assert "Cleared!" in out
    assert "Reward: first.png" in out
    assert store.get_level() == 1


def test_module_help_command():
    """Test that the command line can be invoked as a module"""
    result = subprocess.run([sys.executable, "-m", "touch_challenge", "--help"], capture_output=True, text=True, timeout=30)

    assert result.returncode == 0, f"Command failed: {result.stderr}"
    assert "Touch Challenge" in result.stdout
    assert "serve" in result.stdout
