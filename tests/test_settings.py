"""Tests for loading, saving and merging user settings."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from piano_generator import settings  # noqa: E402  # isort:skip


def test_round_trip(tmp_path):
    path = tmp_path / "prefs.json"
    settings.save_settings({"steps": 12, "scale": "major"}, path)

    assert settings.load_settings(path) == {"steps": 12, "scale": "major"}


def test_missing_file_returns_empty(tmp_path):
    assert settings.load_settings(tmp_path / "absent.json") == {}


def test_corrupt_file_logged(tmp_path, caplog):
    path = tmp_path / "prefs.json"
    path.write_text("{not json", encoding="utf-8")

    with caplog.at_level(logging.ERROR):
        assert settings.load_settings(path) == {}
    assert "Could not load settings" in caplog.text


def test_non_object_ignored(tmp_path):
    path = tmp_path / "prefs.json"
    path.write_text(json.dumps([1, 2]), encoding="utf-8")

    assert settings.load_settings(path) == {}


def test_save_failure_logged(tmp_path, caplog):
    with caplog.at_level(logging.ERROR):
        settings.save_settings({"steps": 1}, tmp_path / "missing" / "prefs.json")

    assert "Could not save settings" in caplog.text


def test_resolve_precedence():
    """Explicit values beat saved ones, which beat defaults."""

    merged = settings.resolve_settings(
        {"steps": 8, "randomness": None},
        {"steps": 3, "randomness": 1.7, "unknown": True},
    )

    assert merged["steps"] == 8
    assert merged["randomness"] == 1.7
    assert merged["scale"] == "pentatonic"
    assert "unknown" not in merged
