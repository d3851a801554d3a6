"""Persistent user preferences for the command line interface.

Settings are stored as JSON in the user's home directory so the last used
randomness, length and scale survive between runs.  The location can be
overridden with the ``PIANO_GENERATOR_SETTINGS_FILE`` environment variable or
the CLI's ``--settings-file`` option.
"""

from __future__ import annotations

import json
import logging
import os
from pathlib import Path
from typing import Any, Dict

from .scales import DEFAULT_SCALE

__all__ = [
    "DEFAULT_SETTINGS",
    "DEFAULT_SETTINGS_FILE",
    "load_settings",
    "resolve_settings",
    "save_settings",
]

env_path = os.environ.get("PIANO_GENERATOR_SETTINGS_FILE")
if env_path:
    DEFAULT_SETTINGS_FILE = Path(env_path).expanduser()
else:
    DEFAULT_SETTINGS_FILE = Path.home() / ".piano_generator_settings.json"

# Values used when neither the command line nor the settings file provide one.
DEFAULT_SETTINGS: Dict[str, Any] = {
    "randomness": 1.0,
    "steps": 32,
    "scale": DEFAULT_SCALE,
    "output_dir": ".",
    "soundfont": None,
}


def load_settings(path: Path = DEFAULT_SETTINGS_FILE) -> dict:
    """Load saved user settings from ``path`` if it exists.

    @param path (Path): Location of the settings file.
    @returns dict: Loaded settings or an empty dictionary when unavailable.
    """
    if path.is_file():
        try:
            with open(path, "r", encoding="utf-8") as fh:
                data = json.load(fh)
        except (OSError, ValueError) as exc:
            logging.error("Could not load settings: %s", exc)
            return {}
        if isinstance(data, dict):
            return data
        logging.error("Ignoring settings file %s: expected a JSON object", path)
    return {}


def save_settings(settings: dict, path: Path = DEFAULT_SETTINGS_FILE) -> None:
    """Save user ``settings`` to ``path`` as JSON.

    Failures are logged and otherwise ignored so an unwritable home directory
    never prevents generation.
    """
    try:
        with open(path, "w", encoding="utf-8") as fh:
            json.dump(settings, fh, indent=2)
    except OSError as exc:
        logging.error("Could not save settings: %s", exc)


def resolve_settings(overrides: Dict[str, Any], saved: Dict[str, Any]) -> Dict[str, Any]:
    """Merge defaults, saved settings and explicit ``overrides``.

    ``None`` values in ``overrides`` mean "not given" and do not mask saved
    values. Unknown keys in ``saved`` are dropped.
    """

    merged = dict(DEFAULT_SETTINGS)
    merged.update({k: v for k, v in saved.items() if k in DEFAULT_SETTINGS})
    merged.update({k: v for k, v in overrides.items() if v is not None})
    return merged
