"""Command line interface for Piano Generator.

Modification summary
--------------------
* Options omitted on the command line fall back to the JSON settings file and
  then to built-in defaults; ``--save-settings`` stores the effective values.
* Playback failures are logged before falling back to the system's default
  MIDI player so users still hear results while developers retain the
  traceback.
* Output directories are created on demand and write failures exit with a
  non-zero status instead of a traceback.

Example
-------
Running ``python -m piano_generator --randomness 1.2 --steps 32 --seed 7 \
    --output-dir out --svg out/roll.svg`` writes
``out/ai-piano-music-<epoch-ms>.mid`` and a piano-roll picture of the same
melody.  ``--seed`` seeds the global random source so repeated runs produce
the same notes.
"""

from __future__ import annotations

import argparse
import json
import logging
import math
import random
import sys
from pathlib import Path
from typing import List, Optional

from .pianoroll import write_svg
from .producers import default_producers
from .scales import SCALES, get_scale
from .session import GeneratorSession
from .settings import DEFAULT_SETTINGS_FILE, load_settings, resolve_settings, save_settings

__all__ = ["run_cli", "main"]


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="piano-generator",
        description="Generate a short piano melody and save it as a MIDI file.",
    )
    parser.add_argument("--list-scales", action="store_true", help="List all supported scales and exit")
    parser.add_argument("--randomness", type=float, help="Randomness factor, clamped to 0.1-2.0 (default: 1.0).")
    parser.add_argument("--steps", type=int, help="Number of notes generated after the seed motif (default: 32).")
    parser.add_argument("--scale", type=str, help="Scale used for the random walk (default: pentatonic).")
    parser.add_argument("--seed", type=int, help="Random seed for reproducible output")
    parser.add_argument("--output-dir", type=str, help="Directory receiving the MIDI file (default: current directory).")
    parser.add_argument("--output", type=str, help="MIDI file name (default: ai-piano-music-<epoch-ms>.mid).")
    parser.add_argument("--svg", type=str, help="Also write a piano-roll SVG to this path")
    parser.add_argument("--json", type=str, help="Also write the note sequence as JSON to this path ('-' for stdout)")
    parser.add_argument("--soundfont", type=str, help="Path to a SoundFont (.sf2) file used when previewing with --play")
    parser.add_argument("--play", action="store_true", help="Play the melody after it is created")
    parser.add_argument("--settings-file", type=str, help="Path to the JSON settings file")
    parser.add_argument("--save-settings", action="store_true", help="Remember the effective options in the settings file")
    return parser


def run_cli(argv: Optional[List[str]] = None) -> None:
    """Parse arguments, generate a melody and write the requested outputs.

    Invalid options and failed writes are logged and terminate the process
    with exit status ``1``.
    """

    argv = sys.argv[1:] if argv is None else argv
    args = _build_parser().parse_args(argv)

    if args.list_scales:
        print("\n".join(sorted(SCALES.keys())))
        return

    settings_path = Path(args.settings_file).expanduser() if args.settings_file else DEFAULT_SETTINGS_FILE
    options = resolve_settings(
        {
            "randomness": args.randomness,
            "steps": args.steps,
            "scale": args.scale,
            "output_dir": args.output_dir,
            "soundfont": args.soundfont,
        },
        load_settings(settings_path),
    )

    try:
        randomness = float(options["randomness"])
        steps = int(options["steps"])
    except (TypeError, ValueError):
        logging.error("Randomness must be a number and steps an integer.")
        sys.exit(1)
    if not math.isfinite(randomness):
        logging.error("Randomness must be a finite number.")
        sys.exit(1)
    if steps < 0:
        logging.error("Steps must be a non-negative integer.")
        sys.exit(1)
    try:
        get_scale(str(options["scale"]))
    except ValueError:
        logging.error(f"Unknown scale: {options['scale']}")
        sys.exit(1)

    if args.seed is not None:
        random.seed(args.seed)

    session = GeneratorSession(default_producers(scale=options["scale"]))
    status = session.generate(randomness, steps)
    if not status.ok:
        logging.error(status.message)
        sys.exit(1)

    status = session.export_midi(options["output_dir"], args.output)
    if not status.ok:
        logging.error(status.message)
        sys.exit(1)
    logging.info(status.message)

    if args.svg:
        try:
            path = write_svg(session.sequence, args.svg)
        except OSError as exc:
            logging.error("Could not write piano roll: %s", exc)
            sys.exit(1)
        logging.info("Piano roll saved to %s", path)

    if args.json:
        payload = json.dumps(session.sequence.to_dict(), indent=2)
        if args.json == "-":
            print(payload)
        else:
            try:
                Path(args.json).expanduser().write_text(payload, encoding="utf-8")
            except OSError as exc:
                logging.error("Could not write note sequence: %s", exc)
                sys.exit(1)

    if args.save_settings:
        save_settings(
            {
                "randomness": randomness,
                "steps": steps,
                "scale": options["scale"],
                "output_dir": options["output_dir"],
                "soundfont": options["soundfont"],
            },
            settings_path,
        )

    if args.play:
        from . import playback

        try:
            playback.play_sequence(session.sequence, soundfont=options["soundfont"])
        except playback.MidiPlaybackError:
            logging.exception(
                "FluidSynth playback failed; using system default player as fallback.",
            )
            try:
                playback.open_default_player(str(session.last_export))
            except (playback.MidiPlaybackError, OSError) as exc:
                logging.error("Could not open MIDI file: %s", exc)
    logging.info("Melody generation complete.")


def main(argv: Optional[List[str]] = None) -> None:
    """Console entry point configuring logging before running the CLI."""

    logging.basicConfig(level=logging.INFO, format="%(levelname)s: %(message)s")
    run_cli(argv)
