"""Audio playback of note sequences using FluidSynth.

Sequences are encoded to a temporary MIDI file and handed to the
``fluidsynth`` library, which requires a SoundFont (SF2) file to synthesize
audio.  :class:`SequencePlayer` keeps at most one playback session alive;
starting a second one while the first is running raises
:class:`MidiPlaybackError`.

Example usage
-------------
>>> from piano_generator import generate
>>> from piano_generator.playback import play_sequence
>>> play_sequence(generate(1.0, 16))  # doctest: +SKIP

The SoundFont path can be supplied via the ``soundfont`` parameter or the
``SOUND_FONT`` environment variable.  When neither is given a platform default
is attempted.  When FluidSynth is unavailable :func:`open_default_player`
hands a MIDI file to the operating system's player instead; the
``PIANO_PLAYER`` environment variable overrides the command it runs.
"""

# Revision note
# -------------
# ``SequencePlayer`` arms a timer for the length of each melody and releases
# the synthesizer when it fires, so ``is_playing`` turns false once the last
# note has sounded instead of waiting for an explicit ``stop``.
#
# The system player fallback tries a list of commands in order. Linux desktops
# without ``xdg-open --wait`` support fall through to plain ``xdg-open``.

from __future__ import annotations

import logging
import os
import shlex
import subprocess
import sys
import threading
import time
from tempfile import NamedTemporaryFile
from typing import List, Optional

from .midi_io import MidiExportError, encode_midi
from .sequence import NoteSequence
from .validation import SequenceValidationError

__all__ = [
    "MidiPlaybackError",
    "SequencePlayer",
    "open_default_player",
    "play_sequence",
]


logger = logging.getLogger(__name__)

# Extra time allowed for the synthesizer's release tail after the last note.
_RELEASE_TAIL = 0.5

# General MIDI banks commonly installed by each platform's packages, keyed by
# ``sys.platform`` prefix and searched in order.
_PLATFORM_SOUNDFONTS = (
    ("win", [r"C:\Windows\System32\drivers\gm.dls"]),
    ("darwin", ["/Library/Audio/Sounds/Banks/FluidR3_GM.sf2"]),
    (
        "",
        [
            "/usr/share/sounds/sf2/FluidR3_GM.sf2",
            "/usr/share/sounds/sf2/TimGM6mb.sf2",
            "/usr/share/soundfonts/default.sf2",
        ],
    ),
)


class MidiPlaybackError(RuntimeError):
    """Raised when MIDI playback fails."""


def _resolve_soundfont(soundfont: Optional[str]) -> str:
    """Return the SoundFont file used for synthesis.

    An explicit ``soundfont`` wins, then ``SOUND_FONT``; either one must name
    an existing file. Without both the platform's usual install locations are
    searched.

    Raises
    ------
    MidiPlaybackError
        If no SoundFont file exists.
    """

    requested = soundfont or os.environ.get("SOUND_FONT")
    if requested:
        candidates = [requested]
    else:
        candidates = next(
            paths for prefix, paths in _PLATFORM_SOUNDFONTS if sys.platform.startswith(prefix)
        )

    for candidate in candidates:
        path = os.path.expanduser(os.path.expandvars(candidate))
        if os.path.isfile(path):
            return path

    raise MidiPlaybackError(
        "SoundFont not found. Provide a valid path via the argument or "
        "SOUND_FONT environment variable, or install a General MIDI soundfont."
    )


def _import_fluidsynth():
    """Return the ``fluidsynth`` module or raise :class:`MidiPlaybackError`."""

    try:
        import fluidsynth  # type: ignore
    except FileNotFoundError as exc:
        # The Python binding is present but the C library is not.
        raise MidiPlaybackError(
            "fluidsynth not installed. Install the FluidSynth library and "
            "pyFluidSynth package."
        ) from exc
    except Exception as exc:
        raise MidiPlaybackError("PyFluidSynth is required for playback") from exc
    return fluidsynth


def _remove_quietly(path: Optional[str]) -> None:
    if not path:
        return
    try:
        os.remove(path)
    except OSError as exc:
        logger.warning("Failed to delete temporary file %s: %s", path, exc)


def _release(synth, path: Optional[str]) -> None:
    """Stop ``synth``, free it and delete its MIDI file."""

    try:
        synth.play_midi_stop()
    except Exception as exc:  # noqa: BLE001 - cleanup must still run
        logger.warning("FluidSynth did not stop cleanly: %s", exc)
    finally:
        synth.delete()
        _remove_quietly(path)


class SequencePlayer:
    """Play one :class:`NoteSequence` at a time through FluidSynth.

    Playback ends either through :meth:`stop` or when the melody has run its
    course; in both cases the synthesizer and the temporary MIDI file are
    released and :attr:`is_playing` becomes ``False``.
    """

    def __init__(self, soundfont: Optional[str] = None) -> None:
        self.soundfont = soundfont
        self._synth = None
        self._path: Optional[str] = None
        self._timer: Optional[threading.Timer] = None
        self._lock = threading.Lock()

    @property
    def is_playing(self) -> bool:
        return self._synth is not None

    def start(self, sequence: NoteSequence) -> None:
        """Begin playing ``sequence`` without blocking.

        Raises
        ------
        MidiPlaybackError
            If a session is already active, the sequence cannot be encoded,
            or FluidSynth fails to start.
        """

        with self._lock:
            if self._synth is not None:
                raise MidiPlaybackError("Playback already in progress")

            try:
                data = encode_midi(sequence)
            except (SequenceValidationError, MidiExportError) as exc:
                raise MidiPlaybackError(f"Cannot play sequence: {exc}") from exc
            # The MIDI file ends with the last note-off.
            duration = sequence.max_end_time()

            fluidsynth = _import_fluidsynth()
            sf_path = _resolve_soundfont(self.soundfont)

            with NamedTemporaryFile(suffix=".mid", delete=False) as tmp:
                tmp.write(data)
                path = tmp.name

            try:
                synth = fluidsynth.Synth()
            except FileNotFoundError as exc:
                _remove_quietly(path)
                raise MidiPlaybackError(
                    "fluidsynth not installed. Install the FluidSynth library and "
                    "pyFluidSynth package."
                ) from exc

            try:
                synth.start()
                sfid = synth.sfload(sf_path)
                synth.program_select(0, sfid, 0, 0)
                synth.play_midi_file(path)
            except Exception as exc:
                synth.delete()
                _remove_quietly(path)
                raise MidiPlaybackError(f"Playback failed: {exc}") from exc

            timer = threading.Timer(duration + _RELEASE_TAIL, self._finish, args=(synth,))
            timer.daemon = True
            self._synth = synth
            self._path = path
            self._timer = timer
            timer.start()
            logger.info("Playback started (%.2fs)", duration)

    def _finish(self, synth) -> None:
        """Release ``synth`` once its melody is over, unless already stopped."""

        with self._lock:
            # A late timer from an earlier session must not end the current one.
            if self._synth is not synth:
                return
            path = self._path
            self._synth = self._path = self._timer = None
        _release(synth, path)
        logger.info("Playback finished")

    def stop(self) -> None:
        """Stop the active session; does nothing when idle."""

        with self._lock:
            synth, path, timer = self._synth, self._path, self._timer
            self._synth = self._path = self._timer = None
        if timer is not None:
            timer.cancel()
        if synth is None:
            return
        _release(synth, path)
        logger.info("Playback stopped")


def play_sequence(sequence: NoteSequence, soundfont: Optional[str] = None) -> None:
    """Play ``sequence`` and block until it has finished."""

    player = SequencePlayer(soundfont)
    player.start(sequence)
    try:
        time.sleep(sequence.max_end_time() + _RELEASE_TAIL)
    finally:
        player.stop()


def _player_commands(path: str) -> List[List[str]]:
    """Return the commands tried in order to open ``path``.

    ``PIANO_PLAYER`` is taken as a complete command line on every platform and
    ``path`` is appended to it. On macOS an application can be named with
    ``PIANO_PLAYER="open -W -a 'GarageBand'"``.
    """

    custom = os.environ.get("PIANO_PLAYER")
    if custom:
        return [shlex.split(custom) + [path]]
    if sys.platform.startswith("win"):
        return [["cmd", "/c", "start", "/wait", "", path]]
    if sys.platform == "darwin":
        return [["open", "-W", path]]
    return [["xdg-open", "--wait", path], ["xdg-open", path]]


def open_default_player(path: str, *, delete_after: bool = False) -> None:
    """Open ``path`` with the system's MIDI player and wait for it to exit.

    Each command from :func:`_player_commands` is tried until one succeeds.
    ``path`` is removed afterwards when ``delete_after`` is ``True``.

    Raises
    ------
    FileNotFoundError
        If ``path`` does not exist.
    MidiPlaybackError
        If every command fails or cannot be launched.
    """

    if not os.path.isfile(path):
        raise FileNotFoundError(f"MIDI file not found: {path}")

    error = "Player command failed"
    for cmd in _player_commands(path):
        try:
            proc = subprocess.run(cmd, check=False, capture_output=True, text=True)
        except OSError as exc:
            logger.warning("Could not launch %s: %s", cmd[0], exc)
            error = f"Could not launch {cmd[0]}: {exc}"
            continue
        if proc.returncode == 0:
            break
        logger.warning("Player command failed: %s", proc.args)
        error = proc.stderr.strip() or error
    else:
        raise MidiPlaybackError(error)

    if delete_after:
        _remove_quietly(path)
