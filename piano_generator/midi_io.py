"""Utilities for turning note sequences into Standard MIDI Files.

Modification summary
--------------------
* ``write_midi_file`` creates the destination directory automatically so
  callers can pass a folder that does not exist yet.
* Seconds are converted to ticks through the sequence's tempo map instead of
  assuming a single tempo, so multi-tempo sequences from external producers
  keep their timing.
* Imports from ``mido`` are deferred inside :func:`sequence_to_midi` so the
  module can load even when the optional dependency is missing.
* Every ``mido`` or filesystem failure is rewrapped in ``MidiExportError`` so
  interfaces only need to handle one exception type.
* Notes shorter than one tick are stretched to a single tick, and arithmetic
  errors such as a zero tempo are reported as ``MidiExportError`` too.

The encoder accepts any sequence that passes
:func:`piano_generator.validation.require_valid`; sequences are validated (and
normalized on a private copy) before a single event is emitted.

Example
-------
>>> from piano_generator import generate
>>> from piano_generator.midi_io import write_midi_file
>>> write_midi_file(generate(1.0, 16), "out")  # doctest: +SKIP
PosixPath('out/ai-piano-music-1700000000000.mid')
"""

from __future__ import annotations

import io
import logging
import time
from bisect import bisect_right
from pathlib import Path
from typing import TYPE_CHECKING, List, Optional, Tuple, Union

from .sequence import NoteSequence, Tempo
from .validation import require_valid

if TYPE_CHECKING:
    # ``MidiFile`` is only needed for type checking to avoid requiring the
    # optional dependency at import time.
    from mido import MidiFile

__all__ = [
    "FILENAME_PREFIX",
    "MidiExportError",
    "encode_midi",
    "midi_filename",
    "seconds_to_ticks",
    "sequence_to_midi",
    "write_midi_file",
]

FILENAME_PREFIX = "ai-piano-music"

# Acoustic grand piano on the first channel.
PIANO_PROGRAM = 0
PIANO_CHANNEL = 0


class MidiExportError(RuntimeError):
    """Raised when a validated sequence cannot be encoded or written."""


def _tempo_map(tempos: List[Tempo], ticks_per_quarter: int) -> List[Tuple[float, int, float]]:
    """Return ``(seconds, tick, qpm)`` anchors for each tempo change."""

    ordered = sorted(tempos, key=lambda t: t.time)
    anchors: List[Tuple[float, int, float]] = []
    seconds, ticks, qpm = 0.0, 0.0, ordered[0].qpm
    for tempo in ordered:
        ticks += (tempo.time - seconds) * qpm / 60.0 * ticks_per_quarter
        seconds, qpm = tempo.time, tempo.qpm
        anchors.append((seconds, int(round(ticks)), qpm))
    return anchors


def seconds_to_ticks(
    seconds: float, tempos: List[Tempo], ticks_per_quarter: int
) -> int:
    """Convert an absolute time in seconds to an absolute MIDI tick.

    Parameters
    ----------
    seconds:
        Time position to convert.
    tempos:
        Non-empty tempo list; the first entry also governs times before it.
    ticks_per_quarter:
        File resolution.
    """

    anchors = _tempo_map(tempos, ticks_per_quarter)
    idx = max(0, bisect_right([a[0] for a in anchors], seconds) - 1)
    anchor_seconds, anchor_ticks, qpm = anchors[idx]
    return anchor_ticks + int(round((seconds - anchor_seconds) * qpm / 60.0 * ticks_per_quarter))


def sequence_to_midi(sequence: NoteSequence) -> "MidiFile":
    """Return an in-memory type-1 ``MidiFile`` for ``sequence``.

    The first track carries tempo and meter events; the second carries the
    melody on the piano program.  Note-offs sort before note-ons sharing a tick
    so repeated pitches retrigger cleanly.

    Raises
    ------
    SequenceValidationError
        If ``sequence`` breaks a validation rule.
    MidiExportError
        If ``mido`` rejects the events, e.g. a pitch outside ``0-127`` or a
        tempo of zero quarter notes per minute.
    ImportError
        If ``mido`` is not installed.
    """

    try:
        import mido
        from mido import Message, MetaMessage, MidiFile, MidiTrack
    except ModuleNotFoundError as exc:
        raise ImportError(
            "mido is required to create MIDI files; install it with 'pip install mido'"
        ) from exc

    seq = require_valid(sequence)
    tpq = int(seq.ticks_per_quarter)

    def to_ticks(value: float) -> int:
        return seconds_to_ticks(value, seq.tempos, tpq)

    try:
        mid = MidiFile(type=1, ticks_per_beat=tpq)
        conductor = MidiTrack()
        piano = MidiTrack()
        mid.tracks.extend([conductor, piano])

        # Time signatures precede tempo changes on the same tick.
        meta_events: List[Tuple[int, int, "MetaMessage"]] = []
        for ts in seq.time_signatures:
            meta_events.append(
                (
                    to_ticks(ts.time),
                    0,
                    MetaMessage(
                        "time_signature",
                        numerator=int(ts.numerator),
                        denominator=int(ts.denominator),
                    ),
                )
            )
        for tempo in seq.tempos:
            meta_events.append(
                (to_ticks(tempo.time), 1, MetaMessage("set_tempo", tempo=mido.bpm2tempo(tempo.qpm)))
            )
        meta_events.sort(key=lambda e: (e[0], e[1]))
        last = 0
        for tick, _, msg in meta_events:
            msg.time = tick - last
            conductor.append(msg)
            last = tick

        piano.append(Message("program_change", program=PIANO_PROGRAM, channel=PIANO_CHANNEL, time=0))
        note_events: List[Tuple[int, int, "Message"]] = []
        for note in seq.notes:
            pitch = int(note.pitch)
            velocity = int(note.velocity)
            start_tick = to_ticks(note.start_time)
            # Notes shorter than one tick still sound for one tick so the
            # note-off never lands before its own note-on.
            end_tick = max(to_ticks(note.end_time), start_tick + 1)
            note_events.append(
                (start_tick, 1, Message("note_on", note=pitch, velocity=velocity, channel=PIANO_CHANNEL))
            )
            note_events.append(
                (end_tick, 0, Message("note_off", note=pitch, velocity=0, channel=PIANO_CHANNEL))
            )
        note_events.sort(key=lambda e: (e[0], e[1]))
        last = 0
        for tick, _, msg in note_events:
            msg.time = tick - last
            piano.append(msg)
            last = tick
    except (TypeError, ValueError, ArithmeticError) as exc:
        raise MidiExportError(f"Could not encode sequence: {exc}") from exc
    return mid


def encode_midi(sequence: NoteSequence) -> bytes:
    """Return the Standard MIDI File bytes for ``sequence``."""

    mid = sequence_to_midi(sequence)
    buffer = io.BytesIO()
    try:
        mid.save(file=buffer)
    except (TypeError, ValueError, ArithmeticError) as exc:
        raise MidiExportError(f"Could not encode sequence: {exc}") from exc
    return buffer.getvalue()


def midi_filename(timestamp_ms: Optional[int] = None) -> str:
    """Return the download name ``ai-piano-music-<epoch-ms>.mid``."""

    if timestamp_ms is None:
        timestamp_ms = int(time.time() * 1000)
    return f"{FILENAME_PREFIX}-{timestamp_ms}.mid"


def write_midi_file(
    sequence: NoteSequence,
    directory: Union[str, Path] = ".",
    filename: Optional[str] = None,
) -> Path:
    """Encode ``sequence`` and write it below ``directory``.

    @param sequence (NoteSequence): Melody to export.
    @param directory (str|Path): Destination folder, created when missing.
    @param filename (str|None): Optional file name. Defaults to
        :func:`midi_filename`.
    @returns Path: Location of the written file.
    """

    data = encode_midi(sequence)
    target = Path(directory).expanduser() / (filename or midi_filename())
    try:
        # Ensure the destination directory exists so the write succeeds even
        # when the caller specifies a path in a new folder.
        target.parent.mkdir(parents=True, exist_ok=True)
        target.write_bytes(data)
    except OSError as exc:
        raise MidiExportError(f"Could not write MIDI file: {exc}") from exc
    logging.info("MIDI file saved to %s", target)
    return target
