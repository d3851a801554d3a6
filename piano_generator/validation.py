"""Validation and normalization of note sequences before export.

:func:`validate_sequence` checks the structural rules the MIDI encoder relies
on and, when they hold, returns a normalized *copy* with default metadata
filled in.  The caller's sequence is never modified, so a melody that is
currently being played or drawn cannot change underneath its consumer.

Rules are evaluated in order and the first violation decides the message:

1. the sequence has at least one note;
2. the sequence is not quantized;
3. every note has numeric ``pitch``, ``start_time`` and ``end_time``;
4. every note starts before it ends.

Example
-------
>>> from piano_generator.sequence import Note, NoteSequence
>>> result = validate_sequence(NoteSequence(notes=[Note(60, 0.0, 0.5)]))
>>> result.valid, result.sequence.notes[0].velocity
(True, 80)
"""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from numbers import Real
from typing import Optional

from .sequence import (
    DEFAULT_QPM,
    DEFAULT_TICKS_PER_QUARTER,
    DEFAULT_VELOCITY,
    NoteSequence,
    Tempo,
    TimeSignature,
)

__all__ = [
    "NO_NOTES",
    "QUANTIZED",
    "INVALID_PROPERTIES",
    "INVALID_TIMING",
    "SequenceValidationError",
    "ValidationResult",
    "fill_total_time",
    "require_valid",
    "validate_sequence",
]

NO_NOTES = "No notes in sequence"
QUANTIZED = "Cannot export quantized sequences to MIDI - use unquantized sequences"
INVALID_PROPERTIES = (
    "Invalid note properties - unquantized notes require pitch, startTime, endTime"
)
INVALID_TIMING = "Invalid note timing - startTime must be less than endTime"


class SequenceValidationError(ValueError):
    """Raised by :func:`require_valid` when a sequence breaks a rule."""


@dataclass
class ValidationResult:
    """Outcome of :func:`validate_sequence`.

    ``sequence`` holds the normalized copy when ``valid`` is ``True`` and is
    ``None`` otherwise.
    """

    valid: bool
    error: Optional[str] = None
    sequence: Optional[NoteSequence] = None


def _is_number(value) -> bool:
    # ``bool`` subclasses ``int`` but ``True`` is not a pitch.
    if isinstance(value, bool) or not isinstance(value, Real):
        return False
    return math.isfinite(value)


def _check(seq: NoteSequence) -> Optional[str]:
    """Return the first violated rule message or ``None``."""

    if not seq.notes:
        return NO_NOTES
    if seq.quantization_info is not None:
        return QUANTIZED
    for note in seq.notes:
        if not (
            _is_number(note.pitch)
            and _is_number(note.start_time)
            and _is_number(note.end_time)
        ):
            return INVALID_PROPERTIES
    for note in seq.notes:
        if note.start_time >= note.end_time:
            return INVALID_TIMING
    return None


def _normalize(seq: NoteSequence) -> None:
    """Fill missing export metadata on ``seq`` in place."""

    if not seq.ticks_per_quarter:
        seq.ticks_per_quarter = DEFAULT_TICKS_PER_QUARTER
    if not seq.tempos:
        seq.tempos = [Tempo(time=0.0, qpm=DEFAULT_QPM)]
    if not seq.time_signatures:
        seq.time_signatures = [TimeSignature(time=0.0, numerator=4, denominator=4)]
    for note in seq.notes:
        if not note.velocity:
            note.velocity = DEFAULT_VELOCITY


def validate_sequence(seq: NoteSequence) -> ValidationResult:
    """Validate ``seq`` and return a normalized copy on success.

    Parameters
    ----------
    seq:
        Candidate sequence from the generator or an external producer.

    Returns
    -------
    ValidationResult
        ``valid`` with the normalized copy, or the message of the first
        violated rule.
    """

    error = _check(seq)
    if error is not None:
        logging.error("Sequence validation failed: %s", error)
        return ValidationResult(valid=False, error=error)

    normalized = seq.copy()
    _normalize(normalized)
    return ValidationResult(valid=True, sequence=normalized)


def require_valid(seq: NoteSequence) -> NoteSequence:
    """Return the normalized copy of ``seq`` or raise.

    Raises
    ------
    SequenceValidationError
        Carrying the violated rule message.
    """

    result = validate_sequence(seq)
    if not result.valid:
        raise SequenceValidationError(result.error)
    return result.sequence


def fill_total_time(seq: NoteSequence) -> NoteSequence:
    """Set ``total_time`` from the notes when a producer left it unset.

    Returns ``seq`` itself; the sequence is expected to be freshly produced
    and not yet shared.
    """

    if not seq.total_time:
        # Non-numeric end times are skipped here and reported by the validator.
        ends = [n.end_time for n in seq.notes if _is_number(n.end_time)]
        if ends:
            seq.total_time = max(ends)
    return seq
