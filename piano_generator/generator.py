"""Algorithmic melody generation via a weighted random walk over a scale.

Underlying Algorithm
--------------------
Every melody opens with the same four-note motif (C4-E4-G4-C5, half a second
each).  The continuation then walks over the *indices* of the active scale.
For each new note the generator looks up the previous pitch in the scale and
draws one of three moves::

    if rand() < 0.3 / R:        stay on the same degree
    elif rand() < 0.5:          step 1..ceil(2R) degrees up or down (clamped)
    else:                       jump to any degree of the scale

``R`` is the randomness factor clamped to ``[0.1, 2.0]``.  Low values favour
repetition and short, even notes while high values produce wide leaps and
longer, more varied durations (``0.5 * (0.5 + rand() * R)`` seconds).

Randomness is drawn from an injectable source.  Passing a seeded
:class:`random.Random` (see :func:`make_rng`) makes the output reproducible;
omitting it falls back to the process-wide :mod:`random` module so
``random.seed`` applies as well.
"""

from __future__ import annotations

import logging
import math
import random
from numbers import Real
from typing import List, Optional, Sequence

from .scales import DEFAULT_SCALE, get_scale, scale_index
from .sequence import (
    DEFAULT_QPM,
    DEFAULT_TICKS_PER_QUARTER,
    DEFAULT_VELOCITY,
    Note,
    NoteSequence,
    Tempo,
    TimeSignature,
)

__all__ = [
    "MIN_RANDOMNESS",
    "MAX_RANDOMNESS",
    "SEED_PITCHES",
    "NOTE_DURATION",
    "AlgorithmicGenerator",
    "clamp_randomness",
    "choose_next_index",
    "generate",
    "make_rng",
    "seed_motif",
]

MIN_RANDOMNESS = 0.1
MAX_RANDOMNESS = 2.0

# Opening arpeggio shared by every generated melody.
SEED_PITCHES = (60, 64, 67, 72)
NOTE_DURATION = 0.5

# Probability numerator for repeating the previous degree; divided by the
# randomness factor so calmer settings repeat more often.
_STAY_WEIGHT = 0.3
_STEP_PROBABILITY = 0.5

# Generated velocities fall in the half-open range [60, 100).
_VELOCITY_FLOOR = 60
_VELOCITY_SPAN = 40


def make_rng(seed: Optional[int] = None) -> random.Random:
    """Return a dedicated random source, seeded when ``seed`` is given."""

    return random.Random(seed)


def clamp_randomness(randomness: float) -> float:
    """Clamp ``randomness`` into ``[MIN_RANDOMNESS, MAX_RANDOMNESS]``.

    Raises
    ------
    ValueError
        If ``randomness`` is not a real number, or is NaN or infinite.
    """

    if isinstance(randomness, bool) or not isinstance(randomness, Real):
        raise ValueError("randomness must be a number")
    if not math.isfinite(randomness):
        raise ValueError("randomness must be a finite number")
    return min(max(randomness, MIN_RANDOMNESS), MAX_RANDOMNESS)


def seed_motif() -> List[Note]:
    """Return the fixed opening motif as fresh :class:`Note` objects."""

    return [
        Note(
            pitch=pitch,
            start_time=i * NOTE_DURATION,
            end_time=(i + 1) * NOTE_DURATION,
            velocity=DEFAULT_VELOCITY,
        )
        for i, pitch in enumerate(SEED_PITCHES)
    ]


def choose_next_index(index: int, scale_length: int, randomness: float, rng) -> int:
    """Pick the next scale degree using the stay/step/jump weighting.

    Parameters
    ----------
    index:
        Position of the previous note within the scale.
    scale_length:
        Number of degrees in the active scale.
    randomness:
        Already clamped randomness factor ``R``.
    rng:
        Object exposing ``random()`` returning floats in ``[0, 1)``.

    Returns
    -------
    int
        Index in ``range(scale_length)``.
    """

    if rng.random() < _STAY_WEIGHT / randomness:
        return index
    if rng.random() < _STEP_PROBABILITY:
        direction = -1 if rng.random() < 0.5 else 1
        # ``floor(rand * 2R) + 1`` spans 1..ceil(2R) degrees.
        magnitude = math.floor(rng.random() * 2 * randomness) + 1
        return max(0, min(scale_length - 1, index + direction * magnitude))
    return math.floor(rng.random() * scale_length)


class AlgorithmicGenerator:
    """Random-walk melody generator bound to one scale and random source."""

    def __init__(self, scale: str | Sequence[int] = DEFAULT_SCALE, rng=None) -> None:
        """Create a generator.

        Parameters
        ----------
        scale:
            Scale name understood by :func:`piano_generator.scales.get_scale`
            or an explicit ascending pitch sequence.
        rng:
            Optional random source. ``None`` uses the module-level
            :mod:`random` functions.
        """

        if isinstance(scale, str):
            self.scale = get_scale(scale)
        else:
            self.scale = tuple(scale)
        if not self.scale:
            raise ValueError("scale must contain at least one pitch")
        self.rng = rng if rng is not None else random

    def generate(self, randomness: float, steps: int) -> NoteSequence:
        """Return a melody of ``4 + steps`` notes.

        @param randomness (float): Temperature-like factor, clamped to
            ``[0.1, 2.0]``.
        @param steps (int): Number of notes generated after the seed motif.
            Must be a non-negative integer.
        @returns NoteSequence: Unquantized sequence with MIDI metadata set.
        """

        if isinstance(steps, bool) or not isinstance(steps, int) or steps < 0:
            raise ValueError("steps must be a non-negative integer")
        factor = clamp_randomness(randomness)
        rng = self.rng
        scale = self.scale

        notes = seed_motif()
        cursor = len(notes) * NOTE_DURATION

        for _ in range(steps):
            previous = notes[-1].pitch
            index = scale_index(scale, previous)
            if index is None:
                # Off-scale pitches restart the walk from the lowest degree.
                logging.debug("Pitch %s not in scale; walking from index 0", previous)
                index = 0
            next_index = choose_next_index(index, len(scale), factor, rng)
            velocity = math.floor(_VELOCITY_FLOOR + rng.random() * _VELOCITY_SPAN)
            duration = NOTE_DURATION * (0.5 + rng.random() * factor)
            notes.append(
                Note(
                    pitch=scale[next_index],
                    start_time=cursor,
                    end_time=cursor + duration,
                    velocity=velocity,
                )
            )
            cursor += duration

        return NoteSequence(
            notes=notes,
            total_time=cursor,
            ticks_per_quarter=DEFAULT_TICKS_PER_QUARTER,
            tempos=[Tempo(time=0.0, qpm=DEFAULT_QPM)],
            time_signatures=[TimeSignature(time=0.0, numerator=4, denominator=4)],
        )


def generate(
    randomness: float,
    steps: int,
    *,
    scale: str | Sequence[int] = DEFAULT_SCALE,
    rng=None,
) -> NoteSequence:
    """Convenience wrapper around :class:`AlgorithmicGenerator`."""

    return AlgorithmicGenerator(scale, rng=rng).generate(randomness, steps)
