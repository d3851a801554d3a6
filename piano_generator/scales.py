"""Static scale tables used by the melody generator.

Each scale is stored as an ascending tuple of MIDI pitch numbers spanning two
octaves above middle C and closing on the upper tonic.  The generator walks
over the *indices* of these tuples, so neighbouring entries are one scale
degree apart regardless of the semitone distance between them.

Example
-------
>>> from piano_generator.scales import get_scale
>>> get_scale("pentatonic")[:5]
(60, 62, 65, 67, 69)
"""

from __future__ import annotations

from functools import lru_cache
from typing import Dict, List, Optional, Sequence, Tuple

__all__ = [
    "BASE_PITCH",
    "DEFAULT_SCALE",
    "SCALES",
    "get_scale",
    "scale_index",
]

# Middle C. Every table starts here so the fixed seed motif (C-E-G-C) lines
# up with the first and last degrees of the built-in scales.
BASE_PITCH = 60

# Number of octaves covered by each table. The closing tonic is appended
# after the last octave so the range is inclusive on both ends.
_OCTAVES = 2

DEFAULT_SCALE = "pentatonic"

# Semitone offsets from the root for every supported mode.  The pentatonic
# pattern deliberately omits the third (C-D-F-G-A) which keeps the random walk
# free of half-step clashes against the seed motif.
_MODE_PATTERNS: Dict[str, List[int]] = {
    "major": [0, 2, 4, 5, 7, 9, 11],
    "pentatonic": [0, 2, 5, 7, 9],
    "dorian": [0, 2, 3, 5, 7, 9, 10],
    "mixolydian": [0, 2, 4, 5, 7, 9, 10],
}


def _build_scale(root: int, pattern: Sequence[int], octaves: int = _OCTAVES) -> Tuple[int, ...]:
    """Return ascending pitches for ``pattern`` starting at ``root``.

    @param root (int): MIDI pitch of the lowest tonic.
    @param pattern (Sequence[int]): Semitone offsets defining the mode.
    @param octaves (int): Number of full octaves to cover.
    @returns Tuple[int, ...]: Pitches including the closing tonic.
    """
    pitches = [
        root + 12 * octave + interval
        for octave in range(octaves)
        for interval in pattern
    ]
    pitches.append(root + 12 * octaves)
    return tuple(pitches)


SCALES: Dict[str, Tuple[int, ...]] = {
    name: _build_scale(BASE_PITCH, pattern) for name, pattern in _MODE_PATTERNS.items()
}
# Historical alias; earlier presets referred to the major table by its key.
SCALES["c_major"] = SCALES["major"]

# Pitch -> index lookups so the generator can locate the previous note in
# constant time instead of calling ``tuple.index`` on every step.
_SCALE_INDICES: Dict[Tuple[int, ...], Dict[int, int]] = {
    pitches: {p: i for i, p in enumerate(pitches)} for pitches in SCALES.values()
}

_CANONICAL_SCALES = {name.lower(): name for name in SCALES}


@lru_cache(maxsize=None)
def get_scale(name: str) -> Tuple[int, ...]:
    """Return the pitch table registered under ``name``.

    Parameters
    ----------
    name:
        Scale name such as ``"major"`` or ``"pentatonic"``. Case-insensitive.

    Returns
    -------
    Tuple[int, ...]
        Ascending MIDI pitches.

    Raises
    ------
    ValueError
        If ``name`` is not a known scale.
    """

    canonical = _CANONICAL_SCALES.get(name.strip().lower())
    if canonical is None:
        raise ValueError(f"Unknown scale: {name}")
    return SCALES[canonical]


def scale_index(scale: Sequence[int], pitch: int) -> Optional[int]:
    """Return the position of ``pitch`` inside ``scale`` or ``None``."""

    indices = _SCALE_INDICES.get(tuple(scale))
    if indices is None:
        # Custom tables supplied by callers are not precomputed.
        indices = {p: i for i, p in enumerate(scale)}
    return indices.get(pitch)
