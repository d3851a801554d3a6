"""Piano-roll layout for note sequences.

Notes are mapped onto a fixed ``width`` x ``height`` surface: time runs left to
right over the whole sequence and pitch bottom to top over the range actually
used.  Colour hue walks from red (lowest pitch) to blue (highest pitch).  The
layout is computed with NumPy so long sequences are mapped in one pass.

:func:`render_svg` turns the layout into a standalone SVG document which the
CLI writes with ``--svg``; GUI front ends can consume :class:`NoteRect` values
directly.
"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import List, Union
from xml.sax.saxutils import escape

import numpy as np

from .sequence import NoteSequence

__all__ = [
    "DEFAULT_HEIGHT",
    "NoteRect",
    "hsl_color",
    "layout_piano_roll",
    "render_svg",
    "write_svg",
]

DEFAULT_HEIGHT = 300
# Hue span in degrees from the lowest to the highest pitch.
_HUE_RANGE = 240.0
# Rectangles fill 80% of a pitch row so adjacent rows stay distinguishable.
_ROW_FILL = 0.8
_EMPTY_MESSAGE = "No music to visualize"


@dataclass(frozen=True)
class NoteRect:
    """Screen rectangle for one note."""

    x: float
    y: float
    width: float
    height: float
    hue: float
    pitch: int

    @property
    def color(self) -> str:
        return hsl_color(self.hue)


def hsl_color(hue: float) -> str:
    """Return the CSS colour used to fill a note of ``hue`` degrees."""

    return f"hsl({hue:g}, 70%, 60%)"


def layout_piano_roll(
    sequence: NoteSequence, width: float, height: float = DEFAULT_HEIGHT
) -> List[NoteRect]:
    """Map every note of ``sequence`` to a :class:`NoteRect`.

    Parameters
    ----------
    sequence:
        Validated sequence. ``total_time`` falls back to the latest note end
        when unset.
    width, height:
        Surface size in pixels. Both must be positive.

    Returns
    -------
    List[NoteRect]
        One rectangle per note in sequence order; empty when there are no
        notes.
    """

    if width <= 0 or height <= 0:
        raise ValueError("width and height must be positive")
    if not sequence.notes:
        return []

    pitches = np.array([n.pitch for n in sequence.notes], dtype=float)
    starts = np.array([n.start_time for n in sequence.notes], dtype=float)
    ends = np.array([n.end_time for n in sequence.notes], dtype=float)

    total_time = sequence.total_time or float(ends.max())
    if total_time <= 0:
        raise ValueError("sequence must have a positive total time")
    min_pitch = pitches.min()
    max_pitch = pitches.max()

    time_scale = width / total_time
    pitch_scale = height / (max_pitch - min_pitch + 1)

    xs = starts * time_scale
    widths = (ends - starts) * time_scale
    ys = height - (pitches - min_pitch + 1) * pitch_scale
    span = max_pitch - min_pitch
    if span > 0:
        hues = (pitches - min_pitch) / span * _HUE_RANGE
    else:
        # A single repeated pitch has no range to spread colours over.
        hues = np.zeros_like(pitches)

    return [
        NoteRect(
            x=float(x),
            y=float(y),
            width=float(w),
            height=float(pitch_scale * _ROW_FILL),
            hue=float(h),
            pitch=int(p),
        )
        for x, y, w, h, p in zip(xs, ys, widths, hues, pitches)
    ]


def render_svg(
    sequence: NoteSequence, width: int = 800, height: int = DEFAULT_HEIGHT
) -> str:
    """Return an SVG document drawing ``sequence`` as a piano roll."""

    parts = [
        f'<svg xmlns="http://www.w3.org/2000/svg" width="{width}" height="{height}" '
        f'viewBox="0 0 {width} {height}">'
    ]
    rects = layout_piano_roll(sequence, width, height)
    if not rects:
        parts.append(
            f'<text x="{width / 2:g}" y="{height / 2:g}" fill="#999" '
            f'font-family="Arial" font-size="16" text-anchor="middle">'
            f"{escape(_EMPTY_MESSAGE)}</text>"
        )
    for rect in rects:
        parts.append(
            f'<rect x="{rect.x:.2f}" y="{rect.y:.2f}" width="{rect.width:.2f}" '
            f'height="{rect.height:.2f}" fill="{rect.color}" stroke="#333" stroke-width="1"/>'
        )
    parts.append("</svg>")
    return "\n".join(parts)


def write_svg(
    sequence: NoteSequence,
    path: Union[str, Path],
    width: int = 800,
    height: int = DEFAULT_HEIGHT,
) -> Path:
    """Write :func:`render_svg` output to ``path`` and return it."""

    target = Path(path).expanduser()
    target.parent.mkdir(parents=True, exist_ok=True)
    target.write_text(render_svg(sequence, width, height), encoding="utf-8")
    return target
