"""Note sequence data model shared by the generator, validator and encoders.

A :class:`NoteSequence` is a monophonic fragment measured in seconds rather
than quantized steps.  The attribute names follow Python conventions while
:meth:`NoteSequence.to_dict` and :meth:`NoteSequence.from_dict` translate to
the camelCase JSON shape exchanged with external sequence producers::

    {
        "notes": [{"pitch": 60, "startTime": 0.0, "endTime": 0.5, "velocity": 80}],
        "totalTime": 0.5,
        "ticksPerQuarter": 220,
        "tempos": [{"time": 0, "qpm": 120}],
        "timeSignatures": [{"time": 0, "numerator": 4, "denominator": 4}],
    }

``from_dict`` intentionally copies note fields without coercing them so that
malformed input from an external producer is reported by
:func:`piano_generator.validation.validate_sequence` instead of failing here.
"""

from __future__ import annotations

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

__all__ = [
    "DEFAULT_TICKS_PER_QUARTER",
    "DEFAULT_QPM",
    "DEFAULT_VELOCITY",
    "Note",
    "Tempo",
    "TimeSignature",
    "NoteSequence",
]

# Standard resolution used when writing MIDI files.
DEFAULT_TICKS_PER_QUARTER = 220
DEFAULT_QPM = 120.0
DEFAULT_VELOCITY = 80


@dataclass
class Note:
    """Single pitched event measured in seconds."""

    pitch: int
    start_time: float
    end_time: float
    velocity: Optional[int] = None

    @property
    def duration(self) -> float:
        return self.end_time - self.start_time

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "pitch": self.pitch,
            "startTime": self.start_time,
            "endTime": self.end_time,
        }
        if self.velocity is not None:
            data["velocity"] = self.velocity
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Note":
        return cls(
            pitch=data.get("pitch"),
            start_time=data.get("startTime"),
            end_time=data.get("endTime"),
            velocity=data.get("velocity"),
        )


@dataclass
class Tempo:
    """Tempo change expressed in quarter notes per minute."""

    time: float = 0.0
    qpm: float = DEFAULT_QPM


@dataclass
class TimeSignature:
    """Meter change at ``time`` seconds."""

    time: float = 0.0
    numerator: int = 4
    denominator: int = 4


@dataclass
class NoteSequence:
    """Ordered notes plus the tempo and meter metadata needed for export.

    ``quantization_info`` marks a step-quantized sequence. Such sequences use
    a different timing model and are rejected by the validator.
    """

    notes: List[Note] = field(default_factory=list)
    total_time: float = 0.0
    ticks_per_quarter: Optional[int] = None
    tempos: List[Tempo] = field(default_factory=list)
    time_signatures: List[TimeSignature] = field(default_factory=list)
    quantization_info: Optional[Dict[str, Any]] = None

    def copy(self) -> "NoteSequence":
        """Return a deep copy so consumers cannot alias the caller's notes."""

        return copy.deepcopy(self)

    def max_end_time(self) -> float:
        """Return the latest note end time or ``0.0`` for an empty sequence."""

        return max((n.end_time for n in self.notes), default=0.0)

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {
            "notes": [n.to_dict() for n in self.notes],
            "totalTime": self.total_time,
            "tempos": [{"time": t.time, "qpm": t.qpm} for t in self.tempos],
            "timeSignatures": [
                {"time": ts.time, "numerator": ts.numerator, "denominator": ts.denominator}
                for ts in self.time_signatures
            ],
        }
        if self.ticks_per_quarter is not None:
            data["ticksPerQuarter"] = self.ticks_per_quarter
        if self.quantization_info is not None:
            data["quantizationInfo"] = dict(self.quantization_info)
        return data

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "NoteSequence":
        """Build a sequence from the camelCase mapping used on the wire.

        Missing collections become empty lists; missing ``totalTime`` becomes
        ``0.0`` so callers can fill it from the notes afterwards.
        """

        return cls(
            notes=[Note.from_dict(n) for n in data.get("notes") or []],
            total_time=data.get("totalTime") or 0.0,
            ticks_per_quarter=data.get("ticksPerQuarter"),
            tempos=[
                Tempo(time=t.get("time", 0.0), qpm=t.get("qpm", DEFAULT_QPM))
                for t in data.get("tempos") or []
            ],
            time_signatures=[
                TimeSignature(
                    time=ts.get("time", 0.0),
                    numerator=ts.get("numerator", 4),
                    denominator=ts.get("denominator", 4),
                )
                for ts in data.get("timeSignatures") or []
            ],
            quantization_info=data.get("quantizationInfo"),
        )
