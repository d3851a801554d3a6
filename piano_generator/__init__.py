#!/usr/bin/env python3
"""Piano Generator library.

This package creates short monophonic piano melodies.  A typical workflow is
to call :func:`generate` with a randomness factor and a number of steps,
check the result with :func:`validate_sequence`, then hand the normalized
sequence to :func:`write_midi_file`, :func:`layout_piano_roll` or a
:class:`~piano_generator.playback.SequencePlayer`.  The
:class:`GeneratorSession` class wraps these calls for front ends and the
``piano-generator`` console script exposes them on the command line.

Underlying Algorithm
--------------------
Every melody starts with a fixed C-E-G-C motif.  Each following note is a
weighted random move over the degrees of a scale: stay on the current degree,
step a few degrees up or down, or jump anywhere.  The randomness factor
scales both the probability of leaving the current degree and the spread of
note durations.  An optional external continuation model may be tried first;
when it fails the algorithmic generator takes over.

Features include:
- Seedable, reproducible random-walk generation over named scales.
- Validation that rejects quantized or malformed sequences and fills MIDI
  metadata defaults on a copy.
- MIDI export via ``mido``, piano-roll layout via NumPy and playback via
  FluidSynth.
- A command line interface with persistent settings.
"""

__version__ = "0.1.0"

from .scales import SCALES, DEFAULT_SCALE, get_scale, scale_index  # noqa: F401
from .sequence import (  # noqa: F401
    Note,
    NoteSequence,
    Tempo,
    TimeSignature,
)
from .generator import (  # noqa: F401
    AlgorithmicGenerator,
    clamp_randomness,
    generate,
    make_rng,
)
from .validation import (  # noqa: F401
    SequenceValidationError,
    ValidationResult,
    fill_total_time,
    require_valid,
    validate_sequence,
)
from .producers import (  # noqa: F401
    AlgorithmicProducer,
    ExternalModelProducer,
    ProducerFailure,
    default_producers,
    produce_sequence,
)
from .midi_io import (  # noqa: F401
    MidiExportError,
    encode_midi,
    midi_filename,
    sequence_to_midi,
    write_midi_file,
)
from .pianoroll import NoteRect, layout_piano_roll, render_svg  # noqa: F401
from .session import GeneratorSession, Status  # noqa: F401


def run_cli():
    from .cli import run_cli as _run_cli
    _run_cli()


def main():
    from .cli import main as _main
    _main()


if __name__ == "__main__":
    main()
