"""Headless controller tying producers, validation and collaborators together.

:class:`GeneratorSession` is what a front end talks to.  Each public method
performs one user action (generate, export, play, stop) and reports the
outcome as a :class:`Status` instead of raising, so a GUI or web handler can
show the message directly.  The session keeps only the last *validated*
sequence; consumers such as the MIDI writer and the player always receive
copies of it.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Protocol, Sequence, Union

from .midi_io import MidiExportError, write_midi_file
from .pianoroll import DEFAULT_HEIGHT, NoteRect, layout_piano_roll
from .producers import ProducerFailure, SequenceProducer, default_producers, produce_sequence
from .sequence import NoteSequence
from .validation import fill_total_time, validate_sequence

__all__ = ["Player", "Status", "GeneratorSession"]

SUCCESS = "success"
ERROR = "error"


class Player(Protocol):
    """Playback collaborator; :class:`~piano_generator.playback.SequencePlayer`
    implements it."""

    @property
    def is_playing(self) -> bool: ...

    def start(self, sequence: NoteSequence) -> None: ...

    def stop(self) -> None: ...


@dataclass(frozen=True)
class Status:
    """User-facing outcome of a session action."""

    kind: str
    message: str

    @property
    def ok(self) -> bool:
        return self.kind == SUCCESS


class GeneratorSession:
    """Stateful front-end controller.

    Parameters
    ----------
    producers:
        Fallback chain tried in order. Defaults to the algorithmic producer
        alone.
    player:
        Optional playback collaborator. Without one :meth:`play` reports an
        error.
    """

    def __init__(
        self,
        producers: Optional[Sequence[SequenceProducer]] = None,
        player: Optional[Player] = None,
    ) -> None:
        self.producers = list(producers) if producers is not None else default_producers()
        self.player = player
        self.sequence: Optional[NoteSequence] = None
        self.last_export: Optional[Path] = None

    def generate(self, randomness: float, steps: int) -> Status:
        """Produce, validate and store a new melody."""

        try:
            raw = produce_sequence(self.producers, randomness, steps)
        except ProducerFailure as exc:
            logging.error("Error generating music: %s", exc)
            return Status(ERROR, f"Failed to generate music: {exc}")

        result = validate_sequence(fill_total_time(raw))
        if not result.valid:
            return Status(ERROR, f"Failed to generate music: {result.error}")

        self.sequence = result.sequence
        logging.info("Generated %d notes (%.2fs)", len(self.sequence.notes), self.sequence.total_time)
        return Status(SUCCESS, "Music generated successfully!")

    def export_midi(self, directory: Union[str, Path] = ".", filename: Optional[str] = None) -> Status:
        """Write the current melody to ``directory`` as a MIDI file."""

        if self.sequence is None:
            return Status(ERROR, "No music to download. Generate some music first!")

        result = validate_sequence(self.sequence)
        if not result.valid:
            return Status(ERROR, f"Cannot export MIDI: {result.error}")

        try:
            path = write_midi_file(result.sequence, directory, filename)
        except (MidiExportError, ImportError) as exc:
            logging.error("Error downloading MIDI: %s", exc)
            return Status(ERROR, f"Failed to download MIDI file: {exc}")

        self.last_export = path
        return Status(SUCCESS, f"MIDI file saved to {path}")

    def play(self) -> Status:
        """Start playback, or stop it when a session is already running."""

        if self.sequence is None or self.player is None:
            return Status(ERROR, "No music to play. Generate some music first!")

        if self.player.is_playing:
            self.player.stop()
            return Status(SUCCESS, "Playback stopped.")

        try:
            self.player.start(self.sequence.copy())
        except Exception:  # noqa: BLE001 - any player failure is reported
            logging.exception("Error playing music")
            return Status(ERROR, "Failed to play music.")
        return Status(SUCCESS, "Playing music.")

    def stop(self) -> None:
        """Stop playback if it is running."""

        if self.player is not None and self.player.is_playing:
            self.player.stop()

    def piano_roll(self, width: float, height: float = DEFAULT_HEIGHT) -> List[NoteRect]:
        """Return the piano-roll layout of the current melody."""

        if self.sequence is None:
            return []
        return layout_piano_roll(self.sequence, width, height)
