"""Sequence producers tried in a fixed fallback order.

Two variants implement the :class:`SequenceProducer` interface:

``ExternalModelProducer``
    Wraps any continuation model exposing
    ``continue_sequence(seed, steps, temperature)``.  The model receives the
    quantized seed motif and may return either a :class:`NoteSequence` or the
    equivalent camelCase mapping.  No model ships with the package; callers
    plug in their own.

``AlgorithmicProducer``
    Wraps :class:`~piano_generator.generator.AlgorithmicGenerator` and is the
    safe fallback that always succeeds for valid arguments.

:func:`produce_sequence` walks the producers sequentially and returns the
first result.  A failing producer is logged and skipped; its output is never
combined with another producer's.
"""

# Modification Summary:
# - ``ExternalModelProducer.load`` now caches the initialisation outcome so a
#   model that failed once is not retried on every generation request.
# - Failures inside ``continue_sequence`` are rewrapped in ``ProducerFailure``
#   so the fallback loop only needs to handle a single exception type.

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Optional, Protocol, Sequence, Union

from .generator import NOTE_DURATION, AlgorithmicGenerator, seed_motif
from .scales import DEFAULT_SCALE
from .sequence import NoteSequence

__all__ = [
    "ProducerFailure",
    "ContinuationModel",
    "SequenceProducer",
    "AlgorithmicProducer",
    "ExternalModelProducer",
    "default_producers",
    "produce_sequence",
]

# Quantization used for the seed handed to continuation models.
SEED_STEPS_PER_QUARTER = 4


class ProducerFailure(RuntimeError):
    """Raised when a producer cannot deliver a sequence."""


class ContinuationModel(Protocol):
    """Interface expected from externally supplied sequence models."""

    def continue_sequence(
        self, seed: NoteSequence, steps: int, temperature: float
    ) -> Union[NoteSequence, Dict[str, Any]]:
        """Return a continuation of ``seed`` spanning ``steps`` steps."""


class SequenceProducer(Protocol):
    """Single capability shared by all producers."""

    name: str

    def produce(self, randomness: float, steps: int) -> NoteSequence:
        """Return a raw, not yet validated sequence."""


class AlgorithmicProducer:
    """Producer backed by the random-walk generator."""

    name = "algorithmic"

    def __init__(self, scale: Union[str, Sequence[int]] = DEFAULT_SCALE, rng=None) -> None:
        self.generator = AlgorithmicGenerator(scale, rng=rng)

    def produce(self, randomness: float, steps: int) -> NoteSequence:
        try:
            return self.generator.generate(randomness, steps)
        except (TypeError, ValueError) as exc:
            raise ProducerFailure(str(exc)) from exc


class ExternalModelProducer:
    """Producer delegating to an external continuation model.

    Parameters
    ----------
    model:
        Object implementing :class:`ContinuationModel`. An optional
        ``initialize()`` method is called once by :meth:`load`.
    name:
        Label used in log messages.
    """

    def __init__(self, model: ContinuationModel, name: str = "external") -> None:
        self.model = model
        self.name = name
        self._loaded: Optional[bool] = None

    def load(self) -> bool:
        """Initialise the model once and report whether it is usable.

        Errors are logged rather than raised so a broken model simply leaves
        the algorithmic fallback in charge.
        """

        if self._loaded is not None:
            return self._loaded
        initialize = getattr(self.model, "initialize", None)
        try:
            if callable(initialize):
                initialize()
        except Exception as exc:  # noqa: BLE001 - any model error disables it
            logging.error("Could not load %s model: %s", self.name, exc)
            self._loaded = False
        else:
            logging.info("%s model loaded", self.name)
            self._loaded = True
        return self._loaded

    @staticmethod
    def seed_sequence() -> NoteSequence:
        """Return the quantized seed motif offered to the model."""

        notes = seed_motif()
        for note in notes:
            # Models supply their own dynamics.
            note.velocity = None
        return NoteSequence(
            notes=notes,
            total_time=len(notes) * NOTE_DURATION,
            quantization_info={"stepsPerQuarter": SEED_STEPS_PER_QUARTER},
        )

    def produce(self, randomness: float, steps: int) -> NoteSequence:
        if not self.load():
            raise ProducerFailure(f"{self.name} model is not available")
        try:
            result = self.model.continue_sequence(self.seed_sequence(), steps, randomness)
        except Exception as exc:  # noqa: BLE001 - model failures trigger fallback
            raise ProducerFailure(f"{self.name} model failed: {exc}") from exc

        if isinstance(result, NoteSequence):
            return result
        if isinstance(result, dict):
            try:
                return NoteSequence.from_dict(result)
            except (AttributeError, TypeError) as exc:
                raise ProducerFailure(f"{self.name} model returned malformed data") from exc
        raise ProducerFailure(
            f"{self.name} model returned {type(result).__name__}, expected a note sequence"
        )


def default_producers(
    model: Optional[ContinuationModel] = None,
    *,
    scale: Union[str, Sequence[int]] = DEFAULT_SCALE,
    rng=None,
) -> list:
    """Return the standard fallback chain.

    The external producer comes first when ``model`` is supplied, followed by
    the algorithmic producer.
    """

    producers: list = []
    if model is not None:
        producers.append(ExternalModelProducer(model))
    producers.append(AlgorithmicProducer(scale, rng=rng))
    return producers


def produce_sequence(
    producers: Iterable[SequenceProducer], randomness: float, steps: int
) -> NoteSequence:
    """Return the first sequence delivered by ``producers``.

    Raises
    ------
    ProducerFailure
        When the chain is empty or every producer fails. The last failure is
        chained as the cause.
    """

    last_error: Optional[ProducerFailure] = None
    for producer in producers:
        try:
            sequence = producer.produce(randomness, steps)
        except ProducerFailure as exc:
            logging.warning(
                "%s generation failed, falling back: %s", producer.name, exc
            )
            last_error = exc
            continue
        logging.info("Sequence produced by %s generator", producer.name)
        return sequence
    raise ProducerFailure("No producer could generate a sequence") from last_error
