"""Tests for the producer fallback chain.

Fake continuation models stand in for a learned model so the tests can
exercise initialisation failures, runtime failures and malformed results
without any machine learning dependency.
"""

from __future__ import annotations

import logging
import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from piano_generator.generator import make_rng  # noqa: E402  # isort:skip
from piano_generator.producers import (  # noqa: E402  # isort:skip
    AlgorithmicProducer,
    ExternalModelProducer,
    ProducerFailure,
    default_producers,
    produce_sequence,
)
from piano_generator.sequence import NoteSequence  # noqa: E402  # isort:skip


class DictModel:
    """Continuation model returning the camelCase mapping."""

    def __init__(self) -> None:
        self.calls = []
        self.initialized = 0

    def initialize(self) -> None:
        self.initialized += 1

    def continue_sequence(self, seed, steps, temperature):
        self.calls.append((seed, steps, temperature))
        return {
            "notes": [
                {"pitch": 70, "startTime": 0.0, "endTime": 0.25},
                {"pitch": 72, "startTime": 0.25, "endTime": 1.0, "velocity": 90},
            ],
        }


class BrokenModel:
    """Continuation model that always fails."""

    def continue_sequence(self, seed, steps, temperature):
        raise RuntimeError("checkpoint unreachable")


class UnloadableModel:
    def initialize(self) -> None:
        raise OSError("network down")

    def continue_sequence(self, seed, steps, temperature):  # pragma: no cover - never reached
        raise AssertionError("model should not be used")


def test_external_model_receives_quantized_seed():
    """The model is handed the seed motif marked as quantized."""

    model = DictModel()
    producer = ExternalModelProducer(model)

    producer.produce(1.5, 16)

    seed, steps, temperature = model.calls[0]
    assert [n.pitch for n in seed.notes] == [60, 64, 67, 72]
    assert all(n.velocity is None for n in seed.notes)
    assert seed.total_time == 2.0
    assert seed.quantization_info == {"stepsPerQuarter": 4}
    assert (steps, temperature) == (16, 1.5)


def test_external_dict_result_is_converted():
    """Mappings returned by the model become ``NoteSequence`` objects."""

    seq = ExternalModelProducer(DictModel()).produce(1.0, 2)

    assert isinstance(seq, NoteSequence)
    assert [(n.pitch, n.velocity) for n in seq.notes] == [(70, None), (72, 90)]
    assert seq.total_time == 0.0  # left for ``fill_total_time``


def test_external_model_initialised_once():
    model = DictModel()
    producer = ExternalModelProducer(model)

    producer.produce(1.0, 1)
    producer.produce(1.0, 1)

    assert model.initialized == 1


def test_unloadable_model_is_disabled(caplog):
    """An initialisation error is logged and the producer reports failure."""

    producer = ExternalModelProducer(UnloadableModel())

    with caplog.at_level(logging.ERROR):
        assert producer.load() is False
    assert "network down" in caplog.text

    with pytest.raises(ProducerFailure, match="not available"):
        producer.produce(1.0, 4)


def test_model_exception_wrapped():
    with pytest.raises(ProducerFailure, match="checkpoint unreachable"):
        ExternalModelProducer(BrokenModel()).produce(1.0, 4)


def test_unexpected_result_type_wrapped():
    class ListModel:
        def continue_sequence(self, seed, steps, temperature):
            return [1, 2, 3]

    with pytest.raises(ProducerFailure, match="expected a note sequence"):
        ExternalModelProducer(ListModel()).produce(1.0, 4)


def test_malformed_mapping_wrapped():
    class BadNotesModel:
        def continue_sequence(self, seed, steps, temperature):
            return {"notes": ["C4", "E4"]}

    with pytest.raises(ProducerFailure, match="malformed"):
        ExternalModelProducer(BadNotesModel()).produce(1.0, 4)


def test_fallback_to_algorithmic(caplog):
    """A failing model is logged and the random walk takes over."""

    producers = [ExternalModelProducer(BrokenModel()), AlgorithmicProducer(rng=make_rng(2))]

    with caplog.at_level(logging.WARNING):
        seq = produce_sequence(producers, 1.0, 8)

    assert len(seq.notes) == 12
    assert "falling back" in caplog.text


def test_first_successful_producer_wins():
    """Later producers are not consulted after a success."""

    class Exploding:
        name = "exploding"

        def produce(self, randomness, steps):  # pragma: no cover - never reached
            raise AssertionError("should not run")

    seq = produce_sequence([ExternalModelProducer(DictModel()), Exploding()], 1.0, 2)

    assert [n.pitch for n in seq.notes] == [70, 72]


def test_all_producers_failing_raises():
    with pytest.raises(ProducerFailure, match="No producer"):
        produce_sequence([ExternalModelProducer(BrokenModel())], 1.0, 4)


def test_empty_chain_raises():
    with pytest.raises(ProducerFailure):
        produce_sequence([], 1.0, 4)


def test_algorithmic_producer_wraps_argument_errors():
    with pytest.raises(ProducerFailure, match="steps"):
        AlgorithmicProducer().produce(1.0, -2)
    with pytest.raises(ProducerFailure, match="randomness"):
        AlgorithmicProducer().produce("1.0", 2)


def test_default_producers_order():
    """The model, when given, is tried before the random walk."""

    assert [p.name for p in default_producers()] == ["algorithmic"]
    assert [p.name for p in default_producers(DictModel())] == ["external", "algorithmic"]
