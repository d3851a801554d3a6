"""Tests for ``GeneratorSession`` status reporting.

The session never raises; each scenario checks the status kind and the exact
message a front end would display.
"""

from __future__ import annotations

import sys
from pathlib import Path

import pytest

sys.path.insert(0, str(Path(__file__).resolve().parents[1]))

from piano_generator import session as session_mod  # noqa: E402  # isort:skip
from piano_generator.generator import make_rng  # noqa: E402  # isort:skip
from piano_generator.midi_io import MidiExportError  # noqa: E402  # isort:skip
from piano_generator.producers import (  # noqa: E402  # isort:skip
    AlgorithmicProducer,
    ExternalModelProducer,
)
from piano_generator.session import GeneratorSession  # noqa: E402  # isort:skip


class FakePlayer:
    """In-memory stand-in for ``SequencePlayer``."""

    def __init__(self, fail: bool = False) -> None:
        self.fail = fail
        self.started = []
        self.stopped = 0
        self._playing = False

    @property
    def is_playing(self) -> bool:
        return self._playing

    def start(self, sequence) -> None:
        if self.fail:
            raise RuntimeError("audio device missing")
        self.started.append(sequence)
        self._playing = True

    def stop(self) -> None:
        self.stopped += 1
        self._playing = False


class QuantizedModel:
    """External model returning a quantized continuation."""

    def continue_sequence(self, seed, steps, temperature):
        return {
            "notes": [{"pitch": 60, "startTime": 0.0, "endTime": 0.5}],
            "quantizationInfo": {"stepsPerQuarter": 4},
        }


class UnquantizedModel:
    def continue_sequence(self, seed, steps, temperature):
        return {
            "notes": [
                {"pitch": 60, "startTime": 0.0, "endTime": 0.5},
                {"pitch": 65, "startTime": 0.5, "endTime": 1.5},
            ],
        }


class FailingModel:
    def continue_sequence(self, seed, steps, temperature):
        raise RuntimeError("boom")


@pytest.fixture()
def session():
    return GeneratorSession([AlgorithmicProducer(rng=make_rng(10))], player=FakePlayer())


def test_generate_stores_validated_sequence(session):
    status = session.generate(1.0, 12)

    assert status.ok
    assert status.message == "Music generated successfully!"
    assert len(session.sequence.notes) == 16
    assert session.sequence.ticks_per_quarter == 220


def test_external_result_gets_total_time_and_defaults():
    """Producer output is completed before it is stored."""

    s = GeneratorSession([ExternalModelProducer(UnquantizedModel())])

    assert s.generate(1.0, 2).ok
    assert s.sequence.total_time == 1.5
    assert [n.velocity for n in s.sequence.notes] == [80, 80]
    assert s.sequence.tempos and s.sequence.time_signatures


def test_failing_model_falls_back(session):
    s = GeneratorSession(
        [ExternalModelProducer(FailingModel()), AlgorithmicProducer(rng=make_rng(1))]
    )

    assert s.generate(1.0, 3).ok
    assert [n.pitch for n in s.sequence.notes[:4]] == [60, 64, 67, 72]


def test_quantized_result_reported():
    s = GeneratorSession([ExternalModelProducer(QuantizedModel())])

    status = s.generate(1.0, 2)

    assert not status.ok
    assert status.message == (
        "Failed to generate music: Cannot export quantized sequences to MIDI "
        "- use unquantized sequences"
    )
    assert s.sequence is None


def test_generation_failure_reported():
    s = GeneratorSession([ExternalModelProducer(FailingModel())])

    status = s.generate(1.0, 2)

    assert status.kind == "error"
    assert status.message.startswith("Failed to generate music:")


def test_export_before_generate(session, tmp_path):
    status = session.export_midi(tmp_path)

    assert status.message == "No music to download. Generate some music first!"


def test_export_writes_timestamped_file(session, tmp_path):
    session.generate(1.0, 4)

    status = session.export_midi(tmp_path)

    assert status.ok
    assert session.last_export.parent == tmp_path
    assert session.last_export.name.startswith("ai-piano-music-")
    assert session.last_export.suffix == ".mid"
    assert status.message == f"MIDI file saved to {session.last_export}"


def test_export_rejects_invalid_sequence(session, tmp_path):
    session.generate(1.0, 4)
    session.sequence.quantization_info = {"stepsPerQuarter": 4}

    status = session.export_midi(tmp_path)

    assert status.message.startswith("Cannot export MIDI: Cannot export quantized")
    assert list(tmp_path.iterdir()) == []


def test_export_encoding_failure_reported(session, tmp_path, monkeypatch):
    def broken_writer(*args, **kwargs):
        raise MidiExportError("disk full")

    monkeypatch.setattr(session_mod, "write_midi_file", broken_writer)
    session.generate(1.0, 4)

    status = session.export_midi(tmp_path)

    assert status.message == "Failed to download MIDI file: disk full"


def test_export_does_not_alias_session_sequence(session, tmp_path, monkeypatch):
    """The writer receives a copy of the stored melody."""

    received = []
    monkeypatch.setattr(
        session_mod,
        "write_midi_file",
        lambda seq, directory, filename=None: received.append(seq) or Path(directory) / "x.mid",
    )
    session.generate(1.0, 4)
    session.export_midi(tmp_path)

    assert received[0] == session.sequence
    assert received[0] is not session.sequence


def test_play_requires_sequence(session):
    assert session.play().message == "No music to play. Generate some music first!"


def test_play_without_player():
    s = GeneratorSession()
    s.generate(1.0, 1)

    assert s.play().kind == "error"


def test_play_toggles(session):
    session.generate(1.0, 4)

    first = session.play()
    second = session.play()

    assert first.message == "Playing music."
    assert second.message == "Playback stopped."
    assert session.player.stopped == 1
    assert session.player.started[0] == session.sequence
    assert session.player.started[0] is not session.sequence


def test_player_failure_reported():
    s = GeneratorSession([AlgorithmicProducer(rng=make_rng(3))], player=FakePlayer(fail=True))
    s.generate(1.0, 2)

    status = s.play()

    assert status.kind == "error"
    assert status.message == "Failed to play music."


def test_stop(session):
    session.stop()
    session.generate(1.0, 2)
    session.play()
    session.stop()

    assert not session.player.is_playing
    assert session.player.stopped == 1


def test_piano_roll(session):
    assert session.piano_roll(100) == []

    session.generate(1.0, 3)
    rects = session.piano_roll(500, 200)

    assert len(rects) == 7


class ZeroTempoModel:
    """External model whose tempo map cannot be encoded."""

    def continue_sequence(self, seed, steps, temperature):
        return {
            "notes": [{"pitch": 60, "startTime": 0.0, "endTime": 0.5}],
            "tempos": [{"time": 0, "qpm": 0}],
        }


def test_unencodable_tempo_reported_on_export(tmp_path):
    """Encoder failures surface as a status instead of an exception."""

    s = GeneratorSession([ExternalModelProducer(ZeroTempoModel())])
    assert s.generate(1.0, 2).ok

    status = s.export_midi(tmp_path)

    assert status.kind == "error"
    assert status.message.startswith("Failed to download MIDI file:")
    assert list(tmp_path.iterdir()) == []


def test_non_numeric_randomness_reported():
    """Bad arguments from a front end become a generation error."""

    s = GeneratorSession([AlgorithmicProducer(rng=make_rng(2))])

    status = s.generate("1.0", 4)

    assert status.kind == "error"
    assert status.message.startswith("Failed to generate music:")
    assert s.sequence is None
