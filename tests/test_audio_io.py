"""Unit tests for score reading, WAV output and speaker playback."""

from pathlib import Path
from types import SimpleNamespace

import numpy as np
import pytest
import soundfile as sf

from hum import audio_io
from hum.errors import FileSaveError, ParseError, PlaybackError

DATA_DIR = Path(__file__).parent / "data"


class FakePortAudioError(Exception):
    pass


def _fake_sounddevice(fail: bool = False) -> SimpleNamespace:
    calls: list[tuple] = []

    def play(samples, samplerate):
        if fail:
            raise FakePortAudioError("no default output device")
        calls.append(("play", len(samples), samplerate))

    def wait():
        calls.append(("wait",))

    return SimpleNamespace(play=play, wait=wait, PortAudioError=FakePortAudioError, calls=calls)


# ── Rendering ───────────────────────────────────────────────────────────────

def test_read_score(tmp_path: Path) -> None:
    path = tmp_path / "song.hum"
    path.write_text("| (Cn_4 1/4)\n", encoding="utf-8")
    assert audio_io.read_score(path) == "| (Cn_4 1/4)\n"


def test_render_golden_score() -> None:
    performance = audio_io.render_score(audio_io.read_score(DATA_DIR / "formatted.hum"))
    assert len(performance.track) == 352800
    assert performance.duration == pytest.approx(8.0)


def test_render_score_propagates_parse_errors() -> None:
    with pytest.raises(ParseError):
        audio_io.render_score("| (Cn_4 1/4")


# ── WAV files ───────────────────────────────────────────────────────────────

def test_write_wav_is_16_bit_mono(tmp_path: Path) -> None:
    samples = np.linspace(-0.5, 0.5, 4410)
    path = audio_io.write_wav(samples, tmp_path / "out.wav")

    info = sf.info(str(path))
    assert info.subtype == "PCM_16"
    assert info.channels == 1
    assert info.samplerate == 44100
    assert info.frames == 4410


def test_write_wav_missing_directory_raises(tmp_path: Path) -> None:
    with pytest.raises(FileSaveError):
        audio_io.write_wav(np.zeros(10), tmp_path / "missing" / "out.wav")


def test_convert_to_wav(tmp_path: Path) -> None:
    path = tmp_path / "note.wav"
    performance = audio_io.convert_to_wav("[ 120_bpm ] | (An_4 1/4)", path)
    data, rate = sf.read(str(path))
    assert rate == 44100
    assert len(data) == len(performance.track)
    assert np.abs(data).max() > 0


# ── Playback ────────────────────────────────────────────────────────────────

def test_play_blocks_until_done(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _fake_sounddevice()
    monkeypatch.setattr(audio_io, "_sounddevice", lambda: fake)
    audio_io.play(np.zeros(100), 22050)
    assert fake.calls == [("play", 100, 22050), ("wait",)]


def test_play_empty_samples_is_a_no_op(monkeypatch: pytest.MonkeyPatch) -> None:
    fake = _fake_sounddevice()
    monkeypatch.setattr(audio_io, "_sounddevice", lambda: fake)
    audio_io.play(np.zeros(0))
    assert fake.calls == []


def test_play_device_error_becomes_playback_error(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setattr(audio_io, "_sounddevice", lambda: _fake_sounddevice(fail=True))
    with pytest.raises(PlaybackError, match="no default output device"):
        audio_io.play(np.zeros(100))


def test_play_without_portaudio_becomes_playback_error(monkeypatch: pytest.MonkeyPatch) -> None:
    def missing_library():
        raise OSError("PortAudio library not found")

    monkeypatch.setattr(audio_io, "_sounddevice", missing_library)
    with pytest.raises(PlaybackError, match="unavailable"):
        audio_io.play(np.zeros(100))
