"""Score files in, WAV files and speaker output out."""

from __future__ import annotations

import logging
from pathlib import Path
from types import ModuleType

import numpy as np
import soundfile as sf

from hum.errors import FileSaveError, PlaybackError
from hum.grammar import parse
from hum.interpreter import Interpreter, Performance
from hum.music_math import SAMPLE_RATE

logger = logging.getLogger(__name__)

NUM_CHANNELS = 1
WAV_SUBTYPE = "PCM_16"  # 16-bit signed integer samples


def read_score(path: str | Path) -> str:
    """Read a ``.hum`` file as UTF-8 text. OS errors propagate."""
    return Path(path).read_text(encoding="utf-8")


def render_score(text: str, sample_rate: int = SAMPLE_RATE) -> Performance:
    """
    Parse and interpret a score.

    Raises:
        ParseError:    If the notation is malformed.
        GenerateError: If a note or literal cannot be rendered.
    """
    commands = parse(text)
    logger.debug(f"Parsed {len(commands)} command(s)")
    return Interpreter(sample_rate=sample_rate).run(commands)


def write_wav(samples: np.ndarray, path: str | Path, sample_rate: int = SAMPLE_RATE) -> Path:
    """
    Write mono samples in [-1, 1] as a 16-bit PCM WAV file.

    Returns:
        The path written.

    Raises:
        FileSaveError: If the file cannot be written.
    """
    path = Path(path)
    try:
        sf.write(str(path), np.asarray(samples, dtype=np.float64), sample_rate, subtype=WAV_SUBTYPE)
    except (OSError, RuntimeError) as exc:
        raise FileSaveError(f"Cannot write WAV file '{path}': {exc}") from exc

    logger.info(f"Wrote {len(samples) / sample_rate:.2f}s of audio to {path}")
    return path


def convert_to_wav(text: str, path: str | Path, sample_rate: int = SAMPLE_RATE) -> Performance:
    """Render a score and save it as a WAV file in one step."""
    performance = render_score(text, sample_rate)
    write_wav(performance.track, path, sample_rate)
    return performance


def _sounddevice() -> ModuleType:
    # Imported on demand: loading it needs a PortAudio library on the host.
    import sounddevice as sd

    return sd


def play(samples: np.ndarray, sample_rate: int = SAMPLE_RATE) -> None:
    """
    Play samples on the default output device and block until done.

    Raises:
        PlaybackError: If no audio backend or device is available.
    """
    if len(samples) == 0:
        logger.info("Nothing to play")
        return

    try:
        sd = _sounddevice()
    except (OSError, ImportError) as exc:
        raise PlaybackError(f"Audio playback unavailable: {exc}") from exc

    try:
        sd.play(np.asarray(samples, dtype=np.float32), samplerate=sample_rate)
        sd.wait()
    except sd.PortAudioError as exc:
        raise PlaybackError(f"Audio playback failed: {exc}") from exc
