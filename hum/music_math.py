"""Pitch tables, transposition and waveform sampling for Hum."""

from __future__ import annotations

import math
from typing import Callable

import numpy as np

from hum.errors import TransposeError

# ── Tuning constants ────────────────────────────────────────────────────────
SAMPLE_RATE = 44_100          # samples per second of rendered audio
SEMITONES_PER_OCTAVE = 12
CONCERT_PITCH = 440.0         # An_4 in Hz
SEMITONE_RATIO = 2.0 ** (1.0 / SEMITONES_PER_OCTAVE)
LOWEST_OCTAVE = 0
HIGHEST_OCTAVE = 7

REST = "Rest"
OCTAVE_SEPARATOR = "_"
DOT = "+"

#: Pitch classes indexed from C. "n" marks a natural.
NOTES_SHARPS: tuple[str, ...] = (
    "Cn", "Cs", "Dn", "Ds", "En", "Fn", "Fs", "Gn", "Gs", "An", "As", "Bn",
)
NOTES_FLATS: tuple[str, ...] = (
    "Cn", "Df", "Dn", "Ef", "En", "Fn", "Gf", "Gn", "Af", "An", "Bf", "Bn",
)

_SPELLINGS: dict[str, tuple[str, ...]] = {"sharps": NOTES_SHARPS, "flats": NOTES_FLATS}

# Linear semitone index of the anchor pitch An_4.
_ANCHOR_INDEX = 4 * SEMITONES_PER_OCTAVE + NOTES_SHARPS.index("An")

# MIDI note number of An_4.
_MIDI_ANCHOR = 69

Signal = Callable[[np.ndarray, float], np.ndarray]


def note_frequencies(style: str) -> dict[str, float]:
    """
    Build the frequency table for one spelling of the chromatic scale.

    Keys look like ``"Cs_4"``; ``"Rest"`` is always present and maps to NaN.

    Args:
        style: ``"sharps"`` or ``"flats"``.

    Raises:
        ValueError: For any other style.
    """
    try:
        names = _SPELLINGS[style]
    except KeyError:
        supported = ", ".join(sorted(_SPELLINGS))
        raise ValueError(f"Unknown spelling style '{style}'. Use one of: {supported}.") from None

    table: dict[str, float] = {}
    for octave in range(LOWEST_OCTAVE, HIGHEST_OCTAVE + 1):
        for pitch_index, name in enumerate(names):
            semitone_offset = octave * SEMITONES_PER_OCTAVE + pitch_index - _ANCHOR_INDEX
            table[f"{name}{OCTAVE_SEPARATOR}{octave}"] = CONCERT_PITCH * SEMITONE_RATIO ** semitone_offset
    table[REST] = math.nan
    return table


def standard_note_frequencies() -> dict[str, float]:
    """Sharp and flat tables merged, so either spelling resolves."""
    table = note_frequencies("sharps")
    table.update(note_frequencies("flats"))
    return table


def generate_wave(
    signal: Signal,
    frequency: float,
    duration: float,
    sample_rate: int = SAMPLE_RATE,
) -> np.ndarray:
    """
    Sample a periodic signal for ``duration`` seconds.

    Args:
        signal:      Callable ``signal(t, frequency)`` over an array of times.
        frequency:   Frequency in Hz (may be NaN for silence-style signals).
        duration:    Length in seconds; truncated to a whole number of samples.
        sample_rate: Samples per second.

    Returns:
        float64 array with values clamped to [-1, 1].
    """
    num_samples = max(0, int(sample_rate * duration))
    t = np.arange(num_samples, dtype=np.float64) / sample_rate
    return np.clip(signal(t, frequency), -1.0, 1.0)


def dot_multiplier(dots: int) -> float:
    """Length factor for a dotted note: 1, 1.5, 1.75, 1.875, ..."""
    return 2.0 - 2.0 ** -dots


def parse_note_length(noun: str) -> tuple[float, float, int]:
    """
    Split a note noun such as ``"1/4++"`` into (numerator, denominator, dots).

    Raises:
        ValueError: If the fraction is malformed or its denominator is zero.
    """
    dots = noun.count(DOT)
    parts = noun.replace(DOT, "").split("/")
    if len(parts) != 2:
        raise ValueError(f"Note length '{noun}' is not a fraction.")
    numerator, denominator = float(parts[0]), float(parts[1])
    if denominator == 0:
        raise ValueError(f"Note length '{noun}' has a zero denominator.")
    return numerator, denominator, dots


def split_note_name(note: str) -> tuple[str, int] | None:
    """Split ``"Cs_4"`` into ``("Cs", 4)``; None if it is not name_octave."""
    parts = note.split(OCTAVE_SEPARATOR)
    if len(parts) != 2:
        return None
    try:
        octave = int(parts[1])
    except ValueError:
        return None
    return parts[0], octave


def transpose(pitch_class: str, octave: int, delta: int) -> tuple[str, int]:
    """
    Move a pitch by ``delta`` semitones.

    The result keeps the spelling family of the input (a flat stays in the flat
    table, anything found in the sharp table stays there).

    Args:
        pitch_class: e.g. ``"Cs"`` or ``"Df"``.
        octave:      Scientific octave number.
        delta:       Semitones to move, positive or negative.

    Returns:
        ``(pitch_class, octave)`` of the transposed note.

    Raises:
        TransposeError: If the pitch class is unknown or the result leaves
            the ``LOWEST_OCTAVE``..``HIGHEST_OCTAVE`` range.
    """
    if len(NOTES_SHARPS) != len(NOTES_FLATS):
        raise TransposeError("Inconsistent note name tables")

    if pitch_class in NOTES_SHARPS:
        names = NOTES_SHARPS
    elif pitch_class in NOTES_FLATS:
        names = NOTES_FLATS
    else:
        raise TransposeError(f"Invalid note name '{pitch_class}'")

    new_index = octave * SEMITONES_PER_OCTAVE + names.index(pitch_class) + delta
    if new_index < 0:
        raise TransposeError("Transposition too low")

    new_octave, new_pitch = divmod(new_index, SEMITONES_PER_OCTAVE)
    if not LOWEST_OCTAVE <= new_octave <= HIGHEST_OCTAVE:
        raise TransposeError("Transposition out of octave range")

    return names[new_pitch], new_octave


def frequency_to_midi(frequency: float) -> int:
    """Nearest MIDI note number for a frequency in Hz."""
    return int(round(_MIDI_ANCHOR + SEMITONES_PER_OCTAVE * math.log2(frequency / CONCERT_PITCH)))
