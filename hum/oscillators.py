"""Oscillator: Strategy pattern for the periodic signals a voice can play."""

from __future__ import annotations

import logging
from abc import ABC, abstractmethod

import numpy as np

logger = logging.getLogger(__name__)

DEFAULT_VOICE = "sine"


class Oscillator(ABC):
    """
    Abstract stateless periodic signal.

    Concrete subclasses map an array of sample times (seconds) and a
    frequency (Hz) to amplitudes in [-1, 1]. Instances hold no state, so one
    instance can serve every note of every voice.
    """

    name: str = ""

    @abstractmethod
    def __call__(self, t: np.ndarray, frequency: float) -> np.ndarray:
        """
        Evaluate the signal.

        Args:
            t:         Sample times in seconds.
            frequency: Frequency in Hz.

        Returns:
            Amplitudes, same shape as ``t``.
        """


class Silence(Oscillator):
    """Zero everywhere; used for rests whatever the active voice."""

    name = "silence"

    def __call__(self, t: np.ndarray, frequency: float) -> np.ndarray:
        return np.zeros_like(t)


class Sine(Oscillator):
    name = "sine"

    def __call__(self, t: np.ndarray, frequency: float) -> np.ndarray:
        return np.sin(2.0 * np.pi * frequency * t)


class Square(Oscillator):
    """Sign of the sine at the same frequency; zero crossings count as +1."""

    name = "square"

    def __call__(self, t: np.ndarray, frequency: float) -> np.ndarray:
        return np.where(np.sin(2.0 * np.pi * frequency * t) >= 0.0, 1.0, -1.0)


class Sawtooth(Oscillator):
    """Rising ramp from -1 to 1 once per period, centred on t = 0."""

    name = "sawtooth"

    def __call__(self, t: np.ndarray, frequency: float) -> np.ndarray:
        phase = t * frequency
        return 2.0 * (phase - np.floor(0.5 + phase))


SILENCE = Silence()

OSCILLATORS: dict[str, Oscillator] = {
    osc.name: osc for osc in (SILENCE, Sine(), Square(), Sawtooth())
}


def get_oscillator(voice: str) -> Oscillator:
    """
    Return the oscillator for a voice name.

    Unknown names fall back to the default voice instead of failing.
    """
    oscillator = OSCILLATORS.get(voice)
    if oscillator is None:
        logger.debug(f"Unknown voice '{voice}', using '{DEFAULT_VOICE}'")
        return OSCILLATORS[DEFAULT_VOICE]
    return oscillator
