"""Interpreter: replays parsed Hum commands into a mixed master track."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field
from typing import Callable, Iterable

import numpy as np

from hum import grammar
from hum.errors import GenerateError
from hum.grammar import Command
from hum.music_math import SAMPLE_RATE, dot_multiplier, generate_wave, parse_note_length, standard_note_frequencies
from hum.oscillators import DEFAULT_VOICE, SILENCE, get_oscillator

logger = logging.getLogger(__name__)

SECONDS_PER_MINUTE = 60.0


@dataclass
class PlaybackState:
    """
    Transport state threaded through every command handler.

    Attributes:
        beats_per_second:           Tempo; 1.0 is 60 BPM.
        measure_index:              Measure being written, from 0. Starts at -1
                                    so the first ``|`` lands on measure 0.
        measure_greatest:           Highest measure index seen; never decreases.
        checkpoint_index:           Measure that follows the latest checkpoint.
        time_signature:             Numerator / denominator of ``[ N/D ]``.
        beats_per_measure:          Numerator of ``[ N/D ]``.
        measure_duration:           Seconds per measure.
        timestamp_at_measure_start: Seconds from track start to this measure.
        offset_in_measure:          Seconds already filled in this measure.
        voice:                      Active voice name.
    """

    beats_per_second: float = 1.0
    measure_index: int = -1
    measure_greatest: int = -1
    checkpoint_index: int = -1
    time_signature: float = 1.0
    beats_per_measure: float = 4.0
    measure_duration: float = 4.0
    timestamp_at_measure_start: float = 0.0
    offset_in_measure: float = 0.0
    voice: str = DEFAULT_VOICE


@dataclass(frozen=True)
class NoteEvent:
    """
    A note or rest as placed on the timeline.

    Attributes:
        name:          Verb of the note command, e.g. ``"Cs_4"`` or ``"Rest"``.
        frequency:     Hz; NaN for rests.
        voice:         Voice active when the note was placed.
        start_time:    Seconds from the start of the track.
        duration:      Seconds.
        measure_index: Measure the note belongs to.
    """

    name: str
    frequency: float
    voice: str
    start_time: float
    duration: float
    measure_index: int

    @property
    def is_rest(self) -> bool:
        return math.isnan(self.frequency)


class MasterTrack:
    """
    Mono sample buffer that grows with zeros and mixes notes additively.

    Storage capacity at least doubles whenever a note runs past it, so
    appending notes costs amortized constant time per sample.
    """

    def __init__(self) -> None:
        self._buffer = np.zeros(0, dtype=np.float64)
        self._length = 0

    def __len__(self) -> int:
        return self._length

    def _reserve(self, size: int) -> None:
        if size <= len(self._buffer):
            return
        grown = np.zeros(max(size, 2 * len(self._buffer)), dtype=np.float64)
        grown[:self._length] = self._buffer[:self._length]
        self._buffer = grown

    def mix(self, start: int, samples: np.ndarray) -> None:
        """Add ``samples`` into the track starting at sample ``start``."""
        end = start + len(samples)
        self._reserve(end)
        self._buffer[start:end] += samples
        self._length = max(self._length, end)

    @property
    def samples(self) -> np.ndarray:
        """The mixed track, trimmed to the end of the last note."""
        return self._buffer[:self._length]


@dataclass
class Performance:
    """Everything one interpreter run produced."""

    track: np.ndarray
    events: list[NoteEvent] = field(default_factory=list)
    sample_rate: int = SAMPLE_RATE

    @property
    def duration(self) -> float:
        """Length of the rendered track in seconds."""
        return len(self.track) / self.sample_rate


class Interpreter:
    """
    Turns a command list into audio by replaying it against a PlaybackState.

    Timeline model
    --------------
    Measures are fixed-length slots: measure ``i`` starts at
    ``measure_duration × i``. Notes inside a measure are laid end to end from
    the start of the measure. Several voices share measures by rewinding:

    - ``*`` (checkpoint) remembers the measure after the furthest one written.
    - ``;`` (reset) rewinds so the next ``|`` lands on that measure again.

    Note duration
    -------------
    ``measure_duration × (n/d) / time_signature × (2 − 2^−dots)``

    Failure policy
    --------------
    Any malformed literal or unknown note raises GenerateError and the whole
    run is abandoned; no partial track is returned.
    """

    DEFAULT_VOLUME = 0.05  # per-note gain before mixing

    def __init__(self, sample_rate: int = SAMPLE_RATE, volume: float = DEFAULT_VOLUME) -> None:
        """
        Args:
            sample_rate: Samples per second of the rendered track.
            volume:      Gain applied to every note before it is mixed in.
        """
        self.sample_rate = sample_rate
        self.volume = volume
        self.note_frequencies = standard_note_frequencies()
        self._handlers: dict[str, Callable[[PlaybackState, str], None]] = {
            grammar.COMMENT: self._on_comment,
            grammar.TEMPO: self._on_tempo,
            grammar.TIME: self._on_time,
            grammar.CHECKPOINT: self._on_checkpoint,
            grammar.VOICE: self._on_voice,
            grammar.MEASURE: self._on_measure,
            grammar.RESET: self._on_reset,
        }

    # ------------------------------------------------------------------
    # Command handlers
    # ------------------------------------------------------------------

    def _on_comment(self, state: PlaybackState, noun: str) -> None:
        pass

    def _on_tempo(self, state: PlaybackState, noun: str) -> None:
        try:
            bpm = float(noun)
        except ValueError:
            raise GenerateError(f"Invalid tempo '{noun}'") from None
        state.beats_per_second = bpm / SECONDS_PER_MINUTE

    def _on_time(self, state: PlaybackState, noun: str) -> None:
        parts = noun.split("/")
        try:
            numerator, denominator = (float(part) for part in parts)
        except ValueError:
            raise GenerateError(f"Invalid time signature '{noun}'") from None
        if denominator == 0 or state.beats_per_second == 0:
            raise GenerateError(f"Time signature '{noun}' cannot be used at this tempo")

        state.time_signature = numerator / denominator
        # Beats per measure follow the numerator.
        state.beats_per_measure = numerator
        state.measure_duration = state.beats_per_measure / state.beats_per_second

    def _on_checkpoint(self, state: PlaybackState, noun: str) -> None:
        state.checkpoint_index = state.measure_greatest + 1
        state.measure_index = state.measure_greatest

    def _on_voice(self, state: PlaybackState, noun: str) -> None:
        state.voice = noun

    def _on_measure(self, state: PlaybackState, noun: str) -> None:
        state.measure_index += 1
        state.timestamp_at_measure_start = state.measure_duration * state.measure_index
        state.offset_in_measure = 0.0
        state.measure_greatest = max(state.measure_greatest, state.measure_index)

    def _on_reset(self, state: PlaybackState, noun: str) -> None:
        state.measure_index = state.checkpoint_index - 1

    def _on_note(self, state: PlaybackState, command: Command, track: MasterTrack) -> NoteEvent:
        frequency = self.note_frequencies.get(command.verb)
        if frequency is None:
            raise GenerateError(f"There is no note named {command.verb}.")

        try:
            numerator, denominator, dots = parse_note_length(command.noun)
        except ValueError as exc:
            raise GenerateError(str(exc)) from None
        if state.time_signature == 0:
            raise GenerateError("Notes cannot be placed in a 0/N time signature")

        fraction_of_measure = (numerator / denominator) / state.time_signature
        duration = state.measure_duration * fraction_of_measure * dot_multiplier(dots)
        position = state.timestamp_at_measure_start + state.offset_in_measure

        event = NoteEvent(
            name=command.verb,
            frequency=frequency,
            voice=state.voice,
            start_time=position,
            duration=duration,
            measure_index=state.measure_index,
        )
        self._add_note_to_track(event, track)
        state.offset_in_measure += duration
        return event

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _add_note_to_track(self, event: NoteEvent, track: MasterTrack) -> None:
        oscillator = SILENCE if event.is_rest else get_oscillator(event.voice)
        wave = generate_wave(oscillator, event.frequency, event.duration, self.sample_rate)
        # Notes before the first measure would start at a negative time.
        start = max(0, int(event.start_time * self.sample_rate))
        track.mix(start, wave * self.volume)

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def run(self, commands: Iterable[Command]) -> Performance:
        """
        Render a command sequence.

        Args:
            commands: Parsed commands in document order.

        Returns:
            Performance with the master track and every placed note.

        Raises:
            GenerateError: On an unknown note or a malformed literal.
        """
        state = PlaybackState()
        track = MasterTrack()
        events: list[NoteEvent] = []

        for verb, noun in commands:
            handler = self._handlers.get(verb)
            if handler is not None:
                handler(state, noun)
            else:
                events.append(self._on_note(state, Command(verb, noun), track))

        logger.debug(
            f"Rendered {len(events)} note(s) over {state.measure_greatest + 1} measure(s), "
            f"{len(track)} samples"
        )
        return Performance(track=track.samples, events=events, sample_rate=self.sample_rate)


def run_commands(commands: Iterable[Command], sample_rate: int = SAMPLE_RATE) -> np.ndarray:
    """Render commands with default settings and return only the samples."""
    return Interpreter(sample_rate=sample_rate).run(commands).track
