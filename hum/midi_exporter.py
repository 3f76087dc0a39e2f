"""MidiExporter: Converts rendered Hum note events into a multi-track MIDI file."""

from __future__ import annotations

import logging
from pathlib import Path

from midiutil import MIDIFile

from hum.interpreter import NoteEvent
from hum.music_math import frequency_to_midi

logger = logging.getLogger(__name__)

# In midiutil Format 1 MIDI, track 0 is the conductor/tempo track.
# Voice tracks start at 1, in order of first appearance.
TRACK_CONDUCTOR = 0  # Tempo only, never receives notes
FIRST_VOICE_TRACK = 1

PERCUSSION_CHANNEL = 9  # General MIDI reserves channel 10 for drums
MIDI_CHANNELS = 16

# General MIDI programs (0-based) closest to each oscillator's timbre
VOICE_PROGRAMS: dict[str, int] = {
    "sine": 79,      # Ocarina
    "square": 80,    # Lead 1 (square)
    "sawtooth": 81,  # Lead 2 (sawtooth)
}
DEFAULT_PROGRAM = VOICE_PROGRAMS["sine"]

MIDI_PITCH_MIN = 0
MIDI_PITCH_MAX = 127


class MidiExporter:
    """
    Writes a Standard MIDI File from the note events of a rendered score.

    Track layout (Format 1)
    -----------------------
    Track 0: conductor track (tempo only, no notes)

    Track 1..N: one track per voice name, in order of first appearance,
        named after the voice and given the General MIDI program closest to
        its oscillator. Each track gets its own channel, skipping the
        percussion channel.

    Rests are not written; the gap they leave is the rest.

    Timing
    ------
    Event start times and durations are in seconds and are converted to
    beats using: beats = seconds × (tempo / 60). Any constant tempo gives
    the same wall-clock timing, so the score's opening tempo is used only to
    make the beat grid line up for notation software.
    """

    DEFAULT_TEMPO = 60     # BPM; one beat per second, as the interpreter's default
    DEFAULT_VELOCITY = 80  # MIDI note-on velocity (0-127)

    def __init__(
        self,
        tempo: float = DEFAULT_TEMPO,
        velocity: int = DEFAULT_VELOCITY,
    ) -> None:
        """
        Args:
            tempo:    Tempo written to the conductor track, in BPM.
            velocity: Note-on velocity for every note.

        Raises:
            ValueError: If ``tempo`` is not positive.
        """
        if tempo <= 0:
            raise ValueError(f"MIDI tempo must be positive, got {tempo}.")
        self.tempo = tempo
        self.velocity = velocity

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _seconds_to_beats(self, seconds: float) -> float:
        """Convert a time in seconds to beats at the current tempo."""
        return seconds * (self.tempo / 60.0)

    @staticmethod
    def _voice_order(events: list[NoteEvent]) -> list[str]:
        voices: list[str] = []
        for event in events:
            if event.voice not in voices:
                voices.append(event.voice)
        return voices

    @staticmethod
    def _channel_for(voice_index: int) -> int:
        melodic = [ch for ch in range(MIDI_CHANNELS) if ch != PERCUSSION_CHANNEL]
        return melodic[voice_index % len(melodic)]

    # ------------------------------------------------------------------
    # Public API
    # ------------------------------------------------------------------

    def export(self, events: list[NoteEvent], output_path: str | Path) -> None:
        """
        Render note events to a Standard MIDI File (SMF format 1).

        Args:
            events:      Note events from an interpreter run.
            output_path: Destination file path (e.g. "output.mid").

        Raises:
            OSError: If the output file cannot be opened for writing.
        """
        voices = self._voice_order(events)
        midi = MIDIFile(numTracks=FIRST_VOICE_TRACK + len(voices), removeDuplicates=False, deinterleave=False)

        # --- Track 0: conductor (tempo only) ---
        midi.addTempo(TRACK_CONDUCTOR, 0, self.tempo)

        # --- Tracks 1..N: one per voice ---
        tracks: dict[str, tuple[int, int]] = {}
        for index, voice in enumerate(voices):
            track = FIRST_VOICE_TRACK + index
            channel = self._channel_for(index)
            midi.addTrackName(track, 0, voice)
            midi.addProgramChange(track, channel, 0, VOICE_PROGRAMS.get(voice, DEFAULT_PROGRAM))
            tracks[voice] = (track, channel)

        written = 0
        for event in events:
            if event.is_rest or event.duration <= 0:
                continue

            pitch = min(max(frequency_to_midi(event.frequency), MIDI_PITCH_MIN), MIDI_PITCH_MAX)
            track, channel = tracks[event.voice]
            midi.addNote(
                track=track,
                channel=channel,
                pitch=pitch,
                time=self._seconds_to_beats(event.start_time),
                duration=self._seconds_to_beats(event.duration),
                volume=self.velocity,
            )
            written += 1

        with open(output_path, "wb") as f:
            midi.writeFile(f)

        logger.info(f"Wrote {written} note(s) on {len(voices)} voice track(s) to {output_path}")
