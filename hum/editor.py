"""EditorSession: modal editing state, undo history and preview playback for one score."""

from __future__ import annotations

import enum
import functools
import logging
from pathlib import Path
from typing import Callable, TypeVar

from hum import audio_io
from hum.addressing import (
    CHECKPOINT_CHAR,
    MEASURE_CHAR,
    NOTE_DOT_CHAR,
    NOTE_START_CHAR,
    RESET_CHAR,
    VOICE_PREFIX,
    construct_note_text,
    note_range_at,
    pitch_range_at,
    voice_at,
    word_range_at,
)
from hum.buffer import Snapshot, TextBuffer
from hum.config import EditorConfig
from hum.errors import FileSaveError, HumError, TransposeError
from hum.formatter import format_text
from hum.music_math import HIGHEST_OCTAVE, LOWEST_OCTAVE, REST, split_note_name, transpose
from hum.preview import PreviewPlayer, note_preview_score, section_preview_score

logger = logging.getLogger(__name__)

TAB_STRING = "    "
NOTE_SPACING = "  "  # gap left after an inserted note or rest

FULL_PLAYBACK_FILENAME = "hum_full_playback.wav"
SECTION_PREVIEW_FILENAME = "hum_section_preview.wav"
NOTE_PREVIEW_FILENAME = "hum_note_preview.wav"

MSG_PLAYBACK_STOPPED = "Playback stopped."
MSG_NO_FILENAME = "No filename specified"
MSG_PLAYING_FILE = "Playing file..."
MSG_PLAYING_SECTION = "Playing section..."
MSG_PLAYING_NOTE = "Playing note..."

F = TypeVar("F", bound=Callable[..., object])


class Mode(enum.Enum):
    NORMAL = "normal"
    INSERT = "insert"


def _undoable(method: F) -> F:
    """Snapshot text and cursor before the edit and drop the redo history."""

    @functools.wraps(method)
    def wrapper(self: EditorSession, *args: object, **kwargs: object) -> object:
        self.save_snapshot()
        return method(self, *args, **kwargs)

    return wrapper  # type: ignore[return-value]


def split_duration_setting(duration: str) -> tuple[str, str]:
    """``"1/4++"`` → ``("1/4", "++")``: the fraction and its trailing dots."""
    index = duration.find(NOTE_DOT_CHAR)
    if index == -1:
        return duration, ""
    return duration[:index], duration[index:]


class EditorSession:
    """
    Editing state for one Hum document.

    Edits that change the text push a ``(snapshot, cursor)`` pair onto the
    undo stack first and clear the redo stack. Settings changes and cursor
    movement do not. Every user-visible outcome, including failures that do
    not stop the session, is reported through ``message``.

    The session owns a PreviewPlayer; use it as a context manager (or call
    ``close``) so no preview keeps playing after the session ends:

        with EditorSession.open("song.hum") as session:
            session.insert_note("c")
            session.save_file()
    """

    def __init__(
        self,
        text: str = "",
        filename: str | Path | None = None,
        config: EditorConfig | None = None,
        player: PreviewPlayer | None = None,
    ) -> None:
        """
        Args:
            text:     Initial buffer contents.
            filename: File that ``save_file`` writes to.
            config:   Session settings; defaults to the environment's.
            player:   Preview player; defaults to one running
                      ``config.playback_command``.
        """
        self.config = config if config is not None else EditorConfig.from_environment()
        self.player = player if player is not None else PreviewPlayer(self.config.playback_command)
        self.buffer = TextBuffer(text)
        self.filename = Path(filename) if filename is not None else None
        self.cursor = 0
        self.mode = Mode.NORMAL
        self.message = ""
        self.current_octave = self.config.default_octave
        self.current_duration = self.config.default_duration
        self.undo_stack: list[tuple[Snapshot, int]] = []
        self.redo_stack: list[tuple[Snapshot, int]] = []

    @classmethod
    def open(
        cls,
        filename: str | Path,
        config: EditorConfig | None = None,
        player: PreviewPlayer | None = None,
    ) -> EditorSession:
        """
        Start a session on ``filename``.

        A missing file gives an empty buffer that will be created on save.
        Any other OS error propagates.
        """
        path = Path(filename)
        try:
            text = audio_io.read_score(path)
        except FileNotFoundError:
            session = cls("", filename=path, config=config, player=player)
            session.message = f"New file: {path}"
            return session
        return cls(text, filename=path, config=config, player=player)

    def __enter__(self) -> EditorSession:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    def close(self) -> None:
        self.player.close()

    @property
    def text(self) -> str:
        return self.buffer.text

    # ------------------------------------------------------------------
    # Private helpers
    # ------------------------------------------------------------------

    def _current_line_index(self) -> int:
        return self.buffer.char_to_line(self.cursor)

    def _current_eol(self) -> int:
        """Offset just past the current line, including its newline."""
        line_index = self._current_line_index()
        return self.buffer.line_to_char(line_index) + len(self.buffer.line(line_index))

    def _insert_snippet(self, snippet: str) -> None:
        self.buffer.insert(self.cursor, snippet)
        self.cursor += len(snippet)
        self.message = f"Inserted snippet: '{snippet.strip()}'"

    def _insert_new_line_below(self) -> None:
        line = self.buffer.line(self._current_line_index())
        eol = self._current_eol()
        self.buffer.insert(eol, "\n")
        self.cursor = eol if line.endswith("\n") else eol + 1

    def _prepare_empty_line(self) -> None:
        """Clear the current line if it is blank, else open a new line below."""
        line_index = self._current_line_index()
        line = self.buffer.line(line_index)

        if line.strip():
            self._insert_new_line_below()
            return

        start = self.buffer.line_to_char(line_index)
        remove_length = len(line) - 1 if line.endswith("\n") else len(line)
        if remove_length > 0:
            self.buffer.remove(start, start + remove_length)
        self.cursor = start

    def _note_text(self, pitch: str) -> str:
        fraction, dots = split_duration_setting(self.current_duration)
        if pitch == REST:
            return f"({REST} {fraction}){dots}"
        return construct_note_text(pitch, self.current_octave, fraction, dots)

    def _play_score(self, score: str, wav_name: str, message: str) -> None:
        wav_path = Path(self.config.temp_dir) / wav_name
        try:
            audio_io.convert_to_wav(score, wav_path)
        except HumError as exc:
            self.message = f"Error converting: {exc}"
            return

        self.stop_playback()
        self.message = message
        try:
            self.player.start(wav_path)
        except OSError as exc:
            self.message = f"Error playing: {exc}"

    # ------------------------------------------------------------------
    # Undo history
    # ------------------------------------------------------------------

    def save_snapshot(self) -> None:
        self.undo_stack.append((self.buffer.snapshot(), self.cursor))
        self.redo_stack.clear()

    def undo(self) -> None:
        if not self.undo_stack:
            self.message = "Already at oldest change"
            return
        snapshot, cursor = self.undo_stack.pop()
        self.redo_stack.append((self.buffer.snapshot(), self.cursor))
        self.buffer.restore(snapshot)
        self.cursor = cursor
        self.message = "Undo"

    def redo(self) -> None:
        if not self.redo_stack:
            self.message = "Already at newest change"
            return
        snapshot, cursor = self.redo_stack.pop()
        self.undo_stack.append((self.buffer.snapshot(), self.cursor))
        self.buffer.restore(snapshot)
        self.cursor = cursor
        self.message = "Redo"

    # ------------------------------------------------------------------
    # Text edits
    # ------------------------------------------------------------------

    @_undoable
    def insert_char(self, char: str) -> None:
        self.buffer.insert(self.cursor, char)
        self.cursor += len(char)

    @_undoable
    def delete_char(self) -> None:
        """Backspace: remove the character before the cursor."""
        if self.cursor > 0:
            self.buffer.remove(self.cursor - 1, self.cursor)
            self.cursor -= 1

    @_undoable
    def insert_snippet(self, snippet: str) -> None:
        self._insert_snippet(snippet)

    @_undoable
    def insert_tab(self) -> None:
        self._insert_snippet(TAB_STRING)

    @_undoable
    def insert_new_line_below(self) -> None:
        self._insert_new_line_below()

    @_undoable
    def delete_line(self) -> None:
        line_index = self._current_line_index()
        start = self.buffer.line_to_char(line_index)
        if line_index + 1 < self.buffer.line_count():
            end = self.buffer.line_to_char(line_index + 1)
        else:
            end = len(self.buffer)

        self.buffer.remove(start, end)
        self.cursor = min(self.cursor, len(self.buffer))
        self.message = "Deleted line"

    @_undoable
    def append_reset_and_newline(self) -> None:
        """End the current line with ``;`` and open a new line below."""
        line_index = self._current_line_index()
        line = self.buffer.line(line_index)
        insert_at = self.buffer.line_to_char(line_index) + len(line.rstrip("\n"))

        self.buffer.insert(insert_at, RESET_CHAR)
        self.cursor = insert_at + 1
        self._insert_new_line_below()
        self.message = "Inserted reset and newline"

    @_undoable
    def insert_checkpoint_line(self, length: int | None = None) -> None:
        """
        Insert a checkpoint line with a blank line above it and move below it.

        Args:
            length: Number of ``*``; defaults to ``config.checkpoint_length``.
        """
        length = self.config.checkpoint_length if length is None else length
        self._prepare_empty_line()

        line_index = self._current_line_index()
        if line_index > 0 and self.buffer.line(line_index - 1).strip():
            self._insert_new_line_below()

        self._insert_snippet(CHECKPOINT_CHAR * length)
        self._insert_new_line_below()
        self._insert_new_line_below()
        self.message = "Inserted checkpoint"

    @_undoable
    def insert_voice_command(self) -> None:
        """Start a ``% `` line and switch to insert mode for the voice name."""
        self._prepare_empty_line()
        self._insert_snippet(VOICE_PREFIX)
        self.mode = Mode.INSERT
        self.message = "Enter voice name"

    @_undoable
    def format_file(self) -> None:
        self.buffer.set_text(format_text(self.buffer.text))
        self.cursor = min(self.cursor, len(self.buffer))
        self.message = "Formatted file"

    # ------------------------------------------------------------------
    # Note edits
    # ------------------------------------------------------------------

    @_undoable
    def insert_note(self, note_char: str) -> None:
        """
        Insert a natural note at the current octave and duration, then play it.

        Args:
            note_char: Letter ``a`` to ``g`` (either case).
        """
        note = self._note_text(f"{note_char.upper()}n")
        self._insert_snippet(note + NOTE_SPACING)
        self.play_note(note)

    @_undoable
    def insert_rest(self) -> None:
        self._insert_snippet(self._note_text(REST) + NOTE_SPACING)

    @_undoable
    def delete_note(self) -> None:
        """Delete the note (or else the word) under the cursor and one following space."""
        found = note_range_at(self.buffer.text, self.cursor) or word_range_at(self.buffer.text, self.cursor)
        if found is None:
            return

        start, end = found
        removed = self.buffer.slice(start, end)
        self.buffer.remove(start, end)
        if start < len(self.buffer) and self.buffer.char(start) == " ":
            self.buffer.remove(start, start + 1)

        self.cursor = start
        self.message = f"Deleted {removed}"

    @_undoable
    def transpose_note(self, delta: int) -> None:
        """
        Move the pitch under the cursor by ``delta`` semitones and play it.

        The spelling family is kept (``Df`` stays flat). Failures leave the
        text untouched and only set the message.
        """
        found = pitch_range_at(self.buffer.text, self.cursor)
        if found is None:
            return

        start, end = found
        parts = split_note_name(self.buffer.slice(start, end))
        if parts is None:
            self.message = "Failed to parse note for transposition"
            return

        try:
            name, octave = transpose(parts[0], parts[1], delta)
        except TransposeError as exc:
            self.message = str(exc)
            return

        new_pitch = f"{name}_{octave}"
        self.buffer.remove(start, end)
        self.buffer.insert(start, new_pitch)
        self.message = f"Transposed to {new_pitch}"

        note_range = note_range_at(self.buffer.text, self.cursor)
        if note_range is not None:
            self.play_note(self.buffer.slice(*note_range))

    # ------------------------------------------------------------------
    # Entry settings
    # ------------------------------------------------------------------

    def set_duration(self, duration: str) -> None:
        self.current_duration = duration
        self.message = f"Duration: {duration}"

    def add_dot_to_duration(self) -> None:
        self.current_duration += NOTE_DOT_CHAR

    def remove_dot_from_duration(self) -> None:
        if self.current_duration.endswith(NOTE_DOT_CHAR):
            self.current_duration = self.current_duration[:-1]

    def increment_octave(self) -> None:
        if self.current_octave < HIGHEST_OCTAVE:
            self.current_octave += 1
            self.message = f"Octave: {self.current_octave}"

    def decrement_octave(self) -> None:
        if self.current_octave > LOWEST_OCTAVE:
            self.current_octave -= 1
            self.message = f"Octave: {self.current_octave}"

    # ------------------------------------------------------------------
    # Movement
    # ------------------------------------------------------------------

    def move_cursor_left(self) -> None:
        if self.cursor > 0:
            self.cursor -= 1

    def move_cursor_right(self) -> None:
        if self.cursor < len(self.buffer):
            self.cursor += 1

    def _move_to_line(self, target_line: int) -> None:
        line_index = self._current_line_index()
        column = self.cursor - self.buffer.line_to_char(line_index)
        # Stop before the target line's newline.
        target_length = len(self.buffer.line(target_line))
        self.cursor = self.buffer.line_to_char(target_line) + min(column, max(target_length - 1, 0))

    def move_cursor_up(self) -> None:
        line_index = self._current_line_index()
        if line_index > 0:
            self._move_to_line(line_index - 1)

    def move_cursor_down(self) -> None:
        line_index = self._current_line_index()
        if line_index < self.buffer.line_count() - 1:
            self._move_to_line(line_index + 1)

    def move_to_next_measure(self) -> None:
        """Jump to the next ``|``; without one, to the end of the current line."""
        position = self.buffer.text.find(MEASURE_CHAR, self.cursor + 1)
        if position != -1:
            self.cursor = position
            return

        line_index = self._current_line_index()
        self.cursor = self.buffer.line_to_char(line_index) + len(self.buffer.line(line_index).rstrip("\n"))
        self.message = "Moved to end of line"

    def move_to_prev_measure(self) -> None:
        """Jump to the previous ``|``; without one, to the start of the current line."""
        if self.cursor == 0:
            return

        position = self.buffer.text.rfind(MEASURE_CHAR, 0, self.cursor)
        if position != -1:
            self.cursor = position
            return

        self.cursor = self.buffer.line_to_char(self._current_line_index())
        self.message = "Moved to start of line"

    def move_to_next_note(self) -> None:
        position = self.buffer.text.find(NOTE_START_CHAR, self.cursor + 1)
        if position == -1:
            self.message = "No next note found"
            return
        self.cursor = position

    def move_to_prev_note(self) -> None:
        if self.cursor == 0:
            return

        position = self.buffer.text.rfind(NOTE_START_CHAR, 0, self.cursor)
        if position == -1:
            self.message = "No previous note found"
            return
        self.cursor = position

    # ------------------------------------------------------------------
    # Files and playback
    # ------------------------------------------------------------------

    def save_file(self) -> None:
        """
        Write the buffer verbatim to ``filename``.

        Raises:
            FileSaveError: If the file cannot be written.
        """
        if self.filename is None:
            self.message = MSG_NO_FILENAME
            return

        try:
            self.filename.write_text(self.buffer.text, encoding="utf-8")
        except OSError as exc:
            raise FileSaveError(f"Cannot save '{self.filename}': {exc}") from exc

        self.message = f"Saved to {self.filename}"
        logger.info(f"Saved {len(self.buffer)} characters to {self.filename}")

    def play_file(self) -> None:
        self._play_score(self.buffer.text, FULL_PLAYBACK_FILENAME, MSG_PLAYING_FILE)

    def play_from_cursor(self) -> None:
        """Play from the checkpoint above the cursor, with its tempo, time and voice."""
        score = section_preview_score(self.buffer.text, self.cursor)
        self._play_score(score, SECTION_PREVIEW_FILENAME, MSG_PLAYING_SECTION)

    def play_note(self, note: str) -> None:
        """Play one note token in the voice active at the cursor."""
        voice = voice_at(self.buffer.text, self.cursor)
        self._play_score(note_preview_score(note, voice), NOTE_PREVIEW_FILENAME, MSG_PLAYING_NOTE)

    def stop_playback(self) -> None:
        if self.player.stop():
            self.message = MSG_PLAYBACK_STOPPED
