"""Locate notes, pitches and words around a cursor by scanning characters."""

from __future__ import annotations

from hum.music_math import OCTAVE_SEPARATOR
from hum.oscillators import DEFAULT_VOICE

# ── Notation characters ─────────────────────────────────────────────────────
CHECKPOINT_CHAR = "*"
COMMENT_CHAR = "~"
MEASURE_CHAR = "|"
RESET_CHAR = ";"
NOTE_START_CHAR = "("
NOTE_END_CHAR = ")"
NOTE_DOT_CHAR = "+"
TEMPO_SUFFIX = "_bpm"
TIME_SIG_START = "["
TIME_SIG_SEPARATOR = "/"
TIME_SIG_END = "]"
VOICE_PREFIX = "% "

#: Maximum characters scanned in either direction when looking for a note.
SCAN_LIMIT = 100

Range = tuple[int, int]


# ── Line classifiers ────────────────────────────────────────────────────────

def is_comment_line(line: str) -> bool:
    return line.lstrip().startswith(COMMENT_CHAR)


def is_checkpoint_line(line: str) -> bool:
    return line.lstrip().startswith(CHECKPOINT_CHAR)


def is_tempo_line(line: str) -> bool:
    return TEMPO_SUFFIX in line


def is_time_signature_line(line: str) -> bool:
    return TIME_SIG_START in line and TIME_SIG_SEPARATOR in line and TIME_SIG_END in line


def is_voice_line(line: str) -> bool:
    return line.strip().startswith(VOICE_PREFIX.strip())


# ── Ranges around the cursor ────────────────────────────────────────────────

def note_range_at(text: str, cursor: int) -> Range | None:
    """
    Find the note token under the cursor.

    A note runs from ``(`` to the matching ``)`` plus any ``+`` dots right
    after it. Both scans stop after ``SCAN_LIMIT`` characters.

    Args:
        text:   Whole buffer contents.
        cursor: Character offset of the cursor.

    Returns:
        ``(start, end)`` with ``end`` exclusive, or None when the cursor is not
        on a note.
    """
    length = len(text)
    if not 0 <= cursor < length:
        return None

    start = cursor
    found_open = False
    for _ in range(SCAN_LIMIT):
        char = text[start]
        if char == NOTE_START_CHAR:
            found_open = True
            break
        # A ")" other than the one under the cursor closes some earlier note.
        if char == NOTE_END_CHAR and start != cursor:
            break
        if start == 0:
            break
        start -= 1

    if not found_open:
        return None

    end = start
    found_close = False
    for _ in range(SCAN_LIMIT):
        if end >= length:
            break
        char = text[end]
        end += 1
        if char == NOTE_END_CHAR:
            found_close = True
            break

    if not found_close:
        return None

    while end < length and text[end] == NOTE_DOT_CHAR:
        end += 1

    if start <= cursor < end:
        return start, end
    return None


def _is_word_char(char: str) -> bool:
    return char.isalnum() or char == "_"


def word_range_at(text: str, cursor: int) -> Range | None:
    """Maximal run of letters, digits and underscores under the cursor."""
    if not 0 <= cursor < len(text) or not _is_word_char(text[cursor]):
        return None

    start = cursor
    while start > 0 and _is_word_char(text[start - 1]):
        start -= 1

    end = cursor + 1
    while end < len(text) and _is_word_char(text[end]):
        end += 1

    return start, end


def pitch_range_at(text: str, cursor: int) -> Range | None:
    """
    Range of the pitch inside the note under the cursor.

    The pitch is everything between ``(`` and the first space, e.g. ``Cn_4``
    in ``(Cn_4 1/4)``.
    """
    note_range = note_range_at(text, cursor)
    if note_range is None:
        return None

    start, end = note_range
    note_text = text[start:end]
    content_start = note_text.index(NOTE_START_CHAR) + 1
    space = note_text.find(" ", content_start)
    if space == -1:
        return None
    return start + content_start, start + space


# ── Context lookups and builders ────────────────────────────────────────────

def voice_at(text: str, cursor: int) -> str:
    """Name of the voice set by the closest ``% name`` line at or above the cursor."""
    line_index = text.count("\n", 0, cursor)
    lines = text.split("\n")
    for line in reversed(lines[: line_index + 1]):
        if is_voice_line(line):
            parts = line.split()
            if len(parts) >= 2:
                return parts[1]
    return DEFAULT_VOICE


def construct_note_text(note_name: str, octave: int, duration: str, dots: str = "") -> str:
    """Build a note token: ``construct_note_text("Cn", 4, "1/4", "+") == "(Cn_4 1/4)+"``."""
    return f"{NOTE_START_CHAR}{note_name}{OCTAVE_SEPARATOR}{octave} {duration}{NOTE_END_CHAR}{dots}"
