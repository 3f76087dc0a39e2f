"""External-player previews and the small scores they play."""

from __future__ import annotations

import logging
import subprocess
from pathlib import Path
from typing import Sequence

from hum.addressing import (
    MEASURE_CHAR,
    RESET_CHAR,
    VOICE_PREFIX,
    is_checkpoint_line,
    is_tempo_line,
    is_time_signature_line,
    is_voice_line,
)
from hum.buffer import TextBuffer

logger = logging.getLogger(__name__)

DEFAULT_PREVIEW_HEADER = "[ 120_bpm ][ 4/4 ]"
STOP_TIMEOUT = 2.0  # seconds to wait for a killed player to exit


class PreviewPlayer:
    """
    Plays WAV files through an external command, one at a time.

    Starting a preview kills whatever was still playing, so at most one
    player process is alive. Usable as a context manager; leaving the block
    kills the live process.
    """

    def __init__(self, command: Sequence[str]) -> None:
        """
        Args:
            command: Player argument list, e.g. ``["aplay"]``. The WAV path is
                     appended as the last argument.
        """
        self.command = list(command)
        self._process: subprocess.Popen | None = None

    def __enter__(self) -> PreviewPlayer:
        return self

    def __exit__(self, *_: object) -> None:
        self.close()

    @property
    def is_playing(self) -> bool:
        return self._process is not None and self._process.poll() is None

    def start(self, path: str | Path) -> None:
        """
        Stop the current preview and play ``path`` without waiting for it.

        Raises:
            OSError: If the player command cannot be launched.
        """
        self.stop()
        self._process = subprocess.Popen(
            [*self.command, str(path)],
            stdout=subprocess.DEVNULL,
            stderr=subprocess.DEVNULL,
        )
        logger.info(f"Preview started (pid {self._process.pid}): {path}")

    def stop(self) -> bool:
        """Kill the live player. Returns True if there was one."""
        process, self._process = self._process, None
        if process is None:
            return False

        try:
            process.kill()
            process.wait(timeout=STOP_TIMEOUT)
        except ProcessLookupError:
            pass  # Already gone
        except subprocess.TimeoutExpired:
            logger.warning(f"Preview process {process.pid} did not exit after kill")
        return True

    def close(self) -> None:
        self.stop()


# ── Preview scores ──────────────────────────────────────────────────────────

def note_preview_score(note: str, voice: str) -> str:
    """One-note score at 120 BPM in 4/4: ``[ 120_bpm ][ 4/4 ] % sine | (Cn_4 1/4) ;``."""
    return f"{DEFAULT_PREVIEW_HEADER} {VOICE_PREFIX}{voice} {MEASURE_CHAR} {note} {RESET_CHAR}"


def _context_header(buffer: TextBuffer, end_line: int) -> str:
    """Latest tempo, time signature and voice lines above ``end_line``, in document order."""
    context_lines: list[str] = []
    found_tempo = found_time = found_voice = False

    for line_index in range(end_line - 1, -1, -1):
        if found_tempo and found_time and found_voice:
            break

        line = buffer.line(line_index)
        stripped = line.strip()
        useful = False
        if not found_tempo and is_tempo_line(stripped):
            found_tempo = useful = True
        if not found_time and is_time_signature_line(stripped):
            found_time = useful = True
        if not found_voice and is_voice_line(stripped):
            found_voice = useful = True
        if useful:
            context_lines.append(line)

    context_lines.reverse()
    return "".join(context_lines)


def last_checkpoint_line(buffer: TextBuffer, cursor: int) -> int | None:
    """Index of the closest checkpoint line at or above the cursor's line."""
    for line_index in range(buffer.char_to_line(cursor), -1, -1):
        if is_checkpoint_line(buffer.line(line_index)):
            return line_index
    return None


def section_preview_score(text: str, cursor: int) -> str:
    """
    Score for playing from the section the cursor is in.

    The section starts at the closest checkpoint line at or above the cursor
    and runs to the end of the document. Tempo, time signature and voice are
    recovered from the lines above it so the section sounds as it does in
    context. With no checkpoint above the cursor the whole text is returned.
    """
    buffer = TextBuffer(text)
    checkpoint = last_checkpoint_line(buffer, cursor)
    if checkpoint is None:
        return text

    header = _context_header(buffer, checkpoint)
    return header + buffer.slice(buffer.line_to_char(checkpoint))
