"""Error types raised while parsing, rendering and saving Hum scores."""

from __future__ import annotations


class HumError(Exception):
    """Base class for every error Hum raises on purpose."""


class ParseError(HumError):
    """
    Malformed notation.

    Attributes:
        offset:   Character offset of the furthest position the parser reached.
        line:     1-based line number of ``offset``.
        column:   1-based column number of ``offset``.
        expected: Tokens that would have allowed parsing to continue there.
    """

    def __init__(
        self,
        message: str,
        offset: int,
        line: int,
        column: int,
        expected: tuple[str, ...] = (),
    ) -> None:
        super().__init__(message)
        self.offset = offset
        self.line = line
        self.column = column
        self.expected = expected

    def __str__(self) -> str:
        text = f"{self.args[0]} at line {self.line}, column {self.column}"
        if self.expected:
            text += f" (expected one of: {', '.join(self.expected)})"
        return text


class GenerateError(HumError):
    """A parsed command that cannot be turned into audio."""


class TransposeError(HumError):
    """A transposition that has no valid target pitch."""


class FileSaveError(HumError):
    """Writing a score, WAV or MIDI file failed."""


class PlaybackError(HumError):
    """The audio device or the external player failed."""
