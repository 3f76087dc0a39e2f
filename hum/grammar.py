"""Grammar for Hum notation: text → ordered list of (verb, noun) commands."""

from __future__ import annotations

import string
from typing import Callable, NamedTuple

from hum.errors import ParseError

# ── Reserved verbs ──────────────────────────────────────────────────────────
COMMENT = "comment"
TEMPO = "tempo"
TIME = "time"
CHECKPOINT = "checkpoint"
VOICE = "voice"
MEASURE = "measure"
RESET = "reset"

RESERVED_VERBS: frozenset[str] = frozenset(
    {COMMENT, TEMPO, TIME, CHECKPOINT, VOICE, MEASURE, RESET}
)

# ── Character classes ───────────────────────────────────────────────────────
#: "-" is a spacing filler and counts as whitespace everywhere.
WHITESPACE: frozenset[str] = frozenset(" -\t\r\n")
INLINE_WHITESPACE: frozenset[str] = frozenset(" -\t\r")
NAME_CHARS: frozenset[str] = frozenset(string.ascii_letters + string.digits + "_")
DIGITS: frozenset[str] = frozenset(string.digits)
FRACTION_CHARS: frozenset[str] = DIGITS | {"/"}

DOT = "+"
TEMPO_SUFFIX = "_bpm"


class Command(NamedTuple):
    """One parsed instruction. Compares equal to a plain ``(verb, noun)`` tuple."""

    verb: str
    noun: str

    @property
    def is_note(self) -> bool:
        """True for notes and rests, i.e. any verb that is not reserved."""
        return self.verb not in RESERVED_VERBS


def is_reserved(verb: str) -> bool:
    """Return True if ``verb`` is one of the reserved command keywords."""
    return verb in RESERVED_VERBS


class _Parser:
    """
    Ordered-choice recursive descent parser over a single string.

    Each rule either returns a Command and leaves ``pos`` after the text it
    consumed, or returns None; the caller rewinds ``pos`` on None. The furthest
    position any rule reached is remembered so errors point at the real
    problem rather than at the start of the failing command.
    """

    def __init__(self, text: str) -> None:
        self.text = text
        self.pos = 0
        self._furthest = 0
        self._expected: set[str] = set()

    # ------------------------------------------------------------------
    # Entry point
    # ------------------------------------------------------------------

    def parse_score(self) -> list[Command]:
        commands: list[Command] = []
        while True:
            start = self.pos
            command = self._command()
            if command is None:
                self.pos = start
                break
            commands.append(command)

        self._skip(WHITESPACE)
        if self.pos < len(self.text):
            raise self._error()
        return commands

    # ------------------------------------------------------------------
    # Primitives
    # ------------------------------------------------------------------

    def _fail(self, expected: str) -> None:
        if self.pos > self._furthest:
            self._furthest = self.pos
            self._expected = {expected}
        elif self.pos == self._furthest:
            self._expected.add(expected)

    def _literal(self, literal: str) -> bool:
        if self.text.startswith(literal, self.pos):
            self.pos += len(literal)
            return True
        self._fail(repr(literal))
        return False

    def _skip(self, chars: frozenset[str]) -> int:
        start = self.pos
        while self.pos < len(self.text) and self.text[self.pos] in chars:
            self.pos += 1
        return self.pos - start

    def _take(self, chars: frozenset[str], label: str) -> str:
        """Consume one or more characters from ``chars``; empty string on failure."""
        start = self.pos
        if self._skip(chars) == 0:
            self._fail(label)
        return self.text[start:self.pos]

    def _rest_of_line(self) -> str:
        end = self.text.find("\n", self.pos)
        if end == -1:
            end = len(self.text)
        text = self.text[self.pos:end]
        # Consume the newline too, if there is one.
        self.pos = min(end + 1, len(self.text))
        return text

    def _error(self) -> ParseError:
        offset = max(self._furthest, self.pos)
        line = self.text.count("\n", 0, offset) + 1
        column = offset - (self.text.rfind("\n", 0, offset) + 1) + 1
        if offset < len(self.text):
            message = f"Unexpected character {self.text[offset]!r}"
        else:
            message = "Unexpected end of input"
        return ParseError(message, offset, line, column, tuple(sorted(self._expected)))

    # ------------------------------------------------------------------
    # Rules
    # ------------------------------------------------------------------

    def _command(self) -> Command | None:
        rules: tuple[Callable[[], Command | None], ...] = (
            self._comment,
            self._tempo,
            self._time,
            self._checkpoint,
            self._voice,
            self._measure,
            self._reset,
            self._note,
        )
        for rule in rules:
            start = self.pos
            command = rule()
            if command is not None:
                return command
            self.pos = start
        return None

    def _comment(self) -> Command | None:
        self._skip(WHITESPACE)
        if not self._literal("~"):
            return None
        return Command(COMMENT, self._rest_of_line().strip())

    def _tempo(self) -> Command | None:
        self._skip(WHITESPACE)
        if not self._literal("["):
            return None
        self._skip(WHITESPACE)
        bpm = self._take(DIGITS, "digit")
        if not bpm or not self._literal(TEMPO_SUFFIX):
            return None
        self._skip(WHITESPACE)
        if not self._literal("]"):
            return None
        self._skip(WHITESPACE)
        return Command(TEMPO, bpm)

    def _time(self) -> Command | None:
        self._skip(WHITESPACE)
        if not self._literal("["):
            return None
        self._skip(WHITESPACE)
        fraction = self._take(FRACTION_CHARS, "time signature")
        if not fraction:
            return None
        self._skip(WHITESPACE)
        if not self._literal("]"):
            return None
        self._skip(WHITESPACE)
        return Command(TIME, fraction)

    def _checkpoint(self) -> Command | None:
        self._skip(WHITESPACE)
        stars = self._take(frozenset("*"), "'*'")
        if not stars:
            return None
        self._skip(WHITESPACE)
        return Command(CHECKPOINT, stars)

    def _voice(self) -> Command | None:
        self._skip(WHITESPACE)
        if not self._literal("%"):
            return None
        self._skip(WHITESPACE)
        name = self._take(NAME_CHARS, "voice name")
        if not name:
            return None
        self._skip(WHITESPACE)
        return Command(VOICE, name)

    def _measure(self) -> Command | None:
        self._skip(WHITESPACE)
        if not self._literal("|"):
            return None
        self._skip(WHITESPACE)
        return Command(MEASURE, "|")

    def _reset(self) -> Command | None:
        self._skip(WHITESPACE)
        if not self._literal(";"):
            return None
        self._skip(INLINE_WHITESPACE)
        return Command(RESET, self._rest_of_line().strip())

    def _note(self) -> Command | None:
        self._skip(WHITESPACE)
        if not self._literal("("):
            return None
        self._skip(WHITESPACE)
        name = self._take(NAME_CHARS, "note name")
        if not name:
            return None
        if self._skip(WHITESPACE) == 0:
            self._fail("whitespace")
            return None
        length = self._take(FRACTION_CHARS, "note length")
        if not length:
            return None
        dots_inside = self._skip(frozenset(DOT))
        self._skip(WHITESPACE)
        if not self._literal(")"):
            return None
        dots_outside = self._skip(frozenset(DOT))
        self._skip(WHITESPACE)
        return Command(name, length + DOT * (dots_inside + dots_outside))


def parse(text: str) -> list[Command]:
    """
    Parse a whole Hum document.

    Args:
        text: Notation text, any number of lines.

    Returns:
        Commands in document order.

    Raises:
        ParseError: If any part of ``text`` is not valid notation.
    """
    return _Parser(text).parse_score()


def parse_line(line: str) -> list[Command]:
    """
    Parse a single line with the document grammar.

    A trailing newline is allowed; any other newline is rejected with
    ``ValueError`` because callers rely on one line in, one line's commands out.
    """
    body = line[:-1] if line.endswith("\n") else line
    if "\n" in body:
        raise ValueError("parse_line() expects a single line of text.")
    return _Parser(line).parse_score()
