"""Formatter: re-spaces Hum notation so simultaneous notes line up in columns."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass, field

from hum import grammar
from hum.addressing import (
    CHECKPOINT_CHAR,
    COMMENT_CHAR,
    MEASURE_CHAR,
    RESET_CHAR,
    is_checkpoint_line,
    is_comment_line,
)
from hum.errors import ParseError
from hum.grammar import Command
from hum.music_math import DOT, dot_multiplier

logger = logging.getLogger(__name__)

FLOAT_TOLERANCE = 1e-6
MIN_CHECKPOINT_LINE_LENGTH = 79
MIN_NOTE_PADDING = 2        # room for one space on each side of the dash filler
QUARTERS_PER_WHOLE_NOTE = 4.0
SPACES_AROUND_DASHES = 2


@dataclass
class Segment:
    """A ``[start, end)`` slice of a measure, in quarter notes, and its width in columns."""

    start: float
    end: float
    width: float = 0.0

    @property
    def midpoint(self) -> float:
        return (self.start + self.end) / 2.0

    def lies_within(self, start: float, end: float) -> bool:
        return start <= self.midpoint < end


@dataclass
class MeasureLayout:
    segments: list[Segment] = field(default_factory=list)

    def width_between(self, start: float, end: float) -> float:
        return sum(seg.width for seg in self.segments if seg.lies_within(start, end))


@dataclass(frozen=True)
class _NoteSlot:
    start: float
    duration: float
    min_width: float


# ── Note tokens ─────────────────────────────────────────────────────────────

def note_quarters(noun: str) -> float:
    """
    Length of a note noun in quarter notes, dots included.

    ``"1/4"`` → 1.0, ``"1/4+"`` → 1.5, ``"1/2++"`` → 3.5. Anything that is not
    a usable fraction counts as 0.
    """
    dots = noun.count(DOT)
    parts = noun.replace(DOT, "").split("/")
    if len(parts) != 2:
        return 0.0
    try:
        numerator = float(parts[0])
    except ValueError:
        numerator = 0.0
    try:
        denominator = float(parts[1])
    except ValueError:
        denominator = 1.0
    if denominator == 0:
        return 0.0
    return numerator / denominator * dot_multiplier(dots) * QUARTERS_PER_WHOLE_NOTE


def note_token(verb: str, noun: str) -> str:
    """Canonical note text with every dot moved outside: ``(Cn_4 1/4)++``."""
    dots = noun.count(DOT)
    return f"({verb} {noun.replace(DOT, '')}){DOT * dots}"


def note_min_width(verb: str, noun: str) -> float:
    return float(len(note_token(verb, noun)) + MIN_NOTE_PADDING)


# ── Blocks ──────────────────────────────────────────────────────────────────

def _split_lines(text: str) -> list[str]:
    """Split on ``\\n`` only, keeping line endings."""
    pieces = text.split("\n")
    lines = [piece + "\n" for piece in pieces[:-1]]
    if pieces[-1]:
        lines.append(pieces[-1])
    return lines


def identify_blocks(lines: list[str]) -> list[tuple[int, int]]:
    """``[start, end)`` line ranges between checkpoint lines."""
    blocks: list[tuple[int, int]] = []
    start = 0
    for index, line in enumerate(lines):
        if is_checkpoint_line(line):
            if index > start:
                blocks.append((start, index))
            start = index + 1
    if start < len(lines):
        blocks.append((start, len(lines)))
    return blocks


def _parse_or_none(line: str) -> list[Command] | None:
    try:
        return grammar.parse_line(line)
    except ParseError:
        return None


# ── Layout ──────────────────────────────────────────────────────────────────

def _collect_block_slots(lines: list[str]) -> list[list[_NoteSlot]]:
    """Note slots per measure index for every parsable line of a block."""
    measures: list[list[_NoteSlot]] = []

    for line in lines:
        commands = _parse_or_none(line)
        if commands is None:
            continue

        measure_index = -1
        current_time = 0.0
        for verb, noun in commands:
            if verb == grammar.MEASURE:
                measure_index += 1
                current_time = 0.0
            elif not grammar.is_reserved(verb):
                quarters = note_quarters(noun)
                if quarters <= 0:
                    continue
                # Notes before the first bar share measure 0.
                index = max(measure_index, 0)
                while index >= len(measures):
                    measures.append([])
                measures[index].append(_NoteSlot(current_time, quarters, note_min_width(verb, noun)))
                current_time += quarters

    return measures


def _cut_points(slots: list[_NoteSlot]) -> list[float]:
    points = [0.0]
    for slot in slots:
        points.append(slot.start)
        points.append(slot.start + slot.duration)
    points.sort()

    unique: list[float] = []
    for point in points:
        if not unique or abs(point - unique[-1]) >= FLOAT_TOLERANCE:
            unique.append(point)
    return unique


def layout_measure(slots: list[_NoteSlot]) -> MeasureLayout:
    """
    Skyline width distribution for one measure.

    Algorithm overview
    ------------------
    1. **Cut points**: every note start and end (plus 0) splits the measure
       into disjoint segments.

    2. **Shortest first**: notes are visited in order of increasing duration,
       so dense short notes claim width before long notes spanning them.

    3. **Deficit sharing**: if the segments under a note are narrower than
       the note needs, the missing width is spread over them in proportion to
       their duration. Widths only ever grow.
    """
    points = _cut_points(slots)
    segments = [Segment(start, end) for start, end in zip(points, points[1:])]

    for slot in sorted(slots, key=lambda s: s.duration):
        end = slot.start + slot.duration
        covered = [seg for seg in segments if seg.lies_within(slot.start, end)]
        current_width = sum(seg.width for seg in covered)
        total_duration = sum(seg.end - seg.start for seg in covered)

        if current_width < slot.min_width and total_duration > 0:
            deficit = slot.min_width - current_width
            for seg in covered:
                seg.width += deficit * (seg.end - seg.start) / total_duration

    return MeasureLayout(segments)


def layout_block(lines: list[str]) -> list[MeasureLayout]:
    return [layout_measure(slots) for slots in _collect_block_slots(lines)]


# ── Rendering ───────────────────────────────────────────────────────────────

def _reserved_text(verb: str, noun: str) -> str:
    if verb == grammar.MEASURE:
        return f"{MEASURE_CHAR} "
    if verb == grammar.RESET:
        return f"{RESET_CHAR} {noun}" if noun else RESET_CHAR
    if verb == grammar.VOICE:
        return f"% {noun} "
    if verb == grammar.TEMPO:
        return f"[ {noun}_bpm ] "
    if verb == grammar.TIME:
        return f"[ {noun} ] "
    if verb == grammar.COMMENT:
        return f"{COMMENT_CHAR} {noun}"
    if verb == grammar.CHECKPOINT:
        return CHECKPOINT_CHAR
    return ""


def _pad(token: str, target: int, has_next: bool) -> str:
    """Right-pad a note to ``target`` columns: a space, dashes, a space."""
    if target <= len(token):
        return token + " "

    slack = target - len(token)
    padded = token + " "
    if slack >= SPACES_AROUND_DASHES:
        dashes = slack - SPACES_AROUND_DASHES
        if dashes > 0 and has_next:
            padded += "-" * dashes
        padded += " "
    return padded


def _target_width(
    layouts: list[MeasureLayout],
    measure_index: int,
    start: float,
    duration: float,
    token: str,
) -> int:
    index = max(measure_index, 0)
    if index < len(layouts):
        return math.ceil(layouts[index].width_between(start, start + duration))
    return len(token) + MIN_NOTE_PADDING


def render_line(commands: list[Command], layouts: list[MeasureLayout]) -> str:
    """Rebuild one line from its commands using the block layout; no line ending."""
    pieces: list[str] = []
    measure_index = -1
    current_time = 0.0

    for position, (verb, noun) in enumerate(commands):
        if grammar.is_reserved(verb):
            pieces.append(_reserved_text(verb, noun))
            if verb == grammar.MEASURE:
                measure_index += 1
                current_time = 0.0
            continue

        token = note_token(verb, noun)
        quarters = note_quarters(noun)
        if quarters <= 0:
            pieces.append(token + " ")
            continue

        target = _target_width(layouts, measure_index, current_time, quarters, token)
        current_time += quarters
        pieces.append(_pad(token, target, has_next=position < len(commands) - 1))

    return "".join(pieces).rstrip()


def _format_block_line(line: str, layouts: list[MeasureLayout]) -> str:
    if is_comment_line(line):
        return line

    commands = _parse_or_none(line)
    if commands is None:
        return line

    formatted = render_line(commands, layouts)
    if line.endswith("\n"):
        formatted += "\n"
    return formatted


def _expand_checkpoints(lines: list[str]) -> str:
    """Stamp every checkpoint line to one shared width."""
    longest = max(
        (len(line.rstrip()) for line in lines if not is_checkpoint_line(line)),
        default=0,
    )
    stars = CHECKPOINT_CHAR * max(MIN_CHECKPOINT_LINE_LENGTH, longest)
    return "".join(
        stars + ("\n" if line.endswith("\n") else "") if is_checkpoint_line(line) else line
        for line in lines
    )


# ── Public API ──────────────────────────────────────────────────────────────

def format_text(text: str) -> str:
    """
    Align a whole Hum document.

    Each checkpoint-delimited block is laid out on its own so notes sounding
    at the same time start in the same column on every voice line. Comment
    lines and lines that do not parse are kept verbatim. Checkpoint lines are
    redrawn last, all at the same width.

    Args:
        text: Document text.

    Returns:
        The formatted document. Formatting it again returns it unchanged.
    """
    lines = _split_lines(text)
    formatted: list[str] = list(lines)

    for start, end in identify_blocks(lines):
        block = lines[start:end]
        layouts = layout_block(block)
        logger.debug(f"Block lines {start}-{end}: {len(layouts)} measure layout(s)")
        for offset, line in enumerate(block):
            formatted[start + offset] = _format_block_line(line, layouts)

    return _expand_checkpoints(formatted)
