"""Hum CLI entry point."""

import logging
import sys
from pathlib import Path
from typing import NoReturn

import click

from hum import __version__, grammar
from hum.audio_io import play as play_samples
from hum.audio_io import read_score, render_score, write_wav
from hum.errors import FileSaveError, GenerateError, ParseError, PlaybackError
from hum.formatter import format_text
from hum.interpreter import Performance
from hum.midi_exporter import MidiExporter


def _configure_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.INFO if verbose else logging.WARNING,
        format="%(levelname)s %(name)s: %(message)s",
    )


def _fail(message: str) -> NoReturn:
    click.echo(f"  ERROR: {message}", err=True)
    sys.exit(1)


def _read(score_file: str) -> str:
    try:
        return read_score(score_file)
    except (OSError, UnicodeDecodeError) as exc:
        _fail(f"Could not read score file: {exc}")


def _render(score_file: str) -> Performance:
    """Read and render a score, exiting with an error message on failure."""
    text = _read(score_file)
    try:
        return render_score(text)
    except ParseError as exc:
        _fail(f"Error parsing grammar: {exc}")
    except GenerateError as exc:
        _fail(f"Could not render score: {exc}")


def _opening_tempo(text: str) -> float:
    """First positive ``[ N_bpm ]`` in the score, or the MIDI exporter's default."""
    for verb, noun in grammar.parse(text):
        if verb != grammar.TEMPO:
            continue
        try:
            bpm = float(noun)
        except ValueError:
            break
        if bpm > 0:
            return bpm
    return MidiExporter.DEFAULT_TEMPO


def _summary(performance: Performance) -> str:
    sounding = sum(1 for event in performance.events if not event.is_rest)
    return f"{sounding} note(s), {performance.duration:.2f} s"


# ── CLI group ──────────────────────────────────────────────────────────────────

@click.group(context_settings={"help_option_names": ["-h", "--help"]})
@click.version_option(version=__version__, prog_name="hum")
@click.option("--verbose", "-v", is_flag=True, help="Log rendering and file output details.")
def main(verbose: bool) -> None:
    """Hum: music notation language and synthesizer."""
    _configure_logging(verbose)


# ── play subcommand ────────────────────────────────────────────────────────────

@main.command()
@click.argument("score_file", type=click.Path(exists=True, dir_okay=False, readable=True))
def play(score_file: str) -> None:
    """
    Render a .hum score and play it on the default audio device.

    \b
    Examples:
      hum play song.hum
    """
    performance = _render(score_file)
    click.echo(f"Playing '{score_file}' ({_summary(performance)})...")
    try:
        play_samples(performance.track, performance.sample_rate)
    except PlaybackError as exc:
        _fail(str(exc))


# ── render subcommand ──────────────────────────────────────────────────────────

@main.command()
@click.argument("score_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination WAV file path. Defaults to <score>.wav.",
)
def render(score_file: str, output: str | None) -> None:
    """
    Render a .hum score to a 16-bit mono WAV file.

    \b
    Examples:
      hum render song.hum
      hum render song.hum -o take1.wav
    """
    resolved_output = output if output is not None else str(Path(score_file).with_suffix(".wav"))

    click.echo("Transcribing score...")
    performance = _render(score_file)
    try:
        write_wav(performance.track, resolved_output, performance.sample_rate)
    except FileSaveError as exc:
        _fail(str(exc))

    click.echo(f"Done!  Wrote '{resolved_output}' ({_summary(performance)}).")


# ── format subcommand ──────────────────────────────────────────────────────────

@main.command(name="format")
@click.argument("score_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option("--check", is_flag=True, help="Exit with status 1 if the file is not formatted.")
@click.option("--in-place", "-i", "in_place", is_flag=True, help="Rewrite the file instead of printing.")
def format_command(score_file: str, check: bool, in_place: bool) -> None:
    """
    Align a .hum score so simultaneous notes share columns.

    Prints the formatted score unless --check or --in-place is given.

    \b
    Examples:
      hum format song.hum
      hum format song.hum --in-place
      hum format song.hum --check
    """
    if check and in_place:
        raise click.UsageError("--check and --in-place cannot be used together.")

    text = _read(score_file)
    formatted = format_text(text)

    if check:
        if formatted != text:
            click.echo(f"'{score_file}' would be reformatted.", err=True)
            sys.exit(1)
        click.echo(f"'{score_file}' is already formatted.")
        return

    if in_place:
        try:
            Path(score_file).write_text(formatted, encoding="utf-8")
        except OSError as exc:
            _fail(f"Could not write score file: {exc}")
        click.echo(f"Formatted '{score_file}'.")
        return

    click.echo(formatted, nl=False)


# ── midi subcommand ────────────────────────────────────────────────────────────

@main.command()
@click.argument("score_file", type=click.Path(exists=True, dir_okay=False, readable=True))
@click.option(
    "--output",
    "-o",
    default=None,
    metavar="PATH",
    help="Destination MIDI file path. Defaults to <score>.mid.",
)
def midi(score_file: str, output: str | None) -> None:
    """
    Export a .hum score as a MIDI file with one track per voice.

    \b
    Examples:
      hum midi song.hum
      hum midi song.hum -o song.mid
    """
    resolved_output = output if output is not None else str(Path(score_file).with_suffix(".mid"))

    performance = _render(score_file)
    exporter = MidiExporter(tempo=_opening_tempo(_read(score_file)))
    try:
        exporter.export(performance.events, resolved_output)
    except OSError as exc:
        _fail(f"Could not write MIDI file: {exc}")

    click.echo(f"Done!  Wrote '{resolved_output}' ({_summary(performance)}).")
