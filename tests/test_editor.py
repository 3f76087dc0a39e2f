"""Unit tests for EditorSession editing, history, movement and playback."""

from pathlib import Path

import pytest

from hum.config import EditorConfig
from hum.editor import EditorSession, Mode, split_duration_setting
from hum.errors import FileSaveError


class FakePlayer:
    """Records previews instead of spawning a player process."""

    def __init__(self, fail_with: Exception | None = None) -> None:
        self.started: list[Path] = []
        self.stops = 0
        self.closed = False
        self.fail_with = fail_with

    def start(self, path: Path) -> None:
        if self.fail_with is not None:
            raise self.fail_with
        self.started.append(Path(path))

    def stop(self) -> bool:
        self.stops += 1
        return bool(self.started)

    def close(self) -> None:
        self.closed = True


def _session(
    text: str = "",
    tmp_path: Path | None = None,
    player: FakePlayer | None = None,
    filename: Path | None = None,
) -> EditorSession:
    config = EditorConfig(
        playback_command=["true"],
        temp_dir=tmp_path if tmp_path is not None else Path("."),
    )
    return EditorSession(
        text,
        filename=filename,
        config=config,
        player=player if player is not None else FakePlayer(),
    )


# ── Character edits and history ─────────────────────────────────────────────

def test_insert_and_delete_char() -> None:
    session = _session()
    session.insert_char("a")
    session.insert_char("b")
    assert session.text == "ab"
    assert session.cursor == 2
    session.delete_char()
    assert session.text == "a"
    assert session.cursor == 1


def test_delete_char_at_start_does_nothing() -> None:
    session = _session("abc")
    session.delete_char()
    assert session.text == "abc"


def test_undo_and_redo() -> None:
    session = _session()
    session.insert_char("a")
    session.insert_char("b")

    session.undo()
    assert (session.text, session.cursor) == ("a", 1)
    session.undo()
    assert (session.text, session.cursor) == ("", 0)
    session.undo()
    assert session.message == "Already at oldest change"

    session.redo()
    session.redo()
    assert session.text == "ab"
    session.redo()
    assert session.message == "Already at newest change"


def test_new_edit_clears_redo() -> None:
    session = _session()
    session.insert_char("a")
    session.undo()
    session.insert_char("z")
    session.redo()
    assert session.text == "z"
    assert session.message == "Already at newest change"


def test_settings_and_movement_do_not_snapshot() -> None:
    session = _session("| (Cn_4 1/4)")
    session.increment_octave()
    session.set_duration("1/8")
    session.add_dot_to_duration()
    session.move_cursor_right()
    session.move_to_next_note()
    assert session.undo_stack == []


def test_insert_tab_snapshots_once() -> None:
    session = _session()
    session.insert_tab()
    assert session.text == "    "
    assert len(session.undo_stack) == 1


def test_insert_snippet_message() -> None:
    session = _session()
    session.insert_snippet("| ")
    assert session.text == "| "
    assert session.message == "Inserted snippet: '|'"


# ── Lines ───────────────────────────────────────────────────────────────────

def test_insert_new_line_below_last_line() -> None:
    session = _session("abc")
    session.cursor = 1
    session.insert_new_line_below()
    assert session.text == "abc\n"
    assert session.cursor == 4


def test_insert_new_line_below_middle_line() -> None:
    session = _session("abc\ndef")
    session.cursor = 1
    session.insert_new_line_below()
    assert session.text == "abc\n\ndef"
    assert session.cursor == 4


def test_delete_line() -> None:
    session = _session("a\nb\nc")
    session.cursor = 2
    session.delete_line()
    assert session.text == "a\nc"
    assert session.message == "Deleted line"


def test_delete_last_line_clamps_cursor() -> None:
    session = _session("a\nbcd")
    session.cursor = 4
    session.delete_line()
    assert session.text == "a\n"
    assert session.cursor == 2


def test_append_reset_and_newline() -> None:
    session = _session("| (Cn_4 1/4)")
    session.append_reset_and_newline()
    assert session.text == "| (Cn_4 1/4);\n"
    assert session.cursor == len(session.text)


def test_insert_checkpoint_line() -> None:
    session = _session("| (Cn_4 1/4)")
    session.insert_checkpoint_line(5)
    assert session.text == "| (Cn_4 1/4)\n\n*****\n\n"
    assert session.cursor == len(session.text)
    assert session.message == "Inserted checkpoint"
    assert len(session.undo_stack) == 1


def test_insert_checkpoint_line_default_length() -> None:
    session = _session()
    session.insert_checkpoint_line()
    assert session.text == "*" * 71 + "\n\n"


def test_insert_voice_command_enters_insert_mode() -> None:
    session = _session("   ")
    session.insert_voice_command()
    assert session.text == "% "
    assert session.mode is Mode.INSERT
    assert session.message == "Enter voice name"


def test_format_file() -> None:
    session = _session("|(Cn_4 1/4)   (Dn_4 1/4)")
    session.cursor = len(session.text)
    session.format_file()
    assert session.text == "| (Cn_4 1/4)  (Dn_4 1/4)"
    assert session.cursor == len(session.text)
    assert session.message == "Formatted file"
    session.undo()
    assert session.text == "|(Cn_4 1/4)   (Dn_4 1/4)"


# ── Notes ───────────────────────────────────────────────────────────────────

def test_insert_note_uses_octave_and_duration(tmp_path: Path) -> None:
    player = FakePlayer()
    session = _session(tmp_path=tmp_path, player=player)
    session.insert_note("c")
    assert session.text == "(Cn_4 1/4)  "
    assert session.cursor == 12
    assert player.started == [tmp_path / "hum_note_preview.wav"]
    assert session.message == "Playing note..."


def test_insert_note_with_dotted_duration(tmp_path: Path) -> None:
    session = _session(tmp_path=tmp_path)
    session.increment_octave()
    session.set_duration("1/8")
    session.add_dot_to_duration()
    session.add_dot_to_duration()
    session.insert_note("G")
    assert session.text == "(Gn_5 1/8)++  "


def test_insert_rest() -> None:
    session = _session()
    session.set_duration("1/2")
    session.add_dot_to_duration()
    session.insert_rest()
    assert session.text == "(Rest 1/2)+  "


def test_remove_dot_from_duration() -> None:
    session = _session()
    session.remove_dot_from_duration()
    assert session.current_duration == "1/4"
    session.add_dot_to_duration()
    session.remove_dot_from_duration()
    assert session.current_duration == "1/4"


def test_split_duration_setting() -> None:
    assert split_duration_setting("1/4") == ("1/4", "")
    assert split_duration_setting("1/4++") == ("1/4", "++")


def test_octave_is_clamped() -> None:
    session = _session()
    for _ in range(10):
        session.increment_octave()
    assert session.current_octave == 7
    for _ in range(10):
        session.decrement_octave()
    assert session.current_octave == 0
    assert session.message == "Octave: 0"


def test_delete_note_under_cursor() -> None:
    session = _session("| (Cn_4 1/4) (Dn_4 1/4)")
    session.cursor = 4
    session.delete_note()
    assert session.text == "| (Dn_4 1/4)"
    assert session.cursor == 2
    assert session.message == "Deleted (Cn_4 1/4)"


def test_delete_note_falls_back_to_word() -> None:
    session = _session("% square")
    session.cursor = 4
    session.delete_note()
    assert session.text == "% "


def test_transpose_note(tmp_path: Path) -> None:
    player = FakePlayer()
    session = _session("| (Cn_4 1/4)", tmp_path=tmp_path, player=player)
    session.cursor = 4
    session.transpose_note(1)
    assert session.text == "| (Cs_4 1/4)"
    assert player.started == [tmp_path / "hum_note_preview.wav"]


def test_transpose_note_keeps_flats(tmp_path: Path) -> None:
    session = _session("| (Df_4 1/4)", tmp_path=tmp_path)
    session.cursor = 4
    session.transpose_note(-1)
    assert session.text == "| (Cn_4 1/4)"


def test_transpose_out_of_range_leaves_text() -> None:
    session = _session("| (Bn_7 1/4)")
    session.cursor = 4
    session.transpose_note(1)
    assert session.text == "| (Bn_7 1/4)"
    assert session.message == "Transposition out of octave range"


def test_transpose_unparsable_pitch() -> None:
    session = _session("| (Rest 1/4)")
    session.cursor = 4
    session.transpose_note(1)
    assert session.text == "| (Rest 1/4)"
    assert session.message == "Failed to parse note for transposition"


# ── Movement ────────────────────────────────────────────────────────────────

def test_move_left_and_right_stop_at_edges() -> None:
    session = _session("ab")
    session.move_cursor_left()
    assert session.cursor == 0
    session.cursor = 2
    session.move_cursor_right()
    assert session.cursor == 2


def test_move_up_and_down_keep_column() -> None:
    session = _session("ab\ncdef\ng")
    session.cursor = 6
    session.move_cursor_up()
    assert session.cursor == 2
    session.cursor = 6
    session.move_cursor_down()
    assert session.cursor == 8


def test_move_between_measures() -> None:
    session = _session("| (Cn_4 1/4) | (Dn_4 1/4)\n")
    session.move_to_next_measure()
    assert session.cursor == 13
    session.move_to_next_measure()
    assert session.cursor == 25
    assert session.message == "Moved to end of line"
    session.move_to_prev_measure()
    assert session.cursor == 13
    session.move_to_prev_measure()
    assert session.cursor == 0


def test_move_to_prev_measure_falls_back_to_line_start() -> None:
    session = _session("~ intro\n(Cn_4 1/4)")
    session.cursor = 12
    session.move_to_prev_measure()
    assert session.cursor == 8
    assert session.message == "Moved to start of line"


def test_move_between_notes() -> None:
    session = _session("| (Cn_4 1/4) (Dn_4 1/4)")
    session.move_to_next_note()
    assert session.cursor == 2
    session.move_to_next_note()
    assert session.cursor == 13
    session.move_to_next_note()
    assert session.cursor == 13
    assert session.message == "No next note found"
    session.move_to_prev_note()
    assert session.cursor == 2
    session.move_to_prev_note()
    assert session.message == "No previous note found"


# ── Files ───────────────────────────────────────────────────────────────────

def test_open_missing_file(tmp_path: Path) -> None:
    path = tmp_path / "new.hum"
    session = EditorSession.open(path, config=EditorConfig(temp_dir=tmp_path), player=FakePlayer())
    assert session.text == ""
    assert session.message == f"New file: {path}"


def test_open_and_save_round_trip(tmp_path: Path) -> None:
    path = tmp_path / "song.hum"
    path.write_text("| (Cn_4 1/4)\n", encoding="utf-8")
    session = EditorSession.open(path, config=EditorConfig(temp_dir=tmp_path), player=FakePlayer())
    assert session.text == "| (Cn_4 1/4)\n"

    session.cursor = len(session.text)
    session.insert_snippet("| (Dn_4 1/4)\n")
    session.save_file()
    assert path.read_text(encoding="utf-8") == "| (Cn_4 1/4)\n| (Dn_4 1/4)\n"
    assert session.message == f"Saved to {path}"


def test_save_without_filename() -> None:
    session = _session("abc")
    session.save_file()
    assert session.message == "No filename specified"


def test_save_failure_raises(tmp_path: Path) -> None:
    session = _session("abc", filename=tmp_path)
    with pytest.raises(FileSaveError):
        session.save_file()


# ── Playback ────────────────────────────────────────────────────────────────

def test_play_file_writes_wav_and_starts_player(tmp_path: Path) -> None:
    player = FakePlayer()
    session = _session("[ 60_bpm ][ 4/4 ] | (An_4 1/8)", tmp_path=tmp_path, player=player)
    session.play_file()
    wav = tmp_path / "hum_full_playback.wav"
    assert wav.exists()
    assert player.started == [wav]
    assert session.message == "Playing file..."


def test_play_from_cursor_uses_section_file(tmp_path: Path) -> None:
    player = FakePlayer()
    text = "[ 60_bpm ][ 4/4 ]\n*\n| (An_4 1/8)\n"
    session = _session(text, tmp_path=tmp_path, player=player)
    session.cursor = text.index("An_4")
    session.play_from_cursor()
    assert player.started == [tmp_path / "hum_section_preview.wav"]
    assert session.message == "Playing section..."


def test_play_reports_render_errors(tmp_path: Path) -> None:
    player = FakePlayer()
    session = _session("| (Hn_4 1/4)", tmp_path=tmp_path, player=player)
    session.play_file()
    assert session.message.startswith("Error converting:")
    assert player.started == []


def test_play_reports_player_errors(tmp_path: Path) -> None:
    player = FakePlayer(fail_with=FileNotFoundError("no such player"))
    session = _session("| (An_4 1/8)", tmp_path=tmp_path, player=player)
    session.play_file()
    assert session.message == "Error playing: no such player"


def test_stop_playback_message(tmp_path: Path) -> None:
    player = FakePlayer()
    session = _session("| (An_4 1/8)", tmp_path=tmp_path, player=player)
    session.stop_playback()
    assert session.message == ""
    session.play_file()
    session.stop_playback()
    assert session.message == "Playback stopped."


def test_closing_session_closes_player() -> None:
    player = FakePlayer()
    with _session(player=player):
        pass
    assert player.closed
