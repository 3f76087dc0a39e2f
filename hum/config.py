"""Editor settings resolved once from the environment."""

from __future__ import annotations

import os
import shlex
import sys
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Mapping

PLAYER_ENV_VAR = "HUM_PLAYER"
MACOS_DEFAULT_PLAYER = "afplay"
LINUX_DEFAULT_PLAYER = "aplay"

DEFAULT_OCTAVE = 4
DEFAULT_DURATION = "1/4"
DEFAULT_CHECKPOINT_LENGTH = 71


@dataclass(frozen=True)
class EditorConfig:
    """
    Settings for an editing session.

    Attributes:
        playback_command:  Argument list of the external WAV player; the file
                           path is appended when a preview starts.
        temp_dir:          Directory for the rendered preview WAV files.
        default_octave:    Octave used for new notes.
        default_duration:  Duration used for new notes and rests.
        checkpoint_length: Number of ``*`` in an inserted checkpoint line.
    """

    playback_command: list[str] = field(default_factory=lambda: [LINUX_DEFAULT_PLAYER])
    temp_dir: Path = field(default_factory=lambda: Path(tempfile.gettempdir()))
    default_octave: int = DEFAULT_OCTAVE
    default_duration: str = DEFAULT_DURATION
    checkpoint_length: int = DEFAULT_CHECKPOINT_LENGTH

    @classmethod
    def from_environment(
        cls,
        environ: Mapping[str, str] | None = None,
        platform: str | None = None,
    ) -> EditorConfig:
        """
        Build a config from ``HUM_PLAYER`` and the host platform.

        ``HUM_PLAYER`` may hold a command with arguments (``"paplay --volume
        30000"``); it is split like a shell would. Without it the player is
        ``afplay`` on macOS and ``aplay`` elsewhere.
        """
        environ = os.environ if environ is None else environ
        platform = sys.platform if platform is None else platform

        player = environ.get(PLAYER_ENV_VAR, "").strip()
        if player:
            command = shlex.split(player)
        elif platform == "darwin":
            command = [MACOS_DEFAULT_PLAYER]
        else:
            command = [LINUX_DEFAULT_PLAYER]

        return cls(playback_command=command)
