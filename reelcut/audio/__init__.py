"""Non-destructive audio edit lists and their rendering.

Main exports:
- Fragment, Chunk: edit lists and their algebra
- Renderer, render, render_overwrite: materialize an edit list into a file
- TrackMixer: mix several edit lists together
- Sequence, silence: step patterns and silent padding
- FFmpeg, FFmpegMixer, EcasoundMixer: external tool backends

Examples:
    >>> from reelcut.audio import Chunk  # doctest: +SKIP
    >>> song = Chunk.from_file("song.mp3")  # doctest: +SKIP
    >>> edit = song[0:120] + song[150:170].reverse()  # doctest: +SKIP
    >>> edit.render("edit.mp3")  # doctest: +SKIP
"""

from .errors import (
    ReelcutError,
    FileExists,
    EmptyFragment,
    OutOfDuration,
    CommandFailed,
    ToolNotFound,
)
from .edit_list import Fragment, Chunk
from .tools import FFmpeg, FFmpegMixer, EcasoundMixer, ExtractDirective, run_command
from .render import Renderer, render, render_overwrite
from .mixer import TrackMixer
from .sequence import Sequence, silence

__all__ = [
    "ReelcutError",
    "FileExists",
    "EmptyFragment",
    "OutOfDuration",
    "CommandFailed",
    "ToolNotFound",
    "Fragment",
    "Chunk",
    "FFmpeg",
    "FFmpegMixer",
    "EcasoundMixer",
    "ExtractDirective",
    "run_command",
    "Renderer",
    "render",
    "render_overwrite",
    "TrackMixer",
    "Sequence",
    "silence",
]
