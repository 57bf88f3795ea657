"""
Non-destructive audio editing: edit lists rendered through external tools.
"""

from reelcut.audio import (
    Chunk,  # Edit list: ordered fragments of source files
    Fragment,  # Immutable reference to a time range of a source file
    render,  # Render an edit list into an audio file
    render_overwrite,
    TrackMixer,  # Mix several edit lists together
    Sequence,
    silence,
)
