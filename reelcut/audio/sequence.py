"""
Step sequencing and silence.

Build rhythmic edit lists from a text pattern where every character is one
step of fixed duration:

    >>> kick = Chunk([Fragment("kick.wav", 0, 0.3)])
    >>> snare = Chunk([Fragment("snare.wav", 0, 0.2)])
    >>> rest = Chunk([Fragment("silence.wav", 0, 1)])
    >>> beat = Sequence("k-s-k-s-", 0.25).apply({"k": kick, "s": snare}, rest=rest)
    >>> beat.duration()
    2.0
"""

from collections.abc import Mapping
from pathlib import Path
import os
import tempfile

from ..util import require_package
from .edit_list import Chunk, Fragment

SILENCE_FILENAME = "reelcut_silence.wav"
SILENCE_SECONDS = 1.0
SILENCE_FRAME_RATE = 44100
# 44 byte RIFF header plus mono 16 bit samples
SILENCE_BYTES = 44 + int(SILENCE_SECONDS * SILENCE_FRAME_RATE) * 2


def silence(duration: float, *, directory: str | Path | None = None) -> Chunk:
    """
    Chunk of digital silence lasting `duration` seconds.

    A one-second silent WAV is generated with pydub the first time it is
    needed (or when the file found there is incomplete), then looped.

    Args:
        duration: Length of the silence in seconds
        directory: Where the silent WAV lives (default: system temp dir)

    Examples:
        >>> gap = silence(3)  # doctest: +SKIP
        >>> (intro + gap + outro).render("with_gap.mp3")  # doctest: +SKIP
    """
    path = Path(directory or tempfile.gettempdir()) / SILENCE_FILENAME
    if not _is_complete(path):
        _write_silence(path)
    return Chunk([Fragment(path, 0.0, SILENCE_SECONDS)]).fill(duration)


def _is_complete(path: Path) -> bool:
    try:
        return path.stat().st_size >= SILENCE_BYTES
    except FileNotFoundError:
        return False


def _write_silence(path: Path) -> None:
    """Export the silent WAV under a private name, then move it into place."""
    AudioSegment = require_package("pydub").AudioSegment
    path.parent.mkdir(parents=True, exist_ok=True)
    fd, partial = tempfile.mkstemp(suffix=".wav", prefix=".reelcut-", dir=path.parent)
    os.close(fd)
    try:
        AudioSegment.silent(
            duration=int(SILENCE_SECONDS * 1000), frame_rate=SILENCE_FRAME_RATE
        ).export(partial, format="wav")
        os.replace(partial, path)
    finally:
        Path(partial).unlink(missing_ok=True)


class Sequence:
    """
    Text pattern of fixed-length steps.

    Args:
        pattern: One character per step; characters with no instrument are rests
        step: Step duration in seconds
    """

    def __init__(self, pattern: str, step: float):
        if step <= 0:
            raise ValueError(f"Step duration must be > 0, got {step}")
        self.pattern = pattern
        self.step = step

    def apply(self, instruments: Mapping[str, Chunk], *, rest: Chunk | None = None) -> Chunk:
        """
        Edit list playing `instruments` according to the pattern.

        Sounds longer than a step are cut, shorter ones are padded with `rest`.

        Args:
            instruments: Maps pattern characters to chunks
            rest: Chunk used for rests and padding (default: `silence`)
        """
        result = Chunk()
        for char in self.pattern:
            sound = instruments.get(char)
            if sound is None or not sound.fragments:
                step = self._rest(rest, self.step)
            elif sound.duration() >= self.step:
                step = sound.slice(0, self.step)
            else:
                step = sound + self._rest(rest, self.step - sound.duration())
            result = result + step
        return result

    @staticmethod
    def _rest(rest: Chunk | None, duration: float) -> Chunk:
        if rest is None:
            return silence(duration)
        return rest.fill(duration)

    def __len__(self) -> int:
        return len(self.pattern)

    def __repr__(self) -> str:
        return f"Sequence({self.pattern!r}, {self.step})"
