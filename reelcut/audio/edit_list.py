"""
Non-destructive audio edit lists.

An edit list (`Chunk`) is an ordered sequence of `Fragment`s, each one a
reference to a time range of a source audio file. Editing never touches audio
data: it only rearranges references. Audio is produced when the edit list is
rendered (see `reelcut.audio.render`).

This module provides:
- `Fragment`: immutable reference to `[start, start + duration)` of a source
- `Chunk`: the edit list and its algebra (slice, concat, loop, split, fill,
  replace, reverse)

Examples:
    >>> song = Chunk.from_file("song.mp3")  # doctest: +SKIP
    >>> intro = song.slice(0, 12)  # doctest: +SKIP
    >>> loop = song[60:64] * 4  # doctest: +SKIP
    >>> edit = intro + loop + song.slice(150, 20).reverse()  # doctest: +SKIP
    >>> edit.render("edit.mp3")  # doctest: +SKIP

    >>> a = Chunk([Fragment("a.wav", 0, 6), Fragment("a.wav", 0, 2)])
    >>> [f.duration for f in a.fill(15)]
    [6.0, 2.0, 6.0, 1.0]

Time values are quantized onto a nanosecond grid, so arithmetic stays exact
over repeated splitting and merging:

    >>> Chunk([Fragment("a.wav", 0.33, 1)]).slice(0.9, 0.1).fragments
    (Fragment(source='a.wav', start=1.23, duration=0.1, reversed=False),)

Offsets into a reversed fragment count in playback order, from the end of its
source range. Slicing a reversed chunk therefore selects what you hear at that
position, and `c.reverse().slice(a, n) == c.slice(total - a - n, n).reverse()`.
Older edit-list tools clipped reversed fragments from their source start
instead:

    >>> Chunk([Fragment("a.wav", 10, 5)]).reverse().slice(1, 2).fragments
    (Fragment(source='a.wav', start=12.0, duration=2.0, reversed=True),)
"""

from dataclasses import dataclass, replace as _replace
from collections.abc import Callable, Iterable, Iterator
from pathlib import Path
import math
import os

from ..util import quantize_time, probe_duration
from .errors import EmptyFragment, OutOfDuration


@dataclass(frozen=True)
class Fragment:
    """
    Immutable reference to a time range of one source audio file.

    Args:
        source: Path of the source audio file
        start: Offset in seconds into `source` (>= 0)
        duration: Length in seconds (> 0)
        reversed: If True the range plays backwards
    """

    source: str
    start: float
    duration: float
    reversed: bool = False

    def __post_init__(self):
        start = quantize_time(self.start)
        duration = quantize_time(self.duration)
        if start < 0:
            raise ValueError(f"Fragment start must be >= 0, got {start}")
        if duration <= 0:
            raise ValueError(f"Fragment duration must be > 0, got {duration}")
        object.__setattr__(self, "source", os.fspath(self.source))
        object.__setattr__(self, "start", start)
        object.__setattr__(self, "duration", duration)
        object.__setattr__(self, "reversed", bool(self.reversed))

    @property
    def end(self) -> float:
        """End offset in the source, in seconds."""
        return quantize_time(self.start + self.duration)

    def reverse(self) -> "Fragment":
        """Same range, opposite orientation."""
        return _replace(self, reversed=not self.reversed)

    def clip(self, offset: float, length: float) -> "Fragment":
        """
        Sub-range of this fragment, `offset` seconds into its playback.

        For a reversed fragment, playback runs from `end` back to `start`, so
        the clipped range is mirrored inside the source.

        >>> Fragment("a.wav", 10, 5).clip(1, 2)
        Fragment(source='a.wav', start=11.0, duration=2.0, reversed=False)
        >>> Fragment("a.wav", 10, 5, reversed=True).clip(1, 2)
        Fragment(source='a.wav', start=12.0, duration=2.0, reversed=True)
        """
        if self.reversed:
            start = self.start + self.duration - offset - length
        else:
            start = self.start + offset
        return _replace(self, start=quantize_time(start), duration=length)


class Chunk:
    """
    Edit list: an ordered sequence of fragments forming a virtual timeline.

    All editing operations return new chunks and leave their operands untouched.
    `add_fragment` is the only method that modifies a chunk in place.

    Args:
        fragments: Fragments in playback order

    Examples:
        >>> song = Chunk([Fragment("song.mp3", 0, 178.183)])
        >>> song.slice(0, 120).duration()
        120.0
        >>> (song.slice(0, 120) + song.slice(150, 20)).duration()
        140.0
        >>> (song[0:10] * 3).duration()
        30.0
    """

    def __init__(self, fragments: Iterable[Fragment] = ()):
        self._fragments: list[Fragment] = []
        for fragment in fragments:
            self.add_fragment(fragment)

    @classmethod
    def from_file(
        cls,
        path: str | Path,
        *,
        probe: Callable[[str], float] | None = None,
    ) -> "Chunk":
        """
        Chunk holding one fragment spanning a whole audio file.

        Args:
            path: Source audio file
            probe: Function returning the file's duration in seconds
                (defaults to `reelcut.util.probe_duration`)
        """
        probe = probe or probe_duration
        path = os.fspath(path)
        return cls([Fragment(path, 0.0, probe(path))])

    @property
    def fragments(self) -> tuple[Fragment, ...]:
        return tuple(self._fragments)

    def add_fragment(self, fragment: Fragment) -> None:
        """Append a fragment in place."""
        if not isinstance(fragment, Fragment):
            raise TypeError(
                f"Chunks hold Fragment instances, not {type(fragment).__name__}"
            )
        self._fragments.append(fragment)

    def _extend(self, other: "Chunk") -> None:
        for fragment in other._fragments:
            self.add_fragment(fragment)

    def duration(self) -> float:
        """Total duration of the timeline in seconds."""
        return quantize_time(math.fsum(f.duration for f in self._fragments))

    def slice(self, start: float, length: float) -> "Chunk":
        """
        Part of the timeline covering `[start, start + length)`.

        Fragments are clipped at the range boundaries, so a range spanning
        several fragments yields one (clipped) fragment per spanned fragment.

        Raises:
            OutOfDuration: If the range is negative or extends past the end
        """
        start, length = quantize_time(start), quantize_time(length)
        total = self.duration()
        if start < 0 or length < 0 or quantize_time(start + length) > total:
            raise OutOfDuration(
                f"Range [{start}, {quantize_time(start + length)}) "
                f"is outside the timeline [0, {total})"
            )

        result = Chunk()
        remain = length
        for fragment in self._fragments:
            if remain <= 0:
                break
            if start >= fragment.duration:
                start = quantize_time(start - fragment.duration)
                continue
            if quantize_time(start + remain) <= fragment.duration:
                result.add_fragment(fragment.clip(start, remain))
                break
            taken = quantize_time(fragment.duration - start)
            result.add_fragment(fragment.clip(start, taken))
            remain = quantize_time(remain - taken)
            start = 0.0
        return result

    def concat(self, other: "Chunk") -> "Chunk":
        """New chunk playing this chunk, then `other`."""
        result = Chunk(self._fragments)
        result._extend(other)
        return result

    def loop(self, count: int) -> "Chunk":
        """
        New chunk repeating this one `count` times.

        `loop(0)` is an empty chunk.
        """
        if count < 0:
            raise ValueError(f"Loop count must be >= 0, got {count}")
        result = Chunk()
        for _ in range(count):
            result._extend(self)
        return result

    def split(self, count: int) -> list["Chunk"]:
        """
        Split into `count` consecutive chunks of equal duration.

        Segment boundaries are computed from the total duration, so the
        segment durations always add up to the duration of the chunk.

        Raises:
            EmptyFragment: If the chunk is empty
        """
        if count < 1:
            raise ValueError(f"Split count must be >= 1, got {count}")
        if not self._fragments:
            raise EmptyFragment("Cannot split an empty chunk")
        total = self.duration()
        bounds = [quantize_time(total * i / count) for i in range(count + 1)]
        return [
            self.slice(lo, quantize_time(hi - lo)) for lo, hi in zip(bounds, bounds[1:])
        ]

    def fill(self, target_duration: float) -> "Chunk":
        """
        Repeat this chunk until it lasts exactly `target_duration` seconds.

        The last repetition is truncated when a whole copy would overshoot.

        Raises:
            EmptyFragment: If the chunk is empty
        """
        if not self._fragments:
            raise EmptyFragment("Cannot fill with an empty chunk")
        remain = quantize_time(target_duration)
        if remain < 0:
            raise ValueError(f"Fill duration must be >= 0, got {remain}")

        whole = self.duration()
        result = Chunk()
        while remain > 0:
            piece = self if remain >= whole else self.slice(0, remain)
            result._extend(piece)
            remain = quantize_time(remain - piece.duration())
        return result

    def replace(self, start: float, length: float, replacement: "Chunk") -> "Chunk":
        """
        New chunk with `[start, start + length)` replaced by `replacement`.

        Raises:
            OutOfDuration: If the range extends past the end of the timeline
        """
        start, length = quantize_time(start), quantize_time(length)
        total = self.duration()
        offset = quantize_time(start + length)
        if start < 0 or length < 0 or offset > total:
            raise OutOfDuration(
                f"Range [{start}, {offset}) is outside the timeline [0, {total})"
            )

        result = Chunk()
        if start > 0:
            result._extend(self.slice(0, start))
        result._extend(replacement)
        tail = quantize_time(total - offset)
        if tail > 0:
            result._extend(self.slice(offset, tail))
        return result

    def reverse(self) -> "Chunk":
        """New chunk playing this timeline backwards."""
        return Chunk(fragment.reverse() for fragment in reversed(self._fragments))

    def render(self, destination: str | Path, **options) -> "Chunk":
        """Render to `destination` (see `reelcut.audio.render.render`)."""
        from .render import render

        return render(self, destination, **options)

    def render_overwrite(self, destination: str | Path, **options) -> "Chunk":
        """Render to `destination`, replacing any existing file."""
        from .render import render_overwrite

        return render_overwrite(self, destination, **options)

    def __getitem__(self, key: slice) -> "Chunk":
        """
        Slice the timeline with `chunk[start:stop]` (seconds).

        Negative bounds count from the end of the timeline.

        >>> Chunk([Fragment("a.wav", 0, 10)])[-4:].fragments
        (Fragment(source='a.wav', start=6.0, duration=4.0, reversed=False),)
        """
        if not isinstance(key, slice):
            raise TypeError(
                f"Chunk indexing requires a slice, got {type(key).__name__}"
            )
        if key.step is not None:
            raise ValueError("Step is not supported for chunk slicing")

        total = self.duration()
        start = 0.0 if key.start is None else key.start
        stop = total if key.stop is None else key.stop
        if start < 0:
            start = total + start
        if stop < 0:
            stop = total + stop
        if stop < start:
            raise ValueError(
                f"Invalid time range: start ({start}s) must not be after end ({stop}s)"
            )
        return self.slice(start, stop - start)

    def __add__(self, other: "Chunk") -> "Chunk":
        if not isinstance(other, Chunk):
            return NotImplemented
        return self.concat(other)

    def __mul__(self, count: int) -> "Chunk":
        if not isinstance(count, int):
            return NotImplemented
        return self.loop(count)

    __rmul__ = __mul__

    def __truediv__(self, count: int) -> list["Chunk"]:
        if not isinstance(count, int):
            return NotImplemented
        return self.split(count)

    def __len__(self) -> int:
        return len(self._fragments)

    def __iter__(self) -> Iterator[Fragment]:
        return iter(self.fragments)

    def __eq__(self, other) -> bool:
        if not isinstance(other, Chunk):
            return NotImplemented
        return self._fragments == other._fragments

    def __repr__(self) -> str:
        return f"Chunk(fragments={len(self._fragments)}, duration={self.duration():.3f}s)"
