"""Multi-track mixing: render several edit lists and play them together."""

from collections.abc import Iterable
from pathlib import Path

from .edit_list import Chunk
from .errors import EmptyFragment
from .render import DEFAULT_BITRATE, Renderer


MIX_FILENAME = "mix.wav"


class TrackMixer:
    """
    Mix several edit lists ("tracks") into one file.

    Each track is rendered to its own WAV file, then all of them are mixed on
    top of each other, starting at time zero.

    Args:
        tracks: Initial tracks
        renderer: Render pipeline used for tracks and finalization

    Examples:
        >>> mixer = TrackMixer()  # doctest: +SKIP
        >>> mixer.add_track(drums * 8)  # doctest: +SKIP
        >>> mixer.add_track(bass.fill((drums * 8).duration()))  # doctest: +SKIP
        >>> mixer.render_to_file("loop.mp3", bitrate="192k")  # doctest: +SKIP
    """

    def __init__(self, tracks: Iterable[Chunk] = (), *, renderer: Renderer | None = None):
        self._tracks: list[Chunk] = []
        self.renderer = renderer or Renderer()
        for track in tracks:
            self.add_track(track)

    @property
    def tracks(self) -> tuple[Chunk, ...]:
        return tuple(self._tracks)

    def add_track(self, chunk: Chunk) -> None:
        if not isinstance(chunk, Chunk):
            raise TypeError(f"Tracks must be Chunk instances, not {type(chunk).__name__}")
        self._tracks.append(chunk)

    def render_to_file(
        self,
        destination: str | Path,
        *,
        overwrite: bool = False,
        bitrate: str = DEFAULT_BITRATE,
    ) -> Chunk:
        """
        Render all tracks, mix them, and write the result to `destination`.

        Empty tracks are skipped.

        Raises:
            EmptyFragment: If no track has any fragment
            FileExists: If `destination` exists and `overwrite` is False
            CommandFailed: If any external tool fails
        """
        tracks = [(i, track) for i, track in enumerate(self._tracks) if track.fragments]
        if not tracks:
            raise EmptyFragment("No track has any fragment to mix")
        renderer = self.renderer
        destination = Path(destination)
        renderer.check_destination(destination, overwrite)
        renderer.check_tools()

        renderer.logger.info("Mixing %d tracks into %s", len(tracks), destination)
        with renderer.workdir() as tmp:
            workdir = Path(tmp)
            track_files = [
                renderer.render_timeline(track, workdir / f"track_{i}.wav", workdir)
                for i, track in tracks
            ]
            mixed = renderer.mixer.mix_files(track_files, workdir / MIX_FILENAME)
            renderer.finalize(
                mixed, destination, workdir, overwrite=overwrite, bitrate=bitrate
            )

        renderer.logger.info("Mixed %s", destination)
        return Chunk.from_file(destination, probe=renderer.probe)
