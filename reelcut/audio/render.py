"""
Render pipeline: turn an edit list into an audio file.

Rendering works inside a private temporary directory:

1. every fragment's source is made available as WAV (the intermediate format),
   converting non-WAV sources once per source,
2. fragments are extracted in batches of at most `mixer.max_inputs` into one
   timeline file, each batch appending to it,
3. the timeline is moved (WAV destination) or transcoded (anything else) to
   the destination, which only appears once everything else succeeded.

The temporary directory is removed on every exit path.

Examples:
    >>> song = Chunk.from_file("song.mp3")  # doctest: +SKIP
    >>> edit = song.slice(0, 120) + song.slice(150, 20)  # doctest: +SKIP
    >>> result = render(edit, "edit.mp3", bitrate="192k")  # doctest: +SKIP
    >>> result.duration()  # doctest: +SKIP
    140.0

    >>> renderer = Renderer(mixer=EcasoundMixer())  # doctest: +SKIP
    >>> renderer.render_overwrite(edit, "edit.wav")  # doctest: +SKIP
"""

from collections.abc import Callable
from contextlib import AbstractContextManager
from pathlib import Path
import logging
import os
import shutil
import tempfile

from ..util import content_key, ensure_output_path, probe_duration
from .edit_list import Chunk
from .errors import EmptyFragment, FileExists
from .tools import FFmpeg, FFmpegMixer, batched, plan_directives

logger = logging.getLogger(__name__)

DEFAULT_BITRATE = "128k"
INTERMEDIATE_SUFFIX = ".wav"
TIMELINE_FILENAME = "timeline.wav"


def _default_tmpdir() -> AbstractContextManager[str]:
    return tempfile.TemporaryDirectory(prefix="reelcut-")


class Renderer:
    """
    Materializes edit lists by driving external tools.

    Args:
        converter: Decode/encode tool with `convert(src, dst, *, bitrate=None)`
            (default: `FFmpeg`)
        mixer: Extraction/mixing backend (default: `FFmpegMixer`)
        probe: Duration probe used to wrap rendered files in a new Chunk
        logger: Logger receiving progress messages
        tmpdir_factory: Callable returning a context manager that yields a
            fresh working directory and removes it on exit
        timeout: Per-invocation timeout (seconds) for the default tools
    """

    def __init__(
        self,
        *,
        converter=None,
        mixer=None,
        probe: Callable[[str], float] | None = None,
        logger: logging.Logger = logger,
        tmpdir_factory: Callable[[], AbstractContextManager[str]] | None = None,
        timeout: float | None = None,
    ):
        self.logger = logger
        self.converter = converter or FFmpeg(logger=logger, timeout=timeout)
        self.mixer = mixer or FFmpegMixer(logger=logger, timeout=timeout)
        self.probe = probe or probe_duration
        self.tmpdir_factory = tmpdir_factory or _default_tmpdir

    def check_tools(self) -> None:
        """Raise `ToolNotFound` if a backend's executable is missing."""
        for tool in (self.mixer, self.converter):
            check = getattr(tool, "check", None)
            if check is not None:
                check()

    def workdir(self) -> AbstractContextManager[str]:
        """Scoped temporary working directory."""
        return self.tmpdir_factory()

    def render(
        self,
        chunk: Chunk,
        destination: str | Path,
        *,
        overwrite: bool = False,
        bitrate: str = DEFAULT_BITRATE,
    ) -> Chunk:
        """
        Render `chunk` into `destination`.

        Args:
            chunk: Edit list to render
            destination: Output file; its extension selects the format
            overwrite: Replace `destination` if it already exists
            bitrate: Bitrate for compressed destination formats

        Returns:
            A new Chunk wrapping the rendered file

        Raises:
            EmptyFragment: If `chunk` has no fragments
            FileExists: If `destination` exists and `overwrite` is False
            CommandFailed: If any external tool fails
        """
        if not chunk.fragments:
            raise EmptyFragment("Cannot render an empty chunk")
        destination = Path(destination)
        self.check_destination(destination, overwrite)
        self.check_tools()

        self.logger.info(
            "Rendering %d fragments (%.3fs) to %s",
            len(chunk),
            chunk.duration(),
            destination,
        )
        with self.workdir() as tmp:
            workdir = Path(tmp)
            timeline = self.render_timeline(chunk, workdir / TIMELINE_FILENAME, workdir)
            self.finalize(
                timeline, destination, workdir, overwrite=overwrite, bitrate=bitrate
            )

        self.logger.info("Rendered %s", destination)
        return Chunk.from_file(destination, probe=self.probe)

    def render_overwrite(self, chunk: Chunk, destination: str | Path, **options) -> Chunk:
        """`render` with `overwrite=True`."""
        return self.render(chunk, destination, overwrite=True, **options)

    def render_timeline(self, chunk: Chunk, output: Path, workdir: Path) -> Path:
        """
        Extract all fragments of `chunk` into the WAV timeline `output`.

        Conversions of non-WAV sources are stored in `workdir` under a key of
        the source name, and reused when already present there.
        """
        if not chunk.fragments:
            raise EmptyFragment("Cannot render an empty chunk")
        output = Path(output)
        directives = plan_directives(
            chunk.fragments, lambda source: self.resolve_source(source, workdir), output
        )
        batches = batched(directives, self.mixer.max_inputs)
        for number, batch in enumerate(batches, 1):
            self.logger.debug(
                "Batch %d/%d: %d fragments at %.3fs",
                number,
                len(batches),
                len(batch),
                batch[0].offset,
            )
            self.mixer.extract(batch)
        return output

    def resolve_source(self, source: str, workdir: Path) -> Path:
        """Path of a directly consumable (WAV) version of `source`."""
        path = Path(source)
        if path.suffix.lower() == INTERMEDIATE_SUFFIX:
            return path
        converted = Path(workdir) / f"{content_key(source)}{INTERMEDIATE_SUFFIX}"
        if converted.exists():
            self.logger.debug("Using cached conversion of %s", source)
        else:
            self.logger.debug("Converting %s to %s", source, converted.name)
            self.converter.convert(path, converted)
        return converted

    def finalize(
        self,
        timeline: Path,
        destination: Path,
        workdir: Path,
        *,
        overwrite: bool = False,
        bitrate: str = DEFAULT_BITRATE,
    ) -> Path:
        """
        Move or transcode `timeline` into `destination`.

        The result is first moved next to `destination`, then published in one
        step. Without `overwrite`, a destination that appeared while rendering
        is left untouched and `FileExists` is raised.
        """
        destination = ensure_output_path(destination)
        if destination.suffix.lower() == INTERMEDIATE_SUFFIX:
            staged = timeline
        else:
            staged = Path(workdir) / f"encoded{destination.suffix}"
            self.converter.convert(timeline, staged, bitrate=bitrate)

        partial = destination.with_name(f".{destination.name}.reelcut-partial")
        try:
            shutil.move(os.fspath(staged), os.fspath(partial))
            if overwrite:
                os.replace(partial, destination)
            else:
                self._publish_new(partial, destination)
        finally:
            partial.unlink(missing_ok=True)
        return destination

    @staticmethod
    def _publish_new(partial: Path, destination: Path) -> None:
        try:
            os.link(partial, destination)
        except FileExistsError as e:
            raise FileExists(f"{destination} already exists") from e
        except OSError:
            # no hard links on this filesystem
            if destination.exists():
                raise FileExists(f"{destination} already exists")
            os.replace(partial, destination)

    @staticmethod
    def check_destination(destination: Path, overwrite: bool) -> None:
        if destination.exists() and not overwrite:
            raise FileExists(f"{destination} already exists")


def render(chunk: Chunk, destination: str | Path, **options) -> Chunk:
    """
    Render `chunk` into `destination` with the default ffmpeg tools.

    Options are those of `Renderer.render` (`overwrite`, `bitrate`) plus the
    `Renderer` arguments (`converter`, `mixer`, `probe`, `logger`,
    `tmpdir_factory`, `timeout`).

    Examples:
        >>> render(edit, "edit.mp3")  # doctest: +SKIP
        >>> render(edit, "edit.mp3", overwrite=True, bitrate="256k")  # doctest: +SKIP
    """
    render_options = {
        key: options.pop(key) for key in ("overwrite", "bitrate") if key in options
    }
    return Renderer(**options).render(chunk, destination, **render_options)


def render_overwrite(chunk: Chunk, destination: str | Path, **options) -> Chunk:
    """Render `chunk` into `destination`, replacing any existing file."""
    options["overwrite"] = True
    return render(chunk, destination, **options)
