"""
External tool invocations used to render edit lists.

Audio is never decoded in-process: rendering is expressed as a series of
command lines for external tools.

- `FFmpeg`: single input to single output conversion (format normalization and
  final transcoding)
- `FFmpegMixer`: extracts fragments into a timeline file and mixes whole files
  (default backend)
- `EcasoundMixer`: the same two operations with ecasound chains

Mixer backends share a small interface: a `max_inputs` ceiling, plus
`extract(directives)` and `mix_files(inputs, output)`. A batch of directives
names its own timeline file (`ExtractDirective.output`).
"""

from dataclasses import dataclass
from collections.abc import Callable, Iterable, Sequence
from pathlib import Path
import logging
import os
import shlex
import subprocess

from ..util import quantize_time, require_tool
from .errors import CommandFailed

logger = logging.getLogger(__name__)

SAMPLE_RATE = 44100


def run_command(
    cmd: Sequence[str],
    *,
    logger: logging.Logger = logger,
    timeout: float | None = None,
) -> str:
    """
    Run an external command, raising `CommandFailed` on a non-zero exit.

    Args:
        cmd: Argument list
        logger: Where the command line and its stderr are logged (DEBUG)
        timeout: Seconds before the process is killed (None = wait forever)

    Returns:
        The command's stdout
    """
    cmd = [str(arg) for arg in cmd]
    logger.debug("run_command: %s", shlex.join(cmd))
    try:
        result = subprocess.run(
            cmd, capture_output=True, text=True, check=False, timeout=timeout
        )
    except subprocess.TimeoutExpired as e:
        raise CommandFailed(cmd, None, f"timed out after {timeout} seconds") from e

    if result.stderr:
        logger.debug(result.stderr)
    if result.returncode != 0:
        raise CommandFailed(cmd, result.returncode, result.stderr or "")
    return result.stdout


def _fmt_seconds(value: float) -> str:
    """Seconds as a plain decimal string (no exponent notation)."""
    return f"{quantize_time(value):.9f}".rstrip("0").rstrip(".") or "0"


@dataclass(frozen=True)
class ExtractDirective:
    """
    Where one fragment comes from and where it lands in the output timeline.

    Args:
        input_index: Position of the fragment in the edit list
        source: Resolved (directly consumable) source file
        start: Selection start in `source`, seconds
        duration: Selection length, seconds
        reversed: Whether the selection plays backwards
        output: Timeline file the selection is written to
        offset: Position of the selection in `output`, seconds
    """

    input_index: int
    source: Path
    start: float
    duration: float
    reversed: bool
    output: Path
    offset: float


def plan_directives(
    fragments: Iterable,
    resolve: Callable[[str], Path],
    output: Path,
) -> list[ExtractDirective]:
    """
    One directive per fragment, placed back to back in `output`.

    Offsets depend only on fragment order, so the plan can be batched or
    dispatched in any way without changing the resulting timeline.
    """
    directives = []
    position = 0.0
    for index, fragment in enumerate(fragments):
        directives.append(
            ExtractDirective(
                input_index=index,
                source=resolve(fragment.source),
                start=fragment.start,
                duration=fragment.duration,
                reversed=fragment.reversed,
                output=Path(output),
                offset=position,
            )
        )
        position = quantize_time(position + fragment.duration)
    return directives


def batched(items: Sequence, size: int) -> list[Sequence]:
    """
    Consecutive groups of at most `size` items.

    >>> batched([1, 2, 3, 4, 5], 2)
    [[1, 2], [3, 4], [5]]
    """
    if size < 1:
        raise ValueError(f"Batch size must be >= 1, got {size}")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]


def batch_output(directives: Sequence[ExtractDirective], max_inputs: int) -> Path:
    """
    Timeline file shared by a batch of directives.

    Raises:
        ValueError: If the batch is empty, exceeds `max_inputs`, or targets
            more than one file
    """
    if not directives:
        raise ValueError("Cannot extract an empty batch")
    if len(directives) > max_inputs:
        raise ValueError(
            f"{len(directives)} directives exceed the limit of {max_inputs}"
        )
    outputs = {Path(d.output) for d in directives}
    if len(outputs) > 1:
        raise ValueError(
            f"A batch must target one timeline, got {sorted(map(str, outputs))}"
        )
    return outputs.pop()


class FFmpeg:
    """
    Decode/encode through ffmpeg.

    Args:
        binary: ffmpeg executable name or path
        logger: Logger for command lines and tool output
        timeout: Per-invocation timeout in seconds
    """

    def __init__(
        self,
        binary: str = "ffmpeg",
        *,
        logger: logging.Logger = logger,
        timeout: float | None = None,
    ):
        self.binary = binary
        self.logger = logger
        self.timeout = timeout

    def check(self) -> str:
        return require_tool(self.binary)

    def convert(
        self, input_path: str | Path, output_path: str | Path, *, bitrate: str | None = None
    ) -> Path:
        """
        Convert `input_path` into `output_path`; format follows the extension.

        Examples:
            >>> FFmpeg().convert("song.mp3", "song.wav")  # doctest: +SKIP
            >>> FFmpeg().convert("mix.wav", "mix.mp3", bitrate="192k")  # doctest: +SKIP
        """
        cmd = [self.binary, "-hide_banner", "-nostdin", "-y", "-i", input_path, "-vn"]
        if bitrate:
            cmd += ["-b:a", bitrate]
        cmd.append(output_path)
        run_command(cmd, logger=self.logger, timeout=self.timeout)
        return Path(output_path)


class FFmpegMixer:
    """
    Fragment extraction and file mixing through ffmpeg filter graphs.

    Every extracted stream is normalized to 16 bit stereo at `sample_rate`
    so sources with different layouts can be concatenated.

    Args:
        binary: ffmpeg executable name or path
        sample_rate: Sample rate of produced timelines
        logger: Logger for command lines and tool output
        timeout: Per-invocation timeout in seconds
    """

    # ffmpeg itself has no input limit; this keeps one invocation well below
    # common open-file (ulimit -n) and argument-length limits. A non-empty
    # timeline is carried as one extra input.
    max_inputs = 64

    def __init__(
        self,
        binary: str = "ffmpeg",
        *,
        sample_rate: int = SAMPLE_RATE,
        logger: logging.Logger = logger,
        timeout: float | None = None,
    ):
        self.binary = binary
        self.sample_rate = sample_rate
        self.logger = logger
        self.timeout = timeout

    def check(self) -> str:
        return require_tool(self.binary)

    def _normalize(self) -> str:
        return (
            f"aformat=sample_fmts=s16:sample_rates={self.sample_rate}"
            ":channel_layouts=stereo"
        )

    def extract_command(
        self, directives: Sequence[ExtractDirective], *, append: bool
    ) -> list[str]:
        """Command line extracting `directives` (after the timeline if `append`)."""
        output = batch_output(directives, self.max_inputs)
        cmd = [self.binary, "-hide_banner", "-nostdin", "-y"]
        chains = []
        n_inputs = 0
        if append:
            cmd += ["-i", str(output)]
            chains.append((n_inputs, False))
            n_inputs += 1
        for directive in directives:
            cmd += [
                "-ss",
                _fmt_seconds(directive.start),
                "-t",
                _fmt_seconds(directive.duration),
                "-i",
                str(directive.source),
            ]
            chains.append((n_inputs, directive.reversed))
            n_inputs += 1

        filters = [
            f"[{i}:a]{'areverse,' if is_reversed else ''}{self._normalize()}[a{i}]"
            for i, is_reversed in chains
        ]
        labels = "".join(f"[a{i}]" for i, _ in chains)
        filters.append(f"{labels}concat=n={n_inputs}:v=0:a=1[out]")
        cmd += ["-filter_complex", ";".join(filters), "-map", "[out]"]
        cmd += ["-c:a", "pcm_s16le", str(_staging_path(output))]
        return cmd

    def extract(self, directives: Sequence[ExtractDirective]) -> Path:
        """
        Append the selections of `directives` to their timeline file.

        Creates the timeline when it does not exist yet.
        """
        output = batch_output(directives, self.max_inputs)
        cmd = self.extract_command(directives, append=output.exists())
        run_command(cmd, logger=self.logger, timeout=self.timeout)
        os.replace(_staging_path(output), output)
        return output

    def mix_files(self, inputs: Sequence[Path], output: Path) -> Path:
        """Mix whole files on top of each other into `output`."""
        cmd = [self.binary, "-hide_banner", "-nostdin", "-y"]
        for path in inputs:
            cmd += ["-i", str(path)]
        labels = "".join(f"[{i}:a]" for i in range(len(inputs)))
        cmd += [
            "-filter_complex",
            f"{labels}amix=inputs={len(inputs)}:duration=longest:normalize=0[out]",
            "-map",
            "[out]",
            "-c:a",
            "pcm_s16le",
            str(output),
        ]
        run_command(cmd, logger=self.logger, timeout=self.timeout)
        return Path(output)


class EcasoundMixer:
    """
    Fragment extraction and file mixing through ecasound chains.

    Each directive becomes one chain writing its selection at its offset in
    the output (`-y:`), so successive invocations extend the same file.
    """

    # Number of chains one ecasound command line handles reliably.
    max_inputs = 80

    def __init__(
        self,
        binary: str = "ecasound",
        *,
        logger: logging.Logger = logger,
        timeout: float | None = None,
    ):
        self.binary = binary
        self.logger = logger
        self.timeout = timeout

    def check(self) -> str:
        return require_tool(self.binary)

    def extract_command(self, directives: Sequence[ExtractDirective]) -> list[str]:
        output = _chain_path(batch_output(directives, self.max_inputs))
        cmd = [self.binary, "-q"]
        for d in directives:
            selection = (
                f"{'reverse,' if d.reversed else ''}select,"
                f"{_fmt_seconds(d.start)},{_fmt_seconds(d.duration)},"
                f"{_chain_path(d.source)}"
            )
            cmd += [
                f"-a:{d.input_index}",
                f"-i:{selection}",
                f"-o:{output}",
                f"-y:{_fmt_seconds(d.offset)}",
            ]
        return cmd

    def extract(self, directives: Sequence[ExtractDirective]) -> Path:
        cmd = self.extract_command(directives)
        run_command(cmd, logger=self.logger, timeout=self.timeout)
        return Path(directives[0].output)

    def mix_files(self, inputs: Sequence[Path], output: Path) -> Path:
        cmd = [self.binary, "-q"]
        for index, path in enumerate(inputs):
            cmd += [f"-a:{index}", f"-i:{_chain_path(path)}"]
        cmd += ["-a:all", f"-o:{_chain_path(output)}"]
        run_command(cmd, logger=self.logger, timeout=self.timeout)
        return Path(output)


def _chain_path(path: str | Path) -> str:
    # ecasound splits chain parameters on commas and has no quoting for them
    path = str(path)
    if "," in path:
        raise ValueError(f"ecasound cannot address paths containing a comma: {path!r}")
    return path


def _staging_path(output: Path) -> Path:
    output = Path(output)
    return output.with_name(f"{output.stem}.next{output.suffix}")
