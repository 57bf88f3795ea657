"""General utilities for reelcut: package/tool lookup, time values, paths."""

from pathlib import Path
import hashlib
import importlib
import os
import shutil

TIME_PRECISION = 9  # decimal places, i.e. a nanosecond grid


def require_package(package_name: str):
    """
    Import a package, raising an informative error if not installed.

    >>> math = require_package('math')
    >>> round(math.pi, 2)
    3.14
    """
    try:
        return importlib.import_module(package_name)
    except ImportError as e:
        raise ImportError(
            f"Package '{package_name}' is required for this functionality. "
            f"Please install it via 'pip install {package_name.split('.')[0]}'."
        ) from e


def require_tool(tool_name: str) -> str:
    """
    Locate an external executable on PATH.

    Args:
        tool_name: Name (or path) of the executable, e.g. 'ffmpeg'

    Returns:
        Absolute path to the executable

    Raises:
        ToolNotFound: If the executable cannot be found
    """
    from .audio.errors import ToolNotFound

    path = shutil.which(tool_name)
    if path is None:
        raise ToolNotFound(tool_name)
    return path


def quantize_time(value: float) -> float:
    """
    Snap a time value (seconds) onto the nanosecond grid.

    Keeps edit arithmetic stable across repeated slicing and merging.

    >>> quantize_time(1 - 0.9)
    0.1
    >>> quantize_time(0.33 + 0.9)
    1.23
    """
    return round(float(value), TIME_PRECISION)


def probe_duration(path: str | Path) -> float:
    """
    Get the duration of an audio file in seconds (uses ffprobe through pydub).

    Examples:
        >>> probe_duration("song.mp3")  # doctest: +SKIP
        178.183
    """
    mediainfo = require_package("pydub.utils").mediainfo
    info = mediainfo(os.fspath(path))
    duration = info.get("duration")
    if not duration:
        raise ValueError(f"Could not determine the duration of {path}")
    return float(duration)


def content_key(source: str | Path) -> str:
    """
    Deterministic key for a source file identifier.

    >>> len(content_key("song.mp3"))
    32
    >>> content_key("song.mp3") == content_key(Path("song.mp3"))
    True
    """
    return hashlib.md5(os.fspath(source).encode("utf-8")).hexdigest()


def ensure_output_path(path: str | Path) -> Path:
    """
    Convert to Path and ensure parent directory exists.

    Examples:
        >>> import tempfile
        >>> temp_dir = Path(tempfile.mkdtemp())
        >>> output = ensure_output_path(temp_dir / "subdir" / "file.wav")
        >>> output.parent.exists()
        True
    """
    path = Path(path)
    path.parent.mkdir(parents=True, exist_ok=True)
    return path
