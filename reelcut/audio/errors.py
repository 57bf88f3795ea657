"""Errors raised by edit lists and the render pipeline."""


class ReelcutError(Exception):
    """Base class for reelcut errors."""


class FileExists(ReelcutError, FileExistsError):
    """Destination already exists and overwriting was not requested."""


class EmptyFragment(ReelcutError):
    """Operation needs at least one fragment but the edit list is empty."""


class OutOfDuration(ReelcutError):
    """Requested time range falls outside the timeline."""


class CommandFailed(ReelcutError):
    """An external tool exited with a non-zero status (or timed out)."""

    def __init__(self, cmd, returncode: int | None = None, stderr: str = ""):
        self.cmd = list(cmd)
        self.returncode = returncode
        self.stderr = stderr
        message = f"Command failed ({returncode}): {' '.join(map(str, self.cmd))}"
        if stderr:
            message += f"\n{stderr.strip()}"
        super().__init__(message)


class ToolNotFound(ReelcutError):
    """A required external executable is not installed."""

    def __init__(self, tool_name: str):
        self.tool_name = tool_name
        super().__init__(
            f"'{tool_name}' is required for rendering but was not found on PATH."
        )
