"""
Exception types raised by vidopt.
"""

from enum import Enum
from pathlib import Path
from typing import Optional


class OptimizerError(Exception):
    """Base class for all vidopt failures."""


class ProbeErrorKind(Enum):
    NOT_FOUND = "not_found"
    TOOL_FAILURE = "tool_failure"


class ProbeError(OptimizerError):
    """Metadata could not be read from a media file."""

    def __init__(self, message: str, kind: ProbeErrorKind = ProbeErrorKind.TOOL_FAILURE,
                 path: Optional[Path] = None):
        super().__init__(message)
        self.kind = kind
        self.path = path


class InputNotFoundError(ProbeError):
    """Input path does not exist."""

    def __init__(self, path: Path):
        super().__init__(f"Input file not found: {path}", kind=ProbeErrorKind.NOT_FOUND, path=path)


class FrameRateParseError(OptimizerError, ValueError):
    """Frame-rate string is not a valid ``a/b`` fraction or number."""


class InsufficientDurationError(OptimizerError):
    """Source is too short for the requested skip and clip window."""

    def __init__(self, path: Path, available: float, minimum: float):
        super().__init__(
            f"{path} has only {available:.1f}s after the start offset (minimum {minimum:.1f}s)"
        )
        self.path = path
        self.available = available
        self.minimum = minimum


class EncodeError(OptimizerError):
    """The encoder exited with a failure."""

    def __init__(self, message: str, returncode: Optional[int] = None, stderr_tail: str = ""):
        super().__init__(message)
        self.returncode = returncode
        self.stderr_tail = stderr_tail


class DirectoryListError(OptimizerError):
    """Batch input directory could not be enumerated."""


class ConfigError(OptimizerError):
    """Configuration values are invalid."""
