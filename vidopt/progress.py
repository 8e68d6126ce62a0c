"""Progress tracking for vidopt encodes."""

import re
from dataclasses import dataclass
from typing import Callable, Optional

from rich.progress import Progress, TaskID

TIME_PATTERN = re.compile(r"time=\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")
SPEED_PATTERN = re.compile(r"speed=\s*([\d.]+)x")
BITRATE_PATTERN = re.compile(r"bitrate=\s*([\d.]+)kbits/s")


@dataclass(frozen=True)
class EncodeProgress:
    """One progress report scraped from ffmpeg's stderr."""
    time_seconds: float
    speed: Optional[float] = None
    bitrate_kbps: Optional[float] = None


ProgressCallback = Callable[[EncodeProgress], None]


def parse_progress_line(line: str) -> Optional[EncodeProgress]:
    """Parse an ffmpeg status line, or return None if it carries no timestamp."""
    time_match = TIME_PATTERN.search(line)
    if not time_match:
        return None
    hours, minutes, seconds = time_match.groups()
    elapsed = int(hours) * 3600 + int(minutes) * 60 + float(seconds)

    speed = bitrate = None
    speed_match = SPEED_PATTERN.search(line)
    if speed_match:
        try:
            speed = float(speed_match.group(1))
        except ValueError:
            pass
    bitrate_match = BITRATE_PATTERN.search(line)
    if bitrate_match:
        try:
            bitrate = float(bitrate_match.group(1))
        except ValueError:
            pass
    return EncodeProgress(elapsed, speed, bitrate)


class ProgressContext:
    """Encapsulates progress tracking state for cleaner parameter passing."""

    def __init__(self, progress: Optional[Progress] = None, task: Optional[TaskID] = None):
        self.progress = progress
        self.task = task

    @property
    def is_active(self) -> bool:
        """Check if progress tracking is active."""
        return self.progress is not None and self.task is not None

    def update(self, description: str) -> None:
        """Update progress description if tracking is active."""
        if self.is_active:
            self.progress.update(self.task, description=description)

    def advance(self, steps: int = 1) -> None:
        """Advance progress by given number of steps."""
        if self.is_active:
            self.progress.advance(self.task, steps)

    def encode_callback(self, label: str, clip_seconds: float) -> Optional[ProgressCallback]:
        """Callback that shows encode position and speed in the task description."""
        if not self.is_active:
            return None

        def on_progress(report: EncodeProgress) -> None:
            percent = min(100.0, report.time_seconds / clip_seconds * 100) if clip_seconds else 0.0
            details = f"{percent:.0f}%"
            if report.speed is not None:
                details += f" @ {report.speed:g}x"
            self.update(f"{label} {details}")

        return on_progress
