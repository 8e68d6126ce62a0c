"""
Video encoding using ffmpeg.
"""

import subprocess
from collections import deque
from typing import List, Optional, Sequence

from .constants import get_logger
from .errors import EncodeError
from .progress import ProgressCallback, parse_progress_line

STDERR_TAIL_LINES = 20


class FFmpegEncoder:
    """Runs ffmpeg commands and reports progress from its status output."""

    def __init__(self):
        self.logger = get_logger("vidopt.encoder")

    def run(self, command: Sequence[str],
            on_progress: Optional[ProgressCallback] = None) -> None:
        """Run an encoder command to completion.

        Progress lines are parsed only for the optional callback; they never
        affect the outcome. Raises EncodeError on a non-zero exit.
        """
        cmd: List[str] = [str(token) for token in command]
        self.logger.debug(f"Running: {' '.join(cmd)}")

        tail: deque = deque(maxlen=STDERR_TAIL_LINES)
        try:
            # Text mode splits ffmpeg's carriage-return status updates into lines
            process = subprocess.Popen(
                cmd,
                stdout=subprocess.DEVNULL,
                stderr=subprocess.PIPE,
                text=True,
                errors="replace",
            )
        except FileNotFoundError as e:
            raise EncodeError(f"Encoder executable not found: {cmd[0]}") from e

        with process:
            for line in process.stderr:
                line = line.rstrip()
                if not line:
                    continue
                tail.append(line)
                if on_progress is not None:
                    report = parse_progress_line(line)
                    if report is not None:
                        on_progress(report)
            returncode = process.wait()

        if returncode != 0:
            stderr_tail = "\n".join(tail)
            self.logger.debug(f"ffmpeg stderr:\n{stderr_tail}")
            raise EncodeError(f"ffmpeg exited with code {returncode}",
                              returncode=returncode, stderr_tail=stderr_tail)
