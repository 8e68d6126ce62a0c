"""
File extension constants, encoding thresholds and shared accessors for vidopt.
"""

import logging
import subprocess
from typing import Optional

from rich.console import Console
from rich.logging import RichHandler

PROGRAM = "vidopt"

# Inputs recognized by batch mode (compared case-insensitively)
VIDEO_EXTENSIONS = (".mp4", ".mov", ".avi", ".mkv", ".webm", ".m4v")

# Output container extension per codec profile
PROFILE_EXTENSIONS = {
    "webm": ".webm",
    "mp4": ".mp4",
}
CODEC_PROFILES = tuple(PROFILE_EXTENSIONS)
AUDIO_MODES = ("remove", "compress", "keep")

# Fixed tier geometry, highest resolution first
TIER_DIMENSIONS = {
    "1080p": (1920, 1080),
    "720p": (1280, 720),
    "480p": (854, 480),
}
TIER_ORDER = ("1080p", "720p", "480p")
ORIGINAL_TIER = "original"

# Encoder policy
KEYFRAME_INTERVAL = 240
KEYFRAME_MIN_INTERVAL = 30
H264_SCENE_THRESHOLD = 40
VP9_LAG_IN_FRAMES = 25
VP9_MINRATE_FACTOR = 0.5
VP9_MAXRATE_FACTOR = 1.45
H264_MAXRATE_FACTOR = 1.2
H264_BUFSIZE_FACTOR = 2.0
COMPRESSED_AUDIO = {
    "webm": ("libopus", "48k"),
    "mp4": ("aac", "64k"),
}

# Filter chain policy
LOW_BITRATE_THRESHOLD_KBPS = 500
HIGH_FRAMERATE_THRESHOLD = 60
DENOISE_FILTER = "hqdn3d=1.5:1.5:6:6"
SHARPEN_FILTER = "unsharp=5:5:0.8:3:3:0.4"

# Trimming
MIN_CLIP_SECONDS = 5.0

_console: Optional[Console] = None


def get_console() -> Console:
    """Return the shared rich console."""
    global _console
    if _console is None:
        _console = Console()
    return _console


def get_logger(name: str = PROGRAM) -> logging.Logger:
    """Return a logger in the program namespace."""
    return logging.getLogger(name)


def setup_logging(verbose: bool = False) -> None:
    """Route program logging through rich on the shared console."""
    console_handler = RichHandler(console=get_console(), rich_tracebacks=True)
    console_handler.setLevel(logging.DEBUG if verbose else logging.WARNING)
    console_handler.setFormatter(logging.Formatter("%(message)s"))

    logger = get_logger()
    for handler in list(logger.handlers):
        if isinstance(handler, RichHandler):
            logger.removeHandler(handler)
    logger.addHandler(console_handler)
    logger.setLevel(logging.DEBUG)


def check_tool_availability(cmd: str, version_flag: str = "-h") -> bool:
    """Check whether an external tool can be executed."""
    try:
        subprocess.run([cmd, version_flag], capture_output=True, check=True)
        return True
    except (subprocess.CalledProcessError, FileNotFoundError, OSError):
        return False


def ffmpeg_available() -> bool:
    return check_tool_availability("ffmpeg", "-version")


def ffprobe_available() -> bool:
    return check_tool_availability("ffprobe", "-version")
