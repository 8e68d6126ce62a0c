"""
Media metadata extraction using ffprobe.
"""

import json
import subprocess
from dataclasses import dataclass
from fractions import Fraction
from pathlib import Path
from typing import Any, Dict, Optional

from .constants import get_logger
from .errors import FrameRateParseError, InputNotFoundError, ProbeError

logger = get_logger("vidopt.probe")


@dataclass(frozen=True)
class MediaInfo:
    """Probed properties of a media file. Zero means unknown."""
    width: int = 0
    height: int = 0
    duration_seconds: float = 0.0
    bitrate_kbps: float = 0.0
    codec_name: str = ""
    size_bytes: int = 0
    frame_rate: float = 0.0

    @property
    def has_dimensions(self) -> bool:
        return self.width > 0 and self.height > 0


def parse_frame_rate(value: str) -> float:
    """Evaluate an ffprobe frame rate such as ``30000/1001`` or ``25``."""
    text = str(value).strip()
    numerator, sep, denominator = text.partition("/")
    try:
        if not sep:
            rate = Fraction(numerator)
        else:
            rate = Fraction(int(numerator), int(denominator))
    except (ValueError, ZeroDivisionError) as e:
        raise FrameRateParseError(f"Invalid frame rate: {value!r}") from e
    if rate < 0:
        raise FrameRateParseError(f"Negative frame rate: {value!r}")
    return float(rate)


def _to_float(value: Any) -> float:
    try:
        result = float(value)
    except (TypeError, ValueError):
        return 0.0
    # NaN and inf both fail this check
    if not 0.0 <= result < float("inf"):
        return 0.0
    return result


def _to_int(value: Any) -> int:
    return int(_to_float(value))


def _first_video_stream(data: Dict[str, Any]) -> Optional[Dict[str, Any]]:
    for stream in data.get("streams") or []:
        if isinstance(stream, dict) and stream.get("codec_type") == "video":
            return stream
    return None


def parse_probe_output(data: Dict[str, Any], size_bytes: int) -> MediaInfo:
    """Build MediaInfo from parsed ffprobe JSON."""
    stream = _first_video_stream(data) or {}
    fmt = data.get("format") or {}

    frame_rate = 0.0
    rate_text = stream.get("avg_frame_rate") or stream.get("r_frame_rate")
    if rate_text:
        try:
            frame_rate = parse_frame_rate(rate_text)
        except FrameRateParseError:
            logger.debug(f"Unparsable frame rate {rate_text!r}, treating as unknown")

    bitrate = _to_float(fmt.get("bit_rate")) or _to_float(stream.get("bit_rate"))

    return MediaInfo(
        width=_to_int(stream.get("width")),
        height=_to_int(stream.get("height")),
        duration_seconds=_to_float(fmt.get("duration")) or _to_float(stream.get("duration")),
        bitrate_kbps=bitrate / 1000,
        codec_name=str(stream.get("codec_name") or "").lower(),
        size_bytes=size_bytes,
        frame_rate=frame_rate,
    )


def probe(path: Path) -> MediaInfo:
    """Extract video metadata from a file using ffprobe.

    Raises:
        InputNotFoundError: the path does not exist (checked before running ffprobe)
        ProbeError: ffprobe failed or produced output that is not JSON
    """
    path = Path(path)
    if not path.exists():
        raise InputNotFoundError(path)

    cmd = [
        "ffprobe",
        "-v", "quiet",
        "-print_format", "json",
        "-show_format",
        "-show_streams",
        str(path),
    ]
    # Metadata tags are passed through as raw bytes and need not be UTF-8
    try:
        result = subprocess.run(cmd, capture_output=True, text=True, errors="replace", check=True)
        data = json.loads(result.stdout)
    except subprocess.CalledProcessError as e:
        raise ProbeError(f"ffprobe exited with code {e.returncode} for {path}", path=path) from e
    except FileNotFoundError as e:
        raise ProbeError("ffprobe executable not found", path=path) from e
    except ValueError as e:
        raise ProbeError(f"Could not parse ffprobe output for {path}: {e}", path=path) from e

    if not isinstance(data, dict):
        raise ProbeError(f"Unexpected ffprobe output for {path}", path=path)

    info = parse_probe_output(data, path.stat().st_size)
    logger.debug(f"{path.name}: {info.width}x{info.height}, {info.duration_seconds:.1f}s, "
                 f"{info.bitrate_kbps:.0f} kbps, codec={info.codec_name or 'unknown'}")
    return info
