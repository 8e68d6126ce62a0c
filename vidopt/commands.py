"""
ffmpeg argument construction for a single encode.

Everything here is pure: the same job and policy always produce the same
token list, so commands can be inspected and tested without running ffmpeg.
"""

from dataclasses import dataclass
from pathlib import Path
from typing import List

from .constants import (COMPRESSED_AUDIO, DENOISE_FILTER, H264_BUFSIZE_FACTOR,
                        H264_MAXRATE_FACTOR, H264_SCENE_THRESHOLD, HIGH_FRAMERATE_THRESHOLD,
                        KEYFRAME_INTERVAL, KEYFRAME_MIN_INTERVAL, LOW_BITRATE_THRESHOLD_KBPS,
                        SHARPEN_FILTER, VP9_LAG_IN_FRAMES, VP9_MAXRATE_FACTOR,
                        VP9_MINRATE_FACTOR)
from .planner import QualityTier
from .probe import MediaInfo


@dataclass(frozen=True)
class EncodeJob:
    """Everything needed for one encoder invocation."""
    input_path: Path
    output_path: Path
    tier: QualityTier
    source_info: MediaInfo
    clip_start_seconds: float
    clip_duration_seconds: float


def format_seconds(value: float) -> str:
    """Format a timestamp in seconds without trailing zeros."""
    text = f"{float(value):.3f}".rstrip("0").rstrip(".")
    return text or "0"


def _kbps(target: int, factor: float = 1.0) -> str:
    return f"{round(target * factor)}k"


def needs_denoise(source: MediaInfo,
                  threshold_kbps: float = LOW_BITRATE_THRESHOLD_KBPS) -> bool:
    """Low-bitrate sources tend to be blocky or noisy."""
    return source.bitrate_kbps < threshold_kbps


def needs_sharpen(tier: QualityTier, source: MediaInfo) -> bool:
    """True when the tier upscales a source of known size."""
    if not source.has_dimensions:
        return False
    return tier.target_width > source.width or tier.target_height > source.height


def needs_framerate_cap(source: MediaInfo, framerate: int) -> bool:
    """True when a cap below the high-framerate threshold would lower the source rate.

    Sources at or below the cap, or with an unknown rate, keep their own rate.
    """
    if framerate >= HIGH_FRAMERATE_THRESHOLD:
        return False
    return 0 < framerate < source.frame_rate


def build_filter_chain(tier: QualityTier, source: MediaInfo,
                       low_bitrate_threshold_kbps: float = LOW_BITRATE_THRESHOLD_KBPS) -> str:
    """Scale and letterbox to the tier, then optional denoise and sharpen."""
    width, height = tier.target_width, tier.target_height
    filters = [
        f"scale={width}:{height}:force_original_aspect_ratio=decrease:flags=lanczos",
        f"pad={width}:{height}:(ow-iw)/2:(oh-ih)/2",
        "setsar=1",
    ]
    if needs_denoise(source, low_bitrate_threshold_kbps):
        filters.append(DENOISE_FILTER)
    if needs_sharpen(tier, source):
        filters.append(SHARPEN_FILTER)
    return ",".join(filters)


def audio_args(audio_mode: str, codec_profile: str) -> List[str]:
    if audio_mode == "remove":
        return ["-an"]
    if audio_mode == "compress":
        codec, bitrate = COMPRESSED_AUDIO[codec_profile]
        return ["-c:a", codec, "-b:a", bitrate, "-ac", "1"]
    if audio_mode == "keep":
        return ["-c:a", "copy"]
    raise ValueError(f"Unknown audio mode: {audio_mode}")


def video_args(codec_profile: str, crf: int, target_kbps: int) -> List[str]:
    """Codec-specific rate control and GOP settings."""
    if codec_profile == "webm":
        return [
            "-c:v", "libvpx-vp9",
            "-crf", str(crf),                   # Constrained quality
            "-b:v", _kbps(target_kbps),
            "-minrate", _kbps(target_kbps, VP9_MINRATE_FACTOR),
            "-maxrate", _kbps(target_kbps, VP9_MAXRATE_FACTOR),
            "-row-mt", "1",
            "-threads", "0",
            "-g", str(KEYFRAME_INTERVAL),
            "-keyint_min", str(KEYFRAME_MIN_INTERVAL),
            "-sc_threshold", "0",               # No scene-cut keyframes
            "-auto-alt-ref", "1",
            "-lag-in-frames", str(VP9_LAG_IN_FRAMES),
        ]
    if codec_profile == "mp4":
        return [
            "-c:v", "libx264",
            "-crf", str(crf),
            "-maxrate", _kbps(target_kbps, H264_MAXRATE_FACTOR),
            "-bufsize", _kbps(target_kbps, H264_BUFSIZE_FACTOR),
            "-preset", "slow",
            "-profile:v", "high",
            "-level", "4.0",
            "-x264-params", "annexb=1",
            "-g", str(KEYFRAME_INTERVAL),
            "-keyint_min", str(KEYFRAME_MIN_INTERVAL),
            "-sc_threshold", str(H264_SCENE_THRESHOLD),
        ]
    raise ValueError(f"Unknown codec profile: {codec_profile}")


def container_args(codec_profile: str) -> List[str]:
    if codec_profile == "mp4":
        return ["-movflags", "+faststart"]  # Optimize for streaming
    return []


def build_command(job: EncodeJob, codec_profile: str, crf: int, audio_mode: str,
                  framerate: int = 30,
                  low_bitrate_threshold_kbps: float = LOW_BITRATE_THRESHOLD_KBPS,
                  binary: str = "ffmpeg") -> List[str]:
    """Build the full ffmpeg argument list for one job.

    The seek is placed before ``-i`` so ffmpeg jumps straight to the nearest
    keyframe. This is much faster on long inputs but the first frame may be
    slightly before or after the requested start.
    """
    cmd = [
        binary, "-hide_banner", "-y",
        "-ss", format_seconds(job.clip_start_seconds),
        "-i", str(job.input_path),
        "-t", format_seconds(job.clip_duration_seconds),
    ]
    cmd += audio_args(audio_mode, codec_profile)
    cmd += video_args(codec_profile, crf, job.tier.target_bitrate_kbps)
    cmd += ["-vf", build_filter_chain(job.tier, job.source_info, low_bitrate_threshold_kbps)]
    if needs_framerate_cap(job.source_info, framerate):
        cmd += ["-r", str(framerate)]
    cmd += ["-pix_fmt", "yuv420p"]  # Broad player compatibility
    cmd += container_args(codec_profile)
    cmd.append(str(job.output_path))
    return cmd
