"""
vidopt - Trim, rescale and re-encode videos for web delivery.

Probes each input with ffprobe, picks the output resolution tiers worth
producing, and drives ffmpeg to write web-friendly H.264/MP4 or VP9/WebM
clips, one file at a time.

MIT License.
"""

__version__ = "1.0.0"
__copyright__ = "Copyright (c) 2025 vidopt contributors"


# Public API
from .cli import main
from .commands import EncodeJob, build_command, build_filter_chain
from .config import Config, OptimizerConfig
from .core import VideoOptimizer
from .encoder import FFmpegEncoder
from .planner import QualityTier, plan_tiers
from .probe import MediaInfo, parse_frame_rate, probe
from .stats import BatchSummary, EncodeResult

__all__ = [ "main", "Config", "OptimizerConfig", "VideoOptimizer", "FFmpegEncoder", "EncodeJob",
            "build_command", "build_filter_chain", "QualityTier", "plan_tiers", "MediaInfo",
            "parse_frame_rate", "probe", "BatchSummary", "EncodeResult" ]
