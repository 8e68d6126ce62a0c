"""
Configuration management for vidopt.

Settings are resolved once at startup into an immutable ``OptimizerConfig``:
built-in defaults, then the user's YAML file, then command-line overrides.
"""

import dataclasses
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any, Dict, Mapping, Optional

import yaml

from .constants import AUDIO_MODES, CODEC_PROFILES, PROGRAM, TIER_ORDER, get_logger
from .errors import ConfigError

DEFAULT_CRF = {"webm": 31, "mp4": 28}
DEFAULT_LADDER = {"1080p": 2500, "720p": 1500, "480p": 800}


@dataclass(frozen=True)
class OptimizerConfig:
    """Effective settings for one run. Never mutated after construction."""
    duration: float = 15.0
    start_offset: float = 0.0
    codec_profile: str = "mp4"
    crf_by_profile: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_CRF))
    bitrate_ladder: Mapping[str, int] = field(default_factory=lambda: dict(DEFAULT_LADDER))
    audio_mode: str = "remove"
    multi_quality: bool = True
    framerate: int = 30
    output_suffix: str = "_optimized"
    tier_workers: int = 1

    def __post_init__(self):
        if self.duration <= 0:
            raise ConfigError(f"duration must be positive, got {self.duration}")
        if self.start_offset < 0:
            raise ConfigError(f"start_offset must not be negative, got {self.start_offset}")
        if self.codec_profile not in CODEC_PROFILES:
            raise ConfigError(f"codec_profile must be one of {', '.join(CODEC_PROFILES)}")
        if self.audio_mode not in AUDIO_MODES:
            raise ConfigError(f"audio_mode must be one of {', '.join(AUDIO_MODES)}")
        if self.framerate <= 0:
            raise ConfigError(f"framerate must be positive, got {self.framerate}")
        if self.tier_workers < 1:
            raise ConfigError(f"tier_workers must be at least 1, got {self.tier_workers}")

        crf = {**DEFAULT_CRF, **dict(self.crf_by_profile)}
        ladder = {**DEFAULT_LADDER, **dict(self.bitrate_ladder)}
        unknown = set(ladder) - set(TIER_ORDER)
        if unknown:
            raise ConfigError(f"Unknown bitrate ladder tiers: {', '.join(sorted(unknown))}")
        if any(int(v) <= 0 for v in ladder.values()):
            raise ConfigError("bitrate ladder values must be positive")

        # Freeze nested mappings so the config stays read-only
        object.__setattr__(self, "crf_by_profile",
                           MappingProxyType({k: int(v) for k, v in crf.items()}))
        object.__setattr__(self, "bitrate_ladder",
                           MappingProxyType({k: int(v) for k, v in ladder.items()}))

    @property
    def crf(self) -> int:
        """CRF for the active codec profile."""
        return self.crf_by_profile[self.codec_profile]

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "OptimizerConfig":
        """Build a config from a plain mapping, ignoring unrecognized keys."""
        known = {f.name for f in dataclasses.fields(cls)}
        unknown = set(data) - known
        if unknown:
            get_logger("vidopt.config").warning(
                f"Ignoring unknown config keys: {', '.join(sorted(unknown))}")
        try:
            return cls(**{k: v for k, v in data.items() if k in known})
        except (TypeError, ValueError) as e:
            raise ConfigError(f"Invalid configuration: {e}") from e

    def with_overrides(self, **overrides: Any) -> "OptimizerConfig":
        """Return a copy with the given non-None fields replaced."""
        changes = {k: v for k, v in overrides.items() if v is not None}
        if not changes:
            return self
        return dataclasses.replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        data = {f.name: getattr(self, f.name) for f in dataclasses.fields(self)}
        data["crf_by_profile"] = dict(self.crf_by_profile)
        data["bitrate_ladder"] = dict(self.bitrate_ladder)
        return data


class Config:
    """Reads the user's configuration file."""

    def __init__(self, config_path: Optional[Path] = None):
        # Default config location: ~/.<PROGRAM>/config.yml
        if config_path:
            self.config_path = Path(config_path)
        else:
            self.config_path = Path.home() / f".{PROGRAM}" / "config.yml"
        self.program_root = self.config_path.parent
        self.data = self._load_config()

    def _load_config(self) -> Dict:
        """Load configuration from YAML file."""
        if not self.config_path.exists():
            return {}

        try:
            with open(self.config_path, 'r') as f:
                data = yaml.safe_load(f) or {}
        except (OSError, yaml.YAMLError) as e:
            get_logger("vidopt.config").warning(f"Could not load config: {e}")
            return {}

        if not isinstance(data, dict):
            get_logger("vidopt.config").warning(
                f"Ignoring {self.config_path}: expected a mapping at top level")
            return {}
        return data

    def build(self, **overrides: Any) -> OptimizerConfig:
        """Resolve file values and command-line overrides into an OptimizerConfig."""
        return OptimizerConfig.from_mapping(self.data).with_overrides(**overrides)


def dump_config(config: OptimizerConfig) -> str:
    """Render the effective configuration as YAML."""
    return yaml.safe_dump(config.to_dict(), default_flow_style=False, sort_keys=False)
