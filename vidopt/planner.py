"""
Output quality tier selection.
"""

from dataclasses import dataclass
from typing import List, Mapping

from .constants import ORIGINAL_TIER, TIER_DIMENSIONS, get_logger

logger = get_logger("vidopt.planner")


@dataclass(frozen=True)
class QualityTier:
    """One target output resolution and bitrate."""
    name: str
    target_width: int
    target_height: int
    target_bitrate_kbps: int


def _tier(name: str, ladder: Mapping[str, int]) -> QualityTier:
    width, height = TIER_DIMENSIONS[name]
    return QualityTier(name, width, height, int(ladder[name]))


def plan_tiers(source_width: int, source_height: int,
               bitrate_ladder: Mapping[str, int]) -> List[QualityTier]:
    """Decide which output tiers to produce, highest resolution first.

    Sources under 480 lines get a single "original" tier at their own size.
    Larger sources always get 480p, plus 720p and 1080p when the source is
    at least that tall. Sources with unknown dimensions get 480p only.
    """
    if source_width <= 0 or source_height <= 0:
        return [_tier("480p", bitrate_ladder)]

    if source_height < 480:
        # Cap the bitrate for tiny frames
        derived = source_width * source_height * 0.1 / 1000
        bitrate = max(1, round(min(bitrate_ladder["480p"], derived)))
        return [QualityTier(ORIGINAL_TIER, source_width, source_height, bitrate)]

    tiers = []
    if source_height >= 1080:
        tiers.append(_tier("1080p", bitrate_ladder))
    if source_height >= 720:
        tiers.append(_tier("720p", bitrate_ladder))
    tiers.append(_tier("480p", bitrate_ladder))
    return tiers


def select_tiers(source_width: int, source_height: int, bitrate_ladder: Mapping[str, int],
                 multi_quality: bool = True) -> List[QualityTier]:
    """Plan tiers and keep only the highest one unless multi-quality output is on."""
    tiers = plan_tiers(source_width, source_height, bitrate_ladder)
    if not multi_quality:
        tiers = tiers[:1]
    logger.debug(f"Tiers for {source_width}x{source_height}: {[t.name for t in tiers]}")
    return tiers
