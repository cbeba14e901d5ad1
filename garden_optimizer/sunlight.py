"""
Sunlight Analysis

Distribution of sunlight conditions over a garden's zones, a 0-100 sunlight
score for the garden, and plain-language recommendations.
"""

import logging
from typing import Dict, List

from garden_optimizer.models import Garden, SunlightCondition

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# WEIGHTS
# ═══════════════════════════════════════════════════════════════════════════
SUNLIGHT_WEIGHTS = {
    SunlightCondition.FULL_SUN: 0.5,
    SunlightCondition.PARTIAL_SHADE: 0.3,
    SunlightCondition.FULL_SHADE: 0.2,
}

MIN_FULL_SUN_PERCENT = 30.0
LOW_SUN_PENALTY = 0.8
MAX_FULL_SHADE_PERCENT = 40.0
HEAVY_SHADE_PENALTY = 0.9
AREA_TOLERANCE = 0.1


class SunlightAnalyzer:
    """
    Scores how well a garden's light is distributed.

    Usage:
        analyzer = SunlightAnalyzer()
        analyzer.distribution(garden)   # {FULL_SUN: 60.0, PARTIAL_SHADE: 40.0, FULL_SHADE: 0.0}
        analyzer.score(garden)          # 42.0
    """

    def distribution(self, garden: Garden) -> Dict[SunlightCondition, float]:
        """Percent of the garden's area under each sunlight condition."""
        result = {condition: 0.0 for condition in SunlightCondition}
        if garden.total_area <= 0:
            return result
        for zone in garden.zones:
            result[zone.sunlight_condition] += zone.area / garden.total_area * 100
        return {condition: round(pct, 2) for condition, pct in result.items()}

    def score(self, garden: Garden) -> float:
        """
        Weighted sunlight score (0-100).

        Full sun counts most. Gardens with under 30% full sun or over 40%
        full shade are penalized.
        """
        dist = self.distribution(garden)
        score = sum(dist[condition] * weight for condition, weight in SUNLIGHT_WEIGHTS.items())

        if dist[SunlightCondition.FULL_SUN] < MIN_FULL_SUN_PERCENT:
            score *= LOW_SUN_PENALTY
        if dist[SunlightCondition.FULL_SHADE] > MAX_FULL_SHADE_PERCENT:
            score *= HEAVY_SHADE_PENALTY

        return round(max(0.0, min(100.0, score)), 2)

    def recommendations(self, garden: Garden) -> List[str]:
        if not garden.zones:
            return ["Garden must have at least one defined zone"]

        recs = []
        dist = self.distribution(garden)
        if dist[SunlightCondition.FULL_SUN] == 0:
            recs.append("Garden layout should include at least one full sun zone for optimal plant growth")
        elif dist[SunlightCondition.FULL_SUN] < MIN_FULL_SUN_PERCENT:
            recs.append(
                f"Only {dist[SunlightCondition.FULL_SUN]:.0f}% of the garden gets full sun; "
                f"most vegetables want at least {MIN_FULL_SUN_PERCENT:.0f}%"
            )
        if dist[SunlightCondition.FULL_SHADE] > MAX_FULL_SHADE_PERCENT:
            recs.append("More than 40% of the garden is full shade; favor shade-tolerant plants")

        unallocated = garden.total_area - garden.zoned_area
        if unallocated > AREA_TOLERANCE:
            recs.append(f"{unallocated:.1f} sq ft of the garden is not assigned to any zone")

        if recs:
            log.debug(f"Garden {garden.id}: {len(recs)} sunlight recommendations")
        return recs
