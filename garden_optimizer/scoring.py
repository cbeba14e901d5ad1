"""
Layout Scoring

Rates a computed layout on three axes and suggests what to change:
- Space: how much of the garden the placed plants use
- Sunlight: how well the garden's light is distributed
- Compatibility: how many co-located plant pairs get along

overall = 0.4 × space + 0.4 × sunlight + 0.2 × compatibility
"""

import logging
from dataclasses import dataclass, field, asdict
from itertools import combinations
from typing import Dict, List, Optional, Sequence

from garden_optimizer.compatibility import CompatibilityChecker
from garden_optimizer.models import Garden, Layout, UnplacedPlant
from garden_optimizer.sunlight import SunlightAnalyzer

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# WEIGHTS & THRESHOLDS
# ═══════════════════════════════════════════════════════════════════════════
SCORE_WEIGHTS = {
    "space": 0.4,
    "sunlight": 0.4,
    "compatibility": 0.2,
}

SPACE_THRESHOLD = 70.0
SUNLIGHT_THRESHOLD = 80.0
COMPATIBILITY_THRESHOLD = 90.0


@dataclass
class LayoutScore:
    """Score breakdown for one layout. All values are percentages (0-100)."""
    space_utilization: float
    sunlight: float
    compatibility: float
    overall: float
    companion_pairs: int = 0
    zone_utilization: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict:
        return asdict(self)


@dataclass
class ImprovementSuggestion:
    """A prioritized hint; priority 1 is the most important."""
    category: str
    priority: int
    message: str

    def to_dict(self) -> Dict:
        return asdict(self)


# ═══════════════════════════════════════════════════════════════════════════
# LAYOUT SCORER
# ═══════════════════════════════════════════════════════════════════════════
class LayoutScorer:
    """
    Usage:
        scorer = LayoutScorer()
        score = scorer.score(layout, garden)
        print(scorer.explain(score))
        for s in scorer.suggest_improvements(score, result.unplaced):
            print(s.priority, s.message)
    """

    def __init__(
        self,
        sunlight: Optional[SunlightAnalyzer] = None,
        compatibility: Optional[CompatibilityChecker] = None,
    ):
        self.sunlight = sunlight or SunlightAnalyzer()
        self.compatibility = compatibility or CompatibilityChecker()

    def score(self, layout: Layout, garden: Garden) -> LayoutScore:
        space = layout.space_utilization
        sunlight = self.sunlight.score(garden)

        total_pairs = compatible_pairs = companion_pairs = 0
        zone_utilization = {}
        for zone in layout.zones:
            plants = zone.plants
            for a, b in combinations(plants, 2):
                total_pairs += 1
                if self.compatibility.plants_compatible(a, b):
                    compatible_pairs += 1
                if self.compatibility.are_companions(a, b):
                    companion_pairs += 1
            if zone.area > 0:
                zone_utilization[zone.zone_id] = round(min(100.0, zone.used_area / zone.area * 100), 2)

        compatibility = 100.0 if total_pairs == 0 else compatible_pairs / total_pairs * 100

        overall = (
            SCORE_WEIGHTS["space"] * space
            + SCORE_WEIGHTS["sunlight"] * sunlight
            + SCORE_WEIGHTS["compatibility"] * compatibility
        )

        return LayoutScore(
            space_utilization=round(space, 2),
            sunlight=round(sunlight, 2),
            compatibility=round(compatibility, 2),
            overall=round(overall, 2),
            companion_pairs=companion_pairs,
            zone_utilization=zone_utilization,
        )

    def explain(self, score: LayoutScore) -> str:
        """Generate human-readable explanation of a score."""
        lines = [f"Overall: {score.overall:.1f}/100", ""]
        lines.append("Components:")
        lines.append(f"  space:         {score.space_utilization:5.1f}  (x{SCORE_WEIGHTS['space']})")
        lines.append(f"  sunlight:      {score.sunlight:5.1f}  (x{SCORE_WEIGHTS['sunlight']})")
        lines.append(f"  compatibility: {score.compatibility:5.1f}  (x{SCORE_WEIGHTS['compatibility']})")

        if score.companion_pairs:
            lines.append(f"\nCompanion pairs sharing a zone: {score.companion_pairs}")

        if score.zone_utilization:
            lines.append("\nZone usage:")
            for zone_id, pct in score.zone_utilization.items():
                lines.append(f"  {zone_id}: {pct:.1f}%")

        return "\n".join(lines)

    def suggest_improvements(
        self,
        score: LayoutScore,
        unplaced: Sequence[UnplacedPlant] = (),
    ) -> List[ImprovementSuggestion]:
        """Suggestions ordered by priority (most important first)."""
        suggestions = []

        if unplaced:
            suggestions.append(ImprovementSuggestion(
                "unplaced", 1,
                f"{len(unplaced)} plant(s) could not be placed; add zones, reduce plants, "
                f"or enable the relaxed second pass",
            ))
        if score.space_utilization < SPACE_THRESHOLD:
            suggestions.append(ImprovementSuggestion(
                "space", 1,
                "Consider adding more plants or reducing spacing to improve space utilization",
            ))
        if score.sunlight < SUNLIGHT_THRESHOLD:
            suggestions.append(ImprovementSuggestion(
                "sunlight", 2,
                "Rearrange zones to give sun-loving plants more full sun",
            ))
        if score.compatibility < COMPATIBILITY_THRESHOLD:
            suggestions.append(ImprovementSuggestion(
                "compatibility", 3,
                "Separate incompatible plants into different zones",
            ))

        suggestions.sort(key=lambda s: s.priority)
        return suggestions


def get_scorer() -> LayoutScorer:
    """Factory function for the layout scorer."""
    return LayoutScorer()
