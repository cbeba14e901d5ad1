"""
Utilization Evaluator - how much of the garden the placed plants occupy.

utilization = min(100, used_area / total_area × 100), where used_area is the
footprint each placement actually reserved.
"""

import logging
from typing import Dict

from garden_optimizer.models import Assignment
from garden_optimizer.settings import OptimizationParams

log = logging.getLogger(__name__)


class UtilizationEvaluator:
    """Space utilization of an assignment and the second-pass decision."""

    def used_area(self, assignment: Assignment) -> float:
        return sum(p.footprint for placements in assignment.values() for p in placements)

    def evaluate(self, assignment: Assignment, total_area: float) -> float:
        """Utilization percent in [0, 100], rounded to 2 decimals."""
        if total_area <= 0:
            return 0.0
        percent = self.used_area(assignment) / total_area * 100
        return round(max(0.0, min(100.0, percent)), 2)

    def zone_utilization(self, assignment: Assignment, zone_areas: Dict[str, float]) -> Dict[str, float]:
        """Zone id -> percent of that zone's own area in use."""
        result = {}
        for zone_id, area in zone_areas.items():
            used = sum(p.footprint for p in assignment.get(zone_id, []))
            result[zone_id] = round(min(100.0, used / area * 100), 2) if area > 0 else 0.0
        return result

    def meets_target(self, utilization: float, params: OptimizationParams) -> bool:
        return utilization >= params.target_utilization

    def should_retry(self, utilization: float, unplaced_count: int, timed_out: bool,
                     params: OptimizationParams) -> bool:
        """
        Whether to request the relaxed second pass.

        Only when it is enabled, the target was missed, there is something
        left to place, and the first pass was not cut short by the deadline.
        """
        if not params.allow_second_pass or timed_out or unplaced_count == 0:
            return False
        if self.meets_target(utilization, params):
            return False
        log.info(
            f"Utilization {utilization:.1f}% below target {params.target_utilization:.1f}% "
            f"with {unplaced_count} unplaced, requesting relaxed pass"
        )
        return True
