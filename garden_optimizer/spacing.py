"""
Spacing Calculator - effective footprint of a plant.

footprint = spacing_requirement × stage_multiplier + maintenance_buffer

Immature plants occupy less realized space even though they will need full
spacing eventually. Callers doing worst-case capacity planning should ask
for the footprint at GrowthStage.MATURE explicitly.
"""

import logging
import math
from typing import Any, Dict, Optional

from garden_optimizer.errors import InvalidParameterError
from garden_optimizer.models import GrowthStage, Plant, normalize_stage
from garden_optimizer.settings import (
    COMPANION_SPACING_FACTOR,
    DEFAULT_MAINTENANCE_BUFFER,
    DEFAULT_PLANT_SPACING,
    OptimizationParams,
)

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# GROWTH STAGE TABLE
# ═══════════════════════════════════════════════════════════════════════════
GROWTH_STAGE_MULTIPLIERS: Dict[str, float] = {
    GrowthStage.SEEDLING.value: 0.3,
    GrowthStage.GROWING.value: 0.6,
    "vegetative": 0.6,
    GrowthStage.FLOWERING.value: 0.8,
    GrowthStage.FRUITING.value: 1.0,
    GrowthStage.MATURE.value: 1.0,
    GrowthStage.HARVESTING.value: 1.0,
}
UNKNOWN_STAGE_MULTIPLIER = 0.5

# Stage a plant reaches by the end of the season
NEXT_STAGE: Dict[str, str] = {
    GrowthStage.SEEDLING.value: GrowthStage.GROWING.value,
    GrowthStage.GROWING.value: GrowthStage.FLOWERING.value,
    "vegetative": GrowthStage.FLOWERING.value,
    GrowthStage.FLOWERING.value: GrowthStage.FRUITING.value,
    GrowthStage.FRUITING.value: GrowthStage.MATURE.value,
}


def stage_multiplier(stage: Any, seasonal: bool = False) -> float:
    """Footprint multiplier for a growth stage; unknown stages get 0.5."""
    key = normalize_stage(stage)
    if seasonal:
        key = NEXT_STAGE.get(key, key)
    return GROWTH_STAGE_MULTIPLIERS.get(key, UNKNOWN_STAGE_MULTIPLIER)


# ═══════════════════════════════════════════════════════════════════════════
# SPACING CALCULATOR
# ═══════════════════════════════════════════════════════════════════════════
class SpacingCalculator:
    """
    Computes the exclusive area a plant needs inside a zone.

    Usage:
        calc = SpacingCalculator(maintenance_buffer=0.5)
        calc.required_footprint(plant)
        calc.required_footprint(plant, growth_stage=GrowthStage.MATURE)
    """

    def __init__(
        self,
        maintenance_buffer: float = DEFAULT_MAINTENANCE_BUFFER,
        default_spacing: float = DEFAULT_PLANT_SPACING,
        seasonal_adjustments: bool = False,
    ):
        self.maintenance_buffer = maintenance_buffer
        self.default_spacing = default_spacing
        self.seasonal_adjustments = seasonal_adjustments

    @classmethod
    def from_params(cls, params: OptimizationParams) -> "SpacingCalculator":
        return cls(
            maintenance_buffer=params.maintenance_buffer,
            default_spacing=params.default_spacing,
            seasonal_adjustments=params.seasonal_adjustments,
        )

    def base_spacing(self, plant: Plant) -> float:
        """Spacing requirement before growth adjustment, falling back to the default."""
        spacing = plant.spacing_requirement
        if spacing is None:
            spacing = self.default_spacing
        if not math.isfinite(spacing) or spacing <= 0:
            raise InvalidParameterError(
                f"Plant {plant.id} has unusable spacing requirement: {spacing}"
            )
        return float(spacing)

    def required_footprint(self, plant: Plant, growth_stage: Optional[Any] = None) -> float:
        """
        Effective footprint of a plant in area units.

        Args:
            plant: The plant to measure
            growth_stage: Override the plant's own stage (e.g. MATURE for worst case)

        Raises:
            InvalidParameterError: if the spacing requirement is not a positive finite number
        """
        stage = plant.growth_stage if growth_stage is None else growth_stage
        multiplier = stage_multiplier(stage, seasonal=self.seasonal_adjustments)
        return self.base_spacing(plant) * multiplier + self.maintenance_buffer

    def relaxed_footprint(self, footprint: float, slack: float, companion_nearby: bool = False) -> float:
        """Footprint used by the relaxed second pass."""
        relaxed = footprint * (1.0 - slack)
        if companion_nearby:
            relaxed *= COMPANION_SPACING_FACTOR
        return relaxed
