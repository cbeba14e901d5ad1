"""
Garden Layout Engine.
Places plants into garden zones under space, sunlight and compatibility constraints.
"""

from garden_optimizer.models import (
    Garden,
    Zone,
    Plant,
    SunlightCondition,
    GrowthStage,
    Placement,
    ZoneLayout,
    Layout,
    UnplacedPlant,
    UnplacedReason,
    OptimizationStatus,
    OptimizationResult,
)
from garden_optimizer.settings import OptimizationParams, ZoneBalancing
from garden_optimizer.errors import (
    OptimizationError,
    InvalidInputError,
    InvalidParameterError,
    LayoutTimeoutError,
    CacheComputationError,
    CacheWaitTimeoutError,
    UnplacedPlantWarning,
)
from garden_optimizer.spacing import SpacingCalculator
from garden_optimizer.compatibility import CompatibilityChecker
from garden_optimizer.assigner import ZoneAssigner
from garden_optimizer.cache import LayoutCache, layout_cache_key
from garden_optimizer.utilization import UtilizationEvaluator
from garden_optimizer.sunlight import SunlightAnalyzer
from garden_optimizer.scoring import LayoutScorer, LayoutScore
from garden_optimizer.engine import LayoutEngine, get_engine

__all__ = [
    # Models
    "Garden",
    "Zone",
    "Plant",
    "SunlightCondition",
    "GrowthStage",
    "Placement",
    "ZoneLayout",
    "Layout",
    "UnplacedPlant",
    "UnplacedReason",
    "OptimizationStatus",
    "OptimizationResult",
    # Settings
    "OptimizationParams",
    "ZoneBalancing",
    # Errors
    "OptimizationError",
    "InvalidInputError",
    "InvalidParameterError",
    "LayoutTimeoutError",
    "CacheComputationError",
    "CacheWaitTimeoutError",
    "UnplacedPlantWarning",
    # Engine components
    "SpacingCalculator",
    "CompatibilityChecker",
    "ZoneAssigner",
    "LayoutCache",
    "layout_cache_key",
    "UtilizationEvaluator",
    "SunlightAnalyzer",
    "LayoutScorer",
    "LayoutScore",
    "LayoutEngine",
    "get_engine",
]
