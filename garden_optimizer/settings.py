"""
Optimization Settings

Every knob the layout engine understands lives in OptimizationParams.
All values have an explicit meaning - no hidden defaults.
"""

import logging
import math
import os
from dataclasses import dataclass, asdict, fields
from typing import Dict, Optional

from garden_optimizer.errors import InvalidInputError

log = logging.getLogger(__name__)


# ═══════════════════════════════════════════════════════════════════════════
# ENGINE CONSTANTS
# ═══════════════════════════════════════════════════════════════════════════
MIN_GARDEN_AREA = 1.0
MAX_GARDEN_AREA = 1000.0

DEFAULT_TARGET_UTILIZATION = 92.0
DEFAULT_MIN_ZONE_SIZE = 4.0
DEFAULT_PLANT_SPACING = 1.0          # 12 inch spacing, in square feet
DEFAULT_MAINTENANCE_BUFFER = 0.5     # Access space added to every plant
DEFAULT_SPACING_SLACK = 0.1          # Relaxed pass shrinks footprints by 10%
DEFAULT_DEADLINE_MS = 3000           # Layout generation performance requirement
DEFAULT_CACHE_TTL_SECONDS = 24 * 3600

COMPANION_SPACING_FACTOR = 0.75      # Companions share 25% of their space

# Numeric params that must be finite
_NUMERIC_PARAMS = (
    "target_utilization",
    "min_zone_size",
    "default_spacing",
    "maintenance_buffer",
    "spacing_slack",
    "deadline_ms",
    "cache_ttl_seconds",
)


class ZoneBalancing:
    """Strategies that decide which zone gets first claim on a plant."""
    OPTIMAL = "optimal"    # Shade zones first, then larger zones
    EQUAL = "equal"        # Smaller zones first, spreading plants out

    ALL = (OPTIMAL, EQUAL)


def default_worker_count() -> int:
    """A small multiple of the available cores; zone counts are usually single digits."""
    return min(32, (os.cpu_count() or 1) * 2)


# ═══════════════════════════════════════════════════════════════════════════
# OPTIMIZATION PARAMS
# ═══════════════════════════════════════════════════════════════════════════
@dataclass
class OptimizationParams:
    """
    All configurable settings for one optimization call.
    """

    # Targets
    target_utilization: float = DEFAULT_TARGET_UTILIZATION
    """Minimum desired space utilization in percent (0-100)."""

    # Zone selection
    min_zone_size: float = DEFAULT_MIN_ZONE_SIZE
    """Zones smaller than this (area units) are skipped and receive no plants."""

    max_zone_count: Optional[int] = None
    """Cap on zones considered, in garden order. None means unlimited."""

    zone_balancing: str = ZoneBalancing.OPTIMAL
    """Which zone claims a contested plant first: 'optimal' or 'equal'."""

    # Footprint math
    default_spacing: float = DEFAULT_PLANT_SPACING
    """Spacing used when a plant has no explicit spacing requirement."""

    maintenance_buffer: float = DEFAULT_MAINTENANCE_BUFFER
    """Fixed access area added to every plant's footprint for tending."""

    seasonal_adjustments: bool = False
    """If True, plants are planned at the size of the next growth stage they reach this season."""

    # Second pass
    allow_second_pass: bool = False
    """If True, one relaxed re-run is attempted when utilization is below target."""

    spacing_slack: float = DEFAULT_SPACING_SLACK
    """Fraction (0-1) by which footprints shrink during the relaxed pass."""

    companion_planting_enabled: bool = True
    """If True, companions of already-placed plants get tighter spacing in the relaxed pass."""

    # Execution
    deadline_ms: float = DEFAULT_DEADLINE_MS
    """Overall time budget for one call in milliseconds."""

    max_workers: Optional[int] = None
    """Zone worker pool size. None uses a small multiple of the CPU count."""

    cache_ttl_seconds: float = DEFAULT_CACHE_TTL_SECONDS
    """How long a computed layout stays cached."""

    @property
    def worker_count(self) -> int:
        return self.max_workers or default_worker_count()

    def validate(self) -> "OptimizationParams":
        """Raise InvalidInputError if any value is out of range."""
        for name in _NUMERIC_PARAMS:
            value = getattr(self, name)
            if not math.isfinite(value):
                raise InvalidInputError(f"{name} must be a finite number, got {value}")
        if not 0 <= self.target_utilization <= 100:
            raise InvalidInputError(
                f"target_utilization must be between 0 and 100, got {self.target_utilization}"
            )
        if self.min_zone_size < 0:
            raise InvalidInputError(f"min_zone_size cannot be negative, got {self.min_zone_size}")
        if self.max_zone_count is not None and self.max_zone_count < 1:
            raise InvalidInputError(f"max_zone_count must be at least 1, got {self.max_zone_count}")
        if self.zone_balancing not in ZoneBalancing.ALL:
            raise InvalidInputError(
                f"zone_balancing must be one of {ZoneBalancing.ALL}, got {self.zone_balancing!r}"
            )
        if self.default_spacing <= 0:
            raise InvalidInputError(f"default_spacing must be positive, got {self.default_spacing}")
        if self.maintenance_buffer < 0:
            raise InvalidInputError(
                f"maintenance_buffer cannot be negative, got {self.maintenance_buffer}"
            )
        if not 0 <= self.spacing_slack < 1:
            raise InvalidInputError(f"spacing_slack must be in [0, 1), got {self.spacing_slack}")
        if self.deadline_ms <= 0:
            raise InvalidInputError(f"deadline_ms must be positive, got {self.deadline_ms}")
        if self.max_workers is not None and self.max_workers < 1:
            raise InvalidInputError(f"max_workers must be at least 1, got {self.max_workers}")
        if self.cache_ttl_seconds <= 0:
            raise InvalidInputError(
                f"cache_ttl_seconds must be positive, got {self.cache_ttl_seconds}"
            )
        return self

    def to_dict(self) -> Dict:
        return asdict(self)

    @classmethod
    def from_dict(cls, data: Dict) -> "OptimizationParams":
        known = {f.name for f in fields(cls)}
        unknown = set(data) - known
        if unknown:
            log.warning(f"Ignoring unknown optimization params: {sorted(unknown)}")
        return cls(**{k: v for k, v in data.items() if k in known})
