"""
Core data models for the Garden Layout Engine.

Inputs (Garden, Zone, Plant) are read-only snapshots supplied by the caller.
Outputs (Layout, OptimizationResult) are created once per call and never
mutated afterwards.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Dict, FrozenSet, Iterable, List, Optional, Tuple

from garden_optimizer.errors import InvalidInputError, OptimizationError


# ═══════════════════════════════════════════════════════════════════════════
# SUNLIGHT & GROWTH
# ═══════════════════════════════════════════════════════════════════════════
class SunlightCondition(Enum):
    """Sunlight level of a zone, or the level a plant needs."""
    FULL_SUN = "FULL_SUN"
    PARTIAL_SHADE = "PARTIAL_SHADE"
    FULL_SHADE = "FULL_SHADE"

    @property
    def hours(self) -> int:
        """Daily hours of direct sunlight this condition stands for."""
        return SUNLIGHT_HOURS[self]

    @classmethod
    def parse(cls, value: Any) -> "SunlightCondition":
        """Accept enum members and loose strings like 'full_sun' or 'Partial Shade'."""
        if isinstance(value, cls):
            return value
        key = str(value).strip().upper().replace(" ", "_").replace("-", "_")
        try:
            return cls(key)
        except ValueError:
            raise InvalidInputError(f"Unknown sunlight condition: {value!r}") from None


SUNLIGHT_HOURS = {
    SunlightCondition.FULL_SUN: 6,
    SunlightCondition.PARTIAL_SHADE: 4,
    SunlightCondition.FULL_SHADE: 2,
}


class GrowthStage(Enum):
    """Plant lifecycle stages, in the order a plant moves through them."""
    SEEDLING = "seedling"
    GROWING = "growing"
    FLOWERING = "flowering"
    FRUITING = "fruiting"
    MATURE = "mature"
    HARVESTING = "harvesting"


def normalize_stage(stage: Any) -> str:
    if isinstance(stage, GrowthStage):
        return stage.value
    return str(stage or "").strip().lower()


def _normalize_types(values: Optional[Iterable[str]]) -> FrozenSet[str]:
    return frozenset(str(v).strip().lower() for v in (values or ()))


# ═══════════════════════════════════════════════════════════════════════════
# INPUT RECORDS
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class Zone:
    """A sub-region of a garden with one sunlight condition and a fixed area."""
    id: str
    area: float
    sunlight_condition: SunlightCondition
    position: Optional[Tuple[float, float]] = None     # Rendering only
    dimensions: Optional[Tuple[float, float]] = None   # Rendering only

    def __post_init__(self):
        object.__setattr__(self, "sunlight_condition", SunlightCondition.parse(self.sunlight_condition))

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "area": self.area,
            "sunlight_condition": self.sunlight_condition.value,
            "position": list(self.position) if self.position else None,
            "dimensions": list(self.dimensions) if self.dimensions else None,
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Zone":
        return cls(
            id=str(data["id"]),
            area=float(data["area"]),
            sunlight_condition=data["sunlight_condition"],
            position=tuple(data["position"]) if data.get("position") else None,
            dimensions=tuple(data["dimensions"]) if data.get("dimensions") else None,
        )


@dataclass(frozen=True)
class Garden:
    """A bounded garden area split into zones."""
    id: str
    total_area: float
    zones: Tuple[Zone, ...]

    def __post_init__(self):
        object.__setattr__(self, "zones", tuple(self.zones))

    @property
    def zoned_area(self) -> float:
        return sum(z.area for z in self.zones)

    def zone(self, zone_id: str) -> Optional[Zone]:
        return next((z for z in self.zones if z.id == zone_id), None)

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "total_area": self.total_area,
            "zones": [z.to_dict() for z in self.zones],
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Garden":
        return cls(
            id=str(data["id"]),
            total_area=float(data["total_area"]),
            zones=tuple(Zone.from_dict(z) for z in data.get("zones", [])),
        )


@dataclass(frozen=True)
class Plant:
    """
    One plant instance to be placed.

    spacing_requirement is already in area units. None means "use the
    default spacing from the optimization params".
    """
    id: str
    type: str
    sunlight_needs: SunlightCondition
    spacing_requirement: Optional[float] = None
    growth_stage: str = GrowthStage.MATURE.value
    companion_plants: FrozenSet[str] = frozenset()
    incompatible_plants: FrozenSet[str] = frozenset()

    def __post_init__(self):
        object.__setattr__(self, "type", str(self.type).strip().lower())
        object.__setattr__(self, "sunlight_needs", SunlightCondition.parse(self.sunlight_needs))
        object.__setattr__(self, "growth_stage", normalize_stage(self.growth_stage))
        object.__setattr__(self, "companion_plants", _normalize_types(self.companion_plants))
        object.__setattr__(self, "incompatible_plants", _normalize_types(self.incompatible_plants))

    def to_dict(self) -> Dict:
        return {
            "id": self.id,
            "type": self.type,
            "sunlight_needs": self.sunlight_needs.value,
            "spacing_requirement": self.spacing_requirement,
            "growth_stage": self.growth_stage,
            "companion_plants": sorted(self.companion_plants),
            "incompatible_plants": sorted(self.incompatible_plants),
        }

    @classmethod
    def from_dict(cls, data: Dict) -> "Plant":
        spacing = data.get("spacing_requirement")
        return cls(
            id=str(data["id"]),
            type=data["type"],
            sunlight_needs=data["sunlight_needs"],
            spacing_requirement=float(spacing) if spacing is not None else None,
            growth_stage=data.get("growth_stage", GrowthStage.MATURE.value),
            companion_plants=frozenset(data.get("companion_plants", ())),
            incompatible_plants=frozenset(data.get("incompatible_plants", ())),
        )


# ═══════════════════════════════════════════════════════════════════════════
# OUTPUT RECORDS
# ═══════════════════════════════════════════════════════════════════════════
@dataclass(frozen=True)
class Placement:
    """A plant committed to a zone, with the footprint it reserved there."""
    plant: Plant
    zone_id: str
    footprint: float


Assignment = Dict[str, List[Placement]]


@dataclass(frozen=True)
class ZoneLayout:
    """Placements of one zone in a computed layout."""
    zone_id: str
    area: float
    sunlight_condition: SunlightCondition
    placements: Tuple[Placement, ...] = ()
    skipped: bool = False

    @property
    def used_area(self) -> float:
        return sum(p.footprint for p in self.placements)

    @property
    def remaining_area(self) -> float:
        return self.area - self.used_area

    @property
    def plants(self) -> List[Plant]:
        return [p.plant for p in self.placements]

    def to_dict(self) -> Dict:
        return {
            "zone_id": self.zone_id,
            "area": self.area,
            "sunlight_condition": self.sunlight_condition.value,
            "skipped": self.skipped,
            "used_area": round(self.used_area, 4),
            "placements": [
                {"plant_id": p.plant.id, "plant_type": p.plant.type, "footprint": round(p.footprint, 4)}
                for p in self.placements
            ],
        }


@dataclass(frozen=True)
class Layout:
    """The engine's output: which plants went to which zone."""
    garden_id: str
    zones: Tuple[ZoneLayout, ...]
    space_utilization: float
    generated_at: datetime = field(default_factory=datetime.now)

    @property
    def assignment(self) -> Dict[str, List[Plant]]:
        """Zone id -> placed plants, in garden zone order."""
        return {z.zone_id: z.plants for z in self.zones}

    @property
    def placements(self) -> List[Placement]:
        return [p for z in self.zones for p in z.placements]

    def plant_zone_map(self) -> Dict[str, str]:
        """Plant id -> zone id for every placed plant."""
        return {p.plant.id: p.zone_id for p in self.placements}

    def zone(self, zone_id: str) -> Optional[ZoneLayout]:
        return next((z for z in self.zones if z.zone_id == zone_id), None)

    def to_dict(self) -> Dict:
        return {
            "garden_id": self.garden_id,
            "space_utilization": self.space_utilization,
            "generated_at": self.generated_at.isoformat(),
            "zones": [z.to_dict() for z in self.zones],
        }


class UnplacedReason:
    """Why a plant did not end up in any zone."""
    NO_SUNLIGHT_MATCH = "no_sunlight_match"   # No zone in the garden offers enough light
    ZONE_SKIPPED = "zone_skipped"             # Only skipped zones offer enough light
    TOO_LARGE = "too_large"                   # Footprint exceeds every accepting zone
    CROWDED_OUT = "crowded_out"               # Space or compatibility ran out
    DEADLINE = "deadline"                     # Not reached before the deadline


@dataclass(frozen=True)
class UnplacedPlant:
    """A plant that found no eligible zone."""
    plant_id: str
    plant_type: str
    footprint: float
    reason: str

    def to_dict(self) -> Dict:
        return {
            "plant_id": self.plant_id,
            "plant_type": self.plant_type,
            "footprint": round(self.footprint, 4),
            "reason": self.reason,
        }


# ═══════════════════════════════════════════════════════════════════════════
# OPTIMIZATION RESULT
# ═══════════════════════════════════════════════════════════════════════════
class OptimizationStatus:
    """Lifecycle states of one optimization call."""
    PENDING = "pending"          # Accepted, not yet validated
    COMPUTING = "computing"      # Zone tasks running
    RETRY = "retry"              # Relaxed second pass requested
    SUCCEEDED = "succeeded"      # Every plant placed, no timeout
    PARTIAL = "partial"          # Layout returned with unplaced plants or a timeout
    FAILED = "failed"            # No layout; see error

    TERMINAL = (SUCCEEDED, PARTIAL, FAILED)


@dataclass(frozen=True)
class OptimizationResult:
    """
    Outcome of LayoutEngine.compute_layout.

    Attributes:
        status: Terminal OptimizationStatus value
        layout: Best layout found (None only when FAILED)
        unplaced: Plants that found no zone
        skipped_zones: Zone ids excluded by min_zone_size / max_zone_count
        error: Error tag (LayoutTimeoutError for timeouts, the failure for FAILED)
        warnings: UnplacedPlantWarning when plants are unplaced
        passes: Assignment passes run (1, or 2 with the relaxed retry)
        history: State transitions taken during the call
        score: LayoutScore breakdown for the returned layout
        elapsed_ms: Wall time of the computation
    """
    status: str
    layout: Optional[Layout] = None
    unplaced: Tuple[UnplacedPlant, ...] = ()
    skipped_zones: Tuple[str, ...] = ()
    error: Optional[OptimizationError] = None
    warnings: Tuple[Warning, ...] = ()
    passes: int = 0
    history: Tuple[str, ...] = ()
    score: Optional[Any] = None
    elapsed_ms: float = 0.0

    @property
    def ok(self) -> bool:
        return self.status == OptimizationStatus.SUCCEEDED

    @property
    def timed_out(self) -> bool:
        return isinstance(self.error, TimeoutError)

    def raise_for_status(self) -> None:
        """Raise the carried error if the call FAILED."""
        if self.status == OptimizationStatus.FAILED and self.error is not None:
            raise self.error

    def to_dict(self) -> Dict:
        return {
            "status": self.status,
            "layout": self.layout.to_dict() if self.layout else None,
            "unplaced": [u.to_dict() for u in self.unplaced],
            "skipped_zones": list(self.skipped_zones),
            "error": str(self.error) if self.error else None,
            "error_type": type(self.error).__name__ if self.error else None,
            "warnings": [str(w) for w in self.warnings],
            "passes": self.passes,
            "history": list(self.history),
            "score": self.score.to_dict() if self.score is not None else None,
            "elapsed_ms": round(self.elapsed_ms, 2),
        }
