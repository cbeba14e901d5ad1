"""
Zone Assigner - greedy placement of plants into zones.

Algorithm:
1. Sort plants by footprint, largest first (ties by plant id) to avoid fragmentation
2. Run one task per zone on a bounded worker pool
3. Each zone walks the sorted list and keeps a plant if the zone's light suits it,
   it still fits, it gets along with everything already there, and the claim
   table hands it over
4. Plants nobody could take are reported with a reason, never dropped silently
"""

import logging
import threading
import time
from concurrent.futures import ThreadPoolExecutor, wait
from dataclasses import dataclass, field
from typing import Dict, List, Optional, Sequence, Tuple

from garden_optimizer.claims import ClaimTable
from garden_optimizer.compatibility import CompatibilityChecker
from garden_optimizer.models import Assignment, Placement, Plant, UnplacedPlant, UnplacedReason, Zone
from garden_optimizer.settings import OptimizationParams, ZoneBalancing
from garden_optimizer.spacing import SpacingCalculator

log = logging.getLogger(__name__)

RankedPlant = Tuple[Plant, float]


@dataclass
class AssignmentOutcome:
    """
    Result of one assignment pass.

    Attributes:
        assignment: Zone id -> placements, in the order zones were given
        unplaced: Plants no zone took
        zones_completed: Zone tasks that walked the whole plant list
        zones_total: Zone tasks started or queued
        relaxed: Whether this was the relaxed second pass
        elapsed_ms: Wall time of the pass
    """
    assignment: Assignment = field(default_factory=dict)
    unplaced: List[UnplacedPlant] = field(default_factory=list)
    zones_completed: int = 0
    zones_total: int = 0
    relaxed: bool = False
    elapsed_ms: float = 0.0

    @property
    def timed_out(self) -> bool:
        return self.zones_completed < self.zones_total


def _remaining_seconds(deadline: Optional[float]) -> Optional[float]:
    if deadline is None:
        return None
    return max(0.0, deadline - time.monotonic())


def _expired(deadline: Optional[float]) -> bool:
    return deadline is not None and time.monotonic() >= deadline


class ZoneAssigner:
    """
    Assigns plants to zones, one worker task per zone.

    Usage:
        assigner = ZoneAssigner()
        considered, skipped = assigner.select_zones(garden.zones, params)
        outcome = assigner.assign(considered, plants, params, deadline=time.monotonic() + 3)
    """

    def __init__(
        self,
        compatibility: Optional[CompatibilityChecker] = None,
        spacing: Optional[SpacingCalculator] = None,
    ):
        self.compatibility = compatibility or CompatibilityChecker()
        self.spacing = spacing

    # ------------------------------------------------------------------
    # Ordering
    # ------------------------------------------------------------------

    def select_zones(self, zones: Sequence[Zone], params: OptimizationParams) -> Tuple[List[Zone], List[Zone]]:
        """Split zones into (considered, skipped) by min_zone_size and max_zone_count."""
        considered, skipped = [], []
        for zone in zones:
            if zone.area < params.min_zone_size:
                skipped.append(zone)
            elif params.max_zone_count is not None and len(considered) >= params.max_zone_count:
                skipped.append(zone)
            else:
                considered.append(zone)
        return considered, skipped

    def order_zones(self, zones: Sequence[Zone], balancing: str = ZoneBalancing.OPTIMAL) -> List[Zone]:
        """Priority order in which zones get first claim on a plant."""
        indexed = list(enumerate(zones))
        if balancing == ZoneBalancing.EQUAL:
            indexed.sort(key=lambda iz: (iz[1].area, iz[0]))
        else:
            # Darkest zones first: they can host the fewest plants, sun zones stay open
            indexed.sort(key=lambda iz: (iz[1].sunlight_condition.hours, -iz[1].area, iz[0]))
        return [zone for _, zone in indexed]

    def rank_plants(self, plants: Sequence[Plant], spacing: SpacingCalculator) -> List[RankedPlant]:
        """Plants with their footprints, largest footprint first, ties by id."""
        ranked = [(plant, spacing.required_footprint(plant)) for plant in plants]
        ranked.sort(key=lambda pf: (-pf[1], pf[0].id))
        return ranked

    # ------------------------------------------------------------------
    # Assignment
    # ------------------------------------------------------------------

    def assign(
        self,
        zones: Sequence[Zone],
        plants: Sequence[Plant],
        params: Optional[OptimizationParams] = None,
        deadline: Optional[float] = None,
        relaxed: bool = False,
        skipped_zones: Sequence[Zone] = (),
    ) -> AssignmentOutcome:
        """
        Place plants into zones.

        Args:
            zones: Zones to fill (already filtered by select_zones)
            plants: Plants to place; never mutated
            params: Optimization params (defaults if None)
            deadline: time.monotonic() value at which zone tasks stop
            relaxed: Use relaxed footprints (second pass)
            skipped_zones: Zones select_zones left out; only used to explain unplaced plants

        Returns:
            AssignmentOutcome; timed_out is set if the deadline cut any zone short
        """
        params = params or OptimizationParams()
        spacing = self.spacing or SpacingCalculator.from_params(params)
        start = time.monotonic()

        ordered = self.order_zones(zones, params.zone_balancing)
        ranked = self.rank_plants(plants, spacing)
        claims = ClaimTable([p.id for p, _ in ranked], [z.id for z in ordered])
        cancel = threading.Event()
        placed: Dict[str, List[Placement]] = {z.id: [] for z in ordered}
        completed: Dict[str, bool] = {}

        if ordered:
            workers = max(1, min(params.worker_count, len(ordered)))
            with ThreadPoolExecutor(max_workers=workers, thread_name_prefix="zone") as executor:
                futures = {
                    executor.submit(
                        self._fill_zone, zone, index, ranked, claims, placed[zone.id],
                        spacing, params, cancel, deadline, relaxed,
                    ): zone.id
                    for index, zone in enumerate(ordered)
                }

                done, pending = wait(futures, timeout=_remaining_seconds(deadline))
                if pending:
                    log.warning(f"Deadline reached with {len(pending)}/{len(futures)} zone tasks unfinished")
                    cancel.set()
                    claims.abort()
                    for future in pending:
                        future.cancel()
                    wait(futures)

                for future, zone_id in futures.items():
                    completed[zone_id] = not future.cancelled() and future.result()

        owners = claims.snapshot()
        outcome = AssignmentOutcome(
            assignment={z.id: list(placed.get(z.id, [])) for z in zones},
            zones_completed=sum(1 for ok in completed.values() if ok),
            zones_total=len(ordered),
            relaxed=relaxed,
        )
        outcome.unplaced = self._collect_unplaced(
            ranked, ordered, skipped_zones, owners, outcome.timed_out, relaxed, spacing, params,
        )
        outcome.elapsed_ms = (time.monotonic() - start) * 1000

        log.debug(
            f"{'Relaxed' if relaxed else 'Initial'} pass placed {len(owners)}/{len(ranked)} plants "
            f"in {outcome.elapsed_ms:.1f}ms ({outcome.zones_completed}/{outcome.zones_total} zones finished)"
        )
        return outcome

    def expired_outcome(
        self,
        zones: Sequence[Zone],
        plants: Sequence[Plant],
        params: Optional[OptimizationParams] = None,
        skipped_zones: Sequence[Zone] = (),
    ) -> AssignmentOutcome:
        """Outcome of a pass whose deadline ran out before any zone task started."""
        params = params or OptimizationParams()
        spacing = self.spacing or SpacingCalculator.from_params(params)
        ordered = self.order_zones(zones, params.zone_balancing)
        outcome = AssignmentOutcome(assignment={z.id: [] for z in zones}, zones_total=len(ordered))
        outcome.unplaced = self._collect_unplaced(
            self.rank_plants(plants, spacing), ordered, skipped_zones, {}, True, False, spacing, params,
        )
        return outcome

    def _fill_zone(
        self,
        zone: Zone,
        zone_index: int,
        ranked: List[RankedPlant],
        claims: ClaimTable,
        placed: List[Placement],
        spacing: SpacingCalculator,
        params: OptimizationParams,
        cancel: threading.Event,
        deadline: Optional[float],
        relaxed: bool,
    ) -> bool:
        """
        Walk the sorted plants for one zone. Runs on a worker thread.

        Returns:
            True if every plant was considered, False if cancelled early
        """
        used = 0.0
        try:
            for index, (plant, footprint) in enumerate(ranked):
                # Cancellation point between placement steps
                if cancel.is_set() or _expired(deadline):
                    return False
                if not claims.await_turn(zone_index, index, deadline):
                    return False
                try:
                    if claims.owner(plant.id) is not None:
                        continue
                    if not self.compatibility.zone_accepts(zone, plant):
                        continue
                    neighbours = [p.plant for p in placed]
                    if relaxed:
                        companion_nearby = (
                            params.companion_planting_enabled
                            and self.compatibility.has_companion(plant, neighbours)
                        )
                        footprint = spacing.relaxed_footprint(footprint, params.spacing_slack, companion_nearby)
                    if used + footprint > zone.area:
                        continue
                    if not self.compatibility.compatible_with_all(plant, neighbours):
                        continue
                    if claims.claim(plant.id, zone.id):
                        placed.append(Placement(plant=plant, zone_id=zone.id, footprint=footprint))
                        used += footprint
                finally:
                    claims.advance(zone_index, index + 1)
            return True
        finally:
            claims.finish(zone_index)

    def _collect_unplaced(
        self,
        ranked: List[RankedPlant],
        zones: List[Zone],
        skipped_zones: Sequence[Zone],
        owners: Dict[str, str],
        timed_out: bool,
        relaxed: bool,
        spacing: SpacingCalculator,
        params: OptimizationParams,
    ) -> List[UnplacedPlant]:
        unplaced = []
        for plant, footprint in ranked:
            if plant.id in owners:
                continue
            smallest = spacing.relaxed_footprint(footprint, params.spacing_slack) if relaxed else footprint
            accepting = [z for z in zones if self.compatibility.zone_accepts(z, plant)]
            if not accepting:
                if any(self.compatibility.zone_accepts(z, plant) for z in skipped_zones):
                    reason = UnplacedReason.ZONE_SKIPPED
                else:
                    reason = UnplacedReason.NO_SUNLIGHT_MATCH
            elif all(smallest > z.area for z in accepting):
                reason = UnplacedReason.TOO_LARGE
            elif timed_out:
                reason = UnplacedReason.DEADLINE
            else:
                reason = UnplacedReason.CROWDED_OUT
            unplaced.append(UnplacedPlant(plant.id, plant.type, footprint, reason))
        return unplaced
