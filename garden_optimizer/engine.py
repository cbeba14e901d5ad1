"""
Layout Engine - the single entry point for computing a garden layout.

Flow of one compute_layout call:
    PENDING ─ validate ─> COMPUTING ─ assign ─> [RETRY ─> COMPUTING] ─> SUCCEEDED | PARTIAL | FAILED

Validation failures come back as FAILED immediately. Deadline expiry and
unplaced plants come back as PARTIAL with the best layout found. Results
are cached per garden/plant-set fingerprint with single-flight semantics.
A caller sharing another caller's computation never waits past its own
deadline, and never inherits a timeout its own deadline did not cause.
"""

import logging
import math
import time
from typing import List, Optional, Sequence, Set

from tenacity import Retrying, retry_if_result, stop_after_attempt

from garden_optimizer.assigner import AssignmentOutcome, ZoneAssigner
from garden_optimizer.cache import LayoutCache, layout_cache_key
from garden_optimizer.errors import (
    CacheComputationError,
    CacheWaitTimeoutError,
    InvalidInputError,
    InvalidParameterError,
    LayoutTimeoutError,
    UnplacedPlantWarning,
)
from garden_optimizer.models import (
    Garden,
    Layout,
    OptimizationResult,
    OptimizationStatus,
    Plant,
    Zone,
    ZoneLayout,
)
from garden_optimizer.scoring import LayoutScorer
from garden_optimizer.settings import MAX_GARDEN_AREA, MIN_GARDEN_AREA, OptimizationParams
from garden_optimizer.utilization import UtilizationEvaluator

log = logging.getLogger(__name__)

# Zone areas may exceed the garden area by rounding noise only
AREA_EPSILON = 1e-6
# Share of the deadline after which a finished run is logged as slow
SLOW_RUN_FRACTION = 0.8


class LayoutEngine:
    """
    Computes plant layouts for gardens.

    Collaborators are constructor-injected so tests can swap them; the
    cache is the only state shared between calls.

    Usage:
        engine = LayoutEngine()
        result = engine.compute_layout(garden, plants, OptimizationParams(allow_second_pass=True))
        if result.status == OptimizationStatus.FAILED:
            result.raise_for_status()
        print(result.layout.space_utilization)
    """

    def __init__(
        self,
        cache: Optional[LayoutCache] = None,
        assigner: Optional[ZoneAssigner] = None,
        evaluator: Optional[UtilizationEvaluator] = None,
        scorer: Optional[LayoutScorer] = None,
    ):
        self.cache = cache if cache is not None else LayoutCache()
        self.assigner = assigner or ZoneAssigner()
        self.evaluator = evaluator or UtilizationEvaluator()
        self.scorer = scorer or LayoutScorer()

    # ═══════════════════════════════════════════════════════════════════════
    # VALIDATION
    # ═══════════════════════════════════════════════════════════════════════

    def validate(self, garden: Garden, plants: Sequence[Plant], params: OptimizationParams) -> None:
        """
        Fail fast on unusable input.

        Raises:
            InvalidInputError: bad garden, zones or params
            InvalidParameterError: a plant with non-positive or non-finite spacing
        """
        if not math.isfinite(garden.total_area) or not MIN_GARDEN_AREA <= garden.total_area <= MAX_GARDEN_AREA:
            raise InvalidInputError(
                f"Garden area must be between {MIN_GARDEN_AREA:g} and {MAX_GARDEN_AREA:g} sq ft, "
                f"got {garden.total_area:g}"
            )
        if not garden.zones:
            raise InvalidInputError(f"Garden {garden.id} has no zones")

        zone_ids: Set[str] = set()
        for zone in garden.zones:
            if zone.id in zone_ids:
                raise InvalidInputError(f"Duplicate zone id: {zone.id}")
            zone_ids.add(zone.id)
            if not math.isfinite(zone.area) or zone.area <= 0:
                raise InvalidInputError(f"Zone {zone.id} has unusable area: {zone.area:g}")

        if garden.zoned_area > garden.total_area + AREA_EPSILON:
            raise InvalidInputError(
                f"Zone areas ({garden.zoned_area:g}) exceed garden area ({garden.total_area:g})"
            )

        plant_ids: Set[str] = set()
        for plant in plants:
            if plant.id in plant_ids:
                raise InvalidInputError(f"Duplicate plant id: {plant.id}")
            plant_ids.add(plant.id)
            spacing = plant.spacing_requirement
            if spacing is not None and (not math.isfinite(spacing) or spacing <= 0):
                raise InvalidParameterError(
                    f"Plant {plant.id} has unusable spacing requirement: {spacing:g}"
                )

        params.validate()

    # ═══════════════════════════════════════════════════════════════════════
    # ENTRY POINT
    # ═══════════════════════════════════════════════════════════════════════

    def compute_layout(
        self,
        garden: Garden,
        plants: Sequence[Plant],
        params: Optional[OptimizationParams] = None,
        use_cache: bool = True,
    ) -> OptimizationResult:
        """
        Compute the best layout for a garden and a set of plants.

        Args:
            garden: Garden snapshot with its zones
            plants: Plants to place
            params: Optimization params (defaults if None)
            use_cache: Reuse or store the result in the layout cache

        Returns:
            OptimizationResult; never raises for invalid input or timeouts
        """
        start = time.monotonic()
        params = params or OptimizationParams()
        plants = tuple(plants)

        try:
            self.validate(garden, plants, params)
        except InvalidInputError as e:
            log.warning(f"Rejected layout request for garden {garden.id}: {e}")
            return OptimizationResult(
                status=OptimizationStatus.FAILED,
                error=e,
                history=(OptimizationStatus.PENDING, OptimizationStatus.FAILED),
                elapsed_ms=(time.monotonic() - start) * 1000,
            )

        deadline = start + params.deadline_ms / 1000

        def compute() -> OptimizationResult:
            return self._optimize(garden, plants, params, start, deadline)

        def usable(result: OptimizationResult) -> bool:
            # Another caller's timeout is not ours while our own budget lasts
            return not result.timed_out or time.monotonic() >= deadline

        try:
            if not use_cache:
                return compute()
            key = layout_cache_key(garden, plants, params)
            return self.cache.get_or_compute(
                key,
                compute,
                ttl=params.cache_ttl_seconds,
                should_cache=lambda result: not result.timed_out,
                wait_timeout=max(0.0, deadline - time.monotonic()),
                should_share=usable,
            )
        except CacheWaitTimeoutError:
            return self._expired_while_waiting(garden, plants, params, start)
        except CacheComputationError as e:
            return OptimizationResult(
                status=OptimizationStatus.FAILED,
                error=e,
                history=(OptimizationStatus.PENDING, OptimizationStatus.COMPUTING, OptimizationStatus.FAILED),
                elapsed_ms=(time.monotonic() - start) * 1000,
            )

    # ═══════════════════════════════════════════════════════════════════════
    # OPTIMIZATION
    # ═══════════════════════════════════════════════════════════════════════

    def _optimize(
        self,
        garden: Garden,
        plants: Sequence[Plant],
        params: OptimizationParams,
        start: float,
        deadline: float,
    ) -> OptimizationResult:
        history = [OptimizationStatus.PENDING, OptimizationStatus.COMPUTING]
        considered, skipped = self.assigner.select_zones(garden.zones, params)
        if skipped:
            log.info(
                f"Skipping {len(skipped)} zones below min size or over the zone cap: {[z.id for z in skipped]}"
            )

        attempts: List[AssignmentOutcome] = []

        def run_pass() -> AssignmentOutcome:
            relaxed = bool(attempts)
            if relaxed:
                history.extend([OptimizationStatus.RETRY, OptimizationStatus.COMPUTING])
            outcome = self.assigner.assign(
                considered, plants, params, deadline=deadline, relaxed=relaxed, skipped_zones=skipped,
            )
            attempts.append(outcome)
            return outcome

        def wants_second_pass(outcome: AssignmentOutcome) -> bool:
            utilization = self.evaluator.evaluate(outcome.assignment, garden.total_area)
            return self.evaluator.should_retry(utilization, len(outcome.unplaced), outcome.timed_out, params)

        # At most one relaxed retry per call
        retrying = Retrying(
            stop=stop_after_attempt(2 if params.allow_second_pass else 1),
            retry=retry_if_result(wants_second_pass),
            retry_error_callback=lambda state: state.outcome.result(),
        )
        retrying(run_pass)

        best = self._best_pass(attempts, garden.total_area)
        return self._build_result(garden, plants, params, start, best, skipped, history, len(attempts))

    def _expired_while_waiting(
        self,
        garden: Garden,
        plants: Sequence[Plant],
        params: OptimizationParams,
        start: float,
    ) -> OptimizationResult:
        """PARTIAL result for a caller whose deadline ran out behind another caller's computation."""
        considered, skipped = self.assigner.select_zones(garden.zones, params)
        outcome = self.assigner.expired_outcome(considered, plants, params, skipped_zones=skipped)
        history = [OptimizationStatus.PENDING, OptimizationStatus.COMPUTING]
        return self._build_result(garden, plants, params, start, outcome, skipped, history, 0, timed_out=True)

    def _build_result(
        self,
        garden: Garden,
        plants: Sequence[Plant],
        params: OptimizationParams,
        start: float,
        best: AssignmentOutcome,
        skipped: Sequence[Zone],
        history: List[str],
        passes: int,
        timed_out: bool = False,
    ) -> OptimizationResult:
        skipped_ids = tuple(z.id for z in skipped)
        utilization = self.evaluator.evaluate(best.assignment, garden.total_area)

        layout = Layout(
            garden_id=garden.id,
            zones=tuple(
                ZoneLayout(
                    zone_id=z.id,
                    area=z.area,
                    sunlight_condition=z.sunlight_condition,
                    placements=tuple(best.assignment.get(z.id, ())),
                    skipped=z.id in skipped_ids,
                )
                for z in garden.zones
            ),
            space_utilization=utilization,
        )

        error = None
        if timed_out or best.timed_out:
            error = LayoutTimeoutError(params.deadline_ms, best.zones_completed, best.zones_total)
            log.warning(f"Garden {garden.id}: {error}")

        warnings = ()
        if best.unplaced:
            warning = UnplacedPlantWarning(u.plant_id for u in best.unplaced)
            warnings = (warning,)
            log.warning(f"Garden {garden.id}: {warning}")

        status = OptimizationStatus.PARTIAL if (error or warnings) else OptimizationStatus.SUCCEEDED
        history.append(status)
        elapsed_ms = (time.monotonic() - start) * 1000

        log.info(
            f"Layout computed for garden {garden.id}: {status}, {utilization:.1f}% utilized, "
            f"{len(plants) - len(best.unplaced)}/{len(plants)} plants placed, "
            f"{passes} pass(es), {elapsed_ms:.0f}ms"
        )
        if elapsed_ms > params.deadline_ms * SLOW_RUN_FRACTION:
            log.warning(f"Slow layout run for garden {garden.id}: {elapsed_ms:.0f}ms of {params.deadline_ms:.0f}ms budget")

        return OptimizationResult(
            status=status,
            layout=layout,
            unplaced=tuple(best.unplaced),
            skipped_zones=skipped_ids,
            error=error,
            warnings=warnings,
            passes=passes,
            history=tuple(history),
            score=self.scorer.score(layout, garden),
            elapsed_ms=elapsed_ms,
        )

    def _best_pass(self, attempts: List[AssignmentOutcome], total_area: float) -> AssignmentOutcome:
        """Higher utilization wins, then fewer unplaced plants; ties keep the earlier pass."""
        return max(
            attempts,
            key=lambda o: (self.evaluator.evaluate(o.assignment, total_area), -len(o.unplaced)),
        )


# Singleton
_engine: Optional[LayoutEngine] = None


def get_engine() -> LayoutEngine:
    """Get singleton layout engine (shares one cache across callers)."""
    global _engine
    if _engine is None:
        _engine = LayoutEngine()
    return _engine
