import json
import random
import pytest
from unittest.mock import patch
from garden_optimizer.cache import LayoutCache
from garden_optimizer.compatibility import CompatibilityChecker
from garden_optimizer.engine import LayoutEngine, get_engine
from garden_optimizer.errors import (
    CacheComputationError, InvalidInputError, InvalidParameterError, LayoutTimeoutError, UnplacedPlantWarning,
)
from garden_optimizer.models import Garden, OptimizationStatus, Plant, UnplacedReason, Zone
from garden_optimizer.settings import OptimizationParams


@pytest.fixture
def engine():
    return LayoutEngine(cache=LayoutCache())


@pytest.fixture
def exact():
    """Params under which a mature plant's footprint equals its spacing."""
    return OptimizationParams(maintenance_buffer=0)


@pytest.fixture
def sunny_garden():
    return Garden("g1", 100, (Zone("bed", 100, "FULL_SUN"),))


def assert_invariants(result, garden):
    checker = CompatibilityChecker()
    placed = set()
    for zone_layout in result.layout.zones:
        zone = garden.zone(zone_layout.zone_id)
        assert zone_layout.used_area <= zone.area
        plants = zone_layout.plants
        for i, a in enumerate(plants):
            assert checker.zone_accepts(zone, a)
            assert a.id not in placed
            placed.add(a.id)
            for b in plants[i + 1:]:
                assert checker.plants_compatible(a, b)
    assert 0 <= result.layout.space_utilization <= 100


# ═══════════════════════════════════════════════════════════════════════════
# Example scenarios
# ═══════════════════════════════════════════════════════════════════════════

def test_sun_zone_takes_sun_and_shade_plants(engine, exact, sunny_garden):
    """Verify tomato and lettuce both land in a full sun zone at 5% utilization."""
    plants = [
        Plant("tomato-1", "tomato", "FULL_SUN", spacing_requirement=4),
        Plant("lettuce-1", "lettuce", "PARTIAL_SHADE", spacing_requirement=1),
    ]
    result = engine.compute_layout(sunny_garden, plants, exact)

    assert result.status == OptimizationStatus.SUCCEEDED
    assert result.ok
    assert result.layout.plant_zone_map() == {"tomato-1": "bed", "lettuce-1": "bed"}
    assert result.layout.space_utilization == 5.0
    assert result.unplaced == ()
    assert result.error is None
    assert result.history == (OptimizationStatus.PENDING, OptimizationStatus.COMPUTING, OptimizationStatus.SUCCEEDED)


def test_incompatible_pair_one_unplaced(engine, exact, sunny_garden):
    """Verify only one of two incompatible plants is placed."""
    plants = [
        Plant("tomato-1", "tomato", "FULL_SUN", spacing_requirement=4, incompatible_plants=["potato"]),
        Plant("potato-1", "potato", "FULL_SUN", spacing_requirement=4),
    ]
    result = engine.compute_layout(sunny_garden, plants, exact)

    assert result.status == OptimizationStatus.PARTIAL
    placed = set(result.layout.plant_zone_map())
    unplaced = {u.plant_id for u in result.unplaced}
    assert len(placed) == 1 and len(unplaced) == 1
    assert placed | unplaced == {"tomato-1", "potato-1"}
    assert isinstance(result.warnings[0], UnplacedPlantWarning)
    assert result.warnings[0].plant_ids == list(unplaced)
    assert_invariants(result, sunny_garden)


def test_plant_larger_than_zone(engine, exact):
    """Verify a plant that fits no zone is reported, not fatal."""
    garden = Garden("g2", 3, (Zone("tiny", 3, "FULL_SUN"),))
    plants = [Plant("squash-1", "squash", "FULL_SUN", spacing_requirement=4)]

    for params in (None, exact):
        result = engine.compute_layout(garden, plants, params)
        assert result.status == OptimizationStatus.PARTIAL
        assert [u.plant_id for u in result.unplaced] == ["squash-1"]
        assert result.layout.zone("tiny").used_area == 0
        assert result.layout.space_utilization == 0.0
        # Below the default minimum zone size the zone is skipped outright
        assert result.skipped_zones == ("tiny",)
        assert result.unplaced[0].reason == UnplacedReason.ZONE_SKIPPED

    considered = OptimizationParams(maintenance_buffer=0, min_zone_size=1)
    result = engine.compute_layout(garden, plants, considered)
    assert result.status == OptimizationStatus.PARTIAL
    assert result.unplaced[0].reason == UnplacedReason.TOO_LARGE
    assert result.skipped_zones == ()


def test_tiny_deadline_returns_partial(engine):
    """Verify a 1ms deadline on a large input yields PARTIAL with a timeout tag."""
    zones = tuple(Zone(f"z{i:03d}", 10, ["FULL_SUN", "PARTIAL_SHADE", "FULL_SHADE"][i % 3]) for i in range(100))
    garden = Garden("big", 1000, zones)
    plants = [
        Plant(f"p{i:05d}", f"type{i % 40}", ["FULL_SUN", "PARTIAL_SHADE", "FULL_SHADE"][i % 3],
              spacing_requirement=0.5 + (i % 7) * 0.25, incompatible_plants=[f"type{(i + 1) % 40}"])
        for i in range(5000)
    ]
    result = engine.compute_layout(garden, plants, OptimizationParams(deadline_ms=1, allow_second_pass=True))

    assert result.status == OptimizationStatus.PARTIAL
    assert result.timed_out
    assert isinstance(result.error, LayoutTimeoutError)
    assert result.passes == 1
    assert result.unplaced
    assert_invariants(result, garden)
    # Timed out results are never cached
    assert len(engine.cache) == 0


# ═══════════════════════════════════════════════════════════════════════════
# Validation
# ═══════════════════════════════════════════════════════════════════════════

@pytest.mark.parametrize("garden", [
    Garden("g", 0.5, (Zone("a", 0.5, "FULL_SUN"),)),
    Garden("g", 1001, (Zone("a", 10, "FULL_SUN"),)),
    Garden("g", 100, ()),
    Garden("g", 100, (Zone("a", 60, "FULL_SUN"), Zone("b", 60, "FULL_SUN"))),
    Garden("g", 100, (Zone("a", 10, "FULL_SUN"), Zone("a", 10, "FULL_SUN"))),
    Garden("g", 100, (Zone("a", 0, "FULL_SUN"),)),
])
def test_invalid_garden_fails_fast(engine, garden):
    """Verify invalid gardens fail before any computation."""
    with patch.object(engine.assigner, "assign") as assign:
        result = engine.compute_layout(garden, [])
    assert result.status == OptimizationStatus.FAILED
    assert isinstance(result.error, InvalidInputError)
    assert result.layout is None
    assert result.history == (OptimizationStatus.PENDING, OptimizationStatus.FAILED)
    assign.assert_not_called()
    with pytest.raises(InvalidInputError):
        result.raise_for_status()


@pytest.mark.parametrize("spacing", [0, -2, float("nan"), float("inf")])
def test_unusable_spacing_fails(engine, sunny_garden, spacing):
    """Verify zero, negative and non-finite spacing never reach the assigner."""
    plants = [Plant("p1", "pepper", "FULL_SUN", spacing_requirement=spacing)]
    with patch.object(engine.assigner, "assign") as assign:
        result = engine.compute_layout(sunny_garden, plants)
    assert result.status == OptimizationStatus.FAILED
    assert isinstance(result.error, InvalidParameterError)
    assign.assert_not_called()


@pytest.mark.parametrize("garden", [
    Garden("g", float("nan"), (Zone("a", 10, "FULL_SUN"),)),
    Garden("g", 100, (Zone("a", float("nan"), "FULL_SUN"),)),
    Garden("g", 100, (Zone("a", float("inf"), "FULL_SUN"),)),
])
def test_non_finite_areas_fail(engine, garden):
    result = engine.compute_layout(garden, [Plant("p1", "pepper", "FULL_SUN")])
    assert result.status == OptimizationStatus.FAILED
    assert isinstance(result.error, InvalidInputError)


def test_non_finite_default_spacing_fails(engine, sunny_garden):
    params = OptimizationParams(default_spacing=float("nan"))
    result = engine.compute_layout(sunny_garden, [Plant("p1", "pepper", "FULL_SUN")], params)
    assert result.status == OptimizationStatus.FAILED
    assert "default_spacing" in str(result.error)


def test_duplicate_plant_ids_fail(engine, sunny_garden):
    plants = [Plant("p1", "pepper", "FULL_SUN"), Plant("p1", "basil", "FULL_SUN")]
    assert engine.compute_layout(sunny_garden, plants).status == OptimizationStatus.FAILED


def test_invalid_params_fail(engine, sunny_garden):
    result = engine.compute_layout(sunny_garden, [], OptimizationParams(target_utilization=150))
    assert result.status == OptimizationStatus.FAILED
    assert "target_utilization" in str(result.error)


# ═══════════════════════════════════════════════════════════════════════════
# Properties
# ═══════════════════════════════════════════════════════════════════════════

@pytest.fixture
def mixed_input():
    rng = random.Random(7)
    suns = ["FULL_SUN", "PARTIAL_SHADE", "FULL_SHADE"]
    garden = Garden("mixed", 400, tuple(Zone(f"z{i}", rng.choice([5, 12, 20, 35]), suns[i % 3]) for i in range(10)))
    types = ["tomato", "potato", "basil", "lettuce", "kale", "fern", "hosta", "bean"]
    plants = []
    for i in range(80):
        ptype = rng.choice(types)
        plants.append(Plant(
            f"p{i:02d}", ptype, rng.choice(suns),
            spacing_requirement=rng.choice([0.5, 1, 2.25, 4, 9]),
            growth_stage=rng.choice(["seedling", "growing", "flowering", "mature", "odd"]),
            companion_plants=[rng.choice(types)],
            incompatible_plants=[rng.choice(types)] if rng.random() < 0.3 else [],
        ))
    return garden, plants


def test_determinism(engine, mixed_input):
    """Verify repeated uncached calls give the same assignment."""
    garden, plants = mixed_input
    params = OptimizationParams(max_workers=6, allow_second_pass=True)
    first = engine.compute_layout(garden, plants, params, use_cache=False)
    for _ in range(3):
        again = engine.compute_layout(garden, plants, params, use_cache=False)
        assert again.layout.plant_zone_map() == first.layout.plant_zone_map()
        assert again.layout.space_utilization == first.layout.space_utilization


def test_invariants_hold(engine, mixed_input):
    garden, plants = mixed_input
    for params in (OptimizationParams(), OptimizationParams(allow_second_pass=True, zone_balancing="equal")):
        result = engine.compute_layout(garden, plants, params, use_cache=False)
        assert result.status in OptimizationStatus.TERMINAL
        assert_invariants(result, garden)
        assert len(result.layout.placements) + len(result.unplaced) == len(plants)


def test_second_pass_relaxes_spacing(engine):
    """Verify the relaxed pass lifts utilization past the target."""
    garden = Garden("g", 10, (Zone("bed", 10, "FULL_SUN"),))
    plants = [Plant(f"p{i}", "pepper", "FULL_SUN", spacing_requirement=3.5) for i in range(3)]

    single = engine.compute_layout(garden, plants, OptimizationParams(maintenance_buffer=0))
    assert single.passes == 1
    assert single.status == OptimizationStatus.PARTIAL
    assert single.layout.space_utilization == 70.0

    params = OptimizationParams(maintenance_buffer=0, allow_second_pass=True)
    result = engine.compute_layout(garden, plants, params)
    assert result.passes == 2
    assert result.status == OptimizationStatus.SUCCEEDED
    assert result.layout.space_utilization == pytest.approx(94.5)
    assert result.history == (
        OptimizationStatus.PENDING, OptimizationStatus.COMPUTING,
        OptimizationStatus.RETRY, OptimizationStatus.COMPUTING,
        OptimizationStatus.SUCCEEDED,
    )


def test_second_pass_at_most_once(engine):
    """Verify a hopeless layout is retried once and the better pass is kept."""
    garden = Garden("g", 100, (Zone("bed", 10, "FULL_SUN"),))
    plants = [Plant(f"p{i}", "squash", "FULL_SUN", spacing_requirement=8) for i in range(3)]
    params = OptimizationParams(maintenance_buffer=0, allow_second_pass=True)

    with patch.object(engine.assigner, "assign", wraps=engine.assigner.assign) as assign:
        result = engine.compute_layout(garden, plants, params)

    assert assign.call_count == 2
    assert result.passes == 2
    assert result.status == OptimizationStatus.PARTIAL
    assert result.layout.space_utilization == 8.0


def test_skipped_and_capped_zones(engine, exact):
    garden = Garden("g", 100, (
        Zone("pot", 2, "FULL_SUN"), Zone("a", 20, "FULL_SUN"), Zone("b", 20, "FULL_SUN"), Zone("c", 20, "FULL_SUN"),
    ))
    plants = [Plant(f"p{i}", "bean", "FULL_SUN", spacing_requirement=1) for i in range(5)]
    params = OptimizationParams(maintenance_buffer=0, max_zone_count=2)
    result = engine.compute_layout(garden, plants, params)

    assert result.skipped_zones == ("pot", "c")
    assert result.layout.zone("pot").skipped
    assert result.layout.zone("c").placements == ()
    assert [z.zone_id for z in result.layout.zones] == ["pot", "a", "b", "c"]


def test_result_is_cached(engine, exact, sunny_garden):
    """Verify identical requests are computed once."""
    plants = [Plant("t1", "tomato", "FULL_SUN", spacing_requirement=4)]
    first = engine.compute_layout(sunny_garden, plants, exact)
    second = engine.compute_layout(sunny_garden, list(reversed(plants)), exact)

    assert second is first
    assert engine.cache.stats()["computations"] == 1

    engine.compute_layout(sunny_garden, plants, exact, use_cache=False)
    assert engine.cache.stats()["computations"] == 1


def test_computation_error_becomes_failed(engine, sunny_garden):
    """Verify unexpected errors inside the computation come back as FAILED."""
    plants = [Plant("t1", "tomato", "FULL_SUN")]
    with patch.object(engine.assigner, "assign", side_effect=RuntimeError("worker crashed")):
        result = engine.compute_layout(sunny_garden, plants)

    assert result.status == OptimizationStatus.FAILED
    assert isinstance(result.error, CacheComputationError)
    assert isinstance(result.error.__cause__, RuntimeError)
    assert len(engine.cache) == 0

    # Slot released: the next call succeeds
    assert engine.compute_layout(sunny_garden, plants).status == OptimizationStatus.SUCCEEDED


def test_score_attached(engine, exact, sunny_garden):
    plants = [Plant("t1", "tomato", "FULL_SUN", spacing_requirement=4)]
    result = engine.compute_layout(sunny_garden, plants, exact)
    assert result.score.space_utilization == result.layout.space_utilization
    assert result.score.sunlight == 50.0
    assert json.loads(json.dumps(result.to_dict()))["status"] == "succeeded"


def test_seasonal_adjustments_grow_footprints(engine, sunny_garden):
    plants = [Plant("t1", "tomato", "FULL_SUN", spacing_requirement=10, growth_stage="seedling")]
    now = engine.compute_layout(sunny_garden, plants, OptimizationParams(maintenance_buffer=0))
    later = engine.compute_layout(sunny_garden, plants, OptimizationParams(maintenance_buffer=0, seasonal_adjustments=True))
    assert now.layout.space_utilization == 3.0
    assert later.layout.space_utilization == 6.0


def test_get_engine_singleton():
    assert get_engine() is get_engine()
