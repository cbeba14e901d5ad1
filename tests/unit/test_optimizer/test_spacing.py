import pytest
from garden_optimizer.errors import InvalidParameterError
from garden_optimizer.models import GrowthStage, Plant
from garden_optimizer.settings import OptimizationParams
from garden_optimizer.spacing import SpacingCalculator, stage_multiplier


def make_plant(spacing=4.0, stage="mature"):
    return Plant(id="p1", type="tomato", sunlight_needs="FULL_SUN",
                 spacing_requirement=spacing, growth_stage=stage)


def test_stage_multipliers():
    """Verify the growth stage table."""
    assert stage_multiplier("seedling") == 0.3
    assert stage_multiplier("growing") == 0.6
    assert stage_multiplier("vegetative") == 0.6
    assert stage_multiplier(GrowthStage.FLOWERING) == 0.8
    assert stage_multiplier("fruiting") == 1.0
    assert stage_multiplier("mature") == 1.0
    assert stage_multiplier("dormant") == 0.5


def test_seasonal_multiplier_uses_next_stage():
    assert stage_multiplier("seedling", seasonal=True) == 0.6
    assert stage_multiplier("flowering", seasonal=True) == 1.0
    assert stage_multiplier("mature", seasonal=True) == 1.0


def test_required_footprint_with_buffer():
    """Verify footprint = spacing x multiplier + buffer."""
    calc = SpacingCalculator(maintenance_buffer=0.5)
    assert calc.required_footprint(make_plant(4.0)) == pytest.approx(4.5)
    assert calc.required_footprint(make_plant(4.0, "seedling")) == pytest.approx(1.7)


def test_worst_case_footprint_override():
    calc = SpacingCalculator(maintenance_buffer=0)
    seedling = make_plant(4.0, "seedling")
    assert calc.required_footprint(seedling) == pytest.approx(1.2)
    assert calc.required_footprint(seedling, growth_stage=GrowthStage.MATURE) == pytest.approx(4.0)


def test_default_spacing_fallback():
    calc = SpacingCalculator(maintenance_buffer=0, default_spacing=2.0)
    assert calc.required_footprint(make_plant(None)) == pytest.approx(2.0)


@pytest.mark.parametrize("spacing", [0, -1.5, float("nan"), float("inf")])
def test_unusable_spacing(spacing):
    """Verify non-positive and non-finite spacing is rejected."""
    with pytest.raises(InvalidParameterError):
        SpacingCalculator().required_footprint(make_plant(spacing))


def test_from_params():
    params = OptimizationParams(maintenance_buffer=0.25, default_spacing=3, seasonal_adjustments=True)
    calc = SpacingCalculator.from_params(params)
    assert calc.maintenance_buffer == 0.25
    assert calc.default_spacing == 3
    assert calc.seasonal_adjustments is True
    assert calc.required_footprint(make_plant(None, "seedling")) == pytest.approx(3 * 0.6 + 0.25)


def test_relaxed_footprint():
    calc = SpacingCalculator()
    assert calc.relaxed_footprint(10.0, 0.1) == pytest.approx(9.0)
    assert calc.relaxed_footprint(10.0, 0.1, companion_nearby=True) == pytest.approx(6.75)
    assert calc.relaxed_footprint(10.0, 0.0) == pytest.approx(10.0)
