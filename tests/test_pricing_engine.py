"""
Tests for the Elasticity & Pricing Engine.
"""

import numpy as np
import pytest

from bazaarflow_ai.exceptions import ConstraintViolation
from bazaarflow_ai.services.pricing_engine import (
    ElasticityEstimate,
    PricingEngine,
    RationaleTag,
    round_up_paisa,
)

from tests.helpers import make_profile, make_series


PRICE_LEVELS = np.array([90.0, 95.0, 100.0, 105.0, 110.0])


def _priced_series(slope, days=60, noise=0.02, seed=7):
    rng = np.random.default_rng(seed)
    prices = np.resize(PRICE_LEVELS, days)
    quantities = 1000.0 * (prices / 100.0) ** slope * (1.0 + rng.normal(0.0, noise, size=days))
    return make_series(quantities, prices=prices)


def _estimate(slope, reliable=True):
    return ElasticityEstimate('sku-1', slope, (90.0, 110.0), 0.05, reliable, 60, 5)


@pytest.fixture
def engine(config):
    return PricingEngine(config)


def test_fits_log_log_slope(engine):
    estimate = engine.estimator.fit(_priced_series(-2.0))
    assert estimate.reliable
    assert estimate.slope == pytest.approx(-2.0, abs=0.15)
    assert estimate.price_levels == 5
    assert estimate.is_elastic


def test_positive_slope_is_unreliable(engine):
    estimate = engine.estimator.fit(_priced_series(1.0))
    assert not estimate.reliable
    assert estimate.reason == "non-negative slope"


def test_constant_price_is_not_fitted(engine):
    series = make_series(np.full(60, 10.0), prices=np.full(60, 100.0))
    estimate = engine.estimator.fit(series)
    assert not estimate.reliable
    assert estimate.slope is None
    assert "distinct prices" in estimate.reason


def test_too_few_priced_days_is_not_fitted(engine):
    estimate = engine.estimator.fit(_priced_series(-2.0, days=10))
    assert estimate.slope is None
    assert "priced sales days" in estimate.reason


def test_margin_floor_overrides_competitor_band(engine):
    profile = make_profile(cost_price=100.0, current_price=110.0, competitor_price=110.0)
    rec = engine.price_product(profile, None)

    assert rec.recommended_price == 120.00
    assert rec.rationale is RationaleTag.MARGIN_FLOOR
    assert rec.margin_check.passed
    assert rec.low_confidence
    assert rec.expected_quantity_delta is None


def test_cost_plus_default_without_reliable_elasticity(engine):
    profile = make_profile(cost_price=90.0, current_price=110.0, competitor_price=110.0)
    rec = engine.price_product(profile, None)

    assert rec.recommended_price == 112.50
    assert rec.rationale is RationaleTag.COST_PLUS_DEFAULT
    assert rec.low_confidence


def test_elastic_optimum_within_change_limit(engine):
    profile = make_profile(cost_price=55.0, current_price=100.0)
    rec = engine.recommend(profile, _estimate(-2.0), baseline_demand=300.0)

    assert rec.recommended_price == 110.00
    assert rec.rationale is RationaleTag.ELASTICITY_OPTIMUM
    assert not rec.low_confidence
    assert rec.expected_quantity_delta == pytest.approx(300.0 * (1.1 ** -2.0 - 1.0), abs=1e-3)


def test_price_change_is_capped_per_cycle(engine):
    profile = make_profile(cost_price=60.0, current_price=100.0)
    rec = engine.recommend(profile, _estimate(-2.0), baseline_demand=300.0)
    assert rec.recommended_price == 115.00
    assert rec.rationale is RationaleTag.PRICE_CHANGE_CAP

    inelastic = engine.recommend(profile, _estimate(-0.5), baseline_demand=300.0)
    assert inelastic.recommended_price == 115.00
    assert inelastic.rationale is RationaleTag.PRICE_CHANGE_CAP


def test_optimum_at_current_price_holds(engine):
    profile = make_profile(cost_price=50.0, current_price=100.0)
    rec = engine.recommend(profile, _estimate(-2.0))
    assert rec.recommended_price == 100.00
    assert rec.rationale is RationaleTag.HOLD
    assert not rec.changes_price


def test_competitor_band_narrows_with_intensity(engine):
    assert engine.competitor_band(100.0) == (95.0, 105.0)
    assert engine.competitor_band(100.0, competitive_intensity=1.0) == (97.5, 102.5)


def test_competitor_alignment(engine):
    profile = make_profile(cost_price=60.0, current_price=100.0, competitor_price=100.0)
    rec = engine.recommend(profile, _estimate(-2.0), competitive_intensity=1.0)
    assert rec.recommended_price == 102.50
    assert rec.rationale is RationaleTag.COMPETITOR_ALIGNED


def test_enforce_margin_raises(engine):
    profile = make_profile(cost_price=100.0, current_price=110.0)
    with pytest.raises(ConstraintViolation) as excinfo:
        engine.enforce_margin(profile, 110.0)
    assert excinfo.value.constraint == 'margin_floor'
    assert engine.enforce_margin(profile, 120.0).passed


def test_recommendation_never_breaks_margin_floor(engine):
    rng = np.random.default_rng(2024)
    for _ in range(300):
        cost = float(rng.uniform(1.0, 5000.0))
        current = cost * float(rng.uniform(0.5, 2.5))
        competitor = cost * float(rng.uniform(0.3, 3.0)) if rng.random() < 0.7 else None
        slope = float(rng.uniform(-6.0, -0.1))
        reliable = bool(rng.random() < 0.6)
        profile = make_profile(cost_price=cost, current_price=current, competitor_price=competitor)

        rec = engine.recommend(profile, _estimate(slope, reliable),
                               competitive_intensity=float(rng.uniform(0.0, 1.0)))

        assert rec.recommended_price >= cost * 1.2 - 1e-9
        assert round(rec.recommended_price, 2) == rec.recommended_price


def test_round_up_paisa():
    assert round_up_paisa(120.0000000001) == 120.0
    assert round_up_paisa(100.001) == 100.01
    assert round_up_paisa(99.99) == 99.99
