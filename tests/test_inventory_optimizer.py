"""
Tests for the Inventory Optimizer: stock plans, catalog-wide allocation
and slow-mover detection.
"""

import numpy as np
import pytest

from bazaarflow_ai.exceptions import AllocationError
from bazaarflow_ai.services.inventory_optimizer import (
    BindingConstraint,
    InventoryOptimizer,
    StockRecommendation,
)

from tests.helpers import make_forecast, make_profile, make_series


def _plan(product_id, quantity, unit_cost, unit_margin, daily_demand=1.0, storage=1.0,
          lead_time_std=0.0):
    return StockRecommendation(
        product_id=product_id, current_stock=0.0, optimal_stock=float(quantity),
        reorder_point=0.0, safety_stock=0.0, lead_time_demand=0.0,
        required_quantity=quantity, reorder_quantity=quantity,
        daily_demand=daily_demand, unit_cost=unit_cost, unit_margin=unit_margin,
        storage_units_per_item=storage,
        lead_time_std_days=lead_time_std,
    )


def _value(plans):
    return sum(p.reorder_quantity * p.unit_margin for p in plans)


@pytest.fixture
def optimizer(config):
    return InventoryOptimizer(config)


def test_plan_with_certain_demand_and_uncertain_lead_time(optimizer):
    profile = make_profile(current_stock=20.0, lead_time_days=7.0, lead_time_std_days=1.0)
    plan = optimizer.compute_plan(profile, make_forecast(np.full(30, 10.0)))

    z = optimizer.service_factor
    assert z == pytest.approx(1.6449, abs=1e-4)
    assert plan.safety_stock == pytest.approx(round(z * 10.0, 2))
    assert plan.lead_time_demand == pytest.approx(70.0)
    assert plan.reorder_point == pytest.approx(round(70.0 + z * 10.0, 2))
    assert plan.required_quantity == int(np.ceil(140.0 + z * 10.0 - 20.0))
    assert plan.binding_constraint is BindingConstraint.NONE


def test_demand_uncertainty_raises_safety_stock(optimizer):
    profile = make_profile(current_stock=0.0, lead_time_std_days=0.0)
    certain = optimizer.compute_plan(profile, make_forecast(np.full(30, 10.0)))
    uncertain = optimizer.compute_plan(profile, make_forecast(np.full(30, 10.0), half_width=6.0))
    assert certain.safety_stock == 0.0
    assert uncertain.safety_stock > 0.0
    assert uncertain.daily_std == pytest.approx(6.0 / 1.959964, abs=1e-3)


def test_no_reorder_above_reorder_point(optimizer):
    profile = make_profile(current_stock=100.0)
    plan = optimizer.compute_plan(profile, make_forecast(np.full(30, 10.0)))
    assert plan.required_quantity == 0
    assert not plan.needs_reorder


def test_fractional_lead_time(optimizer):
    profile = make_profile(current_stock=0.0, lead_time_days=2.5, lead_time_std_days=0.0)
    plan = optimizer.compute_plan(profile, make_forecast([10.0, 20.0, 40.0, 40.0]))
    assert plan.lead_time_demand == pytest.approx(10.0 + 20.0 + 0.5 * 40.0)


def test_storage_cap_prefers_velocity_times_margin(config):
    config.inventory.storage_capacity = 15
    optimizer = InventoryOptimizer(config)
    plans = [
        _plan('slow', 20, unit_cost=50, unit_margin=10, daily_demand=2.0),
        _plan('fast', 10, unit_cost=100, unit_margin=50, daily_demand=5.0),
    ]
    allocated, summary = optimizer.allocate(plans)

    by_id = {p.product_id: p for p in allocated}
    assert [p.product_id for p in allocated] == ['slow', 'fast']
    assert by_id['fast'].reorder_quantity == 10
    assert by_id['fast'].binding_constraint is BindingConstraint.NONE
    assert by_id['slow'].reorder_quantity == 5
    assert by_id['slow'].binding_constraint is BindingConstraint.STORAGE
    assert by_id['slow'].required_quantity == 20
    assert summary.storage_used == 15
    assert summary.constrained == 1


def test_storage_tie_prefers_predictable_lead_time(config):
    config.inventory.storage_capacity = 10
    plans = [
        _plan('erratic', 10, 100, 20, daily_demand=2.0, lead_time_std=3.0),
        _plan('steady', 10, 100, 20, daily_demand=2.0, lead_time_std=0.5),
    ]
    assert plans[0].priority_score == plans[1].priority_score

    allocated, _ = InventoryOptimizer(config).allocate(plans)
    by_id = {p.product_id: p for p in allocated}
    assert by_id['steady'].reorder_quantity == 10
    assert by_id['erratic'].reorder_quantity == 0
    assert by_id['erratic'].binding_constraint is BindingConstraint.STORAGE


def test_budget_is_untouched_when_everything_fits(config):
    config.inventory.budget = 10_000
    plans = [_plan('a', 10, 100, 50), _plan('b', 5, 200, 20)]
    allocated, summary = InventoryOptimizer(config).allocate(plans)
    assert allocated == plans
    assert summary.budget_used == 2000


def test_exact_budget_allocation_finds_better_combination(config):
    config.inventory.budget = 1000
    optimizer = InventoryOptimizer(config)
    plans = [
        _plan('p', 6, unit_cost=100, unit_margin=100),
        _plan('q', 5, unit_cost=100, unit_margin=90),
        _plan('r', 5, unit_cost=100, unit_margin=90),
    ]
    exact, summary = optimizer.allocate(plans, strategy='exact')
    by_id = {p.product_id: p for p in exact}

    assert by_id['q'].reorder_quantity == 5
    assert by_id['r'].reorder_quantity == 5
    assert by_id['p'].reorder_quantity == 0
    assert by_id['p'].binding_constraint is BindingConstraint.BUDGET
    assert summary.budget_used <= 1000

    greedy, greedy_summary = optimizer.allocate(plans, strategy='greedy')
    assert greedy_summary.budget_used <= 1000
    assert _value(greedy) >= 0.5 * _value(exact)


def test_greedy_falls_back_to_best_single_item(config):
    optimizer = InventoryOptimizer(config)
    plans = [
        _plan('tiny', 1, unit_cost=1, unit_margin=2),
        _plan('big', 10, unit_cost=100, unit_margin=100),
    ]
    allocated = optimizer.allocate_budget(plans, budget=1000, strategy='greedy')
    by_id = {p.product_id: p for p in allocated}
    assert by_id['big'].reorder_quantity == 10
    assert by_id['tiny'].reorder_quantity == 0


def test_storage_then_budget(config):
    config.inventory.storage_capacity = 10
    config.inventory.budget = 500
    plans = [_plan('a', 8, 100, 40, daily_demand=3.0), _plan('b', 8, 50, 10, daily_demand=1.0)]
    _, summary = InventoryOptimizer(config).allocate(plans)
    assert summary.storage_used <= 10
    assert summary.budget_used <= 500


@pytest.mark.parametrize("strategy", ['exact', 'greedy'])
def test_lifting_budget_never_reduces_fully_stocked(config, strategy):
    rng = np.random.default_rng(3)
    plans = [
        _plan(f'sku-{i}', int(rng.integers(1, 30)), float(rng.uniform(5, 200)), float(rng.uniform(1, 80)))
        for i in range(12)
    ]
    total_cost = sum(p.reorder_cost for p in plans)

    config.inventory.budget = None
    _, unlimited = InventoryOptimizer(config).allocate(plans, strategy=strategy)
    assert unlimited.fully_stocked == len(plans)

    for share in (0.1, 0.3, 0.6, 0.9):
        config.inventory.budget = share * total_cost
        _, capped = InventoryOptimizer(config).allocate(plans, strategy=strategy)
        assert capped.budget_used <= config.inventory.budget + 1e-6
        assert capped.fully_stocked <= unlimited.fully_stocked


def test_oversized_knapsack_raises(config):
    config.inventory.budget = 100
    config.inventory.max_knapsack_cells = 100
    plans = [_plan('a', 5, 50, 10), _plan('b', 5, 50, 10)]
    with pytest.raises(AllocationError):
        InventoryOptimizer(config).allocate(plans, strategy='exact')

    _, summary = InventoryOptimizer(config).allocate(plans, strategy='greedy')
    assert summary.budget_used <= 100


def test_unknown_strategy(optimizer):
    with pytest.raises(AllocationError):
        optimizer.allocate_budget([_plan('a', 5, 50, 10)], budget=10, strategy='magic')


def _snacks(**extra):
    """Four snack series selling 10 units a day, plus any extra ones."""
    names = ('chips', 'namkeen', 'biscuits', 'mixture')
    series = {pid: make_series(np.full(60, 10.0), product_id=pid) for pid in names}
    series.update(extra)
    return series


def test_slow_mover_flagged_against_category(optimizer):
    series = _snacks(
        slow=make_series(np.full(60, 1.0), product_id='slow'),
        alone=make_series(np.full(60, 0.5), product_id='alone'),
    )
    categories = {pid: 'snacks' for pid in series}
    categories['alone'] = 'tea'
    flags = optimizer.detect_slow_movers(series, categories)

    assert [f.product_id for f in flags] == ['slow']
    assert flags[0].category == 'snacks'
    assert flags[0].velocity == pytest.approx(1.0)
    assert flags[0].category_threshold > flags[0].velocity
    assert flags[0].window_days == 21


def test_recovered_product_is_not_a_slow_mover(optimizer):
    recovering = np.full(60, 1.0)
    recovering[-3:] = 30.0
    series = _snacks(slow=make_series(recovering, product_id='slow'))
    assert optimizer.detect_slow_movers(series, {pid: 'snacks' for pid in series}) == []


def test_short_history_is_not_a_slow_mover(optimizer):
    series = _snacks(new=make_series(np.full(10, 1.0), product_id='new', start='2025-02-20'))
    assert optimizer.detect_slow_movers(series, {pid: 'snacks' for pid in series}) == []


def test_small_category_has_no_slow_movers(config):
    series = {
        'a': make_series(np.full(60, 100.0), product_id='a'),
        'b': make_series(np.full(60, 99.0), product_id='b'),
    }
    categories = {'a': 'snacks', 'b': 'snacks'}
    assert InventoryOptimizer(config).detect_slow_movers(series, categories) == []

    config.inventory.slow_mover_min_category_size = 2
    flags = InventoryOptimizer(config).detect_slow_movers(series, categories)
    assert [f.product_id for f in flags] == ['b']
