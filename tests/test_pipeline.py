"""
Tests for the Business Intelligence Engine refresh cycle.
"""

import json

import numpy as np
import pandas as pd
import pytest

from bazaarflow_ai.exceptions import (
    AllocationError,
    ConstraintViolation,
    CycleAborted,
    DataValidationError,
)
from bazaarflow_ai.pipeline import BusinessIntelligenceEngine, CycleReason
from bazaarflow_ai.services.forecaster import ForecastState
from bazaarflow_ai.services.recommendation_composer import ActionCategory
from bazaarflow_ai.services.seasonal_adjuster import SeasonalCalendar

from tests.helpers import BUSINESS_ID, START, make_transactions


DAYS = 90
CYCLE_TS = START + pd.Timedelta(days=DAYS, hours=2)


def _catalog(*product_ids):
    return pd.DataFrame([
        {
            'product_id': pid, 'category': 'snacks', 'location': 'MH/Mumbai',
            'cost_price': 80.0, 'current_price': 100.0, 'current_stock': 20.0,
            'lead_time_days': 5.0, 'lead_time_std_days': 1.0,
            'attributes': 'spicy,baked',
        }
        for pid in product_ids
    ])


@pytest.fixture
def history():
    return make_transactions({
        'sku-1': np.full(DAYS, 10.0),
        'sku-2': np.full(DAYS, 5.0),
        'sku-3': np.full(DAYS, 8.0),
    })


@pytest.fixture
def engine(config, history):
    config.cycle.auto_refresh = False
    config.cycle.max_workers = 2
    engine = BusinessIntelligenceEngine(config, calendar=SeasonalCalendar(config))
    engine.load_catalog(BUSINESS_ID, _catalog('sku-1', 'sku-2', 'sku-3'))
    engine.ingest_transactions(history)
    return engine


def test_cycle_produces_every_output(engine):
    result = engine.run_cycle(BUSINESS_ID, CycleReason.SCHEDULED, cycle_ts=CYCLE_TS)

    assert result.products_run == ('sku-1', 'sku-2', 'sku-3')
    assert result.failures == ()
    assert result.as_of == START + pd.Timedelta(days=DAYS - 1)
    assert set(result.forecasts) == {'sku-1', 'sku-2', 'sku-3'}
    assert set(result.forecasts['sku-1']) == {30, 60, 90}
    assert len(result.forecasts['sku-1'][60].predictions) == 60
    assert result.forecasts['sku-1'][30].state is ForecastState.ACTIVE
    assert set(result.pricing) == set(result.stock) == {'sku-1', 'sku-2', 'sku-3'}

    assert result.actions
    assert [a.rank for a in result.actions] == list(range(1, len(result.actions) + 1))
    assert all(a.cycle_id == result.cycle_id for a in result.actions)
    assert any(a.category is ActionCategory.REORDER for a in result.actions)
    assert engine.latest(BUSINESS_ID) is result

    json.dumps(result.to_dict(), default=str)


def test_same_cycle_timestamp_returns_same_result(engine):
    first = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)
    second = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)
    assert second is first


def test_product_failure_is_isolated(engine, monkeypatch):
    original = engine.pricing.price_product

    def flaky(profile, *args, **kwargs):
        if profile.product_id == 'sku-2':
            raise RuntimeError("pricing service unavailable")
        return original(profile, *args, **kwargs)

    monkeypatch.setattr(engine.pricing, 'price_product', flaky)
    result = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)

    assert [(f.product_id, f.stage, f.error_type) for f in result.failures] == [
        ('sku-2', 'pricing', 'RuntimeError')
    ]
    assert set(result.pricing) == {'sku-1', 'sku-3'}
    assert 'sku-2' in result.forecasts
    assert 'sku-2' in result.stock


def test_constraint_violation_becomes_alert(engine, monkeypatch):
    original = engine.pricing.price_product

    def strict(profile, *args, **kwargs):
        if profile.product_id == 'sku-3':
            raise ConstraintViolation("below floor", product_id='sku-3', constraint='margin_floor')
        return original(profile, *args, **kwargs)

    monkeypatch.setattr(engine.pricing, 'price_product', strict)
    result = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)

    alerts = [a for a in result.actions if a.category is ActionCategory.CONSTRAINT_ALERT]
    assert [a.product_id for a in alerts] == ['sku-3']


def test_cancelled_cycle_keeps_previous_result(engine, monkeypatch):
    previous = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)
    original = engine.forecaster.forecast_product

    def cancelling(*args, **kwargs):
        engine.cancel(BUSINESS_ID)
        return original(*args, **kwargs)

    monkeypatch.setattr(engine.forecaster, 'forecast_product', cancelling)
    with pytest.raises(CycleAborted):
        engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS + pd.Timedelta(days=1))

    assert engine.latest(BUSINESS_ID) is previous


def test_allocation_falls_back_to_greedy(config, engine, monkeypatch):
    config.inventory.budget = 500.0
    original = engine.optimizer.allocate
    calls = []

    def failing_once(plans, strategy=None):
        calls.append(strategy)
        if len(calls) == 1:
            raise AllocationError("solver table too large")
        return original(plans, strategy)

    monkeypatch.setattr(engine.optimizer, 'allocate', failing_once)
    result = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)

    assert calls == ['exact', 'greedy']
    assert result.allocation.strategy == 'greedy'
    assert result.allocation.budget_used <= 500.0


def test_allocation_failure_aborts_cycle(engine, monkeypatch):
    previous = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)

    def always_failing(plans, strategy=None):
        raise AllocationError("no feasible allocation")

    monkeypatch.setattr(engine.optimizer, 'allocate', always_failing)
    with pytest.raises(CycleAborted):
        engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS + pd.Timedelta(days=1))
    assert engine.latest(BUSINESS_ID) is previous


def test_budget_cap_holds_across_catalog(config, engine):
    config.inventory.budget = 3000.0
    result = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)
    assert sum(p.reorder_cost for p in result.stock.values()) <= 3000.0
    assert result.allocation.budget_used <= 3000.0


def test_incremental_cycle_reruns_only_requested_products(engine):
    previous = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)
    result = engine.run_cycle(
        BUSINESS_ID, CycleReason.NEW_DATA, cycle_ts=CYCLE_TS + pd.Timedelta(hours=1),
        product_ids=['sku-1'],
    )

    assert result.products_run == ('sku-1',)
    assert result.reason is CycleReason.NEW_DATA
    assert result.forecasts['sku-2'][30] is previous.forecasts['sku-2'][30]
    assert result.forecasts['sku-1'][30] is not previous.forecasts['sku-1'][30]
    assert set(result.stock) == {'sku-1', 'sku-2', 'sku-3'}


def test_new_transactions_trigger_refresh(config, history):
    engine = BusinessIntelligenceEngine(config, calendar=SeasonalCalendar(config))
    assert engine.ingest_transactions(history) == {}

    engine.load_catalog(BUSINESS_ID, _catalog('sku-1', 'sku-2', 'sku-3'))
    engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)

    batch = make_transactions({'sku-1': [12.0]}, start=START + pd.Timedelta(days=DAYS))
    results = engine.ingest_transactions(batch, cycle_ts=CYCLE_TS + pd.Timedelta(days=1))

    assert set(results) == {BUSINESS_ID}
    assert results[BUSINESS_ID].products_run == ('sku-1',)
    assert results[BUSINESS_ID].reason is CycleReason.NEW_DATA


def test_unknown_and_new_products(engine):
    engine.load_catalog(BUSINESS_ID, _catalog('sku-1', 'sku-2', 'sku-new'))
    result = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)

    assert [(f.product_id, f.stage) for f in result.failures] == [('sku-3', 'catalog')]
    new_forecast = result.forecasts['sku-new'][30]
    assert new_forecast.state is ForecastState.COLD_START
    assert new_forecast.low_confidence
    assert result.pricing['sku-new'].low_confidence


def test_price_update_refreshes_product(engine):
    engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)
    result = engine.update_price(BUSINESS_ID, 'sku-2', 120.0, cycle_ts=CYCLE_TS + pd.Timedelta(hours=3))

    assert result.reason is CycleReason.PRICE_CHANGE
    assert result.products_run == ('sku-2',)
    assert result.pricing['sku-2'].current_price == 120.0
    assert engine.catalog(BUSINESS_ID)['sku-2'].current_price == 120.0

    with pytest.raises(DataValidationError):
        engine.update_price(BUSINESS_ID, 'sku-404', 10.0)


def test_actuals_feed_accuracy_tracking(engine):
    result = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)
    first_day = result.forecasts['sku-1'][30].predictions[0].date

    recorded = engine.record_actuals(BUSINESS_ID, pd.DataFrame([
        {'product_id': 'sku-1', 'date': first_day, 'quantity': 9.0},
        {'product_id': 'sku-1', 'date': first_day - pd.Timedelta(days=30), 'quantity': 9.0},
    ]))

    assert recorded == 1
    pairs = engine.accuracy.pairs(BUSINESS_ID, 'sku-1')
    assert pairs['actual'].tolist() == [9.0]


def test_refresh_schedule(engine):
    assert engine.is_refresh_due(BUSINESS_ID)
    engine.run_cycle(BUSINESS_ID, CycleReason.SCHEDULED, cycle_ts=CYCLE_TS)
    assert not engine.is_refresh_due(BUSINESS_ID, now=CYCLE_TS + pd.Timedelta(days=1))
    assert engine.is_refresh_due(BUSINESS_ID, now=CYCLE_TS + pd.Timedelta(days=7))


def test_record_outcome(engine):
    result = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)
    action = result.actions[0]
    engine.record_outcome(BUSINESS_ID, action.action_id, action.impact_estimate)
    assert len(engine.outcomes) == 1

    with pytest.raises(DataValidationError):
        engine.record_outcome(BUSINESS_ID, 'missing', 1.0)


def test_same_inputs_give_same_cycle_on_separate_engines(config, history):
    results = []
    for _ in range(2):
        engine = BusinessIntelligenceEngine(config, calendar=SeasonalCalendar(config))
        engine.load_catalog(BUSINESS_ID, _catalog('sku-1', 'sku-2', 'sku-3'))
        engine.ingest_transactions(history)
        results.append(engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS))

    first, second = results
    assert first is not second
    assert [a.to_dict() for a in first.actions] == [a.to_dict() for a in second.actions]
    assert first.to_dict() == second.to_dict()
    for pid in first.forecasts:
        assert first.forecasts[pid][90].to_dict() == second.forecasts[pid][90].to_dict()


def test_only_recent_cycles_are_retained(config, engine):
    config.cycle.retained_cycles = 3
    stamps = [CYCLE_TS + pd.Timedelta(hours=h) for h in range(5)]
    engine.run_cycle(BUSINESS_ID, cycle_ts=stamps[0])
    for ts in stamps[1:]:
        engine.run_cycle(BUSINESS_ID, CycleReason.NEW_DATA, cycle_ts=ts, product_ids=['sku-1'])

    kept = engine.cycles(BUSINESS_ID)
    assert [r.cycle_ts for r in kept] == stamps[2:]
    assert kept[-1] is engine.latest(BUSINESS_ID)
    assert engine.run_cycle(BUSINESS_ID, cycle_ts=stamps[-1]) is kept[-1]


def test_forecast_log_keeps_only_the_accuracy_window(config, engine):
    engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)
    later = make_transactions(
        {pid: np.full(100, 10.0) for pid in ('sku-1', 'sku-2', 'sku-3')},
        start=START + pd.Timedelta(days=DAYS),
    )
    engine.ingest_transactions(later)
    result = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS + pd.Timedelta(days=100))

    log = engine.forecast_log(BUSINESS_ID, 'sku-1')
    window = pd.Timedelta(days=config.forecast.accuracy_window_days)
    assert min(log) >= result.as_of - window
    assert max(log) == result.as_of + pd.Timedelta(days=90)


def test_catalog_location_drives_every_adjustment(config, history, registry):
    config.cycle.auto_refresh = False
    registry.publish('KA', policy_impact=0.10, competitive_intensity=1.0)
    engine = BusinessIntelligenceEngine(config, calendar=SeasonalCalendar(config), regional=registry)
    catalog = _catalog('sku-1')
    catalog['location'] = 'KA/Bengaluru'
    catalog['cost_price'] = 84.0
    catalog['competitor_price'] = 100.0
    engine.load_catalog(BUSINESS_ID, catalog)
    engine.ingest_transactions(history[history['product_id'] == 'sku-1'])

    result = engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)
    forecast = result.forecasts['sku-1'][30]
    assert forecast.predictions[0].regional_factor == pytest.approx(1.10)
    assert forecast.points == pytest.approx(np.full(30, 11.0), abs=1e-2)
    pricing = result.pricing['sku-1']
    assert pricing.recommended_price == pytest.approx(102.50)
    assert pricing.rationale.value == 'competitor_aligned'


def test_reused_products_report_their_snapshot_versions(engine):
    engine.run_cycle(BUSINESS_ID, cycle_ts=CYCLE_TS)
    engine.calendar.register({
        'name': 'Local Fair', 'recurrence': 'fixed', 'month': 6, 'day': 1,
        'multiplier': 1.5, 'categories': ['snacks'], 'locations': ['*'],
    })

    result = engine.run_cycle(
        BUSINESS_ID, CycleReason.NEW_DATA, cycle_ts=CYCLE_TS + pd.Timedelta(hours=1),
        product_ids=['sku-1'],
    )

    assert result.calendar_version == 1
    assert result.snapshot_versions['sku-1'] == (1, 0)
    assert result.snapshot_versions['sku-2'] == (0, 0)
    assert result.stale_products == ('sku-2', 'sku-3')
    assert any('predate calendar v1' in w for w in result.warnings)
    assert result.to_dict()['snapshot_versions']['sku-3'] == [0, 0]
