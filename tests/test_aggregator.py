"""
Tests for the Historical Aggregator.
"""

import numpy as np
import pandas as pd
import pytest

from bazaarflow_ai.exceptions import DataValidationError, InsufficientHistory
from bazaarflow_ai.services.aggregator import HistoricalAggregator, DemandSeries

from tests.helpers import BUSINESS_ID, make_series


def _rows(*rows):
    return pd.DataFrame([
        {
            'business_id': business, 'product_id': product, 'timestamp': ts,
            'quantity': quantity, 'unit_price': price, 'location': location,
        }
        for business, product, ts, quantity, price, location in rows
    ])


@pytest.fixture
def aggregator(config):
    return HistoricalAggregator(config)


def test_days_without_sales_are_explicit_zeros(aggregator):
    df = _rows(
        (BUSINESS_ID, 'sku-1', '2025-03-01T09:00:00', 4, 50.0, 'MH/Mumbai'),
        (BUSINESS_ID, 'sku-1', '2025-03-04T18:30:00', 2, 50.0, 'MH/Mumbai'),
    )
    series = aggregator.aggregate_business(df, BUSINESS_ID)['sku-1']

    assert len(series) == 4
    assert list(series.quantities) == [4.0, 0.0, 0.0, 2.0]
    assert series.observed_days == 2
    assert series.start == pd.Timestamp('2025-03-01')


def test_daily_price_is_quantity_weighted_and_carried_forward(aggregator):
    df = _rows(
        (BUSINESS_ID, 'sku-1', '2025-03-01T09:00:00', 1, 100.0, 'MH/Mumbai'),
        (BUSINESS_ID, 'sku-1', '2025-03-01T12:00:00', 3, 80.0, 'MH/Mumbai'),
        (BUSINESS_ID, 'sku-1', '2025-03-03T12:00:00', 2, 90.0, 'MH/Mumbai'),
    )
    series = aggregator.aggregate_business(df, BUSINESS_ID)['sku-1']

    assert series.prices[0] == pytest.approx(85.0)
    assert series.prices[1] == pytest.approx(85.0)
    assert series.prices[2] == pytest.approx(90.0)


def test_series_end_on_common_end_date(aggregator):
    df = _rows(
        (BUSINESS_ID, 'sku-1', '2025-03-01', 1, 10.0, 'MH/Mumbai'),
        (BUSINESS_ID, 'sku-2', '2025-03-05', 1, 10.0, 'MH/Mumbai'),
    )
    series = aggregator.aggregate_business(df, BUSINESS_ID)
    assert series['sku-1'].end == series['sku-2'].end == pd.Timestamp('2025-03-05')

    truncated = aggregator.aggregate_business(df, BUSINESS_ID, end_date='2025-03-03')
    assert 'sku-2' not in truncated
    assert truncated['sku-1'].end == pd.Timestamp('2025-03-03')


def test_unix_timestamps_are_accepted(aggregator):
    ts = int(pd.Timestamp('2025-03-01 10:00').timestamp())
    df = _rows((BUSINESS_ID, 'sku-1', ts, 2, 10.0, 'MH/Mumbai'))
    series = aggregator.aggregate_business(df, BUSINESS_ID)['sku-1']
    assert series.start == pd.Timestamp('2025-03-01')


def test_unusable_rows_are_dropped(aggregator):
    df = _rows(
        (BUSINESS_ID, 'sku-1', '2025-03-01', 2, 10.0, 'MH/Mumbai'),
        (BUSINESS_ID, 'sku-1', 'not-a-date', 2, 10.0, 'MH/Mumbai'),
        (BUSINESS_ID, 'sku-1', '2025-03-02', -5, 10.0, 'MH/Mumbai'),
    )
    series = aggregator.aggregate_business(df, BUSINESS_ID)['sku-1']
    assert series.observed_days == 1
    assert series.quantities.sum() == 2.0


def test_missing_column_raises(aggregator):
    df = _rows((BUSINESS_ID, 'sku-1', '2025-03-01', 2, 10.0, 'MH/Mumbai')).drop(columns=['unit_price'])
    with pytest.raises(DataValidationError, match="unit_price"):
        aggregator.aggregate(df)


def test_aggregate_keys_by_business_and_product(aggregator):
    df = _rows(
        ('biz-a', 'sku-1', '2025-03-01', 1, 10.0, 'MH/Mumbai'),
        ('biz-b', 'sku-1', '2025-03-02', 1, 10.0, 'KA/Bengaluru'),
    )
    result = aggregator.aggregate(df)
    assert set(result) == {('biz-a', 'sku-1'), ('biz-b', 'sku-1')}
    assert result[('biz-b', 'sku-1')].location == 'KA/Bengaluru'


def test_series_arrays_are_read_only(flat_series):
    with pytest.raises(ValueError):
        flat_series.quantities[0] = 99.0


def test_gapped_dates_are_rejected():
    dates = pd.DatetimeIndex(['2025-01-01', '2025-01-03'])
    with pytest.raises(DataValidationError):
        DemandSeries(BUSINESS_ID, 'sku-1', '*', dates, np.ones(2), np.ones(2), 2)


def test_require_history(aggregator):
    short = make_series(np.ones(10))
    with pytest.raises(InsufficientHistory) as excinfo:
        aggregator.require_history(short)
    assert excinfo.value.observed_days == 10
    assert excinfo.value.required_days == 28

    assert aggregator.require_history(short, min_days=5) is short
