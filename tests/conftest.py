"""
Shared fixtures for the BazaarFlow AI test suite.

Synthetic histories are seeded so assertions on forecasts, elasticities
and allocations are stable.
"""

import numpy as np
import pandas as pd
import pytest

from bazaarflow_ai.config import Config
from bazaarflow_ai.services.seasonal_adjuster import SeasonalCalendar
from bazaarflow_ai.services.regional_adjuster import RegionalRegistry

from tests.helpers import START, make_series


@pytest.fixture
def config():
    """Fresh default config per test; tests may mutate it."""
    return Config()


@pytest.fixture
def empty_calendar(config):
    return SeasonalCalendar(config)


@pytest.fixture
def registry():
    return RegionalRegistry()


@pytest.fixture
def weekly_pattern():
    """Six months of weekday-shaped demand around 20 units/day with mild noise."""
    rng = np.random.default_rng(42)
    shape = np.array([0.8, 0.9, 1.0, 1.0, 1.1, 1.3, 0.9])
    dates = pd.date_range(START, periods=182, freq='D')
    base = 20.0 * shape[dates.dayofweek.values]
    return base * (1.0 + rng.normal(0.0, 0.05, size=len(dates)))


@pytest.fixture
def flat_series():
    return make_series(np.full(120, 10.0))
