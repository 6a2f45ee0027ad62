"""
Builders for synthetic histories, catalogs and transaction batches.
"""

import pandas as pd

from bazaarflow_ai.services.aggregator import DemandSeries
from bazaarflow_ai.services.catalog import ProductProfile
from bazaarflow_ai.services.forecaster import DailyPrediction, ForecastResult, ForecastState


BUSINESS_ID = "biz-001"
START = pd.Timestamp("2025-01-01")


def make_series(quantities, product_id="sku-1", start=START, prices=None,
                location="MH/Mumbai", business_id=BUSINESS_ID) -> DemandSeries:
    return DemandSeries.from_values(
        product_id, quantities, start=start, prices=prices,
        business_id=business_id, location=location,
    )


def make_profile(product_id="sku-1", category="snacks", location="MH/Mumbai",
                 cost_price=80.0, current_price=100.0, **kwargs) -> ProductProfile:
    return ProductProfile(
        product_id=product_id,
        category=category,
        location=location,
        cost_price=cost_price,
        current_price=current_price,
        **kwargs,
    )


def make_transactions(daily_quantities, business_id=BUSINESS_ID, start=START,
                      location="MH/Mumbai", unit_price=100.0) -> pd.DataFrame:
    """
    One transaction row per product per day with a positive quantity.

    daily_quantities : {product_id: list of daily quantities}
    """
    rows = []
    for product_id, quantities in daily_quantities.items():
        for offset, quantity in enumerate(quantities):
            if quantity <= 0:
                continue
            rows.append({
                'business_id': business_id,
                'product_id': product_id,
                'timestamp': (start + pd.Timedelta(days=offset, hours=10)).isoformat(),
                'quantity': float(quantity),
                'unit_price': unit_price,
                'location': location,
            })
    return pd.DataFrame(rows)



def make_forecast(points, half_width=0.0, product_id="sku-1", confidence=0.9,
                  state=ForecastState.ACTIVE, accuracy=None, flags=()) -> ForecastResult:
    """ForecastResult with symmetric bounds, starting 2025-06-01."""
    dates = pd.date_range('2025-06-01', periods=len(points), freq='D')
    predictions = tuple(
        DailyPrediction(day, float(p), max(p - half_width, 0.0), p + half_width, 1.0, 1.0, ())
        for day, p in zip(dates, points)
    )
    return ForecastResult(
        BUSINESS_ID, product_id, len(points), dates[0] - pd.Timedelta(days=1), predictions,
        state, 'classical_decomposition', confidence, accuracy=accuracy, flags=tuple(flags),
    )
