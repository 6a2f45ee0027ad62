"""
Historical Aggregator
======================
Normalize validated transaction records into per-product daily demand series.

Design Principles:
- Daily granularity per (business, product)
- Days without transactions are explicit zero-quantity points, so
  "no demand" is distinguishable from "no data" downstream
- Every series of a business ends on the same date (the business's last
  transaction day or an explicit end date)
- Emitted series are read-only snapshots

Usage:
    aggregator = HistoricalAggregator()
    series_by_product = aggregator.aggregate_business(transactions, "biz-001")
"""

import pandas as pd
import numpy as np
from typing import Dict, Optional, Any, Tuple
from dataclasses import dataclass

from ..config import Config, DEFAULT_CONFIG
from ..exceptions import DataValidationError, InsufficientHistory
from ..utils.logger import get_logger, LogContext, log_frame_summary
from ..utils.validators import SchemaValidator
from ..utils.constants import TRANSACTION_SCHEMA

logger = get_logger(__name__)


def _read_only(values) -> np.ndarray:
    array = np.array(values, dtype=float)
    array.setflags(write=False)
    return array


@dataclass(frozen=True, eq=False)
class DemandSeries:
    """
    Daily demand history of one product.
    
    Attributes
    ----------
    business_id : Any
        Owning business
    product_id : Any
        Product identifier
    location : str
        Location the product sells in ("STATE/City")
    dates : pd.DatetimeIndex
        Strictly increasing, gap-free daily dates
    quantities : np.ndarray
        Units sold per day (zero on days without sales)
    prices : np.ndarray
        Quantity-weighted mean unit price per day (last price carried
        forward on days without sales)
    observed_days : int
        Number of days with at least one transaction
    """
    business_id: Any
    product_id: Any
    location: str
    dates: pd.DatetimeIndex
    quantities: np.ndarray
    prices: np.ndarray
    observed_days: int
    
    def __post_init__(self):
        if len(self.dates) != len(self.quantities) or len(self.dates) != len(self.prices):
            raise DataValidationError(
                "dates, quantities and prices must have equal length", self.product_id
            )
        if len(self.dates) > 1:
            steps = np.diff(self.dates.values).astype('timedelta64[D]').astype(int)
            if not np.all(steps == 1):
                raise DataValidationError(
                    "Demand series dates must be strictly increasing with no gaps",
                    self.product_id
                )
        # Freeze arrays handed in by callers
        object.__setattr__(self, 'quantities', _read_only(self.quantities))
        object.__setattr__(self, 'prices', _read_only(self.prices))
    
    def __len__(self) -> int:
        return len(self.dates)
    
    @property
    def start(self) -> pd.Timestamp:
        return self.dates[0]
    
    @property
    def end(self) -> pd.Timestamp:
        return self.dates[-1]
    
    def to_series(self) -> pd.Series:
        """Quantities as a date-indexed pandas Series (a copy)."""
        return pd.Series(np.array(self.quantities), index=self.dates, name='quantity')
    
    def to_frame(self) -> pd.DataFrame:
        """Dates, quantities and prices as a DataFrame (a copy)."""
        return pd.DataFrame({
            'date': self.dates,
            'quantity': np.array(self.quantities),
            'unit_price': np.array(self.prices),
        })
    
    def mean_demand(self, last_n_days: Optional[int] = None) -> float:
        """Average daily demand over the whole series or its last N days."""
        if len(self) == 0:
            return 0.0
        values = self.quantities if last_n_days is None else self.quantities[-last_n_days:]
        return float(np.mean(values))
    
    def truncate(self, end: pd.Timestamp) -> 'DemandSeries':
        """New series ending on (and including) the given date."""
        mask = self.dates <= pd.Timestamp(end)
        quantities = self.quantities[mask]
        return DemandSeries(
            business_id=self.business_id,
            product_id=self.product_id,
            location=self.location,
            dates=self.dates[mask],
            quantities=quantities,
            prices=self.prices[mask],
            observed_days=int(min(self.observed_days, np.count_nonzero(quantities))),
        )
    
    @classmethod
    def from_values(
        cls,
        product_id: Any,
        quantities,
        start: Any = '2024-01-01',
        prices=None,
        business_id: Any = 'default',
        location: str = '*'
    ) -> 'DemandSeries':
        """
        Build a series from a plain list of daily quantities.
        
        Used by tests, the CLI sample mode and cold-start fixtures.
        """
        quantities = np.asarray(quantities, dtype=float)
        dates = pd.date_range(start=pd.Timestamp(start), periods=len(quantities), freq='D')
        if prices is None:
            prices = np.full(len(quantities), np.nan)
        return cls(
            business_id=business_id,
            product_id=product_id,
            location=location,
            dates=dates,
            quantities=quantities,
            prices=np.asarray(prices, dtype=float),
            observed_days=int(len(quantities)),
        )


class HistoricalAggregator:
    """
    Turn a validated transaction stream into DemandSeries snapshots.
    
    Usage
    -----
    >>> aggregator = HistoricalAggregator()
    >>> series = aggregator.aggregate_business(transactions_df, "biz-001")
    >>> series["sku-1"].observed_days
    184
    """
    
    def __init__(self, config: Optional[Config] = None):
        self.config = config or DEFAULT_CONFIG
        self.validator = SchemaValidator()
    
    def prepare(self, transactions: pd.DataFrame) -> pd.DataFrame:
        """
        Validate and normalize raw transactions.
        
        Returns a cleaned copy with a parsed 'timestamp' and a 'date' column.
        """
        clean_df, _ = self.validator.clean(transactions, TRANSACTION_SCHEMA)
        clean_df['date'] = clean_df['timestamp'].dt.normalize()
        return clean_df
    
    def aggregate(
        self,
        transactions: pd.DataFrame,
        end_date: Optional[Any] = None,
        prepared: bool = False
    ) -> Dict[Tuple[Any, Any], DemandSeries]:
        """
        Aggregate every (business, product) pair in the batch.
        
        Parameters
        ----------
        transactions : pd.DataFrame
            Transaction records (TRANSACTION_SCHEMA)
        end_date : date-like, optional
            Common series end date; defaults to each business's last
            transaction day
        prepared : bool
            Skip validation when the frame already came from prepare()
        
        Returns
        -------
        Dict[Tuple[Any, Any], DemandSeries]
            Series keyed by (business_id, product_id)
        """
        result: Dict[Tuple[Any, Any], DemandSeries] = {}
        if len(transactions) == 0:
            logger.warning("Empty transaction batch provided")
            return result
        
        df = transactions if prepared else self.prepare(transactions)
        
        with LogContext(logger, "Aggregating daily demand"):
            log_frame_summary(logger, "transactions", df)
            
            for business_id, business_df in df.groupby('business_id', sort=True):
                series = self._aggregate_business_frame(business_id, business_df, end_date)
                for product_id, item in series.items():
                    result[(business_id, product_id)] = item
            
            logger.info(f"Built {len(result)} demand series")
        
        return result
    
    def aggregate_business(
        self,
        transactions: pd.DataFrame,
        business_id: Any,
        end_date: Optional[Any] = None,
        prepared: bool = False
    ) -> Dict[Any, DemandSeries]:
        """Aggregate one business; result keyed by product_id."""
        df = transactions if prepared else self.prepare(transactions)
        business_df = df[df['business_id'] == business_id]
        if len(business_df) == 0:
            logger.warning(f"No transactions for business {business_id}")
            return {}
        return self._aggregate_business_frame(business_id, business_df, end_date)
    
    def _aggregate_business_frame(
        self,
        business_id: Any,
        business_df: pd.DataFrame,
        end_date: Optional[Any]
    ) -> Dict[Any, DemandSeries]:
        """Build one DemandSeries per product of a single business."""
        end = pd.Timestamp(end_date).normalize() if end_date is not None else business_df['date'].max()
        business_df = business_df[business_df['date'] <= end]
        
        work = business_df.assign(line_total=business_df['quantity'] * business_df['unit_price'])
        daily = work.groupby(['product_id', 'date'], sort=True).agg(
            quantity=('quantity', 'sum'),
            line_total=('line_total', 'sum'),
        )
        
        # Modal location per product; ties broken alphabetically
        locations = (
            business_df.groupby(['product_id', 'location']).size()
            .reset_index(name='n')
            .sort_values(['product_id', 'n', 'location'], ascending=[True, False, True])
            .drop_duplicates('product_id')
            .set_index('product_id')['location']
        )
        
        series_by_product: Dict[Any, DemandSeries] = {}
        for product_id, product_daily in daily.groupby(level='product_id', sort=True):
            product_daily = product_daily.droplevel('product_id')
            dates = pd.date_range(start=product_daily.index.min(), end=end, freq='D')
            
            # Explicit zeros for days without transactions
            quantity = product_daily['quantity'].reindex(dates, fill_value=0.0)
            
            with np.errstate(divide='ignore', invalid='ignore'):
                price = product_daily['line_total'] / product_daily['quantity']
            price = price.replace([np.inf, -np.inf], np.nan).reindex(dates).ffill()
            
            series_by_product[product_id] = DemandSeries(
                business_id=business_id,
                product_id=product_id,
                location=str(locations.get(product_id, '*')),
                dates=dates,
                quantities=quantity.values,
                prices=price.values,
                observed_days=int(len(product_daily)),
            )
        
        return series_by_product
    
    def require_history(self, series: DemandSeries, min_days: Optional[int] = None) -> DemandSeries:
        """
        Gate forecasting on observed history.
        
        Raises
        ------
        InsufficientHistory
            When the product has fewer observed days than required.
        """
        required = min_days if min_days is not None else self.config.forecast.min_history_days
        if series.observed_days < required:
            raise InsufficientHistory(
                f"Product {series.product_id} has {series.observed_days} observed days "
                f"(minimum {required})",
                product_id=series.product_id,
                observed_days=series.observed_days,
                required_days=required,
            )
        return series
