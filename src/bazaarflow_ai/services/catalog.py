"""
Product Catalog
================
Product master records consumed by forecasting (cold-start similarity),
pricing (cost, competitor price) and inventory (stock, lead time).
"""

import bisect
import pandas as pd
import numpy as np
from typing import Dict, Optional, Any
from dataclasses import dataclass, field

from ..config import Config, DEFAULT_CONFIG
from ..exceptions import DataValidationError
from ..utils.logger import get_logger
from ..utils.validators import SchemaValidator
from ..utils.constants import CATALOG_SCHEMA, PRICE_TIER_BOUNDS
from ..utils.locations import normalize_location

logger = get_logger(__name__)


def price_tier(price: float) -> int:
    """Tier index of a price: 0 for the cheapest band, len(bounds) for the top."""
    return bisect.bisect_right(PRICE_TIER_BOUNDS, float(price))


@dataclass(frozen=True)
class ProductProfile:
    """
    Catalog record of one product.

    Attributes
    ----------
    product_id : Any
        Product identifier
    category : str
        Product category (matches calendar categories)
    location : str
        "STATE/City" where the product sells
    cost_price : float
        Unit cost (INR)
    current_price : float
        Current shelf price (INR)
    competitor_price : float, optional
        Latest competitor price, if known
    current_stock : float
        Units on hand
    lead_time_days : float
        Mean supplier lead time
    lead_time_std_days : float
        Standard deviation of supplier lead time
    storage_units_per_item : float
        Storage space one unit occupies
    attributes : frozenset
        Free-form tags used for cold-start similarity
    """
    product_id: Any
    category: str
    location: str
    cost_price: float
    current_price: float
    competitor_price: Optional[float] = None
    current_stock: float = 0.0
    lead_time_days: float = 7.0
    lead_time_std_days: float = 1.0
    storage_units_per_item: float = 1.0
    attributes: frozenset = field(default_factory=frozenset)

    @property
    def price_tier(self) -> int:
        return price_tier(self.current_price)

    @property
    def unit_margin(self) -> float:
        return self.current_price - self.cost_price

    def with_price(self, current_price: float) -> 'ProductProfile':
        """Copy with a new current price."""
        return ProductProfile(**{**self.__dict__, 'current_price': float(current_price)})


def _attributes(value) -> frozenset:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return frozenset()
    if isinstance(value, str):
        return frozenset(v.strip().lower() for v in value.split(',') if v.strip())
    return frozenset(str(v).strip().lower() for v in value)


def _optional_float(value, default: Optional[float]) -> Optional[float]:
    if value is None or (isinstance(value, float) and np.isnan(value)):
        return default
    return float(value)


def load_catalog(catalog: pd.DataFrame, config: Optional[Config] = None) -> Dict[Any, ProductProfile]:
    """
    Build ProductProfiles from a catalog DataFrame (CATALOG_SCHEMA).

    Missing lead times fall back to the inventory defaults in config.

    Raises
    ------
    DataValidationError
        When a required column is missing or a product id repeats.
    """
    config = config or DEFAULT_CONFIG
    clean_df, _ = SchemaValidator().clean(catalog, CATALOG_SCHEMA)

    duplicated = clean_df['product_id'].duplicated()
    if duplicated.any():
        ids = clean_df.loc[duplicated, 'product_id'].tolist()
        raise DataValidationError(f"Catalog has duplicate product ids: {ids[:5]}")

    profiles: Dict[Any, ProductProfile] = {}
    for record in clean_df.to_dict(orient='records'):
        profiles[record['product_id']] = ProductProfile(
            product_id=record['product_id'],
            category=str(record['category']),
            location=normalize_location(record['location']),
            cost_price=float(record['cost_price']),
            current_price=float(record['current_price']),
            competitor_price=_optional_float(record.get('competitor_price'), None),
            current_stock=_optional_float(record.get('current_stock'), 0.0),
            lead_time_days=_optional_float(
                record.get('lead_time_days'), config.inventory.default_lead_time_days
            ),
            lead_time_std_days=_optional_float(
                record.get('lead_time_std_days'), config.inventory.default_lead_time_std_days
            ),
            storage_units_per_item=_optional_float(record.get('storage_units_per_item'), 1.0),
            attributes=_attributes(record.get('attributes')),
        )

    logger.info(f"Loaded {len(profiles)} catalog products")
    return profiles
