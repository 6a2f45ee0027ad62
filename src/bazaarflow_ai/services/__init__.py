"""
Services Package
=================
Analytical components of BazaarFlow AI, leaf-first.

Modules:
- aggregator: Transactions -> daily DemandSeries
- catalog: Product master records
- seasonal_adjuster: Festival/monsoon calendar and composite factors
- regional_adjuster: Versioned regional market factors
- accuracy: Realised-vs-predicted tracking (1 - MAPE)
- forecaster: Decomposition forecasts and cold-start blending
- pricing_engine: Elasticity fit and margin-safe pricing
- inventory_optimizer: Safety stock, allocation, slow movers
- recommendation_composer: Ranked action items and outcome tracking
"""

from .aggregator import HistoricalAggregator, DemandSeries
from .catalog import ProductProfile, load_catalog
from .seasonal_adjuster import SeasonalCalendar, CalendarSnapshot, EventDefinition
from .regional_adjuster import RegionalRegistry, RegionalSnapshot, RegionalFactor
from .accuracy import AccuracyTracker
from .forecaster import DemandForecaster, ForecastResult, ForecastState, ColdStartBlender
from .pricing_engine import PricingEngine, ElasticityEstimator, PricingRecommendation, RationaleTag
from .inventory_optimizer import InventoryOptimizer, StockRecommendation, BindingConstraint
from .recommendation_composer import (
    RecommendationComposer, OutcomeTracker, ActionItem, ActionCategory,
)

__all__ = [
    'HistoricalAggregator',
    'DemandSeries',
    'ProductProfile',
    'load_catalog',
    'SeasonalCalendar',
    'CalendarSnapshot',
    'EventDefinition',
    'RegionalRegistry',
    'RegionalSnapshot',
    'RegionalFactor',
    'AccuracyTracker',
    'DemandForecaster',
    'ForecastResult',
    'ForecastState',
    'ColdStartBlender',
    'PricingEngine',
    'ElasticityEstimator',
    'PricingRecommendation',
    'RationaleTag',
    'InventoryOptimizer',
    'StockRecommendation',
    'BindingConstraint',
    'RecommendationComposer',
    'OutcomeTracker',
    'ActionItem',
    'ActionCategory',
]
