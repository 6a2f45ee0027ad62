"""
BazaarFlow AI - Retail Demand, Pricing and Inventory Intelligence
==================================================================

Analytical pipeline for Indian retail businesses: per-product demand
forecasts adjusted for festivals, monsoon windows and regional markets,
margin-safe price recommendations, and constrained reorder plans, merged
into ranked action items every refresh cycle.

Modules:
- config: Closed configuration structures
- exceptions: Error taxonomy
- pipeline: Cycle orchestration (BusinessIntelligenceEngine)
- services: Aggregator, adjusters, forecaster, pricing, inventory, composer
- cli: Command-line runner

Usage:
    from bazaarflow_ai import BusinessIntelligenceEngine

    engine = BusinessIntelligenceEngine()
    engine.load_catalog("biz-001", catalog_df)
    engine.ingest_transactions(transactions_df)
    result = engine.run_cycle("biz-001", "scheduled")
"""

__version__ = "1.0.0"
__author__ = "BazaarFlow AI Team"

from .config import Config, DEFAULT_CONFIG
from .exceptions import (
    BazaarFlowError,
    ConfigurationError,
    DataValidationError,
    InsufficientHistory,
    AdjustmentConflict,
    ConstraintViolation,
    ModelDegraded,
    AllocationError,
    CycleAborted,
)
from .pipeline import BusinessIntelligenceEngine, CycleReason, CycleResult, ProductFailure

__all__ = [
    'Config',
    'DEFAULT_CONFIG',
    'BazaarFlowError',
    'ConfigurationError',
    'DataValidationError',
    'InsufficientHistory',
    'AdjustmentConflict',
    'ConstraintViolation',
    'ModelDegraded',
    'AllocationError',
    'CycleAborted',
    'BusinessIntelligenceEngine',
    'CycleReason',
    'CycleResult',
    'ProductFailure',
]
