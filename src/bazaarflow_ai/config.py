"""
BazaarFlow AI - Configuration Module
=====================================

Centralized configuration for the analytical pipeline.

Every recognised option is an explicit dataclass field; loading a dict with
an unknown section or key raises ConfigurationError instead of being
silently ignored.

Usage:
    config = Config()
    config.pricing.min_margin = 0.25
    config.validate()
"""

import os
from dataclasses import dataclass, field, fields, asdict
from typing import Any, Dict, Optional, Tuple

from .exceptions import ConfigurationError


@dataclass
class ForecastConfig:
    """Configuration for the demand forecaster"""
    # Horizons served each cycle (days)
    horizons: Tuple[int, ...] = (30, 60, 90)
    default_horizon: int = 30
    
    # Weekly decomposition
    seasonal_period: int = 7
    min_history_days: int = 28        # fewer observed days -> cold start
    trend_window_days: int = 56
    trend_damping: float = 0.98       # per-day damping of the extrapolated slope
    
    # Confidence bands
    confidence_level: float = 0.95
    bound_widening_days: float = 30.0
    degraded_bound_multiplier: float = 1.5
    
    # Accuracy tracking: accuracy = 1 - MAPE over a rolling window
    accuracy_floor: float = 0.80
    accuracy_window_days: int = 90
    min_accuracy_points: int = 14
    holdout_days: int = 28
    
    # Cold start
    cold_start_neighbours: int = 3
    cold_start_window_days: int = 28
    cold_start_uncertainty: float = 0.5


@dataclass
class SeasonalConfig:
    """Configuration for event composition and pattern detection"""
    min_composite_factor: float = 0.1
    max_composite_factor: float = 10.0
    
    # Spike detection against a rolling median baseline
    detection_ratio: float = 1.5
    detection_min_days: int = 2
    detection_baseline_days: int = 28


@dataclass
class PricingConfig:
    """Margin floor, competitor band and elasticity fit requirements"""
    min_margin: float = 0.20          # recommended >= cost * (1 + min_margin)
    cost_plus_markup: float = 0.25    # fallback when elasticity is unreliable
    max_price_change: float = 0.15    # per cycle, relative to current price
    competitor_band: float = 0.05     # half-width around competitor price
    
    min_price_levels: int = 3
    min_price_variation: float = 0.02  # coefficient of variation of price
    min_price_observations: int = 14
    demand_window_days: int = 30


@dataclass
class InventoryConfig:
    """Safety stock, allocation and slow-mover settings"""
    service_level: float = 0.95
    review_period_days: int = 7
    default_lead_time_days: float = 7.0
    default_lead_time_std_days: float = 1.0
    
    # Catalog-wide constraints (None = unconstrained)
    storage_capacity: Optional[float] = None
    budget: Optional[float] = None
    
    # Exact budget solver
    knapsack_resolution: int = 2000
    max_knapsack_cells: int = 20_000_000
    
    # Slow movers
    slow_mover_percentile: float = 20.0
    slow_mover_window_days: int = 21
    slow_mover_min_category_size: int = 5
    velocity_window_days: int = 7
    holding_cost_rate: float = 0.05   # share of stock value per impact window


@dataclass
class ComposerConfig:
    """Ranking of action items"""
    top_n: int = 20
    impact_window_days: int = 30


@dataclass
class CycleConfig:
    """Scheduling and fan-out of refresh cycles"""
    max_workers: int = 8
    refresh_interval_days: int = 7
    auto_refresh: bool = True
    allocation_strategy: str = 'exact'  # 'exact' or 'greedy'
    retained_cycles: int = 10          # per business, for idempotent re-runs


@dataclass
class LoggingConfig:
    """Logging level and optional log file"""
    level: str = 'INFO'
    log_file: Optional[str] = None


# Environment overrides: variable -> (section, field, type)
ENV_OVERRIDES = {
    'BAZAARFLOW_LOG_LEVEL': ('logging', 'level', str),
    'BAZAARFLOW_LOG_FILE': ('logging', 'log_file', str),
    'BAZAARFLOW_MAX_WORKERS': ('cycle', 'max_workers', int),
    'BAZAARFLOW_MIN_MARGIN': ('pricing', 'min_margin', float),
    'BAZAARFLOW_ACCURACY_FLOOR': ('forecast', 'accuracy_floor', float),
}


@dataclass
class Config:
    """
    Master configuration for BazaarFlow AI
    
    Usage:
        config = Config.from_dict({'pricing': {'min_margin': 0.2}})
        config.inventory.budget = 50000
    """
    forecast: ForecastConfig = field(default_factory=ForecastConfig)
    seasonal: SeasonalConfig = field(default_factory=SeasonalConfig)
    pricing: PricingConfig = field(default_factory=PricingConfig)
    inventory: InventoryConfig = field(default_factory=InventoryConfig)
    composer: ComposerConfig = field(default_factory=ComposerConfig)
    cycle: CycleConfig = field(default_factory=CycleConfig)
    logging: LoggingConfig = field(default_factory=LoggingConfig)
    
    @classmethod
    def from_dict(cls, data: Dict[str, Dict[str, Any]]) -> 'Config':
        """
        Build a config from nested dicts, rejecting unknown sections and keys.
        
        Args:
            data: {section_name: {field_name: value}}
            
        Returns:
            Validated Config instance
        """
        config = cls()
        sections = {f.name for f in fields(cls)}
        
        for section_name, values in (data or {}).items():
            if section_name not in sections:
                raise ConfigurationError(f"Unknown configuration section: '{section_name}'")
            section = getattr(config, section_name)
            known = {f.name for f in fields(section)}
            for key, value in (values or {}).items():
                if key not in known:
                    raise ConfigurationError(
                        f"Unknown option '{key}' in section '{section_name}'"
                    )
                if key == 'horizons':
                    value = tuple(int(h) for h in value)
                setattr(section, key, value)
        
        config.validate()
        return config
    
    @classmethod
    def from_env(cls, base: Optional['Config'] = None) -> 'Config':
        """Apply BAZAARFLOW_* environment overrides on top of base (or defaults)"""
        config = base or cls()
        for var, (section_name, key, cast) in ENV_OVERRIDES.items():
            raw = os.getenv(var)
            if raw is None or raw == '':
                continue
            try:
                setattr(getattr(config, section_name), key, cast(raw))
            except ValueError as e:
                raise ConfigurationError(f"Invalid value for {var}: {raw!r}") from e
        config.validate()
        return config
    
    def validate(self) -> 'Config':
        """Check value ranges; raises ConfigurationError on the first problem"""
        checks = [
            (0 <= self.pricing.min_margin < 1, "pricing.min_margin must be in [0, 1)"),
            (self.pricing.cost_plus_markup >= self.pricing.min_margin,
             "pricing.cost_plus_markup must be >= pricing.min_margin"),
            (0 < self.pricing.max_price_change < 1, "pricing.max_price_change must be in (0, 1)"),
            (0 <= self.pricing.competitor_band < 1, "pricing.competitor_band must be in [0, 1)"),
            (self.pricing.min_price_levels >= 2, "pricing.min_price_levels must be >= 2"),
            (0 < self.forecast.confidence_level < 1, "forecast.confidence_level must be in (0, 1)"),
            (0 < self.forecast.accuracy_floor <= 1, "forecast.accuracy_floor must be in (0, 1]"),
            (len(self.forecast.horizons) > 0 and all(h > 0 for h in self.forecast.horizons),
             "forecast.horizons must be positive"),
            (self.forecast.default_horizon in self.forecast.horizons,
             "forecast.default_horizon must be one of forecast.horizons"),
            (self.forecast.seasonal_period >= 2, "forecast.seasonal_period must be >= 2"),
            (0 < self.forecast.trend_damping <= 1, "forecast.trend_damping must be in (0, 1]"),
            (self.forecast.cold_start_neighbours >= 1, "forecast.cold_start_neighbours must be >= 1"),
            (0 < self.seasonal.min_composite_factor <= 1 <= self.seasonal.max_composite_factor,
             "seasonal composite bounds must bracket 1.0"),
            (0.5 <= self.inventory.service_level < 1, "inventory.service_level must be in [0.5, 1)"),
            (0 < self.inventory.slow_mover_percentile < 100,
             "inventory.slow_mover_percentile must be in (0, 100)"),
            (self.inventory.slow_mover_min_category_size >= 2,
             "inventory.slow_mover_min_category_size must be >= 2"),
            (self.inventory.storage_capacity is None or self.inventory.storage_capacity >= 0,
             "inventory.storage_capacity must be non-negative"),
            (self.inventory.budget is None or self.inventory.budget >= 0,
             "inventory.budget must be non-negative"),
            (self.inventory.knapsack_resolution >= 10, "inventory.knapsack_resolution must be >= 10"),
            (self.composer.top_n >= 1, "composer.top_n must be >= 1"),
            (self.cycle.max_workers >= 1, "cycle.max_workers must be >= 1"),
            (self.cycle.retained_cycles >= 1, "cycle.retained_cycles must be >= 1"),
            (self.cycle.allocation_strategy in ('exact', 'greedy'),
             "cycle.allocation_strategy must be 'exact' or 'greedy'"),
        ]
        for ok, message in checks:
            if not ok:
                raise ConfigurationError(message)
        return self
    
    def to_dict(self) -> Dict[str, Dict[str, Any]]:
        """Convert config to nested dictionaries"""
        return asdict(self)


# Default configuration instance
DEFAULT_CONFIG = Config()
