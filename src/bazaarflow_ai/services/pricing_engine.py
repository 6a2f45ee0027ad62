"""
Elasticity & Pricing Engine
============================
Price elasticity from a product's own (price, quantity) history and a
recommended price that never breaks the margin floor.

Elasticity:
    log(q / adjustment) = a + e * log(p), fitted by OLS over days with
    positive sales. `adjustment` is the calendar/regional factor already
    applied to that day, so a festival spike is not read as price response.

Price contract:
    1. floor = cost * (1 + min_margin), rounded up to the paisa
    2. candidate from elasticity (or cost-plus when unreliable)
    3. candidate kept within +/- max_price_change of the current price
    4. candidate kept inside the competitor band when a competitor price exists
    5. final = max(candidate, floor); anything below the floor is a
       ConstraintViolation, never a soft preference
"""

import math
import numpy as np
import pandas as pd
import statsmodels.api as sm
from enum import Enum
from typing import Dict, Optional, Any, Tuple
from dataclasses import dataclass

from ..config import Config, DEFAULT_CONFIG
from ..exceptions import ConstraintViolation
from ..utils.logger import get_logger
from .aggregator import DemandSeries
from .catalog import ProductProfile

logger = get_logger(__name__)


class RationaleTag(Enum):
    """Why a price was recommended; drives the explanation layer."""
    ELASTICITY_OPTIMUM = "elasticity_optimum"
    PRICE_CHANGE_CAP = "price_change_cap"
    COMPETITOR_ALIGNED = "competitor_aligned"
    MARGIN_FLOOR = "margin_floor"
    COST_PLUS_DEFAULT = "cost_plus_default"
    HOLD = "hold"


def round_up_paisa(value: float) -> float:
    """Round a rupee amount up to the next paisa (0.01)."""
    return math.ceil(round(value * 100.0, 6)) / 100.0


def round_paisa(value: float) -> float:
    return round(value, 2)


@dataclass(frozen=True)
class ElasticityEstimate:
    """
    Fitted price elasticity of one product.

    `slope` is None when the fit was not attempted (too little price
    variation), so no precise number is ever fabricated.
    """
    product_id: Any
    slope: Optional[float]
    price_range: Tuple[float, float]
    std_error: Optional[float]
    reliable: bool
    observations: int = 0
    price_levels: int = 0
    reason: str = ""

    @property
    def is_elastic(self) -> bool:
        return self.reliable and self.slope is not None and self.slope < -1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'slope': self.slope,
            'price_range': list(self.price_range),
            'std_error': self.std_error,
            'reliable': self.reliable,
            'observations': self.observations,
            'price_levels': self.price_levels,
            'reason': self.reason,
        }


class ElasticityEstimator:
    """
    Log-log OLS elasticity per product.

    Usage:
        estimator = ElasticityEstimator(config)
        estimate = estimator.fit(series, adjustments)
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or DEFAULT_CONFIG

    def fit(self, series: DemandSeries, adjustments: Optional[np.ndarray] = None) -> ElasticityEstimate:
        """
        Fit the elasticity of a product.

        Args:
            series: Product history with daily prices
            adjustments: Seasonal x regional factor per history date
                (default: no adjustment)

        Returns:
            ElasticityEstimate; reliable only with enough distinct prices,
            enough price variation and a negative slope
        """
        cfg = self.config.pricing
        quantities = np.asarray(series.quantities, dtype=float)
        prices = np.asarray(series.prices, dtype=float)
        if adjustments is None:
            adjustments = np.ones(len(quantities))

        mask = (quantities > 0) & np.isfinite(prices) & (prices > 0) & (adjustments > 0)
        q = quantities[mask] / adjustments[mask]
        p = prices[mask]

        if len(p) == 0:
            return ElasticityEstimate(series.product_id, None, (0.0, 0.0), None, False,
                                      reason="no priced sales")

        price_range = (round_paisa(float(p.min())), round_paisa(float(p.max())))
        levels = int(pd.Series(np.round(p, 2)).nunique())
        variation = float(np.std(p) / np.mean(p))

        def unreliable(reason: str) -> ElasticityEstimate:
            logger.debug(f"Elasticity for product {series.product_id} unreliable: {reason}")
            return ElasticityEstimate(
                product_id=series.product_id,
                slope=None,
                price_range=price_range,
                std_error=None,
                reliable=False,
                observations=int(len(p)),
                price_levels=levels,
                reason=reason,
            )

        if len(p) < cfg.min_price_observations:
            return unreliable(f"{len(p)} priced sales days (minimum {cfg.min_price_observations})")
        if levels < cfg.min_price_levels:
            return unreliable(f"{levels} distinct prices (minimum {cfg.min_price_levels})")
        if variation < cfg.min_price_variation:
            return unreliable(f"price variation {variation:.3f} below {cfg.min_price_variation}")

        X = sm.add_constant(np.log(p))
        model = sm.OLS(np.log(q), X).fit()
        slope = float(model.params[1])
        std_error = float(model.bse[1])

        reliable = slope < 0
        return ElasticityEstimate(
            product_id=series.product_id,
            slope=round(slope, 6),
            price_range=price_range,
            std_error=round(std_error, 6),
            reliable=reliable,
            observations=int(len(p)),
            price_levels=levels,
            reason="" if reliable else "non-negative slope",
        )


@dataclass(frozen=True)
class MarginCheck:
    """Result of checking a price against the margin floor."""
    cost_price: float
    floor_price: float
    price: float
    passed: bool

    @property
    def margin(self) -> float:
        """Markup over cost at the checked price."""
        return (self.price - self.cost_price) / self.cost_price if self.cost_price else 0.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'cost_price': self.cost_price,
            'floor_price': self.floor_price,
            'price': self.price,
            'passed': self.passed,
            'margin': round(self.margin, 4),
        }


@dataclass(frozen=True)
class PricingRecommendation:
    """Recommended price for one product."""
    product_id: Any
    current_price: float
    recommended_price: float
    expected_quantity_delta: Optional[float]
    margin_check: MarginCheck
    rationale: RationaleTag
    low_confidence: bool
    elasticity: ElasticityEstimate
    competitor_price: Optional[float] = None
    baseline_demand: float = 0.0

    @property
    def price_change_pct(self) -> float:
        if not self.current_price:
            return 0.0
        return (self.recommended_price - self.current_price) / self.current_price

    @property
    def changes_price(self) -> bool:
        return abs(self.recommended_price - self.current_price) >= 0.01

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'current_price': self.current_price,
            'recommended_price': self.recommended_price,
            'price_change_pct': round(self.price_change_pct, 4),
            'expected_quantity_delta': self.expected_quantity_delta,
            'margin_check': self.margin_check.to_dict(),
            'rationale': self.rationale.value,
            'low_confidence': self.low_confidence,
            'elasticity': self.elasticity.to_dict(),
            'competitor_price': self.competitor_price,
            'baseline_demand': self.baseline_demand,
        }


class PricingEngine:
    """
    Margin-safe price recommendations.

    Usage:
        engine = PricingEngine(config)
        rec = engine.recommend(profile, estimate, baseline_demand=300)
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or DEFAULT_CONFIG
        self.estimator = ElasticityEstimator(self.config)

    def floor_price(self, cost_price: float) -> float:
        return round_up_paisa(cost_price * (1.0 + self.config.pricing.min_margin))

    def check_margin(self, profile: ProductProfile, price: float) -> MarginCheck:
        floor = self.floor_price(profile.cost_price)
        return MarginCheck(
            cost_price=profile.cost_price,
            floor_price=floor,
            price=price,
            passed=price >= floor,
        )

    def enforce_margin(self, profile: ProductProfile, price: float) -> MarginCheck:
        """
        Raises
        ------
        ConstraintViolation
            When the price is below cost * (1 + min_margin).
        """
        check = self.check_margin(profile, price)
        if not check.passed:
            raise ConstraintViolation(
                f"Price {price:.2f} below margin floor {check.floor_price:.2f} "
                f"for product {profile.product_id}",
                product_id=profile.product_id,
                constraint='margin_floor',
            )
        return check

    def competitor_band(
        self,
        competitor_price: float,
        competitive_intensity: float = 0.0
    ) -> Tuple[float, float]:
        """Allowed price band around a competitor price; tighter under more competition."""
        half_width = self.config.pricing.competitor_band * (1.0 - competitive_intensity / 2.0)
        return (
            round_paisa(competitor_price * (1.0 - half_width)),
            round_paisa(competitor_price * (1.0 + half_width)),
        )

    def recommend(
        self,
        profile: ProductProfile,
        estimate: ElasticityEstimate,
        baseline_demand: float = 0.0,
        competitive_intensity: float = 0.0
    ) -> PricingRecommendation:
        """
        Recommend a price for one product.

        Args:
            profile: Catalog record (cost, current and competitor price)
            estimate: Elasticity fitted from the product's own history
            baseline_demand: Expected demand at the current price over the
                pricing demand window
            competitive_intensity: Regional competitive intensity in [0, 1]

        Returns:
            PricingRecommendation

        Raises:
            ConstraintViolation: final price below the margin floor
        """
        cfg = self.config.pricing
        current = profile.current_price
        floor = self.floor_price(profile.cost_price)
        low_confidence = not estimate.reliable

        # 1. Candidate from elasticity
        if not estimate.reliable:
            candidate = profile.cost_price * (1.0 + cfg.cost_plus_markup)
            rationale = RationaleTag.COST_PLUS_DEFAULT
        elif estimate.slope < -1.0:
            e = estimate.slope
            candidate = profile.cost_price * e / (1.0 + e)
            rationale = RationaleTag.ELASTICITY_OPTIMUM
        else:
            candidate = current * (1.0 + cfg.max_price_change)
            rationale = RationaleTag.PRICE_CHANGE_CAP

        # 2. Per-cycle change limit
        if rationale is not RationaleTag.COST_PLUS_DEFAULT:
            lower, upper = current * (1.0 - cfg.max_price_change), current * (1.0 + cfg.max_price_change)
            capped = min(max(candidate, lower), upper)
            if abs(capped - candidate) > 1e-9:
                rationale = RationaleTag.PRICE_CHANGE_CAP
            candidate = capped

        # 3. Competitor band
        if profile.competitor_price is not None and profile.competitor_price > 0:
            low, high = self.competitor_band(profile.competitor_price, competitive_intensity)
            aligned = min(max(candidate, low), high)
            if abs(aligned - candidate) > 1e-9:
                rationale = RationaleTag.COMPETITOR_ALIGNED
            candidate = aligned

        # 4. Margin floor is never relaxed
        recommended = round_paisa(candidate)
        if recommended < floor:
            recommended = floor
            rationale = RationaleTag.MARGIN_FLOOR
        elif abs(recommended - current) < 0.01 and rationale is not RationaleTag.COST_PLUS_DEFAULT:
            rationale = RationaleTag.HOLD

        margin_check = self.enforce_margin(profile, recommended)

        delta = None
        if estimate.reliable and current > 0:
            delta = round(baseline_demand * ((recommended / current) ** estimate.slope - 1.0), 4)

        logger.debug(
            f"Product {profile.product_id}: {current:.2f} -> {recommended:.2f} ({rationale.value})"
        )

        return PricingRecommendation(
            product_id=profile.product_id,
            current_price=current,
            recommended_price=recommended,
            expected_quantity_delta=delta,
            margin_check=margin_check,
            rationale=rationale,
            low_confidence=low_confidence,
            elasticity=estimate,
            competitor_price=profile.competitor_price,
            baseline_demand=round(baseline_demand, 4),
        )

    def price_product(
        self,
        profile: ProductProfile,
        series: Optional[DemandSeries],
        adjustments: Optional[np.ndarray] = None,
        baseline_demand: float = 0.0,
        competitive_intensity: float = 0.0
    ) -> PricingRecommendation:
        """Fit the elasticity from history (if any) and recommend a price."""
        if series is None:
            estimate = ElasticityEstimate(profile.product_id, None, (0.0, 0.0), None, False,
                                          reason="no history")
        else:
            estimate = self.estimator.fit(series, adjustments)
        return self.recommend(profile, estimate, baseline_demand, competitive_intensity)
