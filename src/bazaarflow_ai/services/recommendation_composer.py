"""
Recommendation Composer
========================
Merges forecast, pricing and inventory outputs into ranked ActionItems and
tracks how issued actions turned out.

Design Principles:
- ActionItems are created fresh each cycle and never mutated
- Every item links back to the recommendation(s) it came from
- Ranking is deterministic: score desc, then product id, then category
- Clearance is a recommendation only; nothing changes price or stock by itself

Impact estimates (rupees over the impact window):
- REORDER:          allocated quantity x unit margin
- PRICE_CHANGE:     margin at the new price minus margin at the current price
- CLEARANCE:        stock value x holding cost rate
- FORECAST_REVIEW:  window demand x unit margin x accuracy shortfall
- CONSTRAINT_ALERT: 0 (surfaced so suppressed products stay visible)
"""

import threading
import uuid
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Optional, Any, Tuple, Iterable, Mapping
from dataclasses import dataclass, field, replace

from ..config import Config, DEFAULT_CONFIG
from ..utils.logger import get_logger
from .catalog import ProductProfile
from .forecaster import ForecastResult, ForecastState
from .pricing_engine import PricingRecommendation, RationaleTag
from .inventory_optimizer import StockRecommendation, SlowMoverFlag, BindingConstraint

logger = get_logger(__name__)

ACTION_NAMESPACE = uuid.UUID('6f1c9a52-3b8e-4d0a-9c57-2e4b8f1d7a63')


class ActionCategory(Enum):
    """Business-facing action categories."""
    REORDER = "reorder"
    PRICE_CHANGE = "price_change"
    CLEARANCE = "clearance"
    FORECAST_REVIEW = "forecast_review"
    CONSTRAINT_ALERT = "constraint_alert"


@dataclass(frozen=True)
class ActionItem:
    """
    One ranked, business-facing action.

    Attributes
    ----------
    action_id : str
        Deterministic id of (business, cycle, product, category)
    impact_estimate : float
        Expected rupee impact over the impact window
    confidence : float
        Confidence of the underlying estimate, in [0, 1]
    score : float
        impact_estimate x confidence; the ranking key
    source_ids : tuple of str
        Links to the recommendations this item was built from
    details : Mapping
        Structured numbers a presentation layer can render directly
    """
    action_id: str
    business_id: Any
    cycle_id: str
    product_id: Any
    category: ActionCategory
    impact_estimate: float
    confidence: float
    score: float
    source_ids: Tuple[str, ...] = ()
    details: Mapping[str, Any] = field(default_factory=dict)
    flags: Tuple[str, ...] = ()
    rank: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            'action_id': self.action_id,
            'rank': self.rank,
            'business_id': self.business_id,
            'cycle_id': self.cycle_id,
            'product_id': self.product_id,
            'category': self.category.value,
            'impact_estimate': self.impact_estimate,
            'confidence': self.confidence,
            'score': self.score,
            'source_ids': list(self.source_ids),
            'details': dict(self.details),
            'flags': list(self.flags),
        }


def action_id_for(business_id: Any, cycle_id: str, product_id: Any, category: ActionCategory) -> str:
    return str(uuid.uuid5(ACTION_NAMESPACE, f"{business_id}|{cycle_id}|{product_id}|{category.value}"))


class RecommendationComposer:
    """
    Builds and ranks the ActionItems of one cycle.

    Usage:
        composer = RecommendationComposer(config)
        actions = composer.compose(business_id, cycle_id, profiles, forecasts,
                                   pricing, stock, slow_movers, failures)
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or DEFAULT_CONFIG

    def compose(
        self,
        business_id: Any,
        cycle_id: str,
        profiles: Mapping[Any, ProductProfile],
        forecasts: Mapping[Any, ForecastResult],
        pricing: Mapping[Any, PricingRecommendation],
        stock: Mapping[Any, StockRecommendation],
        slow_movers: Iterable[SlowMoverFlag] = (),
        failures: Iterable[Any] = (),
        top_n: Optional[int] = None
    ) -> List[ActionItem]:
        """
        Merge per-product outputs into a ranked, bounded action list.

        Args:
            forecasts: Forecast per product (any horizon >= impact window)
            failures: Per-product failures; ConstraintViolations become alerts
            top_n: Number of items to return (default: composer.top_n)

        Returns:
            ActionItems ranked 1..N
        """
        top_n = top_n or self.config.composer.top_n
        items: List[ActionItem] = []

        def build(product_id, category, impact, confidence, sources, details, flags=()):
            impact = round(float(impact), 2)
            confidence = round(float(confidence), 4)
            items.append(ActionItem(
                action_id=action_id_for(business_id, cycle_id, product_id, category),
                business_id=business_id,
                cycle_id=cycle_id,
                product_id=product_id,
                category=category,
                impact_estimate=impact,
                confidence=confidence,
                score=round(impact * confidence, 4),
                source_ids=tuple(sources),
                details=MappingProxyType(dict(details)),
                flags=tuple(flags),
            ))

        for product_id in sorted(stock, key=str):
            plan = stock[product_id]
            if plan.reorder_quantity <= 0 and plan.binding_constraint is BindingConstraint.NONE:
                continue
            forecast = forecasts.get(product_id)
            build(
                product_id,
                ActionCategory.REORDER,
                plan.reorder_quantity * max(plan.unit_margin, 0.0),
                forecast.confidence if forecast else 0.0,
                [f"stock:{product_id}"] + ([f"forecast:{product_id}"] if forecast else []),
                {
                    'reorder_quantity': plan.reorder_quantity,
                    'required_quantity': plan.required_quantity,
                    'reorder_point': plan.reorder_point,
                    'safety_stock': plan.safety_stock,
                    'binding_constraint': plan.binding_constraint.value,
                },
                forecast.flags if forecast else (),
            )

        for product_id in sorted(pricing, key=str):
            rec = pricing[product_id]
            if not rec.changes_price:
                continue
            impact = self._price_impact(rec, profiles.get(product_id))
            if impact <= 0 and rec.rationale is not RationaleTag.MARGIN_FLOOR:
                continue
            forecast = forecasts.get(product_id)
            confidence = forecast.confidence if forecast else 0.5
            if rec.low_confidence:
                confidence *= 0.5
            build(
                product_id,
                ActionCategory.PRICE_CHANGE,
                max(impact, 0.0),
                confidence,
                [f"pricing:{product_id}"],
                {
                    'current_price': rec.current_price,
                    'recommended_price': rec.recommended_price,
                    'expected_quantity_delta': rec.expected_quantity_delta,
                    'rationale': rec.rationale.value,
                },
                ('low_confidence',) if rec.low_confidence else (),
            )

        for flag in slow_movers:
            profile = profiles.get(flag.product_id)
            if profile is None:
                continue
            build(
                flag.product_id,
                ActionCategory.CLEARANCE,
                profile.current_stock * profile.cost_price * self.config.inventory.holding_cost_rate,
                1.0,
                [f"slow_mover:{flag.product_id}"],
                {
                    'velocity': flag.velocity,
                    'category_threshold': flag.category_threshold,
                    'current_stock': profile.current_stock,
                },
            )

        window = self.config.composer.impact_window_days
        floor = self.config.forecast.accuracy_floor
        for product_id in sorted(forecasts, key=str):
            forecast = forecasts[product_id]
            profile = profiles.get(product_id)
            if forecast.state is not ForecastState.DEGRADED or profile is None:
                continue
            shortfall = max(floor - (forecast.accuracy or 0.0), 0.0)
            build(
                product_id,
                ActionCategory.FORECAST_REVIEW,
                forecast.total_demand(window) * max(profile.unit_margin, 0.0) * shortfall,
                1.0,
                [f"forecast:{product_id}"],
                {'accuracy': forecast.accuracy, 'accuracy_floor': floor},
                forecast.flags,
            )

        for failure in failures:
            if failure.error_type != 'ConstraintViolation':
                continue
            build(
                failure.product_id,
                ActionCategory.CONSTRAINT_ALERT,
                0.0,
                1.0,
                [f"{failure.stage}:{failure.product_id}"],
                {'stage': failure.stage, 'message': failure.message},
            )

        ranked = self.rank(items)[:top_n]
        logger.info(f"Composed {len(items)} action items; returning top {len(ranked)}")
        return ranked

    def _price_impact(self, rec: PricingRecommendation, profile: Optional[ProductProfile]) -> float:
        cost = profile.cost_price if profile else rec.margin_check.cost_price
        demand = rec.baseline_demand
        new_demand = demand + (rec.expected_quantity_delta or 0.0)
        return (rec.recommended_price - cost) * new_demand - (rec.current_price - cost) * demand

    @staticmethod
    def rank(items: Iterable[ActionItem]) -> List[ActionItem]:
        """Deterministic order: score desc, product id, category."""
        ordered = sorted(items, key=lambda a: (-a.score, str(a.product_id), a.category.value))
        return [replace(item, rank=i + 1) for i, item in enumerate(ordered)]


class OutcomeTracker:
    """
    Realised outcomes of issued actions, and effectiveness per category.

    effectiveness = sum(realised impact) / sum(estimated impact)
    """

    def __init__(self):
        self._outcomes: Dict[str, Tuple[ActionItem, float]] = {}
        self._lock = threading.Lock()

    def record(self, action: ActionItem, realised_impact: float) -> None:
        """Store (or replace) the realised impact of an issued action."""
        with self._lock:
            self._outcomes[action.action_id] = (action, float(realised_impact))

    def effectiveness(self) -> Dict[str, float]:
        """Effectiveness ratio per category with a non-zero estimate."""
        with self._lock:
            outcomes = list(self._outcomes.values())

        estimated: Dict[str, float] = {}
        realised: Dict[str, float] = {}
        for action, value in outcomes:
            key = action.category.value
            estimated[key] = estimated.get(key, 0.0) + action.impact_estimate
            realised[key] = realised.get(key, 0.0) + value

        return {
            key: round(realised[key] / estimated[key], 4)
            for key in sorted(estimated)
            if estimated[key] != 0
        }

    def __len__(self) -> int:
        return len(self._outcomes)
