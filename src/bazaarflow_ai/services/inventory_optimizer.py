"""
Inventory Optimizer
====================
Safety stock, reorder point and reorder quantity per product, catalog-wide
storage and budget allocation, and slow-mover detection.

Per product (periodic review, order-up-to):
    safety stock  SS  = z(service_level) * sqrt(L * sigma_d^2 + d^2 * sigma_L^2)
    reorder point ROP = demand over lead time + SS
    optimal stock     = demand over (lead time + review period) + SS
    reorder qty       = ceil(optimal - current) when current <= ROP, else 0

Catalog constraints:
- Storage: greedy by velocity x unit margin (desc), lead-time variance (asc),
  product id; partial fills allowed
- Budget: exact 0/1 knapsack over full reorders (costs scaled up into
  integer buckets so a feasible scaled solution is feasible in rupees),
  leftover budget filled partially by value density. The greedy fallback
  (density order plus best single item) reaches at least half the optimum.

Slow movers:
    7-day rolling velocity below the category's percentile threshold on
    every day of the detection window. Flags only; no automatic change.
"""

import math
import numpy as np
import pandas as pd
from enum import Enum
from typing import Dict, List, Optional, Any, Tuple
from dataclasses import dataclass, replace
from scipy import stats

from ..config import Config, DEFAULT_CONFIG
from ..exceptions import AllocationError
from ..utils.logger import get_logger
from .aggregator import DemandSeries
from .catalog import ProductProfile
from .forecaster import ForecastResult

logger = get_logger(__name__)


class BindingConstraint(Enum):
    """Constraint that reduced a reorder quantity"""
    NONE = "none"
    STORAGE = "storage"
    BUDGET = "budget"


@dataclass(frozen=True)
class StockRecommendation:
    """
    Stock plan of one product.

    Attributes
    ----------
    required_quantity : int
        Reorder quantity before catalog constraints
    reorder_quantity : int
        Quantity after storage/budget allocation
    binding_constraint : BindingConstraint
        Which constraint cut the quantity, if any
    """
    product_id: Any
    current_stock: float
    optimal_stock: float
    reorder_point: float
    safety_stock: float
    lead_time_demand: float
    required_quantity: int
    reorder_quantity: int
    binding_constraint: BindingConstraint = BindingConstraint.NONE
    daily_demand: float = 0.0
    daily_std: float = 0.0
    unit_cost: float = 0.0
    unit_margin: float = 0.0
    lead_time_days: float = 0.0
    lead_time_std_days: float = 0.0
    storage_units_per_item: float = 1.0

    @property
    def needs_reorder(self) -> bool:
        return self.required_quantity > 0

    @property
    def fully_stocked(self) -> bool:
        return self.reorder_quantity >= self.required_quantity

    @property
    def reorder_cost(self) -> float:
        return self.reorder_quantity * self.unit_cost

    @property
    def storage_used(self) -> float:
        return self.reorder_quantity * self.storage_units_per_item

    @property
    def priority_score(self) -> float:
        """Velocity x unit margin, used for storage ranking."""
        return self.daily_demand * self.unit_margin

    def allocated(self, quantity: int, constraint: BindingConstraint) -> 'StockRecommendation':
        if quantity >= self.reorder_quantity:
            return self
        return replace(self, reorder_quantity=int(max(quantity, 0)), binding_constraint=constraint)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'product_id': self.product_id,
            'current_stock': self.current_stock,
            'optimal_stock': self.optimal_stock,
            'reorder_point': self.reorder_point,
            'safety_stock': self.safety_stock,
            'lead_time_demand': self.lead_time_demand,
            'required_quantity': self.required_quantity,
            'reorder_quantity': self.reorder_quantity,
            'binding_constraint': self.binding_constraint.value,
            'reorder_cost': round(self.reorder_cost, 2),
        }


@dataclass(frozen=True)
class AllocationSummary:
    """Catalog-wide allocation outcome."""
    strategy: str
    storage_capacity: Optional[float]
    storage_used: float
    budget: Optional[float]
    budget_used: float
    value_covered: float
    fully_stocked: int
    constrained: int

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass(frozen=True)
class SlowMoverFlag:
    """A product selling below its category's velocity percentile for a sustained window."""
    product_id: Any
    category: str
    velocity: float
    category_threshold: float
    window_days: int


def _demand_over(points: np.ndarray, days: float) -> float:
    """Forecast demand over a possibly fractional number of days."""
    if days <= 0 or len(points) == 0:
        return 0.0
    full = int(math.floor(days))
    fraction = days - full
    covered = points[:full].sum()
    if full > len(points):
        covered += (full - len(points)) * points.mean()
    if fraction > 0:
        covered += fraction * (points[full] if full < len(points) else points.mean())
    return float(covered)


class InventoryOptimizer:
    """
    Computes stock plans and allocates catalog-wide capacity and budget.

    Usage:
        optimizer = InventoryOptimizer(config)
        plans = [optimizer.compute_plan(profile, forecast) for ...]
        plans, summary = optimizer.allocate(plans)
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or DEFAULT_CONFIG

    @property
    def service_factor(self) -> float:
        return float(stats.norm.ppf(self.config.inventory.service_level))

    # ------------------------------------------------------------------
    # Per-product plan
    # ------------------------------------------------------------------
    def compute_plan(self, profile: ProductProfile, forecast: ForecastResult) -> StockRecommendation:
        """
        Safety stock, reorder point and reorder quantity for one product.

        Args:
            profile: Catalog record (stock, lead time, cost, price)
            forecast: The product's forecast of the cycle

        Returns:
            StockRecommendation with binding constraint NONE
        """
        cfg = self.config.inventory
        lead_time = profile.lead_time_days
        lead_time_std = profile.lead_time_std_days
        coverage = lead_time + cfg.review_period_days

        points = forecast.points
        horizon_days = max(int(math.ceil(coverage)), 1)
        daily_demand = float(points[:horizon_days].mean()) if len(points) else 0.0
        daily_std = forecast.daily_std(
            self.config.forecast.confidence_level, days=max(int(math.ceil(lead_time)), 1)
        )

        safety_stock = self.service_factor * math.sqrt(
            lead_time * daily_std ** 2 + daily_demand ** 2 * lead_time_std ** 2
        )
        lead_time_demand = _demand_over(points, lead_time)
        reorder_point = lead_time_demand + safety_stock
        optimal_stock = _demand_over(points, coverage) + safety_stock

        required = 0
        if profile.current_stock <= reorder_point:
            required = max(int(math.ceil(optimal_stock - profile.current_stock - 1e-9)), 0)

        return StockRecommendation(
            product_id=profile.product_id,
            current_stock=profile.current_stock,
            optimal_stock=round(optimal_stock, 2),
            reorder_point=round(reorder_point, 2),
            safety_stock=round(safety_stock, 2),
            lead_time_demand=round(lead_time_demand, 2),
            required_quantity=required,
            reorder_quantity=required,
            daily_demand=round(daily_demand, 4),
            daily_std=round(daily_std, 4),
            unit_cost=profile.cost_price,
            unit_margin=profile.current_price - profile.cost_price,
            lead_time_days=lead_time,
            lead_time_std_days=lead_time_std,
            storage_units_per_item=profile.storage_units_per_item,
        )

    # ------------------------------------------------------------------
    # Catalog-wide allocation
    # ------------------------------------------------------------------
    def allocate(
        self,
        plans: List[StockRecommendation],
        strategy: Optional[str] = None
    ) -> Tuple[List[StockRecommendation], AllocationSummary]:
        """
        Apply the storage cap, then the budget cap, to all plans of a cycle.

        Args:
            plans: Per-product plans (the whole catalog of the cycle)
            strategy: 'exact' or 'greedy' budget solver (default: config)

        Returns:
            (allocated plans in input order, AllocationSummary)

        Raises:
            AllocationError: exact solver table too large, or a cap broken
        """
        cfg = self.config.inventory
        strategy = strategy or self.config.cycle.allocation_strategy

        allocated = list(plans)
        if cfg.storage_capacity is not None:
            allocated = self.allocate_storage(allocated, cfg.storage_capacity)
        if cfg.budget is not None:
            allocated = self.allocate_budget(allocated, cfg.budget, strategy)

        storage_used = sum(p.storage_used for p in allocated)
        budget_used = sum(p.reorder_cost for p in allocated)
        if cfg.storage_capacity is not None and storage_used > cfg.storage_capacity + 1e-6:
            raise AllocationError(f"Storage allocation {storage_used:.2f} exceeds {cfg.storage_capacity}")
        if cfg.budget is not None and budget_used > cfg.budget + 1e-6:
            raise AllocationError(f"Budget allocation {budget_used:.2f} exceeds {cfg.budget}")

        summary = AllocationSummary(
            strategy=strategy,
            storage_capacity=cfg.storage_capacity,
            storage_used=round(storage_used, 2),
            budget=cfg.budget,
            budget_used=round(budget_used, 2),
            value_covered=round(sum(p.reorder_quantity * max(p.unit_margin, 0.0) for p in allocated), 2),
            fully_stocked=sum(1 for p in allocated if p.needs_reorder and p.fully_stocked),
            constrained=sum(1 for p in allocated if p.binding_constraint is not BindingConstraint.NONE),
        )
        logger.info(
            f"Allocation ({strategy}): {summary.fully_stocked} fully stocked, "
            f"{summary.constrained} constrained, budget used {summary.budget_used:,.2f}"
        )
        return allocated, summary

    def allocate_storage(
        self,
        plans: List[StockRecommendation],
        capacity: float
    ) -> List[StockRecommendation]:
        """Greedy storage allocation; highest velocity x margin first."""
        order = sorted(
            (p for p in plans if p.reorder_quantity > 0),
            key=lambda p: (-p.priority_score, p.lead_time_std_days ** 2, str(p.product_id)),
        )
        remaining = float(capacity)
        result = {}
        for plan in order:
            per_item = plan.storage_units_per_item
            if per_item <= 0:
                result[plan.product_id] = plan
                continue
            fits = int(math.floor(remaining / per_item + 1e-9))
            quantity = min(plan.reorder_quantity, max(fits, 0))
            result[plan.product_id] = plan.allocated(quantity, BindingConstraint.STORAGE)
            remaining -= quantity * per_item

        return [result.get(p.product_id, p) for p in plans]

    def allocate_budget(
        self,
        plans: List[StockRecommendation],
        budget: float,
        strategy: str = 'exact'
    ) -> List[StockRecommendation]:
        """Budget allocation with the exact knapsack or the greedy approximation."""
        candidates = [p for p in plans if p.reorder_quantity > 0 and p.reorder_cost > 0]
        if sum(p.reorder_cost for p in candidates) <= budget:
            return list(plans)

        if strategy == 'exact':
            selected = self._knapsack(candidates, budget)
        elif strategy == 'greedy':
            selected = self._greedy(candidates, budget)
        else:
            raise AllocationError(f"Unknown allocation strategy '{strategy}'")

        result = {}
        remaining = budget - sum(p.reorder_cost for p in candidates if p.product_id in selected)
        for plan in candidates:
            if plan.product_id in selected:
                result[plan.product_id] = plan

        # Leftover budget fills the rest partially, best value density first
        for plan in sorted(
            (p for p in candidates if p.product_id not in selected),
            key=lambda p: (-max(p.unit_margin, 0.0) / p.unit_cost, str(p.product_id)),
        ):
            quantity = min(plan.reorder_quantity, int(math.floor(remaining / plan.unit_cost + 1e-9)))
            quantity = max(quantity, 0)
            result[plan.product_id] = plan.allocated(quantity, BindingConstraint.BUDGET)
            remaining -= quantity * plan.unit_cost

        return [result.get(p.product_id, p) for p in plans]

    def _knapsack(self, items: List[StockRecommendation], budget: float) -> set:
        """
        Exact 0/1 knapsack of full reorders by dynamic programming.

        Costs are rounded UP into `knapsack_resolution` buckets of the budget.

        Raises
        ------
        AllocationError
            When the table would exceed `max_knapsack_cells`.
        """
        cfg = self.config.inventory
        capacity = cfg.knapsack_resolution
        cells = len(items) * (capacity + 1)
        if cells > cfg.max_knapsack_cells:
            raise AllocationError(
                f"Knapsack table of {cells:,} cells exceeds limit {cfg.max_knapsack_cells:,}"
            )
        if budget <= 0:
            return set()

        bucket = budget / capacity
        weights = [max(int(math.ceil(p.reorder_cost / bucket - 1e-9)), 1) for p in items]
        values = [p.reorder_quantity * max(p.unit_margin, 0.0) for p in items]

        best = np.zeros(capacity + 1)
        keep = np.zeros((len(items), capacity + 1), dtype=bool)
        for i, (w, v) in enumerate(zip(weights, values)):
            if w > capacity or v <= 0:
                continue
            candidate = best[:-w] + v
            improved = candidate > best[w:]
            updated = best.copy()
            updated[w:][improved] = candidate[improved]
            keep[i, w:] = improved
            best = updated

        selected = set()
        c = capacity
        for i in range(len(items) - 1, -1, -1):
            if keep[i, c]:
                selected.add(items[i].product_id)
                c -= weights[i]

        logger.debug(f"Knapsack selected {len(selected)}/{len(items)} reorders, value {best[capacity]:.2f}")
        return selected

    def _greedy(self, items: List[StockRecommendation], budget: float) -> set:
        """
        Density-ordered greedy plus the best single item that fits.

        Taking the better of the two is at least half the optimal value.
        """
        def value(p):
            return p.reorder_quantity * max(p.unit_margin, 0.0)

        order = sorted(items, key=lambda p: (-value(p) / p.reorder_cost, str(p.product_id)))
        selected, spent = set(), 0.0
        for plan in order:
            if value(plan) <= 0:
                continue
            if spent + plan.reorder_cost <= budget:
                selected.add(plan.product_id)
                spent += plan.reorder_cost

        affordable = [p for p in items if p.reorder_cost <= budget and value(p) > 0]
        if affordable:
            best_single = max(affordable, key=lambda p: (value(p), str(p.product_id)))
            greedy_value = sum(value(p) for p in items if p.product_id in selected)
            if value(best_single) > greedy_value:
                return {best_single.product_id}
        return selected

    # ------------------------------------------------------------------
    # Slow movers
    # ------------------------------------------------------------------
    def velocities(self, series_by_product: Dict[Any, DemandSeries]) -> pd.DataFrame:
        """Rolling daily velocity per product (columns) over the union of dates."""
        window = self.config.inventory.velocity_window_days
        columns = {
            pid: series.to_series().rolling(window, min_periods=window).mean()
            for pid, series in series_by_product.items()
        }
        if not columns:
            return pd.DataFrame()
        return pd.DataFrame(columns)

    def detect_slow_movers(
        self,
        series_by_product: Dict[Any, DemandSeries],
        categories: Dict[Any, str]
    ) -> List[SlowMoverFlag]:
        """
        Products whose velocity stayed below the category percentile for
        the whole detection window. Categories with fewer than
        inventory.slow_mover_min_category_size products are skipped.

        Args:
            series_by_product: History per product of one business
            categories: Category per product id

        Returns:
            SlowMoverFlags sorted by product id
        """
        cfg = self.config.inventory
        velocity = self.velocities(series_by_product)
        if velocity.empty:
            return []

        window = velocity.iloc[-cfg.slow_mover_window_days:]
        flags = []
        by_category: Dict[str, List[Any]] = {}
        for pid in velocity.columns:
            by_category.setdefault(categories.get(pid, '*'), []).append(pid)

        for category, pids in by_category.items():
            if len(pids) < cfg.slow_mover_min_category_size:
                continue
            block = window[pids]
            threshold = block.apply(
                lambda row: np.nanpercentile(row.values, cfg.slow_mover_percentile)
                if row.notna().any() else np.nan,
                axis=1,
            )
            for pid in pids:
                values = block[pid]
                if len(values) < cfg.slow_mover_window_days or values.isna().any():
                    continue
                if bool((values < threshold).all()):
                    flags.append(SlowMoverFlag(
                        product_id=pid,
                        category=category,
                        velocity=round(float(values.iloc[-1]), 4),
                        category_threshold=round(float(threshold.iloc[-1]), 4),
                        window_days=cfg.slow_mover_window_days,
                    ))

        flags.sort(key=lambda f: str(f.product_id))
        if flags:
            logger.info(f"Detected {len(flags)} slow movers")
        return flags
