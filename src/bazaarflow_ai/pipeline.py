"""
BazaarFlow AI - Business Intelligence Engine
=============================================
Runs refresh cycles of the analytical pipeline for a business.

Cycle phases:
1. Snapshot - calendar, regional factors, transactions and catalog as of cycle start
2. Aggregate - daily DemandSeries per product
3. Per-product fan-out - forecast, price and stock plan on a worker pool
4. Barrier - wait for every product task
5. Allocation - catalog-wide storage/budget allocation (exact, then greedy)
6. Compose - ranked ActionItems
7. Publish - atomically, or not at all

Guarantees:
- run_cycle is idempotent per (business_id, cycle_ts)
- A per-product failure is reported on the result and never fails the cycle
- CycleAborted leaves the previously published cycle as the system of record

Usage:
    engine = BusinessIntelligenceEngine()
    engine.load_catalog("biz-001", catalog_df)
    engine.ingest_transactions(transactions_df)
    result = engine.run_cycle("biz-001", "scheduled")
"""

import threading
import pandas as pd
from concurrent.futures import ThreadPoolExecutor, as_completed
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Optional, Any, Tuple, Union, Iterable, Mapping
from dataclasses import dataclass, field, replace

from .config import Config, DEFAULT_CONFIG
from .exceptions import (
    BazaarFlowError, AllocationError, CycleAborted, DataValidationError,
)
from .utils.logger import get_logger, LogContext
from .services.aggregator import HistoricalAggregator, DemandSeries
from .services.accuracy import AccuracyTracker
from .services.catalog import ProductProfile, load_catalog
from .services.seasonal_adjuster import SeasonalCalendar, CalendarSnapshot
from .services.regional_adjuster import RegionalRegistry, RegionalSnapshot
from .services.forecaster import DemandForecaster, ForecastResult
from .services.pricing_engine import PricingEngine, PricingRecommendation
from .services.inventory_optimizer import (
    InventoryOptimizer, StockRecommendation, SlowMoverFlag, AllocationSummary, BindingConstraint,
)
from .services.recommendation_composer import (
    RecommendationComposer, OutcomeTracker, ActionItem,
)

logger = get_logger(__name__)


class CycleReason(Enum):
    """What triggered a cycle"""
    SCHEDULED = "scheduled"
    NEW_DATA = "new_data"
    PRICE_CHANGE = "price_change"


@dataclass(frozen=True)
class ProductFailure:
    """A per-product error isolated at the task boundary."""
    product_id: Any
    stage: str
    error_type: str
    message: str

    @classmethod
    def from_exception(cls, product_id: Any, stage: str, error: Exception) -> 'ProductFailure':
        message = error.message if isinstance(error, BazaarFlowError) else str(error)
        return cls(product_id=product_id, stage=stage, error_type=type(error).__name__, message=message)

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.__dict__)


@dataclass(frozen=True)
class ProductOutcome:
    """Everything one product task produced in a cycle."""
    product_id: Any
    forecasts: Mapping[int, ForecastResult] = field(default_factory=dict)
    pricing: Optional[PricingRecommendation] = None
    stock: Optional[StockRecommendation] = None
    failures: Tuple[ProductFailure, ...] = ()
    calendar_version: int = 0
    regional_version: int = 0


@dataclass(frozen=True)
class CycleResult:
    """
    Published output of one cycle.

    Attributes
    ----------
    actions : tuple of ActionItem
        Ranked top-N action items
    forecasts : Mapping
        product_id -> {horizon: ForecastResult}
    pricing : Mapping
        product_id -> PricingRecommendation
    stock : Mapping
        product_id -> allocated StockRecommendation
    failures : tuple of ProductFailure
        Per-product errors of the cycle
    snapshot_versions : Mapping
        product_id -> (calendar_version, regional_version) its outputs were
        computed under; reused products of incremental cycles may lag the
        cycle's own versions
    """
    business_id: Any
    cycle_id: str
    cycle_ts: pd.Timestamp
    reason: CycleReason
    as_of: Optional[pd.Timestamp]
    actions: Tuple[ActionItem, ...]
    forecasts: Mapping[Any, Mapping[int, ForecastResult]]
    pricing: Mapping[Any, PricingRecommendation]
    stock: Mapping[Any, StockRecommendation]
    slow_movers: Tuple[SlowMoverFlag, ...]
    failures: Tuple[ProductFailure, ...]
    allocation: Optional[AllocationSummary]
    products_run: Tuple[Any, ...]
    calendar_version: int
    regional_version: int
    warnings: Tuple[str, ...] = ()
    snapshot_versions: Mapping[Any, Tuple[int, int]] = field(default_factory=dict)

    @property
    def stale_products(self) -> Tuple[Any, ...]:
        """Products whose outputs predate this cycle's calendar or regional snapshot."""
        current = (self.calendar_version, self.regional_version)
        return tuple(
            pid for pid, versions in sorted(self.snapshot_versions.items(), key=lambda kv: str(kv[0]))
            if tuple(versions) != current
        )

    def to_dict(self) -> Dict[str, Any]:
        return {
            'business_id': self.business_id,
            'cycle_id': self.cycle_id,
            'cycle_ts': self.cycle_ts.isoformat(),
            'reason': self.reason.value,
            'as_of': self.as_of.strftime('%Y-%m-%d') if self.as_of is not None else None,
            'actions': [a.to_dict() for a in self.actions],
            'pricing': [p.to_dict() for p in self.pricing.values()],
            'stock': [s.to_dict() for s in self.stock.values()],
            'slow_movers': [dict(f.__dict__) for f in self.slow_movers],
            'failures': [f.to_dict() for f in self.failures],
            'allocation': self.allocation.to_dict() if self.allocation else None,
            'products_run': list(self.products_run),
            'calendar_version': self.calendar_version,
            'regional_version': self.regional_version,
            'snapshot_versions': {str(pid): list(v) for pid, v in self.snapshot_versions.items()},
            'warnings': list(self.warnings),
        }


def _freeze(mapping: Dict) -> Mapping:
    return MappingProxyType(dict(mapping))


class BusinessIntelligenceEngine:
    """
    Owns the per-business state and runs refresh cycles.

    Shared state (transactions, catalog, published cycles) is only touched
    under the engine lock; a running cycle works on its own snapshot.
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        calendar: Optional[SeasonalCalendar] = None,
        regional: Optional[RegionalRegistry] = None
    ):
        self.config = config or DEFAULT_CONFIG
        self.calendar = calendar or SeasonalCalendar.with_defaults(self.config)
        self.regional = regional or RegionalRegistry()

        self.aggregator = HistoricalAggregator(self.config)
        self.accuracy = AccuracyTracker(self.config)
        self.forecaster = DemandForecaster(self.config, self.accuracy)
        self.pricing = PricingEngine(self.config)
        self.optimizer = InventoryOptimizer(self.config)
        self.composer = RecommendationComposer(self.config)
        self.outcomes = OutcomeTracker()

        self._transactions: Dict[Any, pd.DataFrame] = {}
        self._catalogs: Dict[Any, Dict[Any, ProductProfile]] = {}
        self._published: Dict[Any, CycleResult] = {}
        self._cycles: Dict[Tuple[Any, pd.Timestamp], CycleResult] = {}
        self._predictions: Dict[Tuple[Any, Any], Dict[pd.Timestamp, float]] = {}
        self._last_scheduled: Dict[Any, pd.Timestamp] = {}
        self._cancel: Dict[Any, threading.Event] = {}
        self._business_locks: Dict[Any, threading.Lock] = {}
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Inputs
    # ------------------------------------------------------------------
    def load_catalog(
        self,
        business_id: Any,
        catalog: Union[pd.DataFrame, Iterable[ProductProfile]]
    ) -> int:
        """Replace the catalog of a business. Returns the number of products."""
        if isinstance(catalog, pd.DataFrame):
            profiles = load_catalog(catalog, self.config)
        else:
            profiles = {p.product_id: p for p in catalog}
        with self._lock:
            self._catalogs[business_id] = profiles
        return len(profiles)

    def catalog(self, business_id: Any) -> Dict[Any, ProductProfile]:
        with self._lock:
            return dict(self._catalogs.get(business_id, {}))

    def ingest_transactions(
        self,
        transactions: pd.DataFrame,
        cycle_ts: Optional[Any] = None
    ) -> Dict[Any, CycleResult]:
        """
        Validate and store a transaction batch.

        When cycle.auto_refresh is on, every business in the batch gets an
        incremental new_data cycle for the products it contained.

        Returns:
            CycleResult per refreshed business (empty when auto_refresh is off)
        """
        prepared = self.aggregator.prepare(transactions)
        affected: Dict[Any, List[Any]] = {}

        with self._lock:
            for business_id, batch in prepared.groupby('business_id', sort=True):
                existing = self._transactions.get(business_id)
                combined = batch if existing is None else pd.concat([existing, batch], ignore_index=True)
                self._transactions[business_id] = combined.reset_index(drop=True)
                affected[business_id] = sorted(batch['product_id'].unique().tolist(), key=str)

        logger.info(f"Ingested {len(prepared):,} transactions for {len(affected)} businesses")

        results = {}
        if self.config.cycle.auto_refresh:
            for business_id, product_ids in affected.items():
                if business_id not in self._catalogs:
                    logger.warning(f"No catalog for business {business_id}; skipping refresh")
                    continue
                results[business_id] = self.run_cycle(
                    business_id, CycleReason.NEW_DATA, cycle_ts=cycle_ts, product_ids=product_ids
                )
        return results

    def update_price(
        self,
        business_id: Any,
        product_id: Any,
        new_price: float,
        cycle_ts: Optional[Any] = None
    ) -> CycleResult:
        """Store a new current price and refresh that product."""
        with self._lock:
            catalog = self._catalogs.get(business_id, {})
            if product_id not in catalog:
                raise DataValidationError(
                    f"Unknown product {product_id} for business {business_id}", product_id=product_id
                )
            catalog = dict(catalog)
            catalog[product_id] = catalog[product_id].with_price(new_price)
            self._catalogs[business_id] = catalog

        logger.info(f"Price of {product_id} set to {new_price:.2f}")
        return self.run_cycle(
            business_id, CycleReason.PRICE_CHANGE, cycle_ts=cycle_ts, product_ids=[product_id]
        )

    def record_actuals(self, business_id: Any, actuals: pd.DataFrame) -> int:
        """
        Feed realised daily demand (product_id, date, quantity) into the
        accuracy tracker against the latest forecast issued for each date.

        Returns:
            Number of realised/predicted pairs recorded
        """
        recorded = 0
        for row in actuals.itertuples(index=False):
            day = pd.Timestamp(row.date).normalize()
            with self._lock:
                predicted = self._predictions.get((business_id, row.product_id), {}).get(day)
            if predicted is None:
                continue
            self.accuracy.record(business_id, row.product_id, day, predicted, row.quantity)
            recorded += 1
        logger.info(f"Recorded {recorded} realised demand points for business {business_id}")
        return recorded

    def record_outcome(self, business_id: Any, action_id: str, realised_impact: float) -> None:
        """Attach the realised impact to an action of the published cycle."""
        result = self.latest(business_id)
        for action in (result.actions if result else ()):
            if action.action_id == action_id:
                self.outcomes.record(action, realised_impact)
                return
        raise DataValidationError(f"Unknown action {action_id} for business {business_id}")

    # ------------------------------------------------------------------
    # Cycle control
    # ------------------------------------------------------------------
    def latest(self, business_id: Any) -> Optional[CycleResult]:
        """The published (system of record) cycle of a business."""
        with self._lock:
            return self._published.get(business_id)

    def cycles(self, business_id: Any) -> Tuple[CycleResult, ...]:
        """Retained cycle results of a business, oldest first."""
        with self._lock:
            return tuple(r for k, r in self._cycles.items() if k[0] == business_id)

    def forecast_log(self, business_id: Any, product_id: Any) -> Dict[pd.Timestamp, float]:
        """Latest point forecast per date that actuals can still be matched against."""
        with self._lock:
            return dict(sorted(self._predictions.get((business_id, product_id), {}).items()))

    def is_refresh_due(self, business_id: Any, now: Optional[Any] = None) -> bool:
        """True when the last scheduled cycle is older than cycle.refresh_interval_days."""
        now = pd.Timestamp(now) if now is not None else pd.Timestamp.now()
        with self._lock:
            last = self._last_scheduled.get(business_id)
        if last is None:
            return True
        return now - last >= pd.Timedelta(days=self.config.cycle.refresh_interval_days)

    def cancel(self, business_id: Any) -> None:
        """Abort the running cycle of a business; nothing from it is published."""
        with self._lock:
            event = self._cancel.setdefault(business_id, threading.Event())
        event.set()
        logger.warning(f"Cancellation requested for business {business_id}")

    def run_cycle(
        self,
        business_id: Any,
        reason: Union[CycleReason, str] = CycleReason.SCHEDULED,
        cycle_ts: Optional[Any] = None,
        product_ids: Optional[Iterable[Any]] = None
    ) -> CycleResult:
        """
        Run one refresh cycle.

        Args:
            business_id: Business to refresh
            reason: scheduled, new_data or price_change
            cycle_ts: Logical cycle timestamp; re-running the same
                (business_id, cycle_ts) returns the already computed result
            product_ids: Rerun only these products and reuse the previous
                cycle's results for the rest (incremental refresh)

        Returns:
            The published CycleResult

        Raises:
            CycleAborted: cancelled, or allocation failed with both strategies
        """
        reason = CycleReason(reason)
        cycle_ts = pd.Timestamp(cycle_ts) if cycle_ts is not None else pd.Timestamp.now().floor('s')
        key = (business_id, cycle_ts)

        with self._lock:
            business_lock = self._business_locks.setdefault(business_id, threading.Lock())

        with business_lock:
            with self._lock:
                if key in self._cycles:
                    logger.info(f"Cycle {business_id}@{cycle_ts} already ran; returning it")
                    return self._cycles[key]
                cancel = self._cancel.setdefault(business_id, threading.Event())
                cancel.clear()

            with LogContext(logger, "Cycle", business=business_id,
                            cycle_ts=cycle_ts.isoformat(), reason=reason.value):
                result = self._run(business_id, reason, cycle_ts, product_ids, cancel)
                self._publish(key, result)
        return result

    # ------------------------------------------------------------------
    # Cycle internals
    # ------------------------------------------------------------------
    def _run(
        self,
        business_id: Any,
        reason: CycleReason,
        cycle_ts: pd.Timestamp,
        product_ids: Optional[Iterable[Any]],
        cancel: threading.Event
    ) -> CycleResult:
        cycle_id = f"{business_id}:{cycle_ts.isoformat()}"

        # 1. Snapshot everything the cycle reads
        with LogContext(logger, "Snapshot"):
            calendar = self.calendar.snapshot()
            regional = self.regional.snapshot()
            with self._lock:
                transactions = self._transactions.get(business_id)
                profiles = dict(self._catalogs.get(business_id, {}))
                previous = self._published.get(business_id)

        # 2. Aggregate
        with LogContext(logger, "Aggregate"):
            series_by_product: Dict[Any, DemandSeries] = {}
            if transactions is not None and len(transactions):
                series_by_product = self.aggregator.aggregate_business(
                    transactions, business_id, prepared=True
                )
            as_of = max((s.end for s in series_by_product.values()), default=None)
            if as_of is None:
                as_of = cycle_ts.normalize() - pd.Timedelta(days=1)

        failures: List[ProductFailure] = []
        for product_id in sorted(set(series_by_product) - set(profiles), key=str):
            failures.append(ProductFailure(
                product_id, 'catalog', DataValidationError.__name__, "product missing from catalog"
            ))

        # 3. Which products run; the rest reuse the previous cycle
        to_run = sorted(profiles, key=str)
        reused: Dict[Any, ProductOutcome] = {}
        if product_ids is not None and previous is not None:
            requested = set(product_ids)
            previous_versions = dict(previous.snapshot_versions)
            known = set(previous.forecasts) | {f.product_id for f in previous.failures}
            to_run = [pid for pid in to_run if pid in requested or pid not in known]
            for pid in profiles:
                if pid not in to_run:
                    versions = previous_versions.get(
                        pid, (previous.calendar_version, previous.regional_version)
                    )
                    reused[pid] = ProductOutcome(
                        product_id=pid,
                        forecasts=previous.forecasts.get(pid, {}),
                        pricing=previous.pricing.get(pid),
                        stock=self._unallocated(previous.stock.get(pid)),
                        failures=tuple(f for f in previous.failures if f.product_id == pid),
                        calendar_version=versions[0],
                        regional_version=versions[1],
                    )

        candidates = [
            (profiles[pid], series_by_product[pid]) for pid in sorted(profiles, key=str)
            if pid in series_by_product
        ]

        # 4. Fan-out + barrier
        outcomes: Dict[Any, ProductOutcome] = dict(reused)
        with LogContext(logger, f"Per-product fan-out ({len(to_run)} products)"):
            with ThreadPoolExecutor(max_workers=self.config.cycle.max_workers) as executor:
                future_to_product = {
                    executor.submit(
                        self._run_product, business_id, profiles[pid], series_by_product.get(pid),
                        candidates, as_of, calendar, regional, cancel
                    ): pid
                    for pid in to_run
                }
                for future in as_completed(future_to_product):
                    pid = future_to_product[future]
                    outcomes[pid] = future.result()
        outcomes = {pid: outcomes[pid] for pid in sorted(outcomes, key=str)}

        if cancel.is_set():
            raise CycleAborted(f"Cycle {cycle_id} cancelled; nothing published")

        for pid in sorted(outcomes, key=str):
            failures.extend(outcomes[pid].failures)

        # 5. Catalog-wide steps
        with LogContext(logger, "Slow-mover detection"):
            slow_movers = self.optimizer.detect_slow_movers(
                {pid: s for pid, s in series_by_product.items() if pid in profiles},
                {pid: p.category for pid, p in profiles.items()},
            )

        plans = [outcomes[pid].stock for pid in sorted(outcomes, key=str) if outcomes[pid].stock]
        with LogContext(logger, "Allocation"):
            allocated, summary = self._allocate(plans, cycle_id)

        forecasts = {pid: o.forecasts for pid, o in outcomes.items() if o.forecasts}
        pricing = {pid: o.pricing for pid, o in outcomes.items() if o.pricing is not None}
        stock = {p.product_id: p for p in allocated}

        # 6. Compose
        default_horizon = self.config.forecast.default_horizon
        with LogContext(logger, "Compose"):
            actions = self.composer.compose(
                business_id,
                cycle_id,
                profiles,
                {pid: f[default_horizon] for pid, f in forecasts.items() if default_horizon in f},
                pricing,
                stock,
                slow_movers,
                failures,
            )

        if cancel.is_set():
            raise CycleAborted(f"Cycle {cycle_id} cancelled before publish; nothing published")

        warnings = [
            f"{pid}: {message}"
            for pid in sorted(forecasts, key=str)
            for message in forecasts[pid][max(forecasts[pid])].warnings
        ]
        snapshot_versions = {
            pid: (o.calendar_version, o.regional_version) for pid, o in outcomes.items() if o.forecasts
        }
        stale = sorted(
            (pid for pid, v in snapshot_versions.items() if v != (calendar.version, regional.version)),
            key=str,
        )
        if stale:
            warnings.append(
                f"Reused outputs of {stale} predate calendar v{calendar.version} "
                f"/ regional v{regional.version}"
            )

        return CycleResult(
            business_id=business_id,
            cycle_id=cycle_id,
            cycle_ts=cycle_ts,
            reason=reason,
            as_of=as_of,
            actions=tuple(actions),
            forecasts=_freeze({pid: _freeze(f) for pid, f in forecasts.items()}),
            pricing=_freeze(pricing),
            stock=_freeze(stock),
            slow_movers=tuple(slow_movers),
            failures=tuple(failures),
            allocation=summary,
            products_run=tuple(to_run),
            calendar_version=calendar.version,
            regional_version=regional.version,
            warnings=tuple(warnings),
            snapshot_versions=_freeze(snapshot_versions),
        )

    def _run_product(
        self,
        business_id: Any,
        profile: ProductProfile,
        series: Optional[DemandSeries],
        candidates: List[Tuple[ProductProfile, DemandSeries]],
        as_of: pd.Timestamp,
        calendar: CalendarSnapshot,
        regional: RegionalSnapshot,
        cancel: threading.Event
    ) -> ProductOutcome:
        """One product's forecast, price and stock plan; errors stay inside the outcome."""
        pid = profile.product_id
        versions = {'calendar_version': calendar.version, 'regional_version': regional.version}
        if cancel.is_set():
            return ProductOutcome(product_id=pid, **versions)

        # The catalog location is the product's location for every adjustment
        if series is not None and series.location != profile.location:
            series = replace(series, location=profile.location)

        failures: List[ProductFailure] = []
        horizons = sorted(self.config.forecast.horizons)

        try:
            full = self.forecaster.forecast_product(
                series, profile, candidates, as_of, max(horizons), calendar, regional, business_id
            )
        except Exception as e:
            self._log_failure(pid, 'forecast', e)
            return ProductOutcome(
                product_id=pid, failures=(ProductFailure.from_exception(pid, 'forecast', e),), **versions
            )
        forecasts = {h: full.truncated(h) for h in horizons}

        pricing = None
        try:
            adjustments = None
            if series is not None:
                adjustments, _ = calendar.factors_for_dates(profile.category, profile.location, series.dates)
            intensity = regional.active_factor(profile.location, profile.category).competitive_intensity
            pricing = self.pricing.price_product(
                profile,
                series,
                adjustments,
                baseline_demand=full.total_demand(self.config.pricing.demand_window_days),
                competitive_intensity=intensity,
            )
        except Exception as e:
            self._log_failure(pid, 'pricing', e)
            failures.append(ProductFailure.from_exception(pid, 'pricing', e))

        stock = None
        try:
            stock = self.optimizer.compute_plan(profile, full)
        except Exception as e:
            self._log_failure(pid, 'inventory', e)
            failures.append(ProductFailure.from_exception(pid, 'inventory', e))

        return ProductOutcome(
            product_id=pid,
            forecasts=_freeze(forecasts),
            pricing=pricing,
            stock=stock,
            failures=tuple(failures),
            **versions,
        )

    @staticmethod
    def _log_failure(product_id: Any, stage: str, error: Exception) -> None:
        if isinstance(error, BazaarFlowError):
            logger.warning(f"Product {product_id} {stage} failed: {type(error).__name__}: {error.message}")
        else:
            logger.exception(f"Product {product_id} {stage} failed unexpectedly")

    @staticmethod
    def _unallocated(plan: Optional[StockRecommendation]) -> Optional[StockRecommendation]:
        """A previous cycle's plan with its pre-allocation quantity restored."""
        if plan is None:
            return None
        return replace(plan, reorder_quantity=plan.required_quantity,
                       binding_constraint=BindingConstraint.NONE)

    def _allocate(
        self,
        plans: List[StockRecommendation],
        cycle_id: str
    ) -> Tuple[List[StockRecommendation], AllocationSummary]:
        """Configured strategy first; on AllocationError retry greedy, then abort."""
        strategy = self.config.cycle.allocation_strategy
        try:
            return self.optimizer.allocate(plans, strategy)
        except AllocationError as e:
            logger.warning(f"{strategy} allocation failed ({e.message}); retrying with greedy")
        try:
            return self.optimizer.allocate(plans, 'greedy')
        except AllocationError as e:
            raise CycleAborted(f"Cycle {cycle_id}: allocation failed with greedy fallback: {e.message}") from e

    def _evict_cycles(self, business_id: Any) -> None:
        """Keep the newest cycle.retained_cycles results of a business (insertion order)."""
        keys = [k for k in self._cycles if k[0] == business_id]
        for key in keys[:-self.config.cycle.retained_cycles]:
            del self._cycles[key]

    def _log_predictions(self, result: CycleResult) -> None:
        """Record the longest-horizon points and drop days outside the accuracy window."""
        window = pd.Timedelta(days=self.config.forecast.accuracy_window_days)
        for pid, by_horizon in result.forecasts.items():
            if not by_horizon:
                continue
            longest = by_horizon[max(by_horizon)]
            log = self._predictions.setdefault((result.business_id, pid), {})
            for prediction in longest.predictions:
                log[prediction.date] = prediction.point
            if result.as_of is not None:
                cutoff = result.as_of - window
                for day in [d for d in log if d < cutoff]:
                    del log[day]

    def _publish(self, key: Tuple[Any, pd.Timestamp], result: CycleResult) -> None:
        """Make a finished cycle the system of record in one step."""
        with LogContext(logger, "Publish"):
            with self._lock:
                self._cycles[key] = result
                self._published[result.business_id] = result
                if result.reason is CycleReason.SCHEDULED:
                    self._last_scheduled[result.business_id] = result.cycle_ts
                self._evict_cycles(result.business_id)
                self._log_predictions(result)
            logger.info(
                f"Published {len(result.actions)} actions for {result.business_id} "
                f"({len(result.failures)} product failures)"
            )
