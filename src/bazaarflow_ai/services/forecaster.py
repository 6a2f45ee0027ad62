"""
Demand Forecasting Engine
==========================
Per-product forecasts with confidence bounds for 30/60/90-day horizons.

Method (ACTIVE products):
1. De-seasonalise history by the calendar's composite event factor per date
2. Classical additive decomposition (weekly period) into trend, seasonal
   and residual; level-only fit when fewer than two full periods exist
3. Extrapolate a damped least-squares trend over the recent trend window
4. Repeat the weekly seasonal indices, clip at zero
5. Re-apply the composite event factor and the regional growth/policy
   multiplier for each future date

States:
- COLD_START: not enough own history; blend of similar products
- ACTIVE: normal decomposition
- DEGRADED: rolling accuracy below the floor; bounds widened and flagged

Accuracy:
    accuracy = 1 - MAPE (see services.accuracy). Until enough realised
    pairs exist the reported confidence is the holdout accuracy of the fit.
"""

import numpy as np
import pandas as pd
from enum import Enum
from types import MappingProxyType
from typing import Dict, List, Optional, Any, Tuple, Iterable, Mapping
from dataclasses import dataclass, field, replace
from scipy import stats
from statsmodels.tsa.seasonal import seasonal_decompose

from ..config import Config, DEFAULT_CONFIG
from ..exceptions import InsufficientHistory, ModelDegraded
from ..utils.logger import get_logger
from .aggregator import DemandSeries
from .accuracy import AccuracyTracker, AccuracyReport, mape_accuracy
from .catalog import ProductProfile
from .seasonal_adjuster import CalendarSnapshot
from .regional_adjuster import RegionalSnapshot

logger = get_logger(__name__)

EMPTY_CALENDAR = CalendarSnapshot(version=0, events=())
EMPTY_REGIONAL = RegionalSnapshot(version=0, active=MappingProxyType({}))


class ForecastState(Enum):
    """Lifecycle state of a product's forecast"""
    COLD_START = "cold_start"
    ACTIVE = "active"
    DEGRADED = "degraded"


@dataclass(frozen=True)
class DailyPrediction:
    """One forecast day."""
    date: pd.Timestamp
    point: float
    lower: float
    upper: float
    seasonal_factor: float = 1.0
    regional_factor: float = 1.0
    events: Tuple[str, ...] = ()

    def to_dict(self) -> Dict[str, Any]:
        return {
            'date': self.date.strftime('%Y-%m-%d'),
            'point': self.point,
            'lower': self.lower,
            'upper': self.upper,
            'seasonal_factor': self.seasonal_factor,
            'regional_factor': self.regional_factor,
            'events': list(self.events),
        }


@dataclass(frozen=True)
class ForecastResult:
    """
    Immutable forecast of one product for one horizon.

    Attributes
    ----------
    predictions : tuple of DailyPrediction
        One row per day, starting the day after `as_of`
    state : ForecastState
        COLD_START, ACTIVE or DEGRADED
    method : str
        'classical_decomposition', 'level_only' or 'cold_start_blend'
    accuracy : float, optional
        Rolling realised accuracy so far (None until actuals arrive)
    confidence : float
        Numeric confidence reported with the forecast, in [0, 1]
    flags : tuple of str
        'low_confidence', 'model_degraded'
    warnings : tuple of str
        Calendar conflicts and degradation messages
    """
    business_id: Any
    product_id: Any
    horizon: int
    as_of: pd.Timestamp
    predictions: Tuple[DailyPrediction, ...]
    state: ForecastState
    method: str
    confidence: float
    accuracy: Optional[float] = None
    flags: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    params: Mapping[str, Any] = field(default_factory=dict)
    calendar_version: int = 0
    regional_version: int = 0

    def __post_init__(self):
        object.__setattr__(self, 'params', MappingProxyType(dict(self.params)))

    @property
    def low_confidence(self) -> bool:
        return 'low_confidence' in self.flags

    @property
    def dates(self) -> pd.DatetimeIndex:
        return pd.DatetimeIndex([p.date for p in self.predictions])

    @property
    def points(self) -> np.ndarray:
        return np.array([p.point for p in self.predictions], dtype=float)

    def total_demand(self, days: Optional[int] = None) -> float:
        """Sum of point forecasts over the first `days` days (default: all)."""
        return float(self.points[:days].sum())

    def daily_std(self, confidence_level: float, days: Optional[int] = None) -> float:
        """
        Daily demand standard deviation implied by the bounds.

        The upper bound is z sigma above the point. The lower bound is clipped
        at zero for slow sellers, so only the upper half-width is used:
        sigma = (upper - point) / z, averaged over the first `days` days.
        """
        rows = self.predictions[:days] if days else self.predictions
        if not rows:
            return 0.0
        z = stats.norm.ppf(0.5 + confidence_level / 2.0)
        half_widths = np.array([p.upper - p.point for p in rows], dtype=float)
        return float(np.mean(half_widths) / z)

    def truncated(self, horizon: int) -> 'ForecastResult':
        """Same forecast limited to its first `horizon` days."""
        return replace(self, horizon=horizon, predictions=self.predictions[:horizon])

    def to_frame(self) -> pd.DataFrame:
        return pd.DataFrame([p.to_dict() for p in self.predictions])

    def to_dict(self) -> Dict[str, Any]:
        return {
            'business_id': self.business_id,
            'product_id': self.product_id,
            'horizon': self.horizon,
            'as_of': self.as_of.strftime('%Y-%m-%d'),
            'state': self.state.value,
            'method': self.method,
            'confidence': self.confidence,
            'accuracy': self.accuracy,
            'flags': list(self.flags),
            'warnings': list(self.warnings),
            'params': dict(self.params),
            'calendar_version': self.calendar_version,
            'regional_version': self.regional_version,
            'predictions': [p.to_dict() for p in self.predictions],
        }


@dataclass(frozen=True)
class DecompositionFit:
    """Fitted trend/seasonal parameters of one de-seasonalised series."""
    method: str
    level: float
    slope: float
    damping: float
    seasonal_cycle: Tuple[float, ...]
    residual_std: float
    in_sample_accuracy: Optional[float]

    def baseline(self, horizon: int) -> np.ndarray:
        """Base demand for days 1..horizon after the fitted series ends."""
        k = np.arange(1, horizon + 1, dtype=float)
        if self.damping >= 1.0:
            cumulative = k
        else:
            cumulative = self.damping * (1.0 - self.damping ** k) / (1.0 - self.damping)
        values = self.level + self.slope * cumulative

        if self.seasonal_cycle:
            cycle = np.array(self.seasonal_cycle)
            values = values + cycle[(k.astype(int) - 1) % len(cycle)]

        return np.clip(values, 0.0, None)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'method': self.method,
            'level': round(self.level, 6),
            'slope': round(self.slope, 6),
            'damping': self.damping,
            'residual_std': round(self.residual_std, 6),
        }


def fit_decomposition(
    values: pd.Series,
    period: int = 7,
    trend_window: int = 56,
    damping: float = 0.98
) -> DecompositionFit:
    """
    Fit trend + seasonal + residual on a gap-free daily series.

    Parameters
    ----------
    values : pd.Series
        Daily values indexed by date
    period : int
        Seasonal period in days
    trend_window : int
        Days of the trend component used for the extrapolation line
    damping : float
        Per-day damping of the extrapolated slope (1.0 = undamped)

    Returns
    -------
    DecompositionFit
    """
    values = values.astype(float)
    n = len(values)

    if n < 2 * period:
        recent = values.iloc[-min(n, period):]
        level = float(recent.mean()) if n else 0.0
        residual_std = float(values.std(ddof=1)) if n > 1 else 0.0
        fitted = np.full(n, level)
        return DecompositionFit(
            method='level_only',
            level=level,
            slope=0.0,
            damping=damping,
            seasonal_cycle=(),
            residual_std=0.0 if np.isnan(residual_std) else residual_std,
            in_sample_accuracy=mape_accuracy(values.values, fitted) if n else None,
        )

    series = pd.Series(values.values, index=pd.DatetimeIndex(values.index, freq='D'))
    result = seasonal_decompose(series, model='additive', period=period, extrapolate_trend=period)

    trend = result.trend.dropna()
    window = trend.iloc[-trend_window:]
    if len(window) >= 2:
        x = np.arange(len(window), dtype=float)
        slope, intercept = np.polyfit(x, window.values, 1)
        level = intercept + slope * (len(window) - 1)
    else:
        slope, level = 0.0, float(trend.iloc[-1])

    residuals = result.resid.dropna()
    residual_std = float(residuals.std(ddof=1)) if len(residuals) > 1 else 0.0

    fitted = (result.trend + result.seasonal).values
    mask = ~np.isnan(fitted)

    return DecompositionFit(
        method='classical_decomposition',
        level=float(level),
        slope=float(slope),
        damping=damping,
        seasonal_cycle=tuple(float(v) for v in result.seasonal.values[-period:]),
        residual_std=0.0 if np.isnan(residual_std) else residual_std,
        in_sample_accuracy=mape_accuracy(series.values[mask], fitted[mask]),
    )


def _unique(messages: Iterable[str]) -> Tuple[str, ...]:
    seen = []
    for message in messages:
        if message not in seen:
            seen.append(message)
    return tuple(seen)


class DemandForecaster:
    """
    Decomposition-based demand forecaster.

    Usage:
        forecaster = DemandForecaster(config, accuracy_tracker)
        result = forecaster.forecast(series, "sweets", horizon=30,
                                     calendar=calendar.snapshot(),
                                     regional=registry.snapshot())
    """

    def __init__(
        self,
        config: Optional[Config] = None,
        accuracy_tracker: Optional[AccuracyTracker] = None
    ):
        """
        Initialize the DemandForecaster.

        Args:
            config: Configuration object
            accuracy_tracker: Realised-vs-predicted store used for the
                DEGRADED state; None disables degradation checks
        """
        self.config = config or DEFAULT_CONFIG
        self.accuracy_tracker = accuracy_tracker
        self.cold_start = ColdStartBlender(self.config)

    @property
    def z_score(self) -> float:
        return float(stats.norm.ppf(0.5 + self.config.forecast.confidence_level / 2.0))

    def forecast(
        self,
        series: DemandSeries,
        category: str,
        horizon: Optional[int] = None,
        calendar: Optional[CalendarSnapshot] = None,
        regional: Optional[RegionalSnapshot] = None
    ) -> ForecastResult:
        """
        Forecast a product with enough history of its own.

        Args:
            series: Product demand history
            category: Product category (calendar and regional scope)
            horizon: Days to forecast (default: forecast.default_horizon)
            calendar: Calendar snapshot of the cycle
            regional: Regional snapshot of the cycle

        Returns:
            ForecastResult in state ACTIVE or DEGRADED

        Raises:
            InsufficientHistory: fewer than forecast.min_history_days observed days
        """
        cfg = self.config.forecast
        horizon = horizon or cfg.default_horizon
        calendar = calendar or EMPTY_CALENDAR
        regional = regional or EMPTY_REGIONAL

        if series.observed_days < cfg.min_history_days:
            raise InsufficientHistory(
                f"Product {series.product_id} has {series.observed_days} observed days "
                f"(minimum {cfg.min_history_days})",
                product_id=series.product_id,
                observed_days=series.observed_days,
                required_days=cfg.min_history_days,
            )

        fit = self._fit(series, category, calendar)

        report = None
        if self.accuracy_tracker is not None:
            report = self.accuracy_tracker.report(series.business_id, series.product_id, series.end)
        degraded = report is not None and report.degraded

        multiplier = cfg.degraded_bound_multiplier if degraded else 1.0
        predictions, warnings = self._project(
            fit, series.end, series.location, category, horizon, calendar, regional, multiplier
        )

        confidence = self._confidence(series, category, calendar, regional, fit, report)
        flags: List[str] = []
        warnings = list(warnings)

        if degraded:
            error = ModelDegraded(
                f"Rolling accuracy {report.accuracy:.1%} below floor {cfg.accuracy_floor:.0%} "
                f"for product {series.product_id}; bounds widened x{multiplier}",
                product_id=series.product_id,
                accuracy=report.accuracy,
                floor=cfg.accuracy_floor,
            )
            logger.warning(f"{type(error).__name__}: {error.message}")
            warnings.append(f"{type(error).__name__}: {error.message}")
            flags.append('model_degraded')

        for message in warnings:
            if not message.startswith(ModelDegraded.__name__):
                logger.warning(f"Product {series.product_id}: {message}")

        return ForecastResult(
            business_id=series.business_id,
            product_id=series.product_id,
            horizon=horizon,
            as_of=series.end,
            predictions=predictions,
            state=ForecastState.DEGRADED if degraded else ForecastState.ACTIVE,
            method=fit.method,
            confidence=confidence,
            accuracy=report.accuracy if report is not None else None,
            flags=tuple(flags),
            warnings=_unique(warnings),
            params=fit.to_dict(),
            calendar_version=calendar.version,
            regional_version=regional.version,
        )

    def forecast_product(
        self,
        series: Optional[DemandSeries],
        profile: ProductProfile,
        candidates: Iterable[Tuple[ProductProfile, DemandSeries]],
        as_of: pd.Timestamp,
        horizon: Optional[int] = None,
        calendar: Optional[CalendarSnapshot] = None,
        regional: Optional[RegionalSnapshot] = None,
        business_id: Any = None
    ) -> ForecastResult:
        """
        Forecast with own history when possible, else fall back to cold start.

        Args:
            series: Product history, or None for a product never sold
            profile: Catalog record of the product
            candidates: (profile, series) of other products of the business
            as_of: Last history date of the business

        Raises:
            InsufficientHistory: no own history and no eligible neighbour
        """
        if series is not None:
            try:
                return self.forecast(series, profile.category, horizon, calendar, regional)
            except InsufficientHistory as e:
                logger.info(f"{e.message}; using cold start")

        business_id = series.business_id if series is not None else business_id
        return self.forecast_cold_start(
            profile, candidates, as_of, horizon, calendar, regional, business_id
        )

    def forecast_cold_start(
        self,
        profile: ProductProfile,
        candidates: Iterable[Tuple[ProductProfile, DemandSeries]],
        as_of: pd.Timestamp,
        horizon: Optional[int] = None,
        calendar: Optional[CalendarSnapshot] = None,
        regional: Optional[RegionalSnapshot] = None,
        business_id: Any = None
    ) -> ForecastResult:
        """Similarity-based forecast for a product without enough history."""
        calendar = calendar or EMPTY_CALENDAR
        regional = regional or EMPTY_REGIONAL
        neighbours = self.cold_start.select_neighbours(profile, candidates, calendar)
        return self.cold_start.blend(
            profile,
            neighbours,
            as_of=pd.Timestamp(as_of),
            horizon=horizon or self.config.forecast.default_horizon,
            calendar=calendar,
            regional=regional,
            business_id=business_id,
        )

    def backtest(
        self,
        series: DemandSeries,
        category: str = '*',
        holdout_days: Optional[int] = None,
        calendar: Optional[CalendarSnapshot] = None,
        regional: Optional[RegionalSnapshot] = None
    ) -> Optional[float]:
        """
        Refit on the series minus its last `holdout_days` days and return the
        accuracy (1 - MAPE) of the point forecast on the held-out days.

        Returns None when the truncated series is too short to fit.
        """
        cfg = self.config.forecast
        holdout_days = holdout_days or cfg.holdout_days
        calendar = calendar or EMPTY_CALENDAR
        regional = regional or EMPTY_REGIONAL

        train_length = len(series) - holdout_days
        if train_length < max(cfg.min_history_days, 2 * cfg.seasonal_period):
            return None

        train = series.truncate(series.dates[train_length - 1])
        fit = self._fit(train, category, calendar)
        predictions, _ = self._project(
            fit, train.end, series.location, category, holdout_days, calendar, regional, 1.0
        )
        predicted = np.array([p.point for p in predictions])
        actual = np.asarray(series.quantities[train_length:], dtype=float)
        return mape_accuracy(actual, predicted)

    def _fit(self, series: DemandSeries, category: str, calendar: CalendarSnapshot) -> DecompositionFit:
        cfg = self.config.forecast
        factors, _ = calendar.factors_for_dates(category, series.location, series.dates)
        base = pd.Series(np.asarray(series.quantities, dtype=float) / factors, index=series.dates)
        return fit_decomposition(base, cfg.seasonal_period, cfg.trend_window_days, cfg.trend_damping)

    def _project(
        self,
        fit: DecompositionFit,
        end: pd.Timestamp,
        location: str,
        category: str,
        horizon: int,
        calendar: CalendarSnapshot,
        regional: RegionalSnapshot,
        bound_multiplier: float
    ) -> Tuple[Tuple[DailyPrediction, ...], List[str]]:
        cfg = self.config.forecast
        dates = pd.date_range(end + pd.Timedelta(days=1), periods=horizon, freq='D')
        base = fit.baseline(horizon)
        event_factors, composites = calendar.factors_for_dates(category, location, dates)
        regional_factor = regional.active_factor(location, category)

        k = np.arange(1, horizon + 1, dtype=float)
        half_width = (
            self.z_score * fit.residual_std * np.sqrt(1.0 + k / cfg.bound_widening_days)
            * bound_multiplier
        )

        predictions = []
        warnings: List[str] = []
        for i, day in enumerate(dates):
            rf = regional_factor.demand_multiplier(k[i])
            scale = event_factors[i] * rf
            predictions.append(DailyPrediction(
                date=day,
                point=round(float(base[i] * scale), 4),
                lower=round(float(max(base[i] - half_width[i], 0.0) * scale), 4),
                upper=round(float((base[i] + half_width[i]) * scale), 4),
                seasonal_factor=round(float(event_factors[i]), 6),
                regional_factor=round(float(rf), 6),
                events=tuple(composites[i].event_names),
            ))
            warnings.extend(composites[i].warnings)

        return tuple(predictions), list(_unique(warnings))

    def _confidence(
        self,
        series: DemandSeries,
        category: str,
        calendar: CalendarSnapshot,
        regional: RegionalSnapshot,
        fit: DecompositionFit,
        report: Optional[AccuracyReport]
    ) -> float:
        """Realised accuracy when enough pairs exist, else holdout, else in-sample."""
        if report is not None and report.accuracy is not None \
                and report.points >= self.config.forecast.min_accuracy_points:
            return report.accuracy

        holdout = self.backtest(series, category, calendar=calendar, regional=regional)
        if holdout is not None:
            return round(holdout, 4)
        return round(fit.in_sample_accuracy or 0.0, 4)


@dataclass(frozen=True)
class Neighbour:
    """A similar product selected for a cold-start blend."""
    product_id: Any
    score: float
    mean_demand: float
    weekday_shape: Tuple[float, ...]
    weight: float = 0.0


class ColdStartBlender:
    """
    Seeds a forecast for a product without history from similar products.

    Similarity:
    - category must match
    - price tier: same tier 1.0, adjacent 0.5, else 0
    - attribute overlap: Jaccard index of the attribute tags
    - score = 0.6 * tier + 0.4 * jaccard; top K, ties by product id

    Blend:
    - per neighbour mean m_i and weekday shape c_i over its recent window
      (de-seasonalised)
    - weights w_i = m_i / sum(m); level = sum(w_i * m_i);
      shape = sum(w_i * c_i)
    """

    TIER_WEIGHT = 0.6
    ATTRIBUTE_WEIGHT = 0.4

    def __init__(self, config: Optional[Config] = None):
        self.config = config or DEFAULT_CONFIG

    def similarity(self, target: ProductProfile, candidate: ProductProfile) -> Optional[float]:
        """Similarity score in [0, 1]; None when categories differ."""
        if target.category != candidate.category:
            return None

        tier_gap = abs(target.price_tier - candidate.price_tier)
        tier_score = 1.0 if tier_gap == 0 else (0.5 if tier_gap == 1 else 0.0)

        union = target.attributes | candidate.attributes
        jaccard = len(target.attributes & candidate.attributes) / len(union) if union else 0.0

        return self.TIER_WEIGHT * tier_score + self.ATTRIBUTE_WEIGHT * jaccard

    def select_neighbours(
        self,
        profile: ProductProfile,
        candidates: Iterable[Tuple[ProductProfile, DemandSeries]],
        calendar: Optional[CalendarSnapshot] = None
    ) -> List[Neighbour]:
        """
        Top-K eligible neighbours with their normalised demand curves.

        Raises
        ------
        InsufficientHistory
            When no candidate shares the category with enough history
            and non-zero recent demand.
        """
        cfg = self.config.forecast
        calendar = calendar or EMPTY_CALENDAR

        scored = []
        for candidate, series in candidates:
            if candidate.product_id == profile.product_id or series is None:
                continue
            if series.observed_days < cfg.min_history_days:
                continue
            score = self.similarity(profile, candidate)
            if score is None:
                continue
            scored.append((score, candidate, series))

        scored.sort(key=lambda item: (-item[0], str(item[1].product_id)))

        neighbours = []
        for score, candidate, series in scored:
            if len(neighbours) >= cfg.cold_start_neighbours:
                break
            curve = self._demand_curve(candidate, series, calendar)
            if curve is None:
                continue
            mean_demand, shape = curve
            neighbours.append(Neighbour(
                product_id=candidate.product_id,
                score=round(score, 4),
                mean_demand=mean_demand,
                weekday_shape=shape,
            ))

        if not neighbours:
            raise InsufficientHistory(
                f"No similar product in category '{profile.category}' for cold start of "
                f"product {profile.product_id}",
                product_id=profile.product_id,
                observed_days=0,
                required_days=cfg.min_history_days,
            )

        total = sum(n.mean_demand for n in neighbours)
        return [replace(n, weight=n.mean_demand / total) for n in neighbours]

    def _demand_curve(
        self,
        profile: ProductProfile,
        series: DemandSeries,
        calendar: CalendarSnapshot
    ) -> Optional[Tuple[float, Tuple[float, ...]]]:
        """Mean daily demand and weekday shape over the recent window."""
        window = self.config.forecast.cold_start_window_days
        dates = series.dates[-window:]
        factors, _ = calendar.factors_for_dates(profile.category, series.location, dates)
        values = pd.Series(np.asarray(series.quantities[-window:], dtype=float) / factors, index=dates)

        mean_demand = float(values.mean())
        if mean_demand <= 0:
            return None

        by_weekday = values.groupby(values.index.dayofweek).mean()
        shape = tuple(
            float(by_weekday[dow] / mean_demand) if dow in by_weekday.index else 1.0
            for dow in range(7)
        )
        return mean_demand, shape

    def blend(
        self,
        profile: ProductProfile,
        neighbours: List[Neighbour],
        as_of: pd.Timestamp,
        horizon: int,
        calendar: Optional[CalendarSnapshot] = None,
        regional: Optional[RegionalSnapshot] = None,
        business_id: Any = None
    ) -> ForecastResult:
        """Demand-weighted blend of the neighbours' curves, marked low_confidence."""
        cfg = self.config.forecast
        calendar = calendar or EMPTY_CALENDAR
        regional = regional or EMPTY_REGIONAL

        level = sum(n.weight * n.mean_demand for n in neighbours)
        shape = np.zeros(7)
        for n in neighbours:
            shape += n.weight * np.array(n.weekday_shape)

        dates = pd.date_range(as_of + pd.Timedelta(days=1), periods=horizon, freq='D')
        event_factors, composites = calendar.factors_for_dates(profile.category, profile.location, dates)
        regional_factor = regional.active_factor(profile.location, profile.category)

        u = cfg.cold_start_uncertainty
        predictions = []
        warnings: List[str] = []
        for i, day in enumerate(dates):
            rf = regional_factor.demand_multiplier(i + 1)
            point = level * shape[day.dayofweek] * event_factors[i] * rf
            predictions.append(DailyPrediction(
                date=day,
                point=round(float(point), 4),
                lower=round(float(point * (1.0 - u)), 4),
                upper=round(float(point * (1.0 + u)), 4),
                seasonal_factor=round(float(event_factors[i]), 6),
                regional_factor=round(float(rf), 6),
                events=tuple(composites[i].event_names),
            ))
            warnings.extend(composites[i].warnings)

        mean_score = float(np.mean([n.score for n in neighbours]))
        confidence = round((1.0 - u) * (0.5 + 0.5 * mean_score), 4)

        logger.info(
            f"Cold start for product {profile.product_id}: level={level:.2f}/day from "
            f"{[n.product_id for n in neighbours]}"
        )

        return ForecastResult(
            business_id=business_id,
            product_id=profile.product_id,
            horizon=horizon,
            as_of=as_of,
            predictions=tuple(predictions),
            state=ForecastState.COLD_START,
            method='cold_start_blend',
            confidence=confidence,
            flags=('low_confidence',),
            warnings=_unique(warnings),
            params={
                'level': round(level, 6),
                'neighbours': tuple(
                    {'product_id': n.product_id, 'score': n.score, 'weight': round(n.weight, 6)}
                    for n in neighbours
                ),
            },
            calendar_version=calendar.version,
            regional_version=regional.version,
        )
