"""
Seasonal/Event Adjuster
========================
Calendar of recurring demand-affecting events (festivals, monsoon windows)
and the composite multiplicative factor they produce per category,
location and date.

Design Principles:
- All adjustments are multiplicative (easy to explain and trace)
- Overlapping events compose: the factor is the product of every
  applicable event, with a provenance list of contributors
- Two records of the same event overlapping on a date are duplicates:
  the higher version wins, ties go to the later registration, and an
  AdjustmentConflict warning is recorded
- The registry is versioned; a cycle reads one immutable CalendarSnapshot

Impact Curve:
    multiplier
        |          ________
        |        /          \\
    1.0 |_______/            \\_______
               ramp   peak   decay
"""

import threading
import pandas as pd
import numpy as np
from typing import Dict, List, Optional, Any, Iterable, Tuple, Union
from dataclasses import dataclass, replace
from datetime import date, timedelta
from enum import Enum

from ..config import Config, DEFAULT_CONFIG
from ..exceptions import AdjustmentConflict, DataValidationError
from ..utils.logger import get_logger
from ..utils.constants import ALL_CATEGORIES, NATIONWIDE, DEFAULT_EVENT_CALENDAR
from ..utils.locations import location_lineage, normalize_location

logger = get_logger(__name__)


class EventType(Enum):
    """Kinds of calendar events"""
    FESTIVAL = "festival"
    WEATHER_WINDOW = "weather_window"


@dataclass(frozen=True)
class FixedWindowRule:
    """Peak starts on the same Gregorian month/day every year."""
    month: int
    day: int

    def peak_start(self, year: int) -> Optional[date]:
        try:
            return date(year, self.month, self.day)
        except ValueError:
            # Feb 29 in a non-leap year
            return None


@dataclass(frozen=True)
class DatedRule:
    """
    Explicit peak start per year, for festivals that follow lunar or
    lunisolar calendars (Diwali, Eid, Holi, ...).
    """
    dates: Tuple[Tuple[int, date], ...]

    @classmethod
    def from_mapping(cls, mapping: Dict[Any, Any]) -> 'DatedRule':
        items = sorted(
            (int(year), pd.Timestamp(value).date()) for year, value in mapping.items()
        )
        return cls(dates=tuple(items))

    def peak_start(self, year: int) -> Optional[date]:
        for rule_year, start in self.dates:
            if rule_year == year:
                return start
        return None


RecurrenceRule = Union[FixedWindowRule, DatedRule]


@dataclass(frozen=True)
class EventDefinition:
    """
    A registered calendar event.

    Attributes
    ----------
    name : str
        Event name; records sharing a name are versions of one event
    event_type : EventType
        Festival or weather window
    rule : RecurrenceRule
        When the peak starts each year
    categories : frozenset
        Affected product categories ("*" = all)
    locations : frozenset
        Affected locations; a product location matches when the scope
        contains it or any of its ancestors ("*" = nationwide)
    multiplier : float
        Demand multiplier at peak
    duration_days : int
        Days at full multiplier
    ramp_up_days : int
        Days of linear ramp before the peak
    decay_days : int
        Days of linear decay after the peak
    version : int
        Record version; higher wins when duplicates overlap
    sequence : int
        Registration order inside the calendar
    """
    name: str
    event_type: EventType
    rule: RecurrenceRule
    categories: frozenset
    locations: frozenset
    multiplier: float
    duration_days: int = 1
    ramp_up_days: int = 0
    decay_days: int = 0
    version: int = 1
    sequence: int = 0

    def applies_to(self, category: str, location: str) -> bool:
        """Check category and location scope."""
        if ALL_CATEGORIES not in self.categories and category not in self.categories:
            return False
        if not self.locations or NATIONWIDE in self.locations:
            return True
        return any(loc in self.locations for loc in location_lineage(location))

    def factor_on(self, day: date) -> float:
        """
        Multiplier on a date from the ramp/peak/decay curve; 1.0 outside
        every occurrence window.
        """
        best_fraction = 0.0
        for year in (day.year - 1, day.year, day.year + 1):
            start = self.rule.peak_start(year)
            if start is None:
                continue
            offset = (day - start).days
            if 0 <= offset < self.duration_days:
                fraction = 1.0
            elif -self.ramp_up_days <= offset < 0:
                fraction = (self.ramp_up_days + offset + 1) / (self.ramp_up_days + 1)
            else:
                after = offset - self.duration_days + 1
                if 1 <= after <= self.decay_days:
                    fraction = (self.decay_days - after + 1) / (self.decay_days + 1)
                else:
                    continue
            best_fraction = max(best_fraction, fraction)
        return 1.0 + (self.multiplier - 1.0) * best_fraction

    def window(self, year: int) -> Optional[Tuple[date, date]]:
        """First and last affected day of the occurrence whose peak is in `year`."""
        start = self.rule.peak_start(year)
        if start is None:
            return None
        return (
            start - timedelta(days=self.ramp_up_days),
            start + timedelta(days=self.duration_days - 1 + self.decay_days),
        )

    @classmethod
    def from_record(cls, record: Dict[str, Any], sequence: int = 0) -> 'EventDefinition':
        """
        Parse a calendar collaborator record (see EVENT_RECORD_SCHEMA).

        Raises
        ------
        DataValidationError
            When the recurrence rule or multiplier is unusable.
        """
        name = record.get('name')
        if not name:
            raise DataValidationError("Event record is missing 'name'")

        recurrence = record.get('recurrence', 'fixed')
        if recurrence == 'dated':
            if not record.get('dates'):
                raise DataValidationError(f"Dated event '{name}' has no dates")
            rule = DatedRule.from_mapping(record['dates'])
        elif recurrence == 'fixed':
            if record.get('month') is None or record.get('day') is None:
                raise DataValidationError(f"Fixed event '{name}' needs month and day")
            rule = FixedWindowRule(int(record['month']), int(record['day']))
        else:
            raise DataValidationError(f"Event '{name}' has unknown recurrence '{recurrence}'")

        multiplier = float(record['multiplier'])
        if not np.isfinite(multiplier) or multiplier <= 0:
            raise DataValidationError(f"Event '{name}' multiplier must be positive")

        duration = int(record.get('duration_days', 1) or 1)
        if duration < 1:
            raise DataValidationError(f"Event '{name}' duration must be at least one day")

        return cls(
            name=str(name),
            event_type=EventType(record.get('event_type', 'festival')),
            rule=rule,
            categories=frozenset(_as_list(record.get('categories')) or [ALL_CATEGORIES]),
            locations=frozenset(
                normalize_location(loc) for loc in (_as_list(record.get('locations')) or [NATIONWIDE])
            ),
            multiplier=multiplier,
            duration_days=duration,
            ramp_up_days=int(record.get('ramp_up_days', 0) or 0),
            decay_days=int(record.get('decay_days', 0) or 0),
            version=int(record.get('version', 1) or 1),
            sequence=sequence,
        )


def _as_list(value) -> List[str]:
    if value is None:
        return []
    if isinstance(value, str):
        return [v.strip() for v in value.split(',') if v.strip()]
    if isinstance(value, float) and np.isnan(value):
        return []
    return [str(v) for v in value]


@dataclass(frozen=True)
class EventContribution:
    """One event's share of a composite factor."""
    name: str
    multiplier: float


@dataclass(frozen=True)
class CompositeFactor:
    """Composite factor for one (category, location, date) with provenance."""
    factor: float
    contributions: Tuple[EventContribution, ...] = ()
    warnings: Tuple[str, ...] = ()

    @property
    def event_names(self) -> List[str]:
        return [c.name for c in self.contributions]


@dataclass(frozen=True)
class CalendarSnapshot:
    """
    Immutable view of the calendar at one registry version.

    A refresh cycle takes one snapshot at its start and reads only from it.
    """
    version: int
    events: Tuple[EventDefinition, ...]
    min_factor: float = 0.1
    max_factor: float = 10.0

    def composite(self, category: str, location: str, day: Any) -> CompositeFactor:
        """
        Compose all events applicable on a date by multiplying them.

        Parameters
        ----------
        category : str
            Product category
        location : str
            Product location ("STATE/City")
        day : date-like
            Target date

        Returns
        -------
        CompositeFactor
            Product of contributing multipliers, the contributors, and any
            precedence/clamping warnings
        """
        day = pd.Timestamp(day).date()
        by_name: Dict[str, List[Tuple[EventDefinition, float]]] = {}

        for event in self.events:
            if not event.applies_to(category, location):
                continue
            factor = event.factor_on(day)
            if factor == 1.0:
                continue
            by_name.setdefault(event.name, []).append((event, factor))

        warnings: List[str] = []
        contributions: List[EventContribution] = []
        composite = 1.0

        for name in sorted(by_name):
            candidates = by_name[name]
            winner, factor = max(candidates, key=lambda c: (c[0].version, c[0].sequence))
            if len(candidates) > 1:
                warnings.append(
                    f"{AdjustmentConflict.__name__}: {len(candidates)} overlapping records of "
                    f"'{name}' on {day}; using version {winner.version}"
                )
            composite *= factor
            contributions.append(EventContribution(name=name, multiplier=round(factor, 6)))

        if composite > self.max_factor or composite < self.min_factor:
            clamped = min(max(composite, self.min_factor), self.max_factor)
            warnings.append(
                f"{AdjustmentConflict.__name__}: composite factor {composite:.3f} on {day} "
                f"clamped to {clamped:.3f}"
            )
            composite = clamped

        return CompositeFactor(
            factor=composite,
            contributions=tuple(contributions),
            warnings=tuple(warnings),
        )

    def factors_for_dates(
        self,
        category: str,
        location: str,
        dates: Iterable[Any]
    ) -> Tuple[np.ndarray, List[CompositeFactor]]:
        """Composite factor per date, plus the full CompositeFactor objects."""
        composites = [self.composite(category, location, d) for d in dates]
        return np.array([c.factor for c in composites], dtype=float), composites


class SeasonalCalendar:
    """
    Versioned registry of calendar events.

    Every register/load bumps the version. Readers call snapshot() once
    per cycle; later registrations never change an existing snapshot.

    Usage
    -----
    >>> calendar = SeasonalCalendar.with_defaults()
    >>> snap = calendar.snapshot()
    >>> snap.composite("sweets", "MH/Mumbai", "2025-10-20").factor
    2.5
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or DEFAULT_CONFIG
        self._events: List[EventDefinition] = []
        self._version = 0
        self._lock = threading.Lock()

    @classmethod
    def with_defaults(cls, config: Optional[Config] = None) -> 'SeasonalCalendar':
        """Calendar pre-loaded with DEFAULT_EVENT_CALENDAR."""
        calendar = cls(config)
        calendar.load_records(DEFAULT_EVENT_CALENDAR)
        return calendar

    @property
    def version(self) -> int:
        return self._version

    @property
    def events(self) -> List[EventDefinition]:
        return list(self._events)

    def register(self, event: Union[EventDefinition, Dict[str, Any]]) -> EventDefinition:
        """
        Add an event (definition or raw record).

        Returns the stored definition with its registration sequence.
        """
        with self._lock:
            sequence = len(self._events)
            if isinstance(event, dict):
                event = EventDefinition.from_record(event, sequence=sequence)
            else:
                event = replace(event, sequence=sequence)
            self._events.append(event)
            self._version += 1
        logger.info(f"Registered event '{event.name}' (v{event.version}); calendar version {self._version}")
        return event

    def load_records(self, records: Union[pd.DataFrame, Iterable[Dict[str, Any]]]) -> int:
        """
        Load calendar collaborator records as a single version bump.

        Returns
        -------
        int
            Number of events loaded
        """
        if isinstance(records, pd.DataFrame):
            records = records.to_dict(orient='records')
        records = list(records)

        with self._lock:
            start = len(self._events)
            parsed = [
                EventDefinition.from_record(record, sequence=start + i)
                for i, record in enumerate(records)
            ]
            self._events.extend(parsed)
            self._version += 1

        logger.info(f"Loaded {len(parsed)} calendar events; calendar version {self._version}")
        return len(parsed)

    def snapshot(self) -> CalendarSnapshot:
        """Immutable view for one cycle."""
        with self._lock:
            return CalendarSnapshot(
                version=self._version,
                events=tuple(self._events),
                min_factor=self.config.seasonal.min_composite_factor,
                max_factor=self.config.seasonal.max_composite_factor,
            )


# =============================================================================
# PATTERN DETECTION
# =============================================================================

@dataclass(frozen=True)
class DetectedWindow:
    """A sustained stretch of demand above the rolling baseline."""
    start: pd.Timestamp
    end: pd.Timestamp
    peak_ratio: float
    mean_ratio: float

    @property
    def days(self) -> int:
        return int((self.end - self.start).days) + 1

    def overlaps(self, start: Any, end: Any, tolerance_days: int = 0) -> bool:
        """True when this window intersects [start, end] widened by the tolerance."""
        lo = pd.Timestamp(start) - pd.Timedelta(days=tolerance_days)
        hi = pd.Timestamp(end) + pd.Timedelta(days=tolerance_days)
        return self.start <= hi and self.end >= lo


def _baseline(quantities: pd.Series, baseline_days: int) -> pd.Series:
    """Centered rolling median, robust to the spikes it is compared against."""
    return quantities.rolling(
        window=baseline_days, center=True, min_periods=max(3, baseline_days // 4)
    ).median()


def detect_demand_windows(series, config: Optional[Config] = None) -> List[DetectedWindow]:
    """
    Find sustained demand spikes in a DemandSeries.

    A day is elevated when demand / rolling-median baseline reaches
    `seasonal.detection_ratio`; runs of at least `detection_min_days`
    consecutive elevated days become windows.

    Parameters
    ----------
    series : DemandSeries
        Daily demand history
    config : Config, optional
        Detection thresholds

    Returns
    -------
    List[DetectedWindow]
        Windows in date order
    """
    config = config or DEFAULT_CONFIG
    seasonal = config.seasonal
    quantities = series.to_series()
    if len(quantities) < seasonal.detection_min_days:
        return []

    baseline = _baseline(quantities, seasonal.detection_baseline_days)
    with np.errstate(divide='ignore', invalid='ignore'):
        ratio = (quantities / baseline).where(baseline > 0)
    elevated = (ratio >= seasonal.detection_ratio).fillna(False)

    windows: List[DetectedWindow] = []
    run_id = (elevated != elevated.shift()).cumsum()
    for _, run in ratio[elevated].groupby(run_id[elevated]):
        if len(run) < seasonal.detection_min_days:
            continue
        windows.append(DetectedWindow(
            start=run.index[0],
            end=run.index[-1],
            peak_ratio=float(run.max()),
            mean_ratio=float(run.mean()),
        ))

    logger.debug(f"Detected {len(windows)} demand windows for product {series.product_id}")
    return windows


def estimate_event_multiplier(
    series,
    event: EventDefinition,
    config: Optional[Config] = None
) -> Optional[float]:
    """
    Realised uplift of an event in a product's history.

    Mean of demand / baseline over the event's peak days, where the
    baseline excludes every day inside the event windows. Returns None
    when no peak day with a positive baseline falls in the history.
    """
    config = config or DEFAULT_CONFIG
    quantities = series.to_series()
    if len(quantities) == 0:
        return None

    in_window = pd.Series(False, index=quantities.index)
    on_peak = pd.Series(False, index=quantities.index)
    for year in range(quantities.index[0].year, quantities.index[-1].year + 1):
        window = event.window(year)
        if window is None:
            continue
        start = pd.Timestamp(event.rule.peak_start(year))
        in_window |= (quantities.index >= pd.Timestamp(window[0])) & (quantities.index <= pd.Timestamp(window[1]))
        on_peak |= (quantities.index >= start) & (quantities.index < start + pd.Timedelta(days=event.duration_days))

    if not on_peak.any():
        return None

    baseline = _baseline(quantities.where(~in_window), config.seasonal.detection_baseline_days)
    baseline = baseline.ffill().bfill()
    peak_baseline = baseline[on_peak]
    valid = peak_baseline > 0
    if not valid.any():
        return None

    return float((quantities[on_peak][valid] / peak_baseline[valid]).mean())
