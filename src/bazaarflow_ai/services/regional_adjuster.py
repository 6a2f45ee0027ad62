"""
Regional Adjuster
==================
Location-indexed market factors (growth rate, competitive intensity,
policy impact) applied on top of the base demand series.

Design Principles:
- One active factor per (location, category) pair
- Updates supersede, never mutate: old versions stay in the audit history
- Deterministic fallback chain, never interpolation between regions:

    (city, category) -> (city, "*") -> (state, category) -> (state, "*")
    -> ("*", category) -> ("*", "*") -> built-in nationwide default

- A cycle reads one immutable RegionalSnapshot taken at its start
"""

import threading
from types import MappingProxyType
from typing import Dict, List, Any, Tuple, Mapping
from dataclasses import dataclass, field
from datetime import datetime

from ..exceptions import DataValidationError
from ..utils.logger import get_logger
from ..utils.constants import ALL_CATEGORIES, NATIONWIDE, NATIONWIDE_REGIONAL_DEFAULT
from ..utils.locations import location_lineage, location_level, normalize_location

logger = get_logger(__name__)


@dataclass(frozen=True)
class RegionalFactor:
    """
    Market factor for a (location, category) pair.

    Attributes
    ----------
    location : str
        "STATE/City", "STATE" or "*"
    category : str
        Product category or "*"
    growth_rate : float
        Annual demand growth (0.08 = +8 % per year)
    competitive_intensity : float
        0 (no competition) .. 1 (saturated); narrows the pricing band
    policy_impact : float
        Level shift from regulation or tax changes (-0.05 = -5 %)
    version : int
        Incremented each time the pair is republished
    published_at : datetime
        When this version was published
    """
    location: str
    category: str
    growth_rate: float = 0.0
    competitive_intensity: float = 0.0
    policy_impact: float = 0.0
    version: int = 1
    published_at: datetime = field(default_factory=datetime.now)

    def demand_multiplier(self, days_ahead: float) -> float:
        """
        Growth compounded over the days since the series end, times the
        policy level shift.
        """
        growth = (1.0 + self.growth_rate) ** (max(days_ahead, 0.0) / 365.0)
        return growth * (1.0 + self.policy_impact)

    def to_dict(self) -> Dict[str, Any]:
        return {
            'location': self.location,
            'category': self.category,
            'growth_rate': self.growth_rate,
            'competitive_intensity': self.competitive_intensity,
            'policy_impact': self.policy_impact,
            'version': self.version,
            'published_at': self.published_at.isoformat(),
        }


NATIONWIDE_DEFAULT_FACTOR = RegionalFactor(
    location=NATIONWIDE_REGIONAL_DEFAULT['location'],
    category=NATIONWIDE_REGIONAL_DEFAULT['category'],
    growth_rate=NATIONWIDE_REGIONAL_DEFAULT['growth_rate'],
    competitive_intensity=NATIONWIDE_REGIONAL_DEFAULT['competitive_intensity'],
    policy_impact=NATIONWIDE_REGIONAL_DEFAULT['policy_impact'],
    version=0,
    published_at=datetime(1970, 1, 1),
)


@dataclass(frozen=True)
class RegionalLookup:
    """Resolved factor plus the fallback level that produced it."""
    factor: RegionalFactor
    resolved_location: str
    resolved_category: str
    level: str  # 'city', 'state', 'national' or 'default'


def fallback_chain(location: str, category: str) -> List[Tuple[str, str]]:
    """
    The ordered (location, category) keys tried for a lookup.

    >>> fallback_chain("MH/Mumbai", "sweets")
    [('MH/Mumbai', 'sweets'), ('MH/Mumbai', '*'), ('MH', 'sweets'), ('MH', '*'), ('*', 'sweets'), ('*', '*')]
    """
    chain = []
    for loc in location_lineage(location):
        chain.append((loc, category))
        if category != ALL_CATEGORIES:
            chain.append((loc, ALL_CATEGORIES))
    return chain


@dataclass(frozen=True)
class RegionalSnapshot:
    """Immutable view of the active factors at one registry version."""
    version: int
    active: Mapping[Tuple[str, str], RegionalFactor]

    def lookup(self, location: str, category: str) -> RegionalLookup:
        """Walk the fallback chain; the built-in nationwide default ends it."""
        for key in fallback_chain(location, category):
            factor = self.active.get(key)
            if factor is not None:
                logger.debug(f"Regional factor for ({location}, {category}) resolved at {key}")
                return RegionalLookup(
                    factor=factor,
                    resolved_location=key[0],
                    resolved_category=key[1],
                    level=location_level(key[0]),
                )
        return RegionalLookup(
            factor=NATIONWIDE_DEFAULT_FACTOR,
            resolved_location=NATIONWIDE,
            resolved_category=ALL_CATEGORIES,
            level='default',
        )

    def active_factor(self, location: str, category: str) -> RegionalFactor:
        return self.lookup(location, category).factor


class RegionalRegistry:
    """
    Versioned store of regional market factors.

    Usage
    -----
    >>> registry = RegionalRegistry()
    >>> registry.publish("MH", "*", growth_rate=0.08)
    >>> registry.snapshot().active_factor("MH/Pune", "sweets").growth_rate
    0.08
    """

    def __init__(self):
        self._active: Dict[Tuple[str, str], RegionalFactor] = {}
        self._history: Dict[Tuple[str, str], List[RegionalFactor]] = {}
        self._version = 0
        self._lock = threading.Lock()

    @property
    def version(self) -> int:
        return self._version

    def publish(
        self,
        location: str,
        category: str = ALL_CATEGORIES,
        growth_rate: float = 0.0,
        competitive_intensity: float = 0.0,
        policy_impact: float = 0.0
    ) -> RegionalFactor:
        """
        Publish a new version for a (location, category) pair.

        The previously active version, if any, is superseded and kept in
        the history.

        Raises
        ------
        DataValidationError
            When competitive_intensity is outside [0, 1] or the combined
            policy impact would zero out demand.
        """
        if not 0.0 <= competitive_intensity <= 1.0:
            raise DataValidationError(
                f"competitive_intensity must be in [0, 1], got {competitive_intensity}"
            )
        if policy_impact <= -1.0 or growth_rate <= -1.0:
            raise DataValidationError("growth_rate and policy_impact must be greater than -1")

        key = (normalize_location(location), category or ALL_CATEGORIES)
        with self._lock:
            previous = self._active.get(key)
            factor = RegionalFactor(
                location=key[0],
                category=key[1],
                growth_rate=float(growth_rate),
                competitive_intensity=float(competitive_intensity),
                policy_impact=float(policy_impact),
                version=(previous.version + 1) if previous else 1,
            )
            self._active[key] = factor
            self._history.setdefault(key, []).append(factor)
            self._version += 1

        logger.info(
            f"Published regional factor {key} v{factor.version}: growth={growth_rate:+.2%}, "
            f"intensity={competitive_intensity:.2f}, policy={policy_impact:+.2%}"
        )
        return factor

    def load_records(self, records: List[Dict[str, Any]]) -> int:
        """Publish a batch of {location, category, growth_rate, ...} records."""
        for record in records:
            self.publish(
                location=record['location'],
                category=record.get('category', ALL_CATEGORIES),
                growth_rate=float(record.get('growth_rate', 0.0)),
                competitive_intensity=float(record.get('competitive_intensity', 0.0)),
                policy_impact=float(record.get('policy_impact', 0.0)),
            )
        return len(records)

    def history(self, location: str, category: str = ALL_CATEGORIES) -> List[RegionalFactor]:
        """All versions ever published for a pair, oldest first."""
        key = (normalize_location(location), category)
        return list(self._history.get(key, []))

    def snapshot(self) -> RegionalSnapshot:
        """Immutable view for one cycle."""
        with self._lock:
            return RegionalSnapshot(
                version=self._version,
                active=MappingProxyType(dict(self._active)),
            )
