"""
Forecast Accuracy Tracking
===========================
Persist realised-vs-predicted demand per product and report a rolling
accuracy figure.

Metric:
    accuracy = 1 - MAPE, over the realised/predicted pairs dated inside a
    rolling window (90 days by default), skipping days with zero actual
    demand, clipped to [0, 1].

MAPE interpretation:
- < 10%: Excellent accuracy
- 10-20%: Good accuracy (>= 80% accuracy target)
- 20-50%: Reasonable accuracy
- > 50%: Low accuracy
"""

import threading
import numpy as np
import pandas as pd
from typing import Dict, List, Optional, Any, Tuple
from dataclasses import dataclass

from ..config import Config, DEFAULT_CONFIG
from ..utils.logger import get_logger

logger = get_logger(__name__)


def mape_accuracy(actual, predicted) -> Optional[float]:
    """
    1 - MAPE over pairs with non-zero actuals.

    Returns None when no pair has a non-zero actual.
    """
    actual = np.asarray(actual, dtype=float)
    predicted = np.asarray(predicted, dtype=float)
    if actual.shape != predicted.shape:
        raise ValueError("actual and predicted must have the same length")

    mask = actual != 0
    if not np.any(mask):
        return None

    mape = np.mean(np.abs((actual[mask] - predicted[mask]) / actual[mask]))
    return float(min(max(1.0 - mape, 0.0), 1.0))


@dataclass(frozen=True)
class AccuracyReport:
    """Rolling accuracy of one product."""
    product_id: Any
    accuracy: Optional[float]
    points: int
    window_days: int
    degraded: bool


class AccuracyTracker:
    """
    Thread-safe store of realised vs predicted demand.

    Re-recording the same (product, date) replaces the earlier pair, so
    replaying a batch of actuals is idempotent.

    Usage
    -----
    >>> tracker = AccuracyTracker()
    >>> tracker.record("biz", "sku-1", "2026-01-05", predicted=10, actual=12)
    >>> tracker.report("biz", "sku-1").accuracy
    0.8333
    """

    def __init__(self, config: Optional[Config] = None):
        self.config = config or DEFAULT_CONFIG
        self._pairs: Dict[Tuple[Any, Any], Dict[pd.Timestamp, Tuple[float, float]]] = {}
        self._lock = threading.Lock()

    def record(self, business_id: Any, product_id: Any, day: Any, predicted: float, actual: float) -> None:
        """Store one realised/predicted pair; pairs older than the rolling window are dropped."""
        key = (business_id, product_id)
        with self._lock:
            stored = self._pairs.setdefault(key, {})
            stored[pd.Timestamp(day).normalize()] = (float(predicted), float(actual))
            cutoff = max(stored) - pd.Timedelta(days=self.config.forecast.accuracy_window_days - 1)
            for old in [d for d in stored if d < cutoff]:
                del stored[old]

    def record_many(self, business_id: Any, product_id: Any, frame: pd.DataFrame) -> int:
        """Store pairs from a frame with date, predicted and actual columns."""
        for row in frame.itertuples(index=False):
            self.record(business_id, product_id, row.date, row.predicted, row.actual)
        return len(frame)

    def pairs(self, business_id: Any, product_id: Any, as_of: Any = None) -> pd.DataFrame:
        """Pairs within the rolling window ending at as_of (default: latest pair)."""
        with self._lock:
            stored = dict(self._pairs.get((business_id, product_id), {}))
        if not stored:
            return pd.DataFrame(columns=['date', 'predicted', 'actual'])

        frame = pd.DataFrame(
            [(d, p, a) for d, (p, a) in stored.items()],
            columns=['date', 'predicted', 'actual'],
        ).sort_values('date')

        end = pd.Timestamp(as_of).normalize() if as_of is not None else frame['date'].max()
        start = end - pd.Timedelta(days=self.config.forecast.accuracy_window_days - 1)
        return frame[(frame['date'] >= start) & (frame['date'] <= end)].reset_index(drop=True)

    def report(self, business_id: Any, product_id: Any, as_of: Any = None) -> AccuracyReport:
        """
        Rolling accuracy and degradation status.

        A product is degraded only when it has at least
        `forecast.min_accuracy_points` usable pairs and its accuracy is
        below `forecast.accuracy_floor`.
        """
        frame = self.pairs(business_id, product_id, as_of)
        usable = frame[frame['actual'] != 0] if len(frame) else frame
        accuracy = mape_accuracy(frame['actual'], frame['predicted']) if len(frame) else None
        if accuracy is not None:
            accuracy = round(accuracy, 4)

        degraded = (
            accuracy is not None
            and len(usable) >= self.config.forecast.min_accuracy_points
            and accuracy < self.config.forecast.accuracy_floor
        )
        return AccuracyReport(
            product_id=product_id,
            accuracy=accuracy,
            points=int(len(usable)),
            window_days=self.config.forecast.accuracy_window_days,
            degraded=bool(degraded),
        )

    def degraded_products(self, business_id: Any) -> List[Any]:
        """Product ids of a business currently below the accuracy floor."""
        with self._lock:
            keys = [k for k in self._pairs if k[0] == business_id]
        return sorted(
            (pid for _, pid in keys if self.report(business_id, pid).degraded),
            key=str,
        )
