"""Numeric helpers for cross-paper aggregation."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Sequence

import numpy as np

HIGH_THRESHOLD = 0.8
PARTIAL_THRESHOLD = 0.5
TREND_SLOPE_TOLERANCE = 0.01
OUTLIER_IQR_FACTOR = 1.5


@dataclass(frozen=True)
class ScoreStats:
    mean: float
    weighted_mean: float
    std: float
    median: float
    min: float
    max: float
    count: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            "mean": self.mean,
            "weighted_mean": self.weighted_mean,
            "std": self.std,
            "median": self.median,
            "min": self.min,
            "max": self.max,
            "count": self.count,
        }


def weighted_mean(values: Sequence[float], weights: Optional[Sequence[float]] = None) -> Optional[float]:
    """Weighted mean, or the plain mean when weights are missing, misaligned or sum to 0."""
    if not values:
        return None
    data = np.asarray(values, dtype=float)
    if weights is None or len(weights) != len(values):
        return float(data.mean())
    w = np.asarray(weights, dtype=float)
    if w.sum() <= 0:
        return float(data.mean())
    return float(np.dot(data, w) / w.sum())


def compute_stats(values: Sequence[float], weights: Optional[Sequence[float]] = None) -> Optional[ScoreStats]:
    """Descriptive statistics with population std. None for an empty list."""
    if not values:
        return None
    data = np.asarray(values, dtype=float)
    mean = float(data.mean())
    weighted = weighted_mean(values, weights) if len(values) > 1 else mean
    return ScoreStats(
        mean=mean,
        weighted_mean=mean if weighted is None else weighted,
        std=float(data.std()),
        median=float(np.median(data)),
        min=float(data.min()),
        max=float(data.max()),
        count=len(values),
    )


def categorize(score: float, high: float = HIGH_THRESHOLD, partial: float = PARTIAL_THRESHOLD) -> str:
    if score >= high:
        return "high"
    if score >= partial:
        return "partial"
    return "low"


def bucket_counts(scores: Sequence[float], high: float = HIGH_THRESHOLD, partial: float = PARTIAL_THRESHOLD) -> Dict[str, int]:
    counts = {"high": 0, "partial": 0, "low": 0}
    for score in scores:
        counts[categorize(score, high, partial)] += 1
    return counts


def pearson(x: Sequence[float], y: Sequence[float]) -> Optional[float]:
    """Pearson correlation of paired observations.

    Returns None with fewer than 2 pairs and 0 when either side is constant.
    """
    n = min(len(x), len(y))
    if n < 2:
        return None
    xs = np.asarray(x[:n], dtype=float)
    ys = np.asarray(y[:n], dtype=float)
    if np.ptp(xs) == 0 or np.ptp(ys) == 0:
        return 0.0

    numerator = n * float(np.dot(xs, ys)) - float(xs.sum()) * float(ys.sum())
    spread = (n * float(np.dot(xs, xs)) - float(xs.sum()) ** 2) * (n * float(np.dot(ys, ys)) - float(ys.sum()) ** 2)
    if spread <= 0:
        return 0.0
    r = numerator / float(np.sqrt(spread))
    return max(-1.0, min(1.0, r))


def detect_outliers(values: Sequence[float], factor: float = OUTLIER_IQR_FACTOR) -> List[Dict[str, Any]]:
    """IQR outliers as ``{index, value, type}``; needs at least 3 values.

    Quartiles are taken at sorted positions ``floor(n * 0.25)`` and
    ``floor(n * 0.75)``.
    """
    if len(values) < 3:
        return []
    ordered = sorted(values)
    q1 = ordered[int(len(ordered) * 0.25)]
    q3 = ordered[int(len(ordered) * 0.75)]
    iqr = q3 - q1
    lower = q1 - factor * iqr
    upper = q3 + factor * iqr

    outliers = []
    for index, value in enumerate(values):
        if value < lower or value > upper:
            outliers.append({"index": index, "value": value, "type": "low" if value < lower else "high"})
    return outliers


def linear_trend(values: Sequence[float], tolerance: float = TREND_SLOPE_TOLERANCE) -> Dict[str, Any]:
    """Least-squares slope over equally spaced points."""
    if len(values) < 2:
        return {"slope": 0.0, "direction": "stable"}
    x = np.arange(len(values), dtype=float)
    y = np.asarray(values, dtype=float)
    slope = float(np.polyfit(x, y, 1)[0])
    if slope > tolerance:
        direction = "improving"
    elif slope < -tolerance:
        direction = "declining"
    else:
        direction = "stable"
    return {"slope": slope, "direction": direction}
