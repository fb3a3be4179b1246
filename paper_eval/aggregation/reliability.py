"""Inter-rater reliability of evaluator ratings on the 1-5 scale.

Subjects are rated fields (``"metadata.title"``); raters are the evaluators
of one paper. Unrated fields (rating 0) are left out.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional, Sequence

import numpy as np

RATING_CATEGORIES = (1, 2, 3, 4, 5)
HIGH_CONSENSUS = 80.0
MEDIUM_CONSENSUS = 60.0

KAPPA_BANDS = (
    (0.0, "poor"),
    (0.2, "slight"),
    (0.4, "fair"),
    (0.6, "moderate"),
    (0.8, "substantial"),
)


def rating_category(rating: float) -> int:
    """Nearest whole rating, kept within 1-5."""
    return int(min(max(round(rating), RATING_CATEGORIES[0]), RATING_CATEGORIES[-1]))


def agreement_within_one(ratings: Sequence[float]) -> Optional[float]:
    """Percentage of ratings within one point of their mean. None below 2 ratings."""
    if len(ratings) < 2:
        return None
    data = np.asarray(ratings, dtype=float)
    return float(np.mean(np.abs(data - data.mean()) <= 1.0) * 100)


def consensus_level(agreement: float) -> str:
    if agreement >= HIGH_CONSENSUS:
        return "high"
    if agreement >= MEDIUM_CONSENSUS:
        return "medium"
    return "low"


def _chance_corrected(observed: float, expected: float) -> float:
    if expected >= 1.0:
        return 1.0 if observed >= 1.0 else 0.0
    return (observed - expected) / (1.0 - expected)


def cohen_kappa(first: Sequence[float], second: Sequence[float]) -> Optional[float]:
    """Cohen's kappa of two raters over paired ratings. None without pairs."""
    n = min(len(first), len(second))
    if n == 0:
        return None
    a = [rating_category(r) for r in first[:n]]
    b = [rating_category(r) for r in second[:n]]
    observed = sum(1 for x, y in zip(a, b) if x == y) / n
    expected = sum((a.count(c) / n) * (b.count(c) / n) for c in RATING_CATEGORIES)
    return _chance_corrected(observed, expected)


def fleiss_kappa(subjects: Sequence[Sequence[float]]) -> Optional[float]:
    """Fleiss' kappa over subjects rated by several raters.

    Subjects with fewer than 2 ratings are ignored; the rater count may vary
    between subjects. None when no subject qualifies.
    """
    rated = [[rating_category(r) for r in ratings] for ratings in subjects if len(ratings) >= 2]
    if not rated:
        return None

    counts = np.array([[ratings.count(c) for c in RATING_CATEGORIES] for ratings in rated], dtype=float)
    raters = counts.sum(axis=1)
    per_subject = ((counts ** 2).sum(axis=1) - raters) / (raters * (raters - 1))
    observed = float(per_subject.mean())
    proportions = counts.sum(axis=0) / raters.sum()
    expected = float((proportions ** 2).sum())
    return _chance_corrected(observed, expected)


def kappa_interpretation(kappa: Optional[float]) -> Optional[str]:
    if kappa is None:
        return None
    for upper, label in KAPPA_BANDS:
        if kappa < upper:
            return label
    return "almost perfect"


def cronbach_alpha(matrix: Sequence[Sequence[float]]) -> Optional[float]:
    """Cronbach's alpha with evaluators as rows and fields as items.

    Population variances throughout. None with fewer than 2 rows or items, or
    when the row totals do not vary.
    """
    if len(matrix) < 2:
        return None
    data = np.asarray(matrix, dtype=float)
    if data.ndim != 2 or data.shape[1] < 2:
        return None
    items = data.shape[1]
    total_variance = float(data.sum(axis=1).var())
    if total_variance == 0:
        return None
    item_variance = float(data.var(axis=0).sum())
    return items / (items - 1) * (1 - item_variance / total_variance)


@dataclass(frozen=True)
class InterRaterReliability:
    """Agreement between the evaluators of one paper."""

    evaluator_count: int
    fields_analyzed: int
    agreement_percentage: float
    consensus_level: str
    fleiss_kappa: Optional[float]
    kappa_interpretation: Optional[str]
    cronbach_alpha: Optional[float]
    cohen_kappa: Optional[float]
    field_agreement: Dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "evaluator_count": self.evaluator_count,
            "fields_analyzed": self.fields_analyzed,
            "agreement_percentage": self.agreement_percentage,
            "consensus_level": self.consensus_level,
            "fleiss_kappa": self.fleiss_kappa,
            "kappa_interpretation": self.kappa_interpretation,
            "cronbach_alpha": self.cronbach_alpha,
            "cohen_kappa": self.cohen_kappa,
            "field_agreement": dict(self.field_agreement),
        }


def inter_rater_reliability(ratings_by_evaluator: Sequence[Mapping[str, float]]) -> Optional[InterRaterReliability]:
    """Reliability of one paper's evaluators.

    Args:
        ratings_by_evaluator: One ``{field: rating}`` mapping per evaluator,
            positive ratings only

    Returns:
        None with fewer than 2 evaluators. Cohen's kappa is only set for
        exactly 2 evaluators; Cronbach's alpha needs 2 or more fields rated
        by every evaluator.
    """
    if len(ratings_by_evaluator) < 2:
        return None

    by_field: Dict[str, List[float]] = {}
    for ratings in ratings_by_evaluator:
        for name, rating in ratings.items():
            by_field.setdefault(name, []).append(rating)

    field_agreement = {}
    for name in sorted(by_field):
        agreement = agreement_within_one(by_field[name])
        if agreement is not None:
            field_agreement[name] = agreement
    overall = sum(field_agreement.values()) / len(field_agreement) if field_agreement else 0.0
    kappa = fleiss_kappa(list(by_field.values()))

    shared = sorted(set.intersection(*(set(r) for r in ratings_by_evaluator)))
    alpha = cronbach_alpha([[ratings[name] for name in shared] for ratings in ratings_by_evaluator])

    cohen = None
    if len(ratings_by_evaluator) == 2:
        first, second = ratings_by_evaluator
        cohen = cohen_kappa([first[name] for name in shared], [second[name] for name in shared])

    return InterRaterReliability(
        evaluator_count=len(ratings_by_evaluator),
        fields_analyzed=len(field_agreement),
        agreement_percentage=overall,
        consensus_level=consensus_level(overall),
        fleiss_kappa=kappa,
        kappa_interpretation=kappa_interpretation(kappa),
        cronbach_alpha=alpha,
        cohen_kappa=cohen,
        field_agreement=field_agreement,
    )
