"""Blend an automated score with a human 1-5 rating."""

import logging
from typing import Any, List, Optional, Tuple

from .models import CombinedScore
from .scoring_result import ScoringDefect, clamp_unit

logger = logging.getLogger(__name__)

MAX_RATING = 5


def normalize_rating(rating: Any) -> Tuple[float, Optional[str]]:
    """Coerce a rating onto the 0-5 scale.

    Returns:
        (rating, problem) where problem describes any coercion applied.
        Non-numeric ratings count as unrated (0).
    """
    if rating is None:
        return 0.0, None
    if isinstance(rating, bool) or not isinstance(rating, (int, float)):
        try:
            rating = float(rating)
        except (TypeError, ValueError):
            return 0.0, f"rating {rating!r} is not numeric, treated as unrated"
    value = float(rating)
    if value != value:
        return 0.0, "rating is NaN, treated as unrated"
    if value < 0 or value > MAX_RATING:
        clamped = max(0.0, min(float(MAX_RATING), value))
        return clamped, f"rating {value:g} outside 0-{MAX_RATING}, clamped to {clamped:g}"
    return value, None


class ScoreCombiner:
    """Combines automated sub-scores with evaluator ratings.

    The rating scales the automated score linearly (``rating / 5``); an unset
    rating (0) leaves the automated score unchanged. The expertise multiplier
    is carried along for traceability only: it is applied when several
    evaluators are aggregated, never to a single evaluator's score.
    """

    def combine(self, automated_score: Any, rating: Any = 0, expertise_multiplier: float = 1.0) -> CombinedScore:
        return self.combine_with_defects(automated_score, rating, expertise_multiplier)[0]

    def combine_with_defects(
        self,
        automated_score: Any,
        rating: Any = 0,
        expertise_multiplier: float = 1.0,
    ) -> Tuple[CombinedScore, List[ScoringDefect]]:
        defects: List[ScoringDefect] = []

        try:
            automated = clamp_unit(automated_score)
        except (TypeError, ValueError):
            automated = 0.5
            defects.append(ScoringDefect("combine", f"automated score {automated_score!r} is not numeric"))

        value, problem = normalize_rating(rating)
        if problem:
            logger.warning(f"[combine] {problem}")
            defects.append(ScoringDefect("combine", problem))

        normalized = value / MAX_RATING
        if value > 0:
            final = automated * normalized
            agreement: Optional[float] = 1 - abs(automated - normalized)
        else:
            final = automated
            agreement = None

        return (
            CombinedScore(
                automated_score=automated,
                rating=value,
                normalized_rating=normalized,
                final_score=clamp_unit(final),
                agreement=agreement,
                expertise_multiplier=expertise_multiplier,
            ),
            defects,
        )


def combine(automated_score: Any, rating: Any = 0, expertise_multiplier: float = 1.0) -> CombinedScore:
    """Module-level shortcut for ``ScoreCombiner().combine``."""
    return ScoreCombiner().combine(automated_score, rating, expertise_multiplier)
