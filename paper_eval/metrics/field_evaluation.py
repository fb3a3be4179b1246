"""Per-field evaluation: automated scoring blended with an evaluator rating."""

from __future__ import annotations

import logging
from typing import Any, Dict, List, Optional

from .models import (
    CombinedScore,
    FieldPair,
    FieldScore,
    QualityResult,
    SimilarityResult,
    normalize_weights,
)
from .quality_dimensions import QualityDimensionScorer
from .score_combiner import ScoreCombiner
from .scoring_result import ScoringDefect
from .text_similarity import TextSimilarityScorer

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN_WEIGHTS = {"accuracy": 0.5, "quality": 0.5}


def _merge_defects(target: List[ScoringDefect], new: List[ScoringDefect]) -> None:
    for defect in new:
        if defect not in target:
            target.append(defect)


class FieldEvaluationProcessor:
    """Scores the fields of one domain.

    Accuracy comes from text similarity and quality from the quality
    dimensions; each is blended with the evaluator's rating. The two stages
    fail independently, so a broken quality stage still yields a real
    accuracy score.

    Args:
        domain: Domain name, used as the store key
        domain_config: Optional ``DomainConfig`` with field types and the
            accuracy/quality weights (0.5/0.5 when omitted)
        store: Optional metrics store (or ``DebouncedWriter``); when given,
            every evaluate/rerate persists its records
    """

    def __init__(
        self,
        domain: str,
        domain_config=None,
        similarity_scorer: Optional[TextSimilarityScorer] = None,
        quality_scorer: Optional[QualityDimensionScorer] = None,
        combiner: Optional[ScoreCombiner] = None,
        store=None,
    ):
        self.domain = domain
        self.domain_config = domain_config
        self.similarity_scorer = similarity_scorer or TextSimilarityScorer()
        self.quality_scorer = quality_scorer or QualityDimensionScorer()
        self.combiner = combiner or ScoreCombiner()
        self.store = store

        configured = DEFAULT_DOMAIN_WEIGHTS
        if domain_config is not None:
            configured = {
                "accuracy": domain_config.accuracy_weight,
                "quality": domain_config.quality_weight,
            }
        weights = normalize_weights(configured, DEFAULT_DOMAIN_WEIGHTS)
        self.accuracy_weight = weights["accuracy"]
        self.quality_weight = weights["quality"]

    @classmethod
    def from_config(cls, config, domain: str, store=None) -> "FieldEvaluationProcessor":
        """Build a processor for ``domain`` from an ``EvaluationConfig``."""
        return cls(
            domain,
            domain_config=config.domain(domain),
            similarity_scorer=TextSimilarityScorer(config.similarity_weights),
            quality_scorer=QualityDimensionScorer(config.quality_weights, config.validity_rules),
            store=store,
        )

    def pair_for(self, field: str, reference_value: Any, extracted_value: Any) -> FieldPair:
        """Build a ``FieldPair`` typed from the domain configuration."""
        field_type = self.domain_config.field_type(field) if self.domain_config is not None else "text"
        return FieldPair(reference_value, extracted_value, field_type)

    def evaluate(
        self,
        pair: FieldPair,
        field: str,
        rating: Any = 0,
        comments: str = "",
        expertise_multiplier: float = 1.0,
    ) -> FieldScore:
        similarity_outcome = self.similarity_scorer.score_with_outcome(pair)
        quality_outcome = self.quality_scorer.score_with_outcome(pair)

        defects: List[ScoringDefect] = []
        for outcome in (similarity_outcome, quality_outcome):
            if outcome.defect is not None:
                defects.append(outcome.defect)

        field_score = FieldScore(
            field=field,
            comments=comments or "",
            similarity=similarity_outcome.value,
            quality=quality_outcome.value,
            defects=defects,
        )
        self._combine(field_score, rating, expertise_multiplier)
        logger.debug(
            f"[{self.domain}.{field}] accuracy={field_score.accuracy_score:.3f} "
            f"quality={field_score.quality_score:.3f} overall={field_score.overall_score:.3f}"
        )
        self._persist(field_score)
        return field_score

    def rerate(
        self,
        field_score: FieldScore,
        rating: Any = None,
        comments: Optional[str] = None,
    ) -> FieldScore:
        """Apply a new rating and/or comment without rescoring the pair.

        Only the combined scores are recomputed, from the automated detail
        already on ``field_score``.
        """
        if comments is not None:
            field_score.comments = comments
        new_rating = field_score.rating if rating is None else rating
        multiplier = field_score.accuracy_detail.expertise_multiplier if field_score.accuracy_detail else 1.0
        self._combine(field_score, new_rating, multiplier)
        self._persist(field_score)
        return field_score

    def _automated_parts(self, field_score: FieldScore):
        if field_score.similarity is not None:
            accuracy = field_score.similarity.weighted_automated_score
        elif field_score.accuracy_detail is not None:
            accuracy = field_score.accuracy_detail.automated_score
        else:
            accuracy = field_score.accuracy_score

        if field_score.quality is not None:
            quality = field_score.quality.automated_overall_score
        elif field_score.quality_detail is not None:
            quality = field_score.quality_detail.automated_score
        else:
            quality = field_score.quality_score
        return accuracy, quality

    def _combine(self, field_score: FieldScore, rating: Any, expertise_multiplier: float) -> None:
        automated_accuracy, automated_quality = self._automated_parts(field_score)

        accuracy, accuracy_defects = self.combiner.combine_with_defects(
            automated_accuracy, rating, expertise_multiplier
        )
        quality, quality_defects = self.combiner.combine_with_defects(
            automated_quality, rating, expertise_multiplier
        )
        _merge_defects(field_score.defects, accuracy_defects)
        _merge_defects(field_score.defects, quality_defects)

        field_score.rating = accuracy.rating
        field_score.accuracy_detail = accuracy
        field_score.quality_detail = quality
        field_score.accuracy_score = accuracy.final_score
        field_score.quality_score = quality.final_score
        field_score.apply_weights(self.accuracy_weight, self.quality_weight)

    def records_for(self, field_score: FieldScore) -> Dict[str, Dict[str, Any]]:
        """Store records of a field score keyed by metric type."""
        defects = [defect.to_dict() for defect in field_score.defects]
        return {
            "accuracy": {
                "score": field_score.accuracy_score,
                "rating": field_score.rating,
                "similarity": field_score.similarity.to_dict() if field_score.similarity else None,
                "combined": field_score.accuracy_detail.to_dict() if field_score.accuracy_detail else None,
                "defects": defects,
            },
            "quality": {
                "score": field_score.quality_score,
                "rating": field_score.rating,
                "quality": field_score.quality.to_dict() if field_score.quality else None,
                "combined": field_score.quality_detail.to_dict() if field_score.quality_detail else None,
                "defects": defects,
            },
            "overall": field_score.summary(),
        }

    def _persist(self, field_score: FieldScore) -> None:
        if self.store is None:
            return
        try:
            for metric_type, record in self.records_for(field_score).items():
                self.store.set((metric_type, self.domain, field_score.field), record)
        except OSError as e:
            logger.error(f"Could not persist {self.domain}.{field_score.field}: {e}")
            field_score.defects.append(
                ScoringDefect("persist", f"{type(e).__name__}: {e}", error_type="persistence_error")
            )

    def restore(self, field: str) -> Optional[FieldScore]:
        """Rebuild a ``FieldScore`` from the store, or None when nothing was stored."""
        if self.store is None:
            return None
        summary = self.store.get(("overall", self.domain, field))
        if not isinstance(summary, dict):
            return None
        accuracy = self.store.get(("accuracy", self.domain, field)) or {}
        quality = self.store.get(("quality", self.domain, field)) or {}
        try:
            return FieldScore(
                field=field,
                rating=summary.get("rating", 0),
                comments=summary.get("comments", ""),
                accuracy_score=float(summary.get("accuracyScore", 0.0)),
                quality_score=float(summary.get("qualityScore", 0.0)),
                overall_score=float(summary.get("overallScore", 0.0)),
                similarity=SimilarityResult.from_dict(accuracy["similarity"]) if accuracy.get("similarity") else None,
                quality=QualityResult.from_dict(quality["quality"]) if quality.get("quality") else None,
                accuracy_detail=CombinedScore.from_dict(accuracy["combined"]) if accuracy.get("combined") else None,
                quality_detail=CombinedScore.from_dict(quality["combined"]) if quality.get("combined") else None,
                source=summary.get("source", "automated"),
            )
        except (KeyError, TypeError, ValueError) as e:
            logger.warning(f"Stored record for {self.domain}.{field} is malformed: {e}")
            return None
