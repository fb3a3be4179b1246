"""Field-level and domain-level evaluation metrics.

- TextSimilarityScorer: edit distance, token overlap and special characters
- QualityDimensionScorer: completeness, consistency and validity
- ScoreCombiner: blends automated scores with 1-5 evaluator ratings
- FieldEvaluationProcessor: per-field scoring with optional persistence
- AssessmentAggregator: per-domain roll-up of field scores
"""

from .assessment import (
    AssessmentAggregator,
    custom_field_score,
    load_domain_assessment,
    store_domain_assessment,
)
from .field_evaluation import FieldEvaluationProcessor
from .models import (
    DEFAULT_QUALITY_WEIGHTS,
    DEFAULT_SIMILARITY_WEIGHTS,
    FIELD_TYPES,
    CombinedScore,
    DimensionScore,
    DomainAssessment,
    DomainOverall,
    FieldPair,
    FieldScore,
    QualityResult,
    SimilarityResult,
    normalize_field_type,
    normalize_weights,
)
from .quality_dimensions import QualityDimensionScorer
from .research_field import RankedFieldResult, score_ranked_candidates
from .score_combiner import ScoreCombiner, combine, normalize_rating
from .scoring_result import NEUTRAL_FALLBACK_SCORE, ScoringDefect, StageOutcome, clamp_unit, run_stage
from .text_similarity import TextSimilarityScorer, levenshtein_similarity, special_char_overlap, token_overlap

__all__ = [
    # Models
    "FIELD_TYPES",
    "DEFAULT_SIMILARITY_WEIGHTS",
    "DEFAULT_QUALITY_WEIGHTS",
    "FieldPair",
    "SimilarityResult",
    "DimensionScore",
    "QualityResult",
    "CombinedScore",
    "FieldScore",
    "DomainOverall",
    "DomainAssessment",
    "normalize_field_type",
    "normalize_weights",
    # Fallback policy
    "NEUTRAL_FALLBACK_SCORE",
    "ScoringDefect",
    "StageOutcome",
    "clamp_unit",
    "run_stage",
    # Scorers
    "TextSimilarityScorer",
    "levenshtein_similarity",
    "token_overlap",
    "special_char_overlap",
    "QualityDimensionScorer",
    "ScoreCombiner",
    "combine",
    "normalize_rating",
    "FieldEvaluationProcessor",
    "AssessmentAggregator",
    "custom_field_score",
    "store_domain_assessment",
    "load_domain_assessment",
    "RankedFieldResult",
    "score_ranked_candidates",
]
