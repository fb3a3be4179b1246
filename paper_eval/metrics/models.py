"""Value objects shared by the field-level scorers.

Serialized forms use the camelCase keys of the persisted metrics store so a
stored record can be read back by ``from_dict`` without translation.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Dict, List, Mapping, Optional

from .scoring_result import NEUTRAL_FALLBACK_SCORE, ScoringDefect, clamp_unit

FIELD_TYPES = ("text", "number", "date", "resource", "doi", "list")

DEFAULT_SIMILARITY_WEIGHTS = {"edit_distance": 0.5, "token": 0.3, "special_char": 0.2}
DEFAULT_QUALITY_WEIGHTS = {"completeness": 0.4, "consistency": 0.3, "validity": 0.3}
QUALITY_DIMENSIONS = ("completeness", "consistency", "validity")


def normalize_field_type(field_type: Optional[str]) -> str:
    """Map a declared field type onto a known type (unknown types score as text)."""
    if not isinstance(field_type, str):
        return "text"
    lowered = field_type.strip().lower()
    if lowered in FIELD_TYPES:
        return lowered
    if lowered in ("year", "publication_year", "datetime"):
        return "date"
    if lowered in ("authors", "array"):
        return "list"
    if lowered in ("integer", "float", "numeric"):
        return "number"
    return "text"


def normalize_weights(weights: Optional[Mapping[str, float]], defaults: Mapping[str, float]) -> Dict[str, float]:
    """Return weights restricted to the default keys and scaled to sum to 1.

    Missing keys count as 0. An empty or all-zero weight set falls back to
    ``defaults``.
    """
    if not weights:
        return dict(defaults)
    cleaned = {key: max(0.0, float(weights.get(key, 0.0) or 0.0)) for key in defaults}
    total = sum(cleaned.values())
    if total <= 0:
        return dict(defaults)
    return {key: value / total for key, value in cleaned.items()}


@dataclass(frozen=True)
class FieldPair:
    """Reference value and extracted value for one field."""

    reference_value: Any
    extracted_value: Any
    field_type: str = "text"

    @property
    def normalized_type(self) -> str:
        return normalize_field_type(self.field_type)


@dataclass(frozen=True)
class SimilarityResult:
    edit_distance_score: float
    token_precision: float
    token_recall: float
    token_f1: float
    special_char_score: float
    weighted_automated_score: float
    weights: Dict[str, float] = field(default_factory=lambda: dict(DEFAULT_SIMILARITY_WEIGHTS))
    is_fallback: bool = False

    @classmethod
    def fallback(cls) -> "SimilarityResult":
        neutral = NEUTRAL_FALLBACK_SCORE
        return cls(neutral, neutral, neutral, neutral, neutral, neutral, is_fallback=True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "editDistanceScore": self.edit_distance_score,
            "tokenPrecision": self.token_precision,
            "tokenRecall": self.token_recall,
            "tokenF1": self.token_f1,
            "specialCharScore": self.special_char_score,
            "weightedAutomatedScore": self.weighted_automated_score,
            "weights": dict(self.weights),
            "isFallback": self.is_fallback,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "SimilarityResult":
        return cls(
            edit_distance_score=float(data["editDistanceScore"]),
            token_precision=float(data["tokenPrecision"]),
            token_recall=float(data["tokenRecall"]),
            token_f1=float(data["tokenF1"]),
            special_char_score=float(data["specialCharScore"]),
            weighted_automated_score=float(data["weightedAutomatedScore"]),
            weights=dict(data.get("weights") or DEFAULT_SIMILARITY_WEIGHTS),
            is_fallback=bool(data.get("isFallback", False)),
        )


@dataclass(frozen=True)
class DimensionScore:
    score: float
    issues: List[str] = field(default_factory=list)

    def to_dict(self) -> Dict[str, Any]:
        return {"score": self.score, "issues": list(self.issues)}


@dataclass(frozen=True)
class QualityResult:
    completeness: DimensionScore
    consistency: DimensionScore
    validity: DimensionScore
    weights: Dict[str, float]
    automated_overall_score: float
    is_fallback: bool = False

    @classmethod
    def fallback(cls) -> "QualityResult":
        neutral = DimensionScore(NEUTRAL_FALLBACK_SCORE)
        return cls(
            completeness=neutral,
            consistency=neutral,
            validity=neutral,
            weights=dict(DEFAULT_QUALITY_WEIGHTS),
            automated_overall_score=NEUTRAL_FALLBACK_SCORE,
            is_fallback=True,
        )

    @property
    def issues(self) -> List[str]:
        """All issues in dimension order."""
        return list(self.completeness.issues) + list(self.consistency.issues) + list(self.validity.issues)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "completeness": self.completeness.to_dict(),
            "consistency": self.consistency.to_dict(),
            "validity": self.validity.to_dict(),
            "weights": dict(self.weights),
            "automatedOverallScore": self.automated_overall_score,
            "isFallback": self.is_fallback,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "QualityResult":
        def _dimension(name: str) -> DimensionScore:
            raw = data.get(name) or {}
            return DimensionScore(float(raw.get("score", NEUTRAL_FALLBACK_SCORE)), list(raw.get("issues") or []))

        return cls(
            completeness=_dimension("completeness"),
            consistency=_dimension("consistency"),
            validity=_dimension("validity"),
            weights=dict(data.get("weights") or DEFAULT_QUALITY_WEIGHTS),
            automated_overall_score=float(data["automatedOverallScore"]),
            is_fallback=bool(data.get("isFallback", False)),
        )


@dataclass(frozen=True)
class CombinedScore:
    """Automated score blended with a 0-5 human rating."""

    automated_score: float
    rating: float
    normalized_rating: float
    final_score: float
    agreement: Optional[float]
    expertise_multiplier: float = 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "automatedScore": self.automated_score,
            "rating": self.rating,
            "normalizedRating": self.normalized_rating,
            "finalScore": self.final_score,
            "agreement": self.agreement,
            "expertiseMultiplier": self.expertise_multiplier,
        }

    @classmethod
    def from_dict(cls, data: Mapping[str, Any]) -> "CombinedScore":
        agreement = data.get("agreement")
        return cls(
            automated_score=float(data["automatedScore"]),
            rating=float(data.get("rating", 0)),
            normalized_rating=float(data.get("normalizedRating", 0.0)),
            final_score=float(data["finalScore"]),
            agreement=None if agreement is None else float(agreement),
            expertise_multiplier=float(data.get("expertiseMultiplier", 1.0)),
        )


@dataclass
class FieldScore:
    """Scores for one field of one paper, as rated by one evaluator.

    Mutable: ratings and comments change as the evaluator edits; the
    automated ``similarity`` and ``quality`` detail stays until the
    underlying pair changes.
    """

    field: str
    rating: float = 0
    comments: str = ""
    accuracy_score: float = 0.0
    quality_score: float = 0.0
    overall_score: float = 0.0
    similarity: Optional[SimilarityResult] = None
    quality: Optional[QualityResult] = None
    accuracy_detail: Optional[CombinedScore] = None
    quality_detail: Optional[CombinedScore] = None
    defects: List[ScoringDefect] = field(default_factory=list)
    source: str = "automated"
    details: Dict[str, Any] = field(default_factory=dict)

    def apply_weights(self, accuracy_weight: float, quality_weight: float) -> None:
        """Recompute ``overall_score`` from the current accuracy and quality scores."""
        self.accuracy_score = clamp_unit(self.accuracy_score)
        self.quality_score = clamp_unit(self.quality_score)
        self.overall_score = clamp_unit(
            self.accuracy_score * accuracy_weight + self.quality_score * quality_weight
        )

    def summary(self) -> Dict[str, Any]:
        """Compact record stored under the ``overall`` metric type."""
        return {
            "field": self.field,
            "rating": self.rating,
            "comments": self.comments,
            "accuracyScore": self.accuracy_score,
            "qualityScore": self.quality_score,
            "overallScore": self.overall_score,
            "source": self.source,
        }

    def to_dict(self) -> Dict[str, Any]:
        data = self.summary()
        data["similarity"] = self.similarity.to_dict() if self.similarity else None
        data["quality"] = self.quality.to_dict() if self.quality else None
        data["accuracyDetail"] = self.accuracy_detail.to_dict() if self.accuracy_detail else None
        data["qualityDetail"] = self.quality_detail.to_dict() if self.quality_detail else None
        data["defects"] = [defect.to_dict() for defect in self.defects]
        if self.details:
            data["details"] = dict(self.details)
        return data


@dataclass(frozen=True)
class DomainOverall:
    accuracy_score: float
    quality_score: float
    overall_score: float
    fields: int

    @classmethod
    def empty(cls) -> "DomainOverall":
        return cls(0.0, 0.0, 0.0, 0)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accuracyScore": self.accuracy_score,
            "qualityScore": self.quality_score,
            "overallScore": self.overall_score,
            "fields": self.fields,
        }


@dataclass
class DomainAssessment:
    """Field scores of one domain plus their weighted roll-up."""

    domain: str
    fields: Dict[str, FieldScore]
    overall: DomainOverall

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {name: score.summary() for name, score in self.fields.items()}
        data["overall"] = self.overall.to_dict()
        return data
