"""Text similarity between a reference value and an extracted value."""

import logging
import re
from typing import Any, Dict, Mapping, Optional, Tuple

from Levenshtein import distance

from .models import DEFAULT_SIMILARITY_WEIGHTS, FieldPair, SimilarityResult, normalize_weights
from .scoring_result import StageOutcome, clamp_unit, run_stage

logger = logging.getLogger(__name__)

_SPECIAL_CHAR_RE = re.compile(r"[^\w\s]|_")

LIST_JOINER = "; "


def coerce_text(value: Any) -> str:
    """Turn a field value into comparable text.

    ``None`` becomes the empty string, numbers are stringified and lists of
    scalars are joined with ``"; "``. Any other type is rejected.

    Raises:
        TypeError: If the value cannot be compared as text
    """
    if value is None:
        return ""
    if isinstance(value, str):
        return value
    if isinstance(value, bool):
        return "true" if value else "false"
    if isinstance(value, (int, float)):
        return str(value)
    if isinstance(value, (list, tuple)):
        parts = []
        for item in value:
            if isinstance(item, (dict, list, tuple, set)):
                raise TypeError(f"Cannot compare nested {type(item).__name__} inside a list as text")
            parts.append(coerce_text(item))
        return LIST_JOINER.join(part for part in parts if part)
    raise TypeError(f"Cannot compare {type(value).__name__} as text")


def _collapse_whitespace(text: str) -> str:
    return " ".join(text.split())


def levenshtein_similarity(reference: str, extracted: str) -> float:
    """``1 - distance / max(len)``; 1 when both are empty, 0 when only one is."""
    if not reference and not extracted:
        return 1.0
    if not reference or not extracted:
        return 0.0
    max_len = max(len(reference), len(extracted))
    return clamp_unit(1 - (distance(reference, extracted) / max_len))


def _set_overlap(reference_tokens: set, extracted_tokens: set) -> Tuple[float, float, float]:
    if not reference_tokens and not extracted_tokens:
        return 1.0, 1.0, 1.0
    if not reference_tokens or not extracted_tokens:
        return 0.0, 0.0, 0.0

    common = reference_tokens & extracted_tokens
    precision = len(common) / len(extracted_tokens)
    recall = len(common) / len(reference_tokens)
    f1 = 2 * precision * recall / (precision + recall) if (precision + recall) > 0 else 0.0
    return precision, recall, f1


def tokenize(text: str) -> set:
    """Lower-cased whitespace tokens. No stemming, punctuation stays attached."""
    return set(text.lower().split())


def token_overlap(reference: str, extracted: str) -> Tuple[float, float, float]:
    """Token precision, recall and F1 between two strings."""
    return _set_overlap(tokenize(reference), tokenize(extracted))


def special_characters(text: str) -> set:
    return set(_SPECIAL_CHAR_RE.findall(text))


def special_char_overlap(reference: str, extracted: str) -> float:
    """F1 over the punctuation/symbol characters of both strings."""
    return _set_overlap(special_characters(reference), special_characters(extracted))[2]


class TextSimilarityScorer:
    """Scores an extracted value against its reference along three components.

    Components are edit distance, token overlap F1 and special-character
    overlap. Their weights come from ``weights_by_type`` (keyed by field type,
    with a ``default`` entry) and are normalized when they do not sum to 1.
    """

    def __init__(self, weights_by_type: Optional[Mapping[str, Mapping[str, float]]] = None):
        self.weights_by_type: Dict[str, Dict[str, float]] = {}
        default = (weights_by_type or {}).get("default")
        self.default_weights = normalize_weights(default, DEFAULT_SIMILARITY_WEIGHTS)
        for field_type, weights in (weights_by_type or {}).items():
            if field_type == "default":
                continue
            self.weights_by_type[field_type] = normalize_weights(weights, self.default_weights)

    def weights_for(self, field_type: str) -> Dict[str, float]:
        return dict(self.weights_by_type.get(field_type, self.default_weights))

    def score(self, pair: FieldPair) -> SimilarityResult:
        """Score a pair, returning the neutral fallback on malformed input."""
        return self.score_with_outcome(pair).value

    def score_with_outcome(self, pair: FieldPair) -> StageOutcome[SimilarityResult]:
        return run_stage("similarity", lambda: self._score(pair), SimilarityResult.fallback)

    def _score(self, pair: FieldPair) -> SimilarityResult:
        reference = _collapse_whitespace(coerce_text(pair.reference_value))
        extracted = _collapse_whitespace(coerce_text(pair.extracted_value))

        edit_score = levenshtein_similarity(reference, extracted)
        precision, recall, f1 = token_overlap(reference, extracted)
        special_score = special_char_overlap(reference, extracted)

        weights = self.weights_for(pair.normalized_type)
        weighted = (
            edit_score * weights["edit_distance"]
            + f1 * weights["token"]
            + special_score * weights["special_char"]
        )

        logger.debug(
            f"similarity type={pair.normalized_type} edit={edit_score:.3f} "
            f"token_f1={f1:.3f} special={special_score:.3f} weighted={weighted:.3f}"
        )

        return SimilarityResult(
            edit_distance_score=edit_score,
            token_precision=precision,
            token_recall=recall,
            token_f1=f1,
            special_char_score=special_score,
            weighted_automated_score=clamp_unit(weighted),
            weights=weights,
        )
