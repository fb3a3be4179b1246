"""Scoring of a ranked list of predicted research fields against the reference field."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Dict, Iterable, List, Optional

TOP_N = 3
POSITION_DECAY = 0.2
RANKED_WEIGHTS = {"exact_match": 0.4, "top_n": 0.3, "position": 0.3}


@dataclass(frozen=True)
class RankedFieldResult:
    exact_match: float
    recall: float
    top_n: float
    position_score: float
    precision: float
    f1_score: float
    ranking_quality: float
    found_position: Optional[int]
    total_predictions: int
    automated_score: float

    def to_dict(self) -> Dict[str, Any]:
        return {
            "exactMatch": self.exact_match,
            "recall": self.recall,
            "topN": self.top_n,
            "positionScore": self.position_score,
            "precision": self.precision,
            "f1Score": self.f1_score,
            "rankingQuality": self.ranking_quality,
            "foundPosition": self.found_position,
            "totalPredictions": self.total_predictions,
            "automatedScore": self.automated_score,
        }


def _candidate_label(candidate: Any) -> str:
    if isinstance(candidate, dict):
        candidate = candidate.get("field") or candidate.get("name") or candidate.get("label") or ""
    return str(candidate or "").strip().lower()


def score_ranked_candidates(reference: Any, candidates: Iterable[Any]) -> RankedFieldResult:
    """Score where the reference field appears in a ranked candidate list.

    Candidates may be plain strings or dicts with a ``field``/``name``/``label``
    key; matching is case-insensitive on trimmed labels. The automated score
    is ``0.4 * exact + 0.3 * top3 + 0.3 * position`` where position decays
    by 0.2 per rank.
    """
    labels: List[str] = [_candidate_label(c) for c in (candidates or [])]
    target = _candidate_label(reference)

    index = -1
    if target:
        for i, label in enumerate(labels):
            if label == target:
                index = i
                break

    found = index >= 0
    exact = 1.0 if index == 0 else 0.0
    recall = 1.0 if found else 0.0
    top_n = 1.0 if found and index < TOP_N else 0.0
    position = max(0.0, 1 - index * POSITION_DECAY) if found else 0.0
    precision = exact
    f1 = 2 * precision * recall / (precision + recall) if precision + recall > 0 else 0.0

    automated = (
        exact * RANKED_WEIGHTS["exact_match"]
        + top_n * RANKED_WEIGHTS["top_n"]
        + position * RANKED_WEIGHTS["position"]
    )

    return RankedFieldResult(
        exact_match=exact,
        recall=recall,
        top_n=top_n,
        position_score=position,
        precision=precision,
        f1_score=f1,
        ranking_quality=1 / (index + 1) if found else 0.0,
        found_position=index + 1 if found else None,
        total_predictions=len(labels),
        automated_score=automated,
    )
