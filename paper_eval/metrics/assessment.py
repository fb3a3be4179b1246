"""Roll field scores up into a per-domain assessment."""

from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, Mapping, Optional, Union

from .models import DomainAssessment, DomainOverall, FieldScore, normalize_weights
from .score_combiner import normalize_rating
from .scoring_result import ScoringDefect, clamp_unit, run_stage

logger = logging.getLogger(__name__)

DEFAULT_DOMAIN_WEIGHTS = {"accuracy": 0.5, "quality": 0.5}
DOMAIN_OVERALL_KEY = "overall"


def custom_field_score(
    field: str,
    accuracy_score: Any,
    quality_score: Any,
    accuracy_weight: float = 0.5,
    quality_weight: float = 0.5,
    rating: Any = 0,
    comments: str = "",
    details: Optional[Dict[str, Any]] = None,
) -> FieldScore:
    """Build a ``FieldScore`` from scores computed by a field-specific rule.

    Used for fields whose accuracy is not a text comparison (ranked research
    fields, template structure checks). Values are clamped to [0, 1];
    non-numeric values fall back to the neutral score.
    """
    accuracy = run_stage("custom", lambda: clamp_unit(accuracy_score), lambda: 0.5)
    quality = run_stage("custom", lambda: clamp_unit(quality_score), lambda: 0.5)
    weights = normalize_weights({"accuracy": accuracy_weight, "quality": quality_weight}, DEFAULT_DOMAIN_WEIGHTS)
    defects = [outcome.defect for outcome in (accuracy, quality) if outcome.defect is not None]

    rating_value, problem = normalize_rating(rating)
    if problem:
        logger.warning(f"[custom] {field}: {problem}")
        defects.append(ScoringDefect("custom", problem))

    field_score = FieldScore(
        field=field,
        rating=rating_value,
        comments=comments or "",
        accuracy_score=accuracy.value,
        quality_score=quality.value,
        defects=defects,
        source="custom",
        details=dict(details or {}),
    )
    field_score.apply_weights(weights["accuracy"], weights["quality"])
    return field_score


class AssessmentAggregator:
    """Aggregates field scores per domain.

    Args:
        domain_configs: ``DomainConfig`` per domain name. A domain that lists
            fields only counts those fields; field weights scale each field's
            contribution to the means.
    """

    def __init__(self, domain_configs: Optional[Mapping[str, Any]] = None):
        self.domain_configs = dict(domain_configs or {})

    @classmethod
    def from_config(cls, config) -> "AssessmentAggregator":
        return cls(config.domains)

    def _domain_weights(self, domain: str) -> Dict[str, float]:
        config = self.domain_configs.get(domain)
        if config is None:
            return dict(DEFAULT_DOMAIN_WEIGHTS)
        return normalize_weights(
            {"accuracy": config.accuracy_weight, "quality": config.quality_weight},
            DEFAULT_DOMAIN_WEIGHTS,
        )

    def aggregate(
        self,
        domain: str,
        field_scores: Union[Mapping[str, FieldScore], Iterable[FieldScore]],
    ) -> DomainAssessment:
        if isinstance(field_scores, Mapping):
            scores = dict(field_scores)
        else:
            scores = {score.field: score for score in field_scores}

        config = self.domain_configs.get(domain)
        if config is not None and config.fields:
            skipped = sorted(set(scores) - set(config.fields))
            if skipped:
                logger.debug(f"[{domain}] ignoring unconfigured fields: {', '.join(skipped)}")
            scores = {name: score for name, score in scores.items() if name in config.fields}

        if not scores:
            return DomainAssessment(domain=domain, fields={}, overall=DomainOverall.empty())

        field_weights = {
            name: max(0.0, float(config.field_weight(name))) if config is not None else 1.0 for name in scores
        }
        if sum(field_weights.values()) <= 0:
            logger.warning(f"[{domain}] field weights sum to 0, using equal weights")
            field_weights = {name: 1.0 for name in scores}

        total_weight = 0.0
        accuracy_sum = 0.0
        quality_sum = 0.0
        for name, score in scores.items():
            weight = field_weights[name]
            total_weight += weight
            accuracy_sum += clamp_unit(score.accuracy_score) * weight
            quality_sum += clamp_unit(score.quality_score) * weight

        accuracy_mean = accuracy_sum / total_weight
        quality_mean = quality_sum / total_weight
        weights = self._domain_weights(domain)

        overall = DomainOverall(
            accuracy_score=accuracy_mean,
            quality_score=quality_mean,
            overall_score=clamp_unit(accuracy_mean * weights["accuracy"] + quality_mean * weights["quality"]),
            fields=len(scores),
        )
        return DomainAssessment(domain=domain, fields=scores, overall=overall)


def store_domain_assessment(store, assessment: DomainAssessment) -> None:
    """Write field summaries and the domain roll-up under ``overall/<domain>``."""
    store.set(("overall", assessment.domain), assessment.to_dict())


def load_domain_assessment(store, domain: str) -> Optional[DomainAssessment]:
    """Read back what ``store_domain_assessment`` wrote. None when absent."""
    data = store.get(("overall", domain))
    if not isinstance(data, dict) or not data:
        return None

    fields: Dict[str, FieldScore] = {}
    for name, summary in data.items():
        if name == DOMAIN_OVERALL_KEY or not isinstance(summary, dict):
            continue
        try:
            fields[name] = FieldScore(
                field=summary.get("field", name),
                rating=summary.get("rating", 0),
                comments=summary.get("comments", ""),
                accuracy_score=float(summary.get("accuracyScore", 0.0)),
                quality_score=float(summary.get("qualityScore", 0.0)),
                overall_score=float(summary.get("overallScore", 0.0)),
                source=summary.get("source", "automated"),
            )
        except (TypeError, ValueError) as e:
            logger.warning(f"Skipping malformed stored field {domain}.{name}: {e}")

    raw_overall = data.get(DOMAIN_OVERALL_KEY)
    if isinstance(raw_overall, dict):
        try:
            overall = DomainOverall(
                accuracy_score=float(raw_overall.get("accuracyScore", 0.0)),
                quality_score=float(raw_overall.get("qualityScore", 0.0)),
                overall_score=float(raw_overall.get("overallScore", 0.0)),
                fields=int(raw_overall.get("fields", len(fields))),
            )
        except (TypeError, ValueError):
            overall = DomainOverall.empty()
    else:
        overall = DomainOverall.empty()

    return DomainAssessment(domain=domain, fields=fields, overall=overall)
