"""Aggregation of archived evaluations across papers and evaluators.

Each archived evaluation becomes an ``EvaluatorSubmission``: one evaluator's
domain scores for one paper. Submissions are grouped per paper into
``AggregatedPaper`` records, which feed the cross-paper statistics,
correlations, expertise weighting and temporal trends.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from itertools import combinations
from typing import Any, Dict, Iterable, List, Mapping, Optional, Tuple

import numpy as np

from .expertise import (
    MINIMAL_EFFECT_TOLERANCE,
    ExpertiseImpact,
    expertise_tier,
    overall_impact,
    resolve_expertise_weight,
)
from .reliability import InterRaterReliability, inter_rater_reliability
from .statistics import (
    HIGH_THRESHOLD,
    PARTIAL_THRESHOLD,
    ScoreStats,
    categorize,
    compute_stats,
    detect_outliers,
    pearson,
)
from .temporal import DEFAULT_WINDOW, temporal_summary

logger = logging.getLogger(__name__)

DOMAINS = ("metadata", "research_field", "research_problem", "template", "content")
# zero is a legitimate score for these domains, elsewhere it means "not evaluated"
ZERO_SCORE_DOMAINS = ("research_problem", "content")
SCORE_TYPES = ("accuracy", "quality", "overall")
DISAGREEMENT_THRESHOLD = 0.15
DOMAIN_OVERALL_KEY = "overall"


def _number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    return None if value != value else value


def _mean(values: List[float]) -> Optional[float]:
    return sum(values) / len(values) if values else None


@dataclass(frozen=True)
class DomainScores:
    """One evaluator's roll-up for one domain."""

    accuracy: Optional[float] = None
    quality: Optional[float] = None
    overall: Optional[float] = None
    user_rating: Optional[float] = None
    field_ratings: Dict[str, float] = field(default_factory=dict)

    def get(self, score_type: str) -> Optional[float]:
        return getattr(self, score_type)


def _level(metrics: Mapping[str, Any], metric_type: str) -> Mapping[str, Any]:
    level = metrics.get(metric_type)
    return level if isinstance(level, dict) else {}


def _domain_scores(metrics: Mapping[str, Any], domain: str) -> Optional[DomainScores]:
    summaries = _level(metrics, "overall").get(domain)
    accuracy_records = _level(metrics, "accuracy").get(domain)
    quality_records = _level(metrics, "quality").get(domain)
    if not isinstance(summaries, dict):
        summaries = {}
    if not isinstance(accuracy_records, dict):
        accuracy_records = {}
    if not isinstance(quality_records, dict):
        quality_records = {}
    if not summaries and not accuracy_records and not quality_records:
        return None

    field_summaries = {
        name: value for name, value in summaries.items() if name != DOMAIN_OVERALL_KEY and isinstance(value, dict)
    }
    field_ratings = {}
    for name, summary in field_summaries.items():
        rating = _number(summary.get("rating"))
        if rating is not None and rating > 0:
            field_ratings[name] = rating
    ratings = list(field_ratings.values())

    roll_up = summaries.get(DOMAIN_OVERALL_KEY)
    if isinstance(roll_up, dict):
        return DomainScores(
            accuracy=_number(roll_up.get("accuracyScore")),
            quality=_number(roll_up.get("qualityScore")),
            overall=_number(roll_up.get("overallScore")),
            user_rating=_mean(ratings),
            field_ratings=field_ratings,
        )

    def _field_mean(records: Mapping[str, Any], summary_key: str, record_key: str) -> Optional[float]:
        values = [_number(s.get(summary_key)) for s in field_summaries.values()]
        if not any(v is not None for v in values):
            values = [_number(r.get(record_key)) for r in records.values() if isinstance(r, dict)]
        return _mean([v for v in values if v is not None])

    accuracy = _field_mean(accuracy_records, "accuracyScore", "score")
    quality = _field_mean(quality_records, "qualityScore", "score")
    overall_values = [_number(s.get("overallScore")) for s in field_summaries.values()]
    overall = _mean([v for v in overall_values if v is not None])
    return DomainScores(
        accuracy=accuracy,
        quality=quality,
        overall=overall,
        user_rating=_mean(ratings),
        field_ratings=field_ratings,
    )


@dataclass(frozen=True)
class EvaluatorSubmission:
    """One evaluator's archived scores for one paper."""

    paper_token: str
    evaluator_id: str
    expertise_weight: float
    timestamp: Optional[str]
    domains: Dict[str, DomainScores]

    @classmethod
    def from_archival_record(cls, record: Any) -> Optional["EvaluatorSubmission"]:
        """Build a submission from an archival payload. None when malformed."""
        if not isinstance(record, dict):
            logger.warning(f"Skipping archival record of type {type(record).__name__}")
            return None
        metrics = record.get("evaluationMetrics")
        token = record.get("paperId") or record.get("token")
        if not isinstance(metrics, dict) or not isinstance(token, str) or not token:
            logger.warning(f"Skipping malformed archival record (token={record.get('token')!r})")
            return None

        user_info = record.get("userInfo") if isinstance(record.get("userInfo"), dict) else {}
        domains = {}
        for domain in DOMAINS:
            scores = _domain_scores(metrics, domain)
            if scores is not None:
                domains[domain] = scores

        return cls(
            paper_token=token,
            evaluator_id=str(user_info.get("email") or record.get("evaluatorId") or "unknown"),
            expertise_weight=resolve_expertise_weight(user_info),
            timestamp=record.get("timestamp") if isinstance(record.get("timestamp"), str) else None,
            domains=domains,
        )

    @property
    def overall_score(self) -> Optional[float]:
        """Mean of the positive per-domain overall scores."""
        values = [s.overall for s in self.domains.values() if s.overall is not None and s.overall > 0]
        return _mean(values)


def submissions_from_records(records: Iterable[Any]) -> List[EvaluatorSubmission]:
    submissions = []
    for record in records:
        submission = EvaluatorSubmission.from_archival_record(record)
        if submission is not None:
            submissions.append(submission)
    return submissions


def _stats_dict(stats: Optional[ScoreStats]) -> Optional[Dict[str, Any]]:
    return stats.to_dict() if stats is not None else None


@dataclass(frozen=True)
class DomainAggregate:
    accuracy_scores: Optional[ScoreStats]
    quality_scores: Optional[ScoreStats]
    scores: Optional[ScoreStats]
    user_ratings: Optional[ScoreStats]
    outliers: List[Dict[str, Any]] = field(default_factory=list)

    def stats_for(self, score_type: str) -> Optional[ScoreStats]:
        if score_type == "accuracy":
            return self.accuracy_scores or self.scores
        if score_type == "quality":
            return self.quality_scores
        return self.scores

    def to_dict(self) -> Dict[str, Any]:
        return {
            "accuracy_scores": _stats_dict(self.accuracy_scores),
            "quality_scores": _stats_dict(self.quality_scores),
            "scores": _stats_dict(self.scores),
            "user_ratings": _stats_dict(self.user_ratings),
            "outliers": list(self.outliers),
        }


@dataclass(frozen=True)
class AggregatedPaper:
    token: str
    evaluators: List[Dict[str, Any]]
    domains: Dict[str, DomainAggregate]

    @property
    def evaluator_count(self) -> int:
        return len(self.evaluators)

    @property
    def mean_expertise_weight(self) -> float:
        weights = [e["expertise_weight"] for e in self.evaluators]
        return sum(weights) / len(weights) if weights else 1.0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "token": self.token,
            "evaluators": list(self.evaluators),
            "domains": {name: aggregate.to_dict() for name, aggregate in self.domains.items()},
        }


@dataclass(frozen=True)
class CorrelationMatrix:
    """Symmetric domain-by-domain correlation with the pair counts behind it."""

    domains: Tuple[str, ...]
    values: Dict[Tuple[str, str], Optional[float]]
    counts: Dict[Tuple[str, str], int]

    def get(self, a: str, b: str) -> Optional[float]:
        return self.values.get((a, b))

    def uninformative_pairs(self) -> List[Tuple[str, str]]:
        """Off-diagonal pairs whose coefficient rests on exactly two papers."""
        return [(a, b) for a, b in combinations(self.domains, 2) if self.counts.get((a, b)) == 2]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "domains": list(self.domains),
            "matrix": {a: {b: self.values.get((a, b)) for b in self.domains} for a in self.domains},
            "counts": {a: {b: self.counts.get((a, b), 0) for b in self.domains} for a in self.domains},
            "uninformative_pairs": [list(pair) for pair in self.uninformative_pairs()],
        }


@dataclass(frozen=True)
class WeightingReport:
    mode: str
    score_type: str
    domains: Dict[str, ExpertiseImpact]
    overall: ExpertiseImpact
    has_multiple_evaluations: bool = False
    papers_with_multiple: int = 0

    def to_dict(self) -> Dict[str, Any]:
        data = {
            "mode": self.mode,
            "score_type": self.score_type,
            "domains": {name: impact.to_dict() for name, impact in self.domains.items()},
            "overall": self.overall.to_dict(),
        }
        if self.mode == "within_paper":
            data["has_multiple_evaluations"] = self.has_multiple_evaluations
            data["papers_with_multiple"] = self.papers_with_multiple
        return data


@dataclass(frozen=True)
class CrossPaperReport:
    paper_count: int
    evaluation_count: int
    papers: Dict[str, AggregatedPaper]
    descriptive_stats: Dict[str, Any]
    buckets: Dict[str, Dict[str, Dict[str, int]]]
    correlations: Dict[str, CorrelationMatrix]
    quality_vs_accuracy: Dict[str, Any]
    within_paper: Dict[str, WeightingReport]
    cross_paper: Dict[str, WeightingReport]
    temporal: Dict[str, Any]
    disagreements: List[Dict[str, Any]]
    evaluators: Dict[str, Dict[str, Any]]
    reliability: Dict[str, InterRaterReliability] = field(default_factory=dict)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "paper_count": self.paper_count,
            "evaluation_count": self.evaluation_count,
            "papers": {token: paper.to_dict() for token, paper in self.papers.items()},
            "descriptive_stats": self.descriptive_stats,
            "buckets": self.buckets,
            "correlations": {name: matrix.to_dict() for name, matrix in self.correlations.items()},
            "quality_vs_accuracy": self.quality_vs_accuracy,
            "expertise_weighting": {
                "within_paper": {name: report.to_dict() for name, report in self.within_paper.items()},
                "cross_paper": {name: report.to_dict() for name, report in self.cross_paper.items()},
            },
            "temporal": self.temporal,
            "disagreements": list(self.disagreements),
            "evaluators": self.evaluators,
            "inter_rater_reliability": {token: item.to_dict() for token, item in self.reliability.items()},
        }


def _empty_stats_dict() -> Dict[str, Any]:
    return {"mean": None, "std": None, "min": None, "max": None, "median": None, "count": 0}


class CrossPaperAggregationService:
    """Cross-paper and cross-evaluator analysis of archived evaluations.

    Stateless: every method derives its result from its arguments, so
    repeated calls with the same input give the same output.

    Args:
        aggregation_config: Optional ``AggregationConfig`` overriding
            thresholds, the moving-average window and tolerances
    """

    def __init__(self, aggregation_config=None):
        self.high_threshold = getattr(aggregation_config, "high_threshold", HIGH_THRESHOLD)
        self.partial_threshold = getattr(aggregation_config, "partial_threshold", PARTIAL_THRESHOLD)
        self.window = getattr(aggregation_config, "moving_average_window", DEFAULT_WINDOW)
        self.tolerance = getattr(aggregation_config, "minimal_effect_tolerance", MINIMAL_EFFECT_TOLERANCE)
        self.disagreement_threshold = getattr(
            aggregation_config, "disagreement_threshold", DISAGREEMENT_THRESHOLD
        )

    # Per-paper aggregation

    def _aggregate_domain(self, domain: str, submissions: List[EvaluatorSubmission]) -> Optional[DomainAggregate]:
        include_zero = domain in ZERO_SCORE_DOMAINS
        series: Dict[str, Tuple[List[float], List[float]]] = {
            name: ([], []) for name in ("accuracy", "quality", "overall", "user_rating")
        }
        overall_ids: List[str] = []
        seen = False
        for submission in submissions:
            scores = submission.domains.get(domain)
            if scores is None:
                continue
            seen = True
            for name in ("accuracy", "quality", "overall"):
                value = scores.get(name)
                if value is None or (value <= 0 and not include_zero):
                    continue
                series[name][0].append(value)
                series[name][1].append(submission.expertise_weight)
                if name == "overall":
                    overall_ids.append(submission.evaluator_id)
            if scores.user_rating is not None:
                series["user_rating"][0].append(scores.user_rating)
                series["user_rating"][1].append(submission.expertise_weight)

        if not seen:
            return None

        overall_values = series["overall"][0]
        outliers = [
            dict(outlier, evaluator_id=overall_ids[outlier["index"]])
            for outlier in detect_outliers(overall_values)
        ]
        return DomainAggregate(
            accuracy_scores=compute_stats(*series["accuracy"]),
            quality_scores=compute_stats(*series["quality"]),
            scores=compute_stats(*series["overall"]),
            user_ratings=compute_stats(*series["user_rating"]),
            outliers=outliers,
        )

    def aggregate_papers(self, submissions: Iterable[EvaluatorSubmission]) -> Dict[str, AggregatedPaper]:
        by_paper: Dict[str, List[EvaluatorSubmission]] = {}
        for submission in submissions:
            by_paper.setdefault(submission.paper_token, []).append(submission)

        papers = {}
        for token in sorted(by_paper):
            group = by_paper[token]
            domains = {}
            for domain in DOMAINS:
                aggregate = self._aggregate_domain(domain, group)
                if aggregate is not None:
                    domains[domain] = aggregate
            papers[token] = AggregatedPaper(
                token=token,
                evaluators=[
                    {
                        "id": s.evaluator_id,
                        "expertise_weight": s.expertise_weight,
                        "tier": expertise_tier(s.expertise_weight),
                        "timestamp": s.timestamp,
                    }
                    for s in group
                ],
                domains=domains,
            )
        logger.info(f"Aggregated {sum(len(g) for g in by_paper.values())} evaluations over {len(papers)} papers")
        return papers

    # Per-paper values

    @staticmethod
    def _paper_value(paper: AggregatedPaper, domain: str, score_type: str) -> Optional[float]:
        aggregate = paper.domains.get(domain)
        if aggregate is None:
            return None
        stats = aggregate.stats_for(score_type)
        if stats is None:
            return None
        if score_type == "quality" and stats.mean <= 0:
            return None
        return stats.mean

    def _domain_values(self, papers: Mapping[str, AggregatedPaper], domain: str, score_type: str) -> List[float]:
        values = []
        for paper in papers.values():
            value = self._paper_value(paper, domain, score_type)
            if value is not None:
                values.append(value)
        return values

    # Descriptive statistics and buckets

    def descriptive_stats(self, papers: Mapping[str, AggregatedPaper]) -> Dict[str, Any]:
        result: Dict[str, Any] = {}
        everything: Dict[str, List[float]] = {"accuracy": [], "quality": []}
        for domain in DOMAINS:
            result[domain] = {}
            for score_type in ("accuracy", "quality"):
                values = self._domain_values(papers, domain, score_type)
                everything[score_type].extend(values)
                stats = compute_stats(values)
                result[domain][score_type] = self._public_stats(stats)
        result["overall"] = {
            score_type: self._public_stats(compute_stats(values)) for score_type, values in everything.items()
        }
        return result

    @staticmethod
    def _public_stats(stats: Optional[ScoreStats]) -> Dict[str, Any]:
        if stats is None:
            return _empty_stats_dict()
        data = stats.to_dict()
        data.pop("weighted_mean")
        return data

    def categorize(self, score: float) -> str:
        return categorize(score, self.high_threshold, self.partial_threshold)

    def bucket_counts(self, papers: Mapping[str, AggregatedPaper], score_type: str = "accuracy") -> Dict[str, Dict[str, int]]:
        result = {}
        for domain in DOMAINS:
            counts = {"high": 0, "partial": 0, "low": 0}
            for value in self._domain_values(papers, domain, score_type):
                counts[self.categorize(value)] += 1
            result[domain] = counts
        return result

    # Correlations

    def correlation_matrix(self, papers: Mapping[str, AggregatedPaper], score_type: str = "accuracy") -> CorrelationMatrix:
        per_paper = [
            {domain: self._paper_value(paper, domain, score_type) for domain in DOMAINS}
            for paper in papers.values()
        ]
        values: Dict[Tuple[str, str], Optional[float]] = {}
        counts: Dict[Tuple[str, str], int] = {}
        for a in DOMAINS:
            values[(a, a)] = 1.0
            counts[(a, a)] = sum(1 for row in per_paper if row[a] is not None)
        for a, b in combinations(DOMAINS, 2):
            pairs = [(row[a], row[b]) for row in per_paper if row[a] is not None and row[b] is not None]
            r = pearson([p[0] for p in pairs], [p[1] for p in pairs])
            values[(a, b)] = values[(b, a)] = r
            counts[(a, b)] = counts[(b, a)] = len(pairs)
        return CorrelationMatrix(domains=DOMAINS, values=values, counts=counts)

    def quality_vs_accuracy(self, papers: Mapping[str, AggregatedPaper]) -> Dict[str, Any]:
        """Per-domain correlation between a paper's accuracy and quality means."""
        result: Dict[str, Any] = {}
        for domain in DOMAINS:
            pairs = []
            for paper in papers.values():
                accuracy = self._paper_value(paper, domain, "accuracy")
                quality = self._paper_value(paper, domain, "quality")
                if accuracy is not None and quality is not None:
                    pairs.append((accuracy, quality))
            result[domain] = {
                "correlation": pearson([p[0] for p in pairs], [p[1] for p in pairs]),
                "count": len(pairs),
                "uninformative": len(pairs) == 2,
            }
        return result

    # Expertise weighting

    def within_paper_weighting(self, papers: Mapping[str, AggregatedPaper], score_type: str = "accuracy") -> WeightingReport:
        """Raw vs expertise-weighted mean of evaluators on the same paper.

        Has no effect unless some paper has several evaluators.
        """
        impacts = {}
        for domain in DOMAINS:
            raw, weighted = [], []
            for paper in papers.values():
                aggregate = paper.domains.get(domain)
                stats = aggregate.stats_for(score_type) if aggregate else None
                if stats is None or (score_type == "quality" and stats.mean <= 0):
                    continue
                raw.append(stats.mean)
                weighted.append(stats.weighted_mean)
            if raw:
                impacts[domain] = ExpertiseImpact.build(_mean(raw), _mean(weighted), len(raw), self.tolerance)
            else:
                impacts[domain] = ExpertiseImpact.empty()

        papers_with_multiple = sum(1 for paper in papers.values() if paper.evaluator_count > 1)
        return WeightingReport(
            mode="within_paper",
            score_type=score_type,
            domains=impacts,
            overall=overall_impact(impacts.values(), self.tolerance),
            has_multiple_evaluations=papers_with_multiple > 0,
            papers_with_multiple=papers_with_multiple,
        )

    def cross_paper_weighting(self, papers: Mapping[str, AggregatedPaper], score_type: str = "accuracy") -> WeightingReport:
        """Equal-weight vs expertise-weighted mean across papers.

        Each paper counts with the mean expertise weight of its evaluators.
        """
        impacts = {}
        for domain in DOMAINS:
            scores, weights = [], []
            for paper in papers.values():
                value = self._paper_value(paper, domain, score_type)
                if value is None:
                    continue
                scores.append(value)
                weights.append(paper.mean_expertise_weight)
            if scores:
                raw = float(np.mean(scores))
                weighted = float(np.average(scores, weights=weights)) if sum(weights) > 0 else raw
                impacts[domain] = ExpertiseImpact.build(raw, weighted, len(scores), self.tolerance)
            else:
                impacts[domain] = ExpertiseImpact.empty()
        return WeightingReport(
            mode="cross_paper",
            score_type=score_type,
            domains=impacts,
            overall=overall_impact(impacts.values(), self.tolerance),
        )

    # Time and disagreement

    def temporal_analysis(self, submissions: Iterable[EvaluatorSubmission]) -> Dict[str, Any]:
        observations = [(s.timestamp, s.overall_score) for s in submissions]
        return temporal_summary(observations, self.window)

    def detect_disagreements(self, submissions: Iterable[EvaluatorSubmission]) -> List[Dict[str, Any]]:
        """Papers and domains where evaluators' overall scores spread beyond the threshold."""
        by_paper: Dict[str, List[EvaluatorSubmission]] = {}
        for submission in submissions:
            by_paper.setdefault(submission.paper_token, []).append(submission)

        flagged = []
        for token in sorted(by_paper):
            for domain in DOMAINS:
                entries = [
                    (s.evaluator_id, s.domains[domain].overall)
                    for s in by_paper[token]
                    if domain in s.domains and s.domains[domain].overall is not None
                ]
                if len(entries) < 2:
                    continue
                spread = float(np.std([score for _, score in entries]))
                if spread > self.disagreement_threshold:
                    flagged.append(
                        {
                            "paper": token,
                            "domain": domain,
                            "std": spread,
                            "scores": {evaluator: score for evaluator, score in entries},
                        }
                    )
        return flagged

    def inter_rater_reliability(self, submissions: Iterable[EvaluatorSubmission]) -> Dict[str, InterRaterReliability]:
        """Agreement of field ratings per paper with two or more evaluators.

        Fields are keyed ``domain.field``; unrated fields are left out.
        """
        by_paper: Dict[str, List[EvaluatorSubmission]] = {}
        for submission in submissions:
            by_paper.setdefault(submission.paper_token, []).append(submission)

        result = {}
        for token in sorted(by_paper):
            ratings_by_evaluator = [
                {
                    f"{domain}.{name}": rating
                    for domain, scores in submission.domains.items()
                    for name, rating in scores.field_ratings.items()
                }
                for submission in by_paper[token]
            ]
            reliability = inter_rater_reliability(ratings_by_evaluator)
            if reliability is not None:
                result[token] = reliability
        return result

    def evaluator_summary(self, submissions: Iterable[EvaluatorSubmission]) -> Dict[str, Dict[str, Any]]:
        summary: Dict[str, Dict[str, Any]] = {}
        for submission in submissions:
            entry = summary.setdefault(
                submission.evaluator_id,
                {
                    "expertise_weight": submission.expertise_weight,
                    "tier": expertise_tier(submission.expertise_weight),
                    "evaluations": 0,
                },
            )
            entry["evaluations"] += 1
        return summary

    def analyze(self, submissions: Iterable[EvaluatorSubmission]) -> CrossPaperReport:
        submissions = list(submissions)
        papers = self.aggregate_papers(submissions)
        return CrossPaperReport(
            paper_count=len(papers),
            evaluation_count=len(submissions),
            papers=papers,
            descriptive_stats=self.descriptive_stats(papers),
            buckets={score_type: self.bucket_counts(papers, score_type) for score_type in ("accuracy", "quality")},
            correlations={score_type: self.correlation_matrix(papers, score_type) for score_type in SCORE_TYPES},
            quality_vs_accuracy=self.quality_vs_accuracy(papers),
            within_paper={
                score_type: self.within_paper_weighting(papers, score_type) for score_type in ("accuracy", "quality")
            },
            cross_paper={
                score_type: self.cross_paper_weighting(papers, score_type) for score_type in ("accuracy", "quality")
            },
            temporal=self.temporal_analysis(submissions),
            disagreements=self.detect_disagreements(submissions),
            evaluators=self.evaluator_summary(submissions),
            reliability=self.inter_rater_reliability(submissions),
        )

    def analyze_records(self, records: Iterable[Any]) -> CrossPaperReport:
        """``analyze`` over raw archival records, skipping malformed ones."""
        return self.analyze(submissions_from_records(records))
