"""Cross-paper aggregation of archived evaluations.

- Statistics: means, population std, Pearson, buckets, IQR outliers, trends
- Expertise: evaluator weights and their effect on averages
- Temporal: calendar-day timeline, moving average, half-split trend
- Reliability: agreement, Fleiss and Cohen kappa, Cronbach alpha per paper
- CrossPaperAggregationService: the full cross-paper report
"""

from .cross_paper import (
    DOMAINS,
    AggregatedPaper,
    CorrelationMatrix,
    CrossPaperAggregationService,
    CrossPaperReport,
    DomainAggregate,
    DomainScores,
    EvaluatorSubmission,
    WeightingReport,
    submissions_from_records,
)
from .expertise import ExpertiseImpact, expertise_tier, resolve_expertise_weight, weight_components
from .reliability import (
    InterRaterReliability,
    agreement_within_one,
    cohen_kappa,
    consensus_level,
    cronbach_alpha,
    fleiss_kappa,
    inter_rater_reliability,
    kappa_interpretation,
)
from .statistics import (
    ScoreStats,
    bucket_counts,
    categorize,
    compute_stats,
    detect_outliers,
    linear_trend,
    pearson,
    weighted_mean,
)
from .temporal import build_timeline, half_trend, moving_average, temporal_summary

__all__ = [
    # Service
    "DOMAINS",
    "CrossPaperAggregationService",
    "CrossPaperReport",
    "EvaluatorSubmission",
    "DomainScores",
    "AggregatedPaper",
    "DomainAggregate",
    "CorrelationMatrix",
    "WeightingReport",
    "submissions_from_records",
    # Expertise
    "ExpertiseImpact",
    "expertise_tier",
    "resolve_expertise_weight",
    "weight_components",
    # Reliability
    "InterRaterReliability",
    "inter_rater_reliability",
    "agreement_within_one",
    "consensus_level",
    "cohen_kappa",
    "fleiss_kappa",
    "cronbach_alpha",
    "kappa_interpretation",
    # Statistics
    "ScoreStats",
    "compute_stats",
    "weighted_mean",
    "pearson",
    "categorize",
    "bucket_counts",
    "detect_outliers",
    "linear_trend",
    # Temporal
    "build_timeline",
    "moving_average",
    "half_trend",
    "temporal_summary",
]
