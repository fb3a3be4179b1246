"""Tests for cross-paper and cross-evaluator aggregation."""

import pytest

from paper_eval.aggregation.cross_paper import (
    CrossPaperAggregationService,
    EvaluatorSubmission,
    submissions_from_records,
)
from paper_eval.config_schema import AggregationConfig


def _record(token, email, weight, domains, timestamp="2024-03-01T12:00:00Z"):
    """Archival record with a domain roll-up of (accuracy, quality, overall) per domain."""
    return {
        "token": token,
        "timestamp": timestamp,
        "userInfo": {"email": email, "expertiseWeight": weight},
        "evaluationMetrics": {
            "accuracy": {},
            "quality": {},
            "overall": {
                domain: {"overall": {"accuracyScore": a, "qualityScore": q, "overallScore": o}}
                for domain, (a, q, o) in domains.items()
            },
        },
    }


@pytest.fixture
def service():
    return CrossPaperAggregationService()


@pytest.fixture
def two_papers():
    return submissions_from_records(
        [
            _record("paper-a", "ann@example.org", 2.0, {"metadata": (0.9, 0.7, 0.8), "template": (0.8, 0.6, 0.7)}),
            _record("paper-b", "bob@example.org", 1.0, {"metadata": (0.5, 0.9, 0.7), "template": (0.4, 0.8, 0.6)}),
        ]
    )


@pytest.fixture
def shared_paper():
    return submissions_from_records(
        [
            _record("paper-c", "ann@example.org", 3.0, {"metadata": (0.9, 0.8, 0.9)}, "2024-03-01T09:00:00Z"),
            _record("paper-c", "bob@example.org", 1.0, {"metadata": (0.3, 0.6, 0.3)}, "2024-03-02T09:00:00Z"),
        ]
    )


# Submissions

def test_submission_from_record_reads_roll_up():
    submission = EvaluatorSubmission.from_archival_record(
        _record("paper-a", "ann@example.org", 2.0, {"metadata": (0.9, 0.7, 0.8)})
    )
    assert submission.paper_token == "paper-a"
    assert submission.evaluator_id == "ann@example.org"
    assert submission.expertise_weight == 2.0
    assert submission.domains["metadata"].accuracy == 0.9
    assert submission.overall_score == pytest.approx(0.8)


def test_submission_prefers_paper_id():
    record = _record("session-token", "ann@example.org", 1.0, {"metadata": (0.5, 0.5, 0.5)})
    record["paperId"] = "10.1000/xyz"
    assert EvaluatorSubmission.from_archival_record(record).paper_token == "10.1000/xyz"


def test_submission_averages_field_summaries_without_roll_up():
    record = {
        "token": "paper-d",
        "userInfo": {},
        "evaluationMetrics": {
            "accuracy": {"template": {"name": {"score": 0.5}}},
            "quality": {},
            "overall": {
                "metadata": {
                    "title": {"accuracyScore": 0.8, "qualityScore": 0.6, "overallScore": 0.7, "rating": 4},
                    "doi": {"accuracyScore": 0.4, "qualityScore": 1.0, "overallScore": 0.7, "rating": 0},
                },
            },
        },
    }
    submission = EvaluatorSubmission.from_archival_record(record)

    metadata = submission.domains["metadata"]
    assert metadata.accuracy == pytest.approx(0.6)
    assert metadata.quality == pytest.approx(0.8)
    assert metadata.user_rating == 4.0
    assert submission.domains["template"].accuracy == 0.5
    assert submission.domains["template"].overall is None
    assert submission.evaluator_id == "unknown"


def test_malformed_records_are_skipped():
    valid = _record("paper-a", "ann@example.org", 1.0, {"metadata": (0.5, 0.5, 0.5)})
    submissions = submissions_from_records(
        [None, "junk", {"token": "paper-x"}, {"evaluationMetrics": {}}, valid]
    )
    assert [s.paper_token for s in submissions] == ["paper-a"]


def test_non_mapping_metric_levels_are_skipped(service):
    record = {
        "token": "paper-e",
        "userInfo": {"email": "ann@example.org"},
        "evaluationMetrics": {"overall": [], "accuracy": "junk", "quality": {}},
    }
    submission = EvaluatorSubmission.from_archival_record(record)
    assert submission.domains == {}

    report = service.analyze_records([record])
    assert report.evaluation_count == 1
    assert report.papers["paper-e"].domains == {}


# Per-paper aggregation

def test_aggregate_papers_groups_by_token(service, two_papers, shared_paper):
    papers = service.aggregate_papers(two_papers + shared_paper)

    assert list(papers) == ["paper-a", "paper-b", "paper-c"]
    assert papers["paper-c"].evaluator_count == 2
    assert papers["paper-c"].mean_expertise_weight == 2.0
    assert papers["paper-c"].evaluators[0]["tier"] == "senior"
    stats = papers["paper-c"].domains["metadata"].accuracy_scores
    assert stats.mean == pytest.approx(0.6)
    assert stats.weighted_mean == pytest.approx(0.75)


def test_zero_scores_only_count_in_zero_score_domains(service):
    submissions = submissions_from_records(
        [
            _record("p", "a@x", 1.0, {"metadata": (0.0, 0.5, 0.5), "research_problem": (0.0, 0.5, 0.5)}),
            _record("p", "b@x", 1.0, {"metadata": (0.8, 0.5, 0.5), "research_problem": (0.8, 0.5, 0.5)}),
        ]
    )
    paper = service.aggregate_papers(submissions)["p"]

    assert paper.domains["metadata"].accuracy_scores.count == 1
    assert paper.domains["research_problem"].accuracy_scores.count == 2
    assert paper.domains["research_problem"].accuracy_scores.mean == pytest.approx(0.4)


# Correlations

def test_two_papers_correlate_perfectly_and_are_flagged(service, two_papers):
    matrix = service.correlation_matrix(service.aggregate_papers(two_papers))

    assert matrix.get("metadata", "template") == pytest.approx(1.0)
    assert ("metadata", "template") in matrix.uninformative_pairs()


def test_correlation_matrix_is_symmetric_with_unit_diagonal(service, two_papers):
    matrix = service.correlation_matrix(service.aggregate_papers(two_papers), "quality")

    for a in matrix.domains:
        assert matrix.get(a, a) == 1.0
        for b in matrix.domains:
            assert matrix.get(a, b) == matrix.get(b, a)
    assert matrix.get("metadata", "content") is None
    assert matrix.counts[("metadata", "content")] == 0


def test_quality_vs_accuracy(service, two_papers):
    result = service.quality_vs_accuracy(service.aggregate_papers(two_papers))

    assert result["metadata"]["count"] == 2
    assert result["metadata"]["correlation"] == pytest.approx(-1.0)
    assert result["metadata"]["uninformative"] is True
    assert result["content"] == {"correlation": None, "count": 0, "uninformative": False}


# Expertise weighting

def test_single_evaluator_papers_have_minimal_within_paper_effect(service, two_papers):
    report = service.within_paper_weighting(service.aggregate_papers(two_papers))

    assert report.has_multiple_evaluations is False
    assert report.papers_with_multiple == 0
    assert report.overall.minimal_effect is True
    assert report.overall.difference == 0.0
    assert report.domains["metadata"].difference == 0.0


def test_within_paper_weighting_with_shared_paper(service, shared_paper):
    report = service.within_paper_weighting(service.aggregate_papers(shared_paper))

    assert report.has_multiple_evaluations is True
    assert report.papers_with_multiple == 1
    assert report.domains["metadata"].difference == pytest.approx(0.15)
    assert report.to_dict()["mode"] == "within_paper"


def test_cross_paper_weighting_uses_paper_weights(service, two_papers):
    report = service.cross_paper_weighting(service.aggregate_papers(two_papers))

    metadata = report.domains["metadata"]
    assert metadata.raw_average == pytest.approx(0.7)
    assert metadata.weighted_average == pytest.approx(2.3 / 3)
    assert metadata.minimal_effect is False
    assert "has_multiple_evaluations" not in report.to_dict()


# Statistics, buckets and disagreement

def test_descriptive_stats_and_buckets(service, two_papers):
    papers = service.aggregate_papers(two_papers)
    stats = service.descriptive_stats(papers)

    assert stats["metadata"]["accuracy"]["count"] == 2
    assert stats["metadata"]["accuracy"]["mean"] == pytest.approx(0.7)
    assert "weighted_mean" not in stats["metadata"]["accuracy"]
    assert stats["content"]["accuracy"]["count"] == 0
    assert stats["overall"]["accuracy"]["count"] == 4
    assert service.bucket_counts(papers)["metadata"] == {"high": 1, "partial": 1, "low": 0}
    assert service.bucket_counts(papers)["template"] == {"high": 1, "partial": 0, "low": 1}


def test_configured_thresholds():
    service = CrossPaperAggregationService(AggregationConfig(high_threshold=0.95, partial_threshold=0.85))
    assert service.categorize(0.9) == "partial"
    assert service.categorize(0.8) == "low"


def test_detect_disagreements(service, shared_paper, two_papers):
    flagged = service.detect_disagreements(shared_paper + two_papers)

    assert len(flagged) == 1
    assert flagged[0]["paper"] == "paper-c"
    assert flagged[0]["domain"] == "metadata"
    assert flagged[0]["std"] == pytest.approx(0.3)
    assert flagged[0]["scores"] == {"ann@example.org": 0.9, "bob@example.org": 0.3}


# Inter-rater reliability

def _rated_record(token, email, ratings):
    """Archival record with metadata field ratings and no roll-up."""
    fields = {
        name: {"rating": rating, "accuracyScore": 0.5, "qualityScore": 0.5, "overallScore": 0.5}
        for name, rating in ratings.items()
    }
    return {
        "token": token,
        "userInfo": {"email": email},
        "evaluationMetrics": {"accuracy": {}, "quality": {}, "overall": {"metadata": fields}},
    }


def test_field_ratings_are_read_from_summaries():
    submission = EvaluatorSubmission.from_archival_record(
        _rated_record("paper-r", "ann@example.org", {"title": 5, "authors": 0})
    )
    assert submission.domains["metadata"].field_ratings == {"title": 5.0}


def test_inter_rater_reliability_for_two_evaluators(service):
    submissions = submissions_from_records(
        [
            _rated_record("paper-r", "ann@example.org", {"title": 5, "authors": 4, "doi": 3}),
            _rated_record("paper-r", "bob@example.org", {"title": 5, "authors": 4, "doi": 2}),
            _rated_record("paper-s", "ann@example.org", {"title": 4}),
        ]
    )
    reliability = service.inter_rater_reliability(submissions)

    assert list(reliability) == ["paper-r"]
    paper = reliability["paper-r"]
    assert paper.evaluator_count == 2
    assert paper.fields_analyzed == 3
    assert paper.agreement_percentage == 100.0
    assert paper.consensus_level == "high"
    assert paper.fleiss_kappa == pytest.approx(7 / 13)
    assert paper.kappa_interpretation == "moderate"
    assert paper.cohen_kappa == pytest.approx(4 / 7)
    assert paper.cronbach_alpha == pytest.approx(0.0)
    assert set(paper.field_agreement) == {"metadata.title", "metadata.authors", "metadata.doi"}


def test_cohen_kappa_only_for_evaluator_pairs(service):
    submissions = submissions_from_records(
        [
            _rated_record("paper-r", "ann@example.org", {"title": 5, "authors": 1}),
            _rated_record("paper-r", "bob@example.org", {"title": 5, "authors": 5}),
            _rated_record("paper-r", "cat@example.org", {"title": 4}),
        ]
    )
    paper = service.inter_rater_reliability(submissions)["paper-r"]

    assert paper.evaluator_count == 3
    assert paper.cohen_kappa is None
    # only the title is rated by everyone, one item gives no alpha
    assert paper.cronbach_alpha is None
    assert paper.field_agreement["metadata.authors"] == 0.0
    assert paper.agreement_percentage == pytest.approx(50.0)
    assert paper.consensus_level == "low"


def test_report_includes_reliability(service, two_papers):
    records = [
        _rated_record("paper-r", "ann@example.org", {"title": 5}),
        _rated_record("paper-r", "bob@example.org", {"title": 5}),
    ]
    data = service.analyze(two_papers + submissions_from_records(records)).to_dict()

    assert list(data["inter_rater_reliability"]) == ["paper-r"]
    assert data["inter_rater_reliability"]["paper-r"]["fleiss_kappa"] == 1.0


# Full report

def test_analyze_report(service, two_papers, shared_paper):
    report = service.analyze(two_papers + shared_paper)

    assert report.paper_count == 3
    assert report.evaluation_count == 4
    assert report.evaluators["ann@example.org"]["evaluations"] == 2
    assert report.temporal["start_date"] == "2024-03-01"
    assert report.temporal["end_date"] == "2024-03-02"
    data = report.to_dict()
    assert set(data["expertise_weighting"]) == {"within_paper", "cross_paper"}
    assert data["correlations"]["accuracy"]["matrix"]["metadata"]["metadata"] == 1.0


def test_analyze_is_idempotent(service, two_papers, shared_paper):
    records = two_papers + shared_paper
    assert service.analyze(records).to_dict() == service.analyze(records).to_dict()


def test_analyze_empty_input(service):
    report = service.analyze_records([])
    assert report.paper_count == 0
    assert report.within_paper["accuracy"].overall.minimal_effect is True
    assert report.temporal["timeline"] == []
