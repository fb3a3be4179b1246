"""Tests for completeness, consistency and validity scoring."""

from datetime import datetime

import pytest

from paper_eval.metrics.models import FieldPair, QualityResult
from paper_eval.metrics.quality_dimensions import QualityDimensionScorer, parse_date, parse_number


@pytest.fixture
def scorer():
    return QualityDimensionScorer()


# Parsing helpers

def test_parse_date_formats():
    assert parse_date("2021-03-04") == (datetime(2021, 3, 4), "iso")
    assert parse_date("04-03-2021") == (datetime(2021, 3, 4), "dmy-dash")
    assert parse_date("04/03/2021") == (datetime(2021, 3, 4), "dmy-slash")
    assert parse_date(2021) == (datetime(2021, 1, 1), "year")
    assert parse_date("2021-02-30") == (None, "iso")
    assert parse_date("March 2021") == (None, None)


def test_parse_number():
    assert parse_number("1,234.5") == 1234.5
    assert parse_number(7) == 7.0
    assert parse_number("seven") is None
    assert parse_number(True) is None


# Completeness

def test_completeness_full_and_missing(scorer):
    assert scorer.score(FieldPair("Title", "Title")).completeness.score == 1.0

    missing = scorer.score(FieldPair("Title", ""))
    assert missing.completeness.score == 0.0
    assert missing.completeness.issues == ["missing value"]


def test_completeness_list_items(scorer):
    result = scorer.score(FieldPair(["A. Smith", "B. Jones"], ["a. smith"], "list"))
    assert result.completeness.score == 0.5
    assert result.completeness.issues == ["missing item 'B. Jones'"]


def test_completeness_structured_reference(scorer):
    result = scorer.score(FieldPair({"name": "x", "unit": "kg"}, {"name": "x"}))
    assert result.completeness.score == 0.5
    assert "missing required sub-field 'unit'" in result.completeness.issues


def test_completeness_truncated_text(scorer):
    result = scorer.score(FieldPair("Graph Neural Networks", "Graph Neural Network"))
    assert result.completeness.score == pytest.approx(20 / 21)


# Consistency

def test_consistency_clean_value(scorer):
    result = scorer.score(FieldPair("Title", "A clean title"))
    assert result.consistency.score == 1.0
    assert result.consistency.issues == []


def test_consistency_flags_whitespace_and_brackets(scorer):
    result = scorer.score(FieldPair("Title (v2)", " Title  (v2 "))
    assert result.consistency.score == pytest.approx(0.25)
    assert result.consistency.issues == [
        "inconsistent formatting: leading or trailing whitespace",
        "inconsistent formatting: repeated whitespace",
        "inconsistent formatting: unbalanced brackets",
    ]


def test_consistency_mixed_author_formats(scorer):
    result = scorer.score(FieldPair(["Smith, John", "Jane Doe"], ["Smith, John", "Jane Doe"], "list"))
    assert "inconsistent formatting: mixed name formats" in result.consistency.issues
    assert result.consistency.score < 1.0


def test_consistency_duplicate_items(scorer):
    result = scorer.score(FieldPair("A; B", "A; B; a", "list"))
    assert "inconsistent formatting: duplicate list items" in result.consistency.issues


def test_consistency_mixed_date_formats(scorer):
    result = scorer.score(FieldPair("2021-03-04", "2021-03-04; 05/03/2021", "date"))
    assert "inconsistent formatting: mixed date formats" in result.consistency.issues


# Validity

@pytest.mark.parametrize(
    "field_type, value, expected",
    [
        ("doi", "10.1145/3292500.3330919", 1.0),
        ("doi", "doi: 10.1145 / broken", 0.5),
        ("doi", "not a doi", 0.0),
        ("date", "2021-03-04", 1.0),
        ("date", "2021-02-30", 0.5),
        ("date", "1850", 0.5),
        ("date", "sometime", 0.0),
        ("number", "42", 1.0),
        ("number", "forty two", 0.0),
        ("resource", "R12345", 1.0),
        ("resource", "https://orkg.org/resource/R1", 1.0),
        ("resource", "Machine Learning", 0.5),
        ("list", ["A", "B"], 1.0),
        ("list", "A; B", 0.5),
        ("text", "anything", 1.0),
        ("text", 12, 0.5),
    ],
)
def test_validity_by_type(scorer, field_type, value, expected):
    result = scorer.score(FieldPair(value, value, field_type))
    assert result.validity.score == expected


def test_validity_empty_value(scorer):
    result = scorer.score(FieldPair("x", None))
    assert result.validity.score == 0.0
    assert result.validity.issues == ["no value to validate"]


def test_validity_number_range_rules():
    scorer = QualityDimensionScorer(validity_rules={"number": {"min": 0, "max": 100}})
    assert scorer.score(FieldPair("50", "50", "number")).validity.score == 1.0
    assert scorer.score(FieldPair("500", "500", "number")).validity.score == 0.5


# Weighted score

def test_weighted_overall_uses_default_weights(scorer):
    result = scorer.score(FieldPair("Title", ""))
    # completeness 0, consistency 1 (nothing to check), validity 0
    assert result.automated_overall_score == pytest.approx(0.3)
    assert result.weights == pytest.approx({"completeness": 0.4, "consistency": 0.3, "validity": 0.3})


def test_weights_restricted_to_listed_dimensions():
    scorer = QualityDimensionScorer({"default": {"validity": 1.0}})
    result = scorer.score(FieldPair("x", "not a doi", "doi"))
    assert result.automated_overall_score == 0.0


def test_issues_follow_dimension_order(scorer):
    result = scorer.score(FieldPair("10.1000/abc", " bad", "doi"))
    assert result.issues == result.completeness.issues + result.consistency.issues + result.validity.issues


def test_internal_failure_falls_back(scorer, monkeypatch):
    def _boom(pair):
        raise RuntimeError("boom")

    monkeypatch.setattr("paper_eval.metrics.quality_dimensions._completeness", _boom)
    outcome = scorer.score_with_outcome(FieldPair("a", "b"))

    assert outcome.value == QualityResult.fallback()
    assert outcome.defect.error_type == "internal_error"
    assert outcome.defect.stage == "quality"
