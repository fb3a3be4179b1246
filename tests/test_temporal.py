"""Tests for timelines, moving averages and trends."""

import pytest

from paper_eval.aggregation.temporal import (
    build_timeline,
    half_trend,
    moving_average,
    parse_timestamp,
    temporal_summary,
)

OBSERVATIONS = [
    ("2024-01-01T10:00:00Z", 0.4),
    ("2024-01-01T12:00:00Z", 0.6),
    ("2024-01-02T09:00:00", 0.0),
    ("not a date", 0.9),
    ("2024-01-03", 0.8),
]


def test_parse_timestamp():
    assert parse_timestamp("2024-01-01T10:00:00Z").tzinfo is not None
    assert parse_timestamp("2024-01-03").day == 3
    assert parse_timestamp("yesterday") is None
    assert parse_timestamp(None) is None


def test_build_timeline_groups_by_day():
    timeline = build_timeline(OBSERVATIONS)
    assert timeline == [
        {"date": "2024-01-01", "count": 2, "avg_score": pytest.approx(0.5)},
        {"date": "2024-01-02", "count": 1, "avg_score": 0.0},
        {"date": "2024-01-03", "count": 1, "avg_score": 0.8},
    ]


def test_moving_average_is_trailing():
    points = moving_average(build_timeline(OBSERVATIONS), window=3)
    assert [p["date"] for p in points] == ["2024-01-01", "2024-01-02", "2024-01-03"]
    assert [p["value"] for p in points] == pytest.approx([0.5, 0.25, 1.3 / 3])


def test_half_trend():
    trend = half_trend(build_timeline(OBSERVATIONS))
    assert trend["direction"] == "down"
    assert trend["percentage"] == pytest.approx(20.0)
    assert trend["first_half_average"] == pytest.approx(0.5)
    assert trend["second_half_average"] == pytest.approx(0.4)


def test_half_trend_needs_two_points():
    assert half_trend([{"date": "2024-01-01", "count": 1, "avg_score": 0.5}]) is None


def test_half_trend_from_zero_first_half():
    timeline = [
        {"date": "2024-01-01", "count": 1, "avg_score": 0.0},
        {"date": "2024-01-02", "count": 1, "avg_score": 0.9},
    ]
    trend = half_trend(timeline)
    assert trend["direction"] == "up"
    assert trend["percentage"] == 0.0
    assert trend["second_half_average"] == pytest.approx(0.9)


def test_temporal_summary():
    summary = temporal_summary(OBSERVATIONS)
    assert summary["start_date"] == "2024-01-01"
    assert summary["end_date"] == "2024-01-03"
    assert summary["linear_trend"]["slope"] == pytest.approx(0.15)
    assert summary["linear_trend"]["direction"] == "improving"


def test_temporal_summary_empty():
    summary = temporal_summary([])
    assert summary["timeline"] == []
    assert summary["trend"] is None
    assert summary["start_date"] is None
