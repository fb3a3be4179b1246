"""Score trends over time."""

from __future__ import annotations

import logging
from datetime import date, datetime
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .statistics import linear_trend

logger = logging.getLogger(__name__)

DEFAULT_WINDOW = 3


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse an ISO timestamp (``Z`` suffix allowed). None when unparseable."""
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if not isinstance(value, str) or not value.strip():
        return None
    text = value.strip()
    if text.endswith("Z"):
        text = text[:-1] + "+00:00"
    try:
        return datetime.fromisoformat(text)
    except ValueError:
        return None


def build_timeline(observations: Iterable[Tuple[Any, Optional[float]]]) -> List[Dict[str, Any]]:
    """Group ``(timestamp, score)`` observations by calendar day.

    ``count`` covers every evaluation of the day; ``avg_score`` averages the
    positive scores only (0.0 when the day has none).
    """
    days: Dict[str, List[Optional[float]]] = {}
    for timestamp, score in observations:
        parsed = parse_timestamp(timestamp)
        if parsed is None:
            logger.warning(f"Skipping evaluation with unparseable timestamp {timestamp!r}")
            continue
        days.setdefault(parsed.date().isoformat(), []).append(score)

    timeline = []
    for day in sorted(days):
        scores = [s for s in days[day] if isinstance(s, (int, float)) and s > 0]
        timeline.append(
            {
                "date": day,
                "count": len(days[day]),
                "avg_score": sum(scores) / len(scores) if scores else 0.0,
            }
        )
    return timeline


def moving_average(timeline: List[Dict[str, Any]], window: int = DEFAULT_WINDOW) -> List[Dict[str, Any]]:
    """Trailing moving average of ``avg_score``; early points use what is available."""
    points = []
    for index, point in enumerate(timeline):
        start = max(0, index - window + 1)
        chunk = timeline[start:index + 1]
        points.append({"date": point["date"], "value": sum(p["avg_score"] for p in chunk) / len(chunk)})
    return points


def half_trend(timeline: List[Dict[str, Any]]) -> Optional[Dict[str, Any]]:
    """Compare the first and second half of the timeline. None with fewer than 2 points.

    ``percentage`` is relative to the first half and 0 when that half averages 0.
    """
    if len(timeline) < 2:
        return None
    middle = len(timeline) // 2
    first = [p["avg_score"] for p in timeline[:middle]]
    second = [p["avg_score"] for p in timeline[middle:]]
    first_avg = sum(first) / len(first)
    second_avg = sum(second) / len(second)
    change = (second_avg - first_avg) / first_avg * 100 if first_avg != 0 else 0.0

    if second_avg > first_avg:
        direction = "up"
    elif second_avg < first_avg:
        direction = "down"
    else:
        direction = "flat"
    return {
        "direction": direction,
        "percentage": abs(change),
        "first_half_average": first_avg,
        "second_half_average": second_avg,
    }


def temporal_summary(
    observations: Iterable[Tuple[Any, Optional[float]]],
    window: int = DEFAULT_WINDOW,
) -> Dict[str, Any]:
    timeline = build_timeline(observations)
    return {
        "timeline": timeline,
        "moving_average": moving_average(timeline, window),
        "trend": half_trend(timeline),
        "linear_trend": linear_trend([p["avg_score"] for p in timeline]),
        "start_date": timeline[0]["date"] if timeline else None,
        "end_date": timeline[-1]["date"] if timeline else None,
    }
