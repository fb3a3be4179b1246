"""Single fallback policy for every scoring stage.

Each stage (similarity, quality, combination, custom rules) runs through
``run_stage``. A failure never propagates: the stage's fallback value is
returned together with a ``ScoringDefect`` describing what went wrong.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Callable, Dict, Generic, Optional, TypeVar

logger = logging.getLogger(__name__)

T = TypeVar("T")

NEUTRAL_FALLBACK_SCORE = 0.5


@dataclass(frozen=True)
class ScoringDefect:
    """A recovered failure inside one scoring stage."""

    stage: str
    message: str
    error_type: str = "malformed_input"

    def to_dict(self) -> Dict[str, str]:
        return {"stage": self.stage, "message": self.message, "error_type": self.error_type}


@dataclass(frozen=True)
class StageOutcome(Generic[T]):
    """Value produced by a stage, plus the defect if the fallback was used."""

    value: T
    defect: Optional[ScoringDefect] = None

    @property
    def ok(self) -> bool:
        return self.defect is None


def clamp_unit(value: Any) -> float:
    """Clamp a numeric value to [0, 1]. NaN maps to 0."""
    score = float(value)
    if score != score:
        return 0.0
    return max(0.0, min(1.0, score))


def run_stage(stage: str, fn: Callable[[], T], fallback: Callable[[], T]) -> StageOutcome[T]:
    """Run ``fn`` and substitute ``fallback()`` on any error.

    Args:
        stage: Stage name used in the defect and the log line
        fn: Zero-argument callable computing the stage value
        fallback: Zero-argument callable building the documented fallback

    Returns:
        StageOutcome with the computed value, or the fallback and a defect
    """
    try:
        return StageOutcome(fn())
    except (TypeError, ValueError, KeyError, AttributeError, ZeroDivisionError) as exc:
        error_type = "malformed_input"
        message = f"{type(exc).__name__}: {exc}"
    except Exception as exc:  # scoring must never break the evaluation flow
        error_type = "internal_error"
        message = f"{type(exc).__name__}: {exc}"

    logger.warning(f"[{stage}] falling back to neutral score ({message})")
    return StageOutcome(fallback(), ScoringDefect(stage=stage, message=message, error_type=error_type))
