"""Evaluator expertise weights and their effect on averaged scores."""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import Any, Dict, Iterable, Mapping, Optional

logger = logging.getLogger(__name__)

MINIMAL_EFFECT_TOLERANCE = 1e-4

ROLE_WEIGHTS = {
    "PhD Student": 1.0,
    "Postdoc": 1.5,
    "PostDoc": 1.5,
    "Junior Researcher": 1.5,
    "Senior Researcher": 2.0,
    "Researcher": 1.5,
    "Professor": 2.0,
    "Master Student": 0.8,
    "Research Assistant": 1.0,
    "Other": 0.5,
}

DOMAIN_EXPERTISE_WEIGHTS = {
    "Novice": 0.5,
    "Basic": 0.6,
    "Beginner": 0.75,
    "Intermediate": 1.0,
    "Advanced": 1.5,
    "Expert": 2.0,
}

EVALUATION_EXPERIENCE_WEIGHTS = {
    "None": 0.9,
    "Limited": 0.95,
    "Moderate": 1.0,
    "Extensive": 1.1,
    "Expert": 1.2,
}

ORKG_BONUS = 0.1

EXPERTISE_TIERS = (
    (4.0, "expert"),
    (3.0, "senior"),
    (2.0, "intermediate"),
)


def _positive_number(value: Any) -> Optional[float]:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        return None
    value = float(value)
    if value != value or value <= 0:
        return None
    return value


def weight_components(user_info: Optional[Mapping[str, Any]]) -> Dict[str, float]:
    """Break an evaluator profile into its weight factors."""
    profile = user_info or {}
    role = ROLE_WEIGHTS.get(profile.get("role"), 1.0)
    domain = DOMAIN_EXPERTISE_WEIGHTS.get(profile.get("domainExpertise"), 1.0)
    experience = EVALUATION_EXPERIENCE_WEIGHTS.get(profile.get("evaluationExperience"), 1.0)
    bonus = ORKG_BONUS if profile.get("orkgExperience") == "used" else 0.0
    return {
        "roleWeight": role,
        "domainMultiplier": domain,
        "experienceMultiplier": experience,
        "orkgBonus": bonus,
        "finalWeight": round(role * domain * experience + bonus, 2),
    }


def resolve_expertise_weight(user_info: Optional[Mapping[str, Any]]) -> float:
    """Expertise weight of an evaluator.

    A pre-computed ``expertiseWeight`` wins, then
    ``weightComponents.finalWeight``; only when neither is usable is the
    weight derived from the profile.
    """
    if not isinstance(user_info, Mapping):
        return 1.0

    stored = _positive_number(user_info.get("expertiseWeight"))
    if stored is not None:
        return stored

    components = user_info.get("weightComponents")
    if isinstance(components, Mapping):
        final = _positive_number(components.get("finalWeight"))
        if final is not None:
            return final

    derived = weight_components(user_info)["finalWeight"]
    logger.debug(f"No stored expertise weight, derived {derived} from profile")
    return derived


def expertise_tier(weight: float) -> str:
    for threshold, tier in EXPERTISE_TIERS:
        if weight >= threshold:
            return tier
    return "junior"


@dataclass(frozen=True)
class ExpertiseImpact:
    """Unweighted vs expertise-weighted average of one score type."""

    raw_average: float
    weighted_average: float
    difference: float
    count: int
    minimal_effect: bool

    @classmethod
    def build(
        cls,
        raw_average: float,
        weighted_average: float,
        count: int,
        tolerance: float = MINIMAL_EFFECT_TOLERANCE,
    ) -> "ExpertiseImpact":
        difference = weighted_average - raw_average
        minimal = abs(difference) < tolerance
        return cls(
            raw_average=raw_average,
            weighted_average=weighted_average,
            difference=0.0 if minimal else difference,
            count=count,
            minimal_effect=minimal,
        )

    @classmethod
    def empty(cls) -> "ExpertiseImpact":
        return cls(0.0, 0.0, 0.0, 0, True)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "raw_average": self.raw_average,
            "weighted_average": self.weighted_average,
            "difference": self.difference,
            "count": self.count,
            "minimal_effect": self.minimal_effect,
        }


def overall_impact(
    impacts: Iterable[ExpertiseImpact],
    tolerance: float = MINIMAL_EFFECT_TOLERANCE,
) -> ExpertiseImpact:
    """Average per-domain impacts over the domains that had data."""
    populated = [impact for impact in impacts if impact.count > 0]
    if not populated:
        return ExpertiseImpact.empty()
    raw = sum(impact.raw_average for impact in populated) / len(populated)
    weighted = sum(impact.weighted_average for impact in populated) / len(populated)
    return ExpertiseImpact.build(raw, weighted, sum(impact.count for impact in populated), tolerance)
