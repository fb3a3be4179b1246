"""Completeness, consistency and validity of an extracted value.

Each dimension yields a score in [0, 1] and an ordered list of issues. The
issues are for display only; the score is computed independently of them.
"""

from __future__ import annotations

import logging
import re
from datetime import datetime
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

from .models import (
    DEFAULT_QUALITY_WEIGHTS,
    QUALITY_DIMENSIONS,
    DimensionScore,
    FieldPair,
    QualityResult,
    normalize_weights,
)
from .scoring_result import StageOutcome, clamp_unit, run_stage
from .text_similarity import coerce_text

logger = logging.getLogger(__name__)

_ISO_DATE_RE = re.compile(r"^\d{4}-\d{2}-\d{2}$")
_ISO_DATETIME_RE = re.compile(r"^\d{4}-\d{2}-\d{2}T")
_DMY_DASH_DATE_RE = re.compile(r"^\d{2}-\d{2}-\d{4}$")
_DMY_SLASH_DATE_RE = re.compile(r"^\d{2}/\d{2}/\d{4}$")
_YEAR_RE = re.compile(r"^\d{4}$")
_DOI_RE = re.compile(r"^10\.\d{4,}/[-._;()/:a-zA-Z0-9]+$")
_RESOURCE_ID_RE = re.compile(r"^R\d+$")
_URI_RE = re.compile(r"^https?://\S+$")
_NUMBER_RE = re.compile(r"^[+-]?(\d+|\d{1,3}(,\d{3})+)(\.\d+)?([eE][+-]?\d+)?$")

_DATE_FORMATS = (
    (_ISO_DATE_RE, "%Y-%m-%d", "iso"),
    (_DMY_DASH_DATE_RE, "%d-%m-%Y", "dmy-dash"),
    (_DMY_SLASH_DATE_RE, "%d/%m/%Y", "dmy-slash"),
)

_LIST_DELIMITERS = (";", ",", "|")

DEFAULT_VALIDITY_RULES: Dict[str, Any] = {
    "number": {"min": None, "max": None},
    "date": {"min_year": 1900, "max_year": None},
}


def _is_empty(value: Any) -> bool:
    if value is None:
        return True
    if isinstance(value, str):
        return not value.strip()
    if isinstance(value, (list, tuple, dict, set)):
        return len(value) == 0
    return False


def _as_items(value: Any) -> List[str]:
    """Split a list-like value into stripped string items."""
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return [coerce_text(item) for item in value]
    text = coerce_text(value)
    for delimiter in _LIST_DELIMITERS:
        if delimiter in text:
            return [part for part in text.split(delimiter)]
    return [text] if text else []


def parse_date(value: Any) -> Tuple[Optional[datetime], Optional[str]]:
    """Parse the date formats accepted for date fields.

    Returns:
        (parsed datetime or None, format label or None). A value that matches a
        known shape but is not a real calendar date returns (None, label).
    """
    if isinstance(value, bool):
        return None, None
    if isinstance(value, int):
        value = str(value)
    if not isinstance(value, str):
        return None, None
    candidate = value.strip()

    if _YEAR_RE.match(candidate):
        return datetime(int(candidate), 1, 1), "year"

    if _ISO_DATETIME_RE.match(candidate):
        try:
            return datetime.fromisoformat(candidate.replace("Z", "+00:00")), "iso-datetime"
        except ValueError:
            return None, "iso-datetime"

    for pattern, fmt, label in _DATE_FORMATS:
        if pattern.match(candidate):
            try:
                return datetime.strptime(candidate, fmt), label
            except ValueError:
                return None, label
    return None, None


def parse_number(value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return float(value)
    if isinstance(value, str) and _NUMBER_RE.match(value.strip()):
        return float(value.strip().replace(",", ""))
    return None


# Completeness

def _completeness(pair: FieldPair) -> DimensionScore:
    reference = pair.reference_value
    extracted = pair.extracted_value

    if isinstance(reference, dict):
        required = [key for key, item in reference.items() if not _is_empty(item)]
        if not required:
            return DimensionScore(1.0)
        extracted_map = extracted if isinstance(extracted, dict) else {}
        missing = [key for key in required if _is_empty(extracted_map.get(key))]
        issues = [f"missing required sub-field '{key}'" for key in missing]
        return DimensionScore((len(required) - len(missing)) / len(required), issues)

    if isinstance(reference, (list, tuple)) or pair.normalized_type == "list":
        required = [item.strip() for item in _as_items(reference) if item.strip()]
        if not required:
            return DimensionScore(1.0)
        present = {item.strip().lower() for item in _as_items(extracted) if item.strip()}
        missing = [item for item in required if item.lower() not in present]
        issues = [f"missing item '{item}'" for item in missing]
        return DimensionScore((len(required) - len(missing)) / len(required), issues)

    if _is_empty(reference):
        return DimensionScore(1.0)
    if _is_empty(extracted):
        return DimensionScore(0.0, ["missing value"])

    if pair.normalized_type == "text":
        reference_text = coerce_text(reference).strip()
        extracted_text = coerce_text(extracted).strip()
        if len(extracted_text) < len(reference_text):
            ratio = len(extracted_text) / len(reference_text)
            return DimensionScore(ratio, [f"value shorter than reference ({len(extracted_text)}/{len(reference_text)} characters)"])
    return DimensionScore(1.0)


# Consistency

Check = Tuple[str, Callable[[Any], bool]]


def _no_surrounding_whitespace(value: Any) -> bool:
    text = coerce_text(value)
    return text == text.strip()


def _no_repeated_whitespace(value: Any) -> bool:
    return re.search(r"\s{2,}", coerce_text(value).strip()) is None


def _balanced_brackets(value: Any) -> bool:
    text = coerce_text(value)
    pairs = {")": "(", "]": "[", "}": "{"}
    stack: List[str] = []
    for char in text:
        if char in "([{":
            stack.append(char)
        elif char in pairs:
            if not stack or stack.pop() != pairs[char]:
                return False
    return not stack


def _uniform_quotes(value: Any) -> bool:
    text = coerce_text(value)
    styles = [style for style in ('"', "'", "“", "‘") if style in text]
    return len(styles) <= 1


def _single_list_delimiter(value: Any) -> bool:
    if isinstance(value, (list, tuple)):
        return True
    text = coerce_text(value)
    # commas may separate name parts, so only the item separators count
    return sum(1 for delimiter in (";", "|") if delimiter in text) <= 1


def _no_empty_items(value: Any) -> bool:
    return all(item.strip() for item in _as_items(value))


def _no_duplicate_items(value: Any) -> bool:
    items = [item.strip().lower() for item in _as_items(value) if item.strip()]
    return len(items) == len(set(items))


def _name_style(name: str) -> str:
    name = name.strip()
    if "," in name:
        return "last-first"
    if re.match(r"^[A-Z]\.", name):
        return "initials-first"
    return "first-last"


def _uniform_item_style(value: Any) -> bool:
    if isinstance(value, (list, tuple)):
        items = [coerce_text(item) for item in value if coerce_text(item).strip()]
    else:
        # a "Last, First; Last, First" string keeps commas inside items
        text = coerce_text(value)
        items = [part for part in text.split(";") if part.strip()] if ";" in text else _as_items(value)
    return len({_name_style(item) for item in items}) <= 1


def _single_date_format(value: Any) -> bool:
    text = coerce_text(value)
    parts = _as_items(value) if isinstance(value, (list, tuple)) or ";" in text or "|" in text else [text]
    labels = {parse_date(part.strip())[1] for part in parts if part.strip()}
    labels.discard(None)
    if len(labels) > 1:
        return False
    separators = {sep for sep in ("-", "/", ".") if sep in text}
    return len(separators) <= 1


def _uniform_number_format(value: Any) -> bool:
    if isinstance(value, (int, float)):
        return True
    text = coerce_text(value).strip()
    return not ("," in text and " " in text)


_BASE_CHECKS: Sequence[Check] = (
    ("leading or trailing whitespace", _no_surrounding_whitespace),
    ("repeated whitespace", _no_repeated_whitespace),
)

# evaluated on the whole list rather than item by item
_WHOLE_VALUE_CHECKS = {
    "mixed list delimiters",
    "empty list items",
    "duplicate list items",
    "mixed name formats",
}

CONSISTENCY_CHECKS: Dict[str, Sequence[Check]] = {
    "text": tuple(_BASE_CHECKS) + (
        ("unbalanced brackets", _balanced_brackets),
        ("mixed quote styles", _uniform_quotes),
    ),
    "list": tuple(_BASE_CHECKS) + (
        ("mixed list delimiters", _single_list_delimiter),
        ("empty list items", _no_empty_items),
        ("duplicate list items", _no_duplicate_items),
        ("mixed name formats", _uniform_item_style),
    ),
    "date": tuple(_BASE_CHECKS) + (("mixed date formats", _single_date_format),),
    "number": tuple(_BASE_CHECKS) + (("mixed thousands separators", _uniform_number_format),),
    "doi": tuple(_BASE_CHECKS),
    "resource": tuple(_BASE_CHECKS),
}


def _consistency(pair: FieldPair) -> DimensionScore:
    extracted = pair.extracted_value
    if _is_empty(extracted):
        return DimensionScore(1.0)
    checks = CONSISTENCY_CHECKS.get(pair.normalized_type, CONSISTENCY_CHECKS["text"])
    if isinstance(extracted, dict):
        # structured values are checked sub-field by sub-field
        extracted = [item for item in extracted.values() if not isinstance(item, (dict, list, tuple, set))]
    if isinstance(extracted, (list, tuple)):
        values = [item for item in extracted if not _is_empty(item)]
        whole_checks = [check for check in checks if check[0] in _WHOLE_VALUE_CHECKS]
        item_checks = [check for check in checks if check[0] not in _WHOLE_VALUE_CHECKS]
        results = [(name, fn(extracted)) for name, fn in whole_checks]
        results += [(name, all(fn(item) for item in values)) for name, fn in item_checks]
    else:
        results = [(name, fn(extracted)) for name, fn in checks]

    failed = [name for name, passed in results if not passed]
    score = 1 - (len(failed) / len(results)) if results else 1.0
    return DimensionScore(score, [f"inconsistent formatting: {name}" for name in failed])


# Validity

def _validate_number(value: Any, rules: Mapping[str, Any]) -> DimensionScore:
    number = parse_number(value)
    if number is None:
        return DimensionScore(0.0, [f"'{value}' is not a number"])
    low, high = rules.get("min"), rules.get("max")
    if (low is not None and number < low) or (high is not None and number > high):
        return DimensionScore(0.5, [f"{number:g} outside plausible range [{low}, {high}]"])
    return DimensionScore(1.0)


def _validate_date(value: Any, rules: Mapping[str, Any]) -> DimensionScore:
    parsed, label = parse_date(value)
    if parsed is None:
        if label is not None:
            return DimensionScore(0.5, [f"'{value}' looks like a {label} date but is not a valid calendar date"])
        return DimensionScore(0.0, [f"'{value}' is not a recognised date"])
    min_year = rules.get("min_year")
    max_year = rules.get("max_year") or datetime.now().year + 1
    if (min_year is not None and parsed.year < min_year) or parsed.year > max_year:
        return DimensionScore(0.5, [f"year {parsed.year} outside plausible range [{min_year}, {max_year}]"])
    return DimensionScore(1.0)


def _validate_doi(value: Any, rules: Mapping[str, Any]) -> DimensionScore:
    text = coerce_text(value).strip()
    if _DOI_RE.match(text):
        return DimensionScore(1.0)
    if "10." in text:
        return DimensionScore(0.5, [f"'{text}' is not a well-formed DOI"])
    return DimensionScore(0.0, [f"'{text}' is not a DOI"])


def _validate_resource(value: Any, rules: Mapping[str, Any]) -> DimensionScore:
    text = coerce_text(value).strip()
    if _RESOURCE_ID_RE.match(text) or _URI_RE.match(text):
        return DimensionScore(1.0)
    return DimensionScore(0.5, [f"'{text}' is not a resource id or URI"])


def _validate_list(value: Any, rules: Mapping[str, Any]) -> DimensionScore:
    if isinstance(value, (list, tuple)):
        if all(isinstance(item, str) and item.strip() for item in value):
            return DimensionScore(1.0)
        return DimensionScore(0.5, ["list contains empty or non-text items"])
    return DimensionScore(0.5, ["list given as a delimited string"])


def _validate_text(value: Any, rules: Mapping[str, Any]) -> DimensionScore:
    if isinstance(value, str):
        return DimensionScore(1.0)
    return DimensionScore(0.5, [f"expected text, got {type(value).__name__}"])


VALIDATORS: Dict[str, Callable[[Any, Mapping[str, Any]], DimensionScore]] = {
    "number": _validate_number,
    "date": _validate_date,
    "doi": _validate_doi,
    "resource": _validate_resource,
    "list": _validate_list,
    "text": _validate_text,
}


def _validity(pair: FieldPair, rules: Mapping[str, Any]) -> DimensionScore:
    extracted = pair.extracted_value
    if _is_empty(extracted):
        return DimensionScore(0.0, ["no value to validate"])
    field_type = pair.normalized_type
    validator = VALIDATORS.get(field_type, _validate_text)
    return validator(extracted, rules.get(field_type, {}))


class QualityDimensionScorer:
    """Scores completeness, consistency and validity of extracted values.

    Args:
        weights_by_type: Dimension weights keyed by field type plus ``default``.
            Listing only some dimensions for a type restricts scoring to them.
        validity_rules: Per-type plausibility rules (number range, year range)
    """

    def __init__(
        self,
        weights_by_type: Optional[Mapping[str, Mapping[str, float]]] = None,
        validity_rules: Optional[Mapping[str, Mapping[str, Any]]] = None,
    ):
        configured = weights_by_type or {}
        self.default_weights = normalize_weights(configured.get("default"), DEFAULT_QUALITY_WEIGHTS)
        self.weights_by_type: Dict[str, Dict[str, float]] = {
            field_type: normalize_weights(weights, self.default_weights)
            for field_type, weights in configured.items()
            if field_type != "default"
        }
        self.validity_rules: Dict[str, Dict[str, Any]] = {
            key: dict(value) for key, value in DEFAULT_VALIDITY_RULES.items()
        }
        for key, value in (validity_rules or {}).items():
            self.validity_rules.setdefault(key, {}).update(value or {})

    def weights_for(self, field_type: str) -> Dict[str, float]:
        return dict(self.weights_by_type.get(field_type, self.default_weights))

    def score(self, pair: FieldPair) -> QualityResult:
        return self.score_with_outcome(pair).value

    def score_with_outcome(self, pair: FieldPair) -> StageOutcome[QualityResult]:
        return run_stage("quality", lambda: self._score(pair), QualityResult.fallback)

    def _score(self, pair: FieldPair) -> QualityResult:
        weights = self.weights_for(pair.normalized_type)
        dimensions = {
            "completeness": _completeness(pair),
            "consistency": _consistency(pair),
            "validity": _validity(pair, self.validity_rules),
        }
        total = sum(dimensions[name].score * weights.get(name, 0.0) for name in QUALITY_DIMENSIONS)

        return QualityResult(
            completeness=dimensions["completeness"],
            consistency=dimensions["consistency"],
            validity=dimensions["validity"],
            weights=weights,
            automated_overall_score=clamp_unit(total),
        )
