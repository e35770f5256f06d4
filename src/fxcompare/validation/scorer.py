"""Rule-based quality scoring of a single broker record.

Each rubric field contributes a fixed weight. The denominator is always the
sum of all weights, whether or not the record has the field. Completeness
only looks at fields whose key is present in the record.
"""
from __future__ import annotations

import math
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, List, Mapping, Optional, Tuple

from ..cleaning import ALLOWED_PLATFORMS, coerce_number

NAME_WEIGHT = 20
REGULATION_WEIGHT = 10
PLATFORMS_WEIGHT = 8
POINTS_PER_PLATFORM = 2
WEBSITE_WEIGHT = 5
PROS_WEIGHT = 5
CONS_WEIGHT = 5

# field -> (weight, minimum, maximum)
NUMERIC_RULES: Dict[str, Tuple[int, float, float]] = {
    "overall_rating": (10, 1.0, 5.0),
    "min_deposit": (8, 0, 100_000),
    "max_leverage": (8, 1, 3000),
    "spread_from": (6, 0, 10),
}

MAX_POINTS = (
    NAME_WEIGHT
    + REGULATION_WEIGHT
    + sum(weight for weight, _, _ in NUMERIC_RULES.values())
    + PLATFORMS_WEIGHT
    + WEBSITE_WEIGHT
    + PROS_WEIGHT
    + CONS_WEIGHT
)

NAME_PATTERN = re.compile(r"^[a-zA-Z0-9\s\-.&]+$")
URL_PATTERN = re.compile(r"^https?://.+\..+")
MIN_NAME_LENGTH = 2


class QualityTier(str, Enum):
    EXCELLENT = "EXCELLENT"
    GOOD = "GOOD"
    ACCEPTABLE = "ACCEPTABLE"
    POOR = "POOR"
    VERY_POOR = "VERY_POOR"

    @classmethod
    def for_score(cls, score: float) -> "QualityTier":
        if score >= 90:
            return cls.EXCELLENT
        if score >= 75:
            return cls.GOOD
        if score >= 60:
            return cls.ACCEPTABLE
        if score >= 40:
            return cls.POOR
        return cls.VERY_POOR


def round_half_up(value: float) -> int:
    """Round .5 away from zero for non-negative values (``round`` would give 42 for 42.5)."""

    return int(math.floor(value + 0.5))


@dataclass(frozen=True)
class ValidationResult:
    is_valid: bool
    errors: Tuple[str, ...] = ()
    warnings: Tuple[str, ...] = ()
    quality_score: int = 0
    completeness: int = 0

    @property
    def quality_tier(self) -> QualityTier:
        return QualityTier.for_score(self.quality_score)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "is_valid": self.is_valid,
            "errors": list(self.errors),
            "warnings": list(self.warnings),
            "quality_score": self.quality_score,
            "completeness": self.completeness,
            "quality_level": self.quality_tier.value,
        }


@dataclass
class _Tally:
    points: int = 0
    considered: int = 0
    completed: int = 0
    errors: List[str] = field(default_factory=list)
    warnings: List[str] = field(default_factory=list)

    def attempt(self, completed: bool) -> None:
        self.considered += 1
        if completed:
            self.completed += 1


def _is_filled(value: Any) -> bool:
    if value is None:
        return False
    if isinstance(value, (str, list, tuple, dict)):
        return len(value) > 0
    return True


def _score_name(name: Any, tally: _Tally) -> None:
    tally.attempt(_is_filled(name))
    if not name:
        tally.errors.append("Broker name is required")
    elif not isinstance(name, str):
        tally.errors.append("Broker name must be text")
    elif len(name.strip()) < MIN_NAME_LENGTH:
        tally.errors.append(f"Broker name must be at least {MIN_NAME_LENGTH} characters")
    elif not NAME_PATTERN.match(name):
        tally.warnings.append("Broker name contains invalid characters")
    else:
        tally.points += NAME_WEIGHT


def _numeric_value(field_name: str, value: Any) -> Optional[float]:
    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        return value
    if field_name == "max_leverage" and isinstance(value, str) and ":" in value:
        return coerce_number(value, allow_ratio=True)
    return None


def _score_numeric(record: Mapping[str, Any], tally: _Tally) -> None:
    for field_name, (weight, minimum, maximum) in NUMERIC_RULES.items():
        if field_name not in record:
            continue
        raw = record[field_name]
        if raw is None:
            tally.attempt(False)
            continue
        value = _numeric_value(field_name, raw)
        tally.attempt(value is not None)
        if value is None:
            tally.warnings.append(f"{field_name} should be a number")
        elif minimum <= value <= maximum:
            tally.points += weight
        else:
            tally.warnings.append(f"{field_name} out of range ({minimum}-{maximum})")


def _score_platforms(record: Mapping[str, Any], tally: _Tally) -> None:
    if "platforms" not in record:
        return
    platforms = record["platforms"]
    tally.attempt(_is_filled(platforms))
    if not isinstance(platforms, (list, tuple)):
        if platforms is not None:
            tally.warnings.append("platforms should be a list")
        return
    recognised = [p for p in platforms if isinstance(p, str) and p.strip().lower() in ALLOWED_PLATFORMS]
    tally.points += min(len(recognised) * POINTS_PER_PLATFORM, PLATFORMS_WEIGHT)
    if len(recognised) < len(platforms):
        tally.warnings.append("Some platforms are not recognized")


def _score_website(record: Mapping[str, Any], tally: _Tally) -> None:
    if "website_url" not in record:
        return
    url = record["website_url"]
    tally.attempt(_is_filled(url))
    if not url:
        return
    if isinstance(url, str) and URL_PATTERN.match(url):
        tally.points += WEBSITE_WEIGHT
    else:
        tally.warnings.append("Invalid website URL format")


def _score_presence(record: Mapping[str, Any], field_name: str, weight: int, tally: _Tally) -> None:
    if field_name not in record:
        return
    filled = isinstance(record[field_name], (list, tuple)) and len(record[field_name]) > 0
    tally.attempt(filled)
    if filled:
        tally.points += weight


def score(record: Mapping[str, Any]) -> ValidationResult:
    """Validate and score one record. Invalid records are still scored."""

    tally = _Tally()
    _score_name(record.get("name"), tally)
    _score_numeric(record, tally)
    _score_platforms(record, tally)
    _score_website(record, tally)
    _score_presence(record, "regulatory_bodies", REGULATION_WEIGHT, tally)
    _score_presence(record, "pros", PROS_WEIGHT, tally)
    _score_presence(record, "cons", CONS_WEIGHT, tally)

    quality = round_half_up(100 * tally.points / MAX_POINTS)
    completeness = round_half_up(100 * tally.completed / tally.considered)
    return ValidationResult(
        is_valid=not tally.errors,
        errors=tuple(tally.errors),
        warnings=tuple(tally.warnings),
        quality_score=min(max(quality, 0), 100),
        completeness=min(max(completeness, 0), 100),
    )
