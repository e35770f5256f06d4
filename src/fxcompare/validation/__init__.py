"""Quality scoring and batch validation of broker records."""

from .report import BatchReport, validate_all, write_reports
from .scorer import MAX_POINTS, QualityTier, ValidationResult, score

__all__ = [
    "BatchReport",
    "MAX_POINTS",
    "QualityTier",
    "ValidationResult",
    "score",
    "validate_all",
    "write_reports",
]
