"""fxcompare package."""

from .cleaning import clean, slugify
from .extraction import extract, extract_broker
from .loader import UpsertLoader
from .models import BrokerEntity, CleanedRecord, ExtractedRecord, ScoredRecord
from .pipeline import extract_directory, run_load, run_validation
from .validation import score, validate_all

__all__ = [
    "BrokerEntity",
    "CleanedRecord",
    "ExtractedRecord",
    "ScoredRecord",
    "UpsertLoader",
    "clean",
    "extract",
    "extract_broker",
    "extract_directory",
    "run_load",
    "run_validation",
    "score",
    "slugify",
    "validate_all",
]
