"""Rule-based field extraction from broker review pages."""

from .extractor import extract, extract_broker, name_from_filename, parse_document
from .rules import FIELD_RULES

__all__ = ["FIELD_RULES", "extract", "extract_broker", "name_from_filename", "parse_document"]
