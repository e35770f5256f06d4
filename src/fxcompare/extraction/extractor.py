"""Field extraction from broker review pages."""
from __future__ import annotations

import logging
import re
from pathlib import Path
from typing import Any, Optional, Union

from bs4 import BeautifulSoup, FeatureNotFound

from ..models import ExtractedRecord
from .fields import PageText, clean_heading_name
from .rules import FIELD_RULES, FieldRule

logger = logging.getLogger(__name__)

_FILENAME_SUFFIXES = re.compile(r"(-vs-.*|-review)$", re.IGNORECASE)


def parse_document(raw_html: str) -> BeautifulSoup:
    """Parse HTML with lxml, falling back to the stdlib parser when lxml is unavailable."""

    try:
        return BeautifulSoup(raw_html, "lxml")
    except FeatureNotFound:
        return BeautifulSoup(raw_html, "html.parser")


def _apply(field_name: str, rule: FieldRule, page: PageText, document: BeautifulSoup) -> Any:
    try:
        return rule.extract(page, document)
    except (AttributeError, IndexError, TypeError, ValueError, re.error) as exc:
        logger.debug("Rule for %s failed: %s", field_name, exc)
        return None


def extract(field_name: str, raw_html: str, document: Optional[BeautifulSoup] = None) -> Any:
    """Return the value of one field, or ``None`` when no rule matches.

    Unknown field names raise ``KeyError``. A known field never raises.
    """

    rule = FIELD_RULES[field_name]
    if document is None:
        document = parse_document(raw_html)
    return _apply(field_name, rule, PageText.from_document(raw_html, document), document)


def name_from_filename(path: Union[str, Path]) -> Optional[str]:
    """Derive a broker name from a file such as ``pepperstone-review.html``."""

    stem = Path(path).stem
    stem = _FILENAME_SUFFIXES.sub("", stem)
    name = clean_heading_name(stem.replace("-", " ").replace("_", " "))
    return name or None


def extract_broker(raw_html: str, source_file: Union[str, Path]) -> ExtractedRecord:
    """Run every rule in ``FIELD_RULES`` against one page."""

    document = parse_document(raw_html)
    page = PageText.from_document(raw_html, document)
    fields = {name: _apply(name, rule, page, document) for name, rule in FIELD_RULES.items()}

    if not fields.get("name"):
        fields["name"] = name_from_filename(source_file)
        logger.debug("No heading name in %s, using file name %r", source_file, fields["name"])

    return ExtractedRecord(source_file=Path(source_file).name, fields=fields)
