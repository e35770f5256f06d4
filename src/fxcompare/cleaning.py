"""Normalisation of extracted broker records.

``clean`` is idempotent: cleaning an already cleaned record returns an equal
record. Numeric fields that cannot be coerced are removed from the record
rather than set to zero.
"""
from __future__ import annotations

import logging
import math
import re
from typing import Any, Dict, List, Mapping, Optional, Union

from .models import CleanedRecord, ExtractedRecord, canonicalize_fields

logger = logging.getLogger(__name__)

ALLOWED_PLATFORMS = ("mt4", "mt5", "ctrader", "webtrader", "tradingview", "proprietary", "mobile")
NUMERIC_FIELDS = ("overall_rating", "min_deposit", "max_leverage", "spread_from")
LIST_FIELDS = ("pros", "cons")
MAX_LIST_ITEMS = 5

_NAME_DISALLOWED = re.compile(r"[^a-zA-Z0-9\s\-.&]")
_WHITESPACE = re.compile(r"\s+")
_LEADING_NUMBER = re.compile(r"[-+]?(?:\d+(?:\.\d*)?|\.\d+)")
_RATIO = re.compile(r"(\d+(?:\.\d+)?)\s*:\s*(\d+(?:\.\d+)?)")
_SLUG_SEPARATORS = re.compile(r"[^a-z0-9]+")

Number = Union[int, float]


def slugify(name: str) -> str:
    """``"FP Markets!!"`` -> ``"fp-markets"``."""

    return _SLUG_SEPARATORS.sub("-", name.lower()).strip("-")


def clean_name(value: Any) -> Any:
    if not isinstance(value, str):
        return value
    stripped = _NAME_DISALLOWED.sub("", value.strip())
    words = _WHITESPACE.sub(" ", stripped).strip().split(" ")
    return " ".join(word[0].upper() + word[1:].lower() for word in words if word)


def clean_platforms(values: Any) -> List[str]:
    if isinstance(values, str):
        values = values.split(",")
    if not isinstance(values, (list, tuple)):
        return []
    platforms: List[str] = []
    for value in values:
        if not isinstance(value, str):
            continue
        token = value.strip().lower()
        if token in ALLOWED_PLATFORMS and token not in platforms:
            platforms.append(token)
    return platforms


def _as_number(value: float) -> Number:
    return int(value) if value.is_integer() else value


def coerce_number(value: Any, allow_ratio: bool = False) -> Optional[Number]:
    """Coerce ``value`` to a number, or return ``None`` when it is not numeric.

    Strings are read like a price: thousands commas and a leading currency sign
    are ignored and the leading numeric part is used (``"250 USD"`` -> 250).
    With ``allow_ratio``, ``"1:400"`` and ``"400:1"`` both read as 400.
    """

    if isinstance(value, bool):
        return None
    if isinstance(value, (int, float)):
        if isinstance(value, float) and not math.isfinite(value):
            return None
        return value
    if not isinstance(value, str):
        return None

    text = value.strip().replace(",", "").lstrip("$€£ ")
    if allow_ratio:
        ratio = _RATIO.fullmatch(text)
        if ratio:
            left, right = float(ratio.group(1)), float(ratio.group(2))
            if left == 1:
                return _as_number(right)
            if right == 1:
                return _as_number(left)
            return None

    match = _LEADING_NUMBER.match(text)
    if match is None:
        return None
    number = float(match.group(0))
    if not math.isfinite(number):
        return None
    return _as_number(number)


def clean_text_list(values: Any) -> List[str]:
    if isinstance(values, str):
        values = [values]
    if not isinstance(values, (list, tuple)):
        return []
    items = [item.strip() for item in values if isinstance(item, str) and item.strip()]
    return items[:MAX_LIST_ITEMS]


def clean(record: Mapping[str, Any]) -> Dict[str, Any]:
    """Return a normalised copy of ``record``, with legacy keys renamed."""

    cleaned = canonicalize_fields(record)

    if "name" in cleaned:
        cleaned["name"] = clean_name(cleaned["name"])

    if cleaned.get("platforms") is not None:
        cleaned["platforms"] = clean_platforms(cleaned["platforms"])

    for field_name in NUMERIC_FIELDS:
        if field_name not in cleaned or cleaned[field_name] is None:
            continue
        number = coerce_number(cleaned[field_name], allow_ratio=field_name == "max_leverage")
        if number is None:
            logger.debug("Dropping non-numeric %s=%r", field_name, cleaned[field_name])
            del cleaned[field_name]
        else:
            cleaned[field_name] = number

    for field_name in LIST_FIELDS:
        if cleaned.get(field_name) is not None:
            cleaned[field_name] = clean_text_list(cleaned[field_name])

    return cleaned


def clean_record(record: Union[ExtractedRecord, Mapping[str, Any]]) -> CleanedRecord:
    if isinstance(record, ExtractedRecord):
        return CleanedRecord(fields=clean(record.fields), source_file=record.source_file)
    fields = dict(record)
    source_file = fields.pop("source_file", None)
    fields.pop("extraction_date", None)
    return CleanedRecord(fields=clean(fields), source_file=source_file)
