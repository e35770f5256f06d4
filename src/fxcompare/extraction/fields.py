"""Building blocks for the per-field extraction rules.

A field is described by one of the ``*Field`` classes below. Each holds an
ordered tuple of rules, or a fixed vocabulary, and an ``extract`` method that
returns the value for that field or ``None``. For rule-based fields the first
rule that yields a usable value wins. Later rules are never consulted, even
when they would produce a more precise value.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from datetime import date
from typing import Any, Dict, List, Optional, Pattern, Tuple, Union

from bs4 import BeautifulSoup

_WHITESPACE = re.compile(r"\s+")
_NUMBER = re.compile(r"\d[\d,]*(?:\.\d+)?")


def collapse_whitespace(value: str) -> str:
    return _WHITESPACE.sub(" ", value).strip()


@dataclass(frozen=True)
class PageText:
    """The three views of one page that rules search in."""

    html: str
    text: str
    lowered: str

    @classmethod
    def from_document(cls, raw_html: str, document: BeautifulSoup) -> "PageText":
        text = collapse_whitespace(document.get_text(" "))
        return cls(html=collapse_whitespace(raw_html), text=text, lowered=text.lower())


@dataclass(frozen=True)
class RegexRule:
    """Search ``pattern`` in the flattened page text (or raw HTML) and return one group."""

    pattern: Pattern[str]
    group: int = 1
    source: str = "text"

    def find(self, page: PageText, document: BeautifulSoup) -> Optional[str]:
        haystack = page.html if self.source == "html" else page.text
        match = self.pattern.search(haystack)
        if match is None:
            return None
        return match.group(self.group).strip()


@dataclass(frozen=True)
class SelectorRule:
    """Look up the first element matching ``selector`` and return its text or attribute."""

    selector: str
    attribute: Optional[str] = None

    def find(self, page: PageText, document: BeautifulSoup) -> Optional[str]:
        element = document.select_one(self.selector)
        if element is None:
            return None
        if self.attribute:
            value = element.get(self.attribute)
        else:
            value = element.get_text(" ", strip=True)
        if not isinstance(value, str):
            return None
        return collapse_whitespace(value) or None


Rule = Union[RegexRule, SelectorRule]


def regex(pattern: str, flags: int = re.IGNORECASE, group: int = 1, source: str = "text") -> RegexRule:
    return RegexRule(re.compile(pattern, flags), group=group, source=source)


def parse_number(raw: str) -> Optional[Union[int, float]]:
    """Return the first number in ``raw``, with thousands commas removed."""

    match = _NUMBER.search(raw)
    if match is None:
        return None
    value = float(match.group(0).replace(",", ""))
    return int(value) if value.is_integer() else value


@dataclass(frozen=True)
class TextField:
    rules: Tuple[Rule, ...]
    min_length: int = 1
    max_length: Optional[int] = None

    def extract(self, page: PageText, document: BeautifulSoup) -> Optional[str]:
        for rule in self.rules:
            value = rule.find(page, document)
            if not value or len(value) < self.min_length:
                continue
            if self.max_length is not None and len(value) > self.max_length:
                continue
            return value
        return None


@dataclass(frozen=True)
class NumberField:
    """Numeric field with a sanity range; a parsed value outside it counts as no match."""

    rules: Tuple[Rule, ...]
    minimum: float
    maximum: Optional[float] = None
    up_to_current_year: bool = False

    def upper_bound(self) -> Optional[float]:
        if self.up_to_current_year:
            return date.today().year
        return self.maximum

    def extract(self, page: PageText, document: BeautifulSoup) -> Optional[Union[int, float]]:
        upper = self.upper_bound()
        for rule in self.rules:
            raw = rule.find(page, document)
            if raw is None:
                continue
            value = parse_number(raw)
            if value is None or value < self.minimum:
                continue
            if upper is not None and value > upper:
                continue
            return value
        return None


@dataclass(frozen=True)
class LeverageField(NumberField):
    """Maximum leverage, reported as an ``"1:N"`` ratio string."""

    def extract(self, page: PageText, document: BeautifulSoup) -> Optional[str]:
        value = super().extract(page, document)
        if value is None:
            return None
        return f"1:{int(value)}"


@dataclass(frozen=True)
class VocabularyField:
    """Collect vocabulary labels whose needles occur in the page, in vocabulary order."""

    vocabulary: Tuple[Tuple[str, Tuple[str, ...]], ...]
    case_sensitive: bool = False

    def extract(self, page: PageText, document: BeautifulSoup) -> Optional[List[str]]:
        haystack = page.text if self.case_sensitive else page.lowered
        found = [
            label
            for label, needles in self.vocabulary
            if any(needle in haystack for needle in needles)
        ]
        return found or None


def vocabulary(*labels: str) -> Tuple[Tuple[str, Tuple[str, ...]], ...]:
    """Vocabulary where each label is its own (lowercased) needle."""

    return tuple((label, (label.lower(),)) for label in labels)


@dataclass(frozen=True)
class FlagField:
    """True when any keyword (or, with ``require_all``, every keyword) occurs in the page."""

    keywords: Tuple[str, ...]
    require_all: bool = False

    def extract(self, page: PageText, document: BeautifulSoup) -> bool:
        hits = (keyword in page.lowered for keyword in self.keywords)
        return all(hits) if self.require_all else any(hits)


@dataclass(frozen=True)
class KeywordMapField:
    """First ``(keyword, value)`` pair whose keyword occurs in the page."""

    choices: Tuple[Tuple[str, Any], ...]

    def extract(self, page: PageText, document: BeautifulSoup) -> Any:
        for keyword, value in self.choices:
            if keyword in page.lowered:
                return value
        return None


@dataclass(frozen=True)
class SelectorListField:
    """Text of list items under the first selectors that match, deduplicated and capped."""

    selectors: Tuple[str, ...]
    min_length: int = 6
    limit: int = 5

    def extract(self, page: PageText, document: BeautifulSoup) -> Optional[List[str]]:
        items: List[str] = []
        for selector in self.selectors:
            for element in document.select(selector):
                text = collapse_whitespace(element.get_text(" "))
                if len(text) >= self.min_length and text not in items:
                    items.append(text)
                if len(items) >= self.limit:
                    return items
        return items or None


@dataclass(frozen=True)
class CountsField:
    """Named counts, each taken from the first match of its pattern in the lowercased text."""

    patterns: Tuple[Tuple[str, Pattern[str]], ...]

    def extract(self, page: PageText, document: BeautifulSoup) -> Optional[Dict[str, int]]:
        counts: Dict[str, int] = {}
        for key, pattern in self.patterns:
            match = pattern.search(page.lowered)
            if match:
                counts[key] = int(match.group(1))
        return counts or None


@dataclass(frozen=True)
class LicenseField:
    """Regulator mentions paired with the licence number that follows them, if any."""

    pattern: Pattern[str]

    def extract(self, page: PageText, document: BeautifulSoup) -> Optional[List[Dict[str, Optional[str]]]]:
        licenses: Dict[str, Optional[str]] = {}
        for match in self.pattern.finditer(page.text):
            regulator, number = match.group(1), match.group(2)
            if regulator not in licenses or (number and not licenses[regulator]):
                licenses[regulator] = number
        if not licenses:
            return None
        return [{"regulator": name, "license_number": number} for name, number in licenses.items()]


@dataclass(frozen=True)
class LinkField:
    """First absolute link whose URL does not mention an excluded host."""

    excluded: Tuple[str, ...]
    selector: str = 'a[href^="http"]'

    def extract(self, page: PageText, document: BeautifulSoup) -> Optional[str]:
        for anchor in document.select(self.selector):
            href = anchor.get("href")
            if not isinstance(href, str):
                continue
            lowered = href.lower()
            if any(host in lowered for host in self.excluded):
                continue
            return href.strip()
        return None


_NAME_NOISE = re.compile(r"review|forex|broker", re.IGNORECASE)


def title_case(value: str) -> str:
    return " ".join(word[0].upper() + word[1:].lower() for word in value.split())


def clean_heading_name(raw: str) -> str:
    """Strip review/forex/broker noise from a heading and title-case the rest."""

    return title_case(collapse_whitespace(_NAME_NOISE.sub(" ", raw)))


@dataclass(frozen=True)
class NameField:
    selectors: Tuple[str, ...]
    min_length: int = 2

    def extract(self, page: PageText, document: BeautifulSoup) -> Optional[str]:
        for selector in self.selectors:
            raw = SelectorRule(selector).find(page, document)
            if not raw:
                continue
            name = clean_heading_name(raw)
            if len(name) >= self.min_length:
                return name
        return None
