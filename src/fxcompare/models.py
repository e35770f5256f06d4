"""Data models for the broker extraction pipeline.

Each pipeline stage has its own record type:

    ExtractedRecord -> CleanedRecord -> ScoredRecord -> BrokerEntity

Field names are canonical from extraction onwards. Legacy names found in
older JSON exports are mapped once, through ``FIELD_ALIASES``, when a file is
read back in.
"""
from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from enum import Enum
from typing import TYPE_CHECKING, Any, Dict, List, Mapping, Optional

if TYPE_CHECKING:
    from .validation.scorer import ValidationResult


FIELD_ALIASES: Dict[str, str] = {
    "minimum_deposit": "min_deposit",
    "minDeposit": "min_deposit",
    "brokerName": "name",
    "broker_name": "name",
    "rating": "overall_rating",
    "maxLeverage": "max_leverage",
    "spreadFrom": "spread_from",
    "tradingPlatforms": "platforms",
    "trading_platforms": "platforms",
    "platforms_raw": "platforms",
    "regulatedBy": "regulatory_bodies",
    "foundedYear": "founded_year",
    "website": "website_url",
}


def canonicalize_fields(raw: Mapping[str, Any]) -> Dict[str, Any]:
    """Rename legacy keys to canonical field names.

    A canonical key already present wins over its alias. Older exports store
    regulators as ``regulations: [{"regulator": ..., "license_number": ...}]``;
    those are split into ``regulatory_bodies`` and ``regulator_licenses``.
    """
    fields: Dict[str, Any] = {}
    for key, value in raw.items():
        canonical = FIELD_ALIASES.get(key, key)
        if canonical in fields and canonical != key:
            continue
        fields[canonical] = value

    regulations = fields.pop("regulations", None)
    if isinstance(regulations, list) and "regulatory_bodies" not in fields:
        names = [r.get("regulator") for r in regulations if isinstance(r, dict) and r.get("regulator")]
        names += [r for r in regulations if isinstance(r, str)]
        fields["regulatory_bodies"] = names or None
        licenses = [r for r in regulations if isinstance(r, dict) and r.get("regulator")]
        if licenses and "regulator_licenses" not in fields:
            fields["regulator_licenses"] = licenses
    return fields


def _utc_now() -> str:
    return datetime.now(timezone.utc).isoformat()


@dataclass(frozen=True)
class DataSource:
    """A page that may be downloaded for a broker."""

    type: str
    url: str
    description: str = ""
    allowed_to_scrape: Optional[bool] = None
    notes: Optional[str] = None


@dataclass(frozen=True)
class BrokerSource:
    """A broker listed in ``brokers.yaml`` with its review pages."""

    name: str
    website: str = ""
    data_sources: List[DataSource] = field(default_factory=list)
    notes: Optional[str] = None


@dataclass
class ExtractedRecord:
    """Raw extractor output for one HTML file. Misses are stored as ``None``."""

    source_file: str
    fields: Dict[str, Any]
    extracted_at: str = field(default_factory=_utc_now)

    @property
    def name(self) -> Optional[str]:
        return self.fields.get("name")

    def to_dict(self) -> Dict[str, Any]:
        return {"source_file": self.source_file, "extraction_date": self.extracted_at, **self.fields}


@dataclass
class CleanedRecord:
    """A record after normalisation."""

    fields: Dict[str, Any]
    source_file: Optional[str] = None

    @property
    def name(self) -> Optional[str]:
        return self.fields.get("name")

    def to_dict(self) -> Dict[str, Any]:
        return dict(self.fields)


@dataclass
class ScoredRecord:
    """A cleaned record together with its validation result."""

    index: int
    fields: Dict[str, Any]
    result: "ValidationResult"

    @property
    def broker_name(self) -> str:
        return self.fields.get("name") or f"Broker {self.index + 1}"


@dataclass
class BrokerEntity:
    """Row shape of the ``brokers`` table, minus datastore-assigned columns."""

    name: str
    slug: str
    country: str
    website_url: Optional[str] = None
    logo_url: Optional[str] = None
    established_year: Optional[int] = None
    min_deposit: Optional[float] = None
    spreads_avg: Optional[float] = None
    leverage_max: Optional[str] = None
    platforms: List[str] = field(default_factory=list)
    instruments: List[str] = field(default_factory=list)
    regulations: List[str] = field(default_factory=list)
    regulation_tier: Optional[str] = None
    trust_score: int = 75
    avg_rating: float = 0
    description: Optional[str] = None
    pros: List[str] = field(default_factory=list)
    cons: List[str] = field(default_factory=list)
    account_types: List[str] = field(default_factory=list)
    fees: Dict[str, Any] = field(default_factory=dict)
    demo_account: bool = True
    is_active: bool = True
    featured: bool = False

    def to_row(self) -> Dict[str, Any]:
        return asdict(self)


class ErrorKind(str, Enum):
    """Classification of per-item failures."""

    IO = "io"
    NETWORK = "network"
    VALIDATION = "validation"
    FATAL = "fatal"


class PipelineAborted(RuntimeError):
    """Raised by an aggregator when an item fails in a way that stops the run."""

    def __init__(self, message: str, kind: ErrorKind = ErrorKind.FATAL) -> None:
        super().__init__(message)
        self.kind = kind


@dataclass
class ItemOutcome:
    """Result of processing one item: either a value or an error with its kind."""

    item: str
    value: Any = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None

    @property
    def ok(self) -> bool:
        return self.error_kind is None

    @classmethod
    def success(cls, item: str, value: Any) -> "ItemOutcome":
        return cls(item=item, value=value)

    @classmethod
    def failure(cls, item: str, error: str, kind: ErrorKind) -> "ItemOutcome":
        return cls(item=item, error=error, error_kind=kind)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "item": self.item,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
        }


class LoadStatus(str, Enum):
    PENDING = "pending"
    UPSERTED = "upserted"
    FAILED = "failed"


@dataclass
class LoadOutcome:
    """Per-record loader state. ``pending`` moves to ``upserted`` or ``failed`` once."""

    name: str
    slug: str
    status: LoadStatus = LoadStatus.PENDING
    broker_id: Optional[Any] = None
    error: Optional[str] = None
    error_kind: Optional[ErrorKind] = None
    side_tables: Dict[str, str] = field(default_factory=dict)

    def mark_upserted(self, broker_id: Any) -> None:
        if self.status is not LoadStatus.PENDING:
            raise ValueError(f"{self.slug} already {self.status.value}")
        self.status = LoadStatus.UPSERTED
        self.broker_id = broker_id

    def mark_failed(self, error: str, kind: ErrorKind) -> None:
        if self.status is not LoadStatus.PENDING:
            raise ValueError(f"{self.slug} already {self.status.value}")
        self.status = LoadStatus.FAILED
        self.error = error
        self.error_kind = kind

    def to_dict(self) -> Dict[str, Any]:
        return {
            "name": self.name,
            "slug": self.slug,
            "status": self.status.value,
            "broker_id": self.broker_id,
            "error": self.error,
            "error_kind": self.error_kind.value if self.error_kind else None,
            "side_tables": dict(self.side_tables),
        }


@dataclass
class LoadReport:
    """Aggregate of all loader outcomes for one run."""

    outcomes: List[LoadOutcome] = field(default_factory=list)

    def add(self, outcome: LoadOutcome) -> None:
        self.outcomes.append(outcome)

    @property
    def upserted(self) -> int:
        return sum(1 for o in self.outcomes if o.status is LoadStatus.UPSERTED)

    @property
    def failed(self) -> int:
        return sum(1 for o in self.outcomes if o.status is LoadStatus.FAILED)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "timestamp": _utc_now(),
            "total": len(self.outcomes),
            "upserted": self.upserted,
            "failed": self.failed,
            "results": [o.to_dict() for o in self.outcomes],
        }
