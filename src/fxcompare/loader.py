"""Upsert cleaned broker records into the ``brokers`` table and its side tables.

Records are written one at a time, in fixed-size batches with a pause between
batches. Each record ends ``upserted`` or ``failed``; there is no retry. Side
tables are only written for records whose parent upsert succeeded, and each
side table is attempted independently.
"""
from __future__ import annotations

import logging
import time
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple

import requests

from .cleaning import coerce_number, slugify
from .enrichment import determine_regulation_tier, generate_description, regulator_details
from .models import BrokerEntity, ErrorKind, LoadOutcome, LoadReport, PipelineAborted
from .storage.supabase import SupabaseClient, SupabaseError

logger = logging.getLogger(__name__)

# canonical record field -> ``brokers`` column
DESTINATION_COLUMNS: Dict[str, str] = {
    "name": "name",
    "website_url": "website_url",
    "logo_url": "logo_url",
    "headquarters": "country",
    "founded_year": "established_year",
    "min_deposit": "min_deposit",
    "spread_from": "spreads_avg",
    "max_leverage": "leverage_max",
    "platforms": "platforms",
    "regulatory_bodies": "regulations",
    "regulation_tier": "regulation_tier",
    "overall_rating": "avg_rating",
    "description": "description",
    "pros": "pros",
    "cons": "cons",
    "account_types": "account_types",
    "demo_account": "demo_account",
}

DESTINATION_DEFAULTS: Dict[str, Any] = {
    "country": "Unknown",
    "trust_score": 75,
    "avg_rating": 0,
    "demo_account": True,
    "is_active": True,
    "featured": False,
}

INSTRUMENT_FLAGS: Tuple[Tuple[str, str], ...] = (
    ("CFDs", "cfds_available"),
    ("Commodities", "commodities_available"),
    ("Indices", "indices_available"),
    ("Crypto", "crypto_available"),
    ("Stocks", "stocks_available"),
)

FEE_FIELDS = (
    "deposit_methods",
    "withdrawal_methods",
    "withdrawal_fee",
    "commission_structure",
    "spread_type",
    "spread_from",
)

ABORTING_KINDS = frozenset({ErrorKind.FATAL})


def _as_list(value: Any) -> List[Any]:
    if value is None:
        return []
    if isinstance(value, (list, tuple)):
        return list(value)
    return [value]


def _leverage_ratio(value: Any) -> Optional[str]:
    number = coerce_number(value, allow_ratio=True)
    if number is None or number < 1:
        return None
    return f"1:{int(number)}"


def derive_instruments(record: Mapping[str, Any]) -> List[str]:
    counts = record.get("instrument_counts") or {}
    instruments = ["Forex"]
    for label, flag in INSTRUMENT_FLAGS:
        if record.get(flag) is True:
            instruments.append(label)
    if counts.get("cryptocurrencies") and "Crypto" not in instruments:
        instruments.append("Crypto")
    return instruments


def to_entity(record: Mapping[str, Any]) -> BrokerEntity:
    """Map a cleaned record onto the destination row, filling fixed defaults.

    Raises ``ValueError`` when the record has no usable name.
    """

    name = record.get("name")
    if not isinstance(name, str) or len(name.strip()) < 2:
        raise ValueError(f"record has no usable name: {name!r}")
    slug = slugify(name)
    if not slug:
        raise ValueError(f"name {name!r} produces an empty slug")

    columns: Dict[str, Any] = {
        column: record[field_name]
        for field_name, column in DESTINATION_COLUMNS.items()
        if record.get(field_name) is not None
    }
    columns["slug"] = slug
    columns["leverage_max"] = _leverage_ratio(record.get("max_leverage"))
    columns["instruments"] = derive_instruments(record)
    columns["fees"] = {f: record[f] for f in FEE_FIELDS if record.get(f) is not None}
    columns.setdefault("logo_url", f"/images/brokers/{slug}-logo.png")
    columns.setdefault("regulation_tier", determine_regulation_tier(slug))
    if not columns.get("description"):
        columns["description"] = generate_description(record)
    if columns.get("established_year") is not None:
        columns["established_year"] = int(columns["established_year"])
    if not isinstance(columns.get("avg_rating"), (int, float)) or isinstance(columns.get("avg_rating"), bool):
        columns.pop("avg_rating", None)
    if not isinstance(columns.get("demo_account"), bool):
        columns.pop("demo_account", None)
    for column, default in DESTINATION_DEFAULTS.items():
        columns.setdefault(column, default)
    for column in ("platforms", "regulations", "pros", "cons", "account_types"):
        columns[column] = _as_list(columns.get(column))

    return BrokerEntity(**columns)


# Side-table row builders: (broker_id, record) -> rows to insert.

def regulation_rows(broker_id: Any, record: Mapping[str, Any]) -> List[Dict[str, Any]]:
    licenses = {
        entry.get("regulator"): entry.get("license_number")
        for entry in record.get("regulator_licenses") or []
        if isinstance(entry, dict)
    }
    rows = []
    for abbreviation in _as_list(record.get("regulatory_bodies")):
        full_name, jurisdiction = regulator_details(abbreviation)
        rows.append(
            {
                "broker_id": broker_id,
                "regulator_name": full_name,
                "license_number": licenses.get(abbreviation) or "N/A",
                "jurisdiction": jurisdiction,
                "license_type": "Investment Services",
                "status": "active",
            }
        )
    return rows


def instrument_rows(broker_id: Any, record: Mapping[str, Any]) -> List[Dict[str, Any]]:
    counts = record.get("instrument_counts") or {}
    flags = {flag: record.get(flag) is True for _, flag in INSTRUMENT_FLAGS}
    if not counts and not any(flags.values()):
        return []
    return [
        {
            "broker_id": broker_id,
            "forex_pairs_count": counts.get("forex_pairs"),
            "commodities_count": counts.get("commodities"),
            "indices_count": counts.get("indices"),
            "stocks_count": counts.get("stocks"),
            "crypto_count": counts.get("cryptocurrencies"),
            **flags,
        }
    ]


def payment_method_rows(broker_id: Any, record: Mapping[str, Any]) -> List[Dict[str, Any]]:
    rows = [
        {"broker_id": broker_id, "method_name": method, "direction": "deposit", "fee": None}
        for method in record.get("deposit_methods") or []
    ]
    rows += [
        {
            "broker_id": broker_id,
            "method_name": method,
            "direction": "withdrawal",
            "fee": record.get("withdrawal_fee"),
        }
        for method in record.get("withdrawal_methods") or []
    ]
    return rows


def bonus_rows(broker_id: Any, record: Mapping[str, Any]) -> List[Dict[str, Any]]:
    bonus = record.get("bonus")
    if not bonus:
        return []
    return [
        {
            "broker_id": broker_id,
            "bonus_type": "welcome",
            "amount": bonus,
            "description": f"Welcome bonus of {bonus}",
        }
    ]


def support_channel_rows(broker_id: Any, record: Mapping[str, Any]) -> List[Dict[str, Any]]:
    languages = list(record.get("customer_support_languages") or [])
    return [
        {
            "broker_id": broker_id,
            "channel": channel,
            "hours": record.get("support_hours"),
            "languages": languages,
        }
        for channel in record.get("support_channels") or []
    ]


SideTableBuilder = Callable[[Any, Mapping[str, Any]], List[Dict[str, Any]]]

SIDE_TABLES: Tuple[Tuple[str, SideTableBuilder], ...] = (
    ("broker_regulations", regulation_rows),
    ("broker_instruments", instrument_rows),
    ("broker_payment_methods", payment_method_rows),
    ("broker_bonuses", bonus_rows),
    ("broker_support_channels", support_channel_rows),
)


class UpsertLoader:
    """Write records through an injected ``SupabaseClient``."""

    def __init__(
        self,
        client: SupabaseClient,
        key: str = "slug",
        batch_size: int = 10,
        batch_delay: float = 1.0,
        table: str = "brokers",
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        if key not in ("slug", "name"):
            raise ValueError(f"unsupported upsert key {key!r}")
        if batch_size < 1:
            raise ValueError("batch_size must be positive")
        self.client = client
        self.key = key
        self.batch_size = batch_size
        self.batch_delay = batch_delay
        self.table = table
        self._sleep = sleep

    def load(self, records: Sequence[Mapping[str, Any]]) -> LoadReport:
        report = LoadReport()
        batches = [records[i:i + self.batch_size] for i in range(0, len(records), self.batch_size)]
        for number, batch in enumerate(batches, start=1):
            logger.info("Loading batch %d/%d (%d records)", number, len(batches), len(batch))
            for record in batch:
                outcome = self.load_one(record)
                report.add(outcome)
                if outcome.error_kind in ABORTING_KINDS:
                    raise PipelineAborted(f"Stopping load at {outcome.slug}: {outcome.error}", outcome.error_kind)
            if number < len(batches) and self.batch_delay > 0:
                self._sleep(self.batch_delay)
        logger.info("Load finished: %d upserted, %d failed", report.upserted, report.failed)
        return report

    def load_one(self, record: Mapping[str, Any]) -> LoadOutcome:
        raw_name = record.get("name")
        try:
            entity = to_entity(record)
        except Exception as exc:
            outcome = LoadOutcome(name=str(raw_name or ""), slug=slugify(str(raw_name or "")))
            outcome.mark_failed(str(exc), ErrorKind.VALIDATION)
            logger.warning("Skipping record %r: %s", raw_name, exc)
            return outcome

        outcome = LoadOutcome(name=entity.name, slug=entity.slug)
        try:
            rows = self.client.upsert(self.table, [entity.to_row()], on_conflict=self.key)
        except SupabaseError as exc:
            kind = ErrorKind.FATAL if exc.is_auth_error else ErrorKind.NETWORK
            outcome.mark_failed(str(exc), kind)
            logger.warning("Upsert failed for %s: %s", entity.name, exc)
            return outcome
        except requests.RequestException as exc:
            outcome.mark_failed(str(exc), ErrorKind.NETWORK)
            logger.warning("Upsert failed for %s: %s", entity.name, exc)
            return outcome

        if not rows or rows[0].get("id") is None:
            outcome.mark_failed("upsert returned no row", ErrorKind.NETWORK)
            logger.warning("Upsert for %s returned no row", entity.name)
            return outcome

        broker_id = rows[0]["id"]
        outcome.mark_upserted(broker_id)
        logger.info("Upserted %s (id %s)", entity.name, broker_id)
        outcome.side_tables = self.populate_side_tables(broker_id, record)
        return outcome

    def populate_side_tables(self, broker_id: Any, record: Mapping[str, Any]) -> Dict[str, str]:
        statuses: Dict[str, str] = {}
        for table, build_rows in SIDE_TABLES:
            try:
                rows = build_rows(broker_id, record)
                if not rows:
                    statuses[table] = "skipped"
                    continue
                self.client.insert(table, rows)
            except Exception as exc:
                logger.warning("Could not populate %s for broker %s: %s", table, broker_id, exc)
                statuses[table] = "failed"
            else:
                statuses[table] = "inserted"
        return statuses
