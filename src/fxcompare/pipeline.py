"""Pipeline stages wired together for the command-line scripts.

    HTML files -> extract -> (admission) -> clean -> validate/report -> load

Per-item failures come back as ``ItemOutcome``/``LoadOutcome`` values and the
run continues. Setup failures (missing HTML directory, unreadable input file,
missing credentials) raise and end the run.
"""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, Iterable, List, Optional, Tuple

from .cleaning import clean, clean_record
from .config_loader import PipelineSettings
from .extraction import extract_broker
from .loader import UpsertLoader
from .models import ErrorKind, ExtractedRecord, ItemOutcome, LoadReport, PipelineAborted, canonicalize_fields
from .sources.html_pages import discover_html_files, read_page
from .storage.supabase import SupabaseClient
from .validation import BatchReport, validate_all, write_reports
from .validation.report import write_json

logger = logging.getLogger(__name__)

EXTRACTION_FILENAME = "broker-extraction-report.json"
LOAD_FILENAME = "broker-load-report.json"
MIN_NAME_LENGTH = 2
RECORD_LIST_KEYS = ("extracted_data", "cleaned_data", "brokers")


@dataclass
class ExtractionRun:
    outcomes: List[ItemOutcome] = field(default_factory=list)

    @property
    def records(self) -> List[ExtractedRecord]:
        return [o.value for o in self.outcomes if o.ok]

    @property
    def failures(self) -> List[ItemOutcome]:
        return [o for o in self.outcomes if not o.ok]

    def to_dict(self) -> Dict[str, Any]:
        return {
            "extraction_date": datetime.now(timezone.utc).isoformat(),
            "files_processed": len(self.outcomes),
            "records_extracted": len(self.records),
            "failures": [o.to_dict() for o in self.failures],
            "extracted_data": [r.to_dict() for r in self.records],
        }


def admit(record: ExtractedRecord) -> bool:
    """Candidates need a name of at least two characters to reach scoring."""

    name = record.name
    return isinstance(name, str) and len(name.strip()) >= MIN_NAME_LENGTH


def extract_file(path: Path) -> ItemOutcome:
    try:
        raw_html = read_page(path)
    except (OSError, UnicodeDecodeError) as exc:
        logger.warning("Could not read %s: %s", path, exc)
        return ItemOutcome.failure(path.name, str(exc), ErrorKind.IO)

    record = extract_broker(raw_html, path)
    if not admit(record):
        logger.warning("Rejected %s: broker name missing or too short (%r)", path.name, record.name)
        return ItemOutcome.failure(path.name, "broker name missing or too short", ErrorKind.VALIDATION)
    logger.info("Extracted %s from %s", record.name, path.name)
    return ItemOutcome.success(path.name, record)


def extract_directory(
    html_dir: Path,
    skip_patterns: Iterable[str] = (),
    max_files: Optional[int] = None,
) -> ExtractionRun:
    run = ExtractionRun()
    for path in discover_html_files(html_dir, skip_patterns, max_files):
        outcome = extract_file(path)
        run.outcomes.append(outcome)
        if outcome.error_kind is ErrorKind.FATAL:
            raise PipelineAborted(f"{outcome.item}: {outcome.error}")
    logger.info("Extracted %d of %d pages", len(run.records), len(run.outcomes))
    return run


def load_records(path: Path) -> List[Dict[str, Any]]:
    """Read records from a JSON list or from a report object holding one.

    Unreadable or malformed files raise; a run cannot continue without input.
    """

    raw = json.loads(path.read_text(encoding="utf-8"))
    if isinstance(raw, dict):
        for key in RECORD_LIST_KEYS:
            if key in raw:
                raw = raw[key]
                break
    if not isinstance(raw, list):
        raise ValueError(f"{path} does not contain a list of broker records")
    return [canonicalize_fields(entry) for entry in raw if isinstance(entry, dict)]


@dataclass
class ValidationRun:
    report: BatchReport
    cleaned: List[Dict[str, Any]]
    report_path: Path
    cleaned_path: Path

    @property
    def exit_code(self) -> int:
        return 0 if self.report.passed else 1


def run_validation(input_file: Path, output_dir: Path) -> ValidationRun:
    records = load_records(input_file)
    cleaned = [clean_record(record).to_dict() for record in records]
    report = validate_all(cleaned)
    report_path, cleaned_path = write_reports(report, cleaned, output_dir)
    return ValidationRun(report, cleaned, report_path, cleaned_path)


def build_loader(settings: PipelineSettings, client: SupabaseClient) -> UpsertLoader:
    return UpsertLoader(
        client,
        key=settings.upsert_key,
        batch_size=settings.batch_size,
        batch_delay=settings.batch_delay_seconds,
        table=settings.brokers_table,
    )


def run_load(input_file: Path, loader: UpsertLoader, output_dir: Path) -> Tuple[LoadReport, Path]:
    records = [clean(record) for record in load_records(input_file)]
    logger.info("Loading %d records from %s", len(records), input_file)
    report = loader.load(records)
    path = write_json(output_dir / LOAD_FILENAME, report.to_dict())
    return report, path
