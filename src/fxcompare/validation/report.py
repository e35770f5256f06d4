"""Batch validation and the two JSON artifacts it produces."""
from __future__ import annotations

import json
import logging
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Any, Dict, List, Mapping, Sequence, Tuple

from ..models import ScoredRecord
from .scorer import QualityTier, round_half_up, score

logger = logging.getLogger(__name__)

REPORT_FILENAME = "broker-validation-report.json"
CLEANED_FILENAME = "broker-data-cleaned.json"
PASSING_VALIDATION_RATE = 80.0

LOW_QUALITY_THRESHOLD = 60
LOW_COMPLETENESS_THRESHOLD = 70
INVALID_FRACTION_THRESHOLD = 0.2


@dataclass
class BatchReport:
    """Aggregate of one validation run. Averages stay unrounded until serialised."""

    results: List[ScoredRecord] = field(default_factory=list)
    quality_sum: float = 0.0
    completeness_sum: float = 0.0
    distribution: Dict[QualityTier, int] = field(
        default_factory=lambda: {tier: 0 for tier in QualityTier}
    )
    recommendations: List[str] = field(default_factory=list)

    @property
    def total(self) -> int:
        return len(self.results)

    @property
    def valid(self) -> int:
        return sum(1 for r in self.results if r.result.is_valid)

    @property
    def invalid(self) -> int:
        return self.total - self.valid

    @property
    def critical_errors(self) -> int:
        return sum(len(r.result.errors) for r in self.results)

    @property
    def warnings(self) -> int:
        return sum(len(r.result.warnings) for r in self.results)

    @property
    def average_quality(self) -> float:
        return self.quality_sum / self.total if self.total else 0.0

    @property
    def average_completeness(self) -> float:
        return self.completeness_sum / self.total if self.total else 0.0

    @property
    def validation_rate(self) -> float:
        return 100.0 * self.valid / self.total if self.total else 0.0

    @property
    def passed(self) -> bool:
        return self.total > 0 and round_half_up(self.validation_rate) >= PASSING_VALIDATION_RATE

    def add(self, scored: ScoredRecord) -> None:
        self.results.append(scored)
        self.quality_sum += scored.result.quality_score
        self.completeness_sum += scored.result.completeness
        self.distribution[scored.result.quality_tier] += 1

    def summary(self) -> Dict[str, Any]:
        return {
            "total_brokers": self.total,
            "valid_brokers": self.valid,
            "invalid_brokers": self.invalid,
            "average_quality": round(self.average_quality, 1),
            "average_completeness": round(self.average_completeness, 1),
        }

    def to_dict(self, timestamp: str) -> Dict[str, Any]:
        return {
            "timestamp": timestamp,
            "summary": self.summary(),
            "statistics": {
                "critical_errors": self.critical_errors,
                "warnings": self.warnings,
                "validation_rate": round(self.validation_rate, 1),
            },
            "quality_distribution": {tier.value: count for tier, count in self.distribution.items()},
            "recommendations": list(self.recommendations),
            "detailed_results": [
                {"index": r.index, "broker_name": r.broker_name, **r.result.to_dict()}
                for r in self.results
            ],
        }


def _recommendations(report: BatchReport) -> List[str]:
    recommendations: List[str] = []
    if report.total == 0:
        return recommendations
    if report.average_quality < LOW_QUALITY_THRESHOLD:
        recommendations.append(
            "Overall data quality is below acceptable threshold. Consider improving extraction patterns."
        )
    if report.average_completeness < LOW_COMPLETENESS_THRESHOLD:
        recommendations.append(
            "Data completeness is low. Review extraction logic for missing fields."
        )
    if report.invalid > report.total * INVALID_FRACTION_THRESHOLD:
        recommendations.append("High number of invalid brokers. Check data source quality.")
    return recommendations


def validate_all(records: Sequence[Mapping[str, Any]]) -> BatchReport:
    """Score every record and aggregate counts, averages and the tier histogram."""

    report = BatchReport()
    for index, record in enumerate(records):
        result = score(record)
        report.add(ScoredRecord(index=index, fields=dict(record), result=result))
        if not result.is_valid:
            logger.warning("Record %d (%s) invalid: %s", index, record.get("name"), "; ".join(result.errors))
    report.recommendations = _recommendations(report)
    logger.info(
        "Validated %d records: %d valid, average quality %.1f, average completeness %.1f",
        report.total,
        report.valid,
        report.average_quality,
        report.average_completeness,
    )
    return report


def write_json(path: Path, payload: Any) -> Path:
    path.parent.mkdir(parents=True, exist_ok=True)
    path.write_text(json.dumps(payload, indent=2, ensure_ascii=False), encoding="utf-8")
    return path


def write_reports(
    report: BatchReport,
    cleaned_records: Sequence[Mapping[str, Any]],
    output_dir: Path,
) -> Tuple[Path, Path]:
    """Write the validation report and the cleaned-data file. Write errors propagate."""

    timestamp = datetime.now(timezone.utc).isoformat()
    report_path = output_dir / REPORT_FILENAME
    cleaned_path = output_dir / CLEANED_FILENAME

    write_json(report_path, report.to_dict(timestamp))
    write_json(
        cleaned_path,
        {
            "validation_timestamp": timestamp,
            "total_brokers": len(cleaned_records),
            "validation_summary": report.summary(),
            "cleaned_data": [dict(record) for record in cleaned_records],
        },
    )
    logger.info("Wrote %s and %s", report_path, cleaned_path)
    return report_path, cleaned_path
