"""Tests for batch validation, report files and the validation run's exit status."""
from __future__ import annotations

import json

import pytest

from fxcompare.pipeline import run_validation
from fxcompare.validation import QualityTier, score, validate_all, write_reports
from fxcompare.validation.report import CLEANED_FILENAME, REPORT_FILENAME, write_json


@pytest.fixture
def mixed_records(full_record):
    return [
        full_record,
        {"name": "Exness"},
        {"name": None, "regulatory_bodies": ["CySEC"]},
    ]


class TestValidateAll:
    def test_counts_and_unrounded_mean(self, mixed_records):
        report = validate_all(mixed_records)
        scores = [score(r).quality_score for r in mixed_records]
        completeness = [score(r).completeness for r in mixed_records]

        assert report.total == 3
        assert report.valid == 2
        assert report.invalid == 1
        assert report.average_quality == pytest.approx(sum(scores) / 3)
        assert report.average_completeness == pytest.approx(sum(completeness) / 3)
        assert report.critical_errors == 1

    def test_distribution(self, mixed_records):
        report = validate_all(mixed_records)
        assert report.distribution[QualityTier.EXCELLENT] == 1
        assert report.distribution[QualityTier.VERY_POOR] == 2
        assert sum(report.distribution.values()) == 3

    def test_recommendations(self, mixed_records):
        report = validate_all(mixed_records)
        assert report.recommendations == [
            "Overall data quality is below acceptable threshold. Consider improving extraction patterns.",
            "High number of invalid brokers. Check data source quality.",
        ]

    def test_no_recommendations_for_clean_batch(self, full_record):
        assert validate_all([full_record] * 5).recommendations == []

    def test_rate_is_rounded_before_the_threshold(self):
        almost = validate_all([{"name": "Exness"}] * 159 + [{"name": None}] * 41)
        short = validate_all([{"name": "Exness"}] * 158 + [{"name": None}] * 42)

        assert almost.validation_rate == pytest.approx(79.5)
        assert almost.passed is True
        assert short.passed is False

    def test_empty_batch(self):
        report = validate_all([])
        assert report.total == 0
        assert report.average_quality == 0.0
        assert report.passed is False

    def test_broker_name_fallback(self):
        report = validate_all([{"name": None}])
        assert report.results[0].broker_name == "Broker 1"


class TestWriteReports:
    def test_both_files_written(self, tmp_path, mixed_records):
        report = validate_all(mixed_records)
        report_path, cleaned_path = write_reports(report, mixed_records, tmp_path / "out")

        assert report_path.name == REPORT_FILENAME
        payload = json.loads(report_path.read_text(encoding="utf-8"))
        assert payload["summary"]["total_brokers"] == 3
        assert payload["statistics"]["validation_rate"] == pytest.approx(66.7)
        assert payload["quality_distribution"]["EXCELLENT"] == 1
        assert len(payload["detailed_results"]) == 3
        assert payload["detailed_results"][2]["broker_name"] == "Broker 3"

        cleaned = json.loads(cleaned_path.read_text(encoding="utf-8"))
        assert cleaned_path.name == CLEANED_FILENAME
        assert cleaned["total_brokers"] == 3
        assert cleaned["validation_summary"] == payload["summary"]
        assert cleaned["cleaned_data"][0]["name"] == "Pepperstone"

    def test_write_failure_propagates(self, tmp_path, mixed_records):
        blocker = tmp_path / "not-a-dir"
        blocker.write_text("x", encoding="utf-8")
        with pytest.raises(OSError):
            write_reports(validate_all(mixed_records), mixed_records, blocker)


    def test_write_json_creates_parents(self, tmp_path):
        path = write_json(tmp_path / "nested" / "out.json", {"name": "Exness"})
        assert json.loads(path.read_text(encoding="utf-8")) == {"name": "Exness"}


class TestRunValidation:
    def _write_input(self, path, records):
        path.write_text(json.dumps({"extracted_data": records}), encoding="utf-8")
        return path

    def test_passing_run_exits_zero(self, tmp_path):
        records = [{"name": f"broker {i}", "minDeposit": "100"} for i in range(5)]
        run = run_validation(self._write_input(tmp_path / "in.json", records), tmp_path)

        assert run.exit_code == 0
        assert run.cleaned[0]["name"] == "Broker 0"
        assert run.cleaned[0]["min_deposit"] == 100
        assert run.report_path.exists() and run.cleaned_path.exists()

    def test_low_validation_rate_exits_one(self, tmp_path):
        records = [{"name": "Good One"}] * 3 + [{"name": None}] * 2
        run = run_validation(self._write_input(tmp_path / "in.json", records), tmp_path)
        assert run.report.validation_rate == pytest.approx(60.0)
        assert run.exit_code == 1

    def test_exactly_eighty_percent_passes(self, tmp_path):
        records = [{"name": "Good One"}] * 4 + [{"name": "x"}]
        run = run_validation(self._write_input(tmp_path / "in.json", records), tmp_path)
        assert run.exit_code == 0

    def test_malformed_input_raises(self, tmp_path):
        bad = tmp_path / "bad.json"
        bad.write_text("{not json", encoding="utf-8")
        with pytest.raises(ValueError):
            run_validation(bad, tmp_path)
