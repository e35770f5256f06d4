"""Tests for the directory extraction stage and the chained pipeline runs."""
from __future__ import annotations

import json

import pytest

from fxcompare.loader import UpsertLoader
from fxcompare.models import ErrorKind, LoadStatus
from fxcompare.pipeline import (
    EXTRACTION_FILENAME,
    extract_directory,
    load_records,
    run_load,
    run_validation,
    write_json,
)

SKIP = ("index", "best-forex-brokers", "compare")


@pytest.fixture
def html_dir(tmp_path, example_html, pepperstone_html):
    pages = tmp_path / "html"
    (pages / "nested").mkdir(parents=True)
    (pages / "example.html").write_text(example_html, encoding="utf-8")
    (pages / "nested" / "pepperstone-review.html").write_text(pepperstone_html, encoding="utf-8")
    (pages / "index.html").write_text("<h1>Forex Brokers Index</h1>", encoding="utf-8")
    (pages / "best-forex-brokers-2024.html").write_text("<h1>Best Brokers</h1>", encoding="utf-8")
    (pages / "z.html").write_text("<html><body><h1>Q</h1></body></html>", encoding="utf-8")
    (pages / "broken.html").write_bytes(b"\xff\xfe<h1>\xc3(</h1>")
    (pages / "notes.txt").write_text("<h1>Not a page</h1>", encoding="utf-8")
    return pages


class TestExtractDirectory:
    def test_outcomes_per_file(self, html_dir):
        run = extract_directory(html_dir, SKIP)

        by_item = {outcome.item: outcome for outcome in run.outcomes}
        assert sorted(by_item) == ["broken.html", "example.html", "pepperstone-review.html", "z.html"]
        assert by_item["broken.html"].error_kind is ErrorKind.IO
        assert by_item["z.html"].error_kind is ErrorKind.VALIDATION
        assert sorted(record.name for record in run.records) == ["Example", "Pepperstone"]

    def test_max_files(self, html_dir):
        run = extract_directory(html_dir, SKIP, max_files=1)
        assert [outcome.item for outcome in run.outcomes] == ["broken.html"]

    def test_missing_directory(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            extract_directory(tmp_path / "absent", SKIP)

    def test_report_payload(self, html_dir):
        payload = extract_directory(html_dir, SKIP).to_dict()

        assert payload["files_processed"] == 4
        assert payload["records_extracted"] == 2
        assert {f["error_kind"] for f in payload["failures"]} == {"io", "validation"}
        example = next(r for r in payload["extracted_data"] if r["name"] == "Example")
        assert example["source_file"] == "example.html"
        assert example["min_deposit"] == 250
        assert "extraction_date" in example


class TestLoadRecords:
    def test_plain_list_with_legacy_keys(self, tmp_path):
        path = write_json(
            tmp_path / "brokers.json",
            [
                {
                    "brokerName": "FP Markets",
                    "minDeposit": "100",
                    "regulations": [{"regulator": "ASIC", "license_number": "286354"}],
                },
                "not a record",
            ],
        )
        (record,) = load_records(path)

        assert record["name"] == "FP Markets"
        assert record["min_deposit"] == "100"
        assert record["regulatory_bodies"] == ["ASIC"]
        assert record["regulator_licenses"][0]["license_number"] == "286354"

    def test_canonical_key_wins(self, tmp_path):
        path = write_json(tmp_path / "brokers.json", [{"min_deposit": 50, "minimum_deposit": 500}])
        assert load_records(path)[0]["min_deposit"] == 50

    @pytest.mark.parametrize("key", ["extracted_data", "cleaned_data", "brokers"])
    def test_report_objects(self, tmp_path, key):
        path = write_json(tmp_path / "report.json", {key: [{"name": "Exness"}]})
        assert load_records(path) == [{"name": "Exness"}]

    def test_not_a_list(self, tmp_path):
        path = write_json(tmp_path / "report.json", {"summary": {}})
        with pytest.raises(ValueError):
            load_records(path)

    def test_missing_file(self, tmp_path):
        with pytest.raises(OSError):
            load_records(tmp_path / "absent.json")


class TestEndToEnd:
    def test_extract_validate_load(self, html_dir, tmp_path, fake_client):
        output_dir = tmp_path / "output"
        extraction = extract_directory(html_dir, SKIP)
        extraction_path = write_json(output_dir / EXTRACTION_FILENAME, extraction.to_dict())

        validation = run_validation(extraction_path, output_dir)
        assert validation.report.total == 2
        assert validation.exit_code == 0
        assert all("source_file" not in record for record in validation.cleaned)

        loader = UpsertLoader(fake_client, batch_delay=0)
        report, load_path = run_load(validation.cleaned_path, loader, output_dir)

        assert report.upserted == 2
        assert all(outcome.status is LoadStatus.UPSERTED for outcome in report.outcomes)
        rows = {row["slug"]: row for row in fake_client.rows("brokers")}
        assert rows["pepperstone"]["leverage_max"] == "1:500"
        assert rows["example"]["min_deposit"] == 250
        assert rows["example"]["regulations"] == ["FCA"]
        saved = json.loads(load_path.read_text(encoding="utf-8"))
        assert saved["upserted"] == 2

        run_load(validation.cleaned_path, loader, output_dir)
        assert len(fake_client.rows("brokers")) == 2

    def test_load_cleans_legacy_exports(self, tmp_path, fake_client):
        path = write_json(
            tmp_path / "legacy.json",
            [
                {"brokerName": "fp markets", "minDeposit": "$100", "maxLeverage": "1:500", "platforms_raw": ["MT4"]},
                {"name": "Bad One", "instrument_counts": [90]},
            ],
        )
        report, _ = run_load(path, UpsertLoader(fake_client, batch_delay=0), tmp_path)

        assert report.upserted == 1
        assert report.outcomes[1].error_kind is ErrorKind.VALIDATION
        (row,) = fake_client.rows("brokers")
        assert row["name"] == "Fp Markets"
        assert row["slug"] == "fp-markets"
        assert row["min_deposit"] == 100
        assert row["leverage_max"] == "1:500"
        assert row["platforms"] == ["mt4"]
