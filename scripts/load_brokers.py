"""Upsert cleaned broker data into Supabase.

Requires SUPABASE_URL and SUPABASE_SERVICE_ROLE_KEY (or SUPABASE_KEY) in the
environment.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

import requests

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from fxcompare.config_loader import ConfigurationError, load_settings, load_supabase_credentials
from fxcompare.models import PipelineAborted
from fxcompare.pipeline import build_loader, run_load
from fxcompare.storage.supabase import SupabaseClient, SupabaseError
from fxcompare.validation.report import CLEANED_FILENAME


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "input_file",
        nargs="?",
        type=Path,
        help=f"Cleaned-data JSON to load (defaults to <output_dir>/{CLEANED_FILENAME}).",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    try:
        settings = load_settings()
        credentials = load_supabase_credentials()
    except ConfigurationError as exc:
        logging.basicConfig(level=logging.ERROR)
        logging.error("%s", exc)
        return 1
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    client = SupabaseClient.from_credentials(credentials, timeout=settings.request_timeout)
    try:
        client.check_connection(settings.brokers_table)
    except (SupabaseError, requests.RequestException) as exc:
        logging.error("Cannot reach the datastore: %s", exc)
        return 1

    input_file = args.input_file or settings.output_dir / CLEANED_FILENAME
    try:
        report, report_path = run_load(input_file, build_loader(settings, client), settings.output_dir)
    except (OSError, ValueError, PipelineAborted) as exc:
        logging.error("Load aborted: %s", exc)
        return 1

    print(f"Upserted {report.upserted} brokers, {report.failed} failed. Report: {report_path}")
    return 0 if report.failed == 0 else 1


if __name__ == "__main__":
    sys.exit(main())
