"""Clean and validate extracted broker data, writing a report and a cleaned-data file.

Exits 0 when at least 80% of the records are valid, 1 otherwise.
"""
from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

PROJECT_ROOT = Path(__file__).resolve().parents[1]
SRC_PATH = PROJECT_ROOT / "src"
if str(SRC_PATH) not in sys.path:
    sys.path.insert(0, str(SRC_PATH))

from fxcompare.config_loader import ConfigurationError, load_settings
from fxcompare.pipeline import EXTRACTION_FILENAME, run_validation


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "input_file",
        nargs="?",
        type=Path,
        help=f"Extraction JSON to validate (defaults to <output_dir>/{EXTRACTION_FILENAME}).",
    )
    return parser.parse_args()


def main() -> int:
    args = parse_args()
    try:
        settings = load_settings()
    except ConfigurationError as exc:
        logging.basicConfig(level=logging.ERROR)
        logging.error("%s", exc)
        return 1
    logging.basicConfig(level=settings.log_level, format="%(asctime)s %(levelname)s %(name)s: %(message)s")

    input_file = args.input_file or settings.output_dir / EXTRACTION_FILENAME
    try:
        run = run_validation(input_file, settings.output_dir)
    except (OSError, ValueError) as exc:
        logging.error("Validation aborted: %s", exc)
        return 1

    report = run.report
    print(f"Total brokers:        {report.total}")
    print(f"Valid / invalid:      {report.valid} / {report.invalid}")
    print(f"Average quality:      {report.average_quality:.1f}")
    print(f"Average completeness: {report.average_completeness:.1f}")
    print(f"Validation rate:      {report.validation_rate:.1f}%")
    for tier, count in report.distribution.items():
        print(f"  {tier.value:<11} {count}")
    for recommendation in report.recommendations:
        print(f"- {recommendation}")
    print(f"Report: {run.report_path}\nCleaned data: {run.cleaned_path}")
    return run.exit_code


if __name__ == "__main__":
    sys.exit(main())
