"""Extract broker fields from saved review pages into a JSON report."""
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
from fxcompare.pipeline import EXTRACTION_FILENAME, extract_directory, write_json


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "html_dir",
        nargs="?",
        type=Path,
        help="Directory of review pages (defaults to paths.html_dir in the settings file).",
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

    html_dir = args.html_dir or settings.html_dir
    try:
        run = extract_directory(html_dir, settings.skip_patterns, settings.max_files)
    except FileNotFoundError as exc:
        logging.error("%s", exc)
        return 1

    output = write_json(settings.output_dir / EXTRACTION_FILENAME, run.to_dict())
    print(
        f"Extracted {len(run.records)} brokers from {len(run.outcomes)} pages "
        f"({len(run.failures)} failed). Report: {output}"
    )
    return 0


if __name__ == "__main__":
    sys.exit(main())
