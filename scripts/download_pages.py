"""Download broker review pages listed in brokers.yaml into the HTML directory.

Only sources with ``allowed_to_scrape: true`` are fetched.
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

from fxcompare.config_loader import ConfigurationError, load_broker_sources, load_settings
from fxcompare.fetchers import Fetcher
from fxcompare.sources.scrape import download_review_pages

DEFAULT_BROKERS_PATH = Path("data") / "brokers.yaml"


def parse_args() -> argparse.Namespace:
    parser = argparse.ArgumentParser(description=__doc__)
    parser.add_argument(
        "brokers_file",
        nargs="?",
        type=Path,
        default=DEFAULT_BROKERS_PATH,
        help="YAML file listing brokers and their review pages.",
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

    if not args.brokers_file.exists():
        logging.error("Broker list not found: %s", args.brokers_file)
        return 1
    brokers = load_broker_sources([args.brokers_file])
    fetcher = Fetcher(
        cache_dir=settings.cache_dir,
        ttl_seconds=settings.ttl_seconds,
        max_retries=settings.max_retries,
    )
    outcomes = download_review_pages(brokers, settings.html_dir, fetcher, timeout=settings.request_timeout)
    saved = sum(1 for outcome in outcomes if outcome.ok)
    print(f"Saved {saved} of {len(outcomes)} allowed pages to {settings.html_dir}")
    return 0


if __name__ == "__main__":
    sys.exit(main())
