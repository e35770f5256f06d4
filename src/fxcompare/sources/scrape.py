"""Download broker review pages into the local HTML directory.

Only sources marked ``allowed_to_scrape: true`` in ``brokers.yaml`` are
fetched. Check the site's terms and robots.txt before enabling a source.
"""
from __future__ import annotations

import logging
from pathlib import Path
from typing import List, Sequence

from ..cleaning import slugify
from ..fetchers import Fetcher
from ..models import BrokerSource, ErrorKind, ItemOutcome

logger = logging.getLogger(__name__)

REVIEW_PAGE = "review_page"


def page_filename(broker: BrokerSource, index: int = 0) -> str:
    suffix = "" if index == 0 else f"-{index + 1}"
    return f"{slugify(broker.name)}-review{suffix}.html"


def download_review_pages(
    brokers: Sequence[BrokerSource],
    output_dir: Path,
    fetcher: Fetcher,
    timeout: float = 30.0,
) -> List[ItemOutcome]:
    """Save each allowed review page as ``<slug>-review.html``; one outcome per page."""

    output_dir.mkdir(parents=True, exist_ok=True)
    outcomes: List[ItemOutcome] = []
    for broker in brokers:
        pages = [s for s in broker.data_sources if s.type == REVIEW_PAGE and s.url]
        for index, source in enumerate(pages):
            if source.allowed_to_scrape is not True:
                logger.info("Skipping %s (%s): scraping not allowed", broker.name, source.url)
                continue

            content, error = fetcher.fetch(source.url, timeout=timeout)
            if content is None:
                logger.warning("Could not download %s for %s: %s", source.url, broker.name, error)
                outcomes.append(ItemOutcome.failure(source.url, error or "no content", ErrorKind.NETWORK))
                continue

            target = output_dir / page_filename(broker, index)
            try:
                target.write_bytes(content)
            except OSError as exc:
                logger.warning("Could not write %s: %s", target, exc)
                outcomes.append(ItemOutcome.failure(source.url, str(exc), ErrorKind.IO))
                continue
            logger.info("Saved %s -> %s", source.url, target)
            outcomes.append(ItemOutcome.success(source.url, target))
    return outcomes
