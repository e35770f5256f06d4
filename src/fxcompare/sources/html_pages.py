"""Locate and read saved broker review pages."""
from __future__ import annotations

import logging
from pathlib import Path
from typing import Iterable, List, Optional

logger = logging.getLogger(__name__)


def discover_html_files(
    directory: Path,
    skip_patterns: Iterable[str] = (),
    max_files: Optional[int] = None,
) -> List[Path]:
    """Return review pages under ``directory``, skipping listing pages by file name.

    A missing directory raises ``FileNotFoundError``; nothing can run without it.
    """

    if not directory.is_dir():
        raise FileNotFoundError(f"HTML directory not found: {directory}")
    patterns = [pattern.lower() for pattern in skip_patterns]
    files = sorted(
        path
        for path in directory.rglob("*.html")
        if not any(pattern in path.name.lower() for pattern in patterns)
    )
    if max_files is not None:
        files = files[:max_files]
    logger.info("Found %d review pages in %s", len(files), directory)
    return files


def read_page(path: Path) -> str:
    return path.read_text(encoding="utf-8")
