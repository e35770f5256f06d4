"""Filesystem cache for downloaded review pages.

Each URL maps to ``<sha256>.html`` plus a ``<sha256>.json`` sidecar holding the
fetch time and content hash. Entries older than ``ttl_seconds`` are treated as
missing (a TTL of 0 never expires).
"""
from __future__ import annotations

import hashlib
import json
import logging
import time
from pathlib import Path
from typing import Any, Callable, Dict, Optional, Tuple

logger = logging.getLogger(__name__)


class PageCache:
    def __init__(self, base_dir: Path, ttl_seconds: int = 0, clock: Callable[[], float] = time.time) -> None:
        self.base_dir = base_dir
        self.ttl_seconds = max(0, int(ttl_seconds))
        self._clock = clock
        self.base_dir.mkdir(parents=True, exist_ok=True)

    def _paths(self, url: str) -> Tuple[Path, Path]:
        key = hashlib.sha256(url.encode("utf-8")).hexdigest()
        return self.base_dir / f"{key}.html", self.base_dir / f"{key}.json"

    def _metadata(self, meta_path: Path) -> Optional[Dict[str, Any]]:
        try:
            return json.loads(meta_path.read_text(encoding="utf-8"))
        except (OSError, ValueError) as exc:
            logger.debug("Unreadable cache metadata %s: %s", meta_path, exc)
            return None

    def is_fresh(self, fetched_at: float) -> bool:
        return self.ttl_seconds == 0 or (self._clock() - fetched_at) <= self.ttl_seconds

    def get(self, url: str) -> Optional[bytes]:
        data_path, meta_path = self._paths(url)
        if not data_path.exists() or not meta_path.exists():
            return None
        meta = self._metadata(meta_path)
        if meta is None or not self.is_fresh(float(meta.get("fetched_at", 0))):
            return None
        content = data_path.read_bytes()
        if hashlib.sha256(content).hexdigest() != meta.get("sha256"):
            logger.debug("Cached page for %s does not match its hash, ignoring", url)
            return None
        return content

    def put(self, url: str, content: bytes, content_type: Optional[str] = None) -> None:
        data_path, meta_path = self._paths(url)
        meta = {
            "url": url,
            "fetched_at": self._clock(),
            "size": len(content),
            "sha256": hashlib.sha256(content).hexdigest(),
            "content_type": content_type,
        }
        data_path.write_bytes(content)
        meta_path.write_text(json.dumps(meta, indent=2), encoding="utf-8")

    def invalidate(self, url: str) -> None:
        for path in self._paths(url):
            path.unlink(missing_ok=True)
