"""Download broker review pages with retry and caching.

Timeouts and connection errors are retried with exponential backoff and
jitter. HTTP errors (403, 404, ...) are not retried. Local paths and
``file://`` URLs are read from disk, which keeps the download step usable
against saved pages.
"""
from __future__ import annotations

import logging
import random
import time
from pathlib import Path
from typing import Callable, Dict, Optional, Tuple

import requests
from requests.exceptions import ConnectionError, HTTPError, ReadTimeout, RequestException

from .cache import PageCache

logger = logging.getLogger(__name__)


DEFAULT_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Windows NT 10.0; Win64; x64) "
        "AppleWebKit/537.36 (KHTML, like Gecko) "
        "Chrome/124.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
    "Connection": "keep-alive",
}


class Fetcher:
    def __init__(
        self,
        cache_dir: Optional[Path] = None,
        ttl_seconds: int = 0,
        headers: Optional[Dict[str, str]] = None,
        max_retries: int = 3,
        retry_delay: float = 1.0,
        session: Optional[requests.Session] = None,
        sleep: Callable[[float], None] = time.sleep,
    ) -> None:
        self.cache = PageCache(cache_dir, ttl_seconds) if cache_dir else None
        self.max_retries = max(1, max_retries)
        self.retry_delay = retry_delay
        self.session = session if session is not None else requests.Session()
        self.session.headers.update(headers or DEFAULT_HEADERS)
        self._sleep = sleep

    def _get_with_backoff(self, url: str, timeout: float) -> requests.Response:
        for attempt in range(self.max_retries):
            try:
                response = self.session.get(url, timeout=timeout, allow_redirects=True)
                response.raise_for_status()
                return response
            except (ReadTimeout, ConnectionError):
                if attempt == self.max_retries - 1:
                    raise
                delay = self.retry_delay * (2 ** attempt) + random.uniform(0, 1)
                logger.info(
                    "Network error for %s, retrying in %.1fs (attempt %d/%d)",
                    url, delay, attempt + 1, self.max_retries,
                )
                self._sleep(delay)
        raise RuntimeError("unreachable")

    @staticmethod
    def _read_local(url: str) -> Optional[Tuple[Optional[bytes], Optional[str]]]:
        if url.startswith("file://"):
            path = Path(url[len("file://"):])
            if not path.exists():
                return None, f"File not found: {path}"
            return path.read_bytes(), None
        if url.startswith(("http://", "https://")):
            return None
        path = Path(url)
        return (path.read_bytes(), None) if path.exists() else None

    def fetch(self, url: str, timeout: float = 30.0) -> Tuple[Optional[bytes], Optional[str]]:
        """Return ``(content, error)``. Exactly one of the two is ``None``."""

        if not url:
            return None, "URL is empty"

        local = self._read_local(url)
        if local is not None:
            return local

        if self.cache:
            cached = self.cache.get(url)
            if cached is not None:
                logger.debug("Cache hit for %s", url)
                return cached, None

        try:
            response = self._get_with_backoff(url, timeout)
        except (ReadTimeout, ConnectionError) as exc:
            message = f"Network error after {self.max_retries} attempts: {exc}"
            logger.warning(message)
            return None, message
        except HTTPError as exc:
            status = exc.response.status_code if exc.response is not None else "?"
            if status == 403:
                logger.warning("Access denied (403) for %s - site may block automated requests", url)
            else:
                logger.warning("HTTP %s for %s", status, url)
            return None, f"HTTP error: {exc}"
        except RequestException as exc:
            logger.warning("Request for %s failed: %s", url, exc)
            return None, f"Request failed: {exc}"

        content = response.content
        logger.info("Fetched %s (%d bytes)", url, len(content))
        if self.cache and content:
            self.cache.put(url, content, response.headers.get("Content-Type"))
        return content, None
