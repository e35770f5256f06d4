"""Review page sources: local files and optional downloads."""

from .html_pages import discover_html_files, read_page
from .scrape import download_review_pages

__all__ = ["discover_html_files", "download_review_pages", "read_page"]
