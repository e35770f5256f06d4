"""Utilities for loading pipeline settings, broker sources and credentials."""
from __future__ import annotations

import logging
import os
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Mapping, Optional, Tuple

import yaml

from .models import BrokerSource, DataSource

logger = logging.getLogger(__name__)

DEFAULT_SETTINGS_PATH = Path("data") / "pipeline.yaml"
SETTINGS_ENV_VAR = "FXCOMPARE_CONFIG"
UPSERT_KEYS = ("slug", "name")


class ConfigurationError(RuntimeError):
    """Raised when settings or required environment configuration are invalid."""


@dataclass(frozen=True)
class PipelineSettings:
    html_dir: Path = Path("data") / "html"
    output_dir: Path = Path("data") / "output"
    skip_patterns: Tuple[str, ...] = ("index", "best-forex-brokers", "compare")
    max_files: Optional[int] = None
    upsert_key: str = "slug"
    batch_size: int = 10
    batch_delay_seconds: float = 1.0
    brokers_table: str = "brokers"
    request_timeout: float = 30.0
    cache_dir: Path = Path("data") / "cache" / "pages"
    ttl_seconds: int = 86400
    max_retries: int = 3
    log_level: str = "INFO"


@dataclass(frozen=True)
class SupabaseCredentials:
    url: str
    api_key: str = field(repr=False)


def _load_yaml(path: Path) -> dict:
    with path.open("r", encoding="utf-8") as handle:
        return yaml.safe_load(handle) or {}


def resolve_settings_path(path: Optional[Path] = None) -> Path:
    if path is not None:
        return path
    override = os.getenv(SETTINGS_ENV_VAR)
    return Path(override) if override else DEFAULT_SETTINGS_PATH


def _optional_int(value) -> Optional[int]:
    return None if value is None else int(value)


def load_settings(path: Optional[Path] = None) -> PipelineSettings:
    """Load pipeline settings from YAML, falling back to defaults when the file is absent."""

    path = resolve_settings_path(path)
    if not path.exists():
        logger.info("No settings file at %s, using defaults", path)
        return PipelineSettings()

    try:
        raw = _load_yaml(path)
    except yaml.YAMLError as exc:
        raise ConfigurationError(f"Could not parse {path}: {exc}") from exc
    if not isinstance(raw, dict):
        raise ConfigurationError(f"{path} must contain a mapping")

    paths = raw.get("paths") or {}
    extraction = raw.get("extraction") or {}
    loader = raw.get("loader") or {}
    fetch = raw.get("fetch") or {}
    logging_cfg = raw.get("logging") or {}
    defaults = PipelineSettings()

    try:
        settings = PipelineSettings(
            html_dir=Path(paths.get("html_dir", defaults.html_dir)),
            output_dir=Path(paths.get("output_dir", defaults.output_dir)),
            skip_patterns=tuple(extraction.get("skip_patterns", defaults.skip_patterns)),
            max_files=_optional_int(extraction.get("max_files")),
            upsert_key=str(loader.get("upsert_key", defaults.upsert_key)),
            batch_size=int(loader.get("batch_size", defaults.batch_size)),
            batch_delay_seconds=float(loader.get("batch_delay_seconds", defaults.batch_delay_seconds)),
            brokers_table=str(loader.get("brokers_table", defaults.brokers_table)),
            request_timeout=float(loader.get("request_timeout", defaults.request_timeout)),
            cache_dir=Path(fetch.get("cache_dir", defaults.cache_dir)),
            ttl_seconds=int(fetch.get("ttl_seconds", defaults.ttl_seconds)),
            max_retries=int(fetch.get("max_retries", defaults.max_retries)),
            log_level=str(logging_cfg.get("level", defaults.log_level)).upper(),
        )
    except (TypeError, ValueError) as exc:
        raise ConfigurationError(f"Invalid value in {path}: {exc}") from exc

    _check_settings(settings, path)
    return settings


def _check_settings(settings: PipelineSettings, path: Path) -> None:
    if settings.upsert_key not in UPSERT_KEYS:
        raise ConfigurationError(
            f"{path}: loader.upsert_key must be one of {UPSERT_KEYS}, got {settings.upsert_key!r}"
        )
    if settings.batch_size < 1:
        raise ConfigurationError(f"{path}: loader.batch_size must be positive")
    if settings.batch_delay_seconds < 0:
        raise ConfigurationError(f"{path}: loader.batch_delay_seconds must not be negative")
    if settings.max_files is not None and settings.max_files < 1:
        raise ConfigurationError(f"{path}: extraction.max_files must be positive")
    if not isinstance(logging.getLevelName(settings.log_level), int):
        raise ConfigurationError(f"{path}: unknown logging.level {settings.log_level!r}")


def load_supabase_credentials(environ: Optional[Mapping[str, str]] = None) -> SupabaseCredentials:
    """Read datastore credentials from the environment, failing fast when absent."""

    env = os.environ if environ is None else environ
    url = (env.get("SUPABASE_URL") or "").strip()
    api_key = (env.get("SUPABASE_SERVICE_ROLE_KEY") or env.get("SUPABASE_KEY") or "").strip()

    missing = []
    if not url:
        missing.append("SUPABASE_URL")
    if not api_key:
        missing.append("SUPABASE_SERVICE_ROLE_KEY (or SUPABASE_KEY)")
    if missing:
        raise ConfigurationError("Missing required environment variables: " + ", ".join(missing))
    if not url.startswith(("http://", "https://")):
        raise ConfigurationError(f"SUPABASE_URL must be an http(s) URL, got {url!r}")
    return SupabaseCredentials(url=url, api_key=api_key)


def load_broker_sources_from_yaml(path: Path) -> List[BrokerSource]:
    """Load broker review-page definitions from the provided YAML file."""

    raw = _load_yaml(path)
    brokers: List[BrokerSource] = []
    for entry in raw.get("brokers", []):
        data_sources = [
            DataSource(
                type=source.get("type", "review_page"),
                url=source.get("url", ""),
                description=source.get("description", ""),
                allowed_to_scrape=source.get("allowed_to_scrape"),
                notes=source.get("notes"),
            )
            for source in entry.get("data_sources", [])
        ]
        brokers.append(
            BrokerSource(
                name=entry.get("name", ""),
                website=entry.get("website", ""),
                data_sources=data_sources,
                notes=entry.get("notes"),
            )
        )
    return brokers


def load_broker_sources(paths: Iterable[Path]) -> List[BrokerSource]:
    """Aggregate broker sources from multiple YAML files."""

    brokers: List[BrokerSource] = []
    for path in paths:
        if path.exists() and path.suffix in {".yml", ".yaml"}:
            brokers.extend(load_broker_sources_from_yaml(path))
    return brokers
