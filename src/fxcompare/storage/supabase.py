"""Minimal PostgREST client for a Supabase project.

One ``SupabaseClient`` (and one ``requests.Session``) is built per run and
passed to whatever needs the datastore. Writes are never retried; only
idempotent reads go through the retrying adapter.
"""
from __future__ import annotations

import logging
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence

import requests
from requests.adapters import HTTPAdapter
from urllib3.util.retry import Retry

from ..config_loader import SupabaseCredentials

logger = logging.getLogger(__name__)

Row = Dict[str, Any]


class SupabaseError(RuntimeError):
    """Non-2xx reply from the REST endpoint."""

    def __init__(self, status_code: int, message: str, table: Optional[str] = None) -> None:
        super().__init__(f"{table or 'request'}: HTTP {status_code}: {message}")
        self.status_code = status_code
        self.message = message
        self.table = table

    @property
    def is_auth_error(self) -> bool:
        return self.status_code in (401, 403)


def _build_session(api_key: str) -> requests.Session:
    retry = Retry(
        total=3,
        backoff_factor=0.5,
        status_forcelist=(429, 500, 502, 503, 504),
        allowed_methods=("GET", "HEAD"),
        raise_on_status=False,
    )
    session = requests.Session()
    adapter = HTTPAdapter(max_retries=retry)
    session.mount("http://", adapter)
    session.mount("https://", adapter)
    session.headers.update(
        {
            "apikey": api_key,
            "Authorization": f"Bearer {api_key}",
            "Content-Type": "application/json",
            "Accept": "application/json",
        }
    )
    return session


def _error_message(response: requests.Response) -> str:
    try:
        body = response.json()
    except ValueError:
        return response.text[:200]
    if isinstance(body, dict):
        return str(body.get("message") or body.get("error") or body)
    return str(body)


def _eq_filters(filters: Optional[Mapping[str, Any]]) -> Dict[str, str]:
    return {column: f"eq.{value}" for column, value in (filters or {}).items()}


class SupabaseClient:
    def __init__(
        self,
        url: str,
        api_key: str,
        timeout: float = 30.0,
        session: Optional[requests.Session] = None,
    ) -> None:
        self.rest_url = url.rstrip("/") + "/rest/v1"
        self.timeout = timeout
        self.session = session if session is not None else _build_session(api_key)

    @classmethod
    def from_credentials(cls, credentials: SupabaseCredentials, timeout: float = 30.0) -> "SupabaseClient":
        return cls(credentials.url, credentials.api_key, timeout=timeout)

    def _request(
        self,
        method: str,
        table: str,
        params: Optional[Mapping[str, str]] = None,
        payload: Any = None,
        prefer: Optional[str] = None,
    ) -> List[Row]:
        headers = {"Prefer": prefer} if prefer else None
        response = self.session.request(
            method,
            f"{self.rest_url}/{table}",
            params=dict(params or {}),
            json=payload,
            headers=headers,
            timeout=self.timeout,
        )
        if not response.ok:
            raise SupabaseError(response.status_code, _error_message(response), table)
        if not response.content:
            return []
        data = response.json()
        return data if isinstance(data, list) else [data]

    def select(
        self,
        table: str,
        columns: str = "*",
        filters: Optional[Mapping[str, Any]] = None,
        limit: Optional[int] = None,
    ) -> List[Row]:
        params = {"select": columns, **_eq_filters(filters)}
        if limit is not None:
            params["limit"] = str(limit)
        return self._request("GET", table, params=params)

    def insert(self, table: str, rows: Sequence[Row]) -> List[Row]:
        return self._request("POST", table, payload=list(rows), prefer="return=representation")

    def upsert(self, table: str, rows: Sequence[Row], on_conflict: str) -> List[Row]:
        """Insert rows, merging into existing ones that share ``on_conflict``."""

        return self._request(
            "POST",
            table,
            params={"on_conflict": on_conflict},
            payload=list(rows),
            prefer="resolution=merge-duplicates,return=representation",
        )

    def update(self, table: str, values: Row, filters: Mapping[str, Any]) -> List[Row]:
        if not filters:
            raise ValueError("update() requires at least one filter")
        return self._request(
            "PATCH", table, params=_eq_filters(filters), payload=values, prefer="return=representation"
        )

    def count(self, table: str, columns: Iterable[str] = ("id",)) -> int:
        return len(self.select(table, columns=",".join(columns)))

    def check_connection(self, table: str) -> None:
        """Raise ``SupabaseError`` or ``requests.RequestException`` if ``table`` is unreachable."""

        self.select(table, columns="id", limit=1)
        logger.info("Connected to %s (table %s)", self.rest_url, table)
