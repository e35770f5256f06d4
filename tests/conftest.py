"""Shared fixtures: sample review pages and in-memory stand-ins for HTTP and Supabase."""
from __future__ import annotations

import itertools
import json
from typing import Any, Dict, List, Optional, Sequence

import pytest
import requests

from fxcompare.storage.supabase import SupabaseError

EXAMPLE_HTML = (
    "<html><body><h1>Example Broker Review</h1>"
    "<p>minimum deposit $250</p><p>leverage 1:400</p><p>FCA</p></body></html>"
)

PEPPERSTONE_HTML = """
<html>
<head>
  <title>Pepperstone Review 2024</title>
  <meta name="description" content="Pepperstone is an Australian forex and CFD broker with tight spreads.">
</head>
<body>
  <h1>Pepperstone Review</h1>
  <img class="broker-logo" src="/img/pepperstone.png" alt="Pepperstone logo">
  <div class="rating">4.7</div>
  <p>Founded in 2010 and headquartered in Melbourne, Australia.</p>
  <p>Regulated by ASIC and the FCA (FCA license no. 684312) and CySEC.</p>
  <p>Minimum deposit: $200. Spreads from 0.1 pips. Maximum leverage 1:500 for professional clients.</p>
  <p>Platforms: MetaTrader 4, MetaTrader 5, cTrader and TradingView.</p>
  <p>Trade 90 forex pairs, 20 commodities and 25 indices as CFDs.</p>
  <p>Deposit by credit card, bank transfer, PayPal or Skrill.
     Customer support via live chat, email and phone, 24/5, in English and Spanish.</p>
  <ul class="pros"><li>Low spreads on major pairs</li><li>Fast account opening</li></ul>
  <ul class="cons"><li>No guaranteed stop loss</li></ul>
  <a href="https://www.facebook.com/pepperstone">Facebook</a>
  <a href="https://pepperstone.com/en/">Visit Pepperstone</a>
</body>
</html>
"""


@pytest.fixture
def example_html() -> str:
    return EXAMPLE_HTML


@pytest.fixture
def pepperstone_html() -> str:
    return PEPPERSTONE_HTML


@pytest.fixture
def full_record() -> Dict[str, Any]:
    """A cleaned record that earns every rubric point."""

    return {
        "name": "Pepperstone",
        "overall_rating": 4.5,
        "min_deposit": 200,
        "max_leverage": 500,
        "spread_from": 0.6,
        "platforms": ["mt4", "mt5", "ctrader", "tradingview"],
        "website_url": "https://pepperstone.com",
        "regulatory_bodies": ["FCA", "ASIC"],
        "pros": ["Low spreads"],
        "cons": ["No guaranteed stops"],
    }


class FakeSupabaseClient:
    """In-memory tables with PostgREST-like upsert semantics."""

    def __init__(self) -> None:
        self.tables: Dict[str, List[Dict[str, Any]]] = {}
        self.calls: List[tuple] = []
        self.failing_upserts: Dict[str, int] = {}
        self.failing_tables: Dict[str, int] = {}
        self._ids = itertools.count(1)

    def rows(self, table: str) -> List[Dict[str, Any]]:
        return self.tables.setdefault(table, [])

    def upsert(self, table: str, rows: Sequence[Dict[str, Any]], on_conflict: str) -> List[Dict[str, Any]]:
        self.calls.append(("upsert", table, on_conflict))
        stored = []
        for row in rows:
            if row.get("name") in self.failing_upserts:
                raise SupabaseError(self.failing_upserts[row["name"]], "rejected", table)
            existing = next((r for r in self.rows(table) if r[on_conflict] == row[on_conflict]), None)
            if existing is None:
                existing = {"id": next(self._ids)}
                self.rows(table).append(existing)
            existing.update(json.loads(json.dumps(row)))
            stored.append(dict(existing))
        return stored

    def insert(self, table: str, rows: Sequence[Dict[str, Any]]) -> List[Dict[str, Any]]:
        self.calls.append(("insert", table, len(rows)))
        if table in self.failing_tables:
            raise SupabaseError(self.failing_tables[table], "insert failed", table)
        stored = [{"id": next(self._ids), **row} for row in rows]
        self.rows(table).extend(stored)
        return stored


@pytest.fixture
def fake_client() -> FakeSupabaseClient:
    return FakeSupabaseClient()


class FakeResponse:
    def __init__(self, status_code: int = 200, payload: Any = None, content: Optional[bytes] = None,
                 headers: Optional[Dict[str, str]] = None) -> None:
        self.status_code = status_code
        self._payload = payload
        if content is None:
            content = b"" if payload is None else json.dumps(payload).encode("utf-8")
        self.content = content
        self.text = content.decode("utf-8", errors="replace")
        self.headers = headers or {}

    @property
    def ok(self) -> bool:
        return 200 <= self.status_code < 400

    def json(self) -> Any:
        return json.loads(self.content.decode("utf-8"))

    def raise_for_status(self) -> None:
        if not self.ok:
            raise requests.HTTPError(f"HTTP {self.status_code}", response=self)


class FakeSession:
    """Replays queued responses (or raises queued exceptions) and records every call."""

    def __init__(self, responses: Optional[List[Any]] = None) -> None:
        self.headers: Dict[str, str] = {}
        self.responses = list(responses or [])
        self.calls: List[Dict[str, Any]] = []

    def _next(self) -> FakeResponse:
        item = self.responses.pop(0) if self.responses else FakeResponse(200, [])
        if isinstance(item, Exception):
            raise item
        return item

    def request(self, method: str, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": method, "url": url, **kwargs})
        return self._next()

    def get(self, url: str, **kwargs: Any) -> FakeResponse:
        self.calls.append({"method": "GET", "url": url, **kwargs})
        return self._next()
