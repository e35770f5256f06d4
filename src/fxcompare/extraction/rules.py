"""Ordered extraction rules for every broker field.

``FIELD_RULES`` is the single source of truth for how a field is found. Rules
are listed from highest to lowest precision and the first hit wins. Boolean
flags are plain substring checks over the whole page text, so a keyword in
unrelated copy (a footer, a comparison table) still sets them.
"""
from __future__ import annotations

import re
from typing import Dict, Union

from .fields import (
    CountsField,
    FlagField,
    KeywordMapField,
    LeverageField,
    LicenseField,
    LinkField,
    NameField,
    NumberField,
    SelectorListField,
    SelectorRule,
    TextField,
    VocabularyField,
    regex,
    vocabulary,
)

FieldRule = Union[
    CountsField,
    FlagField,
    KeywordMapField,
    LeverageField,
    LicenseField,
    LinkField,
    NameField,
    NumberField,
    SelectorListField,
    TextField,
    VocabularyField,
]

NAME_SELECTORS = ("h1", ".broker-name", ".review-title", "title", ".page-title", ".main-title")

PLATFORM_VOCABULARY = (
    ("MT4", ("metatrader 4", "mt4")),
    ("MT5", ("metatrader 5", "mt5")),
    ("cTrader", ("ctrader",)),
    ("WebTrader", ("webtrader", "web trader")),
    ("TradingView", ("tradingview",)),
    ("Proprietary", ("proprietary",)),
    ("Mobile", ("mobile",)),
)

# Matched case-sensitively so "FSA" does not fire on ordinary words.
REGULATORS = (
    "FCA", "CySEC", "ASIC", "FSA", "CFTC", "NFA", "FINRA", "MiFID", "ESMA",
    "FINMA", "BaFin", "AMF", "CONSOB",
)

PAYMENT_METHODS = (
    ("Credit Card", ("credit card", "debit card")),
    ("Bank Transfer", ("bank transfer", "wire transfer")),
    ("PayPal", ("paypal",)),
    ("Skrill", ("skrill",)),
    ("Neteller", ("neteller",)),
    ("WebMoney", ("webmoney",)),
    ("Bitcoin", ("bitcoin",)),
)

_LICENSED_REGULATORS = "FCA|ASIC|CySEC|CFTC|NFA|FSA|FINMA|BaFin|AMF|CONSOB"


FIELD_RULES: Dict[str, FieldRule] = {
    "name": NameField(NAME_SELECTORS),
    "description": TextField(
        (
            SelectorRule('meta[name="description"]', "content"),
            SelectorRule(".description"),
            SelectorRule(".summary"),
            SelectorRule(".overview"),
        ),
        min_length=20,
    ),
    "logo_url": TextField(
        (
            SelectorRule('img[alt*="logo"]', "src"),
            SelectorRule(".logo img", "src"),
            SelectorRule(".broker-logo img", "src"),
            SelectorRule("img.broker-logo", "src"),
        )
    ),
    "website_url": LinkField(excluded=("dailyforex", "facebook", "twitter")),
    "overall_rating": NumberField(
        (
            SelectorRule(".overall-rating"),
            SelectorRule(".rating"),
            SelectorRule(".score"),
            regex(r"""rating["']?\s*:\s*["']?(\d+(?:\.\d+)?)""", source="html"),
            regex(r"""score["']?\s*:\s*["']?(\d+(?:\.\d+)?)""", source="html"),
            regex(r"rated\s+(\d+(?:\.\d+)?)\s*(?:/|out of)\s*(?:5|10)\b"),
        ),
        minimum=0,
        maximum=10,
    ),
    "min_deposit": NumberField(
        (
            regex(r"minimum\s+deposit[^\d]*\$?\s*(\d[\d,]*(?:\.\d+)?)"),
            regex(r"min\.?\s+deposit[^\d]*\$?\s*(\d[\d,]*(?:\.\d+)?)"),
            regex(r"deposit\s+from[^\d]*\$?\s*(\d[\d,]*(?:\.\d+)?)"),
            regex(r"deposit[^$\d]{0,40}\$\s*(\d[\d,]*(?:\.\d+)?)"),
        ),
        minimum=0,
        maximum=1_000_000,
    ),
    # "(\d+):1" runs first; the word boundary keeps "1:100" from reading as 1:1.
    "max_leverage": LeverageField(
        (
            regex(r"leverage[^\d]*(\d+)\s*:\s*1\b"),
            regex(r"leverage[^\d]*1\s*:\s*(\d+)"),
            regex(r"up\s+to\s+1\s*:\s*(\d+)"),
        ),
        minimum=1,
        maximum=5000,
    ),
    "spread_from": NumberField(
        (
            regex(r"spreads?\s+from[^\d]*(\d+(?:\.\d+)?)"),
            regex(r"minimum\s+spreads?[^\d]*(\d+(?:\.\d+)?)"),
            regex(r"spreads?[^0-9]{0,40}(\d+(?:\.\d+)?)\s*pips?"),
            regex(r"from\s+(\d+(?:\.\d+)?)\s*pips?"),
        ),
        minimum=0,
        maximum=100,
    ),
    "founded_year": NumberField(
        (
            regex(r"founded[^\d]*((?:19|20)\d{2})\b"),
            regex(r"established[^\d]*((?:19|20)\d{2})\b"),
            regex(r"since\s+((?:19|20)\d{2})\b"),
        ),
        minimum=1970,
        up_to_current_year=True,
    ),
    "headquarters": TextField(
        (
            regex(r"(?i:headquarter(?:s|ed)?)\s*(?:(?i:in)|:)?\s*([A-Z][a-z]+(?:[ -][A-Z][a-z]+)*)", flags=0),
            regex(r"(?i:based\s+in)\s+([A-Z][a-z]+(?:[ -][A-Z][a-z]+)*)", flags=0),
            regex(r"(?i:located\s+in)\s+([A-Z][a-z]+(?:[ -][A-Z][a-z]+)*)", flags=0),
        ),
        min_length=3,
        max_length=99,
    ),
    "regulatory_bodies": VocabularyField(
        tuple((regulator, (regulator,)) for regulator in REGULATORS),
        case_sensitive=True,
    ),
    "regulator_licenses": LicenseField(
        re.compile(
            r"\b(" + _LICENSED_REGULATORS + r")\b\s*(?i:licen[cs]e|reg(?:istration)?\.?)?\s*"
            r"(?i:no\.?|number)?\s*[#:]?\s*(\d{4,})?"
        )
    ),
    "regulation_tier": KeywordMapField(
        (
            ("tier 1", "tier1"),
            ("tier-1", "tier1"),
            ("tier 2", "tier2"),
            ("tier-2", "tier2"),
            ("tier 3", "tier3"),
            ("offshore", "tier3"),
        )
    ),
    "platforms": VocabularyField(PLATFORM_VOCABULARY),
    "pros": SelectorListField(
        (".pros li", '[class*="pros"] li', "#pros li", ".advantages li", ".benefits li")
    ),
    "cons": SelectorListField(
        (".cons li", '[class*="cons"] li', "#cons li", ".disadvantages li", ".drawbacks li")
    ),
    "instrument_counts": CountsField(
        (
            ("forex_pairs", re.compile(r"(\d+)\s*(?:forex|currency)\s*pairs?")),
            ("commodities", re.compile(r"(\d+)\s*commodit")),
            ("indices", re.compile(r"(\d+)\s*(?:indices|index)")),
            ("stocks", re.compile(r"(\d+)\s*(?:stocks|shares|equities)")),
            ("cryptocurrencies", re.compile(r"(\d+)\s*(?:crypto|digital)")),
        )
    ),
    # Substring checks: "pro" also matches "provides". Kept as is.
    "account_types": VocabularyField(
        vocabulary("Standard", "Pro", "Premium", "VIP", "Islamic", "Raw Spread", "ECN", "STP")
    ),
    "spread_type": KeywordMapField(
        (
            ("variable spread", "variable"),
            ("floating spread", "variable"),
            ("fixed spread", "fixed"),
        )
    ),
    "commission_structure": KeywordMapField(
        (
            ("commission-free", "commission_free"),
            ("commission free", "commission_free"),
            ("zero commission", "commission_free"),
            ("no commission", "commission_free"),
            ("per lot", "per_lot"),
            ("per side", "per_lot"),
            ("per trade", "per_trade"),
        )
    ),
    "customer_support_languages": VocabularyField(
        tuple(
            (language, (language,))
            for language in (
                "English", "Spanish", "French", "German", "Italian",
                "Portuguese", "Russian", "Chinese", "Japanese", "Arabic",
            )
        ),
        case_sensitive=True,
    ),
    "support_channels": VocabularyField(
        (
            ("Live Chat", ("live chat",)),
            ("Email", ("email", "e-mail")),
            ("Phone", ("phone",)),
            ("Ticket System", ("ticket",)),
        )
    ),
    "support_hours": KeywordMapField(
        (
            ("24/7", "24/7"),
            ("24/5", "24/5"),
            ("24 hours", "24 hours"),
            ("business hours", "business hours"),
        )
    ),
    "deposit_methods": VocabularyField(PAYMENT_METHODS),
    "withdrawal_methods": VocabularyField(PAYMENT_METHODS),
    "withdrawal_fee": NumberField(
        (regex(r"withdrawal\s+fees?[^\d]{0,20}(\d+(?:\.\d+)?)"),),
        minimum=0,
        maximum=1000,
    ),
    "bonus": TextField(
        (
            regex(r"welcome\s+bonus[^\d$]{0,20}(\d+\s*%|\$\s*\d[\d,]*)"),
            regex(r"(\d+\s*%)\s+(?:deposit\s+)?bonus"),
            regex(r"bonus[^\d]{0,20}(\d+\s*%)"),
        )
    ),
    "us_clients_accepted": KeywordMapField(
        (
            ("us clients not accepted", False),
            ("does not accept us", False),
            ("not available to us", False),
            ("us clients accepted", True),
            ("accepts us clients", True),
            ("available to us clients", True),
        )
    ),
    "cfds_available": FlagField(("cfd",)),
    "commodities_available": FlagField(("commodities",)),
    "indices_available": FlagField(("indices",)),
    "crypto_available": FlagField(("crypto", "bitcoin")),
    "stocks_available": FlagField(("stocks",)),
    "mobile_trading": FlagField(("mobile", "trading"), require_all=True),
    "demo_account": FlagField(("demo account",)),
    "islamic_account": FlagField(("islamic", "swap-free", "swap free")),
    "social_trading": FlagField(("social trading",)),
    "copy_trading": FlagField(("copy trading",)),
    "automated_trading": FlagField(("automated trading", "expert advisor")),
    "educational_resources": FlagField(("education",)),
    "webinars_available": FlagField(("webinar",)),
    "market_analysis": FlagField(("market analysis", "research")),
}
