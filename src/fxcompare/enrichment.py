"""Reference data used to fill destination columns the pages rarely state."""
from __future__ import annotations

from typing import Any, Dict, Mapping, Optional, Tuple

# Substring of the slug -> tier. Checked in order, first hit wins.
REGULATION_TIERS: Tuple[Tuple[str, str], ...] = (
    ("admirals", "tier1"),
    ("avatrade", "tier1"),
    ("axi", "tier1"),
    ("capital-com", "tier1"),
    ("cmc-markets", "tier1"),
    ("dukascopy", "tier1"),
    ("etoro", "tier1"),
    ("exness", "tier1"),
    ("fbs", "tier1"),
    ("fp-markets", "tier1"),
    ("fxcm", "tier1"),
    ("alpari", "tier2"),
    ("bdswiss", "tier2"),
    ("eightcap", "tier2"),
    ("easymarkets", "tier2"),
    ("blackbull-markets", "tier2"),
)
FUNDING_KEYWORDS = ("funding", "funded", "ftmo", "prop", "challenge")
CRYPTO_EXCHANGE_KEYWORDS = ("binance", "coinbase", "crypto-com")
DEFAULT_TIER = "tier2"

# abbreviation -> (full name, jurisdiction)
REGULATORS: Dict[str, Tuple[str, str]] = {
    "FCA": ("Financial Conduct Authority", "United Kingdom"),
    "CySEC": ("Cyprus Securities and Exchange Commission", "Cyprus"),
    "ASIC": ("Australian Securities and Investments Commission", "Australia"),
    "FSA": ("Financial Services Authority", "Unknown"),
    "CFTC": ("Commodity Futures Trading Commission", "United States"),
    "NFA": ("National Futures Association", "United States"),
    "FINRA": ("Financial Industry Regulatory Authority", "United States"),
    "SEC": ("Securities and Exchange Commission", "United States"),
    "ESMA": ("European Securities and Markets Authority", "European Union"),
    "MiFID": ("Markets in Financial Instruments Directive", "European Union"),
    "FINMA": ("Swiss Financial Market Supervisory Authority", "Switzerland"),
    "BaFin": ("Federal Financial Supervisory Authority", "Germany"),
    "AMF": ("Autorité des Marchés Financiers", "France"),
    "CONSOB": ("Commissione Nazionale per le Società e la Borsa", "Italy"),
    "CNMV": ("Comisión Nacional del Mercado de Valores", "Spain"),
    "DFSA": ("Dubai Financial Services Authority", "United Arab Emirates"),
    "MAS": ("Monetary Authority of Singapore", "Singapore"),
}


def determine_regulation_tier(slug: str) -> str:
    lowered = slug.lower()
    for key, tier in REGULATION_TIERS:
        if key in lowered:
            return tier
    if any(keyword in lowered for keyword in FUNDING_KEYWORDS):
        return "unregulated"
    if any(keyword in lowered for keyword in CRYPTO_EXCHANGE_KEYWORDS):
        return "tier2"
    return DEFAULT_TIER


def regulator_details(abbreviation: str) -> Tuple[str, str]:
    """Full name and jurisdiction for a regulator; unknown ones keep their abbreviation."""

    return REGULATORS.get(abbreviation, (abbreviation, "Unknown"))


def generate_description(record: Mapping[str, Any]) -> Optional[str]:
    name = record.get("name")
    if not name:
        return None
    parts = [f"{name} is a forex and CFD broker"]
    if record.get("founded_year"):
        parts.append(f"founded in {record['founded_year']}")
    if record.get("headquarters"):
        parts.append(f"headquartered in {record['headquarters']}")
    description = ", ".join(parts) + "."
    regulators = record.get("regulatory_bodies") or []
    if regulators:
        description += " Regulated by " + ", ".join(regulators) + "."
    return description
