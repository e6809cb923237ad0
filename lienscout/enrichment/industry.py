"""
Keyword-based industry classification from a debtor name.

First matching bucket wins, in the order listed; no match falls back to
services. Matching is plain substring on the lower-cased name, so the same
name always yields the same industry.
"""
from typing import Tuple

from lienscout.core.models import Industry

INDUSTRY_KEYWORDS = (
    (Industry.RESTAURANT, ("restaurant", "cafe", "food")),
    (Industry.RETAIL, ("retail", "store", "shop")),
    (Industry.CONSTRUCTION, ("construction", "builder", "contractor")),
    (Industry.HEALTHCARE, ("health", "medical", "care")),
    (Industry.MANUFACTURING, ("manufacturing", "factory", "industrial")),
    (Industry.TECHNOLOGY, ("tech", "software", "digital")),
)

DEFAULT_INDUSTRY = Industry.SERVICES

# Confidence of a keyword hit vs. the services fallback
MATCH_CONFIDENCE = 0.9
FALLBACK_CONFIDENCE = 0.5


def classify_industry(company_name: str) -> Tuple[Industry, float]:
    """Return (industry, confidence) for a company name."""
    name = (company_name or "").lower()
    for industry, keywords in INDUSTRY_KEYWORDS:
        if any(keyword in name for keyword in keywords):
            return industry, MATCH_CONFIDENCE
    return DEFAULT_INDUSTRY, FALLBACK_CONFIDENCE
