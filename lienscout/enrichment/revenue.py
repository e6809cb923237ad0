"""
Revenue estimation for lapsed-lien debtors.

Two paths:
1. Lien amount known: liens typically run 10-30% of annual revenue, so the
   amount is scaled by an industry multiplier band.
2. No lien amount: fall back to the industry's typical revenue band.

The position inside a band is seeded from the company name, so an estimate is
stable across runs. Figures are USD.
"""
import logging
from typing import Optional, Tuple

from lienscout.core.models import Industry
from lienscout.core.utils import normalize_name, seeded_between

logger = logging.getLogger(__name__)

# Annual revenue band by industry (USD): (low, high)
INDUSTRY_REVENUE_BANDS = {
    Industry.RESTAURANT: (500_000, 2_000_000),
    Industry.RETAIL: (800_000, 3_000_000),
    Industry.CONSTRUCTION: (1_000_000, 5_000_000),
    Industry.HEALTHCARE: (1_500_000, 6_000_000),
    Industry.MANUFACTURING: (2_000_000, 8_000_000),
    Industry.SERVICES: (600_000, 2_500_000),
    Industry.TECHNOLOGY: (1_000_000, 4_000_000),
}

# Revenue / lien amount multiplier band by industry
LIEN_MULTIPLIERS = {
    Industry.RESTAURANT: (3.5, 5.0),
    Industry.RETAIL: (4.0, 6.0),
    Industry.CONSTRUCTION: (4.0, 6.0),
    Industry.HEALTHCARE: (4.5, 6.5),
    Industry.MANUFACTURING: (5.0, 7.0),
    Industry.SERVICES: (3.5, 5.5),
    Industry.TECHNOLOGY: (5.0, 8.0),
}

MIN_REVENUE = 1.0


def revenue_band(industry: Industry) -> Tuple[int, int]:
    return INDUSTRY_REVENUE_BANDS.get(industry, INDUSTRY_REVENUE_BANDS[Industry.SERVICES])


def estimate_revenue(company_name: str, industry: Industry, lien_amount: Optional[float] = None) -> float:
    """
    Estimate annual revenue. Always returns a positive, whole-dollar value.
    """
    key = normalize_name(company_name) or company_name or "unknown"

    if lien_amount is not None and lien_amount > 0:
        low, high = LIEN_MULTIPLIERS.get(industry, LIEN_MULTIPLIERS[Industry.SERVICES])
        multiplier = seeded_between(low, high, "lien-multiplier", key)
        estimate = round(lien_amount * multiplier)
        logger.debug(f"{company_name}: revenue {estimate:,} from lien {lien_amount:,.0f} x {multiplier:.2f}")
    else:
        low, high = revenue_band(industry)
        estimate = round(seeded_between(low, high, "revenue-band", key))
        logger.debug(f"{company_name}: revenue {estimate:,} from {industry.value} band")

    return float(max(MIN_REVENUE, estimate))
