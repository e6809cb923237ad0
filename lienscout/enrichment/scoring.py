"""
Prospect priority scoring and narrative generation.

Priority (0-100) combines:
- Time since default: older lapses score higher, 1 point per 14 days, max 50
- Growth signals: sum of signal scores, max 30
- Health: overall * 0.2 (max 20), scaled by sentiment trend
"""
from typing import List

from lienscout.core.data_types import Prospect
from lienscout.core.models import SentimentTrend
from lienscout.core.utils import clamp

MAX_DEFAULT_POINTS = 50.0
DAYS_PER_DEFAULT_POINT = 14.0
MAX_GROWTH_POINTS = 30.0
HEALTH_WEIGHT = 0.2

TREND_FACTORS = {
    SentimentTrend.IMPROVING: 1.25,
    SentimentTrend.STABLE: 1.0,
    SentimentTrend.DECLINING: 0.75,
}


def calculate_priority(prospect: Prospect) -> float:
    default_points = min(MAX_DEFAULT_POINTS, max(0, prospect.days_since_default) / DAYS_PER_DEFAULT_POINT)
    growth_points = min(MAX_GROWTH_POINTS, sum(s.score for s in prospect.growth_signals))

    health = prospect.health_score
    health_points = health.overall * HEALTH_WEIGHT * TREND_FACTORS.get(health.sentiment_trend, 1.0)

    return clamp(round(default_points + growth_points + health_points), 0.0, 100.0)


def generate_narrative(prospect: Prospect) -> str:
    parts: List[str] = []

    years = prospect.days_since_default // 365
    if years > 0:
        plural = "s" if years > 1 else ""
        if prospect.filings:
            parts.append(f"Defaulted {years} year{plural} ago on {prospect.filings[0].filing_type.value} filing")
        else:
            parts.append(f"Defaulted {years} year{plural} ago")
    else:
        parts.append(f"Defaulted {max(0, prospect.days_since_default)} days ago")

    signals = prospect.growth_signals
    if signals:
        top = ", ".join(s.type.value for s in signals[:2])
        parts.append(f"showing {len(signals)} growth signal{'s' if len(signals) > 1 else ''} ({top})")

    parts.append(f"Current health grade: {prospect.health_score.grade.value}")

    trend = prospect.health_score.sentiment_trend
    if trend == SentimentTrend.IMPROVING:
        parts.append("sentiment improving")
    elif trend == SentimentTrend.DECLINING:
        parts.append("sentiment declining")

    return ", ".join(parts)
