"""
Business health scoring.

A HealthProvider would aggregate online reviews (Google, Yelp, BBB), violation
databases (OSHA, health departments) and review sentiment over time.
SimulatedHealthProvider stands in with a grade distribution seeded from the
company name: A 15%, B 30%, C 35%, D 15%, F 5%.
"""
import logging
from abc import ABC, abstractmethod
from datetime import datetime, timezone

from lienscout.core.clock import Clock, system_clock
from lienscout.core.data_types import HealthScore
from lienscout.core.models import HealthGrade, SentimentTrend
from lienscout.core.utils import normalize_name, seeded_between, seeded_unit

logger = logging.getLogger(__name__)

# Minimum overall score per grade, checked top-down
GRADE_THRESHOLDS = (
    (90.0, HealthGrade.A),
    (80.0, HealthGrade.B),
    (70.0, HealthGrade.C),
    (60.0, HealthGrade.D),
)

GRADE_WEIGHTS = (
    (HealthGrade.A, 0.15),
    (HealthGrade.B, 0.30),
    (HealthGrade.C, 0.35),
    (HealthGrade.D, 0.15),
    (HealthGrade.F, 0.05),
)

GRADE_SCORE_BANDS = {
    HealthGrade.A: (90.0, 100.0),
    HealthGrade.B: (80.0, 89.0),
    HealthGrade.C: (70.0, 79.0),
    HealthGrade.D: (60.0, 69.0),
    HealthGrade.F: (20.0, 59.0),
}

# Health that was never measured; dated at the epoch so it reads as stale
NEVER_SCORED = datetime(1970, 1, 1, tzinfo=timezone.utc)


def grade_for(overall: float) -> HealthGrade:
    for threshold, grade in GRADE_THRESHOLDS:
        if overall >= threshold:
            return grade
    return HealthGrade.F


def unscored_health() -> HealthScore:
    return HealthScore(
        overall=0.0,
        grade=HealthGrade.F,
        sentiment_trend=SentimentTrend.STABLE,
        review_count=0,
        avg_sentiment=0.0,
        violation_count=0,
        last_updated=NEVER_SCORED,
    )


class HealthProvider(ABC):
    """Source of health scores for a company."""

    @abstractmethod
    async def assess(self, company_name: str, jurisdiction: str) -> HealthScore:
        pass


class SimulatedHealthProvider(HealthProvider):

    def __init__(self, clock: Clock = system_clock):
        self.clock = clock

    async def assess(self, company_name: str, jurisdiction: str) -> HealthScore:
        key = normalize_name(company_name) or company_name

        roll = seeded_unit("grade", key)
        grade = HealthGrade.C
        cumulative = 0.0
        for candidate, weight in GRADE_WEIGHTS:
            cumulative += weight
            if roll < cumulative:
                grade = candidate
                break

        low, high = GRADE_SCORE_BANDS[grade]
        overall = float(round(seeded_between(low, high, "score", key)))

        trend_roll = seeded_unit("trend", key)
        if trend_roll < 0.5:
            trend = SentimentTrend.STABLE
        elif trend_roll < 0.75:
            trend = SentimentTrend.IMPROVING
        else:
            trend = SentimentTrend.DECLINING

        if grade == HealthGrade.A:
            violations = 0
        elif grade == HealthGrade.B:
            violations = int(seeded_between(0, 3, "violations", key))
        else:
            violations = int(seeded_between(1, 7, "violations", key))

        score = HealthScore(
            overall=overall,
            grade=grade_for(overall),
            sentiment_trend=trend,
            review_count=int(seeded_between(50, 500, "reviews", key)),
            avg_sentiment=0.3 + (overall / 100) * 0.6,
            violation_count=violations,
            last_updated=self.clock.now(),
        )
        logger.debug(f"{company_name} [{jurisdiction}]: health {score.overall:.0f} ({score.grade.value})")
        return score
