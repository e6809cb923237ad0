"""
Core lightweight data types for LienScout.

These are transfer objects (Dataclasses), NOT database models.
Filings, run results, signals, health scores and enrichment results are
immutable once built; Prospect and SchedulerStatus are mutated in place by
their single owner (the scheduler).
"""
from dataclasses import dataclass, field, replace
from datetime import date, datetime, timezone
from typing import Any, Dict, List, Optional, Tuple

from lienscout.core.models import (
    CircuitStatus,
    FilingStatus,
    FilingType,
    HealthGrade,
    Industry,
    ProspectStatus,
    SchedulerEventType,
    SentimentTrend,
    SignalType,
)
from lienscout.core.utils import clamp


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


def _iso(value: Optional[Any]) -> Optional[str]:
    return value.isoformat() if value is not None else None


@dataclass(frozen=True)
class NormalizedFiling:
    """A lien filing in the common representation, whatever the source."""
    id: str
    filing_date: date
    debtor_name: str
    secured_party_name: str
    jurisdiction: str
    status: FilingStatus = FilingStatus.LAPSED
    filing_type: FilingType = FilingType.UCC_1
    lien_amount: Optional[float] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "filing_date": self.filing_date.isoformat(),
            "debtor_name": self.debtor_name,
            "secured_party_name": self.secured_party_name,
            "jurisdiction": self.jurisdiction,
            "status": self.status.value,
            "filing_type": self.filing_type.value,
            "lien_amount": self.lien_amount,
        }


@dataclass(frozen=True)
class IngestionMetadata:
    source: str
    timestamp: datetime
    record_count: int
    processing_time_ms: float
    region: Optional[str] = None
    skipped_records: int = 0


@dataclass(frozen=True)
class IngestionRunResult:
    """Outcome of one (source, region) fetch."""
    success: bool
    filings: Tuple[NormalizedFiling, ...]
    errors: Tuple[str, ...]
    metadata: IngestionMetadata

    def __post_init__(self):
        if self.metadata.record_count != len(self.filings):
            raise ValueError(
                f"record_count {self.metadata.record_count} does not match {len(self.filings)} filings"
            )

    @classmethod
    def build(
        cls,
        source: str,
        region: Optional[str],
        filings: List[NormalizedFiling],
        errors: List[str],
        timestamp: datetime,
        processing_time_ms: float,
        skipped_records: int = 0,
    ) -> "IngestionRunResult":
        return cls(
            success=not errors,
            filings=tuple(filings),
            errors=tuple(errors),
            metadata=IngestionMetadata(
                source=source,
                region=region,
                timestamp=timestamp,
                record_count=len(filings),
                processing_time_ms=processing_time_ms,
                skipped_records=skipped_records,
            ),
        )


@dataclass(frozen=True)
class IngestionStatistics:
    total_records: int = 0
    success_rate: float = 0.0
    avg_processing_time: float = 0.0
    error_count: int = 0

    def to_dict(self) -> Dict[str, Any]:
        return {
            "total_records": self.total_records,
            "success_rate": self.success_rate,
            "avg_processing_time": self.avg_processing_time,
            "error_count": self.error_count,
        }


@dataclass(frozen=True)
class GrowthSignal:
    id: str
    type: SignalType
    description: str
    detected_date: date
    score: float
    confidence: float

    def __post_init__(self):
        object.__setattr__(self, "confidence", clamp(self.confidence, 0.0, 1.0))
        object.__setattr__(self, "score", max(0.0, float(self.score)))


@dataclass(frozen=True)
class HealthScore:
    overall: float
    grade: HealthGrade
    sentiment_trend: SentimentTrend
    review_count: int
    avg_sentiment: float
    violation_count: int
    last_updated: datetime

    def __post_init__(self):
        object.__setattr__(self, "overall", clamp(self.overall, 0.0, 100.0))
        object.__setattr__(self, "avg_sentiment", clamp(self.avg_sentiment, 0.0, 1.0))

    def to_dict(self) -> Dict[str, Any]:
        return {
            "overall": self.overall,
            "grade": self.grade.value,
            "sentiment_trend": self.sentiment_trend.value,
            "review_count": self.review_count,
            "avg_sentiment": self.avg_sentiment,
            "violation_count": self.violation_count,
            "last_updated": self.last_updated.isoformat(),
        }


@dataclass
class Prospect:
    """Scored sales lead built from one or more filings."""
    id: str
    company_name: str
    industry: Industry
    jurisdiction: str
    default_date: date
    health_score: HealthScore
    status: ProspectStatus = ProspectStatus.NEW
    priority_score: float = 0.0
    days_since_default: int = 0
    filings: List[NormalizedFiling] = field(default_factory=list)
    growth_signals: List[GrowthSignal] = field(default_factory=list)
    estimated_revenue: Optional[float] = None
    narrative: str = ""

    def __post_init__(self):
        self.priority_score = clamp(self.priority_score, 0.0, 100.0)

    def copy(self, **changes) -> "Prospect":
        """Shallow copy with list fields detached from the original."""
        changes.setdefault("filings", list(self.filings))
        changes.setdefault("growth_signals", list(self.growth_signals))
        return replace(self, **changes)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "id": self.id,
            "company_name": self.company_name,
            "industry": self.industry.value,
            "jurisdiction": self.jurisdiction,
            "status": self.status.value,
            "priority_score": self.priority_score,
            "default_date": self.default_date.isoformat(),
            "days_since_default": self.days_since_default,
            "filings": [f.to_dict() for f in self.filings],
            "growth_signals": [
                {
                    "id": s.id,
                    "type": s.type.value,
                    "description": s.description,
                    "detected_date": s.detected_date.isoformat(),
                    "score": s.score,
                    "confidence": s.confidence,
                }
                for s in self.growth_signals
            ],
            "health_score": self.health_score.to_dict(),
            "estimated_revenue": self.estimated_revenue,
            "narrative": self.narrative,
        }


@dataclass(frozen=True)
class EnrichmentResult:
    """Audit record of one enrichment or refresh pass."""
    prospect_id: str
    success: bool
    enriched_fields: Tuple[str, ...]
    errors: Tuple[str, ...]
    confidence: float
    timestamp: datetime = field(default_factory=_utcnow)

    def __post_init__(self):
        object.__setattr__(self, "confidence", clamp(self.confidence, 0.0, 1.0))


@dataclass(frozen=True)
class CircuitState:
    status: CircuitStatus = CircuitStatus.CLOSED
    consecutive_failures: int = 0
    opened_at: Optional[float] = None


@dataclass
class SchedulerStatus:
    running: bool = False
    last_ingestion_run: Optional[datetime] = None
    last_enrichment_run: Optional[datetime] = None
    last_refresh_run: Optional[datetime] = None
    total_prospects_processed: int = 0
    total_errors: int = 0
    next_scheduled_run: Optional[datetime] = None

    def to_dict(self) -> Dict[str, Any]:
        return {
            "running": self.running,
            "last_ingestion_run": _iso(self.last_ingestion_run),
            "last_enrichment_run": _iso(self.last_enrichment_run),
            "last_refresh_run": _iso(self.last_refresh_run),
            "total_prospects_processed": self.total_prospects_processed,
            "total_errors": self.total_errors,
            "next_scheduled_run": _iso(self.next_scheduled_run),
        }


@dataclass(frozen=True)
class SchedulerEvent:
    type: SchedulerEventType
    timestamp: datetime
    data: Optional[Dict[str, Any]] = None
    error: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        payload: Dict[str, Any] = {"type": self.type.value, "timestamp": self.timestamp.isoformat()}
        if self.data is not None:
            payload["data"] = self.data
        if self.error is not None:
            payload["error"] = self.error
        return payload
