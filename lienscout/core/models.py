"""
Core enums for LienScout.

NOTE: These are NOT database models. The only ORM model lives in
lienscout/ingestion/database.py (the filing store queried by database sources).

Enum values keep the wire spellings used by upstream providers and by the
status/event consumers (e.g. "state-portal", "half-open", "ingestion-started").
"""
from enum import Enum


class SourceKind(str, Enum):
    API = "api"
    STATE_PORTAL = "state-portal"
    DATABASE = "database"


class FilingStatus(str, Enum):
    ACTIVE = "active"
    LAPSED = "lapsed"
    TERMINATED = "terminated"


class FilingType(str, Enum):
    UCC_1 = "UCC-1"
    UCC_3 = "UCC-3"


class Industry(str, Enum):
    RESTAURANT = "restaurant"
    RETAIL = "retail"
    CONSTRUCTION = "construction"
    HEALTHCARE = "healthcare"
    MANUFACTURING = "manufacturing"
    TECHNOLOGY = "technology"
    SERVICES = "services"


class SignalType(str, Enum):
    HIRING = "hiring"
    EXPANSION = "expansion"
    EQUIPMENT = "equipment"
    PERMIT = "permit"
    CONTRACT = "contract"


class HealthGrade(str, Enum):
    A = "A"
    B = "B"
    C = "C"
    D = "D"
    F = "F"


class SentimentTrend(str, Enum):
    IMPROVING = "improving"
    STABLE = "stable"
    DECLINING = "declining"


class ProspectStatus(str, Enum):
    NEW = "new"
    CLAIMED = "claimed"
    CONTACTED = "contacted"
    QUALIFIED = "qualified"
    DEAD = "dead"


class EnrichmentSourceKind(str, Enum):
    WEB_SCRAPING = "web-scraping"
    API = "api"
    ML_INFERENCE = "ml-inference"


class Capability(str, Enum):
    GROWTH_SIGNALS = "growth-signals"
    HEALTH_SCORE = "health-score"
    REVENUE_ESTIMATE = "revenue-estimate"
    INDUSTRY_CLASSIFICATION = "industry-classification"


class CircuitStatus(str, Enum):
    CLOSED = "closed"
    OPEN = "open"
    HALF_OPEN = "half-open"


class SchedulerEventType(str, Enum):
    INGESTION_STARTED = "ingestion-started"
    INGESTION_COMPLETED = "ingestion-completed"
    ENRICHMENT_STARTED = "enrichment-started"
    ENRICHMENT_COMPLETED = "enrichment-completed"
    REFRESH_STARTED = "refresh-started"
    REFRESH_COMPLETED = "refresh-completed"
    ERROR = "error"
