"""
Pipeline Configuration System.

Describes everything the ingestion/enrichment/refresh pipeline needs:
- Which upstream filing sources exist and their per-minute rate budgets
- Which regions (states) to ingest
- Retry, backoff and circuit-breaker parameters
- Which enrichment sources exist and what they can do
- Scheduler intervals, batch size and staleness threshold

Usage:
    from lienscout.core.pipeline import PipelineConfig

    config = PipelineConfig.from_yaml("config/pipeline.yaml")
    config = PipelineConfig.for_environment("production")
    config = PipelineConfig.from_settings(settings)

    config.ingestion.sources[0].rate_limit_per_minute   # 60
    config.schedule.ingestion_interval_ms               # 3_600_000
"""
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional

import yaml
from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator

from lienscout.core.errors import ConfigError
from lienscout.core.models import Capability, EnrichmentSourceKind, SourceKind

logger = logging.getLogger(__name__)

HOUR_MS = 60 * 60 * 1000
MINUTE_MS = 60 * 1000

ALL_REGIONS = ["NY", "CA", "TX", "FL", "IL", "PA", "OH", "GA", "NC", "MI"]


# =============================================================================
# SCHEMA
# =============================================================================

class DataSource(BaseModel):
    """One upstream filing provider. Immutable once loaded."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    kind: SourceKind
    endpoint: Optional[str] = None
    credential: Optional[str] = Field(default=None, repr=False)
    rate_limit_per_minute: int = Field(default=60, ge=1)


class IngestionConfig(BaseModel):
    sources: List[DataSource] = Field(default_factory=list)
    batch_size: int = Field(default=100, ge=1)
    retry_attempts: int = Field(default=3, ge=1)
    retry_delay_ms: int = Field(default=2000, ge=0)
    max_retry_delay_ms: int = Field(default=30000, ge=0)
    failure_threshold: int = Field(default=5, ge=1)
    cooldown_ms: int = Field(default=30000, ge=0)
    regions: List[str] = Field(default_factory=lambda: list(ALL_REGIONS))

    @model_validator(mode="after")
    def validate_unique_sources(self):
        ids = [s.id for s in self.sources]
        duplicates = sorted({i for i in ids if ids.count(i) > 1})
        if duplicates:
            raise ValueError(f"Duplicate data source ids: {duplicates}")
        return self


class EnrichmentSource(BaseModel):
    """A provider of enrichment capabilities (scraper, API, ML model)."""
    model_config = ConfigDict(frozen=True)

    id: str
    name: str
    kind: EnrichmentSourceKind
    capabilities: List[Capability] = Field(default_factory=list)
    endpoint: Optional[str] = None
    credential: Optional[str] = Field(default=None, repr=False)


class ScheduleConfig(BaseModel):
    enabled: bool = True
    ingestion_interval_ms: int = Field(default=24 * HOUR_MS, gt=0)
    enrichment_interval_ms: int = Field(default=6 * HOUR_MS, gt=0)
    refresh_interval_ms: int = Field(default=12 * HOUR_MS, gt=0)
    enrichment_batch_size: int = Field(default=50, ge=1)
    stale_data_threshold_days: float = Field(default=7, ge=0)
    auto_start: bool = False
    ingestion_regions: Optional[List[str]] = None


class PipelineConfig(BaseModel):
    """
    Complete pipeline configuration.
    Load from YAML with PipelineConfig.from_yaml(path).
    """
    environment: str = "development"
    ingestion: IngestionConfig = Field(default_factory=IngestionConfig)
    enrichment_sources: List[EnrichmentSource] = Field(default_factory=list)
    schedule: ScheduleConfig = Field(default_factory=ScheduleConfig)

    # =================================================================
    # COMPUTED PROPERTIES
    # =================================================================

    @property
    def source_ids(self) -> List[str]:
        return [s.id for s in self.ingestion.sources]

    def get_source(self, source_id: str) -> Optional[DataSource]:
        return next((s for s in self.ingestion.sources if s.id == source_id), None)

    # =================================================================
    # LOADERS
    # =================================================================

    @classmethod
    def from_yaml(cls, path: Path) -> "PipelineConfig":
        """Load pipeline configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigError(f"Pipeline config not found: {path}")

        with open(path, "r", encoding="utf-8") as f:
            raw = yaml.safe_load(f) or {}

        if not isinstance(raw, dict):
            raise ConfigError(f"Pipeline config must be a mapping, got {type(raw).__name__}")

        try:
            return cls(**raw)
        except ValidationError as e:
            raise ConfigError(f"Invalid pipeline config {path}: {e}") from e

    @classmethod
    def for_environment(cls, environment: str = "development") -> "PipelineConfig":
        """Built-in defaults per environment."""
        builders = {
            "development": _development_defaults,
            "production": _production_defaults,
        }
        if environment not in builders:
            raise ConfigError(f"No pipeline defaults for environment {environment!r}")
        return cls(**builders[environment]())

    @classmethod
    def from_settings(cls, settings) -> "PipelineConfig":
        """
        Resolve config with fallback chain:
          1. settings.pipeline_config_path (YAML)
          2. Built-in defaults for settings.environment
        Endpoint/credential overrides from settings are applied to matching sources.
        """
        if settings.pipeline_config_path:
            logger.info(f"Loading pipeline config from {settings.pipeline_config_path}")
            config = cls.from_yaml(settings.pipeline_config_path)
        else:
            logger.info(f"No pipeline config path set, using {settings.environment} defaults")
            config = cls.for_environment(settings.environment)
        return config.with_overrides(
            api_endpoint=settings.ucc_api_endpoint,
            api_key=settings.ucc_api_key,
            database_url=settings.ucc_database_url,
        )

    def with_overrides(
        self,
        api_endpoint: Optional[str] = None,
        api_key: Optional[str] = None,
        database_url: Optional[str] = None,
    ) -> "PipelineConfig":
        """Return a copy with endpoint/credential overrides applied per source kind."""
        sources = []
        for source in self.ingestion.sources:
            update: Dict[str, Any] = {}
            if source.kind == SourceKind.API:
                if api_endpoint:
                    update["endpoint"] = api_endpoint
                if api_key:
                    update["credential"] = api_key
            elif source.kind == SourceKind.DATABASE and database_url:
                update["endpoint"] = database_url
            sources.append(source.model_copy(update=update) if update else source)

        ingestion = self.ingestion.model_copy(update={"sources": sources})
        return self.model_copy(update={"ingestion": ingestion})


# =============================================================================
# DEFAULTS
# =============================================================================

def _development_defaults() -> Dict[str, Any]:
    return {
        "environment": "development",
        "ingestion": {
            "sources": [
                {
                    "id": "demo-api",
                    "name": "Demo UCC API",
                    "kind": "api",
                    "endpoint": "https://api.demo.ucc-filings.com/v1",
                    "rate_limit_per_minute": 60,
                },
                {
                    "id": "ny-portal",
                    "name": "New York UCC Portal",
                    "kind": "state-portal",
                    "endpoint": "https://appext20.dos.ny.gov/pls/ucc_public/web_search.main_frame",
                    "rate_limit_per_minute": 30,
                },
            ],
            "batch_size": 50,
            "retry_attempts": 3,
            "retry_delay_ms": 2000,
            "regions": ["NY", "CA", "TX"],
        },
        "enrichment_sources": [
            {
                "id": "web-scraper-dev",
                "name": "Web Scraper (Dev)",
                "kind": "web-scraping",
                "capabilities": ["growth-signals", "health-score"],
            },
            {
                "id": "ml-inference-dev",
                "name": "ML Inference (Dev)",
                "kind": "ml-inference",
                "capabilities": ["revenue-estimate", "industry-classification"],
            },
        ],
        "schedule": {
            "enabled": True,
            "ingestion_interval_ms": HOUR_MS,
            "enrichment_interval_ms": 30 * MINUTE_MS,
            "refresh_interval_ms": 30 * MINUTE_MS,
            "enrichment_batch_size": 25,
            "stale_data_threshold_days": 1,
            "auto_start": False,
        },
    }


def _production_defaults() -> Dict[str, Any]:
    return {
        "environment": "production",
        "ingestion": {
            "sources": [
                {
                    "id": "production-api",
                    "name": "Production UCC API",
                    "kind": "api",
                    "endpoint": "https://api.ucc-filings.com/v1",
                    "rate_limit_per_minute": 100,
                },
                {
                    "id": "database",
                    "name": "UCC Database",
                    "kind": "database",
                    "endpoint": "postgresql://localhost:5432/ucc",
                    "rate_limit_per_minute": 1000,
                },
            ],
            "batch_size": 100,
            "retry_attempts": 5,
            "retry_delay_ms": 5000,
            "regions": list(ALL_REGIONS),
        },
        "enrichment_sources": [
            {
                "id": "web-scraper",
                "name": "Web Scraper",
                "kind": "web-scraping",
                "capabilities": ["growth-signals", "health-score"],
            },
            {
                "id": "ml-api",
                "name": "ML API",
                "kind": "api",
                "capabilities": ["revenue-estimate", "industry-classification"],
            },
        ],
        "schedule": {
            "enabled": True,
            "ingestion_interval_ms": 24 * HOUR_MS,
            "enrichment_interval_ms": 6 * HOUR_MS,
            "refresh_interval_ms": 12 * HOUR_MS,
            "enrichment_batch_size": 50,
            "stale_data_threshold_days": 7,
            "auto_start": True,
        },
    }
