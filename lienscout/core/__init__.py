"""
Core Module - Shared Infrastructure.
"""

from lienscout.core.clock import Clock, FakeClock, system_clock
from lienscout.core.pipeline import (
    DataSource,
    EnrichmentSource,
    IngestionConfig,
    PipelineConfig,
    ScheduleConfig,
)

__all__ = [
    "Clock",
    "FakeClock",
    "system_clock",
    "DataSource",
    "EnrichmentSource",
    "IngestionConfig",
    "PipelineConfig",
    "ScheduleConfig",
]
