"""
Enrichment: filings -> scored prospects (industry, revenue, growth signals, health, priority).
"""
from lienscout.enrichment.health import HealthProvider, SimulatedHealthProvider, grade_for
from lienscout.enrichment.industry import classify_industry
from lienscout.enrichment.revenue import estimate_revenue
from lienscout.enrichment.scoring import calculate_priority, generate_narrative
from lienscout.enrichment.service import EnrichmentService, default_enrichment_sources, prospect_id_for
from lienscout.enrichment.signals import SignalProvider, SimulatedSignalProvider

__all__ = [
    "EnrichmentService",
    "HealthProvider",
    "SignalProvider",
    "SimulatedHealthProvider",
    "SimulatedSignalProvider",
    "calculate_priority",
    "classify_industry",
    "default_enrichment_sources",
    "estimate_revenue",
    "generate_narrative",
    "grade_for",
    "prospect_id_for",
]
