"""
Scheduler: recurring ingestion, enrichment and stale-data refresh over an in-memory prospect index.
"""
from lienscout.scheduler.events import EventBus
from lienscout.scheduler.service import RefreshScheduler
from lienscout.scheduler.store import ProspectStore

__all__ = ["EventBus", "ProspectStore", "RefreshScheduler"]
