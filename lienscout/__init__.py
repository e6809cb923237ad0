"""
LienScout - lien-filing ingestion, prospect enrichment and refresh scheduling.
"""

__version__ = "0.1.0"
