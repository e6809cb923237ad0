"""
Ingestion: resilient, rate-limited fetching of UCC filings from configured sources.
"""
from lienscout.ingestion.circuit_breaker import CircuitBreaker
from lienscout.ingestion.rate_limiter import RateLimiter
from lienscout.ingestion.retry import RetryPolicy
from lienscout.ingestion.service import IngestionService

__all__ = ["CircuitBreaker", "IngestionService", "RateLimiter", "RetryPolicy"]
