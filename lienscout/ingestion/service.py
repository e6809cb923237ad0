"""
Ingestion service: pull filings from every configured source for every region.

Each (source, region) pair goes through
    CircuitBreaker.call -> RateLimiter.acquire -> RetryPolicy.run -> client.fetch
and is normalized into NormalizedFiling. Every pair yields one
IngestionRunResult; ingest() never raises.
"""
import logging
from typing import Callable, Dict, Iterable, List, Optional

from lienscout.core.clock import Clock, system_clock
from lienscout.core.data_types import CircuitState, IngestionRunResult, IngestionStatistics, NormalizedFiling
from lienscout.core.errors import CircuitOpenError, RetryExhaustedError
from lienscout.core.models import FilingStatus
from lienscout.core.pipeline import DataSource, IngestionConfig
from lienscout.core.utils import days_between
from lienscout.ingestion.circuit_breaker import CircuitBreaker
from lienscout.ingestion.clients import FilingClient, build_client
from lienscout.ingestion.normalize import normalize_records
from lienscout.ingestion.rate_limiter import RateLimiter
from lienscout.ingestion.retry import RetryPolicy

logger = logging.getLogger(__name__)

ClientFactory = Callable[..., FilingClient]


class IngestionService:
    """
    Usage:
        service = IngestionService(config.ingestion)
        results = await service.ingest(["NY", "CA"])
        stats = service.get_statistics(results)
    """

    def __init__(
        self,
        config: IngestionConfig,
        clock: Clock = system_clock,
        client_factory: Optional[ClientFactory] = None,
        timeout_seconds: float = 30.0,
    ):
        self.config = config
        self.clock = clock
        self.client_factory = client_factory or build_client
        self.timeout_seconds = timeout_seconds

        self.rate_limiter = RateLimiter(clock=clock)
        self.breakers: Dict[str, CircuitBreaker] = {}
        for source in config.sources:
            self.rate_limiter.configure(source.id, source.rate_limit_per_minute)
            self.breakers[source.id] = CircuitBreaker(
                source.id,
                failure_threshold=config.failure_threshold,
                cooldown_seconds=config.cooldown_ms / 1000,
                clock=clock,
            )

        self.retry_policy = RetryPolicy(
            attempts=config.retry_attempts,
            base_delay=config.retry_delay_ms / 1000,
            max_delay=config.max_retry_delay_ms / 1000,
            clock=clock,
        )

    # =================================================================
    # INGEST
    # =================================================================

    async def ingest(self, regions: Optional[Iterable[str]] = None) -> List[IngestionRunResult]:
        """One result per (source, region). Filing ids are deduplicated across the whole run."""
        region_list = [r.upper() for r in regions] if regions else list(self.config.regions)
        seen_ids: set = set()
        results: List[IngestionRunResult] = []

        logger.info(
            f"Ingesting {len(self.config.sources)} sources x {len(region_list)} regions: {', '.join(region_list)}"
        )
        for source in self.config.sources:
            results.extend(await self._ingest_source(source, region_list, seen_ids))

        total = sum(r.metadata.record_count for r in results)
        failed = sum(1 for r in results if not r.success)
        logger.info(f"Ingestion finished: {total} filings, {failed}/{len(results)} pairs failed")
        return results

    async def _ingest_source(
        self, source: DataSource, regions: List[str], seen_ids: set
    ) -> List[IngestionRunResult]:
        results: List[IngestionRunResult] = []
        started = self.clock.monotonic()
        try:
            client = self.client_factory(
                source, batch_size=self.config.batch_size, timeout_seconds=self.timeout_seconds
            )
            async with client:
                for region in regions:
                    results.append(await self._ingest_pair(source, client, region, seen_ids))
        except Exception as e:
            # Client could not be built, opened or closed; regions not yet attempted fail with it
            logger.error(f"{source.name}: client error: {e}")
            done = {r.metadata.region for r in results}
            elapsed_ms = (self.clock.monotonic() - started) * 1000
            for region in regions:
                if region not in done:
                    results.append(
                        IngestionRunResult.build(
                            source=source.id,
                            region=region,
                            filings=[],
                            errors=[f"{source.name} [{region}]: {e}"],
                            timestamp=self.clock.now(),
                            processing_time_ms=elapsed_ms,
                        )
                    )
        return results

    async def _ingest_pair(
        self, source: DataSource, client: FilingClient, region: str, seen_ids: set
    ) -> IngestionRunResult:
        timestamp = self.clock.now()
        started = self.clock.monotonic()
        breaker = self.breakers[source.id]
        filings: List[NormalizedFiling] = []
        errors: List[str] = []
        skipped = 0

        async def fetch_once():
            # slot is only taken once the breaker has admitted the call
            await self.rate_limiter.acquire(source.id)
            return await self.retry_policy.run(lambda: client.fetch(region), source_id=source.id)

        try:
            records = await breaker.call(fetch_once)
            filings, skipped = normalize_records(records or [], region, seen_ids)
        except RetryExhaustedError as e:
            logger.warning(f"{source.name} [{region}]: {e}")
            errors.extend(f"{source.name} [{region}] {msg}" for msg in e.attempt_errors)
        except CircuitOpenError as e:
            logger.warning(f"{source.name} [{region}]: skipped, {e}")
            errors.append(f"{source.name} [{region}]: {e}")
        except Exception as e:
            logger.error(f"{source.name} [{region}]: {e}")
            errors.append(f"{source.name} [{region}]: {e}")

        result = IngestionRunResult.build(
            source=source.id,
            region=region,
            filings=filings,
            errors=errors,
            timestamp=timestamp,
            processing_time_ms=(self.clock.monotonic() - started) * 1000,
            skipped_records=skipped,
        )
        logger.debug(
            f"{source.name} [{region}]: {result.metadata.record_count} filings, "
            f"{skipped} skipped, {len(errors)} errors"
        )
        return result

    # =================================================================
    # DERIVED QUERIES
    # =================================================================

    async def find_lapsed_filings(
        self, max_age_days: int = 365, regions: Optional[Iterable[str]] = None
    ) -> List[NormalizedFiling]:
        """Ingest, then keep lapsed filings filed no more than max_age_days ago."""
        results = await self.ingest(regions)
        today = self.clock.now().date()
        return [
            filing
            for result in results
            for filing in result.filings
            if filing.status == FilingStatus.LAPSED
            and days_between(filing.filing_date, today) <= max_age_days
        ]

    @staticmethod
    def get_statistics(results: List[IngestionRunResult]) -> IngestionStatistics:
        if not results:
            return IngestionStatistics()

        successes = sum(1 for r in results if r.success)
        return IngestionStatistics(
            total_records=sum(r.metadata.record_count for r in results),
            success_rate=successes / len(results) * 100,
            avg_processing_time=sum(r.metadata.processing_time_ms for r in results) / len(results),
            error_count=sum(len(r.errors) for r in results),
        )

    def circuit_states(self) -> Dict[str, CircuitState]:
        return {source_id: breaker.state for source_id, breaker in self.breakers.items()}
